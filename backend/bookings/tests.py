from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.core import mail
from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from common.testing import FakePaymentProcessor, make_admin, make_booking, make_client, make_driver
from disputes.models import Dispute
from settlements.models import PaymentJob, Settlement
from .models import AdminBookingAction, Booking, Rating
from .views import (
	accept_booking,
	booking_admin_actions,
	booking_detail,
	booking_rating,
	bookings,
	client_confirm,
	decline_completion,
	driver_confirm,
	force_cancel,
	force_complete,
	reject_booking,
	start_booking,
)


class BookingTestCase(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.client_user = make_client()
		self.driver = make_driver()
		self.admin = make_admin()

		self.processor = FakePaymentProcessor()
		patcher = patch('services.settlement.engine.get_payment_processor', return_value=self.processor)
		patcher.start()
		self.addCleanup(patcher.stop)

	def _post(self, view, user, booking_id, data=None):
		request = self.factory.post('/api/bookings/%d/' % booking_id, data or {}, format='json')
		force_authenticate(request, user=user)
		return view(request, booking_id=booking_id)

	def _ongoing_booking(self, **fields):
		return make_booking(
			self.client_user, self.driver,
			booking_status='ongoing',
			accepted_at=timezone.now(),
			started_at=timezone.now(),
			**fields
		)


class BookingCreateTests(BookingTestCase):
	def _create(self, user=None, **overrides):
		payload = {
			'driver_id': self.driver.id,
			'start_location': 'Ikeja City Mall',
			'destination': 'Lekki Phase 1',
			'start_latitude': 6.601838,
			'start_longitude': 3.351486,
			'destination_latitude': 6.447809,
			'destination_longitude': 3.473503,
			'duration_hr': '1.50',
		}
		payload.update(overrides)
		request = self.factory.post('/api/bookings/', payload, format='json')
		force_authenticate(request, user=user or self.client_user)
		return bookings(request)

	def test_total_cost_is_frozen_at_creation(self):
		with self.captureOnCommitCallbacks(execute=True):
			response = self._create()

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['booking_status'], 'pending')
		self.assertEqual(response.data['payment_status'], 'authorized')
		self.assertEqual(self.processor.authorized, [Decimal('3000')])

		self.driver.hourly_rate = Decimal('3000.00')
		self.driver.save(update_fields=['hourly_rate'])

		booking = Booking.objects.get(pk=response.data['id'])
		self.assertEqual(booking.total_cost, Decimal('3000.00'))
		self.assertEqual(booking.hourly_rate, Decimal('2000.00'))
		self.assertEqual(booking.payment_hold_ref, 'hold_1')

	def test_payment_authorization_failure_leaves_no_booking(self):
		self.processor.fail_authorize = True

		response = self._create()

		self.assertEqual(response.status_code, 502)
		self.assertEqual(response.data['error']['kind'], 'external_service')
		self.assertFalse(Booking.objects.exists())

	def test_unverified_client_cannot_book(self):
		unverified = make_client(verified=False)

		response = self._create(user=unverified)

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error']['kind'], 'validation')
		self.assertEqual(self.processor.authorized, [])

	def test_offline_driver_cannot_be_booked(self):
		self.driver.online_status = 'offline'
		self.driver.save(update_fields=['online_status'])

		response = self._create()

		self.assertEqual(response.status_code, 400)
		self.assertIn('offline', response.data['error']['message'])

	def test_driver_cannot_create_booking(self):
		response = self._create(user=self.driver.user)
		self.assertEqual(response.status_code, 403)

	def test_non_participant_cannot_view_booking(self):
		booking = make_booking(self.client_user, self.driver)
		stranger = make_client()

		request = self.factory.get('/api/bookings/%d/' % booking.id)
		force_authenticate(request, user=stranger)
		response = booking_detail(request, booking_id=booking.id)

		self.assertEqual(response.status_code, 404)


class DriverActionTests(BookingTestCase):
	def test_accept_then_start(self):
		booking = make_booking(self.client_user, self.driver)

		response = self._post(accept_booking, self.driver.user, booking.id)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['booking_status'], 'accepted')

		response = self._post(start_booking, self.driver.user, booking.id)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['booking_status'], 'ongoing')

	def test_cannot_start_without_accepting(self):
		booking = make_booking(self.client_user, self.driver)

		response = self._post(start_booking, self.driver.user, booking.id)

		self.assertEqual(response.status_code, 409)
		booking.refresh_from_db()
		self.assertEqual(booking.booking_status, 'pending')

	def test_only_assigned_driver_can_accept(self):
		booking = make_booking(self.client_user, self.driver)
		other = make_driver()

		response = self._post(accept_booking, other.user, booking.id)

		self.assertEqual(response.status_code, 403)
		self.assertEqual(response.data['error']['kind'], 'forbidden')

	def test_engaged_driver_cannot_accept_another_booking(self):
		make_booking(self.client_user, self.driver, booking_status='accepted')
		second = make_booking(make_client(), self.driver)

		response = self._post(accept_booking, self.driver.user, second.id)

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['error']['kind'], 'conflict')

	def test_reject_releases_payment_hold(self):
		booking = make_booking(self.client_user, self.driver)

		with self.captureOnCommitCallbacks(execute=True):
			response = self._post(reject_booking, self.driver.user, booking.id, {'reason': 'Too far'})

		self.assertEqual(response.status_code, 200)
		booking.refresh_from_db()
		self.assertEqual(booking.booking_status, 'cancelled')
		self.assertEqual(booking.cancellation_reason, 'Too far')
		self.assertEqual(booking.payment_status, 'refunded')
		self.assertEqual(self.processor.refunds, ['hold_test'])

	def test_refund_failure_is_queued_and_cancellation_stands(self):
		self.processor.fail_refund = True
		booking = make_booking(self.client_user, self.driver)

		with self.captureOnCommitCallbacks(execute=True):
			self._post(reject_booking, self.driver.user, booking.id)

		booking.refresh_from_db()
		self.assertEqual(booking.booking_status, 'cancelled')
		self.assertEqual(booking.payment_status, 'authorized')

		job = PaymentJob.objects.get(idempotency_key='refund_%d' % booking.id)
		self.assertEqual(job.job_type, 'refund')
		self.assertEqual(job.status, 'pending')
		self.assertEqual(job.attempts, 1)


class DualConfirmationTests(BookingTestCase):
	def test_driver_then_client_confirmation_settles_once(self):
		booking = self._ongoing_booking(total_cost='10000.00')

		with self.captureOnCommitCallbacks(execute=True):
			response = self._post(driver_confirm, self.driver.user, booking.id)
		self.assertEqual(response.data['booking_status'], 'ongoing')
		self.assertFalse(response.data['completed'])
		self.assertFalse(Settlement.objects.exists())

		with self.captureOnCommitCallbacks(execute=True):
			response = self._post(client_confirm, self.client_user, booking.id)

		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['completed'])

		booking.refresh_from_db()
		self.assertEqual(booking.booking_status, 'completed')
		self.assertEqual(booking.payment_status, 'paid')

		settlement = Settlement.objects.get(booking=booking)
		self.assertEqual(settlement.driver_share, Decimal('9000'))
		self.assertEqual(settlement.platform_share, Decimal('1000'))
		self.assertTrue(settlement.settled)
		self.assertEqual(settlement.payout_reference, 'completion_%d' % booking.id)
		self.assertEqual(self.processor.payouts, [(booking.id, Decimal('9000'), 'RCP_test')])

		self.driver.refresh_from_db()
		self.assertEqual(self.driver.total_trips, 1)

	def test_client_then_driver_confirmation_settles_once(self):
		booking = self._ongoing_booking()

		self._post(client_confirm, self.client_user, booking.id)
		with self.captureOnCommitCallbacks(execute=True):
			self._post(driver_confirm, self.driver.user, booking.id)

		booking.refresh_from_db()
		self.assertEqual(booking.booking_status, 'completed')
		self.assertEqual(Settlement.objects.filter(booking=booking).count(), 1)

	def test_repeated_confirmation_is_idempotent(self):
		booking = self._ongoing_booking()

		self._post(driver_confirm, self.driver.user, booking.id)
		response = self._post(driver_confirm, self.driver.user, booking.id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['message'], 'Already confirmed')

	def test_settlement_unsettled_while_payout_fails(self):
		self.processor.fail_payout = True
		booking = self._ongoing_booking(driver_confirmed=True, driver_confirmed_at=timezone.now())

		with self.captureOnCommitCallbacks(execute=True):
			self._post(client_confirm, self.client_user, booking.id)

		booking.refresh_from_db()
		self.assertEqual(booking.booking_status, 'completed')
		self.assertEqual(booking.payment_status, 'failed')

		settlement = booking.settlement
		self.assertFalse(settlement.settled)
		self.assertEqual(settlement.payout_attempts, 1)
		self.assertEqual(settlement.last_payout_error, 'Transfer failed')

		job = PaymentJob.objects.get(idempotency_key='payout_%d' % booking.id)
		self.assertEqual(job.status, 'pending')

	def test_confirm_after_completion_is_not_a_second_settlement(self):
		booking = self._ongoing_booking(client_confirmed=True, client_confirmed_at=timezone.now())
		self._post(driver_confirm, self.driver.user, booking.id)

		response = self._post(
			force_complete, self.admin, booking.id, {'reason': 'Client asked support to close it'}
		)

		self.assertEqual(response.status_code, 409)
		self.assertEqual(Settlement.objects.filter(booking=booking).count(), 1)


class CompletionDeclineTests(BookingTestCase):
	def test_decline_requires_driver_request(self):
		booking = self._ongoing_booking()

		response = self._post(decline_completion, self.client_user, booking.id, {'reason': 'Not there yet'})

		self.assertEqual(response.status_code, 409)

	def test_decline_keeps_driver_flag(self):
		booking = self._ongoing_booking(driver_confirmed=True, driver_confirmed_at=timezone.now())

		response = self._post(decline_completion, self.client_user, booking.id, {'reason': 'Not there yet'})

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['declines'], 1)
		self.assertIsNone(response.data['dispute_id'])
		booking.refresh_from_db()
		self.assertTrue(booking.driver_confirmed)
		self.assertEqual(booking.booking_status, 'ongoing')

	def test_repeated_declines_escalate_to_dispute(self):
		booking = self._ongoing_booking(driver_confirmed=True, driver_confirmed_at=timezone.now())

		with self.captureOnCommitCallbacks(execute=True):
			for _ in range(3):
				response = self._post(decline_completion, self.client_user, booking.id)

		self.assertEqual(response.data['declines'], 3)
		dispute = Dispute.objects.get(pk=response.data['dispute_id'])
		self.assertEqual(dispute.booking_id, booking.id)
		self.assertEqual(dispute.priority, 'high')
		self.assertEqual(dispute.status, 'open')
		self.assertEqual(len(mail.outbox), 1)
		self.assertIn(self.admin.email, mail.outbox[0].to)

	def test_open_dispute_blocks_client_confirmation(self):
		booking = self._ongoing_booking(driver_confirmed=True, driver_confirmed_at=timezone.now())
		Dispute.objects.create(
			booking=booking,
			reported_by=self.client_user,
			reporter_role='client',
			dispute_type='service_quality',
			description='Driver took a long detour',
		)

		response = self._post(client_confirm, self.client_user, booking.id)

		self.assertEqual(response.status_code, 409)
		booking.refresh_from_db()
		self.assertFalse(booking.client_confirmed)


class AdminOverrideTests(BookingTestCase):
	def test_force_complete_ongoing_booking(self):
		booking = self._ongoing_booking(total_cost='4000.00')

		with self.captureOnCommitCallbacks(execute=True):
			response = self._post(
				force_complete, self.admin, booking.id, {'reason': 'Both parties confirmed by phone'}
			)

		self.assertEqual(response.status_code, 200)
		booking.refresh_from_db()
		self.assertEqual(booking.booking_status, 'completed')
		self.assertEqual(booking.settlement.driver_share, Decimal('3600'))

		action = AdminBookingAction.objects.get(booking=booking)
		self.assertEqual(action.action_type, 'force_complete')
		self.assertEqual(action.previous_status, 'ongoing')
		self.assertEqual(action.admin, self.admin)

	def test_force_complete_pending_booking_settles_frozen_total(self):
		booking = make_booking(self.client_user, self.driver, total_cost='2500.00')

		with self.captureOnCommitCallbacks(execute=True):
			response = self._post(
				force_complete, self.admin, booking.id, {'reason': 'Trip happened off platform'}
			)

		self.assertEqual(response.status_code, 200)
		booking.refresh_from_db()
		self.assertEqual(booking.booking_status, 'completed')
		self.assertEqual(booking.payment_hold_ref, 'hold_test')
		self.assertEqual(Settlement.objects.filter(booking=booking).count(), 1)
		self.assertEqual(booking.settlement.total_fare, Decimal('2500.00'))
		self.assertEqual(booking.settlement.driver_share, Decimal('2250'))
		self.assertEqual(
			AdminBookingAction.objects.get(booking=booking).previous_status, 'pending'
		)

	def test_override_requires_reason(self):
		booking = self._ongoing_booking()

		response = self._post(force_complete, self.admin, booking.id, {'reason': 'short'})

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error']['kind'], 'validation')
		booking.refresh_from_db()
		self.assertEqual(booking.booking_status, 'ongoing')

	def test_force_cancel_with_refund(self):
		booking = self._ongoing_booking()
		reason = 'Driver never arrived at pickup'

		with self.captureOnCommitCallbacks(execute=True):
			response = self._post(force_cancel, self.admin, booking.id, {'reason': reason, 'refund': True})

		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['refund'])

		booking.refresh_from_db()
		self.assertEqual(booking.booking_status, 'cancelled')
		self.assertEqual(booking.payment_status, 'refunded')

		action = AdminBookingAction.objects.get(booking=booking)
		self.assertEqual(action.reason, reason)
		self.assertEqual(action.previous_status, 'ongoing')
		self.assertEqual(action.metadata, {'refund_requested': True, 'refund_issued': True})

	def test_force_cancel_terminal_booking_conflicts(self):
		booking = make_booking(self.client_user, self.driver, booking_status='cancelled')

		response = self._post(
			force_cancel, self.admin, booking.id, {'reason': 'Duplicate request from support'}
		)

		self.assertEqual(response.status_code, 409)

	def test_dispute_must_belong_to_booking(self):
		booking = self._ongoing_booking()
		other = make_booking(make_client(), make_driver())
		dispute = Dispute.objects.create(
			booking=other,
			reported_by=other.client,
			reporter_role='client',
			dispute_type='payment',
			description='Charged twice',
		)

		response = self._post(
			force_cancel, self.admin, booking.id,
			{'reason': 'Resolving the reported dispute', 'dispute_id': dispute.id}
		)

		self.assertEqual(response.status_code, 400)

	def test_non_admin_cannot_override(self):
		booking = self._ongoing_booking()

		response = self._post(
			force_cancel, self.client_user, booking.id, {'reason': 'I want my money back now'}
		)

		self.assertEqual(response.status_code, 403)

	def test_admin_reads_override_audit_trail(self):
		booking = self._ongoing_booking()
		self._post(force_cancel, self.admin, booking.id, {'reason': 'Driver reported a breakdown'})

		request = self.factory.get('/api/admin/bookings/%d/actions/' % booking.id)
		force_authenticate(request, user=self.admin)
		response = booking_admin_actions(request, booking_id=booking.id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['count'], 1)
		action = response.data['actions'][0]
		self.assertEqual(action['action_type'], 'force_cancel')
		self.assertEqual(action['admin_username'], self.admin.username)
		self.assertEqual(action['reason'], 'Driver reported a breakdown')

		request = self.factory.get('/api/admin/bookings/%d/actions/' % booking.id)
		force_authenticate(request, user=self.client_user)
		self.assertEqual(booking_admin_actions(request, booking_id=booking.id).status_code, 403)


class AutoConfirmTests(BookingTestCase):
	def test_overdue_driver_request_is_auto_confirmed(self):
		booking = self._ongoing_booking(
			driver_confirmed=True,
			driver_confirmed_at=timezone.now() - timedelta(hours=13),
		)

		with self.captureOnCommitCallbacks(execute=True):
			call_command('auto_confirm_bookings')

		booking.refresh_from_db()
		self.assertEqual(booking.booking_status, 'completed')
		self.assertTrue(booking.client_confirmed)
		self.assertTrue(booking.settlement.settled)

	def test_recent_or_declined_requests_are_left_alone(self):
		recent = self._ongoing_booking(
			driver_confirmed=True,
			driver_confirmed_at=timezone.now() - timedelta(hours=1),
		)
		declined = make_booking(
			self.client_user, make_driver(),
			booking_status='ongoing',
			driver_confirmed=True,
			driver_confirmed_at=timezone.now() - timedelta(hours=13),
		)
		declined.completion_declines.create(client=self.client_user, reason='Not finished')

		call_command('auto_confirm_bookings')

		recent.refresh_from_db()
		declined.refresh_from_db()
		self.assertEqual(recent.booking_status, 'ongoing')
		self.assertEqual(declined.booking_status, 'ongoing')


class RatingTests(BookingTestCase):
	def _completed_booking(self):
		return make_booking(
			self.client_user, self.driver,
			booking_status='completed',
			completed_at=timezone.now(),
		)

	def test_client_rates_driver_and_average_updates(self):
		first = self._completed_booking()
		second = self._completed_booking()

		with self.captureOnCommitCallbacks(execute=True):
			response = self._post(booking_rating, self.client_user, first.id, {'score': 5, 'review': 'Smooth ride'})
		self._post(booking_rating, self.client_user, second.id, {'score': 4})

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['score'], 5)
		self.driver.refresh_from_db()
		self.assertEqual(self.driver.rating, Decimal('4.50'))

	def test_rating_again_replaces_score(self):
		booking = self._completed_booking()

		self._post(booking_rating, self.client_user, booking.id, {'score': 2})
		self._post(booking_rating, self.client_user, booking.id, {'score': 4})

		self.assertEqual(Rating.objects.filter(booking=booking).count(), 1)
		self.driver.refresh_from_db()
		self.assertEqual(self.driver.rating, Decimal('4.00'))

	def test_only_completed_bookings_can_be_rated(self):
		booking = self._ongoing_booking()

		response = self._post(booking_rating, self.client_user, booking.id, {'score': 5})

		self.assertEqual(response.status_code, 409)
		self.assertFalse(Rating.objects.exists())

	def test_only_the_booking_client_can_rate(self):
		booking = self._completed_booking()

		response = self._post(booking_rating, make_client(), booking.id, {'score': 5})
		self.assertEqual(response.status_code, 403)

		response = self._post(booking_rating, self.driver.user, booking.id, {'score': 5})
		self.assertEqual(response.status_code, 403)

	def test_score_must_be_between_one_and_five(self):
		booking = self._completed_booking()

		for score in (0, 6):
			response = self._post(booking_rating, self.client_user, booking.id, {'score': score})
			self.assertEqual(response.status_code, 400)
			self.assertEqual(response.data['error']['kind'], 'validation')

		self.driver.refresh_from_db()
		self.assertEqual(self.driver.rating, Decimal('0.00'))

	def test_driver_reads_booking_rating(self):
		booking = self._completed_booking()

		request = self.factory.get('/api/bookings/%d/rating/' % booking.id)
		force_authenticate(request, user=self.driver.user)
		self.assertIsNone(booking_rating(request, booking_id=booking.id).data['rating'])

		self._post(booking_rating, self.client_user, booking.id, {'score': 3})

		request = self.factory.get('/api/bookings/%d/rating/' % booking.id)
		force_authenticate(request, user=self.driver.user)
		response = booking_rating(request, booking_id=booking.id)
		self.assertEqual(response.data['rating']['score'], 3)
