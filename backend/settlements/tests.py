from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.db import connection
from django.test import SimpleTestCase, TestCase
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from common.exceptions import ValidationError
from common.testing import FakePaymentProcessor, make_admin, make_booking, make_client, make_driver
from services.settlement import (
	compute_split, current_commission, process_payout, publish_commission, settle_booking,
)
from .models import CommissionConfig, PaymentJob, Settlement
from .tasks import retry_payment_jobs, retry_unsettled_payouts
from .views import commission_settings


class CommissionSplitTests(SimpleTestCase):
	def test_ten_percent_of_ten_thousand(self):
		platform, driver = compute_split(Decimal('10000'), 10)
		self.assertEqual(driver, Decimal('9000'))
		self.assertEqual(platform, Decimal('1000'))

	def test_driver_share_rounds_half_up_and_platform_takes_remainder(self):
		platform, driver = compute_split(Decimal('999'), 50)
		self.assertEqual(driver, Decimal('500'))
		self.assertEqual(platform, Decimal('499'))

	def test_shares_always_sum_to_total(self):
		for total in ('1005', '3333', '1', '7', '250000'):
			for pct in ('0', '7.5', '12.34', '33.33', '99.99', '100'):
				platform, driver = compute_split(Decimal(total), Decimal(pct))
				self.assertEqual(platform + driver, Decimal(total), (total, pct))


class SettlementTests(TestCase):
	def setUp(self):
		self.admin = make_admin()
		self.driver = make_driver()
		self.processor = FakePaymentProcessor()
		patcher = patch('services.settlement.engine.get_payment_processor', return_value=self.processor)
		patcher.start()
		self.addCleanup(patcher.stop)

	def _completed_booking(self, total_cost='4000.00'):
		return make_booking(make_client(), self.driver, booking_status='completed', total_cost=total_cost)

	def test_default_commission_applies_before_any_version(self):
		self.assertEqual(current_commission(), (Decimal('10.0'), 0))

	def test_settlement_snapshots_commission_version(self):
		publish_commission(self.admin, '15')
		booking = self._completed_booking('1005.00')

		settlement = settle_booking(booking)
		publish_commission(self.admin, '20')
		settlement.refresh_from_db()

		self.assertEqual(settlement.commission_percentage, Decimal('15.00'))
		self.assertEqual(settlement.commission_version, 1)
		self.assertEqual(settlement.driver_share, Decimal('854'))
		self.assertEqual(settlement.platform_share, Decimal('151'))
		self.assertFalse(settlement.settled)

	def test_settle_booking_is_idempotent(self):
		booking = self._completed_booking()

		first = settle_booking(booking)
		second = settle_booking(booking)

		self.assertEqual(first.pk, second.pk)
		self.assertEqual(Settlement.objects.count(), 1)
		self.assertEqual(PaymentJob.objects.filter(job_type='payout').count(), 1)

	def test_publish_rejects_out_of_range_percentage(self):
		for value in ('-1', '100.01', 'abc'):
			with self.assertRaises(ValidationError):
				publish_commission(self.admin, value)
		self.assertFalse(CommissionConfig.objects.exists())

	def test_failed_payout_is_retried_by_beat_task(self):
		self.processor.fail_payout = True
		booking = self._completed_booking()

		with self.captureOnCommitCallbacks(execute=True):
			settlement = settle_booking(booking)

		settlement.refresh_from_db()
		self.assertFalse(settlement.settled)
		self.assertEqual(settlement.payout_attempts, 1)

		self.processor.fail_payout = False
		self.assertEqual(retry_unsettled_payouts(), 1)

		settlement.refresh_from_db()
		booking.refresh_from_db()
		self.assertTrue(settlement.settled)
		self.assertEqual(settlement.payout_attempts, 2)
		self.assertEqual(booking.payment_status, 'paid')
		self.assertEqual(
			PaymentJob.objects.get(idempotency_key='payout_%d' % booking.id).status, 'completed'
		)

	def test_queued_refund_is_retried(self):
		booking = make_booking(make_client(), self.driver, booking_status='cancelled')
		PaymentJob.objects.create(
			booking=booking,
			job_type=PaymentJob.TYPE_REFUND,
			idempotency_key='refund_%d' % booking.id,
			attempts=1,
		)

		self.assertEqual(retry_payment_jobs(), 1)

		booking.refresh_from_db()
		self.assertEqual(booking.payment_status, 'refunded')
		self.assertEqual(self.processor.refunds, ['hold_test'])

	def test_payout_is_sent_outside_settlement_transaction(self):
		settlement = settle_booking(self._completed_booking())
		depth = len(connection.savepoint_ids)
		seen = []
		payout = self.processor.payout

		def observing_payout(booking_id, share, account):
			job = PaymentJob.objects.get(idempotency_key='payout_%d' % booking_id)
			seen.append((len(connection.savepoint_ids), job.status))
			return payout(booking_id, share, account)

		self.processor.payout = observing_payout
		process_payout(settlement.id)

		self.assertEqual(seen, [(depth, 'processing')])
		settlement.refresh_from_db()
		self.assertTrue(settlement.settled)

	def test_claimed_payout_is_not_sent_twice(self):
		booking = self._completed_booking()
		settlement = settle_booking(booking)
		PaymentJob.objects.filter(idempotency_key='payout_%d' % booking.id).update(
			status='processing', attempts=1, last_attempt_at=timezone.now()
		)

		process_payout(settlement.id)

		self.assertEqual(self.processor.payouts, [])
		settlement.refresh_from_db()
		self.assertFalse(settlement.settled)

	def test_abandoned_payout_claim_is_retaken(self):
		booking = self._completed_booking()
		settlement = settle_booking(booking)
		PaymentJob.objects.filter(idempotency_key='payout_%d' % booking.id).update(
			status='processing', attempts=1, last_attempt_at=timezone.now() - timedelta(minutes=10)
		)

		process_payout(settlement.id)

		settlement.refresh_from_db()
		self.assertTrue(settlement.settled)
		job = PaymentJob.objects.get(idempotency_key='payout_%d' % booking.id)
		self.assertEqual(job.status, 'completed')
		self.assertEqual(job.attempts, 2)


class CommissionSettingsViewTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.admin = make_admin()

	def test_admin_publishes_new_version(self):
		request = self.factory.put('/api/admin/settings/commission/', {'percentage': '12.50'}, format='json')
		force_authenticate(request, user=self.admin)
		response = commission_settings(request)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['version'], 1)

		request = self.factory.get('/api/admin/settings/commission/')
		force_authenticate(request, user=self.admin)
		response = commission_settings(request)

		self.assertEqual(response.data['percentage'], '12.50')
		self.assertEqual(len(response.data['history']), 1)

	def test_client_cannot_change_commission(self):
		request = self.factory.put('/api/admin/settings/commission/', {'percentage': '1'}, format='json')
		force_authenticate(request, user=make_client())
		response = commission_settings(request)

		self.assertEqual(response.status_code, 403)
