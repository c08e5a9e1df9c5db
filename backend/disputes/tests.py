from django.core import mail
from django.test import TestCase
from rest_framework.test import APIRequestFactory, force_authenticate

from common.testing import make_admin, make_booking, make_client, make_driver
from .models import Dispute
from .views import admin_disputes, admin_update_dispute, disputes


class DisputeTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.admin = make_admin()
		self.client_user = make_client()
		self.driver = make_driver()
		self.booking = make_booking(self.client_user, self.driver, booking_status='ongoing')

	def _open(self, user, **overrides):
		payload = {
			'booking_id': self.booking.id,
			'dispute_type': 'payment',
			'description': 'I was charged for a longer trip than agreed',
		}
		payload.update(overrides)
		request = self.factory.post('/api/disputes/', payload, format='json')
		force_authenticate(request, user=user)
		return disputes(request)

	def _update(self, dispute_id, **payload):
		request = self.factory.patch('/api/admin/disputes/%d/' % dispute_id, payload, format='json')
		force_authenticate(request, user=self.admin)
		return admin_update_dispute(request, dispute_id=dispute_id)

	def test_client_opens_dispute_and_admins_are_emailed(self):
		with self.captureOnCommitCallbacks(execute=True):
			response = self._open(self.client_user)

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['reporter_role'], 'client')
		self.assertEqual(response.data['status'], 'open')
		self.assertEqual(len(mail.outbox), 1)

	def test_driver_opens_dispute(self):
		response = self._open(self.driver.user, dispute_type='other')

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['reporter_role'], 'driver')

	def test_non_participant_cannot_open_dispute(self):
		response = self._open(make_client())

		self.assertEqual(response.status_code, 403)
		self.assertFalse(Dispute.objects.exists())

	def test_unknown_type_is_rejected(self):
		response = self._open(self.client_user, dispute_type='refund_please')

		self.assertEqual(response.status_code, 400)

	def test_workflow_to_resolved_stamps_resolver(self):
		dispute_id = self._open(self.client_user).data['id']

		response = self._update(dispute_id, status='investigating', admin_notes='Checking trip logs')
		self.assertEqual(response.status_code, 200)
		self.assertIsNone(response.data['resolved_at'])

		response = self._update(dispute_id, status='resolved', resolution='Partial refund issued')
		self.assertEqual(response.status_code, 200)

		dispute = Dispute.objects.get(pk=dispute_id)
		self.assertEqual(dispute.status, 'resolved')
		self.assertEqual(dispute.resolved_by, self.admin)
		self.assertIsNotNone(dispute.resolved_at)
		self.assertEqual(dispute.admin_notes, 'Checking trip logs')

	def test_cannot_skip_investigation(self):
		dispute_id = self._open(self.client_user).data['id']

		response = self._update(dispute_id, status='resolved')

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data['error']['kind'], 'conflict')

	def test_closed_dispute_cannot_reopen(self):
		dispute_id = self._open(self.client_user).data['id']
		self._update(dispute_id, status='closed')

		response = self._update(dispute_id, status='open')

		self.assertEqual(response.status_code, 409)

	def test_admin_lists_by_status(self):
		self._open(self.client_user)
		closed_id = self._open(self.driver.user).data['id']
		self._update(closed_id, status='closed')

		request = self.factory.get('/api/admin/disputes/', {'status': 'open'})
		force_authenticate(request, user=self.admin)
		response = admin_disputes(request)

		self.assertEqual(len(response.data), 1)
		self.assertEqual(response.data[0]['reporter_role'], 'client')
