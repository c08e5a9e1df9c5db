from datetime import timedelta
from unittest.mock import patch

from django.core import mail
from django.db import connection
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from common.exceptions import ConflictError
from common.testing import FakeIdentityProvider, make_admin, make_client
from services.identity_verification import is_client_verified, review_verification
from .models import ClientVerificationState, VerificationAttempt
from .views import current_status, pending_reviews, review, submit

PHOTO = 'data:image/png;base64,iVBORw0KGgo='
ID_NUMBER = '12345678901'


class VerificationSubmitTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.client_user = make_client(verified=False)
		self.admin = make_admin()

		self.provider = FakeIdentityProvider(confidence=95.0)
		patcher = patch(
			'services.identity_verification.attempts.get_identity_provider',
			return_value=self.provider,
		)
		patcher.start()
		self.addCleanup(patcher.stop)

	def _submit(self, id_number=ID_NUMBER, photo=PHOTO):
		request = self.factory.post(
			'/api/verification/submit/', {'id_number': id_number, 'photo': photo}, format='json'
		)
		force_authenticate(request, user=self.client_user)
		return submit(request)

	def test_high_confidence_verifies(self):
		response = self._submit()

		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['verified'])
		self.assertEqual(response.data['state'], 'verified')
		self.assertTrue(is_client_verified(self.client_user))

		attempt = VerificationAttempt.objects.get(client=self.client_user)
		self.assertEqual(attempt.status, 'success')
		self.assertNotEqual(attempt.id_number_hash, ID_NUMBER)

	def test_malformed_id_number_is_rejected_without_state_change(self):
		for bad in ('1234567890', '1234567890a', '123456789012'):
			response = self._submit(id_number=bad)
			self.assertEqual(response.status_code, 400)

		self.assertEqual(self.provider.calls, 0)
		self.assertFalse(ClientVerificationState.objects.filter(client=self.client_user).exists())

	def test_photo_must_be_base64(self):
		response = self._submit(photo='not an image!')

		self.assertEqual(response.status_code, 400)
		self.assertEqual(self.provider.calls, 0)

	def test_three_low_scores_lock_verification(self):
		remaining = []
		with self.captureOnCommitCallbacks(execute=True):
			for confidence in (40, 55, 60):
				self.provider.confidence = confidence
				response = self._submit()
				self.assertEqual(response.status_code, 200)
				remaining.append(response.data['attempts_remaining'])

		self.assertEqual(remaining, [2, 1, 0])
		self.assertEqual(response.data['state'], 'locked')

		state = ClientVerificationState.objects.get(client=self.client_user)
		self.assertEqual(state.attempts_count, 3)
		self.assertEqual(len(mail.outbox), 1)
		self.assertIn('locked', mail.outbox[0].subject)

		response = self._submit()
		self.assertEqual(response.status_code, 423)
		self.assertEqual(response.data['error']['kind'], 'locked')
		self.assertEqual(self.provider.calls, 3)

	def test_provider_error_does_not_consume_attempt(self):
		self.provider.error = 'Upstream timeout'

		response = self._submit()

		self.assertEqual(response.status_code, 502)
		self.assertEqual(response.data['error']['kind'], 'external_service')

		state = ClientVerificationState.objects.get(client=self.client_user)
		self.assertEqual(state.attempts_count, 0)
		self.assertEqual(state.state, 'unverified')
		self.assertTrue(
			VerificationAttempt.objects.filter(client=self.client_user, status='error').exists()
		)

	def test_missing_score_goes_to_manual_review(self):
		self.provider.confidence = None

		with self.captureOnCommitCallbacks(execute=True):
			response = self._submit()

		self.assertEqual(response.data['state'], 'pending_manual')
		self.assertEqual(response.data['attempts_remaining'], 3)
		self.assertEqual(len(mail.outbox), 1)

		response = self._submit()
		self.assertEqual(response.status_code, 409)

	def test_verified_client_cannot_resubmit(self):
		self._submit()
		response = self._submit()

		self.assertEqual(response.status_code, 409)

	def test_status_for_new_client(self):
		request = self.factory.get('/api/verification/status/')
		force_authenticate(request, user=self.client_user)
		response = current_status(request)

		self.assertEqual(response.data['state'], 'unverified')
		self.assertEqual(response.data['attempts_remaining'], 3)

	def test_provider_runs_outside_state_transaction(self):
		depth = len(connection.savepoint_ids)
		seen = []
		verify = self.provider.verify

		def observing_verify(id_number, photo):
			state = ClientVerificationState.objects.get(client=self.client_user)
			seen.append((len(connection.savepoint_ids), state.submission_started_at))
			return verify(id_number, photo)

		self.provider.verify = observing_verify
		response = self._submit()

		self.assertEqual(response.status_code, 200)
		self.assertEqual(seen[0][0], depth)
		self.assertIsNotNone(seen[0][1])
		state = ClientVerificationState.objects.get(client=self.client_user)
		self.assertIsNone(state.submission_started_at)

	def test_submission_in_flight_blocks_another(self):
		ClientVerificationState.objects.create(
			client=self.client_user, submission_started_at=timezone.now()
		)

		response = self._submit()

		self.assertEqual(response.status_code, 409)
		self.assertEqual(self.provider.calls, 0)

	def test_abandoned_claim_expires(self):
		ClientVerificationState.objects.create(
			client=self.client_user,
			submission_started_at=timezone.now() - timedelta(minutes=10),
		)

		response = self._submit()

		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['verified'])

	def test_provider_error_releases_claim(self):
		self.provider.error = 'Upstream timeout'
		self._submit()

		self.provider.error = None
		response = self._submit()

		self.assertEqual(response.status_code, 200)
		self.assertEqual(self.provider.calls, 2)


class VerificationReviewTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.admin = make_admin()
		self.client_user = make_client(verified=False)
		self.state = ClientVerificationState.objects.create(
			client=self.client_user,
			state=ClientVerificationState.STATE_LOCKED,
			attempts_count=3,
		)

	def _review(self, action, notes=''):
		request = self.factory.post(
			'/api/admin/verification/%d/review/' % self.client_user.id,
			{'action': action, 'notes': notes},
			format='json',
		)
		force_authenticate(request, user=self.admin)
		return review(request, client_id=self.client_user.id)

	def test_pending_queue_lists_locked_clients(self):
		request = self.factory.get('/api/admin/verification/pending/')
		force_authenticate(request, user=self.admin)
		response = pending_reviews(request)

		self.assertEqual(response.data['count'], 1)
		self.assertEqual(response.data['verifications'][0]['client_id'], self.client_user.id)

	def test_approve_verifies_client(self):
		response = self._review('approve')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['state'], 'verified')
		self.assertTrue(is_client_verified(self.client_user))

		attempt = VerificationAttempt.objects.get(client=self.client_user)
		self.assertEqual(attempt.status, 'approved')
		self.assertEqual(attempt.reviewer, self.admin)

	def test_unlock_resets_attempts(self):
		response = self._review('unlock')

		self.assertEqual(response.data['state'], 'unverified')
		self.assertEqual(response.data['attempts_count'], 0)
		self.assertEqual(response.data['attempts_remaining'], 3)

	def test_reject_keeps_client_locked(self):
		response = self._review('reject', notes='Photo does not match')

		self.assertEqual(response.data['state'], 'locked')
		attempt = VerificationAttempt.objects.get(client=self.client_user)
		self.assertEqual(attempt.failure_reason, 'Photo does not match')

	def test_review_requires_reviewable_state(self):
		self.state.state = ClientVerificationState.STATE_UNVERIFIED
		self.state.save(update_fields=['state'])

		with self.assertRaises(ConflictError):
			review_verification(self.admin, self.client_user, 'approve')

	def test_client_cannot_review(self):
		request = self.factory.post(
			'/api/admin/verification/%d/review/' % self.client_user.id, {'action': 'approve'}, format='json'
		)
		force_authenticate(request, user=self.client_user)
		response = review(request, client_id=self.client_user.id)

		self.assertEqual(response.status_code, 403)
