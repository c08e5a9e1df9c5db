import asyncio
from datetime import timedelta
from decimal import Decimal

from django.test import SimpleTestCase, TestCase
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from common.exceptions import ValidationError
from common.testing import make_admin, make_client, make_driver
from .presence import PresenceController, PresenceError, PresenceIntent
from .services import find_nearby_drivers, ineligibility_reason, is_eligible, toggle_online, update_location
from .views import AdminDriverVerificationView, DriverLocationUpdateView, DriverStatusView, NearbyDriversView


class DriverPresenceServiceTests(TestCase):
	def setUp(self):
		self.profile = make_driver(online=False)

	def test_cannot_go_online_without_location(self):
		self.profile.current_latitude = None
		self.profile.current_longitude = None
		self.profile.last_location_update = None
		self.profile.save()

		with self.assertRaises(ValidationError):
			toggle_online(self.profile, True)

		self.profile.refresh_from_db()
		self.assertEqual(self.profile.online_status, 'offline')

	def test_cannot_go_online_with_stale_location(self):
		self.profile.last_location_update = timezone.now() - timedelta(hours=1)
		self.profile.save(update_fields=['last_location_update'])

		with self.assertRaisesMessage(ValidationError, 'stale'):
			toggle_online(self.profile, True)

	def test_coordinates_in_same_call_allow_going_online(self):
		self.profile.last_location_update = timezone.now() - timedelta(hours=1)
		self.profile.save(update_fields=['last_location_update'])

		with self.captureOnCommitCallbacks(execute=True):
			toggle_online(self.profile, True, latitude=6.45, longitude=3.39)

		self.profile.refresh_from_db()
		self.assertEqual(self.profile.online_status, 'online')
		self.assertTrue(self.profile.is_location_fresh())
		self.assertEqual(str(self.profile.current_latitude), '6.450000')

	def test_toggle_offline_is_idempotent(self):
		toggle_online(self.profile, False)
		toggle_online(self.profile, False)

		self.profile.refresh_from_db()
		self.assertEqual(self.profile.online_status, 'offline')

	def test_update_location_rejects_out_of_range(self):
		with self.assertRaises(ValidationError):
			update_location(self.profile, 120, 3.3)

	def test_stale_location_makes_online_driver_ineligible(self):
		online = make_driver(online=True)
		later = timezone.now() + timedelta(hours=1)

		self.assertTrue(is_eligible(online))
		self.assertFalse(is_eligible(online, now=later))
		self.assertEqual(ineligibility_reason(online, now=later), 'Driver location is stale')
		online.refresh_from_db()
		self.assertEqual(online.online_status, 'online')

	def test_unverified_driver_is_ineligible(self):
		unverified = make_driver(verified=False)
		self.assertEqual(ineligibility_reason(unverified), 'Driver is not verified')


class DriverPresenceViewTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.profile = make_driver(online=False)
		self.user = self.profile.user

	def test_put_status_online(self):
		request = self.factory.put('/api/driver/status/', {'online': True}, format='json')
		force_authenticate(request, user=self.user)
		response = DriverStatusView.as_view()(request)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['online_status'], 'online')

	def test_put_status_without_location_returns_validation_error(self):
		self.profile.current_latitude = None
		self.profile.current_longitude = None
		self.profile.last_location_update = None
		self.profile.save()

		request = self.factory.put('/api/driver/status/', {'online': True}, format='json')
		force_authenticate(request, user=self.user)
		response = DriverStatusView.as_view()(request)

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error']['kind'], 'validation')

	def test_put_status_requires_both_coordinates(self):
		request = self.factory.put('/api/driver/status/', {'online': True, 'latitude': 6.5}, format='json')
		force_authenticate(request, user=self.user)
		response = DriverStatusView.as_view()(request)

		self.assertEqual(response.status_code, 400)

	def test_post_location(self):
		request = self.factory.post('/api/driver/location/', {'latitude': 6.6, 'longitude': 3.35}, format='json')
		force_authenticate(request, user=self.user)
		response = DriverLocationUpdateView.as_view()(request)

		self.assertEqual(response.status_code, 200)
		self.profile.refresh_from_db()
		self.assertEqual(str(self.profile.current_longitude), '3.350000')

	def test_client_cannot_use_driver_endpoints(self):
		client = make_client()
		request = self.factory.get('/api/driver/status/')
		force_authenticate(request, user=client)
		response = DriverStatusView.as_view()(request)

		self.assertEqual(response.status_code, 403)
		self.assertEqual(response.data['error']['kind'], 'forbidden')


class DriverDiscoveryTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.client_user = make_client()

	def _place(self, profile, latitude, longitude):
		profile.current_latitude = Decimal(latitude)
		profile.current_longitude = Decimal(longitude)
		profile.save(update_fields=['current_latitude', 'current_longitude'])
		return profile

	def test_only_eligible_drivers_inside_radius_closest_first(self):
		here = make_driver()
		nearby = self._place(make_driver(), '6.601838', '3.351486')
		self._place(make_driver(), '9.076500', '7.398600')
		make_driver(online=False)
		make_driver(verified=False)
		make_driver(fresh=False)

		results = find_nearby_drivers(6.524379, 3.379206)

		self.assertEqual([profile.id for profile, _ in results], [here.id, nearby.id])
		self.assertEqual(results[0][1], 0.0)
		self.assertLess(results[1][1], 20)

	def test_nearby_view_honours_radius(self):
		here = make_driver()
		self._place(make_driver(), '6.601838', '3.351486')

		request = self.factory.get(
			'/api/driver/nearby/', {'latitude': 6.524379, 'longitude': 3.379206, 'radius_km': 5}
		)
		force_authenticate(request, user=self.client_user)
		response = NearbyDriversView.as_view()(request)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['count'], 1)
		self.assertEqual(response.data['drivers'][0]['id'], here.id)
		self.assertIn('distance_km', response.data['drivers'][0])

	def test_nearby_view_requires_coordinates(self):
		request = self.factory.get('/api/driver/nearby/', {'latitude': 6.5})
		force_authenticate(request, user=self.client_user)
		response = NearbyDriversView.as_view()(request)

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error']['kind'], 'validation')


class AdminDriverVerificationTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.profile = make_driver()

	def _patch(self, user, data):
		request = self.factory.patch('/api/admin/drivers/%d/' % self.profile.id, data, format='json')
		force_authenticate(request, user=user)
		return AdminDriverVerificationView.as_view()(request, driver_id=self.profile.id)

	def test_admin_revokes_verification(self):
		with self.captureOnCommitCallbacks(execute=True):
			response = self._patch(make_admin(), {'verified': False})

		self.assertEqual(response.status_code, 200)
		self.assertFalse(response.data['verified'])
		self.profile.refresh_from_db()
		self.assertEqual(self.profile.online_status, 'online')
		self.assertFalse(is_eligible(self.profile))

	def test_admin_approves_driver(self):
		self.profile.verified = False
		self.profile.save(update_fields=['verified'])

		response = self._patch(make_admin(), {'verified': True})

		self.assertTrue(response.data['verified'])
		self.profile.refresh_from_db()
		self.assertTrue(is_eligible(self.profile))

	def test_non_admin_cannot_verify(self):
		response = self._patch(self.profile.user, {'verified': True})
		self.assertEqual(response.status_code, 403)


class FakeDriverApi:
	def __init__(self):
		self.locations = []
		self.statuses = []
		self.hold_online = None
		self.fail_online = False
		self.fail_location = False
		self.server_online = False

	async def update_location(self, latitude, longitude):
		if self.fail_location:
			raise RuntimeError('network down')
		self.locations.append((latitude, longitude))

	async def set_online(self, online):
		self.statuses.append(online)
		self.server_online = online
		if online and self.hold_online is not None:
			await self.hold_online.wait()
		if online and self.fail_online:
			raise RuntimeError('503')
		return 'online' if online else 'offline'


class PresenceControllerTests(SimpleTestCase):

	async def _locate(self):
		return 6.5, 3.4

	async def test_go_online_commits_and_starts_refresh(self):
		api = FakeDriverApi()
		controller = PresenceController(api, self._locate, refresh_interval=60)

		self.assertTrue(await controller.go_online())
		self.assertEqual(controller.intent, PresenceIntent.COMMITTED)
		self.assertTrue(controller.displayed_online)
		self.assertEqual(api.locations, [(6.5, 3.4)])
		self.assertEqual(api.statuses, [True])
		self.assertIsNotNone(controller._refresh_task)

		await controller.close()

	async def test_location_timeout_raises_and_never_goes_online(self):
		async def slow_locate():
			await asyncio.sleep(1)
			return 0, 0

		api = FakeDriverApi()
		controller = PresenceController(api, slow_locate, location_timeout=0.01)

		with self.assertRaises(PresenceError) as ctx:
			await controller.go_online()

		self.assertEqual(ctx.exception.stage, 'location')
		self.assertEqual(api.statuses, [])
		self.assertEqual(controller.intent, PresenceIntent.IDLE)
		self.assertFalse(controller.displayed_online)

	async def test_server_refusal_reports_status_stage(self):
		api = FakeDriverApi()
		api.fail_online = True
		controller = PresenceController(api, self._locate)

		with self.assertRaises(PresenceError) as ctx:
			await controller.go_online()

		self.assertEqual(ctx.exception.stage, 'status')
		self.assertEqual(api.locations, [(6.5, 3.4)])
		self.assertFalse(controller.displayed_online)

	async def test_go_offline_while_locating_abandons_go_online(self):
		release = asyncio.Event()

		async def gated_locate():
			await release.wait()
			return 6.5, 3.4

		api = FakeDriverApi()
		controller = PresenceController(api, gated_locate)

		pending = asyncio.create_task(controller.go_online())
		await asyncio.sleep(0)
		self.assertEqual(controller.intent, PresenceIntent.PENDING)

		await controller.go_offline()
		release.set()

		self.assertFalse(await pending)
		self.assertFalse(controller.displayed_online)
		self.assertEqual(api.statuses, [False])
		self.assertEqual(api.locations, [])

	async def test_offline_during_online_request_resends_offline(self):
		api = FakeDriverApi()
		api.hold_online = asyncio.Event()
		controller = PresenceController(api, self._locate)

		pending = asyncio.create_task(controller.go_online())
		while not api.statuses:
			await asyncio.sleep(0)

		await controller.go_offline()
		api.hold_online.set()

		self.assertFalse(await pending)
		self.assertFalse(controller.displayed_online)
		self.assertEqual(controller.intent, PresenceIntent.IDLE)
		self.assertEqual(api.statuses, [True, False, False])
		self.assertIsNone(controller._refresh_task)

	async def test_overlapping_go_online_keeps_newer_commit(self):
		api = FakeDriverApi()
		hold = asyncio.Event()
		api.hold_online = hold
		controller = PresenceController(api, self._locate, refresh_interval=60)

		first = asyncio.create_task(controller.go_online())
		while not api.statuses:
			await asyncio.sleep(0)

		await controller.go_offline()
		api.hold_online = None
		self.assertTrue(await controller.go_online())

		hold.set()
		self.assertFalse(await first)

		self.assertEqual(api.statuses, [True, False, True])
		self.assertTrue(api.server_online)
		self.assertEqual(controller.displayed_online, api.server_online)
		self.assertEqual(controller.intent, PresenceIntent.COMMITTED)

		await controller.close()

	async def test_go_offline_is_idempotent_and_clears_refresh(self):
		api = FakeDriverApi()
		controller = PresenceController(api, self._locate, refresh_interval=60)
		await controller.go_online()

		await controller.go_offline()
		await controller.go_offline()

		self.assertIsNone(controller._refresh_task)
		self.assertEqual(controller.intent, PresenceIntent.IDLE)
		self.assertEqual(api.statuses, [True, False, False])

	async def test_refresh_failure_keeps_driver_online(self):
		api = FakeDriverApi()
		controller = PresenceController(api, self._locate, refresh_interval=0.01)
		await controller.go_online()

		api.fail_location = True
		await asyncio.sleep(0.05)

		self.assertFalse(controller._refresh_task.done())
		self.assertEqual(controller.intent, PresenceIntent.COMMITTED)
		self.assertTrue(controller.displayed_online)

		await controller.close()

	async def test_reconcile_adopts_server_status(self):
		api = FakeDriverApi()
		controller = PresenceController(api, self._locate, refresh_interval=60)

		await controller.reconcile('online')
		self.assertTrue(controller.displayed_online)
		self.assertIsNotNone(controller._refresh_task)

		await controller.reconcile('offline')
		self.assertFalse(controller.displayed_online)
		self.assertIsNone(controller._refresh_task)
		self.assertEqual(api.statuses, [])
