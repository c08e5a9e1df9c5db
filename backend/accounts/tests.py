from django.test import TestCase
from rest_framework.exceptions import PermissionDenied

from common.testing import make_admin, make_client, make_driver, make_user
from .actors import AdminActor, ClientActor, DriverActor, resolve_actor


class ResolveActorTests(TestCase):
	def test_each_role_resolves_to_its_variant(self):
		client = make_client()
		profile = make_driver()
		admin = make_admin()

		self.assertIsInstance(resolve_actor(client), ClientActor)
		self.assertIsInstance(resolve_actor(admin), AdminActor)

		actor = resolve_actor(profile.user)
		self.assertIsInstance(actor, DriverActor)
		self.assertEqual(actor.profile.id, profile.id)
		self.assertEqual(actor.id, profile.user_id)

	def test_driver_without_profile_is_refused(self):
		user = make_user('driver')

		with self.assertRaises(PermissionDenied):
			resolve_actor(user)

	def test_superuser_is_admin(self):
		user = make_user('client', is_superuser=True)
		self.assertIsInstance(resolve_actor(user), AdminActor)
