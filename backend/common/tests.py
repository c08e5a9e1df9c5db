from django.test import SimpleTestCase
from rest_framework import exceptions as drf_exceptions

from .exception_handler import structured_exception_handler
from .exceptions import ConflictError, LockedError, ValidationError
from .utils.geo import calculate_distance_km, validate_coordinates


class ExceptionHandlerTests(SimpleTestCase):
	def test_core_errors_render_kind_and_message(self):
		response = structured_exception_handler(ConflictError('Booking is completed'), {})

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data, {'error': {'kind': 'conflict', 'message': 'Booking is completed'}})

	def test_locked_uses_default_message(self):
		response = structured_exception_handler(LockedError(), {})

		self.assertEqual(response.status_code, 423)
		self.assertIn('contact support', response.data['error']['message'])

	def test_drf_validation_is_flattened(self):
		exc = drf_exceptions.ValidationError({'reason': ['This field is required.']})

		response = structured_exception_handler(exc, {})

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error']['kind'], 'validation')
		self.assertEqual(response.data['error']['message'], 'reason: This field is required.')

	def test_unexpected_errors_do_not_leak(self):
		with self.assertLogs('common.exception_handler', level='ERROR'):
			response = structured_exception_handler(RuntimeError('db password is hunter2'), {})

		self.assertEqual(response.status_code, 500)
		self.assertEqual(response.data['error'], {'kind': 'internal', 'message': 'Server error'})


class GeoTests(SimpleTestCase):
	def test_distance_between_lagos_points(self):
		distance = calculate_distance_km(6.601838, 3.351486, 6.447809, 3.473503)
		self.assertAlmostEqual(distance, 21.8, delta=0.5)

	def test_validate_coordinates(self):
		self.assertEqual(validate_coordinates('6.5', 3.4), (6.5, 3.4))
		for lat, lng in ((None, 3.4), ('north', 3.4), (91, 0), (0, -181)):
			with self.assertRaises(ValidationError):
				validate_coordinates(lat, lng)
