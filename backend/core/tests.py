from django.test import SimpleTestCase
from rest_framework import status
from rest_framework.exceptions import ValidationError

from .exception_handler import service_exception_handler
from .exceptions import AlreadyDecided, Banned, NotFound, ValidationFailed
from .text import clamp_int, normalize_email, parse_bool


class TextHelpersTests(SimpleTestCase):
	def test_normalize_email(self):
		self.assertEqual(normalize_email("  Jane@Example.COM "), "jane@example.com")
		self.assertEqual(normalize_email(None), "")

	def test_clamp_int(self):
		self.assertEqual(clamp_int(None, default=50, minimum=1, maximum=200), 50)
		self.assertEqual(clamp_int("abc", default=50, minimum=1, maximum=200), 50)
		self.assertEqual(clamp_int("-3", default=50, minimum=1, maximum=200), 1)
		self.assertEqual(clamp_int(999, default=50, minimum=1, maximum=200), 200)
		self.assertEqual(clamp_int(" 20 ", default=50, minimum=1, maximum=200), 20)

	def test_parse_bool(self):
		self.assertTrue(parse_bool("Yes"))
		self.assertFalse(parse_bool("off"))
		self.assertTrue(parse_bool(None, default=True))


class ServiceExceptionHandlerTests(SimpleTestCase):
	def test_service_errors_carry_status_and_code(self):
		res = service_exception_handler(AlreadyDecided(), {})
		self.assertEqual(res.status_code, status.HTTP_409_CONFLICT)
		self.assertEqual(res.data["code"], "ALREADY_DECIDED")

		res = service_exception_handler(NotFound("Certificate not found"), {})
		self.assertEqual(res.status_code, status.HTTP_404_NOT_FOUND)
		self.assertEqual(res.data["detail"], "Certificate not found")

		self.assertEqual(service_exception_handler(Banned(), {}).status_code, status.HTTP_403_FORBIDDEN)

	def test_validation_failures_render_as_bad_request(self):
		err = ValidationFailed("Invalid user id")
		self.assertIsInstance(err, ValueError)

		res = service_exception_handler(err, {})
		self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
		self.assertEqual(res.data, {"detail": "Invalid user id", "code": "VALIDATION_ERROR"})

	def test_drf_errors_fall_through(self):
		res = service_exception_handler(ValidationError({"email": ["required"]}), {})
		self.assertEqual(res.status_code, status.HTTP_400_BAD_REQUEST)
		self.assertEqual(res.data, {"email": ["required"]})

	def test_unknown_errors_are_not_handled(self):
		self.assertIsNone(service_exception_handler(RuntimeError("boom"), {}))
