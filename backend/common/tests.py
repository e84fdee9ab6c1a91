"""
Tests for shared services: error rendering, upstream calls, validators,
encryption and OTP codes.
"""
import time
from io import BytesIO
from unittest.mock import patch

from django.core.cache import cache
from django.core.exceptions import ValidationError
from django.db import OperationalError
from django.test import SimpleTestCase, TestCase, override_settings
from PIL import Image
from rest_framework import exceptions

from common.exceptions import ErrorKind, VerificationError, api_exception_handler
from common.services.encryption import DecryptionError, get_encryption_service
from common.services.otp import otp_service
from common.services.sms import ConsoleSMSGateway
from common.utils import UpstreamPool, call_with_timeout, get_upstream_pool
from common.validators import (
    validate_international_phone_number,
    validate_license_number,
    validate_safe_filename,
    sniff_image_content_type,
)


# ====== Error rendering ======

class ExceptionHandlerTestCase(SimpleTestCase):
    """Test cases for api_exception_handler."""

    def test_verification_error_payload(self):
        error = VerificationError(
            ErrorKind.GATE_NOT_SATISFIED,
            "Verification requirements are not complete.",
            missing_steps=['business_license'],
        )

        response = api_exception_handler(error, {})

        self.assertEqual(response.status_code, 422)
        self.assertEqual(response.data['error'], 'gate_not_satisfied')
        self.assertEqual(response.data['missing_steps'], ['business_license'])
        self.assertNotIn('retryable', response.data)

    def test_retryable_errors_are_flagged(self):
        for kind, status_code in ((ErrorKind.STALE_STATE, 409),
                                  (ErrorKind.UPSTREAM_UNAVAILABLE, 503),
                                  (ErrorKind.UPSTREAM_TIMEOUT, 504)):
            response = api_exception_handler(VerificationError(kind, "retry"), {})
            self.assertEqual(response.status_code, status_code)
            self.assertTrue(response.data['retryable'])

    def test_status_codes(self):
        self.assertEqual(VerificationError(ErrorKind.VALIDATION_ERROR, "").status_code, 400)
        self.assertEqual(VerificationError(ErrorKind.PAYLOAD_TOO_LARGE, "").status_code, 413)
        self.assertEqual(VerificationError(ErrorKind.UNSUPPORTED_MEDIA_TYPE, "").status_code, 415)
        self.assertEqual(VerificationError(ErrorKind.INVALID_STATE, "").status_code, 409)
        self.assertEqual(VerificationError(ErrorKind.MISSING_REVIEW_NOTES, "").status_code, 400)
        self.assertEqual(VerificationError(ErrorKind.NOT_FOUND, "").status_code, 404)

    def test_database_error_is_upstream_unavailable(self):
        response = api_exception_handler(OperationalError("database is locked"), {})

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.data['error'], 'upstream_unavailable')

    def test_drf_errors_are_tagged(self):
        response = api_exception_handler(exceptions.ValidationError({'code': ['Required.']}), {})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data['error'], 'validation_error')
        self.assertEqual(response.data['code'], ['Required.'])

    def test_drf_list_errors_are_wrapped(self):
        response = api_exception_handler(exceptions.ValidationError(['bad']), {})

        self.assertEqual(response.data['error'], 'validation_error')
        self.assertEqual(response.data['detail'], ['bad'])

    def test_unknown_exception_is_left_to_django(self):
        self.assertIsNone(api_exception_handler(RuntimeError("boom"), {}))


# ====== Upstream calls ======

class CallWithTimeoutTestCase(SimpleTestCase):
    """Test cases for call_with_timeout."""

    def test_returns_result(self):
        self.assertEqual(call_with_timeout(lambda a, b: a + b, 2, 3), 5)

    def test_failure_is_upstream_unavailable(self):
        def fail():
            raise ConnectionError("refused")

        with self.assertRaises(VerificationError) as ctx:
            call_with_timeout(fail, operation="SMS delivery")

        self.assertEqual(ctx.exception.kind, ErrorKind.UPSTREAM_UNAVAILABLE)
        self.assertIsInstance(ctx.exception.cause, ConnectionError)
        self.assertIn("SMS delivery", ctx.exception.message)

    def test_timeout(self):
        with self.assertRaises(VerificationError) as ctx:
            call_with_timeout(time.sleep, 0.5, timeout=0.05)

        self.assertEqual(ctx.exception.kind, ErrorKind.UPSTREAM_TIMEOUT)

    @override_settings(VERIFICATION_IO_TIMEOUT=0.05)
    def test_timeout_from_settings(self):
        with self.assertRaises(VerificationError) as ctx:
            call_with_timeout(time.sleep, 0.5)

        self.assertEqual(ctx.exception.kind, ErrorKind.UPSTREAM_TIMEOUT)

    def test_verification_error_passes_through(self):
        def raise_own():
            raise VerificationError(ErrorKind.NOT_FOUND, "missing")

        with self.assertRaises(VerificationError) as ctx:
            call_with_timeout(raise_own)

        self.assertEqual(ctx.exception.kind, ErrorKind.NOT_FOUND)

    def test_pool_saturation_is_logged(self):
        pool = UpstreamPool(1)

        with self.assertLogs('common.utils', level='WARNING') as logs:
            slow = pool.submit(time.sleep, 0.2)
            queued = pool.submit(time.sleep, 0)
            slow.result()
            queued.result()

        self.assertIn('saturated: 2 calls in flight for 1 workers', logs.output[0])
        pool._executor.shutdown(wait=True)
        self.assertEqual(pool.in_flight, 0)

    def test_pool_within_capacity_is_quiet(self):
        pool = UpstreamPool(2)

        with self.assertNoLogs('common.utils', level='WARNING'):
            pool.submit(time.sleep, 0).result()

        pool._executor.shutdown(wait=True)

    @override_settings(VERIFICATION_IO_WORKERS=3)
    def test_pool_sized_from_settings(self):
        with patch('common.utils._pool', None):
            self.assertEqual(get_upstream_pool().workers, 3)


# ====== Validators ======

class ValidatorTestCase(SimpleTestCase):
    """Test cases for the shared validators."""

    def test_phone_number_cleaned(self):
        self.assertEqual(validate_international_phone_number('+44 7700 900-123'), '+447700900123')

    def test_phone_number_rejected(self):
        for value in ('12345', '+0123456789', 'not a number', '+４４7700900123'):
            with self.assertRaises(ValidationError):
                validate_international_phone_number(value)

    def test_license_number_normalized(self):
        self.assertEqual(validate_license_number(' cr-2024/778 '), 'CR-2024/778')

    def test_license_number_rejected(self):
        for value in ('ab', 'CR 778', 'x' * 51, 'CR#778'):
            with self.assertRaises(ValidationError):
                validate_license_number(value)

    def test_safe_filename(self):
        self.assertEqual(validate_safe_filename('passport.jpg'), 'passport.jpg')
        for value in ('../etc/passwd', 'a/b.jpg', 'shell.php', 'run.sh', ''):
            with self.assertRaises(ValidationError):
                validate_safe_filename(value)

    def test_sniff_image(self):
        buffer = BytesIO()
        Image.new('RGB', (10, 10), 'blue').save(buffer, 'PNG')
        buffer.seek(0)

        self.assertEqual(sniff_image_content_type(buffer), 'image/png')
        self.assertEqual(buffer.tell(), 0)

    def test_sniff_non_image(self):
        self.assertIsNone(sniff_image_content_type(BytesIO(b'%PDF-1.4')))


# ====== Encryption ======

class EncryptionServiceTestCase(SimpleTestCase):
    """Test cases for EncryptionService."""

    def test_round_trip(self):
        service = get_encryption_service()
        token = service.encrypt('CR-778')

        self.assertNotEqual(token, 'CR-778')
        self.assertEqual(service.decrypt(token), 'CR-778')

    def test_empty_values(self):
        service = get_encryption_service()
        self.assertEqual(service.encrypt(''), '')
        self.assertEqual(service.decrypt(''), '')
        self.assertEqual(service.hash_value(''), '')

    def test_corrupted_token(self):
        self.assertEqual(get_encryption_service().decrypt('not-a-token'), '')

    def test_corrupted_token_strict(self):
        with self.assertRaises(DecryptionError):
            get_encryption_service().decrypt('not-a-token', strict=True)

    def test_hash_is_stable(self):
        service = get_encryption_service()
        self.assertEqual(service.hash_value('+447700900123'), service.hash_value('+447700900123'))
        self.assertEqual(len(service.hash_value('+447700900123')), 64)


# ====== OTP ======

class OTPServiceTestCase(TestCase):
    """Test cases for OTPService."""

    PHONE = '+447700900123'

    def setUp(self):
        cache.clear()

    def test_generate_otp(self):
        code = otp_service.generate_otp()
        self.assertEqual(len(code), 6)
        self.assertTrue(code.isdigit())

    def test_send_and_verify(self):
        with patch.object(ConsoleSMSGateway, 'send') as send:
            result = otp_service.send_otp(self.PHONE)

        self.assertTrue(result['success'])
        code = cache.get(f"otp_{self.PHONE}")
        self.assertIn(code, send.call_args.args[1])

        self.assertTrue(otp_service.verify_otp(self.PHONE, code)['success'])
        self.assertFalse(otp_service.verify_otp(self.PHONE, code)['success'])

    @override_settings(DEBUG=True)
    def test_debug_code_exposed_in_debug(self):
        result = otp_service.send_otp(self.PHONE)
        self.assertEqual(result['debug_code'], cache.get(f"otp_{self.PHONE}"))

    @override_settings(OTP_MAX_SENDS=1)
    def test_send_limit(self):
        self.assertTrue(otp_service.send_otp(self.PHONE)['success'])
        self.assertFalse(otp_service.send_otp(self.PHONE)['success'])

    def test_wrong_code(self):
        code = otp_service.issue_otp(self.PHONE)
        wrong = '000000' if code != '000000' else '111111'

        result = otp_service.verify_otp(self.PHONE, wrong)

        self.assertFalse(result['success'])
        self.assertEqual(cache.get(f"otp_{self.PHONE}"), code)
