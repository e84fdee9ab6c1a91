"""
OTP (One-Time Password) service for phone confirmation.
Codes live in the Django cache; delivery goes through the configured SMS gateway.
"""
import secrets
import string

from django.conf import settings
from django.core.cache import cache
import logging

from common.services.sms import get_sms_gateway
from common.utils import call_with_timeout

logger = logging.getLogger(__name__)


class OTPService:
    """Service for generating, sending and verifying OTP codes"""

    OTP_LENGTH = 6

    @property
    def expiry_minutes(self) -> int:
        return getattr(settings, 'OTP_EXPIRY_MINUTES', 10)

    @property
    def max_sends(self) -> int:
        return getattr(settings, 'OTP_MAX_SENDS', 3)

    @classmethod
    def generate_otp(cls) -> str:
        """Generate a 6-digit OTP code"""
        return ''.join(secrets.choice(string.digits) for _ in range(cls.OTP_LENGTH))

    @staticmethod
    def _get_cache_key(phone_number: str, suffix: str = '') -> str:
        """Generate cache key for OTP storage"""
        return f"otp_{phone_number}_{suffix}" if suffix else f"otp_{phone_number}"

    def issue_otp(self, phone_number: str) -> str:
        """Generate and store a code without sending it (used by send_otp and tests)."""
        otp = self.generate_otp()
        cache.set(self._get_cache_key(phone_number), otp, timeout=self.expiry_minutes * 60)
        return otp

    def send_otp(self, phone_number: str) -> dict:
        """
        Send OTP to phone number.

        Args:
            phone_number: Phone number to send OTP to

        Returns:
            dict with 'success', 'message' and, on success, 'expires_in_minutes'

        Raises:
            VerificationError: gateway failed or timed out (the code is discarded)
        """
        attempts_key = self._get_cache_key(phone_number, 'attempts')
        attempts = cache.get(attempts_key, 0)

        if attempts >= self.max_sends:
            logger.warning(f"OTP send limit reached for number ending {phone_number[-2:]}")
            return {
                'success': False,
                'message': f'Too many OTP requests. Please try again in {self.expiry_minutes} minutes.'
            }

        otp = self.issue_otp(phone_number)
        gateway = get_sms_gateway()
        try:
            call_with_timeout(
                gateway.send,
                phone_number,
                f"Your AgriLink verification code is {otp}. It expires in {self.expiry_minutes} minutes.",
                operation="SMS delivery",
            )
        except Exception:
            cache.delete(self._get_cache_key(phone_number))
            logger.error(f"OTP delivery failed for number ending {phone_number[-2:]}, code discarded")
            raise

        cache.set(attempts_key, attempts + 1, timeout=self.expiry_minutes * 60)

        result = {
            'success': True,
            'message': 'OTP sent successfully',
            'expires_in_minutes': self.expiry_minutes,
        }
        if settings.DEBUG:
            result['debug_code'] = otp
        return result

    def verify_otp(self, phone_number: str, otp: str) -> dict:
        """
        Verify OTP code.

        Args:
            phone_number: Phone number to verify
            otp: OTP code to verify

        Returns:
            dict with 'success' and 'message'
        """
        otp_key = self._get_cache_key(phone_number)
        stored_otp = cache.get(otp_key)

        if not stored_otp:
            return {
                'success': False,
                'message': 'OTP expired or not found. Please request a new one.'
            }

        if not secrets.compare_digest(stored_otp, otp):
            logger.warning(f"Wrong OTP submitted for number ending {phone_number[-2:]}")
            return {
                'success': False,
                'message': 'Invalid OTP code.'
            }

        # OTP is valid, delete it
        cache.delete(otp_key)
        cache.delete(self._get_cache_key(phone_number, 'attempts'))

        return {
            'success': True,
            'message': 'Phone number verified successfully'
        }


# Singleton instance
otp_service = OTPService()
