"""
Custom throttle classes for rate limiting verification endpoints.
Rates come from REST_FRAMEWORK['DEFAULT_THROTTLE_RATES'] under each scope.
SECURITY: Prevents OTP flooding, code brute forcing and upload abuse.
"""
from rest_framework.throttling import UserRateThrottle, AnonRateThrottle


class OTPThrottle(UserRateThrottle):
    """
    Throttle for the send-code endpoint.
    Limits SMS sends per user to prevent SMS flooding.
    """
    scope = 'otp'


class OTPVerifyThrottle(UserRateThrottle):
    """
    Throttle for the verify-code endpoint.
    SECURITY: Prevents attackers from trying all 1 million 6-digit combinations.
    """
    scope = 'otp_verify'


class AuthThrottle(AnonRateThrottle):
    """
    Throttle for registration.
    """
    scope = 'auth'


class VerificationThrottle(UserRateThrottle):
    """
    Throttle for document upload and submission endpoints.
    """
    scope = 'verification'
