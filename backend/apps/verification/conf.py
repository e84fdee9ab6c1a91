"""
Verification workflow settings, read at call time so override_settings applies.
"""
from django.conf import settings

DEFAULT_MAX_DOCUMENT_SIZE = 10 * 1024 * 1024
DEFAULT_ALLOWED_CONTENT_TYPE_PREFIX = 'image/'


def max_document_size() -> int:
    return int(getattr(settings, 'VERIFICATION_MAX_DOCUMENT_SIZE', DEFAULT_MAX_DOCUMENT_SIZE))


def allowed_content_type_prefix() -> str:
    return getattr(settings, 'VERIFICATION_ALLOWED_CONTENT_TYPE_PREFIX', DEFAULT_ALLOWED_CONTENT_TYPE_PREFIX)
