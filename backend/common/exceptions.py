"""
Error taxonomy for the verification API and the DRF exception handler that
renders every error as a tagged payload: {"error": <kind>, "detail": <message>, ...}.
"""
import enum
import logging

from django.core.exceptions import PermissionDenied
from django.db import DatabaseError
from django.http import Http404
from rest_framework import exceptions
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ErrorKind(str, enum.Enum):
    VALIDATION_ERROR = 'validation_error'
    PAYLOAD_TOO_LARGE = 'payload_too_large'
    UNSUPPORTED_MEDIA_TYPE = 'unsupported_media_type'
    INVALID_STATE = 'invalid_state'
    GATE_NOT_SATISFIED = 'gate_not_satisfied'
    STALE_STATE = 'stale_state'
    MISSING_REVIEW_NOTES = 'missing_review_notes'
    UPSTREAM_UNAVAILABLE = 'upstream_unavailable'
    UPSTREAM_TIMEOUT = 'upstream_timeout'
    NOT_FOUND = 'not_found'


HTTP_STATUS = {
    ErrorKind.VALIDATION_ERROR: 400,
    ErrorKind.PAYLOAD_TOO_LARGE: 413,
    ErrorKind.UNSUPPORTED_MEDIA_TYPE: 415,
    ErrorKind.INVALID_STATE: 409,
    ErrorKind.GATE_NOT_SATISFIED: 422,
    ErrorKind.STALE_STATE: 409,
    ErrorKind.MISSING_REVIEW_NOTES: 400,
    ErrorKind.UPSTREAM_UNAVAILABLE: 503,
    ErrorKind.UPSTREAM_TIMEOUT: 504,
    ErrorKind.NOT_FOUND: 404,
}

RETRYABLE = {ErrorKind.STALE_STATE, ErrorKind.UPSTREAM_UNAVAILABLE, ErrorKind.UPSTREAM_TIMEOUT}


class VerificationError(Exception):
    """
    A user-correctable or collaborator failure raised by the verification services.

    Args:
        kind: ErrorKind tag
        message: Human readable message, shown to the caller verbatim
        cause: Original exception for collaborator failures
        **details: Extra fields merged into the error payload (e.g. missing_steps)
    """

    def __init__(self, kind: ErrorKind, message: str, cause: Exception = None, **details):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.cause = cause
        self.details = details

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE

    @property
    def status_code(self) -> int:
        return HTTP_STATUS[self.kind]

    def as_payload(self) -> dict:
        payload = {'error': self.kind.value, 'detail': self.message}
        payload.update(self.details)
        if self.retryable:
            payload['retryable'] = True
        return payload

    def __repr__(self):
        return f"VerificationError({self.kind.value!r}, {self.message!r})"


# DRF exception classes mapped onto the same tag vocabulary
_DRF_KINDS = [
    (exceptions.NotAuthenticated, 'not_authenticated'),
    (exceptions.AuthenticationFailed, 'authentication_failed'),
    (exceptions.PermissionDenied, 'permission_denied'),
    (exceptions.NotFound, ErrorKind.NOT_FOUND.value),
    (Http404, ErrorKind.NOT_FOUND.value),
    (PermissionDenied, 'permission_denied'),
    (exceptions.Throttled, 'throttled'),
    (exceptions.UnsupportedMediaType, ErrorKind.UNSUPPORTED_MEDIA_TYPE.value),
    (exceptions.ValidationError, ErrorKind.VALIDATION_ERROR.value),
    (exceptions.ParseError, ErrorKind.VALIDATION_ERROR.value),
]


def _drf_kind(exc):
    for exc_class, kind in _DRF_KINDS:
        if isinstance(exc, exc_class):
            return kind
    return 'error'


def api_exception_handler(exc, context):
    """
    REST_FRAMEWORK['EXCEPTION_HANDLER'].

    VerificationError is rendered with its own status and payload, DRF errors keep
    DRF's status and body with an "error" tag added, and database failures become
    upstream_unavailable instead of a 500 traceback.
    """
    if isinstance(exc, VerificationError):
        if exc.cause is not None:
            logger.error(f"{exc.kind.value}: {exc.message} (cause: {exc.cause!r})")
        return Response(exc.as_payload(), status=exc.status_code)

    if isinstance(exc, DatabaseError):
        logger.exception("Storage failure while handling request")
        error = VerificationError(
            ErrorKind.UPSTREAM_UNAVAILABLE,
            "Storage is temporarily unavailable. Please retry.",
            cause=exc,
        )
        return Response(error.as_payload(), status=error.status_code)

    response = exception_handler(exc, context)
    if response is None:
        return None

    if isinstance(response.data, dict):
        response.data.setdefault('error', _drf_kind(exc))
    else:
        response.data = {'error': _drf_kind(exc), 'detail': response.data}
    return response
