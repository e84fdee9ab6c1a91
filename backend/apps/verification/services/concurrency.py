"""
Optimistic concurrency for VerificationSubject writes.

Every write reads the subject, checks its precondition against that read, then
commits with UPDATE ... WHERE status = <read status> AND version = <read version>.
Zero rows updated means another writer got there first.
"""
import logging

from django.db.models import F
from django.utils import timezone

from apps.verification.models import VerificationSubject
from common.exceptions import ErrorKind, VerificationError

logger = logging.getLogger(__name__)


def load_subject(subject_id, expected_version=None) -> VerificationSubject:
    """
    Fresh read of a subject.

    Raises:
        VerificationError(NOT_FOUND): no such subject
        VerificationError(STALE_STATE): caller's read version is out of date
    """
    try:
        subject = VerificationSubject.objects.select_related('user').get(pk=subject_id)
    except VerificationSubject.DoesNotExist:
        raise VerificationError(ErrorKind.NOT_FOUND, "Verification record not found.", subject_id=subject_id)

    if expected_version is not None and subject.version != expected_version:
        raise stale_state(subject, expected_version)
    return subject


def stale_state(subject, read_version) -> VerificationError:
    logger.warning(
        f"Stale write on verification subject {subject.pk}: "
        f"read version {read_version}, stored version {subject.version}"
    )
    return VerificationError(
        ErrorKind.STALE_STATE,
        "Verification record was changed by someone else. Refresh and try again.",
        subject_id=subject.pk,
        current_version=subject.version,
    )


def compare_and_swap(subject: VerificationSubject, **changes) -> VerificationSubject:
    """
    Commit `changes` and bump the version iff the stored (status, version) still
    equals the values on `subject`. Must run inside transaction.atomic.

    Returns:
        `subject`, updated in memory to the committed values
    """
    now = timezone.now()
    updated = VerificationSubject.objects.filter(
        pk=subject.pk,
        status=subject.status,
        version=subject.version,
    ).update(version=F('version') + 1, updated_at=now, **changes)

    if updated == 0:
        current = VerificationSubject.objects.filter(pk=subject.pk).values_list('version', flat=True).first()
        read_version = subject.version
        subject.version = current if current is not None else read_version
        raise stale_state(subject, read_version)

    subject.version += 1
    subject.updated_at = now
    for field, value in changes.items():
        setattr(subject, field, value)
    return subject
