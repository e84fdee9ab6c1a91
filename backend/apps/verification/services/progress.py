"""
Progress & gate evaluation.

compute_progress / can_submit / missing_steps are pure functions of a subject
and its documents. snapshot() caches their result per subject; the cache entry
is dropped by the documents_changed and subject_transitioned receivers and is
ignored if its version no longer matches the subject.
"""
import logging

from django.core.cache import cache

from apps.verification.models import VerificationSubject, VerificationDocument
from apps.verification.services.requirements import requirement_resolver, Step, DOCUMENT_STEPS

logger = logging.getLogger(__name__)

CACHE_TIMEOUT = 300


def _by_kind(documents) -> dict:
    if isinstance(documents, dict):
        return documents
    return {doc.kind: doc for doc in documents}


def _document_step_complete(subject, document) -> bool:
    if subject.status == VerificationSubject.Status.VERIFIED:
        return True
    if document is None:
        return False
    if subject.status == VerificationSubject.Status.REJECTED:
        # Only a fresh upload since the rejection counts
        return (
            document.status == VerificationDocument.Status.UPLOADED
            and subject.decided_at is not None
            and document.uploaded_at > subject.decided_at
        )
    return document.status in (VerificationDocument.Status.UPLOADED, VerificationDocument.Status.UNDER_REVIEW)


def step_complete(subject, step, documents) -> bool:
    if step == Step.PHONE_CONFIRMATION:
        return subject.phone_confirmed or subject.status == VerificationSubject.Status.VERIFIED
    return _document_step_complete(subject, documents.get(DOCUMENT_STEPS[step]))


def compute_progress(subject, documents) -> int:
    """
    Percentage of required steps completed, rounded down, capped at 100.

    Args:
        subject: VerificationSubject
        documents: iterable of VerificationDocument (or a kind -> document dict)
    """
    if subject.status == VerificationSubject.Status.VERIFIED:
        return 100

    steps = requirement_resolver.for_subject(subject)
    documents = _by_kind(documents)
    completed = sum(1 for step in steps if step_complete(subject, step, documents))
    return min(100, completed * 100 // len(steps))


def missing_steps(subject, documents) -> list:
    """Required steps that currently block submission, in requirement order."""
    documents = _by_kind(documents)
    missing = []
    for step in requirement_resolver.for_subject(subject):
        if step == Step.PHONE_CONFIRMATION:
            if not subject.phone_confirmed:
                missing.append(step.value)
            continue
        document = documents.get(DOCUMENT_STEPS[step])
        if document is None or document.status != VerificationDocument.Status.UPLOADED:
            missing.append(step.value)
    return missing


def can_submit(subject, documents) -> bool:
    """True iff the subject is in progress, phone is confirmed and every required document is uploaded."""
    if subject.status != VerificationSubject.Status.IN_PROGRESS:
        return False
    return not missing_steps(subject, documents)


def _cache_key(subject_id) -> str:
    return f"verification:progress:{subject_id}"


def invalidate(subject_id):
    cache.delete(_cache_key(subject_id))


def snapshot(subject) -> dict:
    """
    Cached {progress, can_submit, missing_steps} for a subject.
    """
    key = _cache_key(subject.pk)
    cached = cache.get(key)
    if cached is not None and cached['version'] == subject.version and cached['status'] == subject.status:
        return cached

    logger.debug(f"Progress cache miss for verification subject {subject.pk} (version {subject.version})")
    documents = list(subject.documents.all())
    result = {
        'status': subject.status,
        'version': subject.version,
        'progress': compute_progress(subject, documents),
        'can_submit': can_submit(subject, documents),
        'missing_steps': missing_steps(subject, documents),
    }
    cache.set(key, result, timeout=CACHE_TIMEOUT)
    return result
