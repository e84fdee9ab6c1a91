"""
Document store for verification artifacts.
Validates uploads, writes blobs through Django storage with a bounded timeout,
and keeps one document row per (subject, kind).
"""
import logging
import os
from typing import Optional

from django.core.exceptions import ValidationError
from django.core.files.storage import default_storage
from django.db import transaction
from django.utils import timezone

from apps.verification import conf
from apps.verification.models import (
    VerificationSubject,
    VerificationDocument,
    VerificationRequest,
    VerificationAuditLog,
    document_upload_path,
)
from apps.verification.services.concurrency import load_subject, compare_and_swap
from apps.verification.services.requirements import requirement_resolver
from apps.verification.signals import documents_changed
from common.exceptions import ErrorKind, VerificationError
from common.utils import call_with_timeout
from common.validators import sniff_image_content_type, validate_safe_filename

logger = logging.getLogger(__name__)

UPLOAD_BLOCKED_STATUSES = (
    VerificationSubject.Status.UNDER_REVIEW,
    VerificationSubject.Status.VERIFIED,
)
REMOVE_ALLOWED_STATUSES = (
    VerificationSubject.Status.IN_PROGRESS,
    VerificationSubject.Status.REJECTED,
)


def is_blob_referenced(subject_id, name: str) -> bool:
    """True if any submission snapshot of the subject points at the stored blob."""
    for documents in VerificationRequest.objects.filter(subject_id=subject_id).values_list('documents', flat=True):
        if any(entry.get('content') == name for entry in documents or []):
            return True
    return False


def discard_blob(subject_id, name: str):
    """Delete a stored blob unless a submission snapshot still references it."""
    if not name or is_blob_referenced(subject_id, name):
        return
    try:
        call_with_timeout(default_storage.delete, name, operation="Document storage cleanup")
    except VerificationError as e:
        # The row is already gone; an orphaned blob is left for purge_orphaned_documents
        logger.error(f"Could not delete blob {name}: {e.message}")


class DocumentStore:
    """Service for uploading, replacing and removing verification documents"""

    @staticmethod
    def get(subject_id, kind) -> Optional[VerificationDocument]:
        """Current document of a kind, or None when absent."""
        return VerificationDocument.objects.filter(subject_id=subject_id, kind=kind).first()

    @staticmethod
    def list(subject_id) -> list:
        return list(VerificationDocument.objects.filter(subject_id=subject_id))

    @staticmethod
    def _validate_file(subject, kind, uploaded_file):
        """
        Check kind, size and content type of an upload.

        Returns:
            (safe filename, content type) tuple
        """
        if kind not in VerificationDocument.Kind.values:
            raise VerificationError(ErrorKind.VALIDATION_ERROR, f"Unknown document kind '{kind}'.", field='kind')

        allowed = requirement_resolver.allowed_documents(subject.account_type, subject.user_type)
        if kind not in allowed:
            raise VerificationError(
                ErrorKind.VALIDATION_ERROR,
                f"Document '{kind}' is not applicable to this account.",
                field='kind',
                allowed_kinds=[str(k) for k in allowed],
            )

        if uploaded_file is None or not uploaded_file.size:
            raise VerificationError(ErrorKind.VALIDATION_ERROR, "A non-empty file is required.", field='file')

        max_size = conf.max_document_size()
        if uploaded_file.size > max_size:
            raise VerificationError(
                ErrorKind.PAYLOAD_TOO_LARGE,
                f"File size cannot exceed {max_size // (1024 * 1024)}MB.",
                max_size=max_size,
                size=uploaded_file.size,
            )

        prefix = conf.allowed_content_type_prefix()
        declared = getattr(uploaded_file, 'content_type', None) or ''
        if not declared.startswith(prefix):
            raise VerificationError(
                ErrorKind.UNSUPPORTED_MEDIA_TYPE,
                f"Only {prefix}* files are accepted.",
                content_type=declared,
            )

        content_type = declared
        if prefix.startswith('image/'):
            # Never trust the declared type: the bytes must decode as an image
            content_type = sniff_image_content_type(uploaded_file)
            if content_type is None or not content_type.startswith(prefix):
                raise VerificationError(
                    ErrorKind.UNSUPPORTED_MEDIA_TYPE,
                    "File content is not a valid image.",
                    content_type=declared,
                )

        try:
            filename = validate_safe_filename(os.path.basename(uploaded_file.name or ''))
        except ValidationError as e:
            raise VerificationError(ErrorKind.VALIDATION_ERROR, e.messages[0], field='file')

        return filename, content_type

    @classmethod
    def upload(cls, subject_id, kind, uploaded_file, performed_by=None, ip_address=None,
               expected_version=None) -> VerificationDocument:
        """
        Upload or replace the document of a kind.

        Args:
            subject_id: VerificationSubject ID
            kind: VerificationDocument.Kind value
            uploaded_file: Django UploadedFile (name, size, content_type, content)
            performed_by: User performing the upload (for the audit log)
            ip_address: IP address of requester
            expected_version: Subject version the caller last read (optional)

        Returns:
            The stored VerificationDocument with status 'uploaded'

        Raises:
            VerificationError: VALIDATION_ERROR, PAYLOAD_TOO_LARGE, UNSUPPORTED_MEDIA_TYPE,
                INVALID_STATE, STALE_STATE, UPSTREAM_UNAVAILABLE, UPSTREAM_TIMEOUT
        """
        subject = load_subject(subject_id, expected_version)
        filename, content_type = cls._validate_file(subject, kind, uploaded_file)

        if subject.status in UPLOAD_BLOCKED_STATUSES:
            raise VerificationError(
                ErrorKind.INVALID_STATE,
                f"Documents cannot be changed while verification is {subject.status}.",
                status=subject.status,
            )

        path = document_upload_path(VerificationDocument(subject_id=subject.pk, kind=kind), filename)
        uploaded_file.seek(0)
        stored_name = call_with_timeout(default_storage.save, path, uploaded_file, operation="Document storage")

        try:
            with transaction.atomic():
                compare_and_swap(subject)

                document = VerificationDocument.objects.select_for_update().filter(subject=subject, kind=kind).first()
                previous_blob = document.content.name if document else None
                if document is None:
                    document = VerificationDocument(subject=subject, kind=kind)

                document.status = VerificationDocument.Status.UPLOADED
                document.original_filename = filename
                document.size = uploaded_file.size
                document.content_type = content_type
                document.content = stored_name
                document.uploaded_at = timezone.now()
                document.save()

                VerificationAuditLog.objects.create(
                    subject=subject,
                    action=VerificationAuditLog.Action.DOCUMENT_UPLOADED,
                    performed_by=performed_by,
                    details={
                        'kind': kind,
                        'size': document.size,
                        'content_type': content_type,
                        'replaced': previous_blob is not None,
                    },
                    ip_address=ip_address,
                )

                transaction.on_commit(lambda: cls._after_change(subject.pk, kind, previous_blob))
        except Exception:
            discard_blob(subject.pk, stored_name)
            raise

        logger.info(f"Document {kind} uploaded for verification subject {subject.pk}")
        return document

    @classmethod
    def remove(cls, subject_id, kind, performed_by=None, ip_address=None, expected_version=None):
        """
        Remove the document of a kind.
        Only allowed while the subject is in progress or rejected.

        Raises:
            VerificationError: INVALID_STATE, NOT_FOUND, STALE_STATE
        """
        subject = load_subject(subject_id, expected_version)

        if subject.status not in REMOVE_ALLOWED_STATUSES:
            raise VerificationError(
                ErrorKind.INVALID_STATE,
                f"Documents cannot be removed while verification is {subject.status}.",
                status=subject.status,
            )

        with transaction.atomic():
            document = VerificationDocument.objects.select_for_update().filter(subject=subject, kind=kind).first()
            if document is None:
                raise VerificationError(ErrorKind.NOT_FOUND, f"No {kind} document to remove.", document_kind=kind)

            compare_and_swap(subject)
            blob = document.content.name
            document.delete()

            VerificationAuditLog.objects.create(
                subject=subject,
                action=VerificationAuditLog.Action.DOCUMENT_REMOVED,
                performed_by=performed_by,
                details={'kind': kind},
                ip_address=ip_address,
            )

            transaction.on_commit(lambda: cls._after_change(subject.pk, kind, blob))

        logger.info(f"Document {kind} removed for verification subject {subject.pk}")

    @staticmethod
    def _after_change(subject_id, kind, replaced_blob):
        if replaced_blob:
            discard_blob(subject_id, replaced_blob)
        documents_changed.send(sender=VerificationDocument, subject_id=subject_id, kind=kind)


document_store = DocumentStore()
