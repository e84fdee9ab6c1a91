"""
Verification state machine.
Owns VerificationSubject.status: every status write in the project goes through
a transition here, committed with a compare-and-swap on (status, version).
"""
import logging
from typing import Optional

from django.core.exceptions import ValidationError
from django.db import transaction, IntegrityError
from django.utils import timezone

from apps.accounts.models import User
from apps.verification.models import (
    VerificationSubject,
    VerificationDocument,
    VerificationRequest,
    VerificationAuditLog,
)
from apps.verification.services.concurrency import load_subject, compare_and_swap
from apps.verification.services.document_store import discard_blob
from apps.verification.services.progress import can_submit, missing_steps
from apps.verification.signals import subject_transitioned, documents_changed
from common.exceptions import ErrorKind, VerificationError
from common.services.encryption import DecryptionError, get_encryption_service
from common.validators import validate_license_number

logger = logging.getLogger(__name__)

Status = VerificationSubject.Status


class VerificationStateMachine:
    """
    Verification state machine with strict transition rules.
    A stale read fails with STALE_STATE instead of overwriting another writer.
    """

    # Valid state transitions
    TRANSITIONS = {
        Status.NOT_STARTED: [Status.IN_PROGRESS],
        Status.IN_PROGRESS: [Status.IN_PROGRESS, Status.UNDER_REVIEW],
        Status.UNDER_REVIEW: [Status.VERIFIED, Status.REJECTED],
        Status.REJECTED: [Status.IN_PROGRESS],  # Resubmission
        Status.VERIFIED: [],  # Terminal state
    }

    # States in which the user may edit declared business info
    EDITABLE_STATES = (Status.NOT_STARTED, Status.IN_PROGRESS, Status.REJECTED)

    @classmethod
    def can_transition(cls, from_state: str, to_state: str) -> bool:
        """Check if transition is valid."""
        return to_state in cls.TRANSITIONS.get(from_state, [])

    @classmethod
    def _require_transition(cls, subject, to_state, operation):
        if not cls.can_transition(subject.status, to_state):
            logger.warning(f"Rejected {operation} on verification subject {subject.pk} in status {subject.status}")
            raise VerificationError(
                ErrorKind.INVALID_STATE,
                f"Cannot {operation} while verification is {subject.status}.",
                status=subject.status,
            )

    @staticmethod
    def _announce(subject_id, from_status, to_status):
        transaction.on_commit(lambda: subject_transitioned.send(
            sender=VerificationSubject,
            subject_id=subject_id,
            from_status=from_status,
            to_status=to_status,
        ))

    @staticmethod
    def _active_request(subject) -> VerificationRequest:
        request = (
            VerificationRequest.objects.select_for_update()
            .filter(subject=subject, outcome=VerificationRequest.Outcome.PENDING)
            .first()
        )
        if request is None:
            raise VerificationError(
                ErrorKind.INVALID_STATE,
                "No active verification request for this subject.",
                status=subject.status,
            )
        return request

    # ====== User transitions ======

    @classmethod
    def confirm_phone(cls, subject_id, phone_number: str = None, performed_by: Optional[User] = None,
                      ip_address=None, expected_version=None) -> VerificationSubject:
        """
        Mark the phone as confirmed and move the subject to in_progress.
        Idempotent: a subject whose phone is already confirmed is returned unchanged.

        Args:
            subject_id: VerificationSubject ID
            phone_number: Confirmed number, stored with its hash for uniqueness (optional)
            performed_by: User confirming
            ip_address: IP address of requester
            expected_version: Subject version the caller last read (optional)

        Raises:
            VerificationError: INVALID_STATE, STALE_STATE, VALIDATION_ERROR (number used elsewhere)
        """
        subject = load_subject(subject_id, expected_version)

        if subject.phone_confirmed:
            return subject

        cls._require_transition(subject, Status.IN_PROGRESS, "confirm phone")

        from_status = subject.status
        now = timezone.now()
        changes = {
            'status': Status.IN_PROGRESS,
            'phone_confirmed': True,
            'phone_confirmed_at': now,
        }
        if phone_number:
            changes['phone_number'] = phone_number
            changes['phone_number_hash'] = get_encryption_service().hash_value(phone_number)

        try:
            with transaction.atomic():
                compare_and_swap(subject, **changes)
                VerificationAuditLog.objects.create(
                    subject=subject,
                    action=VerificationAuditLog.Action.PHONE_CONFIRMED,
                    performed_by=performed_by,
                    details={'from_status': from_status},
                    ip_address=ip_address,
                )
                cls._announce(subject.pk, from_status, subject.status)
        except IntegrityError:
            raise VerificationError(
                ErrorKind.VALIDATION_ERROR,
                "This phone number is already confirmed on another account.",
                field='phone_number',
            )

        logger.info(f"Phone confirmed for verification subject {subject.pk} ({from_status} -> {subject.status})")
        return subject

    @classmethod
    def update_business_info(cls, subject_id, business_name: str, business_description: str = '',
                             business_license_number: str = '', performed_by: Optional[User] = None,
                             ip_address=None, expected_version=None) -> VerificationSubject:
        """
        Store declared business info carried by the next submission.
        Status is not changed; the version is.
        """
        subject = load_subject(subject_id, expected_version)

        if subject.account_type != User.AccountType.BUSINESS:
            raise VerificationError(
                ErrorKind.VALIDATION_ERROR,
                "Business info applies to business accounts only.",
            )
        if subject.status not in cls.EDITABLE_STATES:
            raise VerificationError(
                ErrorKind.INVALID_STATE,
                f"Business info cannot be changed while verification is {subject.status}.",
                status=subject.status,
            )

        business_name = (business_name or '').strip()
        if not business_name:
            raise VerificationError(ErrorKind.VALIDATION_ERROR, "Business name is required.", field='business_name')

        license_token = ''
        if business_license_number:
            try:
                license_number = validate_license_number(business_license_number)
            except ValidationError as e:
                raise VerificationError(ErrorKind.VALIDATION_ERROR, e.messages[0], field='business_license_number')
            license_token = get_encryption_service().encrypt(license_number)

        with transaction.atomic():
            compare_and_swap(
                subject,
                business_name=business_name,
                business_description=(business_description or '').strip(),
                business_license_number_encrypted=license_token,
            )
            VerificationAuditLog.objects.create(
                subject=subject,
                action=VerificationAuditLog.Action.BUSINESS_INFO_UPDATED,
                performed_by=performed_by,
                details={'business_name': business_name, 'has_license_number': bool(license_token)},
                ip_address=ip_address,
            )

        logger.info(f"Business info updated for verification subject {subject.pk}")
        return subject

    @classmethod
    def submit(cls, subject_id, performed_by: Optional[User] = None, ip_address=None,
               expected_version=None) -> VerificationRequest:
        """
        Submit for review: in_progress -> under_review.

        The gate is evaluated here against stored state, never taken from the client.

        Returns:
            The new pending VerificationRequest snapshot

        Raises:
            VerificationError: GATE_NOT_SATISFIED (with missing_steps), STALE_STATE
        """
        subject = load_subject(subject_id, expected_version)

        with transaction.atomic():
            documents = {doc.kind: doc for doc in VerificationDocument.objects.filter(subject=subject)}

            if not can_submit(subject, documents):
                missing = missing_steps(subject, documents)
                logger.warning(f"Submit refused for verification subject {subject.pk}: status={subject.status}, missing={missing}")
                raise VerificationError(
                    ErrorKind.GATE_NOT_SATISFIED,
                    "Verification requirements are not complete.",
                    status=subject.status,
                    missing_steps=missing,
                )

            business_info = None
            if subject.account_type == User.AccountType.BUSINESS:
                try:
                    business_info = subject.business_info()
                except DecryptionError as e:
                    raise VerificationError(
                        ErrorKind.VALIDATION_ERROR,
                        "The stored business licence number can no longer be read. Enter it again before submitting.",
                        cause=e,
                        field='business_license_number',
                    ) from e

            from_status = subject.status
            now = timezone.now()
            compare_and_swap(subject, status=Status.UNDER_REVIEW, submitted_at=now)

            submitted = [doc for doc in documents.values() if doc.status == VerificationDocument.Status.UPLOADED]
            VerificationDocument.objects.filter(pk__in=[doc.pk for doc in submitted]).update(
                status=VerificationDocument.Status.UNDER_REVIEW
            )
            for doc in submitted:
                doc.status = VerificationDocument.Status.UNDER_REVIEW

            request = VerificationRequest.objects.create(
                subject=subject,
                user_type=subject.user_type,
                account_type=subject.account_type,
                business_info=business_info,
                phone_confirmed=subject.phone_confirmed,
                documents=[doc.snapshot() for doc in sorted(submitted, key=lambda d: d.kind)],
                submitted_at=now,
            )

            VerificationAuditLog.objects.create(
                subject=subject,
                action=VerificationAuditLog.Action.SUBMITTED,
                performed_by=performed_by,
                details={'request_id': request.pk, 'documents': [doc.kind for doc in submitted]},
                ip_address=ip_address,
            )
            cls._announce(subject.pk, from_status, subject.status)

        logger.info(f"Verification subject {subject.pk} submitted for review (request {request.pk})")
        return request

    @classmethod
    def resubmit_reset(cls, subject_id, performed_by: Optional[User] = None, ip_address=None,
                       expected_version=None) -> VerificationSubject:
        """
        Reopen a rejected subject: rejected -> in_progress.
        All documents are cleared and must be uploaded again. The phone confirmation
        and the rejected request (the rejection record) are kept.
        """
        subject = load_subject(subject_id, expected_version)
        if subject.status != Status.REJECTED:
            logger.warning(f"Rejected resubmission reset on verification subject {subject.pk} in status {subject.status}")
            raise VerificationError(
                ErrorKind.INVALID_STATE,
                f"Only a rejected verification can be reset, current status is {subject.status}.",
                status=subject.status,
            )

        from_status = subject.status
        with transaction.atomic():
            compare_and_swap(subject, status=Status.IN_PROGRESS)

            documents = list(VerificationDocument.objects.filter(subject=subject))
            blobs = [doc.content.name for doc in documents]
            VerificationDocument.objects.filter(subject=subject).delete()

            VerificationAuditLog.objects.create(
                subject=subject,
                action=VerificationAuditLog.Action.RESUBMIT_RESET,
                performed_by=performed_by,
                details={'cleared_documents': [doc.kind for doc in documents]},
                ip_address=ip_address,
            )

            def cleanup():
                for blob in blobs:
                    discard_blob(subject.pk, blob)
                documents_changed.send(sender=VerificationDocument, subject_id=subject.pk, kind=None)

            transaction.on_commit(cleanup)
            cls._announce(subject.pk, from_status, subject.status)

        logger.info(f"Verification subject {subject.pk} reset for resubmission ({len(documents)} documents cleared)")
        return subject

    # ====== Reviewer transitions ======

    @classmethod
    def _decide(cls, subject_id, reviewer, to_state, notes, ip_address, expected_version,
                request_id=None) -> VerificationRequest:
        subject = load_subject(subject_id, expected_version)
        operation = "approve" if to_state == Status.VERIFIED else "reject"
        if subject.status != Status.UNDER_REVIEW:
            logger.warning(f"Rejected {operation} on verification subject {subject.pk} in status {subject.status}")
            raise VerificationError(
                ErrorKind.INVALID_STATE,
                f"Cannot {operation}: verification is {subject.status}, not under review.",
                status=subject.status,
            )

        if to_state == Status.VERIFIED:
            outcome = VerificationRequest.Outcome.APPROVED
            document_status = VerificationDocument.Status.VERIFIED
            action = VerificationAuditLog.Action.APPROVED
        else:
            outcome = VerificationRequest.Outcome.REJECTED
            document_status = VerificationDocument.Status.REJECTED
            action = VerificationAuditLog.Action.REJECTED

        from_status = subject.status
        now = timezone.now()
        with transaction.atomic():
            compare_and_swap(
                subject,
                status=to_state,
                decided_at=now,
                decided_by=reviewer,
                decision_notes=notes,
            )

            request = cls._active_request(subject)
            if request_id is not None and request.pk != request_id:
                logger.warning(
                    f"Rejected {operation} of verification request {request_id}: "
                    f"subject {subject.pk} is now under review with request {request.pk}"
                )
                raise VerificationError(
                    ErrorKind.INVALID_STATE,
                    f"Verification request {request_id} is no longer under review.",
                    request_id=request_id,
                    active_request_id=request.pk,
                )

            request.outcome = outcome
            request.reviewed_at = now
            request.reviewed_by = reviewer
            request.review_notes = notes
            request.save(update_fields=['outcome', 'reviewed_at', 'reviewed_by', 'review_notes'])

            VerificationDocument.objects.filter(
                subject=subject,
                status__in=[VerificationDocument.Status.UPLOADED, VerificationDocument.Status.UNDER_REVIEW],
            ).update(status=document_status)

            VerificationAuditLog.objects.create(
                subject=subject,
                action=action,
                performed_by=reviewer,
                details={'request_id': request.pk, 'notes': notes},
                ip_address=ip_address,
            )
            cls._announce(subject.pk, from_status, subject.status)

        reviewer_email = reviewer.email if reviewer else 'system'
        logger.info(f"Verification subject {subject.pk} {to_state} by {reviewer_email} (request {request.pk})")
        return request

    @classmethod
    def approve(cls, subject_id, reviewer: Optional[User], notes: str = None, ip_address=None,
                expected_version=None, request_id=None) -> VerificationRequest:
        """
        Approve: under_review -> verified. Closes the active request and marks its documents verified.
        When request_id is given, that request must be the one under review.

        Returns:
            The closed VerificationRequest
        """
        return cls._decide(subject_id, reviewer, Status.VERIFIED, (notes or '').strip(), ip_address, expected_version,
                           request_id)

    @classmethod
    def reject(cls, subject_id, reviewer: Optional[User], notes: str, ip_address=None,
               expected_version=None, request_id=None) -> VerificationRequest:
        """
        Reject: under_review -> rejected. Notes are mandatory and become the rejection record.

        Raises:
            VerificationError: MISSING_REVIEW_NOTES, INVALID_STATE, STALE_STATE
        """
        notes = (notes or '').strip()
        if not notes:
            raise VerificationError(
                ErrorKind.MISSING_REVIEW_NOTES,
                "Review notes are required to reject a verification.",
                field='notes',
            )
        return cls._decide(subject_id, reviewer, Status.REJECTED, notes, ip_address, expected_version, request_id)


state_machine = VerificationStateMachine()
