"""
Admin review workflow.
Read side for reviewers (pending queue, resolved history, decision context) and
a thin orchestrator for decisions, which are written only through the state machine.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from apps.verification.models import VerificationRequest, VerificationDocument
from apps.verification.services.concurrency import load_subject
from apps.verification.services.state_machine import state_machine
from common.exceptions import ErrorKind, VerificationError
from common.models import AdminActionLog
from common.services.logging_service import LoggingService
from common.utils import get_client_ip

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RejectionRecord:
    """The most recent rejected request of a subject, kept across resubmission."""
    request_id: int
    notes: str
    decided_at: datetime
    reviewer_id: Optional[int]

    @classmethod
    def from_request(cls, request: VerificationRequest) -> 'RejectionRecord':
        return cls(
            request_id=request.pk,
            notes=request.review_notes,
            decided_at=request.reviewed_at,
            reviewer_id=request.reviewed_by_id,
        )


class AdminReviewWorkflow:
    """Service for listing and deciding verification requests"""

    @staticmethod
    def list_pending():
        """Pending requests, oldest submission first."""
        return (
            VerificationRequest.objects
            .filter(outcome=VerificationRequest.Outcome.PENDING)
            .select_related('subject__user')
            .order_by('submitted_at', 'id')
        )

    @staticmethod
    def list_resolved():
        """Approved and rejected requests, most recently decided first."""
        return (
            VerificationRequest.objects
            .exclude(outcome=VerificationRequest.Outcome.PENDING)
            .select_related('subject__user', 'reviewed_by')
            .order_by('-reviewed_at', '-id')
        )

    @staticmethod
    def rejection_history(subject_id, exclude_request_id=None):
        history = VerificationRequest.objects.filter(
            subject_id=subject_id,
            outcome=VerificationRequest.Outcome.REJECTED,
        ).order_by('-reviewed_at', '-id')
        if exclude_request_id is not None:
            history = history.exclude(pk=exclude_request_id)
        return history

    @classmethod
    def latest_rejection(cls, subject_id) -> Optional[RejectionRecord]:
        request = cls.rejection_history(subject_id).first()
        return RejectionRecord.from_request(request) if request else None

    @staticmethod
    def _load_request(request_id) -> VerificationRequest:
        try:
            return VerificationRequest.objects.select_related('subject__user').get(pk=request_id)
        except VerificationRequest.DoesNotExist:
            raise VerificationError(ErrorKind.NOT_FOUND, "Verification request not found.", request_id=request_id)

    @classmethod
    def get_request(cls, request_id, admin_user=None, http_request=None) -> dict:
        """
        Decision context for a request: the request snapshot, the live subject and
        documents, and earlier rejections of the same subject.
        Logged as an admin view when admin_user is given.
        """
        verification_request = cls._load_request(request_id)
        subject = verification_request.subject

        if admin_user is not None:
            LoggingService.log_admin_action(
                admin_user=admin_user,
                action=AdminActionLog.Action.VIEW_VERIFICATION_REQUEST,
                request=http_request,
                target_user=subject.user,
                details={'request_id': verification_request.pk},
            )

        return {
            'request': verification_request,
            'subject': subject,
            'documents': list(VerificationDocument.objects.filter(subject=subject)),
            'previous_rejections': list(cls.rejection_history(subject.pk, exclude_request_id=verification_request.pk)),
            'audit_log': list(subject.audit_logs.select_related('performed_by')[:50]),
        }

    @classmethod
    def _load_active_request(cls, request_id, expected_version=None) -> VerificationRequest:
        verification_request = cls._load_request(request_id)
        if expected_version is not None:
            # Version before outcome: a reviewer who lost the race gets STALE_STATE
            load_subject(verification_request.subject_id, expected_version)
        if not verification_request.is_active:
            logger.warning(
                f"Decision refused on verification request {verification_request.pk}: already {verification_request.outcome}"
            )
            raise VerificationError(
                ErrorKind.INVALID_STATE,
                f"Verification request was already {verification_request.outcome}.",
                outcome=verification_request.outcome,
            )
        return verification_request

    @classmethod
    def approve_request(cls, request_id, admin_user, notes=None, http_request=None,
                        expected_version=None) -> VerificationRequest:
        """
        Approve the subject behind a pending request.

        Raises:
            VerificationError: NOT_FOUND, INVALID_STATE, STALE_STATE
        """
        verification_request = cls._load_active_request(request_id, expected_version)
        closed = state_machine.approve(
            verification_request.subject_id,
            admin_user,
            notes=notes,
            ip_address=get_client_ip(http_request) if http_request is not None else None,
            expected_version=expected_version,
            request_id=verification_request.pk,
        )

        LoggingService.log_admin_action(
            admin_user=admin_user,
            action=AdminActionLog.Action.APPROVE_VERIFICATION,
            request=http_request,
            target_user=verification_request.subject.user,
            details={'request_id': closed.pk},
        )
        return closed

    @classmethod
    def reject_request(cls, request_id, admin_user, notes, http_request=None,
                       expected_version=None) -> VerificationRequest:
        """
        Reject the subject behind a pending request. Notes are required.

        Raises:
            VerificationError: MISSING_REVIEW_NOTES, NOT_FOUND, INVALID_STATE, STALE_STATE
        """
        verification_request = cls._load_active_request(request_id, expected_version)
        closed = state_machine.reject(
            verification_request.subject_id,
            admin_user,
            notes,
            ip_address=get_client_ip(http_request) if http_request is not None else None,
            expected_version=expected_version,
            request_id=verification_request.pk,
        )

        LoggingService.log_admin_action(
            admin_user=admin_user,
            action=AdminActionLog.Action.REJECT_VERIFICATION,
            request=http_request,
            target_user=verification_request.subject.user,
            details={'request_id': closed.pk, 'notes': closed.review_notes},
        )
        return closed


admin_review = AdminReviewWorkflow()
