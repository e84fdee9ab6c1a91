"""
Phone confirmation: the send/verify code contract in front of confirm_phone.
"""
import logging
from typing import Optional

from django.core.exceptions import ValidationError

from apps.accounts.models import User
from apps.verification.models import VerificationSubject, VerificationAuditLog
from apps.verification.services.concurrency import load_subject
from apps.verification.services.state_machine import state_machine
from common.exceptions import ErrorKind, VerificationError
from common.services.encryption import get_encryption_service
from common.services.otp import otp_service
from common.validators import validate_international_phone_number

logger = logging.getLogger(__name__)


class PhoneConfirmationService:
    """Service for sending and checking phone confirmation codes"""

    @staticmethod
    def clean_phone_number(phone_number: str) -> str:
        try:
            return validate_international_phone_number(phone_number or '')
        except ValidationError as e:
            raise VerificationError(ErrorKind.VALIDATION_ERROR, e.messages[0], field='phone_number')

    @staticmethod
    def is_phone_taken(phone_number: str, exclude_subject_id=None) -> bool:
        """
        Check if a phone number is already confirmed on another account.

        Args:
            phone_number: Cleaned phone number
            exclude_subject_id: Subject to ignore (the caller's own)
        """
        phone_hash = get_encryption_service().hash_value(phone_number)
        query = VerificationSubject.objects.filter(phone_number_hash=phone_hash)
        if exclude_subject_id is not None:
            query = query.exclude(pk=exclude_subject_id)
        return query.exists()

    @classmethod
    def _check_can_confirm(cls, subject, phone_number):
        if subject.phone_confirmed:
            raise VerificationError(
                ErrorKind.INVALID_STATE,
                "Phone number is already confirmed.",
                status=subject.status,
            )
        if subject.status not in (VerificationSubject.Status.NOT_STARTED, VerificationSubject.Status.IN_PROGRESS):
            raise VerificationError(
                ErrorKind.INVALID_STATE,
                f"Phone cannot be confirmed while verification is {subject.status}.",
                status=subject.status,
            )
        if cls.is_phone_taken(phone_number, exclude_subject_id=subject.pk):
            raise VerificationError(
                ErrorKind.VALIDATION_ERROR,
                "This phone number is already confirmed on another account.",
                field='phone_number',
            )

    @classmethod
    def send_code(cls, subject_id, phone_number: str, performed_by: Optional[User] = None,
                  ip_address=None) -> dict:
        """
        Send a confirmation code to a phone number.

        Returns:
            OTP service result dict; 'success' is False when the send limit is reached

        Raises:
            VerificationError: VALIDATION_ERROR, INVALID_STATE, UPSTREAM_UNAVAILABLE, UPSTREAM_TIMEOUT
        """
        phone_number = cls.clean_phone_number(phone_number)
        subject = load_subject(subject_id)
        cls._check_can_confirm(subject, phone_number)

        result = otp_service.send_otp(phone_number)
        if result['success']:
            VerificationAuditLog.objects.create(
                subject=subject,
                action=VerificationAuditLog.Action.PHONE_CODE_SENT,
                performed_by=performed_by,
                details={'phone_suffix': phone_number[-2:]},
                ip_address=ip_address,
            )
            logger.info(f"Confirmation code sent for verification subject {subject.pk}")
        else:
            logger.warning(f"Confirmation code send limit reached for verification subject {subject.pk}")
        return result

    @classmethod
    def verify_code(cls, subject_id, phone_number: str, code: str, performed_by: Optional[User] = None,
                    ip_address=None) -> VerificationSubject:
        """
        Check a confirmation code and, when it matches, confirm the phone.

        Raises:
            VerificationError: VALIDATION_ERROR (bad or expired code), INVALID_STATE, STALE_STATE
        """
        phone_number = cls.clean_phone_number(phone_number)
        subject = load_subject(subject_id)
        if subject.phone_confirmed:
            return subject
        cls._check_can_confirm(subject, phone_number)

        result = otp_service.verify_otp(phone_number, (code or '').strip())
        if not result['success']:
            raise VerificationError(ErrorKind.VALIDATION_ERROR, result['message'], field='code')

        return state_machine.confirm_phone(
            subject.pk,
            phone_number=phone_number,
            performed_by=performed_by,
            ip_address=ip_address,
        )


phone_service = PhoneConfirmationService()
