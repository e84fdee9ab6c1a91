"""
Requirement resolution: which verification steps apply to an account.
"""
import enum
import logging

from apps.accounts.models import User
from apps.verification.models import VerificationDocument

logger = logging.getLogger(__name__)


class Step(str, enum.Enum):
    PHONE_CONFIRMATION = 'phone_confirmation'
    IDENTITY_PROOF = 'identity_proof'
    BUSINESS_LICENSE = 'business_license'


# Steps satisfied by an uploaded document, and the document kind for each
DOCUMENT_STEPS = {
    Step.IDENTITY_PROOF: VerificationDocument.Kind.IDENTITY_PROOF,
    Step.BUSINESS_LICENSE: VerificationDocument.Kind.BUSINESS_LICENSE,
}

INDIVIDUAL_STEPS = (Step.PHONE_CONFIRMATION, Step.IDENTITY_PROOF)
BUSINESS_STEPS = (Step.PHONE_CONFIRMATION, Step.IDENTITY_PROOF, Step.BUSINESS_LICENSE)


class RequirementResolver:
    """Maps (account classification, user type) to the ordered steps a subject must complete"""

    @staticmethod
    def resolve(account_type, user_type) -> list:
        """
        Resolve the required steps.

        Args:
            account_type: 'individual' or 'business'
            user_type: 'producer', 'trader', 'purchaser' or 'admin'

        Returns:
            Ordered list of Step. Never raises: an unknown classification
            falls back to the individual set.
        """
        if account_type == User.AccountType.BUSINESS:
            if user_type == User.UserType.PURCHASER:
                # Purchasers never need a business licence
                return list(INDIVIDUAL_STEPS)
            return list(BUSINESS_STEPS)

        if account_type != User.AccountType.INDIVIDUAL:
            logger.warning(
                f"Unknown account classification {account_type!r} for user type {user_type!r}, "
                f"using individual requirements"
            )
        return list(INDIVIDUAL_STEPS)

    @classmethod
    def required_documents(cls, account_type, user_type) -> list:
        return [DOCUMENT_STEPS[step] for step in cls.resolve(account_type, user_type) if step in DOCUMENT_STEPS]

    @staticmethod
    def optional_documents(user_type) -> list:
        if user_type == User.UserType.PRODUCER:
            return [VerificationDocument.Kind.FARM_CERTIFICATION]
        return []

    @classmethod
    def allowed_documents(cls, account_type, user_type) -> list:
        return cls.required_documents(account_type, user_type) + cls.optional_documents(user_type)

    @classmethod
    def for_subject(cls, subject) -> list:
        return cls.resolve(subject.account_type, subject.user_type)


requirement_resolver = RequirementResolver()
