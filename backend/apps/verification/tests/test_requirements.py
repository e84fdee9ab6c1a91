"""
Tests for requirement resolution.
"""
from django.test import SimpleTestCase

from apps.accounts.models import User
from apps.verification.models import VerificationDocument
from apps.verification.services.requirements import requirement_resolver, Step


class RequirementResolverTestCase(SimpleTestCase):
    """Test cases for RequirementResolver."""

    def test_individual_requires_phone_and_identity(self):
        steps = requirement_resolver.resolve(User.AccountType.INDIVIDUAL, User.UserType.PRODUCER)
        self.assertEqual(steps, [Step.PHONE_CONFIRMATION, Step.IDENTITY_PROOF])

    def test_business_adds_license(self):
        for user_type in (User.UserType.PRODUCER, User.UserType.TRADER):
            steps = requirement_resolver.resolve(User.AccountType.BUSINESS, user_type)
            self.assertEqual(steps, [Step.PHONE_CONFIRMATION, Step.IDENTITY_PROOF, Step.BUSINESS_LICENSE])

    def test_business_purchaser_never_requires_license(self):
        steps = requirement_resolver.resolve(User.AccountType.BUSINESS, User.UserType.PURCHASER)
        self.assertNotIn(Step.BUSINESS_LICENSE, steps)
        self.assertEqual(steps, [Step.PHONE_CONFIRMATION, Step.IDENTITY_PROOF])

    def test_unknown_classification_falls_back_to_individual(self):
        with self.assertLogs('apps.verification.services.requirements', level='WARNING') as logs:
            steps = requirement_resolver.resolve('cooperative', User.UserType.TRADER)

        self.assertEqual(steps, [Step.PHONE_CONFIRMATION, Step.IDENTITY_PROOF])
        self.assertIn('cooperative', logs.output[0])

    def test_resolve_returns_fresh_list(self):
        steps = requirement_resolver.resolve(User.AccountType.INDIVIDUAL, User.UserType.TRADER)
        steps.append(Step.BUSINESS_LICENSE)
        self.assertEqual(len(requirement_resolver.resolve(User.AccountType.INDIVIDUAL, User.UserType.TRADER)), 2)

    def test_required_documents(self):
        self.assertEqual(
            requirement_resolver.required_documents(User.AccountType.BUSINESS, User.UserType.TRADER),
            [VerificationDocument.Kind.IDENTITY_PROOF, VerificationDocument.Kind.BUSINESS_LICENSE],
        )

    def test_farm_certification_is_optional_for_producers_only(self):
        self.assertEqual(
            requirement_resolver.optional_documents(User.UserType.PRODUCER),
            [VerificationDocument.Kind.FARM_CERTIFICATION],
        )
        self.assertEqual(requirement_resolver.optional_documents(User.UserType.TRADER), [])

        allowed = requirement_resolver.allowed_documents(User.AccountType.INDIVIDUAL, User.UserType.PRODUCER)
        self.assertIn(VerificationDocument.Kind.FARM_CERTIFICATION, allowed)
        self.assertNotIn(VerificationDocument.Kind.BUSINESS_LICENSE, allowed)
