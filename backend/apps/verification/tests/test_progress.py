"""
Tests for progress computation and the submission gate.
"""
from datetime import timedelta

from django.core.cache import cache
from django.test import SimpleTestCase
from django.utils import timezone

from apps.accounts.models import User
from apps.verification.models import VerificationSubject, VerificationDocument
from apps.verification.services import progress
from apps.verification.tests.base import BaseVerificationTestCase

Status = VerificationSubject.Status
Kind = VerificationDocument.Kind


def make_subject(account_type=User.AccountType.INDIVIDUAL, user_type=User.UserType.PRODUCER,
                 status=Status.IN_PROGRESS, phone_confirmed=True, decided_at=None):
    user = User(email='subject@example.com', account_type=account_type, user_type=user_type)
    return VerificationSubject(user=user, status=status, phone_confirmed=phone_confirmed, decided_at=decided_at)


def make_document(kind=Kind.IDENTITY_PROOF, status=VerificationDocument.Status.UPLOADED, uploaded_at=None):
    return VerificationDocument(kind=kind, status=status, uploaded_at=uploaded_at or timezone.now())


class ComputeProgressTestCase(SimpleTestCase):
    """Pure progress and gate evaluation."""

    def test_scenario_a_individual_complete(self):
        """Individual, phone confirmed, identity uploaded: gate open, 100%."""
        subject = make_subject()
        documents = [make_document()]

        self.assertTrue(progress.can_submit(subject, documents))
        self.assertEqual(progress.compute_progress(subject, documents), 100)
        self.assertEqual(progress.missing_steps(subject, documents), [])

    def test_scenario_b_business_missing_license(self):
        """Business, phone + identity, no licence: gate closed, below 100%."""
        subject = make_subject(account_type=User.AccountType.BUSINESS, user_type=User.UserType.TRADER)
        documents = [make_document()]

        self.assertFalse(progress.can_submit(subject, documents))
        self.assertEqual(progress.compute_progress(subject, documents), 66)
        self.assertEqual(progress.missing_steps(subject, documents), ['business_license'])

    def test_nothing_done(self):
        subject = make_subject(status=Status.NOT_STARTED, phone_confirmed=False)

        self.assertEqual(progress.compute_progress(subject, []), 0)
        self.assertEqual(progress.missing_steps(subject, []), ['phone_confirmation', 'identity_proof'])

    def test_progress_rounds_down(self):
        subject = make_subject(account_type=User.AccountType.BUSINESS, user_type=User.UserType.TRADER)
        self.assertEqual(progress.compute_progress(subject, []), 33)

    def test_verified_subject_is_complete_regardless_of_documents(self):
        subject = make_subject(status=Status.VERIFIED, phone_confirmed=False)
        self.assertEqual(progress.compute_progress(subject, []), 100)

    def test_gate_requires_in_progress(self):
        documents = [make_document()]
        for status in (Status.NOT_STARTED, Status.UNDER_REVIEW, Status.VERIFIED, Status.REJECTED):
            self.assertFalse(progress.can_submit(make_subject(status=status), documents), status)

    def test_gate_requires_phone(self):
        subject = make_subject(phone_confirmed=False)
        documents = [make_document()]

        self.assertFalse(progress.can_submit(subject, documents))
        self.assertEqual(progress.missing_steps(subject, documents), ['phone_confirmation'])

    def test_gate_requires_uploaded_status(self):
        subject = make_subject()
        documents = [make_document(status=VerificationDocument.Status.REJECTED)]
        self.assertFalse(progress.can_submit(subject, documents))

    def test_under_review_documents_count_as_progress(self):
        subject = make_subject(status=Status.UNDER_REVIEW)
        documents = [make_document(status=VerificationDocument.Status.UNDER_REVIEW)]
        self.assertEqual(progress.compute_progress(subject, documents), 100)

    def test_rejected_counts_only_fresh_uploads(self):
        decided_at = timezone.now()
        subject = make_subject(status=Status.REJECTED, decided_at=decided_at)

        stale = [make_document(status=VerificationDocument.Status.REJECTED, uploaded_at=decided_at - timedelta(hours=1))]
        fresh = [make_document(uploaded_at=decided_at + timedelta(minutes=5))]

        self.assertEqual(progress.compute_progress(subject, stale), 50)
        self.assertEqual(progress.compute_progress(subject, fresh), 100)

    def test_optional_documents_do_not_count(self):
        subject = make_subject()
        documents = [make_document(kind=Kind.FARM_CERTIFICATION)]

        self.assertEqual(progress.compute_progress(subject, documents), 50)
        self.assertFalse(progress.can_submit(subject, documents))

    def test_purchaser_business_needs_no_license(self):
        subject = make_subject(account_type=User.AccountType.BUSINESS, user_type=User.UserType.PURCHASER)
        self.assertTrue(progress.can_submit(subject, [make_document()]))


class ProgressSnapshotTestCase(BaseVerificationTestCase):
    """Cached progress snapshot."""

    def test_snapshot_is_cached(self):
        subject = self.subject_of()
        first = progress.snapshot(subject)

        with self.assertNumQueries(0):
            second = progress.snapshot(subject)

        self.assertEqual(first, second)
        self.assertEqual(first['progress'], 0)

    def test_snapshot_refreshes_after_change(self):
        progress.snapshot(self.subject_of())

        self.confirm_phone()
        self.upload()

        snapshot = progress.snapshot(self.subject_of())
        self.assertEqual(snapshot['progress'], 100)
        self.assertTrue(snapshot['can_submit'])

    def test_transition_signal_invalidates_cache(self):
        subject = self.subject_of()
        progress.snapshot(subject)

        with self.captureOnCommitCallbacks(execute=True):
            self.confirm_phone()

        self.assertIsNone(cache.get(f"verification:progress:{subject.pk}"))
