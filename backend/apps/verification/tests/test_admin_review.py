"""
Tests for the admin review workflow.
"""
from datetime import timedelta
from unittest.mock import patch

from django.utils import timezone

from apps.verification.models import VerificationSubject, VerificationRequest
from apps.verification.services.admin_review import admin_review, AdminReviewWorkflow, RejectionRecord
from apps.verification.services.state_machine import state_machine
from apps.verification.tests.base import BaseVerificationTestCase
from common.exceptions import ErrorKind, VerificationError
from common.models import AdminActionLog


class ReviewQueueTestCase(BaseVerificationTestCase):
    """Test cases for the pending and resolved lists."""

    def test_pending_is_oldest_first(self):
        first = self.make_under_review(self.user, phone_number='+447700900101')
        second = self.make_under_review(self.business_user, phone_number='+447700900102')
        VerificationRequest.objects.filter(pk=first.pk).update(submitted_at=timezone.now() - timedelta(hours=2))

        pending = list(admin_review.list_pending())

        self.assertEqual([r.pk for r in pending], [first.pk, second.pk])

    def test_pending_ties_broken_by_id(self):
        first = self.make_under_review(self.user, phone_number='+447700900101')
        second = self.make_under_review(self.business_user, phone_number='+447700900102')
        VerificationRequest.objects.update(submitted_at=timezone.now())

        self.assertEqual([r.pk for r in admin_review.list_pending()], [first.pk, second.pk])

    def test_decided_requests_leave_the_queue(self):
        request = self.make_under_review()
        state_machine.approve(request.subject_id, self.admin_user)

        self.assertEqual(list(admin_review.list_pending()), [])
        self.assertEqual([r.pk for r in admin_review.list_resolved()], [request.pk])

    def test_resolved_is_most_recent_first(self):
        approved = self.make_under_review(self.user, phone_number='+447700900101')
        rejected = self.make_under_review(self.business_user, phone_number='+447700900102')
        state_machine.approve(approved.subject_id, self.admin_user)
        state_machine.reject(rejected.subject_id, self.admin_user, 'licence expired')
        VerificationRequest.objects.filter(pk=approved.pk).update(reviewed_at=timezone.now() - timedelta(days=1))

        resolved = list(admin_review.list_resolved())

        self.assertEqual([r.pk for r in resolved], [rejected.pk, approved.pk])


class RequestDetailTestCase(BaseVerificationTestCase):
    """Test cases for get_request."""

    def test_get_request_context(self):
        request = self.make_under_review()

        context = admin_review.get_request(request.pk)

        self.assertEqual(context['request'], request)
        self.assertEqual(context['subject'].pk, request.subject_id)
        self.assertEqual([doc.kind for doc in context['documents']], ['identity_proof'])
        self.assertEqual(context['previous_rejections'], [])
        self.assertGreater(len(context['audit_log']), 0)

    def test_get_request_logs_admin_view(self):
        request = self.make_under_review()

        admin_review.get_request(request.pk, admin_user=self.admin_user)

        log = AdminActionLog.objects.get(action=AdminActionLog.Action.VIEW_VERIFICATION_REQUEST)
        self.assertEqual(log.admin_user, self.admin_user)
        self.assertEqual(log.target_user, self.user)
        self.assertEqual(log.details['request_id'], request.pk)

    def test_previous_rejections_listed(self):
        rejected = self.make_rejected(notes='blurry ID')
        state_machine.resubmit_reset(rejected.subject_id)
        self.upload()
        current = state_machine.submit(rejected.subject_id)

        context = admin_review.get_request(current.pk)

        self.assertEqual([r.pk for r in context['previous_rejections']], [rejected.pk])

    def test_get_request_not_found(self):
        with self.assertRaises(VerificationError) as ctx:
            admin_review.get_request(999999)

        self.assertEqual(ctx.exception.kind, ErrorKind.NOT_FOUND)


class ReviewDecisionWorkflowTestCase(BaseVerificationTestCase):
    """Test cases for approve_request and reject_request."""

    def test_approve_request(self):
        request = self.make_under_review()

        closed = admin_review.approve_request(request.pk, self.admin_user, notes='ok')

        self.assertEqual(closed.pk, request.pk)
        self.assertEqual(closed.outcome, VerificationRequest.Outcome.APPROVED)
        self.assertEqual(self.subject_of().status, VerificationSubject.Status.VERIFIED)
        self.assertTrue(
            AdminActionLog.objects.filter(action=AdminActionLog.Action.APPROVE_VERIFICATION, target_user=self.user).exists()
        )

    def test_reject_request(self):
        request = self.make_under_review()

        closed = admin_review.reject_request(request.pk, self.admin_user, '  blurry ID  ')

        self.assertEqual(closed.review_notes, 'blurry ID')
        self.assertEqual(self.subject_of().status, VerificationSubject.Status.REJECTED)
        log = AdminActionLog.objects.get(action=AdminActionLog.Action.REJECT_VERIFICATION)
        self.assertEqual(log.details['notes'], 'blurry ID')

    def test_reject_request_without_notes(self):
        request = self.make_under_review()

        with self.assertRaises(VerificationError) as ctx:
            admin_review.reject_request(request.pk, self.admin_user, '')

        self.assertEqual(ctx.exception.kind, ErrorKind.MISSING_REVIEW_NOTES)
        self.assertFalse(AdminActionLog.objects.filter(action=AdminActionLog.Action.REJECT_VERIFICATION).exists())
        self.assertEqual(VerificationRequest.objects.get().outcome, VerificationRequest.Outcome.PENDING)

    def test_decided_request_cannot_be_decided_again(self):
        request = self.make_under_review()
        admin_review.approve_request(request.pk, self.admin_user)

        with self.assertRaises(VerificationError) as ctx:
            admin_review.reject_request(request.pk, self.admin_user, 'too late')

        self.assertEqual(ctx.exception.kind, ErrorKind.INVALID_STATE)
        self.assertEqual(ctx.exception.details['outcome'], VerificationRequest.Outcome.APPROVED)

    def test_unknown_request(self):
        with self.assertRaises(VerificationError) as ctx:
            admin_review.approve_request(999999, self.admin_user)

        self.assertEqual(ctx.exception.kind, ErrorKind.NOT_FOUND)

    def test_stale_expected_version(self):
        request = self.make_under_review()
        version = self.subject_of().version

        with self.assertRaises(VerificationError) as ctx:
            admin_review.approve_request(request.pk, self.admin_user, expected_version=version - 1)

        self.assertEqual(ctx.exception.kind, ErrorKind.STALE_STATE)
        self.assertEqual(self.subject_of().status, VerificationSubject.Status.UNDER_REVIEW)

    def test_same_read_version_second_decision_is_stale(self):
        request = self.make_under_review()
        version = self.subject_of().version
        admin_review.approve_request(request.pk, self.admin_user, expected_version=version)

        with self.assertRaises(VerificationError) as ctx:
            admin_review.reject_request(request.pk, self.admin_user, 'blurry ID', expected_version=version)

        self.assertEqual(ctx.exception.kind, ErrorKind.STALE_STATE)
        self.assertEqual(ctx.exception.details['current_version'], version + 1)
        self.assertEqual(VerificationRequest.objects.get(pk=request.pk).outcome, VerificationRequest.Outcome.APPROVED)

    def test_decision_never_closes_a_newer_request(self):
        first = self.make_under_review()
        load_active_request = AdminReviewWorkflow._load_active_request
        newer = {}

        def load_then_resubmit(request_id, expected_version=None):
            loaded = load_active_request(request_id, expected_version)
            # Another reviewer rejects and the user resubmits before this decision commits
            state_machine.reject(loaded.subject_id, self.admin_user, 'blurry ID')
            state_machine.resubmit_reset(loaded.subject_id)
            self.upload()
            newer['request'] = state_machine.submit(loaded.subject_id)
            return loaded

        with patch.object(AdminReviewWorkflow, '_load_active_request', side_effect=load_then_resubmit):
            with self.assertRaises(VerificationError) as ctx:
                admin_review.approve_request(first.pk, self.admin_user)

        second = newer['request']
        self.assertEqual(ctx.exception.kind, ErrorKind.INVALID_STATE)
        self.assertEqual(ctx.exception.details['active_request_id'], second.pk)
        self.assertEqual(VerificationRequest.objects.get(pk=first.pk).outcome, VerificationRequest.Outcome.REJECTED)
        self.assertEqual(VerificationRequest.objects.get(pk=second.pk).outcome, VerificationRequest.Outcome.PENDING)
        self.assertEqual(self.subject_of().status, VerificationSubject.Status.UNDER_REVIEW)
        self.assertFalse(AdminActionLog.objects.filter(action=AdminActionLog.Action.APPROVE_VERIFICATION).exists())

    def test_state_machine_checks_named_request(self):
        request = self.make_under_review()

        with self.assertRaises(VerificationError) as ctx:
            state_machine.approve(request.subject_id, self.admin_user, request_id=request.pk + 1000)

        self.assertEqual(ctx.exception.kind, ErrorKind.INVALID_STATE)
        self.assertEqual(self.subject_of().status, VerificationSubject.Status.UNDER_REVIEW)
        self.assertEqual(VerificationRequest.objects.get().outcome, VerificationRequest.Outcome.PENDING)


class RejectionRecordTestCase(BaseVerificationTestCase):
    """Test cases for latest_rejection."""

    def test_no_rejection(self):
        self.assertIsNone(admin_review.latest_rejection(self.subject_of().pk))

    def test_latest_rejection_survives_resubmission(self):
        request = self.make_rejected(notes='blurry ID')
        state_machine.resubmit_reset(request.subject_id)

        record = admin_review.latest_rejection(request.subject_id)

        self.assertIsInstance(record, RejectionRecord)
        self.assertEqual(record.request_id, request.pk)
        self.assertEqual(record.notes, 'blurry ID')
        self.assertEqual(record.reviewer_id, self.admin_user.pk)
        self.assertIsNotNone(record.decided_at)

    def test_latest_of_several_rejections(self):
        first = self.make_rejected(notes='blurry ID')
        state_machine.resubmit_reset(first.subject_id)
        self.upload()
        second = state_machine.submit(first.subject_id)
        state_machine.reject(second.subject_id, self.admin_user, 'wrong document')

        record = admin_review.latest_rejection(first.subject_id)

        self.assertEqual(record.request_id, second.pk)
        self.assertEqual(record.notes, 'wrong document')
