"""
Tests for the verification API endpoints.
"""
from unittest.mock import patch

from django.core.files.storage import default_storage
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import override_settings
from django.urls import reverse

from apps.verification.models import VerificationSubject, VerificationDocument, VerificationRequest
from apps.verification.services.state_machine import state_machine
from apps.verification.tests.base import BaseVerificationTestCase, APIEndpointTestMixin
from common.models import AdminActionLog

Kind = VerificationDocument.Kind


def document_url(kind):
    return reverse('verification:document', kwargs={'kind': kind})


class StatusEndpointTestCase(BaseVerificationTestCase, APIEndpointTestMixin):
    """Test cases for the status endpoint."""

    def setUp(self):
        super().setUp()
        self.url = reverse('verification:status')

    def test_requires_authentication(self):
        self.assert_requires_authentication(self.url)

    def test_initial_status(self):
        self.authenticate()

        response = self.client.get(self.url)

        self.assert_response_success(response)
        self.assertEqual(response.data['status'], 'not_started')
        self.assertEqual(response.data['version'], 0)
        self.assertEqual(response.data['progress'], 0)
        self.assertFalse(response.data['can_submit'])
        self.assertEqual(response.data['missing_steps'], ['phone_confirmation', 'identity_proof'])
        self.assertEqual(
            response.data['steps'],
            [{'step': 'phone_confirmation', 'complete': False}, {'step': 'identity_proof', 'complete': False}],
        )
        self.assertEqual(response.data['documents']['identity_proof']['status'], 'absent')
        self.assertIsNone(response.data['documents']['identity_proof']['original_filename'])
        self.assertEqual(response.data['optional_documents'], ['farm_certification'])
        self.assertIsNone(response.data['business_info'])
        self.assertIsNone(response.data['last_rejection'])

    def test_business_status_lists_license(self):
        self.authenticate(self.business_user)

        response = self.client.get(self.url)

        self.assertIn('business_license', response.data['documents'])
        self.assertEqual(response.data['optional_documents'], [])
        self.assertIn('business_license', response.data['missing_steps'])

    def test_ready_status(self):
        self.make_ready()
        self.authenticate()

        response = self.client.get(self.url)

        self.assertEqual(response.data['status'], 'in_progress')
        self.assertEqual(response.data['progress'], 100)
        self.assertTrue(response.data['can_submit'])
        self.assertEqual(response.data['documents']['identity_proof']['status'], 'uploaded')

    def test_rejected_status_shows_notes(self):
        request = self.make_rejected(notes='blurry ID')
        self.authenticate()

        response = self.client.get(self.url)

        self.assertEqual(response.data['status'], 'rejected')
        self.assertEqual(response.data['last_rejection']['notes'], 'blurry ID')
        self.assertEqual(response.data['last_rejection']['request_id'], request.pk)


class DocumentEndpointTestCase(BaseVerificationTestCase, APIEndpointTestMixin):
    """Test cases for document upload and removal."""

    def test_requires_authentication(self):
        self.assert_requires_authentication(document_url(Kind.IDENTITY_PROOF), method='post')
        self.assert_requires_authentication(document_url(Kind.IDENTITY_PROOF), method='delete')

    def test_upload(self):
        self.authenticate()

        response = self.client.post(
            document_url(Kind.IDENTITY_PROOF),
            {'file': self.create_test_image(name='passport.jpg')},
            format='multipart',
        )

        self.assert_response_success(response, 201)
        self.assertEqual(response.data['kind'], 'identity_proof')
        self.assertEqual(response.data['status'], 'uploaded')
        self.assertEqual(response.data['original_filename'], 'passport.jpg')

    def test_upload_missing_file(self):
        self.authenticate()

        response = self.client.post(document_url(Kind.IDENTITY_PROOF), {}, format='multipart')

        self.assert_error(response, 400, 'validation_error')

    @override_settings(VERIFICATION_MAX_DOCUMENT_SIZE=100)
    def test_upload_too_large(self):
        self.authenticate()

        response = self.client.post(
            document_url(Kind.IDENTITY_PROOF),
            {'file': self.create_test_image()},
            format='multipart',
        )

        self.assert_error(response, 413, 'payload_too_large')
        self.assertEqual(response.data['max_size'], 100)

    def test_upload_not_an_image(self):
        self.authenticate()
        pdf = SimpleUploadedFile('id.pdf', b'%PDF-1.4 fake', content_type='application/pdf')

        response = self.client.post(document_url(Kind.IDENTITY_PROOF), {'file': pdf}, format='multipart')

        self.assert_error(response, 415, 'unsupported_media_type')

    def test_upload_kind_not_applicable(self):
        self.authenticate()

        response = self.client.post(
            document_url(Kind.BUSINESS_LICENSE),
            {'file': self.create_test_image()},
            format='multipart',
        )

        self.assert_error(response, 400, 'validation_error')

    def test_upload_under_review(self):
        self.make_under_review()
        self.authenticate()

        response = self.client.post(
            document_url(Kind.IDENTITY_PROOF),
            {'file': self.create_test_image()},
            format='multipart',
        )

        self.assert_error(response, 409, 'invalid_state')

    def test_upload_stale_version(self):
        self.authenticate()
        self.confirm_phone()

        response = self.client.post(
            document_url(Kind.IDENTITY_PROOF),
            {'file': self.create_test_image(), 'expected_version': 0},
            format='multipart',
        )

        self.assert_error(response, 409, 'stale_state')
        self.assertTrue(response.data['retryable'])
        self.assertEqual(response.data['current_version'], 1)

    def test_upload_storage_down(self):
        self.authenticate()

        with patch.object(default_storage, 'save', side_effect=OSError('disk full')):
            response = self.client.post(
                document_url(Kind.IDENTITY_PROOF),
                {'file': self.create_test_image()},
                format='multipart',
            )

        self.assert_error(response, 503, 'upstream_unavailable')

    def test_remove(self):
        self.confirm_phone()
        self.upload()
        self.authenticate()

        response = self.client.delete(document_url(Kind.IDENTITY_PROOF))

        self.assert_response_success(response)
        self.assertEqual(response.data['documents']['identity_proof']['status'], 'absent')
        self.assertFalse(response.data['can_submit'])

    def test_remove_absent(self):
        self.confirm_phone()
        self.authenticate()

        response = self.client.delete(document_url(Kind.IDENTITY_PROOF))

        self.assert_error(response, 404, 'not_found')
        self.assertEqual(response.data['document_kind'], Kind.IDENTITY_PROOF)

    def test_documents_are_per_user(self):
        self.upload(user=self.other_user)
        self.authenticate()

        response = self.client.get(reverse('verification:status'))

        self.assertEqual(response.data['documents']['identity_proof']['status'], 'absent')


class BusinessInfoEndpointTestCase(BaseVerificationTestCase, APIEndpointTestMixin):
    """Test cases for the business info endpoint."""

    def setUp(self):
        super().setUp()
        self.url = reverse('verification:business_info')

    def test_update_business_info(self):
        self.authenticate(self.business_user)

        response = self.client.put(
            self.url,
            {'business_name': 'Green Valley Trading', 'business_license_number': 'CR-778'},
            format='json',
        )

        self.assert_response_success(response)
        self.assertEqual(response.data['business_info']['business_name'], 'Green Valley Trading')
        self.assertTrue(response.data['business_info']['has_license_number'])
        self.assertNotIn('CR-778', str(response.data))

    def test_individual_account(self):
        self.authenticate()

        response = self.client.put(self.url, {'business_name': 'My Farm'}, format='json')

        self.assert_error(response, 400, 'validation_error')

    def test_missing_name(self):
        self.authenticate(self.business_user)

        response = self.client.put(self.url, {}, format='json')

        self.assert_error(response, 400, 'validation_error')


class SubmitEndpointTestCase(BaseVerificationTestCase, APIEndpointTestMixin):
    """Test cases for submit and resubmit."""

    def setUp(self):
        super().setUp()
        self.submit_url = reverse('verification:submit')
        self.resubmit_url = reverse('verification:resubmit')

    def test_submit(self):
        self.make_ready()
        self.authenticate()

        response = self.client.post(self.submit_url, {}, format='json')

        self.assert_response_success(response, 201)
        self.assertEqual(response.data['outcome'], 'pending')
        self.assertEqual(response.data['user_email'], self.user.email)
        self.assertEqual(self.subject_of().status, VerificationSubject.Status.UNDER_REVIEW)

    def test_submit_gate_not_satisfied(self):
        self.confirm_phone(self.business_user)
        self.upload(Kind.IDENTITY_PROOF, user=self.business_user)
        self.authenticate(self.business_user)

        response = self.client.post(self.submit_url, {}, format='json')

        self.assert_error(response, 422, 'gate_not_satisfied')
        self.assertEqual(response.data['missing_steps'], ['business_license'])
        self.assertEqual(response.data['status'], 'in_progress')

    def test_submit_with_current_version(self):
        subject = self.make_ready()
        self.authenticate()

        response = self.client.post(self.submit_url, {'expected_version': subject.version}, format='json')

        self.assert_response_success(response, 201)

    def test_resubmit(self):
        self.make_rejected(notes='blurry ID')
        self.authenticate()

        response = self.client.post(self.resubmit_url, {}, format='json')

        self.assert_response_success(response)
        self.assertEqual(response.data['status'], 'in_progress')
        self.assertTrue(response.data['phone_confirmed'])
        self.assertEqual(response.data['documents']['identity_proof']['status'], 'absent')
        self.assertEqual(response.data['last_rejection']['notes'], 'blurry ID')

    def test_resubmit_when_not_rejected(self):
        self.make_ready()
        self.authenticate()

        response = self.client.post(self.resubmit_url, {}, format='json')

        self.assert_error(response, 409, 'invalid_state')


class AdminEndpointTestCase(BaseVerificationTestCase, APIEndpointTestMixin):
    """Test cases for the reviewer endpoints."""

    def setUp(self):
        super().setUp()
        self.pending_url = reverse('verification:list_pending')
        self.resolved_url = reverse('verification:list_resolved')

    def approve_url(self, request_id):
        return reverse('verification:approve_request', kwargs={'request_id': request_id})

    def reject_url(self, request_id):
        return reverse('verification:reject_request', kwargs={'request_id': request_id})

    def test_requires_authentication(self):
        self.assert_requires_authentication(self.pending_url)

    def test_requires_admin(self):
        request = self.make_under_review()

        self.assert_requires_admin(self.pending_url)
        self.assert_requires_admin(self.resolved_url)
        self.assert_requires_admin(reverse('verification:request_details', kwargs={'request_id': request.pk}))
        self.assert_requires_admin(self.approve_url(request.pk), method='post')
        self.assert_requires_admin(self.reject_url(request.pk), method='post', data={'notes': 'x'})
        self.assertEqual(self.subject_of().status, VerificationSubject.Status.UNDER_REVIEW)

    def test_staff_reviewer_allowed(self):
        self.other_user.is_staff = True
        self.other_user.save()
        self.authenticate(self.other_user)

        response = self.client.get(self.pending_url)

        self.assert_response_success(response)

    def test_list_pending(self):
        request = self.make_under_review()
        self.authenticate(self.admin_user)

        response = self.client.get(self.pending_url)

        self.assert_response_success(response)
        self.assertEqual([r['id'] for r in response.data], [request.pk])
        self.assertEqual(response.data[0]['documents'][0]['kind'], 'identity_proof')

    def test_request_details(self):
        state_machine.update_business_info(
            self.subject_of(self.business_user).pk,
            'Green Valley Trading',
            business_license_number='CR-778',
        )
        request = self.make_under_review(self.business_user)
        self.authenticate(self.admin_user)

        response = self.client.get(reverse('verification:request_details', kwargs={'request_id': request.pk}))

        self.assert_response_success(response)
        self.assertEqual(response.data['request']['id'], request.pk)
        self.assertEqual(response.data['subject']['business_license_number'], 'CR-778')
        self.assertEqual(len(response.data['documents']), 2)
        self.assertTrue(AdminActionLog.objects.filter(action=AdminActionLog.Action.VIEW_VERIFICATION_REQUEST).exists())

    def test_request_details_not_found(self):
        self.authenticate(self.admin_user)

        response = self.client.get(reverse('verification:request_details', kwargs={'request_id': 999999}))

        self.assert_error(response, 404, 'not_found')

    def test_approve(self):
        request = self.make_under_review()
        self.authenticate(self.admin_user)

        response = self.client.post(self.approve_url(request.pk), {'notes': 'ok'}, format='json')

        self.assert_response_success(response)
        self.assertEqual(response.data['outcome'], 'approved')
        self.assertEqual(response.data['reviewed_by_email'], self.admin_user.email)
        self.assertEqual(self.subject_of().status, VerificationSubject.Status.VERIFIED)

        resolved = self.client.get(self.resolved_url)
        self.assertEqual([r['id'] for r in resolved.data], [request.pk])

    def test_reject(self):
        request = self.make_under_review()
        self.authenticate(self.admin_user)

        response = self.client.post(self.reject_url(request.pk), {'notes': 'blurry ID'}, format='json')

        self.assert_response_success(response)
        self.assertEqual(response.data['outcome'], 'rejected')
        self.assertEqual(self.subject_of().status, VerificationSubject.Status.REJECTED)

    def test_reject_without_notes(self):
        request = self.make_under_review()
        self.authenticate(self.admin_user)

        response = self.client.post(self.reject_url(request.pk), {}, format='json')

        self.assert_error(response, 400, 'missing_review_notes')
        self.assertEqual(VerificationRequest.objects.get().outcome, VerificationRequest.Outcome.PENDING)

    def test_decide_twice(self):
        request = self.make_under_review()
        self.authenticate(self.admin_user)
        self.client.post(self.approve_url(request.pk), {}, format='json')

        response = self.client.post(self.reject_url(request.pk), {'notes': 'too late'}, format='json')

        self.assert_error(response, 409, 'invalid_state')

    def test_concurrent_reviewers(self):
        request = self.make_under_review()
        version = self.subject_of().version
        self.authenticate(self.admin_user)

        first = self.client.post(self.approve_url(request.pk), {'expected_version': version}, format='json')
        second = self.client.post(
            self.reject_url(request.pk),
            {'notes': 'blurry ID', 'expected_version': version},
            format='json',
        )

        self.assert_response_success(first)
        self.assert_error(second, 409, 'stale_state')
        self.assertTrue(second.data['retryable'])
        self.assertEqual(second.data['current_version'], version + 1)
        self.assertEqual(self.subject_of().status, VerificationSubject.Status.VERIFIED)


class WorkflowEndToEndTestCase(BaseVerificationTestCase, APIEndpointTestMixin):
    """Full rejection and resubmission cycle through the API."""

    def test_reject_resubmit_approve(self):
        self.confirm_phone()
        self.authenticate()
        self.client.post(document_url(Kind.IDENTITY_PROOF), {'file': self.create_test_image()}, format='multipart')
        first = self.client.post(reverse('verification:submit'), {}, format='json')
        self.assert_response_success(first, 201)

        self.authenticate(self.admin_user)
        self.client.post(
            reverse('verification:reject_request', kwargs={'request_id': first.data['id']}),
            {'notes': 'blurry ID'},
            format='json',
        )

        self.authenticate()
        self.assert_response_success(self.client.post(reverse('verification:resubmit'), {}, format='json'))
        self.client.post(document_url(Kind.IDENTITY_PROOF), {'file': self.create_test_image()}, format='multipart')
        second = self.client.post(reverse('verification:submit'), {}, format='json')
        self.assert_response_success(second, 201)

        self.authenticate(self.admin_user)
        approved = self.client.post(
            reverse('verification:approve_request', kwargs={'request_id': second.data['id']}),
            {},
            format='json',
        )
        self.assert_response_success(approved)

        self.authenticate()
        status_response = self.client.get(reverse('verification:status'))
        self.assertEqual(status_response.data['status'], 'verified')
        self.assertEqual(status_response.data['progress'], 100)
        self.assertEqual(status_response.data['documents']['identity_proof']['status'], 'verified')
        self.assertEqual(status_response.data['last_rejection']['notes'], 'blurry ID')
