"""
Base test classes and fixtures for verification tests.
"""
from io import BytesIO

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase
from PIL import Image
from rest_framework.test import APIClient

from apps.verification.models import VerificationSubject, VerificationDocument
from apps.verification.services.document_store import document_store
from apps.verification.services.requirements import requirement_resolver
from apps.verification.services.state_machine import state_machine

User = get_user_model()


class BaseVerificationTestCase(TestCase):
    """Base test case with common setup for verification tests."""

    def setUp(self):
        """Set up test fixtures."""
        cache.clear()
        self.client = APIClient()

        # Individual producer: phone + identity proof
        self.user = User.objects.create_user(
            email='producer@example.com',
            password='TestPass123!',
            full_name='Individual Producer',
            user_type=User.UserType.PRODUCER,
            account_type=User.AccountType.INDIVIDUAL,
        )

        # Business trader: phone + identity proof + business licence
        self.business_user = User.objects.create_user(
            email='trader@example.com',
            password='TestPass123!',
            full_name='Business Trader',
            user_type=User.UserType.TRADER,
            account_type=User.AccountType.BUSINESS,
        )

        # Admin reviewer
        self.admin_user = User.objects.create_superuser(
            email='admin@example.com',
            password='AdminPass123!',
        )

        # Another regular user for cross-user tests
        self.other_user = User.objects.create_user(
            email='otheruser@example.com',
            password='OtherPass123!',
        )

    def authenticate(self, user=None):
        """Authenticate a user for API requests."""
        if user is None:
            user = self.user
        self.client.force_authenticate(user=user)

    def subject_of(self, user=None) -> VerificationSubject:
        """Fresh copy of a user's verification subject."""
        return VerificationSubject.objects.select_related('user').get(user=user or self.user)

    def create_test_image(self, name='document.jpg', size=(100, 100), color='red', image_format='JPEG',
                          content_type='image/jpeg'):
        """Create an uploaded image file."""
        file = BytesIO()
        image = Image.new('RGB', size, color)
        image.save(file, image_format)
        return SimpleUploadedFile(name, file.getvalue(), content_type=content_type)

    def confirm_phone(self, user=None, phone_number='+447700900123'):
        return state_machine.confirm_phone(self.subject_of(user).pk, phone_number=phone_number)

    def upload(self, kind=VerificationDocument.Kind.IDENTITY_PROOF, user=None, **kwargs):
        return document_store.upload(self.subject_of(user).pk, kind, self.create_test_image(**kwargs))

    def make_ready(self, user=None, phone_number='+447700900123'):
        """Confirm the phone and upload every required document."""
        user = user or self.user
        self.confirm_phone(user, phone_number=phone_number)
        for kind in requirement_resolver.required_documents(user.account_type, user.user_type):
            self.upload(kind, user=user)
        return self.subject_of(user)

    def make_under_review(self, user=None, phone_number='+447700900123'):
        """Bring a subject to under_review; returns the pending request."""
        subject = self.make_ready(user, phone_number=phone_number)
        return state_machine.submit(subject.pk)

    def make_rejected(self, user=None, notes='blurry ID', phone_number='+447700900123'):
        """Bring a subject to rejected; returns the closed request."""
        request = self.make_under_review(user, phone_number=phone_number)
        return state_machine.reject(request.subject_id, self.admin_user, notes)


class APIEndpointTestMixin:
    """Mixin for testing API endpoints with common assertions."""

    def assert_response_success(self, response, status_code=200):
        """Assert response is successful."""
        self.assertEqual(response.status_code, status_code, getattr(response, 'data', None))

    def assert_error(self, response, status_code, kind):
        """Assert response is a tagged error of the given kind."""
        self.assertEqual(response.status_code, status_code, getattr(response, 'data', None))
        self.assertEqual(response.data['error'], kind)

    def assert_requires_authentication(self, url, method='get'):
        """Assert endpoint requires authentication."""
        self.client.force_authenticate(user=None)

        if method == 'get':
            response = self.client.get(url)
        elif method == 'post':
            response = self.client.post(url, {})
        elif method == 'put':
            response = self.client.put(url, {})
        elif method == 'delete':
            response = self.client.delete(url)

        self.assertEqual(response.status_code, 401)

    def assert_requires_admin(self, url, method='get', data=None):
        """Assert endpoint requires admin permissions."""
        self.authenticate(self.user)  # Regular user

        if method == 'get':
            response = self.client.get(url)
        elif method == 'post':
            response = self.client.post(url, data or {})

        self.assertEqual(response.status_code, 403)
