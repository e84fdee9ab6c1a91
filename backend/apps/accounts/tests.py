from django.urls import reverse
from rest_framework.test import APITestCase
from rest_framework import status
from apps.accounts.models import User
from apps.verification.models import VerificationSubject


class TestAccountsAPI(APITestCase):

    def setUp(self):

        # URLs
        self.register_url = reverse("accounts:register")
        self.login_url = reverse("token_obtain_pair")
        self.me_url = reverse("accounts:me")

        # Test User
        self.user_data = {
            "email": "user@test.com",
            "full_name": "Test Trader",
            "user_type": "trader",
            "account_type": "business",
            "password": "StrongPass123!",
            "password_confirm": "StrongPass123!",
        }
        self.login_data = {
            "email": "user@test.com",
            "password": "StrongPass123!",
        }

    # ======================================================
    # REGISTER TESTS
    # ======================================================

    def test_register_success(self):

        response = self.client.post(self.register_url, self.user_data)

        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        user = User.objects.get(email="user@test.com")
        self.assertEqual(user.user_type, User.UserType.TRADER)
        self.assertEqual(user.account_type, User.AccountType.BUSINESS)

    def test_register_creates_not_started_verification(self):

        response = self.client.post(self.register_url, self.user_data)

        self.assertEqual(response.data["verification_status"], "not_started")
        subject = VerificationSubject.objects.get(user__email="user@test.com")
        self.assertEqual(subject.status, VerificationSubject.Status.NOT_STARTED)
        self.assertEqual(subject.version, 0)

    def test_register_duplicate_email(self):

        self.client.post(self.register_url, self.user_data)

        response = self.client.post(self.register_url, self.user_data)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_register_missing_password(self):

        response = self.client.post(self.register_url, {
            "email": "nopass@test.com"
        })

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_register_password_mismatch(self):

        data = {**self.user_data, "password_confirm": "Different123!"}
        response = self.client.post(self.register_url, data)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("password_confirm", response.data)
        self.assertEqual(response.data["error"], "validation_error")

    def test_register_cannot_choose_admin_type(self):

        data = {**self.user_data, "user_type": "admin"}
        response = self.client.post(self.register_url, data)

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("user_type", response.data)

    # ======================================================
    # JWT LOGIN TESTS
    # ======================================================

    def test_jwt_login_success(self):

        self.client.post(self.register_url, self.user_data)

        response = self.client.post(self.login_url, self.login_data)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn("access", response.data)
        self.assertIn("refresh", response.data)

    def test_login_wrong_password(self):

        self.client.post(self.register_url, self.user_data)

        response = self.client.post(self.login_url, {
            "email": "user@test.com",
            "password": "WrongPassword123"
        })

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_login_non_existing_user(self):

        response = self.client.post(self.login_url, {
            "email": "ghost@test.com",
            "password": "123456"
        })

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    # ======================================================
    # PROTECTED ENDPOINT TESTS
    # ======================================================

    def test_me_endpoint_requires_auth(self):

        response = self.client.get(self.me_url)

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data["error"], "not_authenticated")

    def test_me_endpoint_with_token(self):

        # Register
        self.client.post(self.register_url, self.user_data)

        # Login
        login_response = self.client.post(self.login_url, self.login_data)
        token = login_response.data["access"]

        # Set Authorization Header
        self.client.credentials(
            HTTP_AUTHORIZATION=f"Bearer {token}"
        )

        response = self.client.get(self.me_url)

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["email"], "user@test.com")
        self.assertEqual(response.data["verification_status"], "not_started")

    # ======================================================
    # SECURITY TESTS
    # ======================================================

    def test_inactive_user_cannot_login(self):

        # Register user
        self.client.post(self.register_url, self.user_data)

        user = User.objects.get(email="user@test.com")
        user.is_active = False
        user.save()

        response = self.client.post(self.login_url, self.login_data)

        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_reviewer_flag(self):

        staff = User.objects.create_user(email="staff@test.com", password="x", is_staff=True)
        admin = User.objects.create_superuser(email="root@test.com", password="x")
        member = User.objects.create_user(email="member@test.com", password="x")

        self.assertTrue(staff.is_reviewer)
        self.assertTrue(admin.is_reviewer)
        self.assertFalse(member.is_reviewer)
