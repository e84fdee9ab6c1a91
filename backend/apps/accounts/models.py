from django.db import models
from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.utils import timezone
from .managers import UserManager


# ============================
# User Model
# ============================

class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom user model with email-based authentication.
    User type and account classification drive which verification steps apply.
    """

    class UserType(models.TextChoices):
        PRODUCER = "producer", "Producer"
        TRADER = "trader", "Trader"
        PURCHASER = "purchaser", "Purchaser"
        ADMIN = "admin", "Admin"

    class AccountType(models.TextChoices):
        INDIVIDUAL = "individual", "Individual"
        BUSINESS = "business", "Business"

    # Core fields
    email = models.EmailField(unique=True, db_index=True)
    full_name = models.CharField(max_length=150, blank=True)
    user_type = models.CharField(max_length=20, choices=UserType.choices, default=UserType.PURCHASER, db_index=True)
    account_type = models.CharField(max_length=20, choices=AccountType.choices, default=AccountType.INDIVIDUAL)

    # Account status
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)

    # Timestamps
    date_joined = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        indexes = [
            models.Index(fields=['user_type'], name='accounts_user_type_idx'),
        ]

    def __str__(self):
        return self.email

    @property
    def is_reviewer(self):
        """Admins and staff may adjudicate verification requests."""
        return self.is_active and (self.user_type == self.UserType.ADMIN or self.is_staff)
