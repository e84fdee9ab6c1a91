from django.contrib.auth.base_user import BaseUserManager


class UserManager(BaseUserManager):
    """
    Email-login manager. Classification defaults to an individual purchaser,
    the account with the fewest verification steps.
    """

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError("Email is required")

        extra_fields.setdefault("user_type", self.model.UserType.PURCHASER)
        extra_fields.setdefault("account_type", self.model.AccountType.INDIVIDUAL)

        user = self.model(email=self.normalize_email(email), **extra_fields)
        user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        """Superusers are reviewers: staff with the admin user type."""
        extra_fields.setdefault("is_staff", True)
        extra_fields.setdefault("is_superuser", True)
        extra_fields.setdefault("user_type", self.model.UserType.ADMIN)

        if not extra_fields.get("is_staff") or not extra_fields.get("is_superuser"):
            raise ValueError("Superuser must be staff and superuser")

        return self.create_user(email, password, **extra_fields)
