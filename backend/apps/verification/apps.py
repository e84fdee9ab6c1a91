"""
Verification app configuration.
Handles phone confirmation, document lifecycle, submission and admin review.
"""
from django.apps import AppConfig


class VerificationConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.verification'
    verbose_name = 'Verification'

    def ready(self):
        """Connect subject creation and progress cache receivers."""
        from apps.verification import receivers  # noqa: F401
