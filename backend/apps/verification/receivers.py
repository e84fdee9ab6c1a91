"""
Signal receivers: subject creation on account creation and progress cache invalidation.
"""
import logging

from django.conf import settings
from django.db.models.signals import post_save
from django.dispatch import receiver

from apps.verification.models import VerificationSubject
from apps.verification.services import progress
from apps.verification.signals import documents_changed, subject_transitioned

logger = logging.getLogger(__name__)


@receiver(post_save, sender=settings.AUTH_USER_MODEL, dispatch_uid='verification_create_subject')
def create_verification_subject(sender, instance, created, **kwargs):
    """Every new account starts with a not_started verification record."""
    if not created or kwargs.get('raw'):
        return
    VerificationSubject.objects.get_or_create(user=instance)
    logger.debug(f"Verification subject created for user {instance.pk}")


@receiver(documents_changed, dispatch_uid='verification_documents_changed')
@receiver(subject_transitioned, dispatch_uid='verification_subject_transitioned')
def invalidate_progress(sender, subject_id, **kwargs):
    progress.invalidate(subject_id)
