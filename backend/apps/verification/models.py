from django.db import models
from django.conf import settings


def document_upload_path(instance, filename):
    return f"verifications/{instance.subject_id}/{instance.kind}/{filename}"


class VerificationSubject(models.Model):
    """
    One verification record per user.
    `status` is written only by the state machine, through a compare-and-swap on
    (status, version).
    """

    class Status(models.TextChoices):
        NOT_STARTED = "not_started", "Not started"
        IN_PROGRESS = "in_progress", "In progress"
        UNDER_REVIEW = "under_review", "Under review"
        VERIFIED = "verified", "Verified"
        REJECTED = "rejected", "Rejected"

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="verification_subject")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.NOT_STARTED, db_index=True)
    version = models.PositiveIntegerField(default=0)

    phone_confirmed = models.BooleanField(default=False)
    phone_number = models.CharField(max_length=20, blank=True)
    phone_number_hash = models.CharField(max_length=64, unique=True, null=True, blank=True)
    phone_confirmed_at = models.DateTimeField(null=True, blank=True)

    business_name = models.CharField(max_length=200, blank=True)
    business_description = models.TextField(blank=True)
    business_license_number_encrypted = models.TextField(blank=True)

    submitted_at = models.DateTimeField(null=True, blank=True)
    decided_at = models.DateTimeField(null=True, blank=True)
    decided_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="verification_decisions")
    decision_notes = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "verification_subjects"

    def __str__(self):
        return f"{self.user.email} - {self.get_status_display()}"

    @property
    def user_type(self):
        return self.user.user_type

    @property
    def account_type(self):
        return self.user.account_type

    @property
    def business_license_number(self):
        from common.services.encryption import get_encryption_service
        return get_encryption_service().decrypt(self.business_license_number_encrypted)

    def business_info(self):
        """
        Declared business info as carried by a submission snapshot.
        Raises DecryptionError rather than recording an unreadable licence number as empty.
        """
        from common.services.encryption import get_encryption_service
        if not (self.business_name or self.business_description or self.business_license_number_encrypted):
            return None
        return {
            'business_name': self.business_name,
            'business_description': self.business_description,
            'business_license_number': get_encryption_service().decrypt(
                self.business_license_number_encrypted, strict=True
            ),
        }


class VerificationDocument(models.Model):
    """
    An uploaded verification artifact. A missing row means the document is absent.
    """

    class Kind(models.TextChoices):
        IDENTITY_PROOF = "identity_proof", "Identity proof"
        BUSINESS_LICENSE = "business_license", "Business license"
        FARM_CERTIFICATION = "farm_certification", "Farm certification"

    class Status(models.TextChoices):
        UPLOADED = "uploaded", "Uploaded"
        UNDER_REVIEW = "under_review", "Under review"
        VERIFIED = "verified", "Verified"
        REJECTED = "rejected", "Rejected"

    ABSENT = "absent"

    subject = models.ForeignKey(VerificationSubject, on_delete=models.CASCADE, related_name="documents")
    kind = models.CharField(max_length=30, choices=Kind.choices)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.UPLOADED)
    original_filename = models.CharField(max_length=255)
    size = models.PositiveIntegerField()
    content_type = models.CharField(max_length=100)
    content = models.FileField(upload_to=document_upload_path, max_length=500)
    uploaded_at = models.DateTimeField()

    class Meta:
        db_table = "verification_documents"
        constraints = [
            models.UniqueConstraint(fields=["subject", "kind"], name="unique_document_per_kind"),
        ]
        ordering = ["kind"]

    def __str__(self):
        return f"{self.subject.user.email} - {self.kind} ({self.status})"

    def snapshot(self):
        """Immutable copy of this document as stored on a VerificationRequest."""
        return {
            'kind': self.kind,
            'status': self.status,
            'original_filename': self.original_filename,
            'size': self.size,
            'content_type': self.content_type,
            'uploaded_at': self.uploaded_at.isoformat(),
            'content': self.content.name,
        }


class VerificationRequest(models.Model):
    """
    A submission for review. Created by submit, closed once by approve/reject,
    never modified otherwise.
    """

    class Outcome(models.TextChoices):
        PENDING = "pending", "Pending"
        APPROVED = "approved", "Approved"
        REJECTED = "rejected", "Rejected"

    subject = models.ForeignKey(VerificationSubject, on_delete=models.CASCADE, related_name="requests")
    user_type = models.CharField(max_length=20)
    account_type = models.CharField(max_length=20)
    business_info = models.JSONField(null=True, blank=True)
    phone_confirmed = models.BooleanField()
    documents = models.JSONField(default=list)

    outcome = models.CharField(max_length=20, choices=Outcome.choices, default=Outcome.PENDING, db_index=True)
    submitted_at = models.DateTimeField(db_index=True)
    reviewed_at = models.DateTimeField(null=True, blank=True)
    reviewed_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="reviewed_verification_requests")
    review_notes = models.TextField(blank=True)

    class Meta:
        db_table = "verification_requests"
        ordering = ["submitted_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["subject"],
                condition=models.Q(outcome="pending"),
                name="one_pending_request_per_subject",
            ),
        ]

    def __str__(self):
        return f"Request #{self.pk} for {self.subject.user.email} ({self.outcome})"

    @property
    def is_active(self):
        return self.outcome == self.Outcome.PENDING


class VerificationAuditLog(models.Model):
    class Action(models.TextChoices):
        PHONE_CODE_SENT = "PHONE_CODE_SENT", "Phone code sent"
        PHONE_CONFIRMED = "PHONE_CONFIRMED", "Phone confirmed"
        BUSINESS_INFO_UPDATED = "BUSINESS_INFO_UPDATED", "Business info updated"
        DOCUMENT_UPLOADED = "DOCUMENT_UPLOADED", "Document uploaded"
        DOCUMENT_REMOVED = "DOCUMENT_REMOVED", "Document removed"
        SUBMITTED = "SUBMITTED", "Submitted"
        APPROVED = "APPROVED", "Approved"
        REJECTED = "REJECTED", "Rejected"
        RESUBMIT_RESET = "RESUBMIT_RESET", "Resubmission reset"

    subject = models.ForeignKey(VerificationSubject, on_delete=models.CASCADE, related_name="audit_logs")
    action = models.CharField(max_length=30, choices=Action.choices)
    performed_by = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="performed_verification_actions")
    details = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = "verification_audit_logs"
        ordering = ["-timestamp", "-id"]

    def __str__(self):
        return f"{self.subject.user.email} - {self.get_action_display()}"
