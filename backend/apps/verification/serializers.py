"""
Serializers for verification app.
Input serializers only check shape; workflow rules live in the services.
"""
from rest_framework import serializers

from apps.verification.models import VerificationDocument, VerificationRequest, VerificationAuditLog


# ====== Input ======

class VersionedActionSerializer(serializers.Serializer):
    """Optional optimistic concurrency token: the subject version the caller last read"""

    expected_version = serializers.IntegerField(required=False, min_value=0)


class SendCodeSerializer(serializers.Serializer):
    """Serializer for sending a phone confirmation code"""

    phone_number = serializers.CharField(max_length=20)


class VerifyCodeSerializer(serializers.Serializer):
    """Serializer for checking a phone confirmation code"""

    phone_number = serializers.CharField(max_length=20)
    code = serializers.CharField(min_length=6, max_length=6)


class BusinessInfoSerializer(VersionedActionSerializer):
    """Serializer for declared business info"""

    business_name = serializers.CharField(max_length=200)
    business_description = serializers.CharField(required=False, allow_blank=True, default='')
    business_license_number = serializers.CharField(required=False, allow_blank=True, default='', max_length=50)


class DocumentUploadSerializer(VersionedActionSerializer):
    """Serializer for a multipart document upload"""

    file = serializers.FileField()


class ApproveRequestSerializer(VersionedActionSerializer):
    """Serializer for approving a verification request"""

    notes = serializers.CharField(required=False, allow_blank=True, default='', max_length=1000)


class RejectRequestSerializer(VersionedActionSerializer):
    """Serializer for rejecting a verification request (notes are checked by the workflow)"""

    notes = serializers.CharField(required=False, allow_blank=True, default='', max_length=1000)


# ====== Self-service status ======

class StepStateSerializer(serializers.Serializer):
    step = serializers.CharField()
    complete = serializers.BooleanField()


class DocumentStateSerializer(serializers.Serializer):
    status = serializers.CharField()
    original_filename = serializers.CharField(allow_null=True)
    size = serializers.IntegerField(allow_null=True)
    content_type = serializers.CharField(allow_null=True)
    uploaded_at = serializers.DateTimeField(allow_null=True)


class BusinessInfoStateSerializer(serializers.Serializer):
    business_name = serializers.CharField()
    business_description = serializers.CharField(allow_blank=True)
    has_license_number = serializers.BooleanField()


class RejectionRecordSerializer(serializers.Serializer):
    request_id = serializers.IntegerField()
    notes = serializers.CharField()
    decided_at = serializers.DateTimeField()


class VerificationStatusSerializer(serializers.Serializer):
    """Serializer for the projected self-service status"""

    status = serializers.CharField()
    version = serializers.IntegerField()
    user_type = serializers.CharField()
    account_type = serializers.CharField()
    phone_confirmed = serializers.BooleanField()
    phone_number = serializers.CharField(allow_null=True)
    steps = StepStateSerializer(many=True)
    documents = serializers.DictField(child=DocumentStateSerializer())
    optional_documents = serializers.ListField(child=serializers.CharField())
    progress = serializers.IntegerField()
    can_submit = serializers.BooleanField()
    missing_steps = serializers.ListField(child=serializers.CharField())
    submitted_at = serializers.DateTimeField(allow_null=True)
    decided_at = serializers.DateTimeField(allow_null=True)
    business_info = BusinessInfoStateSerializer(allow_null=True)
    last_rejection = RejectionRecordSerializer(allow_null=True)


# ====== Documents and requests ======

class VerificationDocumentSerializer(serializers.ModelSerializer):
    """Serializer for a stored document"""

    kind_display = serializers.CharField(source='get_kind_display', read_only=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = VerificationDocument
        fields = [
            'kind',
            'kind_display',
            'status',
            'status_display',
            'original_filename',
            'size',
            'content_type',
            'uploaded_at',
        ]
        read_only_fields = fields


class VerificationRequestSerializer(serializers.ModelSerializer):
    """Serializer for a submission snapshot"""

    subject_id = serializers.IntegerField(read_only=True)
    user_email = serializers.EmailField(source='subject.user.email', read_only=True)
    user_full_name = serializers.CharField(source='subject.user.full_name', read_only=True)
    reviewed_by_email = serializers.EmailField(source='reviewed_by.email', read_only=True, default=None)
    outcome_display = serializers.CharField(source='get_outcome_display', read_only=True)

    class Meta:
        model = VerificationRequest
        fields = [
            'id',
            'subject_id',
            'user_email',
            'user_full_name',
            'user_type',
            'account_type',
            'business_info',
            'phone_confirmed',
            'documents',
            'outcome',
            'outcome_display',
            'submitted_at',
            'reviewed_at',
            'reviewed_by_email',
            'review_notes',
        ]
        read_only_fields = fields


class VerificationAuditLogSerializer(serializers.ModelSerializer):
    """Serializer for audit logs"""

    performed_by_email = serializers.EmailField(source='performed_by.email', read_only=True, default=None)
    action_display = serializers.CharField(source='get_action_display', read_only=True)

    class Meta:
        model = VerificationAuditLog
        fields = [
            'id',
            'action',
            'action_display',
            'performed_by_email',
            'details',
            'ip_address',
            'timestamp',
        ]
        read_only_fields = fields


class SubjectReviewSerializer(serializers.Serializer):
    """Live subject state shown to reviewers, licence number decrypted"""

    id = serializers.IntegerField()
    status = serializers.CharField()
    version = serializers.IntegerField()
    phone_confirmed = serializers.BooleanField()
    phone_number = serializers.CharField()
    business_name = serializers.CharField()
    business_description = serializers.CharField()
    business_license_number = serializers.CharField()
    submitted_at = serializers.DateTimeField(allow_null=True)
    decided_at = serializers.DateTimeField(allow_null=True)


class RequestDetailSerializer(serializers.Serializer):
    """Decision context for a reviewer"""

    request = VerificationRequestSerializer()
    subject = SubjectReviewSerializer()
    documents = VerificationDocumentSerializer(many=True)
    previous_rejections = VerificationRequestSerializer(many=True)
    audit_log = VerificationAuditLogSerializer(many=True)
