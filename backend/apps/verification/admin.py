"""
Admin panel configuration for verification models.
Records are read-only here: status changes go through the review API so that
every decision passes the state machine.
"""
from django.contrib import admin

from apps.verification.models import (
    VerificationSubject,
    VerificationDocument,
    VerificationRequest,
    VerificationAuditLog,
)


class ReadOnlyAdmin(admin.ModelAdmin):
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class VerificationDocumentInline(admin.TabularInline):
    model = VerificationDocument
    extra = 0
    can_delete = False
    fields = ['kind', 'status', 'original_filename', 'size', 'content_type', 'uploaded_at']
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(VerificationSubject)
class VerificationSubjectAdmin(ReadOnlyAdmin):
    list_display = ['user_email', 'status', 'phone_confirmed', 'submitted_at', 'decided_at', 'version']
    list_filter = ['status', 'phone_confirmed', 'user__account_type', 'user__user_type']
    search_fields = ['user__email', 'business_name']
    inlines = [VerificationDocumentInline]
    readonly_fields = [
        'user', 'status', 'version', 'phone_confirmed', 'phone_confirmed_at',
        'business_name', 'business_description',
        'submitted_at', 'decided_at', 'decided_by', 'decision_notes',
        'created_at', 'updated_at',
    ]
    exclude = ['phone_number', 'phone_number_hash', 'business_license_number_encrypted']

    @admin.display(description='User', ordering='user__email')
    def user_email(self, obj):
        return obj.user.email


@admin.register(VerificationRequest)
class VerificationRequestAdmin(ReadOnlyAdmin):
    list_display = ['id', 'user_email', 'account_type', 'outcome', 'submitted_at', 'reviewed_at', 'reviewed_by']
    list_filter = ['outcome', 'account_type', 'user_type']
    search_fields = ['subject__user__email']
    date_hierarchy = 'submitted_at'

    @admin.display(description='User', ordering='subject__user__email')
    def user_email(self, obj):
        return obj.subject.user.email


@admin.register(VerificationAuditLog)
class VerificationAuditLogAdmin(ReadOnlyAdmin):
    list_display = ['subject', 'action', 'performed_by', 'ip_address', 'timestamp']
    list_filter = ['action', 'timestamp']
    search_fields = ['subject__user__email', 'performed_by__email', 'ip_address']
    date_hierarchy = 'timestamp'
