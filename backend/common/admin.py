"""
Admin panel for the reviewer action trail.
"""
from django.contrib import admin
from django.urls import NoReverseMatch, reverse
from django.utils.html import format_html

from common.models import AdminActionLog

ACTION_COLORS = {
    AdminActionLog.Action.VIEW_VERIFICATION_REQUEST: '#17A2B8',
    AdminActionLog.Action.APPROVE_VERIFICATION: '#28A745',
    AdminActionLog.Action.REJECT_VERIFICATION: '#DC3545',
}


@admin.register(AdminActionLog)
class AdminActionLogAdmin(admin.ModelAdmin):
    """Who viewed or decided which verification request. Append-only."""

    list_display = ['timestamp', 'admin_user', 'colored_action', 'target_user', 'verification_request', 'ip_address']
    list_filter = ['action', 'timestamp']
    list_select_related = ['admin_user', 'target_user']
    search_fields = ['admin_user__email', 'target_user__email', 'ip_address']
    readonly_fields = ['admin_user', 'action', 'target_user', 'verification_request', 'details', 'ip_address', 'timestamp']
    date_hierarchy = 'timestamp'

    @admin.display(description='Action', ordering='action')
    def colored_action(self, obj):
        return format_html(
            '<span style="color: {}; font-weight: bold;">{}</span>',
            ACTION_COLORS.get(obj.action, '#6C757D'),
            obj.get_action_display(),
        )

    @admin.display(description='Request')
    def verification_request(self, obj):
        request_id = (obj.details or {}).get('request_id')
        if request_id is None:
            return '-'
        try:
            url = reverse('admin:verification_verificationrequest_change', args=[request_id])
        except NoReverseMatch:
            return f'#{request_id}'
        return format_html('<a href="{}">#{}</a>', url, request_id)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return request.user.is_superuser
