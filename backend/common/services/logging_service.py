"""
Security logging service for admin actions on verification data.
"""
import logging

from django.db import DatabaseError

from common.models import AdminActionLog
from common.utils import get_client_ip

logger = logging.getLogger('security')


class LoggingService:
    """
    Centralized logging service for security-relevant admin events.
    """

    @staticmethod
    def log_admin_action(admin_user, action, request=None, target_user=None, details=None):
        """
        Log admin actions (view, approve, reject).

        Args:
            admin_user: Admin user performing the action
            action: AdminActionLog.Action choice
            request: HTTP request object (optional, used for the IP address)
            target_user: User affected by the action (optional)
            details: Additional details dict (optional)

        Returns:
            The created AdminActionLog, or None if the log row could not be written
        """
        try:
            log = AdminActionLog.objects.create(
                admin_user=admin_user,
                action=action,
                target_user=target_user,
                details=details or {},
                ip_address=get_client_ip(request) if request is not None else None
            )
        except DatabaseError as e:
            logger.error(f"Failed to create admin action log: {e}")
            return None

        target_str = f"→ {target_user.email}" if target_user else ""
        logger.warning(f"[ADMIN ACTION] {admin_user.email} {action} {target_str}")
        return log
