"""
Custom permissions for verification app.
"""
from rest_framework import permissions


class IsVerificationReviewer(permissions.BasePermission):
    """
    Permission for admin staff to review verification requests.
    """

    message = "Admin role required to review verifications"

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        return request.user.is_reviewer
