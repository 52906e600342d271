"""
DRF permission classes for the MHAR-BSI API.

Each class delegates to the corresponding User.can_*() method,
keeping authorization logic in one place.
"""

from rest_framework.permissions import BasePermission

DENIED_MESSAGE = '權限不足'


class IsStudyUser(BasePermission):
    """Any authenticated account (both roles)."""

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated)


class CanManageUsers(BasePermission):
    """Administrators only."""

    message = DENIED_MESSAGE

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return request.user.can_manage_users()


class CanReviewDeleteRequests(BasePermission):
    """Administrators only."""

    message = DENIED_MESSAGE

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return request.user.can_review_delete_requests()


class CanEditGuide(BasePermission):
    """Administrators only."""

    message = DENIED_MESSAGE

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return request.user.can_edit_guide()


class IsSubmissionOwnerOrAdmin(BasePermission):
    """Object-level: the submitting account, or anyone who sees all submissions."""

    message = DENIED_MESSAGE

    def has_permission(self, request, view):
        return bool(request.user and request.user.is_authenticated)

    def has_object_permission(self, request, view, obj):
        return request.user.can_view_submission(obj)
