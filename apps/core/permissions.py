"""
Custom permissions for the application.
"""
from rest_framework import permissions


class IsAuthenticatedAndActive(permissions.BasePermission):
    """
    Permission that checks if user is authenticated and active.
    """
    def has_permission(self, request, view):
        if not request.user:
            return False
        return (
            request.user.is_authenticated and
            request.user.is_active
        )


class RoleBasedPermission(permissions.BasePermission):
    """Allows superusers and users whose role code is in ALLOWED_ROLES."""
    ALLOWED_ROLES = []

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False

        if request.user.is_superuser:
            return True

        if hasattr(request.user, 'role') and request.user.role:
            return request.user.role.code in self.ALLOWED_ROLES

        return False


class IsManagerOrAbove(RoleBasedPermission):
    """
    Permission that allows access to managers and above.
    Approvers of return requests.
    """
    ALLOWED_ROLES = ['ADMIN', 'MANAGER']


class IsWarehouseStaffOrAbove(RoleBasedPermission):
    """
    Permission that allows access to warehouse staff and above.
    Processors of approved return requests.
    """
    ALLOWED_ROLES = ['ADMIN', 'MANAGER', 'WAREHOUSE']
