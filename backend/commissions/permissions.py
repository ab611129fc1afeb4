from rest_framework.permissions import BasePermission

from accounts.models import User


class IsPlatformAdmin(BasePermission):
    """Allow access only to platform administrators. Superusers automatically pass."""

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        return request.user.is_platform_admin


class IsVehicleOwner(BasePermission):
    """
    Allow vehicle owners (users listing at least one vehicle) and administrators.
    Object access is limited to the owner's own commissions.
    """

    def has_permission(self, request, view):
        if not request.user or not request.user.is_authenticated:
            return False
        if request.user.is_platform_admin:
            return True
        return request.user.role == User.OWNER or request.user.vehicles.exists()

    def has_object_permission(self, request, view, obj):
        if request.user.is_platform_admin:
            return True
        return getattr(obj, "owner_id", None) == request.user.pk
