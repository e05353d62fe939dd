"""
Custom permission classes for role and module based access control.
"""
from rest_framework.permissions import BasePermission

from crm.services.permissions import METHOD_ACTIONS, check_user_permission

CLINIC_SIDE_ROLES = {"clinic", "agent", "doctor", "doctorStaff", "staff"}


def _role(request):
    user = getattr(request, "user", None)
    if not (user and user.is_authenticated):
        return None
    return getattr(user, "role", None)


class IsAdminRole(BasePermission):
    """Allow access only to platform administrators."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _role(request) == "admin"


class IsClinicSide(BasePermission):
    """Any account working inside a clinic, admins included."""
    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        return _role(request) in CLINIC_SIDE_ROLES | {"admin"}


def HasRole(*roles):
    """Build a permission class admitting only ``roles``."""
    allowed = frozenset(roles)

    class _HasRole(BasePermission):
        message = "Access denied"

        def has_permission(self, request, view) -> bool:
            return _role(request) in allowed

    _HasRole.__name__ = "HasRole_" + "_".join(sorted(allowed))
    return _HasRole


def ModulePermission(module_key, action=None, submodule=None):
    """Build a permission class gating on a module/action grant.

    The action defaults to the one implied by the HTTP method.  The
    denial reason from the resolver becomes the 403 message.
    """

    class _ModulePermission(BasePermission):
        message = "Permission denied"

        def has_permission(self, request, view) -> bool:
            user = getattr(request, "user", None)
            if not (user and user.is_authenticated):
                return False
            act = action or METHOD_ACTIONS.get(request.method, "read")
            result = check_user_permission(user, module_key, act, submodule)
            if not result.allowed:
                self.message = result.error or self.message
            return result.allowed

    _ModulePermission.__name__ = f"ModulePermission_{module_key}"
    return _ModulePermission
