"""
Custom permission classes for role based access control.
"""
from rest_framework.permissions import BasePermission

from identity.errors import PendingApproval

# Roles allowed to open any patient record.
CLINICAL_ROLES = {"admin", "doctor", "nurse", "receptionist"}


class IsAdminRole(BasePermission):
    """Allow access only to tokens issued to an admin."""
    message = 'Access denied. Admin only.'

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) == "admin")


class IsApproved(BasePermission):
    """Approval gate: re-reads the account so a revoked approval applies at once."""
    message = 'Account not found or deactivated.'

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        from identity.models import Account

        user = getattr(request, "user", None)
        if not (user and user.is_authenticated):
            return False
        account = Account.objects.filter(pk=user.id, is_active=True).only("role", "is_approved").first()
        if account is None:
            return False
        if not account.can_sign_in:
            raise PendingApproval()
        return True


class CanAccessPatientRecord(BasePermission):
    """Clinical staff may open any record; a patient only their own."""
    message = 'Access denied for this patient record.'

    def has_object_permission(self, request, view, obj) -> bool:
        user = getattr(request, "user", None)
        if not (user and user.is_authenticated):
            return False
        if getattr(user, "role", None) in CLINICAL_ROLES:
            return True
        return getattr(user, "role", None) == "patient" and obj.account_id == user.id
