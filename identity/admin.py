"""
Django admin registrations for the identity models.

Accounts are never deleted, so delete permission is removed for them and
for the records that reference them.
"""

from django.contrib import admin

from .models import Account, AuditEvent, FamilyRelationship, PatientRecord


class NoDeleteAdmin(admin.ModelAdmin):
    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Account)
class AccountAdmin(NoDeleteAdmin):
    list_display = ('unique_id', 'email', 'name', 'role', 'is_verified', 'is_approved', 'is_active', 'lock_until')
    list_filter = ('role', 'is_verified', 'is_approved', 'is_active')
    search_fields = ('unique_id', 'email', 'name', 'phone')
    readonly_fields = ('unique_id', 'password', 'verification_token', 'approved_by', 'approved_at',
                       'login_attempts', 'created_at', 'updated_at', 'last_login')
    exclude = ('groups', 'user_permissions')


@admin.register(PatientRecord)
class PatientRecordAdmin(NoDeleteAdmin):
    list_display = ('patient_id', 'account', 'created_at')
    search_fields = ('patient_id', 'account__email', 'account__name')
    readonly_fields = ('patient_id', 'account', 'created_at')


@admin.register(FamilyRelationship)
class FamilyRelationshipAdmin(admin.ModelAdmin):
    list_display = ('id', 'requester', 'requested', 'relationship', 'status', 'requested_at', 'responded_at')
    list_filter = ('status', 'relationship')
    search_fields = ('requester__email', 'requested__email')
    readonly_fields = ('requester', 'requested', 'requested_at', 'responded_at')


@admin.register(AuditEvent)
class AuditEventAdmin(NoDeleteAdmin):
    list_display = ('id', 'account', 'action', 'object_type', 'object_id', 'created_at')
    list_filter = ('action', 'object_type')
    search_fields = ('account__email', 'action')
    readonly_fields = ('account', 'action', 'object_type', 'object_id', 'detail', 'created_at')
