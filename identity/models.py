"""
Database models for the identity subsystem.

The account table is the credential store: one row per account with the
lifecycle flags (verified, approved, locked) that the account services
drive.  Family relationships are directed request edges between two
accounts.  Uniqueness and the cross-field invariants are declared as
database constraints so that concurrent requests cannot violate them.
"""
from __future__ import annotations

from django.contrib.auth.base_user import AbstractBaseUser, BaseUserManager
from django.contrib.auth.models import PermissionsMixin
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from .services.identifiers import new_account_id, new_patient_id


class AccountManager(BaseUserManager):
    use_in_migrations = True

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('email is required')
        email = self.normalize_email(email).strip().lower()
        account = self.model(email=email, **extra_fields)
        account.set_password(password)
        account.save(using=self._db)
        return account

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('role', Account.ROLE_ADMIN)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('is_verified', True)
        extra_fields.setdefault('is_approved', True)
        return self.create_user(email, password, **extra_fields)


class Account(AbstractBaseUser, PermissionsMixin):
    """A credentialed identity with a role and lifecycle flags.

    Patients are approved from creation; every other role waits for an
    administrator.  ``verification_token`` only exists until the email
    address is confirmed.  ``login_attempts`` and ``lock_until`` implement
    the temporary lockout after repeated password failures.  Accounts are
    deactivated through ``is_active`` and never deleted.
    """
    ROLE_ADMIN = 'admin'
    ROLE_DOCTOR = 'doctor'
    ROLE_NURSE = 'nurse'
    ROLE_RECEPTIONIST = 'receptionist'
    ROLE_PHARMACY = 'pharmacy'
    ROLE_PATIENT = 'patient'
    ROLE_CHOICES = (
        (ROLE_ADMIN, 'Administrator'),
        (ROLE_DOCTOR, 'Doctor'),
        (ROLE_NURSE, 'Nurse'),
        (ROLE_RECEPTIONIST, 'Receptionist'),
        (ROLE_PHARMACY, 'Pharmacy'),
        (ROLE_PATIENT, 'Patient'),
    )
    STAFF_ROLES = (ROLE_DOCTOR, ROLE_NURSE, ROLE_RECEPTIONIST, ROLE_PHARMACY)

    GENDER_CHOICES = (('male', 'Male'), ('female', 'Female'), ('other', 'Other'))
    BLOOD_GROUP_CHOICES = tuple(
        (g, g) for g in ('A+', 'A-', 'B+', 'B-', 'AB+', 'AB-', 'O+', 'O-')
    )

    unique_id = models.CharField(max_length=20, unique=True, default=new_account_id)
    name = models.CharField(max_length=255)
    email = models.EmailField(max_length=254, unique=True)
    phone = models.CharField(max_length=32, unique=True)
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=ROLE_PATIENT)
    address = models.CharField(max_length=255, blank=True)

    # Staff
    department = models.CharField(max_length=128, blank=True)
    hire_date = models.DateField(null=True, blank=True)
    # Doctors
    specialization = models.CharField(max_length=128, blank=True)
    experience = models.CharField(max_length=64, blank=True)
    license_number = models.CharField(max_length=64, blank=True)
    # Patients
    date_of_birth = models.DateField(null=True, blank=True)
    gender = models.CharField(max_length=10, choices=GENDER_CHOICES, blank=True)
    blood_group = models.CharField(max_length=3, choices=BLOOD_GROUP_CHOICES, blank=True)

    is_active = models.BooleanField(default=True)
    is_verified = models.BooleanField(default=False)
    is_approved = models.BooleanField(default=False)
    approved_by = models.ForeignKey(
        'self', null=True, blank=True, on_delete=models.PROTECT, related_name='approved_accounts'
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    verification_token = models.CharField(max_length=64, unique=True, null=True, blank=True)

    login_attempts = models.PositiveIntegerField(default=0)
    lock_until = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = AccountManager()

    USERNAME_FIELD = 'email'
    EMAIL_FIELD = 'email'
    REQUIRED_FIELDS = ['name', 'phone']

    class Meta:
        indexes = [
            models.Index(fields=['role', 'is_approved'], name='account_role_approved_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(approved_by__isnull=True, approved_at__isnull=True)
                    | Q(approved_by__isnull=False, approved_at__isnull=False)
                ),
                name='account_approval_stamps_together',
            ),
            models.CheckConstraint(
                condition=~Q(role='patient') | Q(is_approved=True, approved_by__isnull=True),
                name='account_patient_always_approved',
            ),
        ]

    def __str__(self) -> str:
        return f"{self.email} ({self.role})"

    @property
    def is_patient(self) -> bool:
        return self.role == self.ROLE_PATIENT

    @property
    def is_admin(self) -> bool:
        return self.role == self.ROLE_ADMIN

    @property
    def is_staff(self) -> bool:
        # Django admin site access.
        return self.is_admin

    @property
    def can_sign_in(self) -> bool:
        """Approval gate: patients bypass it, everyone else needs an admin."""
        return self.is_patient or self.is_approved

    def is_locked(self, now=None) -> bool:
        now = now or timezone.now()
        return bool(self.lock_until and self.lock_until > now)


class PatientRecord(models.Model):
    """Display handle for a patient account.

    Medical data owned by other parts of the back office hangs off this
    record; only its identity and ownership live here.
    """
    account = models.OneToOneField(Account, on_delete=models.PROTECT, related_name='patient_record')
    patient_id = models.CharField(max_length=20, unique=True, default=new_patient_id)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self) -> str:
        return f"{self.patient_id} -> {self.account_id}"


class FamilyRelationship(models.Model):
    """A directed family-connection request between two accounts.

    ``pair_low``/``pair_high`` hold the two account ids in sorted order so
    that the unique constraint covers the unordered pair: at most one edge
    may ever exist between two accounts, whatever its direction or status.
    """
    STATUS_PENDING = 'pending'
    STATUS_ACCEPTED = 'accepted'
    STATUS_DECLINED = 'declined'
    STATUS_CHOICES = (
        (STATUS_PENDING, 'pending'),
        (STATUS_ACCEPTED, 'accepted'),
        (STATUS_DECLINED, 'declined'),
    )
    DECISIONS = (STATUS_ACCEPTED, STATUS_DECLINED)

    RELATIONSHIP_CHOICES = tuple(
        (r, r) for r in ('spouse', 'parent', 'child', 'sibling', 'grandparent', 'grandchild', 'other')
    )

    requester = models.ForeignKey(Account, on_delete=models.PROTECT, related_name='family_requests_sent')
    requested = models.ForeignKey(Account, on_delete=models.PROTECT, related_name='family_requests_received')
    pair_low = models.BigIntegerField(editable=False)
    pair_high = models.BigIntegerField(editable=False)
    relationship = models.CharField(max_length=16, choices=RELATIONSHIP_CHOICES)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING, db_index=True)
    requested_at = models.DateTimeField(default=timezone.now)
    responded_at = models.DateTimeField(null=True, blank=True)
    notes = models.TextField(blank=True)

    class Meta:
        indexes = [
            models.Index(fields=['requester', 'status'], name='family_requester_status_idx'),
            models.Index(fields=['requested', 'status'], name='family_requested_status_idx'),
        ]
        constraints = [
            models.UniqueConstraint(fields=['pair_low', 'pair_high'], name='family_unique_pair'),
            models.CheckConstraint(condition=~Q(requester=F('requested')), name='family_not_self'),
            models.CheckConstraint(
                condition=(
                    Q(status='pending', responded_at__isnull=True)
                    | (~Q(status='pending') & Q(responded_at__isnull=False))
                ),
                name='family_responded_at_matches_status',
            ),
        ]

    def save(self, *args, **kwargs):
        self.pair_low, self.pair_high = sorted((self.requester_id, self.requested_id))
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"{self.requester_id} -> {self.requested_id} ({self.relationship}, {self.status})"


class AuditEvent(models.Model):
    account = models.ForeignKey(Account, on_delete=models.SET_NULL, null=True, blank=True)
    action = models.CharField(max_length=64)
    object_type = models.CharField(max_length=64, blank=True, null=True)
    object_id = models.BigIntegerField(blank=True, null=True)
    detail = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        indexes = [
            models.Index(fields=['action', 'created_at'], name='audit_action_created_idx'),
            models.Index(fields=['object_type', 'object_id', 'created_at'], name='audit_object_created_idx'),
        ]

    def __str__(self):
        return f"{self.action}:{self.account_id}@{self.created_at:%F %T}"
