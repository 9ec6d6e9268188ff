"""
Account lifecycle: registration, email verification, login with lockout
accounting, and administrative approval.

Every cross-request rule is left to the database: unique indexes decide
duplicate registrations, the failed-login counter is updated under a row
lock, and verification consumes the token with a conditional update.
"""
from __future__ import annotations

import functools
import logging
import secrets
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional, Tuple, Union

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from identity.errors import (
    AccountLocked,
    DuplicateEmail,
    DuplicatePhone,
    Forbidden,
    InvalidCredentials,
    InvalidToken,
    NotVerified,
    PendingApproval,
    StorageError,
)
from identity.models import Account, PatientRecord
from identity.services.identifiers import ADMIN_PREFIX, generate_external_id
from identity.services.notifier import approval_notice, notifier, verification_notice

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# Role-specific registration payloads
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class PatientDetails:
    date_of_birth: date
    gender: str
    blood_group: str
    address: str = ''


@dataclass(frozen=True)
class StaffDetails:
    department: str
    hire_date: Optional[date] = None
    address: str = ''


@dataclass(frozen=True)
class DoctorDetails:
    department: str
    specialization: str
    experience: str
    license_number: str = ''
    hire_date: Optional[date] = None
    address: str = ''


RoleDetails = Union[PatientDetails, StaffDetails, DoctorDetails]

DETAILS_BY_ROLE = {
    Account.ROLE_PATIENT: PatientDetails,
    Account.ROLE_DOCTOR: DoctorDetails,
    Account.ROLE_NURSE: StaffDetails,
    Account.ROLE_RECEPTIONIST: StaffDetails,
    Account.ROLE_PHARMACY: StaffDetails,
}


def storage_errors(func):
    """Re-raise unexpected database failures as :class:`StorageError`."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except DatabaseError as exc:
            logger.exception("storage failure in %s", func.__name__)
            raise StorageError() from exc
    return wrapper


def normalize_email(email: str) -> str:
    return (email or '').strip().lower()


def _email_taken(email: str) -> bool:
    return Account.objects.filter(email=email).exists()


def _phone_taken(phone: str) -> bool:
    return Account.objects.filter(phone=phone).exists()


def _duplicate_error(email: str, phone: str, exc: IntegrityError):
    # The unique index fired; work out which one.
    if _email_taken(email):
        return DuplicateEmail()
    if _phone_taken(phone):
        return DuplicatePhone()
    logger.error("registration integrity failure not explained by email/phone: %s", exc)
    return StorageError()


def _check_details(role: str, details: RoleDetails) -> None:
    if role == Account.ROLE_ADMIN:
        raise ValidationError({'role': ['Admin accounts cannot be created through registration']})
    expected = DETAILS_BY_ROLE.get(role)
    if expected is None:
        raise ValidationError({'role': [f'Unknown role: {role}']})
    if type(details) is not expected:
        raise ValidationError({'role': [f'Registration details do not match role {role}']})


def _apply_details(account: Account, details: RoleDetails) -> None:
    account.address = details.address
    if isinstance(details, PatientDetails):
        account.date_of_birth = details.date_of_birth
        account.gender = details.gender
        account.blood_group = details.blood_group
        return
    account.department = details.department
    account.hire_date = details.hire_date or timezone.localdate()
    if isinstance(details, DoctorDetails):
        account.specialization = details.specialization
        account.experience = details.experience
        account.license_number = details.license_number


# ---------------------------------------------------------------------
# Registration & verification
# ---------------------------------------------------------------------
@storage_errors
def register_account(*, name: str, email: str, password: str, role: str, phone: str,
                     details: RoleDetails) -> Tuple[Account, str]:
    """Create an unverified account and return it with its verification token.

    Patients are approved immediately and get a :class:`PatientRecord`;
    other roles wait for :func:`set_approval`.  The verification email is
    sent after commit and never affects the outcome.
    """
    _check_details(role, details)
    email = normalize_email(email)
    phone = (phone or '').strip()

    if _email_taken(email):
        raise DuplicateEmail()
    if _phone_taken(phone):
        raise DuplicatePhone()

    token = secrets.token_hex(32)
    account = Account(
        name=name.strip(),
        email=email,
        phone=phone,
        role=role,
        is_verified=False,
        is_approved=(role == Account.ROLE_PATIENT),
        verification_token=token,
    )
    account.set_password(password)
    _apply_details(account, details)

    try:
        with transaction.atomic():
            account.save()
            if account.is_patient:
                PatientRecord.objects.create(account=account)
    except IntegrityError as exc:
        raise _duplicate_error(email, phone, exc) from exc

    logger.info("registered account %s (%s)", account.unique_id, account.role)
    notifier.dispatch(verification_notice(account, token))
    return account, token


@storage_errors
def verify_email(token: str) -> Account:
    """Consume a verification token.

    A token can succeed only once, and never for a deactivated account.
    """
    token = (token or '').strip()
    if not token:
        raise InvalidToken()
    pending = Account.objects.filter(
        verification_token=token, is_verified=False, is_active=True,
    ).only('pk').first()
    if pending is None:
        raise InvalidToken()
    consumed = Account.objects.filter(
        pk=pending.pk, verification_token=token, is_verified=False, is_active=True,
    ).update(
        is_verified=True, verification_token=None, updated_at=timezone.now(),
    )
    if not consumed:
        # Another request used the token first.
        raise InvalidToken()
    account = Account.objects.get(pk=pending.pk)
    logger.info("account %s verified its email", account.unique_id)
    return account


# ---------------------------------------------------------------------
# Login & lockout
# ---------------------------------------------------------------------
@storage_errors
def login(email: str, password: str) -> Account:
    now = timezone.now()
    account = Account.objects.filter(email=normalize_email(email)).first()
    if account is None or not account.is_active:
        raise InvalidCredentials()
    if account.is_locked(now):
        raise AccountLocked()
    if not account.is_verified:
        raise NotVerified()
    if not account.can_sign_in:
        raise PendingApproval()
    if not account.check_password(password):
        record_failed_attempt(account)
        raise InvalidCredentials()

    Account.objects.filter(pk=account.pk).update(login_attempts=0, lock_until=None, last_login=now)
    account.login_attempts = 0
    account.lock_until = None
    account.last_login = now
    logger.info("account %s signed in", account.unique_id)
    return account


@storage_errors
def record_failed_attempt(account: Account) -> Account:
    """Count one failed password check for ``account``.

    A lock that has already expired restarts the count at 1 instead of
    re-locking.  Otherwise the count goes up by one and reaching the
    threshold locks the account for ``ACCOUNT_LOCKOUT_MINUTES``.
    """
    threshold = settings.ACCOUNT_LOCKOUT_THRESHOLD
    with transaction.atomic():
        row = Account.objects.select_for_update().only('login_attempts', 'lock_until').get(pk=account.pk)
        now = timezone.now()
        if row.lock_until and row.lock_until <= now:
            row.login_attempts = 1
            row.lock_until = None
        else:
            row.login_attempts += 1
            if row.login_attempts >= threshold and not row.is_locked(now):
                row.lock_until = now + timedelta(minutes=settings.ACCOUNT_LOCKOUT_MINUTES)
                logger.warning("account %s locked until %s after %d failed logins",
                               account.pk, row.lock_until, row.login_attempts)
        row.save(update_fields=['login_attempts', 'lock_until'])

    account.login_attempts = row.login_attempts
    account.lock_until = row.lock_until
    return account


# ---------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------
def _require_admin(account: Account) -> None:
    if not (account.is_admin and account.is_active):
        raise Forbidden()


@storage_errors
def set_approval(admin: Account, target: Account, approved: bool) -> Account:
    """Approve or revoke a non-patient account.

    Approving stamps the approver and time.  Revoking only flips the flag
    and leaves the previous stamps as history.
    """
    _require_admin(admin)
    if target.is_patient:
        raise ValidationError({'userId': ['Patient accounts are always approved']})

    with transaction.atomic():
        row = Account.objects.select_for_update().get(pk=target.pk)
        row.is_approved = approved
        fields = ['is_approved', 'updated_at']
        if approved:
            row.approved_by = admin
            row.approved_at = timezone.now()
            fields += ['approved_by', 'approved_at']
        row.save(update_fields=fields)

    logger.info("account %s %s by admin %s", row.unique_id,
                'approved' if approved else 'approval revoked', admin.unique_id)
    notifier.dispatch(approval_notice(row, approved))
    return row


def pending_approvals():
    """Verified staff accounts still waiting for an admin."""
    return (
        Account.objects.filter(is_verified=True, is_approved=False, is_active=True)
        .exclude(role=Account.ROLE_PATIENT)
        .order_by('created_at')
    )


@storage_errors
def set_active(admin: Account, target: Account, active: bool) -> Account:
    """Soft-delete or restore ``target``."""
    _require_admin(admin)
    if target.pk == admin.pk and not active:
        raise ValidationError({'userId': ['Admins cannot deactivate themselves']})
    Account.objects.filter(pk=target.pk).update(is_active=active, updated_at=timezone.now())
    target.is_active = active
    logger.info("account %s %s by admin %s", target.unique_id,
                'reactivated' if active else 'deactivated', admin.unique_id)
    return target


@storage_errors
def create_admin(*, name: str, email: str, password: str, phone: str, secret: str) -> Account:
    """Provision the first admin account, gated by ``ADMIN_BOOTSTRAP_SECRET``."""
    expected = settings.ADMIN_BOOTSTRAP_SECRET
    if not expected or not secrets.compare_digest(secret or '', expected):
        raise Forbidden('Invalid admin secret')
    if Account.objects.filter(role=Account.ROLE_ADMIN).exists():
        raise ValidationError({'detail': ['Admin account already exists']})

    email = normalize_email(email)
    phone = (phone or '').strip()
    if _email_taken(email):
        raise DuplicateEmail('User with this email already exists')
    if _phone_taken(phone):
        raise DuplicatePhone()

    account = Account(
        name=name.strip(),
        email=email,
        phone=phone,
        role=Account.ROLE_ADMIN,
        is_verified=True,
        is_approved=True,
        is_superuser=True,
        unique_id=generate_external_id(ADMIN_PREFIX),
    )
    account.set_password(password)
    try:
        with transaction.atomic():
            account.save()
    except IntegrityError as exc:
        raise _duplicate_error(email, phone, exc) from exc
    logger.info("admin account %s created", account.unique_id)
    return account
