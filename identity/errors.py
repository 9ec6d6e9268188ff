"""
Typed failures raised by the identity services.

Each error is a Django REST framework ``APIException`` so the boundary
layer maps it to a fixed HTTP status without any per-view translation.
Field-level input problems use DRF's own ``ValidationError``.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.exceptions import APIException, NotFound as DRFNotFound, PermissionDenied


class DuplicateEmail(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'User already exists'
    default_code = 'duplicate_email'


class DuplicatePhone(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Phone number already registered'
    default_code = 'duplicate_phone'


class DuplicateEdge(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'A family request already exists between these users'
    default_code = 'duplicate_edge'


class InvalidCredentials(APIException):
    # Same message for unknown email and wrong password.
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid credentials'
    default_code = 'invalid_credentials'


class InvalidToken(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Invalid verification token'
    default_code = 'invalid_token'


class AccountLocked(APIException):
    status_code = status.HTTP_423_LOCKED
    default_detail = 'Account is temporarily locked due to too many failed login attempts'
    default_code = 'account_locked'


class NotVerified(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Please verify your email address first'
    default_code = 'not_verified'


class PendingApproval(APIException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = 'Your account is pending approval. Please contact the administrator.'
    default_code = 'pending_approval'


class Forbidden(PermissionDenied):
    default_detail = 'Access denied. Admin only.'
    default_code = 'forbidden'


class NotFound(DRFNotFound):
    default_detail = 'Not found'
    default_code = 'not_found'


class TargetNotFound(NotFound):
    default_detail = 'User not found'
    default_code = 'target_not_found'


class TargetNotVerified(APIException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'User has not verified their email'
    default_code = 'target_not_verified'


class StorageError(APIException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'Server error'
    default_code = 'storage_error'
