"""
Authentication and account administration endpoints.

Registration, login and email verification answer with a fresh bearer
token and the account projection.  The admin endpoints act on the
caller's live account row, so a token that outlived its holder's admin
role still fails the service-level check.
"""
from __future__ import annotations

from django.conf import settings
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from identity.errors import AccountLocked, Forbidden, InvalidCredentials, TargetNotFound
from identity.models import Account
from identity.permissions import IsAdminRole, IsApproved
from identity.serializers.auth import (
    AccountSerializer,
    ApproveUserSerializer,
    CreateAdminSerializer,
    LoginSerializer,
    RegisterSerializer,
    SetActiveSerializer,
    VerifyEmailSerializer,
)
from identity.services import accounts
from identity.services.audit import try_log_action
from identity.services.tokens import issue_token


def _client_ip(request):
    return request.META.get('REMOTE_ADDR')


def _session_payload(account, **extra):
    payload = {'ok': True, 'token': issue_token(account), 'user': AccountSerializer(account).data}
    payload.update(extra)
    return payload


def _acting_admin(request) -> Account:
    admin = Account.objects.filter(pk=request.user.id, is_active=True).first()
    if admin is None:
        raise Forbidden()
    return admin


def _target(user_id) -> Account:
    target = Account.objects.filter(pk=user_id).first()
    if target is None:
        raise TargetNotFound()
    return target


def _registration_message(role: str) -> str:
    if role == Account.ROLE_PATIENT:
        return 'Registration successful! Please verify your email.'
    return 'Registration successful! Please wait for admin approval after email verification.'


@api_view(['POST'])
@permission_classes([AllowAny])
def register_view(request):
    s = RegisterSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data

    account, _token = accounts.register_account(
        name=vd['name'],
        email=vd['email'],
        password=vd['password'],
        role=vd['role'],
        phone=vd['phone'],
        details=vd['details'],
    )
    try_log_action(account=account, action='register', object_type='account', object_id=account.id,
                   detail={'role': account.role, 'ip': _client_ip(request)})
    return Response(
        _session_payload(account, message=_registration_message(account.role), emailSent=settings.EMAIL_CONFIGURED),
        status=201,
    )

register_view.cls.throttle_scope = 'register'


@api_view(['POST'])
@permission_classes([AllowAny])
def login_view(request):
    s = LoginSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    email = s.validated_data['email']

    try:
        account = accounts.login(email, s.validated_data['password'])
    except (InvalidCredentials, AccountLocked) as exc:
        # Audit failed attempts with the submitted email only.
        try_log_action(account=None, action='login', object_type='account',
                       detail={'result': exc.default_code, 'email': email, 'ip': _client_ip(request)})
        raise

    try_log_action(account=account, action='login', object_type='account', object_id=account.id,
                   detail={'result': 'ok', 'ip': _client_ip(request)})
    return Response(_session_payload(account))

# DRF ScopedRateThrottle reads throttle_scope from the wrapped view class
login_view.cls.throttle_scope = 'login'


@api_view(['POST'])
@permission_classes([AllowAny])
def verify_email_view(request):
    s = VerifyEmailSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    account = accounts.verify_email(s.validated_data['token'])
    try_log_action(account=account, action='verify_email', object_type='account', object_id=account.id)
    return Response(_session_payload(account, message='Email verified successfully!'))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsApproved])
def current_user_view(request):
    account = Account.objects.select_related('patient_record').filter(pk=request.user.id, is_active=True).first()
    if account is None:
        raise TargetNotFound()
    return Response(AccountSerializer(account).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def approve_user_view(request):
    s = ApproveUserSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data

    admin = _acting_admin(request)
    account = accounts.set_approval(admin, _target(vd['userId']), vd['approved'])
    try_log_action(account=admin, action='approve_user', object_type='account', object_id=account.id,
                   detail={'approved': vd['approved']})
    return Response({
        'ok': True,
        'message': 'User approved successfully' if vd['approved'] else 'User approval revoked',
        'user': AccountSerializer(account).data,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def pending_approvals_view(request):
    qs = accounts.pending_approvals()
    return Response(AccountSerializer(qs, many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def set_active_view(request):
    s = SetActiveSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data

    admin = _acting_admin(request)
    account = accounts.set_active(admin, _target(vd['userId']), vd['active'])
    try_log_action(account=admin, action='set_active', object_type='account', object_id=account.id,
                   detail={'active': vd['active']})
    return Response({'ok': True, 'user': AccountSerializer(account).data})


@api_view(['POST'])
@permission_classes([AllowAny])
def create_admin_view(request):
    s = CreateAdminSerializer(data=request.data)
    s.is_valid(raise_exception=True)
    vd = s.validated_data

    account = accounts.create_admin(
        name=vd['name'],
        email=vd['email'],
        password=vd['password'],
        phone=vd['phone'],
        secret=vd['adminSecret'],
    )
    try_log_action(account=account, action='create_admin', object_type='account', object_id=account.id,
                   detail={'ip': _client_ip(request)})
    return Response(_session_payload(account, message='Admin account created successfully!'), status=201)

create_admin_view.cls.throttle_scope = 'register'
