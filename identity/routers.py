"""
URL mappings for the back-office API.

Paths keep the client contract of the original front-end: no trailing
slashes, auth routes under ``api/auth`` and relationship routes under
``api/family``.
"""
from django.urls import path, include

from .views import auth, family, health, patients

urlpatterns = [
    path('', include('django_prometheus.urls')),
    path('healthz', health.healthz),

    path('api/auth/register', auth.register_view, name='register_view'),
    path('api/auth/login', auth.login_view, name='login_view'),
    path('api/auth/verify-email', auth.verify_email_view, name='verify_email_view'),
    path('api/auth/user', auth.current_user_view, name='current_user_view'),
    path('api/auth/approve-user', auth.approve_user_view, name='approve_user_view'),
    path('api/auth/pending-approvals', auth.pending_approvals_view, name='pending_approvals_view'),
    path('api/auth/create-admin', auth.create_admin_view, name='create_admin_view'),
    path('api/auth/set-active', auth.set_active_view, name='set_active_view'),

    path('api/family/search', family.family_search, name='family_search'),
    path('api/family/request', family.family_request, name='family_request'),
    path('api/family/requests', family.family_requests, name='family_requests'),
    path('api/family/respond', family.family_respond, name='family_respond'),
    path('api/family/remove', family.family_remove, name='family_remove'),

    path('api/patients/<str:patient_id>', patients.patient_detail, name='patient_detail'),
]
