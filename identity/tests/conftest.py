import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from identity.models import Account
from identity.tests.factories import make_account


@pytest.fixture(autouse=True)
def _isolated_settings(settings):
    # Throttle counters live in the cache.
    cache.clear()
    settings.NOTIFICATIONS_ASYNC = False
    settings.ADMIN_BOOTSTRAP_SECRET = 'bootstrap-secret'
    settings.FRONTEND_URL = 'http://frontend.test'
    yield
    cache.clear()


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def admin_account(db):
    return make_account(Account.ROLE_ADMIN, email='admin@example.com')


@pytest.fixture
def patient_account(db):
    return make_account(Account.ROLE_PATIENT)
