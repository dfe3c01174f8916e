import pytest
from django.core.cache import cache
from rest_framework.test import APIClient

from .utils.factories import make_admin, make_pattern, make_user


@pytest.fixture(autouse=True)
def clear_cache():
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def admin_user(db):
    return make_admin(first_name='Ada', last_name='Admin', email='ada@example.com')


@pytest.fixture
def member_user(db):
    return make_user(first_name='Max', last_name='Member', email='max@example.com')


@pytest.fixture
def pattern(admin_user):
    return make_pattern(admin_user)


@pytest.fixture
def api_client():
    return APIClient()
