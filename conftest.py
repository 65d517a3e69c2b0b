"""
Pytest configuration and fixtures.
"""
import pytest
from django.core.cache import cache


@pytest.fixture(autouse=True)
def clear_cache():
    """Drop cached state (refresh locks) between tests."""
    cache.clear()
    yield
    cache.clear()


@pytest.fixture
def api_client():
    """Return DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def make_user(db):
    """Factory for users with unique emails."""
    from apps.rbac.models import User

    counter = {'n': 0}

    def _make_user(email=None, **fields):
        counter['n'] += 1
        email = email or f"user{counter['n']}@example.com"
        return User.objects.create_user(email=email, password='testpass123', **fields)

    return _make_user


@pytest.fixture
def make_business(db):
    """Factory for businesses with unique slugs."""
    from apps.tenants.models import Business

    counter = {'n': 0}

    def _make_business(name=None, **fields):
        counter['n'] += 1
        name = name or f"Business {counter['n']}"
        fields.setdefault('slug', f"business-{counter['n']}")
        fields.setdefault('email', f"contact{counter['n']}@example.com")
        fields.setdefault('industry', 'other')
        return Business.objects.create(name=name, **fields)

    return _make_business


@pytest.fixture
def make_membership(db):
    """Factory for memberships (active by default)."""
    from apps.rbac.models import Membership

    def _make_membership(user, business, role='staff', status='active'):
        return Membership.objects.create(user=user, business=business, role=role, status=status)

    return _make_membership


@pytest.fixture
def business(make_business):
    return make_business('Test Business', slug='test-business')


@pytest.fixture
def other_business(make_business):
    """Create another business for isolation tests."""
    return make_business('Other Business', slug='other-business')


@pytest.fixture
def owner(make_user, make_membership, business):
    """User A: owner of ``business``."""
    user = make_user('owner@example.com')
    make_membership(user, business, role='owner')
    return user


@pytest.fixture
def admin_user(make_user, make_membership, business):
    user = make_user('admin@example.com')
    make_membership(user, business, role='admin')
    return user


@pytest.fixture
def manager(make_user, make_membership, business):
    user = make_user('manager@example.com')
    make_membership(user, business, role='manager')
    return user


@pytest.fixture
def staff(make_user, make_membership, business):
    """User B: staff of ``business``."""
    user = make_user('staff@example.com')
    make_membership(user, business, role='staff')
    return user


@pytest.fixture
def client_member(make_user, make_membership, business):
    user = make_user('client@example.com')
    make_membership(user, business, role='client')
    return user


@pytest.fixture
def outsider(make_user, make_membership, other_business):
    """User with a membership in ``other_business`` only."""
    user = make_user('outsider@example.com')
    make_membership(user, other_business, role='owner')
    return user


@pytest.fixture
def context_for():
    """Build an AccessContext for a user (or anonymous when None)."""
    from apps.rbac.context import AccessContext

    def _context_for(user=None, business=None, **meta):
        if user is None:
            return AccessContext.anonymous(**meta)
        return AccessContext.for_user(user, business_id=getattr(business, 'pk', business), **meta)

    return _context_for


@pytest.fixture
def auth_header():
    """Authorization header kwargs for the test client."""
    from apps.rbac.services import AuthService

    def _auth_header(user, business=None):
        headers = {'HTTP_AUTHORIZATION': f'Bearer {AuthService.generate_jwt(user)}'}
        if business is not None:
            headers['HTTP_X_BUSINESS_ID'] = str(business.pk)
        return headers

    return _auth_header


@pytest.fixture
def policy_registry(settings):
    """A fresh registry loaded from ACCESS_POLICIES."""
    from apps.rbac.policies import PolicyRegistry
    return PolicyRegistry().load_from_config(settings.ACCESS_POLICIES)
