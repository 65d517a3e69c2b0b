"""
Tests for rbac management commands.
"""
from io import StringIO

import pytest
from django.conf import settings as django_settings
from django.core.management import call_command
from django.core.management.base import CommandError

from apps.rbac.models import Membership, User
from apps.rbac.policies import default_registry


@pytest.fixture
def restore_registry():
    """Reload the default registry after a test mutates it."""
    yield default_registry
    default_registry.clear()
    default_registry.load_from_config(django_settings.ACCESS_POLICIES)


def _run(*args, **options):
    out = StringIO()
    call_command(*args, stdout=out, **options)
    return out.getvalue()


@pytest.mark.django_db
class TestCreateDefaultAdmin:

    def test_creates_admin_in_development(self, settings):
        settings.APP_ENVIRONMENT = 'development'

        output = _run('create_default_admin')

        user = User.objects.get(email='admin@oblivionstack.com')
        assert user.is_superuser
        assert user.check_password('admin')
        assert 'Created administrator' in output

    def test_is_idempotent(self, settings):
        settings.APP_ENVIRONMENT = 'development'
        _run('create_default_admin')

        output = _run('create_default_admin')

        assert 'already exists' in output
        assert User.objects.filter(email='admin@oblivionstack.com').count() == 1

    def test_provisions_business(self, settings):
        settings.APP_ENVIRONMENT = 'development'

        _run('create_default_admin', email='dev@example.com', business='Dev Shop')
        output = _run('create_default_admin', email='dev@example.com', business='Dev Shop')

        membership = Membership.objects.get(user__email='dev@example.com')
        assert membership.role == 'owner'
        assert membership.status == 'active'
        assert membership.business.name == 'Dev Shop'
        assert 'Business already exists' in output

    @pytest.mark.parametrize('environment', ['production', 'staging'])
    def test_refuses_outside_development(self, settings, environment):
        settings.APP_ENVIRONMENT = environment

        with pytest.raises(CommandError) as exc_info:
            _run('create_default_admin')

        assert environment in str(exc_info.value)
        assert not User.objects.filter(email='admin@oblivionstack.com').exists()


@pytest.mark.django_db
class TestShowAccessPolicies:

    def test_lists_configured_tables(self):
        output = _run('show_access_policies')

        assert 'public.business_locations:' in output
        assert 'Users can delete from own business business_locations' in output
        assert 'Service role has full access to businesses' in output

    def test_table_filter(self):
        output = _run('show_access_policies', table='user_preferences')

        assert 'public.user_preferences:' in output
        assert 'public.businesses:' not in output

    def test_drop_keeps_table_enforced(self, restore_registry):
        output = _run('show_access_policies', drop='business_locations', table='business_locations')

        assert 'Dropped 4 policies' in output
        assert 'no policies, all access denied' in output
        assert restore_registry.is_enforced('business_locations')

    def test_reapply_restores_policies(self, restore_registry):
        _run('show_access_policies', drop='business_locations')

        output = _run('show_access_policies', reapply=True, table='business_locations')

        assert 'Reapplied' in output
        assert len(restore_registry.policies_for('business_locations')) == 4
