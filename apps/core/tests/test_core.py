"""
Tests for core exceptions, environment guard, settings validation and models.
"""
from unittest.mock import patch

import pytest
from django.core.exceptions import ImproperlyConfigured
from django.http import HttpResponse
from django.test import RequestFactory
from rest_framework.exceptions import NotFound, ValidationError

from apps.core.apps import validate_jwt_secret
from apps.core.environment import (
    DEVELOPMENT, PRODUCTION, STAGING, current_environment, require_environment,
)
from apps.core.exceptions import (
    AccessDenied, EnvironmentGuardError, InvalidMembershipTransition, PolicyAlreadyExists,
    custom_exception_handler,
)
from apps.core.middleware import RequestIDMiddleware
from apps.core.sentry_utils import add_breadcrumb, traced
from apps.tenants.models import Business


def _handler_context(request_id='req-1'):
    request = RequestFactory().get('/v1/businesses')
    request.request_id = request_id
    return {'request': request}


class TestExceptionHandler:

    def test_access_denied_renders_as_not_found(self):
        response = custom_exception_handler(AccessDenied(), _handler_context())

        assert response.status_code == 404
        assert response.data == {'error': 'permission denied', 'code': 'PERMISSION_DENIED', 'request_id': 'req-1'}

    def test_domain_errors_use_their_status(self):
        response = custom_exception_handler(PolicyAlreadyExists('policy "x" already exists'), _handler_context())
        assert response.status_code == 409
        assert response.data['code'] == 'POLICY_ALREADY_EXISTS'

        response = custom_exception_handler(InvalidMembershipTransition('nope'), _handler_context())
        assert response.status_code == 409

    def test_drf_errors_get_request_id(self):
        response = custom_exception_handler(NotFound(), _handler_context('req-2'))

        assert response.status_code == 404
        assert response.data['request_id'] == 'req-2'

    def test_validation_error_keeps_field_errors(self):
        response = custom_exception_handler(ValidationError({'email': ['bad']}), _handler_context())

        assert response.status_code == 400
        assert response.data['email'] == ['bad']

    def test_unexpected_errors_are_500(self):
        response = custom_exception_handler(RuntimeError('boom'), _handler_context())

        assert response.status_code == 500
        assert response.data['error'] == 'Internal server error'
        assert 'boom' not in str(response.data)


class TestEnvironmentGuard:

    def test_defaults_to_production(self, settings):
        del settings.APP_ENVIRONMENT
        assert current_environment() == PRODUCTION

    def test_allowed_environment_passes(self, settings):
        settings.APP_ENVIRONMENT = DEVELOPMENT
        assert require_environment(DEVELOPMENT, operation='seed') == DEVELOPMENT

    def test_several_environments_may_be_allowed(self, settings):
        settings.APP_ENVIRONMENT = STAGING
        assert require_environment(DEVELOPMENT, STAGING) == STAGING

    @patch('apps.core.environment.SecurityLogger.log_environment_guard_violation')
    def test_other_environment_fails_loudly(self, mock_log, settings):
        settings.APP_ENVIRONMENT = PRODUCTION

        with pytest.raises(EnvironmentGuardError) as exc_info:
            require_environment(DEVELOPMENT, operation='create_default_admin')

        error = exc_info.value
        assert error.environment == PRODUCTION
        assert error.allowed == (DEVELOPMENT,)
        assert 'production' in error.message
        assert 'create_default_admin' in error.message
        mock_log.assert_called_once_with(PRODUCTION, (DEVELOPMENT,), 'create_default_admin')


class TestJWTSecretValidation:

    SECRET_KEY = 'django-secret-key-for-tests'
    GOOD = 'Xq7vN2pLm9Rt4Wz8Ks1Bd6Hf3Jy5Gc0A'

    def test_valid_secret(self):
        validate_jwt_secret(self.GOOD, self.SECRET_KEY)

    @pytest.mark.parametrize('secret, message', [
        (None, 'must be set'),
        ('short', 'at least 32 characters'),
        ('a' * 40, 'insufficient entropy'),
    ])
    def test_rejected_secrets(self, secret, message):
        with pytest.raises(ImproperlyConfigured, match=message):
            validate_jwt_secret(secret, self.SECRET_KEY)

    def test_must_differ_from_secret_key(self):
        with pytest.raises(ImproperlyConfigured, match='different from SECRET_KEY'):
            validate_jwt_secret(self.GOOD, self.GOOD)


class TestRequestIDMiddleware:

    def _run(self, **headers):
        request = RequestFactory().get('/', **headers)
        middleware = RequestIDMiddleware(lambda req: HttpResponse())
        return request, middleware(request)

    def test_generates_request_id(self):
        request, response = self._run()
        assert request.request_id
        assert response['X-Request-ID'] == request.request_id

    def test_reuses_inbound_request_id(self):
        request, response = self._run(HTTP_X_REQUEST_ID='abc-123')
        assert request.request_id == 'abc-123'
        assert response['X-Request-ID'] == 'abc-123'


@pytest.mark.django_db
class TestSoftDelete:

    def test_delete_hides_row(self, business):
        business.delete()

        assert business.is_deleted
        assert not Business.objects.filter(pk=business.pk).exists()
        assert Business.objects_with_deleted.filter(pk=business.pk).exists()

    def test_restore(self, business):
        business.delete()
        business.restore()

        assert not business.is_deleted
        assert Business.objects.filter(pk=business.pk).exists()

    def test_queryset_delete_is_soft(self, business, other_business):
        Business.objects.all().delete()

        assert Business.objects.count() == 0
        assert Business.objects_with_deleted.count() == 2

    def test_hard_delete(self, business):
        business.hard_delete()
        assert not Business.objects_with_deleted.filter(pk=business.pk).exists()


class TestSentryHelpers:

    def test_noop_without_dsn(self, settings):
        settings.SENTRY_DSN = ''

        with patch('apps.core.sentry_utils.sentry_sdk') as mock_sdk:
            add_breadcrumb(category='authz', message='denied')
            with traced('task.x', 'celery.task') as transaction:
                assert transaction is None

        mock_sdk.add_breadcrumb.assert_not_called()
        mock_sdk.start_transaction.assert_not_called()

    def test_traced_marks_failure_and_reraises(self, settings):
        settings.SENTRY_DSN = 'https://key@sentry.example/1'

        with patch('apps.core.sentry_utils.sentry_sdk') as mock_sdk:
            transaction = mock_sdk.start_transaction.return_value.__enter__.return_value
            with pytest.raises(RuntimeError):
                with traced('task.x', 'celery.task'):
                    raise RuntimeError('boom')

        transaction.set_status.assert_called_once_with('internal_error')


@pytest.mark.django_db
class TestLoggedTask:

    def test_result_is_returned_and_logged(self):
        from apps.rbac.tasks import refresh_active_user_businesses

        with patch('apps.core.tasks.logger') as mock_logger:
            result = refresh_active_user_businesses.apply().get()

        assert result['refreshed'] is True
        messages = [call.args[0] for call in mock_logger.info.call_args_list]
        assert messages == [
            'Task started: rbac.refresh_active_user_businesses',
            'Task completed: rbac.refresh_active_user_businesses',
        ]
