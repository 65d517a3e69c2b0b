"""
Tests for structured logging, PII masking and security events.
"""
import json
import logging
import sys
from unittest.mock import patch

from django.test import SimpleTestCase

from apps.core.logging import JSONFormatter, PIIMasker, PIIMaskingFilter, SecurityLogger
from apps.rbac.context import AccessContext


class PIIMaskerTestCase(SimpleTestCase):
    """Test PII masking functionality."""

    def test_mask_email_addresses(self):
        text = "Contact user@example.com or admin@test.org"
        masked = PIIMasker.mask_email(text)

        self.assertIn("u***@example.com", masked)
        self.assertNotIn("user@example.com", masked)
        self.assertIn("a****@test.org", masked)

    def test_mask_tokens(self):
        text = 'token=eyJhbGciOi and password="hunter2"'
        masked = PIIMasker.mask_tokens(text)

        self.assertNotIn("eyJhbGciOi", masked)
        self.assertNotIn("hunter2", masked)
        self.assertIn("********", masked)

    def test_mask_dict_sensitive_fields(self):
        data = {
            'business_id': 'b1',
            'email': 'john@example.com',
            'jwt_secret_key': 'abc',
            'attempts': 3,
        }

        masked = PIIMasker.mask_dict(data)

        self.assertEqual(masked['business_id'], 'b1')
        self.assertEqual(masked['email'], '********')
        self.assertEqual(masked['jwt_secret_key'], '********')
        self.assertEqual(masked['attempts'], 3)

    def test_mask_nested_dict_and_lists(self):
        data = {
            'owner': {'email': 'john@example.com', 'role': 'owner'},
            'notes': ['ping jane@example.com'],
        }

        masked = PIIMasker.mask_dict(data)

        self.assertEqual(masked['owner']['email'], '********')
        self.assertEqual(masked['owner']['role'], 'owner')
        self.assertNotIn('jane@example.com', masked['notes'][0])

    def test_non_strings_pass_through(self):
        self.assertIsNone(PIIMasker.mask_text(None))
        self.assertEqual(PIIMasker.mask_dict(['x']), ['x'])


class JSONFormatterTestCase(SimpleTestCase):

    def _record(self, msg, args=(), **extra):
        record = logging.LogRecord('apps.test', logging.INFO, __file__, 10, msg, args, None)
        for key, value in extra.items():
            setattr(record, key, value)
        return record

    def test_basic_fields(self):
        output = json.loads(JSONFormatter().format(self._record("Policy applied")))

        self.assertEqual(output['level'], 'INFO')
        self.assertEqual(output['logger'], 'apps.test')
        self.assertEqual(output['message'], 'Policy applied')
        self.assertTrue(output['timestamp'].endswith('Z'))

    def test_extra_fields_are_included_and_masked(self):
        record = self._record(
            "Invite sent to %s", ('new@example.com',),
            request_id='req-1',
            business_id='b-1',
        )

        output = json.loads(JSONFormatter().format(record))

        self.assertEqual(output['request_id'], 'req-1')
        self.assertEqual(output['business_id'], 'b-1')
        self.assertNotIn('new@example.com', output['message'])

    def test_unserializable_extra_is_stringified(self):
        record = self._record("x", context=AccessContext.anonymous())
        output = json.loads(JSONFormatter().format(record))
        self.assertIn('AccessContext', output['context'])

    def test_exception_info(self):
        try:
            raise ValueError("bad token for bob@example.com")
        except ValueError:
            record = logging.LogRecord('apps.test', logging.ERROR, __file__, 1, 'failed', (), sys.exc_info())

        output = json.loads(JSONFormatter().format(record))

        self.assertEqual(output['exception']['type'], 'ValueError')
        self.assertNotIn('bob@example.com', output['exception']['message'])


class PIIMaskingFilterTestCase(SimpleTestCase):

    def test_masks_message_and_args(self):
        record = logging.LogRecord(
            'apps.test', logging.INFO, __file__, 1, 'User %s logged in from %s', ('ann@example.com', 'token=abc'), None
        )

        self.assertTrue(PIIMaskingFilter().filter(record))

        message = record.getMessage()
        self.assertNotIn('ann@example.com', message)
        self.assertNotIn('abc', message)


class SecurityLoggerTestCase(SimpleTestCase):

    def test_access_denied_goes_to_security_logger(self):
        context = AccessContext.anonymous(request_id='req-9', ip_address='10.0.0.1')

        with self.assertLogs('security', level='INFO') as logs:
            SecurityLogger.log_access_denied(context, 'public.businesses', 'select', 'no_matching_policy')

        record = logs.records[0]
        self.assertEqual(record.event_type, 'access_denied')
        self.assertEqual(record.resource, 'public.businesses')
        self.assertEqual(record.reason, 'no_matching_policy')
        self.assertEqual(record.user_id, '00000000-0000-0000-0000-000000000000')
        self.assertEqual(record.request_id, 'req-9')

    @patch('apps.core.logging.sentry_sdk.capture_message')
    def test_access_denied_is_not_sent_to_sentry(self, mock_capture):
        SecurityLogger.log_access_denied(AccessContext.anonymous(), 'public.businesses', 'select', 'no_policy')
        mock_capture.assert_not_called()

    @patch('apps.core.logging.sentry_sdk.capture_message')
    def test_environment_guard_violation_is_critical(self, mock_capture):
        with self.assertLogs('security', level='ERROR') as logs:
            SecurityLogger.log_environment_guard_violation('production', ['development'], 'create_default_admin')

        self.assertEqual(logs.records[0].environment, 'production')
        mock_capture.assert_called_once()
        self.assertIn('environment_guard_violation', mock_capture.call_args[0][0])

    def test_sensitive_context_is_masked(self):
        with self.assertLogs('security', level='WARNING') as logs:
            SecurityLogger.log_event('suspicious_token', email='eve@example.com')

        self.assertEqual(logs.records[0].email, '********')
