"""
Structured JSON logging and security event logging.

Emails and credentials are masked on the way out: in free text, in
``%`` arguments and in ``extra`` payloads.
"""
import json
import logging
import re
import traceback
from datetime import datetime, timezone as dt_timezone
from django.utils import timezone
import sentry_sdk

MASK = '********'

# Attributes every LogRecord carries; anything else came in through ``extra``.
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {'message', 'asctime'}


def _mask_local_part(match):
    local, _, domain = match.group(0).partition('@')
    if len(local) > 1:
        local = local[0] + '*' * (len(local) - 1)
    return f"{local}@{domain}"


class PIIMasker:
    """
    Masks email addresses and credentials.

    Free text keeps the first character of an email's local part and the
    domain. Credentials following a keyword (``token=...``, ``password: ...``)
    are replaced entirely. Dict values under a sensitive key are replaced
    whatever they contain.
    """

    EMAIL_PATTERN = re.compile(r'\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b')
    TOKEN_PATTERN = re.compile(
        r'(bearer|token|secret|password|authorization)["\']?\s*[:=]?\s*["\']?([^"\'\s,}]+)',
        re.IGNORECASE,
    )

    SENSITIVE_FIELDS = frozenset({
        'email', 'email_address', 'password', 'password_hash',
        'access_token', 'refresh_token', 'bearer_token', 'token', 'authorization',
        'secret', 'secret_key', 'jwt_secret_key',
    })

    @classmethod
    def mask_email(cls, text):
        if isinstance(text, str):
            return cls.EMAIL_PATTERN.sub(_mask_local_part, text)
        return text

    @classmethod
    def mask_tokens(cls, text):
        if isinstance(text, str):
            return cls.TOKEN_PATTERN.sub(rf'\1: {MASK}', text)
        return text

    @classmethod
    def mask_text(cls, text):
        return cls.mask_tokens(cls.mask_email(text))

    @classmethod
    def mask_value(cls, value):
        """Mask strings, recursing into dicts and lists."""
        if isinstance(value, dict):
            return cls.mask_dict(value)
        if isinstance(value, (list, tuple)):
            return [cls.mask_value(item) for item in value]
        return cls.mask_text(value)

    @classmethod
    def mask_dict(cls, data):
        if not isinstance(data, dict):
            return data
        return {
            key: MASK if cls._is_secret(key, value) else cls.mask_value(value)
            for key, value in data.items()
        }

    @classmethod
    def _is_secret(cls, key, value):
        return (
            str(key).lower() in cls.SENSITIVE_FIELDS
            and bool(value)
            and not isinstance(value, (dict, list))
        )


class PIIMaskingFilter(logging.Filter):
    """Masks the message template and its arguments. Never drops a record."""

    def filter(self, record):
        record.msg = PIIMasker.mask_text(record.msg)
        if isinstance(record.args, tuple):
            record.args = tuple(PIIMasker.mask_text(arg) for arg in record.args)
        return True


class JSONFormatter(logging.Formatter):
    """
    One JSON object per record.

    ``extra`` fields (request_id, business_id, task_id, ...) are copied to
    the top level after masking. Values json can't encode are stringified.
    """

    def format(self, record):
        payload = {
            'timestamp': datetime.now(dt_timezone.utc).isoformat().replace('+00:00', 'Z'),
            'level': record.levelname,
            'logger': record.name,
            'message': PIIMasker.mask_text(record.getMessage()),
            'module': record.module,
            'function': record.funcName,
            'line': record.lineno,
        }

        if record.exc_info:
            exc_type, exc_value, exc_tb = record.exc_info
            payload['exception'] = {
                'type': exc_type.__name__,
                'message': PIIMasker.mask_text(str(exc_value)),
                'traceback': [
                    PIIMasker.mask_text(line)
                    for line in traceback.format_exception(exc_type, exc_value, exc_tb)
                ],
            }

        extras = {
            key: value for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith('_')
        }
        payload.update(PIIMasker.mask_dict(extras))

        return json.dumps(payload, default=lambda value: PIIMasker.mask_text(str(value)))


class SecurityLogger:
    """
    Centralized security event logging.

    Events go to the ``security`` logger with structured data. Critical
    events are also sent to Sentry for alerting.
    """

    CRITICAL_EVENTS = {
        'environment_guard_violation',
    }

    @staticmethod
    def log_event(event_type: str, level: str = 'warning', **context):
        """
        Log a security event with structured data.

        Args:
            event_type: Type of security event (e.g., 'access_denied')
            level: Log level ('info', 'warning', 'error', 'critical')
            **context: Additional context data (ip_address, user_id, business_id, etc.)
        """
        logger = logging.getLogger('security')

        log_data = {
            'event_type': event_type,
            'timestamp': timezone.now().isoformat(),
        }
        log_data.update(context)
        log_data = PIIMasker.mask_dict(log_data)

        log_method = getattr(logger, level, logger.warning)
        log_method(f"Security event: {event_type}", extra=log_data)

        if event_type in SecurityLogger.CRITICAL_EVENTS:
            sentry_sdk.capture_message(
                f"Critical security event: {event_type}",
                level='error',
            )

    @staticmethod
    def log_access_denied(context, resource: str, action: str, reason: str):
        """
        Log an authorization denial.

        Args:
            context: AccessContext of the caller
            resource: Protected resource (e.g., 'public.business_locations')
            action: Operation attempted (select/insert/update/delete)
            reason: Short machine-readable reason
        """
        SecurityLogger.log_event(
            'access_denied',
            level='info',
            user_id=str(context.user_id),
            resource=resource,
            action=action,
            reason=reason,
            ip_address=context.ip_address,
            request_id=context.request_id,
        )

    @staticmethod
    def log_policy_change(change: str, resource: str, policies: list):
        """
        Log a policy registry change (applied or dropped policies).
        """
        SecurityLogger.log_event(
            'policy_change',
            level='info',
            change=change,
            resource=resource,
            policies=list(policies),
        )

    @staticmethod
    def log_environment_guard_violation(environment: str, allowed, operation: str = None):
        """
        Log an attempt to run an environment-restricted operation.
        """
        SecurityLogger.log_event(
            'environment_guard_violation',
            level='error',
            environment=environment,
            allowed=list(allowed),
            operation=operation,
        )
