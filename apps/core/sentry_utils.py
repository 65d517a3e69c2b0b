"""
Sentry helpers. Every function is a no-op when SENTRY_DSN is not configured.
"""
from contextlib import contextmanager

import sentry_sdk
from django.conf import settings


def _enabled():
    return bool(getattr(settings, 'SENTRY_DSN', None))


def set_access_context(context):
    """
    Tag the current scope with the caller's access context.

    Only identifiers go to Sentry, never token claims or emails.
    """
    if not _enabled():
        return

    sentry_sdk.set_user({"id": str(context.user_id)})
    sentry_sdk.set_context("access", {
        "is_service": context.is_service,
        "preferred_business_id": str(context.preferred_business_id) if context.preferred_business_id else None,
        "request_id": context.request_id,
    })
    if context.preferred_business_id:
        sentry_sdk.set_tag("business_id", str(context.preferred_business_id))


def add_breadcrumb(category, message, level="info", data=None):
    """Record a breadcrumb (categories used here: "authz", "task")."""
    if not _enabled():
        return

    sentry_sdk.add_breadcrumb(category=category, message=message, level=level, data=data or {})


def capture_exception(exception, **contexts):
    """Report ``exception`` with each keyword attached as a named context."""
    if not _enabled():
        return

    with sentry_sdk.new_scope() as scope:
        for name, value in contexts.items():
            scope.set_context(name, value)
        sentry_sdk.capture_exception(exception)


@contextmanager
def traced(name, op):
    """
    Run the block inside a Sentry transaction.

    The transaction status is ``ok`` on normal exit and ``internal_error``
    when the block raises; the exception propagates.
    """
    if not _enabled():
        yield None
        return

    with sentry_sdk.start_transaction(name=name, op=op) as transaction:
        try:
            yield transaction
        except Exception:
            transaction.set_status("internal_error")
            raise
        transaction.set_status("ok")
