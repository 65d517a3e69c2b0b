"""
Deployment environment guard.

Operational tooling that must never touch production data (bootstrap
accounts and similar) calls ``require_environment`` before doing anything.
"""
import logging
from django.conf import settings
from apps.core.exceptions import EnvironmentGuardError
from apps.core.logging import SecurityLogger

logger = logging.getLogger(__name__)

DEVELOPMENT = 'development'
STAGING = 'staging'
PRODUCTION = 'production'


def current_environment():
    """Return the configured deployment environment name."""
    return getattr(settings, 'APP_ENVIRONMENT', PRODUCTION) or PRODUCTION


def require_environment(*allowed, operation=None):
    """
    Raise ``EnvironmentGuardError`` unless running in one of ``allowed``.

    Returns the current environment name on success.
    """
    environment = current_environment()
    if environment not in allowed:
        SecurityLogger.log_environment_guard_violation(environment, allowed, operation)
        raise EnvironmentGuardError(environment, allowed, operation)

    logger.debug(
        f"Environment guard passed for {operation or 'operation'}",
        extra={'environment': environment}
    )
    return environment
