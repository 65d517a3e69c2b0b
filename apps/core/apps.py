import logging
import sys
from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

logger = logging.getLogger(__name__)


def validate_jwt_secret(jwt_secret, secret_key):
    """
    Check that the token signing key is present, long and distinct.

    Raises ImproperlyConfigured describing the first problem found.
    """
    hint = 'Generate one with: python -c "import secrets; print(secrets.token_urlsafe(32))"'

    if not jwt_secret:
        raise ImproperlyConfigured(f"JWT_SECRET_KEY must be set in environment variables. {hint}")

    if len(jwt_secret) < 32:
        raise ImproperlyConfigured(
            f"JWT_SECRET_KEY must be at least 32 characters long. "
            f"Current length: {len(jwt_secret)}. {hint}"
        )

    if jwt_secret == secret_key:
        raise ImproperlyConfigured(f"JWT_SECRET_KEY must be different from SECRET_KEY. {hint}")

    unique_chars = len(set(jwt_secret))
    if unique_chars < 16:
        raise ImproperlyConfigured(
            f"JWT_SECRET_KEY has insufficient entropy. "
            f"Found only {unique_chars} unique characters, need at least 16. {hint}"
        )


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.core'
    verbose_name = 'Core'

    def ready(self):
        """
        Validate token signing configuration before serving requests.

        Management commands other than runserver skip the check so that
        migrations and shells work without full configuration.
        """
        if 'runserver' not in sys.argv and 'gunicorn' not in sys.argv[0]:
            if len(sys.argv) > 1 and sys.argv[1] not in ['runserver']:
                return

        validate_jwt_secret(
            getattr(settings, 'JWT_SECRET_KEY', None),
            getattr(settings, 'SECRET_KEY', None),
        )
        logger.info("JWT configuration validated")
