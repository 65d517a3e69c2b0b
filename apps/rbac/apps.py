"""
RBAC app configuration.
"""
import logging
from django.apps import AppConfig
from django.conf import settings

logger = logging.getLogger(__name__)


class RbacConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.rbac'
    verbose_name = 'RBAC (Row-Level Access Control)'

    def ready(self):
        """Load the declarative policy table into the default registry."""
        from apps.rbac.policies import default_registry

        default_registry.clear()
        default_registry.load_from_config(getattr(settings, 'ACCESS_POLICIES', []))
        logger.debug(
            "Access policies loaded",
            extra={'resources': default_registry.resources()}
        )
