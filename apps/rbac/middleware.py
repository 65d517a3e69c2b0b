"""
Access context middleware.

Resolves the caller once per request and attaches:
- request.access_context: AccessContext (nil identity when unauthenticated)
- request.user: the User, or AnonymousUser
"""
import logging
from django.contrib.auth.models import AnonymousUser
from django.utils.deprecation import MiddlewareMixin

from apps.core.sentry_utils import set_access_context
from apps.rbac.context import AccessContext
from apps.rbac.models import User

logger = logging.getLogger(__name__)


class AccessContextMiddleware(MiddlewareMixin):
    """
    Build the request-scoped AccessContext from the bearer token.

    Never rejects a request: an absent or invalid token yields the nil
    identity, and the authorization layer denies from there.
    """

    def process_request(self, request):
        context = AccessContext.from_request(request)
        request.access_context = context

        user = None
        if context.is_authenticated:
            user = User.objects.active().filter(pk=context.user_id).first()
            if user is None:
                # Unknown or disabled subject: fall back to the nil identity
                logger.info(
                    "Bearer token subject has no active user",
                    extra={'request_id': context.request_id}
                )
                context = AccessContext.anonymous(
                    preferred_business_id=context.preferred_business_id,
                    ip_address=context.ip_address,
                    user_agent=context.user_agent,
                    request_id=context.request_id,
                )
                request.access_context = context
        request.user = user or AnonymousUser()

        set_access_context(context)
        logger.debug(
            "Access context resolved",
            extra={
                'request_id': context.request_id,
                'authenticated': context.is_authenticated,
                'is_service': context.is_service,
            }
        )
