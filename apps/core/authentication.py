"""
Custom DRF authentication classes.
"""
from rest_framework.authentication import BaseAuthentication


class MiddlewareAuthentication(BaseAuthentication):
    """
    DRF authentication class that reuses the identity resolved by
    AccessContextMiddleware.

    The middleware verifies the bearer token once per request and sets
    ``request.user`` and ``request.access_context``. This class hands both
    to DRF so that ``request.auth`` is the access context.
    """

    def authenticate(self, request):
        """
        Return (user, access_context) when the middleware resolved a user.

        Anonymous callers get None so DRF falls back to its unauthenticated
        user. Their access context carries the nil identity.
        """
        django_request = request._request

        user = getattr(django_request, 'user', None)
        if user is not None and user.is_authenticated:
            return (user, getattr(django_request, 'access_context', None))

        return None

    def authenticate_header(self, request):
        return 'Bearer'
