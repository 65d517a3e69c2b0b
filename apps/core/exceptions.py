"""
Exception hierarchy and the DRF exception handler.
"""
import logging
from rest_framework.views import exception_handler
from rest_framework.response import Response
from rest_framework import status

logger = logging.getLogger(__name__)


def custom_exception_handler(exc, context):
    """
    Custom exception handler that logs errors and returns consistent format.

    ``OblivionException`` subclasses are rendered with their own status code.
    Access denials are rendered as 404 so the response never reveals whether
    the row exists.
    """
    request = context.get('request')
    request_id = getattr(request, 'request_id', None) if request else None

    if isinstance(exc, OblivionException):
        status_code = getattr(exc, 'status_code', status.HTTP_400_BAD_REQUEST)
        logger.warning(
            f"API Exception: {exc.__class__.__name__}",
            extra={
                'exception': exc.message,
                'request_id': request_id,
                'path': request.path if request else None,
                'method': request.method if request else None,
            }
        )
        return Response(
            {
                'error': exc.message,
                'code': exc.code,
                'request_id': request_id,
            },
            status=status_code
        )

    # Call DRF's default exception handler first
    response = exception_handler(exc, context)

    if response is None:
        logger.error(
            f"API Exception: {exc.__class__.__name__}",
            extra={
                'exception': str(exc),
                'request_id': request_id,
                'path': request.path if request else None,
                'method': request.method if request else None,
            },
            exc_info=True
        )
        return Response(
            {
                'error': 'Internal server error',
                'detail': 'An unexpected error occurred',
                'request_id': request_id,
            },
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    # Add request_id to all error responses
    if request_id and isinstance(response.data, dict):
        response.data['request_id'] = request_id

    return response


class OblivionException(Exception):
    """Base exception for Oblivion-specific errors."""

    status_code = 400
    code = 'ERROR'

    def __init__(self, message, details=None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class AccessDenied(OblivionException):
    """
    Raised when a write is rejected by the authorization layer.

    The message is deliberately generic and identical whether the row is
    missing or merely out of reach.
    """
    status_code = 404
    code = 'PERMISSION_DENIED'

    def __init__(self, message='permission denied', details=None):
        super().__init__(message, details)


class PolicyAlreadyExists(OblivionException):
    """Raised when a policy template is applied to an already-policed resource."""
    status_code = 409
    code = 'POLICY_ALREADY_EXISTS'


class PolicyNotFound(OblivionException):
    """Raised when dropping or looking up a policy that does not exist."""
    status_code = 404
    code = 'POLICY_NOT_FOUND'


class InvalidMembershipTransition(OblivionException):
    """Raised when a membership status change is not allowed."""
    status_code = 409
    code = 'INVALID_MEMBERSHIP_TRANSITION'


class EnvironmentGuardError(OblivionException):
    """Raised when an operation runs outside the environments it is allowed in."""
    status_code = 500
    code = 'ENVIRONMENT_GUARD'

    def __init__(self, environment, allowed, operation=None):
        self.environment = environment
        self.allowed = tuple(allowed)
        self.operation = operation
        what = operation or 'This operation'
        super().__init__(
            f"{what} can only run in {', '.join(self.allowed)} environment "
            f"(current environment: {environment})",
            details={'environment': environment, 'allowed': list(self.allowed)}
        )
