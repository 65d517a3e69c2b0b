"""
DRF integration for row-level authorization.

This module provides:
- HasResourceAccess: permission class that consults ``authorize``
- ResourcePolicyFilterBackend: filter backend that narrows querysets to
  permitted rows
"""
import logging
from rest_framework.exceptions import NotFound
from rest_framework.filters import BaseFilterBackend
from rest_framework.permissions import BasePermission

from apps.rbac.authorization import authorize, filter_queryset, resource_for_model
from apps.rbac.context import AccessContext
from apps.rbac.policies import Operation

logger = logging.getLogger(__name__)

METHOD_OPERATIONS = {
    'GET': Operation.SELECT,
    'HEAD': Operation.SELECT,
    'OPTIONS': Operation.SELECT,
    'POST': Operation.INSERT,
    'PUT': Operation.UPDATE,
    'PATCH': Operation.UPDATE,
    'DELETE': Operation.DELETE,
}


def get_access_context(request) -> AccessContext:
    """AccessContext attached by AccessContextMiddleware (anonymous if missing)."""
    context = getattr(request, 'access_context', None)
    if context is None:
        context = getattr(getattr(request, '_request', None), 'access_context', None)
    return context or AccessContext.anonymous()


def _view_resource(view):
    resource = getattr(view, 'policy_resource', None)
    if resource:
        return resource
    queryset = getattr(view, 'queryset', None)
    if queryset is not None:
        return resource_for_model(queryset.model)
    return None


class HasResourceAccess(BasePermission):
    """
    DRF permission class backed by the policy registry.

    The view names its resource with ``policy_resource`` or through its
    ``queryset`` model. ``has_permission`` is a resource-level check;
    ``has_object_permission`` re-checks the concrete row and raises
    NotFound on denial so a forbidden row looks exactly like a missing one.

    Usage in views:
        class LocationViewSet(ModelViewSet):
            queryset = BusinessLocation.objects.all()
            permission_classes = [HasResourceAccess]
            filter_backends = [ResourcePolicyFilterBackend]
    """

    def has_permission(self, request, view):
        resource = _view_resource(view)
        if resource is None:
            logger.warning(
                f"View {view.__class__.__name__} declares no policy resource",
                extra={'view': view.__class__.__name__, 'request_id': getattr(request, 'request_id', None)}
            )
            return False

        operation = METHOD_OPERATIONS.get(request.method)
        if operation is None:
            return False

        # Updates and deletes are decided per row
        if operation in (Operation.UPDATE, Operation.DELETE):
            operation = Operation.SELECT

        return bool(authorize(get_access_context(request), resource, operation))

    def has_object_permission(self, request, view, obj):
        operation = METHOD_OPERATIONS.get(request.method)
        if operation is None:
            raise NotFound()

        decision = authorize(get_access_context(request), resource_for_model(type(obj)), operation, row=obj)
        if not decision:
            logger.info(
                "Object permission denied",
                extra={
                    'object_type': obj.__class__.__name__,
                    'view': view.__class__.__name__,
                    'request_id': getattr(request, 'request_id', None),
                }
            )
            raise NotFound()
        return True


class ResourcePolicyFilterBackend(BaseFilterBackend):
    """Restrict list and detail querysets to rows the caller may select."""

    def filter_queryset(self, request, queryset, view):
        return filter_queryset(get_access_context(request), queryset, Operation.SELECT)
