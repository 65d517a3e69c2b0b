"""
Generic authorization engine.

``authorize`` evaluates the policies registered for a resource against an
AccessContext. It is fail-closed: an unregistered resource, an unknown
action or the absence of a matching policy all deny.

The data-access helpers push the same predicates into ORM filters so that
denied rows are simply absent: a denied select returns nothing, a denied
update or delete affects zero rows, and a denied insert raises the generic
AccessDenied error.
"""
import enum
import logging
from typing import Optional

from django.db import transaction
from django.db.models import Q
from django.forms.models import model_to_dict

from apps.core.exceptions import AccessDenied
from apps.core.logging import SecurityLogger
from apps.core.sentry_utils import add_breadcrumb
from apps.rbac.context import NIL_USER_ID, AccessContext, current_user_id, parse_uuid
from apps.rbac.models import AuditLog
from apps.rbac.policies import Operation, Strategy, default_registry, resource_name
from apps.rbac.resolvers import MembershipResolver

logger = logging.getLogger(__name__)


class Decision(enum.Enum):
    ALLOW = 'allow'
    DENY = 'deny'

    def __bool__(self):
        return self is Decision.ALLOW


# Marker for a predicate that matches every row.
_EVERY_ROW = object()


def resource_for_model(model) -> str:
    return resource_name(model._meta.db_table)


def _row_value(row, field):
    if isinstance(row, dict):
        return row.get(field)
    return getattr(row, field, None)


def _allowed_business_ids(context, policy):
    if policy.roles is None:
        return MembershipResolver.active_business_ids(context)
    return MembershipResolver.active_business_ids_with_role(context, policy.roles)


def _policy_permits(context, policy, row) -> bool:
    """Evaluate one policy. ``row`` of None asks whether any row could pass."""
    if policy.strategy == Strategy.SERVICE:
        return bool(context.is_service)

    if policy.strategy == Strategy.PUBLIC:
        if row is None:
            return True
        return all(_row_value(row, field) == value for field, value in policy.condition)

    if policy.strategy == Strategy.OWNER:
        user_id = current_user_id(context)
        if user_id == NIL_USER_ID:
            return False
        return row is None or parse_uuid(_row_value(row, policy.field)) == user_id

    if policy.strategy == Strategy.TENANT:
        allowed = _allowed_business_ids(context, policy)
        if row is None:
            return bool(allowed)
        return parse_uuid(_row_value(row, policy.field)) in allowed

    return False


def authorize(context, resource, action, row=None, registry=None) -> Decision:
    """
    Decide whether ``context`` may perform ``action`` on ``resource``.

    Args:
        context: AccessContext of the caller
        resource: "schema.table" (bare table names get the public schema)
        action: select, insert, update or delete
        row: model instance or mapping to check; None for a resource-level check
        registry: PolicyRegistry to consult (defaults to the configured one)

    Returns:
        Decision.ALLOW or Decision.DENY
    """
    context = context or AccessContext.anonymous()
    registry = registry or default_registry
    resource = resource_name(resource)

    try:
        operation = Operation(action)
    except ValueError:
        return _deny(context, resource, action, 'unknown_action')

    if not registry.is_enforced(resource):
        return _deny(context, resource, action, 'unregistered_resource')

    policies = registry.policies_for(resource, operation)
    if not policies:
        return _deny(context, resource, action, 'no_policy')

    for policy in policies:
        if _policy_permits(context, policy, row):
            logger.debug(
                f"Access allowed by policy '{policy.name}'",
                extra={'resource': resource, 'action': action, 'request_id': context.request_id}
            )
            return Decision.ALLOW

    return _deny(context, resource, action, 'no_matching_policy')


def _deny(context, resource, action, reason) -> Decision:
    SecurityLogger.log_access_denied(context, resource, str(action), reason)
    add_breadcrumb(category="authz", message=f"denied {action} on {resource}", level="warning", data={'reason': reason})
    return Decision.DENY


def _policy_filter(context, policy):
    """ORM filter for one policy: a Q, ``_EVERY_ROW`` or None (matches nothing)."""
    if policy.strategy == Strategy.SERVICE:
        return _EVERY_ROW if context.is_service else None

    if policy.strategy == Strategy.PUBLIC:
        return Q(**dict(policy.condition)) if policy.condition else _EVERY_ROW

    if policy.strategy == Strategy.OWNER:
        user_id = current_user_id(context)
        if user_id == NIL_USER_ID:
            return None
        return Q(**{policy.field: user_id})

    if policy.strategy == Strategy.TENANT:
        allowed = _allowed_business_ids(context, policy)
        if not allowed:
            return None
        return Q(**{f"{policy.field}__in": sorted(allowed, key=str)})

    return None


def filter_queryset(context, queryset, action=Operation.SELECT, registry=None):
    """
    Restrict ``queryset`` to the rows ``context`` may ``action``.

    Returns ``queryset.none()`` when nothing can match.
    """
    context = context or AccessContext.anonymous()
    registry = registry or default_registry
    resource = resource_for_model(queryset.model)

    try:
        operation = Operation(action)
    except ValueError:
        return queryset.none()

    if not registry.is_enforced(resource):
        return queryset.none()

    combined = None
    for policy in registry.policies_for(resource, operation):
        predicate = _policy_filter(context, policy)
        if predicate is None:
            continue
        if predicate is _EVERY_ROW:
            return queryset
        combined = predicate if combined is None else combined | predicate

    if combined is None:
        return queryset.none()
    return queryset.filter(combined)


def _json_safe(value):
    if value is None or isinstance(value, (bool, int, float, str, list, dict)):
        return value
    return str(value)


def _snapshot(instance):
    """Row image for audit records. Foreign keys appear as raw ids."""
    data = model_to_dict(instance)
    data['id'] = instance.pk
    return {key: _json_safe(value) for key, value in data.items()}


def _business_of(instance) -> Optional[str]:
    business_id = getattr(instance, 'business_id', None)
    if business_id is None and instance._meta.db_table == 'businesses':
        business_id = instance.pk
    return business_id


def authorized_create(context, model, registry=None, **fields):
    """
    Insert a row after checking the insert policies against its values.

    Raises AccessDenied (generic, indistinguishable from a missing parent
    row) when the insert is not permitted.
    """
    resource = resource_for_model(model)
    instance = model(**fields)
    if not authorize(context, resource, Operation.INSERT, row=instance, registry=registry):
        raise AccessDenied()

    instance.save(force_insert=True)
    AuditLog.log_change(
        context,
        table_name=model._meta.db_table,
        action='INSERT',
        record_id=instance.pk,
        new_data=_snapshot(instance),
        business_id=_business_of(instance),
    )
    return instance


def authorized_update(context, queryset, registry=None, **values) -> int:
    """
    Update the rows of ``queryset`` the caller may update.

    Each row must pass the update policies before the change and with the
    new values applied, so rows cannot be moved out of reach. Returns the
    number of rows changed.
    """
    model = queryset.model
    resource = resource_for_model(model)
    updated = 0

    with transaction.atomic():
        for instance in filter_queryset(context, queryset, Operation.UPDATE, registry).select_for_update():
            old_data = _snapshot(instance)
            for name, value in values.items():
                setattr(instance, name, value)
            if not authorize(context, resource, Operation.UPDATE, row=instance, registry=registry):
                continue

            instance.save(update_fields=[*values.keys(), *(['updated_at'] if hasattr(instance, 'updated_at') else [])])
            updated += 1
            AuditLog.log_change(
                context,
                table_name=model._meta.db_table,
                action='UPDATE',
                record_id=instance.pk,
                old_data=old_data,
                new_data=_snapshot(instance),
                business_id=_business_of(instance),
            )

    return updated


def authorized_delete(context, queryset, registry=None) -> int:
    """
    Delete the rows of ``queryset`` the caller may delete.

    Soft-deletable models are soft-deleted. Returns the number of rows removed.
    """
    model = queryset.model
    deleted = 0

    with transaction.atomic():
        for instance in filter_queryset(context, queryset, Operation.DELETE, registry):
            old_data = _snapshot(instance)
            record_id = instance.pk
            business_id = _business_of(instance)
            instance.delete()
            deleted += 1
            AuditLog.log_change(
                context,
                table_name=model._meta.db_table,
                action='DELETE',
                record_id=record_id,
                old_data=old_data,
                business_id=business_id,
            )

    return deleted
