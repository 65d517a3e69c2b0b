"""
Role hierarchy evaluation against the caller's memberships.
"""
import logging

from apps.rbac.context import parse_uuid
from apps.rbac.resolvers import MembershipResolver
from apps.rbac.roles import hierarchy_allows, role_satisfies

logger = logging.getLogger(__name__)


def has_role(context, required_role, business_id=None) -> bool:
    """
    True when any active membership of the caller satisfies ``required_role``.

    With ``business_id`` only that business's membership is considered.
    Satisfaction follows the ROLE_GRANTS allow-list, not role ordering.
    """
    memberships = MembershipResolver.memberships(context)
    if business_id is not None:
        role = memberships.get(parse_uuid(business_id))
        return role_satisfies(role, required_role)
    return any(role_satisfies(role, required_role) for role in memberships.values())


def check_hierarchical_access(context, target_role, permission, business_id=None) -> bool:
    """
    May the caller act on a member holding ``target_role``?

    Evaluated against the caller's role in ``business_id`` or, when omitted,
    in ``current_business_id(context)``. Callers with several businesses
    should always pass the business explicitly.
    """
    if business_id is None:
        business_id = MembershipResolver.current_business_id(context)
    actor_role = MembershipResolver.role_in_business(context, business_id)
    if actor_role is None:
        return False

    allowed = hierarchy_allows(actor_role, target_role, permission)
    if not allowed:
        logger.debug(
            f"Hierarchy check denied: {actor_role} -> {target_role} ({permission})",
            extra={'business_id': str(business_id), 'request_id': getattr(context, 'request_id', None)}
        )
    return allowed
