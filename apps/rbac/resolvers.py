"""
Membership resolution for the current caller.

All lookups read Membership directly (never the cached projection) and are
memoised on the AccessContext, so repeated checks within one request agree
with each other.
"""
import logging
import uuid
from typing import Dict, FrozenSet, Iterable, Optional

from apps.rbac.context import NIL_USER_ID, AccessContext, current_user_id, parse_uuid
from apps.rbac.models import Membership
from apps.rbac.roles import Role

logger = logging.getLogger(__name__)


class MembershipResolver:
    """
    Read-only queries over active memberships.

    A membership grants access only when its status is active and its
    business is not soft-deleted.
    """

    @classmethod
    def memberships(cls, context: Optional[AccessContext], user_id=None) -> Dict[uuid.UUID, Role]:
        """
        Map of business id to role for every granting membership.

        Iteration order is by membership primary key, which carries no
        product meaning.
        """
        user_id = parse_uuid(user_id) if user_id is not None else current_user_id(context)
        if user_id is None or user_id == NIL_USER_ID:
            return {}

        memo = context.memo if context is not None else {}
        key = ('memberships', user_id)
        if key not in memo:
            rows = (
                Membership.objects.granting()
                .for_user(user_id)
                .order_by('pk')
                .values_list('business_id', 'role')
            )
            memo[key] = {business_id: Role(role) for business_id, role in rows}
        return memo[key]

    @classmethod
    def active_business_ids(cls, context, user_id=None) -> FrozenSet[uuid.UUID]:
        """All businesses where the user (default: caller) has an active membership."""
        return frozenset(cls.memberships(context, user_id))

    @classmethod
    def active_business_ids_with_role(cls, context, roles: Iterable) -> FrozenSet[uuid.UUID]:
        """Businesses where the caller's role is exactly one of ``roles``."""
        wanted = {Role(role) for role in roles}
        return frozenset(
            business_id
            for business_id, role in cls.memberships(context).items()
            if role in wanted
        )

    @classmethod
    def current_business_id(cls, context) -> Optional[uuid.UUID]:
        """
        The caller's default business.

        An explicit ``preferred_business_id`` wins when the caller belongs to
        it and yields None when they do not. Without a preference this picks
        one active membership arbitrarily; callers that need a specific
        business must pass it.
        """
        memberships = cls.memberships(context)
        preferred = getattr(context, 'preferred_business_id', None)
        if preferred is not None:
            return preferred if preferred in memberships else None
        return next(iter(memberships), None)

    @classmethod
    def belongs_to_business(cls, context, business_id) -> bool:
        """True iff the caller has an active membership in ``business_id``."""
        business_id = parse_uuid(business_id)
        return business_id is not None and business_id in cls.memberships(context)

    @classmethod
    def role_in_business(cls, context, business_id) -> Optional[Role]:
        business_id = parse_uuid(business_id)
        if business_id is None:
            return None
        return cls.memberships(context).get(business_id)


def active_business_ids(context, user_id=None):
    return MembershipResolver.active_business_ids(context, user_id)


def active_business_ids_with_role(context, roles):
    return MembershipResolver.active_business_ids_with_role(context, roles)


def current_business_id(context):
    return MembershipResolver.current_business_id(context)


def belongs_to_business(context, business_id):
    return MembershipResolver.belongs_to_business(context, business_id)
