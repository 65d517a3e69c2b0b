"""
Role vocabulary and the static rule tables behind role checks.

Role dominance is an explicit allow-list of (actual, required) pairs rather
than an ordinal comparison: ``client`` sits outside the staff hierarchy and
never inherits anything.
"""
from dataclasses import dataclass
from typing import Optional
from django.db import models


class Role(models.TextChoices):
    OWNER = 'owner', 'Owner'
    ADMIN = 'admin', 'Admin'
    MANAGER = 'manager', 'Manager'
    STAFF = 'staff', 'Staff'
    CLIENT = 'client', 'Client'


class MembershipStatus(models.TextChoices):
    ACTIVE = 'active', 'Active'
    INACTIVE = 'inactive', 'Inactive'
    PENDING = 'pending', 'Pending'


class HierarchyPermission(models.TextChoices):
    READ = 'read', 'Read'
    WRITE = 'write', 'Write'
    OWNER_ONLY = 'owner_only', 'Owner only'


ALL_ROLES = frozenset(Role)

# (actual role, required role) pairs that pass has_role() besides exact match.
ROLE_GRANTS = frozenset(
    [(Role.OWNER, required) for required in Role]
    + [
        (Role.ADMIN, Role.MANAGER),
        (Role.ADMIN, Role.STAFF),
        (Role.MANAGER, Role.STAFF),
    ]
)

# Role sets used by the default tenant-scoped template.
WRITE_ROLES = frozenset({Role.OWNER, Role.ADMIN, Role.MANAGER})
DELETE_ROLES = frozenset({Role.OWNER, Role.ADMIN})


def role_satisfies(actual, required):
    """True when a membership with ``actual`` role meets ``required``."""
    if actual is None or required is None:
        return False
    try:
        actual, required = Role(actual), Role(required)
    except ValueError:
        return False
    return actual == required or (actual, required) in ROLE_GRANTS


@dataclass(frozen=True)
class HierarchyRule:
    """
    What an actor role may do to members holding other roles.

    ``permissions=None`` accepts any permission string, minus ``excluded``.
    Permissions are free-form: ``read``, ``write`` and ``owner_only`` are the
    ones the services use, callers may check others.
    """
    actor: Role
    permissions: Optional[frozenset]
    targets: frozenset
    excluded: frozenset = frozenset()

    def allows(self, target_role, permission) -> bool:
        if target_role not in self.targets or permission in self.excluded:
            return False
        return self.permissions is None or permission in self.permissions


HIERARCHY_RULES = {
    Role.OWNER: HierarchyRule(Role.OWNER, permissions=None, targets=ALL_ROLES),
    Role.ADMIN: HierarchyRule(
        Role.ADMIN,
        permissions=None,
        targets=ALL_ROLES,
        excluded=frozenset({HierarchyPermission.OWNER_ONLY}),
    ),
    Role.MANAGER: HierarchyRule(
        Role.MANAGER,
        permissions=frozenset({HierarchyPermission.READ, HierarchyPermission.WRITE}),
        targets=frozenset({Role.STAFF, Role.CLIENT}),
    ),
    # Staff may read regardless of the target's role.
    Role.STAFF: HierarchyRule(
        Role.STAFF,
        permissions=frozenset({HierarchyPermission.READ}),
        targets=ALL_ROLES,
    ),
}


def hierarchy_allows(actor_role, target_role, permission):
    """Look up the rule table. Unknown roles and a missing permission are denied."""
    if permission is None:
        return False
    try:
        actor_role = Role(actor_role)
        target_role = Role(target_role)
    except ValueError:
        return False

    rule = HIERARCHY_RULES.get(actor_role)
    if rule is None:
        return False
    return rule.allows(target_role, str(permission))
