"""
Declarative row-level policies.

Each protected resource ("schema.table") carries a set of named, permissive
policies. A policy names the operations it covers, a scoping strategy and
the roles it requires. Templates build the canonical shapes:

- tenant: row's business is one where the caller has an active membership
  (insert/update need owner/admin/manager, delete needs owner/admin)
- owner: row's user_id is the caller
- public: select under an optional field-equality condition
- service: unconditional access for the trusted service principal

Applying any template puts the resource under enforcement. Policy names are
derived from the table name, so applying the same template twice raises
PolicyAlreadyExists; drop the policies first to redefine them.
"""
import logging
from dataclasses import dataclass, field as dataclass_field
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from django.db import models

from apps.core.exceptions import PolicyAlreadyExists, PolicyNotFound
from apps.core.logging import SecurityLogger
from apps.rbac.roles import DELETE_ROLES, WRITE_ROLES, Role

logger = logging.getLogger(__name__)

DEFAULT_SCHEMA = 'public'


class Operation(models.TextChoices):
    SELECT = 'select', 'Select'
    INSERT = 'insert', 'Insert'
    UPDATE = 'update', 'Update'
    DELETE = 'delete', 'Delete'


ALL_OPERATIONS = frozenset(Operation)


class Strategy(models.TextChoices):
    TENANT = 'tenant', 'Tenant-scoped'
    OWNER = 'owner', 'Owner-scoped'
    PUBLIC = 'public', 'Public read'
    SERVICE = 'service', 'Service role'


def resource_name(table, schema=DEFAULT_SCHEMA):
    """Qualified resource name. Already-qualified names pass through."""
    if '.' in table:
        return table
    return f"{schema}.{table}"


@dataclass(frozen=True)
class Policy:
    """
    One permissive policy.

    ``roles`` of None means any active membership in the row's business.
    ``condition`` holds (field, value) pairs that must all match for public
    reads; empty means unconditional.
    """
    name: str
    resource: str
    operations: FrozenSet[Operation]
    strategy: Strategy
    roles: Optional[FrozenSet[Role]] = None
    field: str = 'business_id'
    condition: Tuple[Tuple[str, object], ...] = dataclass_field(default=())

    def covers(self, operation) -> bool:
        return operation in self.operations

    def describe(self) -> dict:
        return {
            'name': self.name,
            'resource': self.resource,
            'operations': sorted(op.value for op in self.operations),
            'strategy': self.strategy.value,
            'roles': sorted(role.value for role in self.roles) if self.roles is not None else None,
            'field': self.field,
            'condition': dict(self.condition),
        }


def _as_roles(roles) -> Optional[FrozenSet[Role]]:
    if roles is None:
        return None
    return frozenset(Role(role) for role in roles)


def _as_operations(operations) -> FrozenSet[Operation]:
    if isinstance(operations, str):
        operations = [operations]
    operations = list(operations)
    if operations == ['all']:
        return ALL_OPERATIONS
    return frozenset(Operation(op) for op in operations)


class PolicyRegistry:
    """
    Per-resource policy table consulted by ``authorize``.

    Resources become enforced the first time a template or policy is applied
    and stay enforced after their policies are dropped, in which case every
    access is denied until new policies are added.
    """

    def __init__(self):
        self._policies: Dict[str, Dict[str, Policy]] = {}
        self._enforced = set()

    def clear(self):
        self._policies.clear()
        self._enforced.clear()

    def _install(self, resource: str, policies: List[Policy]):
        existing = self._policies.get(resource, {})
        for policy in policies:
            if policy.name in existing:
                raise PolicyAlreadyExists(
                    f'policy "{policy.name}" for table "{resource}" already exists',
                    details={'resource': resource, 'policy': policy.name}
                )

        bucket = self._policies.setdefault(resource, {})
        for policy in policies:
            bucket[policy.name] = policy
        self._enforced.add(resource)

        SecurityLogger.log_policy_change('applied', resource, [p.name for p in policies])
        logger.info(
            f"Applied {len(policies)} policies to {resource}",
            extra={'resource': resource, 'policies': [p.name for p in policies]}
        )
        return policies

    def add_policy(self, policy: Policy) -> Policy:
        """Install one hand-written policy."""
        self._install(policy.resource, [policy])
        return policy

    def enable_enforcement(self, table, schema=DEFAULT_SCHEMA):
        """Enforce a resource without adding policies (denies everything)."""
        self._enforced.add(resource_name(table, schema))

    def apply_tenant_policies(self, table, schema=DEFAULT_SCHEMA, select=True, insert=True,
                              update=True, delete=True, business_field='business_id',
                              write_roles=WRITE_ROLES, delete_roles=DELETE_ROLES):
        """
        Attach the tenant-scoped CRUD policies to ``table``.

        Each flag controls one operation; disabled operations get no policy
        and are therefore denied.
        """
        resource = resource_name(table, schema)
        table = resource.split('.', 1)[1]
        templates = [
            (select, Operation.SELECT, f"Users can view own business {table}", None),
            (insert, Operation.INSERT, f"Users can insert into own business {table}", write_roles),
            (update, Operation.UPDATE, f"Users can update own business {table}", write_roles),
            (delete, Operation.DELETE, f"Users can delete from own business {table}", delete_roles),
        ]
        policies = [
            Policy(
                name=name,
                resource=resource,
                operations=frozenset({operation}),
                strategy=Strategy.TENANT,
                roles=_as_roles(roles),
                field=business_field,
            )
            for enabled, operation, name, roles in templates
            if enabled
        ]
        if not policies:
            self.enable_enforcement(resource)
            return []
        return self._install(resource, policies)

    def apply_owner_policies(self, table, schema=DEFAULT_SCHEMA, owner_field='user_id'):
        """Attach owner-scoped policies: the same predicate for all four operations."""
        resource = resource_name(table, schema)
        table = resource.split('.', 1)[1]
        templates = [
            (Operation.SELECT, f"Users can view own {table}"),
            (Operation.INSERT, f"Users can insert own {table}"),
            (Operation.UPDATE, f"Users can update own {table}"),
            (Operation.DELETE, f"Users can delete own {table}"),
        ]
        policies = [
            Policy(
                name=name,
                resource=resource,
                operations=frozenset({operation}),
                strategy=Strategy.OWNER,
                field=owner_field,
            )
            for operation, name in templates
        ]
        return self._install(resource, policies)

    def apply_public_read_policy(self, table, schema=DEFAULT_SCHEMA, condition: Optional[Mapping] = None):
        """Allow select to everyone under ``condition``. No write policies are added."""
        resource = resource_name(table, schema)
        table = resource.split('.', 1)[1]
        policy = Policy(
            name=f"Public can read {table}",
            resource=resource,
            operations=frozenset({Operation.SELECT}),
            strategy=Strategy.PUBLIC,
            condition=tuple(sorted((condition or {}).items())),
        )
        return self._install(resource, [policy])

    def apply_service_role_policies(self, table, schema=DEFAULT_SCHEMA):
        """Grant the trusted service principal full access to ``table``."""
        resource = resource_name(table, schema)
        table = resource.split('.', 1)[1]
        policy = Policy(
            name=f"Service role has full access to {table}",
            resource=resource,
            operations=ALL_OPERATIONS,
            strategy=Strategy.SERVICE,
        )
        return self._install(resource, [policy])

    def drop_policies(self, table, schema=DEFAULT_SCHEMA, names: Optional[Iterable[str]] = None) -> int:
        """
        Remove policies from a resource (all of them when ``names`` is None).

        Enforcement stays on. Naming a policy that does not exist raises
        PolicyNotFound.
        """
        resource = resource_name(table, schema)
        bucket = self._policies.get(resource, {})

        if names is None:
            dropped = list(bucket)
        else:
            dropped = list(names)
            missing = [name for name in dropped if name not in bucket]
            if missing:
                raise PolicyNotFound(
                    f'policy "{missing[0]}" for table "{resource}" does not exist',
                    details={'resource': resource, 'missing': missing}
                )

        for name in dropped:
            del bucket[name]

        if dropped:
            SecurityLogger.log_policy_change('dropped', resource, dropped)
        return len(dropped)

    def policies_for(self, resource, operation=None) -> List[Policy]:
        policies = list(self._policies.get(resource_name(resource), {}).values())
        if operation is not None:
            policies = [p for p in policies if p.covers(operation)]
        return policies

    def is_enforced(self, resource) -> bool:
        return resource_name(resource) in self._enforced

    def resources(self) -> List[str]:
        return sorted(self._enforced)

    def load_from_config(self, entries: Iterable[Mapping]):
        """
        Apply a declarative policy table.

        Each entry names a ``table`` and a ``template`` (tenant, owner,
        public, service or custom) plus template options. Custom entries
        carry a ``policies`` list of explicit policy definitions.
        """
        for entry in entries:
            entry = dict(entry)
            table = entry.pop('table')
            schema = entry.pop('schema', DEFAULT_SCHEMA)
            template = entry.pop('template')

            if template == Strategy.TENANT:
                if 'write_roles' in entry:
                    entry['write_roles'] = _as_roles(entry['write_roles'])
                if 'delete_roles' in entry:
                    entry['delete_roles'] = _as_roles(entry['delete_roles'])
                self.apply_tenant_policies(table, schema, **entry)
            elif template == Strategy.OWNER:
                self.apply_owner_policies(table, schema, **entry)
            elif template == Strategy.PUBLIC:
                self.apply_public_read_policy(table, schema, **entry)
            elif template == Strategy.SERVICE:
                self.apply_service_role_policies(table, schema)
            elif template == 'custom':
                resource = resource_name(table, schema)
                policies = [
                    Policy(
                        name=definition['name'],
                        resource=resource,
                        operations=_as_operations(definition['operations']),
                        strategy=Strategy(definition.get('strategy', Strategy.TENANT)),
                        roles=_as_roles(definition.get('roles')),
                        field=definition.get('field', 'business_id'),
                        condition=tuple(sorted((definition.get('condition') or {}).items())),
                    )
                    for definition in entry.get('policies', [])
                ]
                self._install(resource, policies)
            else:
                raise ValueError(f"Unknown policy template '{template}' for {table}")
        return self


# Registry consulted by authorize() when none is passed explicitly.
# Populated from settings.ACCESS_POLICIES when the rbac app is ready.
default_registry = PolicyRegistry()
