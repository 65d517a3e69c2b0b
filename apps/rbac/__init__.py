"""
RBAC (Role-Based Access Control) application.

Provides multi-tenant row-level access control with:
- Request-scoped access context resolved from bearer tokens
- Per-business role memberships and a role hierarchy
- Declarative row policies evaluated fail-closed
- Cached membership projection for display paths
- Audit logging of authorized writes
"""
