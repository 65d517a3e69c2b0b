"""
RBAC services for membership lifecycle and token issuance.

Memberships move pending -> active -> inactive. Every transition is gated
by the role hierarchy in the membership's business and recorded in the
audit log.
"""
import logging
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Optional

import jwt
from django.conf import settings
from django.db import IntegrityError, transaction
from django.utils import timezone

from apps.core.exceptions import AccessDenied, InvalidMembershipTransition
from apps.rbac.authorization import authorized_create, authorized_update
from apps.rbac.hierarchy import check_hierarchical_access
from apps.rbac.models import AuditLog, Membership, User
from apps.rbac.roles import HierarchyPermission, MembershipStatus, Role

logger = logging.getLogger(__name__)


def _permission_for(role) -> HierarchyPermission:
    """Granting or touching an owner membership is an owner-only action."""
    return HierarchyPermission.OWNER_ONLY if Role(role) == Role.OWNER else HierarchyPermission.WRITE


class MembershipService:
    """
    Service for membership lifecycle management.

    Provides methods for:
    - Inviting users to a business (pending membership)
    - Accepting an invitation (pending -> active)
    - Deactivating a membership (-> inactive)
    - Changing a member's role
    """

    @classmethod
    def _require_hierarchy(cls, context, business_id, *roles):
        for role in roles:
            if not check_hierarchical_access(context, role, _permission_for(role), business_id=business_id):
                logger.info(
                    "Membership change denied by role hierarchy",
                    extra={'business_id': str(business_id), 'target_role': str(role), 'request_id': context.request_id}
                )
                raise AccessDenied()

    @classmethod
    def _forget(cls, context, membership):
        if membership.user_id == context.user_id:
            context.clear_memo()

    @classmethod
    def invite(cls, context, business_id, user: User, role=Role.STAFF) -> Membership:
        """
        Invite ``user`` to a business with ``role``.

        The caller needs write access over ``role`` in that business (owner
        access to hand out ``owner``) and must pass the business_users insert
        policy.

        Raises:
            AccessDenied: the caller may not invite into this business
            InvalidMembershipTransition: the user already has a membership
        """
        role = Role(role)
        cls._require_hierarchy(context, business_id, role)

        try:
            with transaction.atomic():
                membership = authorized_create(
                    context,
                    Membership,
                    business_id=business_id,
                    user=user,
                    role=role,
                    status=MembershipStatus.PENDING,
                    invited_by_id=context.user_id,
                    invited_at=timezone.now(),
                )
        except IntegrityError:
            raise InvalidMembershipTransition(
                "User already has a membership in this business",
                details={'business_id': str(business_id), 'user_id': str(user.pk)}
            )

        logger.info(
            f"Invited user to business as {role}",
            extra={'business_id': str(business_id), 'membership_id': str(membership.id), 'request_id': context.request_id}
        )
        return membership

    @classmethod
    @transaction.atomic
    def accept(cls, context, membership: Membership) -> Membership:
        """
        Accept a pending invitation. Only the invitee may accept.
        """
        membership = Membership.objects.select_for_update().get(pk=membership.pk)

        if membership.user_id != context.user_id:
            raise AccessDenied()
        if membership.status != MembershipStatus.PENDING:
            raise InvalidMembershipTransition(
                f"Cannot accept a membership that is {membership.status}",
                details={'membership_id': str(membership.id), 'status': membership.status}
            )

        old_data = membership.snapshot()
        membership.status = MembershipStatus.ACTIVE
        membership.joined_at = timezone.now()
        membership.save(update_fields=['status', 'joined_at', 'updated_at'])

        AuditLog.log_change(
            context,
            table_name=Membership._meta.db_table,
            action='UPDATE',
            record_id=membership.id,
            old_data=old_data,
            new_data=membership.snapshot(),
            business_id=membership.business_id,
        )
        cls._forget(context, membership)
        return membership

    @classmethod
    def deactivate(cls, context, membership: Membership) -> Membership:
        """
        Revoke a membership. Access ends immediately for authoritative checks;
        the cached membership view keeps showing it until its next refresh.
        """
        if membership.status == MembershipStatus.INACTIVE:
            raise InvalidMembershipTransition(
                "Membership is already inactive",
                details={'membership_id': str(membership.id)}
            )
        cls._require_hierarchy(context, membership.business_id, membership.role)

        updated = authorized_update(
            context,
            Membership.objects.filter(pk=membership.pk),
            status=MembershipStatus.INACTIVE,
        )
        if not updated:
            raise AccessDenied()

        membership.refresh_from_db()
        cls._forget(context, membership)
        return membership

    @classmethod
    def change_role(cls, context, membership: Membership, new_role) -> Membership:
        """
        Change a member's role. The caller needs write access over both the
        current and the new role.
        """
        new_role = Role(new_role)
        if membership.status == MembershipStatus.INACTIVE:
            raise InvalidMembershipTransition(
                "Cannot change the role of an inactive membership",
                details={'membership_id': str(membership.id)}
            )
        cls._require_hierarchy(context, membership.business_id, membership.role, new_role)

        updated = authorized_update(
            context,
            Membership.objects.filter(pk=membership.pk),
            role=new_role,
        )
        if not updated:
            raise AccessDenied()

        membership.refresh_from_db()
        cls._forget(context, membership)
        return membership


class AuthService:
    """Bearer token issuance. Verification lives in AccessContext."""

    @classmethod
    def generate_jwt(cls, user: User, expires_in: Optional[timedelta] = None, **claims) -> str:
        """
        Generate a signed token whose subject is ``user``.

        Args:
            user: User instance
            expires_in: Lifetime (defaults to JWT_EXPIRATION_HOURS)
            **claims: Extra claims to embed

        Returns:
            JWT token string
        """
        now = datetime.now(dt_timezone.utc)
        lifetime = expires_in or timedelta(hours=settings.JWT_EXPIRATION_HOURS)
        payload = {
            'sub': str(user.pk),
            'email': user.email,
            'role': 'authenticated',
            'iat': now,
            'exp': now + lifetime,
        }
        payload.update(claims)

        return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)

    @classmethod
    def generate_service_token(cls, expires_in: Optional[timedelta] = None) -> str:
        """Token for the trusted backend service principal."""
        now = datetime.now(dt_timezone.utc)
        lifetime = expires_in or timedelta(hours=settings.JWT_EXPIRATION_HOURS)
        payload = {
            'role': settings.AUTHZ_SERVICE_ROLE,
            'iat': now,
            'exp': now + lifetime,
        }
        return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
