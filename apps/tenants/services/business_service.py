"""
Business lifecycle service.

Handles:
- Business provisioning with the caller as owner
- Soft deletion and restore (owners only)
"""
import logging
import re
from datetime import timedelta
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone
from django.utils.text import slugify

from apps.core.exceptions import AccessDenied
from apps.rbac.hierarchy import check_hierarchical_access
from apps.rbac.models import AuditLog, Membership
from apps.rbac.roles import HierarchyPermission, MembershipStatus, Role
from apps.tenants.models import Business

# Leaves room for a numeric suffix within the 100 character slug column.
SLUG_BASE_LENGTH = 90

logger = logging.getLogger(__name__)


class BusinessService:
    """
    Service for business lifecycle.

    Provisioning is an explicit operation outside the row policies:
    ``businesses`` has no insert policy, so new tenants only come into
    existence here.
    """

    @staticmethod
    def unique_slug(name: str, slug: Optional[str] = None) -> str:
        """
        Slug derived from ``name`` (or ``slug``), suffixed until unused.

        Underscores become hyphens and runs of hyphens collapse, so the
        result always satisfies the slug validator on Business.
        """
        base_slug = re.sub(r'-{2,}', '-', slugify(slug or name).replace('_', '-'))
        base_slug = base_slug[:SLUG_BASE_LENGTH].strip('-') or 'business'
        candidate = base_slug
        counter = 1
        while Business.objects_with_deleted.filter(slug=candidate).exists():
            candidate = f"{base_slug}-{counter}"
            counter += 1
        return candidate

    @classmethod
    @transaction.atomic
    def provision_business(cls, context, name: str, industry: str, email: str,
                           slug: Optional[str] = None, **fields) -> Business:
        """
        Create a business with the caller as its active owner.

        Creates:
        - Business record (trial status)
        - Membership with role owner, status active

        Raises:
            AccessDenied: the caller has no identity
        """
        if not context.is_authenticated:
            raise AccessDenied()

        slug = cls.unique_slug(name, slug)
        now = timezone.now()
        business = Business(
            name=name,
            slug=slug,
            email=email,
            industry=industry,
            status='trial',
            subscription_status='trialing',
            trial_ends_at=now + timedelta(days=settings.DEFAULT_TRIAL_DAYS),
            **fields
        )
        business.full_clean()
        business.save()

        membership = Membership.objects.create(
            business=business,
            user_id=context.user_id,
            role=Role.OWNER,
            status=MembershipStatus.ACTIVE,
            joined_at=now,
        )
        context.clear_memo()

        AuditLog.log_event(
            context,
            event='business_provisioned',
            table_name=Business._meta.db_table,
            record_id=business.id,
            business_id=business.id,
            new_data={'name': name, 'slug': slug, 'industry': industry, 'owner_membership_id': str(membership.id)},
        )
        logger.info(
            f"Provisioned business {slug}",
            extra={'business_id': str(business.id), 'request_id': context.request_id}
        )
        return business

    @classmethod
    def _require_owner(cls, context, business_id):
        if not check_hierarchical_access(context, Role.OWNER, HierarchyPermission.OWNER_ONLY, business_id=business_id):
            raise AccessDenied()

    @classmethod
    @transaction.atomic
    def soft_delete(cls, context, business: Business) -> Business:
        """
        Soft delete a business. Its memberships stop granting access at once
        because granting memberships require a non-deleted business.
        """
        cls._require_owner(context, business.id)

        business.status = 'cancelled'
        business.save(update_fields=['status', 'updated_at'])
        business.delete()
        context.clear_memo()

        AuditLog.log_change(
            context,
            table_name=Business._meta.db_table,
            action='DELETE',
            record_id=business.id,
            old_data={'name': business.name, 'slug': business.slug},
            business_id=business.id,
        )
        return business

    @classmethod
    @transaction.atomic
    def restore(cls, context, business: Business) -> Business:
        """
        Restore a soft-deleted business.

        The owner check runs against Membership directly: the resolver ignores
        deleted businesses, so it cannot see the caller's role here.
        """
        is_owner = Membership.objects.active().filter(
            business_id=business.id,
            user_id=context.user_id,
            role=Role.OWNER,
        ).exists()
        if not is_owner:
            raise AccessDenied()

        business.restore()
        business.status = 'active'
        business.save(update_fields=['status', 'updated_at'])
        context.clear_memo()

        AuditLog.log_event(
            context,
            event='business_restored',
            table_name=Business._meta.db_table,
            record_id=business.id,
            business_id=business.id,
        )
        return business
