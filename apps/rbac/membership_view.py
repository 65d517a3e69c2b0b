"""
Cached projection of active memberships.

The projection (table ``active_user_businesses``) is rebuilt on demand in
whole generations: a refresh writes generation N+1 next to N, publishes it
by moving the MembershipViewState pointer in the same transaction, then
drops generations older than N. Readers only ever see a complete
generation and never wait on a refresh.

The projection is NOT kept consistent with Membership. A revoked membership
stays visible here until the next refresh. Authorization decisions read
Membership directly through MembershipResolver; this view is for display
paths only.
"""
import logging
import uuid
from collections import defaultdict
from contextlib import contextmanager

from django.core.cache import cache
from django.db import transaction
from django.utils import timezone

from apps.rbac.context import parse_uuid
from apps.rbac.models import ActiveUserBusiness, Membership, MembershipViewState

logger = logging.getLogger(__name__)


class CachedMembershipView:
    """Rebuild-and-swap projection of active memberships keyed by (user, business)."""

    NAME = 'active_user_businesses'
    LOCK_KEY = 'rbac:membership_view:refresh_lock'
    LOCK_TTL = 300  # seconds; longer than any expected rebuild
    BATCH_SIZE = 1000

    @classmethod
    @contextmanager
    def _refresh_lock(cls):
        """
        Yield True if this caller holds the refresh lock, False otherwise.

        ``cache.add`` only sets the key when absent, so exactly one caller
        wins. Losers skip the refresh instead of waiting.
        """
        token = str(uuid.uuid4())
        acquired = cache.add(cls.LOCK_KEY, token, cls.LOCK_TTL)
        try:
            yield acquired
        finally:
            if acquired and cache.get(cls.LOCK_KEY) == token:
                cache.delete(cls.LOCK_KEY)

    @classmethod
    def build_rows(cls, generation):
        """Projection rows for the current state of Membership."""
        memberships = list(
            Membership.objects.granting()
            .order_by('user_id', 'business_id')
            .values_list('user_id', 'business_id', 'role')
        )

        roles_by_user = defaultdict(set)
        for user_id, _, role in memberships:
            roles_by_user[user_id].add(role)

        return [
            ActiveUserBusiness(
                generation=generation,
                user_id=user_id,
                business_id=business_id,
                role=role,
                all_roles=sorted(roles_by_user[user_id]),
            )
            for user_id, business_id, role in memberships
        ]

    @classmethod
    def refresh(cls) -> bool:
        """
        Rebuild the projection.

        Returns True when a new generation was published and False when
        another refresh was already running. Never raises on contention.
        """
        with cls._refresh_lock() as acquired:
            if not acquired:
                logger.info(
                    "Membership view refresh skipped: another refresh is running",
                    extra={'view': cls.NAME}
                )
                return False

            started = timezone.now()
            with transaction.atomic():
                state, _ = MembershipViewState.objects.select_for_update().get_or_create(name=cls.NAME)
                generation = state.generation + 1
                rows = cls.build_rows(generation)
                ActiveUserBusiness.objects.bulk_create(rows, batch_size=cls.BATCH_SIZE)

                state.generation = generation
                state.refreshed_at = timezone.now()
                state.row_count = len(rows)
                state.save(update_fields=['generation', 'refreshed_at', 'row_count'])

            # Keep the previous generation for readers that resolved the old pointer
            purged, _ = ActiveUserBusiness.objects.filter(generation__lt=generation - 1).delete()

            logger.info(
                f"Membership view refreshed to generation {generation}",
                extra={
                    'view': cls.NAME,
                    'generation': generation,
                    'row_count': len(rows),
                    'purged': purged,
                    'duration_ms': int((timezone.now() - started).total_seconds() * 1000),
                }
            )
            return True

    @classmethod
    def current_generation(cls) -> int:
        generation = (
            MembershipViewState.objects.filter(name=cls.NAME)
            .values_list('generation', flat=True)
            .first()
        )
        return generation or 0

    @classmethod
    def state(cls) -> dict:
        state = MembershipViewState.objects.filter(name=cls.NAME).first()
        if state is None:
            return {'generation': 0, 'refreshed_at': None, 'row_count': 0}
        return {
            'generation': state.generation,
            'refreshed_at': state.refreshed_at,
            'row_count': state.row_count,
        }

    @classmethod
    def rows_for(cls, user_id):
        """Projection rows for one user at the published generation."""
        user_id = parse_uuid(user_id)
        generation = cls.current_generation()
        if user_id is None or not generation:
            return ActiveUserBusiness.objects.none()
        return ActiveUserBusiness.objects.filter(generation=generation, user_id=user_id).order_by('business_id')

    @classmethod
    def business_ids_for(cls, user_id):
        return frozenset(cls.rows_for(user_id).values_list('business_id', flat=True))

    @classmethod
    def is_member(cls, user_id, business_id) -> bool:
        business_id = parse_uuid(business_id)
        return business_id is not None and cls.rows_for(user_id).filter(business_id=business_id).exists()
