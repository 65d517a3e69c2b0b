"""
Celery tasks for the cached membership view.
"""
import logging
from celery import shared_task

from apps.core.tasks import LoggedTask
from apps.rbac.membership_view import CachedMembershipView

logger = logging.getLogger(__name__)


@shared_task(base=LoggedTask, name='rbac.refresh_active_user_businesses')
def refresh_active_user_businesses():
    """
    Rebuild the active_user_businesses projection.

    Scheduled by Celery beat every MEMBERSHIP_VIEW_REFRESH_SECONDS. A run that
    overlaps a refresh already in progress is skipped.

    Returns:
        dict: refreshed flag plus the published generation and row count
    """
    refreshed = CachedMembershipView.refresh()
    state = CachedMembershipView.state()

    if not refreshed:
        logger.info("Skipped membership view refresh (already running)")

    return {
        'refreshed': refreshed,
        'generation': state['generation'],
        'row_count': state['row_count'],
    }
