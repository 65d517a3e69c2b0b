"""
Management command to rebuild the cached membership view.

Runs the same refresh as the scheduled Celery task, synchronously.
"""
from django.core.management.base import BaseCommand
from apps.rbac.membership_view import CachedMembershipView


class Command(BaseCommand):
    help = 'Rebuild the active_user_businesses projection'

    def handle(self, *args, **options):
        before = CachedMembershipView.state()

        if not CachedMembershipView.refresh():
            self.stdout.write(
                self.style.WARNING('↻ Refresh already in progress, skipped')
            )
            return

        after = CachedMembershipView.state()
        self.stdout.write(
            self.style.SUCCESS(
                f"✓ Published generation {after['generation']} "
                f"({after['row_count']} rows, previous generation {before['generation']})"
            )
        )
