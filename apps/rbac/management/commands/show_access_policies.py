"""
Management command to inspect and manage the access policy registry.

Lists the installed policies per resource. ``--drop`` removes every policy
from a table; ``--reapply`` reloads the table from settings.ACCESS_POLICIES.
"""
from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from apps.core.exceptions import PolicyAlreadyExists
from apps.rbac.policies import default_registry, resource_name


class Command(BaseCommand):
    help = 'List, drop or reapply row access policies'

    def add_arguments(self, parser):
        parser.add_argument(
            '--table',
            type=str,
            help='Only show policies for this table',
        )
        parser.add_argument(
            '--drop',
            type=str,
            metavar='TABLE',
            help='Drop every policy on TABLE (enforcement stays on)',
        )
        parser.add_argument(
            '--reapply',
            action='store_true',
            help='Clear the registry and reload settings.ACCESS_POLICIES',
        )

    def handle(self, *args, **options):
        if options['drop']:
            dropped = default_registry.drop_policies(options['drop'])
            self.stdout.write(
                self.style.WARNING(f"Dropped {dropped} policies from {resource_name(options['drop'])}")
            )

        if options['reapply']:
            default_registry.clear()
            try:
                default_registry.load_from_config(getattr(settings, 'ACCESS_POLICIES', []))
            except PolicyAlreadyExists as e:
                raise CommandError(str(e))
            self.stdout.write(self.style.SUCCESS('✓ Reapplied ACCESS_POLICIES'))

        resources = default_registry.resources()
        if options['table']:
            wanted = resource_name(options['table'])
            resources = [r for r in resources if r == wanted]

        if not resources:
            self.stdout.write('No enforced resources')
            return

        for resource in resources:
            self.stdout.write(f'\n{resource}:')
            policies = default_registry.policies_for(resource)
            if not policies:
                self.stdout.write('  (no policies, all access denied)')
            for policy in policies:
                info = policy.describe()
                roles = ', '.join(info['roles']) if info['roles'] else 'any member'
                self.stdout.write(
                    f"  • {info['name']} [{', '.join(info['operations'])}] "
                    f"{info['strategy']} on {info['field'] or '-'} ({roles})"
                )
