"""
Management command to create the default development administrator.

Only permitted in the development environment. Any other APP_ENVIRONMENT
aborts the command before anything is written.
"""
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction

from apps.core.environment import DEVELOPMENT, require_environment
from apps.core.exceptions import EnvironmentGuardError
from apps.rbac.context import AccessContext
from apps.rbac.models import User
from apps.tenants.models import Business
from apps.tenants.services import BusinessService

DEFAULT_EMAIL = 'admin@oblivionstack.com'


class Command(BaseCommand):
    help = 'Create the default administrator (development environment only)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--email',
            type=str,
            default=DEFAULT_EMAIL,
            help=f'Administrator email address (default: {DEFAULT_EMAIL})',
        )
        parser.add_argument(
            '--password',
            type=str,
            default='admin',
            help='Administrator password',
        )
        parser.add_argument(
            '--business',
            type=str,
            help='Also provision a business with this name owned by the administrator',
        )

    def handle(self, *args, **options):
        try:
            environment = require_environment(DEVELOPMENT, operation='create_default_admin')
        except EnvironmentGuardError as e:
            raise CommandError(str(e))

        email = options['email']
        self.stdout.write(f'Environment: {environment}')

        with transaction.atomic():
            user = User.objects.by_email(email)
            if user:
                self.stdout.write(self.style.WARNING(f'↻ User already exists: {user.email}'))
            else:
                user = User.objects.create_superuser(
                    email=email,
                    password=options['password'],
                    first_name='Admin',
                )
                self.stdout.write(self.style.SUCCESS(f'✓ Created administrator: {user.email}'))

            name = options.get('business')
            if name:
                existing = Business.objects.filter(name=name, memberships__user=user).first()
                if existing:
                    self.stdout.write(self.style.WARNING(f'↻ Business already exists: {existing.slug}'))
                else:
                    business = BusinessService.provision_business(
                        AccessContext.for_user(user),
                        name=name,
                        industry='other',
                        email=user.email,
                    )
                    self.stdout.write(self.style.SUCCESS(f'✓ Provisioned {business.name} ({business.slug}) with owner {user.email}'))
