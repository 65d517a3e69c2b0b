"""
RBAC models for multi-tenant row-level access control.

Implements:
- Global User identity (can belong to several businesses)
- Membership (business_users) carrying a role and a status per business
- ActiveUserBusiness, the cached projection of active memberships
- AuditLog, the audit trail for authorization-relevant writes
- UserPreference, a per-user record with no tenant dimension
"""
import logging
from django.contrib.auth.hashers import make_password, check_password
from django.db import models, transaction
from apps.core.models import TimestampedModel
from apps.rbac.roles import MembershipStatus, Role

logger = logging.getLogger(__name__)


class UserManager(models.Manager):
    """
    Manager for User queries.

    Compatible with Django's authentication system.
    """

    def active(self):
        """Return only active users."""
        return self.filter(is_active=True)

    def by_email(self, email):
        """Find user by email."""
        return self.filter(email=self.normalize_email(email)).first()

    def create_user(self, email, password=None, **extra_fields):
        """Create a new user with hashed password."""
        if not email:
            raise ValueError('Email address is required')

        email = self.normalize_email(email)
        extra_fields.setdefault('is_active', True)
        extra_fields.setdefault('is_superuser', False)

        user = self.model(email=email, **extra_fields)
        if password:
            user.set_password(password)
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_superuser', True)
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True')
        return self.create_user(email, password, **extra_fields)

    @staticmethod
    def normalize_email(email):
        """Lowercase the domain part of the email address."""
        email = (email or '').strip()
        email_name, sep, domain_part = email.rpartition('@')
        if not sep:
            return email
        return email_name + '@' + domain_part.lower()

    def get_by_natural_key(self, email):
        return self.get(**{self.model.USERNAME_FIELD: email})


class User(TimestampedModel):
    """
    Global user identity, created by the external identity provider.

    Role is a property of the membership, not of the user: the same person
    can be owner of one business and staff in another.

    This is the AUTH_USER_MODEL for the project.
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        help_text="User email address (unique globally)"
    )
    password_hash = models.CharField(
        max_length=255,
        blank=True,
        help_text="Hashed password",
        db_column='password_hash'
    )
    first_name = models.CharField(max_length=100, blank=True)
    last_name = models.CharField(max_length=100, blank=True)

    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether user account is active"
    )
    is_superuser = models.BooleanField(
        default=False,
        help_text="Platform administrator"
    )
    last_login = models.DateTimeField(null=True, blank=True)

    USERNAME_FIELD = 'email'
    EMAIL_FIELD = 'email'
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        db_table = 'users'
        ordering = ['-created_at']

    def __str__(self):
        return self.email

    @property
    def password(self):
        return self.password_hash

    @password.setter
    def password(self, value):
        self.password_hash = value

    def check_password(self, raw_password):
        """Check if provided password matches stored hash."""
        return check_password(raw_password, self.password_hash)

    def set_password(self, raw_password):
        """Set user password (hashes automatically)."""
        self.password_hash = make_password(raw_password)

    def get_full_name(self):
        """Return full name or email if name not set."""
        if self.first_name or self.last_name:
            return f"{self.first_name} {self.last_name}".strip()
        return self.email

    @property
    def is_authenticated(self):
        return True

    @property
    def is_anonymous(self):
        return False

    @property
    def is_staff(self):
        return self.is_superuser

    def get_username(self):
        return self.email

    def natural_key(self):
        return (self.email,)


class MembershipQuerySet(models.QuerySet):
    """Membership queries. ``granting()`` is the only set that confers access."""

    def active(self):
        return self.filter(status=MembershipStatus.ACTIVE)

    def granting(self):
        """Active memberships of businesses that are not soft-deleted."""
        return self.active().filter(business__deleted_at__isnull=True)

    def for_user(self, user_id):
        return self.filter(user_id=user_id)

    def for_business(self, business_id):
        return self.filter(business_id=business_id)

    def with_roles(self, roles):
        return self.filter(role__in=[Role(role) for role in roles])

    def pending_invites(self):
        return self.filter(status=MembershipStatus.PENDING)


class Membership(TimestampedModel):
    """
    Association between User and Business carrying a role.

    At most one membership per (business, user). Status moves
    pending -> active -> inactive; only active memberships grant access.
    """

    business = models.ForeignKey(
        'tenants.Business',
        on_delete=models.CASCADE,
        related_name='memberships',
        db_index=True,
        help_text="Business this membership belongs to"
    )
    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='memberships',
        db_index=True,
        help_text="User who is a member"
    )
    role = models.CharField(
        max_length=20,
        choices=Role.choices,
        default=Role.STAFF,
        db_index=True,
        help_text="Role of the user within this business"
    )
    status = models.CharField(
        max_length=20,
        choices=MembershipStatus.choices,
        default=MembershipStatus.ACTIVE,
        db_index=True,
        help_text="Only active memberships confer access"
    )

    # Invitation Tracking
    invited_by = models.ForeignKey(
        User,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='invitations_sent',
        help_text="User who sent the invitation"
    )
    invited_at = models.DateTimeField(null=True, blank=True)
    joined_at = models.DateTimeField(null=True, blank=True)
    last_active_at = models.DateTimeField(null=True, blank=True)

    objects = MembershipQuerySet.as_manager()

    class Meta:
        db_table = 'business_users'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(fields=['business', 'user'], name='business_users_business_user_uniq'),
        ]
        indexes = [
            models.Index(fields=['user', 'status'], name='business_users_user_status_idx'),
            models.Index(fields=['business', 'status'], name='business_users_biz_status_idx'),
        ]

    def __str__(self):
        return f"{self.user_id} @ {self.business_id} ({self.role}, {self.status})"

    @property
    def is_active(self):
        return self.status == MembershipStatus.ACTIVE

    def snapshot(self):
        """Serializable view of the row for audit records."""
        return {
            'id': str(self.id),
            'business_id': str(self.business_id),
            'user_id': str(self.user_id),
            'role': self.role,
            'status': self.status,
        }


class ActiveUserBusiness(models.Model):
    """
    One row of the cached membership projection.

    Rows are written in whole generations by CachedMembershipView.refresh();
    only the generation named by MembershipViewState is visible to readers.

    ``all_roles`` is a sorted set: a user who is staff in two businesses gets
    ``["staff"]``, not one entry per membership.
    """

    generation = models.PositiveBigIntegerField(db_index=True)
    user_id = models.UUIDField(db_index=True)
    business_id = models.UUIDField()
    role = models.CharField(max_length=20, choices=Role.choices)
    all_roles = models.JSONField(
        default=list,
        help_text="Distinct roles the user holds across all active memberships, sorted"
    )

    class Meta:
        db_table = 'active_user_businesses'
        constraints = [
            models.UniqueConstraint(
                fields=['generation', 'user_id', 'business_id'],
                name='active_user_businesses_uniq'
            ),
        ]

    def __str__(self):
        return f"{self.user_id} @ {self.business_id} ({self.role}) gen {self.generation}"


class MembershipViewState(models.Model):
    """Pointer to the currently published generation of a cached view."""

    name = models.CharField(max_length=100, unique=True)
    generation = models.PositiveBigIntegerField(default=0)
    refreshed_at = models.DateTimeField(null=True, blank=True)
    row_count = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = 'membership_view_state'

    def __str__(self):
        return f"{self.name} gen {self.generation}"


class AuditLogManager(models.Manager):
    """Manager for AuditLog queries."""

    def for_business(self, business_id):
        return self.filter(business_id=business_id)

    def for_user(self, user_id):
        return self.filter(user_id=user_id)

    def for_record(self, table_name, record_id):
        return self.filter(table_name=table_name, record_id=record_id)

    def by_request(self, request_id):
        return self.filter(request_id=request_id)


class AuditLog(TimestampedModel):
    """
    Audit trail for authorization-relevant writes.

    Row changes record the table, the action and the before/after images.
    Lifecycle events (invites, role changes) use ``event`` with the same
    request metadata.
    """

    ACTION_CHOICES = [
        ('INSERT', 'Insert'),
        ('UPDATE', 'Update'),
        ('DELETE', 'Delete'),
        ('TRUNCATE', 'Truncate'),
        ('EVENT', 'Event'),
    ]

    table_name = models.CharField(max_length=100, db_index=True)
    record_id = models.UUIDField(null=True, blank=True, db_index=True)
    action = models.CharField(max_length=10, choices=ACTION_CHOICES, db_index=True)
    event = models.CharField(
        max_length=100,
        blank=True,
        help_text="Lifecycle event name (e.g., 'membership_invited')"
    )

    user_id = models.UUIDField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Acting user (null for system and service actions)"
    )
    business_id = models.UUIDField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Business the change belongs to"
    )

    # Change Tracking
    old_data = models.JSONField(null=True, blank=True)
    new_data = models.JSONField(null=True, blank=True)
    changed_fields = models.JSONField(default=list, blank=True)

    # Request Context
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    user_agent = models.TextField(blank=True)
    request_id = models.CharField(max_length=100, blank=True, db_index=True)

    objects = AuditLogManager()

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['business_id', 'created_at'], name='audit_logs_biz_created_idx'),
            models.Index(fields=['table_name', 'record_id'], name='audit_logs_table_record_idx'),
        ]

    def __str__(self):
        return f"{self.action} {self.table_name}:{self.record_id} by {self.user_id or 'system'}"

    @staticmethod
    def diff_fields(old_data, new_data):
        """Names of keys whose values differ between two row images."""
        old_data = old_data or {}
        new_data = new_data or {}
        keys = set(old_data) | set(new_data)
        return sorted(key for key in keys if old_data.get(key) != new_data.get(key))

    @classmethod
    def log_change(cls, context, table_name, action, record_id=None,
                   old_data=None, new_data=None, business_id=None, event=''):
        """
        Record one row change made on behalf of ``context``.

        Args:
            context: AccessContext of the caller (supplies user, IP, UA, request id)
            table_name: Table the row lives in
            action: INSERT, UPDATE, DELETE or EVENT
            record_id: Primary key of the row
            old_data / new_data: Row images before and after the change
            business_id: Business the row is scoped to, if any

        Returns:
            AuditLog instance, or None if the entry could not be written
        """
        from apps.rbac.context import NIL_USER_ID

        user_id = getattr(context, 'user_id', None)
        if user_id == NIL_USER_ID:
            user_id = None

        changed = []
        if action == 'UPDATE':
            changed = cls.diff_fields(old_data, new_data)

        log_data = {
            'table_name': table_name,
            'record_id': record_id,
            'action': action,
            'event': event,
            'user_id': user_id,
            'business_id': business_id,
            'old_data': old_data,
            'new_data': new_data,
            'changed_fields': changed,
            'ip_address': getattr(context, 'ip_address', None),
            'user_agent': getattr(context, 'user_agent', None) or '',
            'request_id': getattr(context, 'request_id', None) or '',
        }

        # A savepoint, so a failed insert leaves the caller's transaction usable.
        try:
            with transaction.atomic():
                return cls.objects.create(**log_data)
        except Exception as e:
            # Audit logging must not break the write it observes
            logger.error(
                f"Failed to create audit log: {str(e)}",
                extra={'table_name': table_name, 'action': action, 'business_id': str(business_id)},
                exc_info=True
            )
            return None

    @classmethod
    def log_event(cls, context, event, table_name, record_id=None,
                  business_id=None, old_data=None, new_data=None):
        """Record a lifecycle event (membership invited, role changed, ...)."""
        return cls.log_change(
            context,
            table_name=table_name,
            action='EVENT',
            record_id=record_id,
            old_data=old_data,
            new_data=new_data,
            business_id=business_id,
            event=event,
        )


class UserPreference(TimestampedModel):
    """Per-user preferences. Owner-scoped: only the user may see or change them."""

    user = models.ForeignKey(
        User,
        on_delete=models.CASCADE,
        related_name='preferences',
        db_index=True
    )
    key = models.CharField(max_length=100)
    value = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = 'user_preferences'
        unique_together = [('user', 'key')]
        ordering = ['key']

    def __str__(self):
        return f"{self.user_id}:{self.key}"
