"""
Tenant models for multi-tenant isolation.

A Business is the isolation boundary. Every tenant-scoped row carries a
``business_id`` that points at a Business. Businesses are only ever
soft-deleted; their scoped children cascade when a hard delete happens at
the storage layer.
"""
from django.core.validators import RegexValidator
from django.db import models
from apps.core.models import BaseModel, SoftDeleteManager, SoftDeleteQuerySet, TimestampedModel


slug_validator = RegexValidator(
    regex=r'^[a-z0-9-]+$',
    message="Slug may only contain lowercase letters, digits and hyphens."
)


class BusinessManager(SoftDeleteManager.from_queryset(SoftDeleteQuerySet)):
    """Manager for business queries. Soft-deleted businesses are hidden."""

    def active(self):
        """Return businesses that are operating (active or on trial)."""
        return self.filter(status__in=['active', 'trial'])

    def by_slug(self, slug):
        return self.filter(slug=slug).first()


class Business(BaseModel):
    """
    Business (tenant) account.

    Owns memberships and every tenant-scoped table. Lifecycle status is
    independent of membership status: a suspended business still has
    active members, access checks only look at memberships.
    """

    INDUSTRY_CHOICES = [
        ('salons_barbershops', 'Salons & Barbershops'),
        ('auto_mechanics', 'Auto Mechanics'),
        ('massage_therapy', 'Massage Therapy'),
        ('fitness_wellness', 'Fitness & Wellness'),
        ('other', 'Other'),
    ]

    STATUS_CHOICES = [
        ('trial', 'Trial'),
        ('active', 'Active'),
        ('suspended', 'Suspended'),
        ('inactive', 'Inactive'),
        ('cancelled', 'Cancelled'),
    ]

    SUBSCRIPTION_TIER_CHOICES = [
        ('basic', 'Basic'),
        ('advanced', 'Advanced'),
        ('professional', 'Professional'),
        ('enterprise', 'Enterprise'),
    ]

    SUBSCRIPTION_STATUS_CHOICES = [
        ('active', 'Active'),
        ('cancelled', 'Cancelled'),
        ('past_due', 'Past Due'),
        ('trialing', 'Trialing'),
        ('paused', 'Paused'),
    ]

    name = models.CharField(
        max_length=255,
        help_text="Business name"
    )
    slug = models.CharField(
        unique=True,
        max_length=100,
        validators=[slug_validator],
        help_text="URL-friendly identifier (lowercase letters, digits, hyphens)"
    )
    email = models.EmailField(
        help_text="Business contact email"
    )
    phone = models.CharField(
        max_length=50,
        blank=True,
        help_text="Business contact phone"
    )
    industry = models.CharField(
        max_length=30,
        choices=INDUSTRY_CHOICES,
        help_text="Industry vertical"
    )
    status = models.CharField(
        max_length=20,
        choices=STATUS_CHOICES,
        default='trial',
        db_index=True,
        help_text="Business lifecycle status"
    )

    # Subscription
    subscription_tier = models.CharField(
        max_length=20,
        choices=SUBSCRIPTION_TIER_CHOICES,
        null=True,
        blank=True,
        help_text="Subscription tier"
    )
    subscription_status = models.CharField(
        max_length=20,
        choices=SUBSCRIPTION_STATUS_CHOICES,
        null=True,
        blank=True,
        help_text="Subscription status as reported by billing"
    )
    trial_ends_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="End of the free trial"
    )

    # Settings
    timezone = models.CharField(
        max_length=50,
        default='Australia/Perth',
        help_text="Business timezone"
    )
    currency = models.CharField(
        max_length=3,
        default='AUD',
        help_text="ISO 4217 currency code"
    )
    settings = models.JSONField(
        default=dict,
        blank=True,
        help_text="Free-form business settings"
    )

    objects = BusinessManager()

    class Meta:
        db_table = 'businesses'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['status', 'created_at'], name='businesses_status_created_idx'),
            models.Index(fields=['industry'], name='businesses_industry_idx'),
        ]

    def __str__(self):
        return f"{self.name} ({self.slug})"


class BusinessLocation(TimestampedModel):
    """Physical location of a business. Tenant-scoped."""

    business = models.ForeignKey(
        Business,
        on_delete=models.CASCADE,
        related_name='locations',
        db_index=True,
        help_text="Business this location belongs to"
    )
    name = models.CharField(max_length=255)
    address = models.TextField(blank=True)
    is_primary = models.BooleanField(default=False)

    class Meta:
        db_table = 'business_locations'
        ordering = ['name']

    def __str__(self):
        return f"{self.name} @ {self.business_id}"


class BusinessModule(TimestampedModel):
    """Feature module enabled for a business. Tenant-scoped."""

    business = models.ForeignKey(
        Business,
        on_delete=models.CASCADE,
        related_name='modules',
        db_index=True,
        help_text="Business this module is enabled for"
    )
    module = models.CharField(
        max_length=50,
        help_text="Module identifier (e.g., 'bookings', 'inventory')"
    )
    is_enabled = models.BooleanField(default=True)
    config = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = 'business_modules'
        unique_together = [('business', 'module')]
        ordering = ['module']

    def __str__(self):
        return f"{self.module} for {self.business_id}"
