"""
Abstract model bases shared by every app.

``TimestampedModel`` gives a UUID key and created/updated stamps.
``BaseModel`` adds soft delete on top.
"""
import uuid
from django.db import models
from django.utils import timezone


class TimestampedModel(models.Model):
    """
    UUID primary key plus creation and modification stamps.

    Memberships, audit entries and the cached membership projection use
    this directly: their lifecycle lives in status columns, not deletion.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True
        ordering = ['-created_at']


class SoftDeleteQuerySet(models.QuerySet):
    """Bulk ``delete()`` stamps ``deleted_at`` instead of removing rows."""

    def delete(self):
        return self.update(deleted_at=timezone.now(), updated_at=timezone.now())

    def hard_delete(self):
        return super().delete()

    def deleted(self):
        return self.filter(deleted_at__isnull=False)


class SoftDeleteManager(models.Manager):
    """Hides soft-deleted rows."""

    def get_queryset(self):
        return super().get_queryset().filter(deleted_at__isnull=True)


class BaseModel(TimestampedModel):
    """
    Soft-deletable model.

    ``objects`` only returns live rows; ``objects_with_deleted`` returns
    everything, which is what slug uniqueness checks and restores need.
    """
    deleted_at = models.DateTimeField(null=True, blank=True, db_index=True)

    objects = SoftDeleteManager.from_queryset(SoftDeleteQuerySet)()
    objects_with_deleted = models.Manager.from_queryset(SoftDeleteQuerySet)()

    class Meta(TimestampedModel.Meta):
        abstract = True

    @property
    def is_deleted(self):
        return self.deleted_at is not None

    def _stamp_deleted(self, value):
        self.deleted_at = value
        self.save(update_fields=['deleted_at', 'updated_at'])

    def delete(self, using=None, keep_parents=False):
        self._stamp_deleted(timezone.now())

    def restore(self):
        self._stamp_deleted(None)

    def hard_delete(self, using=None, keep_parents=False):
        return super().delete(using=using, keep_parents=keep_parents)
