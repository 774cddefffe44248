"""
Custom QuerySet and Manager classes for soft-deleted models.

Manager vs QuerySet:
    - QuerySet: Defines chainable methods (filter, exclude, etc.)
    - Manager: Attaches QuerySet to model, defines table-level operations

Usage:
    from core.managers import SoftDeleteManager, SoftDeleteQuerySet

    class Order(SoftDeleteMixin, BaseModel):
        objects = SoftDeleteManager()  # Default: excludes deleted
        all_objects = SoftDeleteQuerySet.as_manager()  # Includes deleted

    Order.objects.all()          # Only live orders
    Order.objects.deleted()      # Only soft-deleted orders
    Order.all_objects.all()      # Everything

Related:
    - core.model_mixins.SoftDeleteMixin: Model mixin for soft delete fields
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone


class SoftDeleteQuerySet(models.QuerySet):
    """
    QuerySet that provides soft delete operations.

    Methods:
        delete(): Soft delete (marks is_deleted=True)
        restore(): Restore soft-deleted records
        deleted(): Filter to only deleted records
        active(): Filter to only active records

    Note:
        The default filtering of deleted records happens in SoftDeleteManager,
        not in this QuerySet.
    """

    def delete(self) -> tuple[int, dict[str, int]]:
        """
        Soft delete all objects in queryset.

        Calls the on_soft_delete() hook on each live instance, then marks
        them deleted in a single UPDATE.

        Returns:
            Tuple of (count, {model_label: count}) matching Django's delete()
        """
        live = self.filter(is_deleted=False)
        for instance in live:
            if hasattr(instance, "on_soft_delete"):
                instance.on_soft_delete()

        now = timezone.now()
        count = live.update(is_deleted=True, deleted_at=now, updated_at=now)

        return count, {self.model._meta.label: count}

    def restore(self) -> int:
        """
        Restore all soft-deleted objects in queryset.

        Returns:
            Number of restored records
        """
        deleted = self.filter(is_deleted=True)
        for instance in deleted:
            if hasattr(instance, "on_restore"):
                instance.on_restore()

        return deleted.update(is_deleted=False, deleted_at=None, updated_at=timezone.now())

    def deleted(self) -> SoftDeleteQuerySet:
        return self.filter(is_deleted=True)

    def active(self) -> SoftDeleteQuerySet:
        return self.filter(is_deleted=False)


class SoftDeleteManager(models.Manager):
    """
    Manager that filters out soft-deleted records by default.

    Always pair with a standard Manager (all_objects) for accessing
    deleted records.
    """

    def get_queryset(self) -> SoftDeleteQuerySet:
        return SoftDeleteQuerySet(self.model, using=self._db).filter(is_deleted=False)

    def deleted(self) -> SoftDeleteQuerySet:
        """Shortcut to get only deleted records."""
        return SoftDeleteQuerySet(self.model, using=self._db).filter(is_deleted=True)

    def with_deleted(self) -> SoftDeleteQuerySet:
        """Get queryset including deleted records."""
        return SoftDeleteQuerySet(self.model, using=self._db)
