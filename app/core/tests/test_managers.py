"""
Tests for SoftDeleteManager and SoftDeleteQuerySet.

These tests verify that:
- SoftDeleteManager filters out soft-deleted records by default
- QuerySet operations (delete, restore) never remove rows
- Hooks (on_soft_delete, on_restore) are called for each affected row

Order is used as the concrete soft-deletable model.
"""

from __future__ import annotations

import pytest

from store.orders.models import Order
from store.tests.factories import OrderFactory, UserFactory


@pytest.fixture
def owner(db):
    return UserFactory()


@pytest.fixture
def orders(owner):
    return [OrderFactory(owner=owner) for _ in range(3)]


@pytest.mark.django_db
class TestSoftDeleteManagerFiltering:
    """Tests for SoftDeleteManager default filtering behavior."""

    def test_objects_excludes_deleted_by_default(self, orders):
        orders[0].soft_delete()

        assert Order.objects.count() == 2
        assert orders[0] not in Order.objects.all()

    def test_objects_get_raises_for_deleted(self, orders):
        orders[0].soft_delete()

        with pytest.raises(Order.DoesNotExist):
            Order.objects.get(pk=orders[0].pk)

    def test_all_objects_includes_deleted(self, orders):
        orders[0].soft_delete()

        assert Order.all_objects.count() == 3


@pytest.mark.django_db
class TestSoftDeleteManagerMethods:
    def test_deleted_returns_only_deleted_records(self, orders):
        orders[1].soft_delete()

        assert list(Order.objects.deleted()) == [orders[1]]

    def test_with_deleted_returns_all_records(self, orders):
        orders[1].soft_delete()

        assert Order.objects.with_deleted().count() == 3


@pytest.mark.django_db
class TestSoftDeleteQuerySetDelete:
    def test_queryset_delete_soft_deletes(self, orders):
        count, per_model = Order.objects.filter(pk=orders[0].pk).delete()

        assert count == 1
        assert per_model == {"store.Order": 1}
        row = Order.all_objects.get(pk=orders[0].pk)
        assert row.is_deleted is True
        assert row.deleted_at is not None

    def test_queryset_delete_multiple_records(self, orders):
        count, _ = Order.objects.all().delete()

        assert count == 3
        assert Order.objects.count() == 0
        assert Order.all_objects.count() == 3

    def test_delete_calls_on_soft_delete_hook(self, orders, mocker):
        hook = mocker.patch.object(Order, "on_soft_delete", create=True)

        Order.objects.filter(pk=orders[0].pk).delete()

        hook.assert_called_once()


@pytest.mark.django_db
class TestAllObjectsDelete:
    def test_delete_through_all_objects_is_soft(self, orders):
        Order.all_objects.filter(pk=orders[0].pk).delete()

        assert Order.all_objects.count() == 3
        assert Order.objects.count() == 2

    def test_all_objects_includes_deleted(self, orders):
        orders[0].soft_delete()

        assert Order.all_objects.count() == 3
        assert list(Order.all_objects.deleted()) == [orders[0]]

@pytest.mark.django_db
class TestSoftDeleteQuerySetRestore:
    def test_restore_makes_records_visible(self, orders):
        orders[0].soft_delete()

        restored = Order.objects.deleted().restore()

        assert restored == 1
        assert Order.objects.count() == 3
        assert Order.objects.get(pk=orders[0].pk).deleted_at is None

    def test_restore_calls_on_restore_hook(self, orders, mocker):
        orders[0].soft_delete()
        hook = mocker.patch.object(Order, "on_restore", create=True)

        Order.objects.with_deleted().restore()

        hook.assert_called_once()


@pytest.mark.django_db
class TestSoftDeleteQuerySetFilters:
    def test_deleted_and_active_filters(self, orders):
        orders[2].soft_delete()
        queryset = Order.objects.with_deleted()

        assert list(queryset.deleted()) == [orders[2]]
        assert set(queryset.active()) == {orders[0], orders[1]}
