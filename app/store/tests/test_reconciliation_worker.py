"""
Tests for the refund reconciliation Celery tasks.

Tasks are called directly (synchronously); Redis is mocked.
"""

import uuid
from decimal import Decimal

import pytest

from store.exceptions import LedgerWriteError
from store.orders.models import Order
from store.refunds.types import ReconciliationOutcome
from store.tests.factories import OrderFactory
from store.wallet.services import WalletLedger
from store.workers import reconcile_order_refund, reconcile_pending_refunds
from store.workers.reconciliation_worker import pending_refunds_queryset


def refunded(order, paid=True):
    names = ["start_processing", "complete", "refund"]
    if paid:
        names.insert(0, "mark_paid")
    for name in names:
        getattr(order, name)()
        order.save()
    return order


class TestPendingRefundsQueryset:
    def test_selects_unreconciled_paid_refunds(self, refunded_order, paid_completed_order):
        assert list(pending_refunds_queryset()) == [refunded_order]

    def test_excludes_never_paid_orders(self, db, user):
        refunded(OrderFactory(owner=user), paid=False)

        assert list(pending_refunds_queryset()) == []

    def test_excludes_reconciled_orders(self, refunded_order):
        Order.all_objects.filter(pk=refunded_order.pk).update(refund_processed=True)

        assert list(pending_refunds_queryset()) == []


class TestReconcilePendingRefunds:
    def test_sweep_credits_unreconciled_orders(self, db, user, mock_redis):
        orders = [refunded(OrderFactory(owner=user)) for _ in range(3)]

        result = reconcile_pending_refunds()

        assert result["status"] == "completed"
        assert result["checked"] == 3
        assert result["outcomes"] == {ReconciliationOutcome.REFUNDED.value: 3}
        assert WalletLedger.get_balance(user.id).amount == Decimal("450.00")
        for order in orders:
            order.refresh_from_db()
            assert order.refund_processed is True

    def test_second_sweep_finds_nothing(self, refunded_order, user, mock_redis):
        reconcile_pending_refunds()

        result = reconcile_pending_refunds()

        assert result["checked"] == 0
        assert WalletLedger.get_balance(user.id).amount == Decimal("150.00")

    def test_respects_batch_size(self, db, user, mock_redis):
        for _ in range(3):
            refunded(OrderFactory(owner=user))

        result = reconcile_pending_refunds(batch_size=2)

        assert result["checked"] == 2
        assert pending_refunds_queryset().count() == 1

    def test_failed_credit_counted(self, refunded_order, mock_redis, mocker):
        mocker.patch.object(WalletLedger, "credit", side_effect=LedgerWriteError("down"))

        result = reconcile_pending_refunds()

        assert result["outcomes"] == {ReconciliationOutcome.LEDGER_WRITE_FAILED.value: 1}
        assert pending_refunds_queryset().count() == 1

    def test_skips_when_lock_held(self, refunded_order, mock_redis):
        mock_redis.set.return_value = False

        result = reconcile_pending_refunds()

        assert result == {"status": "skipped"}
        refunded_order.refresh_from_db()
        assert refunded_order.refund_processed is False

    def test_lock_released_after_sweep(self, refunded_order, mock_redis):
        reconcile_pending_refunds()

        mock_redis.eval.assert_called()
        assert mock_redis.eval.call_args[0][2] == "lock:store:refund-sweep"

    def test_unexpected_error_reported(self, refunded_order, mock_redis, mocker):
        mocker.patch(
            "store.workers.reconciliation_worker.RefundCoordinator.replay",
            side_effect=RuntimeError("boom"),
        )

        result = reconcile_pending_refunds()

        assert result["status"] == "failed"
        assert result["error"] == "boom"


class TestReconcileOrderRefund:
    def test_replays_single_order(self, refunded_order, user):
        result = reconcile_order_refund(str(refunded_order.pk))

        assert result == {
            "status": ReconciliationOutcome.REFUNDED.value,
            "order_id": str(refunded_order.pk),
        }
        assert WalletLedger.get_balance(user.id).amount == Decimal("150.00")

    def test_already_processed(self, refunded_order):
        reconcile_order_refund(str(refunded_order.pk))

        result = reconcile_order_refund(str(refunded_order.pk))

        assert result["status"] == ReconciliationOutcome.ALREADY_PROCESSED.value

    def test_not_refunded(self, paid_completed_order):
        result = reconcile_order_refund(str(paid_completed_order.pk))

        assert result["status"] == "not_refunded"

    @pytest.mark.parametrize("order_id", ["not-a-uuid", str(uuid.uuid4())])
    def test_not_found(self, db, order_id):
        result = reconcile_order_refund(order_id)

        assert result["status"] == "not_found"

    def test_failure_includes_error(self, refunded_order, mocker):
        mocker.patch.object(WalletLedger, "credit", side_effect=LedgerWriteError("down"))

        result = reconcile_order_refund(str(refunded_order.pk))

        assert result["status"] == ReconciliationOutcome.LEDGER_WRITE_FAILED.value
        assert result["error"]["error_code"] == "LEDGER_WRITE_FAILED"
