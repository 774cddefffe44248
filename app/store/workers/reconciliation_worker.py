"""
Refund reconciliation worker.

Orders can end up `refunded` without a wallet credit when the credit
failed (storage error) or the process died between the status change and
reconciliation. This worker replays RefundCoordinator for them; the
refund marker and the ledger's dedup key make every replay safe.

Tasks:
- reconcile_pending_refunds: Periodic sweep over unreconciled refunded orders
- reconcile_order_refund: Replay one order on demand

Usage:
    from store.workers import reconcile_order_refund, reconcile_pending_refunds

    reconcile_pending_refunds.delay()
    reconcile_order_refund.delay(str(order.id))
"""

from __future__ import annotations

import logging
from collections import Counter
from uuid import UUID

from celery import shared_task
from django.conf import settings
from django.db.models import Q

from store.exceptions import LockAcquisitionError
from store.locks import DistributedLock
from store.orders.models import Order
from store.refunds.coordinator import RefundCoordinator
from store.state_machines import OrderStatus, PaymentStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

SWEEP_LOCK_KEY = "store:refund-sweep"

# Refresh the sweep lock TTL every N orders
LOCK_EXTEND_EVERY = 25


def pending_refunds_queryset():
    """
    Refunded orders whose marker is unset.

    Orders that were never paid are left out: they are policy violations
    awaiting manual investigation, and replaying them cannot succeed.
    """
    return (
        Order.all_objects.filter(
            status=OrderStatus.REFUNDED,
            refund_processed=False,
        )
        .filter(
            Q(paid_at__isnull=False)
            | Q(payment_status__in=[PaymentStatus.PAID, PaymentStatus.REFUNDED])
        )
        .order_by("refunded_at", "created_at")
    )


# =============================================================================
# Periodic Task: Sweep
# =============================================================================


@shared_task(bind=True)
def reconcile_pending_refunds(self, batch_size: int | None = None) -> dict:
    """
    Replay refund reconciliation for refunded-but-unreconciled orders.

    Only one sweep runs at a time: the task takes a non-blocking
    distributed lock and returns "skipped" if another sweep holds it.

    Args:
        batch_size: Maximum orders to replay (default:
            STORE_REFUND_SWEEP_BATCH_SIZE)

    Returns:
        Dict with:
        - status: "completed", "skipped" (lock held), or "failed"
        - checked: Orders replayed
        - outcomes: Count per ReconciliationOutcome value
        - error: Error message if failed
    """
    batch_size = batch_size or settings.STORE_REFUND_SWEEP_BATCH_SIZE
    lock = DistributedLock(
        SWEEP_LOCK_KEY,
        ttl=settings.STORE_REFUND_SWEEP_LOCK_TTL,
    )

    try:
        with lock:
            logger.info("Starting refund reconciliation sweep", extra={"batch_size": batch_size})

            outcomes: Counter[str] = Counter()
            orders = list(pending_refunds_queryset()[:batch_size])
            for index, order in enumerate(orders, start=1):
                result = RefundCoordinator.replay(order)
                outcomes[result.outcome.value] += 1
                if index % LOCK_EXTEND_EVERY == 0:
                    lock.extend()

    except LockAcquisitionError:
        logger.info("Refund reconciliation sweep already running, skipping")
        return {"status": "skipped"}
    except Exception as e:
        logger.exception(f"Refund reconciliation sweep failed: {e}")
        return {"status": "failed", "error": str(e)}

    logger.info(
        f"Refund reconciliation sweep complete: checked {len(orders)} orders",
        extra={"checked": len(orders), "outcomes": dict(outcomes)},
    )
    return {
        "status": "completed",
        "checked": len(orders),
        "outcomes": dict(outcomes),
    }


# =============================================================================
# On-demand Task: Single Order
# =============================================================================


@shared_task(bind=True)
def reconcile_order_refund(self, order_id: str) -> dict:
    """
    Replay refund reconciliation for one order.

    Returns:
        Dict with:
        - status: "not_found", "not_refunded", or the ReconciliationOutcome value
        - order_id: The order processed
        - error: Error details for failures
    """
    try:
        order_uuid = UUID(str(order_id))
    except ValueError:
        logger.error(f"Invalid order_id format: {order_id}")
        return {"status": "not_found", "order_id": str(order_id)}

    order = Order.all_objects.filter(pk=order_uuid).first()
    if order is None:
        logger.warning("Order not found for refund replay", extra={"order_id": str(order_id)})
        return {"status": "not_found", "order_id": str(order_id)}

    if order.status != OrderStatus.REFUNDED:
        return {"status": "not_refunded", "order_id": str(order_id)}

    result = RefundCoordinator.replay(order)
    response = {"status": result.outcome.value, "order_id": str(order_id)}
    if result.error is not None:
        response["error"] = result.error.to_dict()
    return response
