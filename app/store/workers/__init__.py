"""
Celery tasks for the store app.

- reconcile_pending_refunds: Periodic sweep (scheduled by migration 0002)
- reconcile_order_refund: Replay a single order
"""

from store.workers.reconciliation_worker import (
    reconcile_order_refund,
    reconcile_pending_refunds,
)

__all__ = [
    "reconcile_order_refund",
    "reconcile_pending_refunds",
]
