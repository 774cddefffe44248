"""
Signal receivers for the store app.

The only wiring here is refund reconciliation: when an order moves to
`refunded`, RefundCoordinator is run for it. The receiver returns the
ReconciliationResult so OrderStateMachine can hand it back to the caller.

Related files:
    - events.py: Signal and event definitions
    - apps.py: Signal registration

Usage:
    Receivers are connected when the app is ready (see apps.py).
"""

from __future__ import annotations

import logging

from store.events import OrderTransitioned, order_transitioned
from store.state_machines import OrderStatus

logger = logging.getLogger(__name__)


def reconcile_refund_on_transition(sender, event: OrderTransitioned, **kwargs):
    """Run refund reconciliation for transitions into `refunded`."""
    if event.new_status != OrderStatus.REFUNDED:
        return None

    from store.orders.models import Order
    from store.refunds.coordinator import RefundCoordinator

    order = Order.all_objects.filter(pk=event.order_id).first()
    if order is None:
        logger.warning(
            "Transitioned order vanished before refund reconciliation",
            extra={"order_id": str(event.order_id), "order_number": event.order_number},
        )
        return None

    return RefundCoordinator.on_order_transitioned(
        order,
        event.old_status,
        event.new_status,
        refund_amount=event.refund_amount,
        refund_reason=event.refund_reason,
    )


def register_signals() -> None:
    """Connect store receivers. Safe to call more than once."""
    order_transitioned.connect(
        reconcile_refund_on_transition,
        dispatch_uid="store.reconcile_refund_on_transition",
    )
