"""
Order state machine service.

Validates and applies status and payment-status changes on an Order, then
announces status changes on the `order_transitioned` event so refund
reconciliation can react.

The legal edges are the django-fsm transitions declared on Order; this
service maps a requested target status to the transition method, checks
it with can_proceed and persists the result under a row lock.

Ordering guarantees:
    1. The status change is saved in its own transaction.
    2. The event is sent after that transaction block, with send_robust,
       so a failing receiver can neither block nor undo the change.
    3. Receiver results (ReconciliationResult) are collected and handed
       back to the caller in TransitionResult.reconciliations.

Usage:
    from store.orders.state_machine import OrderStateMachine
    from store.state_machines import OrderStatus

    result = OrderStateMachine.transition(order, OrderStatus.PROCESSING)
    result.changed  # False when the order was already processing
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from django_fsm import can_proceed

from core.services import BaseService
from store.events import OrderTransitioned, order_transitioned
from store.exceptions import InvalidTransitionError, OrderNotFoundError
from store.refunds.types import ReconciliationResult
from store.state_machines import OrderStatus, PaymentStatus

from .models import Order

logger = logging.getLogger(__name__)


# =============================================================================
# Transition Tables
# =============================================================================

# Target status -> Order transition method
STATUS_TRANSITIONS = {
    OrderStatus.PROCESSING: "start_processing",
    OrderStatus.COMPLETED: "complete",
    OrderStatus.CANCELLED: "cancel",
    OrderStatus.REFUNDED: "refund",
}

PAYMENT_STATUS_TRANSITIONS = {
    PaymentStatus.PAID: "mark_paid",
    PaymentStatus.FAILED: "mark_payment_failed",
    PaymentStatus.REFUNDED: "mark_payment_refunded",
}


@dataclass
class TransitionResult:
    """
    Result of a transition request.

    Attributes:
        order: The caller's order, refreshed from the database
        changed: False when the order was already in the requested state
        event: The emitted event (None when nothing changed)
        reconciliations: Results returned by refund reconciliation
    """

    order: Order
    changed: bool
    event: OrderTransitioned | None = None
    reconciliations: list[ReconciliationResult] = field(default_factory=list)

    @property
    def reconciliation(self) -> ReconciliationResult | None:
        return self.reconciliations[0] if self.reconciliations else None


class OrderStateMachine(BaseService):
    """Applies legal status edges to orders."""

    @classmethod
    def transition(
        cls,
        order: Order,
        new_status: str,
        refund_amount: Decimal | None = None,
        refund_reason: str | None = None,
    ) -> TransitionResult:
        """
        Move an order to a new fulfilment status.

        Args:
            order: Order to transition
            new_status: Target OrderStatus value
            refund_amount: Partial refund amount (only with REFUNDED)
            refund_reason: Refund reason (only with REFUNDED)

        Returns:
            TransitionResult; a request for the current status is a no-op

        Raises:
            InvalidTransitionError: Unknown status or illegal edge; the
                order is left unchanged
            OrderNotFoundError: The order no longer exists
        """
        target = cls._coerce(OrderStatus, new_status, order.status, "status")

        with cls.atomic():
            locked = cls._lock(order)
            old_status = locked.status

            if old_status == target:
                logger.debug(
                    "Order already in requested status",
                    extra={"order_id": str(order.pk), "status": target},
                )
                return TransitionResult(order=order, changed=False)

            cls._apply(locked, STATUS_TRANSITIONS.get(target), "status", target)

            if target == OrderStatus.REFUNDED and not locked.refund_processed:
                if refund_amount is not None:
                    locked.refund_amount = refund_amount
                if refund_reason:
                    locked.refund_reason = refund_reason

            locked.save()

        event = OrderTransitioned(
            order_id=locked.pk,
            order_number=locked.order_number,
            old_status=old_status,
            new_status=target,
            refund_amount=refund_amount,
            refund_reason=refund_reason,
        )
        logger.info(
            f"Order {locked.order_number} moved {old_status} -> {target}",
            extra={
                "order_id": str(locked.pk),
                "old_status": old_status,
                "new_status": target,
            },
        )

        reconciliations = cls._dispatch(event)
        order.refresh_from_db()
        return TransitionResult(
            order=order,
            changed=True,
            event=event,
            reconciliations=reconciliations,
        )

    @classmethod
    def update_payment_status(
        cls,
        order: Order,
        new_payment_status: str,
        payment_reference: str | None = None,
    ) -> TransitionResult:
        """
        Move an order to a new payment status.

        Payment changes do not emit an event; refunds are driven by the
        fulfilment status only.

        Raises:
            InvalidTransitionError: Unknown payment status or illegal edge
        """
        target = cls._coerce(
            PaymentStatus, new_payment_status, order.payment_status, "payment_status"
        )

        with cls.atomic():
            locked = cls._lock(order)
            old_status = locked.payment_status
            if old_status == target:
                return TransitionResult(order=order, changed=False)

            cls._apply(locked, PAYMENT_STATUS_TRANSITIONS.get(target), "payment_status", target)
            if payment_reference:
                locked.payment_reference = payment_reference
            locked.save()

        logger.info(
            f"Order {locked.order_number} payment {old_status} -> {target}",
            extra={
                "order_id": str(locked.pk),
                "old_status": old_status,
                "new_status": target,
            },
        )
        order.refresh_from_db()
        return TransitionResult(order=order, changed=True)

    @staticmethod
    def allowed_statuses(order: Order) -> list[str]:
        """Statuses reachable from the order's current status."""
        return [
            status
            for status, method in STATUS_TRANSITIONS.items()
            if can_proceed(getattr(order, method))
        ]

    # =========================================================================
    # Helpers
    # =========================================================================

    @staticmethod
    def _coerce(choices, value: str, current: str, field_name: str):
        try:
            return choices(value)
        except ValueError:
            raise InvalidTransitionError(
                f"Unknown {field_name} '{value}'",
                details={"field": field_name, "current": current, "target": value},
            )

    @staticmethod
    def _lock(order: Order) -> Order:
        try:
            return Order.all_objects.select_for_update().get(pk=order.pk)
        except Order.DoesNotExist:
            raise OrderNotFoundError(
                f"Order {order.pk} not found",
                details={"order_id": str(order.pk)},
            )

    @staticmethod
    def _apply(order: Order, method_name: str | None, field_name: str, target: str) -> None:
        current = getattr(order, field_name)
        method = getattr(order, method_name) if method_name else None
        if method is None or not can_proceed(method):
            raise InvalidTransitionError(
                f"Cannot move order {order.order_number} {field_name} "
                f"from '{current}' to '{target}'",
                details={"field": field_name, "current": current, "target": target},
            )
        method()

    @staticmethod
    def _dispatch(event: OrderTransitioned) -> list[ReconciliationResult]:
        results = []
        for receiver, response in order_transitioned.send_robust(sender=Order, event=event):
            if isinstance(response, Exception):
                logger.error(
                    f"Order transition receiver {receiver!r} failed: {response}",
                    exc_info=response,
                    extra={"order_id": str(event.order_id), "new_status": event.new_status},
                )
            elif isinstance(response, ReconciliationResult):
                results.append(response)
        return results
