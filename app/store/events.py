"""
In-process event bus for the order lifecycle.

Events are explicit: OrderStateMachine sends `order_transitioned` after it
has persisted a status change, and RefundCoordinator sends
`refund_processed` once a refund credit has committed. Nothing is emitted
from model save hooks.

Signals:
    order_transitioned(sender=Order, event=OrderTransitioned)
        Receivers may return a value; the state machine collects the
        ReconciliationResult instances among them.
    refund_processed(sender=Order, event=RefundProcessed)
        Sent after commit. Notification collaborators subscribe here; they
        are not awaited and cannot affect the refund.

Usage:
    from store.events import refund_processed

    @receiver(refund_processed)
    def notify_customer(sender, event, **kwargs):
        send_refund_email.delay(str(event.order_id))
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from django.dispatch import Signal
from django.utils import timezone

order_transitioned = Signal()
refund_processed = Signal()


@dataclass(frozen=True)
class OrderTransitioned:
    """
    A persisted change of an order's fulfilment status.

    Attributes:
        order_id: Primary key of the order
        order_number: Human-facing order number
        old_status: Status before the transition
        new_status: Status after the transition
        refund_amount: Amount requested by a partial/manual refund, if any
        refund_reason: Reason given with the refund request, if any
        occurred_at: When the transition was applied
    """

    order_id: uuid.UUID
    order_number: str
    old_status: str
    new_status: str
    refund_amount: Decimal | None = None
    refund_reason: str | None = None
    occurred_at: datetime = field(default_factory=timezone.now)


@dataclass(frozen=True)
class RefundProcessed:
    """A refund credit that has been committed to the owner's wallet."""

    order_id: uuid.UUID
    order_number: str
    owner_id: int
    amount: Decimal
    transaction_id: uuid.UUID
    reason: str | None = None
    occurred_at: datetime = field(default_factory=timezone.now)
