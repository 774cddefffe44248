"""
Order model for the store's order lifecycle.

An order carries two independent django-fsm fields: the fulfilment
`status` and the `payment_status`. Transitions are declared here; the
OrderStateMachine service decides which one to call, persists the result
and emits the transition event.

The refund idempotency marker is stored as typed columns
(refund_processed, refund_transaction, refund_amount,
refund_processed_at, refund_reason) and exposed as a RefundMarker.

Usage:
    from store.orders.models import Order

    order = Order.objects.create(
        owner=user,
        subtotal=Decimal("120.00"),
        tax=Decimal("10.00"),
        shipping_cost=Decimal("20.00"),
    )
    order.total  # Decimal("150.00")
"""

from __future__ import annotations

import secrets
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone
from django_fsm import FSMField, transition

from core.managers import SoftDeleteManager, SoftDeleteQuerySet
from core.model_mixins import SoftDeleteMixin, UUIDPrimaryKeyMixin
from core.models import BaseModel
from store.exceptions import OrderValidationError
from store.state_machines import OrderStatus, PaymentStatus
from store.wallet.models import default_currency

ZERO = Decimal("0.00")


def generate_order_number() -> str:
    """ORD + UTC timestamp (YYYYmmddHHMMSS) + 4 random digits."""
    return f"ORD{timezone.now():%Y%m%d%H%M%S}{secrets.randbelow(10000):04d}"


@dataclass(frozen=True)
class RefundMarker:
    """
    Read-only view of an order's refund idempotency marker.

    Once `processed` is True no further refund may be issued for the order.
    """

    processed: bool = False
    transaction_id: uuid.UUID | None = None
    amount: Decimal | None = None
    processed_at: datetime | None = None
    reason: str | None = None


def _money_field(help_text: str, **kwargs) -> models.DecimalField:
    return models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=ZERO,
        help_text=help_text,
        **kwargs,
    )


class Order(UUIDPrimaryKeyMixin, SoftDeleteMixin, BaseModel):
    """
    A customer purchase with monetary totals and a status pair.

    Status Flow:
        PENDING -> PROCESSING -> COMPLETED
        PENDING/PROCESSING -> CANCELLED
        PROCESSING/COMPLETED -> REFUNDED

    Payment Status Flow:
        PENDING -> PAID -> REFUNDED
        PENDING -> FAILED -> PAID

    Fields:
        order_number: Unique, immutable human-facing identifier
        owner: Customer; refunds are credited to this user's wallet
        status / payment_status: django-fsm fields
        subtotal, tax, shipping_cost, discount, total: Fixed-point amounts;
            total is recomputed on every save
        refund_*: Idempotency marker written by RefundCoordinator
        version: Optimistic locking version
        *_at timestamps: Set the first time a state is entered

    Note:
        Orders are never physically deleted. The default manager hides
        soft-deleted rows; use all_objects for reconciliation work.
    """

    objects = SoftDeleteManager()
    all_objects = SoftDeleteQuerySet.as_manager()

    # ==========================================================================
    # Identity
    # ==========================================================================

    order_number = models.CharField(
        max_length=32,
        unique=True,
        default=generate_order_number,
        editable=False,
        help_text="Human-facing order identifier",
    )
    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="orders",
        help_text="Customer who placed the order",
    )

    # ==========================================================================
    # State
    # ==========================================================================

    status = FSMField(
        default=OrderStatus.PENDING,
        choices=OrderStatus.choices,
        db_index=True,
        help_text="Fulfilment status (managed by FSM)",
    )
    payment_status = FSMField(
        default=PaymentStatus.PENDING,
        choices=PaymentStatus.choices,
        db_index=True,
        help_text="Payment status (managed by FSM)",
    )
    payment_method = models.CharField(
        max_length=50,
        blank=True,
        default="",
        help_text="Payment method chosen at checkout",
    )
    payment_reference = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Gateway payment id",
    )

    # ==========================================================================
    # Totals
    # ==========================================================================

    subtotal = _money_field("Sum of line items")
    tax = _money_field("Tax amount")
    shipping_cost = _money_field("Shipping cost")
    discount = _money_field("Discount applied")
    total = _money_field(
        "subtotal + tax + shipping_cost - discount",
        editable=False,
    )
    currency = models.CharField(
        max_length=3,
        default=default_currency,
        help_text="ISO 4217 currency code",
    )

    # ==========================================================================
    # Shipping
    # ==========================================================================

    shipping_method = models.CharField(max_length=50, blank=True, default="")
    tracking_number = models.CharField(max_length=100, blank=True, default="")
    tracking_url = models.URLField(blank=True, default="")
    notes = models.TextField(blank=True, default="")

    # ==========================================================================
    # Refund Marker
    # ==========================================================================

    refund_processed = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Set once the wallet refund for this order has been issued",
    )
    refund_transaction = models.ForeignKey(
        "store.WalletTransaction",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="+",
        help_text="Wallet transaction that refunded this order",
    )
    refund_amount = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        help_text="Amount credited to the owner's wallet",
    )
    refund_processed_at = models.DateTimeField(null=True, blank=True)
    refund_reason = models.CharField(max_length=255, blank=True, default="")

    # ==========================================================================
    # Timestamps & Bookkeeping
    # ==========================================================================

    paid_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    refunded_at = models.DateTimeField(null=True, blank=True)

    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Free-form data from checkout and integrations",
    )
    version = models.PositiveIntegerField(
        default=1,
        help_text="Version for optimistic locking - incremented on each save",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["owner", "-created_at"],
                name="store_order_owner_created_idx",
            ),
            models.Index(
                fields=["status", "refund_processed"],
                name="store_order_status_refund_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(total__gte=0),
                name="store_order_total_non_negative",
            ),
            models.CheckConstraint(
                condition=Q(subtotal__gte=0)
                & Q(tax__gte=0)
                & Q(shipping_cost__gte=0)
                & Q(discount__gte=0),
                name="store_order_components_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Order {self.order_number} ({self.status})"

    # ==========================================================================
    # Derived Values
    # ==========================================================================

    def calculate_total(self) -> Decimal:
        return self.subtotal + self.tax + self.shipping_cost - self.discount

    @property
    def was_ever_paid(self) -> bool:
        """True once payment_status has been PAID at some point."""
        return self.paid_at is not None or self.payment_status in (
            PaymentStatus.PAID,
            PaymentStatus.REFUNDED,
        )

    @property
    def refund_marker(self) -> RefundMarker:
        return RefundMarker(
            processed=self.refund_processed,
            transaction_id=self.refund_transaction_id,
            amount=self.refund_amount,
            processed_at=self.refund_processed_at,
            reason=self.refund_reason or None,
        )

    def save(self, *args, **kwargs):
        """
        Recompute the total and bump the version.

        Raises:
            OrderValidationError: The recomputed total is negative
        """
        total = self.calculate_total()
        if total < 0:
            raise OrderValidationError(
                f"Order total cannot be negative ({total})",
                details={
                    "order_number": self.order_number,
                    "subtotal": str(self.subtotal),
                    "tax": str(self.tax),
                    "shipping_cost": str(self.shipping_cost),
                    "discount": str(self.discount),
                },
            )
        self.total = total

        is_update = not self._state.adding and not kwargs.get("force_insert", False)
        if is_update:
            self.version = F("version") + 1
            update_fields = kwargs.get("update_fields")
            if update_fields is not None:
                kwargs["update_fields"] = {*update_fields, "version", "total"}
        super().save(*args, **kwargs)
        if is_update:
            self.refresh_from_db(fields=["version"])

    # ==========================================================================
    # Status Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=status,
        source=OrderStatus.PENDING,
        target=OrderStatus.PROCESSING,
    )
    def start_processing(self):
        """Transition: PENDING -> PROCESSING"""

    @transition(
        field=status,
        source=OrderStatus.PROCESSING,
        target=OrderStatus.COMPLETED,
    )
    def complete(self):
        """Transition: PROCESSING -> COMPLETED"""
        if self.completed_at is None:
            self.completed_at = timezone.now()

    @transition(
        field=status,
        source=[OrderStatus.PENDING, OrderStatus.PROCESSING],
        target=OrderStatus.CANCELLED,
    )
    def cancel(self):
        """
        Transition: PENDING/PROCESSING -> CANCELLED

        Completed and refunded orders cannot be cancelled.
        """
        if self.cancelled_at is None:
            self.cancelled_at = timezone.now()

    @transition(
        field=status,
        source=[OrderStatus.PROCESSING, OrderStatus.COMPLETED],
        target=OrderStatus.REFUNDED,
    )
    def refund(self):
        """
        Transition: PROCESSING/COMPLETED -> REFUNDED

        The wallet credit is not issued here; RefundCoordinator reacts to
        the transition event.
        """
        if self.refunded_at is None:
            self.refunded_at = timezone.now()

    # ==========================================================================
    # Payment Status Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=payment_status,
        source=[PaymentStatus.PENDING, PaymentStatus.FAILED],
        target=PaymentStatus.PAID,
    )
    def mark_paid(self):
        """Transition: PENDING/FAILED -> PAID"""
        if self.paid_at is None:
            self.paid_at = timezone.now()

    @transition(
        field=payment_status,
        source=PaymentStatus.PENDING,
        target=PaymentStatus.FAILED,
    )
    def mark_payment_failed(self):
        """Transition: PENDING -> FAILED"""

    @transition(
        field=payment_status,
        source=PaymentStatus.PAID,
        target=PaymentStatus.REFUNDED,
    )
    def mark_payment_refunded(self):
        """Transition: PAID -> REFUNDED"""
