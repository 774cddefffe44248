"""
Order service for admin and checkout-facing order operations.

Wraps OrderStateMachine for callers that want ServiceResult values instead
of exceptions (admin actions, gateway callbacks), and owns the order edits
that are not status changes.

Usage:
    from store.orders.services import OrderService

    # Full refund
    result = OrderService.refund_order(order, reason="Damaged on arrival")

    # Partial refund
    result = OrderService.refund_order(order, amount=Decimal("25.00"))
    if result.success:
        reconciliation = result.data.reconciliation
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from core.services import BaseService, ServiceResult
from store.exceptions import (
    InvalidTransitionError,
    OrderNotFoundError,
    OrderValidationError,
    StaleRecordError,
)
from store.locks import check_version
from store.state_machines import OrderStatus
from store.wallet.types import to_amount

from .models import Order
from .state_machine import OrderStateMachine, TransitionResult

if TYPE_CHECKING:
    import uuid

logger = logging.getLogger(__name__)

# Editable shipping fields accepted by update_shipping_info
SHIPPING_FIELDS = ("shipping_method", "shipping_cost", "tracking_number", "tracking_url")


class OrderService(BaseService):
    """Order operations returning ServiceResult."""

    @classmethod
    def get_by_number(cls, order_number: str) -> Order:
        """
        Raises:
            OrderNotFoundError: No live order has this number
        """
        try:
            return Order.objects.get(order_number=order_number)
        except Order.DoesNotExist:
            raise OrderNotFoundError(
                f"Order {order_number} not found",
                details={"order_number": order_number},
            )

    @classmethod
    def update_status(cls, order: Order, new_status: str) -> ServiceResult[TransitionResult]:
        """Change the fulfilment status; illegal edges become a failure result."""
        try:
            return ServiceResult.success(OrderStateMachine.transition(order, new_status))
        except (InvalidTransitionError, OrderNotFoundError) as e:
            return cls.handle_exception(e, f"update_status({order.order_number})", logging.WARNING)

    @classmethod
    def update_payment_status(
        cls,
        order: Order,
        payment_status: str,
        payment_reference: str | None = None,
    ) -> ServiceResult[TransitionResult]:
        try:
            return ServiceResult.success(
                OrderStateMachine.update_payment_status(order, payment_status, payment_reference)
            )
        except (InvalidTransitionError, OrderNotFoundError) as e:
            return cls.handle_exception(
                e, f"update_payment_status({order.order_number})", logging.WARNING
            )

    @classmethod
    def refund_order(
        cls,
        order: Order,
        amount: Decimal | str | None = None,
        reason: str | None = None,
    ) -> ServiceResult[TransitionResult]:
        """
        Refund an order to the customer's wallet.

        Moves the order to `refunded`; the wallet credit is issued by refund
        reconciliation and reported in result.data.reconciliation. A failed
        credit does not make this a failure: the status change stands and
        the sweep retries the credit.

        Args:
            order: Order to refund (must be processing or completed)
            amount: Partial amount; defaults to the order total
            reason: Free-text reason recorded on the wallet transaction

        Returns:
            ServiceResult with the TransitionResult, or a failure for an
            invalid amount, an order already refunded, or an illegal edge
        """
        if amount is not None:
            try:
                amount = to_amount(amount)
            except (InvalidOperation, TypeError, ValueError):
                return ServiceResult.failure(
                    f"Invalid refund amount: {amount!r}",
                    error_code="INVALID_REFUND_AMOUNT",
                )
            if not amount.is_finite() or amount <= 0 or amount > order.total:
                return ServiceResult.failure(
                    f"Refund amount must be greater than 0 and at most {order.total}",
                    error_code="INVALID_REFUND_AMOUNT",
                    errors={"amount": [f"Must be between 0.01 and {order.total}."]},
                )

        if order.status == OrderStatus.REFUNDED:
            return ServiceResult.failure(
                f"Order {order.order_number} is already refunded",
                error_code="ORDER_ALREADY_REFUNDED",
            )

        try:
            result = OrderStateMachine.transition(
                order,
                OrderStatus.REFUNDED,
                refund_amount=amount,
                refund_reason=reason,
            )
        except (InvalidTransitionError, OrderNotFoundError) as e:
            return cls.handle_exception(e, f"refund_order({order.order_number})", logging.WARNING)

        reconciliation = result.reconciliation
        if reconciliation is not None and reconciliation.failed:
            logger.warning(
                f"Order {order.order_number} refunded but wallet credit pending retry",
                extra={"order_id": str(order.pk), **reconciliation.to_dict()},
            )
        return ServiceResult.success(result)

    @classmethod
    def update_shipping_info(
        cls,
        order: Order,
        expected_version: int | None = None,
        **fields,
    ) -> ServiceResult[Order]:
        """
        Update shipping details and recalculate the total.

        Args:
            order: Order to update
            expected_version: Version the caller read; a mismatch fails with
                STALE_RECORD instead of overwriting a concurrent edit
            **fields: Any of shipping_method, shipping_cost,
                tracking_number, tracking_url
        """
        unknown = sorted(set(fields) - set(SHIPPING_FIELDS))
        if unknown:
            return ServiceResult.failure(
                "Unknown shipping fields",
                error_code="VALIDATION_ERROR",
                errors={name: ["Not a shipping field."] for name in unknown},
            )

        try:
            with cls.atomic():
                if expected_version is not None:
                    locked = check_version(Order, order.pk, expected_version)
                else:
                    locked = Order.objects.select_for_update().get(pk=order.pk)

                for name, value in fields.items():
                    if name == "shipping_cost":
                        value = to_amount(value)
                        if value < 0:
                            raise OrderValidationError(
                                "Shipping cost cannot be negative",
                                details={"shipping_cost": str(value)},
                            )
                    setattr(locked, name, value)
                locked.save()
        except (StaleRecordError, OrderNotFoundError, OrderValidationError) as e:
            return cls.handle_exception(
                e, f"update_shipping_info({order.order_number})", logging.WARNING
            )
        except Order.DoesNotExist:
            return ServiceResult.failure(
                f"Order {order.pk} not found",
                error_code=OrderNotFoundError.default_error_code,
            )

        logger.info(
            f"Updated shipping info for order {locked.order_number}",
            extra={"order_id": str(locked.pk), "fields": sorted(fields)},
        )
        order.refresh_from_db()
        return ServiceResult.success(order)

    @classmethod
    def soft_delete_order(cls, order_id: uuid.UUID) -> ServiceResult[Order]:
        """Hide an order from the default manager; it is never physically deleted."""
        order = Order.objects.filter(pk=order_id).first()
        if order is None:
            return ServiceResult.failure(
                f"Order {order_id} not found",
                error_code=OrderNotFoundError.default_error_code,
            )
        order.soft_delete()
        return ServiceResult.success(order)
