"""
Refund eligibility policy.

Pure decision logic: given an order and the status edge that was just
taken, decide whether a wallet refund is due and for how much. No database
access, so it can be evaluated against any order snapshot.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from store.state_machines import OrderStatus
from store.wallet.types import to_amount

from .types import RefundDecision, RefundSkipReason

if TYPE_CHECKING:
    from store.orders.models import Order


class RefundPolicy:
    """
    Decides whether an order transition warrants a wallet refund.

    A refund is due when all of the following hold:
    - the order moved to REFUNDED from some other status
    - its refund marker is not set
    - it was paid at some point
    - the amount (requested, or the full total) is positive and no larger
      than the order total
    """

    @staticmethod
    def evaluate(
        order: Order,
        old_status: str,
        new_status: str,
        requested_amount: Decimal | None = None,
    ) -> RefundDecision:
        """
        Args:
            order: Order snapshot (only read, never saved)
            old_status: Status before the transition
            new_status: Status after the transition
            requested_amount: Partial refund amount; defaults to order.total

        Returns:
            RefundDecision with an amount, or a skip reason
        """
        if new_status != OrderStatus.REFUNDED:
            return RefundDecision(skip_reason=RefundSkipReason.NOT_A_REFUND)
        if old_status == OrderStatus.REFUNDED:
            return RefundDecision(skip_reason=RefundSkipReason.ALREADY_REFUNDED)
        if order.refund_processed:
            return RefundDecision(skip_reason=RefundSkipReason.ALREADY_PROCESSED)
        if not order.was_ever_paid:
            return RefundDecision(skip_reason=RefundSkipReason.NEVER_PAID)

        if requested_amount is None:
            if order.total <= 0:
                return RefundDecision(skip_reason=RefundSkipReason.NOTHING_TO_REFUND)
            return RefundDecision(amount=order.total)

        # Compare in cents, the unit the ledger stores
        try:
            amount = to_amount(requested_amount)
        except (InvalidOperation, TypeError):
            return RefundDecision(skip_reason=RefundSkipReason.INVALID_AMOUNT)
        if not amount.is_finite() or amount <= 0:
            return RefundDecision(skip_reason=RefundSkipReason.INVALID_AMOUNT)
        if amount > order.total:
            return RefundDecision(skip_reason=RefundSkipReason.AMOUNT_EXCEEDS_TOTAL)
        return RefundDecision(amount=amount)

    @staticmethod
    def should_refund(
        order: Order,
        old_status: str,
        new_status: str,
        requested_amount: Decimal | None = None,
    ) -> Decimal | None:
        """Amount to refund, or None."""
        return RefundPolicy.evaluate(order, old_status, new_status, requested_amount).amount
