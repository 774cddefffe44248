"""
Tests for RefundPolicy.

RefundPolicy is pure, so these tests use unsaved orders built in memory.
"""

from decimal import Decimal

import pytest
from django.utils import timezone

from store.refunds.policy import RefundPolicy
from store.refunds.types import RefundSkipReason
from store.state_machines import OrderStatus, PaymentStatus
from store.tests.factories import OrderFactory


def build_order(**kwargs):
    defaults = {
        "status": OrderStatus.REFUNDED,
        "payment_status": PaymentStatus.PAID,
        "paid_at": timezone.now(),
        "total": Decimal("150.00"),
    }
    defaults.update(kwargs)
    return OrderFactory.build(**defaults)


class TestRefundPolicy:
    def test_full_refund_for_paid_order(self):
        decision = RefundPolicy.evaluate(build_order(), OrderStatus.COMPLETED, OrderStatus.REFUNDED)

        assert decision.should_refund is True
        assert decision.amount == Decimal("150.00")
        assert decision.skip_reason is None

    def test_partial_refund(self):
        decision = RefundPolicy.evaluate(
            build_order(), OrderStatus.COMPLETED, OrderStatus.REFUNDED, Decimal("25.50")
        )

        assert decision.amount == Decimal("25.50")

    def test_refund_from_processing(self):
        decision = RefundPolicy.evaluate(
            build_order(), OrderStatus.PROCESSING, OrderStatus.REFUNDED
        )

        assert decision.amount == Decimal("150.00")

    @pytest.mark.parametrize(
        "new_status",
        [OrderStatus.PROCESSING, OrderStatus.COMPLETED, OrderStatus.CANCELLED],
    )
    def test_non_refund_transition(self, new_status):
        decision = RefundPolicy.evaluate(build_order(), OrderStatus.PENDING, new_status)

        assert decision.skip_reason is RefundSkipReason.NOT_A_REFUND
        assert decision.is_policy_violation is False

    def test_refunded_to_refunded(self):
        decision = RefundPolicy.evaluate(build_order(), OrderStatus.REFUNDED, OrderStatus.REFUNDED)

        assert decision.skip_reason is RefundSkipReason.ALREADY_REFUNDED

    def test_marker_already_set(self):
        order = build_order(refund_processed=True)

        decision = RefundPolicy.evaluate(order, OrderStatus.COMPLETED, OrderStatus.REFUNDED)

        assert decision.skip_reason is RefundSkipReason.ALREADY_PROCESSED
        assert decision.is_policy_violation is False

    def test_never_paid_is_policy_violation(self):
        order = build_order(payment_status=PaymentStatus.PENDING, paid_at=None)

        decision = RefundPolicy.evaluate(order, OrderStatus.COMPLETED, OrderStatus.REFUNDED)

        assert decision.should_refund is False
        assert decision.skip_reason is RefundSkipReason.NEVER_PAID
        assert decision.is_policy_violation is True

    def test_failed_payment_is_never_paid(self):
        order = build_order(payment_status=PaymentStatus.FAILED, paid_at=None)

        decision = RefundPolicy.evaluate(order, OrderStatus.PROCESSING, OrderStatus.REFUNDED)

        assert decision.skip_reason is RefundSkipReason.NEVER_PAID

    def test_payment_refunded_counts_as_paid(self):
        order = build_order(payment_status=PaymentStatus.REFUNDED, paid_at=None)

        decision = RefundPolicy.evaluate(order, OrderStatus.COMPLETED, OrderStatus.REFUNDED)

        assert decision.amount == Decimal("150.00")

    def test_zero_total_has_nothing_to_refund(self):
        order = build_order(total=Decimal("0.00"))

        decision = RefundPolicy.evaluate(order, OrderStatus.COMPLETED, OrderStatus.REFUNDED)

        assert decision.skip_reason is RefundSkipReason.NOTHING_TO_REFUND
        assert decision.is_policy_violation is False

    @pytest.mark.parametrize(
        "amount", [Decimal("0.00"), Decimal("-5.00"), Decimal("0.004"), Decimal("NaN")]
    )
    def test_invalid_amount(self, amount):
        decision = RefundPolicy.evaluate(
            build_order(), OrderStatus.COMPLETED, OrderStatus.REFUNDED, amount
        )

        assert decision.skip_reason is RefundSkipReason.INVALID_AMOUNT
        assert decision.is_policy_violation is True

    def test_amount_above_total(self):
        decision = RefundPolicy.evaluate(
            build_order(), OrderStatus.COMPLETED, OrderStatus.REFUNDED, Decimal("150.01")
        )

        assert decision.skip_reason is RefundSkipReason.AMOUNT_EXCEEDS_TOTAL

    def test_amount_equal_to_total(self):
        decision = RefundPolicy.evaluate(
            build_order(), OrderStatus.COMPLETED, OrderStatus.REFUNDED, Decimal("150.00")
        )

        assert decision.amount == Decimal("150.00")

    def test_amount_rounded_to_cents(self):
        decision = RefundPolicy.evaluate(
            build_order(), OrderStatus.COMPLETED, OrderStatus.REFUNDED, Decimal("150.004")
        )

        assert decision.amount == Decimal("150.00")


class TestShouldRefund:
    def test_returns_amount(self):
        amount = RefundPolicy.should_refund(
            build_order(), OrderStatus.COMPLETED, OrderStatus.REFUNDED
        )

        assert amount == Decimal("150.00")

    def test_returns_none_when_declined(self):
        order = build_order(paid_at=None, payment_status=PaymentStatus.PENDING)

        assert RefundPolicy.should_refund(order, OrderStatus.COMPLETED, OrderStatus.REFUNDED) is None
