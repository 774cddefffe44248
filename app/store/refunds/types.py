"""
Result types for refund reconciliation.

Refund-side failures are reported through these values instead of being
raised into the code that changed the order's status. Callers must look at
`outcome` (or `failed`) to notice a problem.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any

    from core.exceptions import BaseApplicationError


class RefundSkipReason(str, Enum):
    """Why RefundPolicy declined to issue a refund."""

    NOT_A_REFUND = "not_a_refund"
    ALREADY_REFUNDED = "already_refunded"
    ALREADY_PROCESSED = "already_processed"
    NEVER_PAID = "never_paid"
    NOTHING_TO_REFUND = "nothing_to_refund"
    INVALID_AMOUNT = "invalid_amount"
    AMOUNT_EXCEEDS_TOTAL = "amount_exceeds_total"


# Declines that point at bad data rather than a normal no-op
POLICY_VIOLATIONS = frozenset(
    {
        RefundSkipReason.NEVER_PAID,
        RefundSkipReason.INVALID_AMOUNT,
        RefundSkipReason.AMOUNT_EXCEEDS_TOTAL,
    }
)


@dataclass(frozen=True)
class RefundDecision:
    """Output of RefundPolicy: either an amount to refund or a skip reason."""

    amount: Decimal | None = None
    skip_reason: RefundSkipReason | None = None

    @property
    def should_refund(self) -> bool:
        return self.amount is not None

    @property
    def is_policy_violation(self) -> bool:
        return self.skip_reason in POLICY_VIOLATIONS


class ReconciliationOutcome(str, Enum):
    REFUNDED = "refunded"
    ALREADY_PROCESSED = "already_processed"
    NOT_APPLICABLE = "not_applicable"
    ORDER_NOT_FOUND = "order_not_found"
    POLICY_VIOLATION = "policy_violation"
    LEDGER_WRITE_FAILED = "ledger_write_failed"
    MARKER_WRITE_FAILED = "marker_write_failed"


FAILED_OUTCOMES = frozenset(
    {
        ReconciliationOutcome.LEDGER_WRITE_FAILED,
        ReconciliationOutcome.MARKER_WRITE_FAILED,
    }
)


@dataclass
class ReconciliationResult:
    """
    Outcome of one RefundCoordinator invocation.

    Attributes:
        outcome: What happened
        order_id: The order that was reconciled
        amount: Amount credited (REFUNDED only)
        transaction_id: Wallet transaction id (REFUNDED only)
        skip_reason: Policy reason for NOT_APPLICABLE / POLICY_VIOLATION
        error: The logged error for failures and policy violations
    """

    outcome: ReconciliationOutcome
    order_id: uuid.UUID
    amount: Decimal | None = None
    transaction_id: uuid.UUID | None = None
    skip_reason: RefundSkipReason | None = None
    error: BaseApplicationError | None = None

    @property
    def refunded(self) -> bool:
        return self.outcome is ReconciliationOutcome.REFUNDED

    @property
    def failed(self) -> bool:
        """True when a retry (sweep or re-save) is needed."""
        return self.outcome in FAILED_OUTCOMES

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "outcome": self.outcome.value,
            "order_id": str(self.order_id),
        }
        if self.amount is not None:
            data["amount"] = str(self.amount)
        if self.transaction_id is not None:
            data["transaction_id"] = str(self.transaction_id)
        if self.skip_reason is not None:
            data["skip_reason"] = self.skip_reason.value
        if self.error is not None:
            data["error"] = self.error.to_dict()
        return data
