"""
Refund reconciliation.

    store.refunds.policy       RefundPolicy - pure eligibility decision
    store.refunds.coordinator  RefundCoordinator - policy + ledger + marker
    store.refunds.types        RefundDecision, ReconciliationResult, outcomes
"""

from .types import (
    ReconciliationOutcome,
    ReconciliationResult,
    RefundDecision,
    RefundSkipReason,
)

__all__ = [
    "ReconciliationOutcome",
    "ReconciliationResult",
    "RefundDecision",
    "RefundSkipReason",
]
