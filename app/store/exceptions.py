"""
Store-specific exceptions for order and refund operations.

Exception Hierarchy:
    StoreError (base for store domain)
    ├── OrderNotFoundError - Order lookup failures
    ├── PolicyViolationWarning - Refund requested for an order never paid
    ├── LedgerWriteError - Wallet credit could not be committed
    └── MarkerWriteError - Wallet credited but refund marker not persisted

    OrderValidationError - Invalid totals or refund amounts (inherits ValidationError)
    InvalidTransitionError - Illegal status edge (inherits ConflictError)
    AlreadyProcessedError - Refund already reconciled (inherits ConflictError)
    StaleRecordError - Optimistic locking conflict (inherits ConflictError)
    LockAcquisitionError - Distributed lock timeout (inherits ConflictError)

Propagation:
    InvalidTransitionError and OrderValidationError reach the direct caller.
    The refund-side errors (AlreadyProcessedError, PolicyViolationWarning,
    LedgerWriteError, MarkerWriteError) are caught by RefundCoordinator and
    turned into a ReconciliationResult; they never reach the code that
    changed the order's status.

Usage:
    from store.exceptions import InvalidTransitionError

    try:
        OrderStateMachine.transition(order, OrderStatus.COMPLETED)
    except InvalidTransitionError as e:
        logger.warning(str(e), extra=e.details)
"""

from __future__ import annotations

from core.exceptions import (
    BaseApplicationError,
    ConflictError,
    NotFoundError,
    ValidationError,
)

# =============================================================================
# Store Domain Exceptions
# =============================================================================


class StoreError(BaseApplicationError):
    """Base exception for order and refund operations."""

    default_error_code: str = "STORE_ERROR"


class OrderNotFoundError(NotFoundError):
    """Raised when an order lookup by id or order number fails."""

    default_error_code: str = "ORDER_NOT_FOUND"


class OrderValidationError(ValidationError):
    """
    Raised when order data violates a business rule.

    Use for:
    - total = subtotal + tax + shipping_cost - discount going negative
    - Refund amounts that are zero, negative, or above the order total
    """

    default_error_code: str = "ORDER_VALIDATION_ERROR"


# =============================================================================
# Refund Reconciliation Exceptions
# =============================================================================


class PolicyViolationWarning(StoreError):
    """
    An order reached `refunded` but no credit may be issued for it: it was
    never paid, or the stored refund amount is out of range.

    This is a data-integrity finding, not a failure of the caller. It is
    instantiated so its message and details can be logged at warning level,
    but it is never raised; no wallet credit is issued and the order is left
    for manual investigation.
    """

    default_error_code: str = "REFUND_POLICY_VIOLATION"


class LedgerWriteError(StoreError):
    """
    Storage-level failure while crediting a wallet.

    Nothing was committed: the caller must treat it as a full failure and
    retry the whole reconciliation.
    """

    default_error_code: str = "LEDGER_WRITE_FAILED"


class MarkerWriteError(StoreError):
    """
    The wallet credit went through but the order's refund marker could not
    be written.

    Highest-priority failure: a replay relies on the ledger's
    (wallet, type, reference) dedup key to avoid a second credit.
    """

    default_error_code: str = "MARKER_WRITE_FAILED"


# =============================================================================
# Concurrency Control Exceptions
# =============================================================================


class InvalidTransitionError(ConflictError):
    """
    Raised when a requested status change is not a legal edge.

    The order is left unchanged. Details carry the field name and the
    current and requested values.

    Example:
        raise InvalidTransitionError(
            "Cannot move order ORD... from 'pending' to 'completed'",
            details={"field": "status", "current": "pending", "target": "completed"},
        )
    """

    default_error_code: str = "INVALID_STATE_TRANSITION"


class AlreadyProcessedError(ConflictError):
    """
    The refund for this order has already been reconciled.

    Used internally as the losing side of the marker compare-and-set; the
    coordinator reports it as a successful no-op.
    """

    default_error_code: str = "REFUND_ALREADY_PROCESSED"


class StaleRecordError(ConflictError):
    """
    Raised when optimistic locking detects a concurrent modification.

    Example:
        raise StaleRecordError(
            f"Order {pk} has been modified",
            details={"pk": str(pk), "expected_version": 3, "current_version": 4},
        )
    """

    default_error_code: str = "STALE_RECORD"


class LockAcquisitionError(ConflictError):
    """
    Raised when a distributed lock cannot be acquired.

    Another worker is already running the same job; callers usually skip
    rather than fail.
    """

    default_error_code: str = "LOCK_ACQUISITION_FAILED"


__all__ = [
    # Store domain
    "StoreError",
    "OrderNotFoundError",
    "OrderValidationError",
    # Refund reconciliation
    "PolicyViolationWarning",
    "LedgerWriteError",
    "MarkerWriteError",
    # Concurrency
    "InvalidTransitionError",
    "AlreadyProcessedError",
    "StaleRecordError",
    "LockAcquisitionError",
]
