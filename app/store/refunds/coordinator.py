"""
Refund reconciliation coordinator.

Reacts to an order reaching `refunded`: asks RefundPolicy whether a
refund is due, credits the owner's wallet through WalletLedger and sets
the order's refund marker, all in one database transaction.

Race safety:
    1. The order row is re-read under select_for_update, so concurrent
       invocations for the same order queue behind each other.
    2. The marker is written with a compare-and-set
       (UPDATE ... WHERE refund_processed = false). Only one invocation
       can flip it; the loser rolls back its whole unit.
    3. WalletLedger deduplicates on (wallet, type=refund, reference=order
       number), so even a replay that bypasses 1 and 2 cannot credit twice.

Failure isolation:
    Nothing here raises into the caller. Every outcome, including storage
    failures, is returned as a ReconciliationResult and logged:

    - refunded: info
    - already processed: info
    - not applicable: debug
    - policy violation: warning
    - order not found: warning
    - ledger write failure: error
    - marker write failure: critical

Usage:
    result = RefundCoordinator.on_order_transitioned(
        order, OrderStatus.COMPLETED, OrderStatus.REFUNDED
    )
    if result.failed:
        ...  # the reconciliation sweep will retry
"""

from __future__ import annotations

import logging
from decimal import Decimal
from functools import partial
from typing import TYPE_CHECKING

from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from core.services import BaseService
from store.events import RefundProcessed, refund_processed
from store.exceptions import (
    AlreadyProcessedError,
    LedgerWriteError,
    MarkerWriteError,
    OrderNotFoundError,
    PolicyViolationWarning,
)
from store.orders.models import Order
from store.state_machines import OrderStatus, WalletTransactionType
from store.wallet.exceptions import WalletError
from store.wallet.services import WalletLedger

from .policy import RefundPolicy
from .types import ReconciliationOutcome, ReconciliationResult, RefundSkipReason

if TYPE_CHECKING:
    from typing import Any

    from store.wallet.models import WalletTransaction

logger = logging.getLogger(__name__)


class RefundCoordinator(BaseService):
    """
    Turns an order's move to `refunded` into exactly one wallet credit.

    All methods are classmethods - no instance state is maintained.
    """

    @classmethod
    def on_order_transitioned(
        cls,
        order: Order,
        old_status: str,
        new_status: str,
        refund_amount: Decimal | None = None,
        refund_reason: str | None = None,
    ) -> ReconciliationResult:
        """
        Reconcile one order transition.

        Args:
            order: The transitioned order (may be stale; it is re-read)
            old_status: Status before the transition
            new_status: Status after the transition
            refund_amount: Partial refund amount; defaults to the amount
                stored on the order, then to the order total
            refund_reason: Reason recorded on the transaction and order

        Returns:
            ReconciliationResult; never raises for refund-side failures
        """
        if new_status != OrderStatus.REFUNDED:
            return ReconciliationResult(
                outcome=ReconciliationOutcome.NOT_APPLICABLE,
                order_id=order.pk,
                skip_reason=RefundSkipReason.NOT_A_REFUND,
            )

        context = {"order_id": str(order.pk), "order_number": order.order_number}

        try:
            with cls.atomic():
                current = cls._lock_order(order.pk)

                if current.refund_processed:
                    raise AlreadyProcessedError(
                        f"Refund for order {current.order_number} already processed",
                        details={
                            **context,
                            "transaction_id": str(current.refund_transaction_id),
                        },
                    )

                requested = refund_amount if refund_amount is not None else current.refund_amount
                reason = refund_reason or current.refund_reason or None
                decision = RefundPolicy.evaluate(current, old_status, new_status, requested)

                if not decision.should_refund:
                    return cls._declined(current, old_status, decision.skip_reason, requested)

                tx = cls._credit_wallet(current, decision.amount, reason)
                cls._write_marker(current, tx, decision.amount, reason)

                transaction.on_commit(
                    partial(
                        refund_processed.send_robust,
                        sender=Order,
                        event=RefundProcessed(
                            order_id=current.pk,
                            order_number=current.order_number,
                            owner_id=current.owner_id,
                            amount=decision.amount,
                            transaction_id=tx.id,
                            reason=reason,
                        ),
                    )
                )
        except OrderNotFoundError as e:
            logger.warning(
                f"Order {order.order_number} vanished before refund reconciliation",
                extra={**context, "error_code": e.error_code},
            )
            return ReconciliationResult(
                outcome=ReconciliationOutcome.ORDER_NOT_FOUND,
                order_id=order.pk,
                error=e,
            )
        except AlreadyProcessedError as e:
            logger.info(
                "Refund already processed, skipping",
                extra=e.details,
            )
            return ReconciliationResult(
                outcome=ReconciliationOutcome.ALREADY_PROCESSED,
                order_id=order.pk,
                skip_reason=RefundSkipReason.ALREADY_PROCESSED,
            )
        except (LedgerWriteError, WalletError) as e:
            logger.error(
                f"Refund wallet credit failed for order {order.order_number}: {e}",
                extra={**context, "error_code": e.error_code, "error": str(e)},
            )
            return ReconciliationResult(
                outcome=ReconciliationOutcome.LEDGER_WRITE_FAILED,
                order_id=order.pk,
                error=e,
            )
        except MarkerWriteError as e:
            logger.critical(
                f"Refund marker write failed for order {order.order_number}, "
                f"wallet credit rolled back: {e}",
                extra={**context, **e.details, "error_code": e.error_code},
            )
            return ReconciliationResult(
                outcome=ReconciliationOutcome.MARKER_WRITE_FAILED,
                order_id=order.pk,
                error=e,
            )

        logger.info(
            f"Refunded {decision.amount} to wallet for order {current.order_number}",
            extra={
                **context,
                "amount": str(decision.amount),
                "transaction_id": str(tx.id),
                "wallet_id": str(tx.wallet_id),
            },
        )
        return ReconciliationResult(
            outcome=ReconciliationOutcome.REFUNDED,
            order_id=current.pk,
            amount=decision.amount,
            transaction_id=tx.id,
        )

    @classmethod
    def replay(cls, order: Order) -> ReconciliationResult:
        """
        Re-run reconciliation for an order already in `refunded`.

        Used by the reconciliation sweep. The edge into `refunded` was taken
        from `completed` if the order was ever completed, else `processing`.
        """
        old_status = OrderStatus.COMPLETED if order.completed_at else OrderStatus.PROCESSING
        return cls.on_order_transitioned(order, old_status, order.status)

    # =========================================================================
    # Steps
    # =========================================================================

    @staticmethod
    def _lock_order(order_id) -> Order:
        """Re-read the order under a row lock, including soft-deleted rows."""
        try:
            return Order.all_objects.select_for_update().get(pk=order_id)
        except Order.DoesNotExist:
            raise OrderNotFoundError(
                f"Order {order_id} not found",
                details={"order_id": str(order_id)},
            )

    @staticmethod
    def _declined(
        order: Order,
        old_status: str,
        skip_reason: RefundSkipReason,
        requested: Decimal | None,
    ) -> ReconciliationResult:
        details: dict[str, Any] = {
            "order_id": str(order.pk),
            "order_number": order.order_number,
            "old_status": old_status,
            "status": order.status,
            "payment_status": order.payment_status,
            "total": str(order.total),
            "skip_reason": skip_reason.value,
        }
        if requested is not None:
            details["requested_amount"] = str(requested)

        if skip_reason is RefundSkipReason.NEVER_PAID:
            warning = PolicyViolationWarning(
                f"Order {order.order_number} was refunded but never paid; "
                f"no wallet credit issued",
                details=details,
            )
        elif skip_reason in (
            RefundSkipReason.INVALID_AMOUNT,
            RefundSkipReason.AMOUNT_EXCEEDS_TOTAL,
        ):
            warning = PolicyViolationWarning(
                f"Order {order.order_number} has an invalid refund amount "
                f"({requested}, total {order.total}); no wallet credit issued",
                details=details,
            )
        else:
            logger.debug("No refund due", extra=details)
            return ReconciliationResult(
                outcome=ReconciliationOutcome.NOT_APPLICABLE,
                order_id=order.pk,
                skip_reason=skip_reason,
            )

        logger.warning(
            str(warning),
            extra={**warning.details, "error_code": warning.error_code},
        )
        return ReconciliationResult(
            outcome=ReconciliationOutcome.POLICY_VIOLATION,
            order_id=order.pk,
            skip_reason=skip_reason,
            error=warning,
        )

    @staticmethod
    def _credit_wallet(order: Order, amount: Decimal, reason: str | None) -> WalletTransaction:
        description = f"Refund for order #{order.order_number}"
        if reason:
            description += f" - {reason}"

        try:
            return WalletLedger.credit(
                order.owner_id,
                amount,
                WalletTransactionType.REFUND,
                reference=order.order_number,
                description=description,
                metadata={
                    "order_id": str(order.pk),
                    "order_number": order.order_number,
                    "refund_reason": reason,
                    "original_amount": str(order.total),
                    "refund_amount": str(amount),
                },
            )
        except ValueError as e:
            raise LedgerWriteError(
                f"Wallet rejected refund credit for order {order.order_number}: {e}",
                details={
                    "order_id": str(order.pk),
                    "order_number": order.order_number,
                    "amount": str(amount),
                },
            ) from e

    @staticmethod
    def _write_marker(
        order: Order,
        tx: WalletTransaction,
        amount: Decimal,
        reason: str | None,
    ) -> None:
        """
        Flip the refund marker with a compare-and-set.

        Raises:
            AlreadyProcessedError: Another invocation flipped it first
            MarkerWriteError: The update itself failed
        """
        now = timezone.now()
        try:
            updated = Order.all_objects.filter(pk=order.pk, refund_processed=False).update(
                refund_processed=True,
                refund_transaction=tx,
                refund_amount=amount,
                refund_processed_at=now,
                refund_reason=reason or "",
                version=F("version") + 1,
                updated_at=now,
            )
        except DatabaseError as e:
            raise MarkerWriteError(
                f"Could not mark order {order.order_number} as refunded "
                f"after wallet transaction {tx.id}",
                details={
                    "order_id": str(order.pk),
                    "order_number": order.order_number,
                    "transaction_id": str(tx.id),
                    "amount": str(amount),
                    "cause": str(e),
                },
            ) from e

        if updated == 0:
            raise AlreadyProcessedError(
                f"Refund for order {order.order_number} was processed concurrently",
                details={
                    "order_id": str(order.pk),
                    "order_number": order.order_number,
                    "transaction_id": str(tx.id),
                },
            )
