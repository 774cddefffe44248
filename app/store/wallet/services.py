"""
Wallet ledger service.

All wallet writes go through WalletLedger so that every movement inserts a
completed WalletTransaction and moves the materialized balance inside one
database transaction.

Key features:
- Row lock on the wallet (select_for_update) serializes movements per wallet
- Balance moved with an F() expression, never read-modify-write
- Idempotent writes: a completed transaction with the same
  (wallet, type, reference) is returned instead of writing a second one
- Storage failures surface as LedgerWriteError with nothing committed

Usage:
    from store.wallet.services import wallet_ledger
    from store.state_machines import WalletTransactionType

    tx = wallet_ledger.credit(
        user.id,
        Decimal("150.00"),
        WalletTransactionType.REFUND,
        reference=order.order_number,
        metadata={"order_id": str(order.id)},
    )
    wallet_ledger.get_balance(user.id)  # Money(amount=Decimal("150.00"), currency="USD")
"""

from __future__ import annotations

import logging
import uuid
from decimal import Decimal
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import DatabaseError, IntegrityError, models, transaction
from django.db.models import Count, F, Q, Sum, Value
from django.db.models.functions import Abs, Coalesce
from django.utils import timezone

from store.exceptions import LedgerWriteError
from store.state_machines import WalletTransactionStatus, WalletTransactionType

from .exceptions import InactiveWalletError, InsufficientFundsError, WalletNotFoundError
from .models import Wallet, WalletTransaction
from .types import LedgerWriteParams, Money, WalletSummary

if TYPE_CHECKING:
    from typing import Any

logger = logging.getLogger(__name__)

# Page size for transaction history
DEFAULT_HISTORY_LIMIT = 20

ZERO = Decimal("0.00")

_DECIMAL = models.DecimalField(max_digits=14, decimal_places=2)


class WalletLedger:
    """
    Service class for wallet ledger operations.

    All methods are static - no instance state is maintained.
    """

    # =========================================================================
    # Wallets
    # =========================================================================

    @staticmethod
    def get_or_create_wallet(
        owner_id: int | uuid.UUID,
        currency: str | None = None,
    ) -> Wallet:
        """
        Get the owner's wallet, creating an empty one if needed.

        Safe under concurrency: a losing concurrent create falls back to
        reading the winner's row.
        """
        wallet, created = Wallet.objects.get_or_create(
            owner_id=owner_id,
            defaults={"currency": currency or settings.STORE_DEFAULT_CURRENCY},
        )
        if created:
            logger.info(
                "Created wallet",
                extra={"wallet_id": str(wallet.id), "owner_id": str(owner_id)},
            )
        return wallet

    @staticmethod
    def get_wallet(owner_id: int | uuid.UUID) -> Wallet:
        """
        Raises:
            WalletNotFoundError: If the owner has no wallet
        """
        try:
            return Wallet.objects.get(owner_id=owner_id)
        except Wallet.DoesNotExist:
            raise WalletNotFoundError(
                f"No wallet for owner {owner_id}",
                details={"owner_id": str(owner_id)},
            )

    # =========================================================================
    # Movements
    # =========================================================================

    @staticmethod
    def credit(
        owner_id: int | uuid.UUID,
        amount: Decimal,
        type: str = WalletTransactionType.DEPOSIT,
        reference: str | None = None,
        metadata: dict[str, Any] | None = None,
        description: str = "",
    ) -> WalletTransaction:
        """
        Add funds to the owner's wallet.

        Args:
            owner_id: Wallet owner (the wallet is created on first credit)
            amount: Positive amount to add
            type: Transaction type (REFUND for order refunds)
            reference: Dedup key; a completed transaction with the same
                (wallet, type, reference) is returned unchanged
            metadata: Audit data stored on the transaction
            description: Human-readable description

        Returns:
            The completed WalletTransaction (new or pre-existing)

        Raises:
            ValueError: amount is not positive
            InactiveWalletError: Wallet is deactivated
            LedgerWriteError: The write could not be committed
        """
        params = LedgerWriteParams(
            owner_id=owner_id,
            amount=amount,
            type=type,
            reference=reference,
            description=description,
            metadata=metadata or {},
        )
        return WalletLedger._apply(params, params.amount)

    @staticmethod
    def debit(
        owner_id: int | uuid.UUID,
        amount: Decimal,
        type: str = WalletTransactionType.WITHDRAWAL,
        reference: str | None = None,
        metadata: dict[str, Any] | None = None,
        description: str = "",
    ) -> WalletTransaction:
        """
        Remove funds from the owner's wallet.

        Raises:
            WalletNotFoundError: The owner has no wallet
            InsufficientFundsError: amount exceeds the balance
            InactiveWalletError: Wallet is deactivated
            LedgerWriteError: The write could not be committed
        """
        params = LedgerWriteParams(
            owner_id=owner_id,
            amount=amount,
            type=type,
            reference=reference,
            description=description,
            metadata=metadata or {},
        )
        if not Wallet.objects.filter(owner_id=owner_id).exists():
            raise WalletNotFoundError(
                f"No wallet for owner {owner_id}",
                details={"owner_id": str(owner_id)},
            )
        return WalletLedger._apply(params, -params.amount)

    @staticmethod
    def _apply(params: LedgerWriteParams, signed_amount: Decimal) -> WalletTransaction:
        try:
            with transaction.atomic():
                WalletLedger.get_or_create_wallet(params.owner_id)
                # Lock the wallet row; concurrent movements queue here
                wallet = Wallet.objects.select_for_update().get(owner_id=params.owner_id)

                if params.reference is not None:
                    existing = WalletLedger._find_completed(wallet, params.type, params.reference)
                    if existing is not None:
                        logger.info(
                            "Wallet transaction already recorded",
                            extra={
                                "wallet_id": str(wallet.id),
                                "transaction_id": str(existing.id),
                                "reference": params.reference,
                                "type": params.type,
                            },
                        )
                        return existing

                WalletLedger._validate(wallet, signed_amount)

                tx = WalletTransaction.objects.create(
                    wallet=wallet,
                    amount=signed_amount,
                    type=params.type,
                    status=WalletTransactionStatus.COMPLETED,
                    description=params.description,
                    reference=params.reference,
                    metadata=params.metadata,
                )
                Wallet.objects.filter(pk=wallet.pk).update(
                    balance=F("balance") + signed_amount,
                    updated_at=timezone.now(),
                )
        except IntegrityError as e:
            # Another writer committed the same (wallet, type, reference)
            # between our check and insert
            if params.reference is not None:
                existing = WalletTransaction.objects.filter(
                    wallet__owner_id=params.owner_id,
                    type=params.type,
                    reference=params.reference,
                    status=WalletTransactionStatus.COMPLETED,
                ).first()
                if existing is not None:
                    return existing
            raise LedgerWriteError(
                "Wallet write violated a ledger constraint",
                details=WalletLedger._error_details(params, e),
            ) from e
        except DatabaseError as e:
            raise LedgerWriteError(
                "Wallet write could not be committed",
                details=WalletLedger._error_details(params, e),
            ) from e

        logger.info(
            "Recorded wallet transaction",
            extra={
                "wallet_id": str(tx.wallet_id),
                "transaction_id": str(tx.id),
                "type": tx.type,
                "amount": str(tx.amount),
                "reference": tx.reference,
            },
        )
        return tx

    @staticmethod
    def _validate(wallet: Wallet, signed_amount: Decimal) -> None:
        if not wallet.is_active:
            raise InactiveWalletError(
                f"Wallet {wallet.id} is inactive",
                details={"wallet_id": str(wallet.id)},
            )
        if signed_amount < 0 and wallet.balance < -signed_amount:
            raise InsufficientFundsError(
                wallet.id,
                required=-signed_amount,
                available=wallet.balance,
            )

    @staticmethod
    def _error_details(params: LedgerWriteParams, exc: Exception) -> dict[str, Any]:
        return {
            "owner_id": str(params.owner_id),
            "amount": str(params.amount),
            "type": params.type,
            "reference": params.reference,
            "cause": str(exc),
        }

    @staticmethod
    def _find_completed(wallet: Wallet, type: str, reference: str) -> WalletTransaction | None:
        return WalletTransaction.objects.filter(
            wallet=wallet,
            type=type,
            reference=reference,
            status=WalletTransactionStatus.COMPLETED,
        ).first()

    # =========================================================================
    # Queries
    # =========================================================================

    @staticmethod
    def find_transaction(
        owner_id: int | uuid.UUID,
        type: str,
        reference: str,
    ) -> WalletTransaction | None:
        """Look up a completed transaction by its dedup key."""
        return WalletTransaction.objects.filter(
            wallet__owner_id=owner_id,
            type=type,
            reference=reference,
            status=WalletTransactionStatus.COMPLETED,
        ).first()

    @staticmethod
    def get_balance(owner_id: int | uuid.UUID) -> Money:
        """Materialized balance; zero in the default currency if there is no wallet."""
        wallet = Wallet.objects.filter(owner_id=owner_id).first()
        if wallet is None:
            return Money(ZERO, settings.STORE_DEFAULT_CURRENCY)
        return Money(wallet.balance, wallet.currency)

    @staticmethod
    def compute_balance(owner_id: int | uuid.UUID) -> Decimal:
        """Balance recomputed from completed transactions."""
        return WalletTransaction.objects.filter(
            wallet__owner_id=owner_id,
            status=WalletTransactionStatus.COMPLETED,
        ).aggregate(
            total=Coalesce(Sum("amount"), Value(ZERO), output_field=_DECIMAL)
        )["total"]

    @staticmethod
    def get_transactions(
        owner_id: int | uuid.UUID,
        limit: int = DEFAULT_HISTORY_LIMIT,
        offset: int = 0,
    ) -> list[WalletTransaction]:
        """Newest first."""
        return list(
            WalletTransaction.objects.filter(wallet__owner_id=owner_id)
            .order_by("-created_at", "-id")[offset : offset + limit]
        )

    @staticmethod
    def get_summary(owner_id: int | uuid.UUID) -> WalletSummary:
        completed = WalletTransaction.objects.filter(
            wallet__owner_id=owner_id,
            status=WalletTransactionStatus.COMPLETED,
        )

        def total_of(type_: str):
            return Coalesce(
                Sum(Abs("amount"), filter=Q(type=type_)),
                Value(ZERO),
                output_field=_DECIMAL,
            )

        totals = completed.aggregate(
            deposits=total_of(WalletTransactionType.DEPOSIT),
            withdrawals=total_of(WalletTransactionType.WITHDRAWAL),
            refunds=total_of(WalletTransactionType.REFUND),
            count=Count("id"),
        )

        return WalletSummary(
            balance=WalletLedger.get_balance(owner_id),
            total_deposits=totals["deposits"],
            total_withdrawals=totals["withdrawals"],
            total_refunds=totals["refunds"],
            transaction_count=totals["count"],
            last_transaction=completed.order_by("-created_at").first(),
        )

    # =========================================================================
    # Administration
    # =========================================================================

    @staticmethod
    def deactivate_wallet(owner_id: int | uuid.UUID) -> Wallet:
        """Stop the wallet from accepting movements; history is kept."""
        wallet = WalletLedger.get_wallet(owner_id)
        if wallet.is_active:
            wallet.is_active = False
            wallet.save(update_fields=["is_active", "updated_at"])
            logger.info("Deactivated wallet", extra={"wallet_id": str(wallet.id)})
        return wallet


# Module-level singleton
wallet_ledger = WalletLedger()
