"""
Wallet models: a per-user balance backed by an append-only ledger.

- Wallet: one per user, carries the materialized balance
- WalletTransaction: signed ledger rows (credits positive, debits negative)

The materialized balance is only ever changed in the same database
transaction that inserts a completed WalletTransaction, so it always
equals the sum of the wallet's completed transaction amounts.

Usage:
    from store.wallet.models import Wallet

    wallet = Wallet.objects.get(owner=user)
    wallet.balance            # Decimal("150.00")
    wallet.compute_balance()  # recomputed from the ledger
"""

from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q, Sum, Value
from django.db.models.functions import Coalesce

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from store.state_machines import WalletTransactionStatus, WalletTransactionType


def default_currency() -> str:
    return settings.STORE_DEFAULT_CURRENCY


class Wallet(UUIDPrimaryKeyMixin, BaseModel):
    """
    A user's store-credit wallet.

    Fields:
        owner: The user this wallet belongs to (one wallet per user)
        balance: Materialized balance, never negative
        currency: ISO 4217 currency code
        is_active: Inactive wallets reject new transactions

    Constraints:
        - balance >= 0
    """

    owner = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="wallet",
        help_text="User who owns this wallet",
    )
    balance = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        default=Decimal("0.00"),
        help_text="Current balance, kept in step with completed transactions",
    )
    currency = models.CharField(
        max_length=3,
        default=default_currency,
        help_text="ISO 4217 currency code",
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Whether this wallet accepts new transactions",
    )

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=Q(balance__gte=0),
                name="store_wallet_balance_non_negative",
            )
        ]

    def __str__(self) -> str:
        return f"Wallet({self.owner_id}): {self.balance} {self.currency}"

    def compute_balance(self) -> Decimal:
        """Sum of this wallet's completed transaction amounts."""
        return self.transactions.filter(
            status=WalletTransactionStatus.COMPLETED,
        ).aggregate(
            total=Coalesce(
                Sum("amount"),
                Value(Decimal("0.00")),
                output_field=models.DecimalField(max_digits=14, decimal_places=2),
            )
        )["total"]


class WalletTransaction(UUIDPrimaryKeyMixin, BaseModel):
    """
    One immutable movement on a wallet.

    Fields:
        wallet: Wallet this movement belongs to
        amount: Signed amount (credits positive, debits negative, never zero)
        type: deposit, withdrawal, transfer, refund, charge or adjustment
        status: Settlement status (written as completed)
        description: Human-readable description
        reference: External reference (e.g. the order number for refunds)
        metadata: Audit data (order id, amounts, reason)

    Constraints:
        - amount != 0
        - (wallet, type, reference) unique among completed transactions
          with a reference; this is the ledger's dedup key
    """

    wallet = models.ForeignKey(
        Wallet,
        on_delete=models.PROTECT,
        related_name="transactions",
        help_text="Wallet this transaction belongs to",
    )
    amount = models.DecimalField(
        max_digits=14,
        decimal_places=2,
        help_text="Signed amount: positive for credits, negative for debits",
    )
    type = models.CharField(
        max_length=20,
        choices=WalletTransactionType.choices,
        default=WalletTransactionType.DEPOSIT,
        db_index=True,
        help_text="Category of this transaction",
    )
    status = models.CharField(
        max_length=20,
        choices=WalletTransactionStatus.choices,
        default=WalletTransactionStatus.PENDING,
        db_index=True,
        help_text="Settlement status",
    )
    description = models.CharField(
        max_length=255,
        blank=True,
        default="",
        help_text="Human-readable description",
    )
    reference = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        help_text="External reference used for deduplication",
    )
    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Audit data for this transaction",
    )

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(
                fields=["wallet", "type", "reference"],
                name="store_wtx_wallet_type_ref_idx",
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=~Q(amount=0),
                name="store_wallet_transaction_amount_non_zero",
            ),
            models.UniqueConstraint(
                fields=["wallet", "type", "reference"],
                condition=Q(reference__isnull=False, status="completed"),
                name="store_wallet_transaction_unique_reference",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.get_type_display()}: {self.amount}"

    @property
    def is_credit(self) -> bool:
        return self.amount > 0
