"""
Data types for wallet ledger operations.

Types:
    Money: A decimal amount with its currency
    LedgerWriteParams: Validated input for one credit or debit
    WalletSummary: Aggregates shown on a wallet overview

Usage:
    from store.wallet.types import Money

    Money(Decimal("150.00"), "USD")  # "150.00 USD"
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from store.wallet.models import WalletTransaction

CENT = Decimal("0.01")


def to_amount(value: Decimal | int | str) -> Decimal:
    """Coerce to a Decimal rounded to cents. Floats are rejected."""
    if isinstance(value, float):
        raise TypeError("Monetary amounts must not be floats")
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Money:
    """
    A monetary amount.

    Amounts are Decimals with two decimal places. Arithmetic between
    different currencies raises ValueError.
    """

    amount: Decimal
    currency: str = "USD"

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_amount(self.amount))
        object.__setattr__(self, "currency", self.currency.upper())

    def __str__(self) -> str:
        return f"{self.amount} {self.currency}"

    def _check_currency(self, other: Money) -> None:
        if self.currency != other.currency:
            raise ValueError(
                f"Cannot combine Money with different currencies: "
                f"{self.currency} and {other.currency}"
            )

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other)
        return Money(self.amount + other.amount, self.currency)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        self._check_currency(other)
        return Money(self.amount - other.amount, self.currency)


@dataclass
class LedgerWriteParams:
    """
    Parameters for one wallet movement.

    Required Attributes:
        owner_id: Primary key of the wallet owner
        amount: Positive amount; the direction comes from credit/debit
        type: WalletTransactionType value

    Optional Attributes:
        reference: Dedup key within (wallet, type); retries with the same
            reference return the original transaction
        description: Human-readable description
        metadata: Arbitrary JSON-serializable audit data
    """

    owner_id: int | uuid.UUID
    amount: Decimal
    type: str
    reference: str | None = None
    description: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.amount = to_amount(self.amount)
        if self.amount <= 0:
            raise ValueError("amount must be positive")
        if self.owner_id is None:
            raise ValueError("owner_id is required")
        if self.reference == "":
            self.reference = None


@dataclass
class WalletSummary:
    """Totals for a wallet overview. Withdrawals are reported as a positive number."""

    balance: Money
    total_deposits: Decimal
    total_withdrawals: Decimal
    total_refunds: Decimal
    transaction_count: int
    last_transaction: WalletTransaction | None = None

    @property
    def currency(self) -> str:
        return self.balance.currency
