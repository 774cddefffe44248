"""
Wallet-specific exceptions.

Exception Hierarchy:
    WalletError (base)
    ├── WalletNotFoundError - Wallet lookup failures
    ├── InsufficientFundsError - Debit larger than the balance
    └── InactiveWalletError - Movement on a deactivated wallet

Storage failures are not part of this hierarchy: they surface as
store.exceptions.LedgerWriteError.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import BaseApplicationError

if TYPE_CHECKING:
    import uuid
    from decimal import Decimal
    from typing import Any


class WalletError(BaseApplicationError):
    """Base exception for wallet operations."""

    default_error_code: str = "WALLET_ERROR"


class WalletNotFoundError(WalletError):
    default_error_code: str = "WALLET_NOT_FOUND"


class InsufficientFundsError(WalletError):
    """
    Raised when a debit exceeds the wallet balance.

    Attributes:
        wallet_id: The wallet with insufficient funds
        required: The amount requested
        available: The balance at the time of the request
    """

    default_error_code: str = "INSUFFICIENT_FUNDS"

    def __init__(
        self,
        wallet_id: uuid.UUID,
        required: Decimal,
        available: Decimal,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.wallet_id = wallet_id
        self.required = required
        self.available = available

        full_details = {
            "wallet_id": str(wallet_id),
            "required": str(required),
            "available": str(available),
        }
        if details:
            full_details.update(details)

        super().__init__(
            message=(
                f"Wallet {wallet_id} has insufficient funds: "
                f"required {required}, available {available}"
            ),
            error_code=error_code,
            details=full_details,
        )


class InactiveWalletError(WalletError):
    default_error_code: str = "INACTIVE_WALLET"
