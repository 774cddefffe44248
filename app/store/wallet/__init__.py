"""
Wallet - per-user store credit backed by an append-only ledger.

Public API:
    Models (store.wallet.models):
        Wallet - Materialized balance per user
        WalletTransaction - Signed, immutable ledger rows

    Service (store.wallet.services):
        wallet_ledger - Singleton instance of WalletLedger
        WalletLedger - credit, debit, balances, history, summaries

    Types (store.wallet.types):
        Money, LedgerWriteParams, WalletSummary

    Exceptions (store.wallet.exceptions):
        WalletError, WalletNotFoundError, InsufficientFundsError,
        InactiveWalletError

Models and services are not imported here to avoid AppRegistryNotReady
errors; import them from their modules.
"""

from .exceptions import (
    InactiveWalletError,
    InsufficientFundsError,
    WalletError,
    WalletNotFoundError,
)
from .types import LedgerWriteParams, Money, WalletSummary

__all__ = [
    # Types
    "Money",
    "LedgerWriteParams",
    "WalletSummary",
    # Exceptions
    "WalletError",
    "WalletNotFoundError",
    "InsufficientFundsError",
    "InactiveWalletError",
]
