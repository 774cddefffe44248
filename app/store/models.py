"""
Store domain models.

- Order: Customer purchase with status/payment-status state machines
- Wallet: Per-user store credit balance
- WalletTransaction: Immutable wallet ledger rows
"""

from store.wallet.models import Wallet, WalletTransaction
from store.orders.models import Order

__all__ = [
    "Order",
    "Wallet",
    "WalletTransaction",
]
