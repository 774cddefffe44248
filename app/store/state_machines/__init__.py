"""
State machine enums for store models.

The enums are used by django-fsm fields on Order and by the wallet ledger.
"""

from store.state_machines.states import (
    OrderStatus,
    PaymentStatus,
    WalletTransactionStatus,
    WalletTransactionType,
)

__all__ = [
    "OrderStatus",
    "PaymentStatus",
    "WalletTransactionStatus",
    "WalletTransactionType",
]
