"""
State enums for store models.

Django TextChoices used by the django-fsm fields on Order and by the
wallet ledger.

State Machines Overview:

Order status:
    pending → processing → completed
    pending/processing → cancelled
    processing/completed → refunded

Order payment status:
    pending → paid
    pending → failed → paid (retry)
    paid → refunded

Terminal order states: COMPLETED (except for refunds), CANCELLED, REFUNDED.
Re-refunding is impossible because REFUNDED has no outgoing edge.
"""

from django.db import models


class OrderStatus(models.TextChoices):
    """
    Fulfilment status of an order.

    State Flow:
        PENDING → PROCESSING → COMPLETED

    Cancellation Flow:
        PENDING → CANCELLED
        PROCESSING → CANCELLED

    Refund Flow:
        PROCESSING → REFUNDED
        COMPLETED → REFUNDED
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"
    REFUNDED = "refunded", "Refunded"


class PaymentStatus(models.TextChoices):
    """
    Payment status of an order, independent of fulfilment status.

    State Flow:
        PENDING → PAID → REFUNDED
        PENDING → FAILED → PAID
    """

    PENDING = "pending", "Pending"
    PAID = "paid", "Paid"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"


class WalletTransactionType(models.TextChoices):
    """Kinds of wallet ledger movement. REFUND is the only one issued automatically."""

    DEPOSIT = "deposit", "Deposit"
    WITHDRAWAL = "withdrawal", "Withdrawal"
    TRANSFER = "transfer", "Transfer"
    REFUND = "refund", "Refund"
    CHARGE = "charge", "Charge"
    ADJUSTMENT = "adjustment", "Adjustment"


class WalletTransactionStatus(models.TextChoices):
    """
    Settlement status of a wallet transaction.

    Settlement is synchronous: transactions are written as COMPLETED
    inside the same database transaction that moves the balance.
    """

    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    CANCELLED = "cancelled", "Cancelled"
