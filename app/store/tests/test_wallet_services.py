"""
Tests for WalletLedger.

Covers credits, debits, deduplication by reference and the invariant that
the materialized balance equals the sum of completed transactions.
"""

from decimal import Decimal

import pytest
from django.db import IntegrityError

from store.exceptions import LedgerWriteError
from store.state_machines import WalletTransactionStatus, WalletTransactionType
from store.tests.factories import UserFactory, WalletFactory
from store.wallet.exceptions import (
    InactiveWalletError,
    InsufficientFundsError,
    WalletNotFoundError,
)
from store.wallet.models import Wallet, WalletTransaction
from store.wallet.services import WalletLedger, wallet_ledger
from store.wallet.types import Money


class TestWallets:
    def test_get_or_create_wallet(self, user):
        wallet = WalletLedger.get_or_create_wallet(user.id)

        assert wallet.owner_id == user.id
        assert wallet.balance == Decimal("0.00")
        assert wallet.currency == "USD"
        assert WalletLedger.get_or_create_wallet(user.id).pk == wallet.pk

    def test_get_wallet_missing(self, user):
        with pytest.raises(WalletNotFoundError):
            WalletLedger.get_wallet(user.id)

    def test_balance_without_wallet_is_zero(self, user):
        assert WalletLedger.get_balance(user.id) == Money(Decimal("0.00"), "USD")

    def test_module_singleton(self, user):
        wallet_ledger.credit(user.id, Decimal("5.00"))

        assert wallet_ledger.get_balance(user.id).amount == Decimal("5.00")


class TestCredit:
    def test_credit_creates_wallet_and_transaction(self, user):
        tx = WalletLedger.credit(user.id, Decimal("150.00"), WalletTransactionType.REFUND)

        assert tx.amount == Decimal("150.00")
        assert tx.type == WalletTransactionType.REFUND
        assert tx.status == WalletTransactionStatus.COMPLETED
        assert Wallet.objects.get(owner=user).balance == Decimal("150.00")

    def test_credit_accepts_string_amount(self, user):
        tx = WalletLedger.credit(user.id, "10.005")

        assert tx.amount == Decimal("10.01")

    def test_credit_rejects_float(self, user):
        with pytest.raises(TypeError):
            WalletLedger.credit(user.id, 10.5)

    @pytest.mark.parametrize("amount", [Decimal("0.00"), Decimal("-1.00")])
    def test_credit_rejects_non_positive(self, user, amount):
        with pytest.raises(ValueError):
            WalletLedger.credit(user.id, amount)

    def test_credit_same_reference_returns_existing(self, user):
        first = WalletLedger.credit(
            user.id, Decimal("150.00"), WalletTransactionType.REFUND, reference="ORD1"
        )
        second = WalletLedger.credit(
            user.id, Decimal("150.00"), WalletTransactionType.REFUND, reference="ORD1"
        )

        assert second.pk == first.pk
        assert WalletLedger.get_balance(user.id).amount == Decimal("150.00")
        assert WalletTransaction.objects.filter(reference="ORD1").count() == 1

    def test_same_reference_other_type_is_separate(self, user):
        WalletLedger.credit(user.id, Decimal("10.00"), WalletTransactionType.REFUND, reference="X")
        WalletLedger.credit(user.id, Decimal("10.00"), WalletTransactionType.DEPOSIT, reference="X")

        assert WalletLedger.get_balance(user.id).amount == Decimal("20.00")

    def test_empty_reference_is_not_deduplicated(self, user):
        WalletLedger.credit(user.id, Decimal("10.00"), reference="")
        WalletLedger.credit(user.id, Decimal("10.00"), reference="")

        assert WalletLedger.get_balance(user.id).amount == Decimal("20.00")

    def test_inactive_wallet_rejects_credit(self, user):
        WalletFactory(owner=user, is_active=False)

        with pytest.raises(InactiveWalletError):
            WalletLedger.credit(user.id, Decimal("10.00"))

    def test_integrity_error_without_existing_row_raises_ledger_error(self, user, mocker):
        mocker.patch(
            "store.wallet.services.WalletTransaction.objects.create",
            side_effect=IntegrityError("constraint failed"),
        )

        with pytest.raises(LedgerWriteError) as exc_info:
            WalletLedger.credit(user.id, Decimal("10.00"), reference="R")

        assert exc_info.value.details["reference"] == "R"
        assert WalletLedger.get_balance(user.id).amount == Decimal("0.00")


class TestDebit:
    def test_debit_reduces_balance(self, user):
        WalletLedger.credit(user.id, Decimal("100.00"))

        tx = WalletLedger.debit(user.id, Decimal("30.00"), WalletTransactionType.CHARGE)

        assert tx.amount == Decimal("-30.00")
        assert tx.is_credit is False
        assert WalletLedger.get_balance(user.id).amount == Decimal("70.00")

    def test_debit_without_wallet(self, user):
        with pytest.raises(WalletNotFoundError):
            WalletLedger.debit(user.id, Decimal("1.00"))

    def test_insufficient_funds(self, user):
        WalletLedger.credit(user.id, Decimal("20.00"))

        with pytest.raises(InsufficientFundsError) as exc_info:
            WalletLedger.debit(user.id, Decimal("20.01"))

        assert exc_info.value.required == Decimal("20.01")
        assert exc_info.value.available == Decimal("20.00")
        assert WalletLedger.get_balance(user.id).amount == Decimal("20.00")


class TestBalanceInvariant:
    def test_balance_matches_completed_sum(self, user):
        WalletLedger.credit(user.id, Decimal("150.00"), WalletTransactionType.REFUND, reference="A")
        WalletLedger.credit(user.id, Decimal("25.25"))
        WalletLedger.debit(user.id, Decimal("40.00"))
        WalletLedger.credit(user.id, Decimal("150.00"), WalletTransactionType.REFUND, reference="A")

        wallet = Wallet.objects.get(owner=user)
        assert wallet.balance == Decimal("135.25")
        assert wallet.compute_balance() == wallet.balance
        assert WalletLedger.compute_balance(user.id) == wallet.balance

    def test_compute_balance_without_wallet(self, user):
        assert WalletLedger.compute_balance(user.id) == Decimal("0.00")


class TestQueries:
    def test_find_transaction(self, user):
        tx = WalletLedger.credit(
            user.id, Decimal("5.00"), WalletTransactionType.REFUND, reference="ORD9"
        )

        assert WalletLedger.find_transaction(user.id, WalletTransactionType.REFUND, "ORD9") == tx
        assert WalletLedger.find_transaction(user.id, WalletTransactionType.DEPOSIT, "ORD9") is None

    def test_get_transactions_paginates(self, user):
        for amount in ("1.00", "2.00", "3.00"):
            WalletLedger.credit(user.id, Decimal(amount))

        page = WalletLedger.get_transactions(user.id, limit=2)
        rest = WalletLedger.get_transactions(user.id, limit=2, offset=2)

        assert len(page) == 2
        assert len(rest) == 1
        assert {tx.pk for tx in page}.isdisjoint({tx.pk for tx in rest})

    def test_transactions_scoped_to_owner(self, user):
        other = UserFactory()
        WalletLedger.credit(other.id, Decimal("9.00"))

        assert WalletLedger.get_transactions(user.id) == []

    def test_summary(self, user):
        WalletLedger.credit(user.id, Decimal("100.00"))
        WalletLedger.credit(user.id, Decimal("15.00"), WalletTransactionType.REFUND, reference="O1")
        WalletLedger.debit(user.id, Decimal("30.00"))

        summary = WalletLedger.get_summary(user.id)

        assert summary.balance == Money(Decimal("85.00"), "USD")
        assert summary.total_deposits == Decimal("100.00")
        assert summary.total_withdrawals == Decimal("30.00")
        assert summary.total_refunds == Decimal("15.00")
        assert summary.transaction_count == 3
        assert summary.last_transaction is not None
        assert summary.currency == "USD"


class TestDeactivate:
    def test_deactivate_wallet(self, user):
        WalletLedger.credit(user.id, Decimal("10.00"))

        wallet = WalletLedger.deactivate_wallet(user.id)

        assert wallet.is_active is False
        with pytest.raises(InactiveWalletError):
            WalletLedger.credit(user.id, Decimal("1.00"))
        assert WalletLedger.get_balance(user.id).amount == Decimal("10.00")
