"""
Tests for balance computation.
"""

import pytest
from decimal import Decimal
from uuid import uuid4

from uangku.ledger import (
    calculate_account_balance,
    calculate_balances,
    find_balance,
    summarize_balances,
)
from uangku.models.ledger import (
    Account,
    AccountRole,
    LedgerSnapshot,
    Transaction,
    TransactionType,
    Transfer,
)


def _tx(account, amount, tx_type, date="2024-02-01"):
    return Transaction(
        user_id=account.user_id,
        date=date,
        amount=Decimal(amount),
        type=tx_type,
        account_id=account.id,
    )


def _transfer(source, destination, amount, fee=None):
    return Transfer(
        user_id=source.user_id,
        date="2024-02-15",
        amount=Decimal(amount),
        admin_fee=Decimal(fee) if fee is not None else None,
        from_account_id=source.id,
        to_account_id=destination.id,
    )


class TestCalculateAccountBalance:
    """Tests for calculate_account_balance."""

    def test_scenario(self, scenario, account_a, account_b):
        """Test the reference ledger: A = 119000, B = 10000."""
        assert calculate_account_balance(
            account_a, scenario.transactions, scenario.transfers
        ) == Decimal("119000")
        assert calculate_account_balance(
            account_b, scenario.transactions, scenario.transfers
        ) == Decimal("10000")

    def test_zero_baseline(self, user_id):
        """Test an untouched zero-opening account is zero."""
        account = Account(user_id=user_id, name="Empty")
        assert calculate_account_balance(account, [], []) == Decimal("0")

    def test_income_and_expense_are_additive(self, account_a):
        """Test each income adds and each expense subtracts exactly its amount."""
        base = calculate_account_balance(account_a, [], [])
        with_income = calculate_account_balance(
            account_a, [_tx(account_a, "750", TransactionType.INCOME)], []
        )
        with_expense = calculate_account_balance(
            account_a, [_tx(account_a, "750", TransactionType.EXPENSE)], []
        )
        assert with_income - base == Decimal("750")
        assert base - with_expense == Decimal("750")

    def test_transfer_fee_is_borne_by_sender(self, account_a, account_b):
        """Test the destination gets A and the source loses A + F."""
        transfer = _transfer(account_a, account_b, "10000", "2500")

        a_delta = calculate_account_balance(account_a, [], [transfer]) - account_a.opening_balance
        b_delta = calculate_account_balance(account_b, [], [transfer]) - account_b.opening_balance

        assert b_delta == Decimal("10000")
        assert a_delta == Decimal("-12500")
        assert a_delta + b_delta == Decimal("-2500")

    def test_missing_fee_counts_as_zero(self, account_a, account_b):
        """Test a transfer without a fee moves exactly the amount."""
        transfer = _transfer(account_a, account_b, "5000")
        assert calculate_account_balance(account_a, [], [transfer]) == Decimal("95000")

    def test_rows_for_other_accounts_are_ignored(self, account_a, user_id):
        """Test orphan and foreign rows never affect the balance."""
        stranger = Account(user_id=user_id, name="Other")
        rows = [_tx(stranger, "999", TransactionType.INCOME)]
        assert calculate_account_balance(account_a, rows, []) == Decimal("100000")

    def test_negative_result_is_allowed(self, user_id):
        """Test overspending yields a negative balance rather than an error."""
        account = Account(user_id=user_id, name="Cash")
        rows = [_tx(account, "300", TransactionType.EXPENSE)]
        assert calculate_account_balance(account, rows, []) == Decimal("-300")

    def test_self_transfer_only_costs_the_fee(self, account_a):
        """Test a transfer to the same account nets to minus the fee."""
        transfer = _transfer(account_a, account_a, "10000", "1000")
        assert calculate_account_balance(account_a, [], [transfer]) == Decimal("99000")

    def test_accepts_generators(self, scenario, account_a):
        """Test one-shot iterables are consumed safely."""
        balance = calculate_account_balance(
            account_a,
            (t for t in scenario.transactions),
            (t for t in scenario.transfers),
        )
        assert balance == Decimal("119000")

    def test_idempotent(self, scenario, account_a):
        """Test repeated calls give identical results."""
        first = calculate_account_balance(account_a, scenario.transactions, scenario.transfers)
        second = calculate_account_balance(account_a, scenario.transactions, scenario.transfers)
        assert first == second


class TestBalanceSummary:
    """Tests for calculate_balances and summarize_balances."""

    def test_balances_follow_account_order(self, scenario, account_a, account_b):
        """Test one entry per account in snapshot order."""
        balances = calculate_balances(scenario)
        assert [b.account.id for b in balances] == [account_a.id, account_b.id]

    def test_summary_groups_by_role(self, scenario):
        """Test spendable and savings totals."""
        summary = summarize_balances(calculate_balances(scenario))
        assert summary.spendable == Decimal("119000")
        assert summary.savings == Decimal("10000")
        assert summary.total == Decimal("129000")

    def test_total_excludes_the_fee(self, scenario):
        """Test the fee leaves the system entirely."""
        summary = summarize_balances(calculate_balances(scenario))
        opening = Decimal("100000")
        net_income = Decimal("30000")
        assert summary.total == opening + net_income - Decimal("1000")

    def test_empty_summary(self):
        summary = summarize_balances([])
        assert summary.total == Decimal("0")
        assert summary.balances == []

    def test_find_balance(self, scenario, account_b):
        """Test lookup by account ID."""
        balances = calculate_balances(scenario)
        entry = find_balance(balances, account_b.id)
        assert entry is not None
        assert entry.balance == Decimal("10000")
        assert find_balance(balances, uuid4()) is None

    @pytest.mark.parametrize("role", [AccountRole.SPEND, AccountRole.SAVINGS])
    def test_single_account_total(self, user_id, role):
        """Test the total equals the only account's balance."""
        account = Account(user_id=user_id, name="Only", role=role, opening_balance=Decimal("42"))
        snapshot = LedgerSnapshot(user_id=user_id, accounts=[account])
        summary = summarize_balances(calculate_balances(snapshot))
        assert summary.total == Decimal("42")

