"""
Shared fixtures.

The scenario ledger: account A opens with 100,000, receives 50,000 income
and spends 20,000 in February 2024, then sends 10,000 (fee 1,000) to B.
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from uangku.config import AppSettings
from uangku.models.ledger import (
    Account,
    AccountRole,
    LedgerSnapshot,
    Transaction,
    TransactionType,
    Transfer,
)


@pytest.fixture
def user_id():
    return uuid4()


@pytest.fixture
def app_settings():
    return AppSettings(
        max_entry_amount=Decimal("1000000000"),
        future_date_tolerance_days=7,
        default_category="General",
    )


@pytest.fixture
def account_a(user_id):
    return Account(
        user_id=user_id,
        name="BCA",
        opening_balance=Decimal("100000"),
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def account_b(user_id):
    return Account(
        user_id=user_id,
        name="Tabungan",
        role=AccountRole.SAVINGS,
        created_at=datetime(2024, 1, 2, tzinfo=timezone.utc),
    )


@pytest.fixture
def scenario(user_id, account_a, account_b):
    transactions = [
        Transaction(
            user_id=user_id,
            date="2024-02-01",
            amount=Decimal("50000"),
            type=TransactionType.INCOME,
            account_id=account_a.id,
            category="Salary",
            created_at=datetime(2024, 2, 1, 9, tzinfo=timezone.utc),
        ),
        Transaction(
            user_id=user_id,
            date="2024-02-10",
            amount=Decimal("20000"),
            type=TransactionType.EXPENSE,
            account_id=account_a.id,
            category="Food",
            created_at=datetime(2024, 2, 10, 12, tzinfo=timezone.utc),
        ),
    ]
    transfers = [
        Transfer(
            user_id=user_id,
            date="2024-02-15",
            amount=Decimal("10000"),
            admin_fee=Decimal("1000"),
            from_account_id=account_a.id,
            to_account_id=account_b.id,
            created_at=datetime(2024, 2, 15, 8, tzinfo=timezone.utc),
        ),
    ]
    return LedgerSnapshot(
        user_id=user_id,
        accounts=[account_a, account_b],
        transactions=transactions,
        transfers=transfers,
    )
