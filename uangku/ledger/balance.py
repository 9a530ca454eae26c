"""
Account Balance Computation

DESIGN DECISION: Balances are never stored.
An account's balance is a pure function of its opening balance and
every transaction and transfer that references it:

    balance = opening_balance
            + income into the account
            - expense out of the account
            + transfer amounts received
            - (transfer amount + admin fee) sent

The admin fee is borne by the sender only; the receiver always gets the
full nominal amount. The fee leaves the system.

No rounding happens here. Presentation rounds to whole currency units.
"""

from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from uangku.models.ledger import (
    ZERO,
    Account,
    AccountBalance,
    BalanceSummary,
    LedgerSnapshot,
    Transaction,
    TransactionType,
    Transfer,
)


def _sum(amounts: Iterable[Decimal]) -> Decimal:
    return sum(amounts, ZERO)


def calculate_account_balance(
    account: Account,
    transactions: Iterable[Transaction],
    transfers: Iterable[Transfer],
) -> Decimal:
    """
    Compute one account's current balance.

    Takes the full, unfiltered collections for the user. Rows that
    reference other accounts (or no known account) are ignored.
    An account may legitimately end up negative.
    """
    transactions = list(transactions)
    transfers = list(transfers)

    income = _sum(
        t.amount for t in transactions
        if t.type == TransactionType.INCOME and t.account_id == account.id
    )
    expense = _sum(
        t.amount for t in transactions
        if t.type == TransactionType.EXPENSE and t.account_id == account.id
    )
    incoming = _sum(
        tr.amount for tr in transfers
        if tr.to_account_id == account.id
    )
    outgoing = _sum(
        tr.amount + tr.fee for tr in transfers
        if tr.from_account_id == account.id
    )

    return account.opening_balance + income - expense + incoming - outgoing


def calculate_balances(snapshot: LedgerSnapshot) -> list[AccountBalance]:
    """Balance for every account in the snapshot, in account order."""
    return [
        AccountBalance(
            account=account,
            balance=calculate_account_balance(
                account, snapshot.transactions, snapshot.transfers
            ),
        )
        for account in snapshot.accounts
    ]


def summarize_balances(balances: list[AccountBalance]) -> BalanceSummary:
    """
    Overview totals.

    Accounts without the savings role count as spendable.
    """
    savings = _sum(b.balance for b in balances if b.account.is_savings)
    spendable = _sum(b.balance for b in balances if not b.account.is_savings)
    return BalanceSummary(
        balances=balances,
        total=spendable + savings,
        spendable=spendable,
        savings=savings,
    )


def find_balance(
    balances: list[AccountBalance],
    account_id: UUID,
) -> Optional[AccountBalance]:
    """Look up one account's entry in a list of balances."""
    for entry in balances:
        if entry.account.id == account_id:
            return entry
    return None
