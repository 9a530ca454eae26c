"""
Monthly Statement Aggregation

Totals and per-day series for one calendar month.

DESIGN DECISION: Month membership is string-prefix matching.
A transaction belongs to month "YYYY-MM" when its date text starts with
it. No calendar parsing happens, so a malformed date string buckets
wrongly instead of raising. Callers guarantee well-formed dates.

Membership is by the transaction's nominal date, never by created_at.
Transfers move money between the user's own accounts and are never
part of income or expense.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, TypeVar

from uangku.models.ledger import (
    ZERO,
    DailySeries,
    MonthlyTotals,
    Transaction,
    TransactionType,
    Transfer,
)


Dated = TypeVar("Dated", Transaction, Transfer)


def month_key(date_text: str) -> str:
    """YYYY-MM part of an ISO date string."""
    return date_text[:7]


def day_key(date_text: str) -> str:
    """DD part of an ISO date string."""
    return date_text[8:10]


def current_month(today: Optional[date] = None) -> str:
    """Month identifier for today (or the given day)."""
    today = today or date.today()
    return today.isoformat()[:7]


def filter_month(records: Iterable[Dated], month: str) -> list[Dated]:
    """Records whose date falls in the given YYYY-MM month."""
    return [r for r in records if r.date.startswith(month)]


def get_totals_for_month(
    transactions: Iterable[Transaction],
    month: str,
) -> MonthlyTotals:
    """
    Income, expense and net for one month.

    An empty list, or a month without matches, gives all-zero totals.
    """
    in_month = filter_month(transactions, month)
    income = sum(
        (t.amount for t in in_month if t.type == TransactionType.INCOME), ZERO
    )
    expense = sum(
        (t.amount for t in in_month if t.type == TransactionType.EXPENSE), ZERO
    )
    return MonthlyTotals(income=income, expense=expense, net=income - expense)


def get_daily_series(
    transactions: Iterable[Transaction],
    month: str,
) -> DailySeries:
    """
    Per-day income, expense (negated) and net for one month.

    Only days with activity appear; each series is keyed by the day
    string and ordered by day.
    """
    income: dict[str, Decimal] = defaultdict(lambda: ZERO)
    expense: dict[str, Decimal] = defaultdict(lambda: ZERO)
    net: dict[str, Decimal] = defaultdict(lambda: ZERO)

    for t in filter_month(transactions, month):
        day = day_key(t.date)
        if t.type == TransactionType.INCOME:
            income[day] += t.amount
        else:
            expense[day] -= t.amount
        net[day] += t.signed_amount

    return DailySeries(
        income=_by_day(income),
        expense=_by_day(expense),
        net=_by_day(net),
    )


def _by_day(series: dict[str, Decimal]) -> dict[str, Decimal]:
    return {day: series[day] for day in sorted(series)}


def month_options(
    transactions: Iterable[Transaction],
    transfers: Iterable[Transfer] = (),
    today: Optional[date] = None,
) -> list[str]:
    """
    Months present in the data, newest first.

    With no data at all, offers just the current month so a
    month picker always has something selected.
    """
    months: set[str] = {month_key(t.date) for t in transactions}
    months.update(month_key(tr.date) for tr in transfers)
    if not months:
        return [current_month(today)]
    return sorted(months, reverse=True)
