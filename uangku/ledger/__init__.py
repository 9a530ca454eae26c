"""
Ledger computations.

Pure functions over read-only snapshots: no I/O, no logging, no state.
"""

from uangku.ledger.activity import build_activity, filter_activity
from uangku.ledger.balance import (
    calculate_account_balance,
    calculate_balances,
    find_balance,
    summarize_balances,
)
from uangku.ledger.period import (
    current_month,
    day_key,
    filter_month,
    get_daily_series,
    get_totals_for_month,
    month_key,
    month_options,
)

__all__ = [
    "build_activity",
    "calculate_account_balance",
    "calculate_balances",
    "current_month",
    "day_key",
    "filter_activity",
    "filter_month",
    "find_balance",
    "get_daily_series",
    "get_totals_for_month",
    "month_key",
    "month_options",
    "summarize_balances",
]
