"""
Activity Feed

Merges transactions and both legs of every transfer into a single
list of ActivityEntry rows, so presentation can switch on the entry
kind instead of guessing from the record's shape.
"""

from typing import Iterable, Optional
from uuid import UUID

from uangku.models.ledger import (
    ActivityEntry,
    ActivityKind,
    Transaction,
    Transfer,
)


def build_activity(
    transactions: Iterable[Transaction],
    transfers: Iterable[Transfer],
) -> list[ActivityEntry]:
    """One entry per transaction, two per transfer (out and in)."""
    entries = [
        ActivityEntry(kind=ActivityKind.TRANSACTION, item=t)
        for t in transactions
    ]
    for tr in transfers:
        entries.append(ActivityEntry(kind=ActivityKind.TRANSFER_OUT, item=tr))
        entries.append(ActivityEntry(kind=ActivityKind.TRANSFER_IN, item=tr))
    return entries


def filter_activity(
    entries: Iterable[ActivityEntry],
    month: str,
    account_id: Optional[UUID] = None,
) -> list[ActivityEntry]:
    """
    Entries for one month, optionally limited to one account.

    A transfer leg matches an account on either side of the transfer.
    Newest first by insertion time (nominal date when that is missing).
    """
    selected = [
        entry for entry in entries
        if entry.date.startswith(month)
        and (account_id is None or entry.touches(account_id))
    ]
    selected.sort(key=lambda e: e.sort_key, reverse=True)
    return selected
