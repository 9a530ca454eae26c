"""
In-Memory Storage Implementation

Keeps every record in plain dicts keyed by ID. Used by the test suite
and as the fallback when no remote backend is configured.

Nothing here survives a restart.
"""

from typing import Optional, TypeVar
from uuid import UUID

from uangku.models.ledger import Account, Transaction, Transfer
from uangku.models.audit import AuditEvent
from uangku.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    NotFoundError,
    in_window,
)


Dated = TypeVar("Dated", Transaction, Transfer)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Dict-backed ledger storage."""

    def __init__(
        self,
        accounts: Optional[list[Account]] = None,
        transactions: Optional[list[Transaction]] = None,
        transfers: Optional[list[Transfer]] = None,
    ):
        self._accounts: dict[UUID, Account] = {a.id: a for a in accounts or []}
        self._transactions: dict[UUID, Transaction] = {
            t.id: t for t in transactions or []
        }
        self._transfers: dict[UUID, Transfer] = {t.id: t for t in transfers or []}

    @staticmethod
    def _select(
        rows: list[Dated],
        user_id: UUID,
        date_from: Optional[str],
        date_to: Optional[str],
        limit: Optional[int],
    ) -> list[Dated]:
        selected = [
            r for r in rows
            if r.user_id == user_id and in_window(r.date, date_from, date_to)
        ]
        selected.sort(
            key=lambda r: (r.date, r.created_at.isoformat() if r.created_at else ""),
            reverse=True,
        )
        return selected[:limit] if limit else selected

    # Accounts

    async def list_accounts(self, user_id: UUID) -> list[Account]:
        accounts = [a for a in self._accounts.values() if a.user_id == user_id]
        accounts.sort(key=lambda a: a.created_at)
        return accounts

    async def get_account(self, user_id: UUID, account_id: UUID) -> Optional[Account]:
        account = self._accounts.get(account_id)
        if account is None or account.user_id != user_id:
            return None
        return account

    async def save_account(self, account: Account) -> bool:
        if account.id in self._accounts:
            raise DuplicateError(f"Account already exists: {account.id}")
        self._accounts[account.id] = account
        return True

    async def update_account(self, account: Account) -> bool:
        existing = self._accounts.get(account.id)
        if existing is None or existing.user_id != account.user_id:
            raise NotFoundError(f"Account not found: {account.id}")
        self._accounts[account.id] = account
        return True

    async def delete_account(self, user_id: UUID, account_id: UUID) -> bool:
        if await self.get_account(user_id, account_id) is None:
            return False
        del self._accounts[account_id]
        return True

    # Transactions

    async def list_transactions(
        self,
        user_id: UUID,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Transaction]:
        return self._select(
            list(self._transactions.values()), user_id, date_from, date_to, limit
        )

    async def save_transaction(self, transaction: Transaction) -> bool:
        if transaction.id in self._transactions:
            raise DuplicateError(f"Transaction already exists: {transaction.id}")
        self._transactions[transaction.id] = transaction
        return True

    async def update_transaction(self, transaction: Transaction) -> bool:
        existing = self._transactions.get(transaction.id)
        if existing is None or existing.user_id != transaction.user_id:
            raise NotFoundError(f"Transaction not found: {transaction.id}")
        self._transactions[transaction.id] = transaction
        return True

    async def delete_transaction(self, user_id: UUID, transaction_id: UUID) -> bool:
        existing = self._transactions.get(transaction_id)
        if existing is None or existing.user_id != user_id:
            return False
        del self._transactions[transaction_id]
        return True

    # Transfers

    async def list_transfers(
        self,
        user_id: UUID,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Transfer]:
        return self._select(
            list(self._transfers.values()), user_id, date_from, date_to, limit
        )

    async def save_transfer(self, transfer: Transfer) -> bool:
        if transfer.id in self._transfers:
            raise DuplicateError(f"Transfer already exists: {transfer.id}")
        self._transfers[transfer.id] = transfer
        return True

    async def delete_transfer(self, user_id: UUID, transfer_id: UUID) -> bool:
        existing = self._transfers.get(transfer_id)
        if existing is None or existing.user_id != user_id:
            return False
        del self._transfers[transfer_id]
        return True


class InMemoryAuditStorage(AuditStorageInterface):
    """List-backed, append-only audit storage."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._events
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
