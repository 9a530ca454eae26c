"""
Main Orchestrator for Uangku

This module ties together storage, the ledger computations, validation
and audit logging, and defines the end-to-end flows for:
1. Overview (fetch snapshot → balances, month totals, statement, activity)
2. Entry (form draft → validate → save → audit)

DESIGN DECISION: Every screen goes through the same pure computations
in uangku.ledger. No flow re-derives a balance or a total on its own.

DESIGN DECISION: The three collections are fetched concurrently and
joined before any computation starts. The computations then run
synchronously over the read-only snapshot.
"""

import asyncio
from decimal import Decimal
from typing import Any, Awaitable, Optional, TypeVar
from uuid import UUID

import structlog

from uangku.audit import AuditLogger, configure_logging, create_correlation_id
from uangku.config import get_settings
from uangku.ledger import (
    build_activity,
    calculate_account_balance,
    calculate_balances,
    current_month,
    filter_activity,
    get_daily_series,
    get_totals_for_month,
    month_options,
    summarize_balances,
)
from uangku.models.ledger import (
    Account,
    AccountDraft,
    ActivityEntry,
    Dashboard,
    LedgerSnapshot,
    MonthlyStatement,
    Transaction,
    TransactionDraft,
    Transfer,
    TransferDraft,
    ValidationResult,
)
from uangku.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
    NotFoundError,
    StorageError,
)
from uangku.validation import EntryValidator


T = TypeVar("T")

logger = structlog.get_logger("uangku.orchestrator")


class EntryRejectedError(Exception):
    """A form submission failed validation; nothing was saved."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = [i.message for i in result.issues if i.severity == "error"]
        super().__init__(f"{result.entry_kind} rejected: {'; '.join(messages)}")


class AccountNotEmptyError(Exception):
    """An account can only be deleted while its balance is zero."""

    def __init__(self, account_id: UUID, balance: Decimal):
        self.account_id = account_id
        self.balance = balance
        super().__init__(f"Account {account_id} still holds {balance}")


class SnapshotLoader:
    """
    Fetches everything one user's views need.

    Balances need the complete history, so no date window is applied.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._audit_logger = audit_logger

    async def load(
        self,
        user_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> LedgerSnapshot:
        """Fetch accounts, transactions and transfers in parallel."""
        correlation_id = correlation_id or create_correlation_id()

        try:
            accounts, transactions, transfers = await asyncio.gather(
                self._storage.list_accounts(user_id),
                self._storage.list_transactions(user_id),
                self._storage.list_transfers(user_id),
            )
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_storage_error(
                    operation="load_snapshot",
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        if self._audit_logger:
            await self._audit_logger.log_snapshot_loaded(
                user_id=user_id,
                account_count=len(accounts),
                transaction_count=len(transactions),
                transfer_count=len(transfers),
                correlation_id=correlation_id,
            )

        return LedgerSnapshot(
            user_id=user_id,
            accounts=accounts,
            transactions=transactions,
            transfers=transfers,
        )


class OverviewFlow:
    """
    Read-only views: overview, monthly statement, activity feed.

    Each call fetches a fresh snapshot and derives everything from it.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        loader: Optional[SnapshotLoader] = None,
    ):
        self._loader = loader or SnapshotLoader(storage, audit_logger)

    @staticmethod
    def build_dashboard(snapshot: LedgerSnapshot, month: str) -> Dashboard:
        """Overview for an already-fetched snapshot."""
        balances = calculate_balances(snapshot)
        return Dashboard(
            month=month,
            summary=summarize_balances(balances),
            totals=get_totals_for_month(snapshot.transactions, month),
        )

    @staticmethod
    def build_statement(snapshot: LedgerSnapshot, month: str) -> MonthlyStatement:
        """Statement for an already-fetched snapshot."""
        return MonthlyStatement(
            month=month,
            month_options=month_options(snapshot.transactions),
            totals=get_totals_for_month(snapshot.transactions, month),
            daily=get_daily_series(snapshot.transactions, month),
        )

    async def dashboard(
        self,
        user_id: UUID,
        month: Optional[str] = None,
    ) -> Dashboard:
        """Balances per account, grouped totals, and this month's totals."""
        snapshot = await self._loader.load(user_id)
        return self.build_dashboard(snapshot, month or current_month())

    async def statement(
        self,
        user_id: UUID,
        month: Optional[str] = None,
    ) -> MonthlyStatement:
        """Monthly statement; defaults to the current month."""
        snapshot = await self._loader.load(user_id)
        return self.build_statement(snapshot, month or current_month())

    async def activity(
        self,
        user_id: UUID,
        month: Optional[str] = None,
        account_id: Optional[UUID] = None,
    ) -> list[ActivityEntry]:
        """
        Activity feed for one month and optionally one account.

        Without a month, shows the newest month that has any activity.
        """
        snapshot = await self._loader.load(user_id)
        if month is None:
            month = month_options(snapshot.transactions, snapshot.transfers)[0]
        entries = build_activity(snapshot.transactions, snapshot.transfers)
        return filter_activity(entries, month, account_id)


class EntryFlow:
    """
    Orchestrates the entry forms.

    Flow:
    1. Draft → EntryValidator (against the user's own accounts)
    2. Rejected → audit + EntryRejectedError, nothing saved
    3. Accepted → build the record → save → audit

    Transfers cannot be edited once recorded. Account edits never touch
    the opening balance.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        validator: Optional[EntryValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._storage = storage
        self._validator = validator or EntryValidator()
        self._audit_logger = audit_logger
        self._settings = get_settings().app

    async def _reject(
        self,
        user_id: UUID,
        result: ValidationResult,
        correlation_id: UUID,
    ) -> None:
        if self._audit_logger:
            issues = [
                {"field": i.field, "type": i.issue_type, "message": i.message}
                for i in result.issues
            ]
            await self._audit_logger.log_entry_rejected(
                entry_kind=result.entry_kind,
                user_id=user_id,
                issues=issues,
                correlation_id=correlation_id,
            )
        raise EntryRejectedError(result)

    async def _persist(
        self,
        operation: str,
        call: Awaitable[T],
        correlation_id: UUID,
    ) -> T:
        """Run a storage write, auditing the failure before re-raising it."""
        try:
            return await call
        except StorageError as e:
            if self._audit_logger:
                await self._audit_logger.log_storage_error(
                    operation=operation,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

    async def _require_account(self, user_id: UUID, account_id: UUID) -> Account:
        account = await self._storage.get_account(user_id, account_id)
        if account is None:
            raise NotFoundError(f"Account not found: {account_id}")
        return account

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    async def create_account(
        self,
        user_id: UUID,
        draft: AccountDraft,
        correlation_id: Optional[UUID] = None,
    ) -> Account:
        """Create an account with its (immutable) opening balance."""
        correlation_id = correlation_id or create_correlation_id()

        result = self._validator.validate_account(draft)
        if not result.is_valid:
            await self._reject(user_id, result, correlation_id)

        account = Account(
            user_id=user_id,
            name=draft.name,
            type=draft.type,
            role=draft.role,
            opening_balance=draft.opening_balance,
        )
        await self._persist(
            "save_account", self._storage.save_account(account), correlation_id
        )

        if self._audit_logger:
            await self._audit_logger.log_account_created(
                account_id=account.id,
                user_id=user_id,
                name=account.name,
                opening_balance=str(account.opening_balance),
                correlation_id=correlation_id,
            )
        return account

    async def update_account(
        self,
        user_id: UUID,
        account_id: UUID,
        draft: AccountDraft,
        correlation_id: Optional[UUID] = None,
    ) -> Account:
        """
        Edit name, type and role.

        The draft's opening_balance is ignored: the baseline never changes.
        """
        correlation_id = correlation_id or create_correlation_id()
        existing = await self._require_account(user_id, account_id)

        result = self._validator.validate_account(draft)
        if not result.is_valid:
            await self._reject(user_id, result, correlation_id)

        changes = _diff(existing, {"name": draft.name, "type": draft.type, "role": draft.role})
        updated = Account.model_validate({**existing.model_dump(), **changes})
        await self._persist(
            "update_account", self._storage.update_account(updated), correlation_id
        )

        if self._audit_logger:
            await self._audit_logger.log_account_updated(
                account_id=account_id,
                user_id=user_id,
                changes=_describe(changes),
                correlation_id=correlation_id,
            )
        return updated

    async def delete_account(
        self,
        user_id: UUID,
        account_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Hard-delete an account whose computed balance is zero.

        Raises:
            NotFoundError: Unknown account
            AccountNotEmptyError: Balance is not zero
        """
        correlation_id = correlation_id or create_correlation_id()
        account = await self._require_account(user_id, account_id)

        transactions, transfers = await asyncio.gather(
            self._storage.list_transactions(user_id),
            self._storage.list_transfers(user_id),
        )
        balance = calculate_account_balance(account, transactions, transfers)

        if not self._validator.can_delete_account(balance):
            if self._audit_logger:
                await self._audit_logger.log_account_delete_blocked(
                    account_id=account_id,
                    user_id=user_id,
                    balance=str(balance),
                    correlation_id=correlation_id,
                )
            raise AccountNotEmptyError(account_id, balance)

        deleted = await self._persist(
            "delete_account",
            self._storage.delete_account(user_id, account_id),
            correlation_id,
        )
        if deleted and self._audit_logger:
            await self._audit_logger.log_account_deleted(
                account_id=account_id,
                user_id=user_id,
                correlation_id=correlation_id,
            )
        return deleted

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def record_transaction(
        self,
        user_id: UUID,
        draft: TransactionDraft,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """Record an income or expense."""
        correlation_id = correlation_id or create_correlation_id()
        accounts = await self._storage.list_accounts(user_id)

        result = self._validator.validate_transaction(draft, accounts)
        if not result.is_valid:
            await self._reject(user_id, result, correlation_id)

        transaction = Transaction(
            user_id=user_id,
            date=draft.date,
            amount=draft.amount,
            type=draft.type,
            account_id=draft.account_id,
            category=draft.category or self._settings.default_category,
            note=draft.note or None,
        )
        await self._persist(
            "save_transaction", self._storage.save_transaction(transaction), correlation_id
        )

        if self._audit_logger:
            await self._audit_logger.log_transaction_recorded(
                transaction_id=transaction.id,
                user_id=user_id,
                transaction_type=transaction.type.value,
                amount=str(transaction.amount),
                correlation_id=correlation_id,
            )
        return transaction

    async def update_transaction(
        self,
        user_id: UUID,
        transaction_id: UUID,
        draft: TransactionDraft,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Edit a transaction in place.

        Fields left as None in the draft keep their current value.
        The merged result is validated like a new entry.
        """
        correlation_id = correlation_id or create_correlation_id()
        accounts, transactions = await asyncio.gather(
            self._storage.list_accounts(user_id),
            self._storage.list_transactions(user_id),
        )
        existing = next((t for t in transactions if t.id == transaction_id), None)
        if existing is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")

        current = existing.model_dump(
            include={"date", "amount", "type", "account_id", "category", "note"}
        )
        merged = TransactionDraft(**{**current, **draft.model_dump(exclude_none=True)})

        result = self._validator.validate_transaction(merged, accounts)
        if not result.is_valid:
            await self._reject(user_id, result, correlation_id)

        proposed = merged.model_dump(exclude_none=True)
        proposed["category"] = merged.category or self._settings.default_category
        proposed["note"] = merged.note or None

        changes = _diff(existing, proposed)
        updated = Transaction.model_validate({**existing.model_dump(), **changes})
        await self._persist(
            "update_transaction", self._storage.update_transaction(updated), correlation_id
        )

        if self._audit_logger:
            await self._audit_logger.log_transaction_updated(
                transaction_id=transaction_id,
                user_id=user_id,
                changes=_describe(changes),
                correlation_id=correlation_id,
            )
        return updated

    async def delete_transaction(
        self,
        user_id: UUID,
        transaction_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Delete a transaction. Returns False if it did not exist."""
        correlation_id = correlation_id or create_correlation_id()
        deleted = await self._persist(
            "delete_transaction",
            self._storage.delete_transaction(user_id, transaction_id),
            correlation_id,
        )
        if deleted and self._audit_logger:
            await self._audit_logger.log_transaction_deleted(
                transaction_id=transaction_id,
                user_id=user_id,
                correlation_id=correlation_id,
            )
        return deleted

    # -------------------------------------------------------------------------
    # Transfers
    # -------------------------------------------------------------------------

    async def record_transfer(
        self,
        user_id: UUID,
        draft: TransferDraft,
        correlation_id: Optional[UUID] = None,
    ) -> Transfer:
        """Record a transfer between two of the user's accounts."""
        correlation_id = correlation_id or create_correlation_id()
        accounts = await self._storage.list_accounts(user_id)

        result = self._validator.validate_transfer(draft, accounts)
        if not result.is_valid:
            await self._reject(user_id, result, correlation_id)

        transfer = Transfer(
            user_id=user_id,
            date=draft.date,
            amount=draft.amount,
            admin_fee=draft.admin_fee,
            from_account_id=draft.from_account_id,
            to_account_id=draft.to_account_id,
            note=draft.note or None,
        )
        await self._persist(
            "save_transfer", self._storage.save_transfer(transfer), correlation_id
        )

        if self._audit_logger:
            await self._audit_logger.log_transfer_recorded(
                transfer_id=transfer.id,
                user_id=user_id,
                amount=str(transfer.amount),
                admin_fee=str(transfer.fee),
                correlation_id=correlation_id,
            )
        return transfer

    async def delete_transfer(
        self,
        user_id: UUID,
        transfer_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """Delete both legs of a transfer. Returns False if it did not exist."""
        correlation_id = correlation_id or create_correlation_id()
        deleted = await self._persist(
            "delete_transfer",
            self._storage.delete_transfer(user_id, transfer_id),
            correlation_id,
        )
        if deleted and self._audit_logger:
            await self._audit_logger.log_transfer_deleted(
                transfer_id=transfer_id,
                user_id=user_id,
                correlation_id=correlation_id,
            )
        return deleted


def _diff(record: Any, proposed: dict[str, Any]) -> dict[str, Any]:
    """Fields of proposed whose value differs from the record's."""
    return {
        field: value
        for field, value in proposed.items()
        if getattr(record, field) != value
    }


def _describe(changes: dict[str, Any]) -> dict[str, str]:
    """JSON-friendly view of a change set for the audit log."""
    return {
        field: getattr(value, "value", str(value))
        for field, value in changes.items()
    }


def create_app_components(
    use_storage: bool = True,
) -> tuple[OverviewFlow, EntryFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Falls back to in-memory storage when False or
                    when Sheets is not configured.

    Returns:
        (overview_flow, entry_flow, sheets_client)
    """
    configure_logging(get_settings().app.log_level)

    sheets_client = None
    ledger_storage: LedgerStorageInterface
    audit_storage: AuditStorageInterface

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            ledger_storage = GoogleSheetsLedgerStorage(sheets_client)
            audit_storage = GoogleSheetsAuditStorage(sheets_client)
        except Exception as e:
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None

    if sheets_client is None:
        ledger_storage = InMemoryLedgerStorage()
        audit_storage = InMemoryAuditStorage()

    audit_logger = AuditLogger(audit_storage)

    overview_flow = OverviewFlow(
        storage=ledger_storage,
        audit_logger=audit_logger,
    )
    entry_flow = EntryFlow(
        storage=ledger_storage,
        audit_logger=audit_logger,
    )

    return overview_flow, entry_flow, sheets_client
