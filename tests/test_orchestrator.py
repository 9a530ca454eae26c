"""
Integration tests for the overview and entry flows.

Runs against in-memory storage; no external services.
"""

import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock
from uuid import uuid4

from uangku.audit import AuditLogger
from uangku.models.audit import AuditEventType
from uangku.models.ledger import (
    AccountDraft,
    AccountRole,
    AccountType,
    ActivityKind,
    TransactionDraft,
    TransactionType,
    TransferDraft,
)
from uangku.orchestrator import (
    AccountNotEmptyError,
    EntryFlow,
    EntryRejectedError,
    OverviewFlow,
    SnapshotLoader,
    create_app_components,
)
from uangku.services.storage import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    NotFoundError,
    StorageError,
)
from uangku.validation import EntryValidator


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def storage(scenario):
    return InMemoryLedgerStorage(
        accounts=scenario.accounts,
        transactions=scenario.transactions,
        transfers=scenario.transfers,
    )


@pytest.fixture
def overview(storage, audit_storage):
    return OverviewFlow(storage, audit_logger=AuditLogger(audit_storage))


@pytest.fixture
def entries(storage, audit_storage, app_settings):
    return EntryFlow(
        storage,
        validator=EntryValidator(settings=app_settings, today=date(2024, 2, 20)),
        audit_logger=AuditLogger(audit_storage),
    )


def _event_types(audit_storage):
    return [e.event_type for e in audit_storage.events]


def _find(records, record_id):
    return next(r for r in records if r.id == record_id)


class TestSnapshotLoader:
    """Tests for SnapshotLoader."""

    @pytest.mark.asyncio
    async def test_load(self, storage, audit_storage, scenario):
        loader = SnapshotLoader(storage, AuditLogger(audit_storage))
        snapshot = await loader.load(scenario.user_id)

        assert len(snapshot.accounts) == 2
        assert len(snapshot.transactions) == 2
        assert len(snapshot.transfers) == 1
        assert _event_types(audit_storage) == [AuditEventType.SNAPSHOT_LOADED]

    @pytest.mark.asyncio
    async def test_storage_failure_is_audited_and_raised(self, audit_storage, user_id):
        storage = AsyncMock()
        storage.list_accounts.side_effect = StorageError("offline")
        storage.list_transactions.return_value = []
        storage.list_transfers.return_value = []
        loader = SnapshotLoader(storage, AuditLogger(audit_storage))

        with pytest.raises(StorageError):
            await loader.load(user_id)
        assert _event_types(audit_storage) == [AuditEventType.STORAGE_ERROR]


class TestOverviewFlow:
    """Tests for OverviewFlow."""

    @pytest.mark.asyncio
    async def test_dashboard_scenario(self, overview, scenario, account_a, account_b):
        dashboard = await overview.dashboard(scenario.user_id, month="2024-02")

        balances = {b.account.id: b.balance for b in dashboard.summary.balances}
        assert balances[account_a.id] == Decimal("119000")
        assert balances[account_b.id] == Decimal("10000")
        assert dashboard.summary.spendable == Decimal("119000")
        assert dashboard.summary.savings == Decimal("10000")
        assert dashboard.totals.income == Decimal("50000")
        assert dashboard.totals.expense == Decimal("20000")
        assert dashboard.totals.net == Decimal("30000")

    @pytest.mark.asyncio
    async def test_statement(self, overview, scenario):
        statement = await overview.statement(scenario.user_id, month="2024-02")

        assert statement.month_options == ["2024-02"]
        assert statement.totals.net == Decimal("30000")
        assert statement.daily.net == {"01": Decimal("50000"), "10": Decimal("-20000")}

    @pytest.mark.asyncio
    async def test_statement_for_empty_ledger(self, user_id):
        flow = OverviewFlow(InMemoryLedgerStorage())
        statement = await flow.statement(user_id, month="2024-02")
        assert statement.daily.is_empty
        assert statement.totals.net == Decimal("0")

    @pytest.mark.asyncio
    async def test_activity_defaults_to_latest_month(self, overview, scenario, account_a):
        entries = await overview.activity(scenario.user_id, account_id=account_a.id)

        assert len(entries) == 4  # both legs of the transfer touch A
        assert entries[0].kind == ActivityKind.TRANSFER_OUT
        assert sum(e.signed_amount for e in entries if e.account_id == account_a.id) == Decimal("19000")

    @pytest.mark.asyncio
    async def test_other_users_see_nothing(self, overview):
        dashboard = await overview.dashboard(uuid4(), month="2024-02")
        assert dashboard.summary.balances == []
        assert dashboard.summary.total == Decimal("0")


class TestEntryFlowAccounts:
    """Tests for account creation, editing and deletion."""

    @pytest.mark.asyncio
    async def test_create_account(self, entries, storage, audit_storage, user_id):
        account = await entries.create_account(
            user_id,
            AccountDraft(name="GoPay", type=AccountType.EWALLET, opening_balance=Decimal("5000")),
        )

        assert await storage.get_account(user_id, account.id) == account
        assert account.opening_balance == Decimal("5000")
        assert _event_types(audit_storage) == [AuditEventType.ACCOUNT_CREATED]

    @pytest.mark.asyncio
    async def test_create_account_without_name_is_rejected(self, entries, audit_storage, user_id):
        with pytest.raises(EntryRejectedError) as exc_info:
            await entries.create_account(user_id, AccountDraft(name=""))

        assert exc_info.value.result.entry_kind == "account"
        assert _event_types(audit_storage) == [AuditEventType.ENTRY_REJECTED]

    @pytest.mark.asyncio
    async def test_update_account_keeps_opening_balance(self, entries, account_a, audit_storage):
        updated = await entries.update_account(
            account_a.user_id,
            account_a.id,
            AccountDraft(
                name="BCA Utama",
                role=AccountRole.SAVINGS,
                opening_balance=Decimal("1"),
            ),
        )

        assert updated.name == "BCA Utama"
        assert updated.role == AccountRole.SAVINGS
        assert updated.opening_balance == Decimal("100000")
        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.ACCOUNT_UPDATED
        assert event.details["changes"] == {"name": "BCA Utama", "role": "savings"}

    @pytest.mark.asyncio
    async def test_update_unknown_account(self, entries, user_id):
        with pytest.raises(NotFoundError):
            await entries.update_account(user_id, uuid4(), AccountDraft(name="X"))

    @pytest.mark.asyncio
    async def test_delete_non_empty_account_is_blocked(self, entries, storage, account_b, audit_storage):
        with pytest.raises(AccountNotEmptyError) as exc_info:
            await entries.delete_account(account_b.user_id, account_b.id)

        assert exc_info.value.balance == Decimal("10000")
        assert await storage.get_account(account_b.user_id, account_b.id) is not None
        assert _event_types(audit_storage) == [AuditEventType.ACCOUNT_DELETE_BLOCKED]

    @pytest.mark.asyncio
    async def test_delete_empty_account(self, entries, storage, user_id, audit_storage):
        account = await entries.create_account(user_id, AccountDraft(name="Dompet"))

        assert await entries.delete_account(user_id, account.id) is True
        assert await storage.get_account(user_id, account.id) is None
        assert _event_types(audit_storage)[-1] == AuditEventType.ACCOUNT_DELETED

    @pytest.mark.asyncio
    async def test_delete_after_emptying(self, entries, account_b, account_a):
        """Test moving the money out (no fee) makes the account deletable."""
        await entries.record_transfer(account_b.user_id, TransferDraft(
            date="2024-02-16",
            amount=Decimal("10000"),
            from_account_id=account_b.id,
            to_account_id=account_a.id,
        ))
        assert await entries.delete_account(account_b.user_id, account_b.id) is True


class TestEntryFlowTransactions:
    """Tests for recording and editing transactions."""

    @pytest.mark.asyncio
    async def test_record_transaction_changes_balance(self, entries, overview, account_a):
        await entries.record_transaction(account_a.user_id, TransactionDraft(
            date="2024-02-18",
            amount=Decimal("4000"),
            type=TransactionType.EXPENSE,
            account_id=account_a.id,
            category="Transport",
        ))

        dashboard = await overview.dashboard(account_a.user_id, month="2024-02")
        assert dashboard.summary.balances[0].balance == Decimal("115000")
        assert dashboard.totals.expense == Decimal("24000")

    @pytest.mark.asyncio
    async def test_missing_category_uses_default(self, entries, account_a):
        transaction = await entries.record_transaction(account_a.user_id, TransactionDraft(
            date="2024-02-18",
            amount=Decimal("4000"),
            type=TransactionType.INCOME,
            account_id=account_a.id,
        ))
        assert transaction.category == "General"

    @pytest.mark.asyncio
    async def test_foreign_account_is_rejected(self, entries, storage, account_a):
        with pytest.raises(EntryRejectedError):
            await entries.record_transaction(uuid4(), TransactionDraft(
                date="2024-02-18",
                amount=Decimal("4000"),
                type=TransactionType.INCOME,
                account_id=account_a.id,
                category="X",
            ))
        assert len(await storage.list_transactions(account_a.user_id)) == 2

    @pytest.mark.asyncio
    async def test_update_transaction_merges_fields(self, entries, scenario, audit_storage):
        original = scenario.transactions[1]

        updated = await entries.update_transaction(
            scenario.user_id,
            original.id,
            TransactionDraft(amount=Decimal("25000")),
        )

        assert updated.amount == Decimal("25000")
        assert updated.date == original.date
        assert updated.category == original.category
        assert updated.created_at == original.created_at
        event = audit_storage.events[-1]
        assert event.event_type == AuditEventType.TRANSACTION_UPDATED
        assert event.details["changes"] == {"amount": "25000"}

    @pytest.mark.asyncio
    async def test_update_transaction_validates_merged_result(self, entries, scenario):
        with pytest.raises(EntryRejectedError):
            await entries.update_transaction(
                scenario.user_id,
                scenario.transactions[0].id,
                TransactionDraft(date="2024-13-01"),
            )


    @pytest.mark.asyncio
    async def test_over_long_note_is_rejected_before_storage(
        self, entries, storage, audit_storage, account_a
    ):
        """Test a 600-character note becomes an audited rejection, not a storage crash."""
        with pytest.raises(EntryRejectedError) as exc_info:
            await entries.record_transaction(account_a.user_id, TransactionDraft(
                date="2024-02-18",
                amount=Decimal("4000"),
                type=TransactionType.EXPENSE,
                account_id=account_a.id,
                category="Food",
                note="n" * 600,
            ))

        assert [i.issue_type for i in exc_info.value.result.issues] == ["too_long"]
        assert _event_types(audit_storage) == [AuditEventType.ENTRY_REJECTED]
        assert len(await storage.list_transactions(account_a.user_id)) == 2

    @pytest.mark.asyncio
    async def test_update_with_over_long_note_is_rejected(self, entries, storage, scenario):
        """Test an edit cannot store a note past the record's limit."""
        original = scenario.transactions[1]

        with pytest.raises(EntryRejectedError):
            await entries.update_transaction(
                scenario.user_id,
                original.id,
                TransactionDraft(note="n" * 600),
            )

        stored = _find(await storage.list_transactions(scenario.user_id), original.id)
        assert stored == original

    @pytest.mark.asyncio
    async def test_updated_record_is_revalidated(self, entries, scenario):
        """Test the edited record is a fully validated Transaction."""
        original = scenario.transactions[1]

        updated = await entries.update_transaction(
            scenario.user_id,
            original.id,
            TransactionDraft(category="  Groceries  ", note="weekly shop"),
        )

        assert updated.category == "Groceries"
        assert updated.note == "weekly shop"
        assert updated.id == original.id
        assert updated.user_id == original.user_id

    @pytest.mark.asyncio
    async def test_blank_category_on_edit_uses_default(self, entries, storage, scenario, audit_storage):
        """Test clearing the category on edit falls back to the default, like a new entry."""
        original = scenario.transactions[1]

        updated = await entries.update_transaction(
            scenario.user_id,
            original.id,
            TransactionDraft(category="   "),
        )

        assert updated.category == "General"
        stored = _find(await storage.list_transactions(scenario.user_id), original.id)
        assert stored.category == "General"
        assert audit_storage.events[-1].details["changes"] == {"category": "General"}
    @pytest.mark.asyncio
    async def test_update_unknown_transaction(self, entries, user_id):
        with pytest.raises(NotFoundError):
            await entries.update_transaction(user_id, uuid4(), TransactionDraft())

    @pytest.mark.asyncio
    async def test_delete_transaction(self, entries, scenario, audit_storage):
        transaction_id = scenario.transactions[0].id
        assert await entries.delete_transaction(scenario.user_id, transaction_id) is True
        assert await entries.delete_transaction(scenario.user_id, transaction_id) is False
        assert _event_types(audit_storage).count(AuditEventType.TRANSACTION_DELETED) == 1


class TestEntryFlowTransfers:
    """Tests for recording transfers."""

    @pytest.mark.asyncio
    async def test_record_transfer(self, entries, overview, account_a, account_b, audit_storage):
        transfer = await entries.record_transfer(account_a.user_id, TransferDraft(
            date="2024-02-19",
            amount=Decimal("5000"),
            admin_fee=Decimal("2500"),
            from_account_id=account_a.id,
            to_account_id=account_b.id,
        ))

        assert transfer.fee == Decimal("2500")
        dashboard = await overview.dashboard(account_a.user_id, month="2024-02")
        balances = {b.account.id: b.balance for b in dashboard.summary.balances}
        assert balances[account_a.id] == Decimal("111500")
        assert balances[account_b.id] == Decimal("15000")
        assert dashboard.totals.net == Decimal("30000")
        assert AuditEventType.TRANSFER_RECORDED in _event_types(audit_storage)

    @pytest.mark.asyncio
    async def test_self_transfer_is_rejected(self, entries, storage, account_a):
        with pytest.raises(EntryRejectedError) as exc_info:
            await entries.record_transfer(account_a.user_id, TransferDraft(
                date="2024-02-19",
                amount=Decimal("5000"),
                from_account_id=account_a.id,
                to_account_id=account_a.id,
            ))

        assert "Choose two different accounts" in str(exc_info.value)
        assert len(await storage.list_transfers(account_a.user_id)) == 1

    @pytest.mark.asyncio
    async def test_delete_transfer(self, entries, scenario, overview, account_a):
        await entries.delete_transfer(scenario.user_id, scenario.transfers[0].id)
        dashboard = await overview.dashboard(scenario.user_id, month="2024-02")
        assert dashboard.summary.balances[0].balance == Decimal("130000")

    @pytest.mark.asyncio
    async def test_storage_failure_is_audited(self, audit_storage, app_settings, account_a, account_b):
        storage = AsyncMock()
        storage.list_accounts.return_value = [account_a, account_b]
        storage.save_transfer.side_effect = StorageError("write failed")
        flow = EntryFlow(
            storage,
            validator=EntryValidator(settings=app_settings, today=date(2024, 2, 20)),
            audit_logger=AuditLogger(audit_storage),
        )

        with pytest.raises(StorageError):
            await flow.record_transfer(account_a.user_id, TransferDraft(
                date="2024-02-19",
                amount=Decimal("5000"),
                from_account_id=account_a.id,
                to_account_id=account_b.id,
            ))
        assert _event_types(audit_storage) == [AuditEventType.STORAGE_ERROR]


class TestCreateAppComponents:
    """Tests for the component factory."""

    def test_falls_back_to_memory_without_storage(self):
        overview, entries, sheets_client = create_app_components(use_storage=False)
        assert isinstance(overview, OverviewFlow)
        assert isinstance(entries, EntryFlow)
        assert sheets_client is None
