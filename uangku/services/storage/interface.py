"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Swap the hosted backend without touching the ledger computations
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally simple - we're not building a full ORM.
Just the operations the entry forms and overview screens need.
Every read is scoped to one user; ownership is enforced by the backend.
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from uangku.models.ledger import Account, Transaction, Transfer
from uangku.models.audit import AuditEvent


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger storage operations.

    Any storage implementation (Google Sheets, hosted Postgres, etc.)
    must implement these methods.

    Date windows are ISO date text (YYYY-MM-DD), inclusive on both ends.
    """

    # -------------------------------------------------------------------------
    # Accounts
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_accounts(self, user_id: UUID) -> list[Account]:
        """
        List a user's accounts, oldest first.

        Args:
            user_id: Owner of the accounts

        Returns:
            Accounts ordered by created_at ascending
        """
        pass

    @abstractmethod
    async def get_account(self, user_id: UUID, account_id: UUID) -> Optional[Account]:
        """
        Retrieve one account.

        Returns:
            The account if found and owned by user_id, None otherwise
        """
        pass

    @abstractmethod
    async def save_account(self, account: Account) -> bool:
        """
        Save a new account.

        Raises:
            DuplicateError: If an account with this ID exists
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def update_account(self, account: Account) -> bool:
        """
        Replace an existing account.

        Raises:
            NotFoundError: If account doesn't exist
            StorageError: If update fails
        """
        pass

    @abstractmethod
    async def delete_account(self, user_id: UUID, account_id: UUID) -> bool:
        """
        Hard-delete an account.

        Returns:
            True if a row was removed
        """
        pass

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_transactions(
        self,
        user_id: UUID,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Transaction]:
        """
        List a user's transactions, newest date first.

        Args:
            user_id: Owner of the transactions
            date_from: Only rows dated on or after this day
            date_to: Only rows dated on or before this day
            limit: Maximum number of results (None = all)
        """
        pass

    @abstractmethod
    async def save_transaction(self, transaction: Transaction) -> bool:
        """
        Save a new transaction.

        Raises:
            DuplicateError: If a transaction with this ID exists
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def update_transaction(self, transaction: Transaction) -> bool:
        """
        Replace an existing transaction.

        Raises:
            NotFoundError: If transaction doesn't exist
            StorageError: If update fails
        """
        pass

    @abstractmethod
    async def delete_transaction(self, user_id: UUID, transaction_id: UUID) -> bool:
        """Hard-delete a transaction. Returns True if a row was removed."""
        pass

    # -------------------------------------------------------------------------
    # Transfers
    # -------------------------------------------------------------------------

    @abstractmethod
    async def list_transfers(
        self,
        user_id: UUID,
        date_from: Optional[str] = None,
        date_to: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[Transfer]:
        """
        List a user's transfers, newest date first.

        Same filters as list_transactions.
        """
        pass

    @abstractmethod
    async def save_transfer(self, transfer: Transfer) -> bool:
        """
        Save a new transfer.

        Raises:
            DuplicateError: If a transfer with this ID exists
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def delete_transfer(self, user_id: UUID, transfer_id: UUID) -> bool:
        """Hard-delete a transfer. Returns True if a row was removed."""
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Args:
            event: The audit event to log

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one form submission).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific entity.

        Args:
            entity_type: Type of entity (e.g., 'account', 'transfer')
            entity_id: The entity's ID

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


def in_window(
    date_text: str,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
) -> bool:
    """Inclusive ISO-date window check (lexicographic on the date text)."""
    if date_from and date_text < date_from:
        return False
    if date_to and date_text > date_to:
        return False
    return True


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
