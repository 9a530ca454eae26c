"""
Audit Logger

DESIGN DECISION: Every change to a ledger is logged.
This provides:
1. Complete traceability
2. Debugging capability when a balance looks off
3. User can see history of their edits

The audit logger:
- Is async so it sits naturally in the async service flows
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events

The ledger computations themselves never log; they are pure.
"""

import logging
from typing import Any, Optional
from uuid import UUID, uuid4

import structlog

from uangku.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from uangku.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route structlog output through stdlib logging at the given level."""
    logging.basicConfig(format="%(message)s", level=getattr(logging, level.upper()))


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("uangku.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_account_created(
        self,
        account_id: UUID,
        user_id: UUID,
        name: str,
        opening_balance: str,
        correlation_id: UUID,
    ) -> None:
        """Log account creation."""
        event = AuditEventBuilder.account_created(
            account_id=account_id,
            user_id=user_id,
            name=name,
            opening_balance=opening_balance,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_account_updated(
        self,
        account_id: UUID,
        user_id: UUID,
        changes: dict[str, Any],
        correlation_id: UUID,
    ) -> None:
        """Log an account edit (name/type/role)."""
        event = AuditEventBuilder.account_updated(
            account_id=account_id,
            user_id=user_id,
            changes=changes,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_account_deleted(
        self,
        account_id: UUID,
        user_id: UUID,
        correlation_id: UUID,
    ) -> None:
        """Log account deletion."""
        event = AuditEventBuilder.account_deleted(
            account_id=account_id,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_account_delete_blocked(
        self,
        account_id: UUID,
        user_id: UUID,
        balance: str,
        correlation_id: UUID,
    ) -> None:
        """Log a refused deletion of a non-empty account."""
        event = AuditEventBuilder.account_delete_blocked(
            account_id=account_id,
            user_id=user_id,
            balance=balance,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_recorded(
        self,
        transaction_id: UUID,
        user_id: UUID,
        transaction_type: str,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        """Log a new income/expense."""
        event = AuditEventBuilder.transaction_recorded(
            transaction_id=transaction_id,
            user_id=user_id,
            transaction_type=transaction_type,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_updated(
        self,
        transaction_id: UUID,
        user_id: UUID,
        changes: dict[str, Any],
        correlation_id: UUID,
    ) -> None:
        """Log an in-place transaction edit."""
        event = AuditEventBuilder.transaction_updated(
            transaction_id=transaction_id,
            user_id=user_id,
            changes=changes,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_deleted(
        self,
        transaction_id: UUID,
        user_id: UUID,
        correlation_id: UUID,
    ) -> None:
        """Log a transaction deletion."""
        event = AuditEventBuilder.transaction_deleted(
            transaction_id=transaction_id,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transfer_deleted(
        self,
        transfer_id: UUID,
        user_id: UUID,
        correlation_id: UUID,
    ) -> None:
        """Log a transfer deletion."""
        event = AuditEventBuilder.transfer_deleted(
            transfer_id=transfer_id,
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transfer_recorded(
        self,
        transfer_id: UUID,
        user_id: UUID,
        amount: str,
        admin_fee: str,
        correlation_id: UUID,
    ) -> None:
        """Log a new transfer."""
        event = AuditEventBuilder.transfer_recorded(
            transfer_id=transfer_id,
            user_id=user_id,
            amount=amount,
            admin_fee=admin_fee,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_entry_rejected(
        self,
        entry_kind: str,
        user_id: UUID,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log a form submission that failed validation."""
        event = AuditEventBuilder.entry_rejected(
            entry_kind=entry_kind,
            user_id=user_id,
            issues=issues,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_snapshot_loaded(
        self,
        user_id: UUID,
        account_count: int,
        transaction_count: int,
        transfer_count: int,
        correlation_id: UUID,
    ) -> None:
        """Log a snapshot fetch."""
        event = AuditEventBuilder.snapshot_loaded(
            user_id=user_id,
            account_count=account_count,
            transaction_count=transaction_count,
            transfer_count=transfer_count,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a storage backend failure."""
        event = AuditEventBuilder.storage_error(
            operation=operation,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a form submission).
    Pass it through all subsequent operations.
    """
    return uuid4()
