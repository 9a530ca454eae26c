"""
Data Models Package

This package contains all Pydantic models used in Uangku.
Records fetched from the backend and every derived value conform to these schemas.
"""

from uangku.models.ledger import (
    Account,
    AccountBalance,
    AccountDraft,
    AccountRole,
    AccountType,
    ActivityEntry,
    ActivityKind,
    BalanceSummary,
    DailySeries,
    Dashboard,
    LedgerSnapshot,
    MonthlyStatement,
    MonthlyTotals,
    Transaction,
    TransactionDraft,
    TransactionType,
    Transfer,
    TransferDraft,
    ValidationIssue,
    ValidationResult,
)
from uangku.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "Account",
    "AccountBalance",
    "AccountDraft",
    "AccountRole",
    "AccountType",
    "ActivityEntry",
    "ActivityKind",
    "BalanceSummary",
    "DailySeries",
    "Dashboard",
    "LedgerSnapshot",
    "MonthlyStatement",
    "MonthlyTotals",
    "Transaction",
    "TransactionDraft",
    "TransactionType",
    "Transfer",
    "TransferDraft",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
