"""
Entry Form Validation

DESIGN DECISION: The ledger computations never validate their input.
Everything that should be rejected is stopped here, before it reaches
storage:

- amounts must be positive numbers
- dates must be ISO YYYY-MM-DD text (bucketing is string-prefix based,
  so a malformed date would silently land in the wrong month)
- transfers need two different accounts
- accounts must belong to the user

Validation NEVER silently fixes issues. Errors block saving;
warnings are shown for the user to confirm.
"""

import re
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional
from uuid import UUID

from uangku.config import AppSettings, get_settings
from uangku.models.ledger import (
    ZERO,
    Account,
    AccountDraft,
    TransactionDraft,
    TransferDraft,
    ValidationIssue,
    ValidationResult,
)


ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

# Text limits of the stored records
NAME_MAX_LENGTH = 100
CATEGORY_MAX_LENGTH = 100
NOTE_MAX_LENGTH = 500


class EntryValidator:
    """
    Validates account, transaction and transfer drafts.

    The accounts passed in are the user's own accounts; any referenced
    account outside that list is rejected.
    """

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        today: Optional[date] = None,
    ):
        """
        Initialize validator.

        Args:
            settings: Thresholds; defaults to the application settings.
            today: Fixed "today" for future-date checks (tests).
        """
        self._settings = settings or get_settings().app
        self._today = today

    # -------------------------------------------------------------------------
    # Field checks
    # -------------------------------------------------------------------------

    def _check_date(self, value: Optional[str]) -> list[ValidationIssue]:
        if not value:
            return [ValidationIssue(
                field="date",
                issue_type="missing",
                message="Date is required",
                severity="error",
            )]

        parsed = None
        if ISO_DATE.match(value):
            try:
                parsed = date.fromisoformat(value)
            except ValueError:
                parsed = None
        if parsed is None:
            return [ValidationIssue(
                field="date",
                issue_type="invalid_format",
                message=f"Date '{value}' is not a valid YYYY-MM-DD date",
                severity="error",
                suggested_fix="Pick the date from the calendar",
            )]

        today = self._today or date.today()
        max_future = today + timedelta(days=self._settings.future_date_tolerance_days)
        if parsed > max_future:
            return [ValidationIssue(
                field="date",
                issue_type="future_date",
                message=f"Date ({value}) is in the future",
                severity="warning",
                suggested_fix="Please verify the date is correct",
            )]
        return []

    def _check_amount(
        self,
        value: Optional[Decimal],
        field: str = "amount",
    ) -> list[ValidationIssue]:
        if value is None:
            return [ValidationIssue(
                field=field,
                issue_type="missing",
                message="Amount is required",
                severity="error",
            )]
        if value <= ZERO:
            return [ValidationIssue(
                field=field,
                issue_type="invalid_value",
                message="Amount must be a positive number",
                severity="error",
            )]
        if value > self._settings.max_entry_amount:
            return [ValidationIssue(
                field=field,
                issue_type="suspicious_value",
                message=f"Amount ({value:,}) seems unusually high",
                severity="warning",
                suggested_fix="Please verify this amount is correct",
            )]
        return []

    @staticmethod
    def _check_account(
        account_id: Optional[UUID],
        known_ids: Optional[set[UUID]],
        field: str,
    ) -> list[ValidationIssue]:
        if account_id is None:
            return [ValidationIssue(
                field=field,
                issue_type="missing",
                message="Choose an account",
                severity="error",
            )]
        if known_ids is not None and account_id not in known_ids:
            return [ValidationIssue(
                field=field,
                issue_type="unknown_account",
                message="Selected account does not exist",
                severity="error",
                suggested_fix="Refresh and choose one of your accounts",
            )]
        return []

    @staticmethod
    def _check_length(
        value: Optional[str],
        field: str,
        max_length: int,
    ) -> list[ValidationIssue]:
        if value and len(value) > max_length:
            return [ValidationIssue(
                field=field,
                issue_type="too_long",
                message=f"{field.capitalize()} is too long ({len(value)} of {max_length} characters)",
                severity="error",
                suggested_fix=f"Shorten it to {max_length} characters or fewer",
            )]
        return []

    @staticmethod
    def _known_ids(accounts: Optional[Iterable[Account]]) -> Optional[set[UUID]]:
        return None if accounts is None else {a.id for a in accounts}

    @staticmethod
    def _result(entry_kind: str, issues: list[ValidationIssue]) -> ValidationResult:
        return ValidationResult(
            entry_kind=entry_kind,
            is_valid=not any(issue.severity == "error" for issue in issues),
            issues=issues,
            warnings=[issue.message for issue in issues if issue.severity == "warning"],
        )

    # -------------------------------------------------------------------------
    # Entry checks
    # -------------------------------------------------------------------------

    def validate_account(self, draft: AccountDraft) -> ValidationResult:
        """An account needs a name; any opening balance is accepted."""
        issues = []
        if not draft.name:
            issues.append(ValidationIssue(
                field="name",
                issue_type="missing",
                message="Account name is required.",
                severity="error",
            ))
        issues.extend(self._check_length(draft.name, "name", NAME_MAX_LENGTH))
        return self._result("account", issues)

    def validate_transaction(
        self,
        draft: TransactionDraft,
        accounts: Optional[Iterable[Account]] = None,
    ) -> ValidationResult:
        """
        Validate an income/expense entry.

        Args:
            draft: The form input
            accounts: The user's accounts; None skips the ownership check
        """
        issues = []
        issues.extend(self._check_amount(draft.amount))
        issues.extend(self._check_date(draft.date))
        issues.extend(self._check_account(
            draft.account_id, self._known_ids(accounts), "account_id"
        ))

        if draft.type is None:
            issues.append(ValidationIssue(
                field="type",
                issue_type="missing",
                message="Choose income or expense",
                severity="error",
            ))

        if not draft.category:
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="No category chosen",
                severity="warning",
                suggested_fix=f"'{self._settings.default_category}' will be used",
            ))
        issues.extend(self._check_length(draft.category, "category", CATEGORY_MAX_LENGTH))
        issues.extend(self._check_length(draft.note, "note", NOTE_MAX_LENGTH))

        return self._result("transaction", issues)

    def validate_transfer(
        self,
        draft: TransferDraft,
        accounts: Optional[Iterable[Account]] = None,
    ) -> ValidationResult:
        """
        Validate a transfer between two of the user's accounts.

        The admin fee is optional but cannot be negative.
        """
        known_ids = self._known_ids(accounts)
        issues = []
        issues.extend(self._check_amount(draft.amount))
        issues.extend(self._check_date(draft.date))

        if draft.admin_fee is not None and draft.admin_fee < ZERO:
            issues.append(ValidationIssue(
                field="admin_fee",
                issue_type="invalid_value",
                message="Admin fee cannot be negative",
                severity="error",
            ))

        issues.extend(self._check_account(draft.from_account_id, known_ids, "from_account_id"))
        issues.extend(self._check_account(draft.to_account_id, known_ids, "to_account_id"))

        if (
            draft.from_account_id is not None
            and draft.from_account_id == draft.to_account_id
        ):
            issues.append(ValidationIssue(
                field="to_account_id",
                issue_type="same_account",
                message="Choose two different accounts",
                severity="error",
            ))
        issues.extend(self._check_length(draft.note, "note", NOTE_MAX_LENGTH))

        return self._result("transfer", issues)

    @staticmethod
    def can_delete_account(balance: Decimal) -> bool:
        """
        An account may only be deleted while its computed balance is zero.

        This is an application-level guard, not a storage constraint.
        """
        return balance == ZERO

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what we show under the entry form.
        """
        if result.is_valid and not result.warnings:
            return "✅ Ready to save."

        lines = []

        if result.has_errors:
            lines.append("❌ Please fix the following:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
