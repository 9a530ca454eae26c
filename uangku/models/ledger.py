"""
Core Ledger Models for Uangku

These models define the three flat record streams the app works with
(accounts, transactions, transfers) and the values derived from them.

DESIGN DECISION: Stored records are frozen Pydantic models.
A snapshot fetched from the backend is read-only for the whole view;
balances and statements are always derived from it, never written back.

DESIGN DECISION: Dates stay as ISO text (YYYY-MM-DD).
Month and day bucketing is defined as string-prefix matching on this text,
so the record keeps exactly what the backend delivered.
"""

from datetime import date, datetime, time, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Optional, Union
from uuid import UUID, uuid4

from pydantic import (
    BeforeValidator,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)


ZERO = Decimal("0")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _coerce_date_text(value):
    """Accept a date object and store its ISO text; keep strings verbatim."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return value


# ISO date text; date objects are converted, strings kept verbatim
DateText = Annotated[str, BeforeValidator(_coerce_date_text)]


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class AccountType(str, Enum):
    """
    Where the money lives.

    Display/categorization only. Has no effect on balance math.
    """
    BANK = "bank"
    EWALLET = "ewallet"
    CASH = "cash"


class AccountRole(str, Enum):
    """
    Spendable money vs money put aside.

    Only used to group balance totals on the overview.
    """
    SPEND = "spend"
    SAVINGS = "savings"


class TransactionType(str, Enum):
    """Direction of a single-account transaction."""
    INCOME = "income"
    EXPENSE = "expense"


class ActivityKind(str, Enum):
    """
    The three kinds of rows shown in the activity feed.

    A transfer shows up twice: once leaving the source account
    and once arriving at the destination.
    """
    TRANSACTION = "transaction"
    TRANSFER_OUT = "transfer_out"
    TRANSFER_IN = "transfer_in"


# =============================================================================
# STORED RECORDS
# =============================================================================

class Account(BaseModel):
    """
    A named money-holding entity.

    CRITICAL: opening_balance is set once at creation and is the immutable
    baseline for every balance computation. There is no stored balance.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique account ID"
    )
    user_id: UUID = Field(
        ...,
        description="Owner of the account"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Account name shown to the user"
    )
    type: AccountType = Field(
        default=AccountType.BANK,
        description="Bank, e-wallet or cash"
    )
    role: AccountRole = Field(
        default=AccountRole.SPEND,
        description="Spend or savings grouping"
    )
    opening_balance: Decimal = Field(
        default=ZERO,
        description="Starting balance (may be negative)"
    )
    created_at: datetime = Field(
        default_factory=_utcnow,
        description="When the account was created"
    )

    @field_validator('role', mode='before')
    @classmethod
    def default_missing_role(cls, v):
        """Rows written before roles existed have no role at all."""
        return AccountRole.SPEND if v in (None, "") else v

    @property
    def is_savings(self) -> bool:
        return self.role == AccountRole.SAVINGS


class Transaction(BaseModel):
    """
    A single-account income or expense event.

    amount is always non-negative; the sign comes from type.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique transaction ID"
    )
    user_id: UUID = Field(
        ...,
        description="Owner of the transaction"
    )
    date: DateText = Field(
        ...,
        description="Nominal date of the transaction (YYYY-MM-DD)"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount, always non-negative"
    )
    type: TransactionType = Field(
        ...,
        description="Income or expense"
    )
    account_id: UUID = Field(
        ...,
        description="Account this transaction belongs to"
    )
    category: str = Field(
        default="General",
        max_length=100,
        description="Free-text category label"
    )
    note: Optional[str] = Field(
        default=None,
        max_length=500
    )
    created_at: Optional[datetime] = Field(
        default_factory=_utcnow,
        description="Insertion timestamp, used for display order"
    )

    @property
    def signed_amount(self) -> Decimal:
        """Effect of this transaction on its account."""
        if self.type == TransactionType.INCOME:
            return self.amount
        return -self.amount


class Transfer(BaseModel):
    """
    Money moved between two accounts of the same user.

    DESIGN DECISION: The admin fee is borne by the sender only.
    The destination is credited the full amount; the source is
    debited amount + admin_fee. The fee leaves the system.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique transfer ID"
    )
    user_id: UUID = Field(
        ...,
        description="Owner of the transfer"
    )
    date: DateText = Field(
        ...,
        description="Nominal date of the transfer (YYYY-MM-DD)"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount credited to the destination"
    )
    admin_fee: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Fee debited from the source only"
    )
    from_account_id: UUID = Field(
        ...,
        description="Source account"
    )
    to_account_id: UUID = Field(
        ...,
        description="Destination account"
    )
    note: Optional[str] = Field(
        default=None,
        max_length=500
    )
    created_at: Optional[datetime] = Field(
        default_factory=_utcnow,
        description="Insertion timestamp, used for display order"
    )

    @property
    def fee(self) -> Decimal:
        """Admin fee, with a missing fee counted as zero."""
        return self.admin_fee if self.admin_fee is not None else ZERO

    @property
    def debit_amount(self) -> Decimal:
        """What the source account loses."""
        return self.amount + self.fee


# =============================================================================
# DERIVED VALUES
# =============================================================================

class MonthlyTotals(BaseModel):
    """Income, expense and net for one calendar month."""
    model_config = ConfigDict(frozen=True)

    income: Decimal = ZERO
    expense: Decimal = ZERO
    net: Decimal = ZERO


class DailySeries(BaseModel):
    """
    Per-day series for the statement chart.

    Keys are two-character day strings ("01".."31").
    Days without activity are absent, not zero-filled.
    Expense values are stored negated.
    """
    model_config = ConfigDict(frozen=True)

    income: dict[str, Decimal] = Field(default_factory=dict)
    expense: dict[str, Decimal] = Field(default_factory=dict)
    net: dict[str, Decimal] = Field(default_factory=dict)

    @property
    def days(self) -> list[str]:
        """All days with any activity, ascending."""
        return sorted(set(self.income) | set(self.expense) | set(self.net))

    @property
    def is_empty(self) -> bool:
        return not self.net


class AccountBalance(BaseModel):
    """An account paired with its computed balance."""
    model_config = ConfigDict(frozen=True)

    account: Account
    balance: Decimal


class BalanceSummary(BaseModel):
    """
    Overview totals across all accounts.

    spendable covers every account not marked as savings.
    """
    model_config = ConfigDict(frozen=True)

    balances: list[AccountBalance] = Field(default_factory=list)
    total: Decimal = ZERO
    spendable: Decimal = ZERO
    savings: Decimal = ZERO


class LedgerSnapshot(BaseModel):
    """
    Everything fetched for one user in one view.

    The computations only ever read from this.
    """
    model_config = ConfigDict(frozen=True)

    user_id: UUID
    accounts: list[Account] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    transfers: list[Transfer] = Field(default_factory=list)
    fetched_at: datetime = Field(default_factory=_utcnow)


class ActivityEntry(BaseModel):
    """
    One row of the activity feed.

    A tagged variant: kind tells which record type item holds.
    """
    model_config = ConfigDict(frozen=True)

    kind: ActivityKind
    item: Union[Transaction, Transfer]

    @property
    def date(self) -> str:
        return self.item.date

    @property
    def sort_key(self) -> datetime:
        """
        Insertion time as an aware UTC datetime, falling back to
        midnight UTC of the nominal date.

        Naive timestamps are read as UTC so mixed offsets compare
        by instant rather than by text.
        """
        created_at = self.item.created_at
        if created_at is not None:
            if created_at.tzinfo is None:
                return created_at.replace(tzinfo=timezone.utc)
            return created_at.astimezone(timezone.utc)
        try:
            return datetime.combine(
                date.fromisoformat(self.item.date), time.min, tzinfo=timezone.utc
            )
        except ValueError:
            return datetime.min.replace(tzinfo=timezone.utc)

    @property
    def account_id(self) -> UUID:
        """The account this row is shown against."""
        if self.kind == ActivityKind.TRANSACTION:
            return self.item.account_id
        if self.kind == ActivityKind.TRANSFER_OUT:
            return self.item.from_account_id
        return self.item.to_account_id

    @property
    def counterparty_id(self) -> Optional[UUID]:
        """The other side of a transfer leg, None for transactions."""
        if self.kind == ActivityKind.TRANSFER_OUT:
            return self.item.to_account_id
        if self.kind == ActivityKind.TRANSFER_IN:
            return self.item.from_account_id
        return None

    def touches(self, account_id: UUID) -> bool:
        """Whether this row belongs in the given account's feed."""
        if self.kind == ActivityKind.TRANSACTION:
            return self.item.account_id == account_id
        return account_id in (self.item.from_account_id, self.item.to_account_id)

    @property
    def signed_amount(self) -> Decimal:
        """Effect of this row on the account it is shown against."""
        if self.kind == ActivityKind.TRANSACTION:
            return self.item.signed_amount
        if self.kind == ActivityKind.TRANSFER_OUT:
            return -self.item.debit_amount
        return self.item.amount


# =============================================================================
# VIEW MODELS
# =============================================================================

class Dashboard(BaseModel):
    """Everything the overview screen shows for one month."""
    model_config = ConfigDict(frozen=True)

    month: str
    summary: BalanceSummary
    totals: MonthlyTotals


class MonthlyStatement(BaseModel):
    """
    A month's statement: totals plus the daily chart series.

    month_options lists the months the user can switch to, newest first.
    """
    model_config = ConfigDict(frozen=True)

    month: str
    month_options: list[str] = Field(default_factory=list)
    totals: MonthlyTotals
    daily: DailySeries


# =============================================================================
# ENTRY DRAFTS (unvalidated user input)
# =============================================================================

class AccountDraft(BaseModel):
    """Account form input before validation."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = None
    type: AccountType = AccountType.BANK
    role: AccountRole = AccountRole.SPEND
    opening_balance: Decimal = ZERO


class TransactionDraft(BaseModel):
    """
    Transaction form input before validation.

    Everything is optional and amounts may be negative here;
    EntryValidator decides what is acceptable.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    date: Optional[DateText] = None
    amount: Optional[Decimal] = None
    type: Optional[TransactionType] = None
    account_id: Optional[UUID] = None
    category: Optional[str] = None
    note: Optional[str] = None


class TransferDraft(BaseModel):
    """Transfer form input before validation."""
    model_config = ConfigDict(str_strip_whitespace=True)

    date: Optional[DateText] = None
    amount: Optional[Decimal] = None
    admin_fee: Optional[Decimal] = None
    from_account_id: Optional[UUID] = None
    to_account_id: Optional[UUID] = None
    note: Optional[str] = None


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'suspicious_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """
    Result of validating one entry form.

    Warnings never block saving; errors always do.
    """

    entry_kind: str = Field(
        ...,
        pattern="^(account|transaction|transfer)$",
        description="Which form was validated"
    )
    validated_at: datetime = Field(
        default_factory=_utcnow
    )
    is_valid: bool = Field(
        ...,
        description="Overall validation result"
    )
    issues: list[ValidationIssue] = Field(
        default_factory=list,
        description="All validation issues found"
    )
    warnings: list[str] = Field(
        default_factory=list,
        description="Non-blocking warnings"
    )

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")
