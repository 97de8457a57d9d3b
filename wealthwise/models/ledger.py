"""
Core Data Models for WealthWise

These models define the strict schemas for all data flowing through the
ingestion and reconciliation pipeline. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage, backup and logging
4. Keep provisional and committed data visibly apart

DESIGN DECISION: Candidates and ledger transactions are separate models with
separate id spaces. A staging id lives only as long as the staging batch and
is never written to storage; a ledger id is assigned once, at commit.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

# Alias so fields named "date" never shadow the type in annotations
CalendarDate = date


def new_ledger_id() -> str:
    """Durable identifier for accounts and committed transactions."""
    return uuid4().hex


def new_staging_id() -> str:
    """Ephemeral identifier for a candidate while it sits in a staging batch."""
    return f"stg_{uuid4().hex[:12]}"


def _coerce_calendar_day(value: Any) -> Any:
    """Accept full ISO datetimes (as written by older backups) for date fields."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and "T" in value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00")).date()
        except ValueError:
            return value
    return value


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """
    Direction of a transaction.

    The sign of a balance change is implied by the type.
    Amounts are always stored positive.
    """
    EXPENSE = "EXPENSE"
    INCOME = "INCOME"
    INVESTMENT = "INVESTMENT"

    def signed(self, amount: Decimal) -> Decimal:
        """Balance delta for the owning account."""
        return amount if self is TransactionType.INCOME else -amount


class AccountType(str, Enum):
    """Kind of account held in the directory."""
    SAVINGS = "savings"
    CREDIT = "credit"
    WALLET = "wallet"
    INVESTMENT = "investment"
    OTHER = "other"


class ResolutionConfidence(str, Enum):
    """How a candidate got its account."""
    MATCHED = "matched"        # Name containment match
    DEFAULTED = "defaulted"    # No match, fell back to the first account
    UNRESOLVED = "unresolved"  # Directory was empty
    MANUAL = "manual"          # User picked the account while staged


class ExtractionStatus(str, Enum):
    """Which step of the two-step extraction produced the result."""
    SUCCESS = "success"
    FALLBACK_SUCCESS = "fallback_success"
    FAILURE = "failure"


# =============================================================================
# LEDGER MODELS
# =============================================================================

class Account(BaseModel):
    """
    An account in the directory.

    CRITICAL: balance is only ever changed by the reconciliation committer.
    Invariant: balance == opening_balance + sum of applied transaction deltas.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=new_ledger_id,
        min_length=1,
        description="Stable unique account id"
    )
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name, e.g. 'HDFC Savings'"
    )
    account_type: AccountType = Field(
        default=AccountType.OTHER,
        validation_alias=AliasChoices("account_type", "type"),
    )
    balance: Decimal = Field(
        default=Decimal("0"),
        description="Current signed balance"
    )
    opening_balance: Decimal = Field(
        default=Decimal("0"),
        validation_alias=AliasChoices("opening_balance", "openingBalance"),
        description="Declared balance at creation"
    )

    # Descriptive details, never used by the pipeline
    account_holder: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("account_holder", "accountHolder"),
    )
    branch: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=1000)

    @field_validator('account_type', mode='before')
    @classmethod
    def fold_account_type(cls, v: Any) -> Any:
        """Older data stores the type upper-cased ('SAVINGS'); unknown kinds become 'other'."""
        if isinstance(v, str):
            folded = v.strip().lower()
            if folded not in {t.value for t in AccountType}:
                return AccountType.OTHER
            return folded
        return v


class LedgerTransaction(BaseModel):
    """
    A committed transaction.

    Only the reconciliation committer creates, edits or deletes these,
    and it restates the affected balances every time it does.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(
        default_factory=new_ledger_id,
        min_length=1,
        description="Ledger id, assigned at commit time"
    )
    date: CalendarDate
    description: str = Field(..., min_length=1)
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Always positive; direction comes from type"
    )
    type: TransactionType
    category: str = Field(default="Uncategorized", min_length=1)
    sub_category: str = Field(
        default="Uncategorized",
        min_length=1,
        validation_alias=AliasChoices("sub_category", "subCategory"),
    )
    account_id: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("account_id", "accountId"),
    )
    unit_details: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("unit_details", "unitDetails", "unitPrice"),
    )
    remarks: Optional[str] = None

    # Internal transfers only: the account credited with the amount
    transfer_account_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("transfer_account_id", "transferAccountId"),
    )

    @field_validator('date', mode='before')
    @classmethod
    def coerce_date(cls, v: Any) -> Any:
        return _coerce_calendar_day(v)

    @model_validator(mode='after')
    def validate_transfer_leg(self) -> 'LedgerTransaction':
        if self.transfer_account_id and self.transfer_account_id == self.account_id:
            raise ValueError("A transfer cannot credit the account it debits")
        return self

    @property
    def is_transfer(self) -> bool:
        return self.transfer_account_id is not None

    def balance_deltas(self) -> dict[str, Decimal]:
        """Balance change per account caused by applying this transaction."""
        deltas = {self.account_id: self.type.signed(self.amount)}
        if self.transfer_account_id:
            deltas[self.transfer_account_id] = (
                deltas.get(self.transfer_account_id, Decimal("0")) + self.amount
            )
        return deltas


# =============================================================================
# INGESTION MODELS
# =============================================================================

class CandidateTransaction(BaseModel):
    """
    A provisional transaction guess awaiting user review.

    CRITICAL: This is PROPOSED data. It becomes a LedgerTransaction only
    through the reconciliation committer, after the user confirms.

    Instances are only built by the field normalizer (or by a staging edit,
    which goes through the normalizer too), so a candidate in a batch is
    always well-formed.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    staging_id: str = Field(
        default_factory=new_staging_id,
        description="Batch-local id used for editing and removal"
    )

    date: Optional[CalendarDate] = None
    description: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0)
    type: TransactionType
    category: str = Field(default="Uncategorized", min_length=1)
    sub_category: str = Field(default="Uncategorized", min_length=1)

    # Account: the free-text hint from the source, then the resolved id
    account_hint: str = Field(
        default="",
        description="Account name as written in the source"
    )
    account_id: Optional[str] = None
    resolution: ResolutionConfidence = ResolutionConfidence.UNRESOLVED

    unit_details: Optional[str] = None
    remarks: Optional[str] = None

    # Review aids
    is_duplicate: bool = False
    duplicate_warning: Optional[str] = None
    warnings: list[str] = Field(
        default_factory=list,
        description="Human-readable notes shown next to the row"
    )


class NormalizationRejection(BaseModel):
    """A raw candidate that could not be normalized, and why."""

    field: str = Field(..., description="Field that failed")
    reason: str = Field(..., description="Human-readable reason")
    raw: Any = Field(default=None, description="The input as received")


class AccountResolution(BaseModel):
    """Result of matching an account hint against the directory."""

    account_id: Optional[str] = None
    account_name: Optional[str] = None
    confidence: ResolutionConfidence


class DuplicateCheck(BaseModel):
    """Result of comparing a candidate with the existing ledger."""

    is_duplicate: bool = False
    warning: Optional[str] = None
    matched_transaction_id: Optional[str] = None


class ExtractionOutcome(BaseModel):
    """
    Tagged result of the two-step extraction.

    A FAILURE carries zero candidates, never zero-amount placeholders.
    """

    status: ExtractionStatus
    candidates: list[CandidateTransaction] = Field(default_factory=list)
    rejections: list[NormalizationRejection] = Field(default_factory=list)
    attempts: int = Field(default=0, ge=0, le=2)
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status != ExtractionStatus.FAILURE


class CommitResult(BaseModel):
    """What a successful commit produced."""

    transactions: list[LedgerTransaction] = Field(default_factory=list)
    balances: dict[str, Decimal] = Field(
        default_factory=dict,
        description="New balance of every account the commit touched"
    )
    committed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# =============================================================================
# SNAPSHOT / BACKUP MODELS
# =============================================================================

DEFAULT_CATEGORIES: dict[str, list[str]] = {
    "Produce": ["Fruits", "Vegetables"],
    "Utilities": ["Electricity", "Water", "Internet"],
    "Housing": ["Rent", "Maintenance"],
    "Transport": ["Fuel", "Cabs"],
    "Income": ["Salary", "Freelance"],
}


class LedgerPreferences(BaseModel):
    """User preferences that travel with a backup."""
    model_config = ConfigDict(extra="ignore")

    currency: str = "INR"
    theme: str = Field(default="dark", pattern="^(light|dark)$")
    skip_delete_confirmation: bool = Field(
        default=False,
        validation_alias=AliasChoices("skip_delete_confirmation", "skipDeleteConfirmation"),
    )


class LedgerSnapshot(BaseModel):
    """
    The whole ledger as one document.

    Used for persistence and for backup/restore. Validation here is the
    all-or-nothing gate: a snapshot that references a missing account
    can't be constructed, so it can't be adopted.
    """
    model_config = ConfigDict(extra="ignore")

    version: int = 1
    accounts: list[Account]
    transactions: list[LedgerTransaction]
    categories: dict[str, list[str]] = Field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_CATEGORIES.items()}
    )
    preferences: LedgerPreferences = Field(
        default_factory=LedgerPreferences,
        validation_alias=AliasChoices("preferences", "settings"),
    )

    @model_validator(mode='after')
    def validate_references(self) -> 'LedgerSnapshot':
        account_ids = [a.id for a in self.accounts]
        if len(set(account_ids)) != len(account_ids):
            raise ValueError("Account ids must be unique")

        tx_ids = [t.id for t in self.transactions]
        if len(set(tx_ids)) != len(tx_ids):
            raise ValueError("Transaction ids must be unique")

        known = set(account_ids)
        for tx in self.transactions:
            for account_id in tx.balance_deltas():
                if account_id not in known:
                    raise ValueError(
                        f"Transaction {tx.id} references unknown account {account_id}"
                    )
        return self
