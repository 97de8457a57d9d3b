"""
Field Normalizer

Turns one loosely-typed raw transaction (from the extraction service or a
CSV row) into a well-formed CandidateTransaction, or explains why it can't.

DESIGN DECISION: This is the only place raw input becomes a candidate.
Everything downstream (resolver, duplicate detector, staging, committer)
can trust the shape of what it gets.

Rules:
- Missing or unparsable date -> today (at normalization time)
- Amount must be a finite number > 0, kept as Decimal, never rounded
- Type is matched case-insensitively against EXPENSE / INCOME / INVESTMENT
- Blank description -> rejection
- Blank category / sub-category -> placeholder
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional, Union

from pydantic import ValidationError

from wealthwise.models.ledger import (
    CandidateTransaction,
    NormalizationRejection,
    TransactionType,
)


DEFAULT_CATEGORY = "Uncategorized"

# Day-first forms come before month-first ones; ambiguous dates read as DD-MM
DATE_FORMATS = (
    "%Y-%m-%d",
    "%d-%m-%Y",
    "%d/%m/%Y",
    "%Y/%m/%d",
)

# Accepted spellings for each field, first non-empty wins
FIELD_KEYS: dict[str, tuple[str, ...]] = {
    "date": ("date",),
    "description": ("description",),
    "amount": ("amount",),
    "type": ("type",),
    "category": ("category",),
    "sub_category": ("sub_category", "subCategory"),
    "account_hint": ("account_hint", "accountNameMatch", "account_name", "accountName"),
    "unit_details": ("unit_details", "unitDetails"),
    "remarks": ("remarks",),
}


class NormalizationError(ValueError):
    """A single field value could not be normalized."""

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"{field}: {reason}")


def preview(value: Any, limit: int = 40) -> str:
    """Short repr of a raw value for use in a rejection reason."""
    text = repr(value)
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


def _pick(raw: Mapping[str, Any], field: str) -> Any:
    for key in FIELD_KEYS[field]:
        value = raw.get(key)
        if value is not None and not (isinstance(value, str) and not value.strip()):
            return value
    return None


def parse_date(value: Any) -> Optional[date]:
    """Parse a calendar day, returning None when the value isn't recognisable."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def parse_amount(value: Any) -> Decimal:
    """
    Parse a strictly positive amount.

    Raises:
        NormalizationError: If the value isn't a finite number > 0
    """
    if value is None:
        raise NormalizationError("amount", "Amount is missing")
    if isinstance(value, bool):
        raise NormalizationError("amount", "Amount must be a number")

    try:
        if isinstance(value, Decimal):
            amount = value
        elif isinstance(value, (int, float)):
            amount = Decimal(str(value))
        elif isinstance(value, str):
            amount = Decimal(value.strip().replace(",", ""))
        else:
            raise NormalizationError("amount", "Amount must be a number")
    except InvalidOperation:
        raise NormalizationError("amount", f"Amount is not a number: {preview(value)}")

    if not amount.is_finite():
        raise NormalizationError("amount", "Amount must be finite")
    if amount <= 0:
        raise NormalizationError("amount", "Amount must be greater than zero")
    return amount


def parse_type(value: Any) -> TransactionType:
    """
    Match a transaction type tag, ignoring case.

    Raises:
        NormalizationError: If the value isn't one of the three tags
    """
    if isinstance(value, TransactionType):
        return value
    if isinstance(value, str):
        try:
            return TransactionType(value.strip().upper())
        except ValueError:
            pass
    raise NormalizationError("type", f"Unknown transaction type: {preview(value)}")


def parse_description(value: Any) -> str:
    """
    Raises:
        NormalizationError: If the description is blank
    """
    text = str(value).strip() if value is not None else ""
    if not text:
        raise NormalizationError("description", "Description is empty")
    return text


def parse_label(value: Any, default: str = DEFAULT_CATEGORY) -> str:
    """Category and sub-category: blank means the placeholder."""
    text = str(value).strip() if value is not None else ""
    return text or default


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize(
    raw: Union[Mapping[str, Any], CandidateTransaction],
    today: Optional[date] = None,
    default_category: str = DEFAULT_CATEGORY,
) -> Union[CandidateTransaction, NormalizationRejection]:
    """
    Normalize one raw transaction.

    Accepts a mapping with camelCase or snake_case keys, or an existing
    candidate (in which case its staging id, resolution and review flags
    are kept). Normalizing the result again yields the same candidate.

    Args:
        raw: The raw item
        today: Date used when the source has none (defaults to today)
        default_category: Placeholder for blank category fields

    Returns:
        A well-formed candidate, or a rejection naming the bad field
    """
    today = today or date.today()

    passthrough: dict[str, Any] = {}
    if isinstance(raw, CandidateTransaction):
        passthrough = raw.model_dump(
            include={
                "staging_id",
                "account_id",
                "resolution",
                "is_duplicate",
                "duplicate_warning",
                "warnings",
            }
        )
        raw = raw.model_dump()
    elif not isinstance(raw, Mapping):
        return NormalizationRejection(
            field="*",
            reason="Transaction must be an object",
            raw=raw,
        )

    try:
        amount = parse_amount(_pick(raw, "amount"))
        tx_type = parse_type(_pick(raw, "type"))
        description = parse_description(_pick(raw, "description"))
    except NormalizationError as e:
        return NormalizationRejection(field=e.field, reason=e.reason, raw=raw)

    try:
        return CandidateTransaction(
            **passthrough,
            date=parse_date(_pick(raw, "date")) or today,
            description=description,
            amount=amount,
            type=tx_type,
            category=parse_label(_pick(raw, "category"), default_category),
            sub_category=parse_label(_pick(raw, "sub_category"), default_category),
            account_hint=parse_label(_pick(raw, "account_hint"), ""),
            unit_details=_optional_text(_pick(raw, "unit_details")),
            remarks=_optional_text(_pick(raw, "remarks")),
        )
    except ValidationError as e:
        first = e.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or "*"
        return NormalizationRejection(field=field, reason=first["msg"], raw=raw)
