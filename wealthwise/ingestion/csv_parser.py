"""
CSV Candidate Parser

Reads a bulk-import CSV into candidates, one per row.

Layout (first line is a header and is ignored):
    date,description,amount,type,accountName
    date,description,amount,type,category,accountName   (6+ fields)

Rows with fewer than 5 fields are skipped and counted. The type column
must be exactly EXPENSE, INCOME or INVESTMENT; unlike the extraction path,
lower-case values are rejected. Every row is given the "Imported"
sub-category.
"""

import csv
import io
from datetime import date
from typing import Optional

from pydantic import BaseModel, Field

from wealthwise.ingestion.normalizer import DEFAULT_CATEGORY, normalize
from wealthwise.models.ledger import (
    CandidateTransaction,
    NormalizationRejection,
    TransactionType,
)


MIN_FIELDS = 5
IMPORTED_SUB_CATEGORY = "Imported"


class CsvParseResult(BaseModel):
    """Candidates parsed from a CSV document."""

    candidates: list[CandidateTransaction] = Field(default_factory=list)
    rejections: list[NormalizationRejection] = Field(default_factory=list)
    skipped_rows: int = Field(
        default=0,
        ge=0,
        description="Rows with too few fields"
    )


def _row_to_raw(fields: list[str]) -> dict:
    fields = [f.strip() for f in fields]
    raw = {
        "date": fields[0],
        "description": fields[1],
        "amount": fields[2],
        "type": fields[3],
    }
    if len(fields) >= 6:
        raw["category"] = fields[4]
        raw["accountName"] = fields[5]
    else:
        raw["accountName"] = fields[4]
    return raw


def parse_csv(
    text: str,
    today: Optional[date] = None,
    default_category: str = DEFAULT_CATEGORY,
    sub_category: str = IMPORTED_SUB_CATEGORY,
) -> CsvParseResult:
    """
    Parse CSV text into candidates.

    Args:
        text: Whole CSV document, header row included
        today: Date used for rows with a missing or unparsable date
        default_category: Category for 5-field rows and blank categories
        sub_category: Sub-category stamped on every row

    Returns:
        Candidates in row order, plus per-row rejections and a skip count
    """
    result = CsvParseResult()
    valid_types = {t.value for t in TransactionType}

    reader = csv.reader(io.StringIO(text))
    next(reader, None)  # header

    for fields in reader:
        if not any(f.strip() for f in fields):
            continue
        if len(fields) < MIN_FIELDS:
            result.skipped_rows += 1
            continue

        raw = _row_to_raw(fields)
        if raw["type"] not in valid_types:
            result.rejections.append(NormalizationRejection(
                field="type",
                reason=f"Type must be one of {', '.join(sorted(valid_types))}",
                raw=raw,
            ))
            continue

        raw["subCategory"] = sub_category
        normalized = normalize(raw, today=today, default_category=default_category)
        if isinstance(normalized, NormalizationRejection):
            result.rejections.append(normalized)
        else:
            result.candidates.append(normalized)

    return result
