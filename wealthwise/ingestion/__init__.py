"""Ingestion package: raw input to well-formed, resolved candidates."""

from wealthwise.ingestion.csv_parser import CsvParseResult, parse_csv
from wealthwise.ingestion.duplicates import DuplicateDetector
from wealthwise.ingestion.normalizer import (
    NormalizationError,
    normalize,
    parse_amount,
    parse_date,
    parse_type,
)
from wealthwise.ingestion.resolver import AccountResolver

__all__ = [
    "AccountResolver",
    "CsvParseResult",
    "DuplicateDetector",
    "NormalizationError",
    "normalize",
    "parse_amount",
    "parse_csv",
    "parse_date",
    "parse_type",
]
