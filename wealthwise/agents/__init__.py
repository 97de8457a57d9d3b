"""AI agents package."""

from wealthwise.agents.extraction_agent import (
    RESPONSE_SCHEMA,
    TransactionExtractionAgent,
    build_prompt,
    parse_lenient,
    parse_strict,
)

__all__ = [
    "RESPONSE_SCHEMA",
    "TransactionExtractionAgent",
    "build_prompt",
    "parse_lenient",
    "parse_strict",
]
