"""
Data Models Package

This package contains all Pydantic models used in the WealthWise pipeline.
All data flowing through the system must conform to these schemas.
"""

from wealthwise.models.ledger import (
    DEFAULT_CATEGORIES,
    Account,
    AccountResolution,
    AccountType,
    CandidateTransaction,
    CommitResult,
    DuplicateCheck,
    ExtractionOutcome,
    ExtractionStatus,
    LedgerPreferences,
    LedgerSnapshot,
    LedgerTransaction,
    NormalizationRejection,
    ResolutionConfidence,
    TransactionType,
    new_ledger_id,
    new_staging_id,
)
from wealthwise.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "DEFAULT_CATEGORIES",
    "Account",
    "AccountResolution",
    "AccountType",
    "CandidateTransaction",
    "CommitResult",
    "DuplicateCheck",
    "ExtractionOutcome",
    "ExtractionStatus",
    "LedgerPreferences",
    "LedgerSnapshot",
    "LedgerTransaction",
    "NormalizationRejection",
    "ResolutionConfidence",
    "TransactionType",
    "new_ledger_id",
    "new_staging_id",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
