"""
Audit Models for WealthWise

Every significant action in the pipeline is logged for audit purposes.
This provides:
1. Complete traceability from raw input to balance change
2. Debugging information when extraction or a commit goes wrong
3. Ability to reconstruct how a balance got to where it is

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step in the ingestion pipeline has its own event type.
    """
    # Extraction
    EXTRACTION_COMPLETED = "extraction_completed"
    EXTRACTION_FALLBACK_USED = "extraction_fallback_used"
    EXTRACTION_FAILED = "extraction_failed"
    EXTRACTION_DISCARDED = "extraction_discarded"
    CSV_IMPORTED = "csv_imported"
    CANDIDATE_REJECTED = "candidate_rejected"

    # Staging
    CANDIDATES_STAGED = "candidates_staged"
    CANDIDATE_EDITED = "candidate_edited"
    CANDIDATE_REMOVED = "candidate_removed"
    BATCH_DISCARDED = "batch_discarded"

    # Reconciliation
    BATCH_COMMITTED = "batch_committed"
    COMMIT_REJECTED = "commit_rejected"
    TRANSFER_COMPLETED = "transfer_completed"
    TRANSACTION_EDITED = "transaction_edited"
    TRANSACTION_DELETED = "transaction_deleted"

    # Account directory
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_UPDATED = "account_updated"
    ACCOUNT_DELETED = "account_deleted"

    # Backup
    BACKUP_EXPORTED = "backup_exported"
    RESTORE_COMPLETED = "restore_completed"
    RESTORE_FAILED = "restore_failed"

    # System events
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'batch', 'transaction', 'account')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Ledger or staging id of the entity"
    )

    # Correlation - one ingestion session shares one id
    correlation_id: Optional[UUID] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.extraction_failed(2, "bad json", correlation_id)
        event = AuditEventBuilder.batch_committed(["a1"], {"acc": "10"}, correlation_id)
    """

    @staticmethod
    def extraction_completed(
        status: str,
        candidate_count: int,
        rejected_count: int,
        attempts: int,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        fallback = status == "fallback_success"
        return AuditEvent(
            event_type=(
                AuditEventType.EXTRACTION_FALLBACK_USED
                if fallback
                else AuditEventType.EXTRACTION_COMPLETED
            ),
            severity=AuditSeverity.WARNING if fallback else AuditSeverity.INFO,
            entity_type="extraction",
            correlation_id=correlation_id,
            description=(
                f"Extraction produced {candidate_count} candidates "
                f"after {attempts} attempt(s)"
            ),
            details={
                "status": status,
                "candidate_count": candidate_count,
                "rejected_count": rejected_count,
                "attempts": attempts,
            },
        )

    @staticmethod
    def extraction_failed(
        attempts: int,
        error_message: Optional[str],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="extraction",
            correlation_id=correlation_id,
            description=f"Extraction failed after {attempts} attempt(s)",
            error_message=error_message,
            details={"attempts": attempts},
        )

    @staticmethod
    def extraction_discarded(
        candidate_count: int,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_DISCARDED,
            entity_type="extraction",
            correlation_id=correlation_id,
            description="Late extraction response discarded",
            details={"candidate_count": candidate_count},
        )

    @staticmethod
    def csv_imported(
        row_count: int,
        skipped_rows: int,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CSV_IMPORTED,
            entity_type="csv",
            correlation_id=correlation_id,
            description=f"CSV parsed: {row_count} rows, {skipped_rows} skipped",
            details={"row_count": row_count, "skipped_rows": skipped_rows},
            is_user_action=True,
        )

    @staticmethod
    def candidate_rejected(
        field: str,
        reason: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CANDIDATE_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="candidate",
            correlation_id=correlation_id,
            description=f"Candidate dropped: invalid {field}",
            details={"field": field, "reason": reason},
        )

    @staticmethod
    def candidates_staged(
        staging_ids: list[str],
        duplicate_count: int,
        defaulted_count: int,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CANDIDATES_STAGED,
            entity_type="batch",
            correlation_id=correlation_id,
            description=f"{len(staging_ids)} candidates staged for review",
            details={
                "staging_ids": staging_ids,
                "duplicate_count": duplicate_count,
                "defaulted_account_count": defaulted_count,
            },
        )

    @staticmethod
    def candidate_edited(
        staging_id: str,
        field: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CANDIDATE_EDITED,
            entity_type="candidate",
            entity_id=staging_id,
            correlation_id=correlation_id,
            description=f"User edited '{field}' of a staged candidate",
            details={"field": field},
            is_user_action=True,
        )

    @staticmethod
    def candidate_removed(
        staging_id: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CANDIDATE_REMOVED,
            entity_type="candidate",
            entity_id=staging_id,
            correlation_id=correlation_id,
            description="User removed a staged candidate",
            is_user_action=True,
        )

    @staticmethod
    def batch_discarded(
        candidate_count: int,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BATCH_DISCARDED,
            entity_type="batch",
            correlation_id=correlation_id,
            description=f"Staging batch discarded with {candidate_count} candidates",
            details={"candidate_count": candidate_count},
            is_user_action=True,
        )

    @staticmethod
    def batch_committed(
        transaction_ids: list[str],
        balances: dict[str, str],
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BATCH_COMMITTED,
            entity_type="batch",
            correlation_id=correlation_id,
            description=f"Committed {len(transaction_ids)} transactions",
            details={
                "transaction_ids": transaction_ids,
                "balances": balances,
            },
            is_user_action=True,
        )

    @staticmethod
    def commit_rejected(
        staging_id: Optional[str],
        reason: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMIT_REJECTED,
            severity=AuditSeverity.WARNING,
            entity_type="candidate",
            entity_id=staging_id,
            correlation_id=correlation_id,
            description="Commit rejected, no balances changed",
            error_message=reason,
        )

    @staticmethod
    def transfer_completed(
        transaction_id: str,
        from_account_id: str,
        to_account_id: str,
        amount: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSFER_COMPLETED,
            entity_type="transaction",
            entity_id=transaction_id,
            description=f"Transferred {amount} between accounts",
            details={
                "from_account_id": from_account_id,
                "to_account_id": to_account_id,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_changed(
        transaction_id: str,
        deleted: bool,
        deltas: dict[str, str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.TRANSACTION_DELETED
                if deleted
                else AuditEventType.TRANSACTION_EDITED
            ),
            entity_type="transaction",
            entity_id=transaction_id,
            description=(
                "Transaction deleted and balance restored"
                if deleted
                else "Transaction edited and balance restated"
            ),
            details={"balance_deltas": deltas},
            is_user_action=True,
        )

    @staticmethod
    def account_changed(
        event_type: AuditEventType,
        account_id: str,
        name: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=event_type,
            entity_type="account",
            entity_id=account_id,
            description=f"Account {event_type.value.split('_')[1]}: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def backup_exported(
        account_count: int,
        transaction_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_EXPORTED,
            entity_type="backup",
            description="Backup exported",
            details={
                "account_count": account_count,
                "transaction_count": transaction_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def restore_finished(
        succeeded: bool,
        account_count: int = 0,
        transaction_count: int = 0,
        error_message: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.RESTORE_COMPLETED
                if succeeded
                else AuditEventType.RESTORE_FAILED
            ),
            severity=AuditSeverity.INFO if succeeded else AuditSeverity.WARNING,
            entity_type="backup",
            description=(
                "Backup restored" if succeeded else "Backup rejected, state unchanged"
            ),
            details={
                "account_count": account_count,
                "transaction_count": transaction_count,
            },
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
