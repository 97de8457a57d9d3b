"""
Audit Logger

DESIGN DECISION: Every balance-affecting action in the system is logged.
This provides:
1. A trail from raw input to committed transaction
2. Debugging capability when extraction misbehaves
3. A way to explain any balance after the fact

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (a commit that already landed must not
  look failed because the audit sheet was unreachable)
- Supports correlation IDs to trace one ingestion session end to end
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from wealthwise.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from wealthwise.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger()

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_commit_rejected(
        self,
        staging_id: Optional[str],
        reason: str,
        correlation_id: Optional[UUID],
    ) -> None:
        """Log a commit that was refused before touching any balance."""
        await self.log(AuditEventBuilder.commit_rejected(
            staging_id=staging_id,
            reason=reason,
            correlation_id=correlation_id,
        ))

    async def log_account_changed(
        self,
        event_type: AuditEventType,
        account_id: str,
        name: str,
    ) -> None:
        """Log an account create, update or delete."""
        await self.log(AuditEventBuilder.account_changed(
            event_type=event_type,
            account_id=account_id,
            name=name,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID],
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of an ingestion session.
    Pass it through all subsequent operations.
    """
    return uuid4()
