"""
Abstract Storage Interface

DESIGN DECISION: The ledger is persisted through a load/save pair.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep the committer decoupled from where the ledger lives

The whole ledger is small (a handful of accounts, a few thousand rows),
so the unit of persistence is the full snapshot. A save either lands
completely or raises, which is what lets the committer stay all-or-nothing.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from wealthwise.models.audit import AuditEvent
from wealthwise.models.ledger import LedgerSnapshot


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger persistence.

    Any storage implementation (Google Sheets, SQLite, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def load(self) -> LedgerSnapshot:
        """
        Load the persisted ledger.

        Returns:
            The stored snapshot, or an empty one if nothing was saved yet

        Raises:
            StorageError: If the backend can't be read
        """
        pass

    @abstractmethod
    async def save(self, snapshot: LedgerSnapshot) -> None:
        """
        Persist the full ledger, replacing what was stored.

        Raises:
            StorageError: If the save fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (one ingestion session).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass
