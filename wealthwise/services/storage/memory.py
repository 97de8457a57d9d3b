"""
In-Memory Storage

Used when Google Sheets isn't configured and throughout the tests.
Snapshots are deep-copied on the way in and out so callers can never
mutate what is "on disk" by holding a reference.
"""

from typing import Optional
from uuid import UUID

from wealthwise.models.audit import AuditEvent
from wealthwise.models.ledger import LedgerSnapshot
from wealthwise.services.storage.interface import (
    AuditStorageInterface,
    LedgerStorageInterface,
)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Keeps the last saved snapshot in process memory."""

    def __init__(self, initial: Optional[LedgerSnapshot] = None):
        self._snapshot = initial.model_copy(deep=True) if initial else None

    async def load(self) -> LedgerSnapshot:
        if self._snapshot is None:
            return LedgerSnapshot(accounts=[], transactions=[])
        return self._snapshot.model_copy(deep=True)

    async def save(self, snapshot: LedgerSnapshot) -> None:
        self._snapshot = snapshot.model_copy(deep=True)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self.events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self.events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
