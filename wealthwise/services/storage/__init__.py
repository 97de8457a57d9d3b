"""
Storage Services Package

Provides abstract interfaces and concrete implementations for ledger storage.
Google Sheets is the durable backend; the in-memory backend is used when
Sheets isn't configured and in tests.
"""

from wealthwise.services.storage.interface import (
    AuditStorageInterface,
    ConnectionError,
    LedgerStorageInterface,
    StorageError,
)
from wealthwise.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)
from wealthwise.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "LedgerStorageInterface",
    # Exceptions
    "ConnectionError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
]
