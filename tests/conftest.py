"""
Shared fixtures.

No real API calls in tests: the Gemini model is replaced by StubModel
and the ledger lives in InMemoryLedgerStorage.
"""

import asyncio
import json
from datetime import date
from decimal import Decimal
from typing import Any, Optional

import pytest

from wealthwise.audit import AuditLogger
from wealthwise.config import LedgerSettings
from wealthwise.ledger import LedgerStore, ReconciliationCommitter
from wealthwise.models.ledger import (
    Account,
    AccountType,
    CandidateTransaction,
    LedgerSnapshot,
    ResolutionConfidence,
    TransactionType,
)
from wealthwise.services.storage import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    StorageError,
)
from wealthwise.staging import StagingBatch


TODAY = date(2024, 1, 10)
HDFC_ID = "acc_hdfc"
CASH_ID = "acc_cash"


# =============================================================================
# Stubs
# =============================================================================

class StubResponse:
    """Mimics a Gemini response; .text raises when given an exception."""

    def __init__(self, text: Any):
        self._text = text

    @property
    def text(self) -> Optional[str]:
        if isinstance(self._text, Exception):
            raise self._text
        return self._text


class StubModel:
    """
    Replays canned responses in order.

    Each entry is a string (or None) for the response text, an exception
    to raise from the call itself, or a StubResponse.
    """

    def __init__(self, *responses: Any):
        self.responses = list(responses)
        self.calls: list[tuple[str, dict]] = []

    async def generate_content_async(self, prompt, generation_config=None):
        self.calls.append((prompt, generation_config or {}))
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, StubResponse):
            return item
        return StubResponse(item)


class FailingLedgerStorage(InMemoryLedgerStorage):
    """In-memory storage whose saves can be made to fail."""

    def __init__(self, initial: Optional[LedgerSnapshot] = None):
        super().__init__(initial)
        self.fail = False
        self.saves = 0

    async def save(self, snapshot: LedgerSnapshot) -> None:
        if self.fail:
            raise StorageError("Sheets unavailable")
        self.saves += 1
        await super().save(snapshot)


class GatedLedgerStorage(FailingLedgerStorage):
    """Holds every save until released."""

    def __init__(self, initial: Optional[LedgerSnapshot] = None):
        super().__init__(initial)
        self.entered = asyncio.Event()
        self.release = asyncio.Event()

    async def save(self, snapshot: LedgerSnapshot) -> None:
        self.entered.set()
        await self.release.wait()
        await super().save(snapshot)


def balances(store) -> dict:
    return {a.id: a.balance for a in store.accounts()}


def staged_batch(*candidates) -> StagingBatch:
    batch = StagingBatch()
    batch.add(candidates)
    return batch


def items_json(*items: dict) -> str:
    return json.dumps(list(items))


def make_candidate(
    description: str = "Coffee",
    amount: str = "250",
    tx_type: TransactionType = TransactionType.EXPENSE,
    account_id: Optional[str] = CASH_ID,
    on: date = TODAY,
    **extra,
) -> CandidateTransaction:
    return CandidateTransaction(
        date=on,
        description=description,
        amount=Decimal(amount),
        type=tx_type,
        account_id=account_id,
        resolution=(
            ResolutionConfidence.MATCHED if account_id else ResolutionConfidence.UNRESOLVED
        ),
        **extra,
    )


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def ledger_settings() -> LedgerSettings:
    return LedgerSettings()


@pytest.fixture
def accounts() -> list[Account]:
    return [
        Account(
            id=HDFC_ID,
            name="HDFC Savings",
            account_type=AccountType.SAVINGS,
            balance=Decimal("10000"),
            opening_balance=Decimal("10000"),
        ),
        Account(
            id=CASH_ID,
            name="Cash Wallet",
            account_type=AccountType.WALLET,
            balance=Decimal("500"),
            opening_balance=Decimal("500"),
        ),
    ]


@pytest.fixture
def snapshot(accounts) -> LedgerSnapshot:
    return LedgerSnapshot(accounts=accounts, transactions=[])


@pytest.fixture
def storage(snapshot) -> FailingLedgerStorage:
    return FailingLedgerStorage(snapshot)


@pytest.fixture
async def store(storage) -> LedgerStore:
    return await LedgerStore.load(storage)


@pytest.fixture
def audit_storage() -> InMemoryAuditStorage:
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage) -> AuditLogger:
    return AuditLogger(audit_storage)


@pytest.fixture
def committer(store, audit_logger, ledger_settings) -> ReconciliationCommitter:
    return ReconciliationCommitter(store, audit_logger=audit_logger, settings=ledger_settings)
