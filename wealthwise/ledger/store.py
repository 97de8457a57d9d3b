"""
Ledger Store

Owns the in-memory ledger: the ordered account directory, committed
transactions, categories and preferences.

DESIGN DECISION: There is exactly one way to change the ledger:
build a new snapshot, then adopt() it while holding exclusive().
adopt() hands the snapshot to storage first and only replaces the
in-memory state once the save succeeded, so every mutation is
all-or-nothing from the caller's point of view.

Readers get deep copies and can't mutate state behind the lock's back.
"""

import asyncio
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import AsyncIterator, Optional

import structlog

from wealthwise.models.ledger import (
    Account,
    LedgerPreferences,
    LedgerSnapshot,
    LedgerTransaction,
)
from wealthwise.services.storage import LedgerStorageInterface


logger = structlog.get_logger(__name__)


def compute_balances(snapshot: LedgerSnapshot) -> dict[str, Decimal]:
    """Opening balance plus every applied delta, per account."""
    balances = {a.id: a.opening_balance for a in snapshot.accounts}
    for tx in snapshot.transactions:
        for account_id, delta in tx.balance_deltas().items():
            balances[account_id] = balances.get(account_id, Decimal("0")) + delta
    return balances


class LedgerStore:
    """
    Single owner of ledger state.

    Inject it into the committer, the account directory and the
    ingestion session; never reach for module-level state.
    """

    def __init__(
        self,
        snapshot: Optional[LedgerSnapshot] = None,
        storage: Optional[LedgerStorageInterface] = None,
    ):
        self._state = (
            snapshot.model_copy(deep=True)
            if snapshot
            else LedgerSnapshot(accounts=[], transactions=[])
        )
        self._storage = storage
        self._lock = asyncio.Lock()

    @classmethod
    async def load(cls, storage: LedgerStorageInterface) -> "LedgerStore":
        """Build a store from whatever the storage backend holds."""
        snapshot = await storage.load()
        store = cls(snapshot=snapshot, storage=storage)
        discrepancies = store.balance_discrepancies()
        if discrepancies:
            logger.warning(
                "ledger_balance_discrepancy",
                accounts={k: str(v) for k, v in discrepancies.items()},
            )
        return store

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def snapshot(self) -> LedgerSnapshot:
        return self._state.model_copy(deep=True)

    def accounts(self) -> list[Account]:
        return [a.model_copy() for a in self._state.accounts]

    def transactions(self) -> list[LedgerTransaction]:
        return [t.model_copy() for t in self._state.transactions]

    @property
    def categories(self) -> dict[str, list[str]]:
        return {k: list(v) for k, v in self._state.categories.items()}

    @property
    def preferences(self) -> LedgerPreferences:
        return self._state.preferences.model_copy()

    def get_account(self, account_id: str) -> Optional[Account]:
        for account in self._state.accounts:
            if account.id == account_id:
                return account.model_copy()
        return None

    def balance_discrepancies(self) -> dict[str, Decimal]:
        """
        Accounts whose stored balance disagrees with their history.

        Returns:
            {account_id: stored_balance - expected_balance} for every mismatch
        """
        expected = compute_balances(self._state)
        return {
            a.id: a.balance - expected[a.id]
            for a in self._state.accounts
            if a.balance != expected[a.id]
        }

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def exclusive(self) -> AsyncIterator["LedgerStore"]:
        """The one critical section every ledger mutation runs in."""
        async with self._lock:
            yield self

    async def adopt(self, snapshot: LedgerSnapshot) -> None:
        """
        Persist a new snapshot, then make it the current state.

        Must be called inside exclusive().

        Raises:
            StorageError: The save failed; in-memory state is unchanged
        """
        if not self._lock.locked():
            raise RuntimeError("adopt() must be called inside exclusive()")

        # Re-validate: a snapshot built with model_copy(update=...) skips validators
        validated = LedgerSnapshot.model_validate(snapshot.model_dump())
        if self._storage is not None:
            await self._storage.save(validated)
        self._state = validated
