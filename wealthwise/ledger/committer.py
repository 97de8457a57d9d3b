"""
Reconciliation Committer

The only code that creates, edits or deletes ledger transactions, and
therefore the only code that moves account balances.

CRITICAL: Every operation here is all-or-nothing.
1. Take the exclusive section
2. Re-validate everything against the current ledger (not the staging-time view)
3. Build the complete new snapshot (transactions + restated balances)
4. Persist it, then adopt it

If any step fails nothing is applied. A failed commit leaves the batch
staged so the user can fix the offending candidate and try again.
"""

from datetime import date
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

from pydantic import ValidationError

from wealthwise.audit import AuditLogger
from wealthwise.config import LedgerSettings, get_settings
from wealthwise.ingestion.normalizer import NormalizationError, parse_amount
from wealthwise.ledger.errors import (
    AccountNotFoundError,
    CommitFailure,
    LedgerError,
    TransactionNotFoundError,
    TransferError,
)
from wealthwise.ledger.store import LedgerStore
from wealthwise.models.audit import AuditEventBuilder
from wealthwise.models.ledger import (
    CommitResult,
    LedgerSnapshot,
    LedgerTransaction,
    TransactionType,
    new_ledger_id,
)
from wealthwise.services.storage import StorageError
from wealthwise.staging import StagingBatch


EDITABLE_FIELDS = {
    "date",
    "description",
    "amount",
    "type",
    "category",
    "sub_category",
    "account_id",
    "unit_details",
    "remarks",
    "transfer_account_id",
}


def _apply(
    balances: dict[str, Decimal],
    deltas: dict[str, Decimal],
    reverse: bool = False,
) -> None:
    for account_id, delta in deltas.items():
        balances[account_id] = balances[account_id] + (-delta if reverse else delta)


def _merge_deltas(*parts: dict[str, Decimal]) -> dict[str, Decimal]:
    merged: dict[str, Decimal] = {}
    for part in parts:
        for account_id, delta in part.items():
            merged[account_id] = merged.get(account_id, Decimal("0")) + delta
    return {k: v for k, v in merged.items() if v != 0}


def _with_balances(snapshot: LedgerSnapshot, balances: dict[str, Decimal]) -> None:
    snapshot.accounts = [
        a.model_copy(update={"balance": balances[a.id]})
        for a in snapshot.accounts
    ]


class ReconciliationCommitter:
    """
    Turns confirmed candidates into ledger transactions and balance changes.

    Also owns the other balance-affecting operations: internal transfers
    and edits/deletes of committed transactions.
    """

    def __init__(
        self,
        store: LedgerStore,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        self._store = store
        self._audit = audit_logger or AuditLogger()
        self._settings = settings or get_settings().ledger

    async def _adopt(self, snapshot: LedgerSnapshot) -> None:
        try:
            await self._store.adopt(snapshot)
        except ValidationError as e:
            raise LedgerError(f"Ledger would become inconsistent: {e}")

    # -------------------------------------------------------------------------
    # Batch commit
    # -------------------------------------------------------------------------

    async def commit(
        self,
        batch: StagingBatch,
        correlation_id: Optional[UUID] = None,
    ) -> CommitResult:
        """
        Commit every candidate in the batch, in order.

        Returns:
            The new transactions and the new balance of each touched account

        Raises:
            CommitFailure: Nothing was applied; the batch is still staged
        """
        if len(batch) == 0:
            return CommitResult()

        candidates = batch.list()
        try:
            result = await self._commit(candidates)
        except CommitFailure as e:
            if isinstance(e.__cause__, StorageError):
                await self._audit.log_external_service_error(
                    service="ledger_storage",
                    error_message=str(e.__cause__),
                    correlation_id=correlation_id,
                )
            await self._audit.log_commit_rejected(
                staging_id=e.staging_id,
                reason=e.message,
                correlation_id=correlation_id,
            )
            raise

        # Candidates staged while the commit was in flight stay in the batch
        batch.remove_all(c.staging_id for c in candidates)
        await self._audit.log(AuditEventBuilder.batch_committed(
            transaction_ids=[t.id for t in result.transactions],
            balances={k: str(v) for k, v in result.balances.items()},
            correlation_id=correlation_id,
        ))
        return result

    async def _commit(self, candidates: list) -> CommitResult:
        async with self._store.exclusive():
            snapshot = self._store.snapshot()
            balances = {a.id: a.balance for a in snapshot.accounts}

            new_transactions: list[LedgerTransaction] = []
            touched: list[str] = []

            for candidate in candidates:
                if candidate.account_id is None:
                    raise CommitFailure(
                        f"'{candidate.description}' has no account",
                        candidate.staging_id,
                    )
                if candidate.account_id not in balances:
                    raise CommitFailure(
                        f"The account for '{candidate.description}' no longer exists",
                        candidate.staging_id,
                    )
                if candidate.date is None:
                    raise CommitFailure(
                        f"'{candidate.description}' has no date",
                        candidate.staging_id,
                    )

                try:
                    tx = LedgerTransaction(
                        id=new_ledger_id(),
                        date=candidate.date,
                        description=candidate.description,
                        amount=candidate.amount,
                        type=candidate.type,
                        category=candidate.category,
                        sub_category=candidate.sub_category,
                        account_id=candidate.account_id,
                        unit_details=candidate.unit_details,
                        remarks=candidate.remarks,
                    )
                except ValidationError as e:
                    raise CommitFailure(
                        f"'{candidate.description}' is invalid: {e.errors()[0]['msg']}",
                        candidate.staging_id,
                    )

                _apply(balances, tx.balance_deltas())
                new_transactions.append(tx)
                if tx.account_id not in touched:
                    touched.append(tx.account_id)

            snapshot.transactions.extend(new_transactions)
            _with_balances(snapshot, balances)

            try:
                await self._store.adopt(snapshot)
            except (StorageError, ValidationError) as e:
                raise CommitFailure(f"Could not save the ledger: {e}") from e

        return CommitResult(
            transactions=new_transactions,
            balances={account_id: balances[account_id] for account_id in touched},
        )

    # -------------------------------------------------------------------------
    # Transfers
    # -------------------------------------------------------------------------

    async def transfer(
        self,
        from_account_id: str,
        to_account_id: str,
        amount: Union[Decimal, int, str],
        on_date: Optional[date] = None,
    ) -> LedgerTransaction:
        """
        Move money between two accounts in the directory.

        Recorded as one EXPENSE on the source carrying the target as its
        transfer leg, so total balance across accounts is unchanged.

        Raises:
            TransferError: Same account, unknown account or non-positive amount
        """
        if from_account_id == to_account_id:
            raise TransferError("Cannot transfer to the same account")
        try:
            value = parse_amount(amount)
        except NormalizationError as e:
            raise TransferError(e.reason)

        async with self._store.exclusive():
            source = self._store.get_account(from_account_id)
            target = self._store.get_account(to_account_id)
            if source is None or target is None:
                missing = from_account_id if source is None else to_account_id
                raise TransferError(f"Account not found: {missing}")

            tx = LedgerTransaction(
                date=on_date or date.today(),
                description=f"Transfer: {source.name} → {target.name}",
                amount=value,
                type=TransactionType.EXPENSE,
                category=self._settings.transfer_category,
                sub_category=self._settings.transfer_sub_category,
                account_id=source.id,
                transfer_account_id=target.id,
            )

            snapshot = self._store.snapshot()
            balances = {a.id: a.balance for a in snapshot.accounts}
            _apply(balances, tx.balance_deltas())
            snapshot.transactions.append(tx)
            _with_balances(snapshot, balances)
            await self._adopt(snapshot)

        await self._audit.log(AuditEventBuilder.transfer_completed(
            transaction_id=tx.id,
            from_account_id=source.id,
            to_account_id=target.id,
            amount=str(value),
        ))
        return tx

    # -------------------------------------------------------------------------
    # Edit / delete of committed transactions
    # -------------------------------------------------------------------------

    @staticmethod
    def _find(snapshot: LedgerSnapshot, transaction_id: str) -> int:
        for idx, tx in enumerate(snapshot.transactions):
            if tx.id == transaction_id:
                return idx
        raise TransactionNotFoundError(transaction_id)

    async def edit_transaction(self, transaction_id: str, **changes) -> LedgerTransaction:
        """
        Change a committed transaction and restate the affected balances.

        The old delta is reversed and the new one applied, so moving a
        transaction to another account (or changing a transfer's target)
        moves the money with it.

        Raises:
            TransactionNotFoundError: Unknown id
            AccountNotFoundError: The new account doesn't exist
            LedgerError: Field not editable or value invalid
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise LedgerError(f"Cannot edit {', '.join(sorted(unknown))}")

        async with self._store.exclusive():
            snapshot = self._store.snapshot()
            idx = self._find(snapshot, transaction_id)
            old = snapshot.transactions[idx]

            try:
                new = LedgerTransaction.model_validate(
                    {**old.model_dump(), **changes, "id": old.id}
                )
            except ValidationError as e:
                raise LedgerError(f"Invalid transaction: {e.errors()[0]['msg']}")

            balances = {a.id: a.balance for a in snapshot.accounts}
            for account_id in new.balance_deltas():
                if account_id not in balances:
                    raise AccountNotFoundError(account_id)

            _apply(balances, old.balance_deltas(), reverse=True)
            _apply(balances, new.balance_deltas())
            snapshot.transactions[idx] = new
            _with_balances(snapshot, balances)
            await self._adopt(snapshot)

        deltas = _merge_deltas(
            {k: -v for k, v in old.balance_deltas().items()},
            new.balance_deltas(),
        )
        await self._audit.log(AuditEventBuilder.transaction_changed(
            transaction_id=new.id,
            deleted=False,
            deltas={k: str(v) for k, v in deltas.items()},
        ))
        return new

    async def delete_transaction(self, transaction_id: str) -> LedgerTransaction:
        """
        Remove a committed transaction and reverse its balance effect.

        Raises:
            TransactionNotFoundError: Unknown id
        """
        async with self._store.exclusive():
            snapshot = self._store.snapshot()
            idx = self._find(snapshot, transaction_id)
            old = snapshot.transactions.pop(idx)

            balances = {a.id: a.balance for a in snapshot.accounts}
            _apply(balances, old.balance_deltas(), reverse=True)
            _with_balances(snapshot, balances)
            await self._adopt(snapshot)

        await self._audit.log(AuditEventBuilder.transaction_changed(
            transaction_id=old.id,
            deleted=True,
            deltas={k: str(-v) for k, v in old.balance_deltas().items()},
        ))
        return old

