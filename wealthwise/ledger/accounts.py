"""
Account Directory

User-facing account management: create, rename/retype, delete.

Balances are never edited here. A new account starts at its opening
balance; from then on only the reconciliation committer moves it.
"""

from decimal import Decimal
from typing import Optional, Union

from wealthwise.audit import AuditLogger
from wealthwise.ledger.errors import AccountNotFoundError, LedgerError
from wealthwise.ledger.store import LedgerStore
from wealthwise.models.audit import AuditEventType
from wealthwise.models.ledger import Account, AccountType, TransactionType


UPDATABLE_FIELDS = {"name", "account_type", "account_holder", "branch", "notes"}


class AccountDirectory:
    """Account operations, each one a single exclusive ledger mutation."""

    def __init__(
        self,
        store: LedgerStore,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._audit = audit_logger or AuditLogger()

    def list(self) -> list[Account]:
        return self._store.accounts()

    async def create_account(
        self,
        name: str,
        account_type: Union[AccountType, str] = AccountType.SAVINGS,
        opening_balance: Union[Decimal, int, str] = Decimal("0"),
        **details,
    ) -> Account:
        """
        Add an account at the end of the directory.

        Raises:
            LedgerError: Invalid name/type, or the name is already taken
        """
        try:
            opening = Decimal(str(opening_balance))
            account = Account(
                name=name,
                account_type=account_type,
                balance=opening,
                opening_balance=opening,
                **details,
            )
        except (ValueError, ArithmeticError) as e:
            raise LedgerError(f"Invalid account: {e}")

        async with self._store.exclusive():
            snapshot = self._store.snapshot()
            if any(a.name.lower() == account.name.lower() for a in snapshot.accounts):
                raise LedgerError(f"An account named '{account.name}' already exists")
            snapshot.accounts.append(account)
            await self._store.adopt(snapshot)

        await self._audit.log_account_changed(
            AuditEventType.ACCOUNT_CREATED, account.id, account.name
        )
        return account

    async def update_account(self, account_id: str, **changes) -> Account:
        """
        Change descriptive fields of an account.

        Raises:
            AccountNotFoundError: Unknown id
            LedgerError: Balance change attempted, invalid value, or the
                new name is already taken
        """
        forbidden = set(changes) - UPDATABLE_FIELDS
        if forbidden:
            raise LedgerError(
                f"Cannot update {', '.join(sorted(forbidden))} through the directory"
            )

        async with self._store.exclusive():
            snapshot = self._store.snapshot()
            for idx, account in enumerate(snapshot.accounts):
                if account.id == account_id:
                    break
            else:
                raise AccountNotFoundError(account_id)

            try:
                updated = Account.model_validate({**account.model_dump(), **changes})
            except ValueError as e:
                raise LedgerError(f"Invalid account: {e}")

            if any(
                a.id != account_id and a.name.lower() == updated.name.lower()
                for a in snapshot.accounts
            ):
                raise LedgerError(f"An account named '{updated.name}' already exists")

            snapshot.accounts[idx] = updated
            await self._store.adopt(snapshot)

        await self._audit.log_account_changed(
            AuditEventType.ACCOUNT_UPDATED, updated.id, updated.name
        )
        return updated

    async def delete_account(self, account_id: str) -> int:
        """
        Remove an account together with the transactions booked on it.

        Transfers touching it lose their transfer leg: money sent here stays
        on the sender as a plain debit, money sent out of here stays on the
        receiver as plain income.

        Returns:
            Number of transactions removed

        Raises:
            AccountNotFoundError: Unknown id
        """
        async with self._store.exclusive():
            snapshot = self._store.snapshot()
            account = next((a for a in snapshot.accounts if a.id == account_id), None)
            if account is None:
                raise AccountNotFoundError(account_id)

            kept = []
            for tx in snapshot.transactions:
                if tx.account_id == account_id:
                    if tx.is_transfer:
                        # The credited side keeps its money as plain income
                        kept.append(tx.model_copy(update={
                            "account_id": tx.transfer_account_id,
                            "type": TransactionType.INCOME,
                            "transfer_account_id": None,
                        }))
                    continue
                if tx.transfer_account_id == account_id:
                    tx = tx.model_copy(update={"transfer_account_id": None})
                kept.append(tx)

            removed = sum(1 for tx in snapshot.transactions if tx.account_id == account_id)
            snapshot.accounts = [a for a in snapshot.accounts if a.id != account_id]
            snapshot.transactions = kept
            await self._store.adopt(snapshot)

        await self._audit.log_account_changed(
            AuditEventType.ACCOUNT_DELETED, account.id, account.name
        )
        return removed
