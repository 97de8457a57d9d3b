"""Tests for the ledger store and account directory."""

import pytest
from decimal import Decimal

from wealthwise.ledger import AccountDirectory, AccountNotFoundError, LedgerError, LedgerStore
from wealthwise.models.audit import AuditEventType
from wealthwise.models.ledger import AccountType, LedgerSnapshot, TransactionType
from wealthwise.services.storage import InMemoryLedgerStorage

from conftest import CASH_ID, HDFC_ID, balances, make_candidate, staged_batch


@pytest.fixture
def directory(store, audit_logger) -> AccountDirectory:
    return AccountDirectory(store, audit_logger)


class TestLedgerStore:

    async def test_load_from_empty_storage(self):
        store = await LedgerStore.load(InMemoryLedgerStorage())
        assert store.accounts() == []
        assert "Produce" in store.categories

    async def test_reads_are_copies(self, store):
        store.accounts()[0].name = "Changed"
        store.categories["Produce"].append("Nuts")
        assert store.accounts()[0].name == "HDFC Savings"
        assert "Nuts" not in store.categories["Produce"]

    async def test_adopt_requires_exclusive_section(self, store):
        with pytest.raises(RuntimeError):
            await store.adopt(store.snapshot())

    async def test_balance_discrepancies_reports_drift(self, accounts):
        accounts[0].balance = Decimal("9999")
        store = LedgerStore(LedgerSnapshot(accounts=accounts, transactions=[]))
        assert store.balance_discrepancies() == {HDFC_ID: Decimal("-1")}


class TestAccountDirectory:

    async def test_create_account(self, store, directory, audit_storage):
        account = await directory.create_account("ICICI Credit", AccountType.CREDIT, "-2500")

        assert account.balance == Decimal("-2500")
        assert account.opening_balance == Decimal("-2500")
        assert store.accounts()[-1].id == account.id
        assert store.balance_discrepancies() == {}
        assert audit_storage.events[-1].event_type == AuditEventType.ACCOUNT_CREATED

    async def test_duplicate_name_is_refused(self, directory):
        with pytest.raises(LedgerError):
            await directory.create_account("hdfc savings")

    async def test_invalid_opening_balance(self, directory):
        with pytest.raises(LedgerError):
            await directory.create_account("Locker", opening_balance="lots")

    async def test_update_account(self, store, directory):
        updated = await directory.update_account(CASH_ID, name="Petty Cash", notes="Drawer")
        assert updated.name == "Petty Cash"
        assert store.get_account(CASH_ID).notes == "Drawer"
        assert store.get_account(CASH_ID).balance == Decimal("500")

    async def test_update_cannot_touch_balance(self, store, directory):
        with pytest.raises(LedgerError):
            await directory.update_account(CASH_ID, balance=Decimal("1000000"))
        assert store.get_account(CASH_ID).balance == Decimal("500")

    async def test_rename_to_taken_name_is_refused(self, store, directory):
        with pytest.raises(LedgerError, match="already exists"):
            await directory.update_account(CASH_ID, name="hdfc SAVINGS")
        assert store.get_account(CASH_ID).name == "Cash Wallet"

    async def test_rename_keeping_own_name_is_allowed(self, directory):
        updated = await directory.update_account(CASH_ID, name="CASH WALLET")
        assert updated.name == "CASH WALLET"

    async def test_update_unknown_account(self, directory):
        with pytest.raises(AccountNotFoundError):
            await directory.update_account("missing", name="X")

    async def test_delete_account_removes_its_transactions(self, store, committer, directory):
        await committer.commit(staged_batch(
            make_candidate("Coffee", "250", TransactionType.EXPENSE, CASH_ID),
            make_candidate("Salary", "100", TransactionType.INCOME, HDFC_ID),
        ))

        removed = await directory.delete_account(CASH_ID)

        assert removed == 1
        assert [a.id for a in store.accounts()] == [HDFC_ID]
        assert [t.description for t in store.transactions()] == ["Salary"]
        assert store.balance_discrepancies() == {}

    async def test_delete_account_with_transfers_keeps_invariant(self, store, committer, directory):
        await committer.transfer(HDFC_ID, CASH_ID, "1000")
        await committer.transfer(CASH_ID, HDFC_ID, "200")
        before = balances(store)

        await directory.delete_account(CASH_ID)

        assert balances(store) == {HDFC_ID: before[HDFC_ID]}
        assert store.balance_discrepancies() == {}
        assert all(not t.is_transfer for t in store.transactions())

    async def test_delete_unknown_account(self, directory):
        with pytest.raises(AccountNotFoundError):
            await directory.delete_account("missing")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
