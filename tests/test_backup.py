"""
Tests for backup export and restore.

Restore is all-or-nothing: every rejected document must leave the
ledger exactly as it was.
"""

import json

import pytest
from datetime import date
from decimal import Decimal

from wealthwise.ledger import LedgerStore, RestoreFailure, export_backup, parse_backup, restore_backup
from wealthwise.models.audit import AuditEventType
from wealthwise.models.ledger import AccountType, TransactionType
from wealthwise.services.storage import InMemoryLedgerStorage

from conftest import CASH_ID, HDFC_ID, balances, make_candidate, staged_batch


LEGACY_DOCUMENT = {
    "userId": "u_123",
    "accounts": [
        {"id": "a1", "name": "HDFC Savings", "type": "SAVINGS", "balance": 9750},
        {"id": "a2", "name": "Paytm", "type": "WALLET", "balance": 1200, "accountHolder": "Asha"},
    ],
    "transactions": [
        {
            "id": "t1",
            "date": "2024-01-05T10:30:00.000Z",
            "description": "Groceries",
            "amount": 250,
            "type": "EXPENSE",
            "category": "Produce",
            "subCategory": "Vegetables",
            "accountId": "a1",
            "unitPrice": "2kg",
        },
        {
            "id": "t2",
            "date": "2024-01-06",
            "description": "Cashback",
            "amount": 200,
            "type": "INCOME",
            "category": "Income",
            "subCategory": "Freelance",
            "accountId": "a2",
        },
    ],
    "categories": {"Produce": ["Vegetables"], "Income": ["Freelance"]},
    "settings": {"currency": "INR", "theme": "light", "skipDeleteConfirmation": True},
    "priceLogs": [{"item": "onion", "price": 40}],
}


@pytest.fixture
async def committed_store(store, committer):
    await committer.commit(staged_batch(
        make_candidate("Salary", "50000", TransactionType.INCOME, HDFC_ID),
        make_candidate("Coffee", "250"),
    ))
    await committer.transfer(HDFC_ID, CASH_ID, "1000", on_date=date(2024, 1, 9))
    return store


class TestExport:

    async def test_export_is_json_object(self, committed_store, audit_logger, audit_storage):
        document = await export_backup(committed_store, audit_logger)

        data = json.loads(document)
        assert [a["id"] for a in data["accounts"]] == [HDFC_ID, CASH_ID]
        assert len(data["transactions"]) == 3
        assert audit_storage.events[-1].event_type == AuditEventType.BACKUP_EXPORTED

    async def test_export_then_restore_into_fresh_ledger(self, committed_store):
        document = await export_backup(committed_store)
        fresh = await LedgerStore.load(InMemoryLedgerStorage())

        await restore_backup(fresh, document)

        assert balances(fresh) == balances(committed_store)
        assert fresh.transactions() == committed_store.transactions()
        assert fresh.balance_discrepancies() == {}


class TestRestoreRejection:

    async def test_malformed_json_leaves_ledger_unchanged(self, committed_store, audit_logger, audit_storage):
        before = committed_store.snapshot()

        with pytest.raises(RestoreFailure, match="not valid JSON"):
            await restore_backup(committed_store, "{not json", audit_logger)

        assert committed_store.snapshot() == before
        assert audit_storage.events[-1].event_type == AuditEventType.RESTORE_FAILED

    async def test_non_object_is_rejected(self, committed_store):
        with pytest.raises(RestoreFailure):
            await restore_backup(committed_store, "[1, 2, 3]")

    async def test_unknown_account_reference_leaves_ledger_unchanged(self, committed_store):
        before = committed_store.snapshot()
        document = {
            "accounts": [{"id": "a1", "name": "HDFC Savings", "balance": 0}],
            "transactions": [{
                "id": "t1",
                "date": "2024-01-05",
                "description": "Ghost",
                "amount": 10,
                "type": "EXPENSE",
                "accountId": "ghost",
            }],
        }

        with pytest.raises(RestoreFailure, match="unknown account"):
            await restore_backup(committed_store, document)

        assert committed_store.snapshot() == before

    async def test_invalid_transaction_is_rejected(self, committed_store):
        before = committed_store.snapshot()
        document = {
            "accounts": [{"id": "a1", "name": "HDFC Savings"}],
            "transactions": [{
                "id": "t1",
                "date": "2024-01-05",
                "description": "Negative",
                "amount": -10,
                "type": "EXPENSE",
                "accountId": "a1",
            }],
        }

        with pytest.raises(RestoreFailure):
            await restore_backup(committed_store, document)
        assert committed_store.snapshot() == before

    async def test_storage_failure_leaves_ledger_unchanged(
        self, committed_store, storage, audit_logger, audit_storage
    ):
        before = committed_store.snapshot()
        storage.fail = True

        with pytest.raises(RestoreFailure, match="save"):
            await restore_backup(committed_store, LEGACY_DOCUMENT, audit_logger)

        assert committed_store.snapshot() == before
        assert audit_storage.events[-1].event_type == AuditEventType.RESTORE_FAILED


class TestLegacyDocuments:

    def test_legacy_keys_are_accepted(self):
        snapshot = parse_backup(LEGACY_DOCUMENT)

        hdfc, paytm = snapshot.accounts
        assert hdfc.account_type == AccountType.SAVINGS
        assert paytm.account_type == AccountType.WALLET
        assert paytm.account_holder == "Asha"

        groceries = snapshot.transactions[0]
        assert groceries.date == date(2024, 1, 5)
        assert groceries.sub_category == "Vegetables"
        assert groceries.account_id == "a1"
        assert groceries.unit_details == "2kg"

        assert snapshot.preferences.theme == "light"
        assert snapshot.preferences.skip_delete_confirmation is True

    def test_missing_opening_balances_are_derived(self):
        snapshot = parse_backup(json.dumps(LEGACY_DOCUMENT))

        hdfc, paytm = snapshot.accounts
        assert hdfc.opening_balance == Decimal("10000")
        assert paytm.opening_balance == Decimal("1000")

    def test_declared_opening_balance_is_kept(self):
        document = {
            "accounts": [{"id": "a1", "name": "Cash", "balance": 50, "openingBalance": 80}],
            "transactions": [],
        }
        assert parse_backup(document).accounts[0].opening_balance == Decimal("80")

    async def test_restored_legacy_ledger_has_no_discrepancies(self, store, audit_logger, audit_storage):
        await restore_backup(store, LEGACY_DOCUMENT, audit_logger)

        assert [a.name for a in store.accounts()] == ["HDFC Savings", "Paytm"]
        assert store.balance_discrepancies() == {}
        assert store.categories == {"Produce": ["Vegetables"], "Income": ["Freelance"]}
        assert audit_storage.events[-1].event_type == AuditEventType.RESTORE_COMPLETED


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
