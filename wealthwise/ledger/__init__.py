"""Ledger package: the account directory, committed transactions and everything that changes them."""

from wealthwise.ledger.accounts import AccountDirectory
from wealthwise.ledger.backup import export_backup, parse_backup, restore_backup
from wealthwise.ledger.committer import ReconciliationCommitter
from wealthwise.ledger.errors import (
    AccountNotFoundError,
    CommitFailure,
    LedgerError,
    RestoreFailure,
    TransactionNotFoundError,
    TransferError,
)
from wealthwise.ledger.store import LedgerStore, compute_balances

__all__ = [
    "AccountDirectory",
    "AccountNotFoundError",
    "CommitFailure",
    "LedgerError",
    "LedgerStore",
    "ReconciliationCommitter",
    "RestoreFailure",
    "TransactionNotFoundError",
    "TransferError",
    "compute_balances",
    "export_backup",
    "parse_backup",
    "restore_backup",
]
