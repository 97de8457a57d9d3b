"""Ledger exceptions."""

from typing import Optional


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class AccountNotFoundError(LedgerError):
    """No account with that id in the directory."""

    def __init__(self, account_id: str):
        self.account_id = account_id
        super().__init__(f"Account not found: {account_id}")


class TransactionNotFoundError(LedgerError):
    """No committed transaction with that id."""

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction not found: {transaction_id}")


class TransferError(LedgerError):
    """Transfer request is invalid (same account, unknown account, bad amount)."""
    pass


class CommitFailure(LedgerError):
    """
    A staging batch could not be committed.

    Nothing was applied. The batch is left staged so the user can fix it.
    """

    def __init__(self, message: str, staging_id: Optional[str] = None):
        self.staging_id = staging_id
        self.message = message
        super().__init__(message)


class RestoreFailure(LedgerError):
    """A backup document was rejected; the ledger is unchanged."""
    pass
