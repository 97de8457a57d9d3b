"""
Backup / Restore

A backup is the whole ledger as one JSON document. Restore is
all-or-nothing: the document is parsed and validated in full, and only a
document that passes every check replaces the ledger.

Documents written by the earlier browser app (camelCase keys, upper-case
account types, no opening balances) are accepted. Their opening balances
are derived from the stored balance and the transaction history, so the
balance invariant holds from the first load.
"""

import json
from decimal import Decimal
from typing import Any, Optional, Union

from pydantic import ValidationError

from wealthwise.audit import AuditLogger
from wealthwise.ledger.errors import RestoreFailure
from wealthwise.ledger.store import LedgerStore, compute_balances
from wealthwise.models.audit import AuditEventBuilder
from wealthwise.models.ledger import LedgerSnapshot
from wealthwise.services.storage import StorageError


async def export_backup(
    store: LedgerStore,
    audit_logger: Optional[AuditLogger] = None,
) -> str:
    """Serialize the current ledger to a JSON document."""
    snapshot = store.snapshot()
    document = snapshot.model_dump_json(indent=2)
    if audit_logger:
        await audit_logger.log(AuditEventBuilder.backup_exported(
            account_count=len(snapshot.accounts),
            transaction_count=len(snapshot.transactions),
        ))
    return document


def _derive_opening_balances(snapshot: LedgerSnapshot, raw_accounts: list) -> None:
    declared = {
        str(raw.get("id"))
        for raw in raw_accounts
        if isinstance(raw, dict)
        and ("opening_balance" in raw or "openingBalance" in raw)
    }
    history = compute_balances(
        snapshot.model_copy(update={
            "accounts": [
                a.model_copy(update={"opening_balance": Decimal("0")}) for a in snapshot.accounts
            ]
        })
    )
    snapshot.accounts = [
        a if a.id in declared
        else a.model_copy(update={"opening_balance": a.balance - history[a.id]})
        for a in snapshot.accounts
    ]


def parse_backup(document: Union[str, bytes, dict[str, Any]]) -> LedgerSnapshot:
    """
    Parse and validate a backup document without touching any ledger.

    Raises:
        RestoreFailure: Not JSON, wrong shape, or dangling account references
    """
    if isinstance(document, (str, bytes)):
        try:
            data = json.loads(document)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise RestoreFailure(f"Backup is not valid JSON: {e}")
    else:
        data = document

    if not isinstance(data, dict):
        raise RestoreFailure("Backup must be a JSON object")

    try:
        snapshot = LedgerSnapshot.model_validate(data)
    except ValidationError as e:
        raise RestoreFailure(f"Backup is invalid: {e}")

    _derive_opening_balances(snapshot, data.get("accounts") or [])
    return snapshot


async def restore_backup(
    store: LedgerStore,
    document: Union[str, bytes, dict[str, Any]],
    audit_logger: Optional[AuditLogger] = None,
) -> LedgerSnapshot:
    """
    Replace the whole ledger with a backup.

    Returns:
        The adopted snapshot

    Raises:
        RestoreFailure: The document was rejected or couldn't be saved;
                        the ledger is exactly as it was
    """
    try:
        snapshot = parse_backup(document)
        async with store.exclusive():
            try:
                await store.adopt(snapshot)
            except StorageError as e:
                raise RestoreFailure(f"Could not save the restored ledger: {e}")
    except RestoreFailure as e:
        if audit_logger:
            await audit_logger.log(AuditEventBuilder.restore_finished(
                succeeded=False,
                error_message=str(e),
            ))
        raise

    if audit_logger:
        await audit_logger.log(AuditEventBuilder.restore_finished(
            succeeded=True,
            account_count=len(snapshot.accounts),
            transaction_count=len(snapshot.transactions),
        ))
    return store.snapshot()
