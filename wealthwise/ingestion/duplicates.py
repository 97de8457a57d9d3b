"""
Duplicate Detector

Flags candidates that look like something already in the ledger.

A candidate is a likely duplicate of an existing transaction when:
1. Same resolved account
2. Same calendar date
3. Amount within a relative tolerance (default 1%)
4. Folded descriptions are equal, or one contains the other

The detector only warns. It never drops or blocks a candidate, and it
runs once, at staging time, against a snapshot of the ledger. Later edits
to the candidate or later ledger changes do not re-run it.
"""

from decimal import Decimal
from typing import Iterable, Optional

from wealthwise.models.ledger import (
    CandidateTransaction,
    DuplicateCheck,
    LedgerTransaction,
)


def _fold(text: str) -> str:
    return " ".join(text.lower().split())


class DuplicateDetector:
    """Compares candidates with committed transactions."""

    def __init__(self, amount_tolerance: Decimal = Decimal("0.01")):
        if amount_tolerance < 0:
            raise ValueError("amount_tolerance must be >= 0")
        self._tolerance = Decimal(amount_tolerance)

    def amounts_match(self, a: Decimal, b: Decimal) -> bool:
        return abs(a - b) <= self._tolerance * max(a, b)

    @staticmethod
    def descriptions_match(a: str, b: str) -> bool:
        a, b = _fold(a), _fold(b)
        if not a or not b:
            return False
        return a == b or a in b or b in a

    def detect(
        self,
        candidate: CandidateTransaction,
        ledger: Iterable[LedgerTransaction],
    ) -> DuplicateCheck:
        if candidate.account_id is None or candidate.date is None:
            return DuplicateCheck()

        match: Optional[LedgerTransaction] = None
        for existing in ledger:
            if (
                existing.account_id == candidate.account_id
                and existing.date == candidate.date
                and self.amounts_match(existing.amount, candidate.amount)
                and self.descriptions_match(existing.description, candidate.description)
            ):
                match = existing
                break

        if match is None:
            return DuplicateCheck()

        return DuplicateCheck(
            is_duplicate=True,
            warning=(
                f"Possible duplicate of '{match.description}' "
                f"({match.amount}) on {match.date.isoformat()}"
            ),
            matched_transaction_id=match.id,
        )
