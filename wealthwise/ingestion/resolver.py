"""
Account Resolver

Maps the free-text account name found in the source ("paid from hdfc")
onto an account in the directory.

Matching is deliberately simple: case-insensitive substring containment
in either direction, first account in directory order wins. When nothing
matches the candidate lands on the first account and says so, so the
user can fix it while it is still staged.

The resolver never creates accounts.
"""

from typing import Optional, Sequence

from wealthwise.models.ledger import (
    Account,
    AccountResolution,
    ResolutionConfidence,
)


def _fold(text: str) -> str:
    return " ".join(text.lower().split())


class AccountResolver:
    """Resolves account hints against an ordered account list."""

    def resolve(self, hint: str, accounts: Sequence[Account]) -> AccountResolution:
        if not accounts:
            return AccountResolution(confidence=ResolutionConfidence.UNRESOLVED)

        folded = _fold(hint or "")
        if folded:
            for account in accounts:
                name = _fold(account.name)
                if name and (folded in name or name in folded):
                    return AccountResolution(
                        account_id=account.id,
                        account_name=account.name,
                        confidence=ResolutionConfidence.MATCHED,
                    )

        first = accounts[0]
        return AccountResolution(
            account_id=first.id,
            account_name=first.name,
            confidence=ResolutionConfidence.DEFAULTED,
        )

    @staticmethod
    def warning_for(hint: str, resolution: AccountResolution) -> Optional[str]:
        """Human-readable note for anything other than a clean match."""
        if resolution.confidence == ResolutionConfidence.DEFAULTED:
            if hint and hint.strip():
                return (
                    f"No account matches '{hint.strip()}'; "
                    f"defaulted to {resolution.account_name}"
                )
            return f"No account given; defaulted to {resolution.account_name}"
        if resolution.confidence == ResolutionConfidence.UNRESOLVED:
            return "No accounts exist yet; add one before confirming"
        return None
