"""Tests for the account resolver."""

import pytest

from wealthwise.ingestion import AccountResolver
from wealthwise.models.ledger import Account, ResolutionConfidence

from conftest import CASH_ID, HDFC_ID


@pytest.fixture
def resolver() -> AccountResolver:
    return AccountResolver()


class TestAccountResolver:

    def test_hint_contained_in_name(self, resolver, accounts):
        """'hdfc' matches 'HDFC Savings'."""
        result = resolver.resolve("hdfc", accounts)
        assert result.account_id == HDFC_ID
        assert result.confidence == ResolutionConfidence.MATCHED

    def test_name_contained_in_hint(self, resolver, accounts):
        """A long hint that mentions the account name still matches."""
        result = resolver.resolve("paid from my cash wallet", accounts)
        assert result.account_id == CASH_ID
        assert result.confidence == ResolutionConfidence.MATCHED

    def test_first_account_wins(self, resolver):
        accounts = [
            Account(id="a1", name="HDFC Savings"),
            Account(id="a2", name="HDFC Credit"),
        ]
        assert resolver.resolve("HDFC", accounts).account_id == "a1"

    def test_no_match_defaults_to_first_account(self, resolver, accounts):
        result = resolver.resolve("Kotak", accounts)
        assert result.account_id == HDFC_ID
        assert result.confidence == ResolutionConfidence.DEFAULTED
        assert "Kotak" in resolver.warning_for("Kotak", result)

    def test_blank_hint_defaults_to_first_account(self, resolver, accounts):
        result = resolver.resolve("   ", accounts)
        assert result.account_id == HDFC_ID
        assert result.confidence == ResolutionConfidence.DEFAULTED
        assert "HDFC Savings" in resolver.warning_for("   ", result)

    def test_empty_directory_is_unresolved(self, resolver):
        result = resolver.resolve("HDFC", [])
        assert result.account_id is None
        assert result.confidence == ResolutionConfidence.UNRESOLVED
        assert resolver.warning_for("HDFC", result) is not None

    def test_clean_match_has_no_warning(self, resolver, accounts):
        result = resolver.resolve("Cash Wallet", accounts)
        assert resolver.warning_for("Cash Wallet", result) is None

    def test_never_creates_accounts(self, resolver, accounts):
        before = [a.model_dump() for a in accounts]
        resolver.resolve("Brand New Bank", accounts)
        assert [a.model_dump() for a in accounts] == before


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
