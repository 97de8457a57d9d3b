"""Tests for the field normalizer."""

import pytest
from datetime import date
from decimal import Decimal

from wealthwise.ingestion.normalizer import normalize, parse_amount, parse_date, NormalizationError
from wealthwise.models.ledger import (
    CandidateTransaction,
    NormalizationRejection,
    ResolutionConfidence,
    TransactionType,
)

from conftest import TODAY


def raw_item(**overrides) -> dict:
    item = {
        "date": "2024-01-05",
        "description": "  Coffee  ",
        "amount": 250,
        "type": "expense",
        "category": "Food",
        "subCategory": "",
        "accountNameMatch": "Cash",
    }
    item.update(overrides)
    return item


class TestNormalize:
    """Tests for normalize()."""

    def test_camel_case_item(self):
        """A typical extraction item becomes a candidate."""
        candidate = normalize(raw_item(), today=TODAY)
        assert isinstance(candidate, CandidateTransaction)
        assert candidate.date == date(2024, 1, 5)
        assert candidate.description == "Coffee"
        assert candidate.amount == Decimal("250")
        assert candidate.type == TransactionType.EXPENSE
        assert candidate.category == "Food"
        assert candidate.sub_category == "Uncategorized"
        assert candidate.account_hint == "Cash"

    def test_snake_case_item(self):
        candidate = normalize(
            {
                "description": "Salary",
                "amount": "50000",
                "type": "INCOME",
                "sub_category": "Salary",
                "account_hint": "HDFC",
                "unit_details": "monthly",
            },
            today=TODAY,
        )
        assert candidate.sub_category == "Salary"
        assert candidate.account_hint == "HDFC"
        assert candidate.unit_details == "monthly"

    def test_missing_date_defaults_to_today(self):
        candidate = normalize(raw_item(date=None), today=TODAY)
        assert candidate.date == TODAY

    def test_unparsable_date_defaults_to_today(self):
        candidate = normalize(raw_item(date="next full moon"), today=TODAY)
        assert candidate.date == TODAY

    @pytest.mark.parametrize("value", ["05-01-2024", "05/01/2024", "2024/01/05", "2024-01-05T18:30:00"])
    def test_accepted_date_forms(self, value):
        candidate = normalize(raw_item(date=value), today=TODAY)
        assert candidate.date == date(2024, 1, 5)

    @pytest.mark.parametrize("value", [0, -10, "abc", True, None, float("inf"), "NaN"])
    def test_bad_amount_is_rejected(self, value):
        rejection = normalize(raw_item(amount=value), today=TODAY)
        assert isinstance(rejection, NormalizationRejection)
        assert rejection.field == "amount"

    def test_long_value_is_shortened_in_reason(self):
        rejection = normalize(raw_item(amount="9" * 520 + "x"), today=TODAY)
        assert rejection.field == "amount"
        assert len(rejection.reason) < 80
        assert rejection.reason.endswith("...")

    def test_amount_is_not_rounded(self):
        candidate = normalize(raw_item(amount="1,200.505"), today=TODAY)
        assert candidate.amount == Decimal("1200.505")

    def test_unknown_type_is_rejected(self):
        rejection = normalize(raw_item(type="TRANSFER"), today=TODAY)
        assert isinstance(rejection, NormalizationRejection)
        assert rejection.field == "type"

    def test_type_is_case_insensitive(self):
        candidate = normalize(raw_item(type="Income"), today=TODAY)
        assert candidate.type == TransactionType.INCOME

    def test_blank_description_is_rejected(self):
        rejection = normalize(raw_item(description="   "), today=TODAY)
        assert isinstance(rejection, NormalizationRejection)
        assert rejection.field == "description"

    def test_non_object_is_rejected(self):
        rejection = normalize("coffee 250", today=TODAY)
        assert isinstance(rejection, NormalizationRejection)
        assert rejection.raw == "coffee 250"

    def test_custom_default_category(self):
        candidate = normalize(raw_item(category=" "), today=TODAY, default_category="Misc")
        assert candidate.category == "Misc"


class TestIdempotence:
    """normalize(normalize(x)) == normalize(x)."""

    def test_normalizing_twice_changes_nothing(self):
        once = normalize(raw_item(), today=TODAY)
        twice = normalize(once, today=date(2030, 1, 1))
        assert twice.model_dump() == once.model_dump()

    def test_resolved_candidate_keeps_review_state(self):
        once = normalize(raw_item(date=None), today=TODAY).model_copy(update={
            "account_id": "acc_cash",
            "resolution": ResolutionConfidence.MANUAL,
            "is_duplicate": True,
            "duplicate_warning": "Possible duplicate",
            "warnings": ["Possible duplicate"],
        })
        twice = normalize(once, today=date(2030, 1, 1))
        assert twice.model_dump() == once.model_dump()


class TestFieldParsers:

    def test_parse_date_returns_none_for_garbage(self):
        assert parse_date("soon") is None
        assert parse_date(20240105) is None

    def test_parse_amount_raises_with_field(self):
        with pytest.raises(NormalizationError) as exc:
            parse_amount("-1")
        assert exc.value.field == "amount"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
