"""Tests for the CSV candidate parser."""

import pytest
from datetime import date
from decimal import Decimal

from wealthwise.ingestion import AccountResolver, parse_csv
from wealthwise.models.ledger import ResolutionConfidence, TransactionType

from conftest import CASH_ID, TODAY


HEADER = "Date,Description,Amount,Type,AccountName"
TEMPLATE_HEADER = "Date,Description,Amount,Type,Category,AccountName"


class TestParseCsv:

    def test_five_field_row(self, accounts):
        """The basic layout resolves against the directory."""
        result = parse_csv(f"{HEADER}\n2023-10-25,Coffee,250,EXPENSE,Cash Wallet\n", today=TODAY)

        assert len(result.candidates) == 1
        candidate = result.candidates[0]
        assert candidate.amount == Decimal("250.0")
        assert candidate.type == TransactionType.EXPENSE
        assert candidate.date == date(2023, 10, 25)
        assert candidate.category == "Uncategorized"
        assert candidate.sub_category == "Imported"

        resolution = AccountResolver().resolve(candidate.account_hint, accounts)
        assert resolution.account_id == CASH_ID
        assert resolution.confidence == ResolutionConfidence.MATCHED

    def test_template_layout_reads_category(self):
        text = (
            f"{TEMPLATE_HEADER}\n"
            "2023-10-26,Dividend,1500,INCOME,Investments,HDFC Savings\n"
        )
        candidate = parse_csv(text, today=TODAY).candidates[0]
        assert candidate.category == "Investments"
        assert candidate.account_hint == "HDFC Savings"
        assert candidate.type == TransactionType.INCOME

    def test_short_rows_are_skipped_and_counted(self):
        text = f"{HEADER}\n2023-10-25,Coffee,250\n2023-10-25,Tea,40,EXPENSE,Cash Wallet\n"
        result = parse_csv(text, today=TODAY)
        assert result.skipped_rows == 1
        assert [c.description for c in result.candidates] == ["Tea"]

    def test_lower_case_type_is_rejected(self):
        result = parse_csv(f"{HEADER}\n2023-10-25,Coffee,250,expense,Cash Wallet\n", today=TODAY)
        assert result.candidates == []
        assert result.rejections[0].field == "type"

    def test_zero_amount_is_rejected(self):
        result = parse_csv(f"{HEADER}\n2023-10-25,Coffee,0,EXPENSE,Cash Wallet\n", today=TODAY)
        assert result.candidates == []
        assert result.rejections[0].field == "amount"

    def test_quoted_description_keeps_comma(self):
        text = f'{HEADER}\n2023-10-25,"Coffee, large",250,EXPENSE,Cash Wallet\n'
        assert parse_csv(text, today=TODAY).candidates[0].description == "Coffee, large"

    def test_blank_lines_and_header_only(self):
        assert parse_csv(f"{HEADER}\n\n\n", today=TODAY).candidates == []
        assert parse_csv("", today=TODAY).skipped_rows == 0

    def test_bad_date_falls_back_to_today(self):
        result = parse_csv(f"{HEADER}\nsometime,Coffee,250,EXPENSE,Cash Wallet\n", today=TODAY)
        assert result.candidates[0].date == TODAY

    def test_rows_keep_file_order(self):
        text = (
            f"{HEADER}\n"
            "2023-10-25,First,1,EXPENSE,Cash Wallet\n"
            "2023-10-25,Second,2,EXPENSE,Cash Wallet\n"
            "2023-10-25,Third,3,EXPENSE,Cash Wallet\n"
        )
        result = parse_csv(text, today=TODAY)
        assert [c.description for c in result.candidates] == ["First", "Second", "Third"]


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
