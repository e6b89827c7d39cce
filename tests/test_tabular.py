"""
Unit tests for the structural TabularParser.
"""

from __future__ import annotations

import datetime as dt
from decimal import Decimal

import pytest

from statement_ingest.config import TabularConfig
from statement_ingest.errors import HeaderUnresolved, ZeroTransactionsExtracted
from statement_ingest.schema import Category, TransactionType
from statement_ingest.tabular import TabularParser, derive_merchant

TODAY = dt.date(2025, 1, 1)


@pytest.fixture
def parser() -> TabularParser:
    return TabularParser(clock=lambda: TODAY)


# ======================================================================
# End to end
# ======================================================================

class TestParse:
    def test_signed_amount_rent(self, parser: TabularParser) -> None:
        outcome = parser.parse("Date,Description,Amount\n2024-01-08,Rent,-30917\n")
        assert len(outcome.transactions) == 1
        txn = outcome.transactions[0]
        assert txn.date == dt.date(2024, 1, 8)
        assert txn.description == "Rent"
        assert txn.amount == Decimal("30917")
        assert txn.type is TransactionType.EXPENSE
        assert txn.category is Category.RENT

    def test_debit_credit_export(self, parser: TabularParser) -> None:
        text = (
            "Date,Narration,Withdrawal Amt,Deposit Amt\n"
            "01/01/2024,Salary credit,,50000\n"
            "02/01/2024,Swiggy-Order/123,450,\n"
            "03/01/2024,Nothing,0,0\n"
        )
        outcome = parser.parse(text)
        assert outcome.skipped_rows == 1
        salary, swiggy = outcome.transactions
        assert salary.type is TransactionType.INCOME
        assert salary.amount == Decimal("50000")
        assert salary.date == dt.date(2024, 1, 1)
        assert salary.category is Category.SALARY
        assert swiggy.type is TransactionType.EXPENSE
        assert swiggy.merchant == "Swiggy"
        assert swiggy.category is Category.FOOD

    def test_merchant_column(self, parser: TabularParser) -> None:
        outcome = parser.parse(
            "Date,Description,Amount,Payee\n2024-01-01,UPI payment,-200,Zomato\n"
        )
        txn = outcome.transactions[0]
        assert txn.merchant == "Zomato"
        assert txn.category is Category.FOOD

    def test_semicolon_export(self, parser: TabularParser) -> None:
        outcome = parser.parse("Date;Description;Amount\n08.01.2024;Rent;-30917.50\n")
        txn = outcome.transactions[0]
        assert txn.date == dt.date(2024, 1, 8)
        assert txn.amount == Decimal("30917.50")

    def test_unparseable_date_uses_clock(self, parser: TabularParser) -> None:
        outcome = parser.parse("Date,Description,Amount\nsometime,Rent,-100\n")
        assert outcome.transactions[0].date == TODAY

    def test_missing_description_defaulted(self, parser: TabularParser) -> None:
        outcome = parser.parse("Date,Amount\n2024-01-08,-100\n")
        txn = outcome.transactions[0]
        assert txn.description == "Transaction"
        assert txn.merchant == "Unknown"

    def test_zero_signed_amount_kept(self, parser: TabularParser) -> None:
        outcome = parser.parse("Date,Description,Amount\n2024-01-08,Interest,0\n")
        txn = outcome.transactions[0]
        assert txn.amount == Decimal("0")
        assert txn.type is TransactionType.INCOME

    def test_malformed_rows_skipped(self, parser: TabularParser) -> None:
        outcome = parser.parse(
            "Date,Description,Amount\n2024-01-08,Rent,-30917\ngarbage\n2024-01-09,Swiggy,-450\n"
        )
        assert len(outcome.transactions) == 2
        assert outcome.skipped_rows == 1

    def test_day_first_disabled(self) -> None:
        parser = TabularParser(config=TabularConfig(day_first=False))
        outcome = parser.parse("Date,Description,Amount\n01/02/2024,Rent,-1\n")
        assert outcome.transactions[0].date == dt.date(2024, 1, 2)


# ======================================================================
# Inapplicable layouts
# ======================================================================

class TestInapplicable:
    def test_no_date_column(self, parser: TabularParser) -> None:
        with pytest.raises(HeaderUnresolved):
            parser.parse("Description,Amount\nRent,-100\n")

    def test_no_canonical_columns(self, parser: TabularParser) -> None:
        with pytest.raises(HeaderUnresolved):
            parser.parse("foo,bar\n1,2\n")

    def test_header_only(self, parser: TabularParser) -> None:
        with pytest.raises(ZeroTransactionsExtracted):
            parser.parse("Date,Description,Amount\n")

    def test_no_rows_produce_transactions(self, parser: TabularParser) -> None:
        with pytest.raises(ZeroTransactionsExtracted):
            parser.parse("Date,Description,Debit,Credit\n2024-01-01,x,0,0\n")


class TestDeriveMerchant:
    @pytest.mark.parametrize(
        ("description", "expected"),
        [
            ("Swiggy-Order/123", "Swiggy"),
            ("UPI/zomato@okaxis", "UPI"),
            ("Rent", "Rent"),
            ("", "Unknown"),
            ("-leading", "Unknown"),
        ],
    )
    def test_first_segment(self, description: str, expected: str) -> None:
        assert derive_merchant(description) == expected
