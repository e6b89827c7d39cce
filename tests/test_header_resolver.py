"""
Unit tests for the HeaderResolver.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from statement_ingest.header_resolver import ColumnMap, HeaderResolver, normalize_header
from statement_ingest.schema import CanonicalField


@pytest.fixture
def resolver() -> HeaderResolver:
    return HeaderResolver()


# ======================================================================
# Normalisation
# ======================================================================

class TestNormalizeHeader:
    def test_lowercase_and_collapse(self) -> None:
        assert normalize_header("  Withdrawal__Amt  ") == "withdrawal amt"

    def test_multiple_spaces(self) -> None:
        assert normalize_header("Txn   Amt") == "txn amt"


# ======================================================================
# Resolution
# ======================================================================

class TestResolve:
    def test_debit_credit_first(self, resolver: HeaderResolver) -> None:
        cm = resolver.resolve(["Debit", "Credit", "Date", "Description"])
        assert cm.debit == 0
        assert cm.credit == 1
        assert cm.date == 2
        assert cm.description == 3

    def test_lowercase_bank_export(self, resolver: HeaderResolver) -> None:
        cm = resolver.resolve(["date", "narration", "withdrawal amt", "deposit amt"])
        assert cm.date == 0
        assert cm.description == 1
        assert cm.debit == 2
        assert cm.credit == 3
        assert cm.has_debit_credit

    def test_signed_amount(self, resolver: HeaderResolver) -> None:
        cm = resolver.resolve(["Date", "Description", "Amount"])
        assert cm.amount == 2
        assert cm.debit is None
        assert cm.credit is None

    def test_first_matching_header_wins(self, resolver: HeaderResolver) -> None:
        cm = resolver.resolve(["Txn Date", "Value Date", "Details"])
        assert cm.date == 0

    def test_header_can_satisfy_two_fields(self, resolver: HeaderResolver) -> None:
        cm = resolver.resolve(["Date", "Remarks", "Debit Amount"])
        assert cm.debit == 2
        assert cm.amount == 2

    def test_merchant_column(self, resolver: HeaderResolver) -> None:
        cm = resolver.resolve(["Date", "Particulars", "Amount", "Beneficiary"])
        assert cm.merchant == 3

    def test_unknown_headers(self, resolver: HeaderResolver) -> None:
        cm = resolver.resolve(["foo", "bar"])
        assert cm.resolved == {}

    def test_resolution_is_pure(self, resolver: HeaderResolver) -> None:
        headers = ["Date", "Narration", "Withdrawal", "Deposit"]
        assert resolver.resolve(headers) == resolver.resolve(headers)

    def test_column_map_get(self) -> None:
        cm = ColumnMap(date=1)
        assert cm.get(CanonicalField.DATE) == 1
        assert cm.get(CanonicalField.AMOUNT) is None


# ======================================================================
# Extension API
# ======================================================================

class TestExtension:
    def test_add_synonym(self, resolver: HeaderResolver) -> None:
        resolver.add_synonym("date", "Value Dt")
        cm = resolver.resolve(["Value Dt", "Details", "Amount"])
        assert cm.date == 0

    def test_extension_does_not_override_builtin(self, resolver: HeaderResolver) -> None:
        resolver.add_synonym("description", "info")
        assert resolver.synonyms_for(CanonicalField.DESCRIPTION)[0] == "description"
        assert "info" in resolver.synonyms_for(CanonicalField.DESCRIPTION)

    def test_unknown_canonical_rejected(self, resolver: HeaderResolver) -> None:
        with pytest.raises(ValueError, match="Unknown canonical field"):
            resolver.add_synonym("balance", "closing bal")

    def test_constructor_extras(self) -> None:
        resolver = HeaderResolver(extra_synonyms={"merchant": ["shop"]})
        cm = resolver.resolve(["Date", "Shop Name", "Amount"])
        assert cm.merchant == 1

    def test_load_custom_synonyms(self, resolver: HeaderResolver, tmp_path: Path) -> None:
        path = tmp_path / "synonyms.json"
        path.write_text(json.dumps({"date": ["posted on"], "amount": "value"}))
        count = resolver.load_custom_synonyms(path)
        assert count == 2
        cm = resolver.resolve(["Posted On", "Details", "Value"])
        assert cm.date == 0
        assert cm.amount == 2

    def test_synonyms_for_returns_copy(self, resolver: HeaderResolver) -> None:
        syns = resolver.synonyms_for(CanonicalField.DATE)
        syns.append("mutated")
        assert "mutated" not in resolver.synonyms_for(CanonicalField.DATE)
