"""
Tests for quote row mapping - store rows to models and back
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from quote_models import Currency, QuoteStatus
from quote_errors import InvalidCurrency
from quote_mapper import (
    line_item_from_row,
    line_item_to_row,
    normalize_currency,
    normalize_status,
    parse_timestamp,
    quote_from_row,
    quote_to_row,
    quotes_from_rows,
    safe_decimal,
)
from conftest import make_item_row, make_quote_row


class TestSafeConversion:

    def test_safe_decimal(self):
        assert safe_decimal("32,85") == Decimal("32.85")
        assert safe_decimal(12.5) == Decimal("12.5")
        assert safe_decimal(None) == Decimal("0")
        assert safe_decimal("abc", Decimal("1")) == Decimal("1")

    @pytest.mark.parametrize("raw", ["NaN", "Infinity", "-inf", float("nan")])
    def test_safe_decimal_non_finite(self, raw):
        assert safe_decimal(raw) == Decimal("0")
        assert safe_decimal(raw, Decimal("1")) == Decimal("1")

    def test_parse_timestamp_formats(self):
        expected = datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)
        assert parse_timestamp("2025-03-10T09:00:00Z") == expected
        assert parse_timestamp(expected.timestamp()) == expected
        assert parse_timestamp({"seconds": expected.timestamp()}) == expected
        assert parse_timestamp(expected) is expected

    def test_parse_timestamp_unresolved(self):
        assert parse_timestamp(None) is None
        assert parse_timestamp({"nanoseconds": 0}) is None
        assert parse_timestamp("not a date") is None


class TestNormalization:

    @pytest.mark.parametrize("raw,expected", [
        ("TL", Currency.TRY),
        ("try", Currency.TRY),
        ("$", Currency.USD),
        ("Euro", Currency.EUR),
        (None, Currency.TRY),
    ])
    def test_currency(self, raw, expected):
        assert normalize_currency(raw) == expected

    def test_unknown_currency_raises(self):
        with pytest.raises(InvalidCurrency):
            normalize_currency("GBP")

    @pytest.mark.parametrize("raw,expected", [
        ("Approved", QuoteStatus.APPROVED),
        ("onaylandı", QuoteStatus.APPROVED),
        ("Gönderildi", QuoteStatus.SENT),
        ("sent", QuoteStatus.SENT),
        ("", QuoteStatus.DRAFT),
        ("archived", QuoteStatus.DRAFT),
    ])
    def test_status(self, raw, expected):
        assert normalize_status(raw) == expected


class TestRowMapping:

    def test_quote_from_row(self):
        row = make_quote_row(quote_id="q-1", root_id="root", version=2, status="Sent")
        items = [
            make_item_row(item_id="b", quote_id="q-1", order_index=1),
            make_item_row(item_id="a", quote_id="q-1", order_index=0),
        ]

        quote = quote_from_row(row, items)

        assert quote.root_id == "root"
        assert quote.version == 2
        assert quote.status == QuoteStatus.SENT
        assert quote.exchange_rates.USD == Decimal("30.0")
        assert quote.total_amount == Decimal("1000.0")
        assert [i.id for i in quote.items] == ["a", "b"]
        assert quote.items[0].discount_rate == Decimal("0.1")

    def test_missing_root_and_version(self):
        row = make_quote_row(quote_id="q-1")
        row["root_id"] = ""
        row["version"] = None
        row["created_at"] = None

        quote = quote_from_row(row)

        assert quote.root_id == "q-1"
        assert quote.version == 1
        assert quote.created_at is None

    def test_non_finite_amounts_load(self):
        row = make_quote_row(quote_id="q-1")
        row["total_amount"] = "NaN"
        item = make_item_row(item_id="a", quote_id="q-1", list_price=float("inf"))

        quote = quote_from_row(row, [item])

        assert quote.total_amount == Decimal("0")
        assert quote.items[0].list_price == Decimal("0")

    def test_line_item_round_trip(self):
        row = make_item_row(item_id="a", quote_id="q-1")
        assert line_item_to_row(line_item_from_row(row), "q-1") == row

    def test_quote_to_row_uses_floats(self):
        row = make_quote_row(quote_id="q-1")
        data = quote_to_row(quote_from_row(row))

        assert data["total_amount"] == 1000.0
        assert data["exchange_rates"] == {"USD": 30.0, "EUR": 33.0}
        assert data["created_at"].startswith("2025-03-10T09:00:00")

    def test_quotes_from_rows_attaches_items(self):
        quote_rows = [make_quote_row(quote_id="q-1"), make_quote_row(quote_id="q-2")]
        item_rows = [
            make_item_row(quote_id="q-2"),
            make_item_row(quote_id="q-2", order_index=1),
            make_item_row(quote_id="q-1"),
        ]
        quotes = quotes_from_rows(quote_rows, item_rows)
        assert [len(q.items) for q in quotes] == [1, 2]
