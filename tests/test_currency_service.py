"""
Tests for Currency Service - TCMB rate parsing and fetching
"""

import pytest
from unittest.mock import patch, MagicMock
from decimal import Decimal
import sys
import os

import httpx

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from quote_models import ExchangeRateSet
from quote_errors import InvalidRate, RateFetchError
from services.currency_service import (
    fetch_current_rates,
    format_rates_for_display,
    parse_tcmb_rates,
    rates_for_new_quote,
    refresh_rates,
)


TCMB_XML = """<?xml version="1.0" encoding="UTF-8"?>
<Tarih_Date Tarih="14.03.2025" Date="03/14/2025">
  <Currency CrossOrder="0" Kod="USD" CurrencyCode="USD">
    <Unit>1</Unit>
    <Isim>ABD DOLARI</Isim>
    <ForexBuying>36.5012</ForexBuying>
    <ForexSelling>36.5670</ForexSelling>
  </Currency>
  <Currency CrossOrder="9" Kod="JPY" CurrencyCode="JPY">
    <Unit>100</Unit>
    <ForexSelling>24.6120</ForexSelling>
  </Currency>
  <Currency CrossOrder="1" Kod="EUR" CurrencyCode="EUR">
    <Unit>1</Unit>
    <Isim>EURO</Isim>
    <ForexBuying>39.7011</ForexBuying>
    <ForexSelling>39.7726</ForexSelling>
  </Currency>
</Tarih_Date>
""".encode("utf-8")


def _response(content=TCMB_XML):
    response = MagicMock()
    response.content = content
    response.raise_for_status.return_value = None
    return response


# =============================================================================
# PARSING
# =============================================================================

class TestParseTcmbRates:
    """Tests for parse_tcmb_rates."""

    def test_parses_forex_selling(self):
        rates = parse_tcmb_rates(TCMB_XML)
        assert rates == {"USD": Decimal("36.5670"), "EUR": Decimal("39.7726")}

    def test_invalid_xml(self):
        with pytest.raises(RateFetchError):
            parse_tcmb_rates(b"<html>maintenance")

    def test_missing_currency(self):
        xml = b'<Tarih_Date><Currency Kod="USD"><Unit>1</Unit><ForexSelling>36.5</ForexSelling></Currency></Tarih_Date>'
        with pytest.raises(RateFetchError):
            parse_tcmb_rates(xml)

    def test_zero_rate_is_rejected(self):
        xml = TCMB_XML.replace(b"36.5670", b"0")
        with pytest.raises(InvalidRate):
            parse_tcmb_rates(xml)

    def test_non_numeric_rate_is_rejected(self):
        xml = TCMB_XML.replace(b"39.7726", b"N/A")
        with pytest.raises(InvalidRate):
            parse_tcmb_rates(xml)


# =============================================================================
# FETCHING
# =============================================================================

class TestFetchCurrentRates:
    """Tests for fetch_current_rates / refresh_rates."""

    @patch('services.currency_service.httpx.get')
    def test_fetch_returns_rate_set(self, mock_get):
        mock_get.return_value = _response()

        rates = fetch_current_rates(url="https://rates.test/today.xml", timeout=3)

        assert rates == ExchangeRateSet(USD=Decimal("36.5670"), EUR=Decimal("39.7726"))
        mock_get.assert_called_once_with("https://rates.test/today.xml", timeout=3)

    @patch('services.currency_service.httpx.get')
    def test_network_error_becomes_rate_fetch_error(self, mock_get):
        mock_get.side_effect = httpx.ConnectError("connection refused")

        with pytest.raises(RateFetchError):
            fetch_current_rates()

    @patch('services.currency_service.httpx.get')
    def test_refresh_keeps_current_on_failure(self, mock_get):
        mock_get.side_effect = httpx.ConnectTimeout("timed out")
        current = ExchangeRateSet(USD=Decimal("30"), EUR=Decimal("33"))

        assert refresh_rates(current) is current

    @patch('services.currency_service.httpx.get')
    def test_refresh_keeps_current_on_bad_value(self, mock_get):
        mock_get.return_value = _response(TCMB_XML.replace(b"36.5670", b"-1"))
        current = ExchangeRateSet(USD=Decimal("30"), EUR=Decimal("33"))

        assert refresh_rates(current) is current

    @patch('services.currency_service.httpx.get')
    def test_new_quote_falls_back_to_configured_rates(self, mock_get):
        mock_get.side_effect = httpx.ConnectError("offline")

        rates = rates_for_new_quote()

        assert rates.USD == Decimal("32.50")
        assert rates.EUR == Decimal("35.00")


def test_format_rates_for_display():
    rows = format_rates_for_display(ExchangeRateSet(USD=Decimal("30"), EUR=Decimal("33")))
    assert rows == [
        {"currency": "USD", "rate_to_try": 30.0},
        {"currency": "EUR", "rate_to_try": 33.0},
        {"currency": "TRY", "rate_to_try": 1.0},
    ]
