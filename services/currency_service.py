"""
Currency Service - Exchange rates from TCMB (Central Bank of the Republic of Turkey)

Rates are TRY per unit of foreign currency (ForexSelling). The response is
treated as untrusted input: every rate must be a positive finite number.
A failed refresh never replaces the rate set the caller already has.
"""

import logging
import xml.etree.ElementTree as ET
from decimal import Decimal, InvalidOperation
from typing import Dict, Optional

import httpx

from quote_models import ExchangeRateSet
from quote_errors import InvalidRate, RateFetchError
from pricing_engine import validate_rate
from quote_settings import get_pricing_config

logger = logging.getLogger(__name__)

# Currencies a quote needs besides TRY
REQUIRED_CURRENCIES = ('USD', 'EUR')


def parse_tcmb_rates(content: bytes) -> Dict[str, Decimal]:
    """
    Parse TCMB today.xml into {currency: rate_to_try}.

    <Currency Kod="USD"><Unit>1</Unit><ForexSelling>32.8520</ForexSelling>...
    Rate is ForexSelling / Unit (e.g. 100 JPY quoted per 100 units).
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as e:
        raise RateFetchError(f"Rate source returned invalid XML: {e}") from e

    rates = {}
    for currency in root.findall('Currency'):
        code = currency.get('Kod') or currency.get('CurrencyCode')
        if code not in REQUIRED_CURRENCIES:
            continue

        selling = (currency.findtext('ForexSelling') or '').strip().replace(',', '.')
        unit = (currency.findtext('Unit') or '1').strip()
        if not selling:
            continue

        try:
            rate = Decimal(selling) / Decimal(unit)
        except (InvalidOperation, ArithmeticError):
            raise InvalidRate(f"{code} rate is not a number: {selling!r}") from None
        rates[code] = validate_rate(code, rate)

    missing = [c for c in REQUIRED_CURRENCIES if c not in rates]
    if missing:
        raise RateFetchError(f"Rates not found in response: {', '.join(missing)}")

    return rates


def fetch_current_rates(url: Optional[str] = None, timeout: Optional[float] = None) -> ExchangeRateSet:
    """
    Fetch today's USD and EUR rates.

    Raises RateFetchError on network/HTTP/parse problems and InvalidRate
    when a value is not a positive finite number.
    """
    config = get_pricing_config()
    url = url or config.rate_source_url
    timeout = timeout or config.rate_timeout

    try:
        response = httpx.get(url, timeout=timeout)
        response.raise_for_status()
    except httpx.HTTPError as e:
        raise RateFetchError(f"Could not reach rate source {url}: {e}") from e

    rates = parse_tcmb_rates(response.content)
    logger.info(f"Fetched exchange rates: USD={rates['USD']} EUR={rates['EUR']}")
    return ExchangeRateSet(USD=rates['USD'], EUR=rates['EUR'])


def refresh_rates(current: ExchangeRateSet) -> ExchangeRateSet:
    """
    Fetched rates, or current unchanged if fetching fails.

    ExchangeRateSet is immutable, so results already computed with
    current stay valid either way.
    """
    try:
        return fetch_current_rates()
    except (RateFetchError, InvalidRate) as e:
        logger.warning(f"Exchange rate refresh failed, keeping current rates: {e}")
        return current


def rates_for_new_quote() -> ExchangeRateSet:
    """Fresh rates for a new quote or revision (configured fallback if offline)."""
    return refresh_rates(get_pricing_config().fallback_rates)


def format_rates_for_display(rates: ExchangeRateSet) -> list[dict]:
    """
    Format rates for display in UI.
    Returns list of {currency, rate_to_try}
    """
    result = []
    for currency in REQUIRED_CURRENCIES:
        rate = getattr(rates, currency)
        if rate is not None:
            result.append({
                'currency': currency,
                'rate_to_try': float(rate),
            })

    result.append({
        'currency': 'TRY',
        'rate_to_try': 1.0,
    })
    return result
