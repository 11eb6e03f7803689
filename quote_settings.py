"""
Quote settings - single source of truth for pricing configuration

Env vars (all optional):
    QUOTE_VAT_RATE              - VAT rate as fraction (default 0.20)
    QUOTE_DEFAULT_GROUP         - Sentinel group name (default "Other")
    QUOTE_DEFAULT_PROFIT_MARGIN - Margin for newly added items (default 0.20)
    QUOTE_RATE_SOURCE_URL       - Exchange rate XML endpoint (default TCMB today.xml)
    QUOTE_RATE_TIMEOUT          - Rate fetch timeout in seconds (default 10)
"""

import os
from decimal import Decimal
from functools import lru_cache
from dotenv import load_dotenv

from quote_models import PricingConfig

load_dotenv()


@lru_cache()
def get_pricing_config() -> PricingConfig:
    """Get pricing configuration (cached singleton) built from environment"""
    overrides = {}

    vat_rate = os.getenv("QUOTE_VAT_RATE")
    if vat_rate:
        overrides["vat_rate"] = Decimal(vat_rate)

    default_group = os.getenv("QUOTE_DEFAULT_GROUP")
    if default_group:
        overrides["default_group_name"] = default_group

    default_margin = os.getenv("QUOTE_DEFAULT_PROFIT_MARGIN")
    if default_margin:
        overrides["default_profit_margin"] = Decimal(default_margin)

    rate_url = os.getenv("QUOTE_RATE_SOURCE_URL")
    if rate_url:
        overrides["rate_source_url"] = rate_url

    rate_timeout = os.getenv("QUOTE_RATE_TIMEOUT")
    if rate_timeout:
        overrides["rate_timeout"] = float(rate_timeout)

    return PricingConfig(**overrides)
