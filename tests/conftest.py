"""
Shared pytest fixtures for quote engine tests.

Provides:
- Test data factories (line items, quotes, rows)
"""

import pytest
import os
import sys
from decimal import Decimal
from datetime import datetime, timezone
from uuid import uuid4

# Set test environment before importing services
os.environ["TESTING"] = "true"
os.environ["SUPABASE_URL"] = "https://test.supabase.co"
os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-key"

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from quote_models import ExchangeRateSet, LineItem, Quote, QuoteStatus  # noqa: E402


# ============================================================================
# MOCK FACTORIES
# ============================================================================

def make_uuid():
    """Generate a UUID string."""
    return str(uuid4())


def make_rates(usd="30", eur="33"):
    """Create a complete exchange rate set."""
    return ExchangeRateSet(USD=Decimal(usd), EUR=Decimal(eur))


def make_line_item(
    item_id=None,
    name="Kombi",
    quantity="1",
    list_price="100",
    currency="TRY",
    discount_rate="0",
    profit_margin="0",
    group_name=None,
    order_index=0,
    product_id=None
):
    """Create a LineItem."""
    return LineItem(
        id=item_id or make_uuid(),
        product_id=product_id,
        name=name,
        quantity=Decimal(quantity),
        list_price=Decimal(list_price),
        currency=currency,
        discount_rate=Decimal(discount_rate),
        profit_margin=Decimal(profit_margin),
        group_name=group_name,
        order_index=order_index,
    )


def make_quote(
    quote_id=None,
    root_id=None,
    version=1,
    items=None,
    status=QuoteStatus.DRAFT,
    created_at=None,
    total_amount="0",
    customer_id="cust-1",
    customer_name="Yılmaz İnşaat",
    project_name="Merkez Ofis",
    quote_number="0325/001",
    rates=None
):
    """Create a Quote. root_id defaults to the quote's own id."""
    quote_id = quote_id or make_uuid()
    return Quote(
        id=quote_id,
        root_id=root_id or quote_id,
        version=version,
        items=items or [],
        exchange_rates=rates or make_rates(),
        status=status,
        created_at=created_at,
        total_amount=Decimal(total_amount),
        customer_id=customer_id,
        customer_name=customer_name,
        project_name=project_name,
        quote_number=quote_number,
    )


def make_quote_row(
    quote_id=None,
    root_id=None,
    version=1,
    status="Draft",
    created_at="2025-03-10T09:00:00Z",
    total_amount=1000.0
):
    """Create a quotes table row dict."""
    quote_id = quote_id or make_uuid()
    return {
        "id": quote_id,
        "root_id": root_id or quote_id,
        "version": version,
        "status": status,
        "version_note": "",
        "total_amount": total_amount,
        "exchange_rates": {"USD": 30.0, "EUR": 33.0},
        "created_at": created_at,
        "quote_number": "0325/001",
        "customer_id": "cust-1",
        "customer_name": "Yılmaz İnşaat",
        "project_name": "Merkez Ofis",
    }


def make_item_row(
    item_id=None,
    quote_id=None,
    quantity=2,
    list_price=100.0,
    currency="USD",
    order_index=0,
    group_name="Isıtma"
):
    """Create a quote_items table row dict."""
    return {
        "id": item_id or make_uuid(),
        "quote_id": quote_id or make_uuid(),
        "product_id": "prod-1",
        "name": "Kombi",
        "brand": "Demirdöküm",
        "model": "Nitromix",
        "unit": "adet",
        "quantity": quantity,
        "list_price": list_price,
        "currency": currency,
        "discount_rate": 0.1,
        "profit_margin": 0.2,
        "group_name": group_name,
        "order_index": order_index,
    }


def at(day, hour=12):
    """UTC timestamp in March 2025."""
    return datetime(2025, 3, day, hour, 0, tzinfo=timezone.utc)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def three_version_cluster():
    """Quotes v1..v3 sharing one root, created on consecutive days."""
    root = "root-1"
    return [
        make_quote(quote_id=root, root_id=root, version=1, created_at=at(1),
                   items=[make_line_item(item_id="i-1")]),
        make_quote(quote_id="q-2", root_id=root, version=2, created_at=at(2),
                   items=[make_line_item(item_id="i-2a"), make_line_item(item_id="i-2b")]),
        make_quote(quote_id="q-3", root_id=root, version=3, created_at=at(3),
                   items=[make_line_item(item_id="i-3")]),
    ]

