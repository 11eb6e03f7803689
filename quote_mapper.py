"""
Quote Row Mapping Module

This module handles:
- Tolerant conversion of store rows (dicts from Supabase) into quote models
- Normalization of currency and status spellings found in imported data
- Converting models back into rows for write batches

Rows hold floats/strings, models hold Decimal. Conversion happens only here.
"""

from typing import Dict, Any, Optional, Iterable, List
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
import logging

from quote_models import (
    Currency,
    ExchangeRateSet,
    InstallationType,
    JobAssignment,
    LineItem,
    Product,
    Quote,
    QuoteStatus,
)
from quote_errors import InvalidCurrency

# Setup logger
logger = logging.getLogger(__name__)


# ============================================================================
# SAFE CONVERSION UTILITIES
# ============================================================================

def safe_decimal(value: Any, default: Decimal = Decimal("0")) -> Decimal:
    """Safely convert value to Decimal"""
    if value is None or value == "":
        return default
    try:
        # Imported spreadsheets use comma decimals ("32,85")
        if isinstance(value, str):
            value = value.strip().replace(",", ".")
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (ValueError, TypeError, InvalidOperation):
        return default
    # NaN and Infinity parse but cannot be priced or stored
    if not result.is_finite():
        return default
    return result


def safe_optional_decimal(value: Any) -> Optional[Decimal]:
    """Like safe_decimal but keeps missing values missing"""
    if value is None or value == "":
        return None
    return safe_decimal(value, default=None)


def safe_str(value: Any, default: str = "") -> str:
    """Safely convert value to string"""
    if value is None or value == "":
        return default
    return str(value)


def safe_int(value: Any, default: int = 0) -> int:
    """Safely convert value to int"""
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (ValueError, TypeError):
        return default


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a stored timestamp.

    Accepts datetime, ISO strings (with trailing Z), epoch seconds and
    {"seconds": ...} dicts from documents exported out of Firestore.
    Unresolved/unknown values return None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, dict):
        value = value.get("seconds")
        if value is None:
            return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        logger.warning(f"Unparseable timestamp {value!r}, treating as unresolved")
        return None


# ============================================================================
# VALUE NORMALIZATION
# ============================================================================

# Map stored/imported spellings to Currency values
CURRENCY_MAPPING = {
    "TL": "TRY",
    "YTL": "TRY",
    "₺": "TRY",
    "$": "USD",
    "€": "EUR",
    "EURO": "EUR",
    "AVRUPA": "EUR",
}

# Map stored/imported spellings to QuoteStatus values
STATUS_MAPPING = {
    "draft": "Draft",
    "taslak": "Draft",
    "sent": "Sent",
    "gönderildi": "Sent",
    "approved": "Approved",
    "onaylandı": "Approved",
    "rejected": "Rejected",
    "reddedildi": "Rejected",
}


def normalize_currency(value: Any) -> Currency:
    """
    Normalize currency value to the Currency enum.

    Missing currency means TRY. Unknown codes raise InvalidCurrency rather
    than silently pricing the item in the wrong currency.
    """
    if value is None or value == "":
        return Currency.TRY
    if isinstance(value, Currency):
        return value

    code = str(value).strip().upper()
    code = CURRENCY_MAPPING.get(code, code)
    try:
        return Currency(code)
    except ValueError:
        raise InvalidCurrency(f"Unsupported currency: {value!r}") from None


def normalize_status(value: Any) -> QuoteStatus:
    """Normalize status value to QuoteStatus (unknown -> Draft)"""
    if isinstance(value, QuoteStatus):
        return value
    if not value:
        return QuoteStatus.DRAFT

    raw = str(value).strip()
    try:
        return QuoteStatus(raw)
    except ValueError:
        pass

    mapped = STATUS_MAPPING.get(raw.lower())
    if mapped:
        return QuoteStatus(mapped)

    logger.warning(f"Unknown quote status {value!r}, using Draft")
    return QuoteStatus.DRAFT


# ============================================================================
# ROW -> MODEL
# ============================================================================

def rate_set_from_row(value: Any) -> ExchangeRateSet:
    """Exchange rates column ({"USD": .., "EUR": ..}) to ExchangeRateSet"""
    if not isinstance(value, dict):
        return ExchangeRateSet()
    return ExchangeRateSet(
        USD=safe_optional_decimal(value.get("USD")),
        EUR=safe_optional_decimal(value.get("EUR")),
    )


def line_item_from_row(row: Dict[str, Any]) -> LineItem:
    """Map a quote_items row to LineItem"""
    return LineItem(
        id=row.get("id"),
        product_id=row.get("product_id") or None,
        name=safe_str(row.get("name")),
        brand=safe_str(row.get("brand")),
        model=safe_str(row.get("model")),
        unit=safe_str(row.get("unit")),
        quantity=safe_decimal(row.get("quantity"), Decimal("1")),
        list_price=safe_decimal(row.get("list_price")),
        currency=normalize_currency(row.get("currency")),
        discount_rate=safe_decimal(row.get("discount_rate")),
        profit_margin=safe_decimal(row.get("profit_margin")),
        group_name=row.get("group_name") or None,
        order_index=safe_int(row.get("order_index")),
    )


def quote_from_row(row: Dict[str, Any], item_rows: Iterable[Dict[str, Any]] = ()) -> Quote:
    """Map a quotes row (and its quote_items rows) to Quote"""
    items = sorted(
        (line_item_from_row(r) for r in item_rows),
        key=lambda i: i.order_index
    )
    return Quote(
        id=row["id"],
        # Rows written before revisions existed are their own root
        root_id=row.get("root_id") or row["id"],
        version=max(safe_int(row.get("version"), 1), 1),
        items=items,
        exchange_rates=rate_set_from_row(row.get("exchange_rates")),
        status=normalize_status(row.get("status")),
        version_note=safe_str(row.get("version_note")),
        total_amount=safe_decimal(row.get("total_amount")),
        created_at=parse_timestamp(row.get("created_at")),
        quote_number=safe_str(row.get("quote_number")),
        customer_id=row.get("customer_id") or None,
        customer_name=safe_str(row.get("customer_name")),
        project_name=safe_str(row.get("project_name")),
    )


def product_from_row(row: Dict[str, Any]) -> Product:
    """Map a products row to Product"""
    return Product(
        id=row["id"],
        name=safe_str(row.get("name")),
        brand=safe_str(row.get("brand")),
        model=safe_str(row.get("model")),
        unit=safe_str(row.get("unit")),
        list_price=safe_decimal(row.get("list_price")),
        currency=normalize_currency(row.get("currency")),
        discount_rate=safe_decimal(row.get("discount_rate")),
        installation_type_id=row.get("installation_type_id") or None,
    )


def installation_type_from_row(row: Dict[str, Any]) -> InstallationType:
    return InstallationType(
        id=row["id"],
        name=safe_str(row.get("name")),
        parent_id=row.get("parent_id") or None,
    )


def assignment_from_row(row: Dict[str, Any]) -> JobAssignment:
    return JobAssignment(
        id=row.get("id"),
        quote_id=row["quote_id"],
        personnel_id=row["personnel_id"],
    )


# ============================================================================
# MODEL -> ROW
# ============================================================================

def line_item_to_row(item: LineItem, quote_id: Optional[str] = None) -> Dict[str, Any]:
    """LineItem to quote_items row"""
    row = {
        "id": item.id,
        "product_id": item.product_id,
        "name": item.name,
        "brand": item.brand,
        "model": item.model,
        "unit": item.unit,
        "quantity": float(item.quantity),
        "list_price": float(item.list_price),
        "currency": item.currency.value,
        "discount_rate": float(item.discount_rate),
        "profit_margin": float(item.profit_margin),
        "group_name": item.group_name,
        "order_index": item.order_index,
    }
    if quote_id:
        row["quote_id"] = quote_id
    return row


def quote_to_row(quote: Quote) -> Dict[str, Any]:
    """Quote to quotes row (items are written separately)"""
    return {
        "id": quote.id,
        "root_id": quote.root_id,
        "version": quote.version,
        "status": quote.status.value,
        "version_note": quote.version_note,
        "total_amount": float(quote.total_amount),
        "exchange_rates": quote.exchange_rates.as_dict(),
        "created_at": quote.created_at.isoformat() if quote.created_at else None,
        "quote_number": quote.quote_number,
        "customer_id": quote.customer_id,
        "customer_name": quote.customer_name,
        "project_name": quote.project_name,
    }


def quotes_from_rows(
    quote_rows: Iterable[Dict[str, Any]],
    item_rows: Iterable[Dict[str, Any]] = ()
) -> List[Quote]:
    """Attach item rows (by quote_id) to their quote rows"""
    items_by_quote: Dict[str, List[Dict[str, Any]]] = {}
    for row in item_rows:
        items_by_quote.setdefault(row.get("quote_id"), []).append(row)

    return [quote_from_row(row, items_by_quote.get(row["id"], [])) for row in quote_rows]
