"""
Mechanical Contracting Quotes - Pricing Engine
Line item pricing, group subtotals and grand totals with VAT presentation.

CONVENTIONS:
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
1. Cost:   unit_cost = list_price * (1 - discount_rate)        (native currency)
2. Sell:   unit_sell = unit_cost / (1 - profit_margin)         (margin-on-sale)
3. Profit: unit_profit = unit_sell - unit_cost
4. Settlement: everything is rolled up in TRY using the quote's rate set
5. No rounding inside the engine. Use round_decimal() when presenting.
6. VAT is a presentation transform over the VAT-exclusive item sums,
   it never changes the stored total_amount.
━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, List, Iterable, Mapping, Optional, Union

from quote_models import (
    Currency,
    ExchangeRateSet,
    LineItem,
    LinePricing,
    GroupTotals,
    QuoteGroup,
    VatBreakdown,
    QuoteTotals,
    VatMode,
)
from quote_settings import get_pricing_config
from quote_errors import (
    InvalidCurrency,
    IncompleteRateSet,
    InvalidMargin,
    InvalidQuantity,
    InvalidPrice,
    InvalidDiscount,
    InvalidRate,
)

ZERO = Decimal("0")
ONE = Decimal("1")

RateSetLike = Union[ExchangeRateSet, Mapping[str, object]]


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def round_decimal(value: Decimal, decimal_places: int = 2) -> Decimal:
    """Round decimal to specified places using ROUND_HALF_UP (display only)."""
    if decimal_places == 2:
        return value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)
    elif decimal_places == 0:
        return value.quantize(Decimal('1'), rounding=ROUND_HALF_UP)
    else:
        quantizer = Decimal(10) ** -decimal_places
        return value.quantize(quantizer, rounding=ROUND_HALF_UP)


def _as_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _safe_ratio(numerator: Decimal, denominator: Decimal) -> Decimal:
    return numerator / denominator if denominator != 0 else ZERO


def coerce_currency(currency) -> Currency:
    """Closed set: TRY, USD, EUR. Anything else is InvalidCurrency."""
    if isinstance(currency, Currency):
        return currency
    try:
        return Currency(currency)
    except ValueError:
        raise InvalidCurrency(f"Unsupported currency: {currency!r}") from None


def coerce_rate_set(rate_set: RateSetLike) -> ExchangeRateSet:
    if isinstance(rate_set, ExchangeRateSet):
        return rate_set
    if rate_set is None:
        raise IncompleteRateSet("Exchange rate set is missing")
    return ExchangeRateSet(USD=rate_set.get("USD"), EUR=rate_set.get("EUR"))


def validate_rate(currency: str, rate) -> Decimal:
    """Exchange rates must be positive finite numbers."""
    try:
        value = _as_decimal(rate)
    except (ArithmeticError, ValueError, TypeError):
        raise InvalidRate(f"{currency} rate is not a number: {rate!r}") from None
    if not value.is_finite() or value <= 0:
        raise InvalidRate(f"{currency} rate must be a positive finite number, got {rate!r}")
    return value


# ============================================================================
# CURRENCY CONVERSION
# ============================================================================

def exchange_rate_for(currency, rate_set: RateSetLike) -> Decimal:
    """Rate from currency to TRY. The rate set must carry both USD and EUR."""
    code = coerce_currency(currency)
    rates = coerce_rate_set(rate_set)

    missing = [c for c in ("USD", "EUR") if getattr(rates, c) is None]
    if missing:
        raise IncompleteRateSet(f"Exchange rate set is missing: {', '.join(missing)}")

    if code == Currency.TRY:
        return ONE
    return validate_rate(code.value, getattr(rates, code.value))


def to_settlement(amount, currency, rate_set: RateSetLike) -> Decimal:
    """Convert an amount in currency to TRY."""
    rate = exchange_rate_for(currency, rate_set)
    value = _as_decimal(amount)
    if rate == ONE:
        return value
    return value * rate


# ============================================================================
# LINE ITEM PRICING
# ============================================================================

def validate_line_item(item: LineItem) -> None:
    """Raise the pricing error matching the first broken invariant."""
    if item.quantity <= 0:
        raise InvalidQuantity(f"Quantity must be greater than 0, got {item.quantity}")
    if item.list_price < 0:
        raise InvalidPrice(f"List price cannot be negative, got {item.list_price}")
    if item.discount_rate < 0 or item.discount_rate > 1:
        raise InvalidDiscount(f"Discount rate must be within [0, 1], got {item.discount_rate}")
    if item.profit_margin < 0 or item.profit_margin >= 1:
        raise InvalidMargin(f"Profit margin must be within [0, 1), got {item.profit_margin}")


def price_line(item: LineItem, rate_set: RateSetLike) -> LinePricing:
    """
    Price one line item.

    Native figures are per unit in item.currency, settlement figures are TRY.
    Line totals are unit figures times quantity.
    """
    validate_line_item(item)

    # Step 1: net cost after supplier discount
    unit_cost = item.list_price * (ONE - item.discount_rate)

    # Step 2: margin is a fraction of the sell price
    unit_sell = unit_cost / (ONE - item.profit_margin)

    # Step 3
    unit_profit = unit_sell - unit_cost

    # Step 4: settlement currency
    unit_cost_tl = to_settlement(unit_cost, item.currency, rate_set)
    unit_sell_tl = to_settlement(unit_sell, item.currency, rate_set)
    unit_profit_tl = to_settlement(unit_profit, item.currency, rate_set)

    return LinePricing(
        unit_cost=unit_cost,
        unit_sell=unit_sell,
        unit_profit=unit_profit,
        unit_cost_settlement=unit_cost_tl,
        unit_sell_settlement=unit_sell_tl,
        unit_profit_settlement=unit_profit_tl,
        line_cost_settlement=unit_cost_tl * item.quantity,
        line_sell_settlement=unit_sell_tl * item.quantity,
        line_profit_settlement=unit_profit_tl * item.quantity,
        line_sell_native=unit_sell * item.quantity,
    )


# ============================================================================
# GROUP AGGREGATION
# ============================================================================

def resolve_group_name(group_name: Optional[str], default_group_name: str) -> str:
    """Missing or blank group labels fall into the sentinel group."""
    if group_name is None:
        return default_group_name
    name = group_name.strip()
    return name or default_group_name


def _default_group_name(default_group_name: Optional[str]) -> str:
    if default_group_name:
        return default_group_name
    return get_pricing_config().default_group_name


def _ordered_group_names(
    items: Iterable[LineItem],
    empty_groups: Iterable[str],
    sentinel: str
) -> List[str]:
    """First-seen order, empty placeholders after item groups, sentinel last."""
    names: List[str] = []
    for item in items:
        name = resolve_group_name(item.group_name, sentinel)
        if name not in names:
            names.append(name)
    for placeholder in empty_groups:
        name = resolve_group_name(placeholder, sentinel)
        if name not in names:
            names.append(name)
    if sentinel in names:
        names.remove(sentinel)
        names.append(sentinel)
    return names


def aggregate_groups(
    items: Iterable[LineItem],
    rate_set: RateSetLike,
    empty_groups: Iterable[str] = (),
    default_group_name: Optional[str] = None
) -> Dict[str, GroupTotals]:
    """
    Subtotals per presentation group, keyed by group name in display order.

    per_currency_native_totals holds each item's native line sell total in
    its own currency bucket (currency exposure, not converted).
    """
    items = list(items)
    sentinel = _default_group_name(default_group_name)
    names = _ordered_group_names(items, empty_groups, sentinel)

    sums = {
        name: {
            "sell": ZERO,
            "cost": ZERO,
            "profit": ZERO,
            "native": {c: ZERO for c in Currency},
            "count": 0,
        }
        for name in names
    }

    for item in items:
        pricing = price_line(item, rate_set)
        bucket = sums[resolve_group_name(item.group_name, sentinel)]
        bucket["sell"] += pricing.line_sell_settlement
        bucket["cost"] += pricing.line_cost_settlement
        bucket["profit"] += pricing.line_profit_settlement
        bucket["native"][item.currency] += pricing.line_sell_native
        bucket["count"] += 1

    return {
        name: GroupTotals(
            group_name=name,
            sell_settlement=s["sell"],
            cost_settlement=s["cost"],
            profit_settlement=s["profit"],
            profit_margin_ratio=_safe_ratio(s["profit"], s["sell"]),
            per_currency_native_totals=s["native"],
            item_count=s["count"],
        )
        for name, s in sums.items()
    }


def build_quote_groups(
    items: Iterable[LineItem],
    rate_set: RateSetLike,
    empty_groups: Iterable[str] = (),
    default_group_name: Optional[str] = None
) -> List[QuoteGroup]:
    """Groups with their items for the editor and the print view."""
    items = list(items)
    sentinel = _default_group_name(default_group_name)
    totals = aggregate_groups(items, rate_set, empty_groups, sentinel)

    return [
        QuoteGroup(
            group_name=name,
            items=[i for i in items if resolve_group_name(i.group_name, sentinel) == name],
            subtotal=subtotal,
        )
        for name, subtotal in totals.items()
    ]


# ============================================================================
# QUOTE AGGREGATION
# ============================================================================

def project_vat(amount, vat_rate, vat_mode: VatMode = VatMode.EXCLUSIVE) -> VatBreakdown:
    """
    Present an item-sum total under a VAT mode.

    EXCLUSIVE: amount is ex-VAT, VAT is added on top.
    INCLUSIVE: amount is taken as the VAT-inclusive figure and VAT is
    extracted from it.
    """
    amount = _as_decimal(amount)
    rate = _as_decimal(vat_rate)

    if VatMode(vat_mode) == VatMode.INCLUSIVE:
        sell_inc_vat = amount
        vat_amount = sell_inc_vat - sell_inc_vat / (ONE + rate)
        sell_ex_vat = sell_inc_vat - vat_amount
    else:
        sell_ex_vat = amount
        vat_amount = sell_ex_vat * rate
        sell_inc_vat = sell_ex_vat + vat_amount

    return VatBreakdown(
        sell_ex_vat=sell_ex_vat,
        vat_amount=vat_amount,
        sell_inc_vat=sell_inc_vat,
    )


def sum_items(items: Iterable[LineItem], rate_set: RateSetLike) -> Dict[str, Decimal]:
    """Settlement sell/cost/profit over all items."""
    sell = cost = profit = ZERO
    for item in items:
        pricing = price_line(item, rate_set)
        sell += pricing.line_sell_settlement
        cost += pricing.line_cost_settlement
        profit += pricing.line_profit_settlement
    return {"sell": sell, "cost": cost, "profit": profit}


def aggregate_quote(
    items: Iterable[LineItem],
    rate_set: RateSetLike,
    vat_rate=None,
    vat_mode: VatMode = VatMode.EXCLUSIVE
) -> QuoteTotals:
    """Grand totals of a quote. vat_rate defaults to the configured rate."""
    if vat_rate is None:
        vat_rate = get_pricing_config().vat_rate
    rate = _as_decimal(vat_rate)
    mode = VatMode(vat_mode)

    sums = sum_items(items, rate_set)
    presented = project_vat(sums["sell"], rate, mode)

    return QuoteTotals(
        items_sell_ex_vat=sums["sell"],
        cost=sums["cost"],
        profit=sums["profit"],
        profit_margin_ratio=_safe_ratio(sums["profit"], sums["sell"]),
        sell_ex_vat=presented.sell_ex_vat,
        vat_amount=presented.vat_amount,
        sell_inc_vat=presented.sell_inc_vat,
        vat_rate=rate,
        vat_mode=mode,
    )
