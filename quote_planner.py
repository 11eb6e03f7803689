"""
Quote Planner

Plans the writes for creating, saving and bulk-updating quotes.
Like revision_engine, every function returns a WriteBatch for the storage
layer and performs no I/O.
"""

import re
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple
from uuid import uuid4

from quote_models import (
    ExchangeRateSet,
    LineItem,
    Quote,
    QuoteStatus,
    WriteBatch,
    WriteOp,
)
from quote_mapper import line_item_to_row
from pricing_engine import exchange_rate_for, sum_items
from revision_engine import QUOTES_TABLE, QUOTE_ITEMS_TABLE, set_quote_ops


# =============================================================================
# QUOTE NUMBERS
# =============================================================================

def next_quote_number(existing_numbers: Iterable[str], now: Optional[datetime] = None) -> str:
    """
    Next quote number of the month, formatted MMYY/NNN (e.g. 0325/007).

    Uses the highest sequence already issued in the month, so numbers stay
    unique after quotes are deleted.
    """
    now = now or datetime.now(timezone.utc)
    prefix = f"{now.month:02d}{now.year % 100:02d}/"
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")

    highest = 0
    for number in existing_numbers:
        match = pattern.match((number or "").strip())
        if match:
            highest = max(highest, int(match.group(1)))

    return f"{prefix}{highest + 1:03d}"


# =============================================================================
# CREATE
# =============================================================================

def _check_rates(rate_set: ExchangeRateSet) -> None:
    exchange_rate_for("USD", rate_set)
    exchange_rate_for("EUR", rate_set)


def plan_new_quote(
    customer_id: str,
    customer_name: str,
    project_name: str,
    quote_number: str,
    rate_set: ExchangeRateSet,
    template_items: Iterable[LineItem] = (),
    new_id: Optional[str] = None,
    now: Optional[datetime] = None
) -> Tuple[Quote, WriteBatch]:
    """First revision of a new quote, optionally pre-filled from a template."""
    _check_rates(rate_set)

    new_id = new_id or str(uuid4())
    now = now or datetime.now(timezone.utc)

    items = [
        item.model_copy(update={"id": str(uuid4()), "order_index": idx})
        for idx, item in enumerate(template_items)
    ]

    quote = Quote(
        id=new_id,
        root_id=new_id,
        version=1,
        items=items,
        exchange_rates=rate_set,
        status=QuoteStatus.DRAFT,
        version_note="Created from template" if items else "First version",
        total_amount=sum_items(items, rate_set)["sell"],
        created_at=now,
        quote_number=quote_number,
        customer_id=customer_id,
        customer_name=customer_name,
        project_name=project_name,
    )
    return quote, WriteBatch(ops=set_quote_ops(quote))


# =============================================================================
# UPDATE
# =============================================================================

def plan_save_quote(
    quote: Quote,
    items: Iterable[LineItem],
    rate_set: ExchangeRateSet,
    previous_item_ids: Iterable[str] = ()
) -> Tuple[Quote, WriteBatch]:
    """
    Persist the edited items and rates of a quote.

    total_amount is refreshed to the VAT-exclusive item sum. Items missing
    from the new list but present in previous_item_ids are deleted.
    Raises a pricing error (nothing is planned) if any item is invalid.
    """
    _check_rates(rate_set)

    items: List[LineItem] = [
        item.model_copy(update={"id": item.id or str(uuid4()), "order_index": idx})
        for idx, item in enumerate(items)
    ]
    total = sum_items(items, rate_set)["sell"]

    saved = quote.model_copy(update={
        "items": items,
        "exchange_rates": rate_set,
        "total_amount": total,
    })

    ops = [
        WriteOp(
            op="update",
            collection=QUOTES_TABLE,
            doc_id=quote.id,
            data={
                "exchange_rates": rate_set.as_dict(),
                "total_amount": float(total),
            },
        )
    ]

    current_ids = {item.id for item in items}
    ops.extend(
        WriteOp(op="delete", collection=QUOTE_ITEMS_TABLE, doc_id=item_id, parent_id=quote.id)
        for item_id in previous_item_ids
        if item_id and item_id not in current_ids
    )
    ops.extend(
        WriteOp(
            op="set",
            collection=QUOTE_ITEMS_TABLE,
            doc_id=item.id,
            parent_id=quote.id,
            data=line_item_to_row(item, quote.id),
        )
        for item in items
    )

    return saved, WriteBatch(ops=ops)


def plan_status_change(quote_ids: Iterable[str], status: QuoteStatus) -> WriteBatch:
    """Bulk status update of the selected revisions."""
    status = QuoteStatus(status)
    return WriteBatch(ops=[
        WriteOp(op="update", collection=QUOTES_TABLE, doc_id=quote_id, data={"status": status.value})
        for quote_id in dict.fromkeys(quote_ids)
    ])
