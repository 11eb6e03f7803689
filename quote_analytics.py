"""
Quote Analytics

List statistics for the quote browser and dashboard figures.
All amounts are the cached VAT-exclusive total_amount of each revision.
"""

from decimal import Decimal
from typing import Dict, Iterable, List

from quote_models import (
    CustomerTotal,
    DashboardSummary,
    ListStats,
    Quote,
    QuoteStatus,
)


def list_stats(quotes: Iterable[Quote]) -> ListStats:
    """Count, total and average of the given rows."""
    quotes = list(quotes)
    count = len(quotes)
    total = sum((q.total_amount for q in quotes), Decimal("0"))
    average = total / count if count > 0 else Decimal("0")
    return ListStats(count=count, total=total, average=average)


def top_customers(quotes: Iterable[Quote], limit: int = 5) -> List[CustomerTotal]:
    """Customers ranked by the total of their approved quotes."""
    totals: Dict[str, CustomerTotal] = {}
    for q in quotes:
        if q.status != QuoteStatus.APPROVED or not q.customer_id or not q.total_amount:
            continue
        entry = totals.get(q.customer_id)
        if entry is None:
            totals[q.customer_id] = CustomerTotal(
                customer_id=q.customer_id,
                customer_name=q.customer_name,
                total_amount=q.total_amount,
            )
        else:
            totals[q.customer_id] = entry.model_copy(
                update={"total_amount": entry.total_amount + q.total_amount}
            )

    ranked = sorted(totals.values(), key=lambda c: c.total_amount, reverse=True)
    return ranked[:limit]


def dashboard_summary(quotes: Iterable[Quote], top_limit: int = 5) -> DashboardSummary:
    """Approved quote count/total and best customers."""
    quotes = list(quotes)
    approved = [q for q in quotes if q.status == QuoteStatus.APPROVED]
    return DashboardSummary(
        approved_count=len(approved),
        approved_total=sum((q.total_amount for q in approved), Decimal("0")),
        top_customers=top_customers(quotes, limit=top_limit),
    )
