"""
Quote Revision Engine

Groups stored quote revisions into clusters sharing a root_id, drives the
grouped/flat quote list and plans revision mutations.

Nothing here touches the database. Mutations are returned as a WriteBatch
that the storage layer commits atomically (see services/quote_service.py).
"""

from datetime import datetime, time, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple
from uuid import uuid4

from quote_models import (
    ExchangeRateSet,
    JobAssignment,
    Quote,
    QuoteFilter,
    QuoteListing,
    QuoteStatus,
    RevisionCluster,
    SortOrder,
    WriteBatch,
    WriteOp,
)
from quote_errors import (
    EmptyClusterDeletion,
    OrphanRevision,
    RevisionNotFound,
)
from quote_mapper import line_item_to_row, quote_to_row
from quote_analytics import list_stats
from pricing_engine import exchange_rate_for, sum_items

QUOTES_TABLE = "quotes"
QUOTE_ITEMS_TABLE = "quote_items"

DATE_RANGE_DAYS = {
    "last30days": 30,
    "last90days": 90,
}

# str.lower() maps "I" to "i" and "İ" to "i̇"; Turkish wants "ı" and "i"
_TURKISH_LOWER = str.maketrans({"I": "ı", "İ": "i"})


# ============================================================================
# Sorting / filtering helpers
# ============================================================================

def turkish_lower(text: str) -> str:
    """Lowercase with Turkish dotted/dotless i rules."""
    return (text or "").translate(_TURKISH_LOWER).lower()


def _sort_by_created_at(
    entries: List,
    created_at: Callable[[object], Optional[datetime]],
    sort_order: SortOrder
) -> List:
    """Resolved timestamps in the requested order, unresolved ones last."""
    resolved = [e for e in entries if created_at(e) is not None]
    unresolved = [e for e in entries if created_at(e) is None]
    resolved.sort(key=lambda e: created_at(e).timestamp(), reverse=(sort_order == "newest"))
    return resolved + unresolved


def matches_search(quote: Quote, search_term: str) -> bool:
    """Every whitespace-separated term must appear in customer/project/number."""
    terms = turkish_lower(search_term).split()
    if not terms:
        return True
    text = turkish_lower(f"{quote.customer_name} {quote.project_name} {quote.quote_number}")
    return all(term in text for term in terms)


def within_date_range(quote: Quote, date_range: str, now: Optional[datetime] = None) -> bool:
    """
    Creation date inside last 30/90 days (counted from start of day).
    Quotes whose timestamp has not resolved yet always pass.
    """
    days = DATE_RANGE_DAYS.get(date_range)
    if days is None or quote.created_at is None:
        return True

    now = now or datetime.now(timezone.utc)
    cutoff = datetime.combine((now - timedelta(days=days)).date(), time.min, tzinfo=now.tzinfo)
    return quote.created_at.timestamp() >= cutoff.timestamp()


def quote_matches(
    quote: Quote,
    quote_filter: QuoteFilter,
    now: Optional[datetime] = None,
    check_status: bool = True
) -> bool:
    if not matches_search(quote, quote_filter.search_term):
        return False
    if not within_date_range(quote, quote_filter.date_range, now):
        return False
    if check_status and quote_filter.status is not None:
        return quote.status == quote_filter.status
    return True


# ============================================================================
# Grouping
# ============================================================================

def group_revisions(
    quotes: Iterable[Quote],
    assignments: Iterable[JobAssignment] = (),
    personnel_names: Optional[Mapping[str, str]] = None,
    sort_order: SortOrder = "newest"
) -> List[RevisionCluster]:
    """
    Cluster quotes by root_id.

    Versions are sorted newest first, so versions[0] is the latest revision.
    Clusters are sorted by latest.created_at; unresolved timestamps sort last
    whatever the requested order. Quotes without root_id are skipped.
    """
    personnel_names = personnel_names or {}
    assigned_to: Dict[str, str] = {a.quote_id: a.personnel_id for a in assignments}

    partitions: Dict[str, List[Quote]] = {}
    for quote in quotes:
        if not quote.root_id:
            continue
        partitions.setdefault(quote.root_id, []).append(quote)

    clusters = []
    for root_id, versions in partitions.items():
        versions = sorted(versions, key=lambda q: q.version, reverse=True)

        is_assigned = False
        assigned_name = None
        for version in versions:
            if version.id in assigned_to:
                is_assigned = True
                assigned_name = personnel_names.get(assigned_to[version.id])
                break

        clusters.append(RevisionCluster(
            root_id=root_id,
            versions=versions,
            is_assigned=is_assigned,
            assigned_personnel_name=assigned_name,
        ))

    return _sort_by_created_at(clusters, lambda c: c.latest.created_at, sort_order)


def flatten_clusters(clusters: Iterable[RevisionCluster]) -> List[Quote]:
    """Every version of every cluster, in cluster order."""
    return [quote for cluster in clusters for quote in cluster.versions]


def flatten_filtered(
    quotes: Iterable[Quote],
    predicate: Optional[Callable[[Quote], bool]] = None,
    sort_order: SortOrder = "newest"
) -> List[Quote]:
    """One row per stored version, filtered and sorted by created_at."""
    rows = [q for q in quotes if predicate is None or predicate(q)]
    return _sort_by_created_at(rows, lambda q: q.created_at, sort_order)


def find_cluster(clusters: Iterable[RevisionCluster], root_id: str) -> Optional[RevisionCluster]:
    return next((c for c in clusters if c.root_id == root_id), None)


def browse_quotes(
    quotes: Iterable[Quote],
    quote_filter: Optional[QuoteFilter] = None,
    assignments: Iterable[JobAssignment] = (),
    personnel_names: Optional[Mapping[str, str]] = None,
    now: Optional[datetime] = None
) -> QuoteListing:
    """
    The quote list as the user browses it.

    With no status filter the list is grouped by revision cluster and search
    and date filters apply to each cluster's latest revision. Selecting a
    status switches to the flat view so every matching version is visible,
    including older versions hidden inside a cluster.
    Stats always describe the flat filtered rows.
    """
    quotes = list(quotes)
    quote_filter = quote_filter or QuoteFilter()
    now = now or datetime.now(timezone.utc)

    rows = flatten_filtered(
        quotes,
        lambda q: quote_matches(q, quote_filter, now),
        quote_filter.sort_order,
    )
    stats = list_stats(rows)

    if quote_filter.status is not None:
        return QuoteListing(mode="flat", rows=rows, stats=stats)

    clusters = [
        c for c in group_revisions(quotes, assignments, personnel_names, quote_filter.sort_order)
        if quote_matches(c.latest, quote_filter, now, check_status=False)
    ]
    return QuoteListing(mode="grouped", clusters=clusters, stats=stats)


def paginate(entries: List, page: int, per_page: int = 10) -> Tuple[List, int]:
    """Slice for a 1-based page, plus the total page count."""
    per_page = max(per_page, 1)
    total_pages = (len(entries) + per_page - 1) // per_page
    page = max(page, 1)
    start = (page - 1) * per_page
    return entries[start:start + per_page], total_pages


# ============================================================================
# Mutations (planned, not applied)
# ============================================================================

def delete_quote_ops(quote: Quote) -> List[WriteOp]:
    """
    Every stored line item of the quote, then the quote document.

    Items are deleted by parent, so quotes loaded without items (list rows)
    leave nothing behind.
    """
    return [
        WriteOp(op="delete", collection=QUOTE_ITEMS_TABLE, parent_id=quote.id),
        WriteOp(op="delete", collection=QUOTES_TABLE, doc_id=quote.id),
    ]


def set_quote_ops(quote: Quote) -> List[WriteOp]:
    """Quote document first, then every line item."""
    ops = [WriteOp(op="set", collection=QUOTES_TABLE, doc_id=quote.id, data=quote_to_row(quote))]
    ops.extend(
        WriteOp(
            op="set",
            collection=QUOTE_ITEMS_TABLE,
            doc_id=item.id,
            parent_id=quote.id,
            data=line_item_to_row(item, quote.id),
        )
        for item in quote.items
    )
    return ops


def plan_create_revision(
    cluster: RevisionCluster,
    source: Quote,
    fresh_rates: ExchangeRateSet,
    new_id: Optional[str] = None,
    now: Optional[datetime] = None
) -> Tuple[Quote, WriteBatch]:
    """
    Copy source into a new revision of the same cluster.

    Scalars and every line item are copied (items get new ids, they are never
    shared between revisions). The new revision gets version max+1, status
    Draft, a fresh created_at and the freshly fetched rate set. total_amount
    is recomputed under the new rates.
    """
    if source.root_id != cluster.root_id or all(v.id != source.id for v in cluster.versions):
        raise OrphanRevision(
            f"Quote {source.id} is not a revision of cluster {cluster.root_id}"
        )

    # Raises IncompleteRateSet / InvalidRate before anything is planned
    exchange_rate_for("USD", fresh_rates)
    exchange_rate_for("EUR", fresh_rates)

    new_id = new_id or str(uuid4())
    now = now or datetime.now(timezone.utc)

    items = [
        item.model_copy(update={"id": str(uuid4()), "order_index": idx})
        for idx, item in enumerate(source.items)
    ]

    revision = source.model_copy(update={
        "id": new_id,
        "root_id": cluster.root_id,
        "version": cluster.max_version + 1,
        "items": items,
        "exchange_rates": fresh_rates,
        "status": QuoteStatus.DRAFT,
        "created_at": now,
        "version_note": f"Revision (copied from v{source.version})",
        "total_amount": sum_items(items, fresh_rates)["sell"],
    })

    return revision, WriteBatch(ops=set_quote_ops(revision))


def plan_delete_version(cluster: RevisionCluster, quote_id: str) -> Tuple[RevisionCluster, WriteBatch]:
    """
    Delete one version and its line items.

    Refused with EmptyClusterDeletion when it is the only version left,
    use plan_delete_cluster for that. Returns the remaining cluster.
    """
    target = next((v for v in cluster.versions if v.id == quote_id), None)
    if target is None:
        raise RevisionNotFound(f"Quote {quote_id} is not a revision of cluster {cluster.root_id}")

    if len(cluster.versions) <= 1:
        raise EmptyClusterDeletion(
            f"Cannot delete the only version of quote {cluster.root_id}; delete the whole quote instead"
        )

    survivors = [v for v in cluster.versions if v.id != quote_id]
    if any(v.root_id != cluster.root_id for v in survivors):
        raise OrphanRevision(f"Cluster {cluster.root_id} holds revisions of another root")

    remaining = cluster.model_copy(update={"versions": survivors})
    return remaining, WriteBatch(ops=delete_quote_ops(target))


def plan_delete_cluster(
    cluster: RevisionCluster,
    all_quotes: Optional[Iterable[Quote]] = None
) -> WriteBatch:
    """
    Delete every version of the cluster and all their line items.

    When all_quotes is given, a stored revision of the same root missing
    from the cluster would survive pointing at a deleted quote, so the
    delete is refused with OrphanRevision.
    """
    if all_quotes is not None:
        cluster_ids = {v.id for v in cluster.versions}
        stragglers = [
            q.id for q in all_quotes
            if q.root_id == cluster.root_id and q.id not in cluster_ids
        ]
        if stragglers:
            raise OrphanRevision(
                f"Cluster {cluster.root_id} is stale, revisions not included: {', '.join(stragglers)}"
            )

    ops: List[WriteOp] = []
    for version in cluster.versions:
        ops.extend(delete_quote_ops(version))
    return WriteBatch(ops=ops)
