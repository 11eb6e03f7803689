"""
Quote Service

Loads quotes, line items and job assignments from the store and commits the
write batches planned by revision_engine / quote_planner.

Batches are applied by the apply_quote_batch database function, which runs
all operations in one transaction: a revision is never stored without its
items, and a deleted quote never leaves its items behind.
"""

import logging
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from quote_models import (
    ExchangeRateSet,
    JobAssignment,
    LineItem,
    Quote,
    QuoteFilter,
    QuoteListing,
    QuoteStatus,
    RevisionCluster,
    WriteBatch,
)
from quote_mapper import assignment_from_row, quote_from_row, quotes_from_rows
from revision_engine import (
    QUOTES_TABLE,
    QUOTE_ITEMS_TABLE,
    browse_quotes,
    group_revisions,
    plan_create_revision,
    plan_delete_cluster,
    plan_delete_version,
)
from quote_planner import (
    next_quote_number,
    plan_new_quote,
    plan_save_quote,
    plan_status_change,
)
from quote_errors import RevisionNotFound
from services.database import get_supabase
from services.currency_service import rates_for_new_quote

logger = logging.getLogger(__name__)


# =============================================================================
# READ
# =============================================================================

def get_all_quotes() -> List[Quote]:
    """All stored revisions, newest first, without line items."""
    supabase = get_supabase()
    result = (
        supabase.table(QUOTES_TABLE)
        .select("*")
        .order("created_at", desc=True)
        .execute()
    )
    return quotes_from_rows(result.data or [])


def _get_item_rows(quote_ids: List[str]) -> List[Dict]:
    if not quote_ids:
        return []
    supabase = get_supabase()
    result = (
        supabase.table(QUOTE_ITEMS_TABLE)
        .select("*")
        .in_("quote_id", quote_ids)
        .order("order_index")
        .execute()
    )
    return result.data or []


def get_quote(quote_id: str) -> Optional[Quote]:
    """One revision with its line items."""
    supabase = get_supabase()
    result = (
        supabase.table(QUOTES_TABLE)
        .select("*")
        .eq("id", quote_id)
        .execute()
    )
    if not result.data:
        return None
    return quote_from_row(result.data[0], _get_item_rows([quote_id]))


def get_cluster(root_id: str) -> Optional[RevisionCluster]:
    """
    Every stored revision of a root, with line items.

    A row without root_id is matched by its own id, since it is the root of
    its single-version cluster.
    """
    supabase = get_supabase()
    result = (
        supabase.table(QUOTES_TABLE)
        .select("*")
        .or_(f"root_id.eq.{root_id},id.eq.{root_id}")
        .execute()
    )
    rows = result.data or []
    if not rows:
        return None

    quotes = [
        q for q in quotes_from_rows(rows, _get_item_rows([r["id"] for r in rows]))
        if q.root_id == root_id
    ]
    clusters = group_revisions(quotes)
    return clusters[0] if clusters else None


def get_job_assignments() -> List[JobAssignment]:
    supabase = get_supabase()
    result = (
        supabase.table("job_assignments")
        .select("id, quote_id, personnel_id")
        .execute()
    )
    return [assignment_from_row(row) for row in (result.data or [])]


def get_personnel_names() -> Dict[str, str]:
    supabase = get_supabase()
    result = (
        supabase.table("personnel")
        .select("id, name")
        .execute()
    )
    return {row["id"]: row.get("name", "") for row in (result.data or [])}


def browse(quote_filter: Optional[QuoteFilter] = None, now: Optional[datetime] = None) -> QuoteListing:
    """Quote list (grouped or flat depending on the status filter)."""
    return browse_quotes(
        get_all_quotes(),
        quote_filter,
        assignments=get_job_assignments(),
        personnel_names=get_personnel_names(),
        now=now,
    )


# =============================================================================
# WRITE
# =============================================================================

def commit_batch(batch: WriteBatch) -> int:
    """
    Apply a write batch atomically.

    Returns the number of operations applied. Database errors propagate;
    in that case nothing of the batch was applied.
    """
    if not batch.ops:
        return 0

    supabase = get_supabase()
    supabase.rpc("apply_quote_batch", {"p_ops": batch.to_payload()}).execute()
    logger.info(f"Committed quote batch with {len(batch)} operations")
    return len(batch)


def create_quote(
    customer_id: str,
    customer_name: str,
    project_name: str,
    template_items: Iterable[LineItem] = (),
    now: Optional[datetime] = None
) -> Quote:
    """Create version 1 of a new quote with today's rates and the next number."""
    supabase = get_supabase()
    numbers = supabase.table(QUOTES_TABLE).select("quote_number").execute()
    quote_number = next_quote_number((row.get("quote_number") for row in (numbers.data or [])), now=now)

    quote, batch = plan_new_quote(
        customer_id,
        customer_name,
        project_name,
        quote_number,
        rates_for_new_quote(),
        template_items=template_items,
        now=now,
    )
    commit_batch(batch)
    return quote


def create_revision(source_id: str) -> Quote:
    """Copy a stored revision into a new version with freshly fetched rates."""
    source = get_quote(source_id)
    if source is None:
        raise RevisionNotFound(f"Quote {source_id} not found")

    cluster = get_cluster(source.root_id)
    revision, batch = plan_create_revision(cluster, source, rates_for_new_quote())
    commit_batch(batch)
    logger.info(f"Created revision v{revision.version} of {cluster.root_id} from v{source.version}")
    return revision


def save_quote(quote_id: str, items: Iterable[LineItem], rate_set: ExchangeRateSet) -> Quote:
    """Store edited items/rates and refresh the cached total."""
    stored = get_quote(quote_id)
    if stored is None:
        raise RevisionNotFound(f"Quote {quote_id} not found")

    saved, batch = plan_save_quote(
        stored,
        items,
        rate_set,
        previous_item_ids=[i.id for i in stored.items if i.id],
    )
    commit_batch(batch)
    return saved


def delete_version(quote_id: str) -> RevisionCluster:
    """Delete one revision (refused if it is the last one). Returns what is left."""
    quote = get_quote(quote_id)
    if quote is None:
        raise RevisionNotFound(f"Quote {quote_id} not found")

    cluster = get_cluster(quote.root_id)
    remaining, batch = plan_delete_version(cluster, quote_id)
    commit_batch(batch)
    return remaining


def delete_cluster(root_id: str) -> int:
    """Delete a quote with all its revisions and line items."""
    cluster = get_cluster(root_id)
    if cluster is None:
        raise RevisionNotFound(f"Quote {root_id} not found")

    batch = plan_delete_cluster(cluster, get_all_quotes())
    return commit_batch(batch)


def change_status(quote_ids: Iterable[str], status: QuoteStatus) -> int:
    """Bulk status change of selected revisions."""
    return commit_batch(plan_status_change(quote_ids, status))


def delete_selected(quote_ids: Iterable[str]) -> Tuple[int, List[str]]:
    """
    Bulk delete of selected revisions from the list.

    Whole clusters are deleted when every version is selected, otherwise
    versions are deleted one by one. All plans are combined and committed
    as one batch. Returns (operations applied, unknown ids).
    """
    selected = set(quote_ids)
    quotes = get_all_quotes()
    clusters = group_revisions(quotes)

    batch = WriteBatch()
    for cluster in clusters:
        ids = {v.id for v in cluster.versions}
        chosen = ids & selected
        if not chosen:
            continue
        if chosen == ids:
            batch = WriteBatch(ops=batch.ops + plan_delete_cluster(cluster, quotes).ops)
            continue
        for quote_id in sorted(chosen):
            cluster, single = plan_delete_version(cluster, quote_id)
            batch = WriteBatch(ops=batch.ops + single.ops)

    known = {q.id for q in quotes}
    skipped = sorted(selected - known)
    if skipped:
        logger.warning(f"Selected quotes not found, skipped: {skipped}")

    return commit_batch(batch), skipped
