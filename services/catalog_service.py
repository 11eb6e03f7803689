"""
Catalog Service - product and installation type lookups

Products are only read when a line item is first created from the catalog.
Later edits are local to the line item.
"""

from typing import Iterable, List, Optional

from quote_models import InstallationType, LineItem, Product
from quote_mapper import installation_type_from_row, product_from_row
from quote_items import add_products
from services.database import get_supabase


PRODUCT_COLUMNS = "id, name, brand, model, unit, list_price, currency, discount_rate, installation_type_id"


def get_product(product_id: str) -> Optional[Product]:
    """Get a catalog product by id."""
    supabase = get_supabase()
    result = (
        supabase.table("products")
        .select(PRODUCT_COLUMNS)
        .eq("id", product_id)
        .execute()
    )
    if not result.data:
        return None
    return product_from_row(result.data[0])


def get_products(product_ids: Iterable[str]) -> List[Product]:
    """Get catalog products, preserving the requested order."""
    ids = list(dict.fromkeys(product_ids))
    if not ids:
        return []

    supabase = get_supabase()
    result = (
        supabase.table("products")
        .select(PRODUCT_COLUMNS)
        .in_("id", ids)
        .execute()
    )
    by_id = {row["id"]: product_from_row(row) for row in (result.data or [])}
    return [by_id[i] for i in ids if i in by_id]


def get_installation_types() -> List[InstallationType]:
    """Whole installation type taxonomy (small, read at once)."""
    supabase = get_supabase()
    result = (
        supabase.table("installation_types")
        .select("id, name, parent_id")
        .execute()
    )
    return [installation_type_from_row(row) for row in (result.data or [])]


def add_catalog_products(
    items: Iterable[LineItem],
    product_ids: Iterable[str],
    group_name: Optional[str] = None
) -> List[LineItem]:
    """
    Add products picked in the product selector to the editor's items.

    Without an explicit group, each product lands in the group named after
    its top-level installation type.
    """
    products = get_products(product_ids)
    installation_types = get_installation_types() if not group_name else []
    return add_products(items, products, group_name=group_name, installation_types=installation_types)
