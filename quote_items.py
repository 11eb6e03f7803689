"""
Quote line item editing helpers

Pure list transforms used by the quote editor: adding catalog products,
renaming and removing presentation groups. Every function returns a new
list and leaves its input untouched.
"""

from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from quote_models import InstallationType, LineItem, Product
from pricing_engine import resolve_group_name
from quote_settings import get_pricing_config


def resolve_root_installation_type(
    installation_type_id: Optional[str],
    installation_types: Iterable[InstallationType]
) -> Optional[InstallationType]:
    """Walk parent links up to the top-level installation type."""
    if not installation_type_id:
        return None

    by_id: Dict[str, InstallationType] = {t.id: t for t in installation_types}
    current = by_id.get(installation_type_id)
    seen = set()
    while current is not None and current.parent_id and current.id not in seen:
        seen.add(current.id)
        parent = by_id.get(current.parent_id)
        if parent is None:
            break
        current = parent
    return current


def line_item_from_product(
    product: Product,
    group_name: Optional[str] = None,
    profit_margin: Optional[Decimal] = None,
    order_index: int = 0
) -> LineItem:
    """
    New line item copied from a catalog product.

    Later edits stay local to the item, nothing is re-synced from the catalog.
    """
    config = get_pricing_config()
    return LineItem(
        product_id=product.id,
        name=product.name,
        brand=product.brand,
        model=product.model,
        unit=product.unit,
        quantity=Decimal("1"),
        list_price=product.list_price,
        currency=product.currency,
        discount_rate=product.discount_rate,
        profit_margin=config.default_profit_margin if profit_margin is None else profit_margin,
        group_name=resolve_group_name(group_name, config.default_group_name),
        order_index=order_index,
    )


def add_products(
    items: Iterable[LineItem],
    products: Iterable[Product],
    group_name: Optional[str] = None,
    installation_types: Iterable[InstallationType] = (),
    default_margin: Optional[Decimal] = None
) -> List[LineItem]:
    """
    Add catalog products to an item list.

    Target group: explicit group_name, else the product's top-level
    installation type name, else the sentinel group. A product already
    present in the target group gets its quantity bumped by one.
    """
    config = get_pricing_config()
    result = list(items)
    installation_types = list(installation_types)

    for product in products:
        target = group_name
        if not target and product.installation_type_id:
            root = resolve_root_installation_type(product.installation_type_id, installation_types)
            target = root.name if root else None
        target = resolve_group_name(target, config.default_group_name)

        existing = next(
            (
                idx for idx, item in enumerate(result)
                if item.product_id == product.id
                and resolve_group_name(item.group_name, config.default_group_name) == target
            ),
            None
        )

        if existing is not None:
            current = result[existing]
            result[existing] = current.model_copy(update={"quantity": current.quantity + 1})
        else:
            result.append(line_item_from_product(
                product,
                group_name=target,
                profit_margin=default_margin,
                order_index=len(result),
            ))

    return result


def rename_group(items: Iterable[LineItem], old_name: str, new_name: str) -> List[LineItem]:
    """Move every item of old_name into new_name (blank new_name is a no-op)."""
    new_name = (new_name or "").strip()
    if not new_name or new_name == old_name:
        return list(items)

    sentinel = get_pricing_config().default_group_name
    return [
        item.model_copy(update={"group_name": new_name})
        if resolve_group_name(item.group_name, sentinel) == old_name else item
        for item in items
    ]


def remove_group(items: Iterable[LineItem], group_name: str) -> List[LineItem]:
    """Drop every item of the group and renumber order_index."""
    sentinel = get_pricing_config().default_group_name
    kept = [
        item for item in items
        if resolve_group_name(item.group_name, sentinel) != group_name
    ]
    return [item.model_copy(update={"order_index": idx}) for idx, item in enumerate(kept)]
