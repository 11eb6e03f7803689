"""
Tests for line item editing helpers
"""

from decimal import Decimal
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from quote_models import Currency, InstallationType, Product
from quote_items import (
    add_products,
    line_item_from_product,
    remove_group,
    rename_group,
    resolve_root_installation_type,
)
from conftest import make_line_item


TYPES = [
    InstallationType(id="heat", name="Isıtma"),
    InstallationType(id="boiler", name="Kazan", parent_id="heat"),
    InstallationType(id="wall", name="Duvar Tipi", parent_id="boiler"),
    InstallationType(id="cool", name="Soğutma"),
]


def make_product(product_id="prod-1", installation_type_id=None, **overrides):
    data = {
        "id": product_id,
        "name": "Kombi",
        "brand": "Demirdöküm",
        "model": "Nitromix",
        "unit": "adet",
        "list_price": Decimal("500"),
        "currency": Currency.EUR,
        "discount_rate": Decimal("0.15"),
        "installation_type_id": installation_type_id,
    }
    data.update(overrides)
    return Product(**data)


class TestInstallationTypes:

    def test_walks_to_root(self):
        assert resolve_root_installation_type("wall", TYPES).name == "Isıtma"

    def test_root_is_itself(self):
        assert resolve_root_installation_type("cool", TYPES).id == "cool"

    def test_unknown(self):
        assert resolve_root_installation_type("nope", TYPES) is None
        assert resolve_root_installation_type(None, TYPES) is None

    def test_cycle_does_not_loop(self):
        cyclic = [
            InstallationType(id="a", name="A", parent_id="b"),
            InstallationType(id="b", name="B", parent_id="a"),
        ]
        assert resolve_root_installation_type("a", cyclic) is not None


class TestLineItemFromProduct:

    def test_copies_catalog_fields(self):
        item = line_item_from_product(make_product(), group_name="Isıtma")

        assert item.product_id == "prod-1"
        assert item.brand == "Demirdöküm"
        assert item.list_price == Decimal("500")
        assert item.currency == Currency.EUR
        assert item.discount_rate == Decimal("0.15")
        assert item.quantity == Decimal("1")
        assert item.profit_margin == Decimal("0.20")
        assert item.group_name == "Isıtma"

    def test_no_group_goes_to_sentinel(self):
        assert line_item_from_product(make_product()).group_name == "Other"


class TestAddProducts:

    def test_group_from_root_installation_type(self):
        items = add_products([], [make_product(installation_type_id="wall")], installation_types=TYPES)
        assert items[0].group_name == "Isıtma"

    def test_explicit_group_wins(self):
        items = add_products(
            [], [make_product(installation_type_id="wall")],
            group_name="Kazan Dairesi", installation_types=TYPES,
        )
        assert items[0].group_name == "Kazan Dairesi"

    def test_same_product_same_group_bumps_quantity(self):
        items = add_products([], [make_product()], group_name="Isıtma")
        items = add_products(items, [make_product()], group_name="Isıtma")

        assert len(items) == 1
        assert items[0].quantity == Decimal("2")

    def test_same_product_other_group_is_new_row(self):
        items = add_products([], [make_product()], group_name="Isıtma")
        items = add_products(items, [make_product()], group_name="Soğutma")

        assert len(items) == 2
        assert [i.order_index for i in items] == [0, 1]

    def test_input_is_not_mutated(self):
        original = [make_line_item(product_id="prod-1", group_name="Isıtma")]
        add_products(original, [make_product()], group_name="Isıtma")
        assert original[0].quantity == Decimal("1")

    def test_custom_margin(self):
        items = add_products([], [make_product()], default_margin=Decimal("0.35"))
        assert items[0].profit_margin == Decimal("0.35")


class TestGroups:

    def test_rename_group(self):
        items = [
            make_line_item(item_id="a", group_name="Isıtma"),
            make_line_item(item_id="b", group_name="Soğutma"),
        ]
        renamed = rename_group(items, "Isıtma", "Kalorifer")
        assert [i.group_name for i in renamed] == ["Kalorifer", "Soğutma"]

    def test_rename_sentinel_group(self):
        renamed = rename_group([make_line_item(group_name=None)], "Other", "Genel")
        assert renamed[0].group_name == "Genel"

    def test_blank_rename_is_noop(self):
        items = [make_line_item(group_name="Isıtma")]
        assert rename_group(items, "Isıtma", "  ") == items

    def test_remove_group_renumbers(self):
        items = [
            make_line_item(item_id="a", group_name="Isıtma", order_index=0),
            make_line_item(item_id="b", group_name="Soğutma", order_index=1),
            make_line_item(item_id="c", group_name="Isıtma", order_index=2),
            make_line_item(item_id="d", group_name="Havalandırma", order_index=3),
        ]
        kept = remove_group(items, "Isıtma")
        assert [(i.id, i.order_index) for i in kept] == [("b", 0), ("d", 1)]
