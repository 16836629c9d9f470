from decimal import Decimal

import pytest

from restaurant_pos.services.catalog import (
    ALL_CATEGORIES,
    Item,
    ItemNotFound,
    VariantNotFound,
    VariantSelectionRequired,
    filter_by_category,
    filter_by_ids,
    filter_by_search,
    filter_menu,
    resolve_selection,
)
from tests.conftest import ITEM_A, ITEM_B, ITEM_C

ITEMS = [ITEM_A, ITEM_B, ITEM_C]


def test_item_without_variants_uses_base_price():
    selection = resolve_selection(ITEM_A)

    assert selection.variant is None
    assert selection.unit_price == Decimal("10.00")


def test_item_with_variants_requires_a_choice():
    with pytest.raises(VariantSelectionRequired) as exc:
        resolve_selection(ITEM_B)

    assert exc.value.default.id == "S"
    assert [v.id for v in exc.value.options] == ["S", "L"]


def test_chosen_variant_overrides_base_price():
    selection = resolve_selection(ITEM_B, "L")

    assert selection.unit_price == Decimal("12.00")


def test_unknown_variant_is_rejected():
    with pytest.raises(VariantNotFound):
        resolve_selection(ITEM_B, "XL")
    with pytest.raises(VariantNotFound):
        resolve_selection(ITEM_A, "L")


def test_catalog_lookup(catalog):
    assert catalog.get("it-3") is ITEM_C
    assert catalog.select("it-2", "S").variant.name == "S"
    with pytest.raises(ItemNotFound):
        catalog.get("missing")


def test_empty_suggestions_disable_filter():
    assert filter_by_ids(ITEMS, []) == ITEMS


def test_suggestions_keep_only_matching_ids():
    assert filter_by_ids(ITEMS, ["it-1"]) == [ITEM_A]
    assert filter_by_ids(ITEMS, ["nope"]) == []


def test_category_filter():
    assert filter_by_category(ITEMS, ALL_CATEGORIES) == ITEMS
    assert filter_by_category(ITEMS, None) == ITEMS
    assert filter_by_category(ITEMS, "BEBIDAS") == [ITEM_C]


def test_search_is_case_insensitive():
    assert filter_by_search(ITEMS, "item") == [ITEM_A, ITEM_B]
    assert filter_by_search(ITEMS, "CHICHA") == [ITEM_C]
    assert filter_by_search(ITEMS, "") == ITEMS


def test_filters_compose_in_any_order():
    expected = filter_menu(ITEMS, category="PLATOS", search="item", suggested_ids=["it-2", "it-3"])
    reordered = filter_by_category(
        filter_by_ids(filter_by_search(ITEMS, "item"), ["it-2", "it-3"]),
        "PLATOS",
    )

    assert expected == reordered == [ITEM_B]


def test_item_from_stored_dict():
    item = Item.from_dict({
        "id": 7,
        "name": "Seco",
        "price": "22.50",
        "category": "PLATOS",
        "variants": [{"id": "p", "name": "Personal", "price": 22.5}],
    })

    assert item.id == "7"
    assert item.price == Decimal("22.50")
    assert item.variants[0].price == Decimal("22.5")
    assert item.is_popular is False
