import pytest

from mealshare.schemas.shopping_list import ShoppingListCategory, ShoppingListData
from mealshare.services.shopping.mutations import (
    CategoryNotFoundError,
    ItemIndexError,
    ItemNotFoundError,
    add_item,
    edit_item,
    remove_item,
    toggle_item,
)


def _data(checked=None):
    return ShoppingListData(
        categories=[
            ShoppingListCategory(name="Frukt og grønt", items=["2 løk", "3 gulrøtter"]),
            ShoppingListCategory(name="Meieri", items=["4 dl melk", "ost"]),
        ],
        checked_items=checked or [],
    )


def test_toggle_twice_restores_checked_set():
    data = _data(checked=["ost"])
    once = toggle_item(data, "2 løk")
    assert set(once.checked_items) == {"ost", "2 løk"}
    twice = toggle_item(once, "2 løk")
    assert set(twice.checked_items) == {"ost"}


def test_toggle_does_not_mutate_input():
    data = _data()
    toggle_item(data, "ost")
    assert data.checked_items == []


def test_toggle_unknown_item_rejected_but_stale_uncheck_allowed():
    with pytest.raises(ItemNotFoundError):
        toggle_item(_data(), "sjokolade")
    result = toggle_item(_data(checked=["sjokolade"]), "sjokolade")
    assert result.checked_items == []


def test_duplicate_strings_share_checked_state():
    data = ShoppingListData(
        categories=[
            ShoppingListCategory(name="Meieri", items=["melk"]),
            ShoppingListCategory(name="Annet", items=["melk"]),
        ]
    )
    result = toggle_item(data, "melk")
    assert result.checked_items == ["melk"]


def test_add_then_remove_last_restores_categories():
    data = _data()
    added = add_item(data, "Meieri", "rømme")
    assert added.categories[1].items == ["4 dl melk", "ost", "rømme"]
    removed = remove_item(added, "Meieri", 2)
    assert removed.categories == data.categories


def test_add_creates_category_in_household_order():
    order = ["Frukt og grønt", "Kjøtt og fisk", "Meieri", "Annet"]
    result = add_item(_data(), "Kjøtt og fisk", "kyllingfilet", category_order=order)
    assert [c.name for c in result.categories] == ["Frukt og grønt", "Kjøtt og fisk", "Meieri"]


def test_add_unknown_category_goes_before_fallback():
    data = ShoppingListData(
        categories=[
            ShoppingListCategory(name="Meieri", items=["melk"]),
            ShoppingListCategory(name="Annet", items=["servietter"]),
        ]
    )
    result = add_item(data, "Hage", "plantejord")
    assert [c.name for c in result.categories] == ["Meieri", "Hage", "Annet"]


def test_edit_replaces_item_and_moves_checked_state():
    data = _data(checked=["ost"])
    result = edit_item(data, "Meieri", 1, "revet ost")
    assert result.categories[1].items == ["4 dl melk", "revet ost"]
    assert result.checked_items == ["revet ost"]


def test_edit_keeps_checked_entry_while_duplicate_remains():
    data = ShoppingListData(
        categories=[ShoppingListCategory(name="Meieri", items=["melk", "melk"])],
        checked_items=["melk"],
    )
    result = edit_item(data, "Meieri", 0, "lettmelk")
    assert set(result.checked_items) == {"melk", "lettmelk"}


@pytest.mark.parametrize("index", [-1, 2, 99])
def test_out_of_range_index_rejected(index):
    with pytest.raises(ItemIndexError):
        remove_item(_data(), "Meieri", index)
    with pytest.raises(ItemIndexError):
        edit_item(_data(), "Meieri", index, "x")


def test_unknown_category_rejected():
    with pytest.raises(CategoryNotFoundError):
        remove_item(_data(), "Drikke", 0)


def test_remove_last_item_drops_category():
    data = ShoppingListData(
        categories=[
            ShoppingListCategory(name="Meieri", items=["melk"]),
            ShoppingListCategory(name="Annet", items=["servietter"]),
        ],
        checked_items=["melk"],
    )
    result = remove_item(data, "Meieri", 0)
    assert [c.name for c in result.categories] == ["Annet"]
    assert result.checked_items == []


def test_remove_purges_checked_string_even_with_duplicate():
    data = ShoppingListData(
        categories=[ShoppingListCategory(name="Meieri", items=["melk", "melk"])],
        checked_items=["melk"],
    )
    result = remove_item(data, "Meieri", 0)
    assert result.categories[0].items == ["melk"]
    assert result.checked_items == []


def test_concurrent_edits_on_different_items_both_survive():
    base = _data()
    first = toggle_item(base, "2 løk")
    second = remove_item(first, "Meieri", 1)
    assert "2 løk" in second.checked_items
    assert second.categories[1].items == ["4 dl melk"]
