"""Collaborative edits on a shopping list blob.

Items are addressed by category name + index and identified by their string
value: the checked set holds strings, so duplicated strings share one checked
state. Every function returns a new ShoppingListData and never mutates its input.
"""

from typing import Optional

from mealshare.config import settings
from mealshare.schemas.shopping_list import ShoppingListCategory, ShoppingListData


class ShoppingListError(Exception):
    """Base for edits that cannot be applied to the current list state."""


class ListNotReadyError(ShoppingListError):
    pass


class CategoryNotFoundError(ShoppingListError):
    pass


class ItemIndexError(ShoppingListError):
    pass


class ItemNotFoundError(ShoppingListError):
    pass


class MalformedListError(ShoppingListError):
    """Stored blob does not match the list schema and was not migrated."""


def _category_position(data: ShoppingListData, name: str) -> int:
    for position, category in enumerate(data.categories):
        if category.name == name:
            return position
    raise CategoryNotFoundError(f"category {name!r} not in list")


def _check_index(category: ShoppingListCategory, index: int) -> None:
    if index < 0 or index >= len(category.items):
        raise ItemIndexError(
            f"index {index} out of range for category {category.name!r} ({len(category.items)} items)"
        )


def _occurs(categories: list[ShoppingListCategory], item: str) -> bool:
    return any(item in category.items for category in categories)


def _replace_category(
    data: ShoppingListData, position: int, items: list[str]
) -> list[ShoppingListCategory]:
    categories = list(data.categories)
    categories[position] = ShoppingListCategory(name=categories[position].name, items=items)
    return categories


def toggle_item(data: ShoppingListData, item: str) -> ShoppingListData:
    """Flip the checked state of every copy of ``item``.

    Unchecking a stale entry that no longer appears in any category is allowed;
    checking an unknown string is not.
    """
    checked = list(data.checked_items)
    if item in checked:
        checked = [c for c in checked if c != item]
    elif _occurs(data.categories, item):
        checked.append(item)
    else:
        raise ItemNotFoundError(f"item {item!r} not in list")
    return ShoppingListData(categories=list(data.categories), checked_items=checked)


def edit_item(data: ShoppingListData, category: str, index: int, value: str) -> ShoppingListData:
    position = _category_position(data, category)
    target = data.categories[position]
    _check_index(target, index)
    old_value = target.items[index]

    items = list(target.items)
    items[index] = value
    categories = _replace_category(data, position, items)

    checked = list(data.checked_items)
    if old_value in checked and old_value != value:
        if not _occurs(categories, old_value):
            checked.remove(old_value)
        if value not in checked:
            checked.append(value)
    return ShoppingListData(categories=categories, checked_items=checked)


def _insert_position(data: ShoppingListData, name: str, category_order: list[str]) -> int:
    if name in category_order:
        rank = category_order.index(name)
        for position, existing in enumerate(data.categories):
            if existing.name in category_order and category_order.index(existing.name) > rank:
                return position
        return len(data.categories)
    for position, existing in enumerate(data.categories):
        if existing.name == settings.fallback_category:
            return position
    return len(data.categories)


def add_item(
    data: ShoppingListData,
    category: str,
    item: str,
    category_order: Optional[list[str]] = None,
) -> ShoppingListData:
    """Append ``item`` to ``category``, creating the category when missing."""
    try:
        position = _category_position(data, category)
    except CategoryNotFoundError:
        categories = list(data.categories)
        categories.insert(
            _insert_position(data, category, category_order or []),
            ShoppingListCategory(name=category, items=[item]),
        )
    else:
        categories = _replace_category(data, position, [*data.categories[position].items, item])
    return ShoppingListData(categories=categories, checked_items=list(data.checked_items))


def remove_item(data: ShoppingListData, category: str, index: int) -> ShoppingListData:
    """Delete one item; an emptied category is dropped.

    The removed string is always purged from the checked set, which also
    unchecks a surviving duplicate of the same string.
    """
    position = _category_position(data, category)
    target = data.categories[position]
    _check_index(target, index)
    removed = target.items[index]

    items = [it for i, it in enumerate(target.items) if i != index]
    if items:
        categories = _replace_category(data, position, items)
    else:
        categories = [c for i, c in enumerate(data.categories) if i != position]
    checked = [c for c in data.checked_items if c != removed]
    return ShoppingListData(categories=categories, checked_items=checked)
