"""Read-modify-write of the shopping-list blob, one row lock per operation."""

from typing import Callable, Optional

from pydantic import ValidationError
from sqlmodel import Session

from mealshare.logging import get_logger
from mealshare.schemas.shopping_list import ShoppingListData
from mealshare.services.shopping import mutations
from mealshare.services.shopping.mutations import ListNotReadyError, MalformedListError
from mealshare.storage.models import ShoppingList, ShoppingListStatus
from mealshare.storage.repositories import save_shopping_list

logger = get_logger(__name__)

Mutation = Callable[[ShoppingListData], ShoppingListData]


def current_data(shopping_list: ShoppingList) -> ShoppingListData:
    if shopping_list.status != ShoppingListStatus.READY.value or shopping_list.shopping_list is None:
        raise ListNotReadyError(f"shopping list {shopping_list.id} is {shopping_list.status}")
    try:
        return ShoppingListData.model_validate(shopping_list.shopping_list)
    except ValidationError as exc:
        logger.error("shopping_list.malformed id=%s errors=%s", shopping_list.id, exc.error_count())
        raise MalformedListError(f"shopping list {shopping_list.id} has an unreadable item blob") from exc


def apply_mutation(session: Session, shopping_list: ShoppingList, mutate: Mutation) -> ShoppingListData:
    """Apply ``mutate`` to a row the caller selected FOR UPDATE, then commit.

    Last writer wins: the row is re-read under the lock, so concurrent edits to
    different items both survive.
    """
    updated = mutate(current_data(shopping_list))
    shopping_list.shopping_list = updated.model_dump()
    save_shopping_list(session, shopping_list)
    return updated


def toggle(session: Session, shopping_list: ShoppingList, item: str) -> ShoppingListData:
    result = apply_mutation(session, shopping_list, lambda data: mutations.toggle_item(data, item))
    logger.info("shopping_list.toggle id=%s item=%s checked=%s", shopping_list.id, item, item in result.checked_items)
    return result


def edit(session: Session, shopping_list: ShoppingList, category: str, index: int, value: str) -> ShoppingListData:
    result = apply_mutation(
        session, shopping_list, lambda data: mutations.edit_item(data, category, index, value)
    )
    logger.info("shopping_list.edit id=%s category=%s index=%s", shopping_list.id, category, index)
    return result


def add(
    session: Session,
    shopping_list: ShoppingList,
    category: str,
    item: str,
    category_order: Optional[list[str]] = None,
) -> ShoppingListData:
    result = apply_mutation(
        session, shopping_list, lambda data: mutations.add_item(data, category, item, category_order)
    )
    logger.info("shopping_list.add id=%s category=%s item=%s", shopping_list.id, category, item)
    return result


def remove(session: Session, shopping_list: ShoppingList, category: str, index: int) -> ShoppingListData:
    result = apply_mutation(session, shopping_list, lambda data: mutations.remove_item(data, category, index))
    logger.info("shopping_list.remove id=%s category=%s index=%s", shopping_list.id, category, index)
    return result


def mark_ready(session: Session, shopping_list: ShoppingList, data: ShoppingListData) -> ShoppingList:
    shopping_list.shopping_list = data.model_dump()
    shopping_list.status = ShoppingListStatus.READY.value
    shopping_list.error = None
    return save_shopping_list(session, shopping_list)


def mark_failed(session: Session, shopping_list: ShoppingList, error: str) -> ShoppingList:
    shopping_list.status = ShoppingListStatus.FAILED.value
    shopping_list.error = error[:500]
    return save_shopping_list(session, shopping_list)


def mark_pending(session: Session, shopping_list: ShoppingList) -> ShoppingList:
    shopping_list.status = ShoppingListStatus.PENDING.value
    shopping_list.shopping_list = None
    shopping_list.error = None
    return save_shopping_list(session, shopping_list)
