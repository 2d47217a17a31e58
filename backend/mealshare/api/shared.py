"""Anonymous access by share token: possession of the token is the only credential."""

from fastapi import APIRouter, HTTPException
from fastapi.responses import StreamingResponse
from sqlmodel import Session

from mealshare.api.shopping_lists import SSE_HEADERS, Operation, mutation_errors
from mealshare.logging import get_logger
from mealshare.schemas.shopping_list import (
    AddItemRequest,
    EditItemRequest,
    RemoveItemRequest,
    SharedShoppingListOut,
    ShoppingListData,
    ToggleItemRequest,
)
from mealshare.services.realtime import list_channel, publish_list_change, stream_channel
from mealshare.services.shopping import store
from mealshare.services.shopping.sharing import ShareTokenNotFound, resolve_token
from mealshare.storage.db import get_session
from mealshare.storage.models import ShoppingList
from mealshare.storage.repositories import get_household

router = APIRouter()
logger = get_logger(__name__)


def _resolve_or_404(session: Session, token: str, for_update: bool = False) -> ShoppingList:
    try:
        return resolve_token(session, token, for_update=for_update)
    except ShareTokenNotFound:
        raise HTTPException(status_code=404, detail="Shared shopping list not found")


def _mutate(token: str, operation: Operation) -> ShoppingListData:
    with get_session() as session:
        shopping_list = _resolve_or_404(session, token, for_update=True)
        with mutation_errors():
            result = operation(session, shopping_list)
        publish_list_change(shopping_list)
        logger.info("shared.mutation list_id=%s", shopping_list.id)
        return result


@router.get("/shared/{token}", response_model=SharedShoppingListOut)
def get_shared(token: str) -> SharedShoppingListOut:
    with get_session() as session:
        return SharedShoppingListOut.model_validate(_resolve_or_404(session, token))


@router.post("/shared/{token}/toggle", response_model=ShoppingListData)
def toggle_item(token: str, payload: ToggleItemRequest) -> ShoppingListData:
    return _mutate(token, lambda session, sl: store.toggle(session, sl, payload.item))


@router.post("/shared/{token}/edit", response_model=ShoppingListData)
def edit_item(token: str, payload: EditItemRequest) -> ShoppingListData:
    return _mutate(token, lambda session, sl: store.edit(session, sl, payload.category, payload.index, payload.value))


@router.post("/shared/{token}/add", response_model=ShoppingListData)
def add_item(token: str, payload: AddItemRequest) -> ShoppingListData:
    def operation(session: Session, shopping_list: ShoppingList) -> ShoppingListData:
        household = get_household(session, shopping_list.household_id)
        return store.add(session, shopping_list, payload.category, payload.item, household.shopping_list_categories)

    return _mutate(token, operation)


@router.post("/shared/{token}/remove", response_model=ShoppingListData)
def remove_item(token: str, payload: RemoveItemRequest) -> ShoppingListData:
    return _mutate(token, lambda session, sl: store.remove(session, sl, payload.category, payload.index))


@router.get("/shared/{token}/events")
def shared_events(token: str) -> StreamingResponse:
    with get_session() as session:
        list_id = _resolve_or_404(session, token).id
    return StreamingResponse(stream_channel(list_channel(list_id)), media_type="text/event-stream", headers=SSE_HEADERS)
