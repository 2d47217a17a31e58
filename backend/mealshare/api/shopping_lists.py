"""Owner-side shopping list routes: generation, list management, mutations, sharing.

Mutations lock the row (SELECT ... FOR UPDATE), apply the edit, commit and then
publish the new row state on the live-update channel.
"""

from contextlib import contextmanager
from typing import Callable, Iterator

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlmodel import Session

from mealshare.api.deps import RequestContext, get_context
from mealshare.config import settings
from mealshare.logging import get_logger
from mealshare.schemas.shopping_list import (
    AddItemRequest,
    EditItemRequest,
    GenerateRequest,
    GenerateResponse,
    RemoveItemRequest,
    RenameListRequest,
    ShareLinkResponse,
    ShoppingListData,
    ShoppingListOut,
    ToggleItemRequest,
)
from mealshare.services.realtime import household_channel, list_channel, publish_list_change, stream_channel
from mealshare.services.shopping import store
from mealshare.services.shopping.generation import RecipeNotFoundError, load_batches
from mealshare.services.shopping.mutations import ShoppingListError
from mealshare.services.shopping.sharing import enable_sharing, revoke_sharing, share_url
from mealshare.storage.db import get_session
from mealshare.storage.models import ShoppingList, ShoppingListStatus
from mealshare.storage.repositories import (
    create_pending_shopping_list,
    delete_shopping_list,
    get_household,
    get_shopping_list,
    list_shopping_lists,
    save_shopping_list,
)
from mealshare.workers.tasks import generate_shopping_list

router = APIRouter()
logger = get_logger(__name__)

Operation = Callable[[Session, ShoppingList], ShoppingListData]

SSE_HEADERS = {"Cache-Control": "no-cache", "X-Accel-Buffering": "no"}


@contextmanager
def mutation_errors() -> Iterator[None]:
    """Stale addressing or a list that is not READY is a conflict, not a crash."""
    try:
        yield
    except ShoppingListError as exc:
        raise HTTPException(status_code=409, detail=str(exc))


def _owned_or_404(session: Session, ctx: RequestContext, list_id: str, for_update: bool = False) -> ShoppingList:
    shopping_list = get_shopping_list(session, ctx.household_id, list_id, for_update=for_update)
    if shopping_list is None:
        raise HTTPException(status_code=404, detail="Shopping list not found")
    return shopping_list


def _mutate(ctx: RequestContext, list_id: str, operation: Operation) -> ShoppingListData:
    with get_session() as session:
        shopping_list = _owned_or_404(session, ctx, list_id, for_update=True)
        with mutation_errors():
            result = operation(session, shopping_list)
        publish_list_change(shopping_list)
        return result


def _dispatch(list_id: str) -> None:
    generate_shopping_list.delay(list_id)


@router.get("/shopping-lists", response_model=list[ShoppingListOut])
def list_lists(ctx: RequestContext = Depends(get_context)) -> list[ShoppingListOut]:
    with get_session() as session:
        return [ShoppingListOut.model_validate(sl) for sl in list_shopping_lists(session, ctx.household_id)]


@router.get("/shopping-lists/events")
def household_events(ctx: RequestContext = Depends(get_context)) -> StreamingResponse:
    """SSE feed of every list change in the household (overview screen)."""
    return StreamingResponse(
        stream_channel(household_channel(ctx.household_id)),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post("/shopping-lists/generate", response_model=GenerateResponse, status_code=202)
def generate(payload: GenerateRequest, ctx: RequestContext = Depends(get_context)) -> GenerateResponse:
    with get_session() as session:
        try:
            load_batches(session, ctx.household_id, payload.recipe_selections)
        except RecipeNotFoundError as exc:
            raise HTTPException(status_code=404, detail=f"Recipe not found: {exc}")
        shopping_list = create_pending_shopping_list(
            session,
            household_id=ctx.household_id,
            created_by=ctx.user_id,
            title=payload.shopping_list_title,
            recipe_selections=[s.model_dump() for s in payload.recipe_selections],
        )
        publish_list_change(shopping_list, "INSERT")
        try:
            _dispatch(shopping_list.id)
        except Exception as exc:
            logger.error("shopping_lists.dispatch_failed id=%s error=%s", shopping_list.id, exc)
            delete_shopping_list(session, shopping_list)
            publish_list_change(shopping_list, "DELETE")
            raise HTTPException(status_code=503, detail="Could not start shopping list generation")
        logger.info(
            "shopping_lists.generate id=%s household_id=%s recipes=%s",
            shopping_list.id,
            ctx.household_id,
            len(payload.recipe_selections),
        )
        return GenerateResponse(
            shopping_list=ShoppingListOut.model_validate(shopping_list),
            min_placeholder_seconds=settings.generating_min_display_s,
        )


@router.get("/shopping-lists/{list_id}", response_model=ShoppingListOut)
def get_list(list_id: str, ctx: RequestContext = Depends(get_context)) -> ShoppingListOut:
    with get_session() as session:
        return ShoppingListOut.model_validate(_owned_or_404(session, ctx, list_id))


@router.patch("/shopping-lists/{list_id}", response_model=ShoppingListOut)
def rename_list(list_id: str, payload: RenameListRequest, ctx: RequestContext = Depends(get_context)) -> ShoppingListOut:
    with get_session() as session:
        shopping_list = _owned_or_404(session, ctx, list_id, for_update=True)
        shopping_list.title = payload.title
        shopping_list = save_shopping_list(session, shopping_list)
        publish_list_change(shopping_list)
        return ShoppingListOut.model_validate(shopping_list)


@router.delete("/shopping-lists/{list_id}", status_code=204)
def delete_list(list_id: str, ctx: RequestContext = Depends(get_context)) -> None:
    with get_session() as session:
        shopping_list = _owned_or_404(session, ctx, list_id, for_update=True)
        delete_shopping_list(session, shopping_list)
        publish_list_change(shopping_list, "DELETE")


@router.post("/shopping-lists/{list_id}/retry", response_model=GenerateResponse, status_code=202)
def retry(list_id: str, ctx: RequestContext = Depends(get_context)) -> GenerateResponse:
    with get_session() as session:
        shopping_list = _owned_or_404(session, ctx, list_id, for_update=True)
        if shopping_list.status != ShoppingListStatus.FAILED.value:
            raise HTTPException(status_code=409, detail=f"Only failed lists can be retried (status {shopping_list.status})")
        shopping_list = store.mark_pending(session, shopping_list)
        publish_list_change(shopping_list)
        try:
            _dispatch(shopping_list.id)
        except Exception as exc:
            logger.error("shopping_lists.retry_dispatch_failed id=%s error=%s", list_id, exc)
            store.mark_failed(session, shopping_list, "could not start generation")
            publish_list_change(shopping_list)
            raise HTTPException(status_code=503, detail="Could not start shopping list generation")
        logger.info("shopping_lists.retry id=%s by=%s", list_id, ctx.user_id)
        return GenerateResponse(
            shopping_list=ShoppingListOut.model_validate(shopping_list),
            min_placeholder_seconds=settings.generating_min_display_s,
        )


@router.post("/shopping-lists/{list_id}/items/toggle", response_model=ShoppingListData)
def toggle_item(list_id: str, payload: ToggleItemRequest, ctx: RequestContext = Depends(get_context)) -> ShoppingListData:
    return _mutate(ctx, list_id, lambda session, sl: store.toggle(session, sl, payload.item))


@router.post("/shopping-lists/{list_id}/items/edit", response_model=ShoppingListData)
def edit_item(list_id: str, payload: EditItemRequest, ctx: RequestContext = Depends(get_context)) -> ShoppingListData:
    return _mutate(
        ctx, list_id, lambda session, sl: store.edit(session, sl, payload.category, payload.index, payload.value)
    )


@router.post("/shopping-lists/{list_id}/items/add", response_model=ShoppingListData)
def add_item(list_id: str, payload: AddItemRequest, ctx: RequestContext = Depends(get_context)) -> ShoppingListData:
    def operation(session: Session, shopping_list: ShoppingList) -> ShoppingListData:
        household = get_household(session, shopping_list.household_id)
        return store.add(session, shopping_list, payload.category, payload.item, household.shopping_list_categories)

    return _mutate(ctx, list_id, operation)


@router.post("/shopping-lists/{list_id}/items/remove", response_model=ShoppingListData)
def remove_item(list_id: str, payload: RemoveItemRequest, ctx: RequestContext = Depends(get_context)) -> ShoppingListData:
    return _mutate(ctx, list_id, lambda session, sl: store.remove(session, sl, payload.category, payload.index))


@router.post("/shopping-lists/{list_id}/share", response_model=ShareLinkResponse)
def share(list_id: str, ctx: RequestContext = Depends(get_context)) -> ShareLinkResponse:
    """Issue a share link. Calling again replaces the token and kills the old link."""
    with get_session() as session:
        shopping_list = _owned_or_404(session, ctx, list_id, for_update=True)
        token = enable_sharing(session, shopping_list)
        return ShareLinkResponse(share_token=token, share_url=share_url(token))


@router.delete("/shopping-lists/{list_id}/share", status_code=204)
def unshare(list_id: str, ctx: RequestContext = Depends(get_context)) -> None:
    with get_session() as session:
        revoke_sharing(session, _owned_or_404(session, ctx, list_id, for_update=True))


@router.get("/shopping-lists/{list_id}/events")
def list_events(list_id: str, ctx: RequestContext = Depends(get_context)) -> StreamingResponse:
    with get_session() as session:
        _owned_or_404(session, ctx, list_id)
    return StreamingResponse(stream_channel(list_channel(list_id)), media_type="text/event-stream", headers=SSE_HEADERS)
