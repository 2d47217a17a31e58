from fastapi import APIRouter, Depends, HTTPException

from mealshare.api.deps import RequestContext, get_context
from mealshare.schemas.household import TagOut, TagRename
from mealshare.storage.db import get_session
from mealshare.storage.repositories import TagConflictError, delete_tag, get_tag, list_tags, rename_tag

router = APIRouter()


@router.get("/tags", response_model=list[TagOut])
def list_household_tags(ctx: RequestContext = Depends(get_context)) -> list[TagOut]:
    with get_session() as session:
        return [TagOut.model_validate(t) for t in list_tags(session, ctx.household_id)]


@router.patch("/tags/{tag_id}", response_model=TagOut)
def rename(tag_id: str, payload: TagRename, ctx: RequestContext = Depends(get_context)) -> TagOut:
    with get_session() as session:
        tag = get_tag(session, ctx.household_id, tag_id)
        if tag is None:
            raise HTTPException(status_code=404, detail="Tag not found")
        try:
            tag = rename_tag(session, tag, payload.name)
        except TagConflictError as exc:
            raise HTTPException(status_code=409, detail=str(exc))
        return TagOut.model_validate(tag)


@router.delete("/tags/{tag_id}")
def delete(tag_id: str, ctx: RequestContext = Depends(get_context)) -> dict:
    with get_session() as session:
        tag = get_tag(session, ctx.household_id, tag_id)
        if tag is None:
            raise HTTPException(status_code=404, detail="Tag not found")
        recipes_updated = delete_tag(session, tag)
    return {"ok": True, "recipes_updated": recipes_updated}
