from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session

from mealshare.api.deps import RequestContext, get_context, require_user
from mealshare.config import settings
from mealshare.logging import get_logger
from mealshare.schemas.household import HouseholdCreate, HouseholdOut, HouseholdUpdate
from mealshare.storage.db import get_session
from mealshare.storage.models import Household
from mealshare.storage.repositories import (
    HouseholdFullError,
    count_household_members,
    create_household,
    get_household,
    update_household,
)

router = APIRouter()
logger = get_logger(__name__)


def _household_out(session: Session, household: Household) -> HouseholdOut:
    out = HouseholdOut.model_validate(household)
    return out.model_copy(update={"member_count": count_household_members(session, household.id)})


@router.post("/households", response_model=HouseholdOut, status_code=201)
def create(payload: HouseholdCreate, user_id: str = Depends(require_user)) -> HouseholdOut:
    with get_session() as session:
        try:
            household = create_household(
                session,
                household_name=payload.household_name.strip(),
                created_by=user_id,
                default_servings=payload.default_servings,
            )
        except HouseholdFullError as exc:
            raise HTTPException(status_code=409, detail=str(exc))
        return _household_out(session, household)


@router.get("/households/current", response_model=HouseholdOut)
def get_current(ctx: RequestContext = Depends(get_context)) -> HouseholdOut:
    with get_session() as session:
        household = get_household(session, ctx.household_id)
        return _household_out(session, household)


@router.patch("/households/current", response_model=HouseholdOut)
def update_current(payload: HouseholdUpdate, ctx: RequestContext = Depends(get_context)) -> HouseholdOut:
    changes = payload.model_dump(exclude_none=True)
    if "household_name" in changes:
        changes["household_name"] = changes["household_name"].strip()
    categories = changes.get("shopping_list_categories")
    if categories is not None and settings.fallback_category not in categories:
        changes["shopping_list_categories"] = [*categories, settings.fallback_category]
    with get_session() as session:
        household = get_household(session, ctx.household_id)
        if changes:
            household = update_household(session, household, **changes)
        logger.info("households.update id=%s by=%s", ctx.household_id, ctx.user_id)
        return _household_out(session, household)
