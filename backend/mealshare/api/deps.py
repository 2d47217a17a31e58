"""Per-request identity, taken from headers set by the upstream auth proxy."""

from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException

from mealshare.storage.db import get_session
from mealshare.storage.repositories import get_household, is_household_member


@dataclass(frozen=True)
class RequestContext:
    user_id: str
    household_id: str


def require_user(x_user_id: Optional[str] = Header(default=None)) -> str:
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="X-User-Id header is required")
    return x_user_id.strip()


def get_context(
    x_user_id: Optional[str] = Header(default=None),
    x_household_id: Optional[str] = Header(default=None),
) -> RequestContext:
    user_id = require_user(x_user_id)
    if not x_household_id or not x_household_id.strip():
        raise HTTPException(status_code=401, detail="X-Household-Id header is required")
    household_id = x_household_id.strip()
    with get_session() as session:
        if get_household(session, household_id) is None or not is_household_member(session, household_id, user_id):
            raise HTTPException(status_code=403, detail="Not a member of this household")
    return RequestContext(user_id=user_id, household_id=household_id)
