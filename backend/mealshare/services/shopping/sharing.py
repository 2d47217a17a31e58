"""Share tokens: possession of the token grants view and edit rights.

Tokens are random UUIDs, valid until the owner revokes or replaces them.
"""

import uuid

from sqlmodel import Session

from mealshare.config import settings
from mealshare.logging import get_logger
from mealshare.storage.models import ShoppingList
from mealshare.storage.repositories import get_shopping_list_by_token, save_shopping_list

logger = get_logger(__name__)


class ShareTokenNotFound(Exception):
    pass


def new_share_token() -> str:
    return str(uuid.uuid4())


def share_url(token: str) -> str:
    return f"{settings.share_base_url.rstrip('/')}/delt/{token}"


def enable_sharing(session: Session, shopping_list: ShoppingList) -> str:
    """Store a fresh token; any earlier link stops resolving."""
    replaced = shopping_list.share_token is not None
    shopping_list.share_token = new_share_token()
    save_shopping_list(session, shopping_list)
    logger.info("share.enabled list_id=%s replaced=%s", shopping_list.id, replaced)
    return shopping_list.share_token


def revoke_sharing(session: Session, shopping_list: ShoppingList) -> None:
    shopping_list.share_token = None
    save_shopping_list(session, shopping_list)
    logger.info("share.revoked list_id=%s", shopping_list.id)


def _is_token_shaped(token: str) -> bool:
    try:
        uuid.UUID(token)
    except ValueError:
        return False
    return True


def resolve_token(session: Session, token: str, for_update: bool = False) -> ShoppingList:
    if not token or not _is_token_shaped(token):
        raise ShareTokenNotFound(token)
    shopping_list = get_shopping_list_by_token(session, token, for_update=for_update)
    if shopping_list is None:
        raise ShareTokenNotFound(token)
    return shopping_list
