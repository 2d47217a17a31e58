from datetime import datetime
from typing import Iterable, Optional

from sqlalchemy import func
from sqlmodel import Session, select

from mealshare.config import settings
from mealshare.logging import get_logger
from mealshare.storage.models import (
    Household,
    HouseholdMember,
    HouseholdRecipe,
    LLMCallLog,
    RecipeTag,
    ShoppingList,
    ShoppingListStatus,
    SystemRecipe,
)

logger = get_logger(__name__)


class HouseholdFullError(Exception):
    pass


class TagConflictError(Exception):
    pass


# households


def create_household(
    session: Session, household_name: str, created_by: str, default_servings: Optional[int] = None
) -> Household:
    household = Household(
        household_name=household_name,
        created_by=created_by,
        default_servings=default_servings or settings.default_servings,
    )
    session.add(household)
    session.flush()
    add_household_member(session, household.id, created_by)
    session.commit()
    session.refresh(household)
    logger.info("household.created id=%s created_by=%s", household.id, created_by)
    return household


def add_household_member(session: Session, household_id: str, user_id: str) -> HouseholdMember:
    """Add a member, enforcing the household size cap. Caller commits."""
    if count_household_members(session, household_id) >= settings.max_household_members:
        raise HouseholdFullError(f"household {household_id} already has {settings.max_household_members} members")
    member = HouseholdMember(household_id=household_id, user_id=user_id)
    session.add(member)
    session.flush()
    return member


def count_household_members(session: Session, household_id: str) -> int:
    return session.exec(
        select(func.count()).select_from(HouseholdMember).where(HouseholdMember.household_id == household_id)
    ).one()


def get_household(session: Session, household_id: str) -> Household | None:
    return session.get(Household, household_id)


def is_household_member(session: Session, household_id: str, user_id: str) -> bool:
    member = session.exec(
        select(HouseholdMember).where(
            HouseholdMember.household_id == household_id, HouseholdMember.user_id == user_id
        )
    ).first()
    return member is not None


def update_household(session: Session, household: Household, **changes: object) -> Household:
    for field, value in changes.items():
        setattr(household, field, value)
    household.updated_at = datetime.utcnow()
    session.add(household)
    session.commit()
    session.refresh(household)
    logger.info("household.updated id=%s fields=%s", household.id, sorted(changes))
    return household


# recipes


def list_household_recipes(
    session: Session, household_id: str, search: Optional[str] = None, tags: Optional[list[str]] = None
) -> list[HouseholdRecipe]:
    statement = select(HouseholdRecipe).where(HouseholdRecipe.household_id == household_id)
    if search:
        statement = statement.where(func.lower(HouseholdRecipe.title).contains(search.strip().lower()))
    recipes = list(session.exec(statement.order_by(HouseholdRecipe.title)))
    if tags:
        # every requested tag must be present
        wanted = {t.strip().lower() for t in tags if t.strip()}
        recipes = [r for r in recipes if wanted.issubset(set(r.tags or []))]
    return recipes


def get_household_recipe(session: Session, household_id: str, recipe_id: str) -> HouseholdRecipe | None:
    return session.exec(
        select(HouseholdRecipe).where(HouseholdRecipe.id == recipe_id, HouseholdRecipe.household_id == household_id)
    ).first()


def find_household_recipe_by_title(session: Session, household_id: str, title: str) -> HouseholdRecipe | None:
    return session.exec(
        select(HouseholdRecipe).where(
            HouseholdRecipe.household_id == household_id,
            func.lower(HouseholdRecipe.title) == title.strip().lower(),
        )
    ).first()


def save_household_recipe(session: Session, recipe: HouseholdRecipe) -> HouseholdRecipe:
    recipe.updated_at = datetime.utcnow()
    session.add(recipe)
    session.commit()
    session.refresh(recipe)
    logger.info("recipe.saved id=%s household_id=%s title=%s", recipe.id, recipe.household_id, recipe.title)
    return recipe


def delete_household_recipe(session: Session, recipe: HouseholdRecipe) -> None:
    session.delete(recipe)
    session.commit()
    logger.info("recipe.deleted id=%s household_id=%s", recipe.id, recipe.household_id)


def list_system_recipes(session: Session, search: Optional[str] = None) -> list[SystemRecipe]:
    statement = select(SystemRecipe)
    if search:
        statement = statement.where(func.lower(SystemRecipe.title).contains(search.strip().lower()))
    return list(session.exec(statement.order_by(SystemRecipe.title)))


def get_system_recipe(session: Session, recipe_id: str) -> SystemRecipe | None:
    return session.get(SystemRecipe, recipe_id)


# tags


def list_tags(session: Session, household_id: str) -> list[RecipeTag]:
    return list(
        session.exec(select(RecipeTag).where(RecipeTag.household_id == household_id).order_by(RecipeTag.name))
    )


def get_tag(session: Session, household_id: str, tag_id: str) -> RecipeTag | None:
    return session.exec(
        select(RecipeTag).where(RecipeTag.id == tag_id, RecipeTag.household_id == household_id)
    ).first()


def register_tags(session: Session, household_id: str, user_id: str, tags: Iterable[str]) -> int:
    """Insert tags missing from the registry; names are already normalised."""
    existing = {tag.name for tag in list_tags(session, household_id)}
    created = 0
    for name in tags:
        if name in existing:
            continue
        session.add(RecipeTag(household_id=household_id, name=name, created_by=user_id))
        existing.add(name)
        created += 1
    if created:
        session.commit()
        logger.info("tags.registered household_id=%s created=%s", household_id, created)
    return created


def _household_recipes_with_tag(session: Session, household_id: str, name: str) -> list[HouseholdRecipe]:
    recipes = session.exec(select(HouseholdRecipe).where(HouseholdRecipe.household_id == household_id))
    return [r for r in recipes if name in (r.tags or [])]


def rename_tag(session: Session, tag: RecipeTag, new_name: str) -> RecipeTag:
    """Rename a tag and rewrite it in every recipe of the household."""
    if new_name == tag.name:
        return tag
    clash = session.exec(
        select(RecipeTag).where(RecipeTag.household_id == tag.household_id, RecipeTag.name == new_name)
    ).first()
    if clash:
        raise TagConflictError(f"tag {new_name!r} already exists")
    old_name = tag.name
    recipes = _household_recipes_with_tag(session, tag.household_id, old_name)
    for recipe in recipes:
        renamed: list[str] = []
        for name in recipe.tags:
            name = new_name if name == old_name else name
            if name not in renamed:
                renamed.append(name)
        recipe.tags = renamed
        recipe.updated_at = datetime.utcnow()
        session.add(recipe)
    tag.name = new_name
    session.add(tag)
    session.commit()
    session.refresh(tag)
    logger.info("tag.renamed id=%s old=%s new=%s recipes=%s", tag.id, old_name, new_name, len(recipes))
    return tag


def delete_tag(session: Session, tag: RecipeTag) -> int:
    """Delete a tag and strip it from every recipe of the household."""
    recipes = _household_recipes_with_tag(session, tag.household_id, tag.name)
    for recipe in recipes:
        recipe.tags = [name for name in recipe.tags if name != tag.name]
        recipe.updated_at = datetime.utcnow()
        session.add(recipe)
    session.delete(tag)
    session.commit()
    logger.info("tag.deleted id=%s name=%s recipes=%s", tag.id, tag.name, len(recipes))
    return len(recipes)


# shopping lists


def create_pending_shopping_list(
    session: Session, household_id: str, created_by: str, title: str, recipe_selections: list[dict]
) -> ShoppingList:
    shopping_list = ShoppingList(
        household_id=household_id,
        created_by=created_by,
        title=title,
        status=ShoppingListStatus.PENDING.value,
        recipe_selections=recipe_selections,
    )
    session.add(shopping_list)
    session.commit()
    session.refresh(shopping_list)
    logger.info(
        "shopping_list.created id=%s household_id=%s selections=%s",
        shopping_list.id,
        household_id,
        len(recipe_selections),
    )
    return shopping_list


def list_shopping_lists(session: Session, household_id: str) -> list[ShoppingList]:
    return list(
        session.exec(
            select(ShoppingList)
            .where(ShoppingList.household_id == household_id)
            .order_by(ShoppingList.created_at.desc())
        )
    )


def get_shopping_list(
    session: Session, household_id: str, list_id: str, for_update: bool = False
) -> ShoppingList | None:
    statement = select(ShoppingList).where(ShoppingList.id == list_id, ShoppingList.household_id == household_id)
    if for_update:
        statement = statement.with_for_update().execution_options(populate_existing=True)
    return session.exec(statement).first()


def get_shopping_list_by_id(session: Session, list_id: str) -> ShoppingList | None:
    return session.get(ShoppingList, list_id)


def get_shopping_list_by_token(session: Session, token: str, for_update: bool = False) -> ShoppingList | None:
    statement = select(ShoppingList).where(ShoppingList.share_token == token)
    if for_update:
        statement = statement.with_for_update().execution_options(populate_existing=True)
    return session.exec(statement).first()


def save_shopping_list(session: Session, shopping_list: ShoppingList) -> ShoppingList:
    shopping_list.updated_at = datetime.utcnow()
    session.add(shopping_list)
    session.commit()
    session.refresh(shopping_list)
    return shopping_list


def delete_shopping_list(session: Session, shopping_list: ShoppingList) -> None:
    session.delete(shopping_list)
    session.commit()
    logger.info("shopping_list.deleted id=%s", shopping_list.id)


def get_stale_pending_lists(session: Session, older_than: datetime) -> list[ShoppingList]:
    return list(
        session.exec(
            select(ShoppingList).where(
                ShoppingList.status == ShoppingListStatus.PENDING.value,
                ShoppingList.updated_at < older_than,
            )
        )
    )


# llm


def log_llm_call(
    session: Session,
    prompt_name: str,
    prompt_version: str,
    model: str,
    input_payload: str,
    output_payload: str,
    latency_ms: int,
) -> None:
    session.add(
        LLMCallLog(
            prompt_name=prompt_name,
            prompt_version=prompt_version,
            model=model,
            input_payload=input_payload,
            output_payload=output_payload,
            latency_ms=latency_ms,
        )
    )
    session.commit()
