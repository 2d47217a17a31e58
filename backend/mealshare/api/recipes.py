from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from mealshare.api.deps import RequestContext, get_context
from mealshare.logging import get_logger
from mealshare.schemas.recipe import RecipeIn, RecipeOut, migrate_instructions
from mealshare.storage.db import get_session
from mealshare.storage.models import HouseholdRecipe
from mealshare.storage.repositories import (
    delete_household_recipe,
    find_household_recipe_by_title,
    get_household_recipe,
    get_system_recipe,
    list_household_recipes,
    list_system_recipes,
    register_tags,
    save_household_recipe,
)

router = APIRouter()
logger = get_logger(__name__)


def _apply(recipe: HouseholdRecipe, payload: RecipeIn) -> HouseholdRecipe:
    recipe.title = payload.title
    recipe.servings = payload.servings
    recipe.icon = payload.icon
    recipe.ingredients = payload.ingredients
    recipe.instructions = payload.instruction_steps()
    recipe.tags = payload.tags
    recipe.description = payload.description
    recipe.source_url = str(payload.source_url) if payload.source_url else None
    return recipe


@router.get("/recipes", response_model=list[RecipeOut])
def list_recipes(
    search: Optional[str] = None,
    tags: Optional[list[str]] = Query(default=None),
    ctx: RequestContext = Depends(get_context),
) -> list[RecipeOut]:
    with get_session() as session:
        recipes = list_household_recipes(session, ctx.household_id, search=search, tags=tags)
        return [RecipeOut.model_validate(r) for r in recipes]


@router.post("/recipes", response_model=RecipeOut, status_code=201)
def create_recipe(payload: RecipeIn, ctx: RequestContext = Depends(get_context)) -> RecipeOut:
    with get_session() as session:
        recipe = HouseholdRecipe(
            household_id=ctx.household_id,
            created_by=ctx.user_id,
            title=payload.title,
            servings=payload.servings,
        )
        recipe = save_household_recipe(session, _apply(recipe, payload))
        register_tags(session, ctx.household_id, ctx.user_id, payload.tags)
        return RecipeOut.model_validate(recipe)


@router.get("/recipes/{recipe_id}", response_model=RecipeOut)
def get_recipe(recipe_id: str, ctx: RequestContext = Depends(get_context)) -> RecipeOut:
    with get_session() as session:
        recipe = get_household_recipe(session, ctx.household_id, recipe_id)
        if recipe is None:
            raise HTTPException(status_code=404, detail="Recipe not found")
        return RecipeOut.model_validate(recipe)


@router.put("/recipes/{recipe_id}", response_model=RecipeOut)
def update_recipe(recipe_id: str, payload: RecipeIn, ctx: RequestContext = Depends(get_context)) -> RecipeOut:
    with get_session() as session:
        recipe = get_household_recipe(session, ctx.household_id, recipe_id)
        if recipe is None:
            raise HTTPException(status_code=404, detail="Recipe not found")
        recipe = save_household_recipe(session, _apply(recipe, payload))
        register_tags(session, ctx.household_id, ctx.user_id, payload.tags)
        return RecipeOut.model_validate(recipe)


@router.delete("/recipes/{recipe_id}", status_code=204)
def delete_recipe(recipe_id: str, ctx: RequestContext = Depends(get_context)) -> None:
    with get_session() as session:
        recipe = get_household_recipe(session, ctx.household_id, recipe_id)
        if recipe is None:
            raise HTTPException(status_code=404, detail="Recipe not found")
        delete_household_recipe(session, recipe)


@router.get("/system-recipes", response_model=list[RecipeOut])
def list_system(search: Optional[str] = None, ctx: RequestContext = Depends(get_context)) -> list[RecipeOut]:
    with get_session() as session:
        return [RecipeOut.model_validate(r) for r in list_system_recipes(session, search=search)]


@router.get("/system-recipes/{recipe_id}", response_model=RecipeOut)
def get_system(recipe_id: str, ctx: RequestContext = Depends(get_context)) -> RecipeOut:
    with get_session() as session:
        recipe = get_system_recipe(session, recipe_id)
        if recipe is None:
            raise HTTPException(status_code=404, detail="Recipe not found")
        return RecipeOut.model_validate(recipe)


@router.post("/system-recipes/{recipe_id}/copy", response_model=RecipeOut, status_code=201)
def copy_system_recipe(recipe_id: str, ctx: RequestContext = Depends(get_context)) -> RecipeOut:
    """Copy by value into the household. Tags stay behind; the copy has no link back."""
    with get_session() as session:
        source = get_system_recipe(session, recipe_id)
        if source is None:
            raise HTTPException(status_code=404, detail="Recipe not found")
        if find_household_recipe_by_title(session, ctx.household_id, source.title) is not None:
            raise HTTPException(status_code=409, detail=f"Household already has a recipe named {source.title!r}")
        copy = HouseholdRecipe(
            household_id=ctx.household_id,
            created_by=ctx.user_id,
            title=source.title,
            servings=source.servings,
            icon=source.icon or 1,
            ingredients=list(source.ingredients),
            instructions=[step.model_dump() for step in migrate_instructions(source.instructions)],
            tags=[],
            description=source.description,
            source_url=source.source_url,
        )
        copy = save_household_recipe(session, copy)
        logger.info("recipes.copied system_id=%s id=%s household_id=%s", recipe_id, copy.id, ctx.household_id)
        return RecipeOut.model_validate(copy)
