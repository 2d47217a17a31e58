"""Turn recipe selections into a categorised shopping list."""

from sqlmodel import Session

from mealshare.logging import get_logger
from mealshare.schemas.shopping_list import RecipeSelection, ShoppingListData
from mealshare.services.shopping.aggregator import RecipeBatch, aggregate_ingredients
from mealshare.services.shopping.categorizer import categorize_items
from mealshare.storage.models import ShoppingList
from mealshare.storage.repositories import get_household, get_household_recipe, get_system_recipe

logger = get_logger(__name__)


class RecipeNotFoundError(Exception):
    pass


def load_batches(session: Session, household_id: str, selections: list[RecipeSelection]) -> list[RecipeBatch]:
    batches: list[RecipeBatch] = []
    for selection in selections:
        if selection.table == "system_recipes":
            recipe = get_system_recipe(session, selection.id)
        else:
            recipe = get_household_recipe(session, household_id, selection.id)
        if recipe is None:
            raise RecipeNotFoundError(f"{selection.table}/{selection.id}")
        batches.append(
            RecipeBatch(
                title=recipe.title,
                ingredients=[line for line in recipe.ingredients if isinstance(line, str)],
                servings=recipe.servings,
                target_servings=selection.servings,
            )
        )
    return batches


def build_shopping_list(session: Session, shopping_list: ShoppingList) -> ShoppingListData:
    household = get_household(session, shopping_list.household_id)
    if household is None:
        raise RecipeNotFoundError(f"households/{shopping_list.household_id}")
    selections = [RecipeSelection.model_validate(raw) for raw in shopping_list.recipe_selections]
    batches = load_batches(session, shopping_list.household_id, selections)
    items = aggregate_ingredients(batches)
    data = categorize_items(items, household.shopping_list_categories)
    logger.info(
        "generation.built list_id=%s recipes=%s items=%s categories=%s",
        shopping_list.id,
        len(batches),
        len(items),
        len(data.categories),
    )
    return data
