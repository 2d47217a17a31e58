from datetime import datetime, timedelta

import pytest

from conftest import make_list, make_recipe, reload
from mealshare.storage import db as db_module
from mealshare.storage.models import ShoppingList, ShoppingListStatus
from mealshare.storage.repositories import create_pending_shopping_list
from mealshare.workers import tasks


@pytest.fixture(autouse=True)
def worker_db(monkeypatch, engine):
    monkeypatch.setattr(db_module, "engine", engine)


def _pending(session, household_id, selections):
    return create_pending_shopping_list(
        session, household_id=household_id, created_by="user-1", title="Helg", recipe_selections=selections
    )


def test_generation_scales_merges_and_categorizes(session, household, redis):
    recipe = make_recipe(session, household.id, servings=2, ingredients=["2 dl melk", "1 egg", "salt"])
    shopping_list = _pending(session, household.id, [{"id": recipe.id, "table": "household_recipes", "servings": 4}])

    result = tasks.generate_shopping_list(shopping_list.id)

    assert result == {"status": "success", "list_id": shopping_list.id, "items": 3}
    stored = reload(session, ShoppingList, shopping_list.id)
    assert stored.status == ShoppingListStatus.READY.value
    assert stored.shopping_list == {
        "categories": [
            {"name": "Meieri", "items": ["4 dl melk", "2 egg"]},
            {"name": "Krydder", "items": ["salt"]},
        ],
        "checked_items": [],
    }
    assert redis.published[-1][1]["status"] == "ready"


def test_two_recipes_sharing_an_ingredient(session, household):
    first = make_recipe(session, household.id, title="A", servings=4, ingredients=["3 dl melk"])
    second = make_recipe(session, household.id, title="B", servings=2, ingredients=["1 dl melk"])
    shopping_list = _pending(
        session,
        household.id,
        [{"id": first.id, "servings": 4}, {"id": second.id, "servings": 4}],
    )
    tasks.generate_shopping_list(shopping_list.id)
    stored = reload(session, ShoppingList, shopping_list.id)
    assert stored.shopping_list["categories"] == [{"name": "Meieri", "items": ["5 dl melk"]}]


def test_generation_failure_marks_list_failed(session, household, redis):
    recipe = make_recipe(session, household.id, servings=0)
    shopping_list = _pending(session, household.id, [{"id": recipe.id, "servings": 4}])

    with pytest.raises(ValueError):
        tasks.generate_shopping_list(shopping_list.id)

    stored = reload(session, ShoppingList, shopping_list.id)
    assert stored.status == ShoppingListStatus.FAILED.value
    assert "non-positive servings" in stored.error
    assert stored.shopping_list is None
    assert redis.published[-1][1]["status"] == "failed"


def test_generation_skips_lists_that_are_not_pending(session, household):
    shopping_list = make_list(session, household.id)
    result = tasks.generate_shopping_list(shopping_list.id)
    assert result["status"] == "skipped"
    assert tasks.generate_shopping_list("gone")["reason"] == "not_found"


def test_stale_pending_lists_fail(session, household):
    stale = make_list(session, household.id, status=ShoppingListStatus.PENDING)
    stale.updated_at = datetime.utcnow() - timedelta(minutes=30)
    session.add(stale)
    session.commit()
    fresh = make_list(session, household.id, status=ShoppingListStatus.PENDING)

    result = tasks.fail_stale_generations(timeout_minutes=10)

    assert result == {"failed": 1, "list_ids": [stale.id]}
    assert reload(session, ShoppingList, stale.id).status == ShoppingListStatus.FAILED.value
    assert reload(session, ShoppingList, fresh.id).status == ShoppingListStatus.PENDING.value
