import json
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from mealshare import main
from mealshare.api import shopping_lists as shopping_lists_api
from mealshare.config import settings
from mealshare.services import realtime
from mealshare.storage import db as db_module
from mealshare.storage.models import HouseholdRecipe, ShoppingList, ShoppingListStatus, SystemRecipe
from mealshare.storage.repositories import add_household_member, create_household

USER_ID = "user-1"


class FakeRedis:
    def __init__(self):
        self.published = []

    def publish(self, channel, message):
        self.published.append((channel, json.loads(message)))
        return 1

    def close(self):
        pass

    def channels(self):
        return [channel for channel, _ in self.published]


class DummyTask:
    def __init__(self):
        self.calls = []

    def delay(self, list_id):
        self.calls.append(list_id)


@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    return engine


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture(autouse=True)
def no_llm(monkeypatch):
    monkeypatch.setattr(settings, "use_llm_categorizer", False)


@pytest.fixture(name="redis", autouse=True)
def redis_fixture(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(realtime, "_redis_client", lambda: fake)
    return fake


@pytest.fixture(name="dispatcher", autouse=True)
def dispatcher_fixture(monkeypatch):
    task = DummyTask()
    monkeypatch.setattr(shopping_lists_api, "generate_shopping_list", task)
    return task


@pytest.fixture(name="client")
def client_fixture(monkeypatch, engine):
    monkeypatch.setattr(db_module, "engine", engine)
    return TestClient(main.app)


@pytest.fixture(name="household")
def household_fixture(session):
    return create_household(session, household_name="Hjemme", created_by=USER_ID)


@pytest.fixture(name="headers")
def headers_fixture(household):
    return {"X-User-Id": USER_ID, "X-Household-Id": household.id}


def add_member(session, household_id, user_id):
    add_household_member(session, household_id, user_id)
    session.commit()


def make_recipe(session, household_id, title="Pannekaker", servings=2, ingredients=None, tags=None):
    recipe = HouseholdRecipe(
        household_id=household_id,
        created_by=USER_ID,
        title=title,
        servings=servings,
        ingredients=ingredients or ["2 dl melk", "1 egg", "salt"],
        instructions=[{"step": 1, "instruction": "Rør sammen"}],
        tags=tags or [],
    )
    session.add(recipe)
    session.commit()
    session.refresh(recipe)
    return recipe


def make_system_recipe(session, title="Taco", servings=4, instructions=None):
    recipe = SystemRecipe(
        title=title,
        servings=servings,
        ingredients=["400 g kjøttdeig", "1 pk tacokrydder"],
        instructions=instructions or [{"step": 1, "text": "Stek kjøttet"}],
        tags=["fredag"],
    )
    session.add(recipe)
    session.commit()
    session.refresh(recipe)
    return recipe


def make_list(session, household_id, categories=None, checked=None, status=ShoppingListStatus.READY, token=None):
    blob = None
    if status == ShoppingListStatus.READY:
        blob = {
            "categories": categories if categories is not None else [{"name": "Meieri", "items": ["melk", "ost"]}],
            "checked_items": checked or [],
        }
    shopping_list = ShoppingList(
        household_id=household_id,
        created_by=USER_ID,
        title="Ukeshandel",
        status=status.value,
        shopping_list=blob,
        share_token=token,
    )
    session.add(shopping_list)
    session.commit()
    session.refresh(shopping_list)
    return shopping_list


def reload(session, model, pk):
    session.expire_all()
    return session.get(model, pk)
