import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel

from mealshare.config import settings


def _new_id() -> str:
    return str(uuid.uuid4())


def _new_invite_code() -> str:
    return uuid.uuid4().hex[:8].upper()


class ShoppingListStatus(str, Enum):
    PENDING = "pending"  # generation dispatched, shopping_list is null
    READY = "ready"
    FAILED = "failed"


RECIPE_TABLES = ("household_recipes", "system_recipes")


class Household(SQLModel, table=True):
    __tablename__ = "households"

    id: str = Field(default_factory=_new_id, primary_key=True)
    household_name: str
    invite_code: str = Field(default_factory=_new_invite_code, index=True, unique=True)
    created_by: str
    default_servings: int = settings.default_servings
    shopping_list_categories: list = Field(
        default_factory=lambda: list(settings.default_shopping_list_categories),
        sa_column=Column(JSON, nullable=False),
    )
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class HouseholdMember(SQLModel, table=True):
    __tablename__ = "household_members"
    __table_args__ = (UniqueConstraint("household_id", "user_id"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    household_id: str = Field(foreign_key="households.id", index=True)
    user_id: str = Field(index=True)
    joined_at: datetime = Field(default_factory=datetime.utcnow)


class HouseholdRecipe(SQLModel, table=True):
    __tablename__ = "household_recipes"

    id: str = Field(default_factory=_new_id, primary_key=True)
    household_id: str = Field(foreign_key="households.id", index=True)
    created_by: str
    title: str
    servings: int
    icon: int = 1
    ingredients: list = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    instructions: list = Field(default_factory=list, sa_column=Column(JSON, nullable=False))  # [{step, instruction}]
    tags: list = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    description: Optional[str] = None
    source_url: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class SystemRecipe(SQLModel, table=True):
    """Shared read-only catalog; copied by value into households."""

    __tablename__ = "system_recipes"

    id: str = Field(default_factory=_new_id, primary_key=True)
    title: str
    servings: int
    icon: int = 1
    ingredients: list = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    instructions: list = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    tags: list = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    description: Optional[str] = None
    source_url: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class RecipeTag(SQLModel, table=True):
    __tablename__ = "recipe_tags"
    __table_args__ = (UniqueConstraint("household_id", "name"),)

    id: str = Field(default_factory=_new_id, primary_key=True)
    household_id: str = Field(foreign_key="households.id", index=True)
    name: str  # always lowercase
    created_by: str
    created_at: datetime = Field(default_factory=datetime.utcnow)


class ShoppingList(SQLModel, table=True):
    __tablename__ = "shopping_lists"

    id: str = Field(default_factory=_new_id, primary_key=True)
    household_id: str = Field(foreign_key="households.id", index=True)
    created_by: str
    title: str
    status: str = ShoppingListStatus.PENDING.value
    # {categories: [{name, items}], checked_items: [...]}; null until generated
    shopping_list: Optional[dict] = Field(default=None, sa_column=Column(JSON(none_as_null=True), nullable=True))
    recipe_selections: list = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    share_token: Optional[str] = Field(default=None, index=True, unique=True)
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class LLMCallLog(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    prompt_name: str
    prompt_version: str
    model: str
    input_payload: str
    output_payload: str
    latency_ms: int
    created_at: datetime = Field(default_factory=datetime.utcnow)
