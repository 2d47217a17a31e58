from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from mealshare.schemas.recipe import MAX_SERVINGS


class ShoppingListCategory(BaseModel):
    name: str
    items: list[str] = []

    @field_validator("items", mode="before")
    @classmethod
    def null_as_empty(cls, value):
        return [] if value is None else value


class ShoppingListData(BaseModel):
    """The persisted blob: ordered categories plus the checked-item set."""

    categories: list[ShoppingListCategory] = []
    checked_items: list[str] = []

    @field_validator("categories", "checked_items", mode="before")
    @classmethod
    def null_as_empty(cls, value):
        return [] if value is None else value


class RecipeSelection(BaseModel):
    id: str
    table: Literal["household_recipes", "system_recipes"] = "household_recipes"
    servings: int = Field(ge=1, le=MAX_SERVINGS)


class GenerateRequest(BaseModel):
    recipe_selections: list[RecipeSelection] = Field(min_length=1)
    shopping_list_title: str = Field(alias="shoppingListTitle", max_length=100)

    model_config = {"populate_by_name": True}

    @field_validator("shopping_list_title")
    @classmethod
    def strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("shopping list title is required")
        return value


def _non_empty(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("value cannot be empty")
    return value


class ToggleItemRequest(BaseModel):
    item: str


class EditItemRequest(BaseModel):
    category: str
    index: int = Field(ge=0)
    value: str

    @field_validator("value")
    @classmethod
    def strip_value(cls, value: str) -> str:
        return _non_empty(value)


class AddItemRequest(BaseModel):
    category: str
    item: str

    @field_validator("category", "item")
    @classmethod
    def strip_fields(cls, value: str) -> str:
        return _non_empty(value)


class RemoveItemRequest(BaseModel):
    category: str
    index: int = Field(ge=0)


class RenameListRequest(BaseModel):
    title: str = Field(max_length=100)

    @field_validator("title")
    @classmethod
    def strip_title(cls, value: str) -> str:
        return _non_empty(value)


class ShoppingListOut(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    title: str
    status: str
    shopping_list: Optional[ShoppingListData] = None
    error: Optional[str] = None
    share_token: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class SharedShoppingListOut(BaseModel):
    """Token view: no share_token echo, no household id."""

    model_config = {"from_attributes": True}

    id: str
    title: str
    status: str
    shopping_list: Optional[ShoppingListData] = None
    created_at: datetime
    updated_at: datetime


class GenerateResponse(BaseModel):
    shopping_list: ShoppingListOut
    min_placeholder_seconds: float


class ShareLinkResponse(BaseModel):
    share_token: str
    share_url: str
