from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from mealshare.schemas.recipe import MAX_SERVINGS


def clean_categories(names: list[str]) -> list[str]:
    out: list[str] = []
    for name in names:
        name = name.strip()
        if not name:
            raise ValueError("category names cannot be empty")
        if name in out:
            raise ValueError(f"duplicate category {name!r}")
        out.append(name)
    return out


class HouseholdCreate(BaseModel):
    household_name: str = Field(min_length=1, max_length=100)
    default_servings: Optional[int] = Field(default=None, ge=1, le=MAX_SERVINGS)

    @field_validator("household_name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("household name is required")
        return value


class HouseholdUpdate(BaseModel):
    household_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    default_servings: Optional[int] = Field(default=None, ge=1, le=MAX_SERVINGS)
    shopping_list_categories: Optional[list[str]] = None

    @field_validator("shopping_list_categories")
    @classmethod
    def check_categories(cls, value: Optional[list[str]]) -> Optional[list[str]]:
        if value is None:
            return None
        return clean_categories(value)


class HouseholdOut(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    household_name: str
    invite_code: str
    created_by: str
    default_servings: int
    shopping_list_categories: list[str]
    member_count: int = 0
    created_at: datetime


class TagOut(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    name: str


class TagRename(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("tag name cannot be empty")
        return value
