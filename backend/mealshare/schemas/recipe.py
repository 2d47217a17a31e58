from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, HttpUrl, field_validator


MAX_TITLE_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500
MAX_SERVINGS = 50
ICON_RANGE = (1, 10)
ACCEPTED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp", "image/gif")


class InstructionStep(BaseModel):
    step: int = Field(ge=1)
    instruction: str = Field(min_length=1)


def normalize_tags(tags: list[str]) -> list[str]:
    """Trim, lowercase and de-duplicate, keeping first-seen order."""
    seen: list[str] = []
    for tag in tags:
        name = tag.strip().lower()
        if name and name not in seen:
            seen.append(name)
    return seen


def migrate_instructions(raw: Any) -> list[InstructionStep]:
    """Read stored instructions, accepting the legacy {step, text} shape.

    Plain strings are numbered in order. Anything else is rejected.
    """
    if not isinstance(raw, list):
        raise ValueError("instructions must be a list")
    steps: list[InstructionStep] = []
    for position, entry in enumerate(raw, start=1):
        if isinstance(entry, str):
            steps.append(InstructionStep(step=position, instruction=entry))
        elif isinstance(entry, dict) and "instruction" in entry:
            steps.append(InstructionStep(step=entry.get("step", position), instruction=entry["instruction"]))
        elif isinstance(entry, dict) and "text" in entry:
            steps.append(InstructionStep(step=entry.get("step", position), instruction=entry["text"]))
        else:
            raise ValueError(f"unrecognised instruction entry at position {position}")
    return sorted(steps, key=lambda s: s.step)


class RecipeIn(BaseModel):
    """Recipe as submitted by a household member (manual or from a parsed draft)."""

    title: str
    servings: int = Field(ge=1, le=MAX_SERVINGS)
    icon: int = Field(default=1, ge=ICON_RANGE[0], le=ICON_RANGE[1])
    ingredients: list[str] = Field(min_length=1)
    instructions: list[str] = Field(min_length=1)
    tags: list[str] = []
    description: Optional[str] = Field(default=None, max_length=MAX_DESCRIPTION_LENGTH)
    source_url: Optional[HttpUrl] = None

    @field_validator("title")
    @classmethod
    def strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title is required")
        if len(value) > MAX_TITLE_LENGTH:
            raise ValueError(f"title must be at most {MAX_TITLE_LENGTH} characters")
        return value

    @field_validator("ingredients", "instructions")
    @classmethod
    def strip_lines(cls, value: list[str]) -> list[str]:
        lines = [line.strip() for line in value]
        if any(not line for line in lines):
            raise ValueError("entries cannot be empty")
        return lines

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, value: list[str]) -> list[str]:
        return normalize_tags(value)

    @field_validator("description", mode="before")
    @classmethod
    def blank_description(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None

    @field_validator("source_url", mode="before")
    @classmethod
    def blank_url(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    def instruction_steps(self) -> list[dict]:
        return [
            InstructionStep(step=i, instruction=text).model_dump()
            for i, text in enumerate(self.instructions, start=1)
        ]


class RecipeOut(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    title: str
    servings: int
    icon: int
    ingredients: list[str]
    instructions: list[InstructionStep]
    tags: list[str]
    description: Optional[str] = None
    source_url: Optional[str] = None
    household_id: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_validator("instructions", mode="before")
    @classmethod
    def read_instructions(cls, value: Any) -> list[InstructionStep]:
        return migrate_instructions(value)

    @field_validator("icon", mode="before")
    @classmethod
    def default_icon(cls, value: Optional[int]) -> int:
        return value or 1


class RecipeDraft(BaseModel):
    """Structured recipe produced by the parsing job; not persisted."""

    title: str
    servings: int = Field(ge=1, le=MAX_SERVINGS)
    ingredients: list[str]
    instructions: list[str]
    tags: list[str] = []

    @field_validator("tags")
    @classmethod
    def clean_tags(cls, value: list[str]) -> list[str]:
        return normalize_tags(value)


class ParseUrlRequest(BaseModel):
    url: HttpUrl
    title: str = Field(min_length=1, max_length=MAX_TITLE_LENGTH)


class ImagePayload(BaseModel):
    base64: str = Field(min_length=1)
    media_type: str

    @field_validator("media_type")
    @classmethod
    def check_media_type(cls, value: str) -> str:
        value = value.strip().lower()
        if value not in ACCEPTED_IMAGE_TYPES:
            raise ValueError(f"unsupported image type {value!r}")
        return value


class ParseImageRequest(BaseModel):
    images: list[ImagePayload] = Field(min_length=1, max_length=5)


class ParseResponse(BaseModel):
    success: bool
    recipe: Optional[RecipeDraft] = None
    error: Optional[str] = None
