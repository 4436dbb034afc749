import re

from pydantic import BaseModel, ConfigDict, field_validator

_SLUG_STRIP = re.compile(r"[^a-z0-9]+")


def slugify(value: str) -> str:
    return _SLUG_STRIP.sub("-", value.lower()).strip("-")


class Topic(BaseModel):
    """A single generated trending topic. Never persisted."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: str
    name: str
    category: str
    description: str
    growth: float

    @field_validator("growth", mode="before")
    @classmethod
    def numeric_growth(cls, value):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError("growth must be a number")
        return value

    @field_validator("name", "category", "description")
    @classmethod
    def not_blank(cls, value: str) -> str:
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("id")
    @classmethod
    def slug_id(cls, value: str) -> str:
        slug = slugify(value)
        if not slug:
            raise ValueError("id must contain letters or digits")
        return slug
