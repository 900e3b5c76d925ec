"""Pydantic request schemas used by the API.

Schemas keep API input shapes stable and provide validation for
controller handlers and tests. The same schemas validate JSON bodies and
HTML form submissions, so blank form fields are read as "not provided".
"""

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, field_validator

from .utils.slugs import slugify


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _split_list(value):
    """Accept a list, a single string or a comma separated string."""
    if value is None:
        return None
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError("must be a string or a list of strings")
    parts = []
    for item in value:
        parts.extend(p.strip() for p in item.split(","))
    return [p for p in parts if p]


def _normalise_slug(value):
    value = _blank_to_none(value)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError("slug must be a string")
    slug = slugify(value)
    if not slug:
        raise ValueError("slug must contain letters or digits")
    return slug


def _check_release_date(value):
    if value is None:
        return None
    try:
        date.fromisoformat(value)
    except ValueError:
        raise ValueError("first_release_date must be an ISO date (YYYY-MM-DD)")
    return value


class PlatformUpdate(BaseModel):
    """Partial platform update; omitted fields are left untouched."""
    name: Optional[str] = None
    platform_logo_url: Optional[str] = None
    url: Optional[str] = None

    @field_validator("platform_logo_url", "url", mode="before")
    @classmethod
    def blank_optional(cls, v):
        return _blank_to_none(v)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v):
        if v is not None:
            v = v.strip()
            if not v:
                raise ValueError("name must not be empty")
        return v


class PlatformIn(PlatformUpdate):
    """Payload for creating a platform."""
    name: str
    slug: Optional[str] = None

    @field_validator("slug", mode="before")
    @classmethod
    def normalise_slug(cls, v):
        return _normalise_slug(v)


class GameUpdate(BaseModel):
    """Partial game update; `platforms` holds platform slugs."""
    name: Optional[str] = None
    summary: Optional[str] = None
    cover_url: Optional[str] = None
    first_release_date: Optional[str] = None
    genres: Optional[List[str]] = None
    platforms: Optional[List[str]] = None

    @field_validator("summary", "cover_url", "first_release_date", mode="before")
    @classmethod
    def blank_optional(cls, v):
        return _blank_to_none(v)

    @field_validator("genres", "platforms", mode="before")
    @classmethod
    def split_lists(cls, v):
        return _split_list(v)

    @field_validator("first_release_date")
    @classmethod
    def release_date_format(cls, v):
        return _check_release_date(v)

    @field_validator("name")
    @classmethod
    def name_not_blank(cls, v):
        if v is not None:
            v = v.strip()
            if not v:
                raise ValueError("name must not be empty")
        return v

    @field_validator("platforms")
    @classmethod
    def at_least_one_platform(cls, v):
        if v is not None and not v:
            raise ValueError("a game needs at least one platform")
        return v


class GameIn(GameUpdate):
    """Payload for creating a game."""
    name: str
    slug: Optional[str] = None
    platforms: List[str]

    @field_validator("slug", mode="before")
    @classmethod
    def normalise_slug(cls, v):
        return _normalise_slug(v)
