"""Document models.

This module defines the shapes of the documents stored in MongoDB. Each
class maps to one collection (or to a sub-document embedded in one) and
knows how to convert itself to and from a raw pymongo document.
"""

from typing import List, Optional

from pydantic import BaseModel, Field


class MongoDocument(BaseModel):
    """Base for stored documents; strips the `_id` Mongo adds."""

    @classmethod
    def from_document(cls, doc: dict):
        data = {k: v for k, v in doc.items() if k != "_id"}
        return cls.model_validate(data)

    def to_document(self) -> dict:
        return self.model_dump()


class PlatformDocument(MongoDocument):
    """A gaming platform (console, handheld, PC...).

    Fields:
    - `slug`: unique public identifier, used in URLs
    - `platform_logo_url`: optional logo image
    """
    name: str
    slug: str
    platform_logo_url: Optional[str] = None
    url: Optional[str] = None


class GamePlatform(BaseModel):
    """Copy of a platform embedded in a `GameDocument`."""
    name: str
    slug: str
    platform_logo_url: Optional[str] = None

    @classmethod
    def from_platform(cls, platform: PlatformDocument) -> "GamePlatform":
        return cls(name=platform.name, slug=platform.slug, platform_logo_url=platform.platform_logo_url)


class GameDocument(MongoDocument):
    """A video game released on one or more platforms."""
    name: str
    slug: str
    summary: Optional[str] = None
    cover_url: Optional[str] = None
    first_release_date: Optional[str] = None
    genres: List[str] = Field(default_factory=list)
    platforms: List[GamePlatform] = Field(default_factory=list)
