"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories.
Services are intentionally thin: they validate cross-document rules
(unique slugs, existing platforms), keep embedded platform copies in
sync and persist documents via repositories.
"""

import logging
from typing import List

from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from . import models, repositories, schemas
from .utils.slugs import slugify

logger = logging.getLogger("game_catalog.services")


class NotFoundError(LookupError):
    """Raised when no document matches the requested slug."""


class ConflictError(ValueError):
    """Raised when a slug is already taken."""


def _resolve_slug(payload_slug, name: str) -> str:
    slug = payload_slug or slugify(name)
    if not slug:
        raise ValueError("cannot derive a slug from name; provide one")
    return slug


def _changes(payload) -> dict:
    """Return the fields explicitly set on an update payload.

    Slugs never change after creation and a name cannot be cleared.
    """
    changes = payload.model_dump(exclude_unset=True, exclude={"slug"})
    if "name" in changes and changes["name"] is None:
        raise ValueError("name must not be empty")
    return changes


class PlatformService:
    """CRUD for platforms, keeping games' embedded copies consistent."""
    def __init__(self, db: Database):
        self.db = db
        self.platform_repo = repositories.PlatformRepository(db)
        self.game_repo = repositories.GameRepository(db)

    def list(self) -> List[models.PlatformDocument]:
        return self.platform_repo.list()

    def get(self, slug: str) -> models.PlatformDocument:
        """Return the platform for `slug` or raise `NotFoundError`."""
        platform = self.platform_repo.get(slug)
        if not platform:
            raise NotFoundError(f"platform not found: {slug}")
        return platform

    def create(self, payload: schemas.PlatformIn) -> models.PlatformDocument:
        """Create a platform; the slug defaults to the slugified name."""
        slug = _resolve_slug(payload.slug, payload.name)
        if self.platform_repo.exists(slug):
            raise ConflictError(f"platform already exists: {slug}")
        platform = models.PlatformDocument(
            name=payload.name,
            slug=slug,
            platform_logo_url=payload.platform_logo_url,
            url=payload.url,
        )
        try:
            self.platform_repo.create(platform)
        except DuplicateKeyError:
            raise ConflictError(f"platform already exists: {slug}")
        logger.info("platform_created slug=%s", slug)
        return platform

    def update(self, slug: str, payload: schemas.PlatformUpdate) -> models.PlatformDocument:
        """Apply the fields present in `payload`.

        Games embed a copy of their platforms, so a change to the name or
        logo is propagated to every game released on this platform.
        """
        changes = _changes(payload)
        if not changes:
            return self.get(slug)
        updated = self.platform_repo.update(slug, changes)
        if not updated:
            raise NotFoundError(f"platform not found: {slug}")
        if {"name", "platform_logo_url"} & changes.keys():
            touched = self.game_repo.replace_platform(updated)
            logger.info("platform_updated slug=%s games_refreshed=%d", slug, touched)
        else:
            logger.info("platform_updated slug=%s", slug)
        return updated

    def delete(self, slug: str):
        """Delete a platform and detach it from every game."""
        if not self.platform_repo.delete(slug):
            raise NotFoundError(f"platform not found: {slug}")
        touched = self.game_repo.remove_platform(slug)
        logger.info("platform_deleted slug=%s games_detached=%d", slug, touched)


class GameService:
    """CRUD for games; platform slugs are resolved to embedded platforms."""
    def __init__(self, db: Database):
        self.db = db
        self.game_repo = repositories.GameRepository(db)
        self.platform_repo = repositories.PlatformRepository(db)

    def list(self) -> List[models.GameDocument]:
        return self.game_repo.list()

    def list_for_platform(self, platform_slug: str) -> List[models.GameDocument]:
        """List the games of a platform; unknown platforms raise `NotFoundError`."""
        if not self.platform_repo.exists(platform_slug):
            raise NotFoundError(f"platform not found: {platform_slug}")
        return self.game_repo.list_for_platform(platform_slug)

    def get(self, slug: str) -> models.GameDocument:
        game = self.game_repo.get(slug)
        if not game:
            raise NotFoundError(f"game not found: {slug}")
        return game

    def create(self, payload: schemas.GameIn) -> models.GameDocument:
        """Create a game released on the platforms named by slug in `payload`."""
        slug = _resolve_slug(payload.slug, payload.name)
        if self.game_repo.exists(slug):
            raise ConflictError(f"game already exists: {slug}")
        game = models.GameDocument(
            name=payload.name,
            slug=slug,
            summary=payload.summary,
            cover_url=payload.cover_url,
            first_release_date=payload.first_release_date,
            genres=payload.genres or [],
            platforms=self._embed_platforms(payload.platforms),
        )
        try:
            self.game_repo.create(game)
        except DuplicateKeyError:
            raise ConflictError(f"game already exists: {slug}")
        logger.info("game_created slug=%s platforms=%s", slug, ",".join(p.slug for p in game.platforms))
        return game

    def update(self, slug: str, payload: schemas.GameUpdate) -> models.GameDocument:
        """Apply the fields present in `payload`; `platforms` are re-resolved."""
        if not self.game_repo.exists(slug):
            raise NotFoundError(f"game not found: {slug}")
        changes = _changes(payload)
        if "platforms" in changes:
            if changes["platforms"] is None:
                raise ValueError("a game needs at least one platform")
            changes["platforms"] = [p.model_dump() for p in self._embed_platforms(changes["platforms"])]
        if "genres" in changes and changes["genres"] is None:
            changes["genres"] = []
        if not changes:
            return self.get(slug)
        updated = self.game_repo.update(slug, changes)
        if not updated:
            raise NotFoundError(f"game not found: {slug}")
        logger.info("game_updated slug=%s fields=%s", slug, ",".join(sorted(changes)))
        return updated

    def delete(self, slug: str):
        if not self.game_repo.delete(slug):
            raise NotFoundError(f"game not found: {slug}")
        logger.info("game_deleted slug=%s", slug)

    def _embed_platforms(self, platform_slugs: List[str]) -> List[models.GamePlatform]:
        """Resolve platform slugs, keeping the given order and dropping repeats.

        Raises ValueError naming any slug with no matching platform.
        """
        wanted = list(dict.fromkeys(platform_slugs))
        found = {p.slug: p for p in self.platform_repo.get_many(wanted)}
        missing = [s for s in wanted if s not in found]
        if missing:
            raise ValueError(f"unknown platform(s): {', '.join(missing)}")
        return [models.GamePlatform.from_platform(found[s]) for s in wanted]
