"""Repository classes encapsulating database operations.

Each repository is small and focused on a single collection (platforms,
games, sessions). Repositories return document models and never raise
for a missing document; callers decide what absence means.
"""

from datetime import datetime
from typing import List, Optional

from pymongo import ASCENDING, ReturnDocument
from pymongo.database import Database

from . import models
from .database import GAMES, PLATFORMS, SESSIONS


class PlatformRepository:
    """CRUD operations for `PlatformDocument` objects."""
    def __init__(self, db: Database):
        self.collection = db[PLATFORMS]

    def list(self) -> List[models.PlatformDocument]:
        """Return every platform ordered by name."""
        cursor = self.collection.find({}).sort("name", ASCENDING)
        return [models.PlatformDocument.from_document(d) for d in cursor]

    def get(self, slug: str) -> Optional[models.PlatformDocument]:
        """Return a platform by slug or `None` if not found."""
        doc = self.collection.find_one({"slug": slug})
        return models.PlatformDocument.from_document(doc) if doc else None

    def get_many(self, slugs: List[str]) -> List[models.PlatformDocument]:
        """Return the platforms matching `slugs`, in no particular order."""
        cursor = self.collection.find({"slug": {"$in": list(slugs)}})
        return [models.PlatformDocument.from_document(d) for d in cursor]

    def exists(self, slug: str) -> bool:
        return self.collection.count_documents({"slug": slug}, limit=1) > 0

    def create(self, platform: models.PlatformDocument) -> models.PlatformDocument:
        """Insert a new platform and return it."""
        self.collection.insert_one(platform.to_document())
        return platform

    def update(self, slug: str, changes: dict) -> Optional[models.PlatformDocument]:
        """Apply `changes` and return the updated platform, or `None`."""
        doc = self.collection.find_one_and_update(
            {"slug": slug},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        return models.PlatformDocument.from_document(doc) if doc else None

    def delete(self, slug: str) -> bool:
        """Delete a platform; return True if one was removed."""
        return self.collection.delete_one({"slug": slug}).deleted_count == 1


class GameRepository:
    """CRUD operations for `GameDocument` objects and their embedded platforms."""
    def __init__(self, db: Database):
        self.collection = db[GAMES]

    def list(self) -> List[models.GameDocument]:
        """Return every game ordered by name."""
        cursor = self.collection.find({}).sort("name", ASCENDING)
        return [models.GameDocument.from_document(d) for d in cursor]

    def list_for_platform(self, platform_slug: str) -> List[models.GameDocument]:
        """Return the games released on `platform_slug`, ordered by name."""
        cursor = self.collection.find({"platforms.slug": platform_slug}).sort("name", ASCENDING)
        return [models.GameDocument.from_document(d) for d in cursor]

    def get(self, slug: str) -> Optional[models.GameDocument]:
        doc = self.collection.find_one({"slug": slug})
        return models.GameDocument.from_document(doc) if doc else None

    def exists(self, slug: str) -> bool:
        return self.collection.count_documents({"slug": slug}, limit=1) > 0

    def create(self, game: models.GameDocument) -> models.GameDocument:
        self.collection.insert_one(game.to_document())
        return game

    def update(self, slug: str, changes: dict) -> Optional[models.GameDocument]:
        doc = self.collection.find_one_and_update(
            {"slug": slug},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        return models.GameDocument.from_document(doc) if doc else None

    def delete(self, slug: str) -> bool:
        return self.collection.delete_one({"slug": slug}).deleted_count == 1

    def replace_platform(self, platform: models.PlatformDocument) -> int:
        """Refresh the embedded copy of `platform` in every game that lists it.

        Returns the number of games touched.
        """
        embedded = models.GamePlatform.from_platform(platform).model_dump()
        touched = 0
        for doc in self.collection.find({"platforms.slug": platform.slug}):
            platforms = [embedded if p.get("slug") == platform.slug else p for p in doc.get("platforms", [])]
            self.collection.update_one({"_id": doc["_id"]}, {"$set": {"platforms": platforms}})
            touched += 1
        return touched

    def remove_platform(self, platform_slug: str) -> int:
        """Pull `platform_slug` from every game; return the number of games touched."""
        result = self.collection.update_many(
            {"platforms.slug": platform_slug},
            {"$pull": {"platforms": {"slug": platform_slug}}},
        )
        return result.modified_count


class SessionRepository:
    """Persist session payloads keyed by session id."""
    def __init__(self, db: Database):
        self.collection = db[SESSIONS]

    def load(self, sid: str, now: datetime) -> Optional[dict]:
        """Return the stored data for `sid` unless missing or expired.

        Expiry times are naive UTC datetimes, as MongoDB stores them.
        """
        doc = self.collection.find_one({"_id": sid, "expires_at": {"$gt": now}})
        return dict(doc.get("data") or {}) if doc else None

    def save(self, sid: str, data: dict, expires_at: datetime):
        """Upsert the session payload and its expiry."""
        self.collection.update_one(
            {"_id": sid},
            {"$set": {"data": data, "expires_at": expires_at}},
            upsert=True,
        )

    def delete(self, sid: str):
        self.collection.delete_one({"_id": sid})

    def purge_expired(self, now: datetime) -> int:
        """Remove expired sessions; the TTL index does this too on a real server."""
        return self.collection.delete_many({"expires_at": {"$lte": now}}).deleted_count
