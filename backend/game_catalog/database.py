"""Database client and helpers.

This module configures the pymongo client for the catalog database and
provides small helpers used by the application, scripts and tests. The
client is created lazily (`connect=False`) so importing the app never
opens a connection; tests replace `client` with an in-memory one.
"""

from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from .config import settings

client = MongoClient(settings.MONGO_URL, connect=False)

PLATFORMS = "platforms"
GAMES = "games"
SESSIONS = "sessions"


def get_db() -> Database:
    """Return the configured catalog database."""
    return client[settings.MONGO_DB]


def ensure_indexes(db: Database = None):
    """Create the indexes the catalog relies on.

    Slugs are the public identifiers of platforms and games so they get
    unique indexes. Sessions expire through a TTL index on `expires_at`.
    Calling this repeatedly is harmless.
    """
    db = db if db is not None else get_db()
    db[PLATFORMS].create_index([("slug", ASCENDING)], unique=True)
    db[PLATFORMS].create_index([("name", ASCENDING)])
    db[GAMES].create_index([("slug", ASCENDING)], unique=True)
    db[GAMES].create_index([("name", ASCENDING)])
    db[GAMES].create_index([("platforms.slug", ASCENDING)])
    db[SESSIONS].create_index([("expires_at", ASCENDING)], expireAfterSeconds=0)


def get_database():
    """Yield the catalog `Database` for FastAPI dependency injection."""
    yield get_db()
