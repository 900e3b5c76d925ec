"""Simple index runner for the MongoDB catalog database."""
from game_catalog.config import settings
from game_catalog.database import ensure_indexes, get_db


def run():
    """Create the collections' indexes against the configured database.

    The application also does this at startup; the script is handy when
    preparing a fresh database before the first deploy.
    """
    print("Using database:", settings.MONGO_DB)
    ensure_indexes(get_db())
    print("Indexes applied.")


if __name__ == '__main__':
    run()
