"""
Database lifecycle for SpaceBot.

`Database` opens the shared connection, creates the schema and exposes the
automation store. Call `initialize()` once at startup and `shutdown()` on exit.
"""

from __future__ import annotations

from pathlib import Path

from spacebot.database.automations import AutomationStore
from spacebot.database.db_cache import TTLCache
from spacebot.database.db_connection import ConnectionManager, db_connection
from spacebot.database.db_schema import SchemaManager
from spacebot.util.logger import get_logger

logger = get_logger("database")

DB_PATH = Path("./data/app.db").resolve()


class Database:
    """
    Coordinator for the SQLite database.

    Args:
        db_path: Path to the SQLite database file.
        connection: Connection manager to use; defaults to the process-wide one.
        rules_ttl: Lifetime in seconds of cached rule lookups.
    """

    def __init__(
        self,
        db_path: Path = DB_PATH,
        connection: ConnectionManager | None = None,
        rules_ttl: float = 30,
    ):
        self.db_path = db_path
        self.connection = connection or db_connection
        self.cache = TTLCache(default_ttl=rules_ttl)
        self.automations = AutomationStore(self.connection, self.cache, rules_ttl=rules_ttl)
        self._initialized = False

    async def initialize(self) -> bool:
        """
        Open the connection and create the schema.

        Returns:
            True if initialization succeeded, False otherwise
        """
        if self._initialized:
            logger.debug("[DATABASE] Already initialized, skipping")
            return True

        try:
            await self.connection.open(self.db_path)
            await SchemaManager.initialize_schema(self.connection.connection)
        except Exception as e:
            logger.error("[DATABASE] Database initialization failed: %s", e)
            return False

        self._initialized = True
        logger.info("[DATABASE] Database initialized at %s", self.db_path)
        return True

    async def shutdown(self) -> None:
        if not self._initialized:
            return
        await self.connection.close()
        self.cache.invalidate()
        self._initialized = False
        logger.info("[DATABASE] Database shutdown complete")
