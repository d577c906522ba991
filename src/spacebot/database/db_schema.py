"""
Database schema initialization for automations.

Creates the automation tables, their indexes and timestamp triggers, and
records the schema version.
"""

import aiosqlite

from spacebot.util.logger import get_logger

logger = get_logger("database_schema")

SCHEMA_VERSION = 1


class SchemaManager:
    """Creates and migrates the automation schema."""

    @staticmethod
    async def initialize_schema(db: aiosqlite.Connection) -> None:
        """
        Create all tables, indexes and triggers if they do not exist.

        Args:
            db: Open database connection
        """
        await SchemaManager._create_tables(db)
        await SchemaManager._create_indexes(db)
        await SchemaManager._create_triggers(db)
        await SchemaManager._update_schema_version(db)
        await db.commit()
        logger.info("[SCHEMA] Database schema initialized")

    @staticmethod
    async def _create_tables(db: aiosqlite.Connection) -> None:
        # trigger_event and action_type are legacy single-value columns kept
        # beside the JSON columns for rows written by older versions
        await db.execute("""
            CREATE TABLE IF NOT EXISTS automations (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                guild_id TEXT NOT NULL,
                name TEXT NOT NULL,
                description TEXT,
                enabled INTEGER NOT NULL DEFAULT 1,
                trigger_event TEXT,
                trigger_events TEXT NOT NULL DEFAULT '[]',
                trigger_filters TEXT,
                action_type TEXT,
                action_config TEXT NOT NULL DEFAULT '{}',
                created_by TEXT,
                trigger_count INTEGER NOT NULL DEFAULT 0,
                last_triggered_at TIMESTAMP,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS automation_logs (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                automation_id INTEGER,
                guild_id TEXT NOT NULL,
                trigger_event TEXT NOT NULL,
                trigger_data TEXT,
                action_result TEXT,
                success INTEGER NOT NULL DEFAULT 0,
                error_message TEXT,
                execution_time_ms INTEGER,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                FOREIGN KEY (automation_id) REFERENCES automations(id) ON DELETE SET NULL
            )
        """)

        await db.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    @staticmethod
    async def _create_indexes(db: aiosqlite.Connection) -> None:
        await db.execute("CREATE INDEX IF NOT EXISTS idx_automations_guild ON automations(guild_id, enabled)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_automations_trigger ON automations(guild_id, trigger_event)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_automation_logs_guild ON automation_logs(guild_id, created_at DESC)")
        await db.execute("CREATE INDEX IF NOT EXISTS idx_automation_logs_automation ON automation_logs(automation_id, created_at DESC)")

    @staticmethod
    async def _create_triggers(db: aiosqlite.Connection) -> None:
        # Only fires when the caller did not set updated_at itself
        await db.execute("""
            CREATE TRIGGER IF NOT EXISTS update_automations_timestamp
            AFTER UPDATE ON automations
            FOR EACH ROW
            WHEN NEW.updated_at = OLD.updated_at
                AND (NEW.name IS NOT OLD.name
                    OR NEW.description IS NOT OLD.description
                    OR NEW.enabled IS NOT OLD.enabled
                    OR NEW.trigger_events IS NOT OLD.trigger_events
                    OR NEW.trigger_filters IS NOT OLD.trigger_filters
                    OR NEW.action_type IS NOT OLD.action_type
                    OR NEW.action_config IS NOT OLD.action_config)
            BEGIN
                UPDATE automations SET updated_at = CURRENT_TIMESTAMP
                WHERE id = NEW.id;
            END
        """)

    @staticmethod
    async def _update_schema_version(db: aiosqlite.Connection) -> None:
        await db.execute("INSERT OR IGNORE INTO schema_version (version) VALUES (?)", (SCHEMA_VERSION,))
