"""
Automation persistence: CRUD for automation rules and their execution logs.

Rows keep both storage shapes of a rule's actions: the legacy single
``action_type`` / ``action_config`` pair, and an ``actions`` array stored
inside ``action_config``. Everything read through this store is normalized
into `Automation` objects by `Automation.from_record`, so the engine only
ever sees the ``actions`` list.

The per-event lookup (`get_triggered_automations`) is served from a
short-TTL cache; every write invalidates the affected guild's entries.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

import aiosqlite

from spacebot.automation.catalog import rule_warnings
from spacebot.database.db_cache import TTLCache
from spacebot.database.db_connection import ConnectionManager
from spacebot.datatypes.automation_datatypes import PLACEHOLDER_ACTION_TYPES, Automation, ExecutionLog
from spacebot.util.logger import get_logger

logger = get_logger("automation_store")

DEFAULT_PAGE_SIZE = 50

_UNSET: Any = object()


@dataclass(slots=True)
class AutomationLogEntry:
    """One stored execution log row, with the automation's current name."""

    id: int
    automation_id: int | None
    automation_name: str | None
    guild_id: str
    trigger_event: str
    trigger_data: Dict[str, Any] | None
    action_result: List[Dict[str, Any]] | None
    success: bool
    error_message: str | None
    execution_time_ms: int | None
    created_at: str | None


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)


def _loads(value: Any) -> Any:
    if value is None or value == "":
        return None
    try:
        return json.loads(value)
    except ValueError:
        logger.warning("[AUTOMATIONS] Ignoring malformed JSON column value")
        return None


def clean_actions(actions: Any) -> List[Dict[str, Any]]:
    """Reduce an actions array to plain ``{type, config}`` pairs."""
    if not isinstance(actions, list):
        return []
    cleaned = []
    for action in actions:
        if not isinstance(action, Mapping):
            continue
        config = action.get("config")
        cleaned.append({
            "type": action.get("type"),
            "config": dict(config) if isinstance(config, Mapping) else {},
        })
    return cleaned


def clean_action_config(action_config: Any, actions: Any = _UNSET) -> Dict[str, Any]:
    """
    Copy an action config for storage.

    A nested ``actions`` array is reduced with `clean_actions`; passing
    ``actions`` explicitly replaces the nested array.
    """
    source = dict(action_config) if isinstance(action_config, Mapping) else {}
    cleaned = {key: value for key, value in source.items() if key != "actions"}
    if actions is not _UNSET:
        cleaned["actions"] = clean_actions(actions)
    elif "actions" in source:
        cleaned["actions"] = clean_actions(source["actions"])
    return cleaned


def _trigger_events(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    return [str(value)]


def _action_types(action_type: Any, action_config: Mapping[str, Any]) -> List[Any]:
    actions = action_config.get("actions")
    if actions:
        return [action["type"] for action in actions]
    if action_type and action_type not in PLACEHOLDER_ACTION_TYPES:
        return [action_type]
    return []


def _warn_about_rule(automation_id: Any, guild_id: str, trigger_events, filters, action_types) -> None:
    for warning in rule_warnings(trigger_events, filters, action_types):
        logger.warning("[AUTOMATIONS] Automation %s in guild %s: %s", automation_id, guild_id, warning)


def _row_to_automation(row: aiosqlite.Row) -> Automation:
    record = dict(row)
    record["enabled"] = bool(record.get("enabled"))
    return Automation.from_record(record)


def _row_to_log(row: aiosqlite.Row) -> AutomationLogEntry:
    record = dict(row)
    return AutomationLogEntry(
        id=record["id"],
        automation_id=record.get("automation_id"),
        automation_name=record.get("automation_name"),
        guild_id=record["guild_id"],
        trigger_event=record["trigger_event"],
        trigger_data=_loads(record.get("trigger_data")),
        action_result=_loads(record.get("action_result")),
        success=bool(record.get("success")),
        error_message=record.get("error_message"),
        execution_time_ms=record.get("execution_time_ms"),
        created_at=record.get("created_at"),
    )


class AutomationStore:
    """
    Repository for the ``automations`` and ``automation_logs`` tables.

    Args:
        connection: Shared connection manager.
        cache: Cache used for the per-event rule lookup.
        rules_ttl: Lifetime in seconds of cached rule lists; 0 disables caching.
    """

    def __init__(self, connection: ConnectionManager, cache: TTLCache | None = None, rules_ttl: float = 30):
        self._db = connection
        self._cache = cache if cache is not None else TTLCache(default_ttl=rules_ttl)
        self._rules_ttl = rules_ttl

    @staticmethod
    def _rules_key(guild_id: str, event_type: str | None = None) -> str:
        prefix = f"automations:{guild_id}:"
        return prefix if event_type is None else f"{prefix}{event_type}"

    def _invalidate_guild(self, guild_id: Any) -> None:
        self._cache.invalidate(self._rules_key(str(guild_id)))

    # ==========================================
    # Rules
    # ==========================================

    async def create_automation(self, automation: Mapping[str, Any]) -> int:
        """
        Insert a new automation.

        Args:
            automation: Fields of the new rule. ``trigger_events`` (or the
                legacy ``trigger_event``) lists its events; actions come either
                as ``actions`` or inside ``action_config``.

        Returns:
            int: The new automation's ID.
        """
        trigger_events = automation.get("trigger_events")
        if trigger_events is None and automation.get("trigger_event"):
            trigger_events = [automation["trigger_event"]]
        trigger_events = _trigger_events(trigger_events)

        if "actions" in automation:
            action_config = clean_action_config(automation.get("action_config"), automation["actions"])
        else:
            action_config = clean_action_config(automation.get("action_config"))

        filters = automation.get("trigger_filters")
        guild_id = str(automation["guild_id"])

        async with self._db.transaction() as conn:
            cursor = await conn.execute(
                """
                INSERT INTO automations (
                    guild_id, name, description, enabled,
                    trigger_event, trigger_events, trigger_filters,
                    action_type, action_config, created_by
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    guild_id,
                    automation["name"],
                    automation.get("description"),
                    0 if automation.get("enabled") is False else 1,
                    trigger_events[0] if trigger_events else None,
                    _dumps(trigger_events),
                    _dumps(filters) if filters else None,
                    automation.get("action_type"),
                    _dumps(action_config),
                    automation.get("created_by"),
                ),
            )
            automation_id = cursor.lastrowid

        self._invalidate_guild(guild_id)
        logger.info("[AUTOMATIONS] Created automation %s in guild %s", automation_id, guild_id)
        _warn_about_rule(
            automation_id,
            guild_id,
            trigger_events,
            filters,
            _action_types(automation.get("action_type"), action_config),
        )
        return automation_id

    async def update_automation(self, automation_id: int, guild_id: str, updates: Mapping[str, Any]) -> bool:
        """
        Apply a partial update to an automation.

        Only keys present in ``updates`` change. Updating ``trigger_events``
        also refreshes the legacy ``trigger_event`` column and vice versa.

        Returns:
            bool: True if a row was updated.
        """
        fields: List[str] = []
        values: List[Any] = []
        trigger_events: List[str] = []
        action_types: List[Any] = []

        if "name" in updates:
            fields.append("name = ?")
            values.append(updates["name"])
        if "description" in updates:
            fields.append("description = ?")
            values.append(updates["description"])
        if "enabled" in updates:
            fields.append("enabled = ?")
            values.append(1 if updates["enabled"] else 0)

        if "trigger_events" in updates:
            trigger_events = _trigger_events(updates["trigger_events"])
            fields.extend(["trigger_events = ?", "trigger_event = ?"])
            values.extend([_dumps(trigger_events), trigger_events[0] if trigger_events else None])
        elif "trigger_event" in updates:
            trigger_events = _trigger_events(updates["trigger_event"])
            fields.extend(["trigger_event = ?", "trigger_events = ?"])
            values.extend([updates["trigger_event"], _dumps(trigger_events)])

        if "trigger_filters" in updates:
            filters = updates["trigger_filters"]
            fields.append("trigger_filters = ?")
            values.append(_dumps(filters) if filters else None)
        if "action_type" in updates:
            fields.append("action_type = ?")
            values.append(updates["action_type"])
            action_types = _action_types(updates["action_type"], {})
        if "action_config" in updates or "actions" in updates:
            if "actions" in updates:
                action_config = clean_action_config(updates.get("action_config"), updates["actions"])
            else:
                action_config = clean_action_config(updates.get("action_config"))
            fields.append("action_config = ?")
            values.append(_dumps(action_config))
            action_types = _action_types(updates.get("action_type"), action_config)

        fields.append("updated_at = CURRENT_TIMESTAMP")
        values.extend([automation_id, str(guild_id)])

        async with self._db.transaction() as conn:
            cursor = await conn.execute(
                f"UPDATE automations SET {', '.join(fields)} WHERE id = ? AND guild_id = ?",
                values,
            )
            updated = cursor.rowcount > 0

        self._invalidate_guild(guild_id)
        if updated:
            _warn_about_rule(
                automation_id,
                str(guild_id),
                trigger_events,
                updates.get("trigger_filters"),
                action_types,
            )
        return updated

    async def delete_automation(self, automation_id: int, guild_id: str) -> bool:
        async with self._db.transaction() as conn:
            cursor = await conn.execute(
                "DELETE FROM automations WHERE id = ? AND guild_id = ?",
                (automation_id, str(guild_id)),
            )
            deleted = cursor.rowcount > 0

        self._invalidate_guild(guild_id)
        if deleted:
            logger.info("[AUTOMATIONS] Deleted automation %s in guild %s", automation_id, guild_id)
        return deleted

    async def toggle_automation(self, automation_id: int, guild_id: str, enabled: bool) -> bool:
        async with self._db.transaction() as conn:
            cursor = await conn.execute(
                "UPDATE automations SET enabled = ?, updated_at = CURRENT_TIMESTAMP WHERE id = ? AND guild_id = ?",
                (1 if enabled else 0, automation_id, str(guild_id)),
            )
            toggled = cursor.rowcount > 0

        self._invalidate_guild(guild_id)
        return toggled

    async def get_automation(self, automation_id: int, guild_id: str) -> Optional[Automation]:
        async with self._db.read() as conn:
            cursor = await conn.execute(
                "SELECT * FROM automations WHERE id = ? AND guild_id = ?",
                (automation_id, str(guild_id)),
            )
            row = await cursor.fetchone()
        return _row_to_automation(row) if row else None

    async def get_automations(
        self,
        guild_id: str,
        *,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
        event_type: str | None = None,
        enabled: bool | None = None,
    ) -> Tuple[List[Automation], int]:
        """
        List a guild's automations, newest first.

        Args:
            guild_id: Guild to list.
            limit / offset: Paging window.
            event_type: Only automations triggered by this event type.
            enabled: Only enabled (True) or disabled (False) automations.

        Returns:
            Tuple[List[Automation], int]: The page and the total match count.
        """
        where = ["guild_id = ?"]
        params: List[Any] = [str(guild_id)]

        if event_type:
            where.append(
                "(trigger_event = ? OR EXISTS (SELECT 1 FROM json_each(automations.trigger_events) WHERE json_each.value = ?))"
            )
            params.extend([event_type, event_type])
        if enabled is not None:
            where.append("enabled = ?")
            params.append(1 if enabled else 0)

        where_clause = " AND ".join(where)
        async with self._db.read() as conn:
            cursor = await conn.execute(f"SELECT COUNT(*) AS total FROM automations WHERE {where_clause}", params)
            total = (await cursor.fetchone())["total"]

            cursor = await conn.execute(
                f"SELECT * FROM automations WHERE {where_clause} ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?",
                [*params, limit, offset],
            )
            rows = await cursor.fetchall()

        return [_row_to_automation(row) for row in rows], total

    async def get_triggered_automations(self, guild_id: str, event_type: str) -> List[Automation]:
        """
        Return the enabled automations of a guild triggered by ``event_type``.

        Matches rules whose ``trigger_events`` array contains the type, and
        legacy rules whose single ``trigger_event`` equals it.
        """
        key = self._rules_key(str(guild_id), event_type)
        cached = self._cache.get(key)
        if cached is not None:
            return list(cached)

        async with self._db.read() as conn:
            cursor = await conn.execute(
                """
                SELECT * FROM automations
                WHERE guild_id = ? AND enabled = 1
                    AND (
                        trigger_event = ?
                        OR EXISTS (
                            SELECT 1 FROM json_each(automations.trigger_events)
                            WHERE json_each.value = ?
                        )
                    )
                ORDER BY id
                """,
                (str(guild_id), event_type, event_type),
            )
            rows = await cursor.fetchall()

        automations = [_row_to_automation(row) for row in rows]
        logger.debug("[AUTOMATIONS] %d automations for %s in guild %s", len(automations), event_type, guild_id)
        self._cache.set(key, automations, self._rules_ttl)
        return list(automations)

    # ==========================================
    # Execution logs
    # ==========================================

    async def log_execution(self, log: ExecutionLog) -> None:
        """Insert an execution log and bump the automation's trigger statistics."""
        async with self._db.transaction() as conn:
            await conn.execute(
                """
                INSERT INTO automation_logs (
                    automation_id, guild_id, trigger_event,
                    trigger_data, action_result, success, error_message, execution_time_ms
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    log.automation_id,
                    log.guild_id,
                    log.trigger_event,
                    _dumps(log.trigger_data) if log.trigger_data is not None else None,
                    _dumps(log.action_result) if log.action_result is not None else None,
                    1 if log.success else 0,
                    log.error_message,
                    log.execution_time_ms,
                ),
            )
            await conn.execute(
                """
                UPDATE automations
                SET trigger_count = trigger_count + 1, last_triggered_at = CURRENT_TIMESTAMP
                WHERE id = ?
                """,
                (log.automation_id,),
            )
        self._invalidate_guild(log.guild_id)

    async def get_automation_logs(
        self,
        guild_id: str,
        *,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
        automation_id: int | None = None,
        success: bool | None = None,
    ) -> Tuple[List[AutomationLogEntry], int]:
        """List a guild's execution logs, newest first, with the total match count."""
        where = ["al.guild_id = ?"]
        params: List[Any] = [str(guild_id)]

        if automation_id:
            where.append("al.automation_id = ?")
            params.append(automation_id)
        if success is not None:
            where.append("al.success = ?")
            params.append(1 if success else 0)

        where_clause = " AND ".join(where)
        async with self._db.read() as conn:
            cursor = await conn.execute(
                f"SELECT COUNT(*) AS total FROM automation_logs al WHERE {where_clause}", params
            )
            total = (await cursor.fetchone())["total"]

            cursor = await conn.execute(
                f"""
                SELECT al.*, a.name AS automation_name
                FROM automation_logs al
                LEFT JOIN automations a ON al.automation_id = a.id
                WHERE {where_clause}
                ORDER BY al.created_at DESC, al.id DESC
                LIMIT ? OFFSET ?
                """,
                [*params, limit, offset],
            )
            rows = await cursor.fetchall()

        return [_row_to_log(row) for row in rows], total
