"""
Data structures for the automation engine.

This module defines the enums and dataclasses that flow through the engine:
normalized gateway events, stored automation rules, per-action results and
the execution log written after every matched rule.

Key Features:
- `ActionType` / `FilterKey`: closed vocabularies of actions and filter predicates.
- `AutomationEvent`: normalized record of something that happened in a guild.
- `Automation`: a stored rule, normalized so that legacy single-action rows and
  new ``actions`` arrays look the same to the engine.
- `ActionResult`, `ExecutionLog`, `ProcessResult`: outcome records.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional


class ActionType(Enum):
    """Enumeration of the actions an automation can perform."""

    DELETE_USER_MESSAGES = "DELETE_USER_MESSAGES"
    DELETE_MESSAGES = "DELETE_MESSAGES"
    SEND_MESSAGE = "SEND_MESSAGE"
    ADD_ROLE = "ADD_ROLE"
    REMOVE_ROLE = "REMOVE_ROLE"
    KICK_MEMBER = "KICK_MEMBER"
    BAN_MEMBER = "BAN_MEMBER"
    TIMEOUT_MEMBER = "TIMEOUT_MEMBER"
    LOG_TO_CHANNEL = "LOG_TO_CHANNEL"
    CREATE_THREAD = "CREATE_THREAD"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, raw: Any) -> Optional["ActionType"]:
        """Return the matching member, or None for unknown or missing values."""
        try:
            return cls(raw)
        except ValueError:
            return None


class FilterKey(Enum):
    """Enumeration of the filter predicates understood by the evaluator."""

    CHANNEL_ID = "channel_id"
    NOT_CHANNEL_ID = "not_channel_id"
    ACTOR_HAS_ROLE = "actor_has_role"
    ACTOR_MISSING_ROLE = "actor_missing_role"
    TARGET_HAS_ROLE = "target_has_role"
    CONTENT_CONTAINS = "content_contains"
    CONTENT_REGEX = "content_regex"
    BOT_FILTER = "bot_filter"
    ACTOR_ID = "actor_id"
    NOT_ACTOR_ID = "not_actor_id"
    EMBED_CONTAINS = "embed_contains"
    MIN_ACCOUNT_AGE_DAYS = "min_account_age_days"
    MAX_ACCOUNT_AGE_DAYS = "max_account_age_days"

    def __str__(self) -> str:
        return self.value


# Placeholder action types written by the dashboard for rules that only use the actions array
PLACEHOLDER_ACTION_TYPES = frozenset({"NONE", "MULTIPLE"})

_EVENT_FIELDS = (
    "guild_id",
    "event_type",
    "event_category",
    "actor_id",
    "actor_name",
    "target_id",
    "target_name",
    "channel_id",
    "channel_name",
)


def _load_json(value: Any, default: Any) -> Any:
    """Decode a JSON column, passing already-decoded values through."""
    if value is None or value == "":
        return default
    if isinstance(value, (str, bytes)):
        try:
            return json.loads(value)
        except ValueError:
            return default
    return value


@dataclass(slots=True)
class AutomationEvent:
    """Normalized gateway event consumed by one automation run.

    Attributes:
        guild_id: Guild the event happened in.
        event_type: Event type such as ``MEMBER_JOIN`` or ``MESSAGE_CREATE``.
        event_category: Coarse grouping (``member``, ``message``, ``voice``...).
        actor_id / actor_name: User who caused the event, if any.
        target_id / target_name: User the event was aimed at, if any.
        channel_id / channel_name: Channel the event happened in, if any.
        details: Free-form event payload (``content``, ``isBot``, ``embedTexts``...).
        options: Slash command option values keyed by option name.
        extra: Any other top-level keys of the producer payload, such as the
            flattened ``option_<name>`` form.
    """

    guild_id: str
    event_type: str
    event_category: str | None = None
    actor_id: str | None = None
    actor_name: str | None = None
    target_id: str | None = None
    target_name: str | None = None
    channel_id: str | None = None
    channel_name: str | None = None
    details: Dict[str, Any] = field(default_factory=dict)
    options: Dict[str, Any] = field(default_factory=dict)
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "AutomationEvent":
        """Build an event from the flat producer payload."""
        known = {key: payload.get(key) for key in _EVENT_FIELDS}
        for key in ("guild_id", "actor_id", "target_id", "channel_id"):
            if known[key] is not None:
                known[key] = str(known[key])
        extra = {
            key: value
            for key, value in payload.items()
            if key not in _EVENT_FIELDS and key not in ("details", "options")
        }
        return cls(
            **known,
            details=dict(payload.get("details") or {}),
            options=dict(payload.get("options") or {}),
            extra=extra,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Return the flat payload shape, as stored in ``trigger_data``."""
        payload: Dict[str, Any] = {
            key: getattr(self, key) for key in _EVENT_FIELDS if getattr(self, key) is not None
        }
        if self.details:
            payload["details"] = self.details
        if self.options:
            payload["options"] = self.options
        payload.update(self.extra)
        return payload

    def get_option(self, name: str) -> Any:
        """Look up a command option, first in ``options`` then as flat ``option_<name>``.

        None and the empty string count as missing, so such a nested value
        falls through to the flat form. Other falsy values such as 0 are kept.
        """
        for value in (self.options.get(name), self.extra.get(f"option_{name}")):
            if value is not None and value != "":
                return value
        return None

    @property
    def is_bot(self) -> bool:
        return self.details.get("isBot") is True


@dataclass(slots=True)
class AutomationAction:
    """One step of an automation: an action type and its raw configuration."""

    type: str
    config: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class Automation:
    """A stored, guild-scoped automation rule."""

    id: int | None
    guild_id: str
    name: str
    enabled: bool = True
    trigger_events: List[str] = field(default_factory=list)
    trigger_filters: Dict[str, Any] = field(default_factory=dict)
    actions: List[AutomationAction] = field(default_factory=list)
    description: str | None = None
    created_by: str | None = None
    trigger_count: int = 0
    last_triggered_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    @staticmethod
    def normalize_actions(action_type: Any, action_config: Any) -> List[AutomationAction]:
        """Turn either stored action representation into an ordered action list.

        A non-empty ``action_config["actions"]`` list wins. Otherwise the
        legacy top-level ``action_type`` / ``action_config`` pair becomes a
        single action, unless the type is missing or a placeholder.
        """
        config = action_config if isinstance(action_config, dict) else {}
        stacked = config.get("actions")
        if isinstance(stacked, list) and stacked:
            actions = []
            for entry in stacked:
                if not isinstance(entry, dict):
                    continue
                step_config = entry.get("config")
                actions.append(
                    AutomationAction(
                        type=str(entry.get("type")),
                        config=dict(step_config) if isinstance(step_config, dict) else {},
                    )
                )
            return actions

        if not action_type or action_type in PLACEHOLDER_ACTION_TYPES:
            return []
        return [AutomationAction(type=str(action_type), config=dict(config))]

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "Automation":
        """Build an automation from a database row or an API payload.

        JSON columns may be passed either encoded or already decoded.
        """
        trigger_events = _load_json(record.get("trigger_events"), None)
        if not trigger_events:
            legacy_trigger = record.get("trigger_event")
            trigger_events = [legacy_trigger] if legacy_trigger else []
        elif isinstance(trigger_events, str):
            trigger_events = [trigger_events]

        filters = _load_json(record.get("trigger_filters"), {}) or {}
        action_config = _load_json(record.get("action_config"), {}) or {}

        if "actions" in record and isinstance(record.get("actions"), list) and record["actions"]:
            actions = cls.normalize_actions(None, {"actions": record["actions"]})
        else:
            actions = cls.normalize_actions(record.get("action_type"), action_config)

        return cls(
            id=record.get("id"),
            guild_id=str(record.get("guild_id")),
            name=str(record.get("name") or ""),
            enabled=bool(record.get("enabled", True)),
            trigger_events=list(trigger_events),
            trigger_filters=dict(filters) if isinstance(filters, dict) else {},
            actions=actions,
            description=record.get("description"),
            created_by=record.get("created_by"),
            trigger_count=int(record.get("trigger_count") or 0),
            last_triggered_at=record.get("last_triggered_at"),
            created_at=record.get("created_at"),
            updated_at=record.get("updated_at"),
        )


@dataclass(slots=True)
class FilterContext:
    """Auxiliary data the filter evaluator cannot read from the event itself."""

    actor_roles: List[str] | None = None
    target_roles: List[str] | None = None
    account_age_days: float | None = None


@dataclass(slots=True)
class ActionResult:
    """Outcome of one action invocation."""

    success: bool
    result: Any = None
    error: str | None = None

    @classmethod
    def ok(cls, result: Any = None) -> "ActionResult":
        return cls(success=True, result=result)

    @classmethod
    def fail(cls, error: str) -> "ActionResult":
        return cls(success=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success}
        if self.result is not None:
            payload["result"] = self.result
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(slots=True)
class ExecutionLog:
    """Record of one automation's outcome for one triggering event."""

    automation_id: int | None
    guild_id: str
    trigger_event: str
    trigger_data: Dict[str, Any]
    action_result: List[Dict[str, Any]]
    success: bool
    error_message: str | None = None
    execution_time_ms: int = 0


@dataclass(slots=True)
class ProcessResult:
    """Per-event totals returned by the runner."""

    executed: int = 0
    errors: int = 0
