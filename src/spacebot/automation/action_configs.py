"""
Typed views over raw action configuration.

Action configs are stored as loosely typed JSON written by the dashboard:
numbers arrive as strings, booleans as ``"false"``, keys go missing. Each
dataclass here coerces one action kind's config once, so handlers can work
with plain Python types. Parameters that may reference a command option
(``option:<name>``) stay raw and are resolved per event by
:func:`spacebot.automation.values.resolve_number`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from spacebot.automation.values import parse_float

DEFAULT_REASON = "Automated action"
DEFAULT_TIMEOUT_REASON = "Automated timeout"
DEFAULT_TIMEOUT_MINUTES = 60
DEFAULT_DELETE_LIMIT = 100
DEFAULT_AUTO_ARCHIVE_MINUTES = 1440
AUTO_ARCHIVE_CHOICES = (60, 1440, 4320, 10080)
MAX_BAN_DELETE_DAYS = 7

# Raw value that may be a number, a numeric string or an ``option:<name>`` reference
NumberSource = Any


def as_text(value: Any) -> str | None:
    """Return a non-empty string, or None for missing/empty values."""
    if value is None:
        return None
    text = str(value)
    return text if text else None


def as_bool(value: Any, default: bool) -> bool:
    """Coerce checkbox-style values, treating the string ``"false"`` as False."""
    if value is None or value == "":
        return default
    if isinstance(value, str):
        return value.strip().lower() not in ("false", "0", "no", "off")
    return bool(value)


def as_channel_list(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return ",".join(str(item) for item in value) or "ALL"
    return as_text(value) or "ALL"


@dataclass(slots=True, frozen=True)
class DeleteMessagesConfig:
    """Shared config of DELETE_USER_MESSAGES and DELETE_MESSAGES."""

    channel_ids: str = "ALL"
    max_age_days: NumberSource = None
    max_messages: NumberSource = None
    default_max_messages: int | None = None
    skip_pinned: bool = True

    @classmethod
    def for_user_messages(cls, raw: Mapping[str, Any]) -> "DeleteMessagesConfig":
        return cls(
            channel_ids=as_channel_list(raw.get("channel_ids")),
            max_age_days=raw.get("max_age_days"),
            max_messages=raw.get("max_messages"),
            default_max_messages=None,
            skip_pinned=as_bool(raw.get("skip_pinned"), True),
        )

    @classmethod
    def for_messages(cls, raw: Mapping[str, Any]) -> "DeleteMessagesConfig":
        # The older action only knows a plain message limit
        return cls(
            channel_ids=as_channel_list(raw.get("channel_ids")),
            max_age_days=raw.get("max_age_days"),
            max_messages=raw.get("limit"),
            default_max_messages=DEFAULT_DELETE_LIMIT,
            skip_pinned=as_bool(raw.get("skip_pinned"), False),
        )


@dataclass(slots=True, frozen=True)
class SendMessageConfig:
    channel_id: str | None = None
    content: str | None = None
    embed: bool = False

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "SendMessageConfig":
        return cls(
            channel_id=as_text(raw.get("channel_id")),
            content=as_text(raw.get("content")),
            embed=as_bool(raw.get("embed"), False),
        )


@dataclass(slots=True, frozen=True)
class RoleConfig:
    role_id: str | None = None

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "RoleConfig":
        return cls(role_id=as_text(raw.get("role_id")))


@dataclass(slots=True, frozen=True)
class KickConfig:
    reason: str = DEFAULT_REASON

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "KickConfig":
        return cls(reason=as_text(raw.get("reason")) or DEFAULT_REASON)


@dataclass(slots=True, frozen=True)
class BanConfig:
    reason: str = DEFAULT_REASON
    delete_days: int = 0

    @property
    def delete_message_seconds(self) -> int:
        return self.delete_days * 24 * 60 * 60

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "BanConfig":
        days = parse_float(raw.get("delete_days")) or 0
        return cls(
            reason=as_text(raw.get("reason")) or DEFAULT_REASON,
            delete_days=int(min(max(days, 0), MAX_BAN_DELETE_DAYS)),
        )


@dataclass(slots=True, frozen=True)
class TimeoutConfig:
    duration_minutes: NumberSource = None
    reason: str = DEFAULT_TIMEOUT_REASON

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "TimeoutConfig":
        return cls(
            duration_minutes=raw.get("duration_minutes"),
            reason=as_text(raw.get("reason")) or DEFAULT_TIMEOUT_REASON,
        )


@dataclass(slots=True, frozen=True)
class LogToChannelConfig:
    channel_id: str | None = None
    content: str | None = None
    include_details: bool = False

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "LogToChannelConfig":
        return cls(
            channel_id=as_text(raw.get("channel_id")),
            content=as_text(raw.get("content")),
            include_details=as_bool(raw.get("include_details"), False),
        )


@dataclass(slots=True, frozen=True)
class CreateThreadConfig:
    channel_id: str | None = None
    thread_name: str | None = None
    auto_archive_duration: int = DEFAULT_AUTO_ARCHIVE_MINUTES

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "CreateThreadConfig":
        duration = parse_float(raw.get("auto_archive_duration"))
        duration_minutes = DEFAULT_AUTO_ARCHIVE_MINUTES
        if duration in AUTO_ARCHIVE_CHOICES:
            duration_minutes = int(duration)
        return cls(
            channel_id=as_text(raw.get("channel_id")),
            thread_name=as_text(raw.get("thread_name")),
            auto_archive_duration=duration_minutes,
        )
