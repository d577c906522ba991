"""Variable context used to render automation templates."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Mapping

from spacebot.datatypes.automation_datatypes import AutomationEvent

UNKNOWN_GUILD_NAME = "Unknown Server"

TemplateContext = Dict[str, Dict[str, Any]]


def strip_discriminator(name: str | None) -> str | None:
    """Drop a legacy ``#1234`` discriminator from a user tag."""
    if not name:
        return name
    return name.split("#")[0] or name


def user_mention(user_id: str | None) -> str:
    return f"<@{user_id}>" if user_id else ""


def channel_mention(channel_id: str | None) -> str:
    return f"<#{channel_id}>" if channel_id else ""


def build_context(
    event: AutomationEvent,
    guild_info: Mapping[str, Any] | None = None,
    *,
    now: datetime | None = None,
) -> TemplateContext:
    """Build the ``{user, target, channel, guild, trigger, details}`` context for an event.

    ``now`` fixes ``trigger.time``; it defaults to the current UTC time.
    """
    guild_info = guild_info or {}
    moment = now or datetime.now(timezone.utc)

    return {
        "user": {
            "id": event.actor_id,
            "name": strip_discriminator(event.actor_name),
            "tag": event.actor_name,
            "mention": user_mention(event.actor_id),
        },
        "target": {
            "id": event.target_id,
            "name": strip_discriminator(event.target_name),
            "tag": event.target_name,
            "mention": user_mention(event.target_id),
        },
        "channel": {
            "id": event.channel_id,
            "name": event.channel_name,
            "mention": channel_mention(event.channel_id),
        },
        "guild": {
            "id": event.guild_id,
            "name": guild_info.get("name") or UNKNOWN_GUILD_NAME,
        },
        "trigger": {
            "event": event.event_type,
            "category": event.event_category,
            "time": moment.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        },
        "details": event.details or {},
    }
