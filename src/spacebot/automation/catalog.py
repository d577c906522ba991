"""
Catalog of automation building blocks for editors and validation hints.

These tables describe actions, filters, template variables and user sources
the way a configuration UI presents them. The engine never enforces them:
handlers tolerate missing or malformed config on their own. The store uses
`rule_warnings` to log rules that can never do what they say.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping

from spacebot.datatypes.automation_datatypes import ActionType, FilterKey

_TARGET_USER_FIELD = {
    "type": "user_source",
    "required": True,
    "label": "Target User",
}


def _target_user(description: str) -> Dict[str, Any]:
    return {**_TARGET_USER_FIELD, "description": description}


ACTION_TYPES: Dict[str, Dict[str, Any]] = {
    ActionType.DELETE_USER_MESSAGES.value: {
        "name": "Delete User's Messages",
        "description": "Delete messages from a user",
        "icon": "🗑️",
        "target_user": True,
        "config_schema": {
            "target_user": _target_user("Which user's messages to delete"),
            "channel_ids": {
                "type": "channel_multi",
                "required": False,
                "label": "Channel(s)",
                "show_all_option": True,
                "default": "ALL",
            },
            "max_age_days": {
                "type": "number_source",
                "required": False,
                "label": "Delete messages from last X days",
                "description": "Leave empty to delete all messages regardless of age",
                "placeholder": "∞ (all time)",
                "supports_option_ref": True,
            },
            "max_messages": {
                "type": "number_source",
                "required": False,
                "label": "Max messages to delete",
                "description": "Leave empty for no limit",
                "placeholder": "∞",
                "supports_option_ref": True,
            },
            "skip_pinned": {"type": "boolean", "default": True, "label": "Skip pinned messages"},
        },
    },
    ActionType.DELETE_MESSAGES.value: {
        "name": "Delete Messages",
        "description": "Delete messages from a user in a channel",
        "icon": "🗑️",
        "target_user": True,
        "config_schema": {
            "target_user": _target_user("Which user's messages to delete"),
            "channel_ids": {
                "type": "channel_multi",
                "required": False,
                "label": "Channel(s)",
                "show_all_option": True,
                "all_option_label": "Any Channel",
                "default": "ALL",
            },
            "limit": {"type": "number", "default": 100, "max": 1000, "label": "Max messages to delete"},
        },
    },
    ActionType.SEND_MESSAGE.value: {
        "name": "Send Message",
        "description": "Send a message to a channel",
        "icon": "💬",
        "config_schema": {
            "channel_id": {"type": "channel", "required": True, "label": "Channel"},
            "content": {"type": "text", "required": True, "label": "Message content", "supports_variables": True},
            "embed": {"type": "boolean", "default": False, "label": "Send as embed"},
        },
    },
    ActionType.ADD_ROLE.value: {
        "name": "Add Role",
        "description": "Add a role to a user",
        "icon": "🏷️",
        "target_user": True,
        "config_schema": {
            "target_user": _target_user("Which user to add the role to"),
            "role_id": {"type": "role", "required": True, "label": "Role"},
        },
    },
    ActionType.REMOVE_ROLE.value: {
        "name": "Remove Role",
        "description": "Remove a role from a user",
        "icon": "🏷️",
        "target_user": True,
        "config_schema": {
            "target_user": _target_user("Which user to remove the role from"),
            "role_id": {"type": "role", "required": True, "label": "Role"},
        },
    },
    ActionType.KICK_MEMBER.value: {
        "name": "Kick Member",
        "description": "Kick a member from the server",
        "icon": "👢",
        "target_user": True,
        "config_schema": {
            "target_user": _target_user("Which user to kick"),
            "reason": {"type": "text", "label": "Reason", "supports_variables": True},
        },
    },
    ActionType.BAN_MEMBER.value: {
        "name": "Ban Member",
        "description": "Ban a member from the server",
        "icon": "🔨",
        "target_user": True,
        "config_schema": {
            "target_user": _target_user("Which user to ban"),
            "reason": {"type": "text", "label": "Reason", "supports_variables": True},
            "delete_days": {"type": "number", "default": 0, "max": 7, "label": "Delete message history (days)"},
        },
    },
    ActionType.TIMEOUT_MEMBER.value: {
        "name": "Timeout Member",
        "description": "Timeout a member",
        "icon": "⏰",
        "target_user": True,
        "config_schema": {
            "target_user": _target_user("Which user to timeout"),
            "duration_minutes": {
                "type": "number_source",
                "required": True,
                "default": 60,
                "label": "Duration (minutes)",
                "supports_option_ref": True,
            },
            "reason": {"type": "text", "label": "Reason", "supports_variables": True},
        },
    },
    ActionType.LOG_TO_CHANNEL.value: {
        "name": "Log to Channel",
        "description": "Send a log message to a channel with event details",
        "icon": "📋",
        "config_schema": {
            "channel_id": {"type": "channel", "required": True, "label": "Log channel"},
            "content": {"type": "text", "label": "Custom message", "supports_variables": True},
            "include_details": {"type": "boolean", "default": True, "label": "Include event details"},
        },
    },
    ActionType.CREATE_THREAD.value: {
        "name": "Create Thread",
        "description": "Create a thread in a channel",
        "icon": "🧵",
        "config_schema": {
            "channel_id": {"type": "channel", "required": True, "label": "Channel"},
            "thread_name": {"type": "text", "required": True, "label": "Thread name", "supports_variables": True},
            "auto_archive_duration": {
                "type": "select",
                "options": [60, 1440, 4320, 10080],
                "default": 1440,
                "label": "Auto-archive after (minutes)",
            },
        },
    },
}

_CHANNEL_EVENTS = ["MESSAGE_", "VOICE_", "THREAD_", "REACTION_", "CHANNEL_PINS_UPDATE"]
_MESSAGE_CONTENT_EVENTS = ["MESSAGE_CREATE", "MESSAGE_UPDATE"]

# Patterns ending in "_" are event type prefixes, "*" matches every event
FILTER_TYPES: Dict[str, Dict[str, Any]] = {
    FilterKey.CHANNEL_ID.value: {
        "type": "channel",
        "label": "In Channel(s)",
        "description": "Only trigger in this channel",
        "applicable_events": _CHANNEL_EVENTS,
    },
    FilterKey.NOT_CHANNEL_ID.value: {
        "type": "channel",
        "label": "Not In Channel(s)",
        "description": "Don't trigger in this channel",
        "applicable_events": _CHANNEL_EVENTS,
    },
    FilterKey.ACTOR_HAS_ROLE.value: {
        "type": "role",
        "label": "Actor Has Role",
        "description": "Actor must have this role",
        "applicable_events": ["*"],
    },
    FilterKey.ACTOR_MISSING_ROLE.value: {
        "type": "role",
        "label": "Actor Missing Role",
        "description": "Actor must NOT have this role",
        "applicable_events": ["*"],
    },
    FilterKey.TARGET_HAS_ROLE.value: {
        "type": "role",
        "label": "Target Has Role",
        "description": "Target must have this role",
        "applicable_events": [
            "MEMBER_BAN",
            "MEMBER_UNBAN",
            "MEMBER_KICK",
            "MEMBER_TIMEOUT",
            "MEMBER_ROLE_ADD",
            "MEMBER_ROLE_REMOVE",
        ],
    },
    FilterKey.CONTENT_CONTAINS.value: {
        "type": "text",
        "label": "Content Contains",
        "description": "Message content must contain text",
        "applicable_events": _MESSAGE_CONTENT_EVENTS,
    },
    FilterKey.CONTENT_REGEX.value: {
        "type": "text",
        "label": "Content Matches Regex",
        "description": "Message content matches pattern",
        "applicable_events": _MESSAGE_CONTENT_EVENTS,
    },
    FilterKey.BOT_FILTER.value: {
        "type": "select",
        "label": "Bot Filter",
        "description": "Filter by bot status",
        "options": [
            {"value": "any", "label": "Any (Bots & Humans)"},
            {"value": "only_bots", "label": "Only Bots"},
            {"value": "only_humans", "label": "Only Humans"},
        ],
        "default": "any",
        "applicable_events": ["MESSAGE_", "MEMBER_JOIN", "MEMBER_LEAVE", "REACTION_"],
    },
    FilterKey.ACTOR_ID.value: {
        "type": "user",
        "label": "Actor Is User(s)",
        "description": "Only trigger for these users",
        "applicable_events": ["*"],
    },
    FilterKey.NOT_ACTOR_ID.value: {
        "type": "user",
        "label": "Actor Is Not User(s)",
        "description": "Never trigger for these users",
        "applicable_events": ["*"],
    },
    FilterKey.EMBED_CONTAINS.value: {
        "type": "text",
        "label": "Embed Contains",
        "description": "An embed of the message must contain text",
        "applicable_events": _MESSAGE_CONTENT_EVENTS,
    },
    FilterKey.MIN_ACCOUNT_AGE_DAYS.value: {
        "type": "number",
        "label": "Min Account Age (days)",
        "description": "Account must be at least X days old",
        "applicable_events": ["MEMBER_JOIN"],
    },
    FilterKey.MAX_ACCOUNT_AGE_DAYS.value: {
        "type": "number",
        "label": "Max Account Age (days)",
        "description": "Account must be less than X days old",
        "applicable_events": ["MEMBER_JOIN"],
    },
}

TEMPLATE_VARIABLES: Dict[str, str] = {
    "user.id": "Actor's Discord ID",
    "user.name": "Actor's username",
    "user.mention": "Mention the actor",
    "user.tag": "Actor's tag (username#0000)",
    "target.id": "Target's Discord ID",
    "target.name": "Target's username",
    "target.mention": "Mention the target",
    "channel.id": "Channel ID",
    "channel.name": "Channel name",
    "channel.mention": "Mention the channel",
    "guild.id": "Server ID",
    "guild.name": "Server name",
    "trigger.event": "Event type that triggered",
    "trigger.category": "Event category",
    "trigger.time": "When the event occurred",
}

AUTOMATION_USER_SOURCES: Dict[str, Dict[str, str]] = {
    "actor": {
        "value": "actor",
        "label": "Event Actor",
        "description": "The user who triggered the event",
    },
    "target": {
        "value": "target",
        "label": "Event Target",
        "description": "The user who was the target of the event (if any)",
    },
}

# Command-specific sources; ``option:<name>`` entries are added per command option
COMMAND_USER_SOURCES: Dict[str, Dict[str, str]] = {
    "invoker": {
        "value": "invoker",
        "label": "Command Invoker",
        "description": "The user who ran the command",
    },
}


def filter_applies_to_event(filter_info: Mapping[str, Any], event_type: str | None) -> bool:
    """
    Check whether a filter is meaningful for an event type.

    Args:
        filter_info (Mapping[str, Any]): One entry of ``FILTER_TYPES``.
        event_type (str | None): Event type such as ``MESSAGE_CREATE``.

    Returns:
        bool: True when the filter has no restriction, no event type is given,
        or one of its patterns matches.
    """
    patterns = filter_info.get("applicable_events")
    if not patterns or not event_type:
        return True

    for pattern in patterns:
        if pattern == "*":
            return True
        if pattern.endswith("_"):
            if event_type.startswith(pattern):
                return True
        elif event_type == pattern:
            return True
    return False


def get_filters_for_event(event_type: str | None) -> Dict[str, Dict[str, Any]]:
    """Return the subset of ``FILTER_TYPES`` applicable to ``event_type``."""
    return {
        key: info
        for key, info in FILTER_TYPES.items()
        if filter_applies_to_event(info, event_type)
    }


def rule_warnings(
    trigger_events: Iterable[str] | None,
    trigger_filters: Mapping[str, Any] | None,
    action_types: Iterable[str | None],
) -> List[str]:
    """
    List the parts of a rule the engine will silently ignore.

    Flags action types without a handler, filter keys the engine does not
    know, and filters that apply to none of the rule's events.
    """
    events = [event for event in trigger_events or [] if event]
    warnings = []

    for action_type in action_types:
        if action_type not in ACTION_TYPES:
            warnings.append(f"unknown action type {action_type!r}")

    for key in trigger_filters or {}:
        info = FILTER_TYPES.get(key)
        if info is None:
            warnings.append(f"unknown filter {key!r}")
        elif events and not any(filter_applies_to_event(info, event) for event in events):
            warnings.append(f"filter {key!r} never applies to {', '.join(events)}")

    return warnings
