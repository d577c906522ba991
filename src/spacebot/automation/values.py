"""
Resolution of dynamic action parameters.

Action configs may hold literal values or references to slash command options
written as ``option:<name>``; command events carry the option values either
nested under ``options`` or flattened as ``option_<name>``.
"""

from __future__ import annotations

import math
import re
from typing import Any, Mapping, TypeVar

from spacebot.datatypes.automation_datatypes import AutomationEvent

OPTION_PREFIX = "option:"

# Leading decimal literal, read the same way JavaScript's parseFloat does
_LEADING_FLOAT = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

T = TypeVar("T")


def parse_float(raw: Any) -> float | None:
    """Parse the numeric prefix of ``raw``; returns None when there is none."""
    if isinstance(raw, bool) or raw is None:
        return None
    if isinstance(raw, (int, float)):
        return None if math.isnan(raw) else float(raw)
    text = str(raw)
    stripped = text.strip()
    if stripped in ("Infinity", "+Infinity", "-Infinity"):
        return float(stripped.replace("Infinity", "inf"))
    match = _LEADING_FLOAT.match(text)
    return float(match.group(1)) if match else None


def resolve_number(config_value: Any, event: AutomationEvent, default: T) -> float | T:
    """
    Resolve a numeric action parameter.

    Args:
        config_value: Literal number, numeric string or ``option:<name>`` reference.
        event: Event supplying option values for references.
        default: Returned when the value is empty or not numeric.

    Returns:
        The resolved number, or ``default``.
    """
    if config_value is None or config_value == "":
        return default
    if isinstance(config_value, (int, float)) and not isinstance(config_value, bool):
        return config_value

    if isinstance(config_value, str) and config_value.startswith(OPTION_PREFIX):
        raw = event.get_option(config_value[len(OPTION_PREFIX):])
    else:
        raw = config_value

    number = parse_float(raw)
    return default if number is None else number


def resolve_target_user(action_config: Mapping[str, Any], event: AutomationEvent) -> str | None:
    """
    Work out which user an action applies to.

    Without a ``target_user`` setting the actor is used, then the target.
    ``actor``/``invoker`` pick the actor, ``target`` the target and
    ``option:<name>`` a user option of the invoking command. Anything else
    falls back to the actor.
    """
    source = action_config.get("target_user")

    if not source:
        return event.actor_id or event.target_id

    if source in ("actor", "invoker"):
        return event.actor_id
    if source == "target":
        return event.target_id

    if isinstance(source, str) and source.startswith(OPTION_PREFIX):
        value = event.get_option(source[len(OPTION_PREFIX):])
        if value:
            return str(value)

    return event.actor_id
