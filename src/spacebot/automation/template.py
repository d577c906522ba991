"""
Placeholder substitution for automation messages.

Templates use ``{path.to.value}`` placeholders that are resolved against the
context built by :mod:`spacebot.automation.context`, e.g.
``"Welcome {user.mention} to {guild.name}!"``. Placeholders that cannot be
resolved are left in the output verbatim.
"""

from __future__ import annotations

import json
import re
from typing import Any, Mapping

PLACEHOLDER_PATTERN = re.compile(r"\{([^}]+)\}")

_MISSING = object()


def _lookup(value: Any, part: str) -> Any:
    # Only mapping keys and list indices are walked, never object attributes
    if isinstance(value, Mapping):
        return value.get(part, _MISSING)
    if isinstance(value, (list, tuple)) and part.isdigit() and int(part) < len(value):
        return value[int(part)]
    return _MISSING


def stringify(value: Any) -> str:
    """Render a value the way users expect to read it in a Discord message."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, Mapping):
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)
    if isinstance(value, (list, tuple)):
        return ",".join("" if item is None else stringify(item) for item in value)
    return str(value)


def resolve_path(context: Any, path: str) -> Any:
    """Walk a dotted path through ``context``; returns None when any step is missing."""
    value = context
    for part in path.split("."):
        if value is None or value is _MISSING:
            return None
        value = _lookup(value, part)
    return None if value is _MISSING else value


def render(template: str | None, context: Mapping[str, Any]) -> str | None:
    """Substitute every resolvable ``{path}`` placeholder in ``template``.

    Args:
        template: Template text. Falsy values are returned unchanged.
        context: Variable context, usually the output of ``build_context``.

    Returns:
        The rendered string, or the original falsy template.
    """
    if not template:
        return template

    def replace(match: re.Match[str]) -> str:
        value = resolve_path(context, match.group(1))
        return match.group(0) if value is None else stringify(value)

    return PLACEHOLDER_PATTERN.sub(replace, template)
