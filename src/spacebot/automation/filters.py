"""
Filter evaluation for automation triggers.

Each stored automation carries a ``{filter_key: value}`` map. An event passes
when every configured predicate holds. List-style filters take a
comma-separated list of snowflakes, where the special value ``"ALL"`` disables
the check. Unknown filter keys are ignored.
"""

from __future__ import annotations

import re
from typing import Any, Callable, Dict, Iterable, List, Mapping

from spacebot.datatypes.automation_datatypes import AutomationEvent, FilterContext, FilterKey
from spacebot.util.logger import get_logger

logger = get_logger("automation_filters")

ALL = "ALL"

FilterHandler = Callable[[AutomationEvent, Any, FilterContext], bool]


def split_ids(value: Any) -> List[str]:
    """Split a comma-separated filter value into trimmed entries."""
    if isinstance(value, (list, tuple, set)):
        return [str(item).strip() for item in value]
    return [item.strip() for item in str(value).split(",")]


def is_all(value: Any) -> bool:
    return value == ALL


def _any_in(wanted: Iterable[str], present: Iterable[str] | None) -> bool:
    if not present:
        return False
    present_set = {str(item) for item in present}
    return any(item in present_set for item in wanted)


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


# ==========================================
# Predicates
# ==========================================

def _channel_id(event: AutomationEvent, value: Any, context: FilterContext) -> bool:
    return is_all(value) or event.channel_id in split_ids(value)


def _not_channel_id(event: AutomationEvent, value: Any, context: FilterContext) -> bool:
    return is_all(value) or event.channel_id not in split_ids(value)


def _actor_has_role(event: AutomationEvent, value: Any, context: FilterContext) -> bool:
    return is_all(value) or _any_in(split_ids(value), context.actor_roles)


def _actor_missing_role(event: AutomationEvent, value: Any, context: FilterContext) -> bool:
    return is_all(value) or not _any_in(split_ids(value), context.actor_roles)


def _target_has_role(event: AutomationEvent, value: Any, context: FilterContext) -> bool:
    return is_all(value) or _any_in(split_ids(value), context.target_roles)


def _content_contains(event: AutomationEvent, value: Any, context: FilterContext) -> bool:
    content = event.details.get("content")
    if not isinstance(content, str):
        return False
    return str(value).lower() in content.lower()


def _content_regex(event: AutomationEvent, value: Any, context: FilterContext) -> bool:
    try:
        pattern = re.compile(str(value), re.IGNORECASE)
    except re.error as exc:
        logger.debug("[FILTERS] Invalid content_regex %r: %s", value, exc)
        return False
    content = event.details.get("content") or ""
    return pattern.search(str(content)) is not None


def _bot_filter(event: AutomationEvent, value: Any, context: FilterContext) -> bool:
    if value == "only_bots":
        return event.is_bot
    if value == "only_humans":
        return not event.is_bot
    return True


def _actor_id(event: AutomationEvent, value: Any, context: FilterContext) -> bool:
    return is_all(value) or event.actor_id in split_ids(value)


def _not_actor_id(event: AutomationEvent, value: Any, context: FilterContext) -> bool:
    return is_all(value) or event.actor_id not in split_ids(value)


def _embed_contains(event: AutomationEvent, value: Any, context: FilterContext) -> bool:
    embed_texts = event.details.get("embedTexts") or []
    needle = str(value).lower()
    return any(isinstance(text, str) and needle in text.lower() for text in embed_texts)


def _min_account_age_days(event: AutomationEvent, value: Any, context: FilterContext) -> bool:
    minimum = _as_number(value)
    if context.account_age_days is None or minimum is None:
        return True
    return context.account_age_days >= minimum


def _max_account_age_days(event: AutomationEvent, value: Any, context: FilterContext) -> bool:
    maximum = _as_number(value)
    if context.account_age_days is None or maximum is None:
        return True
    return context.account_age_days <= maximum


FILTER_HANDLERS: Dict[FilterKey, FilterHandler] = {
    FilterKey.CHANNEL_ID: _channel_id,
    FilterKey.NOT_CHANNEL_ID: _not_channel_id,
    FilterKey.ACTOR_HAS_ROLE: _actor_has_role,
    FilterKey.ACTOR_MISSING_ROLE: _actor_missing_role,
    FilterKey.TARGET_HAS_ROLE: _target_has_role,
    FilterKey.CONTENT_CONTAINS: _content_contains,
    FilterKey.CONTENT_REGEX: _content_regex,
    FilterKey.BOT_FILTER: _bot_filter,
    FilterKey.ACTOR_ID: _actor_id,
    FilterKey.NOT_ACTOR_ID: _not_actor_id,
    FilterKey.EMBED_CONTAINS: _embed_contains,
    FilterKey.MIN_ACCOUNT_AGE_DAYS: _min_account_age_days,
    FilterKey.MAX_ACCOUNT_AGE_DAYS: _max_account_age_days,
}


def matches_filters(
    event: AutomationEvent,
    filters: Mapping[str, Any] | None,
    context: FilterContext | None = None,
) -> bool:
    """
    Check whether an event satisfies every configured filter.

    Args:
        event (AutomationEvent): The event being evaluated.
        filters (Mapping[str, Any] | None): Stored ``{filter_key: value}`` map.
        context (FilterContext | None): Role lists and account age of the
            users involved. Missing data makes role filters fail and account
            age filters pass.

    Returns:
        bool: True when the map is empty or every predicate passes.
    """
    if not filters:
        return True

    context = context or FilterContext()
    for raw_key, value in filters.items():
        try:
            key = FilterKey(raw_key)
        except ValueError:
            continue
        if not FILTER_HANDLERS[key](event, value, context):
            return False
    return True
