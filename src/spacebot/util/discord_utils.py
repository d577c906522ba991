"""
discord_utils.py
================

Low-level Discord helpers for SpaceBot.

Stateless wrappers around py-cord calls used by the automation actions:
snowflake parsing, lookups that treat "not found" as an expected outcome,
message deletion that suppresses recoverable errors, and channel selection.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, TypeVar

import discord

from spacebot.util.logger import get_logger

logger = get_logger("discord_utils")

T = TypeVar("T")


def to_snowflake(value: Any) -> int | None:
    """
    Convert a stored ID (usually a string) into an integer snowflake.

    Args:
        value (Any): ID as string or int.

    Returns:
        int | None: The snowflake, or None when the value is not a valid ID.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


async def fetch_or_none(fetch: Callable[[int], Awaitable[T]], raw_id: Any, what: str) -> T | None:
    """
    Run a py-cord ``fetch_*`` call, returning None when the entity is unavailable.

    Unknown, inaccessible or malformed IDs are expected in user-written
    automations, so NotFound, Forbidden and other HTTP errors are logged at
    debug level instead of propagating.

    Args:
        fetch (Callable[[int], Awaitable[T]]): Bound fetch coroutine function, e.g. ``bot.fetch_channel``.
        raw_id (Any): ID to look up.
        what (str): Entity label used in log messages.

    Returns:
        T | None: The fetched entity, or None.
    """
    snowflake = to_snowflake(raw_id)
    if snowflake is None:
        logger.debug("Invalid %s id: %r", what, raw_id)
        return None
    try:
        return await fetch(snowflake)
    except discord.NotFound:
        logger.debug("%s %s not found", what.capitalize(), snowflake)
    except discord.Forbidden:
        logger.debug("No access to %s %s", what, snowflake)
    except discord.HTTPException as exc:
        logger.warning("Failed to fetch %s %s: %s", what, snowflake, exc)
    return None


async def safe_delete_message(message: discord.Message) -> bool:
    """
    Attempt to delete a Discord message, suppressing recoverable errors.

    Args:
        message (discord.Message): The message to delete.

    Returns:
        bool: True if deletion succeeded, False otherwise.
    """
    try:
        await message.delete()
        return True
    except discord.NotFound:
        return False
    except discord.Forbidden:
        logger.warning(f"No permission to delete message {message.id}")
    except Exception as exc:
        logger.error(f"Error deleting message {message.id}: {exc}")
    return False


def is_text_channel(channel: Any) -> bool:
    """
    Return True for guild channels that hold regular text messages.

    Text and announcement channels qualify; voice, stage, forum and category
    channels do not.
    """
    return isinstance(channel, discord.TextChannel)


async def text_channel_ids(guild: discord.Guild) -> list[str]:
    """
    List the IDs of every text channel in a guild, fetched from the API.

    Args:
        guild (discord.Guild): The guild whose channels are inspected.

    Returns:
        list[str]: Channel IDs as strings, in API order.
    """
    channels = await guild.fetch_channels()
    return [str(channel.id) for channel in channels if is_text_channel(channel)]
