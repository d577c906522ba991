"""
Action execution for automations.

`ActionExecutor` turns one ``(action_type, action_config)`` pair into Discord
API calls through py-cord and reports the outcome as an `ActionResult`. It is
the fault boundary of the engine: configuration mistakes, unknown or
inaccessible IDs and Discord errors all come back as failed results, so one
broken action never stops the next one from running.

Message deletion follows Discord's limits: bulk delete only accepts messages
younger than 14 days, so older ones are deleted one at a time with a short
pause between calls.
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Protocol

import discord

from spacebot.automation.action_configs import (
    BanConfig,
    CreateThreadConfig,
    DeleteMessagesConfig,
    KickConfig,
    LogToChannelConfig,
    RoleConfig,
    SendMessageConfig,
    TimeoutConfig,
    DEFAULT_TIMEOUT_MINUTES,
)
from spacebot.automation.context import TemplateContext
from spacebot.automation.filters import is_all, split_ids
from spacebot.automation.template import render, stringify
from spacebot.automation.values import resolve_number, resolve_target_user
from spacebot.configuration.automation_settings import DEFAULT_EMBED_COLOR, AutomationSettings
from spacebot.datatypes.automation_datatypes import (
    ActionResult,
    ActionType,
    Automation,
    AutomationEvent,
)
from spacebot.util.discord_utils import fetch_or_none, safe_delete_message, text_channel_ids, to_snowflake
from spacebot.util.logger import get_logger

logger = get_logger("automation_actions")

EMBED_FIELD_LIMIT = 1024
THREAD_NAME_LIMIT = 100

ActionHandler = Callable[
    [Mapping[str, Any], AutomationEvent, TemplateContext, Optional[Automation]],
    Awaitable[ActionResult],
]


class DiscordClient(Protocol):
    """The slice of ``discord.Bot`` the executor talks to."""

    async def fetch_guild(self, guild_id: int, /) -> discord.Guild: ...

    async def fetch_channel(self, channel_id: int, /) -> Any: ...


def format_details(details: Mapping[str, Any]) -> str:
    """Render event details as ``**key:** value`` lines, skipping empty values."""
    lines = []
    for key, value in details.items():
        if value is None:
            continue
        if isinstance(value, (dict, list)):
            text = json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=str)
        else:
            text = stringify(value)
        lines.append(f"**{key}:** {text}")
    return "\n".join(lines)


class ActionExecutor:
    """
    Executes automation actions against Discord.

    Args:
        client: Connected py-cord client (``discord.Bot``) or a compatible fake.
        pacing_seconds: Pause after each individual message deletion.
        bulk_delete_max_age_days: Age limit for Discord's bulk delete endpoint.
        history_fetch_limit: Number of recent messages inspected per channel.
        embed_color: Accent colour of embeds sent by automations.
        clock: Returns the current UTC time; replaceable for tests.
    """

    def __init__(
        self,
        client: DiscordClient,
        *,
        pacing_seconds: float = 0.5,
        bulk_delete_max_age_days: int = 14,
        history_fetch_limit: int = 100,
        embed_color: int = DEFAULT_EMBED_COLOR,
        clock: Callable[[], datetime] | None = None,
    ):
        self.client = client
        self.pacing_seconds = pacing_seconds
        self.bulk_delete_max_age_days = bulk_delete_max_age_days
        self.history_fetch_limit = history_fetch_limit
        self.embed_color = embed_color
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._handlers: Dict[ActionType, ActionHandler] = {
            ActionType.DELETE_USER_MESSAGES: self._delete_user_messages,
            ActionType.DELETE_MESSAGES: self._delete_messages,
            ActionType.SEND_MESSAGE: self._send_message,
            ActionType.ADD_ROLE: self._add_role,
            ActionType.REMOVE_ROLE: self._remove_role,
            ActionType.KICK_MEMBER: self._kick_member,
            ActionType.BAN_MEMBER: self._ban_member,
            ActionType.TIMEOUT_MEMBER: self._timeout_member,
            ActionType.LOG_TO_CHANNEL: self._log_to_channel,
            ActionType.CREATE_THREAD: self._create_thread,
        }

    @classmethod
    def from_settings(cls, client: DiscordClient, settings: AutomationSettings) -> "ActionExecutor":
        return cls(
            client,
            pacing_seconds=settings.deletion_pacing_seconds,
            bulk_delete_max_age_days=settings.bulk_delete_max_age_days,
            history_fetch_limit=settings.history_fetch_limit,
            embed_color=settings.embed_color,
        )

    async def execute(
        self,
        action_type: Any,
        action_config: Mapping[str, Any] | None,
        event: AutomationEvent,
        context: TemplateContext,
        automation: Automation | None = None,
    ) -> ActionResult:
        """
        Run one action and report the outcome.

        Never raises for action failures; every error is returned as
        ``ActionResult(success=False, error=...)``.
        """
        parsed = ActionType.parse(action_type)
        if parsed is None:
            return ActionResult.fail(f"Unknown action type: {action_type}")

        config = action_config if isinstance(action_config, Mapping) else {}
        try:
            return await self._handlers[parsed](config, event, context, automation)
        except Exception as exc:
            logger.error("[ACTION] %s failed in guild %s: %s", parsed, event.guild_id, exc, exc_info=True)
            return ActionResult.fail(str(exc) or type(exc).__name__)

    # ==========================================
    # Lookups
    # ==========================================

    async def _fetch_guild(self, guild_id: Any) -> discord.Guild | None:
        return await fetch_or_none(self.client.fetch_guild, guild_id, "guild")

    async def _fetch_channel(self, channel_id: Any) -> Any:
        return await fetch_or_none(self.client.fetch_channel, channel_id, "channel")

    @staticmethod
    async def _fetch_member(guild: discord.Guild, user_id: Any) -> discord.Member | None:
        return await fetch_or_none(guild.fetch_member, user_id, "member")

    async def _guild_and_member(
        self, event: AutomationEvent, user_id: str
    ) -> tuple[discord.Member | None, ActionResult | None]:
        guild = await self._fetch_guild(event.guild_id)
        if guild is None:
            return None, ActionResult.fail("Guild not found")
        member = await self._fetch_member(guild, user_id)
        if member is None:
            return None, ActionResult.fail("Member not found")
        return member, None

    def _now(self) -> datetime:
        return self._clock()

    # ==========================================
    # Message deletion
    # ==========================================

    async def _delete_user_messages(self, raw, event, context, automation) -> ActionResult:
        return await self._purge(DeleteMessagesConfig.for_user_messages(raw), raw, event)

    async def _delete_messages(self, raw, event, context, automation) -> ActionResult:
        return await self._purge(DeleteMessagesConfig.for_messages(raw), raw, event)

    async def _purge(
        self, config: DeleteMessagesConfig, raw: Mapping[str, Any], event: AutomationEvent
    ) -> ActionResult:
        user_id = resolve_target_user(raw, event)
        if not user_id:
            return ActionResult.fail("Missing user ID")

        guild = await self._fetch_guild(event.guild_id)
        if guild is None:
            return ActionResult.fail("Guild not found")

        if is_all(config.channel_ids):
            channel_ids = await text_channel_ids(guild)
        else:
            channel_ids = [channel_id for channel_id in split_ids(config.channel_ids) if channel_id]

        max_age_days = resolve_number(config.max_age_days, event, None)
        cutoff = self._now() - timedelta(days=max_age_days) if max_age_days else None

        budget = resolve_number(config.max_messages, event, None)
        if not budget:
            budget = config.default_max_messages
        limit = int(budget) if budget is not None and budget > 0 else None

        total_deleted = 0
        channel_results: Dict[str, Dict[str, Any]] = {}

        for channel_id in channel_ids:
            if limit is not None and total_deleted >= limit:
                break

            channel = await self._fetch_channel(channel_id)
            if channel is None or not hasattr(channel, "history"):
                channel_results[channel_id] = {"error": "Channel not found or not text-based"}
                continue

            remaining = None if limit is None else limit - total_deleted
            try:
                deleted = await self._purge_channel(channel, user_id, cutoff, config.skip_pinned, remaining)
            except Exception as exc:
                logger.warning("[ACTION] Failed to purge channel %s: %s", channel_id, exc)
                channel_results[channel_id] = {"error": str(exc) or type(exc).__name__}
                continue

            channel_results[channel_id] = {"deleted": deleted}
            total_deleted += deleted

        logger.info(
            "[ACTION] Deleted %d messages from user %s in guild %s",
            total_deleted, user_id, event.guild_id,
        )
        return ActionResult.ok({"totalDeleted": total_deleted, "channelResults": channel_results})

    async def _purge_channel(
        self,
        channel: Any,
        user_id: str,
        cutoff: datetime | None,
        skip_pinned: bool,
        remaining: int | None,
    ) -> int:
        messages = await channel.history(limit=self.history_fetch_limit).flatten()

        candidates = [message for message in messages if str(message.author.id) == user_id]
        if cutoff is not None:
            candidates = [message for message in candidates if message.created_at >= cutoff]
        if skip_pinned:
            candidates = [message for message in candidates if not message.pinned]
        if remaining is not None:
            candidates = candidates[:remaining]
        if not candidates:
            return 0

        bulk_window = self._now() - timedelta(days=self.bulk_delete_max_age_days)
        recent = [message for message in candidates if message.created_at > bulk_window]
        old = [message for message in candidates if message.created_at <= bulk_window]

        deleted = 0
        if len(recent) > 1:
            await channel.delete_messages(recent)
            deleted += len(recent)
        elif recent:
            if await safe_delete_message(recent[0]):
                deleted += 1

        for message in old:
            if await safe_delete_message(message):
                deleted += 1
            await asyncio.sleep(self.pacing_seconds)

        return deleted

    # ==========================================
    # Messages
    # ==========================================

    async def _send_message(self, raw, event, context, automation) -> ActionResult:
        config = SendMessageConfig.from_raw(raw)
        content = render(config.content, context)
        if not config.channel_id or not content:
            return ActionResult.fail("Missing channel or content")

        channel = await self._fetch_channel(config.channel_id)
        if channel is None or not hasattr(channel, "send"):
            return ActionResult.fail("Channel not found")

        if config.embed:
            embed = discord.Embed(description=content, color=self.embed_color, timestamp=self._now())
            await channel.send(embed=embed)
        else:
            await channel.send(content)
        return ActionResult.ok({"sent": True})

    async def _log_to_channel(self, raw, event, context, automation) -> ActionResult:
        config = LogToChannelConfig.from_raw(raw)
        if not config.channel_id:
            return ActionResult.fail("Missing channel ID")

        channel = await self._fetch_channel(config.channel_id)
        if channel is None or not hasattr(channel, "send"):
            return ActionResult.fail("Channel not found")

        await channel.send(embed=self._build_log_embed(config, event, context, automation))
        return ActionResult.ok({"logged": True})

    def _build_log_embed(
        self,
        config: LogToChannelConfig,
        event: AutomationEvent,
        context: TemplateContext,
        automation: Automation | None,
    ) -> discord.Embed:
        name = automation.name if automation else "Unknown"
        description = render(config.content, context) if config.content else None

        embed = discord.Embed(
            title=f"🤖 Automation: {name}",
            description=description or f"Triggered by **{event.event_type}**",
            color=self.embed_color,
            timestamp=self._now(),
        )
        embed.set_footer(text=f"Automation ID: {automation.id if automation else 'unknown'}")

        if event.actor_id:
            embed.add_field(name="Actor", value=f"<@{event.actor_id}> ({event.actor_name or 'Unknown'})", inline=True)
        if event.target_id:
            embed.add_field(name="Target", value=f"<@{event.target_id}> ({event.target_name or 'Unknown'})", inline=True)
        if event.channel_id:
            embed.add_field(name="Channel", value=f"<#{event.channel_id}>", inline=True)

        if config.include_details and event.details:
            details_text = format_details(event.details)
            if details_text:
                embed.add_field(name="Details", value=details_text[:EMBED_FIELD_LIMIT], inline=False)

        return embed

    async def _create_thread(self, raw, event, context, automation) -> ActionResult:
        config = CreateThreadConfig.from_raw(raw)
        thread_name = render(config.thread_name, context)
        if not config.channel_id or not thread_name:
            return ActionResult.fail("Missing channel or thread name")

        channel = await self._fetch_channel(config.channel_id)
        if channel is None or not hasattr(channel, "create_thread"):
            return ActionResult.fail("Channel not found")

        thread = await channel.create_thread(
            name=thread_name[:THREAD_NAME_LIMIT],
            auto_archive_duration=config.auto_archive_duration,
            type=discord.ChannelType.public_thread,
        )
        return ActionResult.ok({"threadId": str(thread.id)})

    # ==========================================
    # Members
    # ==========================================

    async def _add_role(self, raw, event, context, automation) -> ActionResult:
        return await self._change_role(raw, event, automation, add=True)

    async def _remove_role(self, raw, event, context, automation) -> ActionResult:
        return await self._change_role(raw, event, automation, add=False)

    async def _change_role(
        self, raw: Mapping[str, Any], event: AutomationEvent, automation: Automation | None, *, add: bool
    ) -> ActionResult:
        role_id = RoleConfig.from_raw(raw).role_id
        user_id = resolve_target_user(raw, event)
        role_snowflake = to_snowflake(role_id)
        if not role_id or not user_id or role_snowflake is None:
            return ActionResult.fail("Missing role or user ID")

        member, failure = await self._guild_and_member(event, user_id)
        if failure:
            return failure

        role = discord.Object(id=role_snowflake)
        reason = _audit_reason(automation)
        if add:
            await member.add_roles(role, reason=reason)
            logger.info("[ACTION] Added role %s to %s in guild %s", role_id, user_id, event.guild_id)
            return ActionResult.ok({"roleAdded": role_id})

        await member.remove_roles(role, reason=reason)
        logger.info("[ACTION] Removed role %s from %s in guild %s", role_id, user_id, event.guild_id)
        return ActionResult.ok({"roleRemoved": role_id})

    async def _kick_member(self, raw, event, context, automation) -> ActionResult:
        user_id = resolve_target_user(raw, event)
        if not user_id:
            return ActionResult.fail("Missing user ID")

        member, failure = await self._guild_and_member(event, user_id)
        if failure:
            return failure

        await member.kick(reason=render(KickConfig.from_raw(raw).reason, context))
        logger.info("[ACTION] Kicked %s from guild %s", user_id, event.guild_id)
        return ActionResult.ok({"kicked": user_id})

    async def _ban_member(self, raw, event, context, automation) -> ActionResult:
        user_id = resolve_target_user(raw, event)
        user_snowflake = to_snowflake(user_id)
        if not user_id or user_snowflake is None:
            return ActionResult.fail("Missing user ID")

        guild = await self._fetch_guild(event.guild_id)
        if guild is None:
            return ActionResult.fail("Guild not found")

        config = BanConfig.from_raw(raw)
        await guild.ban(
            discord.Object(id=user_snowflake),
            reason=render(config.reason, context),
            delete_message_seconds=config.delete_message_seconds,
        )
        logger.info("[ACTION] Banned %s from guild %s", user_id, event.guild_id)
        return ActionResult.ok({"banned": user_id})

    async def _timeout_member(self, raw, event, context, automation) -> ActionResult:
        user_id = resolve_target_user(raw, event)
        if not user_id:
            return ActionResult.fail("Missing user ID")

        member, failure = await self._guild_and_member(event, user_id)
        if failure:
            return failure

        config = TimeoutConfig.from_raw(raw)
        minutes = resolve_number(config.duration_minutes, event, DEFAULT_TIMEOUT_MINUTES)
        if not minutes:
            minutes = DEFAULT_TIMEOUT_MINUTES

        await member.timeout_for(timedelta(minutes=minutes), reason=render(config.reason, context))
        duration_ms = int(minutes * 60 * 1000)
        logger.info("[ACTION] Timed out %s for %s minutes in guild %s", user_id, minutes, event.guild_id)
        return ActionResult.ok({"timedOut": user_id, "duration": duration_ms})


def _audit_reason(automation: Automation | None) -> str | None:
    return f"Automation: {automation.name}" if automation else None
