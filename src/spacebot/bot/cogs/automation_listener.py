"""Automation listener Cog for SpaceBot.

This cog has exactly ONE responsibility: turn gateway callbacks into
normalized automation events and hand them to the AutomationRunner.

Each event is processed in its own background task, so a slow automation
(e.g. deleting hundreds of old messages) never delays intake of the next
gateway event. Rule evaluation and action execution live in the engine, NOT here.
"""

from __future__ import annotations

import asyncio
from typing import Any, Set

import discord
from discord.ext import commands

from spacebot.automation.runner import AutomationRunner
from spacebot.bot import event_normalizer
from spacebot.datatypes.automation_datatypes import AutomationEvent
from spacebot.util.logger import get_logger

logger = get_logger("automation_listener_cog")


class AutomationListenerCog(commands.Cog):
    """
    Thin gateway listener that feeds the automation engine.

    Parameters
    ----------
    bot:
        Discord bot instance.
    runner:
        Processes each normalized event against the stored automations.
    """

    def __init__(self, bot: discord.Bot, runner: AutomationRunner) -> None:
        self.bot = bot
        self._runner = runner
        self._tasks: Set[asyncio.Task] = set()
        logger.info("[AUTOMATION LISTENER] Automation listener cog loaded")

    def cog_unload(self) -> None:
        for task in self._tasks:
            task.cancel()
        self._tasks.clear()

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(
        self,
        event: AutomationEvent | None,
        guild: discord.Guild | None,
        *,
        actor: Any = None,
        target: Any = None,
    ) -> asyncio.Task | None:
        """Schedule processing of ``event`` in the background; returns the task."""
        if event is None:
            return None

        filter_context = event_normalizer.build_filter_context(actor, target)
        guild_info = {"name": guild.name} if guild is not None else None

        task = asyncio.create_task(self._process(event, guild_info, filter_context))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _process(self, event: AutomationEvent, guild_info, filter_context) -> None:
        try:
            result = await self._runner.process_event(event, guild_info, filter_context)
        except Exception:
            logger.exception(
                "[AUTOMATION LISTENER] Unhandled error processing %s in guild %s",
                event.event_type, event.guild_id,
            )
            return

        if result.executed or result.errors:
            logger.debug(
                "[AUTOMATION LISTENER] %s in guild %s: executed=%d errors=%d",
                event.event_type, event.guild_id, result.executed, result.errors,
            )

    # ------------------------------------------------------------------
    # Member events
    # ------------------------------------------------------------------

    @commands.Cog.listener(name="on_member_join")
    async def on_member_join(self, member: discord.Member) -> None:
        self.dispatch(event_normalizer.normalize_member_join(member), member.guild, actor=member)

    @commands.Cog.listener(name="on_member_remove")
    async def on_member_remove(self, member: discord.Member) -> None:
        self.dispatch(event_normalizer.normalize_member_leave(member), member.guild, actor=member)

    @commands.Cog.listener(name="on_member_update")
    async def on_member_update(self, before: discord.Member, after: discord.Member) -> None:
        for event in event_normalizer.normalize_role_changes(before, after):
            self.dispatch(event, after.guild, target=after)

    @commands.Cog.listener(name="on_member_ban")
    async def on_member_ban(self, guild: discord.Guild, user: discord.User) -> None:
        self.dispatch(event_normalizer.normalize_ban(guild, user, banned=True), guild, target=user)

    @commands.Cog.listener(name="on_member_unban")
    async def on_member_unban(self, guild: discord.Guild, user: discord.User) -> None:
        self.dispatch(event_normalizer.normalize_ban(guild, user, banned=False), guild, target=user)

    # ------------------------------------------------------------------
    # Message events
    # ------------------------------------------------------------------

    @commands.Cog.listener(name="on_message")
    async def on_message(self, message: discord.Message) -> None:
        self.dispatch(event_normalizer.normalize_message_create(message), message.guild, actor=message.author)

    @commands.Cog.listener(name="on_message_edit")
    async def on_message_edit(self, before: discord.Message, after: discord.Message) -> None:
        self.dispatch(event_normalizer.normalize_message_update(before, after), after.guild, actor=after.author)

    @commands.Cog.listener(name="on_message_delete")
    async def on_message_delete(self, message: discord.Message) -> None:
        self.dispatch(event_normalizer.normalize_message_delete(message), message.guild, actor=message.author)

    @commands.Cog.listener(name="on_bulk_message_delete")
    async def on_bulk_message_delete(self, messages: list[discord.Message]) -> None:
        event = event_normalizer.normalize_bulk_message_delete(messages)
        self.dispatch(event, messages[0].guild if messages else None)

    @commands.Cog.listener(name="on_reaction_add")
    async def on_reaction_add(self, reaction: discord.Reaction, user: discord.User) -> None:
        event = event_normalizer.normalize_reaction(reaction, user, added=True)
        self.dispatch(event, reaction.message.guild, actor=user)

    @commands.Cog.listener(name="on_reaction_remove")
    async def on_reaction_remove(self, reaction: discord.Reaction, user: discord.User) -> None:
        event = event_normalizer.normalize_reaction(reaction, user, added=False)
        self.dispatch(event, reaction.message.guild, actor=user)

    # ------------------------------------------------------------------
    # Voice, thread and command events
    # ------------------------------------------------------------------

    @commands.Cog.listener(name="on_voice_state_update")
    async def on_voice_state_update(
        self, member: discord.Member, before: discord.VoiceState, after: discord.VoiceState
    ) -> None:
        event = event_normalizer.normalize_voice_state(member, before, after)
        self.dispatch(event, member.guild, actor=member)

    @commands.Cog.listener(name="on_thread_create")
    async def on_thread_create(self, thread: discord.Thread) -> None:
        self.dispatch(event_normalizer.normalize_thread_create(thread), thread.guild, actor=thread.owner)

    @commands.Cog.listener(name="on_application_command")
    async def on_application_command(self, ctx: discord.ApplicationContext) -> None:
        self.dispatch(event_normalizer.normalize_command(ctx), ctx.guild, actor=ctx.author)


def setup(bot: discord.Bot, runner: AutomationRunner) -> None:
    """Register the AutomationListenerCog with the bot."""
    bot.add_cog(AutomationListenerCog(bot, runner))
