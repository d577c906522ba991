"""
Conversion of py-cord gateway objects into `AutomationEvent`s.

Every function here is pure: it reads attributes of the objects py-cord hands
to listeners and returns a normalized event (or None when the callback is not
relevant, e.g. a direct message). IDs are stringified so they compare equal to
the IDs stored in automation filters and configs.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import discord

from spacebot.datatypes.automation_datatypes import AutomationEvent, FilterContext

SECONDS_PER_DAY = 86400


class EventType:
    MEMBER_JOIN = "MEMBER_JOIN"
    MEMBER_LEAVE = "MEMBER_LEAVE"
    MEMBER_ROLE_ADD = "MEMBER_ROLE_ADD"
    MEMBER_ROLE_REMOVE = "MEMBER_ROLE_REMOVE"
    MEMBER_BAN = "MEMBER_BAN"
    MEMBER_UNBAN = "MEMBER_UNBAN"
    MESSAGE_CREATE = "MESSAGE_CREATE"
    MESSAGE_UPDATE = "MESSAGE_UPDATE"
    MESSAGE_DELETE = "MESSAGE_DELETE"
    MESSAGE_BULK_DELETE = "MESSAGE_BULK_DELETE"
    REACTION_ADD = "REACTION_ADD"
    REACTION_REMOVE = "REACTION_REMOVE"
    VOICE_JOIN = "VOICE_JOIN"
    VOICE_LEAVE = "VOICE_LEAVE"
    VOICE_MOVE = "VOICE_MOVE"
    THREAD_CREATE = "THREAD_CREATE"
    COMMAND_USE = "COMMAND_USE"


def _id(value: Any) -> str | None:
    return str(value) if value is not None else None


def _iso(moment: datetime | None) -> str | None:
    return moment.isoformat() if moment else None


def _tag(user: Any) -> str | None:
    return str(user) if user is not None else None


def _channel_name(channel: Any) -> str | None:
    return getattr(channel, "name", None)


def embed_texts(embeds: Iterable[discord.Embed]) -> List[str]:
    """Collect the visible text of each embed as one string per embed."""
    texts = []
    for embed in embeds:
        parts = [embed.title, embed.description]
        parts.extend(f"{field.name}\n{field.value}" for field in embed.fields)
        footer = getattr(embed.footer, "text", None)
        author = getattr(embed.author, "name", None)
        parts.extend([footer, author])
        text = "\n".join(part for part in parts if isinstance(part, str) and part)
        if text:
            texts.append(text)
    return texts


# ==========================================
# Members
# ==========================================

def normalize_member_join(member: discord.Member) -> AutomationEvent:
    return AutomationEvent(
        guild_id=str(member.guild.id),
        event_type=EventType.MEMBER_JOIN,
        event_category="member",
        actor_id=str(member.id),
        actor_name=_tag(member),
        details={
            "accountCreated": _iso(member.created_at),
            "bot": member.bot,
            "joinedAt": _iso(member.joined_at),
        },
    )


def normalize_member_leave(member: discord.Member) -> AutomationEvent:
    return AutomationEvent(
        guild_id=str(member.guild.id),
        event_type=EventType.MEMBER_LEAVE,
        event_category="member",
        actor_id=str(member.id),
        actor_name=_tag(member),
        details={
            "roles": [role.name for role in member.roles if not role.is_default()],
            "joinedAt": _iso(member.joined_at),
        },
    )


def normalize_role_changes(before: discord.Member, after: discord.Member) -> List[AutomationEvent]:
    """One MEMBER_ROLE_ADD / MEMBER_ROLE_REMOVE event per changed role."""
    before_roles = {role.id: role for role in before.roles}
    after_roles = {role.id: role for role in after.roles}

    events = []
    for event_type, changed in (
        (EventType.MEMBER_ROLE_ADD, [role for role_id, role in after_roles.items() if role_id not in before_roles]),
        (EventType.MEMBER_ROLE_REMOVE, [role for role_id, role in before_roles.items() if role_id not in after_roles]),
    ):
        for role in changed:
            events.append(AutomationEvent(
                guild_id=str(after.guild.id),
                event_type=event_type,
                event_category="role",
                target_id=str(after.id),
                target_name=_tag(after),
                details={"roleId": str(role.id), "roleName": role.name or "Unknown"},
            ))
    return events


def normalize_ban(guild: discord.Guild, user: discord.User | discord.Member, *, banned: bool) -> AutomationEvent:
    details = {"reason": "No reason provided"} if banned else {}
    return AutomationEvent(
        guild_id=str(guild.id),
        event_type=EventType.MEMBER_BAN if banned else EventType.MEMBER_UNBAN,
        event_category="moderation",
        target_id=str(user.id),
        target_name=_tag(user),
        details=details,
    )


# ==========================================
# Messages
# ==========================================

def normalize_message_create(message: discord.Message) -> Optional[AutomationEvent]:
    """MESSAGE_CREATE event for a guild message; None for direct messages."""
    if message.guild is None:
        return None

    content = message.content or ""
    return AutomationEvent(
        guild_id=str(message.guild.id),
        event_type=EventType.MESSAGE_CREATE,
        event_category="message",
        actor_id=str(message.author.id),
        actor_name=_tag(message.author),
        channel_id=str(message.channel.id),
        channel_name=_channel_name(message.channel),
        details={
            "messageId": str(message.id),
            "content": content,
            "contentLength": len(content),
            "hasAttachments": bool(message.attachments),
            "attachmentCount": len(message.attachments),
            "hasEmbeds": bool(message.embeds),
            "embedTexts": embed_texts(message.embeds),
            "isReply": message.reference is not None,
            "mentionCount": len(message.mentions),
            "isBot": bool(message.author.bot),
        },
    )


def normalize_message_update(before: discord.Message, after: discord.Message) -> Optional[AutomationEvent]:
    if after.guild is None:
        return None

    content = after.content or ""
    return AutomationEvent(
        guild_id=str(after.guild.id),
        event_type=EventType.MESSAGE_UPDATE,
        event_category="message",
        actor_id=_id(getattr(after.author, "id", None)),
        actor_name=_tag(after.author),
        channel_id=str(after.channel.id),
        channel_name=_channel_name(after.channel),
        details={
            "messageId": str(after.id),
            "content": content,
            "oldContentLength": len(before.content or ""),
            "newContentLength": len(content),
            "embedTexts": embed_texts(after.embeds),
            "isBot": bool(getattr(after.author, "bot", False)),
        },
    )


def normalize_message_delete(message: discord.Message) -> Optional[AutomationEvent]:
    if message.guild is None:
        return None

    return AutomationEvent(
        guild_id=str(message.guild.id),
        event_type=EventType.MESSAGE_DELETE,
        event_category="message",
        actor_id=_id(getattr(message.author, "id", None)),
        actor_name=_tag(message.author) or "Unknown",
        channel_id=str(message.channel.id),
        channel_name=_channel_name(message.channel),
        details={
            "messageId": str(message.id),
            "hadContent": bool(message.content),
            "hadAttachments": bool(message.attachments),
            "isBot": bool(getattr(message.author, "bot", False)),
        },
    )


def normalize_bulk_message_delete(messages: List[discord.Message]) -> Optional[AutomationEvent]:
    """MESSAGE_BULK_DELETE for a purge of cached messages in one guild channel."""
    if not messages or messages[0].guild is None:
        return None

    channel = messages[0].channel
    return AutomationEvent(
        guild_id=str(messages[0].guild.id),
        event_type=EventType.MESSAGE_BULK_DELETE,
        event_category="message",
        channel_id=str(channel.id),
        channel_name=_channel_name(channel),
        details={"count": len(messages)},
    )


def normalize_reaction(
    reaction: discord.Reaction, user: discord.User | discord.Member, *, added: bool
) -> Optional[AutomationEvent]:
    """REACTION_ADD / REACTION_REMOVE for human reactions in guild channels."""
    message = reaction.message
    if message.guild is None or user.bot:
        return None

    emoji = reaction.emoji
    details: Dict[str, Any] = {
        "messageId": str(message.id),
        "emoji": getattr(emoji, "name", None) or str(emoji),
    }
    if added:
        details["emojiId"] = _id(getattr(emoji, "id", None))

    return AutomationEvent(
        guild_id=str(message.guild.id),
        event_type=EventType.REACTION_ADD if added else EventType.REACTION_REMOVE,
        event_category="reaction",
        actor_id=str(user.id),
        actor_name=_tag(user),
        channel_id=str(message.channel.id),
        channel_name=_channel_name(message.channel),
        details=details,
    )


# ==========================================
# Voice, threads and commands
# ==========================================

def normalize_voice_state(
    member: discord.Member, before: discord.VoiceState, after: discord.VoiceState
) -> Optional[AutomationEvent]:
    """VOICE_JOIN, VOICE_LEAVE or VOICE_MOVE; mute and video changes produce no event."""
    if before.channel is None and after.channel is not None:
        return AutomationEvent(
            guild_id=str(member.guild.id),
            event_type=EventType.VOICE_JOIN,
            event_category="voice",
            actor_id=str(member.id),
            actor_name=_tag(member),
            channel_id=str(after.channel.id),
            channel_name=after.channel.name,
            details={
                "selfMute": after.self_mute,
                "selfDeaf": after.self_deaf,
                "streaming": after.self_stream,
                "selfVideo": after.self_video,
            },
        )

    if before.channel is not None and after.channel is None:
        return AutomationEvent(
            guild_id=str(member.guild.id),
            event_type=EventType.VOICE_LEAVE,
            event_category="voice",
            actor_id=str(member.id),
            actor_name=_tag(member),
            channel_id=str(before.channel.id),
            channel_name=before.channel.name,
            details={
                "wasMuted": before.self_mute,
                "wasDeafened": before.self_deaf,
                "wasStreaming": before.self_stream,
                "hadVideo": before.self_video,
            },
        )

    if before.channel is not None and after.channel is not None and before.channel.id != after.channel.id:
        return AutomationEvent(
            guild_id=str(member.guild.id),
            event_type=EventType.VOICE_MOVE,
            event_category="voice",
            actor_id=str(member.id),
            actor_name=_tag(member),
            channel_id=str(after.channel.id),
            channel_name=after.channel.name,
            details={
                "fromChannelId": str(before.channel.id),
                "fromChannelName": before.channel.name,
            },
        )

    return None


def normalize_thread_create(thread: discord.Thread) -> Optional[AutomationEvent]:
    if thread.guild is None:
        return None

    return AutomationEvent(
        guild_id=str(thread.guild.id),
        event_type=EventType.THREAD_CREATE,
        event_category="thread",
        actor_id=_id(thread.owner_id),
        channel_id=str(thread.id),
        channel_name=thread.name,
        details={"parentId": _id(thread.parent_id)},
    )


def flatten_command_options(options: Iterable[Dict[str, Any]] | None) -> Dict[str, Any]:
    """Flatten raw interaction options, descending into subcommands."""
    flat: Dict[str, Any] = {}
    for option in options or []:
        nested = option.get("options")
        if nested:
            flat.update(flatten_command_options(nested))
        elif "value" in option:
            flat[option["name"]] = option["value"]
    return flat


def normalize_command(ctx: discord.ApplicationContext) -> Optional[AutomationEvent]:
    """COMMAND_USE event for a slash command; options land in ``options``."""
    if ctx.guild is None:
        return None

    data = getattr(ctx.interaction, "data", None) or {}
    options = flatten_command_options(data.get("options"))
    command_name = getattr(ctx.command, "qualified_name", None) or data.get("name")

    return AutomationEvent(
        guild_id=str(ctx.guild.id),
        event_type=EventType.COMMAND_USE,
        event_category="interaction",
        actor_id=str(ctx.author.id),
        actor_name=_tag(ctx.author),
        channel_id=_id(getattr(ctx.channel, "id", None)),
        channel_name=_channel_name(ctx.channel),
        details={"commandName": command_name, "isBot": bool(ctx.author.bot)},
        options=options,
    )


# ==========================================
# Filter context
# ==========================================

def _role_ids(user: Any) -> List[str] | None:
    roles = getattr(user, "roles", None)
    if roles is None:
        return None
    return [str(role.id) for role in roles]


def build_filter_context(
    actor: Any = None,
    target: Any = None,
    *,
    now: datetime | None = None,
) -> FilterContext:
    """
    Gather the data role and account age filters need.

    Role lists are only known for guild members. Account age comes from the
    actor's account creation time.
    """
    account_age_days = None
    created_at = getattr(actor, "created_at", None)
    if isinstance(created_at, datetime):
        moment = now or datetime.now(timezone.utc)
        account_age_days = (moment - created_at).total_seconds() / SECONDS_PER_DAY

    return FilterContext(
        actor_roles=_role_ids(actor),
        target_roles=_role_ids(target),
        account_age_days=account_age_days,
    )
