from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from spacebot.bot import event_normalizer
from spacebot.bot.event_normalizer import EventType

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


class FakeUser:
    def __init__(self, user_id, name="user", *, bot=False, roles=None, guild=None, created_at=None):
        self.id = user_id
        self.name = name
        self.bot = bot
        self.roles = roles if roles is not None else []
        self.guild = guild
        self.created_at = created_at or NOW - timedelta(days=10)
        self.joined_at = NOW

    def __str__(self):
        return self.name


class FakeRole:
    def __init__(self, role_id, name, default=False):
        self.id = role_id
        self.name = name
        self._default = default

    def is_default(self):
        return self._default


GUILD = SimpleNamespace(id=1, name="Space")
CHANNEL = SimpleNamespace(id=10, name="general")


def make_message(content="hello", *, author=None, guild=GUILD, embeds=None):
    return SimpleNamespace(
        id=500,
        guild=guild,
        author=author or FakeUser(100, "alice"),
        channel=CHANNEL,
        content=content,
        attachments=[],
        embeds=embeds or [],
        reference=None,
        mentions=[],
    )


def test_member_join():
    member = FakeUser(100, "alice", guild=GUILD)

    event = event_normalizer.normalize_member_join(member)

    assert event.event_type == EventType.MEMBER_JOIN
    assert event.guild_id == "1"
    assert event.actor_id == "100"
    assert event.actor_name == "alice"
    assert event.details["bot"] is False


def test_member_leave_skips_default_role():
    roles = [FakeRole(1, "@everyone", default=True), FakeRole(2, "Member")]
    member = FakeUser(100, guild=GUILD, roles=roles)

    event = event_normalizer.normalize_member_leave(member)

    assert event.details["roles"] == ["Member"]


def test_role_changes_emit_one_event_per_role():
    kept, added, removed = FakeRole(1, "Kept"), FakeRole(2, "Added"), FakeRole(3, "Removed")
    before = FakeUser(100, guild=GUILD, roles=[kept, removed])
    after = FakeUser(100, guild=GUILD, roles=[kept, added])

    events = event_normalizer.normalize_role_changes(before, after)

    assert [(e.event_type, e.details["roleId"]) for e in events] == [
        (EventType.MEMBER_ROLE_ADD, "2"),
        (EventType.MEMBER_ROLE_REMOVE, "3"),
    ]
    assert all(e.target_id == "100" for e in events)


def test_ban_and_unban():
    user = FakeUser(100, "spammer")
    banned = event_normalizer.normalize_ban(GUILD, user, banned=True)
    unbanned = event_normalizer.normalize_ban(GUILD, user, banned=False)

    assert banned.event_type == EventType.MEMBER_BAN
    assert banned.target_id == "100"
    assert banned.details == {"reason": "No reason provided"}
    assert unbanned.event_type == EventType.MEMBER_UNBAN


def test_message_create_details():
    embed = SimpleNamespace(
        title="Giveaway",
        description="Click here",
        fields=[SimpleNamespace(name="Prize", value="Nitro")],
        footer=SimpleNamespace(text=None),
        author=SimpleNamespace(name=None),
    )
    message = make_message("hi there", embeds=[embed])

    event = event_normalizer.normalize_message_create(message)

    assert event.channel_id == "10"
    assert event.channel_name == "general"
    assert event.details["content"] == "hi there"
    assert event.details["contentLength"] == 8
    assert event.details["embedTexts"] == ["Giveaway\nClick here\nPrize\nNitro"]
    assert event.details["isBot"] is False
    assert event.details["isReply"] is False


def test_direct_messages_are_ignored():
    assert event_normalizer.normalize_message_create(make_message(guild=None)) is None
    assert event_normalizer.normalize_message_delete(make_message(guild=None)) is None


def test_bulk_message_delete():
    event = event_normalizer.normalize_bulk_message_delete([make_message(), make_message()])

    assert event.event_type == EventType.MESSAGE_BULK_DELETE
    assert event.actor_id is None
    assert event.channel_id == "10"
    assert event.details == {"count": 2}
    assert event_normalizer.normalize_bulk_message_delete([]) is None
    assert event_normalizer.normalize_bulk_message_delete([make_message(guild=None)]) is None


def test_message_update_lengths():
    event = event_normalizer.normalize_message_update(make_message("old"), make_message("newer"))
    assert event.details["oldContentLength"] == 3
    assert event.details["newContentLength"] == 5


def test_reaction_from_bot_is_ignored():
    reaction = SimpleNamespace(message=make_message(), emoji="👍")
    assert event_normalizer.normalize_reaction(reaction, FakeUser(5, bot=True), added=True) is None

    event = event_normalizer.normalize_reaction(reaction, FakeUser(5), added=True)
    assert event.event_type == EventType.REACTION_ADD
    assert event.details["emoji"] == "👍"


def test_voice_join_leave_and_move():
    member = FakeUser(100, guild=GUILD)
    voice = SimpleNamespace(id=20, name="Lounge")
    other = SimpleNamespace(id=21, name="Games")

    def state(channel):
        return SimpleNamespace(channel=channel, self_mute=False, self_deaf=False, self_stream=False, self_video=False)

    joined = event_normalizer.normalize_voice_state(member, state(None), state(voice))
    left = event_normalizer.normalize_voice_state(member, state(voice), state(None))

    assert joined.event_type == EventType.VOICE_JOIN
    assert joined.channel_id == "20"
    assert left.event_type == EventType.VOICE_LEAVE
    moved = event_normalizer.normalize_voice_state(member, state(voice), state(other))
    assert moved.event_type == EventType.VOICE_MOVE
    assert moved.channel_id == "21"
    assert moved.details == {"fromChannelId": "20", "fromChannelName": "Lounge"}
    assert event_normalizer.normalize_voice_state(member, state(voice), state(voice)) is None


def test_flatten_command_options_descends_into_subcommands():
    options = [
        {"name": "purge", "type": 1, "options": [
            {"name": "user", "type": 6, "value": "300"},
            {"name": "count", "type": 4, "value": 5},
        ]},
    ]
    assert event_normalizer.flatten_command_options(options) == {"user": "300", "count": 5}
    assert event_normalizer.flatten_command_options(None) == {}


def test_command_use_event():
    ctx = SimpleNamespace(
        guild=GUILD,
        channel=CHANNEL,
        author=FakeUser(100, "mod"),
        command=SimpleNamespace(qualified_name="cleanup"),
        interaction=SimpleNamespace(data={"name": "cleanup", "options": [{"name": "user", "value": "300"}]}),
    )

    event = event_normalizer.normalize_command(ctx)

    assert event.event_type == EventType.COMMAND_USE
    assert event.options == {"user": "300"}
    assert event.details["commandName"] == "cleanup"
    assert event.get_option("user") == "300"


def test_build_filter_context():
    actor = FakeUser(100, roles=[FakeRole(7, "Mod")], created_at=NOW - timedelta(days=3))

    context = event_normalizer.build_filter_context(actor, None, now=NOW)

    assert context.actor_roles == ["7"]
    assert context.target_roles is None
    assert context.account_age_days == 3


def test_build_filter_context_without_users():
    context = event_normalizer.build_filter_context()
    assert context.actor_roles is None
    assert context.account_age_days is None
