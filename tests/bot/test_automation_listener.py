import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from spacebot.bot.cogs import automation_listener
from spacebot.bot.cogs.automation_listener import AutomationListenerCog
from spacebot.datatypes.automation_datatypes import AutomationEvent, ProcessResult


@pytest.fixture
def runner():
    return SimpleNamespace(process_event=AsyncMock(return_value=ProcessResult(executed=1)))


@pytest.fixture
def cog(runner):
    return AutomationListenerCog(SimpleNamespace(), runner)


@pytest.mark.asyncio
async def test_dispatch_runs_event_in_background(cog, runner):
    event = AutomationEvent(guild_id="1", event_type="MEMBER_JOIN", actor_id="2")

    task = cog.dispatch(event, SimpleNamespace(name="Space"))
    await task
    await asyncio.sleep(0)

    runner.process_event.assert_awaited_once()
    args = runner.process_event.await_args.args
    assert args[0] is event
    assert args[1] == {"name": "Space"}
    assert args[2].actor_roles is None
    assert not cog._tasks


def test_dispatch_ignores_missing_event(cog, runner):
    assert cog.dispatch(None, None) is None


@pytest.mark.asyncio
async def test_processing_errors_are_contained(cog, runner):
    runner.process_event = AsyncMock(side_effect=RuntimeError("boom"))
    event = AutomationEvent(guild_id="1", event_type="MEMBER_JOIN")

    await cog.dispatch(event, None)

    runner.process_event.assert_awaited_once()


@pytest.mark.asyncio
async def test_on_message_dispatches_normalized_event(cog, runner):
    guild = SimpleNamespace(id=1, name="Space")
    author = SimpleNamespace(id=100, bot=False, roles=[], created_at=None)
    message = SimpleNamespace(
        id=5, guild=guild, author=author, channel=SimpleNamespace(id=10, name="general"),
        content="hello", attachments=[], embeds=[], reference=None, mentions=[],
    )

    await cog.on_message(message)
    await asyncio.gather(*cog._tasks)

    event = runner.process_event.await_args.args[0]
    assert event.event_type == "MESSAGE_CREATE"
    assert event.details["content"] == "hello"


@pytest.mark.asyncio
async def test_on_bulk_message_delete_dispatches_count(cog, runner):
    guild = SimpleNamespace(id=1, name="Space")
    channel = SimpleNamespace(id=10, name="general")
    messages = [SimpleNamespace(id=index, guild=guild, channel=channel) for index in range(3)]

    await cog.on_bulk_message_delete(messages)
    await asyncio.gather(*cog._tasks)

    event, guild_info, _ = runner.process_event.await_args.args
    assert event.event_type == "MESSAGE_BULK_DELETE"
    assert event.details == {"count": 3}
    assert guild_info == {"name": "Space"}


@pytest.mark.asyncio
async def test_cog_unload_cancels_pending_tasks(cog, runner):
    gate = asyncio.Event()

    async def slow(*_):
        await gate.wait()
        return ProcessResult()

    runner.process_event = AsyncMock(side_effect=slow)
    task = cog.dispatch(AutomationEvent(guild_id="1", event_type="MEMBER_JOIN"), None)
    await asyncio.sleep(0)

    cog.cog_unload()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert not cog._tasks


def test_setup_registers_cog():
    bot = MagicMock()
    automation_listener.setup(bot, SimpleNamespace())
    cog = bot.add_cog.call_args.args[0]
    assert isinstance(cog, AutomationListenerCog)
