"""Tests for AutomationRunner event processing."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from spacebot.automation.actions import ActionExecutor
from spacebot.automation.runner import AutomationRunner, create_automation_engine
from spacebot.datatypes.automation_datatypes import (
    ActionResult,
    Automation,
    AutomationAction,
    AutomationEvent,
    ExecutionLog,
    FilterContext,
)


def make_store(automations=None, **overrides):
    store = SimpleNamespace(
        get_triggered_automations=AsyncMock(return_value=automations or []),
        log_execution=AsyncMock(),
    )
    for name, value in overrides.items():
        setattr(store, name, value)
    return store


def make_automation(actions, *, automation_id=1, name="Rule", filters=None) -> Automation:
    return Automation(
        id=automation_id,
        guild_id="1",
        name=name,
        trigger_events=["MEMBER_JOIN"],
        trigger_filters=filters or {},
        actions=[AutomationAction(type=action_type, config=config) for action_type, config in actions],
    )


def join_event(**details) -> AutomationEvent:
    return AutomationEvent(
        guild_id="1",
        event_type="MEMBER_JOIN",
        event_category="member",
        actor_id="100",
        actor_name="newbie",
        details=details,
    )


@pytest.mark.asyncio
async def test_partial_failure_runs_every_action_and_logs_once():
    store = make_store([make_automation([("SEND_MESSAGE", {}), ("ADD_ROLE", {}), ("LOG_TO_CHANNEL", {})])])
    executor = MagicMock()
    executor.execute = AsyncMock(side_effect=[
        ActionResult.ok({"sent": True}),
        ActionResult.fail("Member not found"),
        ActionResult.ok({"logged": True}),
    ])
    runner = AutomationRunner(store, executor)

    result = await runner.process_event(join_event())

    assert (result.executed, result.errors) == (0, 1)
    assert executor.execute.await_count == 3
    store.log_execution.assert_awaited_once()

    log: ExecutionLog = store.log_execution.await_args.args[0]
    assert log.success is False
    assert log.error_message == "Member not found"
    assert log.automation_id == 1
    assert log.trigger_event == "MEMBER_JOIN"
    assert log.trigger_data["actor_id"] == "100"
    assert log.action_result == [
        {"actionIndex": 0, "actionType": "SEND_MESSAGE", "success": True, "result": {"sent": True}},
        {"actionIndex": 1, "actionType": "ADD_ROLE", "success": False, "error": "Member not found"},
        {"actionIndex": 2, "actionType": "LOG_TO_CHANNEL", "success": True, "result": {"logged": True}},
    ]


@pytest.mark.asyncio
async def test_end_to_end_add_role():
    member = SimpleNamespace(add_roles=AsyncMock())
    guild = MagicMock()
    guild.fetch_member = AsyncMock(return_value=member)
    client = MagicMock()
    client.fetch_guild = AsyncMock(return_value=guild)

    store = make_store([make_automation([("ADD_ROLE", {"role_id": "55"})], name="Auto role")])
    runner = AutomationRunner(store, ActionExecutor(client, pacing_seconds=0))

    result = await runner.process_event(join_event(), {"name": "Space"})

    assert (result.executed, result.errors) == (1, 0)
    member.add_roles.assert_awaited_once()
    assert member.add_roles.await_args.kwargs["reason"] == "Automation: Auto role"
    log = store.log_execution.await_args.args[0]
    assert log.success is True
    assert log.error_message is None
    assert log.action_result[0]["result"] == {"roleAdded": "55"}


@pytest.mark.asyncio
async def test_filters_skip_automations_without_logging():
    young = make_automation([("SEND_MESSAGE", {})], automation_id=1, filters={"max_account_age_days": 7})
    anyone = make_automation([("SEND_MESSAGE", {})], automation_id=2, filters={"min_account_age_days": 30})
    store = make_store([young, anyone])
    executor = MagicMock()
    executor.execute = AsyncMock(return_value=ActionResult.ok())
    runner = AutomationRunner(store, executor)

    result = await runner.process_event(join_event(), filter_context=FilterContext(account_age_days=90))

    assert (result.executed, result.errors) == (1, 0)
    assert store.log_execution.await_args.args[0].automation_id == 2


@pytest.mark.asyncio
async def test_unknown_account_age_passes_age_filter():
    store = make_store([make_automation([("SEND_MESSAGE", {})], filters={"min_account_age_days": 30})])
    executor = MagicMock()
    executor.execute = AsyncMock(return_value=ActionResult.ok())

    result = await AutomationRunner(store, executor).process_event(join_event())

    assert result.executed == 1


@pytest.mark.asyncio
async def test_legacy_and_stacked_rules_behave_the_same():
    legacy = Automation.from_record({
        "id": 1, "guild_id": "1", "name": "legacy",
        "trigger_event": "MEMBER_JOIN",
        "action_type": "ADD_ROLE", "action_config": '{"role_id": "55"}',
    })
    stacked = Automation.from_record({
        "id": 2, "guild_id": "1", "name": "stacked",
        "trigger_events": '["MEMBER_JOIN"]',
        "action_type": "MULTIPLE",
        "action_config": '{"actions": [{"type": "ADD_ROLE", "config": {"role_id": "55"}}]}',
    })
    store = make_store([legacy, stacked])
    executor = MagicMock()
    executor.execute = AsyncMock(return_value=ActionResult.ok())

    result = await AutomationRunner(store, executor).process_event(join_event())

    assert result.executed == 2
    first, second = executor.execute.await_args_list
    assert first.args[:2] == second.args[:2] == ("ADD_ROLE", {"role_id": "55"})


@pytest.mark.asyncio
async def test_bot_events_are_ignored_before_lookup():
    store = make_store([make_automation([("SEND_MESSAGE", {})])])
    runner = AutomationRunner(store, MagicMock())

    result = await runner.process_event(join_event(isBot=True))

    assert (result.executed, result.errors) == (0, 0)
    store.get_triggered_automations.assert_not_awaited()


@pytest.mark.asyncio
async def test_bot_events_processed_when_allowed():
    store = make_store([make_automation([("SEND_MESSAGE", {})])])
    executor = MagicMock()
    executor.execute = AsyncMock(return_value=ActionResult.ok())
    runner = AutomationRunner(store, executor, ignore_bot_events=False)

    result = await runner.process_event(join_event(isBot=True))

    assert result.executed == 1


@pytest.mark.asyncio
async def test_lookup_failure_counts_one_error():
    store = make_store(get_triggered_automations=AsyncMock(side_effect=RuntimeError("db locked")))
    runner = AutomationRunner(store, MagicMock())

    result = await runner.process_event(join_event())

    assert (result.executed, result.errors) == (0, 1)


@pytest.mark.asyncio
async def test_log_write_failure_does_not_change_counts():
    store = make_store(
        [make_automation([("SEND_MESSAGE", {})])],
        log_execution=AsyncMock(side_effect=RuntimeError("disk full")),
    )
    executor = MagicMock()
    executor.execute = AsyncMock(return_value=ActionResult.ok())

    result = await AutomationRunner(store, executor).process_event(join_event())

    assert (result.executed, result.errors) == (1, 0)


@pytest.mark.asyncio
async def test_automation_without_actions_counts_as_executed():
    store = make_store([make_automation([])])
    executor = MagicMock()
    executor.execute = AsyncMock()

    result = await AutomationRunner(store, executor).process_event(join_event())

    assert result.executed == 1
    executor.execute.assert_not_awaited()
    assert store.log_execution.await_args.args[0].action_result == []


@pytest.mark.asyncio
async def test_engine_handler_accepts_flat_payload():
    store = make_store()
    handle_event = create_automation_engine(store, MagicMock())

    result = await handle_event({"guild_id": 1, "event_type": "MESSAGE_CREATE", "option_x": "y"})

    assert (result.executed, result.errors) == (0, 0)
    store.get_triggered_automations.assert_awaited_once_with("1", "MESSAGE_CREATE")
