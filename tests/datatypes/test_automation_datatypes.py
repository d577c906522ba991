import pytest

from spacebot.datatypes.automation_datatypes import (
    ActionResult,
    ActionType,
    Automation,
    AutomationAction,
    AutomationEvent,
)


def test_action_type_parse():
    assert ActionType.parse("KICK_MEMBER") is ActionType.KICK_MEMBER
    assert ActionType.parse("NOPE") is None
    assert ActionType.parse(None) is None
    assert str(ActionType.BAN_MEMBER) == "BAN_MEMBER"


class TestAutomationEvent:

    def test_from_dict_splits_known_and_extra_fields(self):
        event = AutomationEvent.from_dict({
            "guild_id": 1,
            "event_type": "COMMAND_USE",
            "actor_id": 2,
            "details": {"isBot": False},
            "options": {"user": "3"},
            "option_count": "5",
        })

        assert event.guild_id == "1"
        assert event.actor_id == "2"
        assert event.options == {"user": "3"}
        assert event.extra == {"option_count": "5"}
        assert event.get_option("count") == "5"
        assert event.is_bot is False

    def test_to_dict_round_trips_flat_payload(self):
        payload = {"guild_id": "1", "event_type": "MESSAGE_CREATE", "details": {"content": "hi"}, "option_x": 1}
        assert AutomationEvent.from_dict(payload).to_dict() == payload

    def test_is_bot_requires_true(self):
        assert AutomationEvent(guild_id="1", event_type="X", details={"isBot": "true"}).is_bot is False
        assert AutomationEvent(guild_id="1", event_type="X", details={"isBot": True}).is_bot is True


class TestNormalizeActions:

    def test_stacked_actions_win(self):
        actions = Automation.normalize_actions(
            "ADD_ROLE", {"role_id": "1", "actions": [{"type": "KICK_MEMBER", "config": {"reason": "x"}}]}
        )
        assert actions == [AutomationAction(type="KICK_MEMBER", config={"reason": "x"})]

    def test_empty_stacked_list_falls_back_to_legacy(self):
        actions = Automation.normalize_actions("ADD_ROLE", {"role_id": "1", "actions": []})
        assert [(a.type, a.config) for a in actions] == [("ADD_ROLE", {"role_id": "1", "actions": []})]

    @pytest.mark.parametrize("action_type", ["NONE", "MULTIPLE", None, ""])
    def test_placeholder_types_yield_no_actions(self, action_type):
        assert Automation.normalize_actions(action_type, {"role_id": "1"}) == []

    def test_missing_config_in_stacked_entry(self):
        actions = Automation.normalize_actions(None, {"actions": [{"type": "KICK_MEMBER"}, "garbage"]})
        assert actions == [AutomationAction(type="KICK_MEMBER", config={})]


def test_from_record_decodes_json_columns():
    automation = Automation.from_record({
        "id": 3,
        "guild_id": 9,
        "name": "Legacy",
        "enabled": 0,
        "trigger_events": "[]",
        "trigger_event": "MEMBER_JOIN",
        "trigger_filters": '{"channel_id": "ALL"}',
        "action_type": "SEND_MESSAGE",
        "action_config": '{"channel_id": "1", "content": "hi"}',
    })

    assert automation.guild_id == "9"
    assert automation.enabled is False
    assert automation.trigger_events == ["MEMBER_JOIN"]
    assert automation.trigger_filters == {"channel_id": "ALL"}
    assert automation.actions[0].config == {"channel_id": "1", "content": "hi"}


def test_action_result_to_dict():
    assert ActionResult.ok({"sent": True}).to_dict() == {"success": True, "result": {"sent": True}}
    assert ActionResult.fail("nope").to_dict() == {"success": False, "error": "nope"}
    assert ActionResult.ok().to_dict() == {"success": True}
