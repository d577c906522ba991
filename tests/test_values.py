"""Tests for dynamic parameter resolution."""

import pytest

from spacebot.automation.values import parse_float, resolve_number, resolve_target_user
from spacebot.datatypes.automation_datatypes import AutomationEvent


def make_event(**fields) -> AutomationEvent:
    payload = {"guild_id": "G", "event_type": "COMMAND_USE", **fields}
    return AutomationEvent.from_dict(payload)


class TestResolveNumber:

    def test_nested_option_value(self):
        event = make_event(options={"amount": "5"})
        assert resolve_number("option:amount", event, 10) == 5

    def test_flat_option_value(self):
        event = make_event(option_amount="7")
        assert resolve_number("option:amount", event, 10) == 7

    def test_missing_option_uses_default(self):
        assert resolve_number("option:missing", make_event(), 10) == 10

    def test_nested_option_wins_over_flat(self):
        event = make_event(options={"amount": "3"}, option_amount="9")
        assert resolve_number("option:amount", event, 10) == 3

    def test_empty_nested_option_falls_through_to_flat(self):
        event = make_event(options={"amount": ""}, option_amount="9")
        assert resolve_number("option:amount", event, 10) == 9

    def test_zero_option_value_is_parsed(self):
        assert resolve_number("option:amount", make_event(options={"amount": 0}), 10) == 0
        assert resolve_number("option:amount", make_event(option_amount="0"), 10) == 0

    def test_literal_values(self):
        event = make_event()
        assert resolve_number(4, event, 10) == 4
        assert resolve_number("2.5", event, 10) == 2.5
        assert resolve_number("5 messages", event, 10) == 5
        assert resolve_number("abc", event, 10) == 10
        assert resolve_number("", event, 10) == 10
        assert resolve_number(None, event, None) is None

    def test_boolean_is_not_a_number(self):
        assert resolve_number(True, make_event(), 10) == 10


@pytest.mark.parametrize(
    "raw, expected",
    [("12", 12.0), ("  -3.5e1x", -35.0), (".5", 0.5), ("Infinity", float("inf")), ("x1", None), (None, None)],
)
def test_parse_float_prefix_semantics(raw, expected):
    assert parse_float(raw) == expected


class TestResolveTargetUser:

    def test_legacy_fallback_prefers_actor(self):
        event = make_event(actor_id="A", target_id="B")
        assert resolve_target_user({}, event) == "A"

    def test_legacy_fallback_uses_target_without_actor(self):
        assert resolve_target_user({}, make_event(target_id="B")) == "B"

    def test_explicit_sources(self):
        event = make_event(actor_id="A", target_id="B")
        assert resolve_target_user({"target_user": "target"}, event) == "B"
        assert resolve_target_user({"target_user": "actor"}, event) == "A"
        assert resolve_target_user({"target_user": "invoker"}, event) == "A"

    def test_option_source(self):
        event = make_event(actor_id="A", options={"spammer": "S"})
        assert resolve_target_user({"target_user": "option:spammer"}, event) == "S"

    def test_flat_option_source(self):
        event = make_event(actor_id="A", option_spammer=123)
        assert resolve_target_user({"target_user": "option:spammer"}, event) == "123"

    def test_unresolved_option_falls_back_to_actor(self):
        event = make_event(actor_id="A")
        assert resolve_target_user({"target_user": "option:nobody"}, event) == "A"
        assert resolve_target_user({"target_user": "somebody"}, event) == "A"
