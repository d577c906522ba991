"""Tests for automation template rendering."""

from spacebot.automation.template import render, resolve_path, stringify


CONTEXT = {
    "user": {"id": "1", "name": "alice", "mention": "<@1>"},
    "guild": {"name": "Space"},
    "details": {"count": 3.0, "flags": ["a", "b"], "isBot": False, "nothing": None},
}


def test_render_substitutes_known_paths():
    assert render("Welcome {user.mention} to {guild.name}!", CONTEXT) == "Welcome <@1> to Space!"


def test_render_keeps_unresolvable_placeholders():
    assert render("Hello {user.nickname}", {"user": {"id": "1"}}) == "Hello {user.nickname}"
    assert render("{missing.deep.path}", CONTEXT) == "{missing.deep.path}"


def test_render_keeps_placeholder_for_none_value():
    assert render("value={details.nothing}", CONTEXT) == "value={details.nothing}"


def test_render_falsy_template_returned_unchanged():
    assert render("", CONTEXT) == ""
    assert render(None, CONTEXT) is None


def test_render_is_idempotent():
    template = "Hi {user.name}, {user.unknown} in {guild.name}"
    once = render(template, CONTEXT)
    assert render(once, CONTEXT) == once


def test_render_stringifies_like_javascript():
    assert render("{details.count} {details.flags} {details.isBot}", CONTEXT) == "3 a,b false"


def test_resolve_path_handles_list_indices():
    assert resolve_path({"items": ["x", "y"]}, "items.1") == "y"
    assert resolve_path({"items": ["x"]}, "items.5") is None


def test_stringify_values():
    assert stringify(True) == "true"
    assert stringify(2.5) == "2.5"
    assert stringify(10) == "10"
    assert stringify([1, None, 2]) == "1,,2"


def test_render_does_not_expose_python_attributes():
    context = {"user": {"name": "alice"}, "details": {"content": "hi"}}
    template = "A {user.name.__class__} B {details.content.upper} C {details.items}"
    assert render(template, context) == template


def test_render_mapping_as_json():
    assert render("{user}", {"user": {"id": "1", "bot": False}}) == '{"id":"1","bot":false}'
