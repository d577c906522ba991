import json
from pathlib import Path

import pytest

from spacebot.configuration.app_configuration import AppConfig
from spacebot.configuration.automation_settings import DEFAULT_EMBED_COLOR, AutomationSettings


@pytest.fixture()
def config_path(tmp_path: Path) -> Path:
    return tmp_path / "app_config.yml"


def test_app_config_reload_parses_yaml(config_path: Path) -> None:
    config_payload = {
        "database": {"path": "/tmp/spacebot-test/app.db"},
        "automation": {
            "deletion_pacing_seconds": 0.25,
            "bulk_delete_max_age_days": 10,
            "history_fetch_limit": "50",
            "embed_color": "#FF0000",
            "ignore_bot_events": False,
            "rules_cache_ttl_seconds": 5,
        },
    }
    config_path.write_text(json.dumps(config_payload), encoding="utf-8")

    config = AppConfig(config_path)

    assert config.database_path == Path("/tmp/spacebot-test/app.db")
    settings = config.automation
    assert settings.deletion_pacing_seconds == pytest.approx(0.25)
    assert settings.bulk_delete_max_age_days == 10
    assert settings.history_fetch_limit == 50
    assert settings.embed_color == 0xFF0000
    assert settings.ignore_bot_events is False
    assert settings.rules_cache_ttl_seconds == 5


def test_app_config_missing_file_returns_defaults(tmp_path: Path) -> None:
    config = AppConfig(tmp_path / "does_not_exist.yml")

    assert config.data == {}
    assert config.database_path.name == "app.db"

    settings = config.automation
    assert settings.deletion_pacing_seconds == pytest.approx(0.5)
    assert settings.bulk_delete_max_age_days == 14
    assert settings.history_fetch_limit == 100
    assert settings.embed_color == DEFAULT_EMBED_COLOR
    assert settings.ignore_bot_events is True


def test_app_config_non_mapping_is_ignored(config_path: Path) -> None:
    config_path.write_text("- just\n- a list\n", encoding="utf-8")

    config = AppConfig(config_path)

    assert config.data == {}


def test_app_config_reload_picks_up_changes(config_path: Path) -> None:
    config_path.write_text(json.dumps({"automation": {"history_fetch_limit": 10}}), encoding="utf-8")
    config = AppConfig(config_path)
    assert config.automation.history_fetch_limit == 10

    config_path.write_text(json.dumps({"automation": {"history_fetch_limit": 20}}), encoding="utf-8")
    config.reload()

    assert config.automation.history_fetch_limit == 20


def test_automation_settings_coercion() -> None:
    settings = AutomationSettings(
        {
            "deletion_pacing_seconds": "-3",
            "bulk_delete_max_age_days": "not a number",
            "embed_color": "zzz",
            "ignore_bot_events": "false",
        }
    )

    assert settings.deletion_pacing_seconds == 0.0
    assert settings.bulk_delete_max_age_days == 14
    assert settings.embed_color == DEFAULT_EMBED_COLOR
    assert settings.ignore_bot_events is False
    assert settings.get("missing", "fallback") == "fallback"
