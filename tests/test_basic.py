"""Basic tests for erigon-runner."""

import json
from datetime import timedelta
from pathlib import Path

import pytest

from erigon_runner import __version__
from erigon_runner.alerter import NEVER_COOLDOWN
from erigon_runner.config import (
    WEBHOOK_URL_ENV,
    AlertConfig,
    ChildConfig,
    RunConfig,
    load_alert_config,
)
from erigon_runner.errors import ConfigError


def write_config(tmp_path: Path, data: object) -> Path:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data))
    return path


def test_version() -> None:
    """Test that version is defined."""
    assert __version__ == "0.1.0"


def test_load_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Test loading the JSON run configuration."""
    monkeypatch.delenv(WEBHOOK_URL_ENV, raising=False)
    path = write_config(
        tmp_path,
        {
            "webhookURL": "https://chat.test/hook",
            "patterns": [
                {"pattern": "ERROR", "timeoutMinutes": 5},
                {"pattern": "panic", "timeoutMinutes": 0},
                {"pattern": "WARN"},
            ],
            "logFile": "erigon.log",
            "alertCooldownMinutes": 30,
            "defaultTimeoutMinutes": 10,
        },
    )

    config = load_alert_config(path)

    assert config.webhook_url == "https://chat.test/hook"
    assert config.log_file == "erigon.log"
    assert config.default_cooldown == timedelta(minutes=10)
    assert [p.pattern for p in config.patterns] == ["ERROR", "panic", "WARN"]
    assert config.pattern_cooldowns() == {
        "ERROR": timedelta(minutes=5),
        "panic": NEVER_COOLDOWN,
    }


def test_legacy_cooldown_fallback() -> None:
    """alertCooldownMinutes applies when defaultTimeoutMinutes is absent."""
    assert AlertConfig.model_validate({"alertCooldownMinutes": 15}).default_cooldown == (
        timedelta(minutes=15)
    )
    assert AlertConfig.model_validate({}).default_cooldown == timedelta(0)


def test_webhook_env_override(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(WEBHOOK_URL_ENV, "https://override.test/hook")
    path = write_config(tmp_path, {"webhookURL": "https://chat.test/hook"})
    assert load_alert_config(path).webhook_url == "https://override.test/hook"


@pytest.mark.parametrize(
    "data",
    [
        {"patterns": [{"pattern": "("}]},
        {"patterns": [{"pattern": "ERROR", "timeoutMinutes": -1}]},
        {"patterns": "ERROR"},
        ["not", "an", "object"],
    ],
)
def test_invalid_config(tmp_path: Path, data: object) -> None:
    with pytest.raises(ConfigError):
        load_alert_config(write_config(tmp_path, data))


def test_unparsable_config(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text('{"webhookURL": ')
    with pytest.raises(ConfigError):
        load_alert_config(path)


def test_missing_config(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_alert_config(tmp_path / "missing.json")


def test_run_config_rules_keep_order() -> None:
    alerts = AlertConfig.model_validate(
        {"patterns": [{"pattern": "b"}, {"pattern": "a"}, {"pattern": "c"}]}
    )
    child = ChildConfig(repo=Path("/srv/erigon"), config_file=Path("bali.yaml"))
    config = RunConfig(alerts=alerts, child=child)

    assert [rule.key for rule in config.rules] == ["b", "a", "c"]
    assert child.config_path == Path("/srv/erigon/bali.yaml")


def test_tab_indented_json_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Tab-indented JSON, as written by Go tooling, loads like any other JSON."""
    monkeypatch.delenv(WEBHOOK_URL_ENV, raising=False)
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps(
            {
                "webhookURL": "https://chat.test/hook",
                "patterns": [{"pattern": "ERROR", "timeoutMinutes": 5}],
                "defaultTimeoutMinutes": 10,
            },
            indent="\t",
        )
    )

    config = load_alert_config(path)

    assert config.webhook_url == "https://chat.test/hook"
    assert [p.pattern for p in config.patterns] == ["ERROR"]
    assert config.default_cooldown == timedelta(minutes=10)


def test_yaml_config_by_suffix(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(WEBHOOK_URL_ENV, raising=False)
    path = tmp_path / "config.yaml"
    path.write_text(
        "webhookURL: https://chat.test/hook\n"
        "patterns:\n"
        "  - pattern: panic\n"
        "    timeoutMinutes: 0\n"
    )

    config = load_alert_config(path)

    assert config.webhook_url == "https://chat.test/hook"
    assert config.pattern_cooldowns() == {"panic": NEVER_COOLDOWN}


def test_json_config_is_not_read_as_yaml(tmp_path: Path) -> None:
    """A .json file with YAML syntax is rejected."""
    path = tmp_path / "config.json"
    path.write_text("webhookURL: https://chat.test/hook\n")
    with pytest.raises(ConfigError):
        load_alert_config(path)
