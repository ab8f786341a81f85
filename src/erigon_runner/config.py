"""Configuration loading for erigon-runner."""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from erigon_runner.alerter.classifier import PatternRule
from erigon_runner.errors import ConfigError

WEBHOOK_URL_ENV = "ERIGON_RUNNER_WEBHOOK_URL"
DEFAULT_CHILD_COMMAND = ("./build/bin/cdk-erigon",)
DEFAULT_BUILD_COMMAND = ("make", "cdk-erigon")
YAML_SUFFIXES = (".yaml", ".yml")


class PatternConfig(BaseModel):
    """A log pattern and its optional cooldown override.

    Example:
        {"pattern": "ERROR.*disk", "timeoutMinutes": 30}

    A timeoutMinutes of 0 silences the pattern after its first alert.
    """

    model_config = ConfigDict(populate_by_name=True)

    pattern: str
    timeout_minutes: int | None = Field(None, alias="timeoutMinutes", ge=0)

    @field_validator("pattern")
    @classmethod
    def pattern_compiles(cls, v: str) -> str:
        """Ensure the pattern is a valid regular expression."""
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"invalid regular expression {v!r}: {e}") from e
        return v


class AlertConfig(BaseModel):
    """Alerting section of the run configuration file (JSON)."""

    model_config = ConfigDict(populate_by_name=True)

    webhook_url: str = Field("", alias="webhookURL")
    patterns: list[PatternConfig] = Field(default_factory=list)
    log_file: str = Field("", alias="logFile")
    alert_cooldown_minutes: int | None = Field(None, alias="alertCooldownMinutes", ge=0)
    default_timeout_minutes: int | None = Field(None, alias="defaultTimeoutMinutes", ge=0)

    @property
    def default_cooldown(self) -> timedelta:
        """defaultTimeoutMinutes, falling back to the legacy alertCooldownMinutes."""
        if self.default_timeout_minutes is not None:
            return timedelta(minutes=self.default_timeout_minutes)
        if self.alert_cooldown_minutes is not None:
            return timedelta(minutes=self.alert_cooldown_minutes)
        return timedelta(0)

    def build_rules(self) -> list[PatternRule]:
        """Compile patterns in configured order."""
        return [PatternRule.from_config(p.pattern, p.timeout_minutes) for p in self.patterns]

    def pattern_cooldowns(self) -> dict[str, timedelta]:
        """Cooldown overrides keyed by pattern, for patterns that set one."""
        return {rule.key: rule.cooldown for rule in self.build_rules() if rule.cooldown is not None}


def load_alert_config(path: Path) -> AlertConfig:
    """Read and validate the run configuration file.

    Files ending in .yaml or .yml are read as YAML, anything else as JSON.
    The webhook URL can be overridden with ERIGON_RUNNER_WEBHOOK_URL.

    Raises:
        ConfigError: If the file is missing, unparsable or invalid
    """
    try:
        with open(path, encoding="utf-8") as f:
            if Path(path).suffix.lower() in YAML_SUFFIXES:
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except OSError as e:
        raise ConfigError(f"failed to read config file {path}: {e}") from e
    except (json.JSONDecodeError, UnicodeDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"failed to parse config file {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"config file {path} must contain an object")

    try:
        config = AlertConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"invalid config file {path}: {e}") from e

    env_url = os.environ.get(WEBHOOK_URL_ENV)
    if env_url:
        config = config.model_copy(update={"webhook_url": env_url})

    return config


@dataclass(frozen=True)
class ChildConfig:
    """Where and how to launch the supervised child."""

    repo: Path
    config_file: Path  # relative to repo unless absolute
    command: tuple[str, ...] = DEFAULT_CHILD_COMMAND
    build_command: tuple[str, ...] | None = None

    @property
    def config_path(self) -> Path:
        return self.repo / self.config_file


@dataclass(frozen=True)
class RunConfig:
    """Everything a run needs, fixed at startup."""

    alerts: AlertConfig
    child: ChildConfig | None = None  # None when watching stdin
    msg_prefix: str = ""
    max_port_attempts: int = 1000
    webhook_timeout: float = 10.0
    rules: list[PatternRule] = field(init=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "rules", self.alerts.build_rules())
