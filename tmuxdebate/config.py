"""Configuration models for tmux-debate."""

from __future__ import annotations

import re
import shlex
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from tmuxdebate.errors import ConfigurationError

DEFAULT_MAX_ROUNDS = 10
DEFAULT_POLL_INTERVAL = 0.5
DEFAULT_STABILITY_THRESHOLD = 3
DEFAULT_TAIL_LINES = 5


class AgentKind(str, Enum):
    """Known agent CLIs. Each kind only differs by its readiness patterns."""

    CLAUDE = "claude"
    CODEX = "codex"
    GENERIC = "generic"

    @classmethod
    def from_command(cls, command: str) -> AgentKind:
        """Guess the agent kind from its invocation command."""
        lowered = command.lower()
        if "claude" in lowered:
            return cls.CLAUDE
        if "codex" in lowered:
            return cls.CODEX
        return cls.GENERIC


class AgentProfile(BaseModel):
    """How to launch one agent CLI and recognise its idle prompt.

    Profiles are frozen: the orchestrator shares them by reference for the
    whole lifetime of a debate.
    """

    model_config = ConfigDict(frozen=True)

    command: str
    args: list[str] = Field(default_factory=list)
    prompt_pattern: str = Field(default=r"^[>$#]\s*$")
    timeout: int = Field(default=120, ge=1, le=7200)
    name: str | None = Field(default=None)
    kind: AgentKind | None = Field(default=None)

    @field_validator("prompt_pattern")
    @classmethod
    def _check_pattern(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as e:
            raise ValueError(f"invalid prompt pattern {value!r}: {e}") from e
        return value

    @property
    def resolved_kind(self) -> AgentKind:
        """The configured kind, or the one implied by the command."""
        return self.kind or AgentKind.from_command(self.command)

    @property
    def display_name(self) -> str:
        return self.name or self.command

    def full_command(self) -> str:
        """Command line typed into the pane to launch the agent."""
        if not self.args:
            return self.command
        return " ".join([self.command, *(shlex.quote(arg) for arg in self.args)])


CLAUDE_PROFILE = AgentProfile(
    command="claude",
    prompt_pattern=r"^>\s*$",
    timeout=180,
    name="Claude Code",
    kind=AgentKind.CLAUDE,
)

CODEX_PROFILE = AgentProfile(
    command="codex",
    prompt_pattern=r"^\$\s*$",
    timeout=180,
    name="Codex",
    kind=AgentKind.CODEX,
)


def profile_for_command(command: str, name: str | None = None) -> AgentProfile:
    """Build a profile for a command, reusing a preset when one matches."""
    kind = AgentKind.from_command(command)
    if kind == AgentKind.CLAUDE:
        base = CLAUDE_PROFILE
    elif kind == AgentKind.CODEX:
        base = CODEX_PROFILE
    else:
        base = AgentProfile(command=command, kind=AgentKind.GENERIC)
    return base.model_copy(update={"command": command, "name": name or base.name})


class DetectorConfig(BaseModel):
    """Completion detector tuning."""

    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL, gt=0.0, le=60.0)
    stability_threshold: int = Field(default=DEFAULT_STABILITY_THRESHOLD, ge=1, le=100)
    tail_lines: int = Field(default=DEFAULT_TAIL_LINES, ge=1, le=200)


class ConsoleNotificationConfig(BaseModel):
    """Console notification settings."""

    enabled: bool = Field(default=True)
    colors: bool = Field(default=True)


class WebhookNotificationConfig(BaseModel):
    """Webhook notification settings."""

    enabled: bool = Field(default=False)
    url: str | None = Field(default=None)
    events: list[str] = Field(
        default_factory=lambda: ["consensus", "round_end", "debate_complete", "error"]
    )


class NotificationsConfig(BaseModel):
    """Configuration for notifications."""

    console: ConsoleNotificationConfig = Field(default_factory=ConsoleNotificationConfig)
    webhook: WebhookNotificationConfig = Field(default_factory=WebhookNotificationConfig)


class DebateConfig(BaseModel):
    """Main configuration for a debate."""

    max_rounds: int = Field(default=DEFAULT_MAX_ROUNDS, ge=1, le=1000)
    proposer: AgentProfile = Field(default_factory=lambda: CLAUDE_PROFILE)
    reviewer: AgentProfile = Field(
        default_factory=lambda: CLAUDE_PROFILE.model_copy(
            update={"name": "Claude Code (Reviewer)"}
        )
    )
    session_prefix: str = Field(default="debate")
    output_dir: str = Field(default="./debate-output")
    ready_timeout: float = Field(default=15.0, ge=0.0)
    role_prompt_timeout: float = Field(default=30.0, ge=0.0)

    detector: DetectorConfig = Field(default_factory=DetectorConfig)
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)

    @classmethod
    def load(cls, config_path: Path | None = None) -> DebateConfig:
        """Load configuration from a YAML file."""
        if config_path is None:
            search_paths = [
                Path("tmux-debate.yaml"),
                Path("tmux-debate.yml"),
                Path(".tmux-debate.yaml"),
                Path(".tmux-debate.yml"),
            ]
            for path in search_paths:
                if path.exists():
                    config_path = path
                    break

        if config_path and config_path.exists():
            try:
                with open(config_path) as f:
                    data = yaml.safe_load(f) or {}
                return cls.model_validate(data)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e
            except ValidationError as e:
                raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e

        return cls()

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary."""
        return self.model_dump(mode="json")

    def save(self, config_path: Path) -> None:
        """Save configuration to a YAML file."""
        with open(config_path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)
