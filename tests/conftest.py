"""Shared fixtures: a scripted surface and a fake clock instead of tmux."""

from collections.abc import Callable

import pytest

from tmuxdebate.config import AgentKind, AgentProfile, DebateConfig, DetectorConfig
from tmuxdebate.surface import PROPOSER, REVIEWER, SurfaceProvider


class FakeClock:
    """Monotonic clock that only advances when someone sleeps."""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeSurface(SurfaceProvider):
    """
    In-memory surface for both roles.

    Every sent text is echoed on the screen, followed by the reply of the
    role's responder and a fresh ``>`` prompt line.
    """

    def __init__(self, responders: dict[str, Callable[[str], str]] | None = None):
        self.available = True
        self.created = False
        self.killed = False
        self.screens = {PROPOSER: "", REVIEWER: ""}
        self.sent: dict[str, list[str]] = {PROPOSER: [], REVIEWER: []}
        self.commands: dict[str, list[str]] = {PROPOSER: [], REVIEWER: []}
        self.statuses: list[str] = []
        self.pane_logs: dict[str, str] = {}
        self.responders = responders or {}
        # Targets that never return to their prompt after a send
        self.hanging: set[str] = set()

    def is_available(self) -> bool:
        return self.available

    def create_session(self) -> None:
        self.created = True

    def kill_session(self) -> None:
        self.killed = True

    def send_text(self, target: str, text: str, enter: bool = True) -> None:
        self.sent[target].append(text)
        responder = self.responders.get(target)
        reply = responder(text) if responder else "ok"
        prompt_line = "" if target in self.hanging else "\n>"
        self.screens[target] += f"\n{text}\n{reply}{prompt_line}"

    def capture_text(self, target: str) -> str:
        return self.screens[target].strip()

    def run_in_pane(self, target: str, command: str) -> None:
        self.commands[target].append(command)
        self.screens[target] = f"$ {command}\n>"

    def interrupt(self, target: str) -> None:
        self.sent[target].append("^C")

    def start_pane_logging(self, target: str, log_path: str) -> None:
        self.pane_logs[target] = log_path

    def update_status(self, status: str) -> None:
        self.statuses.append(status)


def scripted_reviewer(replies: list[str]) -> Callable[[str], str]:
    """Responder answering review prompts from a list, anything else with 'ok'."""
    queue = list(replies)

    def respond(prompt: str) -> str:
        if prompt.startswith("Please review") and queue:
            return queue.pop(0)
        return "ok"

    return respond


def scripted_proposer(replies: list[str]) -> Callable[[str], str]:
    queue = list(replies)

    def respond(prompt: str) -> str:
        if (prompt.startswith("Please provide") or prompt.startswith("The reviewer")) and queue:
            return queue.pop(0)
        return "ok"

    return respond


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def generic_profile():
    return AgentProfile(command="agent", prompt_pattern=r"^>\s*$", timeout=60, kind=AgentKind.GENERIC)


@pytest.fixture
def debate_config(generic_profile):
    return DebateConfig(
        max_rounds=3,
        proposer=generic_profile,
        reviewer=generic_profile.model_copy(update={"name": "reviewer"}),
        ready_timeout=5.0,
        role_prompt_timeout=10.0,
        detector=DetectorConfig(poll_interval=0.5, stability_threshold=3, tail_lines=5),
    )
