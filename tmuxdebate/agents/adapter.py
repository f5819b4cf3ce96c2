"""Adapter driving one interactive agent CLI through its surface."""

from __future__ import annotations

import re
import time
from collections.abc import Callable

from tmuxdebate.agents.traits import AgentTraits, get_traits, ready_patterns
from tmuxdebate.config import AgentProfile
from tmuxdebate.detector import AgentResponse, CompletionDetector, strip_prompt_echo
from tmuxdebate.errors import AgentNotStartedError
from tmuxdebate.surface import SurfaceProvider


class AgentAdapter:
    """
    One agent CLI running on one surface target.

    Capabilities: start, send a prompt, wait for the response, check
    readiness, capture output, stop. Differences between agent CLIs live in
    AgentTraits, not in subclasses.
    """

    STARTUP_DELAY = 1.0
    STARTUP_POLL_INTERVAL = 0.5
    INTERRUPT_DELAY = 0.5

    def __init__(
        self,
        role: str,
        profile: AgentProfile,
        surface: SurfaceProvider,
        detector: CompletionDetector | None = None,
        traits: AgentTraits | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.role = role
        self.profile = profile
        self.surface = surface
        self.detector = detector or CompletionDetector()
        self.traits = traits or get_traits(profile.resolved_kind)
        self.patterns: list[re.Pattern[str]] = ready_patterns(profile, self.traits)
        self._sleep = sleep
        self._clock = clock
        self._started = False
        self._baseline = ""
        self._prompt = ""

    @property
    def is_started(self) -> bool:
        return self._started

    @property
    def name(self) -> str:
        return self.profile.display_name

    def start(self) -> None:
        """Launch the agent CLI in its pane and wait for it to boot."""
        if self._started:
            return
        self.surface.run_in_pane(self.role, self.profile.full_command())
        self._sleep(self.STARTUP_DELAY)
        self._started = True
        if self.traits.startup_wait > 0:
            self._wait_for_initialization(self.traits.startup_wait)

    def _wait_for_initialization(self, max_wait: float) -> bool:
        # Slow CLIs show a banner first; carry on anyway after max_wait.
        start = self._clock()
        while self._clock() - start < max_wait:
            if self.detector.is_ready(self.get_current_output(), self.patterns):
                return True
            self._sleep(self.STARTUP_POLL_INTERVAL)
        return False

    def send_prompt(self, prompt: str) -> None:
        """Send a prompt, remembering the screen as it was just before."""
        if not self._started:
            raise AgentNotStartedError(self.role)
        self._baseline = self.get_current_output()
        self._prompt = prompt
        self.surface.send_text(self.role, prompt, enter=True)

    def wait_for_response(
        self,
        timeout: float | None = None,
        should_stop: Callable[[], bool] | None = None,
    ) -> AgentResponse:
        """
        Block until the agent looks done, or the timeout passes.

        The content is what the agent printed after the echo of the last
        prompt.
        """
        response = self.detector.wait_for_response(
            capture=self.get_current_output,
            patterns=self.patterns,
            timeout=timeout if timeout is not None else self.profile.timeout,
            baseline=self._baseline,
            should_stop=should_stop,
        )
        response.content = strip_prompt_echo(response.content, self._prompt)
        return response

    def is_ready(self) -> bool:
        if not self._started:
            return False
        return self.detector.is_ready(self.get_current_output(), self.patterns)

    def get_current_output(self) -> str:
        return self.surface.capture_text(self.role)

    def stop(self) -> None:
        """Interrupt whatever is running and quit the CLI."""
        if not self._started:
            return
        self.surface.interrupt(self.role)
        self._sleep(self.INTERRUPT_DELAY)
        self.surface.send_text(self.role, self.traits.exit_command, enter=True)
        self._started = False
