"""Response completion detection over a polled text surface.

An interactive agent never tells us it has finished answering. We infer it:
the captured text must stop changing for a number of consecutive polls and
the tail of the screen must show the agent's ready prompt.
"""

from __future__ import annotations

import re
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from tmuxdebate.config import (
    DEFAULT_POLL_INTERVAL,
    DEFAULT_STABILITY_THRESHOLD,
    DEFAULT_TAIL_LINES,
    DetectorConfig,
)

# Input markers agent CLIs print in front of submitted text
ECHO_MARKERS = ">❯›"


@dataclass
class AgentResponse:
    """What an agent produced for one turn."""

    content: str
    complete: bool
    duration_ms: int
    polls: int = 0
    cancelled: bool = False

    @property
    def timed_out(self) -> bool:
        return not self.complete and not self.cancelled


def tail_matches(
    content: str,
    patterns: Sequence[re.Pattern[str]],
    tail_lines: int = DEFAULT_TAIL_LINES,
) -> bool:
    """Check whether any of the last lines looks like a ready prompt."""
    lines = content.rstrip().split("\n")[-tail_lines:]
    return any(p.search(line.strip()) for line in lines for p in patterns)


def extract_new_content(
    baseline: str,
    current: str,
    patterns: Sequence[re.Pattern[str]] = (),
) -> str:
    """
    Return the text produced since ``baseline`` was captured.

    The diff is by line count: everything past the baseline's last line,
    minus trailing prompt lines. If the screen did not grow (e.g. it
    scrolled), the whole current capture is returned.
    """
    if not baseline:
        return current

    baseline_lines = len(baseline.split("\n"))
    current_lines = current.split("\n")
    if len(current_lines) <= baseline_lines:
        return current

    new_lines = current_lines[baseline_lines:]
    while new_lines and any(p.search(new_lines[-1].strip()) for p in patterns):
        new_lines.pop()
    return "\n".join(new_lines).strip()


def strip_prompt_echo(content: str, prompt: str) -> str:
    """
    Remove the typed prompt echoed at the start of ``content``.

    Terminals wrap and re-indent what was typed, so lines are compared with
    all whitespace removed, and the first echoed line may carry the agent's
    input marker. Leading lines are dropped while they continue the prompt
    text; content that does not start with the echo is returned unchanged.
    """
    remaining = "".join(prompt.split())
    if not remaining:
        return content

    lines = content.split("\n")
    echoed = False
    for index, line in enumerate(lines):
        compact = "".join(line.split())
        if not compact:
            continue
        if not remaining:
            return "\n".join(lines[index:]).strip()
        if not remaining.startswith(compact) and not echoed:
            compact = compact.lstrip(ECHO_MARKERS)
        if not compact or not remaining.startswith(compact):
            return "\n".join(lines[index:]).strip() if echoed else content
        remaining = remaining[len(compact) :]
        echoed = True
    return "" if echoed else content


class CompletionDetector:
    """
    Polls a capture function until its output is quiescent and ready.

    ``sleep`` and ``clock`` are injectable so the detector can be driven
    deterministically in tests. Only one capture is ever in flight, and the
    stop check runs once per poll.
    """

    def __init__(
        self,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        stability_threshold: int = DEFAULT_STABILITY_THRESHOLD,
        tail_lines: int = DEFAULT_TAIL_LINES,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        if stability_threshold < 1:
            raise ValueError("stability_threshold must be at least 1")
        self.poll_interval = poll_interval
        self.stability_threshold = stability_threshold
        self.tail_lines = tail_lines
        self._sleep = sleep
        self._clock = clock

    @classmethod
    def from_config(cls, config: DetectorConfig, **kwargs) -> CompletionDetector:
        return cls(
            poll_interval=config.poll_interval,
            stability_threshold=config.stability_threshold,
            tail_lines=config.tail_lines,
            **kwargs,
        )

    def is_ready(self, content: str, patterns: Sequence[re.Pattern[str]]) -> bool:
        return tail_matches(content, patterns, self.tail_lines)

    def wait_for_response(
        self,
        capture: Callable[[], str],
        patterns: Sequence[re.Pattern[str]],
        timeout: float,
        baseline: str = "",
        should_stop: Callable[[], bool] | None = None,
    ) -> AgentResponse:
        """
        Wait until the surface is stable and shows a ready prompt.

        Args:
            capture: Returns the full current text of the surface
            patterns: Ready-prompt patterns tested against the tail lines
            timeout: Seconds before giving up
            baseline: Capture taken right before the prompt was sent
            should_stop: Checked at every poll boundary

        Returns:
            AgentResponse; ``complete`` is False on timeout or cancellation
            and the content is whatever was on screen at that point.
        """
        start = self._clock()
        last_content = ""
        stable_count = 0
        polls = 0

        while self._clock() - start < timeout:
            if should_stop is not None and should_stop():
                return AgentResponse(
                    content=extract_new_content(baseline, last_content, patterns),
                    complete=False,
                    duration_ms=self._elapsed_ms(start),
                    polls=polls,
                    cancelled=True,
                )

            current = capture()
            polls += 1

            if current == last_content:
                stable_count += 1
                if stable_count >= self.stability_threshold and self.is_ready(current, patterns):
                    return AgentResponse(
                        content=extract_new_content(baseline, current, patterns),
                        complete=True,
                        duration_ms=self._elapsed_ms(start),
                        polls=polls,
                    )
            else:
                stable_count = 0
                last_content = current

            self._sleep(self.poll_interval)

        final = capture()
        polls += 1
        return AgentResponse(
            content=extract_new_content(baseline, final, patterns),
            complete=False,
            duration_ms=self._elapsed_ms(start),
            polls=polls,
        )

    def _elapsed_ms(self, start: float) -> int:
        return int((self._clock() - start) * 1000)
