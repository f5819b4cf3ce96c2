"""Notification system for debate events."""

from __future__ import annotations

import contextlib
import json
import urllib.request
from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING, Any

from tmuxdebate.consensus import ConsensusVerdict
from tmuxdebate.events import DebateEvent, DebateEventType

if TYPE_CHECKING:
    from tmuxdebate.config import NotificationsConfig
    from tmuxdebate.context import DebateContext, DebatePhase


class NotificationChannel(ABC):
    """Base class for notification channels."""

    @abstractmethod
    def send(self, message: str, level: str = "info", data: dict | None = None) -> bool:
        """Send a notification message."""
        pass


class ConsoleChannel(NotificationChannel):
    """Console output notification channel."""

    def __init__(self, colors: bool = True):
        self.colors = colors
        self._level_colors = {
            "info": "\033[36m",  # Cyan
            "success": "\033[32m",  # Green
            "warning": "\033[33m",  # Yellow
            "error": "\033[31m",  # Red
        }
        self._reset = "\033[0m"

    def send(self, message: str, level: str = "info", data: dict | None = None) -> bool:
        timestamp = datetime.now().strftime("%H:%M:%S")

        if self.colors:
            color = self._level_colors.get(level, "")
            prefix = f"{color}[{timestamp}]{self._reset}"
        else:
            prefix = f"[{timestamp}]"

        for line in message.strip().split("\n"):
            print(f"{prefix} {line}")

        return True


class WebhookChannel(NotificationChannel):
    """Posts notifications as JSON to a webhook."""

    def __init__(self, url: str, events: list[str] | None = None):
        self.url = url
        self.events = events or ["consensus", "round_end", "debate_complete", "error"]

    def send(
        self, message: str, level: str = "info", data: dict | None = None, event: str | None = None
    ) -> bool:
        """Send notification to webhook.

        Args:
            message: The notification message
            level: Severity level (info, success, warning, error)
            data: Additional structured data
            event: Event type for filtering (if None, always sends)

        Returns:
            True if sent successfully
        """
        if event is not None and event not in self.events:
            return True

        payload = {
            "timestamp": datetime.now().isoformat(),
            "level": level,
            "event": event,
            "message": message,
            "data": data or {},
        }

        try:
            request = urllib.request.Request(
                self.url,
                data=json.dumps(payload, default=str).encode("utf-8"),
                headers={"Content-Type": "application/json"},
                method="POST",
            )
            with urllib.request.urlopen(request, timeout=10) as response:
                return response.status == 200
        except Exception:
            return False


class Notifier:
    """
    Central notification dispatcher.

    Routes debate events to the configured channels. A Notifier can be
    subscribed to an orchestrator directly through ``handle_event``.
    """

    def __init__(self, channels: list[NotificationChannel] | None = None):
        self.channels = channels or []

    def add_channel(self, channel: NotificationChannel) -> None:
        self.channels.append(channel)

    def _send(
        self, message: str, level: str = "info", data: dict | None = None, event: str | None = None
    ) -> None:
        for channel in self.channels:
            with contextlib.suppress(Exception):
                if isinstance(channel, WebhookChannel):
                    channel.send(message, level, data, event=event)
                else:
                    channel.send(message, level, data)

    def on_debate_started(self, topic: str, session_name: str, max_rounds: int) -> None:
        self._send(
            f"Starting debate: {topic}\nSession: {session_name}\nMax rounds: {max_rounds}",
            level="info",
            data={"topic": topic, "session": session_name, "max_rounds": max_rounds},
            event="debate_started",
        )

    def on_phase_change(self, from_phase: str, to_phase: str) -> None:
        self._send(f"Phase: {from_phase} -> {to_phase}", level="info", event="phase_change")

    def on_round_start(self, round_number: int, max_rounds: int) -> None:
        self._send(
            f"Round {round_number}/{max_rounds}",
            level="info",
            data={"round": round_number, "max_rounds": max_rounds},
            event="round_start",
        )

    def on_round_end(self, round_number: int, phase: str) -> None:
        self._send(
            f"Round {round_number} finished ({phase})",
            level="info",
            data={"round": round_number, "phase": phase},
            event="round_end",
        )

    def on_consensus(self, round_number: int, verdict: ConsensusVerdict) -> None:
        status = "AGREED" if verdict.agreed else "NOT AGREED"
        level = "success" if verdict.agreed else "warning"
        message = f"Round {round_number}: {status} (confidence {verdict.confidence * 100:.0f}%)"
        if verdict.reason:
            message += f"\nReason: {verdict.reason[:200]}"
        self._send(
            message,
            level=level,
            data={"round": round_number, "agreed": verdict.agreed, "confidence": verdict.confidence},
            event="consensus",
        )

    def on_turn_timeout(self, role: str, round_number: int, timeout: float) -> None:
        self._send(
            f"{role} did not finish within {timeout:.0f}s in round {round_number}, "
            "continuing with partial output",
            level="warning",
            data={"role": role, "round": round_number, "timeout": timeout},
            event="timeout",
        )

    def on_warning(self, message: str) -> None:
        self._send(f"Warning: {message}", level="warning", event="warning")

    def on_error(self, message: str) -> None:
        self._send(f"Debate failed: {message}", level="error", data={"error": message}, event="error")

    def on_debate_complete(self, context: DebateContext, phase: DebatePhase | str) -> None:
        phase_value = getattr(phase, "value", phase)
        answer = context.final_answer
        message = f"""
Debate {"concluded" if context.consensus_reached else "ended"}: {context.topic}

Phase: {phase_value}
Rounds: {len(context.rounds)}/{context.max_rounds}
Consensus: {"YES" if context.consensus_reached else "NO"}
Duration: {context.elapsed_time():.0f}s
"""
        if answer:
            message += f"\nFinal answer:\n{answer}\n"
        self._send(
            message.strip(),
            level="success" if context.consensus_reached else "warning",
            data={
                "topic": context.topic,
                "phase": phase_value,
                "rounds": len(context.rounds),
                "consensus": context.consensus_reached,
                "final_answer": answer,
            },
            event="debate_complete",
        )

    def handle_event(self, event: DebateEvent) -> None:
        """Dispatch an orchestrator event to the matching ``on_*`` method."""
        data = event.data
        if event.type == DebateEventType.PHASE_CHANGE:
            self.on_phase_change(data.get("from", "?"), data.get("to", "?"))
        elif event.type == DebateEventType.ROUND_START:
            self.on_round_start(data.get("round", 0), data.get("max_rounds", 0))
        elif event.type == DebateEventType.ROUND_END:
            self.on_round_end(data.get("round", 0), data.get("phase", "?"))
        elif event.type == DebateEventType.CONSENSUS:
            verdict = data.get("verdict")
            if isinstance(verdict, ConsensusVerdict):
                self.on_consensus(data.get("round", 0), verdict)
        elif event.type == DebateEventType.TIMEOUT:
            self.on_turn_timeout(data.get("role", "?"), data.get("round", 0), data.get("timeout", 0))
        elif event.type == DebateEventType.WARNING:
            self.on_warning(data.get("message", ""))
        elif event.type == DebateEventType.ERROR:
            self.on_error(data.get("message", ""))
        elif event.type == DebateEventType.DEBATE_COMPLETE:
            context = data.get("context")
            if context is not None:
                self.on_debate_complete(context, data.get("phase", "?"))


def create_notifier_from_config(config: NotificationsConfig | dict[str, Any]) -> Notifier:
    """Create a Notifier from configuration."""
    if not isinstance(config, dict):
        config = config.model_dump()

    notifier = Notifier()

    console_config = config.get("console", {})
    if console_config.get("enabled", True):
        notifier.add_channel(ConsoleChannel(colors=console_config.get("colors", True)))

    webhook_config = config.get("webhook", {})
    if webhook_config.get("enabled") and webhook_config.get("url"):
        notifier.add_channel(
            WebhookChannel(url=webhook_config["url"], events=webhook_config.get("events"))
        )

    return notifier
