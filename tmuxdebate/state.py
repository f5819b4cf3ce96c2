"""Debate state machine.

Pure logic: validates phase changes against a static transition table
and mutates the DebateContext. No IO besides warning reports.
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from datetime import datetime

from tmuxdebate.consensus import ConsensusVerdict
from tmuxdebate.context import (
    TERMINAL_PHASES,
    DebateContext,
    DebatePhase,
    PhaseTransition,
    RoundRecord,
)

PhaseChangeCallback = Callable[[DebatePhase, DebatePhase, DebateContext], None]
WarningCallback = Callable[[str], None]

VALID_TRANSITIONS: dict[DebatePhase, frozenset[DebatePhase]] = {
    DebatePhase.IDLE: frozenset({DebatePhase.INITIALIZING}),
    DebatePhase.INITIALIZING: frozenset({DebatePhase.PROPOSING, DebatePhase.FAILED}),
    DebatePhase.PROPOSING: frozenset(
        {DebatePhase.AWAITING_PROPOSAL, DebatePhase.FAILED, DebatePhase.STOPPED}
    ),
    DebatePhase.AWAITING_PROPOSAL: frozenset(
        {DebatePhase.REVIEWING, DebatePhase.FAILED, DebatePhase.STOPPED}
    ),
    DebatePhase.REVIEWING: frozenset(
        {DebatePhase.AWAITING_REVIEW, DebatePhase.FAILED, DebatePhase.STOPPED}
    ),
    DebatePhase.AWAITING_REVIEW: frozenset(
        {DebatePhase.CHECKING_CONSENSUS, DebatePhase.FAILED, DebatePhase.STOPPED}
    ),
    DebatePhase.CHECKING_CONSENSUS: frozenset(
        {
            DebatePhase.PROPOSING,
            DebatePhase.AGREED,
            DebatePhase.EXHAUSTED,
            DebatePhase.FAILED,
        }
    ),
    DebatePhase.AGREED: frozenset({DebatePhase.STOPPED}),
    DebatePhase.EXHAUSTED: frozenset({DebatePhase.STOPPED}),
    DebatePhase.FAILED: frozenset({DebatePhase.STOPPED}),
    DebatePhase.STOPPED: frozenset(),
}


class DebateStateMachine:
    """
    Manages phase transitions during a two-agent debate.

    Every driving method is a no-op returning False when called from the
    wrong phase. Invalid transitions are reported, never raised.
    """

    def __init__(
        self,
        topic: str,
        max_rounds: int,
        on_phase_change: PhaseChangeCallback | None = None,
        on_warning: WarningCallback | None = None,
    ):
        if max_rounds < 1:
            raise ValueError(f"max_rounds must be positive, got {max_rounds}")
        self._phase = DebatePhase.IDLE
        self._context = DebateContext(topic=topic, max_rounds=max_rounds)
        self._transitions: list[PhaseTransition] = []
        self.on_phase_change = on_phase_change
        self.on_warning = on_warning

    @property
    def phase(self) -> DebatePhase:
        return self._phase

    @property
    def context(self) -> DebateContext:
        """Snapshot of the debate context."""
        return self._context.snapshot()

    @property
    def history(self) -> list[PhaseTransition]:
        return list(self._transitions)

    def can_transition(self, to: DebatePhase) -> bool:
        return to in VALID_TRANSITIONS[self._phase]

    def transition(self, to: DebatePhase, event: str = "transition") -> bool:
        """Move to a new phase if the transition table allows it."""
        if not self.can_transition(to):
            allowed = ", ".join(sorted(p.value for p in VALID_TRANSITIONS[self._phase]))
            self._warn(
                f"Invalid phase transition: {self._phase.value} -> {to.value}. "
                f"Valid transitions: {allowed or 'none'}"
            )
            return False
        self._apply(to, event)
        return True

    def _apply(self, to: DebatePhase, event: str) -> None:
        from_phase = self._phase
        self._phase = to
        self._transitions.append(
            PhaseTransition(from_phase=from_phase, to_phase=to, event=event)
        )
        if self.on_phase_change is not None:
            self.on_phase_change(from_phase, to, self.context)

    def _warn(self, message: str) -> None:
        print(f"[state] {message}", file=sys.stderr)
        if self.on_warning is not None:
            self.on_warning(message)

    # -------------------------------------------------------------------------
    # Protocol events
    # -------------------------------------------------------------------------

    def start(self) -> bool:
        if self._phase != DebatePhase.IDLE:
            return False
        return self.transition(DebatePhase.INITIALIZING, "start")

    def initialized(self) -> bool:
        """Initialization done, first round begins."""
        if self._phase != DebatePhase.INITIALIZING:
            return False
        self._context.current_round = 1
        return self.transition(DebatePhase.PROPOSING, "initialized")

    def proposal_sent(self) -> bool:
        if self._phase != DebatePhase.PROPOSING:
            return False
        return self.transition(DebatePhase.AWAITING_PROPOSAL, "proposal_sent")

    def proposal_received(self, text: str) -> bool:
        if self._phase != DebatePhase.AWAITING_PROPOSAL:
            return False
        self._context.proposal = text
        return self.transition(DebatePhase.REVIEWING, "proposal_received")

    def review_sent(self) -> bool:
        if self._phase != DebatePhase.REVIEWING:
            return False
        return self.transition(DebatePhase.AWAITING_REVIEW, "review_sent")

    def review_received(self, text: str) -> bool:
        if self._phase != DebatePhase.AWAITING_REVIEW:
            return False
        self._context.review = text
        return self.transition(DebatePhase.CHECKING_CONSENSUS, "review_received")

    def resolve_consensus(self, verdict: ConsensusVerdict) -> DebatePhase:
        """
        Record the completed round and decide what comes next.

        Returns the resulting phase (unchanged when called from the wrong phase).
        """
        if self._phase != DebatePhase.CHECKING_CONSENSUS:
            return self._phase

        ctx = self._context
        ctx.rounds.append(
            RoundRecord(
                round=ctx.current_round,
                proposal=ctx.proposal,
                review=ctx.review,
                verdict=verdict,
                timestamp=datetime.now(),
            )
        )

        if verdict.agreed:
            ctx.consensus_reached = True
            self.transition(DebatePhase.AGREED, "consensus_reached")
        elif ctx.current_round >= ctx.max_rounds:
            self.transition(DebatePhase.EXHAUSTED, "max_rounds_reached")
        else:
            ctx.current_round += 1
            self.transition(DebatePhase.PROPOSING, "next_round")
        return self._phase

    def fail(self, message: str) -> bool:
        """Record an error and move to FAILED from any non-terminal phase."""
        self._context.error = message
        if self.is_terminal():
            return False
        self._apply(DebatePhase.FAILED, "error")
        return True

    def stop(self) -> bool:
        """Stop the debate. Always succeeds unless already stopped."""
        if self._phase == DebatePhase.STOPPED:
            return True
        if self.is_terminal():
            return self.transition(DebatePhase.STOPPED, "stopped")
        self._apply(DebatePhase.STOPPED, "stopped")
        return True

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def is_terminal(self) -> bool:
        return self._phase in TERMINAL_PHASES

    def is_running(self) -> bool:
        return not self.is_terminal() and self._phase != DebatePhase.IDLE

    def duration_ms(self) -> int:
        elapsed = datetime.now() - self._context.started_at
        return int(elapsed.total_seconds() * 1000)

    def summary(self) -> str:
        """Short human-readable status."""
        ctx = self._context
        return (
            f"Phase: {self._phase.value}\n"
            f"Round: {ctx.current_round}/{ctx.max_rounds}\n"
            f"Topic: {ctx.topic}\n"
            f"Consensus: {'YES' if ctx.consensus_reached else 'NO'}\n"
            f"Duration: {self.duration_ms()}ms"
        )
