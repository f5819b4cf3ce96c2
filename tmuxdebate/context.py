"""Debate phases, context and round records."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from tmuxdebate.consensus import ConsensusVerdict


class DebatePhase(str, Enum):
    """Phases of the debate protocol."""

    IDLE = "idle"
    INITIALIZING = "initializing"
    PROPOSING = "proposing"
    AWAITING_PROPOSAL = "awaiting_proposal"
    REVIEWING = "reviewing"
    AWAITING_REVIEW = "awaiting_review"
    CHECKING_CONSENSUS = "checking_consensus"
    AGREED = "agreed"
    EXHAUSTED = "exhausted"
    FAILED = "failed"
    STOPPED = "stopped"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_PHASES


TERMINAL_PHASES: frozenset[DebatePhase] = frozenset(
    {DebatePhase.AGREED, DebatePhase.EXHAUSTED, DebatePhase.FAILED, DebatePhase.STOPPED}
)


@dataclass(frozen=True)
class RoundRecord:
    """One completed proposer -> reviewer -> consensus cycle."""

    round: int
    proposal: str
    review: str
    verdict: ConsensusVerdict | None
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def agreed(self) -> bool:
        return bool(self.verdict and self.verdict.agreed)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the JSONL round log."""
        return {
            "round": self.round,
            "proposal": self.proposal,
            "review": self.review,
            "verdict": self.verdict.to_dict() if self.verdict else None,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class PhaseTransition:
    """A recorded phase change."""

    from_phase: DebatePhase
    to_phase: DebatePhase
    event: str
    timestamp: datetime = field(default_factory=datetime.now)


@dataclass
class DebateContext:
    """
    Holds the state of one debate.

    Mutated only by the state machine; everybody else gets a snapshot
    from ``DebateStateMachine.context``.
    """

    topic: str
    max_rounds: int
    current_round: int = 0
    proposal: str = ""
    review: str = ""
    consensus_reached: bool = False
    error: str | None = None
    started_at: datetime = field(default_factory=datetime.now)
    rounds: list[RoundRecord] = field(default_factory=list)

    @property
    def last_round(self) -> RoundRecord | None:
        """The most recently completed round."""
        return self.rounds[-1] if self.rounds else None

    @property
    def final_answer(self) -> str | None:
        """Final answer carried by the last verdict, if any."""
        last = self.last_round
        if last and last.verdict:
            return last.verdict.final_answer
        return None

    def elapsed_time(self) -> float:
        """Seconds since the debate started."""
        return (datetime.now() - self.started_at).total_seconds()

    def snapshot(self) -> DebateContext:
        """Copy that callers may keep without seeing later mutations."""
        clone = copy.copy(self)
        clone.rounds = list(self.rounds)
        return clone
