"""Tests for the debate state machine."""

import pytest

from tmuxdebate.consensus import ConsensusVerdict
from tmuxdebate.context import DebatePhase
from tmuxdebate.state import VALID_TRANSITIONS, DebateStateMachine


def make_verdict(agreed: bool, final_answer: str | None = None, feedback: str | None = None):
    return ConsensusVerdict(
        agreed=agreed,
        reason="because",
        final_answer=final_answer,
        feedback=feedback,
        confidence=0.8,
        raw_content="",
    )


def drive_to_consensus_check(machine: DebateStateMachine, proposal="P", review="R"):
    """Run one proposer/reviewer exchange up to the consensus check."""
    if machine.phase == DebatePhase.IDLE:
        machine.start()
        machine.initialized()
    assert machine.proposal_sent()
    assert machine.proposal_received(proposal)
    assert machine.review_sent()
    assert machine.review_received(review)


class TestTransitions:
    """Tests for the transition table."""

    def test_initial_state(self):
        """Test a new machine is idle at round 0."""
        machine = DebateStateMachine("topic", 3)
        assert machine.phase == DebatePhase.IDLE
        assert machine.context.current_round == 0
        assert machine.history == []

    def test_invalid_max_rounds(self):
        """Test max_rounds must be positive."""
        with pytest.raises(ValueError):
            DebateStateMachine("topic", 0)

    def test_valid_transition_records_history(self):
        """Test a valid transition mutates the phase and records it."""
        machine = DebateStateMachine("topic", 3)
        assert machine.transition(DebatePhase.INITIALIZING, "start") is True
        assert machine.phase == DebatePhase.INITIALIZING
        assert len(machine.history) == 1
        record = machine.history[0]
        assert record.from_phase == DebatePhase.IDLE
        assert record.to_phase == DebatePhase.INITIALIZING
        assert record.event == "start"

    def test_invalid_transition_is_rejected(self, capsys):
        """Test an invalid transition returns False and warns."""
        warnings = []
        machine = DebateStateMachine("topic", 3, on_warning=warnings.append)
        assert machine.transition(DebatePhase.AGREED) is False
        assert machine.phase == DebatePhase.IDLE
        assert machine.history == []
        assert len(warnings) == 1
        assert "idle -> agreed" in warnings[0]
        assert "[state]" in capsys.readouterr().err

    def test_every_phase_has_an_entry(self):
        """Test the table covers every phase."""
        assert set(VALID_TRANSITIONS) == set(DebatePhase)
        assert VALID_TRANSITIONS[DebatePhase.STOPPED] == frozenset()

    def test_phase_change_callback(self):
        """Test the callback sees from, to and a context snapshot."""
        calls = []
        machine = DebateStateMachine(
            "topic", 3, on_phase_change=lambda f, t, ctx: calls.append((f, t, ctx.topic))
        )
        machine.start()
        assert calls == [(DebatePhase.IDLE, DebatePhase.INITIALIZING, "topic")]


class TestDrivingOperations:
    """Tests for the protocol events."""

    def test_wrong_phase_returns_false(self):
        """Test driving methods are no-ops from the wrong phase."""
        machine = DebateStateMachine("topic", 3)
        assert machine.initialized() is False
        assert machine.proposal_sent() is False
        assert machine.proposal_received("x") is False
        assert machine.review_sent() is False
        assert machine.review_received("x") is False
        assert machine.phase == DebatePhase.IDLE

    def test_initialized_starts_round_one(self):
        """Test initialization sets the first round."""
        machine = DebateStateMachine("topic", 3)
        machine.start()
        assert machine.context.current_round == 0
        assert machine.initialized() is True
        assert machine.phase == DebatePhase.PROPOSING
        assert machine.context.current_round == 1

    def test_texts_are_stored(self):
        """Test proposal and review texts land in the context."""
        machine = DebateStateMachine("topic", 3)
        drive_to_consensus_check(machine, proposal="my plan", review="looks odd")
        assert machine.phase == DebatePhase.CHECKING_CONSENSUS
        assert machine.context.proposal == "my plan"
        assert machine.context.review == "looks odd"

    def test_resolve_agreed(self):
        """Test an agreeing verdict ends the debate."""
        machine = DebateStateMachine("topic", 3)
        drive_to_consensus_check(machine)
        assert machine.resolve_consensus(make_verdict(True, "Z")) == DebatePhase.AGREED
        ctx = machine.context
        assert ctx.consensus_reached is True
        assert len(ctx.rounds) == 1
        assert ctx.rounds[0].verdict.final_answer == "Z"
        assert ctx.current_round == 1

    def test_resolve_disagreed_starts_next_round(self):
        """Test a disagreeing verdict increments the round."""
        machine = DebateStateMachine("topic", 3)
        drive_to_consensus_check(machine)
        assert machine.resolve_consensus(make_verdict(False)) == DebatePhase.PROPOSING
        assert machine.context.current_round == 2
        assert machine.context.consensus_reached is False

    def test_resolve_exhausted(self):
        """Test the last disagreeing round exhausts the debate."""
        machine = DebateStateMachine("topic", 2)
        drive_to_consensus_check(machine)
        machine.resolve_consensus(make_verdict(False))
        drive_to_consensus_check(machine)
        assert machine.resolve_consensus(make_verdict(False)) == DebatePhase.EXHAUSTED
        ctx = machine.context
        assert len(ctx.rounds) == 2
        assert ctx.current_round == 2
        assert [r.round for r in ctx.rounds] == [1, 2]

    def test_resolve_from_wrong_phase(self):
        """Test resolve_consensus does nothing outside the consensus check."""
        machine = DebateStateMachine("topic", 2)
        assert machine.resolve_consensus(make_verdict(True)) == DebatePhase.IDLE
        assert machine.context.rounds == []

    def test_rounds_never_exceed_max(self):
        """Test round count and record count stay within max_rounds."""
        machine = DebateStateMachine("topic", 4)
        while not machine.is_terminal():
            drive_to_consensus_check(machine)
            machine.resolve_consensus(make_verdict(False))
            ctx = machine.context
            assert 1 <= ctx.current_round <= ctx.max_rounds
            assert len(ctx.rounds) <= ctx.max_rounds
        assert machine.phase == DebatePhase.EXHAUSTED
        assert len(machine.context.rounds) == 4


class TestFailAndStop:
    """Tests for forced transitions."""

    def test_fail_from_idle(self):
        """Test fail bypasses the table for non-terminal phases."""
        machine = DebateStateMachine("topic", 3)
        assert machine.fail("boom") is True
        assert machine.phase == DebatePhase.FAILED
        assert machine.context.error == "boom"
        assert machine.history[-1].to_phase == DebatePhase.FAILED

    def test_fail_from_terminal_records_error_only(self):
        """Test fail from a terminal phase keeps the phase."""
        machine = DebateStateMachine("topic", 3)
        drive_to_consensus_check(machine)
        machine.resolve_consensus(make_verdict(True, "Z"))
        assert machine.fail("late") is False
        assert machine.phase == DebatePhase.AGREED
        assert machine.context.error == "late"

    def test_stop_mid_round(self):
        """Test stop from a running phase."""
        machine = DebateStateMachine("topic", 3)
        machine.start()
        machine.initialized()
        machine.proposal_sent()
        assert machine.stop() is True
        assert machine.phase == DebatePhase.STOPPED

    def test_stop_after_agreement(self):
        """Test stop from a terminal phase follows the table."""
        machine = DebateStateMachine("topic", 3)
        drive_to_consensus_check(machine)
        machine.resolve_consensus(make_verdict(True))
        assert machine.stop() is True
        assert machine.phase == DebatePhase.STOPPED

    def test_stop_twice(self):
        """Test stopping a stopped machine is a no-op."""
        machine = DebateStateMachine("topic", 3)
        machine.stop()
        history = machine.history
        assert machine.stop() is True
        assert machine.history == history

    def test_nothing_leaves_stopped(self):
        """Test stopped is final."""
        machine = DebateStateMachine("topic", 3)
        machine.stop()
        assert machine.start() is False
        assert machine.transition(DebatePhase.INITIALIZING) is False
        assert machine.fail("x") is False
        assert machine.phase == DebatePhase.STOPPED


class TestQueries:
    """Tests for status queries."""

    def test_is_running(self):
        """Test running means started and not terminal."""
        machine = DebateStateMachine("topic", 3)
        assert machine.is_running() is False
        machine.start()
        assert machine.is_running() is True
        machine.stop()
        assert machine.is_running() is False
        assert machine.is_terminal() is True

    def test_context_is_a_snapshot(self):
        """Test callers cannot mutate the live context."""
        machine = DebateStateMachine("topic", 3)
        snapshot = machine.context
        snapshot.current_round = 99
        snapshot.rounds.append("junk")
        assert machine.context.current_round == 0
        assert machine.context.rounds == []

    def test_history_is_a_copy(self):
        """Test the history list is copied."""
        machine = DebateStateMachine("topic", 3)
        machine.start()
        machine.history.clear()
        assert len(machine.history) == 1

    def test_summary(self):
        """Test the summary mentions phase, round and topic."""
        machine = DebateStateMachine("caching", 5)
        machine.start()
        machine.initialized()
        summary = machine.summary()
        assert "Phase: proposing" in summary
        assert "Round: 1/5" in summary
        assert "Topic: caching" in summary
        assert "Consensus: NO" in summary
        assert machine.duration_ms() >= 0
