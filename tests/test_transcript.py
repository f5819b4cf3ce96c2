"""Tests for the debate logger."""

import json

import pytest

from tmuxdebate.consensus import detect_consensus
from tmuxdebate.context import DebateContext, RoundRecord
from tmuxdebate.events import DebateEvent, DebateEventType
from tmuxdebate.transcript import DebateLogger, read_logs


@pytest.fixture
def logger(tmp_path):
    return DebateLogger(tmp_path, "debate-abc-1234")


def agreed_context():
    ctx = DebateContext(topic="Caching", max_rounds=3, current_round=2, consensus_reached=True)
    ctx.rounds.append(RoundRecord(1, "first idea", "no", detect_consensus("AGREE: NO")))
    ctx.rounds.append(
        RoundRecord(2, "second idea", "yes", detect_consensus("AGREE: YES\nFINAL_ANSWER: Z"))
    )
    return ctx


class TestDebateLogger:
    """Tests for DebateLogger."""

    def test_paths(self, logger, tmp_path):
        """Test the session directory layout."""
        assert logger.session_dir == tmp_path / "debate-abc-1234"
        assert logger.log_path == tmp_path / "debate-abc-1234" / "rounds.jsonl"

    def test_log_entries(self, logger):
        """Test each entry is one JSON line with type and data."""
        logger.log_phase_change("idle", "initializing")
        logger.log_error(RuntimeError("boom"))
        logger.log_timeout("reviewer", 2, 180)
        logger.log_info("hello", extra=1)

        lines = logger.log_path.read_text().strip().split("\n")
        entries = [json.loads(line) for line in lines]
        assert [e["type"] for e in entries] == ["phase_change", "error", "timeout", "info"]
        assert entries[0]["data"] == {"from": "idle", "to": "initializing"}
        assert entries[1]["data"]["error_type"] == "RuntimeError"
        assert entries[3]["data"] == {"message": "hello", "extra": 1}
        assert "timestamp" in entries[0]

    def test_log_round_writes_transcript(self, logger):
        """Test rounds go to the log and the markdown transcript."""
        record = agreed_context().rounds[1]
        logger.log_round(record)
        entry = read_logs(logger.log_path)[0]
        assert entry["type"] == "round"
        assert entry["data"]["verdict"]["agreed"] is True

        transcript = logger.transcript_path.read_text()
        assert "## Round 2" in transcript
        assert "### Proposer\n\nsecond idea" in transcript
        assert "**Agreement:** YES" in transcript

    def test_handle_events(self, logger):
        """Test orchestrator events are mapped to entries."""
        verdict = detect_consensus("AGREE: NO")
        record = RoundRecord(1, "p", "r", verdict)
        logger.handle_event(DebateEvent(DebateEventType.PHASE_CHANGE, {"from": "a", "to": "b"}))
        logger.handle_event(DebateEvent(DebateEventType.CONSENSUS, {"round": 1, "verdict": verdict}))
        logger.handle_event(DebateEvent(DebateEventType.ROUND_END, {"round": 1, "record": record}))
        logger.handle_event(DebateEvent(DebateEventType.ROUND_START, {"round": 2}))
        types = [e["type"] for e in read_logs(logger.log_path)]
        assert types == ["phase_change", "consensus", "round"]

    def test_write_final_on_consensus(self, logger):
        """Test final.txt carries the final answer and round summary."""
        ctx = agreed_context()
        path = logger.write_final(ctx, ctx.final_answer)
        assert path.name == "final.txt"
        content = path.read_text()
        assert "DEBATE CONCLUDED" in content
        assert "Rounds: 2/3" in content
        assert "FINAL ANSWER:\n" + "-" * 60 + "\nZ" in content
        assert "[Round 1]" in content
        assert "Proposer: second idea" in content

    def test_write_last_without_consensus(self, logger):
        """Test last.txt is written when no consensus was reached."""
        ctx = DebateContext(topic="Caching", max_rounds=1, current_round=1)
        path = logger.write_final(ctx)
        assert path.name == "last.txt"
        assert "DEBATE ENDED" in path.read_text()
        assert "Consensus: NO" in path.read_text()

    def test_summary_truncates(self, logger):
        """Test long outputs are shortened in the summary."""
        ctx = DebateContext(topic="t", max_rounds=1, current_round=1)
        ctx.rounds.append(RoundRecord(1, "x" * 500, "y\n" * 10, None))
        content = DebateLogger.format_final_output(ctx)
        assert "Proposer: " + "x" * 197 + "..." in content
        assert "Reviewer: y y y" in content


class TestReadLogs:
    """Tests for read_logs."""

    def test_missing_file(self, tmp_path):
        """Test a missing log reads as empty."""
        assert read_logs(tmp_path / "nope.jsonl") == []

    def test_skips_bad_lines(self, tmp_path):
        """Test blank and corrupt lines are ignored."""
        path = tmp_path / "rounds.jsonl"
        path.write_text('{"type": "info"}\n\nnot json\n{"type": "error"}\n')
        assert [e["type"] for e in read_logs(path)] == ["info", "error"]
