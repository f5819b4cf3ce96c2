"""Debate log, transcript and final output files."""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any

from tmuxdebate.consensus import ConsensusVerdict
from tmuxdebate.context import DebateContext, RoundRecord
from tmuxdebate.events import DebateEvent, DebateEventType

LOG_FILENAME = "rounds.jsonl"
TRANSCRIPT_FILENAME = "transcript.md"


def _truncate(text: str, max_length: int) -> str:
    cleaned = text.replace("\n", " ").strip()
    if len(cleaned) <= max_length:
        return cleaned
    return cleaned[: max_length - 3] + "..."


class DebateLogger:
    """
    Writes everything about one debate under ``<output_dir>/<session_id>/``.

    - ``rounds.jsonl``: one JSON entry per event (round, phase_change,
      consensus, error, timeout, info)
    - ``transcript.md``: readable proposer/reviewer exchange
    - ``final.txt`` (consensus) or ``last.txt`` (no consensus)
    """

    def __init__(self, output_dir: Path | str, session_id: str):
        self.output_dir = Path(output_dir)
        self.session_id = session_id
        self._initialized = False

    @property
    def session_dir(self) -> Path:
        return self.output_dir / self.session_id

    @property
    def log_path(self) -> Path:
        return self.session_dir / LOG_FILENAME

    @property
    def transcript_path(self) -> Path:
        return self.session_dir / TRANSCRIPT_FILENAME

    def _init(self) -> None:
        if self._initialized:
            return
        self.session_dir.mkdir(parents=True, exist_ok=True)
        self._initialized = True

    def log(self, entry_type: str, data: dict[str, Any]) -> None:
        """Append one entry to the JSONL log."""
        self._init()
        entry = {
            "timestamp": datetime.now().isoformat(),
            "type": entry_type,
            "data": data,
        }
        with open(self.log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(entry, default=str) + "\n")

    def log_round(self, record: RoundRecord) -> None:
        self.log("round", record.to_dict())
        self._append_transcript(record)

    def log_phase_change(self, from_phase: str, to_phase: str) -> None:
        self.log("phase_change", {"from": from_phase, "to": to_phase})

    def log_consensus(self, verdict: ConsensusVerdict, round_number: int | None = None) -> None:
        data = verdict.to_dict()
        if round_number is not None:
            data["round"] = round_number
        self.log("consensus", data)

    def log_error(self, error: Exception | str) -> None:
        if isinstance(error, Exception):
            data = {"message": str(error), "error_type": type(error).__name__}
        else:
            data = {"message": error}
        self.log("error", data)

    def log_timeout(self, role: str, round_number: int, timeout: float) -> None:
        self.log("timeout", {"role": role, "round": round_number, "timeout": timeout})

    def log_info(self, message: str, **data: Any) -> None:
        self.log("info", {"message": message, **data})

    def _append_transcript(self, record: RoundRecord) -> None:
        if not self.transcript_path.exists():
            self.transcript_path.write_text(
                f"# Debate Transcript: {self.session_id}\n"
                f"Date: {datetime.now().isoformat()}\n\n---\n",
                encoding="utf-8",
            )
        verdict = record.verdict
        agreement = "YES" if record.agreed else "NO"
        confidence = f" ({verdict.confidence * 100:.0f}%)" if verdict else ""
        with open(self.transcript_path, "a", encoding="utf-8") as f:
            f.write(f"\n## Round {record.round} - {record.timestamp.strftime('%H:%M:%S')}\n\n")
            f.write(f"### Proposer\n\n{record.proposal}\n\n")
            f.write(f"### Reviewer\n\n{record.review}\n\n")
            f.write(f"**Agreement:** {agreement}{confidence}\n\n---\n")

    def handle_event(self, event: DebateEvent) -> None:
        """Record orchestrator events. Subscribe this to a debate."""
        data = event.data
        if event.type == DebateEventType.PHASE_CHANGE:
            self.log_phase_change(data.get("from", ""), data.get("to", ""))
        elif event.type == DebateEventType.CONSENSUS:
            verdict = data.get("verdict")
            if isinstance(verdict, ConsensusVerdict):
                self.log_consensus(verdict, data.get("round"))
        elif event.type == DebateEventType.ROUND_END:
            record = data.get("record")
            if isinstance(record, RoundRecord):
                self.log_round(record)
        elif event.type == DebateEventType.TIMEOUT:
            self.log_timeout(data.get("role", ""), data.get("round", 0), data.get("timeout", 0))
        elif event.type == DebateEventType.ERROR:
            self.log_error(data.get("message", ""))
        elif event.type == DebateEventType.WARNING:
            self.log_info(data.get("message", ""), level="warning")

    def write_final(self, context: DebateContext, final_answer: str | None = None) -> Path:
        """Write final.txt when consensus was reached, last.txt otherwise."""
        self._init()
        filename = "final.txt" if context.consensus_reached else "last.txt"
        path = self.session_dir / filename
        path.write_text(self.format_final_output(context, final_answer), encoding="utf-8")
        return path

    @staticmethod
    def format_final_output(context: DebateContext, final_answer: str | None = None) -> str:
        rule = "=" * 60
        thin = "-" * 60
        lines = [
            rule,
            f"DEBATE {'CONCLUDED' if context.consensus_reached else 'ENDED'}",
            rule,
            "",
            f"Topic: {context.topic}",
            f"Rounds: {context.current_round}/{context.max_rounds}",
            f"Consensus: {'YES' if context.consensus_reached else 'NO'}",
            f"Start: {context.started_at.isoformat()}",
            f"End: {datetime.now().isoformat()}",
            "",
        ]
        if context.error:
            lines.extend([f"Error: {context.error}", ""])

        if final_answer:
            lines.extend([thin, "FINAL ANSWER:", thin, final_answer, ""])

        lines.extend([thin, "ROUND SUMMARY:", thin])
        for record in context.rounds:
            lines.append(f"\n[Round {record.round}]")
            lines.append(f"Proposer: {_truncate(record.proposal, 200)}")
            lines.append(f"Reviewer: {_truncate(record.review, 200)}")
            if record.verdict:
                lines.append(f"Agreement: {'YES' if record.verdict.agreed else 'NO'}")

        return "\n".join(lines)


def read_logs(log_path: Path | str) -> list[dict[str, Any]]:
    """Read a JSONL debate log. A missing file reads as empty."""
    path = Path(log_path)
    if not path.exists():
        return []
    entries = []
    with open(path, encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError:
                continue
    return entries
