"""Consensus detection for reviewer output.

Extracts the structured fields a reviewer is asked to emit
(``AGREE``, ``REASON``, ``FINAL_ANSWER``, ``FEEDBACK``) and scores how
confident the parse is. When the explicit ``AGREE`` marker is missing the
verdict falls back to lexical sentiment, at a lower confidence.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from typing import Any

AGREE_WEIGHT = 0.4
FIELD_WEIGHT = 0.2
SEMANTIC_FLOOR = 0.3
SEMANTIC_PENALTY = 0.7

FIELD_MARKERS = ("AGREE", "REASON", "FINAL_ANSWER", "FEEDBACK")

_AGREE_PATTERN = re.compile(r"\bAGREE:\s*(YES|NO)\b", re.IGNORECASE)
_NEXT_MARKER = "|".join(FIELD_MARKERS)

POSITIVE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\b(i\s+)?agree\b", re.IGNORECASE),
    re.compile(r"\bapproved?\b", re.IGNORECASE),
    re.compile(r"\blgtm\b", re.IGNORECASE),
    re.compile(r"\blooks?\s+good\b", re.IGNORECASE),
    re.compile(r"\bno\s+(issues?|problems?|concerns?)\b", re.IGNORECASE),
    re.compile(r"\baccept(ed|able)?\b", re.IGNORECASE),
    re.compile(r"\bperfect\b", re.IGNORECASE),
    re.compile(r"\bexcellent\b", re.IGNORECASE),
    re.compile(r"同意"),
    re.compile(r"通过"),
    re.compile(r"批准"),
    re.compile(r"没有问题"),
)

NEGATIVE_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"\bdisagree\b", re.IGNORECASE),
    re.compile(r"\breject(ed)?\b", re.IGNORECASE),
    re.compile(r"\bneed(s)?\s+(to\s+)?(change|modify|fix|update|revise)", re.IGNORECASE),
    re.compile(r"\bproblem(s)?\b", re.IGNORECASE),
    re.compile(r"\bissue(s)?\b", re.IGNORECASE),
    re.compile(r"\bconcern(s)?\b", re.IGNORECASE),
    re.compile(r"\bplease\s+(fix|change|modify|update)", re.IGNORECASE),
    re.compile(r"不同意"),
    re.compile(r"需要修改"),
    re.compile(r"存在问题"),
    re.compile(r"有以下问题"),
)


@dataclass(frozen=True)
class ConsensusVerdict:
    """Structured outcome of parsing one reviewer turn."""

    agreed: bool
    reason: str | None
    final_answer: str | None
    feedback: str | None
    confidence: float
    raw_content: str
    method: str = "explicit"  # "explicit", "semantic" or "ambiguous"

    @property
    def is_ambiguous(self) -> bool:
        """True when agreement could not be determined at all."""
        return self.method == "ambiguous"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _field_pattern(marker: str) -> re.Pattern[str]:
    # Labels open a line ("the following feedback:" is prose). The section
    # ends at the earliest following marker, whatever its order.
    return re.compile(
        rf"^[ \t]*{marker}:[ \t]*(.*?)(?=\n\s*(?:{_NEXT_MARKER}):|\Z)",
        re.IGNORECASE | re.MULTILINE | re.DOTALL,
    )


_FIELD_PATTERNS = {marker: _field_pattern(marker) for marker in FIELD_MARKERS[1:]}


def _last_match(pattern: re.Pattern[str], content: str) -> re.Match[str] | None:
    # Echoed prompts may carry markers too; the reviewer's own block comes last.
    match = None
    for match in pattern.finditer(content):
        pass
    return match


def clean_extracted_text(text: str) -> str:
    """
    Trim, collapse runs of blank lines and strip per-line indentation.

    Only spaces and tabs are stripped from line starts, so one blank line
    between paragraphs of a multi-part answer is kept.
    """
    text = text.strip()
    text = re.sub(r"^[ \t]+", "", text, flags=re.MULTILINE)
    text = re.sub(r"\n{3,}", "\n\n", text)
    return text.strip()


def extract_field(content: str, marker: str) -> str | None:
    """Return the cleaned text of a labelled section, or None if absent."""
    pattern = _FIELD_PATTERNS.get(marker.upper()) or _field_pattern(marker.upper())
    match = _last_match(pattern, content)
    if match is None:
        return None
    return clean_extracted_text(match.group(1))


def detect_semantic_agreement(content: str) -> bool | None:
    """
    Infer agreement from wording when no explicit marker is present.

    Returns None when both polarities (or neither) are present.
    """
    has_positive = any(p.search(content) for p in POSITIVE_PATTERNS)
    has_negative = any(p.search(content) for p in NEGATIVE_PATTERNS)

    if has_positive and not has_negative:
        return True
    if has_negative and not has_positive:
        return False
    return None


def detect_consensus(reviewer_output: str) -> ConsensusVerdict:
    """Parse reviewer output into a ConsensusVerdict.

    Deterministic: the same text always yields an equal verdict.
    """
    agreed = False
    confidence = 0.0
    method = "explicit"

    agree_match = _last_match(_AGREE_PATTERN, reviewer_output)
    if agree_match:
        agreed = agree_match.group(1).upper() == "YES"
        confidence += AGREE_WEIGHT

    reason = extract_field(reviewer_output, "REASON")
    if reason is not None:
        confidence += FIELD_WEIGHT

    final_answer = extract_field(reviewer_output, "FINAL_ANSWER")
    if final_answer is not None:
        confidence += FIELD_WEIGHT

    feedback = extract_field(reviewer_output, "FEEDBACK")
    if feedback is not None:
        confidence += FIELD_WEIGHT

    if agree_match is None:
        semantic = detect_semantic_agreement(reviewer_output)
        if semantic is None:
            method = "ambiguous"
        else:
            agreed = semantic
            confidence = max(SEMANTIC_FLOOR, confidence * SEMANTIC_PENALTY)
            method = "semantic"

    return ConsensusVerdict(
        agreed=agreed,
        reason=reason,
        final_answer=final_answer,
        feedback=feedback,
        confidence=round(min(confidence, 1.0), 4),
        raw_content=reviewer_output,
        method=method,
    )


def format_verdict(verdict: ConsensusVerdict) -> str:
    """Format a verdict for display."""
    lines = [
        f"Agreement: {'YES' if verdict.agreed else 'NO'}",
        f"Confidence: {verdict.confidence * 100:.0f}%",
    ]
    if verdict.reason:
        lines.append(f"\nReason: {verdict.reason}")
    if verdict.final_answer:
        lines.append(f"\nFinal Answer:\n{verdict.final_answer}")
    if verdict.feedback:
        lines.append(f"\nFeedback:\n{verdict.feedback}")
    return "\n".join(lines)


def should_continue_debate(verdict: ConsensusVerdict) -> bool:
    """Whether another round is warranted after this verdict."""
    if not verdict.agreed:
        return True
    # Agreed but nothing concrete to show for it
    return not verdict.final_answer and verdict.confidence < 0.5
