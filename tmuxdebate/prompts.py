"""Prompts sent to the proposer and the reviewer."""

from __future__ import annotations

from tmuxdebate.context import RoundRecord
from tmuxdebate.surface import PROPOSER, REVIEWER

PROPOSER_ROLE_PROMPT = """You are the Proposer in a collaborative debate. Your role is to:
1. Present clear, well-structured proposals
2. Respond to feedback constructively
3. Iterate on your proposals based on reviewer input

When you complete a proposal, clearly mark it with:
FINAL_ANSWER: <your complete proposal>

Be concise and focus on actionable solutions."""

REVIEWER_ROLE_PROMPT = """You are the Reviewer in a collaborative debate. Your role is to:
1. Critically evaluate proposals
2. Provide constructive feedback
3. Approve proposals that meet requirements

After reviewing, you MUST end your response with one of:

If you APPROVE:
AGREE: YES
REASON: <why you approve>
FINAL_ANSWER: <confirmed final answer>

If you need CHANGES:
AGREE: NO
REASON: <what needs to change>
FEEDBACK: <specific improvements needed>

Be thorough but fair in your evaluation."""

DEFAULT_REVISE_REQUEST = "Please revise your proposal."


class DebatePrompts:
    """Builds every prompt of a debate about one topic."""

    def __init__(self, topic: str):
        self.topic = topic

    def role_prompt(self, role: str) -> str:
        """Prompt that establishes an agent's role before round 1."""
        if role == PROPOSER:
            return f"{PROPOSER_ROLE_PROMPT}\n\nThe topic for discussion is:\n{self.topic}"
        if role == REVIEWER:
            return REVIEWER_ROLE_PROMPT
        raise ValueError(f"Unknown role: '{role}'")

    def proposal_prompt(self, round_number: int, last_round: RoundRecord | None = None) -> str:
        """
        Prompt for the proposer.

        Round 1 asks for the initial proposal. Later rounds pass on the
        reviewer's feedback, falling back to the raw review text.
        """
        if round_number <= 1 or last_round is None:
            return f'Please provide your initial proposal for the topic: "{self.topic}"'

        feedback = last_round.verdict.feedback if last_round.verdict else None
        body = feedback or last_round.review or DEFAULT_REVISE_REQUEST
        return (
            f"The reviewer provided the following feedback:\n\n{body}\n\n"
            "Please update your proposal based on this feedback."
        )

    def review_prompt(self, proposal: str) -> str:
        """Prompt asking the reviewer to evaluate a proposal."""
        return (
            f"Please review the following proposal:\n\n---\n{proposal}\n---\n\n"
            "Provide your evaluation and indicate whether you AGREE or not."
        )


def build_role_prompt(topic: str, role: str) -> str:
    return DebatePrompts(topic).role_prompt(role)


def build_proposal_prompt(topic: str, round_number: int, last_round: RoundRecord | None = None) -> str:
    return DebatePrompts(topic).proposal_prompt(round_number, last_round)


def build_review_prompt(proposal: str) -> str:
    return DebatePrompts("").review_prompt(proposal)
