"""Factory for agent adapters."""

from __future__ import annotations

from collections.abc import Callable

from tmuxdebate.agents.adapter import AgentAdapter
from tmuxdebate.config import AgentProfile
from tmuxdebate.detector import CompletionDetector
from tmuxdebate.surface import PROPOSER, REVIEWER, SurfaceProvider

ROLES = (PROPOSER, REVIEWER)

AdapterFactory = Callable[..., AgentAdapter]


def create_adapter(
    role: str,
    profile: AgentProfile,
    surface: SurfaceProvider,
    detector: CompletionDetector | None = None,
    **kwargs,
) -> AgentAdapter:
    """
    Create the adapter for a role.

    Args:
        role: "proposer" or "reviewer"
        profile: How to launch and recognise the agent
        surface: Where the agent runs
        detector: Completion detector shared by the debate
        **kwargs: Passed to AgentAdapter (sleep, clock, traits)

    Raises:
        ValueError: If the role is unknown
    """
    if role not in ROLES:
        raise ValueError(f"Unknown role: '{role}'. Available roles: {', '.join(ROLES)}")
    return AgentAdapter(role, profile, surface, detector=detector, **kwargs)
