"""Agent adapters for interactive CLIs."""

from tmuxdebate.agents.adapter import AgentAdapter
from tmuxdebate.agents.factory import ROLES, create_adapter
from tmuxdebate.agents.traits import (
    TRAITS_REGISTRY,
    AgentTraits,
    get_traits,
    ready_patterns,
    register_readiness,
    register_traits,
)

__all__ = [
    "AgentAdapter",
    "AgentTraits",
    "create_adapter",
    "get_traits",
    "ready_patterns",
    "register_readiness",
    "register_traits",
    "ROLES",
    "TRAITS_REGISTRY",
]
