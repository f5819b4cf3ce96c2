"""Per-agent behaviour expressed as data.

Known agent CLIs only differ in how their idle prompt looks, how long they
take to boot and how to quit them. Each kind maps to an AgentTraits entry;
unknown commands fall back to the generic traits.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from tmuxdebate.config import AgentKind, AgentProfile


@dataclass(frozen=True)
class AgentTraits:
    """Readiness and lifecycle data for one kind of agent."""

    extra_prompt_patterns: tuple[str, ...] = field(default_factory=tuple)
    startup_wait: float = 0.0
    exit_command: str = "exit"


# Registry of traits by kind
TRAITS_REGISTRY: dict[AgentKind, AgentTraits] = {}


def register_traits(kind: AgentKind, traits: AgentTraits) -> None:
    """
    Register the traits for an agent kind.

    Args:
        kind: The agent kind
        traits: Readiness patterns and lifecycle data for it
    """
    TRAITS_REGISTRY[kind] = traits


def register_readiness(kind: AgentKind, patterns: list[str] | tuple[str, ...]) -> None:
    """Add ready-prompt patterns to a kind, keeping its other traits."""
    current = get_traits(kind)
    register_traits(
        kind,
        AgentTraits(
            extra_prompt_patterns=(*current.extra_prompt_patterns, *patterns),
            startup_wait=current.startup_wait,
            exit_command=current.exit_command,
        ),
    )


def get_traits(kind: AgentKind) -> AgentTraits:
    """Traits for a kind, falling back to the generic entry."""
    return TRAITS_REGISTRY.get(kind, TRAITS_REGISTRY[AgentKind.GENERIC])


def ready_patterns(
    profile: AgentProfile, traits: AgentTraits | None = None
) -> list[re.Pattern[str]]:
    """Compile the profile's prompt pattern plus those of its kind."""
    traits = traits or get_traits(profile.resolved_kind)
    patterns = [re.compile(profile.prompt_pattern, re.MULTILINE)]
    patterns.extend(re.compile(p, re.MULTILINE) for p in traits.extra_prompt_patterns)
    return patterns


def _register_default_traits() -> None:
    register_traits(AgentKind.GENERIC, AgentTraits())
    register_traits(
        AgentKind.CLAUDE,
        AgentTraits(
            # Plain ">" in older builds, "❯" in current ones
            extra_prompt_patterns=(r"^\s*>\s*$", r"^\s*❯\s*$", r"^\s*claude>\s*$"),
            startup_wait=10.0,
            exit_command="/exit",
        ),
    )
    register_traits(
        AgentKind.CODEX,
        AgentTraits(
            extra_prompt_patterns=(r"^\s*(?:❯|›|codex>)\s*$", r"^\s*›\s+.*for shortcuts"),
            startup_wait=10.0,
            exit_command="/quit",
        ),
    )


_register_default_traits()
