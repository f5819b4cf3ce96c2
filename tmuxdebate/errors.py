"""Custom exceptions for tmux-debate."""

from __future__ import annotations


class DebateError(Exception):
    """Base exception for all tmux-debate errors."""

    pass


class ConfigurationError(DebateError):
    """Raised when configuration is invalid."""

    pass


class AgentUnavailableError(DebateError):
    """Raised when the surface provider or an agent cannot be reached."""

    def __init__(self, message: str, agent: str | None = None):
        super().__init__(message)
        self.agent = agent


class AgentNotStartedError(DebateError):
    """Raised when a prompt is sent to an agent that was never started."""

    def __init__(self, role: str):
        super().__init__(f"Agent '{role}' not started")
        self.role = role


class SurfaceError(DebateError):
    """Raised when a surface (tmux) command fails."""

    def __init__(self, operation: str, error: str, returncode: int = 1):
        super().__init__(f"tmux {operation} failed: {error}")
        self.operation = operation
        self.error = error
        self.returncode = returncode
