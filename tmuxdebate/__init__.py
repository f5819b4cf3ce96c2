"""tmux-debate - Two agent CLIs debating a topic through tmux."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("tmux-debate")
except PackageNotFoundError:
    __version__ = "0.1.0"  # Fallback for development

from tmuxdebate.config import AgentKind, AgentProfile, DebateConfig
from tmuxdebate.consensus import ConsensusVerdict, detect_consensus
from tmuxdebate.context import DebateContext, DebatePhase, RoundRecord
from tmuxdebate.detector import AgentResponse, CompletionDetector
from tmuxdebate.events import DebateEvent, DebateEventType
from tmuxdebate.orchestrator import DebateOrchestrator, DebateOutcome, run_debate
from tmuxdebate.state import DebateStateMachine
from tmuxdebate.surface import SurfaceProvider, TmuxSurface

__all__ = [
    "__version__",
    # Config
    "AgentKind",
    "AgentProfile",
    "DebateConfig",
    # Protocol
    "DebateContext",
    "DebatePhase",
    "DebateStateMachine",
    "RoundRecord",
    # Detection
    "AgentResponse",
    "CompletionDetector",
    "ConsensusVerdict",
    "detect_consensus",
    # Orchestration
    "DebateEvent",
    "DebateEventType",
    "DebateOrchestrator",
    "DebateOutcome",
    "run_debate",
    "SurfaceProvider",
    "TmuxSurface",
]
