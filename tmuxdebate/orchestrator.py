"""Debate orchestrator: drives the proposer/reviewer protocol end to end."""

from __future__ import annotations

import contextlib
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path

from tmuxdebate.agents import AgentAdapter, create_adapter
from tmuxdebate.config import AgentProfile, DebateConfig
from tmuxdebate.consensus import detect_consensus
from tmuxdebate.context import DebateContext, DebatePhase
from tmuxdebate.detector import CompletionDetector
from tmuxdebate.errors import AgentUnavailableError, DebateError
from tmuxdebate.events import DebateEvent, DebateEventType, EventEmitter, EventListener
from tmuxdebate.prompts import DebatePrompts
from tmuxdebate.state import DebateStateMachine
from tmuxdebate.surface import PROPOSER, REVIEWER, SurfaceProvider, TmuxSurface, generate_session_name

IDLE_YIELD = 0.1
READY_POLL_INTERVAL = 0.5


@dataclass
class DebateOutcome:
    """Result of a finished debate."""

    agreed: bool
    rounds: int
    final_answer: str | None
    phase: DebatePhase
    error: str | None = None

    @property
    def verdict(self) -> str:
        return "agreed" if self.agreed else self.phase.value


class DebateOrchestrator:
    """
    Runs one debate between a proposer and a reviewer.

    The orchestrator owns the state machine (and through it the context),
    the surface session and both agent adapters. Callers only ever see
    context snapshots. ``stop()`` may be called from another thread; it is
    honoured at phase boundaries and at every detector poll.
    """

    def __init__(
        self,
        topic: str,
        config: DebateConfig | None = None,
        surface: SurfaceProvider | None = None,
        session_name: str | None = None,
        adapter_factory: Callable[..., AgentAdapter] = create_adapter,
        detector: CompletionDetector | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        name_factory: Callable[[str], str] = generate_session_name,
        pane_log_dir: Path | str | None = None,
    ):
        self.topic = topic
        self.config = config or DebateConfig()
        self.session_name = session_name or name_factory(self.config.session_prefix)
        self.surface = surface or TmuxSurface(self.session_name)
        self.detector = detector or CompletionDetector.from_config(
            self.config.detector, sleep=sleep, clock=clock
        )
        self.adapter_factory = adapter_factory
        self.pane_log_dir = pane_log_dir
        self.prompts = DebatePrompts(topic)
        self.events = EventEmitter()
        self.machine = DebateStateMachine(
            topic,
            self.config.max_rounds,
            on_phase_change=self._on_phase_change,
            on_warning=self._emit_warning,
        )
        self.proposer: AgentAdapter | None = None
        self.reviewer: AgentAdapter | None = None
        self.session_ready = threading.Event()

        self._sleep = sleep
        self._clock = clock
        self._stop_requested = threading.Event()
        self._lock = threading.Lock()
        self._loop_running = False
        self._session_created = False

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def subscribe(
        self,
        listener: EventListener,
        types: Iterable[DebateEventType] | None = None,
    ) -> Callable[[], None]:
        """Register an event listener. Returns an unsubscribe function."""
        return self.events.subscribe(listener, types)

    def _emit(self, event_type: DebateEventType, **data) -> DebateEvent:
        return self.events.emit(event_type, **data)

    def _emit_warning(self, message: str) -> None:
        self._emit(DebateEventType.WARNING, message=message)

    def _on_phase_change(
        self, from_phase: DebatePhase, to_phase: DebatePhase, context: DebateContext
    ) -> None:
        self._emit(
            DebateEventType.PHASE_CHANGE,
            **{"from": from_phase.value, "to": to_phase.value, "round": context.current_round},
        )
        self._set_status(f"Round {context.current_round}/{context.max_rounds} | {to_phase.value}")

    def _set_status(self, status: str) -> None:
        if not self._session_created:
            return
        with contextlib.suppress(DebateError):
            self.surface.update_status(status)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def phase(self) -> DebatePhase:
        return self.machine.phase

    @property
    def context(self) -> DebateContext:
        return self.machine.context

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested.is_set()

    def initialize(self) -> None:
        """
        Create the session, start both agents and establish their roles.

        A stop requested beforehand ends the debate STOPPED without touching
        the surface.

        Raises:
            AgentUnavailableError: If the surface provider cannot be used
            DebateError: If the debate was already started
        """
        if not self.machine.start():
            raise DebateError(f"Debate cannot be initialized from phase '{self.phase.value}'")
        if self.stop_requested:
            self.machine.stop()
            return

        if not self.surface.is_available():
            raise AgentUnavailableError("tmux is not available. Please install tmux first.")

        self.surface.create_session()
        self._session_created = True
        if self.pane_log_dir is not None:
            self._start_pane_logging(Path(self.pane_log_dir))
        self.session_ready.set()
        self._set_status("Starting agents...")

        self.proposer = self._create_agent(PROPOSER, self.config.proposer)
        self.reviewer = self._create_agent(REVIEWER, self.config.reviewer)
        self.proposer.start()
        self.reviewer.start()

        if not self._wait_for_agents_ready(self.config.ready_timeout):
            self._emit_warning("Agents may not be fully ready, continuing...")

        if not self.stop_requested:
            self._send_role_prompts()

        self.machine.initialized()

    def _start_pane_logging(self, log_dir: Path) -> None:
        log_dir.mkdir(parents=True, exist_ok=True)
        for role in (PROPOSER, REVIEWER):
            self.surface.start_pane_logging(role, str(log_dir / f"{role}.log"))

    def _create_agent(self, role: str, profile: AgentProfile) -> AgentAdapter:
        return self.adapter_factory(
            role,
            profile,
            self.surface,
            self.detector,
            sleep=self._sleep,
            clock=self._clock,
        )

    def _wait_for_agents_ready(self, timeout: float) -> bool:
        start = self._clock()
        while self._clock() - start < timeout:
            if self.stop_requested:
                return False
            if self._agent(PROPOSER).is_ready() and self._agent(REVIEWER).is_ready():
                return True
            self._sleep(READY_POLL_INTERVAL)
        return False

    def _send_role_prompts(self) -> None:
        for role in (PROPOSER, REVIEWER):
            agent = self._agent(role)
            agent.send_prompt(self.prompts.role_prompt(role))
            response = agent.wait_for_response(
                timeout=self.config.role_prompt_timeout,
                should_stop=self._stop_requested.is_set,
            )
            if response.cancelled:
                return
            if response.timed_out:
                self._report_timeout(role, 0, self.config.role_prompt_timeout)

    def _agent(self, role: str) -> AgentAdapter:
        agent = self.proposer if role == PROPOSER else self.reviewer
        if agent is None:
            raise DebateError(f"Agent '{role}' has not been created")
        return agent

    # -------------------------------------------------------------------------
    # Debate loop
    # -------------------------------------------------------------------------

    def run_loop(self) -> DebateContext:
        """Run rounds until the debate reaches a terminal phase or is stopped."""
        if self.phase in (DebatePhase.IDLE, DebatePhase.INITIALIZING):
            raise DebateError("Debate has not been initialized")

        with self._lock:
            self._loop_running = True
        try:
            while not self.machine.is_terminal() and not self.stop_requested:
                phase = self.machine.phase
                if phase == DebatePhase.PROPOSING:
                    self._handle_proposing()
                elif phase == DebatePhase.REVIEWING:
                    self._handle_reviewing()
                elif phase == DebatePhase.CHECKING_CONSENSUS:
                    self._handle_consensus_check()
                else:
                    self._sleep(IDLE_YIELD)
        finally:
            with self._lock:
                self._loop_running = False
            if self.stop_requested:
                self._halt()

        return self.machine.context

    def _handle_proposing(self) -> None:
        ctx = self.machine.context
        self._emit(DebateEventType.ROUND_START, round=ctx.current_round, max_rounds=ctx.max_rounds)

        prompt = self.prompts.proposal_prompt(ctx.current_round, ctx.last_round)
        self.machine.proposal_sent()
        content = self._take_turn(PROPOSER, prompt, self.config.proposer.timeout, ctx.current_round)
        if content is None:
            return
        self._emit(DebateEventType.PROPOSER_OUTPUT, round=ctx.current_round, content=content)
        self.machine.proposal_received(content)

    def _handle_reviewing(self) -> None:
        ctx = self.machine.context
        prompt = self.prompts.review_prompt(ctx.proposal)
        self.machine.review_sent()
        content = self._take_turn(REVIEWER, prompt, self.config.reviewer.timeout, ctx.current_round)
        if content is None:
            return
        self._emit(DebateEventType.REVIEWER_OUTPUT, round=ctx.current_round, content=content)
        self.machine.review_received(content)

    def _take_turn(self, role: str, prompt: str, timeout: float, round_number: int) -> str | None:
        """Send a prompt and wait. Returns None when a stop cut the wait short."""
        agent = self._agent(role)
        agent.send_prompt(prompt)
        response = agent.wait_for_response(
            timeout=timeout, should_stop=self._stop_requested.is_set
        )
        if response.cancelled:
            return None
        if response.timed_out:
            self._report_timeout(role, round_number, timeout)
        return response.content

    def _handle_consensus_check(self) -> None:
        ctx = self.machine.context
        verdict = detect_consensus(ctx.review)
        self._emit(DebateEventType.CONSENSUS, round=ctx.current_round, verdict=verdict)

        phase = self.machine.resolve_consensus(verdict)
        self._emit(
            DebateEventType.ROUND_END,
            round=ctx.current_round,
            phase=phase.value,
            agreed=verdict.agreed,
            record=self.machine.context.last_round,
        )

    def _report_timeout(self, role: str, round_number: int, timeout: float) -> None:
        self._emit(DebateEventType.TIMEOUT, role=role, round=round_number, timeout=timeout)

    def run(self) -> DebateContext:
        """
        Initialize and run the debate to completion.

        Any error moves the debate to FAILED, is emitted as an error event
        and re-raised. The context stays inspectable afterwards.
        """
        try:
            self.initialize()
            self.run_loop()
        except Exception as e:
            message = str(e) or type(e).__name__
            self.machine.fail(message)
            self._emit(DebateEventType.ERROR, message=message, error_type=type(e).__name__)
            raise
        finally:
            self._emit(
                DebateEventType.DEBATE_COMPLETE,
                context=self.machine.context,
                phase=self.machine.phase,
            )
        return self.machine.context

    # -------------------------------------------------------------------------
    # Shutdown
    # -------------------------------------------------------------------------

    def stop(self) -> None:
        """
        Request the debate to stop. Safe to call from any thread.

        If the loop is running, it halts at the next boundary; otherwise the
        debate is halted right here.
        """
        self._stop_requested.set()
        with self._lock:
            running = self._loop_running
        if not running:
            self._halt()

    def _halt(self) -> None:
        if not self.machine.is_terminal() and self.machine.phase != DebatePhase.IDLE:
            self.machine.stop()
        for agent in (self.proposer, self.reviewer):
            if agent is None:
                continue
            try:
                agent.stop()
            except DebateError as e:
                self._emit_warning(f"Failed to stop {agent.role}: {e}")

    def cleanup(self) -> None:
        """Stop everything and tear down the surface session."""
        self.stop()
        if not self._session_created:
            return
        try:
            self.surface.kill_session()
        except DebateError as e:
            self._emit_warning(f"Failed to kill session {self.session_name}: {e}")
        self._session_created = False

    def get_final_result(self) -> DebateOutcome:
        ctx = self.machine.context
        return DebateOutcome(
            agreed=ctx.consensus_reached,
            rounds=len(ctx.rounds),
            final_answer=ctx.final_answer,
            phase=self.machine.phase,
            error=ctx.error,
        )


def run_debate(
    topic: str,
    max_rounds: int | None = None,
    proposer: AgentProfile | None = None,
    reviewer: AgentProfile | None = None,
    surface: SurfaceProvider | None = None,
    listeners: Iterable[EventListener] = (),
    config: DebateConfig | None = None,
    **kwargs,
) -> DebateContext:
    """
    Run a complete debate and tear the session down afterwards.

    Args:
        topic: What the agents debate
        max_rounds: Round limit (defaults to the config's)
        proposer: Profile of the proposing agent
        reviewer: Profile of the reviewing agent
        surface: Surface provider (defaults to a new tmux session)
        listeners: Event listeners subscribed before the debate starts
        config: Base configuration
        **kwargs: Passed to DebateOrchestrator

    Returns:
        Snapshot of the final debate context
    """
    config = config or DebateConfig()
    updates = {}
    if max_rounds is not None:
        updates["max_rounds"] = max_rounds
    if proposer is not None:
        updates["proposer"] = proposer
    if reviewer is not None:
        updates["reviewer"] = reviewer
    if updates:
        config = config.model_copy(update=updates)

    orchestrator = DebateOrchestrator(topic, config, surface=surface, **kwargs)
    for listener in listeners:
        orchestrator.subscribe(listener)
    try:
        return orchestrator.run()
    finally:
        orchestrator.cleanup()

