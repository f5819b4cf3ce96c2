"""Command-line interface for tmux-debate."""

from __future__ import annotations

import argparse
import sys
import threading
from pathlib import Path

from pydantic import ValidationError

from tmuxdebate import __version__
from tmuxdebate.config import DebateConfig, profile_for_command
from tmuxdebate.consensus import format_verdict
from tmuxdebate.errors import ConfigurationError, DebateError
from tmuxdebate.notifications import create_notifier_from_config
from tmuxdebate.orchestrator import DebateOrchestrator
from tmuxdebate.surface import TmuxSurface, generate_session_name, list_sessions
from tmuxdebate.transcript import LOG_FILENAME, DebateLogger, read_logs

SESSION_WAIT_TIMEOUT = 30.0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="tmux-debate",
        description="Let two agent CLIs debate a topic side by side in tmux",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Debate with the default agents and attach to the session
  tmux-debate start --topic "Best way to cache API responses"

  # Claude proposes, Codex reviews, at most 5 rounds, no attach
  tmux-debate start -t "Design a rate limiter" --reviewer codex -r 5 --no-attach

  # Attach to / stop running debates
  tmux-debate attach
  tmux-debate stop --all

  # Show the round log of the latest debate
  tmux-debate logs
""",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command")

    start = subparsers.add_parser("start", help="Start a new debate")
    start.add_argument("--topic", "-t", required=True, help="Topic to debate")
    start.add_argument("--max-rounds", "-r", type=int, help="Maximum number of rounds")
    start.add_argument("--proposer", "-p", help="Command launching the proposer agent")
    start.add_argument("--reviewer", help="Command launching the reviewer agent")
    start.add_argument("--output", "-o", type=Path, help="Output directory for logs and results")
    start.add_argument("--config", "-c", type=Path, help="Path to configuration file")
    start.add_argument(
        "--no-attach",
        action="store_true",
        help="Run in the foreground without attaching to the tmux session",
    )
    start.add_argument("--quiet", "-q", action="store_true", help="Minimal output")

    attach = subparsers.add_parser("attach", help="Attach to a debate session")
    attach.add_argument("--session", "-s", help="Session name (defaults to the latest debate)")

    subparsers.add_parser("status", help="List running debate sessions")

    stop = subparsers.add_parser("stop", help="Stop debate sessions")
    stop_target = stop.add_mutually_exclusive_group()
    stop_target.add_argument("--session", "-s", help="Session to stop (defaults to the latest)")
    stop_target.add_argument("--all", "-a", action="store_true", help="Stop all debate sessions")

    logs = subparsers.add_parser("logs", help="Show the log of the latest debate")
    logs.add_argument("--output", "-o", type=Path, help="Output directory to look in")
    logs.add_argument("--path", type=Path, help="Explicit rounds.jsonl path")

    init_config = subparsers.add_parser("init-config", help="Create a default configuration file")
    init_config.add_argument("path", nargs="?", type=Path, help="Where to write the file")

    return parser


def _session_prefix() -> str:
    try:
        return DebateConfig.load().session_prefix
    except DebateError:
        return "debate"


def _latest_session(prefix: str) -> str | None:
    sessions = sorted(list_sessions(f"{prefix}-"))
    return sessions[-1] if sessions else None


def build_config(parsed: argparse.Namespace) -> DebateConfig:
    """Load the configuration and apply command-line overrides."""
    config = DebateConfig.load(parsed.config)
    updates = {}
    if parsed.max_rounds is not None:
        updates["max_rounds"] = parsed.max_rounds
    if parsed.proposer:
        updates["proposer"] = profile_for_command(parsed.proposer)
    if parsed.reviewer:
        updates["reviewer"] = profile_for_command(parsed.reviewer)
    if parsed.output:
        updates["output_dir"] = str(parsed.output)
    if parsed.quiet:
        notifications = config.notifications.model_copy(deep=True)
        notifications.console.enabled = False
        updates["notifications"] = notifications
    if not updates:
        return config
    try:
        return DebateConfig.model_validate({**config.to_dict(), **_dump(updates)})
    except ValidationError as e:
        raise ConfigurationError(f"Invalid option: {e}") from e


def _dump(updates: dict) -> dict:
    return {k: v.model_dump(mode="json") if hasattr(v, "model_dump") else v for k, v in updates.items()}


def print_summary(orchestrator: DebateOrchestrator, final_path: Path | None) -> None:
    result = orchestrator.get_final_result()
    context = orchestrator.context
    print()
    print("=" * 60)
    print(f"Debate {result.verdict.upper()} after {result.rounds} round(s)")
    print("=" * 60)
    if context.last_round and context.last_round.verdict:
        print(format_verdict(context.last_round.verdict))
    if result.error:
        print(f"Error: {result.error}")
    if final_path:
        print(f"\nResult written to: {final_path}")


def handle_start(parsed: argparse.Namespace) -> int:
    """Run a debate, attaching the terminal to it unless --no-attach."""
    config = build_config(parsed)
    session_name = generate_session_name(config.session_prefix)
    logger = DebateLogger(config.output_dir, session_name)
    orchestrator = DebateOrchestrator(
        parsed.topic, config, session_name=session_name, pane_log_dir=logger.session_dir
    )
    notifier = create_notifier_from_config(config.notifications)
    orchestrator.subscribe(logger.handle_event)
    orchestrator.subscribe(notifier.handle_event)

    notifier.on_debate_started(parsed.topic, orchestrator.session_name, config.max_rounds)
    if not parsed.quiet:
        print(f"Proposer: {config.proposer.display_name}")
        print(f"Reviewer: {config.reviewer.display_name}")
        print()

    errors: list[BaseException] = []

    def worker() -> None:
        try:
            orchestrator.run()
        except Exception as e:
            errors.append(e)

    thread = threading.Thread(target=worker, name="debate", daemon=True)
    try:
        thread.start()
        if not parsed.no_attach and isinstance(orchestrator.surface, TmuxSurface):
            if orchestrator.session_ready.wait(SESSION_WAIT_TIMEOUT) and thread.is_alive():
                orchestrator.surface.attach()
        thread.join()
    except KeyboardInterrupt:
        print("\nInterrupted by user, stopping debate...", file=sys.stderr)
        orchestrator.stop()
        thread.join(timeout=10)
        orchestrator.cleanup()
        return 130

    final_path = None
    if orchestrator.context.rounds or orchestrator.context.error:
        final_path = logger.write_final(orchestrator.context, orchestrator.context.final_answer)
    orchestrator.cleanup()

    if not parsed.quiet:
        print_summary(orchestrator, final_path)

    if errors:
        print(f"Error: {errors[0]}", file=sys.stderr)
        return 1
    return 0


def handle_attach(session: str | None) -> int:
    session = session or _latest_session(_session_prefix())
    if not session:
        print("No debate session found", file=sys.stderr)
        return 1
    return TmuxSurface(session).attach()


def handle_status() -> int:
    sessions = list_sessions(f"{_session_prefix()}-")
    if not sessions:
        print("No running debates")
        return 0
    print("Running debates:")
    for name in sessions:
        print(f"  {name}")
    return 0


def handle_stop(session: str | None, stop_all: bool) -> int:
    prefix = _session_prefix()
    if stop_all:
        targets = list_sessions(f"{prefix}-")
    else:
        latest = session or _latest_session(prefix)
        targets = [latest] if latest else []

    if not targets:
        print("No debate session found")
        return 0

    for name in targets:
        TmuxSurface(name).kill_session()
        print(f"Stopped: {name}")
    return 0


def handle_logs(output: Path | None, path: Path | None) -> int:
    if path is None:
        output_dir = output or Path(DebateConfig.load().output_dir)
        candidates = sorted(
            output_dir.glob(f"*/{LOG_FILENAME}"), key=lambda p: p.stat().st_mtime
        )
        if not candidates:
            print(f"No debate logs found in {output_dir}", file=sys.stderr)
            return 1
        path = candidates[-1]

    entries = read_logs(path)
    if not entries:
        print(f"No entries in {path}", file=sys.stderr)
        return 1

    print(f"Log: {path}\n")
    for entry in entries:
        data = entry.get("data", {})
        kind = entry.get("type")
        if kind == "round":
            verdict = data.get("verdict") or {}
            agreed = "YES" if verdict.get("agreed") else "NO"
            print(f"[{entry['timestamp']}] round {data.get('round')}: agreed={agreed}")
        elif kind == "phase_change":
            print(f"[{entry['timestamp']}] {data.get('from')} -> {data.get('to')}")
        else:
            print(f"[{entry['timestamp']}] {kind}: {data.get('message', '')}")
    return 0


def handle_init_config(path: Path | None = None) -> int:
    """Create a default configuration file."""
    config = DebateConfig()
    config_path = path or Path("tmux-debate.yaml")

    if config_path.exists():
        print(f"Configuration file already exists: {config_path}")
        response = input("Overwrite? [y/N] ")
        if response.lower() != "y":
            return 1

    config.save(config_path)
    print(f"Created configuration file: {config_path}")
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not parsed.command:
        parser.print_help()
        return 1

    try:
        if parsed.command == "start":
            return handle_start(parsed)
        if parsed.command == "attach":
            return handle_attach(parsed.session)
        if parsed.command == "status":
            return handle_status()
        if parsed.command == "stop":
            return handle_stop(parsed.session, parsed.all)
        if parsed.command == "logs":
            return handle_logs(parsed.output, parsed.path)
        if parsed.command == "init-config":
            return handle_init_config(parsed.path)

    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 130

    except DebateError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
