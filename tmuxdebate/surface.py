"""Text surfaces the agents run on, and the tmux implementation of them."""

from __future__ import annotations

import random
import re
import shutil
import string
import subprocess
import time
from abc import ABC, abstractmethod
from collections.abc import Callable

from tmuxdebate.errors import SurfaceError

ANSI_ESCAPE_PATTERN = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b\][^\x07]*(?:\x07|\x1b\\)")

PROPOSER = "proposer"
REVIEWER = "reviewer"


def strip_ansi(text: str) -> str:
    """Remove ANSI/CSI and OSC escape sequences."""
    return ANSI_ESCAPE_PATTERN.sub("", text)


def _base36(number: int) -> str:
    digits = string.digits + string.ascii_lowercase
    if number == 0:
        return "0"
    out = []
    while number:
        number, rem = divmod(number, 36)
        out.append(digits[rem])
    return "".join(reversed(out))


def generate_session_name(
    prefix: str = "debate",
    clock: Callable[[], float] = time.time,
    rng: random.Random | None = None,
) -> str:
    """
    Generate a unique session name like ``debate-m0x1k2ab-q7f3``.

    Time and randomness are parameters so tests can pin the result.
    """
    rng = rng or random.Random()
    timestamp = _base36(int(clock() * 1000))
    token = "".join(rng.choice(string.ascii_lowercase + string.digits) for _ in range(4))
    return f"{prefix}-{timestamp}-{token}"


class SurfaceProvider(ABC):
    """
    Send/capture access to the text surfaces of the two agents.

    Targets are role names ("proposer", "reviewer"); how they map to
    physical panes is up to the provider.
    """

    @abstractmethod
    def is_available(self) -> bool:
        """Whether the backing terminal system can be used at all."""
        pass

    @abstractmethod
    def create_session(self) -> None:
        """Create the surfaces for both roles."""
        pass

    @abstractmethod
    def kill_session(self) -> None:
        pass

    @abstractmethod
    def send_text(self, target: str, text: str, enter: bool = True) -> None:
        """Type text into a surface, optionally followed by Enter."""
        pass

    @abstractmethod
    def capture_text(self, target: str) -> str:
        """Return the full currently visible text of a surface."""
        pass

    def run_in_pane(self, target: str, command: str) -> None:
        """Run a shell command in the surface."""
        self.send_text(target, command, enter=True)

    def interrupt(self, target: str) -> None:
        """Send Ctrl-C."""
        self.send_text(target, "\x03", enter=False)

    def start_pane_logging(self, target: str, log_path: str) -> None:
        """Mirror everything a surface prints into a file. Optional."""
        return None

    def update_status(self, status: str) -> None:
        """Show a one-line status somewhere visible. Optional."""
        return None


class TmuxSurface(SurfaceProvider):
    """
    Runs both agents side by side in one tmux session.

    Left pane is the proposer, right pane the reviewer; progress is shown
    in the status bar.
    """

    def __init__(self, session_name: str, width: int = 200, height: int = 50, timeout: int = 10):
        self.session_name = session_name
        self.width = width
        self.height = height
        self.timeout = timeout
        self._panes: dict[str, str] = {}

    def _run(self, args: list[str], check: bool = True) -> subprocess.CompletedProcess:
        """Run a tmux command."""
        cmd = ["tmux"] + args
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise SurfaceError(args[0], "Command timed out") from e
        except FileNotFoundError as e:
            raise SurfaceError(args[0], "tmux executable not found") from e

        if check and result.returncode != 0:
            raise SurfaceError(
                args[0],
                (result.stderr or result.stdout or "Command failed").strip(),
                result.returncode,
            )
        return result

    def _pane(self, target: str) -> str:
        try:
            return self._panes[target]
        except KeyError:
            raise SurfaceError("target", f"Pane '{target}' not initialized") from None

    # -------------------------------------------------------------------------
    # Availability and session lifecycle
    # -------------------------------------------------------------------------

    def is_available(self) -> bool:
        if shutil.which("tmux") is None:
            return False
        try:
            return self._run(["-V"], check=False).returncode == 0
        except SurfaceError:
            return False

    def exists(self) -> bool:
        return session_exists(self.session_name)

    def create_session(self) -> None:
        """Create a detached session with a proposer and a reviewer pane."""
        if self.exists():
            raise SurfaceError("new-session", f"Session '{self.session_name}' already exists")

        result = self._run(
            [
                "new-session",
                "-d",
                "-s",
                self.session_name,
                "-x",
                str(self.width),
                "-y",
                str(self.height),
                "-P",
                "-F",
                "#{pane_id}",
            ]
        )
        self._panes[PROPOSER] = result.stdout.strip()

        try:
            result = self._run(
                ["split-window", "-h", "-t", self._panes[PROPOSER], "-P", "-F", "#{pane_id}"]
            )
        except SurfaceError:
            self.kill_session()
            raise
        self._panes[REVIEWER] = result.stdout.strip()

        self.update_status("Initializing...")

    def kill_session(self) -> None:
        result = self._run(["kill-session", "-t", self.session_name], check=False)
        if result.returncode != 0 and self.exists():
            raise SurfaceError("kill-session", result.stderr.strip(), result.returncode)
        self._panes.clear()

    def attach(self) -> int:
        """Attach the current terminal to the session. Blocks until detach."""
        if not self.exists():
            raise SurfaceError("attach-session", f"Session '{self.session_name}' does not exist")
        return subprocess.call(["tmux", "attach-session", "-t", self.session_name])

    # -------------------------------------------------------------------------
    # Text I/O
    # -------------------------------------------------------------------------

    def send_text(self, target: str, text: str, enter: bool = True) -> None:
        """
        Type text into a pane.

        Single lines go through ``send-keys -l``. Multi-line text is pasted
        as one bracketed paste so the agent does not submit each line.
        """
        pane = self._pane(target)
        if "\n" in text:
            buffer_name = f"{self.session_name}-{target}"
            self._run(["set-buffer", "-b", buffer_name, "--", text])
            self._run(["paste-buffer", "-p", "-d", "-b", buffer_name, "-t", pane])
        elif text:
            self._run(["send-keys", "-l", "-t", pane, text])

        if enter:
            self._run(["send-keys", "-t", pane, "Enter"])

    def capture_text(self, target: str, lines: int | None = None) -> str:
        args = ["capture-pane", "-p", "-t", self._pane(target)]
        if lines:
            args.extend(["-S", f"-{lines}"])
        result = self._run(args)
        return strip_ansi(result.stdout).rstrip()

    def run_in_pane(self, target: str, command: str) -> None:
        self._run(["send-keys", "-t", self._pane(target), command, "Enter"])

    def interrupt(self, target: str) -> None:
        self._run(["send-keys", "-t", self._pane(target), "C-c"])

    def start_pane_logging(self, target: str, log_path: str) -> None:
        """Mirror everything a pane prints into a file."""
        self._run(["pipe-pane", "-t", self._pane(target), f'cat >> "{log_path}"'])

    def update_status(self, status: str) -> None:
        self._run(["set-option", "-t", self.session_name, "status-right", f" {status} "], check=False)
        self._run(
            ["set-option", "-t", self.session_name, "status-right-length", "100"], check=False
        )


def session_exists(session_name: str) -> bool:
    try:
        result = subprocess.run(
            ["tmux", "has-session", "-t", session_name],
            capture_output=True,
            text=True,
            timeout=10,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return False
    return result.returncode == 0


def list_sessions(prefix: str | None = None) -> list[str]:
    """List tmux session names, optionally only those starting with ``prefix``."""
    try:
        result = subprocess.run(
            ["tmux", "list-sessions", "-F", "#{session_name}"],
            capture_output=True,
            text=True,
            timeout=10,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return []
    if result.returncode != 0:
        return []
    names = [line for line in result.stdout.splitlines() if line]
    if prefix:
        names = [name for name in names if name.startswith(prefix)]
    return names
