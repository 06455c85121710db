"""Lifecycle control of a Neo4j server process through its bundled scripts."""
from __future__ import annotations

import os
import shutil
import subprocess
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ..permissions import AdminGate, allow_all, check
from ..platform import PlatformAdapter
from ..version_policy import ServerLayout, VersionPolicy

RESET_GLOBS = ("data/graph.db/*", "data/log/*")


class CommandFailed(RuntimeError):
    """Raised when a server script exits non-zero or cannot be executed."""


class ShutdownTimeout(RuntimeError):
    """Raised when the graceful stop command exceeds its time bound."""


class ProcessState(str, Enum):
    """Last known lifecycle state of the managed server."""

    NOT_STARTED = "not-started"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"


class StopOutcome(str, Enum):
    """How a call to :meth:`ProcessController.stop` finished."""

    STOPPED = "stopped"
    KILLED = "killed"
    TIMED_OUT = "timed-out"


def _ignore(message: str) -> None:
    return None


@dataclass(slots=True)
class ProcessController:
    """Start, stop and inspect the server installed at *install_path*.

    Administrative operations (stop, restart, info, reset) consult
    *admin_gate* before running anything. Only one controller should drive a
    given installation at a time; no locks are taken.
    """

    install_path: Path
    platform: PlatformAdapter
    admin_gate: AdminGate = allow_all
    report: Callable[[str], None] = _ignore
    pid: int | None = None
    state: ProcessState = ProcessState.NOT_STARTED
    default_stop_timeout: float | None = None
    _layout: ServerLayout | None = field(default=None, repr=False)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------
    @property
    def server_binary_path(self) -> Path:
        """Return the server control script."""
        return self.install_path / "bin" / self.platform.server_binary

    @property
    def shell_binary_path(self) -> Path:
        """Return the interactive shell script."""
        return self.install_path / "bin" / self.platform.shell_binary

    def layout(self) -> ServerLayout:
        """Return the version-dependent paths, detecting the version once."""
        if self._layout is None:
            self._layout = VersionPolicy.for_installation(self.install_path).layout(
                self.install_path
            )
        return self._layout

    def is_running(self) -> bool:
        """Return ``True`` when the server's pid file exists."""
        return self.layout().pid_path.exists()

    # ------------------------------------------------------------------
    # Lifecycle commands
    # ------------------------------------------------------------------
    def start(self, wait: bool = True) -> int | None:
        """Run the start script and record the pid of the started server."""
        self.state = ProcessState.STARTING
        try:
            self._server_command("start" if wait else "start-no-wait")
        except CommandFailed:
            self.state = ProcessState.STOPPED
            raise
        self.state = ProcessState.RUNNING
        self.pid = self._read_pid()
        return self.pid

    def stop(self, timeout: float | None = None) -> StopOutcome:
        """Stop the server gracefully, killing it if *timeout* seconds pass.

        A timeout is not an error: the previously recorded pid (if any) is
        sent the platform's kill signal instead.
        """
        check(self.admin_gate, "stop")
        bound = timeout if timeout is not None else self.default_stop_timeout
        self.state = ProcessState.STOPPING
        try:
            self._stop_within(bound)
        except ShutdownTimeout:
            self.report("Shutdown timeout reached, killing process...")
            return self._kill()
        self.state = ProcessState.STOPPED
        return StopOutcome.STOPPED

    def restart(self) -> None:
        """Run the restart script."""
        check(self.admin_gate, "restart")
        self._server_command("restart")
        self.state = ProcessState.RUNNING
        self.pid = self._read_pid()

    def info(self) -> None:
        """Run the info script."""
        check(self.admin_gate, "info")
        self._server_command("info")

    def console(self) -> None:
        """Run the server in the foreground console mode."""
        self._server_command("console")

    def shell(self) -> None:
        """Open the interactive shell, starting the server around it if needed."""
        started_here = not self.is_running()
        if started_here:
            self.start()
        try:
            self._run_command([str(self.shell_binary_path)])
        finally:
            if started_here:
                self.stop()

    def reset(self) -> list[Path]:
        """Stop the server, delete its store and logs, then start it again.

        Irreversible; callers are expected to confirm with the operator first.
        """
        check(self.admin_gate, "reset")
        self.stop()

        removed: list[Path] = []
        for pattern in RESET_GLOBS:
            self.report(f"Deleting all files matching {self.install_path / pattern}")
            for entry in sorted(self.install_path.glob(pattern)):
                if entry.is_dir() and not entry.is_symlink():
                    shutil.rmtree(entry)
                else:
                    entry.unlink(missing_ok=True)
                removed.append(entry)

        self.start()
        return removed

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _read_pid(self) -> int | None:
        pid_path = self.layout().pid_path
        try:
            return int(pid_path.read_text(encoding="utf-8").strip())
        except FileNotFoundError:
            self.report(f"Server started but no pid file was found at {pid_path}.")
        except ValueError:
            self.report(f"Ignoring malformed pid file {pid_path}.")
        return None

    def _kill(self) -> StopOutcome:
        if self.pid is None:
            self.report("No process id was recorded by start; nothing to kill.")
            return StopOutcome.TIMED_OUT
        try:
            os.kill(self.pid, self.platform.kill_signal)
        except ProcessLookupError:
            self.report(f"Process {self.pid} had already exited.")
        self.pid = None
        self.state = ProcessState.STOPPED
        return StopOutcome.KILLED

    def _stop_within(self, timeout: float | None) -> None:
        try:
            self._server_command("stop", timeout=timeout)
        except subprocess.TimeoutExpired as exc:
            raise ShutdownTimeout(f"Graceful shutdown exceeded {timeout} seconds.") from exc

    def _server_command(self, subcommand: str, *, timeout: float | None = None) -> None:
        self._run_command([str(self.server_binary_path), subcommand], timeout=timeout)

    def _run_command(
        self,
        args: Sequence[str],
        *,
        timeout: float | None = None,
    ) -> subprocess.CompletedProcess[bytes]:
        """Run *args* attached to the terminal, raising on failure.

        ``subprocess.TimeoutExpired`` propagates when *timeout* elapses; the
        child has already been killed and reaped by then.
        """
        command = " ".join(args)
        try:
            result = subprocess.run(  # noqa: S603 - arguments are fixed script paths
                list(args),
                check=False,
                timeout=timeout,
            )
        except (FileNotFoundError, PermissionError) as exc:
            raise CommandFailed(f"Unable to run: {command} ({exc})") from exc
        if result.returncode != 0:
            raise CommandFailed(f"Unable to run: {command} (exit {result.returncode})")
        return result


__all__ = [
    "CommandFailed",
    "ProcessController",
    "ProcessState",
    "RESET_GLOBS",
    "ShutdownTimeout",
    "StopOutcome",
]
