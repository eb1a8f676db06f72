"""Process launching and termination.

This module provides:
- Launching from ProcessParams (cwd, full environment replacement, file
  redirects)
- Windows CreateProcess argument escaping
- The LaunchedProcess handle and its lifecycle state
- Reliable termination with graceful shutdown (SIGTERM -> timeout -> SIGKILL)

Key design points:
- POSIX: start_new_session=True so termination can target the process group
- Windows: CREATE_NEW_PROCESS_GROUP for CTRL_BREAK_EVENT delivery
- Streams not redirected to a file are always pipes
"""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import sys
import threading
from contextlib import ExitStack
from typing import IO, Any

from .errors import LaunchFailure, UsageError
from .escaper import build_command_line
from .types import ProcessParams, ProcessState

__all__ = [
    "IS_WINDOWS",
    "LaunchedProcess",
    "ProcessLauncher",
]

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"

# Default timeouts
DEFAULT_TERM_TIMEOUT = 2.0  # seconds to wait after SIGTERM
DEFAULT_KILL_TIMEOUT = 1.0  # seconds to wait after SIGKILL


class LaunchedProcess:
    """Handle for a launched process.

    Owns the Popen object and its pipe endpoints. Pass it back to the
    executor to execute, wait for or destroy it; reading its streams directly
    while an execute is running races the relays.
    """

    def __init__(self, popen: subprocess.Popen, params: ProcessParams) -> None:
        self._popen = popen
        self.params = params
        self._lock = threading.Lock()
        self._state = ProcessState.LAUNCHED
        self._claimed = False
        self._in_use = False
        self._killed = False

    def __repr__(self) -> str:
        return (
            f"LaunchedProcess(pid={self.pid}, state={self.state.value}, "
            f"command={self.params.command[0]!r})"
        )

    @property
    def popen(self) -> subprocess.Popen:
        """The underlying Popen object, for signalling."""
        return self._popen

    @property
    def pid(self) -> int:
        return self._popen.pid

    @property
    def stdin(self) -> IO[bytes] | None:
        return self._popen.stdin

    @property
    def stdout(self) -> IO[bytes] | None:
        return self._popen.stdout

    @property
    def stderr(self) -> IO[bytes] | None:
        return self._popen.stderr

    @property
    def returncode(self) -> int | None:
        return self._popen.returncode

    @property
    def state(self) -> ProcessState:
        with self._lock:
            if self._state in (ProcessState.LAUNCHED, ProcessState.RUNNING):
                if self._popen.poll() is not None:
                    self._state = (
                        ProcessState.KILLED if self._killed else ProcessState.EXITED
                    )
            return self._state

    def is_running(self) -> bool:
        return self._popen.poll() is None

    def poll(self) -> int | None:
        return self._popen.poll()

    def wait(self, timeout: float | None = None) -> int:
        """Wait for exit. Raises subprocess.TimeoutExpired on timeout."""
        return self._popen.wait(timeout=timeout)

    def claim(self) -> None:
        """Mark the handle as consumed by an execute/wait_for_exit call.

        Raises:
            UsageError: If the handle was already consumed or destroyed
        """
        with self._lock:
            if self._claimed:
                raise UsageError(
                    f"Process pid={self.pid} was already executed or waited for"
                )
            if self._state is ProcessState.DESTROYED:
                raise UsageError(f"Process pid={self.pid} was already destroyed")
            self._claimed = True
            self._in_use = True
            if self._state is ProcessState.LAUNCHED:
                self._state = ProcessState.RUNNING

    def release(self) -> None:
        with self._lock:
            self._in_use = False

    @property
    def in_use(self) -> bool:
        with self._lock:
            return self._in_use

    def mark_killed(self) -> None:
        with self._lock:
            self._killed = True

    def mark_destroyed(self) -> bool:
        """Move to DESTROYED. Returns False if it already was."""
        with self._lock:
            if self._state is ProcessState.DESTROYED:
                return False
            self._state = ProcessState.DESTROYED
            return True

    def close_streams(self) -> None:
        for stream in (self._popen.stdin, self._popen.stdout, self._popen.stderr):
            if stream is None:
                continue
            try:
                stream.close()
            except OSError as e:
                # Closing stdin flushes; the child may already be gone
                logger.debug(f"Error closing stream of pid={self.pid}: {e}")


class ProcessLauncher:
    """Turns ProcessParams into running processes and terminates them.

    Example:
        launcher = ProcessLauncher()
        handle = launcher.launch(ProcessParams.of("ls", "-la"))
        ...
        launcher.terminate(handle)
    """

    def __init__(
        self,
        term_timeout: float = DEFAULT_TERM_TIMEOUT,
        kill_timeout: float = DEFAULT_KILL_TIMEOUT,
    ) -> None:
        self.term_timeout = term_timeout
        self.kill_timeout = kill_timeout

    def launch(self, params: ProcessParams) -> LaunchedProcess:
        """Launch a process.

        Args:
            params: Launch parameters

        Returns:
            Handle for the running process

        Raises:
            ValueError: If the command is empty
            LaunchFailure: If the OS could not spawn the process
        """
        if not params.command:
            raise ValueError("command must not be empty")

        kwargs = self._build_subprocess_kwargs(params)
        args: str | list[str]
        if IS_WINDOWS:
            # CreateProcess re-parses a single string, so escape it ourselves
            args = build_command_line(params.command)
        else:
            args = list(params.command)

        with ExitStack() as files:
            stdin: Any = subprocess.PIPE
            stdout: Any = subprocess.PIPE
            stderr: Any = subprocess.PIPE
            try:
                if params.redirect_input is not None:
                    stdin = files.enter_context(open(params.redirect_input, "rb"))
                if params.redirect_output is not None:
                    stdout = files.enter_context(open(params.redirect_output, "wb"))
                if params.redirect_error is not None:
                    stderr = files.enter_context(open(params.redirect_error, "wb"))

                popen = subprocess.Popen(
                    args,
                    stdin=stdin,
                    stdout=stdout,
                    stderr=stderr,
                    cwd=params.directory,
                    **kwargs,
                )
            except OSError as e:
                logger.debug(f"Launch failed argv={params.command[0]}: {e}")
                raise LaunchFailure(params.command, str(e)) from e
            # Redirect files are inherited by the child; the parent copies close here

        logger.debug(
            f"Started subprocess pid={popen.pid} "
            f"argv={params.command[0]} cwd={params.directory}"
        )
        return LaunchedProcess(popen, params)

    def _build_subprocess_kwargs(self, params: ProcessParams) -> dict[str, Any]:
        """Build platform-specific Popen kwargs.

        Args:
            params: Launch parameters

        Returns:
            Dict of kwargs for subprocess.Popen
        """
        kwargs: dict[str, Any] = {}

        # Environment replaces, never merges
        if params.environment is not None:
            kwargs["env"] = dict(params.environment)

        if IS_WINDOWS:
            kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            kwargs["start_new_session"] = True

        return kwargs

    def terminate(self, process: LaunchedProcess) -> None:
        """Terminate a process gracefully, then forcefully if needed.

        Termination strategy:
        1. Send SIGTERM to the group (or CTRL_BREAK_EVENT on Windows)
        2. Wait up to term_timeout for graceful exit
        3. If still running, send SIGKILL (or kill() on Windows)
        4. Wait up to kill_timeout for forced exit

        Args:
            process: The process to terminate
        """
        if not process.is_running():
            return

        pid = process.pid
        popen = process.popen
        process.mark_killed()
        logger.debug(f"Terminating subprocess pid={pid}")

        try:
            if IS_WINDOWS:
                self._windows_terminate(popen)
            else:
                self._posix_signal(popen, signal.SIGTERM)

            try:
                popen.wait(timeout=self.term_timeout)
                logger.debug(
                    f"Subprocess terminated gracefully pid={pid} "
                    f"returncode={popen.returncode}"
                )
                return
            except subprocess.TimeoutExpired:
                pass

            logger.debug(f"Force killing subprocess pid={pid}")
            if IS_WINDOWS:
                popen.kill()
            else:
                self._posix_signal(popen, signal.SIGKILL)

            try:
                popen.wait(timeout=self.kill_timeout)
                logger.debug(
                    f"Subprocess killed pid={pid} returncode={popen.returncode}"
                )
            except subprocess.TimeoutExpired:
                logger.warning(f"Subprocess did not exit after kill pid={pid}")

        except ProcessLookupError:
            logger.debug(f"Subprocess already exited pid={pid}")

    def _posix_signal(self, popen: subprocess.Popen, sig: signal.Signals) -> None:
        """Send a signal to the process group on POSIX systems.

        Args:
            popen: The subprocess
            sig: SIGTERM or SIGKILL
        """
        try:
            # Group id equals pid because of start_new_session
            pgid = os.getpgid(popen.pid)
            os.killpg(pgid, sig)
            logger.debug(f"Sent {sig.name} to process group pgid={pgid}")
        except ProcessLookupError:
            pass
        except OSError as e:
            logger.debug(f"killpg failed, falling back to send_signal: {e}")
            popen.send_signal(sig)

    def _windows_terminate(self, popen: subprocess.Popen) -> None:
        """Send CTRL_BREAK_EVENT on Windows."""
        try:
            # Works because of CREATE_NEW_PROCESS_GROUP
            os.kill(popen.pid, signal.CTRL_BREAK_EVENT)
            logger.debug(f"Sent CTRL_BREAK_EVENT to pid={popen.pid}")
        except OSError as e:
            logger.debug(f"CTRL_BREAK_EVENT failed, falling back: {e}")
            popen.terminate()
