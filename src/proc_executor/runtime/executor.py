"""Blocking process execution with concurrent stream relays.

execute() flow:
1. Start stdout/stderr relays (forwarding or capturing)
2. Start the stdin relay for a payload or stream, or close stdin right away
3. Wait for exit, with an optional timeout that force-terminates the process
4. Join the relays, so captured text is complete
5. Destroy the process (always)
6. Build the Result; on failure flush captured output to the console once
"""

from __future__ import annotations

import io
import logging
import subprocess
import threading
import time
from collections.abc import Iterable
from typing import IO, Union

from ..config import Config, get_config
from ..console import Console
from .errors import UsageError
from .launcher import LaunchedProcess, ProcessLauncher
from .relay import CapturingSink, ForwardingSink, StdinRelay, StreamRelay
from .supervisor import TimeoutHandler, TimeoutSupervisor
from .types import Option, ProcessParams, Result

__all__ = ["ProcessExecutor", "StdinInput"]

# A literal payload, or a live binary source relayed until exhausted
StdinInput = Union[str, bytes, IO[bytes]]


class _Cancelled(Exception):
    """Raised internally when the caller's cancel event fires."""


class ProcessExecutor:
    """Launches processes and executes them to completion.

    Example:
        executor = ProcessExecutor(Console())
        result = executor.launch_and_execute(
            ProcessParams.of("git", "status"),
            options={Option.EXPECT_STDOUT},
            timeout_ms=30_000,
        )
        if result.exit_code == 0:
            print(result.stdout)

    Independent handles may be executed from different threads at once; one
    handle is executed at most once.
    """

    def __init__(
        self,
        console: Console | None = None,
        *,
        config: Config | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.console = console if console is not None else Console()
        self.config = config if config is not None else get_config()
        self._log = logger if logger is not None else logging.getLogger(__name__)
        self._launcher = ProcessLauncher(
            term_timeout=self.config.term_timeout,
            kill_timeout=self.config.kill_timeout,
        )
        self._stdin_stream: IO[bytes] | None = None

    def set_stdin_stream(self, source: IO[bytes] | None) -> None:
        """Relay this source into the stdin of every process executed from now on."""
        self._stdin_stream = source

    # ------------------------------------------------------------------
    # Launch / destroy / wait
    # ------------------------------------------------------------------

    def launch(self, params: ProcessParams) -> LaunchedProcess:
        """Launch a process.

        Raises:
            ValueError: If the command is empty
            LaunchFailure: If the OS could not spawn the process
        """
        return self._launcher.launch(params)

    def destroy(self, process: LaunchedProcess) -> None:
        """Terminate and reap a process. Safe to call any number of times.

        While an execute() on another thread owns the handle only the process
        is killed; that execute closes the streams once its relays are done.
        """
        self._check_handle(process)
        self._kill_and_reap(process)
        if process.in_use:
            return
        if process.mark_destroyed():
            process.close_streams()
            self._log.debug(f"Destroyed subprocess pid={process.pid}")

    def wait_for_exit(self, process: LaunchedProcess) -> int:
        """Block until the process exits and return its exit code.

        No output is captured. The handle cannot be executed afterwards.

        Raises:
            UsageError: If the handle was already executed or waited for
        """
        self._check_handle(process)
        process.claim()
        try:
            return process.wait()
        finally:
            process.release()

    # ------------------------------------------------------------------
    # Execute
    # ------------------------------------------------------------------

    def launch_and_execute(
        self,
        params: ProcessParams,
        options: Iterable[Option] = (),
        stdin: StdinInput | None = None,
        timeout_ms: int | None = None,
        timeout_handler: TimeoutHandler | None = None,
        *,
        cancel_event: threading.Event | None = None,
    ) -> Result:
        """Launch a process, then execute() it."""
        process = self.launch(params)
        return self.execute(
            process,
            options,
            stdin,
            timeout_ms,
            timeout_handler,
            cancel_event=cancel_event,
        )

    def execute(
        self,
        process: LaunchedProcess,
        options: Iterable[Option] = (),
        stdin: StdinInput | None = None,
        timeout_ms: int | None = None,
        timeout_handler: TimeoutHandler | None = None,
        *,
        cancel_event: threading.Event | None = None,
    ) -> Result:
        """Execute a launched process to completion.

        With PRINT_STDOUT / PRINT_STDERR the stream is written live to the
        console; otherwise it is captured and returned in the Result.

        Args:
            process: Handle from launch()
            options: Execution options
            stdin: Literal payload (str/bytes) or a binary stream, relayed
                until exhausted and then closed
            timeout_ms: Kill the process if it runs longer than this
            timeout_handler: Called with the handle before a timed-out
                process is killed; exceptions are logged and ignored
            cancel_event: When set during the run, the process is destroyed
                and Result(exit_code=1) is returned

        Returns:
            Result with exit code, timeout flag and captured text

        Raises:
            UsageError: If the handle was already executed or waited for
        """
        self._check_handle(process)
        process.claim()
        options = frozenset(options)

        print_stdout = Option.PRINT_STDOUT in options
        print_stderr = Option.PRINT_STDERR in options
        encoding = self.config.encoding
        pid = process.pid

        relays: list[StreamRelay] = []
        stdout_sink = self._make_sink(print_stdout, stderr=False)
        stderr_sink = self._make_sink(print_stderr, stderr=True)
        if process.stdout is not None:
            relays.append(self._start_relay("stdout", process.stdout, stdout_sink, pid))
        if process.stderr is not None:
            relays.append(self._start_relay("stderr", process.stderr, stderr_sink, pid))

        stdin_relay: StdinRelay | None = None
        stdin_source = stdin if stdin is not None else self._stdin_stream
        if process.stdin is not None:
            if stdin_source is not None:
                stdin_relay = StdinRelay(
                    self._stdin_reader(stdin_source, encoding),
                    process.stdin,
                    chunk_size=self.config.read_chunk_size,
                    pid=pid,
                )
                stdin_relay.start()
            else:
                # Nothing to feed: give the child EOF right away
                self._close_stdin(process)

        timed_out = False
        try:
            try:
                if timeout_ms is not None:
                    timed_out = self._wait_with_timeout(
                        process, timeout_ms, timeout_handler, cancel_event
                    )
                self._wait(process, cancel_event)

                for relay in relays:
                    self._join(relay, cancel_event)
            except _Cancelled:
                self._log.info(f"Execution of pid={pid} cancelled by caller")
                return Result.failed()
        finally:
            if stdin_relay is not None:
                stdin_relay.stop()
            self._dispose(process, relays, stdin_relay)

        for relay in (*relays, stdin_relay):
            if relay is not None and relay.error is not None:
                self._log.debug(f"pid={pid} finished with a stream failure: {relay.error}")

        exit_code = process.returncode if process.returncode is not None else 1
        stdout_text = self._captured_text(stdout_sink, process.stdout)
        stderr_text = self._captured_text(stderr_sink, process.stderr)

        self._log.debug(
            f"Subprocess completed pid={pid} returncode={exit_code} timed_out={timed_out}"
        )

        # Failed and not told to be quiet: make sure the output is seen
        if exit_code != 0 and Option.SILENT not in options:
            if stdout_text:
                self._log.debug(f"Writing captured stdout text to console: [{stdout_text}]")
                self.console.write(
                    stdout_text,
                    highlighted=Option.EXPECT_STDOUT not in options,
                )
            if stderr_text:
                self._log.debug(f"Writing captured stderr text to console: [{stderr_text}]")
                self.console.write(
                    stderr_text,
                    stderr=True,
                    highlighted=Option.EXPECT_STDERR not in options,
                )

        return Result(
            exit_code=exit_code,
            timed_out=timed_out,
            stdout=stdout_text,
            stderr=stderr_text,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_handle(self, process: LaunchedProcess) -> None:
        if not isinstance(process, LaunchedProcess):
            raise UsageError(f"Not a launched process handle: {process!r}")

    def _kill_and_reap(self, process: LaunchedProcess) -> None:
        self._launcher.terminate(process)
        try:
            process.wait(timeout=self.config.kill_timeout)
        except subprocess.TimeoutExpired:
            self._log.warning(f"Subprocess pid={process.pid} not reaped after destroy")

    def _dispose(
        self,
        process: LaunchedProcess,
        relays: list[StreamRelay],
        stdin_relay: StdinRelay | None,
    ) -> None:
        """destroy() for the handle this execute owns."""
        self._kill_and_reap(process)
        process.release()
        if not process.mark_destroyed():
            return
        feeding = stdin_relay is not None and stdin_relay.is_alive()
        if feeding or any(relay.is_alive() for relay in relays):
            # Live relays close their own streams when they end
            if not feeding:
                self._close_stdin(process)
            return
        process.close_streams()
        self._log.debug(f"Destroyed subprocess pid={process.pid}")

    def _make_sink(self, forward: bool, *, stderr: bool) -> CapturingSink | ForwardingSink:
        if forward:
            return ForwardingSink(self.console, stderr=stderr, encoding=self.config.encoding)
        return CapturingSink(self.config.encoding)

    def _start_relay(
        self,
        name: str,
        source: IO[bytes],
        sink: CapturingSink | ForwardingSink,
        pid: int,
    ) -> StreamRelay:
        relay = StreamRelay(
            name,
            source,
            sink,
            chunk_size=self.config.read_chunk_size,
            pid=pid,
        )
        relay.start()
        return relay

    def _captured_text(
        self,
        sink: CapturingSink | ForwardingSink,
        stream: IO[bytes] | None,
    ) -> str | None:
        # Forwarded or redirected streams have nothing to report
        if stream is None or not isinstance(sink, CapturingSink):
            return None
        return sink.text()

    def _stdin_reader(self, source: StdinInput, encoding: str) -> IO[bytes]:
        # Payloads go through the relay too, so a child that never reads
        # stdin cannot block the timed wait
        if isinstance(source, str):
            return io.BytesIO(source.encode(encoding))
        if isinstance(source, bytes):
            return io.BytesIO(source)
        return source

    def _close_stdin(self, process: LaunchedProcess) -> None:
        if process.stdin is None:
            return
        try:
            process.stdin.close()
        except OSError as e:
            # Flushing into a pipe whose reader has gone
            self._log.debug(f"Error closing stdin of pid={process.pid}: {e}")

    def _wait_with_timeout(
        self,
        process: LaunchedProcess,
        timeout_ms: int,
        timeout_handler: TimeoutHandler | None,
        cancel_event: threading.Event | None,
    ) -> bool:
        """Wait up to timeout_ms; kill the process if it is still running.

        Returns:
            True if the process timed out and was killed
        """
        supervisor = TimeoutSupervisor(
            process,
            max(timeout_ms, 0) / 1000.0,
            handler=timeout_handler,
            poll_interval=self.config.poll_interval,
            log=self._log,
        )
        supervisor.start()
        if cancel_event is None:
            finished = supervisor.wait()
        else:
            finished = self._wait_supervised(supervisor, cancel_event)
        if finished:
            return False

        supervisor.stop()
        # It may have exited between the deadline and stop()
        if not process.is_running():
            return False

        self._log.info(f"Subprocess pid={process.pid} timed out after {timeout_ms}ms, killing")
        self._launcher.terminate(process)
        return True

    def _wait_supervised(
        self,
        supervisor: TimeoutSupervisor,
        cancel_event: threading.Event,
    ) -> bool:
        # Same deadline as supervisor.wait(), sliced so cancellation is seen
        deadline = time.monotonic() + supervisor.timeout
        while True:
            if cancel_event.is_set():
                supervisor.stop(run_handler=False)
                raise _Cancelled()
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return supervisor.wait(0)
            if supervisor.wait(min(self.config.poll_interval, remaining)):
                return True

    def _wait(self, process: LaunchedProcess, cancel_event: threading.Event | None) -> None:
        if cancel_event is None:
            process.wait()
            return
        while True:
            if cancel_event.is_set():
                raise _Cancelled()
            try:
                process.wait(timeout=self.config.poll_interval)
                return
            except subprocess.TimeoutExpired:
                continue

    def _join(self, thread: threading.Thread, cancel_event: threading.Event | None) -> None:
        if cancel_event is None:
            thread.join()
            return
        while thread.is_alive():
            if cancel_event.is_set():
                raise _Cancelled()
            thread.join(self.config.poll_interval)
