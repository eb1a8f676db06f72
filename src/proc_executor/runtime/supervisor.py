"""Wall-clock timeout enforcement for a running process."""

from __future__ import annotations

import logging
import subprocess
import threading
from collections.abc import Callable
from typing import Any

from .launcher import LaunchedProcess

__all__ = ["TimeoutHandler", "TimeoutSupervisor"]

logger = logging.getLogger(__name__)

TimeoutHandler = Callable[[LaunchedProcess], Any]


class TimeoutSupervisor:
    """Waits for a process to exit for at most a given duration.

    A waiter thread blocks on the process. The caller joins it for at most the
    timeout; if it is still waiting, stop() tells it to give up, and the
    waiter runs the timeout handler before it ends. Killing the process is
    left to the caller.

    Example:
        supervisor = TimeoutSupervisor(process, 5.0, handler=dump_stacks)
        supervisor.start()
        if not supervisor.wait():
            supervisor.stop()
            launcher.terminate(process)
    """

    def __init__(
        self,
        process: LaunchedProcess,
        timeout: float,
        *,
        handler: TimeoutHandler | None = None,
        poll_interval: float = 0.05,
        log: logging.Logger | None = None,
    ) -> None:
        self.process = process
        self.timeout = timeout
        self.handler = handler
        self.poll_interval = poll_interval
        self.handler_ran = False
        self._log = log or logger
        self._run_handler = True
        self._stop_requested = threading.Event()
        self._waiter = threading.Thread(
            target=self._wait_for_exit,
            name=f"proc-executor-waiter-{process.pid}",
            daemon=True,
        )

    def start(self) -> None:
        self._waiter.start()

    def wait(self, timeout: float | None = None) -> bool:
        """Block for at most the timeout (or the given slice of it).

        Returns:
            True if the waiter saw the process exit
        """
        self._waiter.join(self.timeout if timeout is None else timeout)
        return not self._waiter.is_alive()

    def stop(self, *, run_handler: bool = True) -> None:
        """Tell the waiter to stop and wait until it (and the handler) are done.

        Args:
            run_handler: Run the timeout handler if the process is still alive
        """
        self._run_handler = run_handler
        self._stop_requested.set()
        self._waiter.join()

    def _wait_for_exit(self) -> None:
        while not self._stop_requested.is_set():
            try:
                self.process.wait(timeout=self.poll_interval)
                return
            except subprocess.TimeoutExpired:
                continue

        if self._run_handler and self.handler is not None and self.process.poll() is None:
            self.handler_ran = True
            try:
                self.handler(self.process)
            except Exception:
                self._log.error(
                    f"Timeout handler raised for pid={self.process.pid}", exc_info=True
                )
