"""Exception types for the process runtime.

Only ``LaunchFailure`` and ``UsageError`` ever leave the executor; stream
failures are recorded on the relay that hit them and folded into the result.
"""

from __future__ import annotations

from collections.abc import Sequence

__all__ = [
    "ProcessExecutorError",
    "LaunchFailure",
    "UsageError",
    "StreamIOFailure",
]


class ProcessExecutorError(Exception):
    """Base exception for the process runtime."""
    pass


class LaunchFailure(ProcessExecutorError):
    """The OS refused to spawn the process.

    Attributes:
        command: The command that failed to start
    """

    def __init__(self, command: Sequence[str], message: str) -> None:
        self.command = tuple(command)
        super().__init__(f"Failed to launch {self.command[0]!r}: {message}")


class UsageError(ProcessExecutorError):
    """A handle was used in a way its lifecycle does not allow."""
    pass


class StreamIOFailure(ProcessExecutorError):
    """Reading or writing a process stream failed mid-run.

    Attributes:
        stream: Name of the stream ("stdin", "stdout" or "stderr")
    """

    def __init__(self, stream: str, message: str) -> None:
        self.stream = stream
        super().__init__(f"[{stream}] {message}")
