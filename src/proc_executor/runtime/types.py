"""Data model for the process runtime.

Defines launch parameters, execution options and the result structure.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path

__all__ = [
    "Option",
    "ProcessParams",
    "ProcessState",
    "Result",
]


class Option(str, Enum):
    """Per-call execution options.

    - PRINT_STDOUT / PRINT_STDERR: forward the stream live to the console
      instead of capturing it
    - EXPECT_STDOUT / EXPECT_STDERR: the caller expects output on the stream,
      so it is not highlighted when shown after a failure
    - SILENT: do not flush captured output to the console on failure
    """

    PRINT_STDOUT = "print_stdout"
    PRINT_STDERR = "print_stderr"
    EXPECT_STDOUT = "expect_stdout"
    EXPECT_STDERR = "expect_stderr"
    SILENT = "silent"


class ProcessState(str, Enum):
    """Lifecycle of a launched process handle."""

    LAUNCHED = "launched"
    RUNNING = "running"
    EXITED = "exited"
    KILLED = "killed"
    DESTROYED = "destroyed"


@dataclass(frozen=True)
class ProcessParams:
    """Parameters for launching a process.

    Attributes:
        command: Command tokens (first element is the executable)
        directory: Working directory (None = inherit)
        environment: Full environment for the child (None = inherit).
            When given it replaces the parent environment, it is not merged.
        redirect_input: File to use as stdin instead of a pipe
        redirect_output: File to write stdout to instead of a pipe
        redirect_error: File to write stderr to instead of a pipe
    """

    command: tuple[str, ...]
    directory: Path | None = None
    environment: Mapping[str, str] | None = None
    redirect_input: Path | None = None
    redirect_output: Path | None = None
    redirect_error: Path | None = None

    def __post_init__(self) -> None:
        if isinstance(self.command, (str, bytes)):
            raise TypeError("command must be a sequence of tokens, not a single string")
        # Accept any iterable of tokens but store an immutable tuple
        object.__setattr__(self, "command", tuple(str(t) for t in self.command))
        if self.directory is not None:
            object.__setattr__(self, "directory", Path(self.directory))
        if self.environment is not None:
            object.__setattr__(self, "environment", dict(self.environment))
        for name in ("redirect_input", "redirect_output", "redirect_error"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, Path(value))

    @classmethod
    def of(cls, *command: str) -> "ProcessParams":
        """Create params from command tokens."""
        return cls(command=tuple(command))

    def with_command(self, command: Iterable[str]) -> "ProcessParams":
        return replace(self, command=command)

    def with_directory(self, directory: Path | str) -> "ProcessParams":
        return replace(self, directory=Path(directory))

    def with_environment(self, environment: Mapping[str, str]) -> "ProcessParams":
        return replace(self, environment=dict(environment))

    def with_redirects(
        self,
        *,
        stdin: Path | str | None = None,
        stdout: Path | str | None = None,
        stderr: Path | str | None = None,
    ) -> "ProcessParams":
        """Return a copy with the given file redirects set."""
        return replace(
            self,
            redirect_input=Path(stdin) if stdin is not None else self.redirect_input,
            redirect_output=Path(stdout) if stdout is not None else self.redirect_output,
            redirect_error=Path(stderr) if stderr is not None else self.redirect_error,
        )


@dataclass(frozen=True)
class Result:
    """Outcome of executing a process.

    Attributes:
        exit_code: Exit code reported by the OS
        timed_out: Whether the process was killed after the timeout expired
        stdout: Captured stdout (None if forwarded or redirected)
        stderr: Captured stderr (None if forwarded or redirected)
    """

    exit_code: int
    timed_out: bool = False
    stdout: str | None = field(default=None, repr=False)
    stderr: str | None = field(default=None, repr=False)

    @classmethod
    def failed(cls) -> "Result":
        """Degraded result for a run that was aborted from outside."""
        return cls(exit_code=1)

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0 and not self.timed_out
