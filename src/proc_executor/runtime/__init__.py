"""Runtime module for launching and executing processes.

This module provides blocking process execution with concurrent stream
relays, timeout enforcement and reliable termination.
"""

from __future__ import annotations

from .errors import LaunchFailure, ProcessExecutorError, StreamIOFailure, UsageError
from .executor import ProcessExecutor
from .launcher import LaunchedProcess, ProcessLauncher
from .types import Option, ProcessParams, ProcessState, Result

__all__ = [
    "LaunchFailure",
    "LaunchedProcess",
    "Option",
    "ProcessExecutor",
    "ProcessExecutorError",
    "ProcessLauncher",
    "ProcessParams",
    "ProcessState",
    "Result",
    "StreamIOFailure",
    "UsageError",
]
