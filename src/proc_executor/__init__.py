"""proc-executor - blocking process execution with live or captured output.

Environment variables:
    PE_TERM_TIMEOUT: Seconds between SIGTERM and SIGKILL (default 2.0)
    PE_KILL_TIMEOUT: Seconds to wait after SIGKILL (default 1.0)
    PE_READ_CHUNK_SIZE: Relay read size in bytes (default 4096)
    PE_ENCODING: Text encoding (default utf-8)
    PE_POLL_INTERVAL: Exit/cancel poll interval in seconds (default 0.05)
    PE_LOG_DEBUG: Debug log to a temp file (default false)

Usage:
    from proc_executor import Console, Option, ProcessExecutor, ProcessParams

    executor = ProcessExecutor(Console())
    result = executor.launch_and_execute(ProcessParams.of("echo", "hello"))
"""

__version__ = "0.1.0"

from .console import Console
from .runtime import (
    LaunchFailure,
    LaunchedProcess,
    Option,
    ProcessExecutor,
    ProcessParams,
    Result,
    UsageError,
)

__all__ = [
    "__version__",
    "Console",
    "LaunchFailure",
    "LaunchedProcess",
    "Option",
    "ProcessExecutor",
    "ProcessParams",
    "Result",
    "UsageError",
]
