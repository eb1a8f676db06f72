"""Environment-variable configuration.

Environment variables:
    PE_TERM_TIMEOUT: Seconds to wait after SIGTERM before SIGKILL
        - default 2.0, clamped to 0.0-60.0

    PE_KILL_TIMEOUT: Seconds to wait after SIGKILL
        - default 1.0, clamped to 0.0-60.0

    PE_READ_CHUNK_SIZE: Bytes read per relay iteration
        - default 4096, clamped to 1-1048576

    PE_ENCODING: Text encoding for captured output, forwarding and stdin payloads
        - default utf-8

    PE_POLL_INTERVAL: Seconds between polls of the exit waiter and cancel event
        - default 0.05, clamped to 0.001-1.0

    PE_LOG_DEBUG: Debug logging
        - true/1/yes = on (DEBUG log written to a temp file)
        - false/0/no = off (default, INFO to stderr)
"""

from __future__ import annotations

import codecs
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

__all__ = ["Config", "load_config", "get_config", "reload_config"]

DEFAULT_TERM_TIMEOUT = 2.0
DEFAULT_KILL_TIMEOUT = 1.0
DEFAULT_READ_CHUNK_SIZE = 4096
DEFAULT_ENCODING = "utf-8"
DEFAULT_POLL_INTERVAL = 0.05


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse a boolean environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_float(value: str | None, default: float, low: float, high: float) -> float:
    """Parse a float, falling back to the default and clamping to [low, high]."""
    if not value:
        return default
    try:
        parsed = float(value)
    except ValueError:
        return default
    return max(low, min(parsed, high))


def _parse_int(value: str | None, default: int, low: int, high: int) -> int:
    if not value:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return max(low, min(parsed, high))


def _parse_encoding(value: str | None) -> str:
    """Parse an encoding name; unknown codecs fall back to utf-8."""
    if not value or not value.strip():
        return DEFAULT_ENCODING
    try:
        return codecs.lookup(value.strip()).name
    except LookupError:
        return DEFAULT_ENCODING


@dataclass
class Config:
    """Executor configuration.

    Attributes:
        term_timeout: Seconds between SIGTERM and SIGKILL on forced termination
        kill_timeout: Seconds to wait for exit after SIGKILL
        read_chunk_size: Bytes read per relay iteration
        encoding: Text encoding used for captured output and stdin payloads
        poll_interval: Seconds between exit/cancel polls
        log_debug: Debug logging to a temp file
        log_file: Log file path (set automatically when log_debug=True)
    """

    term_timeout: float = DEFAULT_TERM_TIMEOUT
    kill_timeout: float = DEFAULT_KILL_TIMEOUT
    read_chunk_size: int = DEFAULT_READ_CHUNK_SIZE
    encoding: str = DEFAULT_ENCODING
    poll_interval: float = DEFAULT_POLL_INTERVAL
    log_debug: bool = False
    log_file: str | None = None

    def __repr__(self) -> str:
        return (
            f"Config(term_timeout={self.term_timeout}, "
            f"kill_timeout={self.kill_timeout}, "
            f"read_chunk_size={self.read_chunk_size}, "
            f"encoding={self.encoding}, "
            f"poll_interval={self.poll_interval}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file})"
        )


def _generate_log_file_path() -> str:
    """Build a timestamped log file path under the system temp directory."""
    log_dir = Path(tempfile.gettempdir()) / "proc-executor"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"pe_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """Load configuration from environment variables."""
    log_debug = _parse_bool(os.environ.get("PE_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        term_timeout=_parse_float(
            os.environ.get("PE_TERM_TIMEOUT"), DEFAULT_TERM_TIMEOUT, 0.0, 60.0
        ),
        kill_timeout=_parse_float(
            os.environ.get("PE_KILL_TIMEOUT"), DEFAULT_KILL_TIMEOUT, 0.0, 60.0
        ),
        read_chunk_size=_parse_int(
            os.environ.get("PE_READ_CHUNK_SIZE"), DEFAULT_READ_CHUNK_SIZE, 1, 1024 * 1024
        ),
        encoding=_parse_encoding(os.environ.get("PE_ENCODING")),
        poll_interval=_parse_float(
            os.environ.get("PE_POLL_INTERVAL"), DEFAULT_POLL_INTERVAL, 0.001, 1.0
        ),
        log_debug=log_debug,
        log_file=log_file,
    )


# Global instance (lazily loaded)
_config: Config | None = None


def get_config() -> Config:
    """Return the global configuration instance."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """Reload configuration from the environment (used by tests)."""
    global _config
    _config = load_config()
    return _config
