"""Pytest configuration and fixtures."""

from __future__ import annotations

import io
import sys
from pathlib import Path

import pytest

# Project root
PROJECT_ROOT = Path(__file__).parent.parent

# Add src to the Python path
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

FAKE_CLI_PATH = PROJECT_ROOT / "tests" / "fixtures" / "fake_cli.py"

from proc_executor.config import Config  # noqa: E402
from proc_executor.console import Console  # noqa: E402
from proc_executor.runtime import ProcessExecutor, ProcessParams  # noqa: E402


def _fake_cli_params(*args: str) -> ProcessParams:
    return ProcessParams.of(sys.executable, str(FAKE_CLI_PATH), *args)


@pytest.fixture
def fake_cli():
    """Factory for params running the fake CLI with the given arguments."""
    return _fake_cli_params


@pytest.fixture
def test_config() -> Config:
    """Config with short termination timeouts for testing."""
    return Config(term_timeout=0.5, kill_timeout=0.5, poll_interval=0.01)


@pytest.fixture
def console_out() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def console_err() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def console(console_out: io.StringIO, console_err: io.StringIO) -> Console:
    """Plain (non-terminal) console writing to in-memory buffers."""
    return Console(console_out, console_err, force_terminal=False)


@pytest.fixture
def executor(console: Console, test_config: Config) -> ProcessExecutor:
    return ProcessExecutor(console, config=test_config)
