"""Logging setup for applications embedding the executor.

The runtime itself only uses module loggers (or an injected logger); this
helper wires handlers the same way for every entry point.
"""

from __future__ import annotations

import logging
import sys

from .config import Config, get_config

__all__ = ["setup_logging", "LOG_FORMAT"]

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(config: Config | None = None) -> logging.Logger:
    """Configure logging handlers.

    - PE_LOG_DEBUG on: DEBUG to a temp file (config.log_file)
    - otherwise: INFO to stderr

    Third-party loggers stay at WARNING; only the proc_executor namespace
    gets the detailed level.

    Args:
        config: Configuration (default: global config)

    Returns:
        The proc_executor package logger
    """
    config = config or get_config()

    log_handlers: list[logging.Handler] = []

    if config.log_debug and config.log_file:
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(file_handler)
        log_level = logging.DEBUG
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log_handlers.append(stderr_handler)
        log_level = logging.INFO

    logging.basicConfig(
        level=logging.WARNING,
        handlers=log_handlers,
    )
    package_logger = logging.getLogger("proc_executor")
    package_logger.setLevel(log_level)
    return package_logger
