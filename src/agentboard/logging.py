"""Logging configuration for agentboard.

Uses Python's standard logging module with support for:
- File logging via config or the AGENTBOARD_LOG environment variable
- Verbosity levels: error(0), warning(1), info(2), verbose(3), trace(4)
- Stderr output when no log file is configured

Hook invocations run inside another tool's process, so stderr output is
only attached when stderr is a real console or when the CLI asks for it.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from agentboard.config.schema import LoggingConfig

TRACE = 5
VERBOSE = 15

logging.addLevelName(TRACE, "TRACE")
logging.addLevelName(VERBOSE, "VERBOSE")

logger = logging.getLogger("agentboard")

_initialized = False

_LEVEL_MAP = {
    "TRACE": TRACE,
    "DEBUG": logging.DEBUG,
    "VERBOSE": VERBOSE,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

_VERBOSITY_MAP = {
    0: logging.ERROR,
    1: logging.WARNING,
    2: logging.INFO,
    3: VERBOSE,
    4: TRACE,
}


def level_for(config: LoggingConfig | None, verbosity: int | None = None) -> int:
    """Resolve the effective log level.

    An explicit ``verbosity`` (from the command line) wins over the config's
    ``verbose`` field, which wins over its ``level`` name.
    """
    if verbosity is not None:
        return _VERBOSITY_MAP.get(verbosity, TRACE)
    if config:
        if config.verbose is not None:
            return _VERBOSITY_MAP.get(config.verbose, TRACE)
        if config.level:
            return _LEVEL_MAP.get(config.level.upper(), logging.INFO)
    return logging.WARNING


def setup_logging(
    config: LoggingConfig | None = None,
    verbosity: int | None = None,
    *,
    force_stderr: bool = False,
) -> None:
    """Initialize logging once per process.

    Args:
        config: Optional LoggingConfig with level, verbose, and file settings.
        verbosity: Command-line verbosity count, overrides the config.
        force_stderr: Attach a stderr handler even when stderr is not a tty.
    """
    global _initialized
    if _initialized:
        return
    _initialized = True

    log_level = level_for(config, verbosity)
    logger.setLevel(log_level)

    formatter = logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s: %(message)s", datefmt="%H:%M:%S"
    )

    log_path = config.file if config and config.file else os.environ.get("AGENTBOARD_LOG")

    if log_path:
        log_path = os.path.expanduser(log_path)
        try:
            file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        except OSError as e:
            print(f"[agentboard] Failed to open log file {log_path}: {e}", file=sys.stderr)
        else:
            file_handler.setLevel(log_level)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
            return

    if force_stderr or sys.stderr.isatty():
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(log_level)
        stderr_handler.setFormatter(formatter)
        logger.addHandler(stderr_handler)


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Optional child logger name (e.g., "claims", "sessions").

    Returns:
        The named child of the ``agentboard`` logger, or the root one.
    """
    if name:
        return logger.getChild(name)
    return logger
