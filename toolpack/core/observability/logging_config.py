"""
Logging for the toolpack CLI.

``configure_cli_logging`` runs once per invocation from ``main.cli``.
Library modules never configure handlers; they only do
``logger = logging.getLogger(__name__)``.

Console level, first match wins::

    --debug  →  DEBUG
    --verbose → INFO
    --quiet  →  ERROR
    $TOOLPACK_LOG_LEVEL
    WARNING

``$TOOLPACK_LOG_FILE`` adds a file handler, at
``$TOOLPACK_LOG_FILE_LEVEL`` or the console level.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Mapping

ENV_LEVEL = "TOOLPACK_LOG_LEVEL"
ENV_FILE = "TOOLPACK_LOG_FILE"
ENV_FILE_LEVEL = "TOOLPACK_LOG_FILE_LEVEL"

# (most verbose level served, format, datefmt); quieter levels print the bare message
_CONSOLE_FORMATS = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s %(name)s: %(message)s", "%H:%M:%S"),
)
_FILE_FORMAT = ("%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s", "%Y-%m-%dT%H:%M:%S")


def level_number(name: str | None) -> int:
    """``"info"`` → ``logging.INFO``; unknown or empty names mean WARNING."""
    if not name:
        return logging.WARNING
    value = getattr(logging, name.upper(), None)
    return value if isinstance(value, int) else logging.WARNING


def _console_handler(level: int) -> logging.Handler:
    fmt, datefmt = "%(message)s", None
    for served, candidate, candidate_datefmt in _CONSOLE_FORMATS:
        if level <= served:
            fmt, datefmt = candidate, candidate_datefmt
            break
    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt, datefmt=datefmt))
    return handler


def _file_handler(path: str, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(*_FILE_FORMAT))
    return handler


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Replace the root handlers with a stderr handler (and an optional file).

    The root logger is set to the more verbose of the two handler
    levels so a DEBUG file still receives records the console drops.
    """
    console_level = level_number(level)
    handlers = [_console_handler(console_level)]
    root_level = console_level

    if log_file:
        file_level = level_number(log_file_level) if log_file_level else console_level
        handlers.append(_file_handler(log_file, file_level))
        root_level = min(root_level, file_level)

    root = logging.getLogger()
    root.handlers.clear()
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(root_level)

    logging.raiseExceptions = False


def resolve_level(
    *,
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    env_level: str | None = None,
) -> str:
    """Pick the console level from CLI flags, then the environment."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return env_level or "WARNING"


def configure_cli_logging(
    *,
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    env: Mapping[str, str] | None = None,
) -> str:
    """Set up logging from CLI flags and ``TOOLPACK_LOG_*``; return the console level."""
    env = os.environ if env is None else env
    level = resolve_level(
        debug=debug, verbose=verbose, quiet=quiet, env_level=env.get(ENV_LEVEL),
    )
    setup_logging(level, log_file=env.get(ENV_FILE), log_file_level=env.get(ENV_FILE_LEVEL))
    return level
