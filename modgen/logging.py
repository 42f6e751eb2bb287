"""Logging helpers shared by the walker, languages and CLI.

Every modgen module logs through a child of the ``modgen`` logger obtained
from :func:`get_logger`. Only the CLI calls :func:`configure_logging`; as a
library modgen leaves handler setup to the host application.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

_ROOT = "modgen"
_CONSOLE_FORMAT = "[modgen] %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return ``modgen`` or one of its children, e.g. ``modgen.walker``."""
    return logging.getLogger(_ROOT if not name else f"{_ROOT}.{name}")


def configure_logging(
    *, verbose: bool = False, quiet: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Route ``modgen`` records to stderr and, optionally, to ``log_file``.

    ``verbose`` wins over ``quiet`` when both are given. Calling this again
    replaces the handlers installed by the previous call.
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    logger = get_logger()
    _detach_handlers(logger)
    logger.setLevel(level)
    logger.propagate = False

    sinks: List[logging.Handler] = [_with_format(logging.StreamHandler(), _CONSOLE_FORMAT)]
    if log_file is not None:
        sinks.append(_with_format(logging.FileHandler(log_file, encoding="utf-8"), _FILE_FORMAT))
    for sink in sinks:
        sink.setLevel(level)
        logger.addHandler(sink)
    return logger


def _with_format(handler: logging.Handler, fmt: str) -> logging.Handler:
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def _detach_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


__all__ = ["configure_logging", "get_logger"]
