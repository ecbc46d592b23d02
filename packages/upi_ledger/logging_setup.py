"""Logging configuration shared by every ``upi_ledger`` module.

Two helpers are exported:

- ``configure_logging(...)`` installs one ``StreamHandler`` on the
  ``"upi_ledger"`` logger. Entrypoints (the CLI, a host application) call it
  once at startup; later calls are ignored.
- ``get_logger(name)`` returns a named logger and makes sure the package
  logger carries a ``NullHandler`` until something configures it, so parsers
  stay silent when used as a library.

Parsers never attach handlers themselves. They take an optional ``logger``
argument defaulting to ``get_logger("upi_ledger.<module>")`` so tests can
capture diagnostics without touching process-wide logging state.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import IO

_PKG_LOGGER_NAME = "upi_ledger"
_LEVEL_ENV = "UPI_LEDGER_LOG_LEVEL"
_DEFAULT_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"
_CONFIGURED = False


def _parse_level(level: int | str | None) -> int:
    if isinstance(level, int):
        return level
    if isinstance(level, str):
        name = level.strip().upper()
        if name.isdigit():
            return int(name)
        numeric = logging.getLevelNamesMapping().get(name)
        if numeric is not None:
            return numeric
    env_val = os.getenv(_LEVEL_ENV)
    if env_val and env_val != level:
        return _parse_level(env_val)
    return logging.WARNING


def configure_logging(
    level: int | str | None = None,
    *,
    fmt: str | None = None,
    stream: IO[str] = sys.stderr,
) -> None:
    """Attach the package handler once.

    ``level`` accepts an ``int`` or a level name. When ``None`` the
    ``UPI_LEDGER_LOG_LEVEL`` environment variable is consulted, falling back
    to ``WARNING`` so row-skip diagnostics surface without INFO chatter.
    """

    global _CONFIGURED
    if _CONFIGURED:
        return

    logger = logging.getLogger(_PKG_LOGGER_NAME)
    for h in list(logger.handlers):
        if isinstance(h, logging.NullHandler):
            logger.removeHandler(h)

    resolved = _parse_level(level)
    handler = logging.StreamHandler(stream)
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(fmt or _DEFAULT_FORMAT))

    logger.setLevel(resolved)
    logger.addHandler(handler)
    logger.propagate = False

    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)`` with a library-safe default handler."""

    pkg_logger = logging.getLogger(_PKG_LOGGER_NAME)
    if not _CONFIGURED and not pkg_logger.handlers:
        pkg_logger.addHandler(logging.NullHandler())
    return logging.getLogger(name)
