# log.py
# SPDX-License-Identifier: MIT
"""Logging setup for the ``licensa`` logger hierarchy.

Library use stays silent: the package logger only carries a NullHandler
until :func:`configure_logging` (or ``LoggingConfig.apply``) attaches the one
stream handler licensa owns. Calling it again re-targets that handler
instead of stacking a second one, so repeated CLI invocations in one process
print each record once.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from typing import IO, Iterator

__all__ = [
    "PACKAGE_LOGGER_NAME",
    "DEFAULT_FORMAT",
    "resolve_level",
    "get_logger",
    "configure_logging",
    "temp_level",
]

PACKAGE_LOGGER_NAME = "licensa"
DEFAULT_FORMAT = "%(levelname)s %(name)s: %(message)s"

# Marks the handler configure_logging installed; handlers added by a host
# application are left alone.
_OWNED_ATTR = "_licensa_owned"

logging.getLogger(PACKAGE_LOGGER_NAME).addHandler(logging.NullHandler())


def resolve_level(level: int | str) -> int:
    """Translate ``"debug"``, ``"WARNING"``, ``"10"`` or ``10`` to a level number.

    Raises:
        ValueError: If ``level`` names no registered logging level.
    """
    if isinstance(level, int):
        return level
    text = str(level).strip()
    if text.isdigit():
        return int(text)
    value = logging.getLevelName(text.upper())
    if not isinstance(value, int):
        raise ValueError(f"unknown log level {level!r}")
    return value


def get_logger(name: str | None = None) -> logging.Logger:
    """Return ``name`` (usually a module ``__name__``) or the package logger."""
    return logging.getLogger(name or PACKAGE_LOGGER_NAME)


def _owned_handler(logger: logging.Logger) -> logging.StreamHandler | None:
    for handler in logger.handlers:
        if getattr(handler, _OWNED_ATTR, False):
            return handler  # type: ignore[return-value]
    return None


def configure_logging(
    *,
    level: int | str = logging.INFO,
    stream: IO[str] | None = None,
    fmt: str | None = None,
    datefmt: str | None = None,
    propagate: bool | None = None,
    logger_name: str = PACKAGE_LOGGER_NAME,
) -> logging.Logger:
    """Point licensa's stream handler at ``stream`` and set the level.

    Args:
        level (int | str): Level number or name; see :func:`resolve_level`.
        stream (IO[str] | None): Destination, ``sys.stderr`` when omitted.
            Looked up at call time so test capture of stderr is honored.
        fmt (str | None): Record format, :data:`DEFAULT_FORMAT` when omitted.
        datefmt (str | None): ``strftime`` format for ``%(asctime)s``.
        propagate (bool | None): Forward records to ancestor loggers. None
            leaves propagation on, which keeps pytest's ``caplog`` working.
        logger_name (str): Logger to configure.

    Returns:
        logging.Logger: The configured logger.

    Raises:
        ValueError: If ``level`` is not a known level.
    """
    logger = get_logger(logger_name)
    logger.setLevel(resolve_level(level))
    logger.propagate = True if propagate is None else bool(propagate)

    target = stream if stream is not None else sys.stderr
    formatter = logging.Formatter(fmt=fmt or DEFAULT_FORMAT, datefmt=datefmt)
    handler = _owned_handler(logger)
    if handler is None:
        handler = logging.StreamHandler(target)
        setattr(handler, _OWNED_ATTR, True)
        logger.addHandler(handler)
    elif handler.stream is not target:
        handler.setStream(target)
    handler.setFormatter(formatter)
    return logger


@contextmanager
def temp_level(level: int | str, name: str | None = None) -> Iterator[logging.Logger]:
    """Run a ``with`` block with a logger's level changed, then restore it."""
    logger = get_logger(name)
    previous = logger.level
    logger.setLevel(resolve_level(level))
    try:
        yield logger
    finally:
        logger.setLevel(previous)
