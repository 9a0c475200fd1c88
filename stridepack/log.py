"""Logging setup for stridepack.

All modules log through children of the ``stridepack`` logger so a caller
(or a test) can tune verbosity in one place.
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

LOGGER_NAME = "stridepack"

_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def get_logger(name: Optional[str] = None) -> logging.Logger:
    if not name or name == LOGGER_NAME:
        return logging.getLogger(LOGGER_NAME)
    if name.startswith(LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{LOGGER_NAME}.{name}")


def configure_logging(verbosity: int = 0, stream=None) -> logging.Logger:
    """
    0 -> WARNING, 1 -> INFO, 2+ -> DEBUG.
    Safe to call repeatedly; only one handler is ever installed.
    """
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING

    logger = get_logger()
    logger.setLevel(level)

    handler = None
    for h in logger.handlers:
        if getattr(h, "_stridepack_handler", False):
            handler = h
            break

    if handler is None:
        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT, datefmt="%H:%M:%S"))
        handler._stridepack_handler = True  # type: ignore[attr-defined]
        logger.addHandler(handler)

    handler.setLevel(level)
    logger.propagate = False
    return logger


def section(title: str) -> None:
    get_logger().info("== %s ==", title)


def step(message: str, *args) -> None:
    get_logger().info("-> " + message, *args)
