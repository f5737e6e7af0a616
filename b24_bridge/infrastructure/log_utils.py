"""Helpers for writing tagged bridge logs."""

from __future__ import annotations

import inspect
import logging
from typing import Dict

from b24_bridge.logging_setup import get_logger, get_tag_for_module

_LEVEL_MAP: Dict[str, int] = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "WARN": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def log_message(msg: str, level: str = "INFO", tag: str | None = None, **kwargs) -> None:
    """
    Log a message to the rotating bridge log with optional tagging.

    Extra keyword arguments (``exc_info`` and friends) are forwarded to
    :meth:`logging.Logger.log`.
    """
    if tag is None:
        frame = inspect.stack()[1]
        module = inspect.getmodule(frame[0])
        tag = get_tag_for_module(getattr(module, "__name__", "unknown"))

    logger = get_logger(tag)

    numeric_level = _LEVEL_MAP.get(str(level).upper())
    if numeric_level is None:
        logger.warning(
            "Received unknown log level '%s'; defaulting to INFO. Message: %s",
            level,
            msg,
        )
        numeric_level = logging.INFO

    logger.log(numeric_level, msg, **kwargs)


def mask_token(value: str | None, visible: int = 5) -> str:
    """Return a printable prefix of a credential, never the whole value."""
    if not value:
        return "<none>"
    return f"{value[:visible]}..."

