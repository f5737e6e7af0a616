"""Logger setup for the bridge: one rotating file, optional console, tagged records."""

from __future__ import annotations

import logging
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from b24_bridge.config import get_env, settings

LOGGER_NAME = "b24_bridge"
DEFAULT_MAX_BYTES = 2 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 5

# Module keyword -> tag shown in each record
TAG_MAP = {
    "token_refresher": "AUTH",
    "token_storage": "STORE",
    "rpc_client": "RPC",
    "installation": "INSTALL",
    "cli": "CLI",
}

_configured = False


class TaggedLogger(logging.LoggerAdapter):
    """Adds the adapter's ``tag`` to records that do not carry one."""

    def process(self, msg, kwargs):
        kwargs.setdefault("extra", {}).setdefault("tag", self.extra["tag"])
        return msg, kwargs


def configure_logging(*, log_path: Optional[Path] = None, force: bool = False) -> logging.Logger:
    """Attach the rotating file (and console) handlers once per process."""
    global _configured
    logger = logging.getLogger(LOGGER_NAME)
    if _configured and not force:
        return logger
    reset_logging()

    level = logging.getLevelName(str(get_env("B24_LOG_LEVEL", default="INFO")).upper())
    logger.setLevel(level if isinstance(level, int) else logging.INFO)

    formatter = logging.Formatter(
        "[%(asctime)s] [%(levelname)s] [%(tag)s] %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )
    formatter.converter = time.gmtime

    path = Path(log_path) if log_path is not None else settings.log_path
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            path, maxBytes=DEFAULT_MAX_BYTES, backupCount=DEFAULT_BACKUP_COUNT, encoding="utf-8"
        )
    except OSError as exc:
        logging.getLogger(__name__).warning("Cannot open log file %s: %s", path, exc)
    else:
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if get_env("B24_LOG_TO_CONSOLE", default=True):
        console = logging.StreamHandler()
        console.setFormatter(formatter)
        logger.addHandler(console)

    logger.propagate = False
    _configured = True
    return logger


def get_logger(tag: str) -> TaggedLogger:
    return TaggedLogger(configure_logging(), {"tag": tag})


def get_tag_for_module(module_name: str) -> str:
    """Infer a logging tag from the module name."""
    module_name = module_name.lower()
    for key, tag in TAG_MAP.items():
        if key in module_name:
            return tag
    return "GEN"


def reset_logging() -> None:
    """Tear down handlers so tests can reconfigure the logger cleanly."""
    global _configured
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    _configured = False
