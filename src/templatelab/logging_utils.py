"""Logging setup shared by the sync daemon and the HTTP facade.

Each service writes to ``<log dir>/<service>.log`` plus stderr. The log
directory and level can be moved with ``TEMPLATELAB_LOG_DIR`` and
``TEMPLATELAB_LOG_LEVEL``.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional, Union

__all__ = ["configure_logging", "resolve_level"]

LOG_DIR_ENV = "TEMPLATELAB_LOG_DIR"
LOG_LEVEL_ENV = "TEMPLATELAB_LOG_LEVEL"

_MANAGED_HANDLER_FLAG = "_templatelab_managed_handler"

# Per-request chatter from the HTTP client stack.
_QUIET_LOGGERS = ("httpx", "httpcore")


def _default_log_directory() -> Path:
    env_override = os.environ.get(LOG_DIR_ENV)
    if env_override:
        return Path(env_override).expanduser()

    # Project root when running from a checkout, otherwise the working dir.
    for candidate in Path(__file__).resolve().parents:
        if (candidate / "pyproject.toml").exists():
            return candidate / "logs"
    return Path.cwd() / "logs"


def resolve_level(level: Union[int, str, None] = None) -> int:
    """Turn ``level`` (or ``TEMPLATELAB_LOG_LEVEL``) into a logging level.

    Unknown names fall back to INFO.
    """

    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV, logging.INFO)
    if isinstance(level, int):
        return level
    text = str(level).strip()
    if text.isdigit():
        return int(text)
    resolved = logging.getLevelName(text.upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def _remove_managed_handlers(logger: logging.Logger) -> None:
    for handler in list(logger.handlers):
        if getattr(handler, _MANAGED_HANDLER_FLAG, False):
            logger.removeHandler(handler)
            handler.close()


def _managed(handler: logging.Handler, level: int, formatter: logging.Formatter):
    handler.setLevel(level)
    handler.setFormatter(formatter)
    setattr(handler, _MANAGED_HANDLER_FLAG, True)
    return handler


def configure_logging(
    service: str,
    *,
    level: Union[int, str, None] = None,
    log_dir: Optional[Path] = None,
    include_console: bool = True,
) -> Path:
    """Route root logging to ``<log dir>/<service>.log``.

    Calling it again swaps out the handlers installed by the previous call,
    so a process that re-configures never writes to two files.
    """

    numeric_level = resolve_level(level)
    target_directory = (
        Path(log_dir).expanduser() if log_dir else _default_log_directory()
    )
    target_directory.mkdir(parents=True, exist_ok=True)
    log_path = target_directory / f"{service}.log"

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    _remove_managed_handlers(root_logger)

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    root_logger.addHandler(
        _managed(logging.FileHandler(log_path, encoding="utf-8"), numeric_level, formatter)
    )
    if include_console:
        root_logger.addHandler(
            _managed(logging.StreamHandler(), numeric_level, formatter)
        )

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))
    logging.captureWarnings(True)
    return log_path
