"""
ssml-studio structured logging.

    - Numeric log levels (1-4) for simple configuration
    - Colored console output
    - Rotating JSONL file output
    - Request id and editing session id correlation

Configuration:
    export SSML_STUDIO_LOG_LEVEL=3   # VERBOSE
    export SSML_STUDIO_NO_COLOR=1

    In settings.yaml:
        logging:
          level: 2
          log_dir: logs
          jsonl_file: ssml-studio.jsonl

Usage:
    from ssml_studio.core.logging import get_logger, info, verbose, fail

    log = get_logger("ssml-studio.compiler")
    info(log, "synth_start", chars=120, voice="zh-CN-XiaoxiaoNeural")
    verbose(log, "compiled", segments=3, seconds=0.002)
    fail(log, "synth_failed", error="401 Unauthorized")

Module Structure:
    - levels.py: LogLevel enum and stdlib mapping
    - colors.py: ANSI colors and terminal detection
    - context.py: Correlation ids and configuration state
    - formatters.py: JsonlFormatter and ColoredConsoleFormatter
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Optional

from .levels import LogLevel, LEVEL_MAP, LEVEL_NAMES, coerce_level
from .colors import Colors, supports_color, colorize, get_tag_color
from .context import (
    get_request_id,
    set_request_id,
    get_session_id,
    set_session_id,
    get_level,
    set_level,
    get_level_name,
    is_configured,
    set_configured,
    get_log_config,
    set_log_config,
    read_logging_config,
)
from .formatters import JsonlFormatter, ColoredConsoleFormatter

# Read by the formatters at call time; tests may flip it
_USE_COLORS = supports_color()


def configure_logging(level: Optional[int | str | LogLevel] = None, force: bool = False) -> None:
    """
    Install console and (optionally) JSONL file handlers on the root logger.

    Args:
        level: Log level (1-4, level name, or LogLevel). Defaults to the
            configured value, then NORMAL.
        force: Reconfigure even if logging is already set up.
    """
    global _USE_COLORS

    if is_configured() and not force:
        return

    _USE_COLORS = supports_color()

    log_config = read_logging_config()
    set_log_config(log_config)

    current_level = coerce_level(level if level is not None else log_config.get("level", LogLevel.NORMAL))
    set_level(current_level)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG - 10)
    root.handlers = []

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(LEVEL_MAP.get(current_level, logging.INFO))
    console.setFormatter(ColoredConsoleFormatter())
    root.addHandler(console)

    log_dir = log_config.get("log_dir")
    if log_dir:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            Path(log_dir) / str(log_config.get("jsonl_file", "ssml-studio.jsonl")),
            maxBytes=int(log_config.get("rotate_max_bytes", 10 * 1024 * 1024)),
            backupCount=int(log_config.get("rotate_backup_count", 5)),
            encoding="utf-8",
            delay=True,
        )
        file_handler.setLevel(logging.DEBUG - 10)
        file_handler.setFormatter(JsonlFormatter())
        root.addHandler(file_handler)

    set_configured(True)


def _log(
    logger: logging.Logger,
    level: int,
    tag: str,
    msg: str,
    numeric_level: int = 2,
    **fields: Any
) -> None:
    if numeric_level > get_level():
        return

    event = fields.pop("event", None)
    seconds = fields.pop("seconds", None)
    logger.log(
        level,
        msg,
        extra={
            "tag": tag,
            "request_id": get_request_id(),
            "session_id": get_session_id(),
            "event": event,
            "seconds": seconds,
            "extra_data": fields or None,
            "numeric_level": numeric_level,
        },
    )


def get_logger(name: str = "ssml-studio") -> logging.Logger:
    """Get a logger instance, configuring logging if needed."""
    configure_logging()
    return logging.getLogger(name)


def info(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Level 2 (NORMAL)."""
    _log(logger, logging.INFO, "INFO", msg, numeric_level=2, **fields)


def warn(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Level 2 (NORMAL)."""
    _log(logger, logging.WARNING, "WARN", msg, numeric_level=2, **fields)


def error(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Level 1 (MINIMAL)."""
    _log(logger, logging.ERROR, "ERROR", msg, numeric_level=1, **fields)


def success(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Level 2 (NORMAL)."""
    _log(logger, logging.INFO, "SUCCESS", msg, numeric_level=2, **fields)


def fail(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Level 1 (MINIMAL)."""
    _log(logger, logging.ERROR, "FAIL", msg, numeric_level=1, **fields)


def verbose(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Level 3 (VERBOSE)."""
    _log(logger, logging.DEBUG, "INFO", msg, numeric_level=3, **fields)


def debug(logger: logging.Logger, msg: str, **fields: Any) -> None:
    """Level 4 (DEBUG)."""
    _log(logger, logging.DEBUG, "DEBUG", msg, numeric_level=4, **fields)


__all__ = [
    "LogLevel",
    "LEVEL_MAP",
    "LEVEL_NAMES",
    "coerce_level",
    "Colors",
    "supports_color",
    "colorize",
    "get_tag_color",
    "get_request_id",
    "set_request_id",
    "get_session_id",
    "set_session_id",
    "get_level",
    "get_level_name",
    "JsonlFormatter",
    "ColoredConsoleFormatter",
    "configure_logging",
    "get_logger",
    "info",
    "warn",
    "error",
    "success",
    "fail",
    "verbose",
    "debug",
]
