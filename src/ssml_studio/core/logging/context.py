"""
Correlation context and configuration state for logging.

Two context variables tag every log line:
    - request_id: set per HTTP request by the API middleware
    - session_id: set while an editing session handles an operation

Both default to "-" outside of a request or session. Context variables
are async-safe, so concurrent requests never see each other's ids.

Environment Variables:
    - SSML_STUDIO_SETTINGS: Settings file to read the logging section from
    - SSML_STUDIO_LOG_LEVEL: Override log level (1-4 or name)
    - SSML_STUDIO_LOG_DIR: Directory for the JSONL log file
    - SSML_STUDIO_JSONL_FILE: JSONL filename
    - SSML_STUDIO_LOG_ROTATE_BYTES: Max file size before rotation
    - SSML_STUDIO_LOG_ROTATE_BACKUP: Rotated files to keep
"""
from __future__ import annotations

import os
from contextvars import ContextVar
from typing import Any, Dict

import yaml

from .levels import LEVEL_NAMES, LogLevel

_request_id: ContextVar[str] = ContextVar("request_id", default="-")
_session_id: ContextVar[str] = ContextVar("session_id", default="-")

_configured: bool = False
_log_config: Dict[str, Any] = {}
_current_level: LogLevel = LogLevel.NORMAL


def get_request_id() -> str:
    return _request_id.get()


def set_request_id(rid: str) -> None:
    """Set the request id for log lines emitted in the current context."""
    _request_id.set(rid)


def get_session_id() -> str:
    return _session_id.get()


def set_session_id(sid: str) -> None:
    """Set the editing session id for log lines emitted in the current context."""
    _session_id.set(sid)


def get_level() -> LogLevel:
    return _current_level


def set_level(level: LogLevel) -> None:
    global _current_level
    _current_level = level


def get_level_name() -> str:
    return LEVEL_NAMES.get(_current_level, "NORMAL")


def is_configured() -> bool:
    return _configured


def set_configured(value: bool) -> None:
    global _configured
    _configured = value


def get_log_config() -> Dict[str, Any]:
    return _log_config


def set_log_config(config: Dict[str, Any]) -> None:
    global _log_config
    _log_config = config


def _int_env(name: str) -> int | None:
    raw = os.getenv(name)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def read_logging_config() -> Dict[str, Any]:
    """
    Resolve logging configuration.

    Priority (highest first): environment variables, the ``logging``
    section of the settings file, built-in defaults. A missing settings
    file is not an error here; logging must come up before config does.

    Returns:
        Dictionary with keys such as level, log_dir, jsonl_file,
        rotate_max_bytes and rotate_backup_count.
    """
    from ssml_studio.core.config import load_settings

    cfg: Dict[str, Any] = {}

    settings_path = os.getenv("SSML_STUDIO_SETTINGS", "config/settings.yaml")
    try:
        settings = load_settings(settings_path)
        cfg.update(settings.raw.get("logging", {}) or {})
    except (OSError, yaml.YAMLError):
        pass

    if os.getenv("SSML_STUDIO_LOG_LEVEL"):
        cfg["level"] = os.environ["SSML_STUDIO_LOG_LEVEL"]
    if os.getenv("SSML_STUDIO_LOG_DIR"):
        cfg["log_dir"] = os.environ["SSML_STUDIO_LOG_DIR"]
    if os.getenv("SSML_STUDIO_JSONL_FILE"):
        cfg["jsonl_file"] = os.environ["SSML_STUDIO_JSONL_FILE"]

    rotate_bytes = _int_env("SSML_STUDIO_LOG_ROTATE_BYTES")
    if rotate_bytes is not None:
        cfg["rotate_max_bytes"] = rotate_bytes
    rotate_backup = _int_env("SSML_STUDIO_LOG_ROTATE_BACKUP")
    if rotate_backup is not None:
        cfg["rotate_backup_count"] = rotate_backup

    return cfg
