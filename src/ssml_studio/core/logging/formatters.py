"""
Log formatters for file and console output.

    JsonlFormatter: one JSON object per line, for the rotating log file
    ColoredConsoleFormatter: compact colored lines for the terminal

Output Examples:
    JSONL:
        {"ts":"2026-10-18T14:30:05+02:00","level":2,"tag":"INFO","message":"synth_done","request_id":"a1b2c3d4","session_id":"9f8e","seconds":0.82,"extra":{"bytes":20480}}

    Console:
        14:30:05 [ INFO  ] (a1b2c3d4|9f8e) synth_done 0.820s bytes=20480
"""
from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict

from .colors import Colors, get_tag_color


def _colorize(text: str, color: str) -> str:
    # Read the flag at call time; tests flip it on the package module
    import ssml_studio.core.logging as log_module
    if not getattr(log_module, "_USE_COLORS", False):
        return text
    return f"{color}{text}{Colors.RESET}"


class JsonlFormatter(logging.Formatter):
    """Format records as single-line JSON objects."""

    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created).astimezone().isoformat(),
            "level": getattr(record, "numeric_level", 2),
            "tag": getattr(record, "tag", record.levelname),
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
            "session_id": getattr(record, "session_id", "-"),
        }

        event = getattr(record, "event", None)
        if event:
            payload["event"] = event

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            payload["seconds"] = seconds

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            payload["extra"] = extra_data

        # Markup and voice names are often non-ASCII (zh-CN text)
        return json.dumps(payload, ensure_ascii=False, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """
    Format records as ``HH:MM:SS [ TAG ] (rid|sid) message 0.123s key=value``.

    The correlation block is left out when neither id is set.
    """

    def format(self, record: logging.LogRecord) -> str:
        ts = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        tag = getattr(record, "tag", record.levelname)
        rid = getattr(record, "request_id", "-")
        sid = getattr(record, "session_id", "-")

        parts = [
            _colorize(ts, Colors.DIM),
            _colorize(f"[{tag:^7}]", get_tag_color(tag)),
        ]

        if rid != "-" or sid != "-":
            ids = rid if sid == "-" else f"{rid}|{sid}"
            parts.append(_colorize(f"({ids})", Colors.DIM + Colors.CYAN))

        parts.append(record.getMessage())

        event = getattr(record, "event", None)
        if event:
            parts.append(_colorize(f"event={event}", Colors.BLUE))

        seconds = getattr(record, "seconds", None)
        if seconds is not None:
            if seconds < 0.1:
                time_color = Colors.GREEN
            elif seconds < 1.0:
                time_color = Colors.YELLOW
            else:
                time_color = Colors.RED
            parts.append(_colorize(f"{seconds:.3f}s", time_color))

        extra_data = getattr(record, "extra_data", None)
        if extra_data:
            for k, v in extra_data.items():
                parts.append(_colorize(f"{k}={v}", self._field_color(k, v)))

        return " ".join(parts)

    def _field_color(self, key: str, value: Any) -> str:
        """
        Highlight fields an operator scans for.

            - error / code: red
            - remaining quota: red when exhausted, yellow under 10%
            - voice / style: magenta
        """
        if key in ("error", "code"):
            return Colors.RED
        if key == "quota_left_pct" and isinstance(value, (int, float)):
            if value <= 0:
                return Colors.RED
            if value < 10:
                return Colors.YELLOW
            return Colors.GREEN
        if key in ("voice", "style"):
            return Colors.MAGENTA
        return Colors.DIM
