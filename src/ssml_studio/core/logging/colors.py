"""
ANSI colors for console log output.

Colors are off when stdout is not a TTY, when NO_COLOR is set
(https://no-color.org/), or when SSML_STUDIO_NO_COLOR=1.
"""
from __future__ import annotations

import os
import sys


class Colors:
    """ANSI escape sequences. Always close colored text with RESET."""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    MAGENTA = "\033[35m"
    CYAN = "\033[36m"
    WHITE = "\033[37m"
    GRAY = "\033[90m"

    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_CYAN = "\033[96m"


def supports_color() -> bool:
    """
    Decide whether console output should carry ANSI colors.

    On Windows this also switches the console into virtual terminal mode.
    """
    if os.getenv("SSML_STUDIO_NO_COLOR", "0") == "1":
        return False
    if os.getenv("NO_COLOR"):
        return False

    isatty = getattr(sys.stdout, "isatty", None)
    if isatty is None or not isatty():
        return False

    if sys.platform == "win32":
        try:
            import ctypes
            kernel32 = ctypes.windll.kernel32
            # STD_OUTPUT_HANDLE = -11, ENABLE_VIRTUAL_TERMINAL_PROCESSING included in 7
            kernel32.SetConsoleMode(kernel32.GetStdHandle(-11), 7)
            return True
        except Exception:
            return False

    return True


USE_COLORS = supports_color()


def colorize(text: str, color: str) -> str:
    """Wrap text in a color when colors are enabled."""
    if not USE_COLORS:
        return text
    return f"{color}{text}{Colors.RESET}"


_TAG_COLORS = {
    "SUCCESS": Colors.BRIGHT_GREEN,
    "FAIL": Colors.BRIGHT_RED,
    "ERROR": Colors.BRIGHT_RED,
    "WARN": Colors.BRIGHT_YELLOW,
    "WARNING": Colors.BRIGHT_YELLOW,
    "INFO": Colors.BRIGHT_CYAN,
    "DEBUG": Colors.GRAY,
    "TRACE": Colors.DIM,
}


def get_tag_color(tag: str) -> str:
    """Color for a log tag such as INFO or FAIL; WHITE for unknown tags."""
    return _TAG_COLORS.get(tag.upper(), Colors.WHITE)
