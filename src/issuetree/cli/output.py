"""Terminal output helpers for command results."""

import os
import sys
from typing import TextIO

from ..models import NodeStatus

# ANSI color codes
GREEN = "\033[32m"
YELLOW = "\033[33m"
BLUE = "\033[34m"
RED = "\033[31m"
DIM = "\033[2m"
RESET = "\033[0m"
CHECK = "\u2713"  # ✓
BULLET = "\u2022"  # •
CROSS = "\u2717"  # ✗
ARROW = "\u2192"  # →

_STATUS_MARKS: dict[NodeStatus, tuple[str, str]] = {
    NodeStatus.MUTATED: (CHECK, GREEN),
    NodeStatus.WOULD_CHANGE: (ARROW, BLUE),
    NodeStatus.UNCHANGED: (BULLET, DIM),
    NodeStatus.FAILED: (CROSS, RED),
    NodeStatus.SKIPPED_CYCLE: (BULLET, YELLOW),
    NodeStatus.SKIPPED_NOT_IN_PROJECT: (BULLET, YELLOW),
}


def _supports_color(stream: TextIO) -> bool:
    """Color only on a TTY, and never when NO_COLOR is set."""
    if os.environ.get("NO_COLOR"):
        return False
    return hasattr(stream, "isatty") and stream.isatty()


def _colorize(text: str, color: str, stream: TextIO | None = None) -> str:
    if _supports_color(stream or sys.stdout):
        return f"{color}{text}{RESET}"
    return text


def success(message: str) -> None:
    """Print success message with green checkmark."""
    print(f"{_colorize(CHECK, GREEN)} {message}")


def info(message: str) -> None:
    """Print info message with yellow bullet."""
    print(f"{_colorize(BULLET, YELLOW)} {message}")


def header(message: str) -> None:
    print(_colorize(message, BLUE))


def error(message: str) -> None:
    """Print error message with red cross to stderr."""
    print(f"{_colorize(CROSS, RED, sys.stderr)} {message}", file=sys.stderr)


def node_line(status: NodeStatus, text: str, indent: int = 0) -> None:
    """Print one traversal result, marked by its status."""
    mark, color = _STATUS_MARKS[status]
    print(f"{'  ' * indent}{_colorize(mark, color)} {text}")
