"""Leveled, colorized terminal output for svctools commands.

Progress lines are yellow, successes green with a check mark, warnings
yellow on stderr and errors bold red on stderr. ``SVCTOOLS_LOG_LEVEL`` and
``--log-level`` pick the threshold; ``NO_COLOR``, ``SVCTOOLS_NO_COLOR`` and
``--no-color`` turn styling off.
"""

from __future__ import annotations

import os
import sys
from enum import IntEnum

from rich.console import Console
from rich.text import Text


class LogLevel(IntEnum):
    TRACE = 10
    DEBUG = 20
    INFO = 30
    SUCCESS = 35
    WARNING = 40
    ERROR = 50


LEVEL_NAMES = ("trace", "debug", "info", "success", "warning", "error")

_LEVEL_BY_NAME = {name: LogLevel[name.upper()] for name in LEVEL_NAMES}
_LEVEL_BY_NAME["warn"] = LogLevel.WARNING
_STYLES = {
    LogLevel.TRACE: "dim",
    LogLevel.DEBUG: "cyan",
    LogLevel.INFO: "",
    LogLevel.SUCCESS: "green",
    LogLevel.WARNING: "yellow",
    LogLevel.ERROR: "bold red",
}
_PREFIXES = {LogLevel.SUCCESS: "✓ "}
STEP_STYLE = "yellow"
HEADING_STYLE = "cyan"
DEFAULT_LEVEL = LogLevel.INFO

_configured_level: LogLevel | None = None
_no_color_override: bool | None = None


def parse_level(value: str | None) -> LogLevel:
    """Map a level name to ``LogLevel``; unknown or empty names mean info.

    Example:
        >>> parse_level(" Warn ")
        <LogLevel.WARNING: 40>
        >>> parse_level("loud")
        <LogLevel.INFO: 30>
    """
    if not value or not value.strip():
        return DEFAULT_LEVEL
    return _LEVEL_BY_NAME.get(value.strip().lower(), DEFAULT_LEVEL)


def configured_level() -> LogLevel:
    global _configured_level
    if _configured_level is None:
        _configured_level = parse_level(os.environ.get("SVCTOOLS_LOG_LEVEL"))
    return _configured_level


def set_level(value: str | None) -> None:
    global _configured_level
    _configured_level = parse_level(value)


def set_no_color(value: bool) -> None:
    global _no_color_override
    _no_color_override = value


def no_color() -> bool:
    if _no_color_override:
        return True
    return bool(os.environ.get("NO_COLOR") or os.environ.get("SVCTOOLS_NO_COLOR"))


def is_enabled(level: LogLevel) -> bool:
    return level >= configured_level()


def emit(level: LogLevel, message: str, *, style: str | None = None) -> None:
    """Print ``message`` if ``level`` passes the threshold.

    Warnings and errors go to stderr so piped stdout stays clean.
    """
    if not is_enabled(level):
        return
    console = Console(
        file=sys.stderr if level >= LogLevel.WARNING else sys.stdout,
        soft_wrap=True,
        highlight=False,
        no_color=no_color(),
    )
    prefix = _PREFIXES.get(level, "")
    console.print(Text(f"{prefix}{message}", style=_STYLES[level] if style is None else style))


def trace(message: str) -> None:
    emit(LogLevel.TRACE, message)


def debug(message: str) -> None:
    emit(LogLevel.DEBUG, message)


def info(message: str) -> None:
    emit(LogLevel.INFO, message)


def step(message: str) -> None:
    """Announce a stage of a long-running operation."""
    emit(LogLevel.INFO, message, style=STEP_STYLE)


def heading(message: str) -> None:
    emit(LogLevel.INFO, message, style=HEADING_STYLE)


def success(message: str) -> None:
    emit(LogLevel.SUCCESS, message)


def warning(message: str) -> None:
    emit(LogLevel.WARNING, message)


def error(message: str) -> None:
    emit(LogLevel.ERROR, message)


def output(text: str, *, level: LogLevel = LogLevel.INFO) -> None:
    """Relay captured tool output line by line, unstyled."""
    for line in text.splitlines():
        emit(level, line, style="")
