"""Plain stdout/stderr output that bypasses log levels and styling."""

from __future__ import annotations

import sys
from typing import NoReturn


def say(message: str) -> None:
    """Write machine-readable or always-shown output to stdout.

    Example:
        >>> say('{"ok": true}')
        {"ok": true}
    """
    print(message)


def die(message: str, code: int = 1) -> NoReturn:
    """Report a fatal error on stderr and exit with ``code``."""
    print(f"error: {message}", file=sys.stderr)
    raise SystemExit(code)
