"""Read the version of the source tree an installation was built from."""

from __future__ import annotations

import json
import re
import tomllib
from pathlib import Path

from ... import log
from .models import UNKNOWN_VERSION

_ASSIGNMENT_RE = re.compile(r'\bVersion\s*:?=\s*"(?P<value>[^"]*)"')


def _version_from_text(text: str) -> str | None:
    for line in text.splitlines():
        match = _ASSIGNMENT_RE.search(line)
        if match:
            return match.group("value")
    return None


def _version_from_toml(text: str) -> str | None:
    payload = tomllib.loads(text)
    project = payload.get("project")
    if isinstance(project, dict) and isinstance(project.get("version"), str):
        return project["version"]
    value = payload.get("version")
    return value if isinstance(value, str) else None


def _version_from_json(text: str) -> str | None:
    payload = json.loads(text)
    if not isinstance(payload, dict):
        return None
    value = payload.get("version")
    return value if isinstance(value, str) else None


def read_version(path: Path) -> str:
    """Return the version recorded in ``path``, or ``"unknown"``.

    ``.toml`` descriptors are read from ``[project].version``, ``.json``
    descriptors from a top-level ``"version"`` key, and any other file is
    scanned line by line for ``Version = "<value>"``. Never raises.

    Example:
        >>> read_version(Path("/nonexistent/version.go"))
        'unknown'
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        log.debug(f"version file unreadable: {path}")
        return UNKNOWN_VERSION

    suffix = path.suffix.lower()
    try:
        if suffix == ".toml":
            value = _version_from_toml(text)
        elif suffix == ".json":
            value = _version_from_json(text)
        else:
            value = _version_from_text(text)
    except (tomllib.TOMLDecodeError, json.JSONDecodeError):
        log.debug(f"version file malformed: {path}")
        return UNKNOWN_VERSION

    if not value or not value.strip():
        return UNKNOWN_VERSION
    return value.strip()
