"""Configuration helpers for svctools.

This module reads and writes ``config.json``, validates it with Pydantic
models, and layers ``SVCTOOLS_*`` environment overrides on top.

Example:
    >>> from pathlib import Path
    >>> resolved = load_config(Path("/nonexistent/config.json"), environ={})
    >>> resolved.config.remote.branch
    'main'
    >>> resolved.sources["remote.branch"]
    'default'
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from pydantic import BaseModel, ValidationError

from . import paths
from .io import die
from .models import SvctoolsConfig
from .services.errors import NotUpgradableError

ENV_OVERRIDES: tuple[tuple[str, str, str], ...] = (
    ("SVCTOOLS_REMOTE_URL", "remote", "url"),
    ("SVCTOOLS_REMOTE_NAME", "remote", "name"),
    ("SVCTOOLS_REMOTE_BRANCH", "remote", "branch"),
    ("SVCTOOLS_EXECUTABLE", "install", "executable"),
    ("SVCTOOLS_SOURCE_DIR", "install", "source_dir"),
    ("SVCTOOLS_VERSION_FILE", "install", "version_file"),
    ("SVCTOOLS_REPLACEMENT_STRATEGY", "replacement", "strategy"),
    ("SVCTOOLS_GIT_PATH", "git", "path"),
)

SOURCE_DEFAULT = "default"
SOURCE_FILE = "config file"


@dataclass(frozen=True)
class ResolvedConfig:
    """Validated configuration plus where each setting came from."""

    config: SvctoolsConfig
    sources: dict[str, str]
    path: Path


def load_json(path: Path) -> dict | None:
    """Load a JSON file if it exists.

    Args:
        path: Path to the JSON file.

    Returns:
        Parsed payload as a dict, or ``None`` if the file does not exist.

    Example:
        >>> load_json(Path("missing.json")) is None
        True
    """
    if not path.exists():
        return None
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def write_json(path: Path, payload: dict | BaseModel) -> None:
    """Write a JSON payload to disk.

    Args:
        path: Path to the JSON file to write.
        payload: Dict or Pydantic model to serialize.
    """
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json")
    with path.open("w", encoding="utf-8") as fh:
        json.dump(payload, fh, indent=2)
        fh.write("\n")


def parse_config(payload: dict, source: Path | str | None = None) -> SvctoolsConfig:
    """Validate a config payload, exiting with the validation error on failure."""
    try:
        return SvctoolsConfig.model_validate(payload)
    except ValidationError as exc:
        location = f" at {source}" if source else ""
        die(f"invalid svctools config{location}:\n{exc}")


def _flatten_keys(payload: dict) -> set[str]:
    keys: set[str] = set()
    for section, values in payload.items():
        if isinstance(values, dict):
            keys.update(f"{section}.{name}" for name in values)
    return keys


def load_config(
    path: Path | None = None, *, environ: Mapping[str, str] | None = None
) -> ResolvedConfig:
    """Load the config file and apply environment overrides.

    Args:
        path: Config file path; defaults to the user data directory.
        environ: Environment mapping; defaults to ``os.environ``.

    Returns:
        ``ResolvedConfig`` with the validated model and per-setting sources.
    """
    config_file = path or paths.config_path()
    env = os.environ if environ is None else environ
    try:
        raw = load_json(config_file) or {}
    except json.JSONDecodeError as exc:
        die(f"invalid svctools config at {config_file}: {exc}")
    if not isinstance(raw, dict):
        die(f"invalid svctools config at {config_file}: expected a JSON object")

    file_keys = _flatten_keys(raw)
    payload = {key: dict(value) if isinstance(value, dict) else value for key, value in raw.items()}
    env_sources: dict[str, str] = {}
    for env_name, section, field in ENV_OVERRIDES:
        value = env.get(env_name, "").strip()
        if not value:
            continue
        section_payload = payload.setdefault(section, {})
        if not isinstance(section_payload, dict):
            continue
        section_payload[field] = value
        env_sources[f"{section}.{field}"] = f"env {env_name}"

    parsed = parse_config(payload, config_file)
    sources: dict[str, str] = {}
    for key in _setting_keys(parsed):
        if key in env_sources:
            sources[key] = env_sources[key]
        elif key in file_keys:
            sources[key] = SOURCE_FILE
        else:
            sources[key] = SOURCE_DEFAULT
    return ResolvedConfig(config=parsed, sources=sources, path=config_file)


def write_config(path: Path, payload: SvctoolsConfig) -> None:
    """Persist a config model, creating the parent directory."""
    paths.ensure_dir(path.parent)
    write_json(path, payload)


def _setting_keys(config: SvctoolsConfig) -> list[str]:
    keys: list[str] = []
    for section, values in config.model_dump(mode="json").items():
        if isinstance(values, dict):
            keys.extend(f"{section}.{name}" for name in values)
    return keys


def setting_rows(resolved: ResolvedConfig) -> list[tuple[str, str, str]]:
    """Return ``(setting, value, source)`` rows for display."""
    rows: list[tuple[str, str, str]] = []
    dumped = resolved.config.model_dump(mode="json")
    for key in _setting_keys(resolved.config):
        section, name = key.split(".", 1)
        value = dumped[section][name]
        if isinstance(value, list):
            text = " ".join(str(item) for item in value)
        elif value is None:
            text = ""
        else:
            text = str(value)
        rows.append((key, text, resolved.sources.get(key, SOURCE_DEFAULT)))
    return rows


def resolve_layout(
    config: SvctoolsConfig, *, executable: Path | None = None
) -> paths.InstallLayout:
    """Build the install layout from config, falling back to the running binary.

    Raises:
        NotUpgradableError: No executable is configured and svctools runs
            from Python source, so there is no binary to replace.
    """
    if config.install.executable:
        live_path = Path(config.install.executable).expanduser().resolve()
    elif executable is not None:
        live_path = executable
    else:
        running = paths.running_executable()
        if running is None:
            raise NotUpgradableError(
                "cannot tell which svctools executable to replace when running from source",
                recovery_hint="set install.executable in the svctools config "
                "or SVCTOOLS_EXECUTABLE",
            )
        live_path = running
    source_dir = None
    if config.install.source_dir:
        source_dir = Path(config.install.source_dir).expanduser().resolve()
    return paths.InstallLayout(live_path=live_path, source_dir=source_dir)


def resolve_version_file(config: SvctoolsConfig, layout: paths.InstallLayout) -> Path:
    """Return the absolute version descriptor path."""
    version_file = Path(config.install.version_file).expanduser()
    if version_file.is_absolute():
        return version_file
    return layout.source_root / version_file
