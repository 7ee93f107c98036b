"""Path helpers for locating svctools data files and the live installation."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from pathlib import Path

from platformdirs import user_data_dir

SVCTOOLS_APP_NAME = "svctools"
CONFIG_FILENAME = "config.json"
BUILD_DIRNAME = ".svctools-build"
DEPS_DIRNAME = "deps"
STAGING_INFIX = ".new"
BACKUP_SUFFIX = ".backup"
OLD_SUFFIX = ".old"
PENDING_MARKER_SUFFIX = ".update-pending.json"
HELPER_SCRIPT_PREFIX = "update_"
SOURCE_SUFFIXES = frozenset({".py", ".pyw", ".pyc"})


def svctools_data_dir() -> Path:
    """Return the base svctools data directory.

    Returns:
        Path to the user data directory for svctools.

    Example:
        >>> isinstance(svctools_data_dir(), Path)
        True
    """
    return Path(user_data_dir(SVCTOOLS_APP_NAME))


def config_path() -> Path:
    """Return the path to the user configuration file.

    Example:
        >>> config_path().name == CONFIG_FILENAME
        True
    """
    return svctools_data_dir() / CONFIG_FILENAME


def ensure_dir(path: Path) -> None:
    """Create ``path`` and its parents if missing."""
    path.mkdir(parents=True, exist_ok=True)


def running_executable() -> Path | None:
    """Return the executable backing the current process.

    Frozen builds report themselves through ``sys.executable``; a console
    script launched through an interpreter is identified by ``argv[0]``.
    Runs straight from Python source (``python -m svctools``, ``python -c``
    or a ``.py`` script) have no binary to replace and return ``None``.
    """
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve()
    launcher = sys.argv[0] if sys.argv else ""
    if launcher in {"", "-c", "-m"} or Path(launcher).suffix.lower() in SOURCE_SUFFIXES:
        return None
    return Path(launcher).resolve()


@dataclass(frozen=True)
class InstallLayout:
    """Well-known files around the live executable.

    Example:
        >>> layout = InstallLayout(live_path=Path("/opt/svctools/svctools.exe"))
        >>> layout.staging_path.name, layout.backup_path.name
        ('svctools.new.exe', 'svctools.exe.backup')
        >>> layout.process_name
        'svctools'
    """

    live_path: Path
    source_dir: Path | None = None

    @property
    def install_dir(self) -> Path:
        return self.live_path.parent

    @property
    def source_root(self) -> Path:
        return self.source_dir if self.source_dir is not None else self.install_dir

    @property
    def executable_suffix(self) -> str:
        suffix = self.live_path.suffix
        return suffix if suffix.lower() == ".exe" else ""

    @property
    def process_name(self) -> str:
        """Process-table name of the live executable, without ``.exe``."""
        name = self.live_path.name
        suffix = self.executable_suffix
        return name[: -len(suffix)] if suffix else name

    @property
    def staging_stem(self) -> str:
        return f"{self.process_name}{STAGING_INFIX}"

    @property
    def staging_path(self) -> Path:
        return self.install_dir / f"{self.staging_stem}{self.executable_suffix}"

    @property
    def backup_path(self) -> Path:
        return self.live_path.with_name(f"{self.live_path.name}{BACKUP_SUFFIX}")

    @property
    def old_path(self) -> Path:
        return self.live_path.with_name(f"{self.live_path.name}{OLD_SUFFIX}")

    @property
    def pending_marker_path(self) -> Path:
        return self.live_path.with_name(f"{self.live_path.name}{PENDING_MARKER_SUFFIX}")

    @property
    def build_dir(self) -> Path:
        return self.install_dir / BUILD_DIRNAME

    @property
    def deps_dir(self) -> Path:
        return self.build_dir / DEPS_DIRNAME

    def helper_script_path(self, extension: str) -> Path:
        return self.install_dir / f"{HELPER_SCRIPT_PREFIX}{self.process_name}{extension}"
