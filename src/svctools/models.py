"""Pydantic models for svctools configuration data."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

REPLACEMENT_STRATEGY_VALUES = ("auto", "immediate", "deferred")
ReplacementStrategy = Literal["auto", "immediate", "deferred"]

DEFAULT_DEPENDENCIES_COMMAND = (
    "{python}",
    "-m",
    "pip",
    "install",
    "--upgrade",
    "--target",
    "{deps_dir}",
    "{source}",
)
DEFAULT_COMPILE_COMMAND = (
    "{python}",
    "-m",
    "PyInstaller",
    "--onefile",
    "--noconfirm",
    "--name",
    "{output_name}",
    "--distpath",
    "{output_dir}",
    "--workpath",
    "{work_dir}",
    "--specpath",
    "{work_dir}",
    "--paths",
    "{deps_dir}",
    "{source}/src/svctools/__main__.py",
)


def _strip_or_default(value: object, default: str) -> object:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip() or default
    return value


class RemoteSection(BaseModel):
    """Git remote the installation tracks.

    Attributes:
        url: Remote URL registered when the install directory is not a repo.
        name: Remote name (default ``origin``).
        branch: Reference branch on the remote (default ``main``).

    Example:
        >>> RemoteSection(branch=" release ").branch
        'release'
    """

    model_config = ConfigDict(extra="allow")

    url: str = ""
    name: str = "origin"
    branch: str = "main"

    @field_validator("url", mode="before")
    @classmethod
    def normalize_url(cls, value: object) -> object:
        return _strip_or_default(value, "")

    @field_validator("name", mode="before")
    @classmethod
    def normalize_name(cls, value: object) -> object:
        return _strip_or_default(value, "origin")

    @field_validator("branch", mode="before")
    @classmethod
    def normalize_branch(cls, value: object) -> object:
        return _strip_or_default(value, "main")

    @property
    def tracking_ref(self) -> str:
        return f"{self.name}/{self.branch}"


class InstallSection(BaseModel):
    """Where the live executable and its source tree live.

    Attributes:
        executable: Explicit live executable path; detected when unset.
        source_dir: Source tree to sync and build; the executable's directory
            when unset.
        version_file: Version descriptor, relative to the source tree.
    """

    model_config = ConfigDict(extra="allow")

    executable: str | None = None
    source_dir: str | None = None
    version_file: str = "pyproject.toml"

    @field_validator("executable", "source_dir", mode="before")
    @classmethod
    def normalize_optional_path(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip() or None
        return value

    @field_validator("version_file", mode="before")
    @classmethod
    def normalize_version_file(cls, value: object) -> object:
        return _strip_or_default(value, "pyproject.toml")


class BuildSection(BaseModel):
    """Toolchain commands used to rebuild the executable.

    Both commands are argv lists; ``{python}``, ``{source}``, ``{output}``,
    ``{output_name}``, ``{output_dir}``, ``{work_dir}`` and ``{deps_dir}`` are
    substituted before execution. The default dependency step installs into
    ``{deps_dir}`` under the build directory and never into the environment
    svctools itself runs from.
    """

    model_config = ConfigDict(extra="allow")

    dependencies: list[str] = Field(
        default_factory=lambda: list(DEFAULT_DEPENDENCIES_COMMAND)
    )
    compile: list[str] = Field(default_factory=lambda: list(DEFAULT_COMPILE_COMMAND))
    timeout_seconds: float | None = None

    @field_validator("compile")
    @classmethod
    def require_compile(cls, value: list[str]) -> list[str]:
        if not value:
            raise ValueError("compile command must not be empty")
        return value


class ReplacementSection(BaseModel):
    """How the candidate replaces the live executable.

    Example:
        >>> ReplacementSection().strategy
        'auto'
    """

    model_config = ConfigDict(extra="allow")

    strategy: ReplacementStrategy = "auto"
    poll_interval_seconds: float = Field(default=1.0, gt=0)
    max_wait_seconds: float = Field(default=600.0, gt=0)

    @field_validator("strategy", mode="before")
    @classmethod
    def normalize_strategy(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower() or "auto"
        return value


class GitSection(BaseModel):
    """Git configuration.

    Attributes:
        path: Git executable path (default ``git``).

    Example:
        >>> GitSection(path=" ").path
        'git'
    """

    model_config = ConfigDict(extra="allow")

    path: str = "git"

    @field_validator("path", mode="before")
    @classmethod
    def normalize_path(cls, value: object) -> object:
        return _strip_or_default(value, "git")


class SvctoolsConfig(BaseModel):
    """Top-level svctools configuration file."""

    model_config = ConfigDict(extra="allow")

    remote: RemoteSection = Field(default_factory=RemoteSection)
    install: InstallSection = Field(default_factory=InstallSection)
    build: BuildSection = Field(default_factory=BuildSection)
    replacement: ReplacementSection = Field(default_factory=ReplacementSection)
    git: GitSection = Field(default_factory=GitSection)
