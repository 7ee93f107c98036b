"""Rebuild the executable from the synchronized source tree."""

from __future__ import annotations

import shutil
import sys
from pathlib import Path

from ... import exec as exec_util
from ... import log
from ...models import BuildSection
from ...paths import InstallLayout
from ..errors import BuildFailedError
from .models import UNKNOWN_VERSION, CandidateBinary


def default_python() -> str:
    """Return an interpreter for toolchain commands.

    A frozen executable cannot run ``-m pip``, so frozen builds look for a
    Python on ``PATH`` instead of using ``sys.executable``.
    """
    if not getattr(sys, "frozen", False):
        return sys.executable
    return shutil.which("python3") or shutil.which("python") or "python"


def render_command(template: list[str], values: dict[str, str]) -> tuple[str, ...]:
    """Substitute ``{name}`` placeholders in each argv entry.

    Example:
        >>> render_command(["{python}", "-m", "pip"], {"python": "py"})
        ('py', '-m', 'pip')
    """
    rendered: list[str] = []
    for part in template:
        try:
            rendered.append(part.format(**values))
        except (KeyError, IndexError, ValueError) as exc:
            raise BuildFailedError(
                f"invalid build command template: {part!r}",
                recovery_hint="check build.dependencies and build.compile in the config",
            ) from exc
    return tuple(rendered)


class BuildPipeline:
    """Run the dependency and compile steps into the staging path."""

    def __init__(
        self,
        layout: InstallLayout,
        build: BuildSection,
        *,
        runner: exec_util.CommandRunner | None = None,
        python: str | None = None,
    ) -> None:
        self._layout = layout
        self._build = build
        self._runner = runner
        self._python = python or default_python()

    def _placeholders(self, source_dir: Path) -> dict[str, str]:
        layout = self._layout
        return {
            "python": self._python,
            "source": str(source_dir),
            "output": str(layout.staging_path),
            "output_name": layout.staging_stem,
            "output_dir": str(layout.staging_path.parent),
            "work_dir": str(layout.build_dir),
            "deps_dir": str(layout.deps_dir),
        }

    def _discard_staging(self) -> None:
        staging = self._layout.staging_path
        try:
            staging.unlink(missing_ok=True)
        except OSError as exc:
            log.warning(f"could not remove partial build at {staging}: {exc}")

    def _run_step(self, name: str, argv: tuple[str, ...], source_dir: Path) -> None:
        request = exec_util.CommandRequest(
            argv=argv, cwd=source_dir, timeout_seconds=self._build.timeout_seconds
        )
        log.debug(f"build {name}: {request.command_line}")
        result = exec_util.execute(request, runner=self._runner)
        if result.missing:
            raise BuildFailedError(f"{name} step failed: {result.stderr}")
        if not result.ok:
            raise BuildFailedError(
                f"{name} step failed",
                detail=result.output or exec_util.failure_detail(request, result),
            )

    def build(self, source_dir: Path, *, version: str = UNKNOWN_VERSION) -> CandidateBinary:
        """Produce a candidate executable at the staging path.

        Raises:
            BuildFailedError: Either step exited non-zero or the compile step
                left no file behind. No partial candidate is left in place.
        """
        staging = self._layout.staging_path
        values = self._placeholders(source_dir)
        self._discard_staging()
        try:
            if self._build.dependencies:
                log.step("Installing dependencies...")
                self._run_step(
                    "dependency", render_command(self._build.dependencies, values), source_dir
                )
            log.step("Building new version...")
            self._run_step("compile", render_command(self._build.compile, values), source_dir)
        except BuildFailedError:
            self._discard_staging()
            raise

        if not staging.is_file():
            raise BuildFailedError(
                f"compile step did not produce {staging}",
                recovery_hint="make build.compile write to the {output} path",
            )
        return CandidateBinary(path=staging, version=version)
