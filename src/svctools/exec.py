"""Running the external tools svctools depends on.

Git and the build toolchain run to completion with captured output through a
``CommandRunner``; the replacement helper is started through a
``DetachedLauncher`` and left running after svctools exits. Both seams are
protocols so tests can script them.
"""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Protocol

MISSING_COMMAND_RETURNCODE = 127
TIMEOUT_RETURNCODE = 124


@dataclass(frozen=True)
class CommandRequest:
    argv: tuple[str, ...]
    cwd: Path | None = None
    env: Mapping[str, str] | None = None
    timeout_seconds: float | None = None

    @property
    def command_line(self) -> str:
        return " ".join(self.argv)


@dataclass(frozen=True)
class CommandResult:
    argv: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    @property
    def missing(self) -> bool:
        return self.returncode == MISSING_COMMAND_RETURNCODE

    @property
    def output(self) -> str:
        """Stdout then stderr, trimmed, the way a terminal would show them.

        Example:
            >>> CommandResult(("git",), 1, " fetching\\n", "fatal: no remote\\n").output
            'fetching\\nfatal: no remote'
        """
        return "\n".join(part.strip() for part in (self.stdout, self.stderr) if part.strip())


class CommandRunner(Protocol):
    def run(self, request: CommandRequest) -> CommandResult | None:
        """Run ``request``; return ``None`` when its executable does not exist."""
        ...


def _text(stream: object) -> str:
    return stream if isinstance(stream, str) else ""


class SubprocessCommandRunner:
    def run(self, request: CommandRequest) -> CommandResult | None:
        try:
            completed = subprocess.run(
                list(request.argv),
                cwd=request.cwd,
                env=request.env,
                capture_output=True,
                text=True,
                timeout=request.timeout_seconds,
                check=False,
            )
        except FileNotFoundError:
            return None
        except subprocess.TimeoutExpired as exc:
            return CommandResult(
                argv=request.argv,
                returncode=TIMEOUT_RETURNCODE,
                stdout=_text(exc.stdout),
                stderr=_text(exc.stderr),
                timed_out=True,
            )
        return CommandResult(
            argv=request.argv,
            returncode=completed.returncode,
            stdout=_text(completed.stdout),
            stderr=_text(completed.stderr),
        )


_default_runner: CommandRunner = SubprocessCommandRunner()


def execute(request: CommandRequest, *, runner: CommandRunner | None = None) -> CommandResult:
    """Run ``request`` and always hand back a result.

    A missing executable becomes a failed result with exit code 127 and a
    ``missing required command`` message on stderr.
    """
    result = (runner or _default_runner).run(request)
    if result is not None:
        return result
    name = request.argv[0] if request.argv else ""
    return CommandResult(
        argv=request.argv,
        returncode=MISSING_COMMAND_RETURNCODE,
        stdout="",
        stderr=f"missing required command: {name}".rstrip(": "),
    )


def failure_detail(request: CommandRequest, result: CommandResult) -> str:
    """Describe a failed command for ``ServiceFailure.detail``."""
    if result.timed_out:
        return f"command timed out: {request.command_line}"
    if result.output:
        return f"command failed: {request.command_line}\n{result.output}"
    return f"command failed: {request.command_line}"


class DetachedLauncher(Protocol):
    def launch(self, argv: tuple[str, ...], *, cwd: Path | None = None) -> None: ...


def detached_popen_kwargs() -> dict[str, Any]:
    """Popen options that keep a child alive and silent after we exit."""
    kwargs: dict[str, Any] = {
        "stdin": subprocess.DEVNULL,
        "stdout": subprocess.DEVNULL,
        "stderr": subprocess.DEVNULL,
        "close_fds": True,
    }
    if os.name == "nt":  # pragma: no cover - Windows only
        kwargs["creationflags"] = (
            getattr(subprocess, "DETACHED_PROCESS", 0)
            | getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0)
            | getattr(subprocess, "CREATE_NO_WINDOW", 0)
        )
    else:
        kwargs["start_new_session"] = True
    return kwargs


class SubprocessDetachedLauncher:
    def launch(self, argv: tuple[str, ...], *, cwd: Path | None = None) -> None:
        try:
            subprocess.Popen(list(argv), cwd=cwd, **detached_popen_kwargs())
        except FileNotFoundError as exc:
            raise OSError(f"missing required command: {argv[0]}") from exc
