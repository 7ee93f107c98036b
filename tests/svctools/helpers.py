# ruff: noqa: E402

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[2]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from svctools import exec as exec_util


class ScriptedRunner:
    """Command runner that answers from canned results keyed by argv.

    Repeated answers for the same argv are consumed in order; the last one
    is reused once the queue runs dry. Unknown commands succeed silently.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, ...]] = []
        self.requests: list[exec_util.CommandRequest] = []
        self._responses: dict[tuple[str, ...], list[tuple[int, str, str]]] = {}
        self._missing: set[str] = set()

    def add(
        self, *argv: str, returncode: int = 0, stdout: str = "", stderr: str = ""
    ) -> "ScriptedRunner":
        self._responses.setdefault(tuple(argv), []).append((returncode, stdout, stderr))
        return self

    def missing(self, executable: str) -> "ScriptedRunner":
        self._missing.add(executable)
        return self

    def run(self, request: exec_util.CommandRequest) -> exec_util.CommandResult | None:
        self.calls.append(request.argv)
        self.requests.append(request)
        if request.argv and request.argv[0] in self._missing:
            return None
        queue = self._responses.get(request.argv)
        returncode, stdout, stderr = 0, "", ""
        if queue:
            returncode, stdout, stderr = queue[0]
            if len(queue) > 1:
                queue.pop(0)
        return exec_util.CommandResult(
            argv=request.argv, returncode=returncode, stdout=stdout, stderr=stderr
        )

    def called(self, *argv: str) -> bool:
        return tuple(argv) in self.calls


class RecordingLauncher:
    def __init__(self, error: OSError | None = None) -> None:
        self.launched: list[tuple[tuple[str, ...], Path | None]] = []
        self._error = error

    def launch(self, argv: tuple[str, ...], *, cwd: Path | None = None) -> None:
        if self._error is not None:
            raise self._error
        self.launched.append((argv, cwd))
