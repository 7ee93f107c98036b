# ruff: noqa: E402

import builtins
import sys
from pathlib import Path

import pytest
from _pytest.doctest import DoctestModule

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import svctools.config as config
import svctools.log as svctools_log

DOCTEST_MODULES = {
    ROOT / "src" / "svctools" / "__init__.py",
    ROOT / "src" / "svctools" / "config.py",
    ROOT / "src" / "svctools" / "exec.py",
    ROOT / "src" / "svctools" / "git.py",
    ROOT / "src" / "svctools" / "io.py",
    ROOT / "src" / "svctools" / "log.py",
    ROOT / "src" / "svctools" / "models.py",
    ROOT / "src" / "svctools" / "paths.py",
    ROOT / "src" / "svctools" / "services" / "update" / "build.py",
    ROOT / "src" / "svctools" / "services" / "update" / "helper_script.py",
    ROOT / "src" / "svctools" / "services" / "update" / "models.py",
    ROOT / "src" / "svctools" / "services" / "update" / "pending.py",
    ROOT / "src" / "svctools" / "services" / "update" / "replace.py",
    ROOT / "src" / "svctools" / "services" / "update" / "version_probe.py",
}


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for env_name, _section, _field in config.ENV_OVERRIDES:
        monkeypatch.delenv(env_name, raising=False)
    for env_name in ("SVCTOOLS_LOG_LEVEL", "SVCTOOLS_NO_COLOR", "NO_COLOR", "FORCE_COLOR"):
        monkeypatch.delenv(env_name, raising=False)
    monkeypatch.setattr(svctools_log, "_configured_level", None)
    monkeypatch.setattr(svctools_log, "_no_color_override", None)

    def fail_input(prompt: str = "") -> str:
        raise AssertionError("prompted unexpectedly")

    monkeypatch.setattr(builtins, "input", fail_input)


def pytest_collect_file(
    parent: pytest.Collector, file_path: Path
) -> DoctestModule | None:
    path = file_path if isinstance(file_path, Path) else Path(str(file_path))
    if path in DOCTEST_MODULES:
        return DoctestModule.from_parent(parent, path=path)
    return None
