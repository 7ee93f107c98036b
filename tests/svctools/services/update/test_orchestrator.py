from __future__ import annotations

import datetime as dt
import os
from pathlib import Path

import pytest

from svctools.models import SvctoolsConfig
from svctools.paths import InstallLayout
from svctools.services.errors import (
    BuildFailedError,
    NotUpgradableError,
    RemoteUnavailableError,
    StashRestoreFailedError,
    SyncFailedError,
    UpdatePendingError,
)
from svctools.services.update import pending
from svctools.services.update.models import (
    CandidateBinary,
    CheckStatus,
    IntegrateResult,
    PendingUpdate,
    RemoteComparison,
    StashResult,
    Strategy,
    UpdateOptions,
    UpdateOutcome,
    UpdateState,
)
from svctools.services.update.orchestrator import UpdateOrchestrator
from svctools.services.update.replace import ReplacementCoordinator
from tests.svctools.helpers import RecordingLauncher, ScriptedRunner

NOW = dt.datetime(2026, 7, 4, 10, 0, tzinfo=dt.timezone.utc)


def write_version(root: Path, value: str) -> None:
    (root / "pyproject.toml").write_text(
        f'[project]\nname = "svctools"\nversion = "{value}"\n', encoding="utf-8"
    )


class FakeSync:
    def __init__(self, repo_dir: Path) -> None:
        self.repo_dir = repo_dir
        self.tracking_ref = "origin/main"
        self.tracked = True
        self.ensure_warnings: list[str] = []
        self.ensure_error: Exception | None = None
        self.fetch_error: Exception | None = None
        self.comparison = RemoteComparison(ahead=0, behind=1, incoming=("b1 fix",))
        self.heads = ["aaa", "bbb"]
        self.stash_created = True
        self.integrate_error: Exception | None = None
        self.conflict = False
        self.remote_version: str | None = "1.1.0"
        self.restore_error: Exception | None = None
        self.calls: list[str] = []

    def is_tracked(self) -> bool:
        self.calls.append("is_tracked")
        return self.tracked

    def ensure_repository(self) -> list[str]:
        self.calls.append("ensure_repository")
        if self.ensure_error:
            raise self.ensure_error
        return list(self.ensure_warnings)

    def fetch(self) -> None:
        self.calls.append("fetch")
        if self.fetch_error:
            raise self.fetch_error

    def compare(self) -> RemoteComparison:
        self.calls.append("compare")
        return self.comparison

    def head(self) -> str | None:
        if len(self.heads) > 1 and "integrate" in self.calls:
            return self.heads[1]
        return self.heads[0]

    def stash(self) -> StashResult:
        self.calls.append("stash")
        return StashResult(created=self.stash_created, label="Auto-stash before update")

    def integrate(self) -> IntegrateResult:
        self.calls.append("integrate")
        if self.integrate_error:
            raise self.integrate_error
        if self.remote_version is not None:
            write_version(self.repo_dir, self.remote_version)
        return IntegrateResult(conflict=self.conflict, changed=True)

    def restore_stash(self, label: str | None = None) -> str:
        self.calls.append("restore_stash")
        if self.restore_error:
            raise self.restore_error
        return ""


class FakeBuilder:
    def __init__(self, layout: InstallLayout, error: Exception | None = None) -> None:
        self.layout = layout
        self.error = error
        self.builds = 0

    def build(self, source_dir: Path, *, version: str = "unknown") -> CandidateBinary:
        del source_dir
        self.builds += 1
        if self.error:
            raise self.error
        self.layout.staging_path.write_bytes(b"new build")
        return CandidateBinary(path=self.layout.staging_path, version=version)


class Harness:
    def __init__(self, root: Path, *, platform: str = "linux") -> None:
        self.root = root
        self.layout = InstallLayout(live_path=root / "svctools")
        self.layout.live_path.write_bytes(b"old build")
        write_version(root, "1.0.0")
        self.sync = FakeSync(root)
        self.builder = FakeBuilder(self.layout)
        self.launcher = RecordingLauncher()
        self.runner = ScriptedRunner().add(
            "git", "log", "--oneline", "--max-count=5", "aaa..HEAD", stdout="bbb fix crash\n"
        )
        self.platform = platform

    def orchestrator(self) -> UpdateOrchestrator:
        config = SvctoolsConfig()
        replacer = ReplacementCoordinator(
            self.layout,
            config.replacement,
            launcher=self.launcher,
            clock=lambda: NOW,
            platform=self.platform,
        )
        return UpdateOrchestrator(
            self.layout,
            config,
            sync=self.sync,  # type: ignore[arg-type]
            builder=self.builder,  # type: ignore[arg-type]
            replacer=replacer,
            runner=self.runner,
            clock=lambda: NOW,
        )


@pytest.fixture
def harness(tmp_path: Path) -> Harness:
    return Harness(tmp_path)


def test_already_current_skips_without_touching_tree(harness: Harness) -> None:
    harness.sync.comparison = RemoteComparison(ahead=0, behind=0)

    session = harness.orchestrator().run(UpdateOptions())

    assert session.outcome is UpdateOutcome.SKIPPED
    assert session.state is UpdateState.SKIPPED
    assert session.messages == ["Already up to date!"]
    assert "stash" not in harness.sync.calls
    assert harness.builder.builds == 0
    assert harness.layout.live_path.read_bytes() == b"old build"


def test_check_only_options_are_refused_before_any_git_work(harness: Harness) -> None:
    with pytest.raises(ValueError, match=r"check\(\)"):
        harness.orchestrator().run(UpdateOptions(check_only=True))

    assert harness.sync.calls == []
    assert harness.builder.builds == 0
    assert harness.layout.live_path.read_bytes() == b"old build"


def test_new_version_is_built_and_swapped(harness: Harness) -> None:
    session = harness.orchestrator().run(UpdateOptions())

    assert session.outcome is UpdateOutcome.COMPLETED
    assert session.previous_version == "1.0.0"
    assert session.new_version == "1.1.0"
    assert session.swap is not None and session.swap.strategy is Strategy.IMMEDIATE
    assert session.messages == ["Update completed successfully! (1.0.0 -> 1.1.0)"]
    assert session.changelog == ("bbb fix crash",)
    assert harness.layout.live_path.read_bytes() == b"new build"
    assert not harness.layout.backup_path.exists()
    assert harness.sync.calls.count("restore_stash") == 1
    assert session.stash_restore_attempts == 1


def test_unchanged_version_after_pull_skips(harness: Harness) -> None:
    harness.sync.remote_version = "1.0.0"

    session = harness.orchestrator().run(UpdateOptions())

    assert session.outcome is UpdateOutcome.SKIPPED
    assert harness.builder.builds == 0
    assert harness.sync.calls.count("restore_stash") == 1


def test_unknown_versions_rebuild_when_head_moved(harness: Harness) -> None:
    (harness.root / "pyproject.toml").unlink()
    harness.sync.remote_version = None

    session = harness.orchestrator().run(UpdateOptions())

    assert session.previous_version == session.new_version == "unknown"
    assert session.outcome is UpdateOutcome.COMPLETED
    assert session.messages == ["Update completed successfully!"]


def test_unknown_versions_skip_when_head_did_not_move(harness: Harness) -> None:
    (harness.root / "pyproject.toml").unlink()
    harness.sync.remote_version = None
    harness.sync.heads = ["aaa"]

    session = harness.orchestrator().run(UpdateOptions())

    assert session.outcome is UpdateOutcome.SKIPPED
    assert harness.builder.builds == 0


def test_force_rebuilds_when_current(harness: Harness) -> None:
    harness.sync.comparison = RemoteComparison(ahead=0, behind=0)
    harness.sync.remote_version = "1.0.0"
    harness.sync.heads = ["aaa"]

    session = harness.orchestrator().run(UpdateOptions(force=True))

    assert session.outcome is UpdateOutcome.COMPLETED
    assert session.force is True
    assert harness.builder.builds == 1
    assert session.changelog == ()


def test_build_failure_rolls_back_and_restores_stash(harness: Harness) -> None:
    harness.builder.error = BuildFailedError("compile step failed", detail="syntax error")

    session = harness.orchestrator().run(UpdateOptions())

    assert session.outcome is UpdateOutcome.ROLLED_BACK
    assert session.state is UpdateState.ROLLED_BACK
    assert session.failure is not None and session.failure.code == "build_failed"
    assert harness.layout.live_path.read_bytes() == b"old build"
    assert not harness.layout.backup_path.exists()
    assert harness.sync.calls.count("restore_stash") == 1


def test_sync_failure_rolls_back_and_restores_stash(harness: Harness) -> None:
    harness.sync.integrate_error = SyncFailedError("failed to pull origin/main")

    session = harness.orchestrator().run(UpdateOptions())

    assert session.outcome is UpdateOutcome.ROLLED_BACK
    assert session.failure is not None and session.failure.code == "sync_failed"
    assert harness.builder.builds == 0
    assert harness.sync.calls.count("restore_stash") == 1


def test_no_stash_means_no_restore(harness: Harness) -> None:
    harness.sync.stash_created = False

    session = harness.orchestrator().run(UpdateOptions())

    assert session.outcome is UpdateOutcome.COMPLETED
    assert "restore_stash" not in harness.sync.calls
    assert session.stash_restore_attempts == 0


def test_fetch_failure_raises_before_any_mutation(harness: Harness) -> None:
    harness.sync.fetch_error = RemoteUnavailableError("failed to fetch updates from 'origin'")

    with pytest.raises(RemoteUnavailableError):
        harness.orchestrator().run(UpdateOptions())

    assert "stash" not in harness.sync.calls
    assert harness.builder.builds == 0


def test_stash_restore_failure_is_a_warning(harness: Harness) -> None:
    harness.sync.restore_error = StashRestoreFailedError("could not restore local changes")

    session = harness.orchestrator().run(UpdateOptions())

    assert session.outcome is UpdateOutcome.COMPLETED
    assert session.warnings == ["could not restore local changes; changes remain in the stash"]


def test_conflict_is_recorded_as_warning(harness: Harness) -> None:
    harness.sync.conflict = True

    session = harness.orchestrator().run(UpdateOptions())

    assert session.conflict is True
    assert session.outcome is UpdateOutcome.COMPLETED
    assert any("remote version" in warning for warning in session.warnings)


def test_untrackable_directory_falls_back_to_self_update(harness: Harness) -> None:
    harness.sync.ensure_error = NotUpgradableError("not a git repository")

    session = harness.orchestrator().run(UpdateOptions())

    assert session.outcome is UpdateOutcome.COMPLETED
    assert "fetch" not in harness.sync.calls
    assert "stash" not in harness.sync.calls
    assert harness.builder.builds == 1
    assert harness.layout.live_path.read_bytes() == b"new build"


def test_self_update_rebuilds_without_sync(harness: Harness) -> None:
    session = harness.orchestrator().self_update()

    assert session.outcome is UpdateOutcome.COMPLETED
    assert session.previous_version == session.new_version == "1.0.0"
    assert harness.sync.calls == []


def test_swap_failure_restores_live_executable(
    harness: Harness, monkeypatch: pytest.MonkeyPatch
) -> None:
    real_replace = os.replace

    def flaky_replace(src: os.PathLike[str], dst: os.PathLike[str]) -> None:
        if Path(src) == harness.layout.staging_path:
            raise PermissionError("busy")
        real_replace(src, dst)

    monkeypatch.setattr("svctools.services.update.replace.os.replace", flaky_replace)

    session = harness.orchestrator().run(UpdateOptions())

    assert session.outcome is UpdateOutcome.ROLLED_BACK
    assert session.failure is not None and session.failure.code == "swap_failed"
    assert harness.layout.live_path.read_bytes() == b"old build"
    assert harness.sync.calls.count("restore_stash") == 1


def test_backup_failure_discards_candidate(harness: Harness) -> None:
    harness.layout.live_path.unlink()

    session = harness.orchestrator().run(UpdateOptions())

    assert session.outcome is UpdateOutcome.ROLLED_BACK
    assert session.failure is not None and session.failure.code == "backup_failed"
    assert not harness.layout.staging_path.exists()


def test_deferred_swap_on_windows(tmp_path: Path) -> None:
    harness = Harness(tmp_path, platform="win32")

    session = harness.orchestrator().run(UpdateOptions())

    assert session.outcome is UpdateOutcome.COMPLETED
    assert session.swap is not None and session.swap.staged is True
    assert session.messages == [
        "Update staged; it takes effect the next time svctools starts."
    ]
    assert harness.layout.live_path.read_bytes() == b"old build"
    assert harness.layout.pending_marker_path.exists()
    assert len(harness.launcher.launched) == 1


def test_fresh_pending_marker_blocks_update(harness: Harness) -> None:
    pending.write_pending(
        harness.layout.pending_marker_path,
        PendingUpdate(
            version="1.1.0",
            created_at=NOW.isoformat(),
            live_path=str(harness.layout.live_path),
            candidate_path=str(harness.layout.staging_path),
            backup_path=str(harness.layout.backup_path),
            helper_path=str(harness.root / "update_svctools.sh"),
            max_wait_seconds=600,
        ),
    )

    with pytest.raises(UpdatePendingError):
        harness.orchestrator().run(UpdateOptions())

    assert harness.sync.calls == []


def test_failed_marker_is_reported_then_update_proceeds(harness: Harness) -> None:
    pending.write_pending(
        harness.layout.pending_marker_path,
        PendingUpdate(
            status="failed",
            version="1.0.5",
            created_at=NOW.isoformat(),
            live_path=str(harness.layout.live_path),
            candidate_path=str(harness.layout.staging_path),
            backup_path=str(harness.layout.backup_path),
            helper_path=str(harness.root / "update_svctools.sh"),
            max_wait_seconds=600,
            reason="timed out waiting for svctools to exit",
        ),
    )

    session = harness.orchestrator().run(UpdateOptions())

    assert session.outcome is UpdateOutcome.COMPLETED
    assert any("1.0.5" in warning for warning in session.warnings)
    assert not harness.layout.pending_marker_path.exists()


@pytest.mark.parametrize(
    ("comparison", "expected"),
    [
        (RemoteComparison(ahead=0, behind=0), CheckStatus.UP_TO_DATE),
        (RemoteComparison(ahead=2, behind=0), CheckStatus.UP_TO_DATE),
        (RemoteComparison(ahead=0, behind=3, incoming=("c1 a",)), CheckStatus.UPDATE_AVAILABLE),
        (RemoteComparison(ahead=1, behind=1), CheckStatus.DIVERGED),
    ],
)
def test_check_reports_status_without_syncing(
    harness: Harness, comparison: RemoteComparison, expected: CheckStatus
) -> None:
    harness.sync.comparison = comparison

    report = harness.orchestrator().check()

    assert report.status is expected
    assert report.current_version == "1.0.0"
    assert report.comparison == comparison
    assert "stash" not in harness.sync.calls
    assert "integrate" not in harness.sync.calls


def test_check_on_untracked_directory(harness: Harness) -> None:
    harness.sync.tracked = False

    report = harness.orchestrator().check()

    assert report.status is CheckStatus.NOT_TRACKED
    assert "fetch" not in harness.sync.calls
