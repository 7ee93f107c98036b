"""Promote a candidate executable onto the live path."""

from __future__ import annotations

import datetime as dt
import os
import shutil
import sys
from typing import Callable

from ... import exec as exec_util
from ... import log
from ...models import ReplacementSection
from ...paths import InstallLayout
from ..errors import BackupFailedError, SwapFailedError
from . import pending
from .helper_script import render_helper
from .models import CandidateBinary, PendingUpdate, ReplacementPlan, Strategy, SwapResult


def select_plan(platform: str | None = None, strategy: str = "auto") -> ReplacementPlan:
    """Choose how to replace the live executable.

    Example:
        >>> select_plan("win32").strategy.value
        'deferred'
        >>> select_plan("linux").strategy.value
        'immediate'
        >>> select_plan("linux", "deferred").reason
        'forced by replacement.strategy'
    """
    if strategy == Strategy.IMMEDIATE.value:
        return ReplacementPlan(Strategy.IMMEDIATE, "forced by replacement.strategy")
    if strategy == Strategy.DEFERRED.value:
        return ReplacementPlan(Strategy.DEFERRED, "forced by replacement.strategy")
    platform = platform or sys.platform
    if platform == "win32":
        return ReplacementPlan(
            Strategy.DEFERRED, "a running executable cannot be replaced on Windows"
        )
    return ReplacementPlan(Strategy.IMMEDIATE, "the live path can be renamed over in place")


def _remove(path: os.PathLike[str] | str, what: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        return
    except OSError as exc:
        log.warning(f"could not remove {what} at {path}: {exc}")


class ReplacementCoordinator:
    """Back up the live executable and swap the candidate in."""

    def __init__(
        self,
        layout: InstallLayout,
        replacement: ReplacementSection | None = None,
        *,
        launcher: exec_util.DetachedLauncher | None = None,
        clock: Callable[[], dt.datetime] = pending.utc_now,
        platform: str | None = None,
    ) -> None:
        self._layout = layout
        self._replacement = replacement or ReplacementSection()
        self._launcher = launcher or exec_util.SubprocessDetachedLauncher()
        self._clock = clock
        self._platform = platform or sys.platform

    def plan(self) -> ReplacementPlan:
        return select_plan(self._platform, self._replacement.strategy)

    def backup(self) -> None:
        """Copy the live executable to the backup path.

        Raises:
            BackupFailedError: The copy failed; nothing has been replaced.
        """
        live = self._layout.live_path
        target = self._layout.backup_path
        if not live.is_file():
            raise BackupFailedError(
                f"live executable not found at {live}",
                recovery_hint="set install.executable in the svctools config",
            )
        try:
            shutil.copy2(live, target)
        except OSError as exc:
            _remove(target, "partial backup")
            raise BackupFailedError(
                f"failed to back up {live}: {exc}",
                recovery_hint=f"check that {target.parent} is writable",
            ) from exc
        log.debug(f"backed up {live} to {target}")

    def discard(self, candidate: CandidateBinary) -> None:
        _remove(candidate.path, "candidate executable")

    def swap(self, candidate: CandidateBinary, plan: ReplacementPlan) -> SwapResult:
        """Replace the live executable with ``candidate`` according to ``plan``.

        Raises:
            SwapFailedError: The immediate rename failed (the live path is
                restored from the backup) or the deferred helper could not be
                started (the live path is untouched).
        """
        if plan.strategy is Strategy.DEFERRED:
            return self._swap_deferred(candidate)
        return self._swap_immediate(candidate)

    def _swap_immediate(self, candidate: CandidateBinary) -> SwapResult:
        live = self._layout.live_path
        backup = self._layout.backup_path
        try:
            os.replace(candidate.path, live)
        except OSError as exc:
            log.error(f"Failed to replace {live}: {exc}")
            restored = True
            try:
                os.replace(backup, live)
            except OSError as restore_exc:
                restored = False
                log.error(f"Failed to restore {live} from backup: {restore_exc}")
            self.discard(candidate)
            hint = None if restored else f"copy {backup} over {live} by hand"
            raise SwapFailedError(
                f"failed to replace the live executable at {live}",
                detail=str(exc),
                recovery_hint=hint,
            ) from exc
        _remove(backup, "backup")
        return SwapResult(strategy=Strategy.IMMEDIATE, staged=False)

    def _swap_deferred(self, candidate: CandidateBinary) -> SwapResult:
        layout = self._layout
        helper = render_helper(layout, self._replacement, windows=self._platform == "win32")
        marker = PendingUpdate(
            status="pending",
            version=candidate.version,
            created_at=self._clock().isoformat(),
            live_path=str(layout.live_path),
            candidate_path=str(candidate.path),
            backup_path=str(layout.backup_path),
            helper_path=str(helper.path),
            max_wait_seconds=self._replacement.max_wait_seconds,
        )
        try:
            helper.path.write_text(helper.content, encoding="utf-8")
            pending.write_pending(layout.pending_marker_path, marker)
            log.debug(f"launching update helper: {' '.join(helper.argv)}")
            self._launcher.launch(helper.argv, cwd=layout.install_dir)
        except OSError as exc:
            pending.clear_pending(layout.pending_marker_path)
            _remove(helper.path, "update helper")
            _remove(layout.backup_path, "backup")
            self.discard(candidate)
            raise SwapFailedError(
                "failed to start the update helper",
                detail=str(exc),
                recovery_hint=f"check that {helper.argv[0]} can be started",
            ) from exc
        return SwapResult(strategy=Strategy.DEFERRED, staged=True, helper_path=helper.path)


__all__ = ["ReplacementCoordinator", "select_plan"]
