"""Synchronize the installation's working tree with its git remote."""

from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Callable

from ... import exec as exec_util
from ... import git, log
from ...models import GitSection, RemoteSection
from ..errors import (
    NotUpgradableError,
    RemoteUnavailableError,
    StashRestoreFailedError,
    SyncFailedError,
)
from .models import IntegrateResult, RemoteComparison, StashResult

_NO_LOCAL_CHANGES = "no local changes to save"
_CONFLICT_MARKERS = ("conflict", "unmerged")


def _stash_label(now: dt.datetime) -> str:
    return f"Auto-stash before update at {now.strftime('%Y-%m-%d %H:%M:%S')}"


class RemoteSyncEngine:
    """Git operations behind an update, with the remote-wins conflict policy."""

    def __init__(
        self,
        repo_dir: Path,
        remote: RemoteSection,
        *,
        git_config: GitSection | None = None,
        runner: exec_util.CommandRunner | None = None,
        clock: Callable[[], dt.datetime] = dt.datetime.now,
    ) -> None:
        self._repo_dir = repo_dir
        self._remote = remote
        self._git_path = (git_config or GitSection()).path
        self._runner = runner
        self._clock = clock

    @property
    def repo_dir(self) -> Path:
        return self._repo_dir

    @property
    def tracking_ref(self) -> str:
        return self._remote.tracking_ref

    def _git(self, *args: str) -> exec_util.CommandResult:
        return git.run_git(
            list(args), repo_dir=self._repo_dir, runner=self._runner, git_path=self._git_path
        )

    def is_tracked(self) -> bool:
        return git.is_work_tree(self._repo_dir, runner=self._runner, git_path=self._git_path)

    def ensure_repository(self) -> list[str]:
        """Make sure the install directory is a work tree with the remote registered.

        Returns:
            Warnings worth showing the user.

        Raises:
            NotUpgradableError: The directory cannot be turned into a tracked
                working tree.
        """
        warnings: list[str] = []
        if self.is_tracked():
            configured = self._remote.url
            actual = git.remote_url(
                self._repo_dir, self._remote.name, runner=self._runner, git_path=self._git_path
            )
            if actual is None:
                if not configured:
                    raise NotUpgradableError(
                        f"repository has no '{self._remote.name}' remote",
                        recovery_hint="set remote.url in the svctools config",
                    )
                added = self._git("remote", "add", self._remote.name, configured)
                if not added.ok:
                    raise NotUpgradableError(
                        f"failed to register remote '{self._remote.name}'",
                        detail=added.output,
                    )
            elif configured and git.remote_identity(actual) != git.remote_identity(
                configured
            ):
                warnings.append(
                    f"remote '{self._remote.name}' points at {actual}, "
                    f"not the configured {configured}"
                )
            return warnings

        if not self._remote.url:
            raise NotUpgradableError(
                f"{self._repo_dir} is not a git repository and no remote URL is configured",
                recovery_hint=f"git clone <repository-url> {self._repo_dir}",
            )
        log.step("Initializing git repository...")
        initialized = self._git("init")
        if not initialized.ok:
            raise NotUpgradableError(
                f"failed to initialize a git repository in {self._repo_dir}",
                detail=initialized.output,
            )
        added = self._git("remote", "add", self._remote.name, self._remote.url)
        if not added.ok and "already exists" not in added.output:
            raise NotUpgradableError(
                f"failed to register remote '{self._remote.name}'", detail=added.output
            )
        fetched = self._git("fetch", self._remote.name)
        if not fetched.ok:
            warnings.append(f"initial fetch from '{self._remote.name}' failed")
        return warnings

    def fetch(self) -> None:
        """Retrieve remote history without merging.

        Raises:
            RemoteUnavailableError: The remote could not be reached.
        """
        result = self._git("fetch", self._remote.name)
        if not result.ok:
            raise RemoteUnavailableError(
                f"failed to fetch updates from '{self._remote.name}'",
                detail=result.output,
                recovery_hint="check your network connection and the remote URL",
            )

    def compare(self) -> RemoteComparison:
        """Compare ``HEAD`` with the remote branch without touching the tree.

        Raises:
            RemoteUnavailableError: The remote branch does not exist locally
                after fetching.
        """
        counts = git.ahead_behind(
            self._repo_dir, self.tracking_ref, runner=self._runner, git_path=self._git_path
        )
        if counts is None:
            raise RemoteUnavailableError(
                f"remote branch {self.tracking_ref} is not available",
                recovery_hint="check remote.branch in the svctools config",
            )
        ahead, behind = counts
        incoming: tuple[str, ...] = ()
        if behind:
            revision_range = self.tracking_ref
            if self.head() is not None:
                revision_range = f"HEAD..{self.tracking_ref}"
            incoming = tuple(
                git.log_oneline(
                    self._repo_dir,
                    revision_range,
                    runner=self._runner,
                    git_path=self._git_path,
                )
            )
        return RemoteComparison(ahead=ahead, behind=behind, incoming=incoming)

    def head(self) -> str | None:
        return git.rev_parse(self._repo_dir, "HEAD", runner=self._runner, git_path=self._git_path)

    def stash(self) -> StashResult:
        """Snapshot uncommitted changes under a timestamped label.

        A failing stash is not fatal: the update proceeds without a stash and
        nothing is restored later.
        """
        label = _stash_label(self._clock())
        result = self._git("stash", "push", "-m", label)
        if not result.ok:
            log.warning(f"could not stash local changes: {result.output or 'git stash failed'}")
            return StashResult(created=False, label=label)
        if _NO_LOCAL_CHANGES in result.output.lower():
            return StashResult(created=False, label=label)
        return StashResult(created=True, label=label)

    def integrate(self) -> IntegrateResult:
        """Pull the remote branch; on conflict, hard-reset to it.

        Raises:
            SyncFailedError: The pull failed for a reason other than a
                conflict, or the hard reset failed.
        """
        before = self.head()
        pulled = self._git(
            "pull", "--no-rebase", "--no-edit", self._remote.name, self._remote.branch
        )
        if pulled.ok:
            return IntegrateResult(
                conflict=False, changed=self.head() != before, output=pulled.output
            )

        lowered = pulled.output.lower()
        if not any(marker in lowered for marker in _CONFLICT_MARKERS):
            raise SyncFailedError(
                f"failed to pull {self.tracking_ref}",
                detail=pulled.output,
            )

        log.warning("Merge conflicts detected; resetting to the remote version.")
        self._git("merge", "--abort")
        reset = self._git("reset", "--hard", self.tracking_ref)
        if not reset.ok:
            raise SyncFailedError(
                f"failed to reset to {self.tracking_ref} after a merge conflict",
                detail=reset.output,
            )
        return IntegrateResult(conflict=True, changed=self.head() != before, output=pulled.output)

    def restore_stash(self, label: str | None = None) -> str:
        """Reapply the most recent stash.

        Raises:
            StashRestoreFailedError: ``git stash pop`` failed; the stash entry
                is left in place.
        """
        result = self._git("stash", "pop")
        if not result.ok:
            name = f" ('{label}')" if label else ""
            raise StashRestoreFailedError(
                f"could not restore local changes{name}",
                detail=result.output,
                recovery_hint="your changes are saved in git stash; run 'git stash list'",
            )
        return result.output
