"""Drive a self-update from version check through replacement.

The orchestrator owns the update state machine. Failures before the working
tree is touched (fetch, a staged update still pending) propagate as
``ServiceFailure``; failures after the stash is taken end the session in
``ROLLED_BACK`` with the failure recorded, after local changes are put back.
"""

from __future__ import annotations

import datetime as dt
from typing import Callable

from ... import exec as exec_util
from ... import git, log
from ...config import resolve_version_file
from ...models import SvctoolsConfig
from ...paths import InstallLayout
from ..errors import (
    BackupFailedError,
    BuildFailedError,
    NotUpgradableError,
    ServiceFailure,
    StashRestoreFailedError,
    SwapFailedError,
    SyncFailedError,
)
from . import pending
from .build import BuildPipeline
from .models import (
    UNKNOWN_VERSION,
    CheckReport,
    CheckStatus,
    Strategy,
    UpdateOptions,
    UpdateOutcome,
    UpdateSession,
    UpdateState,
)
from .replace import ReplacementCoordinator
from .sync import RemoteSyncEngine
from .version_probe import read_version

CHANGELOG_MAX_COUNT = 5


class UpdateOrchestrator:
    """Run the update pipeline for one installation."""

    def __init__(
        self,
        layout: InstallLayout,
        config: SvctoolsConfig,
        *,
        sync: RemoteSyncEngine | None = None,
        builder: BuildPipeline | None = None,
        replacer: ReplacementCoordinator | None = None,
        runner: exec_util.CommandRunner | None = None,
        clock: Callable[[], dt.datetime] = pending.utc_now,
    ) -> None:
        self._layout = layout
        self._config = config
        self._runner = runner
        self._clock = clock
        self._version_file = resolve_version_file(config, layout)
        self._sync = sync or RemoteSyncEngine(
            layout.source_root, config.remote, git_config=config.git, runner=runner
        )
        self._builder = builder or BuildPipeline(layout, config.build, runner=runner)
        self._replacer = replacer or ReplacementCoordinator(
            layout, config.replacement, clock=clock
        )

    def current_version(self) -> str:
        return read_version(self._version_file)

    def run(self, options: UpdateOptions) -> UpdateSession:
        """Synchronize, rebuild and replace the live executable.

        Check-only invocations go through ``check()`` instead.

        Raises:
            ValueError: ``options.check_only`` is set.
            RemoteUnavailableError: Fetching failed; nothing was changed.
            UpdatePendingError: An earlier staged update has not been applied.
        """
        if options.check_only:
            raise ValueError("check-only updates must use UpdateOrchestrator.check()")
        session = UpdateSession(force=options.force)
        self._reconcile_pending(session)

        try:
            for warning in self._sync.ensure_repository():
                self._warn(warning, session)
        except NotUpgradableError as exc:
            self._warn(f"{exc.message}; rebuilding in place without syncing", session)
            return self._self_update(session)

        session.state = UpdateState.CHECKING_VERSION
        session.previous_version = self.current_version()
        log.info(f"Current version: {session.previous_version}")

        session.state = UpdateState.SYNCING
        log.step("Checking for updates...")
        self._sync.fetch()
        comparison = self._sync.compare()
        if comparison.current and not options.force:
            session.new_version = session.previous_version
            return self._finish(session, UpdateOutcome.SKIPPED, "Already up to date!")

        head_before = self._sync.head()
        stash = self._sync.stash()
        session.stashed = stash.created
        session.stash_label = stash.label if stash.created else None
        if stash.created:
            log.step("Stashed local changes.")

        try:
            log.step("Pulling latest changes...")
            try:
                integrated = self._sync.integrate()
            except SyncFailedError as exc:
                return self._roll_back(session, exc)
            session.conflict = integrated.conflict
            if integrated.conflict:
                self._warn("merge conflicts were resolved by taking the remote version", session)

            session.new_version = self.current_version()
            if not options.force and self._versions_match(session, head_before):
                return self._finish(session, UpdateOutcome.SKIPPED, "Already up to date!")
            if session.new_version != session.previous_version:
                log.info(f"Updating from {session.previous_version} to {session.new_version}")
            session.changelog = self._changelog(head_before)
            return self._build_and_swap(session)
        finally:
            self._restore_stash(session)

    def self_update(self) -> UpdateSession:
        """Rebuild from the current source tree and replace the executable.

        Used when the install directory cannot track the remote: no sync
        and no stash, but the same backup and rollback rules as ``run``.
        """
        session = UpdateSession(force=True)
        self._reconcile_pending(session)
        return self._self_update(session)

    def check(self) -> CheckReport:
        """Report whether the remote has changes, without modifying anything."""
        version = self.current_version()
        if not self._sync.is_tracked():
            return CheckReport(
                status=CheckStatus.NOT_TRACKED,
                current_version=version,
                message=f"{self._sync.repo_dir} is not a git repository",
            )
        self._sync.fetch()
        comparison = self._sync.compare()
        if comparison.current:
            message = "Already up to date!"
            if comparison.ahead:
                message = f"Up to date; {comparison.ahead} local commit(s) not on the remote"
            return CheckReport(CheckStatus.UP_TO_DATE, version, comparison, message)
        if comparison.ahead:
            return CheckReport(
                CheckStatus.DIVERGED,
                version,
                comparison,
                f"{comparison.ahead} local and {comparison.behind} remote commit(s) differ",
            )
        return CheckReport(
            CheckStatus.UPDATE_AVAILABLE,
            version,
            comparison,
            f"{comparison.behind} new commit(s) on {self._sync.tracking_ref}",
        )

    def _self_update(self, session: UpdateSession) -> UpdateSession:
        session.state = UpdateState.CHECKING_VERSION
        session.previous_version = self.current_version()
        session.new_version = session.previous_version
        return self._build_and_swap(session)

    def _build_and_swap(self, session: UpdateSession) -> UpdateSession:
        session.state = UpdateState.BUILDING
        try:
            candidate = self._builder.build(
                self._layout.source_root, version=session.new_version
            )
        except BuildFailedError as exc:
            return self._roll_back(session, exc)

        session.state = UpdateState.SWAPPING
        plan = self._replacer.plan()
        log.debug(f"replacement strategy: {plan.strategy.value} ({plan.reason})")
        try:
            self._replacer.backup()
        except BackupFailedError as exc:
            self._replacer.discard(candidate)
            return self._roll_back(session, exc)
        try:
            session.swap = self._replacer.swap(candidate, plan)
        except SwapFailedError as exc:
            return self._roll_back(session, exc)

        if session.swap.strategy is Strategy.DEFERRED:
            message = "Update staged; it takes effect the next time svctools starts."
        elif session.previous_version != session.new_version:
            message = (
                f"Update completed successfully! "
                f"({session.previous_version} -> {session.new_version})"
            )
        else:
            message = "Update completed successfully!"
        return self._finish(session, UpdateOutcome.COMPLETED, message)

    def _versions_match(self, session: UpdateSession, head_before: str | None) -> bool:
        if session.previous_version != session.new_version:
            return False
        if session.previous_version == UNKNOWN_VERSION:
            return self._sync.head() == head_before
        return True

    def _changelog(self, head_before: str | None) -> tuple[str, ...]:
        if head_before is None or self._sync.head() == head_before:
            return ()
        return tuple(
            git.log_oneline(
                self._sync.repo_dir,
                f"{head_before}..HEAD",
                max_count=CHANGELOG_MAX_COUNT,
                runner=self._runner,
                git_path=self._config.git.path,
            )
        )

    def _restore_stash(self, session: UpdateSession) -> None:
        if not session.stashed or session.stash_restore_attempts:
            return
        session.stash_restore_attempts += 1
        try:
            self._sync.restore_stash(session.stash_label)
        except StashRestoreFailedError as exc:
            self._warn(f"{exc.message}; changes remain in the stash", session)
            return
        log.info("Restored local changes.")

    def _reconcile_pending(self, session: UpdateSession) -> None:
        interrupted = pending.reconcile_pending(
            self._layout.pending_marker_path, now=self._clock()
        )
        if interrupted is not None:
            self._warn(pending.describe_interrupted(interrupted), session)

    def _roll_back(self, session: UpdateSession, failure: ServiceFailure) -> UpdateSession:
        session.failure = failure
        return self._finish(session, UpdateOutcome.ROLLED_BACK)

    def _finish(
        self, session: UpdateSession, outcome: UpdateOutcome, message: str | None = None
    ) -> UpdateSession:
        session.outcome = outcome
        session.state = UpdateState(outcome.value)
        if message:
            session.messages.append(message)
        return session

    @staticmethod
    def _warn(message: str, session: UpdateSession | None = None) -> str:
        log.warning(message)
        if session is not None:
            session.warnings.append(message)
        return message
