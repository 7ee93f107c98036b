"""Failures the update services expect and report.

Each kind of failure is its own ``ServiceFailure`` subclass with a fixed
``code``. Programmer bugs raise ordinary exceptions instead.
"""

from __future__ import annotations

from typing import ClassVar, Literal

ServiceFailureCode = Literal[
    "not_upgradable",
    "remote_unavailable",
    "sync_failed",
    "stash_restore_failed",
    "build_failed",
    "backup_failed",
    "swap_failed",
    "update_pending",
]


class ServiceFailure(Exception):
    """An expected failure of an update step.

    ``detail`` holds verbatim tool output (git, the compiler) that callers
    show unmodified; ``recovery_hint`` tells the user what to do next.
    Chain the underlying error with ``raise ... from exc``.
    """

    code: ClassVar[ServiceFailureCode]

    def __init__(
        self, message: str, *, detail: str = "", recovery_hint: str | None = None
    ) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.recovery_hint = recovery_hint

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class NotUpgradableError(ServiceFailure):
    """The install directory cannot be tracked against the remote."""

    code = "not_upgradable"


class RemoteUnavailableError(ServiceFailure):
    code = "remote_unavailable"


class SyncFailedError(ServiceFailure):
    """Integrating remote changes failed for a reason other than a conflict."""

    code = "sync_failed"


class StashRestoreFailedError(ServiceFailure):
    """``git stash pop`` failed; the stash entry is still there."""

    code = "stash_restore_failed"


class BuildFailedError(ServiceFailure):
    code = "build_failed"


class BackupFailedError(ServiceFailure):
    code = "backup_failed"


class SwapFailedError(ServiceFailure):
    """Promoting the candidate onto the live path failed."""

    code = "swap_failed"


class UpdatePendingError(ServiceFailure):
    """A staged update has not been applied by its helper yet."""

    code = "update_pending"
