from .errors import (
    BackupFailedError,
    BuildFailedError,
    NotUpgradableError,
    RemoteUnavailableError,
    ServiceFailure,
    StashRestoreFailedError,
    SwapFailedError,
    SyncFailedError,
    UpdatePendingError,
)

__all__ = [
    "BackupFailedError",
    "BuildFailedError",
    "NotUpgradableError",
    "RemoteUnavailableError",
    "ServiceFailure",
    "StashRestoreFailedError",
    "SwapFailedError",
    "SyncFailedError",
    "UpdatePendingError",
]
