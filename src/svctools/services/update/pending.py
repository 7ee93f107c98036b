"""Pending-update marker shared with the deferred swap helper."""

from __future__ import annotations

import datetime as dt
import json
from pathlib import Path

from pydantic import ValidationError

from ... import log
from ...config import write_json
from ..errors import UpdatePendingError
from .models import PendingUpdate

STALE_GRACE_SECONDS = 120.0


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def read_pending(path: Path) -> PendingUpdate | None:
    """Load the marker at ``path``; a malformed marker is removed."""
    if not path.exists():
        return None
    try:
        payload = json.loads(path.read_text(encoding="utf-8-sig"))
        return PendingUpdate.model_validate(payload)
    except (OSError, json.JSONDecodeError, ValidationError):
        log.debug(f"unable to parse pending update marker at {path}")
        clear_pending(path)
        return None


def write_pending(path: Path, marker: PendingUpdate) -> None:
    write_json(path, marker)


def clear_pending(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        return
    except OSError as exc:
        log.debug(f"unable to remove pending update marker at {path}: {exc}")


def _created_at(marker: PendingUpdate) -> dt.datetime | None:
    try:
        created = dt.datetime.fromisoformat(marker.created_at)
    except ValueError:
        return None
    if created.tzinfo is None:
        created = created.replace(tzinfo=dt.timezone.utc)
    return created


def is_stale(marker: PendingUpdate, now: dt.datetime) -> bool:
    """Return whether a helper could still be working on ``marker``.

    Example:
        >>> marker = PendingUpdate(
        ...     created_at="2026-01-01T00:00:00+00:00",
        ...     live_path="svctools",
        ...     candidate_path="svctools.new",
        ...     backup_path="svctools.backup",
        ...     helper_path="update_svctools.sh",
        ...     max_wait_seconds=60,
        ... )
        >>> is_stale(marker, dt.datetime(2026, 1, 1, 0, 1, tzinfo=dt.timezone.utc))
        False
        >>> is_stale(marker, dt.datetime(2026, 1, 1, 1, 0, tzinfo=dt.timezone.utc))
        True
    """
    created = _created_at(marker)
    if created is None:
        return True
    age = (now - created).total_seconds()
    return age > marker.max_wait_seconds + STALE_GRACE_SECONDS


def describe_interrupted(marker: PendingUpdate) -> str:
    reason = marker.reason or "the update helper did not finish"
    return (
        f"a previous update to {marker.version} did not complete: {reason}. "
        f"Backup: {marker.backup_path}; candidate: {marker.candidate_path}"
    )


def reconcile_pending(path: Path, *, now: dt.datetime | None = None) -> PendingUpdate | None:
    """Check the marker left by an earlier deferred swap.

    Returns:
        The consumed marker when it records a failed or abandoned swap, so
        the caller can report it; ``None`` when there is nothing to report.

    Raises:
        UpdatePendingError: A helper may still be waiting to finish a swap.
    """
    marker = read_pending(path)
    if marker is None:
        return None
    current = now or utc_now()
    if marker.status == "pending" and not is_stale(marker, current):
        raise UpdatePendingError(
            f"an update to {marker.version} is staged and waiting for svctools to exit",
            recovery_hint="exit every running svctools process and try again",
        )
    if marker.status == "pending" and not marker.reason:
        marker = marker.model_copy(
            update={"reason": "the update helper stopped before replacing the executable"}
        )
    clear_pending(path)
    return marker


__all__ = [
    "STALE_GRACE_SECONDS",
    "clear_pending",
    "describe_interrupted",
    "is_stale",
    "read_pending",
    "reconcile_pending",
    "utc_now",
    "write_pending",
]
