"""Self-update data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict

from ..errors import ServiceFailure

UNKNOWN_VERSION = "unknown"


class UpdateState(str, Enum):
    IDLE = "idle"
    CHECKING_VERSION = "checking_version"
    SYNCING = "syncing"
    BUILDING = "building"
    SWAPPING = "swapping"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    ROLLED_BACK = "rolled_back"

    @property
    def terminal(self) -> bool:
        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset(
    {UpdateState.COMPLETED, UpdateState.SKIPPED, UpdateState.ROLLED_BACK}
)


class UpdateOutcome(str, Enum):
    COMPLETED = "completed"
    ROLLED_BACK = "rolled_back"
    SKIPPED = "skipped"


class Strategy(str, Enum):
    IMMEDIATE = "immediate"
    DEFERRED = "deferred"


class CheckStatus(str, Enum):
    UP_TO_DATE = "up_to_date"
    UPDATE_AVAILABLE = "update_available"
    DIVERGED = "diverged"
    NOT_TRACKED = "not_tracked"


@dataclass(frozen=True)
class UpdateOptions:
    """Options for one update invocation, built once at the CLI boundary."""

    force: bool = False
    check_only: bool = False


@dataclass(frozen=True)
class StashResult:
    created: bool
    label: str


@dataclass(frozen=True)
class IntegrateResult:
    conflict: bool
    changed: bool
    output: str = ""


@dataclass(frozen=True)
class RemoteComparison:
    ahead: int
    behind: int
    incoming: tuple[str, ...] = ()

    @property
    def current(self) -> bool:
        return self.behind == 0


@dataclass(frozen=True)
class CandidateBinary:
    path: Path
    version: str


@dataclass(frozen=True)
class ReplacementPlan:
    strategy: Strategy
    reason: str


@dataclass(frozen=True)
class SwapResult:
    strategy: Strategy
    staged: bool
    helper_path: Path | None = None


@dataclass
class UpdateSession:
    """Mutable record of one orchestrator run."""

    force: bool = False
    previous_version: str = UNKNOWN_VERSION
    new_version: str = UNKNOWN_VERSION
    stashed: bool = False
    stash_label: str | None = None
    stash_restore_attempts: int = 0
    conflict: bool = False
    state: UpdateState = UpdateState.IDLE
    outcome: UpdateOutcome | None = None
    swap: SwapResult | None = None
    failure: ServiceFailure | None = None
    warnings: list[str] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)
    changelog: tuple[str, ...] = ()


@dataclass(frozen=True)
class CheckReport:
    status: CheckStatus
    current_version: str
    comparison: RemoteComparison | None = None
    message: str = ""


PendingStatus = Literal["pending", "failed"]


class PendingUpdate(BaseModel):
    """Marker recording a deferred swap that a helper process still owns.

    Example:
        >>> PendingUpdate(
        ...     status="pending",
        ...     version="1.1.0",
        ...     created_at="2026-01-01T00:00:00Z",
        ...     live_path="/opt/svctools/svctools.exe",
        ...     candidate_path="/opt/svctools/svctools.new.exe",
        ...     backup_path="/opt/svctools/svctools.exe.backup",
        ...     helper_path="/opt/svctools/update_svctools.ps1",
        ...     max_wait_seconds=600,
        ... ).status
        'pending'
    """

    model_config = ConfigDict(extra="allow")

    status: PendingStatus = "pending"
    version: str = UNKNOWN_VERSION
    created_at: str
    live_path: str
    candidate_path: str
    backup_path: str
    helper_path: str
    max_wait_seconds: float
    reason: str | None = None
