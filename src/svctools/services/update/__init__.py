"""Self-update service: sync from git, rebuild, replace the live executable."""

from .build import BuildPipeline
from .models import (
    CandidateBinary,
    CheckReport,
    CheckStatus,
    PendingUpdate,
    ReplacementPlan,
    Strategy,
    UpdateOptions,
    UpdateOutcome,
    UpdateSession,
    UpdateState,
)
from .orchestrator import UpdateOrchestrator
from .replace import ReplacementCoordinator, select_plan
from .sync import RemoteSyncEngine
from .version_probe import read_version

__all__ = [
    "BuildPipeline",
    "CandidateBinary",
    "CheckReport",
    "CheckStatus",
    "PendingUpdate",
    "RemoteSyncEngine",
    "ReplacementCoordinator",
    "ReplacementPlan",
    "Strategy",
    "UpdateOptions",
    "UpdateOrchestrator",
    "UpdateOutcome",
    "UpdateSession",
    "UpdateState",
    "read_version",
    "select_plan",
]
