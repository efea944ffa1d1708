from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from skills_supply.core.exceptions import ErrorKind

SyncStage = Literal[
    "discover",
    "parse",
    "merge",
    "resolve",
    "agents",
    "fetch",
    "detect",
    "extract",
    "validate",
    "install",
    "reconcile",
]

NoOpReason = Literal["no-dependencies"]


@dataclass(frozen=True)
class SyncSummary:
    agents: list[str]
    dependencies: int
    dry_run: bool
    installed: int
    manifests: int
    removed: int
    warnings: list[str] = field(default_factory=list)
    no_op_reason: NoOpReason | None = None
    ok: Literal[True] = True


@dataclass(frozen=True)
class SyncFailure:
    """Where and why a sync run stopped."""

    stage: SyncStage
    kind: ErrorKind
    message: str
    cause: BaseException | None = None
    agent: str | None = None
    ok: Literal[False] = False


SyncResult = SyncSummary | SyncFailure


@dataclass
class AgentSyncOutcome:
    installed: int = 0
    removed: int = 0
    warnings: list[str] = field(default_factory=list)
