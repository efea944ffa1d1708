from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from skills_supply.manifest.types import AgentId

AgentScope = Literal["local", "global"]
InstallMode = Literal["copy", "symlink"]


@dataclass(frozen=True)
class Agent:
    """A coding agent with its own skills directory convention."""

    id: AgentId
    display_name: str
    skills_path: Path
    native_plugins: bool = False
    detector: Callable[[], bool] | None = field(default=None, compare=False, repr=False)

    def detect(self) -> bool:
        return self.detector() if self.detector is not None else False


@dataclass(frozen=True)
class AgentInstallTask:
    target_name: str
    target_path: Path
    source_path: Path
    mode: InstallMode = "copy"


@dataclass(frozen=True)
class AgentInstallPlan:
    agent_id: AgentId
    base_path: Path
    tasks: tuple[AgentInstallTask, ...] = ()

    @property
    def target_names(self) -> list[str]:
        return [task.target_name for task in self.tasks]
