"""Remove skills that sk installed previously but no longer wants."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from skills_supply.agents.install import remove_path
from skills_supply.core.exceptions import FileSystemError
from skills_supply.core.logging.logger import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from skills_supply.agents.state import AgentInstallState
    from skills_supply.agents.types import Agent

logger = get_logger(__name__)


def stale_skills(previous: AgentInstallState | None, desired: Iterable[str]) -> list[str]:
    """Managed skills absent from ``desired``. Nothing is stale without prior state."""
    if previous is None:
        return []
    wanted = set(desired)
    return [name for name in previous.skills if name not in wanted]


def reconcile_agent_skills(
    agent: Agent, previous: AgentInstallState | None, desired: Iterable[str]
) -> list[str]:
    """Delete stale managed skills and return their names."""
    removed: list[str] = []
    for name in stale_skills(previous, desired):
        target = agent.skills_path / name
        try:
            if os.path.lexists(target):
                remove_path(target)
        except OSError as exc:
            raise FileSystemError(f"Unable to remove stale skill {target}: {exc}", path=str(target)) from exc
        removed.append(name)

    if removed:
        logger.info("Removed stale skills", data={"agent": agent.id, "skills": removed})
    return removed
