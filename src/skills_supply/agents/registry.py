"""Known agents and where they keep skills."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from skills_supply.agents.types import Agent
from skills_supply.core.exceptions import ValidationError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from skills_supply.agents.types import AgentScope
    from skills_supply.manifest.types import AgentId


@dataclass(frozen=True)
class AgentDefinition:
    id: AgentId
    display_name: str
    skills_dir: PurePosixPath
    native_plugins: bool = False

    @property
    def config_dir(self) -> PurePosixPath:
        return self.skills_dir.parent


AGENT_DEFINITIONS: dict[AgentId, AgentDefinition] = {
    "claude-code": AgentDefinition(
        id="claude-code",
        display_name="Claude Code",
        skills_dir=PurePosixPath(".claude/skills"),
        native_plugins=True,
    ),
    "codex": AgentDefinition(
        id="codex",
        display_name="Codex",
        skills_dir=PurePosixPath(".codex/skills"),
    ),
    "opencode": AgentDefinition(
        id="opencode",
        display_name="OpenCode",
        skills_dir=PurePosixPath(".config/opencode/skill"),
    ),
}


def get_agent_definition(agent_id: str) -> AgentDefinition:
    definition = AGENT_DEFINITIONS.get(agent_id)  # type: ignore[call-overload]
    if definition is None:
        known = ", ".join(AGENT_DEFINITIONS)
        raise ValidationError(f'Unknown agent "{agent_id}". Known agents: {known}.')
    return definition


def resolve_agent(
    agent_id: str,
    *,
    scope: AgentScope = "local",
    project_root: Path | None = None,
    home_dir: Path | None = None,
) -> Agent:
    """Build the Agent for ``agent_id`` rooted at the project (local) or home (global)."""
    definition = get_agent_definition(agent_id)
    if scope == "local":
        if project_root is None:
            raise ValidationError("A project root is required for local agent scope.")
        base = project_root
    else:
        base = home_dir if home_dir is not None else Path.home()

    config_dir = base / Path(definition.config_dir)
    return Agent(
        id=definition.id,
        display_name=definition.display_name,
        skills_path=base / Path(definition.skills_dir),
        native_plugins=definition.native_plugins,
        detector=config_dir.is_dir,
    )


def resolve_enabled_agents(
    agents: Mapping[str, bool],
    *,
    scope: AgentScope = "local",
    project_root: Path | None = None,
    home_dir: Path | None = None,
) -> list[Agent]:
    return [
        resolve_agent(agent_id, scope=scope, project_root=project_root, home_dir=home_dir)
        for agent_id, enabled in agents.items()
        if enabled
    ]
