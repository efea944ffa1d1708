"""Persisted record of the skills sk manages for each agent."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator
from pydantic import ValidationError as PydanticValidationError

from skills_supply.core.exceptions import FileSystemError, StateError

if TYPE_CHECKING:
    from collections.abc import Iterable
    from pathlib import Path

    from skills_supply.agents.types import Agent

STATE_FILENAME = ".sk-state.json"
STATE_VERSION = 1


class AgentInstallState(BaseModel):
    version: Literal[1] = STATE_VERSION
    skills: list[StrictStr]
    updated_at: StrictStr = Field(alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    @field_validator("version", mode="before")
    @classmethod
    def _supported_version(cls, value: object) -> object:
        if isinstance(value, bool) or value != STATE_VERSION:
            raise ValueError(f"unsupported state version: {value!r}")
        return value

    @field_validator("skills")
    @classmethod
    def _valid_skill_names(cls, value: list[str]) -> list[str]:
        for name in value:
            if not name.strip() or name in {".", ".."} or "/" in name or "\\" in name:
                raise ValueError(f"invalid skill entry: {name!r}")
        return value

    @field_validator("updated_at")
    @classmethod
    def _updated_at_present(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("updatedAt must not be empty")
        return value

    @property
    def managed(self) -> set[str]:
        return set(self.skills)


def state_path(agent: Agent) -> Path:
    return agent.skills_path / STATE_FILENAME


def build_agent_state(skills: Iterable[str], *, now: datetime | None = None) -> AgentInstallState:
    timestamp = (now or datetime.now(UTC)).isoformat().replace("+00:00", "Z")
    return AgentInstallState(skills=sorted(set(skills)), updated_at=timestamp)


def read_agent_state(agent: Agent) -> AgentInstallState | None:
    """Return the agent's state, ``None`` when absent; malformed files are errors."""
    path = state_path(agent)
    if not path.exists() and not path.is_symlink():
        return None
    if not path.is_file():
        raise StateError(f"State path is not a file: {path}", path=str(path))

    try:
        contents = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise FileSystemError(f"Unable to read state file {path}: {exc}", path=str(path)) from exc
    except UnicodeDecodeError as exc:
        raise StateError(f"State file {path} is not valid UTF-8: {exc}", path=str(path)) from exc

    try:
        payload = json.loads(contents)
    except json.JSONDecodeError as exc:
        raise StateError(f"Invalid JSON in state file {path}: {exc}", path=str(path)) from exc
    if not isinstance(payload, dict):
        raise StateError(f"State file {path} must contain a JSON object.", path=str(path))

    try:
        return AgentInstallState.model_validate(payload)
    except PydanticValidationError as exc:
        error = exc.errors()[0]
        location = ".".join(str(part) for part in error.get("loc", ()))
        raise StateError(
            f"Invalid state file {path}: {location}: {error.get('msg')}",
            path=str(path),
        ) from exc


def write_agent_state(agent: Agent, state: AgentInstallState) -> None:
    path = state_path(agent)
    payload = state.model_dump(by_alias=True)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        raise FileSystemError(f"Unable to write state file {path}: {exc}", path=str(path)) from exc
