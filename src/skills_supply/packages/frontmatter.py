"""YAML frontmatter parsing for SKILL.md files."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, StrictStr, field_validator
from pydantic import ValidationError as PydanticValidationError

from skills_supply.core.exceptions import ValidationError

SKILL_FILENAME = "SKILL.md"

_DELIMITER = "---"


class SkillFrontmatterModel(BaseModel):
    name: StrictStr
    description: StrictStr | None = None

    model_config = ConfigDict(extra="allow")

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        trimmed = value.strip()
        if not trimmed:
            raise ValueError("name must not be empty")
        return trimmed


@dataclass(frozen=True)
class SkillFrontmatter:
    name: str
    description: str | None
    metadata: dict[str, Any]


def split_frontmatter(content: str) -> tuple[str, str] | None:
    """Return ``(yaml_block, body)`` or ``None`` when there is no frontmatter."""
    normalized = content.replace("\r\n", "\n")
    if not normalized.startswith(f"{_DELIMITER}\n"):
        return None
    rest = normalized[len(_DELIMITER) + 1 :]
    if rest.startswith(_DELIMITER):
        return "", rest[len(_DELIMITER) :].lstrip("\n")
    end = rest.find(f"\n{_DELIMITER}")
    if end == -1:
        return None
    block = rest[:end]
    body = rest[end + len(_DELIMITER) + 1 :]
    return block, body.lstrip("\n")


def parse_skill_frontmatter(content: str) -> SkillFrontmatter:
    parts = split_frontmatter(content)
    if parts is None:
        raise ValidationError("SKILL.md must start with YAML frontmatter delimited by '---'.")

    try:
        data = yaml.safe_load(parts[0]) if parts[0].strip() else None
    except yaml.YAMLError as exc:
        raise ValidationError(f"Invalid YAML frontmatter: {exc}") from exc

    if not isinstance(data, dict):
        raise ValidationError("SKILL.md frontmatter must be a mapping with a name field.")

    try:
        model = SkillFrontmatterModel.model_validate(data)
    except PydanticValidationError as exc:
        error = exc.errors()[0]
        location = ".".join(str(part) for part in error.get("loc", ()))
        raise ValidationError(f"Invalid SKILL.md frontmatter: {location}: {error.get('msg')}") from exc

    return SkillFrontmatter(
        name=model.name,
        description=model.description,
        metadata=dict(model.model_extra or {}),
    )
