"""Parse agents.toml documents into validated manifests."""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr
from pydantic import ValidationError as PydanticValidationError

from skills_supply.core.exceptions import FileSystemError, ManifestError
from skills_supply.core.logging.logger import get_logger
from skills_supply.core.types import AbsolutePath, NonEmptyString, coerce_non_empty
from skills_supply.manifest.coerce import (
    coerce_dependency,
    coerce_manifest_alias,
    format_pydantic_error,
)
from skills_supply.manifest.types import (
    DEFAULT_SKILLS_DIR,
    KNOWN_AGENT_IDS,
    Manifest,
    ManifestExports,
    ManifestOrigin,
    PackageMetadata,
)

if TYPE_CHECKING:
    from skills_supply.core.types import Alias
    from skills_supply.manifest.types import ValidatedDeclaration

logger = get_logger(__name__)

DiscoveredAt = Literal["cwd", "parent", "home", "sk-global"]


class _PackageTable(BaseModel):
    name: StrictStr
    version: StrictStr
    description: StrictStr | None = None
    license: StrictStr | None = None
    org: StrictStr | None = None

    model_config = ConfigDict(extra="forbid")


class _AutoDiscoverTable(BaseModel):
    skills: StrictStr | Literal[False] = DEFAULT_SKILLS_DIR

    model_config = ConfigDict(extra="forbid")


class _ExportsTable(BaseModel):
    auto_discover: _AutoDiscoverTable | None = None

    model_config = ConfigDict(extra="forbid")


class _ManifestDocument(BaseModel):
    package: _PackageTable | None = None
    agents: dict[str, StrictBool] = Field(default_factory=dict)
    dependencies: dict[str, Any] = Field(default_factory=dict)
    exports: _ExportsTable | None = None

    model_config = ConfigDict(extra="forbid")


def parse_manifest(
    contents: str,
    source_path: str | Path,
    discovered_at: DiscoveredAt = "cwd",
) -> Manifest:
    """Parse TOML ``contents`` read from ``source_path``.

    Stages run in order (TOML syntax, document shape, dependency coercion)
    and the first failure raises ``ManifestError``; no partial manifest is
    ever returned.
    """
    source = str(Path(source_path).resolve())

    try:
        raw = tomllib.loads(contents)
    except tomllib.TOMLDecodeError as exc:
        raise ManifestError(
            f"Invalid TOML in {source}: {exc}",
            error_type="invalid_toml",
            source_path=source,
        ) from exc

    try:
        document = _ManifestDocument.model_validate(raw)
    except PydanticValidationError as exc:
        raise ManifestError(
            f"Invalid manifest {source}: {format_pydantic_error(exc)}",
            error_type="invalid_manifest",
            source_path=source,
        ) from exc

    return Manifest(
        origin=ManifestOrigin(source_path=AbsolutePath(source), discovered_at=discovered_at),
        package=_coerce_package(document.package, source),
        agents=_coerce_agents(document.agents, source),
        dependencies=_coerce_dependencies(document.dependencies, source),
        exports=_coerce_exports(document.exports, source),
    )


def load_manifest(path: Path, discovered_at: DiscoveredAt = "cwd") -> Manifest:
    try:
        contents = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise FileSystemError(f"Unable to read manifest {path}: {exc}", path=str(path)) from exc
    except UnicodeDecodeError as exc:
        raise ManifestError(
            f"Invalid TOML in {path}: file is not valid UTF-8: {exc}",
            error_type="invalid_toml",
            source_path=str(path),
        ) from exc
    return parse_manifest(contents, path, discovered_at)


def _coerce_package(table: _PackageTable | None, source: str) -> PackageMetadata | None:
    if table is None:
        return None

    def required(value: str, field_name: str) -> NonEmptyString:
        coerced = coerce_non_empty(value)
        if coerced is None:
            raise ManifestError(
                f"Invalid manifest {source}: package.{field_name} must not be empty.",
                error_type="coercion_failed",
                source_path=source,
                field=f"package.{field_name}",
            )
        return coerced

    def optional(value: str | None, field_name: str) -> NonEmptyString | None:
        return None if value is None else required(value, field_name)

    return PackageMetadata(
        name=required(table.name, "name"),
        version=required(table.version, "version"),
        description=optional(table.description, "description"),
        license=optional(table.license, "license"),
        org=optional(table.org, "org"),
    )


def _coerce_agents(table: dict[str, bool], source: str) -> dict[str, bool]:
    """Keep every agent id; unknown ids are rejected when agents are resolved."""
    for agent_id in table:
        if agent_id not in KNOWN_AGENT_IDS:
            logger.debug(
                "Manifest names an unknown agent",
                data={"agent": agent_id, "manifest": source},
            )
    return dict(table)


def _coerce_dependencies(table: dict[str, Any], source: str) -> dict[Alias, ValidatedDeclaration]:
    dependencies: dict[Alias, ValidatedDeclaration] = {}
    for raw_alias, raw_value in table.items():
        alias = coerce_manifest_alias(raw_alias, source)
        if alias in dependencies:
            raise ManifestError(
                f'Invalid manifest {source}: duplicate dependency alias "{alias}".',
                error_type="invalid_manifest",
                source_path=source,
                key=alias,
            )
        dependencies[alias] = coerce_dependency(raw_value, alias, source)
    return dependencies


def _coerce_exports(table: _ExportsTable | None, source: str) -> ManifestExports | None:
    if table is None or table.auto_discover is None:
        return None
    skills = table.auto_discover.skills
    if skills is False:
        return ManifestExports(skills=False)
    coerced = coerce_non_empty(skills)
    if coerced is None:
        raise ManifestError(
            f"Invalid manifest {source}: exports.auto_discover.skills must not be empty.",
            error_type="coercion_failed",
            source_path=source,
            field="exports.auto_discover.skills",
        )
    return ManifestExports(skills=coerced)
