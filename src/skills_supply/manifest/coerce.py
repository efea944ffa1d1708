"""Coerce raw dependency values from agents.toml into validated declarations."""

from __future__ import annotations

import re
from pathlib import Path
from typing import TYPE_CHECKING, Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, StrictStr
from pydantic import ValidationError as PydanticValidationError

from skills_supply.core.exceptions import ManifestError
from skills_supply.core.types import (
    GitRef,
    NonEmptyString,
    coerce_absolute_path,
    coerce_alias,
    coerce_git_url,
    coerce_github_ref,
    coerce_non_empty,
    looks_like_git_url,
)
from skills_supply.manifest.types import (
    ClaudePluginDeclaration,
    GitDeclaration,
    GithubDeclaration,
    LocalDeclaration,
    RegistryDeclaration,
    ValidatedDeclaration,
)

if TYPE_CHECKING:
    from skills_supply.core.types import Alias, GitRefType

_SCOPED_REGISTRY = re.compile(r"^@([^/@]+)/([^/@]+)@(.+)$")
_REGISTRY = re.compile(r"^([^/@]+)@(.+)$")
_REF_FIELDS: tuple[GitRefType, ...] = ("tag", "branch", "rev")

_TableT = TypeVar("_TableT", bound=BaseModel)


class _GithubTable(BaseModel):
    gh: StrictStr
    tag: StrictStr | None = None
    branch: StrictStr | None = None
    rev: StrictStr | None = None
    path: StrictStr | None = None

    model_config = ConfigDict(extra="forbid")


class _GitTable(BaseModel):
    git: StrictStr
    tag: StrictStr | None = None
    branch: StrictStr | None = None
    rev: StrictStr | None = None
    path: StrictStr | None = None

    model_config = ConfigDict(extra="forbid")


class _LocalTable(BaseModel):
    path: StrictStr

    model_config = ConfigDict(extra="forbid")


class _ClaudePluginTable(BaseModel):
    type: Literal["claude-plugin"]
    plugin: StrictStr
    marketplace: StrictStr

    model_config = ConfigDict(extra="forbid")


def coerce_manifest_alias(raw_alias: str, source_path: str) -> Alias:
    alias = coerce_alias(raw_alias)
    if alias is None:
        raise ManifestError(
            f'Invalid dependency alias "{raw_alias}": aliases must be non-empty and '
            "may not contain '/', '\\', '.', or ':'.",
            error_type="coercion_failed",
            source_path=source_path,
            key=raw_alias,
        )
    return alias


def coerce_dependency(raw: Any, alias: str, source_path: str) -> ValidatedDeclaration:
    """Coerce one ``[dependencies]`` value declared in ``source_path``."""
    if isinstance(raw, str):
        return _coerce_string_dependency(raw, alias, source_path)

    if isinstance(raw, dict):
        if "type" in raw:
            if raw.get("type") == "claude-plugin":
                return _coerce_plugin_dependency(raw, alias, source_path)
        elif "gh" in raw:
            return _coerce_github_dependency(raw, alias, source_path)
        elif "git" in raw:
            return _coerce_git_dependency(raw, alias, source_path)
        elif "path" in raw:
            return _coerce_local_dependency(raw, alias, source_path)

    raise ManifestError(
        f'Dependency "{alias}": Unknown dependency type.',
        error_type="invalid_dependency",
        source_path=source_path,
        key=alias,
    )


def _coerce_string_dependency(raw: str, alias: str, source_path: str) -> ValidatedDeclaration:
    spec = raw.strip()

    scoped = _SCOPED_REGISTRY.match(spec)
    if scoped:
        org, name, version = scoped.groups()
        return RegistryDeclaration(
            org=_required(org, alias, "org", source_path),
            name=_required(name, alias, "name", source_path),
            version=_required(version, alias, "version", source_path),
        )

    unscoped = _REGISTRY.match(spec)
    if unscoped:
        name, version = unscoped.groups()
        return RegistryDeclaration(
            name=_required(name, alias, "name", source_path),
            version=_required(version, alias, "version", source_path),
        )

    # owner/repo without a version is shorthand for a GitHub dependency
    gh = coerce_github_ref(spec)
    if gh is not None:
        return GithubDeclaration(gh=gh)

    raise ManifestError(
        f'Dependency "{alias}": expected "name@version", "@org/name@version", '
        f'or "owner/repo", got "{raw}".',
        error_type="invalid_dependency",
        source_path=source_path,
        key=alias,
    )


def _coerce_github_dependency(raw: dict[str, Any], alias: str, source_path: str) -> GithubDeclaration:
    _check_single_ref(raw, alias, source_path)
    table = _validate_table(_GithubTable, raw, alias, source_path)
    gh = coerce_github_ref(table.gh)
    if gh is None:
        raise ManifestError(
            f'Dependency "{alias}": gh must be in the form "owner/repo", got "{table.gh}".',
            error_type="coercion_failed",
            source_path=source_path,
            key=alias,
            field="gh",
        )
    return GithubDeclaration(
        gh=gh,
        ref=_coerce_ref(table, alias, source_path),
        path=_optional(table.path, alias, "path", source_path),
    )


def _coerce_git_dependency(raw: dict[str, Any], alias: str, source_path: str) -> GitDeclaration:
    _check_single_ref(raw, alias, source_path)
    table = _validate_table(_GitTable, raw, alias, source_path)
    url = coerce_git_url(table.git)
    if url is None:
        raise ManifestError(
            f'Dependency "{alias}": git must be an SSH, HTTPS, or file URL, got "{table.git}".',
            error_type="coercion_failed",
            source_path=source_path,
            key=alias,
            field="git",
        )
    return GitDeclaration(
        url=url,
        ref=_coerce_ref(table, alias, source_path),
        path=_optional(table.path, alias, "path", source_path),
    )


def _coerce_local_dependency(raw: dict[str, Any], alias: str, source_path: str) -> LocalDeclaration:
    table = _validate_table(_LocalTable, raw, alias, source_path)
    path = coerce_absolute_path(table.path, Path(source_path).parent)
    if path is None:
        raise ManifestError(
            f'Dependency "{alias}": path must not be empty.',
            error_type="coercion_failed",
            source_path=source_path,
            key=alias,
            field="path",
        )
    return LocalDeclaration(path=path)


def _coerce_plugin_dependency(
    raw: dict[str, Any], alias: str, source_path: str
) -> ClaudePluginDeclaration:
    table = _validate_table(_ClaudePluginTable, raw, alias, source_path)
    marketplace = _required(table.marketplace, alias, "marketplace", source_path)
    if looks_like_git_url(marketplace) and not marketplace.endswith(".json"):
        normalized = coerce_git_url(marketplace)
        if normalized is None:
            raise ManifestError(
                f'Dependency "{alias}": marketplace is not a valid git URL: "{marketplace}".',
                error_type="coercion_failed",
                source_path=source_path,
                key=alias,
                field="marketplace",
            )
        marketplace = NonEmptyString(normalized)
    return ClaudePluginDeclaration(
        plugin=_required(table.plugin, alias, "plugin", source_path),
        marketplace=marketplace,
    )


def _check_single_ref(raw: dict[str, Any], alias: str, source_path: str) -> None:
    present = [name for name in _REF_FIELDS if raw.get(name) is not None]
    if len(present) > 1:
        raise ManifestError(
            f'Dependency "{alias}": only one of tag, branch, or rev may be set '
            f"(found {', '.join(present)}).",
            error_type="invalid_dependency",
            source_path=source_path,
            key=alias,
            field="ref",
        )


def _coerce_ref(table: _GithubTable | _GitTable, alias: str, source_path: str) -> GitRef | None:
    for ref_type in _REF_FIELDS:
        value = getattr(table, ref_type)
        if value is not None:
            return GitRef(type=ref_type, value=_required(value, alias, ref_type, source_path))
    return None


def _validate_table(model: type[_TableT], raw: dict[str, Any], alias: str, source_path: str) -> _TableT:
    try:
        return model.model_validate(raw)
    except PydanticValidationError as exc:
        raise ManifestError(
            f'Dependency "{alias}": {format_pydantic_error(exc)}',
            error_type="invalid_dependency",
            source_path=source_path,
            key=alias,
            field=_first_error_field(exc),
        ) from exc


def format_pydantic_error(exc: PydanticValidationError) -> str:
    error = exc.errors()[0]
    location = ".".join(str(part) for part in error.get("loc", ()))
    message = error.get("msg", "invalid value")
    if error.get("type") == "extra_forbidden":
        message = "unknown field"
    return f"{location}: {message}" if location else message


def _first_error_field(exc: PydanticValidationError) -> str | None:
    errors = exc.errors()
    if not errors or not errors[0].get("loc"):
        return None
    return str(errors[0]["loc"][0])


def _required(value: str, alias: str, field_name: str, source_path: str) -> NonEmptyString:
    coerced = coerce_non_empty(value)
    if coerced is None:
        raise ManifestError(
            f'Dependency "{alias}": {field_name} must not be empty.',
            error_type="coercion_failed",
            source_path=source_path,
            key=alias,
            field=field_name,
        )
    return coerced


def _optional(value: str | None, alias: str, field_name: str, source_path: str) -> NonEmptyString | None:
    if value is None:
        return None
    return _required(value, alias, field_name, source_path)
