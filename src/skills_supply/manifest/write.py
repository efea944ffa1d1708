"""Serialize manifests back to agents.toml."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import tomli_w

from skills_supply.core.exceptions import FileSystemError
from skills_supply.manifest.types import (
    ClaudePluginDeclaration,
    GitDeclaration,
    GithubDeclaration,
    LocalDeclaration,
    RegistryDeclaration,
)

if TYPE_CHECKING:
    from pathlib import Path

    from skills_supply.core.types import GitRef
    from skills_supply.manifest.types import Manifest, ValidatedDeclaration


def serialize_manifest(manifest: Manifest) -> str:
    document: dict[str, Any] = {}

    if manifest.package is not None:
        package: dict[str, str] = {
            "name": manifest.package.name,
            "version": manifest.package.version,
        }
        for key in ("description", "license", "org"):
            value = getattr(manifest.package, key)
            if value is not None:
                package[key] = value
        document["package"] = package

    if manifest.agents:
        document["agents"] = dict(manifest.agents)

    if manifest.dependencies:
        document["dependencies"] = {
            alias: serialize_declaration(declaration)
            for alias, declaration in manifest.dependencies.items()
        }

    if manifest.exports is not None:
        document["exports"] = {"auto_discover": {"skills": manifest.exports.skills}}

    text = tomli_w.dumps(document)
    return text if text.endswith("\n") else f"{text}\n"


def serialize_declaration(declaration: ValidatedDeclaration) -> str | dict[str, str]:
    """Return the canonical agents.toml form of a declaration."""
    match declaration:
        case RegistryDeclaration():
            if declaration.org:
                return f"@{declaration.org}/{declaration.name}@{declaration.version}"
            return f"{declaration.name}@{declaration.version}"
        case GithubDeclaration():
            return _remote_table({"gh": declaration.gh}, declaration.ref, declaration.path)
        case GitDeclaration():
            return _remote_table({"git": declaration.url}, declaration.ref, declaration.path)
        case LocalDeclaration():
            return {"path": declaration.path}
        case ClaudePluginDeclaration():
            return {
                "type": "claude-plugin",
                "plugin": declaration.plugin,
                "marketplace": declaration.marketplace,
            }


def save_manifest(manifest: Manifest, path: Path) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(serialize_manifest(manifest), encoding="utf-8")
    except OSError as exc:
        raise FileSystemError(f"Unable to write manifest {path}: {exc}", path=str(path)) from exc


def _remote_table(table: dict[str, str], ref: GitRef | None, path: str | None) -> dict[str, str]:
    if ref is not None:
        table[ref.type] = ref.value
    if path is not None:
        table["path"] = path
    return table
