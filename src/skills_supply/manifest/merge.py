"""Merge the manifests that apply to one sync run."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from skills_supply.core.exceptions import ManifestError
from skills_supply.manifest.types import (
    ClaudePluginDeclaration,
    GitDeclaration,
    GithubDeclaration,
    LocalDeclaration,
    RegistryDeclaration,
)

if TYPE_CHECKING:
    from skills_supply.core.types import AbsolutePath, Alias
    from skills_supply.manifest.types import Manifest, ValidatedDeclaration


@dataclass(frozen=True)
class MergedDependency:
    declaration: ValidatedDeclaration
    source_path: AbsolutePath


@dataclass(frozen=True)
class MergedManifest:
    agents: dict[str, bool] = field(default_factory=dict)
    dependencies: dict[Alias, MergedDependency] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    sources: list[AbsolutePath] = field(default_factory=list)


def dependency_key(declaration: ValidatedDeclaration) -> str:
    """Identity used to detect the same package declared under two aliases."""
    match declaration:
        case RegistryDeclaration():
            return f"registry|{declaration.org or ''}|{declaration.name}"
        case GithubDeclaration():
            return f"github|{declaration.gh}|{declaration.path or ''}"
        case GitDeclaration():
            return f"git|{declaration.url}|{declaration.path or ''}"
        case LocalDeclaration():
            return f"local|{declaration.path}"
        case ClaudePluginDeclaration():
            return f"claude-plugin|{declaration.marketplace}|{declaration.plugin}"


def merge_manifests(manifests: list[Manifest]) -> MergedManifest:
    """Merge manifests in priority order; the first occurrence always wins."""
    agents: dict[str, bool] = {}
    dependencies: dict[Alias, MergedDependency] = {}
    alias_keys: dict[Alias, str] = {}
    key_aliases: dict[str, Alias] = {}
    warnings: list[str] = []

    for manifest in manifests:
        source = manifest.origin.source_path
        for agent_id, enabled in manifest.agents.items():
            agents.setdefault(agent_id, enabled)

        for alias, declaration in manifest.dependencies.items():
            key = dependency_key(declaration)
            existing_key = alias_keys.get(alias)
            if existing_key is not None:
                if existing_key != key:
                    first_source = dependencies[alias].source_path
                    raise ManifestError(
                        f'Dependency alias "{alias}" refers to different packages in '
                        f"{first_source} and {source}.",
                        error_type="alias_conflict",
                        source_path=source,
                        key=alias,
                    )
                continue

            existing_alias = key_aliases.get(key)
            if existing_alias is not None:
                warnings.append(
                    f'Dependency "{alias}" in {source} duplicates "{existing_alias}"; '
                    f'keeping "{existing_alias}".'
                )
                continue

            alias_keys[alias] = key
            key_aliases[key] = alias
            dependencies[alias] = MergedDependency(declaration=declaration, source_path=source)

    return MergedManifest(
        agents=agents,
        dependencies=dependencies,
        warnings=warnings,
        sources=[manifest.origin.source_path for manifest in manifests],
    )
