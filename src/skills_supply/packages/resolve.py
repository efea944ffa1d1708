"""Map validated declarations to canonical packages and fetch strategies."""

from __future__ import annotations

from typing import TYPE_CHECKING

from skills_supply.core.types import NonEmptyString
from skills_supply.manifest.types import (
    ClaudePluginDeclaration,
    GitDeclaration,
    GithubDeclaration,
    LocalDeclaration,
    RegistryDeclaration,
)
from skills_supply.packages.types import (
    ClaudePluginPackage,
    FetchStrategy,
    GitPackage,
    GithubPackage,
    LocalPackage,
    PackageOrigin,
    RegistryPackage,
)

if TYPE_CHECKING:
    from skills_supply.manifest.merge import MergedManifest
    from skills_supply.manifest.types import Manifest, ValidatedDeclaration
    from skills_supply.packages.types import CanonicalPackage

REGISTRY_NAME = NonEmptyString("skills.supply")


def resolve_validated_dependency(
    declaration: ValidatedDeclaration, origin: PackageOrigin
) -> CanonicalPackage:
    match declaration:
        case RegistryDeclaration():
            return RegistryPackage(
                origin=origin,
                fetch_strategy=FetchStrategy.clone(sparse=False),
                registry=REGISTRY_NAME,
                name=declaration.name,
                version=declaration.version,
                org=declaration.org,
            )
        case GithubDeclaration():
            return GithubPackage(
                origin=origin,
                fetch_strategy=FetchStrategy.clone(sparse=declaration.path is not None),
                gh=declaration.gh,
                ref=declaration.ref,
                path=declaration.path,
            )
        case GitDeclaration():
            return GitPackage(
                origin=origin,
                fetch_strategy=FetchStrategy.clone(sparse=declaration.path is not None),
                url=declaration.url,
                ref=declaration.ref,
                path=declaration.path,
            )
        case LocalDeclaration():
            return LocalPackage(
                origin=origin,
                fetch_strategy=FetchStrategy.symlink(),
                path=declaration.path,
            )
        case ClaudePluginDeclaration():
            return ClaudePluginPackage(
                origin=origin,
                fetch_strategy=FetchStrategy.clone(sparse=False),
                plugin=declaration.plugin,
                marketplace=declaration.marketplace,
            )


def resolve_manifest_packages(manifest: Manifest) -> list[CanonicalPackage]:
    return [
        resolve_validated_dependency(
            declaration,
            PackageOrigin(alias=alias, manifest_path=manifest.origin.source_path),
        )
        for alias, declaration in manifest.dependencies.items()
    ]


def resolve_merged_packages(merged: MergedManifest) -> list[CanonicalPackage]:
    return [
        resolve_validated_dependency(
            dependency.declaration,
            PackageOrigin(alias=alias, manifest_path=dependency.source_path),
        )
        for alias, dependency in merged.dependencies.items()
    ]
