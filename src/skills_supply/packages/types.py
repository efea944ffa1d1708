from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from skills_supply.core.types import (
    AbsolutePath,
    Alias,
    GithubRef,
    GitRef,
    NonEmptyString,
    NormalizedGitUrl,
)


@dataclass(frozen=True, slots=True)
class FetchStrategy:
    mode: Literal["clone", "symlink"]
    sparse: bool = False

    @classmethod
    def clone(cls, sparse: bool = False) -> FetchStrategy:
        return cls(mode="clone", sparse=sparse)

    @classmethod
    def symlink(cls) -> FetchStrategy:
        return cls(mode="symlink")


@dataclass(frozen=True, slots=True)
class PackageOrigin:
    alias: Alias
    manifest_path: AbsolutePath
    plugin: NonEmptyString | None = None
    """Marketplace plugin this package was resolved from, if any."""


@dataclass(frozen=True, slots=True)
class RegistryPackage:
    origin: PackageOrigin
    fetch_strategy: FetchStrategy
    registry: NonEmptyString
    name: NonEmptyString
    version: NonEmptyString
    org: NonEmptyString | None = None
    type: Literal["registry"] = "registry"


@dataclass(frozen=True, slots=True)
class GithubPackage:
    origin: PackageOrigin
    fetch_strategy: FetchStrategy
    gh: GithubRef
    ref: GitRef | None = None
    path: NonEmptyString | None = None
    type: Literal["github"] = "github"


@dataclass(frozen=True, slots=True)
class GitPackage:
    origin: PackageOrigin
    fetch_strategy: FetchStrategy
    url: NormalizedGitUrl
    ref: GitRef | None = None
    path: NonEmptyString | None = None
    type: Literal["git"] = "git"


@dataclass(frozen=True, slots=True)
class LocalPackage:
    origin: PackageOrigin
    fetch_strategy: FetchStrategy
    path: AbsolutePath
    ephemeral: bool = False
    """True when ``path`` lives inside a sync temp root and will not outlive the run."""
    type: Literal["local"] = "local"


@dataclass(frozen=True, slots=True)
class ClaudePluginPackage:
    origin: PackageOrigin
    fetch_strategy: FetchStrategy
    plugin: NonEmptyString
    marketplace: NonEmptyString
    type: Literal["claude-plugin"] = "claude-plugin"


CanonicalPackage = RegistryPackage | GithubPackage | GitPackage | LocalPackage | ClaudePluginPackage
RemotePackage = GithubPackage | GitPackage


@dataclass(frozen=True, slots=True)
class FetchedPackage:
    canonical: CanonicalPackage
    repo_path: Path
    package_path: Path


@dataclass(frozen=True, slots=True)
class ManifestStructure:
    manifest_path: Path
    method: Literal["manifest"] = "manifest"


@dataclass(frozen=True, slots=True)
class PluginStructure:
    plugin_json_path: Path
    skills_dir: Path | None
    method: Literal["plugin"] = "plugin"


@dataclass(frozen=True, slots=True)
class MarketplaceStructure:
    marketplace_json_path: Path
    method: Literal["marketplace"] = "marketplace"


@dataclass(frozen=True, slots=True)
class SubdirStructure:
    root_dir: Path
    method: Literal["subdir"] = "subdir"


@dataclass(frozen=True, slots=True)
class SingleStructure:
    skill_path: Path
    method: Literal["single"] = "single"


DetectedStructure = (
    ManifestStructure | PluginStructure | MarketplaceStructure | SubdirStructure | SingleStructure
)


@dataclass(frozen=True, slots=True)
class Skill:
    name: NonEmptyString
    source_path: Path
    origin: PackageOrigin
    description: str | None = None


@dataclass(frozen=True, slots=True)
class ExtractedPackage:
    package: FetchedPackage
    skills: tuple[Skill, ...]

    @property
    def prefix(self) -> str:
        return self.package.canonical.origin.alias
