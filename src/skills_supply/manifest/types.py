from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from skills_supply.core.types import (
    AbsolutePath,
    Alias,
    GithubRef,
    GitRef,
    NonEmptyString,
    NormalizedGitUrl,
)

AgentId = Literal["claude-code", "codex", "opencode"]
KNOWN_AGENT_IDS: tuple[AgentId, ...] = ("claude-code", "codex", "opencode")

MANIFEST_FILENAME = "agents.toml"
DEFAULT_SKILLS_DIR = "./skills"


@dataclass(frozen=True, slots=True)
class RegistryDeclaration:
    name: NonEmptyString
    version: NonEmptyString
    org: NonEmptyString | None = None
    type: Literal["registry"] = "registry"


@dataclass(frozen=True, slots=True)
class GithubDeclaration:
    gh: GithubRef
    ref: GitRef | None = None
    path: NonEmptyString | None = None
    type: Literal["github"] = "github"


@dataclass(frozen=True, slots=True)
class GitDeclaration:
    url: NormalizedGitUrl
    ref: GitRef | None = None
    path: NonEmptyString | None = None
    type: Literal["git"] = "git"


@dataclass(frozen=True, slots=True)
class LocalDeclaration:
    path: AbsolutePath
    type: Literal["local"] = "local"


@dataclass(frozen=True, slots=True)
class ClaudePluginDeclaration:
    plugin: NonEmptyString
    marketplace: NonEmptyString
    type: Literal["claude-plugin"] = "claude-plugin"


ValidatedDeclaration = (
    RegistryDeclaration
    | GithubDeclaration
    | GitDeclaration
    | LocalDeclaration
    | ClaudePluginDeclaration
)


@dataclass(frozen=True, slots=True)
class PackageMetadata:
    name: NonEmptyString
    version: NonEmptyString
    description: NonEmptyString | None = None
    license: NonEmptyString | None = None
    org: NonEmptyString | None = None


@dataclass(frozen=True, slots=True)
class ManifestExports:
    """``skills`` is a manifest-relative directory, or ``False`` when auto discovery is off."""

    skills: NonEmptyString | Literal[False] = NonEmptyString(DEFAULT_SKILLS_DIR)


@dataclass(frozen=True, slots=True)
class ManifestOrigin:
    source_path: AbsolutePath
    discovered_at: Literal["cwd", "parent", "home", "sk-global"] = "cwd"


@dataclass(frozen=True)
class Manifest:
    origin: ManifestOrigin
    package: PackageMetadata | None = None
    agents: dict[str, bool] = field(default_factory=dict)
    dependencies: dict[Alias, ValidatedDeclaration] = field(default_factory=dict)
    exports: ManifestExports | None = None
