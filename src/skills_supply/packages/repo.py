"""Repository identity, sparse path safety and fetch grouping."""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from skills_supply.core.exceptions import FetchError, ValidationError
from skills_supply.packages.types import GithubPackage

if TYPE_CHECKING:
    from skills_supply.core.types import GitRef
    from skills_supply.packages.types import RemotePackage

_UNSAFE_DIR_CHARS = re.compile(r"[^a-z0-9._-]+")


def parse_github_slug(value: str) -> tuple[str, str]:
    """Split ``owner/repo`` (optionally suffixed with ``.git``) into its parts."""
    trimmed = value.strip()
    if trimmed.endswith(".git"):
        trimmed = trimmed[: -len(".git")]
    parts = trimmed.split("/")
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ValidationError(f'Invalid GitHub repository "{value}". Expected "owner/repo".')
    return parts[0], parts[1]


def normalize_sparse_path(value: str | None) -> str | None:
    """Validate a repository subpath and return it in normalized posix form.

    Returns ``None`` when there is no path or the path refers to the
    repository root.
    """
    if value is None:
        return None
    trimmed = value.strip()
    if not trimmed:
        raise ValidationError("Package path cannot be empty.")

    candidate = trimmed.replace("\\", "/")
    if candidate.startswith("/"):
        raise ValidationError(f'Package path "{value}" must be relative.')
    if ".." in candidate.split("/"):
        raise ValidationError(f'Package path "{value}" must not escape the repository.')

    normalized = PurePosixPath(candidate).as_posix()
    while normalized.startswith("./"):
        normalized = normalized[2:]
    if normalized in {"", "."}:
        return None
    return normalized


def build_repo_key(kind: str, identity: str, ref: GitRef | None) -> str:
    if ref is None:
        return f"{kind}:{identity}:default"
    return f"{kind}:{identity}:{ref.type}:{ref.value}"


def build_repo_dir(temp_root: Path, key: str, alias: str) -> Path:
    safe_alias = _UNSAFE_DIR_CHARS.sub("-", alias.lower()).strip("-") or "repo"
    digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:12]
    return temp_root / f"{safe_alias}-{digest}"


def remote_identity(package: RemotePackage) -> tuple[str, str]:
    if isinstance(package, GithubPackage):
        return "github", package.gh
    return "git", package.url


@dataclass(frozen=True)
class RepoMember:
    index: int
    package: RemotePackage
    path: str | None


@dataclass
class RepoGroup:
    """Packages that share one checkout of the same repository and ref."""

    key: str
    kind: str
    identity: str
    ref: GitRef | None
    repo_dir: Path
    members: list[RepoMember] = field(default_factory=list)

    @property
    def full_checkout(self) -> bool:
        return any(member.path is None for member in self.members)

    @property
    def sparse_paths(self) -> list[str]:
        if self.full_checkout:
            return []
        return sorted({member.path for member in self.members if member.path is not None})

    @property
    def alias(self) -> str:
        return self.members[0].package.origin.alias


def group_repo_packages(
    packages: list[tuple[int, RemotePackage]], temp_root: Path
) -> list[RepoGroup]:
    """Group remote packages by ``(kind, identity, ref)`` preserving first-seen order."""
    groups: dict[str, RepoGroup] = {}
    for index, package in packages:
        kind, identity = remote_identity(package)
        try:
            path = normalize_sparse_path(package.path)
        except ValidationError as exc:
            raise FetchError(
                exc.message,
                fetch_type="invalid_source",
                alias=package.origin.alias,
                source=identity,
            ) from exc

        key = build_repo_key(kind, identity, package.ref)
        group = groups.get(key)
        if group is None:
            group = RepoGroup(
                key=key,
                kind=kind,
                identity=identity,
                ref=package.ref,
                repo_dir=build_repo_dir(temp_root, key, package.origin.alias),
            )
            groups[key] = group
        group.members.append(RepoMember(index=index, package=package, path=path))
    return list(groups.values())
