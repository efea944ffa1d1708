"""Materialize canonical packages on disk inside a sync temp root."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING

from skills_supply.config import get_settings
from skills_supply.core import process
from skills_supply.core.exceptions import FetchError, GitCommandError, ValidationError
from skills_supply.core.logging.logger import get_logger
from skills_supply.packages.repo import group_repo_packages, parse_github_slug
from skills_supply.packages.types import (
    ClaudePluginPackage,
    FetchedPackage,
    GitPackage,
    GithubPackage,
    LocalPackage,
    RegistryPackage,
)

if TYPE_CHECKING:
    from skills_supply.core.types import GitRef
    from skills_supply.packages.repo import RepoGroup
    from skills_supply.packages.types import CanonicalPackage, RemotePackage

logger = get_logger(__name__)


def github_remote_url(gh: str) -> str:
    owner, repo = parse_github_slug(gh)
    base_url = get_settings().git.github_base_url.rstrip("/")
    return f"{base_url}/{owner}/{repo}.git"


def package_source(package: CanonicalPackage) -> str:
    """Human readable source string used in errors and logs."""
    match package:
        case RegistryPackage():
            scope = f"@{package.org}/" if package.org else ""
            return f"{scope}{package.name}@{package.version}"
        case GithubPackage():
            return package.gh
        case GitPackage():
            return package.url
        case LocalPackage():
            return package.path
        case ClaudePluginPackage():
            return f"{package.plugin}@{package.marketplace}"


async def fetch_packages(packages: list[CanonicalPackage], temp_root: Path) -> list[FetchedPackage]:
    """Fetch every package, cloning each repository+ref once.

    The result preserves the order of ``packages``.
    """
    fetched: dict[int, FetchedPackage] = {}
    remote: list[tuple[int, RemotePackage]] = []

    for index, package in enumerate(packages):
        match package:
            case LocalPackage():
                fetched[index] = fetch_local_package(package)
            case GithubPackage() | GitPackage():
                remote.append((index, package))
            case RegistryPackage():
                raise FetchError(
                    "Registry packages are not supported yet.",
                    fetch_type="invalid_source",
                    alias=package.origin.alias,
                    source=package_source(package),
                )
            case ClaudePluginPackage():
                raise FetchError(
                    f'Claude plugin "{package.plugin}" must be resolved before fetch.',
                    fetch_type="invalid_source",
                    alias=package.origin.alias,
                    source=package_source(package),
                )

    for group in group_repo_packages(remote, temp_root):
        await asyncio.to_thread(_clone_group, group)
        for member in group.members:
            package_path = group.repo_dir / member.path if member.path else group.repo_dir
            if not package_path.is_dir():
                raise FetchError(
                    f'Path "{member.path}" was not found in {group.identity}.',
                    fetch_type="invalid_source",
                    alias=member.package.origin.alias,
                    source=group.identity,
                )
            fetched[member.index] = FetchedPackage(
                canonical=member.package,
                repo_path=group.repo_dir,
                package_path=package_path,
            )

    return [fetched[index] for index in sorted(fetched)]


def fetch_local_package(package: LocalPackage) -> FetchedPackage:
    path = Path(package.path)
    try:
        is_dir = path.is_dir()
        exists = is_dir or path.exists()
    except OSError as exc:
        raise FetchError(
            f"Unable to read local package {path}: {exc}",
            fetch_type="io_error",
            alias=package.origin.alias,
            source=package.path,
        ) from exc
    if not exists:
        raise FetchError(
            f"Local package path does not exist: {path}",
            fetch_type="invalid_source",
            alias=package.origin.alias,
            source=package.path,
        )
    if not is_dir:
        raise FetchError(
            f"Local package path is not a directory: {path}",
            fetch_type="invalid_source",
            alias=package.origin.alias,
            source=package.path,
        )
    return FetchedPackage(canonical=package, repo_path=path, package_path=path)


async def clone_repository(
    *,
    remote_url: str,
    destination: Path,
    alias: str,
    source: str,
    ref: GitRef | None = None,
    sparse_paths: list[str] | None = None,
) -> Path:
    """Clone a single repository outside of package grouping (marketplace catalogs)."""
    await asyncio.to_thread(
        _clone_sync,
        remote_url=remote_url,
        destination=destination,
        ref=ref,
        sparse_paths=sparse_paths or [],
        alias=alias,
        source=source,
    )
    return destination


def _clone_group(group: RepoGroup) -> None:
    if group.kind == "github":
        try:
            remote_url = github_remote_url(group.identity)
        except ValidationError as exc:
            raise FetchError(
                exc.message,
                fetch_type="invalid_source",
                alias=group.alias,
                source=group.identity,
            ) from exc
    else:
        remote_url = group.identity

    _clone_sync(
        remote_url=remote_url,
        destination=group.repo_dir,
        ref=group.ref,
        sparse_paths=group.sparse_paths,
        alias=group.alias,
        source=group.identity,
    )


def _clone_sync(
    *,
    remote_url: str,
    destination: Path,
    ref: GitRef | None,
    sparse_paths: list[str],
    alias: str,
    source: str,
) -> None:
    if destination.exists():
        raise FetchError(
            f"Destination already exists: {destination}",
            fetch_type="invalid_repo",
            alias=alias,
            source=source,
        )

    settings = get_settings().git
    sparse = bool(sparse_paths)
    logger.info(
        "Cloning repository",
        data={
            "alias": alias,
            "source": source,
            "ref": ref.describe() if ref else None,
            "sparse_paths": sparse_paths,
        },
    )

    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        clone_args = ["clone", "--depth", str(settings.clone_depth)]
        if sparse:
            clone_args.extend(["--filter=blob:none", "--sparse"])
        clone_args.extend([remote_url, str(destination)])
        process.run_git(clone_args)

        if sparse:
            process.run_git(["-C", str(destination), "sparse-checkout", "init", "--cone"])
            process.run_git(["-C", str(destination), "sparse-checkout", "set", *sparse_paths])

        if ref is not None:
            _checkout_ref(destination, ref, settings.clone_depth, settings.deepen_depth)
    except GitCommandError as exc:
        raise FetchError(
            f"Failed to fetch {source}: {exc.message}",
            fetch_type="git_error",
            alias=alias,
            source=source,
            details=exc.stderr,
        ) from exc
    except OSError as exc:
        raise FetchError(
            f"Failed to prepare {destination}: {exc}",
            fetch_type="io_error",
            alias=alias,
            source=source,
        ) from exc


def _checkout_ref(repo_dir: Path, ref: GitRef, depth: int, deepen_depth: int) -> None:
    """Fetch and check out ``ref``, deepening history at most once."""
    git_dir = ["-C", str(repo_dir)]
    match ref.type:
        case "tag":
            fetch_args = ["fetch", "--depth", str(depth), "origin", "tag", ref.value]
            checkout_args = ["checkout", "--detach", f"tags/{ref.value}"]
        case "branch":
            refspec = f"+refs/heads/{ref.value}:refs/remotes/origin/{ref.value}"
            fetch_args = ["fetch", "--depth", str(depth), "origin", refspec]
            checkout_args = ["checkout", "-B", ref.value, f"origin/{ref.value}"]
        case "rev":
            fetch_args = ["fetch", "--depth", str(depth), "origin", ref.value]
            checkout_args = ["checkout", "--detach", ref.value]

    def deepen() -> None:
        logger.debug("Deepening shallow clone", data={"repo": str(repo_dir), "ref": ref.describe()})
        process.run_git([*git_dir, "fetch", "--depth", str(deepen_depth), "origin"])

    deepened = False
    try:
        process.run_git([*git_dir, *fetch_args])
    except GitCommandError:
        deepen()
        deepened = True

    try:
        process.run_git([*git_dir, *checkout_args])
    except GitCommandError:
        if deepened:
            raise
        deepen()
        process.run_git([*git_dir, *checkout_args])
