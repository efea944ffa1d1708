from __future__ import annotations

import shutil
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from skills_supply.core import process
from skills_supply.core.exceptions import FetchError, GitCommandError
from skills_supply.core.types import GitRef
from skills_supply.packages.fetch import fetch_packages
from skills_supply.packages.repo import build_repo_dir, build_repo_key
from skills_supply.packages.types import (
    ClaudePluginPackage,
    FetchStrategy,
    GithubPackage,
    LocalPackage,
    PackageOrigin,
    RegistryPackage,
)

if TYPE_CHECKING:
    from collections.abc import Callable


class FakeGit:
    """Stands in for ``process.run_git``; clones copy a prepared directory."""

    def __init__(self, repos: dict[str, Path], fail: Callable[[list[str]], bool] | None = None) -> None:
        self.repos = repos
        self.fail = fail
        self.calls: list[list[str]] = []

    def __call__(self, args: list[str], *, cwd: Path | None = None) -> str:
        args = list(args)
        self.calls.append(args)
        if self.fail is not None and self.fail(args):
            raise GitCommandError(["git", *args], "simulated failure", 1)
        if args[0] == "clone":
            shutil.copytree(self.repos[args[-2]], Path(args[-1]))
        return ""

    def commands(self, name: str) -> list[list[str]]:
        return [call for call in self.calls if name in call]


def _origin(alias: str) -> PackageOrigin:
    return PackageOrigin(alias=alias, manifest_path="/work/agents.toml")


def _github(alias: str, path: str | None = None, ref: GitRef | None = None) -> GithubPackage:
    return GithubPackage(
        origin=_origin(alias),
        fetch_strategy=FetchStrategy.clone(sparse=path is not None),
        gh="org/repo",
        ref=ref,
        path=path,
    )


@pytest.fixture
def upstream(tmp_path: Path) -> Path:
    repo = tmp_path / "upstream"
    (repo / "skills" / "one").mkdir(parents=True)
    (repo / "skills" / "two").mkdir(parents=True)
    return repo


@pytest.mark.asyncio
async def test_shared_repo_is_cloned_once_with_union_of_paths(
    tmp_path: Path, upstream: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    git = FakeGit({"https://github.com/org/repo.git": upstream})
    monkeypatch.setattr(process, "run_git", git)
    temp_root = tmp_path / "temp"
    temp_root.mkdir()

    fetched = await fetch_packages(
        [_github("one", "skills/one"), _github("two", "skills/two")], temp_root
    )

    assert len(git.commands("clone")) == 1
    clone = git.commands("clone")[0]
    assert "--sparse" in clone
    assert "--filter=blob:none" in clone
    assert ["sparse-checkout", "set", "skills/one", "skills/two"] == git.commands("set")[0][2:]
    assert fetched[0].repo_path == fetched[1].repo_path
    assert fetched[0].package_path == fetched[0].repo_path / "skills" / "one"
    assert fetched[1].package_path == fetched[1].repo_path / "skills" / "two"
    assert [item.canonical.origin.alias for item in fetched] == ["one", "two"]


@pytest.mark.asyncio
async def test_full_clone_when_any_member_wants_whole_repo(
    tmp_path: Path, upstream: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    git = FakeGit({"https://github.com/org/repo.git": upstream})
    monkeypatch.setattr(process, "run_git", git)

    fetched = await fetch_packages([_github("whole"), _github("part", "skills/one")], tmp_path)

    clone = git.commands("clone")[0]
    assert "--sparse" not in clone
    assert git.commands("sparse-checkout") == []
    assert fetched[0].package_path == fetched[0].repo_path


@pytest.mark.asyncio
async def test_failed_shallow_fetch_deepens_before_checkout(
    tmp_path: Path, upstream: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    git = FakeGit(
        {"https://github.com/org/repo.git": upstream},
        fail=lambda args: "tag" in args and "fetch" in args,
    )
    monkeypatch.setattr(process, "run_git", git)

    await fetch_packages([_github("tagged", ref=GitRef(type="tag", value="v1.0.0"))], tmp_path)

    tail = [call[2:] for call in git.calls[1:]]
    assert tail == [
        ["fetch", "--depth", "1", "origin", "tag", "v1.0.0"],
        ["fetch", "--depth", "50", "origin"],
        ["checkout", "--detach", "tags/v1.0.0"],
    ]


@pytest.mark.asyncio
async def test_failed_checkout_deepens_once_and_retries(
    tmp_path: Path, upstream: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    attempts = {"checkout": 0}

    def fail(args: list[str]) -> bool:
        if "checkout" in args:
            attempts["checkout"] += 1
            return attempts["checkout"] == 1
        return False

    git = FakeGit({"https://github.com/org/repo.git": upstream}, fail=fail)
    monkeypatch.setattr(process, "run_git", git)

    await fetch_packages([_github("pinned", ref=GitRef(type="rev", value="abc123"))], tmp_path)

    tail = [call[2:] for call in git.calls[1:]]
    assert tail == [
        ["fetch", "--depth", "1", "origin", "abc123"],
        ["checkout", "--detach", "abc123"],
        ["fetch", "--depth", "50", "origin"],
        ["checkout", "--detach", "abc123"],
    ]


@pytest.mark.asyncio
async def test_checkout_failure_after_deepen_is_git_error(
    tmp_path: Path, upstream: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    git = FakeGit(
        {"https://github.com/org/repo.git": upstream},
        fail=lambda args: "checkout" in args,
    )
    monkeypatch.setattr(process, "run_git", git)

    with pytest.raises(FetchError) as exc_info:
        await fetch_packages([_github("branch", ref=GitRef(type="branch", value="dev"))], tmp_path)

    assert exc_info.value.fetch_type == "git_error"
    assert exc_info.value.kind == "git_error"
    assert exc_info.value.alias == "branch"
    assert exc_info.value.source == "org/repo"
    assert len(git.commands("checkout")) == 2


@pytest.mark.asyncio
async def test_existing_destination_is_invalid_repo(
    tmp_path: Path, upstream: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    git = FakeGit({"https://github.com/org/repo.git": upstream})
    monkeypatch.setattr(process, "run_git", git)
    build_repo_dir(tmp_path, build_repo_key("github", "org/repo", None), "taken").mkdir()

    with pytest.raises(FetchError) as exc_info:
        await fetch_packages([_github("taken")], tmp_path)

    assert exc_info.value.fetch_type == "invalid_repo"
    assert git.calls == []


@pytest.mark.asyncio
async def test_missing_subpath_is_invalid_source(
    tmp_path: Path, upstream: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(process, "run_git", FakeGit({"https://github.com/org/repo.git": upstream}))

    with pytest.raises(FetchError, match="was not found") as exc_info:
        await fetch_packages([_github("missing", "skills/three")], tmp_path)

    assert exc_info.value.fetch_type == "invalid_source"


@pytest.mark.asyncio
async def test_local_packages_are_validated_not_cloned(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    git = FakeGit({})
    monkeypatch.setattr(process, "run_git", git)
    local_dir = tmp_path / "local"
    local_dir.mkdir()
    package = LocalPackage(origin=_origin("local"), fetch_strategy=FetchStrategy.symlink(), path=str(local_dir))

    [fetched] = await fetch_packages([package], tmp_path / "temp")

    assert fetched.package_path == local_dir
    assert fetched.repo_path == local_dir
    assert git.calls == []


@pytest.mark.asyncio
async def test_local_package_must_be_directory(tmp_path: Path) -> None:
    file_path = tmp_path / "file.txt"
    file_path.write_text("x", encoding="utf-8")

    for path, message in ((tmp_path / "absent", "does not exist"), (file_path, "not a directory")):
        package = LocalPackage(origin=_origin("local"), fetch_strategy=FetchStrategy.symlink(), path=str(path))
        with pytest.raises(FetchError, match=message) as exc_info:
            await fetch_packages([package], tmp_path)
        assert exc_info.value.fetch_type == "invalid_source"


@pytest.mark.asyncio
async def test_registry_and_unresolved_plugins_are_rejected(tmp_path: Path) -> None:
    registry = RegistryPackage(
        origin=_origin("reg"),
        fetch_strategy=FetchStrategy.clone(),
        registry="skills.supply",
        name="tools",
        version="1.0.0",
    )
    plugin = ClaudePluginPackage(
        origin=_origin("plug"),
        fetch_strategy=FetchStrategy.clone(),
        plugin="review",
        marketplace="org/market",
    )

    with pytest.raises(FetchError, match="Registry packages are not supported yet."):
        await fetch_packages([registry], tmp_path)
    with pytest.raises(FetchError, match="must be resolved before fetch"):
        await fetch_packages([plugin], tmp_path)
