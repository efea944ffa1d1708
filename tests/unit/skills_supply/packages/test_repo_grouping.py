from __future__ import annotations

from pathlib import Path

import pytest

from skills_supply.core.exceptions import FetchError, ValidationError
from skills_supply.core.types import GitRef
from skills_supply.packages.repo import (
    build_repo_dir,
    build_repo_key,
    group_repo_packages,
    normalize_sparse_path,
    parse_github_slug,
)
from skills_supply.packages.types import FetchStrategy, GithubPackage, PackageOrigin


def _github(alias: str, gh: str = "org/repo", path: str | None = None, ref: GitRef | None = None) -> GithubPackage:
    return GithubPackage(
        origin=PackageOrigin(alias=alias, manifest_path="/work/agents.toml"),
        fetch_strategy=FetchStrategy.clone(sparse=path is not None),
        gh=gh,
        ref=ref,
        path=path,
    )


@pytest.mark.parametrize("value", ["../x", "/x", "", "   ", "a/../../b", "a\\..\\b"])
def test_normalize_sparse_path_rejects_unsafe_values(value: str) -> None:
    with pytest.raises(ValidationError):
        normalize_sparse_path(value)


def test_normalize_sparse_path_accepts_and_normalizes() -> None:
    assert normalize_sparse_path("a/b") == "a/b"
    assert normalize_sparse_path("./a/./b") == "a/b"
    assert normalize_sparse_path("a\\b") == "a/b"
    assert normalize_sparse_path(".") is None
    assert normalize_sparse_path(None) is None


def test_parse_github_slug() -> None:
    assert parse_github_slug("org/repo.git") == ("org", "repo")
    with pytest.raises(ValidationError):
        parse_github_slug("org/")
    with pytest.raises(ValidationError):
        parse_github_slug("org/repo/extra")


def test_repo_key_and_dir_are_stable() -> None:
    ref = GitRef(type="tag", value="v1")
    key = build_repo_key("github", "org/repo", ref)

    assert key == "github:org/repo:tag:v1"
    assert build_repo_key("git", "https://x/y", None) == "git:https://x/y:default"

    repo_dir = build_repo_dir(Path("/tmp/root"), key, "My Alias!")
    assert repo_dir.parent == Path("/tmp/root")
    assert repo_dir.name.startswith("my-alias-")
    assert repo_dir == build_repo_dir(Path("/tmp/root"), key, "My Alias!")


def test_same_repo_and_ref_share_one_sparse_group(tmp_path: Path) -> None:
    ref = GitRef(type="branch", value="main")
    packages = [
        (0, _github("one", path="skills/one", ref=ref)),
        (1, _github("two", path="./skills/two", ref=ref)),
    ]

    [group] = group_repo_packages(packages, tmp_path)

    assert group.full_checkout is False
    assert group.sparse_paths == ["skills/one", "skills/two"]
    assert [member.path for member in group.members] == ["skills/one", "skills/two"]


def test_member_without_path_forces_full_checkout(tmp_path: Path) -> None:
    packages = [(0, _github("whole")), (1, _github("part", path="skills"))]

    [group] = group_repo_packages(packages, tmp_path)

    assert group.full_checkout is True
    assert group.sparse_paths == []


def test_different_refs_are_separate_groups(tmp_path: Path) -> None:
    packages = [
        (0, _github("a", ref=GitRef(type="tag", value="v1"))),
        (1, _github("b", ref=GitRef(type="tag", value="v2"))),
    ]

    groups = group_repo_packages(packages, tmp_path)

    assert len(groups) == 2
    assert groups[0].repo_dir != groups[1].repo_dir


def test_unsafe_path_reports_alias(tmp_path: Path) -> None:
    with pytest.raises(FetchError) as exc_info:
        group_repo_packages([(0, _github("bad", path="../escape"))], tmp_path)

    assert exc_info.value.fetch_type == "invalid_source"
    assert exc_info.value.alias == "bad"
