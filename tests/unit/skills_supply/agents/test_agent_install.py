from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from skills_supply.agents import install as install_module
from skills_supply.agents.install import (
    STAGING_PREFIX,
    apply_agent_install,
    plan_agent_install,
    preflight_agent_install,
)
from skills_supply.agents.registry import resolve_agent
from skills_supply.core.exceptions import ConflictError, FileSystemError, ValidationError
from skills_supply.packages.types import (
    ExtractedPackage,
    FetchedPackage,
    FetchStrategy,
    GithubPackage,
    LocalPackage,
    PackageOrigin,
    Skill,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from skills_supply.agents.types import Agent


@pytest.fixture
def agent(tmp_path: Path) -> Agent:
    return resolve_agent("codex", scope="local", project_root=tmp_path / "project")


def _local(alias: str, root: Path, names: list[str], *, ephemeral: bool = False) -> ExtractedPackage:
    origin = PackageOrigin(alias=alias, manifest_path="/work/agents.toml")
    canonical = LocalPackage(
        origin=origin, fetch_strategy=FetchStrategy.symlink(), path=str(root), ephemeral=ephemeral
    )
    skills = tuple(Skill(name=name, source_path=root / name, origin=origin) for name in names)
    return ExtractedPackage(
        package=FetchedPackage(canonical=canonical, repo_path=root, package_path=root),
        skills=skills,
    )


def _remote(alias: str, root: Path, names: list[str]) -> ExtractedPackage:
    origin = PackageOrigin(alias=alias, manifest_path="/work/agents.toml")
    canonical = GithubPackage(origin=origin, fetch_strategy=FetchStrategy.clone(), gh="org/repo")
    skills = tuple(Skill(name=name, source_path=root / name, origin=origin) for name in names)
    return ExtractedPackage(
        package=FetchedPackage(canonical=canonical, repo_path=root, package_path=root),
        skills=skills,
    )


def test_plan_prefixes_targets_and_picks_modes(agent: Agent, tmp_path: Path) -> None:
    plan = plan_agent_install(
        agent,
        [
            _local("local", tmp_path / "a", ["lint"]),
            _local("temp", tmp_path / "b", ["fmt"], ephemeral=True),
            _remote("remote", tmp_path / "c", ["review"]),
        ],
    )

    assert plan.target_names == ["local-lint", "temp-fmt", "remote-review"]
    assert [task.mode for task in plan.tasks] == ["symlink", "copy", "copy"]
    assert plan.tasks[0].target_path == agent.skills_path / "local-lint"
    assert not agent.skills_path.exists()


def test_plan_rejects_duplicate_targets(agent: Agent, tmp_path: Path) -> None:
    with pytest.raises(ConflictError, match="same target: a-b-c"):
        plan_agent_install(
            agent, [_local("a", tmp_path, ["b-c"]), _local("a-b", tmp_path, ["c"])]
        )


def test_plan_rejects_path_segments(agent: Agent, tmp_path: Path) -> None:
    with pytest.raises(ValidationError, match="Invalid skill name"):
        plan_agent_install(agent, [_local("pkg", tmp_path, ["../evil"])])


def test_preflight_refuses_unmanaged_targets(
    agent: Agent, tmp_path: Path, make_skill: Callable[..., Path]
) -> None:
    make_skill(tmp_path / "src" / "lint", "lint")
    plan = plan_agent_install(agent, [_local("pkg", tmp_path / "src", ["lint"])])
    (agent.skills_path / "pkg-lint").mkdir(parents=True)

    with pytest.raises(ConflictError, match="not managed by sk: pkg-lint"):
        preflight_agent_install(plan, set())

    preflight_agent_install(plan, {"pkg-lint"})


def test_apply_symlinks_and_copies(agent: Agent, tmp_path: Path, make_skill: Callable[..., Path]) -> None:
    make_skill(tmp_path / "local" / "lint", "lint")
    make_skill(tmp_path / "remote" / "review", "review")
    plan = plan_agent_install(
        agent,
        [_local("pkg", tmp_path / "local", ["lint"]), _remote("gh", tmp_path / "remote", ["review"])],
    )

    apply_agent_install(plan, set())

    linked = agent.skills_path / "pkg-lint"
    copied = agent.skills_path / "gh-review"
    assert linked.is_symlink()
    assert os.path.realpath(linked) == os.path.realpath(tmp_path / "local" / "lint")
    assert copied.is_dir() and not copied.is_symlink()
    assert (copied / "SKILL.md").is_file()
    assert not [p for p in agent.skills_path.iterdir() if p.name.startswith(STAGING_PREFIX)]


def test_apply_replaces_managed_targets(
    agent: Agent, tmp_path: Path, make_skill: Callable[..., Path]
) -> None:
    make_skill(tmp_path / "remote" / "review", "review", description="new")
    existing = agent.skills_path / "gh-review"
    existing.mkdir(parents=True)
    (existing / "stale.txt").write_text("old", encoding="utf-8")
    plan = plan_agent_install(agent, [_remote("gh", tmp_path / "remote", ["review"])])

    apply_agent_install(plan, {"gh-review"})

    assert not (existing / "stale.txt").exists()
    assert "description: new" in (existing / "SKILL.md").read_text(encoding="utf-8")


def test_apply_refuses_unmanaged_target_without_partial_writes(
    agent: Agent, tmp_path: Path, make_skill: Callable[..., Path]
) -> None:
    make_skill(tmp_path / "remote" / "a", "a")
    make_skill(tmp_path / "remote" / "b", "b")
    blocker = agent.skills_path / "gh-b"
    blocker.mkdir(parents=True)
    plan = plan_agent_install(agent, [_remote("gh", tmp_path / "remote", ["b", "a"])])

    with pytest.raises(ConflictError):
        apply_agent_install(plan, set())

    assert sorted(p.name for p in agent.skills_path.iterdir()) == ["gh-b"]


def test_failed_swap_restores_replaced_targets(
    agent: Agent, tmp_path: Path, make_skill: Callable[..., Path], monkeypatch: pytest.MonkeyPatch
) -> None:
    make_skill(tmp_path / "remote" / "a", "a", description="new")
    make_skill(tmp_path / "remote" / "b", "b")
    existing = agent.skills_path / "gh-a"
    existing.mkdir(parents=True)
    (existing / "old.txt").write_text("old", encoding="utf-8")
    plan = plan_agent_install(agent, [_remote("gh", tmp_path / "remote", ["a", "b"])])
    real_replace = os.replace

    def failing_replace(src: str | Path, dst: str | Path) -> None:
        if Path(dst) == agent.skills_path / "gh-b":
            raise OSError("disk full")
        real_replace(src, dst)

    monkeypatch.setattr(install_module.os, "replace", failing_replace)

    with pytest.raises(FileSystemError, match="disk full"):
        apply_agent_install(plan, {"gh-a"})

    assert (existing / "old.txt").read_text(encoding="utf-8") == "old"
    assert not (existing / "SKILL.md").exists()
    assert not os.path.lexists(agent.skills_path / "gh-b")
    assert sorted(p.name for p in agent.skills_path.iterdir()) == ["gh-a"]
