"""Plan and apply skill installs into an agent's skills directory."""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import TYPE_CHECKING
from uuid import uuid4

from skills_supply.agents.types import AgentInstallPlan, AgentInstallTask
from skills_supply.core.exceptions import ConflictError, FileSystemError, ValidationError
from skills_supply.core.logging.logger import get_logger
from skills_supply.packages.types import LocalPackage

if TYPE_CHECKING:
    from collections.abc import Iterable

    from skills_supply.agents.types import Agent, InstallMode
    from skills_supply.packages.types import ExtractedPackage

logger = get_logger(__name__)

STAGING_PREFIX = ".sk-staging-"
BACKUP_DIRNAME = ".replaced"


def plan_agent_install(agent: Agent, packages: Iterable[ExtractedPackage]) -> AgentInstallPlan:
    """Map extracted skills to ``<skills root>/<alias>-<skill>`` targets.

    Pure: nothing is read from or written to disk.
    """
    base_path = Path(os.path.abspath(agent.skills_path))
    tasks: list[AgentInstallTask] = []
    seen: set[str] = set()

    for extracted in packages:
        mode = _install_mode(extracted)
        prefix = _validate_segment(extracted.prefix, "package alias")
        for skill in extracted.skills:
            name = _validate_segment(skill.name, "skill name")
            target_name = f"{prefix}-{name}"
            target_path = base_path / target_name
            if target_path.parent != base_path:
                raise ValidationError(f"Skill target escapes {base_path}: {target_name}")
            if target_name in seen:
                raise ConflictError(f"Multiple skills would install to the same target: {target_name}")
            seen.add(target_name)
            tasks.append(
                AgentInstallTask(
                    target_name=target_name,
                    target_path=target_path,
                    source_path=skill.source_path,
                    mode=mode,
                )
            )

    return AgentInstallPlan(agent_id=agent.id, base_path=base_path, tasks=tuple(tasks))


def preflight_agent_install(plan: AgentInstallPlan, managed: set[str]) -> None:
    """Refuse to touch existing targets that were not installed by us."""
    for task in plan.tasks:
        if os.path.lexists(task.target_path) and task.target_name not in managed:
            raise ConflictError(
                f"Skill target already exists and is not managed by sk: {task.target_name}",
                path=str(task.target_path),
            )


def apply_agent_install(plan: AgentInstallPlan, managed: set[str]) -> None:
    """Install every task, replacing managed targets.

    All tasks are materialized in a staging directory first. Replaced
    targets are parked in the staging directory until every swap has
    succeeded; if a swap fails, the targets swapped so far are restored.
    """
    try:
        plan.base_path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise FileSystemError(f"Unable to create {plan.base_path}: {exc}", path=str(plan.base_path)) from exc

    for task in plan.tasks:
        if not task.source_path.is_dir():
            raise FileSystemError(
                f"Skill source is not a directory: {task.source_path}",
                path=str(task.source_path),
            )

    staging_dir = plan.base_path / f"{STAGING_PREFIX}{uuid4().hex}"
    backup_dir = staging_dir / BACKUP_DIRNAME
    swapped: list[tuple[AgentInstallTask, Path | None]] = []
    try:
        staging_dir.mkdir()
        for task in plan.tasks:
            _materialize(task.source_path, staging_dir / task.target_name, task.mode)
        backup_dir.mkdir()

        for task in plan.tasks:
            backup: Path | None = None
            if os.path.lexists(task.target_path):
                if task.target_name not in managed:
                    raise ConflictError(
                        f"Skill target already exists and is not managed by sk: {task.target_name}",
                        path=str(task.target_path),
                    )
                backup = backup_dir / task.target_name
                os.replace(task.target_path, backup)
            swapped.append((task, backup))
            os.replace(staging_dir / task.target_name, task.target_path)
    except ConflictError:
        _roll_back(swapped)
        raise
    except OSError as exc:
        _roll_back(swapped)
        raise FileSystemError(f"Failed to install skills into {plan.base_path}: {exc}") from exc
    finally:
        if os.path.lexists(staging_dir):
            shutil.rmtree(staging_dir, ignore_errors=True)

    logger.info(
        "Installed skills",
        data={"agent": plan.agent_id, "count": len(plan.tasks), "path": str(plan.base_path)},
    )


def _roll_back(swapped: list[tuple[AgentInstallTask, Path | None]]) -> None:
    """Undo swaps newest first, restoring each parked target."""
    for task, backup in reversed(swapped):
        try:
            if os.path.lexists(task.target_path):
                remove_path(task.target_path)
            if backup is not None:
                os.replace(backup, task.target_path)
        except OSError as exc:
            logger.error(
                "Failed to restore skill target",
                data={"target": str(task.target_path), "error": str(exc)},
            )


def remove_path(path: Path) -> None:
    """Remove a file, symlink or directory tree without following symlinks."""
    if path.is_symlink() or path.is_file():
        path.unlink()
    elif path.is_dir():
        shutil.rmtree(path)


def _materialize(source: Path, destination: Path, mode: InstallMode) -> None:
    if mode == "symlink":
        os.symlink(source.resolve(), destination, target_is_directory=True)
    else:
        shutil.copytree(source, destination, symlinks=True)


def _install_mode(extracted: ExtractedPackage) -> InstallMode:
    canonical = extracted.package.canonical
    if isinstance(canonical, LocalPackage) and not canonical.ephemeral:
        return "symlink"
    return "copy"


def _validate_segment(value: str, label: str) -> str:
    if not value or value in {".", ".."} or "/" in value or "\\" in value:
        raise ValidationError(f"Invalid {label} for install target: {value!r}")
    return value
