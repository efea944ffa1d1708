"""
Sync orchestration.

For each agent: resolve plugins, fetch, detect and extract skills, validate,
plan, preflight against the previous managed state, then (unless dry-run)
install, remove stale skills and persist the new state. Every agent gets
its own temp root, which is removed however the run ends.
"""

from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING

from skills_supply.agents.install import (
    apply_agent_install,
    plan_agent_install,
    preflight_agent_install,
)
from skills_supply.agents.reconcile import reconcile_agent_skills, stale_skills
from skills_supply.agents.registry import resolve_enabled_agents
from skills_supply.agents.state import build_agent_state, read_agent_state, write_agent_state
from skills_supply.config import get_settings
from skills_supply.core.exceptions import (
    DetectionError,
    NotFoundError,
    PluginWithoutSkillsError,
    ValidationError,
)
from skills_supply.core.logging.logger import get_logger
from skills_supply.manifest.discover import discover_manifests, load_discovered_manifests
from skills_supply.manifest.merge import merge_manifests
from skills_supply.packages.detect import detect_structures, select_structure
from skills_supply.packages.extract import extract_skills
from skills_supply.packages.fetch import fetch_packages
from skills_supply.packages.resolve import resolve_manifest_packages, resolve_merged_packages
from skills_supply.packages.types import ExtractedPackage
from skills_supply.sync.errors import SyncStageError, sync_stage, to_failure
from skills_supply.sync.marketplace import resolve_agent_packages
from skills_supply.sync.types import AgentSyncOutcome, SyncSummary
from skills_supply.sync.validate import validate_extracted_packages

if TYPE_CHECKING:
    from collections.abc import Sequence

    from skills_supply.agents.types import Agent
    from skills_supply.manifest.types import Manifest
    from skills_supply.packages.types import CanonicalPackage, FetchedPackage
    from skills_supply.sync.types import SyncResult

logger = get_logger(__name__)


async def run_sync(
    packages: Sequence[CanonicalPackage],
    agents: Sequence[Agent],
    *,
    dry_run: bool = False,
    manifests: int = 1,
    warnings: Sequence[str] = (),
) -> SyncResult:
    """Sync ``packages`` into every agent; never raises for expected failures."""
    try:
        return await _run_sync(
            list(packages), list(agents), dry_run=dry_run, manifests=manifests, warnings=list(warnings)
        )
    except SyncStageError as exc:
        logger.error(
            "Sync failed",
            data={"stage": exc.stage, "kind": exc.error.kind, "agent": exc.agent, "error": exc.error.message},
        )
        return to_failure(exc)


async def sync_manifest(manifest: Manifest, agents: Sequence[Agent], *, dry_run: bool = False) -> SyncResult:
    return await run_sync(resolve_manifest_packages(manifest), agents, dry_run=dry_run)


async def sync_project(
    start_dir: Path,
    *,
    dry_run: bool = False,
    home_dir: Path | None = None,
) -> SyncResult:
    """Discover, parse and merge the manifests for ``start_dir`` and sync their agents."""
    try:
        with sync_stage("discover"):
            discovered = discover_manifests(start_dir, home_dir)
            if not discovered:
                raise NotFoundError(f"No agents.toml found from {start_dir} or the global sk directory.")

        with sync_stage("parse"):
            manifests = load_discovered_manifests(discovered)

        with sync_stage("merge"):
            merged = merge_manifests(manifests)

        with sync_stage("agents"):
            project = discovered[0]
            if project.discovered_at == "sk-global":
                agents = resolve_enabled_agents(merged.agents, scope="global", home_dir=home_dir)
            else:
                agents = resolve_enabled_agents(
                    merged.agents, scope="local", project_root=project.path.parent
                )

        with sync_stage("resolve"):
            packages = resolve_merged_packages(merged)
    except SyncStageError as exc:
        return to_failure(exc)

    return await run_sync(
        packages,
        agents,
        dry_run=dry_run,
        manifests=len(manifests),
        warnings=merged.warnings,
    )


async def _run_sync(
    packages: list[CanonicalPackage],
    agents: list[Agent],
    *,
    dry_run: bool,
    manifests: int,
    warnings: list[str],
) -> SyncSummary:
    if not agents:
        with sync_stage("agents"):
            raise ValidationError("No agents provided for sync.")

    if not packages:
        return _sync_without_dependencies(agents, dry_run=dry_run, manifests=manifests, warnings=warnings)

    installed = 0
    removed = 0
    for agent in agents:
        outcome = await _sync_agent(agent, packages, dry_run=dry_run)
        installed += outcome.installed
        removed += outcome.removed
        warnings.extend(outcome.warnings)

    return SyncSummary(
        agents=[agent.id for agent in agents],
        dependencies=len(packages),
        dry_run=dry_run,
        installed=installed,
        manifests=manifests,
        removed=removed,
        warnings=warnings,
    )


def _sync_without_dependencies(
    agents: list[Agent], *, dry_run: bool, manifests: int, warnings: list[str]
) -> SyncSummary:
    removed = 0
    any_state = False
    for agent in agents:
        with sync_stage("reconcile", agent.id):
            previous = read_agent_state(agent)
            if previous is None:
                continue
            any_state = True
            if dry_run:
                removed += len(previous.skills)
                continue
            removed += len(reconcile_agent_skills(agent, previous, []))
            write_agent_state(agent, build_agent_state([]))

    return SyncSummary(
        agents=[agent.id for agent in agents],
        dependencies=0,
        dry_run=dry_run,
        installed=0,
        manifests=manifests,
        removed=removed,
        warnings=warnings,
        no_op_reason=None if any_state else "no-dependencies",
    )


async def _sync_agent(agent: Agent, packages: list[CanonicalPackage], *, dry_run: bool) -> AgentSyncOutcome:
    settings = get_settings()
    temp_root = Path(tempfile.mkdtemp(prefix=f"sk-{agent.id}-", dir=settings.temp_dir))
    logger.info(
        "Syncing agent",
        data={"agent": agent.id, "packages": len(packages), "dry_run": dry_run},
    )
    try:
        with sync_stage("resolve", agent.id):
            resolved = await resolve_agent_packages(agent, packages, temp_root, dry_run=dry_run)
        warnings = list(resolved.warnings)

        with sync_stage("fetch", agent.id):
            fetched = await fetch_packages(resolved.packages, temp_root)

        extracted = _detect_and_extract(agent, fetched, warnings)

        with sync_stage("validate", agent.id):
            validate_extracted_packages(extracted)

        with sync_stage("install", agent.id):
            plan = plan_agent_install(agent, extracted)

        with sync_stage("reconcile", agent.id):
            previous = read_agent_state(agent)
        if previous is None:
            warnings.append(f"No prior state for {agent.display_name}; skipping stale skill removal.")
        managed = previous.managed if previous is not None else set()

        with sync_stage("install", agent.id):
            preflight_agent_install(plan, managed)

        desired = plan.target_names
        if dry_run:
            return AgentSyncOutcome(
                installed=len(desired),
                removed=len(stale_skills(previous, desired)),
                warnings=warnings,
            )

        with sync_stage("install", agent.id):
            apply_agent_install(plan, managed)

        with sync_stage("reconcile", agent.id):
            removed = reconcile_agent_skills(agent, previous, desired)
            write_agent_state(agent, build_agent_state(desired))

        return AgentSyncOutcome(installed=len(desired), removed=len(removed), warnings=warnings)
    finally:
        shutil.rmtree(temp_root, ignore_errors=True)


def _detect_and_extract(
    agent: Agent, fetched: list[FetchedPackage], warnings: list[str]
) -> list[ExtractedPackage]:
    extracted: list[ExtractedPackage] = []
    for package in fetched:
        origin = package.canonical.origin
        with sync_stage("detect", agent.id):
            structures = detect_structures(package.package_path)
            try:
                structure = select_structure(
                    structures,
                    package_path=package.package_path,
                    require_plugin=origin.plugin is not None,
                )
            except DetectionError as exc:
                raise DetectionError(f'Package "{origin.alias}": {exc.message}', path=exc.path) from exc

        with sync_stage("extract", agent.id):
            try:
                skills = extract_skills(structure, origin)
            except PluginWithoutSkillsError as exc:
                message = f'Skipping "{origin.alias}": {exc.message}'
                logger.warning(message, data={"agent": agent.id, "alias": origin.alias})
                warnings.append(message)
                continue

        extracted.append(ExtractedPackage(package=package, skills=tuple(skills)))
    return extracted
