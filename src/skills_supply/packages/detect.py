"""Classify a fetched package tree and select the structure to install from."""

from __future__ import annotations

from typing import TYPE_CHECKING

from skills_supply.core.exceptions import DetectionError, FileSystemError, ManifestError
from skills_supply.manifest.parse import load_manifest
from skills_supply.manifest.types import MANIFEST_FILENAME
from skills_supply.packages.frontmatter import SKILL_FILENAME
from skills_supply.packages.types import (
    ManifestStructure,
    MarketplaceStructure,
    PluginStructure,
    SingleStructure,
    SubdirStructure,
)

if TYPE_CHECKING:
    from pathlib import Path

    from skills_supply.packages.types import DetectedStructure

CLAUDE_PLUGIN_DIR = ".claude-plugin"
PLUGIN_JSON = "plugin.json"
MARKETPLACE_JSON = "marketplace.json"
PLUGIN_SKILLS_DIR = "skills"


def detect_structures(package_path: Path) -> list[DetectedStructure]:
    """Return every structural signature found under ``package_path``."""
    try:
        return _detect(package_path)
    except OSError as exc:
        raise FileSystemError(f"Unable to inspect {package_path}: {exc}", path=str(package_path)) from exc


def _detect(package_path: Path) -> list[DetectedStructure]:
    structures: list[DetectedStructure] = []

    manifest_path = package_path / MANIFEST_FILENAME
    if manifest_path.is_file():
        structures.append(ManifestStructure(manifest_path=manifest_path))

    plugin_dir = package_path / CLAUDE_PLUGIN_DIR
    if plugin_dir.is_dir():
        plugin_json = plugin_dir / PLUGIN_JSON
        marketplace_json = plugin_dir / MARKETPLACE_JSON
        if not plugin_json.is_file() and not marketplace_json.is_file():
            raise DetectionError(
                f"{plugin_dir} contains neither {PLUGIN_JSON} nor {MARKETPLACE_JSON}.",
                path=str(plugin_dir),
            )
        if plugin_json.is_file():
            skills_dir = package_path / PLUGIN_SKILLS_DIR
            structures.append(
                PluginStructure(
                    plugin_json_path=plugin_json,
                    skills_dir=skills_dir if skills_dir.is_dir() else None,
                )
            )
        if marketplace_json.is_file():
            structures.append(MarketplaceStructure(marketplace_json_path=marketplace_json))

    if any(
        child.is_dir() and (child / SKILL_FILENAME).is_file()
        for child in package_path.iterdir()
    ):
        structures.append(SubdirStructure(root_dir=package_path))

    root_skill = package_path / SKILL_FILENAME
    if root_skill.is_file():
        structures.append(SingleStructure(skill_path=root_skill))

    return structures


def select_structure(
    structures: list[DetectedStructure],
    *,
    package_path: Path,
    require_plugin: bool = False,
) -> DetectedStructure:
    """Pick the single structure to extract skills from.

    Precedence is manifest (only when it declares ``[package]``), plugin,
    subdir, then single. Packages resolved from a marketplace plugin must
    expose a plugin structure.
    """
    by_method = {structure.method: structure for structure in structures}

    if require_plugin:
        plugin = by_method.get("plugin")
        if plugin is None:
            raise DetectionError(
                f"Expected a Claude plugin ({CLAUDE_PLUGIN_DIR}/{PLUGIN_JSON}) at {package_path}.",
                path=str(package_path),
            )
        return plugin

    manifest = by_method.get("manifest")
    if isinstance(manifest, ManifestStructure) and _declares_package(manifest):
        return manifest

    for method in ("plugin", "subdir", "single"):
        structure = by_method.get(method)
        if structure is not None:
            return structure

    if "marketplace" in by_method:
        raise DetectionError(
            f"{package_path} is a plugin marketplace, not an installable package. "
            "Add a plugin from the marketplace instead.",
            path=str(package_path),
        )

    raise DetectionError(
        f"No {MANIFEST_FILENAME}, {PLUGIN_JSON}, or {SKILL_FILENAME} found in {package_path}.",
        path=str(package_path),
    )


def _declares_package(structure: ManifestStructure) -> bool:
    try:
        manifest = load_manifest(structure.manifest_path)
    except ManifestError as exc:
        raise DetectionError(
            f"Package manifest {structure.manifest_path} is invalid: {exc.message}",
            path=str(structure.manifest_path),
        ) from exc
    return manifest.package is not None
