"""Locate agents.toml files for a working directory."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from skills_supply.manifest.parse import load_manifest
from skills_supply.manifest.types import MANIFEST_FILENAME

if TYPE_CHECKING:
    from skills_supply.manifest.parse import DiscoveredAt
    from skills_supply.manifest.types import Manifest

GLOBAL_DIRNAME = ".sk"


@dataclass(frozen=True)
class DiscoveredManifest:
    path: Path
    discovered_at: DiscoveredAt


def global_manifest_path(home_dir: Path | None = None) -> Path:
    home = home_dir if home_dir is not None else Path.home()
    return home / GLOBAL_DIRNAME / MANIFEST_FILENAME


def find_project_manifest(start_dir: Path, home_dir: Path | None = None) -> DiscoveredManifest | None:
    """Walk upward from ``start_dir`` looking for agents.toml.

    The walk stops at the home directory when ``start_dir`` is inside it,
    otherwise at the filesystem root.
    """
    start = start_dir.resolve()
    home = (home_dir if home_dir is not None else Path.home()).resolve()
    stop_at = home if start == home or home in start.parents else None

    current = start
    while True:
        candidate = current / MANIFEST_FILENAME
        if candidate.is_file():
            return DiscoveredManifest(path=candidate, discovered_at=_classify(current, start, home))
        if current == stop_at or current.parent == current:
            return None
        current = current.parent


def discover_manifests(start_dir: Path, home_dir: Path | None = None) -> list[DiscoveredManifest]:
    """Return the project manifest (if any) followed by the global manifest (if any)."""
    discovered: list[DiscoveredManifest] = []
    project = find_project_manifest(start_dir, home_dir)
    if project is not None:
        discovered.append(project)

    global_path = global_manifest_path(home_dir)
    if global_path.is_file() and (
        project is None or project.path.resolve() != global_path.resolve()
    ):
        discovered.append(DiscoveredManifest(path=global_path, discovered_at="sk-global"))
    return discovered


def load_discovered_manifests(discovered: list[DiscoveredManifest]) -> list[Manifest]:
    return [load_manifest(entry.path, entry.discovered_at) for entry in discovered]


def _classify(directory: Path, start: Path, home: Path) -> DiscoveredAt:
    if directory == start:
        return "cwd"
    if directory == home:
        return "home"
    return "parent"
