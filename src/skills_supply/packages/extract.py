"""Read skills out of a detected package structure."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from skills_supply.core.exceptions import (
    ExtractionError,
    FileSystemError,
    ManifestError,
    PluginWithoutSkillsError,
    SkError,
    ValidationError,
)
from skills_supply.core.types import NonEmptyString
from skills_supply.manifest.parse import load_manifest
from skills_supply.manifest.types import DEFAULT_SKILLS_DIR
from skills_supply.marketplace.models import parse_plugin_json
from skills_supply.packages.frontmatter import SKILL_FILENAME, parse_skill_frontmatter
from skills_supply.packages.types import (
    ManifestStructure,
    MarketplaceStructure,
    PluginStructure,
    SingleStructure,
    Skill,
    SubdirStructure,
)

if TYPE_CHECKING:
    from skills_supply.packages.types import DetectedStructure, PackageOrigin


def extract_skills(structure: DetectedStructure, origin: PackageOrigin) -> list[Skill]:
    try:
        return _extract(structure, origin)
    except OSError as exc:
        raise FileSystemError(f"Unable to read skills for {origin.alias}: {exc}") from exc


def _extract(structure: DetectedStructure, origin: PackageOrigin) -> list[Skill]:
    match structure:
        case ManifestStructure():
            skills_dir = _manifest_skills_dir(structure.manifest_path)
            skills = _extract_subdir(skills_dir, origin)
            if not skills:
                raise ExtractionError(f"No skills found in {skills_dir}.", path=str(skills_dir))
            return skills
        case PluginStructure():
            plugin_name = _plugin_name(structure.plugin_json_path)
            if structure.skills_dir is None:
                raise PluginWithoutSkillsError(
                    f'Plugin "{plugin_name}" has no skills directory.',
                    path=str(structure.plugin_json_path),
                )
            skills = _extract_subdir(structure.skills_dir, origin)
            if not skills:
                raise PluginWithoutSkillsError(
                    f'Plugin "{plugin_name}" skills directory {structure.skills_dir} contains no skills.',
                    path=str(structure.skills_dir),
                )
            return skills
        case SubdirStructure():
            return _extract_subdir(structure.root_dir, origin)
        case SingleStructure():
            return [read_skill(structure.skill_path.parent, origin)]
        case MarketplaceStructure():
            raise ExtractionError(
                "Marketplaces are not installable directly. Add a plugin from the marketplace instead.",
                path=str(structure.marketplace_json_path),
            )


def read_skill(skill_dir: Path, origin: PackageOrigin) -> Skill:
    """Read ``skill_dir/SKILL.md``; the skill name comes from its frontmatter."""
    skill_file = skill_dir / SKILL_FILENAME
    try:
        content = skill_file.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ExtractionError(
            f'Skill "{skill_dir.name}" ({skill_file}) is not valid UTF-8: {exc}',
            path=str(skill_file),
        ) from exc
    try:
        frontmatter = parse_skill_frontmatter(content)
    except ValidationError as exc:
        raise ExtractionError(
            f'Skill "{skill_dir.name}" ({skill_file}): {exc.message}',
            path=str(skill_file),
        ) from exc
    return Skill(
        name=NonEmptyString(frontmatter.name),
        source_path=skill_dir,
        origin=origin,
        description=frontmatter.description,
    )


def _extract_subdir(root_dir: Path, origin: PackageOrigin) -> list[Skill]:
    skills: list[Skill] = []
    seen: dict[str, Path] = {}
    for child in sorted(root_dir.iterdir(), key=lambda entry: entry.name):
        if not child.is_dir() or not (child / SKILL_FILENAME).is_file():
            continue
        skill = read_skill(child, origin)
        previous = seen.get(skill.name)
        if previous is not None:
            raise ExtractionError(
                f'Duplicate skill name "{skill.name}" in {previous} and {child}.',
                path=str(child),
            )
        seen[skill.name] = child
        skills.append(skill)
    return skills


def _manifest_skills_dir(manifest_path: Path) -> Path:
    try:
        manifest = load_manifest(manifest_path)
    except ManifestError as exc:
        raise ExtractionError(exc.message, path=str(manifest_path)) from exc

    exported = manifest.exports.skills if manifest.exports is not None else DEFAULT_SKILLS_DIR
    if exported is False:
        raise ExtractionError(
            f"Skills auto-discovery is disabled in {manifest_path}.",
            path=str(manifest_path),
        )

    package_root = manifest_path.parent.resolve()
    skills_dir = (package_root / exported).resolve()
    if skills_dir != package_root and package_root not in skills_dir.parents:
        raise ExtractionError(
            f"Skills directory {exported} escapes the package root.",
            path=str(manifest_path),
        )
    if not skills_dir.is_dir():
        raise ExtractionError(f"Skills directory not found: {skills_dir}", path=str(skills_dir))
    return skills_dir


def _plugin_name(plugin_json_path: Path) -> str:
    try:
        contents = plugin_json_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ExtractionError(
            f"{plugin_json_path} is not valid UTF-8: {exc}", path=str(plugin_json_path)
        ) from exc
    try:
        return parse_plugin_json(contents, str(plugin_json_path))
    except SkError as exc:
        raise ExtractionError(exc.message, path=str(plugin_json_path)) from exc
