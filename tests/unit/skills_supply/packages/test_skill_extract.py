from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from skills_supply.core.exceptions import ExtractionError, PluginWithoutSkillsError
from skills_supply.packages.extract import extract_skills
from skills_supply.packages.frontmatter import parse_skill_frontmatter, split_frontmatter
from skills_supply.packages.types import (
    ManifestStructure,
    MarketplaceStructure,
    PackageOrigin,
    PluginStructure,
    SingleStructure,
    SubdirStructure,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

ORIGIN = PackageOrigin(alias="pkg", manifest_path="/work/agents.toml")


def test_frontmatter_name_is_authoritative(tmp_path: Path, make_skill: Callable[..., Path]) -> None:
    make_skill(tmp_path / "folder-name", "real-name", description="Does things")

    [skill] = extract_skills(SubdirStructure(root_dir=tmp_path), ORIGIN)

    assert skill.name == "real-name"
    assert skill.description == "Does things"
    assert skill.source_path == tmp_path / "folder-name"
    assert skill.origin is ORIGIN


def test_subdir_skills_are_sorted_and_skip_plain_directories(
    tmp_path: Path, make_skill: Callable[..., Path]
) -> None:
    make_skill(tmp_path / "b", "beta")
    make_skill(tmp_path / "a", "alpha")
    (tmp_path / "docs").mkdir()

    skills = extract_skills(SubdirStructure(root_dir=tmp_path), ORIGIN)

    assert [skill.name for skill in skills] == ["alpha", "beta"]


def test_duplicate_frontmatter_names_fail(tmp_path: Path, make_skill: Callable[..., Path]) -> None:
    make_skill(tmp_path / "one", "same")
    make_skill(tmp_path / "two", "same")

    with pytest.raises(ExtractionError, match='Duplicate skill name "same"'):
        extract_skills(SubdirStructure(root_dir=tmp_path), ORIGIN)


def test_missing_frontmatter_fails(tmp_path: Path) -> None:
    (tmp_path / "SKILL.md").write_text("# No frontmatter\n", encoding="utf-8")

    with pytest.raises(ExtractionError, match="must start with YAML frontmatter"):
        extract_skills(SingleStructure(skill_path=tmp_path / "SKILL.md"), ORIGIN)


def test_single_skill(tmp_path: Path, make_skill: Callable[..., Path]) -> None:
    make_skill(tmp_path, "solo")

    [skill] = extract_skills(SingleStructure(skill_path=tmp_path / "SKILL.md"), ORIGIN)

    assert skill.name == "solo"
    assert skill.source_path == tmp_path


def _plugin(root: Path, with_skills_dir: bool) -> PluginStructure:
    (root / ".claude-plugin").mkdir(parents=True)
    plugin_json = root / ".claude-plugin" / "plugin.json"
    plugin_json.write_text('{"name": "reviewer"}', encoding="utf-8")
    skills_dir = root / "skills"
    if with_skills_dir:
        skills_dir.mkdir()
    return PluginStructure(plugin_json_path=plugin_json, skills_dir=skills_dir if with_skills_dir else None)


def test_plugin_without_skills_dir(tmp_path: Path) -> None:
    with pytest.raises(PluginWithoutSkillsError, match='Plugin "reviewer" has no skills directory'):
        extract_skills(_plugin(tmp_path, with_skills_dir=False), ORIGIN)


def test_plugin_with_empty_skills_dir(tmp_path: Path) -> None:
    with pytest.raises(PluginWithoutSkillsError, match="contains no skills"):
        extract_skills(_plugin(tmp_path, with_skills_dir=True), ORIGIN)


def test_plugin_skills(tmp_path: Path, make_skill: Callable[..., Path]) -> None:
    structure = _plugin(tmp_path, with_skills_dir=True)
    make_skill(tmp_path / "skills" / "review", "review")

    assert [skill.name for skill in extract_skills(structure, ORIGIN)] == ["review"]


def test_manifest_exports_default_and_custom_dir(
    tmp_path: Path, make_skill: Callable[..., Path]
) -> None:
    manifest = tmp_path / "agents.toml"
    manifest.write_text('[package]\nname = "tools"\nversion = "1.0.0"\n', encoding="utf-8")
    make_skill(tmp_path / "skills" / "lint", "lint")
    assert [s.name for s in extract_skills(ManifestStructure(manifest_path=manifest), ORIGIN)] == ["lint"]

    manifest.write_text(
        '[package]\nname = "tools"\nversion = "1.0.0"\n\n[exports.auto_discover]\nskills = "./custom"\n',
        encoding="utf-8",
    )
    make_skill(tmp_path / "custom" / "fmt", "fmt")
    assert [s.name for s in extract_skills(ManifestStructure(manifest_path=manifest), ORIGIN)] == ["fmt"]


def test_manifest_exports_disabled(tmp_path: Path) -> None:
    manifest = tmp_path / "agents.toml"
    manifest.write_text(
        '[package]\nname = "tools"\nversion = "1.0.0"\n\n[exports.auto_discover]\nskills = false\n',
        encoding="utf-8",
    )

    with pytest.raises(ExtractionError, match="auto-discovery is disabled"):
        extract_skills(ManifestStructure(manifest_path=manifest), ORIGIN)


def test_manifest_exports_cannot_escape(tmp_path: Path) -> None:
    package = tmp_path / "package"
    package.mkdir()
    (tmp_path / "outside").mkdir()
    manifest = package / "agents.toml"
    manifest.write_text(
        '[package]\nname = "tools"\nversion = "1.0.0"\n\n[exports.auto_discover]\nskills = "../outside"\n',
        encoding="utf-8",
    )

    with pytest.raises(ExtractionError, match="escapes the package root"):
        extract_skills(ManifestStructure(manifest_path=manifest), ORIGIN)


def test_marketplace_structure_is_not_extractable(tmp_path: Path) -> None:
    with pytest.raises(ExtractionError, match="Add a plugin from the marketplace instead"):
        extract_skills(MarketplaceStructure(marketplace_json_path=tmp_path / "marketplace.json"), ORIGIN)


def test_frontmatter_parsing_details() -> None:
    assert split_frontmatter("no frontmatter") is None
    assert split_frontmatter("---\nname: x\n") is None

    parsed = parse_skill_frontmatter("---\r\nname: ' spaced '\r\nlicense: MIT\r\n---\r\nBody\r\n")
    assert parsed.name == "spaced"
    assert parsed.description is None
    assert parsed.metadata == {"license": "MIT"}


def test_skill_file_with_invalid_utf8_fails(tmp_path: Path) -> None:
    (tmp_path / "bad").mkdir()
    (tmp_path / "bad" / "SKILL.md").write_bytes(b"---\nname: bad\xff\n---\n")

    with pytest.raises(ExtractionError, match="not valid UTF-8") as exc_info:
        extract_skills(SubdirStructure(root_dir=tmp_path), ORIGIN)

    assert exc_info.value.path == str(tmp_path / "bad" / "SKILL.md")


def test_plugin_json_with_invalid_utf8_fails(tmp_path: Path) -> None:
    structure = _plugin(tmp_path, with_skills_dir=True)
    structure.plugin_json_path.write_bytes(b'{"name": "\xff"}')

    with pytest.raises(ExtractionError, match="not valid UTF-8"):
        extract_skills(structure, ORIGIN)
