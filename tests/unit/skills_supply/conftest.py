from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest

import skills_supply.config as config_module

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def isolated_settings(
    tmp_path_factory: pytest.TempPathFactory, monkeypatch: pytest.MonkeyPatch
) -> Iterator[None]:
    config_dir = tmp_path_factory.mktemp("sk-config")
    for name in list(os.environ):
        if name.startswith("SK_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv(config_module.CONFIG_FILE_ENV, str(config_dir / "config.yaml"))
    monkeypatch.setattr(config_module, "_settings", None)
    yield
    config_module._settings = None


def _write_skill(directory: Path, name: str, description: str | None = None) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    lines = ["---", f"name: {name}"]
    if description is not None:
        lines.append(f"description: {description}")
    lines.extend(["---", "", f"# {name}", ""])
    (directory / "SKILL.md").write_text("\n".join(lines), encoding="utf-8")
    return directory


@pytest.fixture
def make_skill() -> Callable[..., Path]:
    """Write ``<directory>/SKILL.md`` with the given frontmatter name."""
    return _write_skill
