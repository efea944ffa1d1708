from __future__ import annotations

from typing import TYPE_CHECKING

import yaml

import skills_supply.config as config_module
from skills_supply.config import get_settings

if TYPE_CHECKING:
    from pathlib import Path

    import pytest


def test_defaults_without_config_file() -> None:
    settings = get_settings()

    assert settings.git.executable == "git"
    assert settings.git.clone_depth == 1
    assert settings.git.deepen_depth == 50
    assert settings.marketplace.claude_command == "claude"
    assert get_settings() is settings


def test_yaml_file_is_layered_under_environment(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        yaml.safe_dump({"git": {"deepen_depth": 80, "executable": "/opt/git"}, "temp_dir": "/tmp/sk"}),
        encoding="utf-8",
    )
    monkeypatch.setenv(config_module.CONFIG_FILE_ENV, str(config_file))
    monkeypatch.setenv("SK_GIT__DEEPEN_DEPTH", "120")
    config_module.update_global_settings(None)

    settings = get_settings()

    assert settings.git.deepen_depth == 120
    assert settings.git.executable == "/opt/git"
    assert settings.temp_dir == "/tmp/sk"
