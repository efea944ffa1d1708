"""marketplace.json and plugin.json documents."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Literal

from skills_supply.core.exceptions import MarketplaceError
from skills_supply.marketplace.source_utils import load_json

if TYPE_CHECKING:
    from pathlib import Path

MarketplaceSourceType = Literal["path", "github", "git", "url"]


@dataclass(frozen=True)
class MarketplacePluginEntry:
    name: str
    source: Any


@dataclass(frozen=True)
class MarketplaceManifest:
    name: str
    plugins: tuple[MarketplacePluginEntry, ...]
    plugin_root: str | None = None


@dataclass(frozen=True)
class MarketplaceSource:
    type: MarketplaceSourceType
    location: str
    """Directory for ``path``, ``owner/repo`` for ``github``, URL otherwise."""


@dataclass(frozen=True)
class MarketplaceInfo:
    name: str
    plugins: tuple[MarketplacePluginEntry, ...]
    source: MarketplaceSource
    manifest_path: str
    root_path: Path | None
    plugin_root_path: Path | None = None

    @property
    def plugin_base_path(self) -> Path | None:
        return self.plugin_root_path or self.root_path

    @property
    def ephemeral(self) -> bool:
        """Fetched marketplaces live in the sync temp root and vanish after the run."""
        return self.source.type in {"github", "git"}

    @property
    def install_spec(self) -> str:
        """Marketplace reference accepted by ``claude plugin marketplace add``."""
        return self.source.location


def parse_marketplace_json(contents: str, manifest_path: str) -> MarketplaceManifest:
    payload = load_json(contents, manifest_path)
    if not isinstance(payload, dict):
        raise MarketplaceError("Marketplace manifest must be a JSON object.", path=manifest_path)

    name = payload.get("name")
    if not isinstance(name, str) or not name.strip():
        raise MarketplaceError(
            "Marketplace manifest must include a non-empty name.", path=manifest_path
        )

    raw_plugins = payload.get("plugins")
    if not isinstance(raw_plugins, list):
        raise MarketplaceError(
            "Marketplace manifest must include a plugins array.", path=manifest_path
        )

    plugins: list[MarketplacePluginEntry] = []
    for entry in raw_plugins:
        if not isinstance(entry, dict):
            raise MarketplaceError("Marketplace plugins must be objects.", path=manifest_path)
        plugin_name = entry.get("name")
        if not isinstance(plugin_name, str) or not plugin_name.strip():
            raise MarketplaceError(
                "Marketplace plugins must include a non-empty name.", path=manifest_path
            )
        if "source" not in entry:
            raise MarketplaceError(
                f'Marketplace plugin "{plugin_name.strip()}" is missing source.',
                path=manifest_path,
            )
        plugins.append(MarketplacePluginEntry(name=plugin_name.strip(), source=entry["source"]))

    plugin_root = _optional_plugin_root(payload, "pluginRoot", manifest_path)
    metadata = payload.get("metadata")
    if metadata is not None:
        if not isinstance(metadata, dict):
            raise MarketplaceError("Marketplace metadata must be a JSON object.", path=manifest_path)
        plugin_root = _optional_plugin_root(metadata, "metadata.pluginRoot", manifest_path) or plugin_root

    return MarketplaceManifest(name=name.strip(), plugins=tuple(plugins), plugin_root=plugin_root)


def parse_plugin_json(contents: str, plugin_json_path: str) -> str:
    """Return the plugin name declared in plugin.json."""
    payload = load_json(contents, plugin_json_path)
    if not isinstance(payload, dict):
        raise MarketplaceError("plugin.json must be a JSON object.", path=plugin_json_path)
    name = payload.get("name")
    if not isinstance(name, str) or not name.strip():
        raise MarketplaceError("plugin.json must include a non-empty name.", path=plugin_json_path)
    return name.strip()


def _optional_plugin_root(container: dict[str, Any], label: str, manifest_path: str) -> str | None:
    if "pluginRoot" not in container:
        return None
    value = container["pluginRoot"]
    if not isinstance(value, str) or not value.strip():
        raise MarketplaceError(
            f"Marketplace {label} must be a non-empty string.", path=manifest_path
        )
    return value.strip()
