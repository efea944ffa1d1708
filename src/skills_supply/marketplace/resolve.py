"""Load marketplace catalogs and resolve plugin entries into declarations."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from skills_supply.core.exceptions import (
    FileSystemError,
    ManifestError,
    MarketplaceError,
    NotFoundError,
    ValidationError,
)
from skills_supply.core.logging.logger import get_logger
from skills_supply.core.types import AbsolutePath, NonEmptyString, looks_like_git_url
from skills_supply.manifest.coerce import coerce_dependency
from skills_supply.manifest.types import MANIFEST_FILENAME, ClaudePluginDeclaration
from skills_supply.marketplace.models import (
    MarketplaceInfo,
    MarketplaceSource,
    parse_marketplace_json,
)
from skills_supply.marketplace.source_utils import (
    fetch_marketplace_text,
    looks_like_marketplace_json_url,
    read_text_file,
    resolve_path_from_source,
    resolve_under,
    strip_github_prefix,
)
from skills_supply.packages.fetch import clone_repository, github_remote_url
from skills_supply.packages.repo import build_repo_dir, build_repo_key, parse_github_slug
from skills_supply.packages.resolve import resolve_validated_dependency
from skills_supply.packages.types import LocalPackage, PackageOrigin

if TYPE_CHECKING:
    from skills_supply.manifest.types import ValidatedDeclaration
    from skills_supply.marketplace.models import MarketplacePluginEntry
    from skills_supply.packages.types import CanonicalPackage, ClaudePluginPackage

logger = get_logger(__name__)

CLAUDE_PLUGIN_DIR = ".claude-plugin"
MARKETPLACE_JSON = "marketplace.json"
MARKETPLACE_ALIAS = "marketplace"
# Catalog clones live apart from package checkouts.
MARKETPLACE_DIRNAME = "marketplaces"


@dataclass
class MarketplaceContext:
    """Per-run state: where fetched marketplaces go and which are already loaded."""

    temp_root: Path
    cache: dict[str, MarketplaceInfo] = field(default_factory=dict)


def parse_marketplace_spec(spec: str, source_path: str) -> MarketplaceSource:
    """Classify a marketplace reference.

    Order: ``github:``/``gh:`` shorthand, marketplace.json URL, git URL,
    existing directory relative to ``source_path``, then ``owner/repo``.
    """
    trimmed = spec.strip()
    if not trimmed:
        raise MarketplaceError("Marketplace spec must not be empty.")

    stripped = strip_github_prefix(trimmed)
    if stripped != trimmed:
        return MarketplaceSource(type="github", location=_github_slug(stripped))

    if looks_like_marketplace_json_url(trimmed):
        return MarketplaceSource(type="url", location=trimmed)

    if looks_like_git_url(trimmed):
        return MarketplaceSource(type="git", location=trimmed)

    candidate = resolve_path_from_source(source_path, trimmed)
    try:
        if candidate.is_dir():
            return MarketplaceSource(type="path", location=str(candidate))
        exists = candidate.exists()
    except OSError as exc:
        raise FileSystemError(f"Unable to inspect {candidate}: {exc}", path=str(candidate)) from exc
    if exists:
        raise MarketplaceError(f"Marketplace path is not a directory: {candidate}", path=str(candidate))

    return MarketplaceSource(type="github", location=_github_slug(trimmed))


async def load_marketplace_info(
    spec: str, source_path: str, context: MarketplaceContext
) -> MarketplaceInfo:
    cached = context.cache.get(spec)
    if cached is not None:
        return cached

    source = parse_marketplace_spec(spec, source_path)
    root_path: Path | None = None

    if source.type == "url":
        manifest_path = source.location
        contents = await fetch_marketplace_text(source.location)
    else:
        root_path = await _materialize_marketplace(source, source_path, context)
        manifest_file = root_path / CLAUDE_PLUGIN_DIR / MARKETPLACE_JSON
        manifest_path = str(manifest_file)
        contents = read_text_file(manifest_file)

    manifest = parse_marketplace_json(contents, manifest_path)

    plugin_root_path: Path | None = None
    if manifest.plugin_root is not None:
        if root_path is None:
            raise MarketplaceError(
                "Marketplace pluginRoot is not supported for URL marketplaces.",
                path=manifest_path,
            )
        plugin_root_path = resolve_under(root_path, manifest.plugin_root)
        if not plugin_root_path.exists():
            raise MarketplaceError(
                f"Marketplace pluginRoot does not exist: {plugin_root_path}",
                path=manifest_path,
            )
        if not plugin_root_path.is_dir():
            raise MarketplaceError(
                f"Marketplace pluginRoot is not a directory: {plugin_root_path}",
                path=manifest_path,
            )

    info = MarketplaceInfo(
        name=manifest.name,
        plugins=manifest.plugins,
        source=source,
        manifest_path=manifest_path,
        root_path=root_path,
        plugin_root_path=plugin_root_path,
    )
    context.cache[spec] = info
    logger.debug(
        "Loaded marketplace",
        data={"spec": spec, "name": info.name, "plugins": len(info.plugins)},
    )
    return info


def find_marketplace_plugin(info: MarketplaceInfo, plugin_name: str) -> MarketplacePluginEntry:
    for entry in info.plugins:
        if entry.name == plugin_name:
            return entry
    raise NotFoundError(f'Marketplace "{info.name}" does not contain plugin "{plugin_name}".')


def resolve_plugin_source(source: Any, alias: str, info: MarketplaceInfo) -> dict[str, str]:
    """Translate a marketplace plugin ``source`` into a raw dependency table."""
    if isinstance(source, str):
        return _resolve_relative_source(source, alias, info)

    if not isinstance(source, dict):
        raise MarketplaceError(f'Plugin "{alias}" source must be a string or object declaration.')

    source_type = source.get("source")
    if not isinstance(source_type, str) or not source_type.strip():
        raise MarketplaceError(f'Plugin "{alias}" source must include a non-empty "source" field.')
    source_type = source_type.strip()

    allowed = {"github": {"source", "repo"}, "url": {"source", "url"}}.get(source_type, {"source"})
    unknown = [key for key in source if key not in allowed]
    if unknown:
        raise MarketplaceError(f'Plugin "{alias}" source has unknown keys: {", ".join(unknown)}.')

    if source_type == "github":
        repo = source.get("repo")
        if not isinstance(repo, str) or not repo.strip():
            raise MarketplaceError(f'Plugin "{alias}" source repo must be a string.')
        return {"gh": strip_github_prefix(repo.strip())}

    if source_type == "url":
        url = source.get("url")
        if not isinstance(url, str) or not url.strip():
            raise MarketplaceError(f'Plugin "{alias}" source url must be a string.')
        return {"git": url.strip()}

    raise MarketplaceError(f'Plugin "{alias}" source must use "github" or "url" for source type.')


async def resolve_plugin_package(
    plugin: ClaudePluginPackage, context: MarketplaceContext
) -> CanonicalPackage:
    """Resolve a Claude plugin dependency into an ordinary package."""
    info = await load_marketplace_info(plugin.marketplace, plugin.origin.manifest_path, context)
    entry = find_marketplace_plugin(info, plugin.plugin)
    alias = plugin.origin.alias
    raw = resolve_plugin_source(entry.source, alias, info)

    base_dir = info.plugin_base_path or context.temp_root
    manifest_path = AbsolutePath(str((base_dir / MANIFEST_FILENAME).resolve()))
    try:
        declaration = coerce_dependency(raw, alias, manifest_path)
    except ManifestError as exc:
        raise MarketplaceError(
            f'Plugin "{plugin.plugin}" in marketplace "{info.name}" has an invalid source: {exc.message}'
        ) from exc
    _assert_not_plugin(declaration, plugin)

    origin = PackageOrigin(
        alias=alias,
        manifest_path=manifest_path,
        plugin=NonEmptyString(plugin.plugin),
    )
    package = resolve_validated_dependency(declaration, origin)
    if isinstance(package, LocalPackage) and info.ephemeral:
        return LocalPackage(
            origin=package.origin,
            fetch_strategy=package.fetch_strategy,
            path=package.path,
            ephemeral=True,
        )
    return package


async def validate_plugin(plugin: ClaudePluginPackage, context: MarketplaceContext) -> MarketplaceInfo:
    info = await load_marketplace_info(plugin.marketplace, plugin.origin.manifest_path, context)
    find_marketplace_plugin(info, plugin.plugin)
    return info


def _assert_not_plugin(declaration: ValidatedDeclaration, plugin: ClaudePluginPackage) -> None:
    if isinstance(declaration, ClaudePluginDeclaration):
        raise MarketplaceError(
            f'Plugin "{plugin.plugin}" resolves to another Claude plugin, which is not supported.'
        )


def _resolve_relative_source(source: str, alias: str, info: MarketplaceInfo) -> dict[str, str]:
    trimmed = source.strip()
    if not trimmed:
        raise MarketplaceError(f'Plugin "{alias}" source must not be empty.')

    base_dir = info.plugin_base_path
    if base_dir is None:
        raise MarketplaceError(
            f'Plugin "{alias}" uses a relative source, but marketplace URL sources '
            "do not support relative plugin paths."
        )

    candidate = resolve_under(base_dir, trimmed)
    if candidate.is_dir():
        return {"path": str(candidate)}
    if candidate.exists():
        raise MarketplaceError(f'Plugin "{alias}" source path is not a directory: {candidate}')
    raise MarketplaceError(f'Plugin "{alias}" source path does not exist: {candidate}')


async def _materialize_marketplace(
    source: MarketplaceSource, source_path: str, context: MarketplaceContext
) -> Path:
    if source.type == "path":
        return Path(source.location)

    if source.type == "github":
        remote_url = github_remote_url(source.location)
    else:
        remote_url = source.location

    key = build_repo_key(source.type, source.location, None)
    destination = build_repo_dir(context.temp_root / MARKETPLACE_DIRNAME, key, MARKETPLACE_ALIAS)
    logger.info(
        "Fetching marketplace",
        data={"source": source.location, "manifest": source_path},
    )
    return await clone_repository(
        remote_url=remote_url,
        destination=destination,
        alias=MARKETPLACE_ALIAS,
        source=source.location,
    )


def _github_slug(value: str) -> str:
    try:
        owner, repo = parse_github_slug(value)
    except ValidationError as exc:
        raise MarketplaceError(exc.message) from exc
    return f"{owner}/{repo}"
