"""Split Claude plugin dependencies off the standard package list for one agent."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from skills_supply.core.logging.logger import get_logger
from skills_supply.marketplace.native import install_claude_plugins
from skills_supply.marketplace.resolve import (
    MarketplaceContext,
    resolve_plugin_package,
    validate_plugin,
)
from skills_supply.packages.types import ClaudePluginPackage

if TYPE_CHECKING:
    from pathlib import Path

    from skills_supply.agents.types import Agent
    from skills_supply.packages.types import CanonicalPackage

logger = get_logger(__name__)


@dataclass
class ResolvedAgentPackages:
    packages: list[CanonicalPackage]
    warnings: list[str] = field(default_factory=list)


async def resolve_agent_packages(
    agent: Agent,
    packages: list[CanonicalPackage],
    temp_root: Path,
    *,
    dry_run: bool,
) -> ResolvedAgentPackages:
    """Return the packages the standard pipeline should install for ``agent``.

    Agents with native plugin support install Claude plugins through their
    own CLI; for everyone else each plugin is resolved to the package its
    marketplace entry points at.
    """
    plugins = [package for package in packages if isinstance(package, ClaudePluginPackage)]
    standard = [package for package in packages if not isinstance(package, ClaudePluginPackage)]
    if not plugins:
        return ResolvedAgentPackages(packages=standard)

    context = MarketplaceContext(temp_root=temp_root)

    if agent.native_plugins:
        for plugin in plugins:
            await validate_plugin(plugin, context)
        if dry_run:
            names = ", ".join(plugin.plugin for plugin in plugins)
            return ResolvedAgentPackages(
                packages=standard,
                warnings=[f"Would install Claude plugins for {agent.display_name}: {names}."],
            )
        await install_claude_plugins(plugins, context)
        return ResolvedAgentPackages(packages=standard)

    resolved: list[CanonicalPackage] = []
    for plugin in plugins:
        package = await resolve_plugin_package(plugin, context)
        logger.debug(
            "Resolved Claude plugin",
            data={"agent": agent.id, "plugin": plugin.plugin, "type": package.type},
        )
        resolved.append(package)
    return ResolvedAgentPackages(packages=[*standard, *resolved])
