"""Delegate plugin installation to an agent's own plugin CLI."""

from __future__ import annotations

import asyncio
import subprocess
from typing import TYPE_CHECKING

from skills_supply.config import get_settings
from skills_supply.core import process
from skills_supply.core.exceptions import SkError
from skills_supply.core.logging.logger import get_logger
from skills_supply.marketplace.resolve import validate_plugin

if TYPE_CHECKING:
    from skills_supply.marketplace.resolve import MarketplaceContext
    from skills_supply.packages.types import ClaudePluginPackage

logger = get_logger(__name__)

ALREADY_INSTALLED_MARKER = "already installed"


class PluginCommandError(SkError):
    """The host agent's plugin command failed."""

    kind = "io"


async def run_claude_plugin_command(args: list[str]) -> None:
    """Run ``claude plugin <args>``; "already installed" output counts as success."""
    command = [get_settings().marketplace.claude_command, "plugin", *args]
    try:
        result = await asyncio.to_thread(process.run_command, command)
    except (OSError, subprocess.SubprocessError) as exc:
        raise PluginCommandError(f"Failed to run: {' '.join(command)}", str(exc)) from exc

    if result.returncode == 0:
        return
    if ALREADY_INSTALLED_MARKER in result.output.lower():
        logger.debug("Plugin command reported already installed", data={"args": command})
        return
    raise PluginCommandError(f"Failed to run: {' '.join(command)}", result.output)


async def install_claude_plugins(
    plugins: list[ClaudePluginPackage], context: MarketplaceContext
) -> list[str]:
    """Add each marketplace once and install each plugin once; returns installed keys."""
    added_marketplaces: set[str] = set()
    installed: list[str] = []

    for plugin in plugins:
        info = await validate_plugin(plugin, context)

        if plugin.marketplace not in added_marketplaces:
            await run_claude_plugin_command(["marketplace", "add", info.install_spec])
            added_marketplaces.add(plugin.marketplace)

        install_key = f"{plugin.plugin}@{info.name}"
        if install_key in installed:
            continue
        await run_claude_plugin_command(["install", install_key])
        installed.append(install_key)
        logger.info("Installed Claude plugin", data={"plugin": install_key})

    return installed
