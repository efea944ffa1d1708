"""Subprocess helpers for git and host agent CLIs."""

from __future__ import annotations

import subprocess
from dataclasses import dataclass
from typing import TYPE_CHECKING

from skills_supply.config import get_settings
from skills_supply.core.exceptions import GitCommandError
from skills_supply.core.logging.logger import get_logger

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

logger = get_logger(__name__)


@dataclass(frozen=True)
class CommandResult:
    args: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def output(self) -> str:
        return "\n".join(part for part in (self.stdout.strip(), self.stderr.strip()) if part)


def run_command(
    args: Sequence[str],
    *,
    cwd: Path | None = None,
    timeout: float | None = None,
) -> CommandResult:
    """Run ``args`` and capture its output. Raises ``OSError`` if it cannot start."""
    command = list(args)
    logger.debug("Running command", data={"args": command, "cwd": str(cwd) if cwd else None})
    result = subprocess.run(
        command,
        capture_output=True,
        text=True,
        check=False,
        cwd=cwd,
        timeout=timeout,
    )
    return CommandResult(
        args=command,
        returncode=result.returncode,
        stdout=result.stdout or "",
        stderr=result.stderr or "",
    )


def run_git(args: Sequence[str], *, cwd: Path | None = None) -> str:
    """Run git with ``args`` and return stdout, raising ``GitCommandError`` on failure."""
    settings = get_settings().git
    command = [settings.executable, *args]
    try:
        result = run_command(command, cwd=cwd, timeout=settings.timeout_seconds)
    except subprocess.TimeoutExpired as exc:
        raise GitCommandError(command, f"timed out after {settings.timeout_seconds}s") from exc
    except OSError as exc:
        raise GitCommandError(command, f"unable to run {settings.executable}: {exc}") from exc

    if result.returncode != 0:
        stderr = result.stderr.strip() or result.stdout.strip()
        raise GitCommandError(command, stderr, result.returncode)
    return result.stdout
