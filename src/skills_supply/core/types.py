"""Validated scalar types and the coercion helpers that produce them."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, NewType

NonEmptyString = NewType("NonEmptyString", str)
Alias = NewType("Alias", str)
AbsolutePath = NewType("AbsolutePath", str)
NormalizedGitUrl = NewType("NormalizedGitUrl", str)
GithubRef = NewType("GithubRef", str)

GitRefType = Literal["tag", "branch", "rev"]

_ALIAS_FORBIDDEN = re.compile(r"[/\\.:]")
_GITHUB_REF = re.compile(r"^([a-zA-Z0-9_.-]+)/([a-zA-Z0-9_.-]+)$")
_SSH_GIT_URL = re.compile(r"^git@([^:]+):(.+?)(?:\.git)?$")
_HTTP_GIT_URL = re.compile(r"^https?://([^/]+)/(.+?)(?:\.git)?$")


@dataclass(frozen=True, slots=True)
class GitRef:
    type: GitRefType
    value: NonEmptyString

    def describe(self) -> str:
        return f"{self.type} {self.value}"


def coerce_non_empty(value: str) -> NonEmptyString | None:
    trimmed = value.strip()
    if not trimmed:
        return None
    return NonEmptyString(trimmed)


def coerce_alias(value: str) -> Alias | None:
    """Aliases become directory name prefixes, so path characters are rejected."""
    trimmed = value.strip()
    if not trimmed or _ALIAS_FORBIDDEN.search(trimmed):
        return None
    return Alias(trimmed)


def coerce_github_ref(value: str) -> GithubRef | None:
    trimmed = value.strip()
    if not _GITHUB_REF.match(trimmed):
        return None
    return GithubRef(trimmed)


def coerce_git_url(value: str) -> NormalizedGitUrl | None:
    """Normalize SSH and HTTP(S) git URLs to ``https://host/path``."""
    trimmed = value.strip()
    if not trimmed:
        return None

    if trimmed.startswith("file://"):
        return NormalizedGitUrl(trimmed)

    for pattern in (_SSH_GIT_URL, _HTTP_GIT_URL):
        match = pattern.match(trimmed)
        if match:
            host, path = match.group(1), match.group(2)
            return NormalizedGitUrl(f"https://{host}/{path}")
    return None


def coerce_absolute_path(value: str, base_dir: Path | str) -> AbsolutePath | None:
    """Resolve ``value`` against ``base_dir`` with ``~`` expansion."""
    trimmed = value.strip()
    if not trimmed:
        return None
    candidate = Path(trimmed).expanduser()
    if not candidate.is_absolute():
        candidate = Path(base_dir) / candidate
    return AbsolutePath(str(candidate.resolve()))


def looks_like_git_url(value: str) -> bool:
    return value.startswith("git@") or "://" in value
