"""Shared marketplace source parsing and fetch helpers."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import httpx

from skills_supply.config import get_settings
from skills_supply.core.exceptions import FileSystemError, NetworkError, ParseError

GITHUB_PREFIXES = ("github:", "gh:")


def strip_github_prefix(value: str) -> str:
    for prefix in GITHUB_PREFIXES:
        if value.startswith(prefix):
            return value[len(prefix) :]
    return value


def looks_like_marketplace_json_url(value: str) -> bool:
    if "://" not in value:
        return False
    parsed = urlparse(value)
    if not parsed.scheme or not parsed.netloc:
        return False
    return parsed.path.endswith("marketplace.json")


def normalize_marketplace_url(url: str) -> str:
    """Rewrite GitHub ``blob`` links to their raw content URL."""
    parsed = urlparse(url)
    if parsed.netloc in {"github.com", "www.github.com"}:
        parts = parsed.path.strip("/").split("/")
        if len(parts) >= 5 and parts[2] == "blob":
            org, repo, _, ref = parts[:4]
            file_path = "/".join(parts[4:])
            return f"https://raw.githubusercontent.com/{org}/{repo}/{ref}/{file_path}"
    return url


def expand_home_path(value: str) -> Path:
    return Path(value).expanduser()


def resolve_path_from_source(source_path: str | Path, spec: str) -> Path:
    """Resolve ``spec`` relative to the directory containing ``source_path``."""
    expanded = expand_home_path(spec)
    if expanded.is_absolute():
        return expanded
    return (Path(source_path).parent / expanded).resolve()


def resolve_under(base_dir: Path, spec: str) -> Path:
    expanded = expand_home_path(spec.strip())
    if expanded.is_absolute():
        return expanded
    return (base_dir / expanded).resolve()


def read_text_file(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except OSError as exc:
        raise FileSystemError(f"Unable to read {path}: {exc}", path=str(path)) from exc
    except UnicodeDecodeError as exc:
        raise ParseError(f"{path} is not valid UTF-8: {exc}", path=str(path)) from exc


def load_json(contents: str, source: str) -> Any:
    try:
        return json.loads(contents)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Invalid JSON in {source}. {exc}", path=source) from exc


async def fetch_marketplace_text(url: str) -> str:
    """Download a marketplace.json document, bounded by the configured timeout."""
    normalized = normalize_marketplace_url(url)
    timeout = get_settings().marketplace.fetch_timeout_seconds
    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            response = await client.get(normalized)
            response.raise_for_status()
            return response.text
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        raise NetworkError(
            f"Marketplace request failed ({status} {exc.response.reason_phrase}).",
            path=normalized,
        ) from exc
    except httpx.HTTPError as exc:
        raise NetworkError(f"Unable to fetch marketplace URL: {normalized}", str(exc), path=normalized) from exc
