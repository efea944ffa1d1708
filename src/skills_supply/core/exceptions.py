"""Error types shared across the sync engine."""

from __future__ import annotations

from typing import Literal

ErrorKind = Literal[
    "validation",
    "io",
    "git_error",
    "network",
    "parse",
    "not_found",
    "conflict",
]


class SkError(Exception):
    """Base error carrying a classification kind."""

    kind: ErrorKind = "validation"

    def __init__(
        self,
        message: str,
        details: str = "",
        *,
        kind: ErrorKind | None = None,
        path: str | None = None,
    ) -> None:
        self.message = message
        self.details = details
        self.path = path
        if kind is not None:
            self.kind = kind
        super().__init__(f"{message}\n\n{details}" if details else message)


class ValidationError(SkError):
    kind: ErrorKind = "validation"


class NotFoundError(SkError):
    kind: ErrorKind = "not_found"


class ConflictError(SkError):
    kind: ErrorKind = "conflict"


class FileSystemError(SkError):
    """Raised when a filesystem operation fails."""

    kind: ErrorKind = "io"


class NetworkError(SkError):
    kind: ErrorKind = "network"


class ParseError(SkError):
    kind: ErrorKind = "parse"


class GitCommandError(SkError):
    """A git subprocess exited with a non-zero status."""

    kind: ErrorKind = "git_error"

    def __init__(self, args: list[str], stderr: str, returncode: int | None = None) -> None:
        self.command = list(args)
        self.stderr = stderr
        self.returncode = returncode
        super().__init__(f"Git command failed: {' '.join(args)}", stderr)


ManifestErrorType = Literal[
    "invalid_toml",
    "invalid_manifest",
    "invalid_dependency",
    "coercion_failed",
    "alias_conflict",
]


class ManifestError(SkError):
    """Raised when a manifest cannot be parsed, coerced or merged."""

    def __init__(
        self,
        message: str,
        *,
        error_type: ManifestErrorType,
        source_path: str | None = None,
        key: str | None = None,
        field: str | None = None,
    ) -> None:
        self.error_type = error_type
        self.source_path = source_path
        self.key = key
        self.field = field
        kind: ErrorKind = "parse" if error_type == "invalid_toml" else "validation"
        super().__init__(message, kind=kind, path=source_path)


FetchErrorType = Literal["invalid_source", "invalid_repo", "io_error", "git_error"]

_FETCH_ERROR_KINDS: dict[FetchErrorType, ErrorKind] = {
    "invalid_source": "validation",
    "invalid_repo": "conflict",
    "io_error": "io",
    "git_error": "git_error",
}


class FetchError(SkError):
    """Raised when a package cannot be materialized on disk."""

    def __init__(
        self,
        message: str,
        *,
        fetch_type: FetchErrorType,
        alias: str,
        source: str,
        details: str = "",
    ) -> None:
        self.fetch_type = fetch_type
        self.alias = alias
        self.source = source
        super().__init__(message, details, kind=_FETCH_ERROR_KINDS[fetch_type])


class DetectionError(SkError):
    kind: ErrorKind = "validation"


class ExtractionError(SkError):
    kind: ErrorKind = "validation"


class PluginWithoutSkillsError(ExtractionError):
    """A plugin package exposes no skills directory or no valid skills."""


class MarketplaceError(SkError):
    kind: ErrorKind = "validation"


class StateError(SkError):
    """Raised when an agent state file cannot be read or written."""

    kind: ErrorKind = "parse"
