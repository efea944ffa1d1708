"""Attach pipeline stages to errors raised while syncing."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING

from skills_supply.core.exceptions import FileSystemError, ParseError, SkError
from skills_supply.sync.types import SyncFailure

if TYPE_CHECKING:
    from skills_supply.sync.types import SyncStage


class SyncStageError(Exception):
    """An ``SkError`` tagged with the sync stage it occurred in."""

    def __init__(self, stage: SyncStage, error: SkError, agent: str | None = None) -> None:
        self.stage = stage
        self.error = error
        self.agent = agent
        super().__init__(f"[{stage}] {error.message}")


@contextmanager
def sync_stage(stage: SyncStage, agent: str | None = None) -> Iterator[None]:
    try:
        yield
    except SyncStageError:
        raise
    except SkError as exc:
        raise SyncStageError(stage, exc, agent) from exc
    except OSError as exc:
        raise SyncStageError(stage, FileSystemError(str(exc)), agent) from exc
    except UnicodeDecodeError as exc:
        raise SyncStageError(stage, ParseError(f"Invalid UTF-8 input: {exc}"), agent) from exc


def to_failure(exc: SyncStageError) -> SyncFailure:
    return SyncFailure(
        stage=exc.stage,
        kind=exc.error.kind,
        message=exc.error.message,
        cause=exc.error,
        agent=exc.agent,
    )
