"""Sync orchestration: drive the package pipeline for each agent."""

from skills_supply.sync.sync import run_sync, sync_manifest, sync_project
from skills_supply.sync.types import SyncFailure, SyncResult, SyncSummary

__all__ = [
    "SyncFailure",
    "SyncResult",
    "SyncSummary",
    "run_sync",
    "sync_manifest",
    "sync_project",
]
