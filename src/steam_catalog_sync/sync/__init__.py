"""
Catalog synchronization into DatoCMS.

The orchestrator turns a catalog diff into scheduled upsert tasks;
the pipeline module wires it to configuration and storage.
"""

from steam_catalog_sync.sync.orchestrator import (
    SyncResult,
    SyncStatus,
    UpsertMode,
    UpsertOrchestrator,
    UpsertOutcome,
    UpsertTask,
)

__all__ = [
    "SyncResult",
    "SyncStatus",
    "UpsertMode",
    "UpsertOrchestrator",
    "UpsertOutcome",
    "UpsertTask",
]
