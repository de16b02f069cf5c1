"""lifeline -- snapshot, diff and restore for Notion workspaces.

Quick start::

    from lifeline import JobContext, LifelineConfig, MemoryStore, run_job

    store = MemoryStore(tokens={"user-1": "secret_..."})
    ctx = JobContext.from_config(
        LifelineConfig(local_storage_dir="./snapshots"), store, store, store
    )
    snapshot = await run_job(ctx, "snapshot", {"userId": "user-1"})
"""

from __future__ import annotations

# ── Configuration and wiring ───────────────────────────────────────────
from lifeline.config import LifelineConfig
from lifeline.context import JobContext

# ── Errors ──────────────────────────────────────────────────────────────
from lifeline.errors import (
    ErrorCode,
    LifelineArchiveNotFoundError,
    LifelineAuthError,
    LifelineConfigurationError,
    LifelineConflictError,
    LifelineCredentialError,
    LifelineError,
    LifelineInvalidTransitionError,
    LifelineJobPayloadError,
    LifelineManifestError,
    LifelineNetworkError,
    LifelineNotFoundError,
    LifelinePermissionError,
    LifelineRetryExhaustedError,
    LifelineStorageError,
    LifelineValidationError,
)

# ── Jobs and models ─────────────────────────────────────────────────────
from lifeline.jobs import JobType, parse_job_payload, run_job
from lifeline.models import (
    ChangeType,
    DiffResult,
    ItemKind,
    ManifestEntry,
    RestoreJob,
    RestoreProgress,
    RestoreStatus,
    Snapshot,
    StorageDestinationConfig,
    WorkspaceItem,
)
from lifeline.store import MemoryStore

__version__ = "0.1.0"

__all__ = [
    "ChangeType",
    "DiffResult",
    "ErrorCode",
    "ItemKind",
    "JobContext",
    "JobType",
    "LifelineArchiveNotFoundError",
    "LifelineAuthError",
    "LifelineConfig",
    "LifelineConfigurationError",
    "LifelineConflictError",
    "LifelineCredentialError",
    "LifelineError",
    "LifelineInvalidTransitionError",
    "LifelineJobPayloadError",
    "LifelineManifestError",
    "LifelineNetworkError",
    "LifelineNotFoundError",
    "LifelinePermissionError",
    "LifelineRetryExhaustedError",
    "LifelineStorageError",
    "LifelineValidationError",
    "ManifestEntry",
    "MemoryStore",
    "RestoreJob",
    "RestoreProgress",
    "RestoreStatus",
    "Snapshot",
    "StorageDestinationConfig",
    "WorkspaceItem",
    "__version__",
]
