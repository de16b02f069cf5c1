"""In-process implementation of every store protocol.

Useful for tests and local runs.  Records are deep-copied through their
dict form on the way in so callers cannot mutate stored state.
"""

from __future__ import annotations

import time
from collections import defaultdict
from typing import Any

from lifeline.models import (
    DiffResult,
    RestoreProgress,
    Snapshot,
    StorageDestinationConfig,
)


class MemoryStore:
    """:class:`CredentialStore`, :class:`DocumentStore` and :class:`ProgressSink` in one."""

    def __init__(
        self,
        tokens: dict[str, str] | None = None,
        destinations: dict[str, list[StorageDestinationConfig]] | None = None,
    ) -> None:
        self.tokens: dict[str, str] = dict(tokens or {})
        self.destinations: dict[str, list[StorageDestinationConfig]] = dict(destinations or {})
        self.snapshots: dict[str, dict[str, Snapshot]] = defaultdict(dict)
        self.diff_results: dict[str, dict[str, DiffResult]] = defaultdict(dict)
        self.diff_history: list[tuple[str, str]] = []
        self.restore_progress: dict[str, RestoreProgress] = {}
        self.published: list[tuple[str, RestoreProgress]] = []
        self.audit_events: dict[str, list[dict[str, Any]]] = defaultdict(list)

    # -- CredentialStore -----------------------------------------------------

    async def get_access_token(self, user_id: str) -> str | None:
        return self.tokens.get(user_id)

    # -- DocumentStore -------------------------------------------------------

    async def list_users(self) -> list[str]:
        return sorted(set(self.tokens) | set(self.snapshots) | set(self.destinations))

    async def save_snapshot(self, snapshot: Snapshot) -> None:
        self.snapshots[snapshot.user_id][snapshot.snapshot_id] = Snapshot.from_dict(snapshot.to_dict())

    async def get_snapshot(self, user_id: str, snapshot_id: str) -> Snapshot | None:
        return self.snapshots.get(user_id, {}).get(snapshot_id)

    async def list_snapshots(self, user_id: str) -> list[Snapshot]:
        return sorted(self.snapshots.get(user_id, {}).values(), key=lambda s: s.timestamp)

    async def list_destinations(self, user_id: str) -> list[StorageDestinationConfig]:
        return list(self.destinations.get(user_id, []))

    async def save_diff_result(self, user_id: str, result: DiffResult) -> None:
        self.diff_results[user_id][result.job_id] = result
        self.diff_history.append((result.job_id, result.status.value))

    async def save_restore_progress(
        self, user_id: str, restore_id: str, progress: RestoreProgress
    ) -> None:
        self.restore_progress[restore_id] = RestoreProgress(**vars(progress))

    async def add_audit_event(self, user_id: str, event: dict[str, Any]) -> None:
        self.audit_events[user_id].append({**event, "timestamp": event.get("timestamp", time.time())})

    # -- ProgressSink --------------------------------------------------------

    async def publish(self, restore_id: str, progress: RestoreProgress) -> None:
        self.published.append((restore_id, RestoreProgress(**vars(progress))))

    def audit_types(self, user_id: str) -> list[str]:
        return [e["type"] for e in self.audit_events.get(user_id, [])]
