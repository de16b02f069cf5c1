"""Interfaces to the services a job talks to besides Notion and object storage.

Jobs receive these as constructor arguments; production deployments plug
in their own database, secret manager and notification channel.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

from lifeline.models import DiffResult, RestoreProgress, Snapshot, StorageDestinationConfig


@runtime_checkable
class CredentialStore(Protocol):
    """Opaque secret lookup."""

    async def get_access_token(self, user_id: str) -> str | None:
        """Return the user's Notion access token, or ``None`` if not connected."""
        ...


@runtime_checkable
class DocumentStore(Protocol):
    """Durable records: snapshots, destinations, diffs, restores, audit log."""

    async def list_users(self) -> list[str]: ...

    async def save_snapshot(self, snapshot: Snapshot) -> None: ...

    async def get_snapshot(self, user_id: str, snapshot_id: str) -> Snapshot | None: ...

    async def list_snapshots(self, user_id: str) -> list[Snapshot]: ...

    async def list_destinations(self, user_id: str) -> list[StorageDestinationConfig]: ...

    async def save_diff_result(self, user_id: str, result: DiffResult) -> None: ...

    async def save_restore_progress(
        self, user_id: str, restore_id: str, progress: RestoreProgress
    ) -> None: ...

    async def add_audit_event(self, user_id: str, event: dict[str, Any]) -> None: ...


@runtime_checkable
class ProgressSink(Protocol):
    """Receives every restore progress update as it happens."""

    async def publish(self, restore_id: str, progress: RestoreProgress) -> None: ...
