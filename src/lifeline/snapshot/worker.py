"""Snapshot job: walk, package, replicate, record.

Audit-log events written to the document store:

``snapshot_created``
    The primary archive and manifest were written.
``snapshot_failed``
    The job aborted; the event carries the error message.
``snapshot_mirror_config_error``
    A secondary destination could not be built; the job continues.
"""

from __future__ import annotations

from lifeline.context import JobContext
from lifeline.errors import LifelineCredentialError, LifelineStorageError
from lifeline.models import ReplicationResult, Snapshot
from lifeline.observability import get_logger, job_logger, resolve_metrics, timed
from lifeline.storage import (
    CONTENT_SHA256_KEY,
    ReplicationFanout,
    archive_path,
    build_destinations,
    manifest_path,
)
from lifeline.utils import sha256_hex

from .packager import iso_timestamp, new_snapshot_id, package
from .walker import WorkspaceWalker

log = get_logger("lifeline.snapshot")


class SnapshotWorker:
    """Runs snapshot jobs for one deployment."""

    def __init__(self, context: JobContext) -> None:
        self._ctx = context
        self._metrics = resolve_metrics(context.config.metrics)

    async def run(self, user_id: str) -> Snapshot:
        """Capture *user_id*'s workspace and store it.

        Returns
        -------
        Snapshot
            The saved snapshot record.

        Raises
        ------
        LifelineCredentialError
            If the user has no Notion access token.
        LifelineStorageError
            If the primary archive or manifest write fails.
        """
        timestamp = iso_timestamp()
        snapshot_id = new_snapshot_id(timestamp)
        jlog = job_logger(log, job="snapshot", user_id=user_id, snapshot_id=snapshot_id)
        try:
            with timed(self._metrics, "lifeline.job_duration_ms", {"job": "snapshot"}):
                snapshot = await self._run(user_id, snapshot_id, timestamp, jlog)
        except Exception as exc:
            jlog.error("Snapshot failed", extra={"extra_fields": {"error": str(exc)}})
            await self._ctx.documents.add_audit_event(
                user_id,
                {"type": "snapshot_failed", "snapshotId": snapshot_id, "message": str(exc)},
            )
            raise
        jlog.info(
            "Snapshot created",
            extra={"extra_fields": {"items": snapshot.item_count, "size_bytes": snapshot.size_bytes}},
        )
        await self._ctx.documents.add_audit_event(
            user_id,
            {
                "type": "snapshot_created",
                "snapshotId": snapshot_id,
                "message": f"Snapshot {snapshot_id} created with {snapshot.item_count} items",
            },
        )
        return snapshot

    async def _run(self, user_id: str, snapshot_id: str, timestamp: str, jlog) -> Snapshot:
        ctx = self._ctx
        token = await ctx.credentials.get_access_token(user_id)
        if not token:
            raise LifelineCredentialError(
                f"No Notion access token for user {user_id}",
                context={"user_id": user_id},
            )

        configs = await ctx.documents.list_destinations(user_id)
        secondaries, failures = build_destinations(configs, ctx.store_factory)
        config_errors: list[ReplicationResult] = []
        for dest, exc in failures:
            await ctx.documents.add_audit_event(
                user_id,
                {
                    "type": "snapshot_mirror_config_error",
                    "snapshotId": snapshot_id,
                    "destination": dest.name,
                    "message": exc.message,
                },
            )
            config_errors.append(ReplicationResult(destination=dest.name, ok=False, error=exc.message))

        api = ctx.notion_api(token)
        try:
            walker = WorkspaceWalker(
                api,
                snapshot_id,
                embedder=ctx.embedder,
                vector_index=ctx.vector_index,
                metrics=ctx.config.metrics,
            )
            walk = await walker.walk()
        finally:
            await api.close()

        packaged = package(walk.items, walk.manifest, user_id, timestamp)
        fanout = ReplicationFanout(ctx.primary_destination(), secondaries, metrics=ctx.config.metrics)

        a_path = archive_path(user_id, snapshot_id)
        archive_results = await fanout.replicate(
            a_path,
            packaged.archive,
            {CONTENT_SHA256_KEY: packaged.content_sha256, "snapshot-id": snapshot_id},
        )
        _require_primary(archive_results, a_path)

        m_path = manifest_path(user_id, snapshot_id)
        manifest_results = await fanout.replicate(
            m_path,
            packaged.manifest,
            {CONTENT_SHA256_KEY: sha256_hex(packaged.manifest), "snapshot-id": snapshot_id},
            manifest=True,
        )
        _require_primary(manifest_results, m_path)

        failed = [r.destination for r in archive_results + manifest_results if not r.ok]
        if failed:
            jlog.warning(
                "Snapshot stored with failed secondary writes",
                extra={"extra_fields": {"destinations": sorted(set(failed))}},
            )

        snapshot = Snapshot(
            snapshot_id=snapshot_id,
            user_id=user_id,
            timestamp=timestamp,
            primary_path=a_path,
            manifest_path=m_path,
            item_count=packaged.item_count,
            size_bytes=packaged.size_bytes,
            content_sha256=packaged.content_sha256,
            replicas=archive_results + manifest_results + config_errors,
        )
        await ctx.documents.save_snapshot(snapshot)
        return snapshot


def _require_primary(results: list[ReplicationResult], path: str) -> None:
    primary = ReplicationFanout.primary_result(results)
    if primary is None or not primary.ok:
        raise LifelineStorageError(
            f"Primary write failed for {path}: {primary.error if primary else 'no result'}",
            context={"path": path},
        )
