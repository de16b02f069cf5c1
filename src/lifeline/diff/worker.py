"""Diff job: load two manifests, compare, summarise, store.

The stored result moves ``processing -> completed`` or
``processing -> error``; the error message is kept on the record.
"""

from __future__ import annotations

from lifeline.context import JobContext
from lifeline.errors import LifelineArchiveNotFoundError
from lifeline.models import DiffResult, DiffStatus, Manifest
from lifeline.observability import get_logger, job_logger, resolve_metrics, timed
from lifeline.snapshot.packager import unpack_manifest
from lifeline.storage import manifest_path

from .engine import DiffEngine
from .summary import summarize

log = get_logger("lifeline.diff")


class DiffWorker:
    """Runs diff jobs for one deployment."""

    def __init__(self, context: JobContext) -> None:
        self._ctx = context
        self._metrics = resolve_metrics(context.config.metrics)

    async def run(
        self,
        user_id: str,
        snapshot_id_from: str,
        snapshot_id_to: str,
        job_id: str,
    ) -> DiffResult:
        """Compare two of *user_id*'s snapshots and store the result.

        Raises
        ------
        LifelineArchiveNotFoundError
            If either snapshot or its manifest does not exist.
        LifelineManifestError
            If a manifest cannot be parsed.
        """
        ctx = self._ctx
        jlog = job_logger(log, job="diff", user_id=user_id, job_id=job_id)
        pending = DiffResult(job_id=job_id, snapshot_id_from=snapshot_id_from, snapshot_id_to=snapshot_id_to)
        await ctx.documents.save_diff_result(user_id, pending)

        try:
            with timed(self._metrics, "lifeline.job_duration_ms", {"job": "diff"}):
                manifest_from = await self._load_manifest(user_id, snapshot_id_from)
                manifest_to = await self._load_manifest(user_id, snapshot_id_to)
                engine = DiffEngine(
                    vector_index=ctx.vector_index,
                    threshold=ctx.config.similarity_threshold,
                    metrics=ctx.config.metrics,
                )
                result = await engine.diff(
                    manifest_from, manifest_to, snapshot_id_from, snapshot_id_to, job_id
                )
                await summarize(result, ctx.text_generator, ctx.config.summary_top_n)
        except Exception as exc:
            jlog.error("Diff failed", extra={"extra_fields": {"error": str(exc)}})
            pending.status = DiffStatus.ERROR
            pending.error = str(exc)
            await ctx.documents.save_diff_result(user_id, pending)
            raise

        await ctx.documents.save_diff_result(user_id, result)
        jlog.info("Diff completed", extra={"extra_fields": result.summary.to_dict()})
        return result

    async def _load_manifest(self, user_id: str, snapshot_id: str) -> Manifest:
        snapshot = await self._ctx.documents.get_snapshot(user_id, snapshot_id)
        if snapshot is None:
            raise LifelineArchiveNotFoundError(
                f"Snapshot {snapshot_id} not found for user {user_id}",
                context={"user_id": user_id, "snapshot_id": snapshot_id},
            )
        path = snapshot.manifest_path or manifest_path(user_id, snapshot_id)
        data = await self._ctx.primary_destination().store.read(path)
        return unpack_manifest(data)
