"""Restore job: resolve the snapshot, run the engine, log the outcome."""

from __future__ import annotations

from lifeline.context import JobContext
from lifeline.errors import LifelineArchiveNotFoundError, LifelineCredentialError
from lifeline.models import RestoreJob, RestoreOutcome
from lifeline.observability import get_logger, job_logger, resolve_metrics, timed
from lifeline.storage import archive_path

from .engine import RestoreEngine
from .progress import ProgressReporter

log = get_logger("lifeline.restore")


class RestoreWorker:
    """Runs restore jobs for one deployment."""

    def __init__(self, context: JobContext) -> None:
        self._ctx = context
        self._metrics = resolve_metrics(context.config.metrics)

    async def run(self, job: RestoreJob) -> RestoreOutcome:
        """Restore *job*'s snapshot.

        Writes ``restore_completed`` or ``restore_failed`` to the audit log.
        Progress always ends in ``completed`` or ``error``.
        """
        ctx = self._ctx
        jlog = job_logger(log, job="restore", user_id=job.user_id, restore_id=job.restore_id)
        reporter = ProgressReporter(job.user_id, job.restore_id, ctx.documents, ctx.progress)
        try:
            with timed(self._metrics, "lifeline.job_duration_ms", {"job": "restore"}):
                outcome = await self._run(job, reporter)
        except Exception as exc:
            await reporter.fail(f"Restore failed: {exc}")
            jlog.error("Restore failed", extra={"extra_fields": {"error": str(exc)}})
            await ctx.documents.add_audit_event(
                job.user_id,
                {
                    "type": "restore_failed",
                    "restoreId": job.restore_id,
                    "snapshotId": job.snapshot_id,
                    "message": str(exc),
                },
            )
            raise

        jlog.info(
            "Restore completed",
            extra={
                "extra_fields": {
                    "restored": outcome.restored,
                    "failed": outcome.failed,
                    "skipped": outcome.skipped,
                    "incomplete": len(outcome.incomplete_ids),
                }
            },
        )
        await ctx.documents.add_audit_event(
            job.user_id,
            {
                "type": "restore_completed",
                "restoreId": job.restore_id,
                "snapshotId": job.snapshot_id,
                "message": reporter.progress.message,
            },
        )
        return outcome

    async def _run(self, job: RestoreJob, reporter: ProgressReporter) -> RestoreOutcome:
        ctx = self._ctx
        token = await ctx.credentials.get_access_token(job.user_id)
        if not token:
            raise LifelineCredentialError(
                f"No Notion access token for user {job.user_id}",
                context={"user_id": job.user_id},
            )
        snapshot = await ctx.documents.get_snapshot(job.user_id, job.snapshot_id)
        if snapshot is None:
            raise LifelineArchiveNotFoundError(
                f"Snapshot {job.snapshot_id} not found for user {job.user_id}",
                context={"user_id": job.user_id, "snapshot_id": job.snapshot_id},
            )
        path = snapshot.primary_path or archive_path(job.user_id, job.snapshot_id)

        api = ctx.notion_api(token)
        try:
            engine = RestoreEngine(
                api,
                ctx.primary_destination().store,
                reporter,
                default_parent_page_id=ctx.config.default_restore_parent_page_id,
                metrics=ctx.config.metrics,
            )
            return await engine.restore(job, path)
        finally:
            await api.close()
