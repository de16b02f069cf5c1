"""Restore progress reporting.

Every transition is applied to a :class:`~lifeline.models.RestoreProgress`
record (which rejects illegal moves) and then written to the document
store and pushed to the progress sink.  A failed write is logged and
does not interrupt the restore.
"""

from __future__ import annotations

import math

from lifeline.models import RestoreProgress, RestoreStatus
from lifeline.observability import get_logger

log = get_logger("lifeline.restore.progress")

RESTORE_START_PERCENT = 30
RESTORE_SPAN_PERCENT = 65
RESTORE_CAP_PERCENT = 95


def restoring_percentage(done: int, total: int) -> int:
    """Map items done to the 30..95 band of the ``restoring`` phase."""
    if total <= 0:
        return RESTORE_CAP_PERCENT
    pct = RESTORE_START_PERCENT + math.floor(done / total * RESTORE_SPAN_PERCENT + 0.5)
    return min(pct, RESTORE_CAP_PERCENT)


class ProgressReporter:
    """Publishes the progress of one restore job.

    Parameters
    ----------
    user_id / restore_id:
        Identify the progress record.
    documents:
        Receives ``save_restore_progress`` calls.
    sink:
        Receives ``publish`` calls.
    """

    def __init__(self, user_id: str, restore_id: str, documents, sink) -> None:
        self.user_id = user_id
        self.restore_id = restore_id
        self._documents = documents
        self._sink = sink
        self.progress = RestoreProgress()

    async def update(self, status: RestoreStatus, message: str, percentage: int) -> None:
        self.progress.advance(status, message, percentage)
        await self._emit()

    async def item_done(self, done: int, total: int, message: str) -> None:
        await self.update(RestoreStatus.RESTORING, message, restoring_percentage(done, total))

    async def complete(self, message: str) -> None:
        await self.update(RestoreStatus.COMPLETED, message, 100)

    async def fail(self, message: str) -> None:
        if self.progress.status.is_terminal:
            return
        await self.update(RestoreStatus.ERROR, message, -1)

    async def _emit(self) -> None:
        p = self.progress
        log.info(
            "Restore progress",
            extra={
                "extra_fields": {
                    "restore_id": self.restore_id,
                    "status": p.status.value,
                    "percentage": p.percentage,
                    "message": p.message,
                }
            },
        )
        try:
            await self._documents.save_restore_progress(self.user_id, self.restore_id, p)
            await self._sink.publish(self.restore_id, p)
        except Exception as exc:
            log.error(
                "Failed to record restore progress",
                extra={"extra_fields": {"restore_id": self.restore_id, "error": str(exc)}},
            )
