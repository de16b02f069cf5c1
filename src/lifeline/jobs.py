"""Job payloads and the entry point that runs them.

Payloads arrive as JSON with camelCase keys, either bare or wrapped in a
push-subscription envelope::

    {"message": {"data": "<base64 of the JSON payload>"}}

:func:`run_job` decodes a payload and hands it to the matching worker.
"""

from __future__ import annotations

import base64
import binascii
import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

from lifeline.context import JobContext
from lifeline.errors import LifelineJobPayloadError
from lifeline.models import AuditReport, DiffResult, RestoreJob, RestoreOutcome, Snapshot


class JobType(str, Enum):
    SNAPSHOT = "snapshot"
    DIFF = "diff"
    RESTORE = "restore"
    RECONCILE = "reconcile"


@dataclass
class SnapshotJobPayload:
    user_id: str
    requested_at: str | None = None


@dataclass
class DiffJobPayload:
    user_id: str
    snapshot_id_from: str
    snapshot_id_to: str
    diff_job_id: str
    requested_at: str | None = None


@dataclass
class RestoreJobPayload:
    restore_id: str
    user_id: str
    snapshot_id: str
    targets: list[str] | None = None
    target_parent_page_id: str | None = None
    requested_at: str | None = None

    def to_job(self) -> RestoreJob:
        return RestoreJob(
            restore_id=self.restore_id,
            user_id=self.user_id,
            snapshot_id=self.snapshot_id,
            targets=self.targets,
            target_parent_page_id=self.target_parent_page_id,
            requested_at=self.requested_at,
        )


@dataclass
class ReconcileJobPayload:
    user_ids: list[str] | None = None


JobPayload = SnapshotJobPayload | DiffJobPayload | RestoreJobPayload | ReconcileJobPayload


def decode_message(message: bytes | str | dict[str, Any]) -> dict[str, Any]:
    """Return the JSON payload object, unwrapping an envelope if present.

    Raises
    ------
    LifelineJobPayloadError
        If the message is not JSON, the envelope data is not base64 JSON,
        or the payload is not an object.
    """
    if isinstance(message, (bytes, str)):
        try:
            message = json.loads(message)
        except ValueError as exc:
            raise LifelineJobPayloadError(f"Job message is not JSON: {exc}", cause=exc) from exc
    if not isinstance(message, dict):
        raise LifelineJobPayloadError("Job message must be a JSON object")

    envelope = message.get("message")
    if isinstance(envelope, dict) and "data" in envelope:
        data = envelope["data"]
        if not isinstance(data, str):
            raise LifelineJobPayloadError("Envelope data must be a base64 string")
        try:
            message = json.loads(base64.b64decode(data, validate=True))
        except (binascii.Error, ValueError) as exc:
            raise LifelineJobPayloadError(f"Envelope data is not base64 JSON: {exc}", cause=exc) from exc
        if not isinstance(message, dict):
            raise LifelineJobPayloadError("Job payload must be a JSON object")
    return message


def _require(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise LifelineJobPayloadError(f"Job payload is missing {key!r}", context={"field": key})
    return value


def _optional_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    return None if value is None else str(value)


def _optional_ids(data: dict[str, Any], key: str) -> list[str] | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise LifelineJobPayloadError(f"{key!r} must be a list of ids", context={"field": key})
    return list(value)


def parse_job_payload(job_type: JobType | str, message: bytes | str | dict[str, Any]) -> JobPayload:
    """Decode *message* into the payload dataclass for *job_type*."""
    try:
        job_type = JobType(job_type)
    except ValueError as exc:
        raise LifelineJobPayloadError(f"Unknown job type {job_type!r}", cause=exc) from exc
    data = decode_message(message)

    if job_type is JobType.SNAPSHOT:
        return SnapshotJobPayload(
            user_id=_require(data, "userId"),
            requested_at=_optional_str(data, "requestedAt"),
        )
    if job_type is JobType.DIFF:
        return DiffJobPayload(
            user_id=_require(data, "userId"),
            snapshot_id_from=_require(data, "snapshotIdFrom"),
            snapshot_id_to=_require(data, "snapshotIdTo"),
            diff_job_id=_require(data, "diffJobId"),
            requested_at=_optional_str(data, "requestedAt"),
        )
    if job_type is JobType.RESTORE:
        return RestoreJobPayload(
            restore_id=_require(data, "restoreId"),
            user_id=_require(data, "userId"),
            snapshot_id=_require(data, "snapshotId"),
            targets=_optional_ids(data, "targets"),
            target_parent_page_id=_optional_str(data, "targetParentPageId"),
            requested_at=_optional_str(data, "requestedAt"),
        )
    return ReconcileJobPayload(user_ids=_optional_ids(data, "userIds"))


async def run_job(
    context: JobContext,
    job_type: JobType | str,
    message: bytes | str | dict[str, Any],
) -> Snapshot | DiffResult | RestoreOutcome | AuditReport:
    """Parse *message* and run it with the worker for *job_type*."""
    payload = parse_job_payload(job_type, message)

    if isinstance(payload, SnapshotJobPayload):
        from lifeline.snapshot.worker import SnapshotWorker

        return await SnapshotWorker(context).run(payload.user_id)
    if isinstance(payload, DiffJobPayload):
        from lifeline.diff.worker import DiffWorker

        return await DiffWorker(context).run(
            payload.user_id, payload.snapshot_id_from, payload.snapshot_id_to, payload.diff_job_id
        )
    if isinstance(payload, RestoreJobPayload):
        from lifeline.restore.worker import RestoreWorker

        return await RestoreWorker(context).run(payload.to_job())

    from lifeline.reconcile import ReconciliationAuditor, record_findings

    auditor = ReconciliationAuditor(
        context.documents,
        context.primary_destination().store,
        store_factory=context.store_factory,
        metrics=context.config.metrics,
    )
    report = await auditor.audit(payload.user_ids)
    await record_findings(context.documents, report)
    return report
