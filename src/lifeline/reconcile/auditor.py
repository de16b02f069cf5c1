"""Read-only consistency audit of secondary storage against the primary.

For every snapshot archive in the primary store the auditor checks each
enabled secondary destination of its owner:

* the archive exists;
* its ``content-sha256`` metadata is present on both sides and matches;
* its size matches;
* for ``mirror`` destinations, the manifest exists, parses, and agrees
  key by key with the primary manifest.

Each (user, snapshot, destination) check is isolated: an error becomes a
finding and the audit moves on.
"""

from __future__ import annotations

from typing import Any

from lifeline.errors import LifelineError
from lifeline.models import (
    AuditFinding,
    AuditFindingKind,
    AuditReport,
    Manifest,
    ReplicationMode,
)
from lifeline.observability import get_logger, resolve_metrics
from lifeline.snapshot.packager import unpack_manifest
from lifeline.storage import (
    Destination,
    ObjectStore,
    build_destinations,
    build_store,
    is_archive_path,
    manifest_path,
    metadata_sha256,
    metadata_size,
    snapshot_id_from_path,
)

log = get_logger("lifeline.reconcile")

PRIMARY = "primary"


class ReconciliationAuditor:
    """Compare secondaries with the primary store.

    Parameters
    ----------
    documents:
        Supplies users and their destination configs.
    primary:
        The primary object store.
    store_factory:
        Builds a store for a destination config.
    metrics:
        Optional :class:`~lifeline.observability.MetricsHook`.
    """

    def __init__(self, documents, primary: ObjectStore, store_factory=build_store, metrics=None) -> None:
        self._documents = documents
        self._primary = primary
        self._store_factory = store_factory
        self._metrics = resolve_metrics(metrics)

    async def audit(self, user_ids: list[str] | None = None) -> AuditReport:
        """Audit *user_ids*, or every known user when ``None``."""
        report = AuditReport()
        users = user_ids if user_ids is not None else await self._documents.list_users()
        for user_id in users:
            await self._audit_user(user_id, report)
        for finding in report.findings:
            self._metrics.increment("lifeline.audit_findings_total", tags={"kind": finding.kind.value})
        log.info(
            "Reconciliation finished",
            extra={
                "extra_fields": {
                    "users": report.users_checked,
                    "snapshots": report.snapshots_checked,
                    "destinations": report.destinations_checked,
                    "findings": len(report.findings),
                }
            },
        )
        return report

    async def _audit_user(self, user_id: str, report: AuditReport) -> None:
        report.users_checked += 1
        configs = await self._documents.list_destinations(user_id)
        destinations, failures = build_destinations(configs, self._store_factory)
        for dest, exc in failures:
            report.findings.append(
                AuditFinding(user_id, "", dest.name, AuditFindingKind.MIRROR_CONFIG_ERROR, exc.message)
            )
        if not destinations:
            return

        try:
            paths = [p for p in await self._primary.list(f"{user_id}/") if is_archive_path(p)]
        except LifelineError as exc:
            report.findings.append(
                AuditFinding(user_id, "", PRIMARY, AuditFindingKind.PRIMARY_ERROR, exc.message)
            )
            return

        for path in paths:
            report.snapshots_checked += 1
            await self._audit_snapshot(user_id, path, destinations, report)

    async def _audit_snapshot(
        self, user_id: str, path: str, destinations: list[Destination], report: AuditReport
    ) -> None:
        snapshot_id = snapshot_id_from_path(path)
        m_path = manifest_path(user_id, snapshot_id)
        try:
            primary_meta = await self._primary.get_metadata(path)
        except Exception as exc:
            report.findings.append(
                AuditFinding(user_id, snapshot_id, PRIMARY, AuditFindingKind.PRIMARY_ERROR, str(exc))
            )
            return

        primary_manifest: Manifest | None = None
        if any(d.mode is ReplicationMode.MIRROR for d in destinations):
            try:
                primary_manifest = unpack_manifest(await self._primary.read(m_path))
            except Exception as exc:
                report.findings.append(
                    AuditFinding(
                        user_id, snapshot_id, PRIMARY, AuditFindingKind.MANIFEST_UNREADABLE, str(exc)
                    )
                )

        for dest in destinations:
            report.destinations_checked += 1
            found: list[AuditFinding] = []
            try:
                await self._check_destination(
                    dest, path, m_path, primary_meta, primary_manifest,
                    lambda kind, detail, item_id=None: found.append(
                        AuditFinding(user_id, snapshot_id, dest.name, kind, detail, item_id)
                    ),
                )
            except Exception as exc:
                found.append(
                    AuditFinding(user_id, snapshot_id, dest.name, AuditFindingKind.MIRROR_ERROR, str(exc))
                )
            for finding in found:
                log.warning(
                    "Reconciliation finding",
                    extra={"extra_fields": finding.to_dict()},
                )
            report.findings.extend(found)

    async def _check_destination(
        self,
        dest: Destination,
        path: str,
        m_path: str,
        primary_meta: dict[str, Any] | None,
        primary_manifest: Manifest | None,
        add,
    ) -> None:
        mirror_meta = await dest.store.get_metadata(path)
        if mirror_meta is None:
            add(AuditFindingKind.MIRROR_MISSING, f"{path} missing from {dest.name}")
            return

        primary_sha = metadata_sha256(primary_meta)
        mirror_sha = metadata_sha256(mirror_meta)
        if primary_sha is None:
            add(AuditFindingKind.HASH_MISSING_PRIMARY, f"{path} has no content-sha256 on primary")
        if mirror_sha is None:
            add(AuditFindingKind.HASH_MISSING_MIRROR, f"{path} has no content-sha256 on {dest.name}")
        if primary_sha and mirror_sha and primary_sha != mirror_sha:
            add(AuditFindingKind.HASH_MISMATCH, f"primary {primary_sha} != {dest.name} {mirror_sha}")

        primary_size = metadata_size(primary_meta)
        mirror_size = metadata_size(mirror_meta)
        if primary_size is not None and mirror_size is not None and primary_size != mirror_size:
            add(AuditFindingKind.SIZE_MISMATCH, f"primary {primary_size} bytes != {dest.name} {mirror_size} bytes")

        if dest.mode is not ReplicationMode.MIRROR or primary_manifest is None:
            return
        if not await dest.store.exists(m_path):
            add(AuditFindingKind.MANIFEST_MISSING, f"{m_path} missing from {dest.name}")
            return
        try:
            mirror_manifest = unpack_manifest(await dest.store.read(m_path))
        except LifelineError as exc:
            add(AuditFindingKind.MANIFEST_UNREADABLE, exc.message)
            return
        for kind, item_id in compare_manifest_keys(primary_manifest, mirror_manifest):
            add(kind, f"{kind.value.replace('_', ' ')} for item {item_id}", item_id)


def compare_manifest_keys(primary: Manifest, mirror: Manifest) -> list[tuple[AuditFindingKind, str]]:
    """Key-by-key differences between two manifests, sorted by item id."""
    diffs: list[tuple[AuditFindingKind, str]] = []
    for item_id in sorted(set(primary) | set(mirror)):
        if item_id not in mirror:
            diffs.append((AuditFindingKind.MISSING_KEY, item_id))
        elif item_id not in primary:
            diffs.append((AuditFindingKind.EXTRA_KEY, item_id))
        elif primary[item_id].hash != mirror[item_id].hash:
            diffs.append((AuditFindingKind.ENTRY_HASH_MISMATCH, item_id))
    return diffs


async def record_findings(documents, report: AuditReport) -> None:
    """Append every finding to its user's audit log."""
    for finding in report.findings:
        await documents.add_audit_event(finding.user_id, finding.to_dict())
