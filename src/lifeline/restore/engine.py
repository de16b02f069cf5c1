"""Replay of a stored snapshot into a Notion workspace.

Phases and the progress they report:

==============  ==========  ==========================================
status          percentage  meaning
==============  ==========  ==========================================
downloading     5           archive is being fetched
decompressing   15          archive downloaded
parsing         25          archive decompressed
restoring       30 .. 95    proportional to top-level items handled
completed       100
error           -1          message carries the reason
==============  ==========  ==========================================

Restores always create new objects.  Running one twice produces two
copies.
"""

from __future__ import annotations

import asyncio
import os
import tempfile
from dataclasses import dataclass, field
from typing import Any

from lifeline.errors import (
    LifelineAuthError,
    LifelineConfigurationError,
    LifelineError,
)
from lifeline.models import ItemKind, RestoreJob, RestoreOutcome, RestoreStatus, WorkspaceItem
from lifeline.notion_api import NotionAPI
from lifeline.observability import get_logger, resolve_metrics
from lifeline.snapshot import decompress_archive, parse_archive
from lifeline.storage import ObjectStore
from lifeline.utils import chunk_children

from .blocks import transform_blocks
from .progress import ProgressReporter
from .properties import transform_database_schema, transform_page_properties

log = get_logger("lifeline.restore")

NOTHING_TO_RESTORE = "Nothing to restore."


@dataclass
class _Counters:
    outcome: RestoreOutcome = field(default_factory=RestoreOutcome)
    done: int = 0
    id_map: dict[str, str] = field(default_factory=dict)


class RestoreEngine:
    """Restore one snapshot archive.

    Parameters
    ----------
    api:
        Endpoint bundle carrying the job's request queue.
    store:
        Object store holding the archive.
    reporter:
        Receives every progress transition.
    default_parent_page_id:
        Used when the job names no target parent page.
    metrics:
        Optional :class:`~lifeline.observability.MetricsHook`.
    """

    def __init__(
        self,
        api: NotionAPI,
        store: ObjectStore,
        reporter: ProgressReporter,
        default_parent_page_id: str | None = None,
        metrics=None,
    ) -> None:
        self._api = api
        self._store = store
        self._reporter = reporter
        self._default_parent = default_parent_page_id
        self._metrics = resolve_metrics(metrics)

    async def restore(self, job: RestoreJob, archive_path: str) -> RestoreOutcome:
        """Run the restore and drive progress to a terminal state.

        Raises
        ------
        LifelineError
            Anything fatal (missing archive, unreadable archive, missing
            destination, authentication failure).  Progress is moved to
            ``error`` before the exception propagates.
        """
        try:
            return await self._restore(job, archive_path)
        except Exception as exc:
            await self._reporter.fail(f"Restore failed: {exc}")
            raise

    async def _restore(self, job: RestoreJob, archive_path: str) -> RestoreOutcome:
        reporter = self._reporter
        await reporter.update(RestoreStatus.DOWNLOADING, "Starting snapshot download...", 5)

        fd, temp_path = tempfile.mkstemp(prefix=f"restore_{job.restore_id}_", suffix=".json.gz")
        os.close(fd)
        try:
            data = await self._store.read(archive_path)
            await asyncio.to_thread(_write_file, temp_path, data)
            await reporter.update(RestoreStatus.DECOMPRESSING, "Snapshot downloaded, decompressing...", 15)

            raw = await asyncio.to_thread(_read_file, temp_path)
            text = decompress_archive(raw)
            await reporter.update(RestoreStatus.PARSING, "Decompressed, parsing JSON data...", 25)
            _, items = parse_archive(text)
        finally:
            os.unlink(temp_path)

        await reporter.update(RestoreStatus.RESTORING, "Data parsed, queueing Notion API calls...", 30)

        selected = _select(items, job.targets)
        if not selected:
            await reporter.complete(NOTHING_TO_RESTORE)
            return RestoreOutcome()

        parent_id = job.target_parent_page_id or self._default_parent
        if not parent_id:
            raise LifelineConfigurationError(
                "Configuration error: Cannot determine restore destination.",
                context={"restore_id": job.restore_id},
            )

        counters = _Counters()
        total = len(selected)
        reporter.progress.total_count = total
        tasks = [
            asyncio.ensure_future(self._restore_top_level(item, parent_id, counters, total))
            for item in selected
        ]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            # A fatal error stops the sibling items too.
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        outcome = counters.outcome
        reporter.progress.restored_count = outcome.restored
        reporter.progress.failed_count = outcome.failed
        await reporter.complete(
            f"Restore completed: {outcome.restored} restored, {outcome.failed} failed, "
            f"{outcome.skipped} skipped."
        )
        return outcome

    # -- per-item --------------------------------------------------------------

    async def _restore_top_level(
        self, item: WorkspaceItem, parent_id: str, counters: _Counters, total: int
    ) -> None:
        outcome = counters.outcome
        if item.kind is ItemKind.PAGE and (item.payload.get("parent") or {}).get("type") == "database_id":
            log.info("Skipping database row at top level", extra={"extra_fields": {"id": item.id}})
            outcome.skipped += 1
        elif item.kind is ItemKind.PAGE:
            await self._guarded(item, counters, self._create_page(item, {"page_id": parent_id}, counters))
        elif item.kind is ItemKind.DATABASE:
            await self._guarded(item, counters, self._create_database(item, parent_id, counters))
        else:
            log.warning(
                "Skipping unsupported top-level item",
                extra={"extra_fields": {"id": item.id, "kind": item.kind.value}},
            )
            outcome.skipped += 1

        counters.done += 1
        await self._reporter.item_done(
            counters.done, total, f"Restored {counters.done} of {total} items..."
        )

    async def _guarded(self, item: WorkspaceItem, counters: _Counters, op) -> None:
        """Await *op*, counting a failure unless it is an auth error."""
        try:
            await op
        except LifelineAuthError:
            raise
        except LifelineError as exc:
            counters.outcome.failed += 1
            self._metrics.increment("lifeline.restore_items_total", tags={"status": "error"})
            log.error(
                "Failed to restore item",
                extra={
                    "extra_fields": {
                        "id": item.id,
                        "kind": item.kind.value,
                        "error_code": str(exc.code),
                        "error": exc.message,
                    }
                },
            )

    async def _create_page(
        self, item: WorkspaceItem, parent: dict[str, Any], counters: _Counters
    ) -> str:
        blocks = transform_blocks(item.children)
        batches = chunk_children(blocks)
        page = await self._api.pages.create(
            parent=parent,
            properties=transform_page_properties(item.payload.get("properties")),
            children=batches[0] if batches else [],
            icon=item.payload.get("icon"),
            cover=item.payload.get("cover"),
        )
        new_id = page["id"]
        self._created(item, new_id, counters)
        for number, batch in enumerate(batches[1:], start=2):
            try:
                await self._api.blocks.append_children(new_id, batch)
            except LifelineAuthError:
                raise
            except LifelineError as exc:
                # Nothing is appended after a failed batch; block order holds.
                self._incomplete(item, new_id, counters, exc, number, len(batches))
                break
        return new_id

    async def _create_database(self, item: WorkspaceItem, parent_id: str, counters: _Counters) -> str:
        payload: dict[str, Any] = {
            "parent": {"type": "page_id", "page_id": parent_id},
            "title": item.payload.get("title") or [],
            "properties": transform_database_schema(item.payload.get("properties")),
            "is_inline": bool(item.payload.get("is_inline", False)),
        }
        for key in ("icon", "cover"):
            if item.payload.get(key):
                payload[key] = item.payload[key]
        database = await self._api.databases.create(payload)
        new_id = database["id"]
        self._created(item, new_id, counters)

        # Rows only after the database exists, against its new id.
        for row in item.rows:
            await self._guarded(row, counters, self._create_page(row, {"database_id": new_id}, counters))
        return new_id

    def _created(self, item: WorkspaceItem, new_id: str, counters: _Counters) -> None:
        counters.id_map[item.id] = new_id
        counters.outcome.created_ids.append(new_id)
        counters.outcome.restored += 1
        self._metrics.increment(
            "lifeline.restore_items_total", tags={"status": "ok", "kind": item.kind.value}
        )

    def _incomplete(
        self,
        item: WorkspaceItem,
        new_id: str,
        counters: _Counters,
        exc: LifelineError,
        batch: int,
        batches: int,
    ) -> None:
        """Record a created page whose remaining blocks could not be appended."""
        counters.outcome.incomplete_ids.append(new_id)
        self._metrics.increment(
            "lifeline.restore_items_total", tags={"status": "incomplete", "kind": item.kind.value}
        )
        log.warning(
            "Page created with incomplete content",
            extra={
                "extra_fields": {
                    "id": item.id,
                    "new_id": new_id,
                    "batch": batch,
                    "batches": batches,
                    "error_code": str(exc.code),
                    "error": exc.message,
                }
            },
        )


def _write_file(path: str, data: bytes) -> None:
    with open(path, "wb") as fh:
        fh.write(data)


def _read_file(path: str) -> bytes:
    with open(path, "rb") as fh:
        return fh.read()


def _select(items: list[WorkspaceItem], targets: list[str] | None) -> list[WorkspaceItem]:
    """``None`` selects everything; a list selects by top-level id."""
    if targets is None:
        return items
    wanted = set(targets)
    return [i for i in items if i.id in wanted]
