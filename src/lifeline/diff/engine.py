"""Manifest comparison with semantic classification of changed items.

:meth:`DiffEngine.diff` runs in two passes:

1. Set arithmetic on manifest ids gives added and deleted items.  Items in
   both manifests whose hashes differ are *changed*.
2. Each changed item is classified by comparing the averaged embedding
   vectors stored for it under the two snapshot ids.

Without a vector index every changed item is reported as
``hash_only_similar`` and the semantic counters stay at zero: nothing was
actually compared.
"""

from __future__ import annotations

from lifeline.embedding import VectorIndex
from lifeline.models import (
    ChangedItem,
    ChangeType,
    DiffItemRef,
    DiffResult,
    DiffStatus,
    DiffSummary,
    EmbeddingKind,
    ItemKind,
    Manifest,
    ManifestEntry,
    vector_id,
)
from lifeline.observability import get_logger, resolve_metrics

from .similarity import average_vectors, cosine_similarity

log = get_logger("lifeline.diff")

DEFAULT_SIMILARITY_THRESHOLD = 0.95


def compare_manifests(
    manifest_from: Manifest, manifest_to: Manifest
) -> tuple[list[str], list[str], list[str]]:
    """Return ``(added, deleted, changed)`` item ids, each sorted."""
    from_ids = set(manifest_from)
    to_ids = set(manifest_to)
    added = sorted(to_ids - from_ids)
    deleted = sorted(from_ids - to_ids)
    changed = sorted(
        i for i in from_ids & to_ids if manifest_from[i].hash != manifest_to[i].hash
    )
    return added, deleted, changed


def vector_ids_for(snapshot_id: str, item_id: str, entry: ManifestEntry) -> list[str]:
    """Vector-index ids recorded for one manifest entry."""
    if entry.kind in (ItemKind.PAGE, ItemKind.DATABASE):
        ids = []
        if entry.has_title_embedding:
            ids.append(vector_id(snapshot_id, item_id, EmbeddingKind.TITLE))
        if entry.kind is ItemKind.DATABASE and entry.has_description_embedding:
            ids.append(vector_id(snapshot_id, item_id, EmbeddingKind.DESCRIPTION))
        return ids
    return [
        vector_id(snapshot_id, item_id, EmbeddingKind.CHUNK, i) for i in range(entry.total_chunks)
    ]


def _ref(item_id: str, entry: ManifestEntry) -> DiffItemRef:
    return DiffItemRef(id=item_id, name=entry.name, kind=entry.kind, block_type=entry.block_type)


class DiffEngine:
    """Compare two snapshot manifests.

    Parameters
    ----------
    vector_index:
        Source of stored embeddings.  ``None`` disables semantic
        classification.
    threshold:
        Similarity at or above which a changed item counts as
        ``hash_only_similar``.
    metrics:
        Optional :class:`~lifeline.observability.MetricsHook`.
    """

    def __init__(
        self,
        vector_index: VectorIndex | None = None,
        threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
        metrics=None,
    ) -> None:
        self._index = vector_index
        self._threshold = threshold
        self._metrics = resolve_metrics(metrics)

    async def diff(
        self,
        manifest_from: Manifest,
        manifest_to: Manifest,
        snapshot_id_from: str,
        snapshot_id_to: str,
        job_id: str = "",
    ) -> DiffResult:
        """Return a completed :class:`DiffResult` for the two manifests."""
        added, deleted, changed = compare_manifests(manifest_from, manifest_to)
        summary = DiffSummary(added=len(added), deleted=len(deleted), content_hash_changed=len(changed))
        result = DiffResult(
            job_id=job_id,
            snapshot_id_from=snapshot_id_from,
            snapshot_id_to=snapshot_id_to,
            summary=summary,
            added_items=[_ref(i, manifest_to[i]) for i in added],
            deleted_items=[_ref(i, manifest_from[i]) for i in deleted],
        )

        for item_id in changed:
            old, new = manifest_from[item_id], manifest_to[item_id]
            item = ChangedItem(
                id=item_id,
                change_type=ChangeType.HASH_ONLY_SIMILAR,
                name=new.name,
                kind=new.kind,
                block_type=new.block_type,
            )
            if self._index is not None:
                await self._classify(item, old, new, snapshot_id_from, snapshot_id_to)
                if item.similarity_score is not None:
                    if item.change_type is ChangeType.HASH_ONLY_SIMILAR:
                        summary.semantically_similar += 1
                    else:
                        summary.semantically_changed += 1
            self._metrics.increment(
                "lifeline.diff_items_total", tags={"change_type": item.change_type.value}
            )
            result.changed_items.append(item)

        result.status = DiffStatus.COMPLETED
        log.info(
            "Diff computed",
            extra={
                "extra_fields": {
                    "snapshot_id_from": snapshot_id_from,
                    "snapshot_id_to": snapshot_id_to,
                    **summary.to_dict(),
                }
            },
        )
        return result

    async def _classify(
        self,
        item: ChangedItem,
        old: ManifestEntry,
        new: ManifestEntry,
        snapshot_id_from: str,
        snapshot_id_to: str,
    ) -> None:
        assert self._index is not None
        try:
            old_vec = await self._average(vector_ids_for(snapshot_id_from, item.id, old))
            new_vec = await self._average(vector_ids_for(snapshot_id_to, item.id, new))
            if old_vec is None and new_vec is None:
                item.change_type = ChangeType.NO_EMBEDDINGS_FOUND
                return
            if old_vec is None or new_vec is None:
                item.change_type = ChangeType.STRUCTURAL_CHANGE
                return
            score = cosine_similarity(old_vec, new_vec)
        except Exception as exc:
            log.warning(
                "Semantic comparison failed",
                extra={"extra_fields": {"item_id": item.id, "error": str(exc)}},
            )
            item.change_type = ChangeType.PENDING_SEMANTIC_CHECK
            return
        item.similarity_score = round(score, 4)
        item.change_type = (
            ChangeType.HASH_ONLY_SIMILAR if score >= self._threshold else ChangeType.SEMANTIC_DIVERGENCE
        )

    async def _average(self, ids: list[str]) -> list[float] | None:
        if not ids:
            return None
        assert self._index is not None
        found = await self._index.fetch(ids)
        return average_vectors([found[i] for i in ids if i in found])
