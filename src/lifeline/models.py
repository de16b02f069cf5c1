"""Data models for lifeline.

This module contains every entity that flows between the pipeline
components: workspace items and their manifest entries, snapshot records,
storage destination configs, diff results, restore progress and audit
findings.  All types are plain dataclasses; the only behaviour they carry
is conversion to and from the JSON shapes stored in object storage and in
the document store.

Stored JSON keeps the camelCase keys the rest of the product reads
(``blockType``, ``hasTitleEmbedding`` ...).  Python attributes are
snake_case.
"""

from __future__ import annotations

import time
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from lifeline.errors import LifelineInvalidTransitionError

# ---------------------------------------------------------------------------
# Workspace items
# ---------------------------------------------------------------------------

class ItemKind(str, Enum):
    """Object kinds returned by the Notion API that a snapshot captures."""

    PAGE = "page"
    DATABASE = "database"
    BLOCK = "block"


@dataclass
class WorkspaceItem:
    """A page, database or block captured from a workspace.

    One class covers all three kinds; ``kind`` is the tag that code
    branches on.  ``payload`` is the raw API object exactly as fetched.

    Attributes
    ----------
    id:
        Notion object id.
    kind:
        Which of page / database / block this item is.
    payload:
        Raw Notion JSON for the object, without the recursive content
        keys (``blocks``, ``children``, ``rows``).
    block_type:
        The block's ``type`` field.  ``None`` for pages and databases.
    parent_id:
        Id of the enclosing page, database or block, if any.
    title:
        Plain-text title (pages, databases) or text snippet (blocks).
    children:
        Block children.  For a page these are its top-level blocks, for
        a block its nested blocks.
    rows:
        Database rows, each an item of kind ``page``.
    """

    id: str
    kind: ItemKind
    payload: dict[str, Any] = field(default_factory=dict)
    block_type: str | None = None
    parent_id: str | None = None
    title: str = ""
    children: list[WorkspaceItem] = field(default_factory=list)
    rows: list[WorkspaceItem] = field(default_factory=list)

    def iter_tree(self) -> Iterator[WorkspaceItem]:
        """Yield this item followed by every descendant, depth first."""
        yield self
        for child in self.children:
            yield from child.iter_tree()
        for row in self.rows:
            yield from row.iter_tree()

    def to_archive(self) -> dict[str, Any]:
        """Return the archive JSON for this item and its descendants.

        Pages carry their blocks under ``blocks``, blocks carry nested
        blocks under ``children`` and databases carry rows under ``rows``.
        """
        data = dict(self.payload)
        data.setdefault("id", self.id)
        data.setdefault("object", self.kind.value)
        if self.kind is ItemKind.PAGE:
            data["blocks"] = [c.to_archive() for c in self.children]
        elif self.kind is ItemKind.BLOCK:
            if self.children:
                data["children"] = [c.to_archive() for c in self.children]
        elif self.kind is ItemKind.DATABASE:
            data["rows"] = [r.to_archive() for r in self.rows]
        return data

    @classmethod
    def from_archive(cls, data: dict[str, Any], parent_id: str | None = None) -> WorkspaceItem:
        """Rebuild an item tree from its archive JSON."""
        payload = {k: v for k, v in data.items() if k not in ("blocks", "children", "rows")}
        kind = ItemKind(data.get("object", "block"))
        item = cls(
            id=str(data.get("id", "")),
            kind=kind,
            payload=payload,
            block_type=data.get("type") if kind is ItemKind.BLOCK else None,
            parent_id=parent_id if parent_id is not None else parent_ref(data),
        )
        nested = data.get("blocks") if kind is ItemKind.PAGE else data.get("children")
        item.children = [cls.from_archive(c, item.id) for c in nested or []]
        if kind is ItemKind.DATABASE:
            item.rows = [cls.from_archive(r, item.id) for r in data.get("rows") or []]
        return item


def parent_ref(payload: dict[str, Any]) -> str | None:
    """Extract the parent object id from a Notion ``parent`` field."""
    parent = payload.get("parent")
    if not isinstance(parent, dict):
        return None
    ptype = parent.get("type")
    if ptype and isinstance(parent.get(ptype), str):
        return parent[ptype]
    for key in ("page_id", "database_id", "block_id"):
        if isinstance(parent.get(key), str):
            return parent[key]
    return None


# ---------------------------------------------------------------------------
# Manifest
# ---------------------------------------------------------------------------

@dataclass
class ManifestEntry:
    """One row of a snapshot's hash manifest."""

    hash: str
    kind: ItemKind
    block_type: str | None = None
    name: str | None = None
    parent_id: str | None = None
    has_title_embedding: bool = False
    has_description_embedding: bool = False
    total_chunks: int = 0

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "hash": self.hash,
            "type": self.kind.value,
            "hasTitleEmbedding": self.has_title_embedding,
            "hasDescriptionEmbedding": self.has_description_embedding,
            "totalChunks": self.total_chunks,
        }
        if self.block_type is not None:
            data["blockType"] = self.block_type
        if self.name is not None:
            data["name"] = self.name
        if self.parent_id is not None:
            data["parentId"] = self.parent_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ManifestEntry:
        return cls(
            hash=data["hash"],
            kind=ItemKind(data.get("type", "block")),
            block_type=data.get("blockType"),
            name=data.get("name"),
            parent_id=data.get("parentId"),
            has_title_embedding=bool(data.get("hasTitleEmbedding", False)),
            has_description_embedding=bool(data.get("hasDescriptionEmbedding", False)),
            total_chunks=int(data.get("totalChunks") or 0),
        )


Manifest = dict[str, ManifestEntry]


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------

class DestinationType(str, Enum):
    S3 = "s3"
    R2 = "r2"


class ReplicationMode(str, Enum):
    """How a secondary destination participates in replication.

    ``mirror`` destinations receive the archive and its manifest and are
    audited against the primary manifest.  ``archive`` destinations only
    receive the archive blob.
    """

    MIRROR = "mirror"
    ARCHIVE = "archive"


_CREDENTIAL_FIELDS = ("access_key_id", "secret_access_key")


@dataclass
class StorageDestinationConfig:
    """A user-configured secondary replication target."""

    id: str
    type: DestinationType
    bucket: str
    region: str | None = None
    endpoint: str | None = None
    access_key_id: str = ""
    secret_access_key: str = ""
    force_path_style: bool = False
    is_enabled: bool = True
    replication_mode: ReplicationMode = ReplicationMode.MIRROR

    @property
    def name(self) -> str:
        """Human-readable destination label, e.g. ``S3-my-bucket``."""
        return f"{self.type.value.upper()}-{self.bucket}"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StorageDestinationConfig:
        return cls(
            id=str(data.get("id", "")),
            type=DestinationType(data["type"]),
            bucket=data.get("bucket", ""),
            region=data.get("region"),
            endpoint=data.get("endpoint"),
            access_key_id=data.get("accessKeyId", ""),
            secret_access_key=data.get("secretAccessKey", ""),
            force_path_style=bool(data.get("forcePathStyle", False)),
            is_enabled=bool(data.get("isEnabled", True)),
            replication_mode=ReplicationMode(data.get("replicationMode", "mirror")),
        )

    def __repr__(self) -> str:
        """Mask credentials to prevent accidental leakage into logs."""
        parts: list[str] = []
        for name in self.__dataclass_fields__:
            val = getattr(self, name)
            if name in _CREDENTIAL_FIELDS:
                parts.append(f"{name}='****'")
            else:
                parts.append(f"{name}={val!r}")
        return f"StorageDestinationConfig({', '.join(parts)})"


@dataclass
class ReplicationResult:
    """Outcome of writing one object to one destination."""

    destination: str
    ok: bool
    path: str = ""
    error: str | None = None
    primary: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "destination": self.destination,
            "ok": self.ok,
            "path": self.path,
            "primary": self.primary,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------

@dataclass
class Snapshot:
    """A completed capture of one user's workspace."""

    snapshot_id: str
    user_id: str
    timestamp: str
    primary_path: str
    manifest_path: str
    item_count: int
    size_bytes: int
    status: str = "completed"
    content_sha256: str = ""
    replicas: list[ReplicationResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "snapshotId": self.snapshot_id,
            "userId": self.user_id,
            "timestamp": self.timestamp,
            "primaryPath": self.primary_path,
            "manifestPath": self.manifest_path,
            "itemCount": self.item_count,
            "sizeBytes": self.size_bytes,
            "status": self.status,
            "contentSha256": self.content_sha256,
            "storageProviders": [r.to_dict() for r in self.replicas],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Snapshot:
        return cls(
            snapshot_id=data["snapshotId"],
            user_id=data["userId"],
            timestamp=data.get("timestamp", ""),
            primary_path=data["primaryPath"],
            manifest_path=data["manifestPath"],
            item_count=int(data.get("itemCount", 0)),
            size_bytes=int(data.get("sizeBytes", 0)),
            status=data.get("status", "completed"),
            content_sha256=data.get("contentSha256", ""),
            replicas=[
                ReplicationResult(
                    destination=r["destination"],
                    ok=bool(r["ok"]),
                    path=r.get("path", ""),
                    error=r.get("error"),
                    primary=bool(r.get("primary", False)),
                )
                for r in data.get("storageProviders", [])
            ],
        )


# ---------------------------------------------------------------------------
# Embeddings
# ---------------------------------------------------------------------------

class EmbeddingKind(str, Enum):
    TITLE = "title"
    DESCRIPTION = "description"
    CHUNK = "chunk"


def vector_id(snapshot_id: str, item_id: str, kind: EmbeddingKind, chunk_index: int = 0) -> str:
    """Build the vector-index id for one embedding.

    >>> vector_id("snap_1", "abc", EmbeddingKind.CHUNK, 2)
    'snap_1:abc:chunk:2'
    """
    base = f"{snapshot_id}:{item_id}:{kind.value}"
    if kind is EmbeddingKind.CHUNK:
        return f"{base}:{chunk_index}"
    return base


@dataclass
class EmbeddingRecord:
    """One embedding vector and the metadata needed to reassemble it."""

    vector: list[float]
    chunk_index: int
    total_chunks: int
    item_id: str
    snapshot_id: str
    kind: EmbeddingKind = EmbeddingKind.CHUNK
    text: str = ""

    @property
    def record_id(self) -> str:
        return vector_id(self.snapshot_id, self.item_id, self.kind, self.chunk_index)


# ---------------------------------------------------------------------------
# Diff results
# ---------------------------------------------------------------------------

class DiffStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class ChangeType(str, Enum):
    """Classification of an item whose content hash changed."""

    HASH_ONLY_SIMILAR = "hash_only_similar"
    """Hash changed but the meaning did not (similarity >= threshold)."""

    SEMANTIC_DIVERGENCE = "semantic_divergence"
    """Similarity fell below the threshold."""

    NO_EMBEDDINGS_FOUND = "no_embeddings_found"
    """Neither snapshot has vectors for the item."""

    STRUCTURAL_CHANGE = "structural_change"
    """Only one snapshot has vectors for the item."""

    PENDING_SEMANTIC_CHECK = "pending_semantic_check"
    """The vector lookup failed; the item could not be classified."""


@dataclass
class DiffItemRef:
    """An added or deleted item, as listed in a diff result."""

    id: str
    name: str | None = None
    kind: ItemKind | None = None
    block_type: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.kind.value if self.kind else None,
            "blockType": self.block_type,
        }


@dataclass
class ChangedItem:
    """An item present in both snapshots with differing hashes."""

    id: str
    change_type: ChangeType
    name: str | None = None
    kind: ItemKind | None = None
    block_type: str | None = None
    similarity_score: float | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "itemType": self.kind.value if self.kind else None,
            "blockType": self.block_type,
            "changeType": self.change_type.value,
        }
        if self.similarity_score is not None:
            data["similarityScore"] = self.similarity_score
        return data


@dataclass
class DiffSummary:
    added: int = 0
    deleted: int = 0
    content_hash_changed: int = 0
    semantically_similar: int = 0
    semantically_changed: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "added": self.added,
            "deleted": self.deleted,
            "contentHashChanged": self.content_hash_changed,
            "semanticallySimilar": self.semantically_similar,
            "semanticallyChanged": self.semantically_changed,
        }


@dataclass
class DiffResult:
    """Outcome of comparing two snapshot manifests."""

    job_id: str
    snapshot_id_from: str
    snapshot_id_to: str
    status: DiffStatus = DiffStatus.PROCESSING
    summary: DiffSummary = field(default_factory=DiffSummary)
    added_items: list[DiffItemRef] = field(default_factory=list)
    deleted_items: list[DiffItemRef] = field(default_factory=list)
    changed_items: list[ChangedItem] = field(default_factory=list)
    llm_summary: str | None = None
    llm_model: str | None = None
    llm_tokens: int = 0
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "jobId": self.job_id,
            "snapshotIdFrom": self.snapshot_id_from,
            "snapshotIdTo": self.snapshot_id_to,
            "status": self.status.value,
            "summary": self.summary.to_dict(),
            "details": {
                "addedItems": [i.to_dict() for i in self.added_items],
                "deletedItems": [i.to_dict() for i in self.deleted_items],
                "changedItems": [c.to_dict() for c in self.changed_items],
            },
        }
        if self.llm_summary is not None:
            data["llmSummary"] = self.llm_summary
            data["llmModel"] = self.llm_model
            data["llmTokens"] = self.llm_tokens
        if self.error is not None:
            data["error"] = self.error
        return data


# ---------------------------------------------------------------------------
# Restore
# ---------------------------------------------------------------------------

class RestoreStatus(str, Enum):
    """Restore job states, in the order a successful job visits them."""

    PENDING = "pending"
    DOWNLOADING = "downloading"
    DECOMPRESSING = "decompressing"
    PARSING = "parsing"
    RESTORING = "restoring"
    COMPLETED = "completed"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (RestoreStatus.COMPLETED, RestoreStatus.ERROR)


_RESTORE_ORDER = [
    RestoreStatus.PENDING,
    RestoreStatus.DOWNLOADING,
    RestoreStatus.DECOMPRESSING,
    RestoreStatus.PARSING,
    RestoreStatus.RESTORING,
    RestoreStatus.COMPLETED,
]

ERROR_PERCENTAGE = -1


@dataclass
class RestoreProgress:
    """Durable, pollable status record of one restore job."""

    status: RestoreStatus = RestoreStatus.PENDING
    message: str = ""
    percentage: int = 0
    updated_at: float = field(default_factory=time.time)
    restored_count: int = 0
    failed_count: int = 0
    total_count: int = 0

    def advance(self, status: RestoreStatus, message: str, percentage: int) -> None:
        """Move to *status*, refusing backward moves and exits from terminal states.

        Staying in the same non-terminal state (e.g. repeated ``restoring``
        updates) is allowed.

        Raises
        ------
        LifelineInvalidTransitionError
            If the current status is terminal, or *status* comes before it.
        """
        if self.status.is_terminal:
            raise LifelineInvalidTransitionError(
                f"Restore already {self.status.value}; cannot move to {status.value}",
                context={"from_status": self.status.value, "to_status": status.value},
            )
        if status is not RestoreStatus.ERROR and (
            _RESTORE_ORDER.index(status) < _RESTORE_ORDER.index(self.status)
        ):
            raise LifelineInvalidTransitionError(
                f"Restore cannot move from {self.status.value} back to {status.value}",
                context={"from_status": self.status.value, "to_status": status.value},
            )
        self.status = status
        self.message = message
        self.percentage = ERROR_PERCENTAGE if status is RestoreStatus.ERROR else percentage
        self.updated_at = time.time()

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status.value,
            "message": self.message,
            "percentage": self.percentage,
            "updatedAt": self.updated_at,
            "restoredCount": self.restored_count,
            "failedCount": self.failed_count,
            "totalCount": self.total_count,
        }


@dataclass
class RestoreJob:
    """A request to replay one snapshot into Notion."""

    restore_id: str
    user_id: str
    snapshot_id: str
    targets: list[str] | None = None
    target_parent_page_id: str | None = None
    requested_at: str | None = None


@dataclass
class RestoreOutcome:
    """Counts reported when a restore reaches ``completed``."""

    restored: int = 0
    failed: int = 0
    skipped: int = 0
    created_ids: list[str] = field(default_factory=list)
    #: Created pages whose later block batches could not be appended.
    incomplete_ids: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------

class AuditFindingKind(str, Enum):
    """Discrepancy categories reported by the reconciliation audit."""

    MIRROR_MISSING = "mirror_missing"
    HASH_MISSING_PRIMARY = "hash_missing_primary"
    HASH_MISSING_MIRROR = "hash_missing_mirror"
    HASH_MISMATCH = "hash_mismatch"
    SIZE_MISMATCH = "size_mismatch"
    MANIFEST_MISSING = "manifest_missing"
    MANIFEST_UNREADABLE = "manifest_unreadable"
    MISSING_KEY = "missing_key"
    EXTRA_KEY = "extra_key"
    ENTRY_HASH_MISMATCH = "entry_hash_mismatch"
    PRIMARY_ERROR = "primary_error"
    MIRROR_ERROR = "mirror_error"
    MIRROR_CONFIG_ERROR = "mirror_config_error"


@dataclass
class AuditFinding:
    user_id: str
    snapshot_id: str
    destination: str
    kind: AuditFindingKind
    detail: str = ""
    item_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": f"reconcile_{self.kind.value}",
            "userId": self.user_id,
            "snapshotId": self.snapshot_id,
            "destination": self.destination,
            "message": self.detail,
        }
        if self.item_id is not None:
            data["itemId"] = self.item_id
        return data


@dataclass
class AuditReport:
    """Everything one audit run found, plus how much it checked."""

    findings: list[AuditFinding] = field(default_factory=list)
    users_checked: int = 0
    snapshots_checked: int = 0
    destinations_checked: int = 0

    @property
    def clean(self) -> bool:
        return not self.findings

    def for_destination(self, destination: str) -> list[AuditFinding]:
        return [f for f in self.findings if f.destination == destination]
