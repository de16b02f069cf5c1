"""Archive and manifest (de)serialisation.

Both files are gzip-compressed UTF-8 JSON.  The archive is::

    {"metadata": {...}, "items": [<item with blocks/children/rows>, ...]}

and the manifest is ``{itemId: ManifestEntry.to_dict()}``.
"""

from __future__ import annotations

import gzip
import json
import zlib
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from lifeline.errors import LifelineManifestError
from lifeline.models import Manifest, ManifestEntry, WorkspaceItem
from lifeline.utils import sha256_hex

ARCHIVE_SOURCE = "snapshotWorker"


def iso_timestamp(moment: datetime | None = None) -> str:
    """UTC timestamp with millisecond precision, e.g. ``2025-01-02T03:04:05.678Z``."""
    moment = (moment or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.") + f"{moment.microsecond // 1000:03d}Z"


def new_snapshot_id(timestamp: str) -> str:
    """Derive a path-safe snapshot id from an :func:`iso_timestamp` value.

    >>> new_snapshot_id("2025-01-02T03:04:05.678Z")
    'snap_2025-01-02T03-04-05-678Z'
    """
    return "snap_" + timestamp.replace(":", "-").replace(".", "-")


def _gzip_json(obj: Any) -> bytes:
    return gzip.compress(json.dumps(obj, ensure_ascii=False).encode("utf-8"))


def _gunzip(data: bytes, what: str) -> str:
    try:
        return gzip.decompress(data).decode("utf-8")
    except (OSError, EOFError, zlib.error, UnicodeDecodeError) as exc:
        raise LifelineManifestError(f"Unreadable {what}: could not be decompressed ({exc})", cause=exc) from exc


def _load_json(text: str, what: str) -> Any:
    try:
        return json.loads(text)
    except ValueError as exc:
        raise LifelineManifestError(f"Unreadable {what}: not valid JSON ({exc})", cause=exc) from exc


def pack_archive(items: list[WorkspaceItem], metadata: dict[str, Any]) -> bytes:
    return _gzip_json({"metadata": metadata, "items": [i.to_archive() for i in items]})


def decompress_archive(data: bytes) -> str:
    """Gunzip an archive into its JSON text."""
    return _gunzip(data, "archive")


def parse_archive(text: str) -> tuple[dict[str, Any], list[WorkspaceItem]]:
    """Parse archive JSON text into its metadata and top-level items.

    A document without an ``items`` list holds no items.  Entries lacking
    an ``id`` or ``object`` are ignored.
    """
    doc = _load_json(text, "archive")
    if not isinstance(doc, dict):
        raise LifelineManifestError("Archive is not a JSON object")
    raw_items = doc.get("items")
    items = [
        WorkspaceItem.from_archive(raw)
        for raw in (raw_items if isinstance(raw_items, list) else [])
        if isinstance(raw, dict) and raw.get("id") and raw.get("object")
    ]
    return doc.get("metadata") or {}, items


def unpack_archive(data: bytes) -> tuple[dict[str, Any], list[WorkspaceItem]]:
    """Inverse of :func:`pack_archive`.

    Raises
    ------
    LifelineManifestError
        If *data* is not a gzip-compressed JSON object.
    """
    return parse_archive(decompress_archive(data))


def pack_manifest(manifest: Manifest) -> bytes:
    return _gzip_json({item_id: entry.to_dict() for item_id, entry in manifest.items()})


def unpack_manifest(data: bytes) -> Manifest:
    """Inverse of :func:`pack_manifest`.

    Raises
    ------
    LifelineManifestError
        If *data* is unreadable or an entry is malformed.
    """
    doc = _load_json(_gunzip(data, "manifest"), "manifest")
    if not isinstance(doc, dict):
        raise LifelineManifestError("Manifest is not a JSON object")
    try:
        return {item_id: ManifestEntry.from_dict(entry) for item_id, entry in doc.items()}
    except (KeyError, TypeError, ValueError) as exc:
        raise LifelineManifestError(f"Malformed manifest entry: {exc}", cause=exc) from exc


@dataclass
class PackagedSnapshot:
    """Compressed archive and manifest ready for replication."""

    archive: bytes
    manifest: bytes
    content_sha256: str
    item_count: int

    @property
    def size_bytes(self) -> int:
        return len(self.archive)


def package(
    items: list[WorkspaceItem],
    manifest: Manifest,
    user_id: str,
    timestamp: str,
) -> PackagedSnapshot:
    """Compress a walk result and fingerprint the archive."""
    metadata = {
        "userId": user_id,
        "snapshotTimestamp": timestamp,
        "source": ARCHIVE_SOURCE,
        "itemCount": len(manifest),
        "topLevelCount": len(items),
    }
    archive = pack_archive(items, metadata)
    return PackagedSnapshot(
        archive=archive,
        manifest=pack_manifest(manifest),
        content_sha256=sha256_hex(archive),
        item_count=len(manifest),
    )
