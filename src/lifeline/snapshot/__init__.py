"""Workspace capture: walking, packaging and the snapshot job."""

from __future__ import annotations

from .packager import (
    PackagedSnapshot,
    decompress_archive,
    iso_timestamp,
    new_snapshot_id,
    pack_archive,
    pack_manifest,
    parse_archive,
    package,
    unpack_archive,
    unpack_manifest,
)
from .walker import WalkResult, WorkspaceWalker

__all__ = [
    "PackagedSnapshot",
    "WalkResult",
    "WorkspaceWalker",
    "decompress_archive",
    "iso_timestamp",
    "new_snapshot_id",
    "pack_archive",
    "pack_manifest",
    "parse_archive",
    "package",
    "unpack_archive",
    "unpack_manifest",
]
