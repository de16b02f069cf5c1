"""Object-storage path convention for snapshots.

The diff, restore and audit jobs locate files by rebuilding these paths,
so the layout must stay stable::

    {userId}/{snapshotId}.json.gz            archive
    {userId}/{snapshotId}.manifest.json.gz   hash manifest
"""

from __future__ import annotations

ARCHIVE_SUFFIX = ".json.gz"
MANIFEST_SUFFIX = ".manifest.json.gz"


def archive_path(user_id: str, snapshot_id: str) -> str:
    return f"{user_id}/{snapshot_id}{ARCHIVE_SUFFIX}"


def manifest_path(user_id: str, snapshot_id: str) -> str:
    return f"{user_id}/{snapshot_id}{MANIFEST_SUFFIX}"


def is_archive_path(path: str) -> bool:
    """True for archive objects, false for manifests and anything else."""
    return path.endswith(ARCHIVE_SUFFIX) and not path.endswith(MANIFEST_SUFFIX)


def snapshot_id_from_path(path: str) -> str:
    """Recover the snapshot id from an archive or manifest path.

    >>> snapshot_id_from_path("u1/snap_2025-01-01T00-00-00-000Z.json.gz")
    'snap_2025-01-01T00-00-00-000Z'
    """
    name = path.rsplit("/", 1)[-1]
    for suffix in (MANIFEST_SUFFIX, ARCHIVE_SUFFIX):
        if name.endswith(suffix):
            return name[: -len(suffix)]
    return name
