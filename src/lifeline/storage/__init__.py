"""Object storage: store implementations, path convention and replication."""

from __future__ import annotations

from .base import CONTENT_SHA256_KEY, ObjectStore, metadata_sha256, metadata_size
from .factory import build_destinations, build_primary, build_store
from .fanout import Destination, ReplicationFanout
from .local import LocalObjectStore
from .paths import archive_path, is_archive_path, manifest_path, snapshot_id_from_path
from .s3 import S3ObjectStore

__all__ = [
    "CONTENT_SHA256_KEY",
    "Destination",
    "LocalObjectStore",
    "ObjectStore",
    "ReplicationFanout",
    "S3ObjectStore",
    "archive_path",
    "build_destinations",
    "build_primary",
    "build_store",
    "is_archive_path",
    "manifest_path",
    "metadata_sha256",
    "metadata_size",
    "snapshot_id_from_path",
]
