"""Snapshot restore: payload transformation, progress and the restore engine."""

from __future__ import annotations

from .blocks import transform_block, transform_blocks
from .engine import NOTHING_TO_RESTORE, RestoreEngine
from .progress import ProgressReporter, restoring_percentage
from .properties import (
    SKIPPED_PAGE_PROPERTY_TYPES,
    SKIPPED_SCHEMA_PROPERTY_TYPES,
    transform_database_schema,
    transform_page_properties,
)

__all__ = [
    "NOTHING_TO_RESTORE",
    "SKIPPED_PAGE_PROPERTY_TYPES",
    "SKIPPED_SCHEMA_PROPERTY_TYPES",
    "ProgressReporter",
    "RestoreEngine",
    "restoring_percentage",
    "transform_block",
    "transform_blocks",
    "transform_database_schema",
    "transform_page_properties",
]
