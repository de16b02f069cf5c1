"""Conversion of captured blocks into create-API block objects."""

from __future__ import annotations

from typing import Any

from lifeline.models import WorkspaceItem

#: Block types whose children must be nested in a shape this module does
#: not build.  Their children are not restored.
UNNESTED_BLOCK_TYPES = frozenset({"synced_block", "column_list", "column"})

#: Block types the create API rejects.
UNCREATABLE_BLOCK_TYPES = frozenset({"unsupported", "child_page", "child_database"})


def transform_block(block: WorkspaceItem) -> dict[str, Any] | None:
    block_type = block.block_type or block.payload.get("type")
    if not block_type or block_type in UNCREATABLE_BLOCK_TYPES:
        return None
    body = dict(block.payload.get(block_type) or {})
    if block.children and block_type not in UNNESTED_BLOCK_TYPES:
        nested = transform_blocks(block.children)
        if nested:
            body["children"] = nested
    return {"object": "block", "type": block_type, block_type: body}


def transform_blocks(blocks: list[WorkspaceItem]) -> list[dict[str, Any]]:
    """Convert captured blocks, nesting children inside each type payload."""
    return [b for b in (transform_block(block) for block in blocks) if b is not None]
