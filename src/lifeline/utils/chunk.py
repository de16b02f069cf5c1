"""Batch a list of Notion block dicts into groups of at most *size* items.

The Notion create-page and append-children endpoints accept at most 100
blocks per request.  The restore engine sends the first batch with the
create call and appends the rest.
"""

from __future__ import annotations

from typing import Any

NOTION_CHILDREN_LIMIT = 100


def chunk_children(
    blocks: list[dict[str, Any]],
    size: int = NOTION_CHILDREN_LIMIT,
) -> list[list[dict[str, Any]]]:
    """Split a list of Notion block dicts into batches of at most ``size``.

    An empty input returns an empty list (not ``[[]]``).

    Raises
    ------
    ValueError
        If *size* is less than 1.
    """
    if size < 1:
        raise ValueError(f"size must be >= 1, got {size}")

    if not blocks:
        return []

    return [blocks[i : i + size] for i in range(0, len(blocks), size)]
