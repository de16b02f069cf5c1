"""SHA-256 content addressing for workspace objects.

:func:`content_hash` is the pipeline's change detector: two objects with
the same structural content hash identically no matter when they were last
read or edited.  It strips the audit fields Notion rewrites on every edit
and, for database rows, the ``parent`` pointer back to the enclosing
database.

:func:`sha256_hex` hashes raw bytes and is used for the integrity digest
attached to every stored archive.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any

VOLATILE_FIELDS: frozenset[str] = frozenset({
    "created_time",
    "last_edited_time",
    "created_by",
    "last_edited_by",
})
"""Top-level keys removed before hashing."""


def sha256_hex(data: bytes) -> str:
    """Return the hex-encoded SHA-256 digest of *data*."""
    return hashlib.sha256(data).hexdigest()


def canonical_json(obj: Any) -> str:
    """Serialise *obj* with sorted keys and no insignificant whitespace.

    Examples
    --------
    >>> canonical_json({"b": 2, "a": 1})
    '{"a":1,"b":2}'
    """
    return json.dumps(obj, sort_keys=True, ensure_ascii=False, separators=(",", ":"), default=str)


def strip_volatile(
    payload: dict[str, Any] | None,
    enclosing_database_id: str | None = None,
) -> dict[str, Any]:
    """Return a shallow copy of *payload* without volatile fields.

    Parameters
    ----------
    payload:
        A raw Notion object.  ``None`` is treated as ``{}``.
    enclosing_database_id:
        When the object is a database row, the id of that database.  The
        row's ``parent`` is dropped if it points at this id.
    """
    if not payload:
        return {}
    stripped = {k: v for k, v in payload.items() if k not in VOLATILE_FIELDS}
    if enclosing_database_id is not None:
        parent = stripped.get("parent")
        if isinstance(parent, dict) and parent.get("database_id") == enclosing_database_id:
            del stripped["parent"]
    return stripped


def content_hash(
    payload: dict[str, Any] | None,
    enclosing_database_id: str | None = None,
) -> str:
    """Return the content hash of a workspace object.

    Never raises for an empty or absent payload: both hash to the digest of
    the canonical empty object ``{}``.

    Parameters
    ----------
    payload:
        A raw Notion object (without recursive content keys).
    enclosing_database_id:
        See :func:`strip_volatile`.

    Returns
    -------
    str
        A 64-character lowercase hexadecimal string.

    Examples
    --------
    >>> a = {"id": "1", "last_edited_time": "2024-01-01"}
    >>> b = {"id": "1", "last_edited_time": "2025-06-30"}
    >>> content_hash(a) == content_hash(b)
    True
    """
    stripped = strip_volatile(payload, enclosing_database_id)
    return sha256_hex(canonical_json(stripped).encode("utf-8"))


EMPTY_HASH: str = content_hash(None)
