"""Object-store protocol shared by the primary store and every secondary.

Metadata returned by :meth:`ObjectStore.get_metadata` always includes
``size`` (bytes, as an ``int``) alongside whatever user metadata was
written, notably ``content-sha256``.
"""

from __future__ import annotations

from typing import Any, Protocol, runtime_checkable

CONTENT_SHA256_KEY = "content-sha256"


@runtime_checkable
class ObjectStore(Protocol):
    """Minimal async blob store."""

    name: str

    async def write(self, path: str, data: bytes, metadata: dict[str, str] | None = None) -> None: ...

    async def read(self, path: str) -> bytes:
        """Return the object's bytes.

        Raises
        ------
        LifelineArchiveNotFoundError
            If nothing is stored at *path*.
        """
        ...

    async def exists(self, path: str) -> bool: ...

    async def list(self, prefix: str) -> list[str]: ...

    async def get_metadata(self, path: str) -> dict[str, Any] | None:
        """Return the object's metadata, or ``None`` if it does not exist."""
        ...


def metadata_sha256(metadata: dict[str, Any] | None) -> str | None:
    """Pull the content digest out of object metadata.

    Accepts the spellings different stores hand back.
    """
    if not metadata:
        return None
    for key in (CONTENT_SHA256_KEY, "contentSha256", "contentsha256", "x-amz-meta-content-sha256"):
        value = metadata.get(key)
        if value:
            return str(value)
    return None


def metadata_size(metadata: dict[str, Any] | None) -> int | None:
    if not metadata or metadata.get("size") is None:
        return None
    return int(metadata["size"])
