"""Filesystem-backed object store for development and tests.

Each object is a file under *root*; its metadata is kept in a JSON sidecar
next to it.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

from lifeline.errors import LifelineArchiveNotFoundError, LifelineStorageError

_META_SUFFIX = ".meta.json"


class LocalObjectStore:
    """:class:`~lifeline.storage.base.ObjectStore` rooted at a local directory."""

    def __init__(self, root: str | Path, name: str = "local") -> None:
        self.root = Path(root).resolve()
        self.name = name

    def __repr__(self) -> str:
        return f"LocalObjectStore(name={self.name!r}, root={str(self.root)!r})"

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if not target.is_relative_to(self.root):
            raise LifelineStorageError(
                f"Path {path!r} escapes the store root",
                context={"path": path, "destination": self.name},
            )
        return target

    async def write(self, path: str, data: bytes, metadata: dict[str, str] | None = None) -> None:
        target = self._resolve(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
            meta_file = target.with_name(target.name + _META_SUFFIX)
            meta_file.write_text(json.dumps({k: str(v) for k, v in (metadata or {}).items()}))

        try:
            await asyncio.to_thread(_write)
        except OSError as exc:
            raise LifelineStorageError(
                f"Write to {self.name} failed for {path}: {exc}",
                context={"path": path, "destination": self.name},
                cause=exc,
            ) from exc

    async def read(self, path: str) -> bytes:
        target = self._resolve(path)
        try:
            return await asyncio.to_thread(target.read_bytes)
        except FileNotFoundError as exc:
            raise LifelineArchiveNotFoundError(
                f"No object at {path} in {self.name}",
                context={"path": path, "destination": self.name},
                cause=exc,
            ) from exc

    async def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    async def list(self, prefix: str) -> list[str]:
        def _list() -> list[str]:
            if not self.root.exists():
                return []
            keys = []
            for file in self.root.rglob("*"):
                if not file.is_file() or file.name.endswith(_META_SUFFIX):
                    continue
                key = file.relative_to(self.root).as_posix()
                if key.startswith(prefix):
                    keys.append(key)
            return sorted(keys)

        return await asyncio.to_thread(_list)

    async def get_metadata(self, path: str) -> dict[str, Any] | None:
        target = self._resolve(path)

        def _meta() -> dict[str, Any] | None:
            if not target.is_file():
                return None
            meta_file = target.with_name(target.name + _META_SUFFIX)
            metadata: dict[str, Any] = {}
            if meta_file.is_file():
                metadata = json.loads(meta_file.read_text())
            metadata["size"] = target.stat().st_size
            return metadata

        return await asyncio.to_thread(_meta)
