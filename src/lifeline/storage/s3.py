"""S3 and Cloudflare R2 object stores via boto3.

boto3 clients are synchronous, so every call runs in a worker thread via
:func:`asyncio.to_thread`.  R2 is S3-compatible and differs only in
needing an explicit endpoint and the ``auto`` region.
"""

from __future__ import annotations

import asyncio
from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from lifeline.errors import LifelineArchiveNotFoundError, LifelineStorageError

_NOT_FOUND_CODES = frozenset({"404", "NoSuchKey", "NotFound"})


def _is_not_found(exc: ClientError) -> bool:
    error = exc.response.get("Error", {})
    status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    return str(error.get("Code")) in _NOT_FOUND_CODES or status == 404


class S3ObjectStore:
    """:class:`~lifeline.storage.base.ObjectStore` backed by an S3-compatible bucket.

    Parameters
    ----------
    bucket:
        Bucket name.
    region:
        Bucket region (``"auto"`` for R2).
    endpoint:
        Custom endpoint URL (required for R2 and other S3-compatible services).
    access_key_id / secret_access_key:
        Explicit credentials.  boto3's default chain is used when empty.
    force_path_style:
        Use path-style addressing (``endpoint/bucket/key``).
    name:
        Label used in replication results and audit findings.
    client:
        Pre-built boto3 S3 client.
    """

    def __init__(
        self,
        bucket: str,
        region: str | None = None,
        endpoint: str | None = None,
        access_key_id: str = "",
        secret_access_key: str = "",
        force_path_style: bool = False,
        name: str | None = None,
        client: Any | None = None,
    ) -> None:
        self.bucket = bucket
        self.name = name or f"S3-{bucket}"
        if client is None:
            kwargs: dict[str, Any] = {"region_name": region, "endpoint_url": endpoint}
            if access_key_id and secret_access_key:
                kwargs["aws_access_key_id"] = access_key_id
                kwargs["aws_secret_access_key"] = secret_access_key
            if force_path_style:
                kwargs["config"] = Config(s3={"addressing_style": "path"})
            client = boto3.client("s3", **kwargs)
        self._client = client

    def __repr__(self) -> str:
        return f"S3ObjectStore(name={self.name!r}, bucket={self.bucket!r})"

    async def write(self, path: str, data: bytes, metadata: dict[str, str] | None = None) -> None:
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self.bucket,
                Key=path,
                Body=data,
                ContentType="application/gzip",
                Metadata={k: str(v) for k, v in (metadata or {}).items()},
            )
        except (ClientError, BotoCoreError) as exc:
            raise LifelineStorageError(
                f"Write to {self.name} failed for {path}: {exc}",
                context={"path": path, "destination": self.name},
                cause=exc,
            ) from exc

    async def read(self, path: str) -> bytes:
        try:
            response = await asyncio.to_thread(self._client.get_object, Bucket=self.bucket, Key=path)
            return await asyncio.to_thread(response["Body"].read)
        except ClientError as exc:
            if _is_not_found(exc):
                raise LifelineArchiveNotFoundError(
                    f"No object at {path} in {self.name}",
                    context={"path": path, "destination": self.name},
                    cause=exc,
                ) from exc
            raise LifelineStorageError(
                f"Read from {self.name} failed for {path}: {exc}",
                context={"path": path, "destination": self.name},
                cause=exc,
            ) from exc

    async def exists(self, path: str) -> bool:
        return await self.get_metadata(path) is not None

    async def list(self, prefix: str) -> list[str]:
        def _list() -> list[str]:
            paginator = self._client.get_paginator("list_objects_v2")
            keys: list[str] = []
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                keys.extend(obj["Key"] for obj in page.get("Contents", []))
            return keys

        try:
            return await asyncio.to_thread(_list)
        except (ClientError, BotoCoreError) as exc:
            raise LifelineStorageError(
                f"Listing {prefix} in {self.name} failed: {exc}",
                context={"path": prefix, "destination": self.name},
                cause=exc,
            ) from exc

    async def get_metadata(self, path: str) -> dict[str, Any] | None:
        try:
            head = await asyncio.to_thread(self._client.head_object, Bucket=self.bucket, Key=path)
        except ClientError as exc:
            if _is_not_found(exc):
                return None
            raise LifelineStorageError(
                f"Metadata lookup in {self.name} failed for {path}: {exc}",
                context={"path": path, "destination": self.name},
                cause=exc,
            ) from exc
        metadata: dict[str, Any] = dict(head.get("Metadata") or {})
        metadata["size"] = int(head.get("ContentLength", 0))
        return metadata
