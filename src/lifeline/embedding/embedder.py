"""Embedding of item text for semantic diffing.

:class:`Embedder` turns the text of one workspace item into
:class:`~lifeline.models.EmbeddingRecord` objects:

* Block text goes through :func:`~lifeline.embedding.chunker.chunk_text`
  and is embedded chunk by chunk.
* Titles and database descriptions are short, so they are embedded as a
  single unit truncated to the chunk size.

Every provider call is wrapped in :func:`~lifeline.notion_api.retries.with_retry`.
A chunk that still fails is logged and dropped; the item keeps whatever
coverage the other chunks achieved.
"""

from __future__ import annotations

import asyncio
from typing import Protocol, runtime_checkable

from openai import AsyncOpenAI

from lifeline.config import DEFAULT_EMBEDDING_MODEL, LifelineConfig
from lifeline.embedding.chunker import chunk_text, truncate_text
from lifeline.embedding.tokenizer import TiktokenTokenizer, Tokenizer
from lifeline.models import EmbeddingKind, EmbeddingRecord
from lifeline.notion_api.retries import with_retry
from lifeline.observability import get_logger, resolve_metrics

log = get_logger("lifeline.embedding")


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Turns one string into one fixed-dimension vector."""

    async def embed(self, text: str) -> list[float]: ...


class OpenAIEmbeddingProvider:
    """:class:`EmbeddingProvider` backed by the OpenAI embeddings endpoint.

    Parameters
    ----------
    client:
        An ``AsyncOpenAI`` client.  Built from *api_key* when omitted.
    api_key:
        OpenAI API key, used only when *client* is not given.
    model:
        Embedding model name.
    """

    def __init__(
        self,
        client: AsyncOpenAI | None = None,
        api_key: str | None = None,
        model: str = DEFAULT_EMBEDDING_MODEL,
    ) -> None:
        self._client = client or AsyncOpenAI(api_key=api_key)
        self.model = model

    async def embed(self, text: str) -> list[float]:
        response = await self._client.embeddings.create(model=self.model, input=text)
        return list(response.data[0].embedding)


class Embedder:
    """Chunk, embed and label item text.

    Parameters
    ----------
    provider:
        The embedding backend.
    config:
        Supplies chunk sizes, retry policy and the concurrency cap.
    tokenizer:
        Defaults to :class:`TiktokenTokenizer`.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        config: LifelineConfig | None = None,
        tokenizer: Tokenizer | None = None,
    ) -> None:
        self._provider = provider
        self._config = config or LifelineConfig()
        self._tokenizer = tokenizer or TiktokenTokenizer()
        self._metrics = resolve_metrics(self._config.metrics)
        self._slots = asyncio.Semaphore(self._config.embedding_max_concurrent)

    @classmethod
    def from_config(cls, config: LifelineConfig) -> Embedder | None:
        """Build an OpenAI-backed embedder, or ``None`` when no key is configured."""
        if not config.embeddings_enabled:
            return None
        provider = OpenAIEmbeddingProvider(api_key=config.openai_api_key, model=config.embedding_model)
        return cls(provider, config)

    async def embed(self, text: str, item_id: str, snapshot_id: str) -> list[EmbeddingRecord]:
        """Embed long text chunk by chunk.

        Returns
        -------
        list[EmbeddingRecord]
            One record per chunk that embedded successfully, ordered by
            ``chunk_index``.  Every record carries the total number of
            chunks the text was split into, including dropped ones.
        """
        chunks = chunk_text(
            text,
            self._tokenizer,
            self._config.chunk_max_tokens,
            self._config.chunk_overlap_tokens,
        )
        total = len(chunks)
        results = await asyncio.gather(*(
            self._embed_one(chunk, item_id, snapshot_id, EmbeddingKind.CHUNK, i, total)
            for i, chunk in enumerate(chunks)
        ))
        return [r for r in results if r is not None]

    async def embed_single(
        self,
        text: str,
        item_id: str,
        snapshot_id: str,
        kind: EmbeddingKind = EmbeddingKind.TITLE,
    ) -> EmbeddingRecord | None:
        """Embed a title or description as one truncated unit.

        Returns ``None`` for blank text or when the call fails after retries.
        """
        if not text or not text.strip():
            return None
        unit = truncate_text(text, self._tokenizer, self._config.chunk_max_tokens)
        return await self._embed_one(unit, item_id, snapshot_id, kind, 0, 1)

    async def _embed_one(
        self,
        text: str,
        item_id: str,
        snapshot_id: str,
        kind: EmbeddingKind,
        index: int,
        total: int,
    ) -> EmbeddingRecord | None:
        async with self._slots:
            try:
                vector = await with_retry(
                    lambda: self._provider.embed(text),
                    max_attempts=self._config.embedding_retry_attempts,
                    base_delay=self._config.embedding_retry_base_delay,
                    op_name="embed",
                )
            except Exception as exc:
                self._metrics.increment("lifeline.embedding_failures_total", tags={"kind": kind.value})
                log.warning(
                    "Embedding dropped after retries",
                    extra={
                        "extra_fields": {
                            "item_id": item_id,
                            "snapshot_id": snapshot_id,
                            "kind": kind.value,
                            "chunk_index": index,
                            "total_chunks": total,
                            "error": str(exc),
                        }
                    },
                )
                return None
        return EmbeddingRecord(
            vector=vector,
            chunk_index=index,
            total_chunks=total,
            item_id=item_id,
            snapshot_id=snapshot_id,
            kind=kind,
            text=text,
        )
