"""Collaborators shared by every job worker.

A :class:`JobContext` is assembled once per process by the deployment and
handed to each worker.  Per-job state (request queue, transport) is never
kept here; :meth:`JobContext.notion_api` builds a fresh one on every call.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from lifeline.config import LifelineConfig
from lifeline.notion_api import AsyncNotionTransport, NotionAPI, RequestQueue
from lifeline.storage import Destination, ObjectStore, build_primary, build_store

if TYPE_CHECKING:
    from lifeline.diff.summary import TextGenerator
    from lifeline.embedding import Embedder, VectorIndex
    from lifeline.models import StorageDestinationConfig
    from lifeline.store import CredentialStore, DocumentStore, ProgressSink


@dataclass
class JobContext:
    """Everything a worker needs besides its payload.

    Attributes
    ----------
    config:
        Shared configuration.
    documents / credentials / progress:
        Collaborator stores, often one :class:`~lifeline.store.MemoryStore`.
    primary:
        Primary storage destination.  Built from *config* on first use.
    embedder / vector_index:
        Semantic diff support.  Both ``None`` disables embeddings.
    text_generator:
        Produces diff summaries.  ``None`` stores a placeholder summary.
    api_factory:
        Builds a :class:`NotionAPI` from an access token.  Tests replace it.
    store_factory:
        Builds secondary stores from destination configs.
    """

    config: LifelineConfig
    documents: DocumentStore
    credentials: CredentialStore
    progress: ProgressSink
    primary: Destination | None = None
    embedder: Embedder | None = None
    vector_index: VectorIndex | None = None
    text_generator: TextGenerator | None = None
    api_factory: Callable[[str], NotionAPI] | None = None
    store_factory: Callable[[StorageDestinationConfig], ObjectStore] = field(default=build_store)

    def primary_destination(self) -> Destination:
        if self.primary is None:
            self.primary = build_primary(self.config)
        return self.primary

    def notion_api(self, token: str) -> NotionAPI:
        """Build an API bundle with its own request queue."""
        if self.api_factory is not None:
            return self.api_factory(token)
        queue = RequestQueue.from_config(self.config)
        return NotionAPI(AsyncNotionTransport(self.config, token, queue=queue))

    @classmethod
    def from_config(
        cls,
        config: LifelineConfig,
        documents: DocumentStore,
        credentials: CredentialStore,
        progress: ProgressSink,
    ) -> JobContext:
        """Wire the OpenAI, chromadb and storage integrations from *config*."""
        from lifeline.diff.summary import OpenAITextGenerator
        from lifeline.embedding import Embedder, build_vector_index

        generator = None
        if config.openai_api_key:
            generator = OpenAITextGenerator(api_key=config.openai_api_key, model=config.summary_model)
        return cls(
            config=config,
            documents=documents,
            credentials=credentials,
            progress=progress,
            embedder=Embedder.from_config(config),
            vector_index=build_vector_index(config),
            text_generator=generator,
        )
