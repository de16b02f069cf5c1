"""Pipeline configuration for lifeline.

:class:`LifelineConfig` is a plain dataclass that captures every tuneable
knob used by the snapshot, diff, restore and audit jobs.  One instance is
built per job (usually via :meth:`LifelineConfig.from_env`) and handed to
every component the job constructs.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass
from typing import Any

# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_SUMMARY_MODEL = "gpt-4o-mini"

_SECRET_FIELDS = frozenset({"openai_api_key", "primary_secret_access_key"})


# ---------------------------------------------------------------------------
# Configuration dataclass
# ---------------------------------------------------------------------------

@dataclass
class LifelineConfig:
    """Complete configuration for a lifeline job.

    Every parameter has a default so that a bare ``LifelineConfig()`` is
    usable in tests.  Secrets are masked in :meth:`__repr__`.

    Parameters
    ----------
    notion_version:
        Value of the ``Notion-Version`` header sent with every request.
    base_url:
        API root URL.  Override for proxy or testing environments.
    retry_max_attempts:
        Maximum number of attempts per Notion request for retryable errors.
    retry_base_delay:
        Base delay (seconds) for exponential backoff.
    retry_max_delay:
        Upper cap (seconds) on computed backoff delay.
    retry_jitter:
        Add random jitter to backoff intervals.
    rate_limit_rps:
        Sustained Notion requests per second for one job.  The platform
        publishes an average limit of 3.
    max_in_flight:
        Maximum concurrent Notion requests for one job.
    timeout_seconds:
        HTTP request timeout in seconds.
    http_proxy:
        Optional HTTP/HTTPS proxy URL.
    openai_api_key:
        Key for the embedding and summary providers.  When empty the
        pipeline runs without embeddings and diffs degrade to hash-only.
    embedding_model:
        Embedding model name.
    embedding_max_concurrent:
        Maximum parallel embedding calls per job.
    embedding_retry_attempts:
        Attempts per embedding call before the chunk is dropped.
    embedding_retry_base_delay:
        Base delay (seconds) for the embedding retry backoff.
    chunk_max_tokens:
        Token window size for long-text chunking.
    chunk_overlap_tokens:
        Tokens shared by consecutive chunks.
    similarity_threshold:
        Cosine similarity at or above which a hash change is considered
        cosmetic.
    summary_model:
        Chat model used for natural-language diff summaries.
    summary_top_n:
        Number of changed items included in the summary prompt.
    vector_db_path:
        Directory for the persistent Chroma collection.  ``None`` disables
        embeddings, leaving diffs to compare hashes only.
    default_restore_parent_page_id:
        Fallback Notion page that restores are created under when the job
        does not name a target parent.
    primary_bucket:
        Bucket holding the primary copy of every snapshot.
    primary_region:
        Region of the primary bucket.
    primary_endpoint:
        Custom endpoint for an S3-compatible primary store.
    primary_access_key_id / primary_secret_access_key:
        Explicit primary store credentials.  When empty, boto3's default
        credential chain is used.
    local_storage_dir:
        When set, the primary store is a local directory instead of a
        bucket.  Used for development and tests.
    metrics:
        A :class:`~lifeline.observability.MetricsHook` implementation.
    """

    # -- Notion --------------------------------------------------------------
    notion_version: str = "2022-06-28"

    base_url: str = "https://api.notion.com/v1"

    # -- Retry & rate --------------------------------------------------------
    retry_max_attempts: int = 5

    retry_base_delay: float = 1.0

    retry_max_delay: float = 60.0

    retry_jitter: bool = True

    rate_limit_rps: float = 3.0

    max_in_flight: int = 3

    # -- HTTP ----------------------------------------------------------------
    timeout_seconds: float = 30.0

    http_proxy: str | None = None

    # -- Embeddings ----------------------------------------------------------
    openai_api_key: str = ""

    embedding_model: str = DEFAULT_EMBEDDING_MODEL

    embedding_max_concurrent: int = 4

    embedding_retry_attempts: int = 3

    embedding_retry_base_delay: float = 1.0

    chunk_max_tokens: int = 500

    chunk_overlap_tokens: int = 50

    # -- Diff ----------------------------------------------------------------
    similarity_threshold: float = 0.95

    summary_model: str = DEFAULT_SUMMARY_MODEL

    summary_top_n: int = 10

    vector_db_path: str | None = None

    # -- Restore -------------------------------------------------------------
    default_restore_parent_page_id: str | None = None

    # -- Primary storage -----------------------------------------------------
    primary_bucket: str = ""

    primary_region: str = "us-east-1"

    primary_endpoint: str | None = None

    primary_access_key_id: str = ""

    primary_secret_access_key: str = ""

    local_storage_dir: str | None = None

    # -- Observability -------------------------------------------------------
    metrics: Any | None = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        from urllib.parse import urlparse

        parsed = urlparse(self.base_url)
        if parsed.scheme == "http" and parsed.hostname not in (
            "localhost",
            "127.0.0.1",
            "::1",
        ):
            raise ValueError(
                f"base_url uses insecure HTTP for non-local host '{parsed.hostname}'. "
                "Use HTTPS to protect access tokens, or target localhost for testing."
            )

        if self.retry_max_attempts < 1:
            raise ValueError(f"retry_max_attempts must be >= 1, got {self.retry_max_attempts}")
        if self.retry_base_delay < 0:
            raise ValueError(f"retry_base_delay must be >= 0, got {self.retry_base_delay}")
        if self.retry_max_delay < 0:
            raise ValueError(f"retry_max_delay must be >= 0, got {self.retry_max_delay}")
        if self.rate_limit_rps <= 0:
            raise ValueError(f"rate_limit_rps must be > 0, got {self.rate_limit_rps}")
        if self.max_in_flight < 1:
            raise ValueError(f"max_in_flight must be >= 1, got {self.max_in_flight}")
        if self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be > 0, got {self.timeout_seconds}")
        if self.embedding_max_concurrent < 1:
            raise ValueError(
                f"embedding_max_concurrent must be >= 1, got {self.embedding_max_concurrent}"
            )
        if self.embedding_retry_attempts < 1:
            raise ValueError(
                f"embedding_retry_attempts must be >= 1, got {self.embedding_retry_attempts}"
            )
        if self.chunk_max_tokens < 1:
            raise ValueError(f"chunk_max_tokens must be >= 1, got {self.chunk_max_tokens}")
        if not 0 <= self.chunk_overlap_tokens < self.chunk_max_tokens:
            raise ValueError(
                "chunk_overlap_tokens must be >= 0 and < chunk_max_tokens, "
                f"got {self.chunk_overlap_tokens}"
            )
        if not 0.0 <= self.similarity_threshold <= 1.0:
            raise ValueError(
                f"similarity_threshold must be within [0, 1], got {self.similarity_threshold}"
            )
        if self.summary_top_n < 0:
            raise ValueError(f"summary_top_n must be >= 0, got {self.summary_top_n}")

    @property
    def embeddings_enabled(self) -> bool:
        """Whether snapshots embed content.

        Requires both a provider key and ``vector_db_path``.
        """
        return bool(self.openai_api_key and self.vector_db_path)

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None, **overrides: Any) -> LifelineConfig:
        """Build a config from ``LIFELINE_*`` and ``OPENAI_*`` variables.

        Parameters
        ----------
        environ:
            Mapping to read from.  Defaults to :data:`os.environ`.
        overrides:
            Explicit values that win over the environment.
        """
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        def _set(name: str, key: str, convert: Any = str) -> None:
            raw = env.get(key)
            if raw is not None and raw != "":
                values[name] = convert(raw)

        _set("notion_version", "LIFELINE_NOTION_VERSION")
        _set("base_url", "LIFELINE_NOTION_BASE_URL")
        _set("retry_max_attempts", "LIFELINE_RETRY_MAX_ATTEMPTS", int)
        _set("rate_limit_rps", "LIFELINE_RATE_LIMIT_RPS", float)
        _set("max_in_flight", "LIFELINE_MAX_IN_FLIGHT", int)
        _set("timeout_seconds", "LIFELINE_TIMEOUT_SECONDS", float)
        _set("http_proxy", "LIFELINE_HTTP_PROXY")
        _set("openai_api_key", "OPENAI_API_KEY")
        _set("embedding_model", "LIFELINE_EMBEDDING_MODEL")
        _set("summary_model", "LIFELINE_SUMMARY_MODEL")
        _set("similarity_threshold", "LIFELINE_SIMILARITY_THRESHOLD", float)
        _set("vector_db_path", "LIFELINE_VECTOR_DB_PATH")
        _set("default_restore_parent_page_id", "LIFELINE_DEFAULT_RESTORE_PARENT_PAGE_ID")
        _set("primary_bucket", "LIFELINE_PRIMARY_BUCKET")
        _set("primary_region", "LIFELINE_PRIMARY_REGION")
        _set("primary_endpoint", "LIFELINE_PRIMARY_ENDPOINT")
        _set("primary_access_key_id", "LIFELINE_PRIMARY_ACCESS_KEY_ID")
        _set("primary_secret_access_key", "LIFELINE_PRIMARY_SECRET_ACCESS_KEY")
        _set("local_storage_dir", "LIFELINE_LOCAL_STORAGE_DIR")

        values.update(overrides)
        return cls(**values)

    def __repr__(self) -> str:
        """Mask secrets to prevent accidental credential leakage."""
        parts: list[str] = []
        for f in dataclasses.fields(self):
            val = getattr(self, f.name)
            if f.name in _SECRET_FIELDS:
                masked = f"...{val[-4:]}" if len(val) >= 8 else "****"
                parts.append(f"{f.name}='{masked}'")
            else:
                parts.append(f"{f.name}={val!r}")
        return f"LifelineConfig({', '.join(parts)})"
