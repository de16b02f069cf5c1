"""Text chunking, embedding and vector storage."""

from __future__ import annotations

from .chunker import CHUNK_OVERLAP_TOKENS, MAX_CHUNK_TOKENS, chunk_text, chunk_tokens, truncate_text
from .embedder import Embedder, EmbeddingProvider, OpenAIEmbeddingProvider
from .tokenizer import TiktokenTokenizer, Tokenizer
from .vector_index import ChromaVectorIndex, InMemoryVectorIndex, VectorIndex, build_vector_index

__all__ = [
    "CHUNK_OVERLAP_TOKENS",
    "MAX_CHUNK_TOKENS",
    "ChromaVectorIndex",
    "Embedder",
    "EmbeddingProvider",
    "InMemoryVectorIndex",
    "OpenAIEmbeddingProvider",
    "TiktokenTokenizer",
    "Tokenizer",
    "VectorIndex",
    "build_vector_index",
    "chunk_text",
    "chunk_tokens",
    "truncate_text",
]
