"""Snapshot comparison: hash diff, semantic classification and summaries."""

from __future__ import annotations

from .engine import DEFAULT_SIMILARITY_THRESHOLD, DiffEngine, compare_manifests, vector_ids_for
from .similarity import average_vectors, cosine_similarity
from .summary import (
    SUMMARY_FAILED,
    SUMMARY_UNAVAILABLE,
    GeneratedText,
    OpenAITextGenerator,
    TextGenerator,
    build_summary_prompt,
    summarize,
)

__all__ = [
    "DEFAULT_SIMILARITY_THRESHOLD",
    "SUMMARY_FAILED",
    "SUMMARY_UNAVAILABLE",
    "DiffEngine",
    "GeneratedText",
    "OpenAITextGenerator",
    "TextGenerator",
    "average_vectors",
    "build_summary_prompt",
    "compare_manifests",
    "cosine_similarity",
    "summarize",
    "vector_ids_for",
]
