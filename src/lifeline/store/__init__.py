"""Collaborator interfaces and an in-memory implementation."""

from __future__ import annotations

from .base import CredentialStore, DocumentStore, ProgressSink
from .memory import MemoryStore

__all__ = ["CredentialStore", "DocumentStore", "MemoryStore", "ProgressSink"]
