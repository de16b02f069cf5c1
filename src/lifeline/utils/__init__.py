from .chunk import chunk_children
from .hashing import EMPTY_HASH, canonical_json, content_hash, sha256_hex, strip_volatile
from .text import block_text, database_description, database_title, page_title, rich_text_plain

__all__ = [
    "EMPTY_HASH",
    "block_text",
    "canonical_json",
    "chunk_children",
    "content_hash",
    "database_description",
    "database_title",
    "page_title",
    "rich_text_plain",
    "sha256_hex",
    "strip_volatile",
]
