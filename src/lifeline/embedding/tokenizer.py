"""Tokenizers used to size embedding chunks.

The default is OpenAI's ``cl100k_base`` encoding via :mod:`tiktoken`, the
encoding used by the embedding models.  The encoding is loaded on first
use because tiktoken fetches and caches its BPE table lazily.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import tiktoken

DEFAULT_ENCODING = "cl100k_base"


@runtime_checkable
class Tokenizer(Protocol):
    """Anything that can turn text into token ids and back."""

    def encode(self, text: str) -> list[int]: ...

    def decode(self, tokens: list[int]) -> str: ...


class TiktokenTokenizer:
    """:class:`Tokenizer` backed by a tiktoken encoding."""

    def __init__(self, encoding_name: str = DEFAULT_ENCODING) -> None:
        self.encoding_name = encoding_name
        self._encoding: tiktoken.Encoding | None = None

    @property
    def encoding(self) -> tiktoken.Encoding:
        if self._encoding is None:
            self._encoding = tiktoken.get_encoding(self.encoding_name)
        return self._encoding

    def encode(self, text: str) -> list[int]:
        return self.encoding.encode(text, disallowed_special=())

    def decode(self, tokens: list[int]) -> str:
        return self.encoding.decode(tokens)
