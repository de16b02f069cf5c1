"""Token-bounded, overlapping text chunking.

A text of ``T`` tokens is cut into windows of at most ``max_tokens``
tokens.  Each window starts ``max_tokens - overlap`` tokens after the
previous one, so consecutive windows share exactly ``overlap`` tokens and
the number of windows is ``ceil((T - overlap) / (max_tokens - overlap))``
(one window when ``T <= max_tokens``).
"""

from __future__ import annotations

from lifeline.embedding.tokenizer import Tokenizer

MAX_CHUNK_TOKENS = 500
CHUNK_OVERLAP_TOKENS = 50


def chunk_tokens(
    tokens: list[int],
    max_tokens: int = MAX_CHUNK_TOKENS,
    overlap: int = CHUNK_OVERLAP_TOKENS,
) -> list[list[int]]:
    """Split a token sequence into overlapping windows.

    Parameters
    ----------
    tokens:
        Token ids to split.
    max_tokens:
        Window size.
    overlap:
        Tokens shared by consecutive windows.  Must be smaller than
        *max_tokens*.

    Returns
    -------
    list[list[int]]
        The windows in order.  Empty input yields no windows.
    """
    if max_tokens < 1:
        raise ValueError(f"max_tokens must be >= 1, got {max_tokens}")
    if not 0 <= overlap < max_tokens:
        raise ValueError(f"overlap must be >= 0 and < max_tokens, got {overlap}")
    if not tokens:
        return []

    step = max_tokens - overlap
    windows: list[list[int]] = []
    start = 0
    while True:
        windows.append(tokens[start : start + max_tokens])
        if start + max_tokens >= len(tokens):
            break
        start += step
    return windows


def chunk_text(
    text: str,
    tokenizer: Tokenizer,
    max_tokens: int = MAX_CHUNK_TOKENS,
    overlap: int = CHUNK_OVERLAP_TOKENS,
) -> list[str]:
    """Tokenize *text*, window it with :func:`chunk_tokens` and decode each window."""
    if not text or not text.strip():
        return []
    windows = chunk_tokens(tokenizer.encode(text), max_tokens, overlap)
    return [tokenizer.decode(w) for w in windows]


def truncate_text(text: str, tokenizer: Tokenizer, max_tokens: int = MAX_CHUNK_TOKENS) -> str:
    """Return *text* cut to its first *max_tokens* tokens."""
    tokens = tokenizer.encode(text)
    if len(tokens) <= max_tokens:
        return text
    return tokenizer.decode(tokens[:max_tokens])
