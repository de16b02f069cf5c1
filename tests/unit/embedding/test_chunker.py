"""Tests for lifeline.embedding.chunker.

Token windows are checked with the one-token-per-character tokenizer from
the shared fixtures, so lengths below are character counts.
"""

from __future__ import annotations

import math

import pytest

from lifeline.embedding import chunk_text, chunk_tokens, truncate_text


class TestChunkTokens:
    def test_empty(self):
        assert chunk_tokens([]) == []

    def test_short_input_single_window(self):
        assert chunk_tokens(list(range(10)), max_tokens=500, overlap=50) == [list(range(10))]

    def test_exactly_max_is_one_window(self):
        assert len(chunk_tokens(list(range(500)))) == 1

    def test_1200_tokens_makes_three_windows(self):
        windows = chunk_tokens(list(range(1200)), max_tokens=500, overlap=50)
        assert [len(w) for w in windows] == [500, 500, 300]
        assert [w[0] for w in windows] == [0, 450, 900]

    def test_consecutive_windows_share_overlap(self):
        windows = chunk_tokens(list(range(1000)), max_tokens=100, overlap=10)
        for prev, nxt in zip(windows, windows[1:]):
            assert prev[-10:] == nxt[:10]

    @pytest.mark.parametrize("total", [501, 950, 951, 2000])
    def test_window_count_formula(self, total):
        windows = chunk_tokens(list(range(total)), max_tokens=500, overlap=50)
        assert len(windows) == math.ceil((total - 50) / 450)

    def test_covers_every_token(self):
        tokens = list(range(777))
        windows = chunk_tokens(tokens, max_tokens=100, overlap=20)
        assert sorted({t for w in windows for t in w}) == tokens

    @pytest.mark.parametrize(("max_tokens", "overlap"), [(0, 0), (10, 10), (10, -1)])
    def test_invalid_parameters(self, max_tokens, overlap):
        with pytest.raises(ValueError):
            chunk_tokens([1, 2, 3], max_tokens=max_tokens, overlap=overlap)


class TestChunkText:
    def test_blank_text_yields_nothing(self, tokenizer):
        assert chunk_text("", tokenizer) == []
        assert chunk_text("   \n", tokenizer) == []

    def test_decodes_windows(self, tokenizer):
        assert chunk_text("abcdefghij", tokenizer, max_tokens=4, overlap=1) == ["abcd", "defg", "ghij"]


class TestTruncateText:
    def test_short_text_unchanged(self, tokenizer):
        assert truncate_text("hello", tokenizer, max_tokens=10) == "hello"

    def test_long_text_cut(self, tokenizer):
        assert truncate_text("abcdefgh", tokenizer, max_tokens=3) == "abc"
