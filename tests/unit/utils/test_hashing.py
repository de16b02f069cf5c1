"""Tests for lifeline.utils.hashing.

Covers content_hash, strip_volatile, canonical_json and sha256_hex.
"""

from __future__ import annotations

import hashlib

from lifeline.utils import EMPTY_HASH, canonical_json, content_hash, sha256_hex, strip_volatile


class TestCanonicalJson:
    def test_sorted_compact(self):
        assert canonical_json({"b": [1, 2], "a": {"d": 1, "c": 2}}) == '{"a":{"c":2,"d":1},"b":[1,2]}'

    def test_unicode_kept(self):
        assert canonical_json({"t": "café"}) == '{"t":"café"}'


class TestStripVolatile:
    def test_removes_audit_fields(self):
        payload = {
            "id": "1",
            "created_time": "a",
            "last_edited_time": "b",
            "created_by": {"id": "u"},
            "last_edited_by": {"id": "u"},
        }
        assert strip_volatile(payload) == {"id": "1"}

    def test_does_not_mutate_input(self):
        payload = {"id": "1", "last_edited_time": "x"}
        strip_volatile(payload)
        assert "last_edited_time" in payload

    def test_row_parent_dropped_only_for_enclosing_database(self):
        row = {"id": "r", "parent": {"type": "database_id", "database_id": "db-1"}}
        assert "parent" not in strip_volatile(row, "db-1")
        assert "parent" in strip_volatile(row, "db-2")
        assert "parent" in strip_volatile(row)

    def test_none_is_empty(self):
        assert strip_volatile(None) == {}


class TestContentHash:
    def test_is_64_hex_chars(self):
        h = content_hash({"id": "x"})
        assert len(h) == 64
        assert all(c in "0123456789abcdef" for c in h)

    def test_ignores_edit_timestamps(self):
        a = {"id": "1", "paragraph": {"rich_text": []}, "last_edited_time": "2024-01-01"}
        b = {"id": "1", "paragraph": {"rich_text": []}, "last_edited_time": "2025-06-30"}
        assert content_hash(a) == content_hash(b)

    def test_key_order_irrelevant(self):
        assert content_hash({"a": 1, "b": 2}) == content_hash({"b": 2, "a": 1})

    def test_content_change_changes_hash(self):
        assert content_hash({"id": "1", "x": "Hello"}) != content_hash({"id": "1", "x": "Hello!"})

    def test_empty_and_none_equal(self):
        assert content_hash({}) == content_hash(None) == EMPTY_HASH
        assert EMPTY_HASH == hashlib.sha256(b"{}").hexdigest()

    def test_row_moved_between_databases_hashes_same(self):
        row_a = {"id": "r", "parent": {"type": "database_id", "database_id": "db-a"}}
        row_b = {"id": "r", "parent": {"type": "database_id", "database_id": "db-b"}}
        assert content_hash(row_a, "db-a") == content_hash(row_b, "db-b")


class TestSha256Hex:
    def test_matches_hashlib(self):
        assert sha256_hex(b"lifeline") == hashlib.sha256(b"lifeline").hexdigest()
