"""Tests for archive and manifest packaging."""

from __future__ import annotations

import gzip
import json
from datetime import datetime, timezone

import pytest

from lifeline.errors import LifelineManifestError
from lifeline.models import ItemKind, ManifestEntry, WorkspaceItem
from lifeline.snapshot import (
    decompress_archive,
    iso_timestamp,
    new_snapshot_id,
    pack_archive,
    pack_manifest,
    package,
    parse_archive,
    unpack_archive,
    unpack_manifest,
)
from lifeline.utils import sha256_hex


def make_items() -> list[WorkspaceItem]:
    block = WorkspaceItem(id="b1", kind=ItemKind.BLOCK, payload={"id": "b1", "type": "paragraph"},
                          block_type="paragraph", parent_id="p1")
    page = WorkspaceItem(id="p1", kind=ItemKind.PAGE, payload={"id": "p1", "object": "page"}, children=[block])
    return [page]


def make_manifest() -> dict[str, ManifestEntry]:
    return {
        "p1": ManifestEntry(hash="a" * 64, kind=ItemKind.PAGE, name="Page"),
        "b1": ManifestEntry(hash="b" * 64, kind=ItemKind.BLOCK, block_type="paragraph", parent_id="p1"),
    }


class TestTimestamps:
    def test_iso_timestamp_millis(self):
        moment = datetime(2025, 1, 2, 3, 4, 5, 678901, tzinfo=timezone.utc)
        assert iso_timestamp(moment) == "2025-01-02T03:04:05.678Z"

    def test_snapshot_id_is_path_safe(self):
        snap_id = new_snapshot_id("2025-01-02T03:04:05.678Z")
        assert snap_id == "snap_2025-01-02T03-04-05-678Z"
        assert ":" not in snap_id and "/" not in snap_id


class TestArchive:
    def test_archive_is_gzip_json(self):
        data = pack_archive(make_items(), {"userId": "u"})
        doc = json.loads(gzip.decompress(data))
        assert doc["metadata"] == {"userId": "u"}
        assert doc["items"][0]["blocks"][0]["id"] == "b1"

    def test_unpack_inverts_pack(self):
        metadata, items = unpack_archive(pack_archive(make_items(), {"userId": "u"}))
        assert metadata == {"userId": "u"}
        assert [i.id for i in items[0].iter_tree()] == ["p1", "b1"]

    @pytest.mark.parametrize(
        "data",
        [b"not gzip", gzip.compress(b"{not json"), gzip.compress(b"[1, 2]")],
    )
    def test_unreadable_archive(self, data):
        with pytest.raises(LifelineManifestError):
            unpack_archive(data)

    def test_archive_without_items_is_empty(self):
        assert unpack_archive(gzip.compress(b'{"metadata": {"userId": "u"}}')) == ({"userId": "u"}, [])

    def test_parse_ignores_entries_without_identity(self):
        text = json.dumps({"items": [{"id": "p1", "object": "page"}, {"object": "page"}, "junk"]})
        _, items = parse_archive(text)
        assert [i.id for i in items] == ["p1"]

    def test_decompress_and_parse_messages(self):
        with pytest.raises(LifelineManifestError, match="could not be decompressed"):
            decompress_archive(b"not gzip")
        with pytest.raises(LifelineManifestError, match="not valid JSON"):
            parse_archive("{oops")


class TestManifest:
    def test_round_trip(self):
        assert unpack_manifest(pack_manifest(make_manifest())) == make_manifest()

    def test_manifest_keys_are_item_ids(self):
        doc = json.loads(gzip.decompress(pack_manifest(make_manifest())))
        assert set(doc) == {"p1", "b1"}
        assert doc["b1"]["blockType"] == "paragraph"

    @pytest.mark.parametrize(
        "data",
        [b"\x1f\x8bgarbage", gzip.compress(b"[1, 2]"), gzip.compress(b'{"x": {"type": "page"}}')],
    )
    def test_unreadable_manifest(self, data):
        with pytest.raises(LifelineManifestError):
            unpack_manifest(data)


class TestPackage:
    def test_metadata_and_digest(self):
        packaged = package(make_items(), make_manifest(), "user-1", "2025-01-02T03:04:05.678Z")
        metadata, _ = unpack_archive(packaged.archive)
        assert metadata == {
            "userId": "user-1",
            "snapshotTimestamp": "2025-01-02T03:04:05.678Z",
            "source": "snapshotWorker",
            "itemCount": 2,
            "topLevelCount": 1,
        }
        assert packaged.item_count == 2
        assert packaged.content_sha256 == sha256_hex(packaged.archive)
        assert packaged.size_bytes == len(packaged.archive)
