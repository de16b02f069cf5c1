"""Tests for storage paths and destination construction."""

from __future__ import annotations

import pytest

from lifeline.config import LifelineConfig
from lifeline.errors import LifelineConfigurationError
from lifeline.models import DestinationType, ReplicationMode, StorageDestinationConfig
from lifeline.storage import (
    LocalObjectStore,
    S3ObjectStore,
    archive_path,
    build_destinations,
    build_primary,
    build_store,
    is_archive_path,
    manifest_path,
    snapshot_id_from_path,
)


def make_dest(**overrides) -> StorageDestinationConfig:
    defaults = dict(id="d1", type=DestinationType.S3, bucket="mirror", region="eu-west-1")
    defaults.update(overrides)
    return StorageDestinationConfig(**defaults)


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

class TestPaths:
    def test_layout(self):
        assert archive_path("u1", "snap_x") == "u1/snap_x.json.gz"
        assert manifest_path("u1", "snap_x") == "u1/snap_x.manifest.json.gz"

    def test_is_archive_path(self):
        assert is_archive_path("u1/snap_x.json.gz")
        assert not is_archive_path("u1/snap_x.manifest.json.gz")
        assert not is_archive_path("u1/notes.txt")

    @pytest.mark.parametrize("path", ["u1/snap_x.json.gz", "u1/snap_x.manifest.json.gz"])
    def test_snapshot_id_from_path(self, path):
        assert snapshot_id_from_path(path) == "snap_x"


# ---------------------------------------------------------------------------
# build_store
# ---------------------------------------------------------------------------

class TestBuildStore:
    def test_s3(self):
        store = build_store(make_dest())
        assert isinstance(store, S3ObjectStore)
        assert store.name == "S3-mirror"

    def test_s3_requires_region(self):
        with pytest.raises(LifelineConfigurationError, match="region"):
            build_store(make_dest(region=None))

    def test_r2_requires_endpoint(self):
        with pytest.raises(LifelineConfigurationError, match="endpoint"):
            build_store(make_dest(type=DestinationType.R2, region=None))

    def test_r2_uses_auto_region(self):
        store = build_store(make_dest(type=DestinationType.R2, endpoint="https://acct.r2.cloudflarestorage.com"))
        assert store._client.meta.region_name == "auto"

    def test_requires_bucket(self):
        with pytest.raises(LifelineConfigurationError, match="bucket"):
            build_store(make_dest(bucket=""))


# ---------------------------------------------------------------------------
# build_destinations / build_primary
# ---------------------------------------------------------------------------

class TestBuildDestinations:
    def test_skips_disabled_and_collects_failures(self, tmp_path):
        configs = [
            make_dest(id="ok", bucket="ok", replication_mode=ReplicationMode.ARCHIVE),
            make_dest(id="off", bucket="off", is_enabled=False),
            make_dest(id="bad", bucket="bad", region=None),
        ]
        destinations, failures = build_destinations(configs, lambda d: _local_or_fail(d, tmp_path))
        assert [d.name for d in destinations] == ["S3-ok"]
        assert destinations[0].mode is ReplicationMode.ARCHIVE
        assert destinations[0].primary is False
        assert [cfg.id for cfg, _ in failures] == ["bad"]
        assert isinstance(failures[0][1], LifelineConfigurationError)

    def test_empty(self):
        assert build_destinations([]) == ([], [])


def _local_or_fail(dest: StorageDestinationConfig, root):
    if not dest.region:
        raise LifelineConfigurationError("missing region", context={"destination": dest.name})
    return LocalObjectStore(root / dest.bucket, name=dest.name)


class TestBuildPrimary:
    def test_local_dir_wins(self, tmp_path):
        dest = build_primary(LifelineConfig(local_storage_dir=str(tmp_path), primary_bucket="b"))
        assert isinstance(dest.store, LocalObjectStore)
        assert dest.primary is True
        assert dest.name == "primary"

    def test_bucket(self):
        dest = build_primary(LifelineConfig(primary_bucket="snapshots"))
        assert isinstance(dest.store, S3ObjectStore)
        assert dest.store.bucket == "snapshots"

    def test_nothing_configured(self):
        with pytest.raises(LifelineConfigurationError):
            build_primary(LifelineConfig())
