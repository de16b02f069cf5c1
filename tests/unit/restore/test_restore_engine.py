"""Tests for RestoreEngine against the in-memory Notion workspace.

Covers:
- Progress phases and percentages
- Page restore with property and block transformation, child batching
- Database then rows ordering against the new database id
- Target selection, nothing to restore, missing destination
- Per-item failures, auth failure, unreadable or missing archives
"""

from __future__ import annotations

import gzip

import pytest

from lifeline.errors import (
    LifelineArchiveNotFoundError,
    LifelineAuthError,
    LifelineConfigurationError,
    LifelineManifestError,
)
from lifeline.models import RestoreJob, RestoreStatus
from lifeline.restore import NOTHING_TO_RESTORE, ProgressReporter, RestoreEngine
from lifeline.snapshot import WorkspaceWalker, pack_archive

ARCHIVE = "user-1/snap_x.json.gz"


async def snapshot_into(primary, api, path: str = ARCHIVE) -> None:
    """Walk the fake workspace and store its archive at *path*."""
    walk = await WorkspaceWalker(api, "snap_x").walk()
    await primary.store.write(path, pack_archive(walk.items, {}))


def make_job(**overrides) -> RestoreJob:
    defaults = dict(restore_id="r1", user_id="user-1", snapshot_id="snap_x", target_parent_page_id="target")
    defaults.update(overrides)
    return RestoreJob(**defaults)


def make_engine(api, primary, memory_store, **kwargs) -> tuple[RestoreEngine, ProgressReporter]:
    reporter = ProgressReporter("user-1", "r1", memory_store, memory_store)
    return RestoreEngine(api, primary.store, reporter, **kwargs), reporter


def statuses(memory_store) -> list[tuple[str, int]]:
    return [(p.status.value, p.percentage) for _, p in memory_store.published]


# ---------------------------------------------------------------------------
# Happy paths
# ---------------------------------------------------------------------------

class TestRestoreEngine:
    async def test_full_restore(self, scenario_workspace, api_factory, primary, memory_store):
        await snapshot_into(primary, api_factory())
        api = api_factory()
        engine, reporter = make_engine(api, primary, memory_store)
        outcome = await engine.restore(make_job(), ARCHIVE)
        await api.close()

        assert outcome.restored == 4
        assert outcome.failed == 0
        assert outcome.skipped == 0
        assert reporter.progress.status is RestoreStatus.COMPLETED
        assert reporter.progress.message == "Restore completed: 4 restored, 0 failed, 0 skipped."

        seen = statuses(memory_store)
        assert seen[:4] == [("downloading", 5), ("decompressing", 15), ("parsing", 25), ("restoring", 30)]
        assert seen[-1] == ("completed", 100)
        restoring = [pct for status, pct in seen if status == "restoring"]
        assert restoring == sorted(restoring)
        assert restoring[-1] == 95
        assert memory_store.restore_progress["r1"].status is RestoreStatus.COMPLETED

    async def test_page_payload(self, scenario_workspace, api_factory, primary, memory_store):
        await snapshot_into(primary, api_factory())
        api = api_factory()
        engine, _ = make_engine(api, primary, memory_store)
        await engine.restore(make_job(targets=["page-1"]), ARCHIVE)
        await api.close()

        (body,) = scenario_workspace.created_of("page")
        assert body["parent"] == {"page_id": "target"}
        assert body["properties"]["Name"]["title"][0]["plain_text"] == "Project Plan"
        assert [c["type"] for c in body["children"]] == ["paragraph", "paragraph"]
        assert "id" not in body["children"][0]

    async def test_database_created_before_rows(self, fake_notion, api_factory, primary, memory_store):
        rows = [fake_notion.row("r1", "db-1", "One"), fake_notion.row("r2", "db-1", "Two")]
        fake_notion.database("db-1", "Tasks", rows=rows)
        await snapshot_into(primary, api_factory())
        api = api_factory()
        engine, _ = make_engine(api, primary, memory_store)
        outcome = await engine.restore(make_job(), ARCHIVE)
        await api.close()

        kinds = [kind for kind, _ in fake_notion.created]
        assert kinds == ["database", "page", "page"]
        db_body = fake_notion.created_of("database")[0]
        assert db_body["parent"] == {"type": "page_id", "page_id": "target"}
        assert db_body["title"][0]["plain_text"] == "Tasks"
        assert "Name" not in db_body["properties"]
        for row_body in fake_notion.created_of("page"):
            assert row_body["parent"] == {"database_id": "new-database-1"}
        assert outcome.restored == 3
        assert outcome.created_ids[0] == "new-database-1"

    async def test_long_pages_are_appended_in_batches(self, fake_notion, api_factory, primary, memory_store):
        fake_notion.page("big", "Big", blocks=[fake_notion.paragraph(f"b{i}", f"line {i}") for i in range(250)])
        await snapshot_into(primary, api_factory())
        api = api_factory()
        engine, _ = make_engine(api, primary, memory_store)
        await engine.restore(make_job(), ARCHIVE)
        await api.close()

        (body,) = fake_notion.created_of("page")
        assert len(body["children"]) == 100
        assert [(parent, len(children)) for parent, children in fake_notion.appended] == [
            ("new-page-1", 100),
            ("new-page-1", 50),
        ]

    async def test_default_parent_used(self, scenario_workspace, api_factory, primary, memory_store):
        await snapshot_into(primary, api_factory())
        api = api_factory()
        engine, _ = make_engine(api, primary, memory_store, default_parent_page_id="fallback")
        await engine.restore(make_job(target_parent_page_id=None, targets=["page-2"]), ARCHIVE)
        await api.close()
        assert scenario_workspace.created_of("page")[0]["parent"] == {"page_id": "fallback"}


# ---------------------------------------------------------------------------
# Selection & configuration
# ---------------------------------------------------------------------------

class TestRestoreSelection:
    async def test_empty_targets(self, scenario_workspace, api_factory, primary, memory_store):
        await snapshot_into(primary, api_factory())
        api = api_factory()
        engine, reporter = make_engine(api, primary, memory_store)
        outcome = await engine.restore(make_job(targets=[]), ARCHIVE)
        await api.close()
        assert outcome.restored == 0
        assert reporter.progress.message == NOTHING_TO_RESTORE
        assert reporter.progress.percentage == 100
        assert scenario_workspace.created == []

    async def test_unknown_targets(self, scenario_workspace, api_factory, primary, memory_store):
        await snapshot_into(primary, api_factory())
        api = api_factory()
        engine, reporter = make_engine(api, primary, memory_store)
        await engine.restore(make_job(targets=["nope"]), ARCHIVE)
        await api.close()
        assert reporter.progress.message == NOTHING_TO_RESTORE

    async def test_missing_destination(self, scenario_workspace, api_factory, primary, memory_store):
        await snapshot_into(primary, api_factory())
        api = api_factory()
        engine, reporter = make_engine(api, primary, memory_store)
        with pytest.raises(LifelineConfigurationError):
            await engine.restore(make_job(target_parent_page_id=None), ARCHIVE)
        await api.close()
        assert reporter.progress.status is RestoreStatus.ERROR
        assert "Cannot determine restore destination" in reporter.progress.message
        assert scenario_workspace.created == []

    async def test_archive_without_items(self, api_factory, primary, memory_store):
        await primary.store.write(ARCHIVE, gzip.compress(b'{"metadata": {}}'))
        api = api_factory()
        engine, reporter = make_engine(api, primary, memory_store)
        outcome = await engine.restore(make_job(), ARCHIVE)
        await api.close()
        assert outcome.restored == 0
        assert reporter.progress.message == NOTHING_TO_RESTORE


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

class TestRestoreFailures:
    async def test_item_failure_counted(self, scenario_workspace, api_factory, primary, memory_store):
        await snapshot_into(primary, api_factory())
        scenario_workspace.create_statuses = [400]
        api = api_factory()
        engine, reporter = make_engine(api, primary, memory_store)
        outcome = await engine.restore(make_job(targets=["page-1", "page-2"]), ARCHIVE)
        await api.close()
        assert outcome.restored == 1
        assert outcome.failed == 1
        assert reporter.progress.status is RestoreStatus.COMPLETED
        assert reporter.progress.message == "Restore completed: 1 restored, 1 failed, 0 skipped."

    async def test_append_failure_keeps_created_page(self, fake_notion, api_factory, primary, memory_store):
        fake_notion.page("big", "Big", blocks=[fake_notion.paragraph(f"b{i}", f"line {i}") for i in range(250)])
        await snapshot_into(primary, api_factory())
        fake_notion.append_statuses = [400]
        api = api_factory()
        engine, reporter = make_engine(api, primary, memory_store)
        outcome = await engine.restore(make_job(), ARCHIVE)
        await api.close()

        assert len(fake_notion.created_of("page")) == 1
        assert outcome.restored == 1
        assert outcome.failed == 0
        assert outcome.created_ids == ["new-page-1"]
        assert outcome.incomplete_ids == ["new-page-1"]
        # The third batch is not attempted after the second fails.
        assert fake_notion.appended == []
        assert reporter.progress.message == "Restore completed: 1 restored, 0 failed, 0 skipped."

    async def test_append_auth_failure_aborts(self, fake_notion, api_factory, primary, memory_store):
        fake_notion.page("big", "Big", blocks=[fake_notion.paragraph(f"b{i}", f"line {i}") for i in range(150)])
        await snapshot_into(primary, api_factory())
        fake_notion.append_statuses = [401, 401, 401, 401]
        api = api_factory()
        engine, reporter = make_engine(api, primary, memory_store)
        with pytest.raises(LifelineAuthError):
            await engine.restore(make_job(), ARCHIVE)
        await api.close()
        assert reporter.progress.status is RestoreStatus.ERROR

    async def test_auth_failure_aborts(self, scenario_workspace, api_factory, primary, memory_store):
        await snapshot_into(primary, api_factory())
        scenario_workspace.create_statuses = [401, 401, 401, 401]
        api = api_factory()
        engine, reporter = make_engine(api, primary, memory_store)
        with pytest.raises(LifelineAuthError):
            await engine.restore(make_job(), ARCHIVE)
        await api.close()
        assert reporter.progress.status is RestoreStatus.ERROR
        assert reporter.progress.percentage == -1

    async def test_missing_archive(self, api_factory, primary, memory_store):
        api = api_factory()
        engine, reporter = make_engine(api, primary, memory_store)
        with pytest.raises(LifelineArchiveNotFoundError):
            await engine.restore(make_job(), ARCHIVE)
        await api.close()
        assert statuses(memory_store) == [("downloading", 5), ("error", -1)]
        assert reporter.progress.message.startswith("Restore failed:")

    async def test_corrupt_archive(self, api_factory, primary, memory_store):
        await primary.store.write(ARCHIVE, b"not gzip at all")
        api = api_factory()
        engine, reporter = make_engine(api, primary, memory_store)
        with pytest.raises(LifelineManifestError):
            await engine.restore(make_job(), ARCHIVE)
        await api.close()
        assert statuses(memory_store)[-1] == ("error", -1)

    async def test_invalid_json(self, api_factory, primary, memory_store):
        await primary.store.write(ARCHIVE, gzip.compress(b"{oops"))
        api = api_factory()
        engine, _ = make_engine(api, primary, memory_store)
        with pytest.raises(LifelineManifestError, match="not valid JSON"):
            await engine.restore(make_job(), ARCHIVE)
        await api.close()
        assert [s for s, _ in statuses(memory_store)] == ["downloading", "decompressing", "parsing", "error"]

    async def test_progress_write_failure_does_not_abort(self, scenario_workspace, api_factory, primary, memory_store):
        await snapshot_into(primary, api_factory())

        class FlakySink:
            async def publish(self, restore_id, progress):
                raise RuntimeError("pubsub down")

        reporter = ProgressReporter("user-1", "r1", memory_store, FlakySink())
        api = api_factory()
        outcome = await RestoreEngine(api, primary.store, reporter).restore(make_job(targets=["page-2"]), ARCHIVE)
        await api.close()
        assert outcome.restored == 1
        assert reporter.progress.status is RestoreStatus.COMPLETED
