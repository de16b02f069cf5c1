"""Shared fixtures for the lifeline test suite.

:class:`FakeNotion` is an in-memory Notion workspace served through
``httpx.MockTransport``, so tests exercise the real transport, pagination
and endpoint wrappers.
"""

from __future__ import annotations

import json
from typing import Any

import httpx
import pytest

from lifeline.config import LifelineConfig
from lifeline.context import JobContext
from lifeline.notion_api import AsyncNotionTransport, NotionAPI, RequestQueue
from lifeline.storage import Destination, LocalObjectStore
from lifeline.store import MemoryStore

TOKEN = "secret_test_token"


def _rich_text(text: str) -> list[dict[str, Any]]:
    return [{"type": "text", "text": {"content": text}, "plain_text": text}]


class FakeNotion:
    """Serves search, block children, database query and create endpoints."""

    def __init__(self) -> None:
        self.search_results: list[dict[str, Any]] = []
        self.children: dict[str, list[dict[str, Any]]] = {}
        self.rows: dict[str, list[dict[str, Any]]] = {}
        self.children_errors: dict[str, int] = {}
        self.create_statuses: list[int] = []
        self.append_statuses: list[int] = []
        self.page_size = 100
        self.created: list[tuple[str, dict[str, Any]]] = []
        self.appended: list[tuple[str, list[dict[str, Any]]]] = []
        self.requests: list[tuple[str, str]] = []
        self._ids = 0

    # -- workspace builders ----------------------------------------------

    def paragraph(self, block_id: str, text: str, children: list[dict] | None = None) -> dict[str, Any]:
        block = {
            "object": "block",
            "id": block_id,
            "type": "paragraph",
            "paragraph": {"rich_text": _rich_text(text), "color": "default"},
            "has_children": bool(children),
            "created_time": "2025-01-01T00:00:00.000Z",
            "last_edited_time": "2025-01-01T00:00:00.000Z",
        }
        if children:
            self.children[block_id] = children
        return block

    def page(
        self,
        page_id: str,
        title: str,
        blocks: list[dict] | None = None,
        parent: dict | None = None,
        properties: dict | None = None,
        in_search: bool = True,
    ) -> dict[str, Any]:
        props = {"Name": {"id": "title", "type": "title", "title": _rich_text(title)}}
        props.update(properties or {})
        page = {
            "object": "page",
            "id": page_id,
            "parent": parent or {"type": "workspace", "workspace": True},
            "properties": props,
            "created_time": "2025-01-01T00:00:00.000Z",
            "last_edited_time": "2025-01-02T00:00:00.000Z",
            "icon": None,
            "cover": None,
        }
        self.children[page_id] = list(blocks or [])
        if in_search:
            self.search_results.append(page)
        return page

    def database(
        self,
        db_id: str,
        title: str,
        rows: list[dict] | None = None,
        properties: dict | None = None,
        description: str = "",
    ) -> dict[str, Any]:
        db = {
            "object": "database",
            "id": db_id,
            "parent": {"type": "page_id", "page_id": "root-page"},
            "title": _rich_text(title),
            "description": _rich_text(description) if description else [],
            "properties": properties or {"Name": {"id": "title", "name": "Name", "type": "title", "title": {}}},
            "is_inline": False,
            "created_time": "2025-01-01T00:00:00.000Z",
            "last_edited_time": "2025-01-02T00:00:00.000Z",
        }
        self.rows[db_id] = list(rows or [])
        self.search_results.append(db)
        return db

    def row(self, page_id: str, db_id: str, title: str, blocks: list[dict] | None = None,
            properties: dict | None = None, in_search: bool = True) -> dict[str, Any]:
        return self.page(
            page_id,
            title,
            blocks=blocks,
            parent={"type": "database_id", "database_id": db_id},
            properties=properties,
            in_search=in_search,
        )

    # -- HTTP handler ----------------------------------------------------

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path.removeprefix("/v1")
        self.requests.append((request.method, path))
        body = json.loads(request.content) if request.content else {}
        parts = path.strip("/").split("/")

        if request.method == "POST" and path == "/search":
            return self._paginated(self.search_results, body.get("start_cursor"))
        if request.method == "GET" and parts[0] == "blocks" and parts[-1] == "children":
            block_id = parts[1]
            if block_id in self.children_errors:
                status = self.children_errors[block_id]
                return httpx.Response(status, json={"code": "error", "message": "boom"})
            return self._paginated(self.children.get(block_id, []), request.url.params.get("start_cursor"))
        if request.method == "POST" and parts[0] == "databases" and parts[-1] == "query":
            return self._paginated(self.rows.get(parts[1], []), body.get("start_cursor"))
        if request.method == "POST" and path in ("/pages", "/databases"):
            kind = "page" if path == "/pages" else "database"
            if self.create_statuses:
                status = self.create_statuses.pop(0)
                if status >= 300:
                    return httpx.Response(status, json={"code": "error", "message": "rejected"})
            self._ids += 1
            new_id = f"new-{kind}-{self._ids}"
            self.created.append((kind, body))
            return httpx.Response(200, json={"object": kind, "id": new_id})
        if request.method == "PATCH" and parts[0] == "blocks":
            if self.append_statuses:
                status = self.append_statuses.pop(0)
                if status >= 300:
                    return httpx.Response(status, json={"code": "error", "message": "rejected"})
            self.appended.append((parts[1], body.get("children", [])))
            return httpx.Response(200, json={"object": "list", "results": []})
        return httpx.Response(404, json={"code": "object_not_found", "message": path})

    def _paginated(self, items: list[dict], cursor: str | None) -> httpx.Response:
        start = int(cursor or 0)
        page = items[start : start + self.page_size]
        end = start + len(page)
        has_more = end < len(items)
        return httpx.Response(
            200,
            json={
                "object": "list",
                "results": page,
                "has_more": has_more,
                "next_cursor": str(end) if has_more else None,
            },
        )

    def created_of(self, kind: str) -> list[dict[str, Any]]:
        return [body for k, body in self.created if k == kind]


class CharTokenizer:
    """One token per character; makes token counts easy to reason about."""

    def encode(self, text: str) -> list[int]:
        return [ord(c) for c in text]

    def decode(self, tokens: list[int]) -> str:
        return "".join(chr(t) for t in tokens)


def build_config(**overrides: Any) -> LifelineConfig:
    defaults: dict[str, Any] = dict(
        retry_max_attempts=3,
        retry_base_delay=0.0,
        retry_max_delay=0.0,
        retry_jitter=False,
        rate_limit_rps=10_000.0,
        max_in_flight=3,
        embedding_retry_base_delay=0.0,
    )
    defaults.update(overrides)
    return LifelineConfig(**defaults)


@pytest.fixture
def config() -> LifelineConfig:
    """Configuration with zero retry delays and an effectively unlimited rate."""
    return build_config()


@pytest.fixture
def fake_notion() -> FakeNotion:
    return FakeNotion()


@pytest.fixture
def api_factory(fake_notion: FakeNotion, config: LifelineConfig):
    """Return a callable building a fresh :class:`NotionAPI` against *fake_notion*."""

    def _build(token: str = TOKEN) -> NotionAPI:
        client = httpx.AsyncClient(
            base_url=config.base_url,
            transport=httpx.MockTransport(fake_notion.handler),
        )
        transport = AsyncNotionTransport(config, token, queue=RequestQueue.from_config(config), client=client)
        return NotionAPI(transport)

    return _build


@pytest.fixture
def notion_api(api_factory) -> NotionAPI:
    return api_factory()


@pytest.fixture
def tokenizer() -> CharTokenizer:
    return CharTokenizer()


@pytest.fixture
def memory_store() -> MemoryStore:
    return MemoryStore(tokens={"user-1": TOKEN})


@pytest.fixture
def primary(tmp_path) -> Destination:
    return Destination(name="primary", store=LocalObjectStore(tmp_path / "primary", name="primary"), primary=True)


@pytest.fixture
def job_context(config, memory_store, primary, api_factory) -> JobContext:
    return JobContext(
        config=config,
        documents=memory_store,
        credentials=memory_store,
        progress=memory_store,
        primary=primary,
        api_factory=api_factory,
    )


@pytest.fixture
def scenario_workspace(fake_notion: FakeNotion) -> FakeNotion:
    """One page with two blocks, one empty page, one database with one row."""
    fake_notion.page(
        "page-1",
        "Project Plan",
        blocks=[fake_notion.paragraph("block-1", "Hello"), fake_notion.paragraph("block-2", "World")],
    )
    fake_notion.page("page-2", "Empty Page")
    row = fake_notion.row("row-1", "db-1", "Task one")
    fake_notion.database("db-1", "Tasks", rows=[row])
    return fake_notion
