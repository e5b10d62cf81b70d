"""Shared fixtures: an in-memory Notion client and a docs tree on disk."""

import uuid
from pathlib import Path

import pytest
from notion_client.errors import APIResponseError

from docs_to_notion import notion_api as notion_api_module
from docs_to_notion.config import Config
from docs_to_notion.notion_api import NotionAPI

ROOT_PAGE_ID = "0123456789abcdef0123456789abcdef"


def _key(page_id: str) -> str:
    return page_id.replace("-", "")


class NotFoundError(APIResponseError):
    """APIResponseError as raised for an unknown page id."""

    def __init__(self, page_id: str):
        Exception.__init__(self, f"Could not find page with ID: {page_id}")
        self.code = "object_not_found"
        self.status = 404


class ServerError(APIResponseError):
    """APIResponseError for an unexpected server failure."""

    def __init__(self):
        Exception.__init__(self, "Internal server error")
        self.code = "internal_server_error"
        self.status = 500


class _Pages:
    def __init__(self, fake: "FakeNotion"):
        self._fake = fake

    async def retrieve(self, page_id):
        self._fake.calls.append(("pages.retrieve", page_id))
        page = self._fake.store.get(_key(page_id))
        if page is None:
            raise NotFoundError(page_id)
        return self._fake.public(page)

    async def create(self, parent, properties, children=None, **kwargs):
        self._fake.calls.append(("pages.create", parent["page_id"]))
        if self._fake.fail_on_create:
            raise ServerError()
        title = "".join(t["text"]["content"] for t in properties["title"]["title"])
        page_id = self._fake.add_page(title, parent["page_id"])
        self._fake.store[_key(page_id)]["blocks"].extend(children or [])
        return self._fake.public(self._fake.store[_key(page_id)])

    async def update(self, page_id, **kwargs):
        self._fake.calls.append(("pages.update", page_id))
        page = self._fake.store[_key(page_id)]
        if kwargs.get("in_trash"):
            page["in_trash"] = True
        return self._fake.public(page)


class _Children:
    def __init__(self, fake: "FakeNotion"):
        self._fake = fake

    async def list(self, block_id, page_size=100, start_cursor=None):
        self._fake.calls.append(("blocks.children.list", block_id))
        key = _key(block_id)
        children = [
            {
                "id": page["id"],
                "type": "child_page",
                "has_children": True,
                "child_page": {"title": page["title"]},
            }
            for page in self._fake.store.values()
            if page["parent_key"] == key and not page["in_trash"]
        ]
        children += self._fake.store[key]["blocks"]

        start = int(start_cursor or 0)
        end = start + page_size
        has_more = end < len(children)
        return {
            "results": children[start:end],
            "has_more": has_more,
            "next_cursor": str(end) if has_more else None,
        }

    async def append(self, block_id, children):
        self._fake.calls.append(("blocks.children.append", block_id))
        self._fake.appends.append((block_id, list(children)))
        self._fake.store[_key(block_id)]["blocks"].extend(children)
        return {"results": children}


class _Blocks:
    def __init__(self, fake: "FakeNotion"):
        self.children = _Children(fake)


class FakeNotion:
    """In-memory stand-in for the parts of AsyncClient the sync uses."""

    def __init__(self):
        self.store: dict[str, dict] = {}
        self.calls: list[tuple[str, str]] = []
        self.appends: list[tuple[str, list]] = []
        self.fail_on_create = False
        self.pages = _Pages(self)
        self.blocks = _Blocks(self)

    def add_page(self, title: str, parent_id=None, page_id=None, parent_type="page_id") -> str:
        page_id = page_id or str(uuid.uuid4())
        self.store[_key(page_id)] = {
            "id": page_id,
            "title": title,
            "parent_key": _key(parent_id) if parent_id else None,
            "parent_id": parent_id,
            "parent_type": parent_type if parent_id else "workspace",
            "in_trash": False,
            "blocks": [],
        }
        return page_id

    def public(self, page: dict) -> dict:
        parent_type = page["parent_type"]
        parent = {"type": parent_type, parent_type: page["parent_id"] if page["parent_id"] else True}
        return {
            "object": "page",
            "id": page["id"],
            "parent": parent,
            "in_trash": page["in_trash"],
            "archived": page["in_trash"],
            "url": f"https://www.notion.so/{_key(page['id'])}",
            "properties": {
                "title": {"title": [{"type": "text", "plain_text": page["title"]}]},
            },
        }

    def page(self, page_id: str) -> dict:
        return self.store[_key(page_id)]

    def children_titles(self, parent_id: str, include_trashed: bool = False) -> list[str]:
        return sorted(
            page["title"]
            for page in self.store.values()
            if page["parent_key"] == _key(parent_id) and (include_trashed or not page["in_trash"])
        )

    def count(self, call: str) -> int:
        return sum(1 for name, _ in self.calls if name == call)


@pytest.fixture(autouse=True)
def no_rate_limit(monkeypatch):
    """Tests talk to the in-memory client; skip the request throttle."""
    monkeypatch.setattr(notion_api_module, "_acquire_request_slot", lambda: None)


@pytest.fixture
def docs_dir(tmp_path) -> Path:
    path = tmp_path / "docs"
    path.mkdir()
    return path


@pytest.fixture
def config(tmp_path, docs_dir) -> Config:
    return Config(
        notion_token="secret_test",
        notion_parent_page_id=ROOT_PAGE_ID,
        docs_dir="docs",
        repo_root=tmp_path,
        sync_mode="all",
    )


@pytest.fixture
def fake_notion() -> FakeNotion:
    fake = FakeNotion()
    fake.add_page("Docs", page_id=ROOT_PAGE_ID)
    return fake


@pytest.fixture
def notion_api(config, fake_notion) -> NotionAPI:
    return NotionAPI(config, client=fake_notion)


def write_doc(docs_dir: Path, rel_path: str, content: str) -> Path:
    """Create a Markdown file (and its directories) under docs_dir."""
    path = docs_dir / rel_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path
