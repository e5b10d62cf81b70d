"""
Async Notion API wrapper used by the sync engine.

Covers:
- Request throttling
- Tagged found / not-found page lookups
- Paginated child listing
- Page creation with chunked children
- Folder page lookup-or-create
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterator, Optional

from notion_client import AsyncClient
from notion_client.errors import APIErrorCode, APIResponseError
from ratelimit import RateLimitException, limits
from rich.console import Console

from .config import Config
from .paths import normalize_title_for_match

console = Console()

# Notion API rate limit: 3 requests per second
RATE_LIMIT_CALLS = 3
RATE_LIMIT_PERIOD = 1  # second

# Maximum page size for list endpoints
PAGE_SIZE = 100


@limits(calls=RATE_LIMIT_CALLS, period=RATE_LIMIT_PERIOD)
def _acquire_request_slot() -> None:
    """Raises RateLimitException while the request budget is exhausted."""


class LookupStatus(Enum):
    """Outcome of looking up a page by id."""
    FOUND = "found"
    NOT_FOUND = "not_found"


@dataclass
class NotionPage:
    """Represents a Notion page with the metadata the sync needs."""

    id: str
    title: str
    parent_type: Optional[str] = None
    parent_id: Optional[str] = None
    url: str = ""
    in_trash: bool = False

    @property
    def parent_page_id(self) -> Optional[str]:
        """Parent id when the parent is a page (not a database or workspace)."""
        return self.parent_id if self.parent_type == "page_id" else None

    @classmethod
    def from_api_response(cls, page: dict) -> "NotionPage":
        """Create NotionPage from API response."""
        # Extract title from properties
        title = ""
        title_prop = page.get("properties", {}).get("title", {})
        if title_prop.get("title"):
            title = "".join(t.get("plain_text", "") for t in title_prop["title"])

        parent = page.get("parent") or {}
        parent_type = parent.get("type")
        parent_id = parent.get(parent_type) if parent_type else None

        return cls(
            id=page["id"],
            title=title,
            parent_type=parent_type,
            parent_id=parent_id if isinstance(parent_id, str) else None,
            url=page.get("url", ""),
            in_trash=bool(page.get("in_trash") or page.get("archived")),
        )


@dataclass
class PageLookup:
    """Result of ``NotionAPI.retrieve_page``."""

    status: LookupStatus
    page: Optional[NotionPage] = None

    @property
    def found(self) -> bool:
        return self.status is LookupStatus.FOUND


@dataclass
class NotionBlock:
    """Represents a child block returned by the list endpoint."""

    id: str
    type: str
    has_children: bool
    content: dict

    @property
    def title(self) -> str:
        """Title of a child_page block, empty for other types."""
        if self.type != "child_page":
            return ""
        return (self.content.get("title") or "").strip()

    @classmethod
    def from_api_response(cls, block: dict) -> "NotionBlock":
        """Create NotionBlock from API response."""
        block_type = block["type"]
        return cls(
            id=block["id"],
            type=block_type,
            has_children=block.get("has_children", False),
            content=block.get(block_type, {}),
        )


def is_not_found_error(error: APIResponseError) -> bool:
    """True for the errors Notion returns when a page id does not resolve."""
    return error.code == APIErrorCode.ObjectNotFound or getattr(error, "status", None) == 404


class NotionAPI:
    """
    Wrapper around Notion's async client with rate limiting.

    Handles:
    - Authentication
    - Rate limiting (3 req/sec)
    - Mapping of not-found errors to PageLookup results
    - Chunked page creation
    """

    def __init__(self, config: Config, client: Optional[AsyncClient] = None):
        """
        Initialize the Notion API client.

        Args:
            config: Configuration instance with Notion token.
            client: Client to use instead of a new AsyncClient.
        """
        self.config = config
        self.client = client or AsyncClient(auth=config.notion_token)
        self._request_count = 0

    async def _rate_limited_call(self, func, *args, **kwargs) -> Any:
        """Execute an API call once the rate limiter admits it."""
        while True:
            try:
                _acquire_request_slot()
                break
            except RateLimitException as e:
                await asyncio.sleep(e.period_remaining)

        self._request_count += 1
        return await func(*args, **kwargs)

    def _debug(self, message: str) -> None:
        if self.config.debug:
            console.print(f"[dim]{message}[/dim]")

    async def retrieve_page(self, page_id: str) -> PageLookup:
        """
        Look up a page by id.

        Trashed pages count as not found: their id can no longer be
        updated and a replacement has to be created.

        Args:
            page_id: The Notion page ID.

        Returns:
            PageLookup tagged FOUND (with the page) or NOT_FOUND.

        Raises:
            APIResponseError: For any failure other than not-found.
        """
        try:
            response = await self._rate_limited_call(
                self.client.pages.retrieve,
                page_id=self._format_page_id(page_id),
            )
        except APIResponseError as e:
            if is_not_found_error(e):
                self._debug(f"Page {page_id} not found")
                return PageLookup(LookupStatus.NOT_FOUND)
            console.print(f"[red]API Error fetching page {page_id}: {e}[/red]")
            raise

        page = NotionPage.from_api_response(response)
        if page.in_trash:
            self._debug(f"Page {page_id} is in the trash")
            return PageLookup(LookupStatus.NOT_FOUND)
        return PageLookup(LookupStatus.FOUND, page)

    async def create_page(
        self,
        parent_page_id: str,
        title: str,
        block_chunks: Optional[list[list[dict]]] = None,
    ) -> str:
        """
        Create a subpage, sending children in chunks.

        The first chunk goes with the create call; the rest are appended
        one call at a time, in order.

        Args:
            parent_page_id: Page to create the new page under.
            title: Title of the new page.
            block_chunks: Content blocks grouped into request-sized chunks.

        Returns:
            Id of the created page.
        """
        first, *rest = block_chunks or [[]]

        kwargs = {
            "parent": {"type": "page_id", "page_id": self._format_page_id(parent_page_id)},
            "properties": {
                "title": {"title": [{"type": "text", "text": {"content": title}}]},
            },
        }
        if first:
            kwargs["children"] = first

        page = await self._rate_limited_call(self.client.pages.create, **kwargs)
        self._debug(f"Created page {page['id']} ({title})")

        for chunk in rest:
            await self.append_children(page["id"], chunk)

        return page["id"]

    async def append_children(self, block_id: str, blocks: list[dict]) -> None:
        """Append blocks to the end of a page or block."""
        await self._rate_limited_call(
            self.client.blocks.children.append,
            block_id=self._format_page_id(block_id),
            children=blocks,
        )

    async def list_children(self, parent_id: str) -> AsyncIterator[NotionBlock]:
        """
        Iterate over all direct children of a page, following pagination.

        Args:
            parent_id: The ID of the parent page or block.

        Yields:
            NotionBlock for every child.
        """
        formatted_id = self._format_page_id(parent_id)
        start_cursor = None

        while True:
            kwargs = {"block_id": formatted_id, "page_size": PAGE_SIZE}
            if start_cursor:
                kwargs["start_cursor"] = start_cursor

            response = await self._rate_limited_call(self.client.blocks.children.list, **kwargs)

            for block in response.get("results", []):
                yield NotionBlock.from_api_response(block)

            start_cursor = response.get("next_cursor")
            if not response.get("has_more") or not start_cursor:
                break

    async def find_child_page_by_title(self, parent_id: str, title: str) -> Optional[str]:
        """First child page of parent_id whose normalized title matches."""
        wanted = normalize_title_for_match(title)
        if not wanted:
            return None

        async for block in self.list_children(parent_id):
            if block.type == "child_page" and normalize_title_for_match(block.title) == wanted:
                return block.id

        return None

    async def get_or_create_folder_page(self, root_page_id: str, folder_title: str) -> str:
        """Reuse the root's child page titled folder_title, or create it."""
        existing_id = await self.find_child_page_by_title(root_page_id, folder_title)
        if existing_id:
            self._debug(f"Reusing folder page '{folder_title}' ({existing_id})")
            return existing_id

        console.print(f"[cyan]Creating folder page:[/cyan] {folder_title}")
        return await self.create_page(root_page_id, folder_title)

    async def ensure_folder_pages(
        self,
        root_page_id: str,
        folder_titles: set[str],
        initial_cache: Optional[dict[str, str]] = None,
    ) -> dict[str, str]:
        """
        Resolve a page id for every folder title.

        Titles already present in initial_cache are not looked up again.
        Resolution is sequential so two titles never race to create the
        same page.

        Returns:
            New mapping of folder title -> page id.
        """
        cache = dict(initial_cache or {})
        for folder_title in sorted(folder_titles):
            if folder_title in cache:
                continue
            cache[folder_title] = await self.get_or_create_folder_page(root_page_id, folder_title)
        return cache

    async def trash_page(self, page_id: str) -> None:
        """Move a page to Notion's trash (single API call)."""
        await self._rate_limited_call(
            self.client.pages.update,
            page_id=self._format_page_id(page_id),
            in_trash=True,
        )
        self._debug(f"Trashed page {page_id}")

    async def replace_page(
        self,
        page_id: str,
        parent_page_id: str,
        title: str,
        block_chunks: list[list[dict]],
    ) -> str:
        """
        Replace a page's content by trashing it and creating a new page.

        If creation fails after the trash succeeded, the old page stays in
        the trash and no replacement exists until the next run.

        Returns:
            Id of the new page.
        """
        await self.trash_page(page_id)
        return await self.create_page(parent_page_id, title, block_chunks)

    def _format_page_id(self, page_id: str) -> str:
        """Dashed UUID form of a 32-character id; other ids pass through."""
        clean_id = page_id.replace("-", "")

        if len(clean_id) == 32:
            return f"{clean_id[:8]}-{clean_id[8:12]}-{clean_id[12:16]}-{clean_id[16:20]}-{clean_id[20:]}"

        return page_id

    @property
    def request_count(self) -> int:
        """Number of API requests made."""
        return self._request_count
