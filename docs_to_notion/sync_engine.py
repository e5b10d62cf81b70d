"""
Main sync engine for Markdown → Notion synchronization.

Orchestrates:
- Validation of page ids recorded in frontmatter
- Folder page resolution
- Content conversion
- Page creation / replacement
- Persisting page ids back into the Markdown files
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from .concurrency import run_with_concurrency
from .config import Config
from .frontmatter import ParsedFrontmatter, read_frontmatter, stringify_frontmatter
from .markdown_converter import convert_markdown_to_notion_blocks
from .notion_api import NotionAPI
from .paths import parse_rel_path, unique_folder_titles

console = Console()

# Notion accepts at most 100 children per create/append call
NOTION_BLOCK_CHUNK_SIZE = 100

ROOT_LABEL = "(root)"


class SyncAction(Enum):
    """What happened to a document's page."""
    CREATED = "created"
    UPDATED = "updated"


@dataclass
class SyncResult:
    """Result of syncing a single document."""

    action: SyncAction
    title: str
    rel_path: str
    parent: str


def chunk_blocks(blocks: list, size: int = NOTION_BLOCK_CHUNK_SIZE) -> list[list]:
    """Split blocks into consecutive chunks of at most size."""
    return [blocks[i:i + size] for i in range(0, len(blocks), size)]


def resolve_parent_id(
    root_page_id: str,
    folder_title: Optional[str],
    folder_page_cache: dict[str, str],
) -> str:
    """Folder page for the document, or the root page."""
    if folder_title is None:
        return root_page_id
    return folder_page_cache.get(folder_title, root_page_id)


class SyncEngine:
    """
    Main orchestrator for Markdown → Notion synchronization.

    A run has three stages, each finished before the next starts:
    1. Validate recorded page ids (and learn folder pages from their parents)
    2. Resolve or create one folder page per top-level directory
    3. Create or replace one page per document and write its id back
    """

    def __init__(self, config: Config, notion_api: Optional[NotionAPI] = None):
        """
        Initialize sync engine.

        Args:
            config: Configuration instance.
            notion_api: API wrapper; built from config when omitted.
        """
        self.config = config
        self.notion_api = notion_api or NotionAPI(config)
        self.root_page_id = config.notion_parent_page_id
        self.docs_dir = Path(config.docs_path)

        # Per-run state
        self.folder_page_cache: dict[str, str] = {}
        self.validated_page_ids: set[str] = set()

    def _read(self, rel_path: str) -> ParsedFrontmatter:
        return read_frontmatter(self.docs_dir / rel_path)

    def _write(self, rel_path: str, content: str) -> None:
        (self.docs_dir / rel_path).write_text(content, encoding="utf-8")

    async def sync(self, rel_paths: list[str]) -> list[SyncResult]:
        """
        Sync the given documents.

        Args:
            rel_paths: Documents to sync, relative to the docs directory.

        Returns:
            One SyncResult per document, in the order given.
        """
        if not rel_paths:
            console.print("[yellow]No .md files to sync.[/yellow]")
            return []

        console.print(f"\n[bold blue]🔄 Syncing {len(rel_paths)} doc(s) to Notion[/bold blue]\n")

        self.folder_page_cache = {}
        self.validated_page_ids = set()

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Validating existing Notion pages...", total=None)
            await self._validate_existing_pages(rel_paths)

            progress.update(task, description="Resolving folder pages...")
            self.folder_page_cache = await self.notion_api.ensure_folder_pages(
                self.root_page_id,
                unique_folder_titles(rel_paths),
                self.folder_page_cache,
            )

        task_fns = [lambda rel_path=rel_path: self._sync_one_doc(rel_path) for rel_path in rel_paths]
        results = await run_with_concurrency(task_fns, self.config.concurrency)

        for result in results:
            verb = "Updated" if result.action is SyncAction.UPDATED else "Created"
            console.print(
                f"[green]{verb}:[/green] {result.title} ({result.rel_path}) [dim]\\[under {result.parent}][/dim]"
            )

        self._print_summary(results)
        return results

    async def _validate_existing_pages(self, rel_paths: list[str]) -> None:
        """
        Check which recorded page ids still exist.

        A validated page whose parent is a page also tells us the folder
        page of its directory, saving a lookup later.
        """

        async def validate(rel_path: str) -> None:
            notion_page_id = self._read(rel_path).notion_page_id
            if notion_page_id is None:
                return

            lookup = await self.notion_api.retrieve_page(notion_page_id)
            if not lookup.found:
                return
            self.validated_page_ids.add(notion_page_id)

            folder_title = parse_rel_path(rel_path).folder_title
            parent_id = lookup.page.parent_page_id
            if folder_title is not None and parent_id:
                self.folder_page_cache.setdefault(folder_title, parent_id)

        await run_with_concurrency(
            [lambda rel_path=rel_path: validate(rel_path) for rel_path in rel_paths],
            self.config.concurrency,
        )

    async def _resolve_existing_page_id(self, notion_page_id: Optional[str]) -> Optional[str]:
        """The recorded page id if the page still exists, else None."""
        page_id = notion_page_id.strip() if notion_page_id else ""
        if not page_id:
            return None
        if page_id in self.validated_page_ids:
            return page_id

        lookup = await self.notion_api.retrieve_page(page_id)
        if lookup.found:
            self.validated_page_ids.add(page_id)
            return page_id
        return None

    async def _sync_one_doc(self, rel_path: str) -> SyncResult:
        """Create or replace the page for one document and persist its id."""
        parsed = self._read(rel_path)
        location = parse_rel_path(rel_path)
        parent_page_id = resolve_parent_id(
            self.root_page_id, location.folder_title, self.folder_page_cache
        )

        existing_page_id = await self._resolve_existing_page_id(parsed.notion_page_id)

        blocks = convert_markdown_to_notion_blocks(parsed.body)
        block_chunks = chunk_blocks(blocks)

        if existing_page_id is not None:
            new_page_id = await self.notion_api.replace_page(
                existing_page_id, parent_page_id, location.doc_title, block_chunks
            )
            action = SyncAction.UPDATED
        else:
            new_page_id = await self.notion_api.create_page(
                parent_page_id, location.doc_title, block_chunks
            )
            action = SyncAction.CREATED

        self._write(rel_path, stringify_frontmatter(parsed.body, parsed.data, new_page_id))

        return SyncResult(
            action=action,
            title=location.doc_title,
            rel_path=rel_path,
            parent=location.folder_title or ROOT_LABEL,
        )

    def _print_summary(self, results: list[SyncResult]) -> None:
        """Print sync summary."""
        console.print("\n" + "=" * 50)
        console.print("[bold]Sync Summary[/bold]")
        console.print("=" * 50)

        table = Table(show_header=False, box=None)
        table.add_column("Metric", style="cyan")
        table.add_column("Value", style="white")

        created = sum(1 for r in results if r.action is SyncAction.CREATED)
        table.add_row("Pages created", str(created))
        table.add_row("Pages updated", str(len(results) - created))
        table.add_row("Folder pages", str(len(self.folder_page_cache)))
        table.add_row("API requests", str(self.notion_api.request_count))

        console.print(table)
        console.print(f"\n[green]Done.[/green] Synced {len(results)} doc(s).\n")
