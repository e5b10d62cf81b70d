#!/usr/bin/env python3
"""
Markdown → Notion Sync CLI

Usage:
    python sync.py                    # Sync changed docs (or all without refs)
    python sync.py --mode all         # Sync every doc
    python sync.py --before A --after B
    python sync.py --debug            # Enable debug output
    python sync.py status             # Show which docs are linked to Notion
    python sync.py version            # Show version
"""

import asyncio
import dataclasses
import json
import os
import sys
from typing import Optional

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from docs_to_notion import __version__
from docs_to_notion.change_selector import resolve_working_set, select_changed_paths
from docs_to_notion.config import Config, docs_dir_from_env, repo_root_from_env, resolve_docs_path
from docs_to_notion.frontmatter import FrontmatterError, read_frontmatter
from docs_to_notion.git_handler import GitHandler
from docs_to_notion.paths import collect_md_files, parse_rel_path
from docs_to_notion.sync_engine import SyncEngine, SyncResult

console = Console()


def write_action_outputs(results: list[SyncResult]) -> None:
    """Expose synced-files / synced-count as GitHub Actions step outputs."""
    output_file = os.getenv("GITHUB_OUTPUT")
    if not output_file:
        return

    synced_files = [r.rel_path for r in results]
    with open(output_file, "a", encoding="utf-8") as f:
        f.write(f"synced-files={json.dumps(synced_files)}\n")
        f.write(f"synced-count={len(synced_files)}\n")


def run_sync(config: Config) -> list[SyncResult]:
    """Select the documents to sync and push them to Notion."""
    changed = select_changed_paths(
        config.sync_mode,
        config.git_before,
        config.git_after,
        GitHandler(config),
        config.docs_prefix,
    )
    rel_paths = resolve_working_set(config.docs_path, changed)

    engine = SyncEngine(config)
    return asyncio.run(engine.sync(rel_paths))


def _load_config(
    mode: Optional[str] = None,
    docs_dir: Optional[str] = None,
    before: Optional[str] = None,
    after: Optional[str] = None,
    concurrency: Optional[int] = None,
    debug: bool = False,
) -> Config:
    """Load configuration from the environment and apply CLI overrides."""
    config = Config.from_env()

    overrides = {
        "sync_mode": mode,
        "docs_dir": docs_dir,
        "git_before": before,
        "git_after": after,
        "concurrency": concurrency,
        "debug": debug or None,
    }
    return dataclasses.replace(config, **{k: v for k, v in overrides.items() if v is not None})


@click.group(invoke_without_command=True)
@click.option("--mode", type=click.Choice(["changed", "all"]), help="Which docs to sync")
@click.option("--docs-dir", help="Directory holding the Markdown docs")
@click.option("--before", help="Git ref before the push")
@click.option("--after", help="Git ref after the push")
@click.option("--concurrency", type=int, help="Maximum concurrent Notion requests")
@click.option("--debug", is_flag=True, help="Enable debug output")
@click.pass_context
def cli(ctx, mode, docs_dir, before, after, concurrency, debug: bool):
    """
    Markdown → Notion Sync

    Mirrors Markdown documents into Notion pages.
    """
    ctx.ensure_object(dict)
    ctx.obj.update(
        mode=mode,
        docs_dir=docs_dir,
        before=before,
        after=after,
        concurrency=concurrency,
        debug=debug,
    )

    # If no subcommand, run sync
    if ctx.invoked_subcommand is None:
        ctx.invoke(sync)


@cli.command()
@click.pass_context
def sync(ctx):
    """Run synchronization from Markdown to Notion."""
    load_dotenv()
    debug = ctx.obj.get("debug", False)

    try:
        config = _load_config(**ctx.obj)
        results = run_sync(config)
        write_action_outputs(results)

    except ValueError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        console.print("\n[dim]Make sure NOTION_TOKEN and NOTION_PARENT_PAGE_ID are set.[/dim]")
        sys.exit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Sync cancelled.[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        if debug:
            import traceback
            traceback.print_exc()
        sys.exit(1)


@cli.command()
@click.pass_context
def status(ctx):
    """Show which docs are linked to a Notion page."""
    load_dotenv()

    docs_dir = resolve_docs_path(ctx.obj.get("docs_dir") or docs_dir_from_env(), repo_root_from_env())
    if not docs_dir.is_dir():
        console.print(f"[red]Docs directory not found:[/red] {docs_dir}")
        sys.exit(1)

    rel_paths = collect_md_files(docs_dir)
    if not rel_paths:
        console.print("[yellow]No .md files found.[/yellow]")
        return

    table = Table(title="Docs")
    table.add_column("Path", style="cyan")
    table.add_column("Title", style="green")
    table.add_column("Folder", style="yellow")
    table.add_column("Notion page", style="blue")

    synced = 0
    for rel_path in rel_paths:
        location = parse_rel_path(rel_path)
        try:
            page_id = read_frontmatter(docs_dir / rel_path).notion_page_id
        except FrontmatterError as e:
            table.add_row(rel_path, location.doc_title, location.folder_title or "(root)", f"[red]{escape(str(e))}[/red]")
            continue
        synced += page_id is not None
        table.add_row(
            rel_path,
            location.doc_title,
            location.folder_title or "(root)",
            page_id or "[dim]not synced[/dim]",
        )

    console.print(table)
    console.print(f"\n{synced} of {len(rel_paths)} doc(s) linked to Notion")


@cli.command()
def version():
    """Show version information."""
    console.print(f"Markdown → Notion Sync v{__version__}")


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
