"""
Selection of the documents a run should sync.

``select_changed_paths`` answers "which files did this push touch?" and
returns None whenever the answer is "unknown, sync everything".
``resolve_working_set`` turns that answer into the final list, always
adding documents that were never synced.
"""

from pathlib import Path
from typing import Optional

from rich.console import Console

from .frontmatter import read_frontmatter
from .git_handler import GitHandler
from .paths import collect_md_files

console = Console()


def select_changed_paths(
    mode: str,
    before: str,
    after: str,
    git_handler: GitHandler,
    docs_prefix: str,
) -> Optional[list[str]]:
    """
    Decide which documents changed.

    Args:
        mode: "all" or "changed".
        before: Ref before the push (may be empty).
        after: Ref after the push (may be empty).
        git_handler: Used to diff the two refs.
        docs_prefix: Docs directory relative to the repo root.

    Returns:
        None to sync every document, otherwise the changed relative paths
        (possibly empty).
    """
    if mode == "all":
        console.print('[cyan]Sync mode "all"[/cyan] - syncing every .md file.')
        return None

    if not (before and after):
        console.print("[yellow]No git-before / git-after refs provided. Syncing all docs.[/yellow]")
        return None

    changed = git_handler.get_changed_md_paths(before, after, docs_prefix)
    if changed is None:
        console.print("[yellow]Falling back to syncing all docs (git diff unavailable).[/yellow]")
        return None

    if changed:
        console.print(f"[cyan]Detected {len(changed)} changed .md file(s):[/cyan] {', '.join(changed)}")
    else:
        console.print("[dim]No .md files changed.[/dim]")
    return changed


def find_docs_without_page_id(docs_dir: Path) -> list[str]:
    """Documents whose frontmatter has no notion_page_id yet."""
    unsynced = []
    for rel_path in collect_md_files(docs_dir):
        if read_frontmatter(Path(docs_dir) / rel_path).notion_page_id is None:
            unsynced.append(rel_path)
    return unsynced


def resolve_working_set(docs_dir: Path, changed_rel_paths: Optional[list[str]]) -> list[str]:
    """
    Final, sorted list of documents to sync.

    Args:
        docs_dir: Absolute docs directory.
        changed_rel_paths: Result of select_changed_paths.

    Returns:
        Every document when changed_rel_paths is None; otherwise the changed
        documents that still exist on disk plus every never-synced document.
    """
    docs_dir = Path(docs_dir)
    if changed_rel_paths is None:
        return collect_md_files(docs_dir)

    selected = set()
    for rel_path in changed_rel_paths:
        if (docs_dir / rel_path).is_file():
            selected.add(rel_path)
        else:
            console.print(f"[dim]Skipping {rel_path} (deleted)[/dim]")

    selected.update(find_docs_without_page_id(docs_dir))
    return sorted(selected)
