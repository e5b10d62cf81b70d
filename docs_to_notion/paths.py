"""
Path and title helpers.

Maps document paths relative to the docs directory onto Notion titles:

    guides/setup.md   -> "Setup"  under folder page "Guides"
    guides/README.md  -> "Guides" under folder page "Guides"
    intro.md          -> "Intro"  directly under the root page

Only the first path segment becomes a folder page; deeper directories
collapse into it.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

README_STEM = "README"

_MD_SUFFIX = re.compile(r"\.md$", re.IGNORECASE)


@dataclass
class ParsedRelPath:
    """Folder and title information derived from a relative doc path."""

    folder_name: Optional[str]
    folder_title: Optional[str]
    doc_title: str


def title_case(name: str) -> str:
    """
    Turn a file or directory name into a display title.

    Examples:
        "getting-started" -> "Getting Started"
        "api_reference"   -> "Api Reference"
        "FAQ"             -> "FAQ"
    """
    spaced = re.sub(r"[-_]", " ", name)
    return re.sub(r"\b\w", lambda m: m.group(0).upper(), spaced)


def _split(rel_path: str) -> list[str]:
    return _MD_SUFFIX.sub("", rel_path.replace("\\", "/")).split("/")


def path_to_display_title(rel_path: str) -> str:
    """Title for a document; README files take their directory's name."""
    parts = _split(rel_path)
    last = parts[-1]

    if last.upper() == README_STEM:
        return title_case(parts[-2]) if len(parts) > 1 and parts[-2] else README_STEM

    return title_case(last)


def parse_rel_path(rel_path: str) -> ParsedRelPath:
    """
    Derive folder and document titles from a path relative to the docs dir.

    Args:
        rel_path: POSIX-style path, e.g. "guides/setup.md".

    Returns:
        ParsedRelPath. Root-level documents have no folder.
    """
    doc_title = path_to_display_title(rel_path).strip()
    parts = _split(rel_path)

    if len(parts) <= 1:
        return ParsedRelPath(folder_name=None, folder_title=None, doc_title=doc_title)

    folder_name = parts[0]
    return ParsedRelPath(
        folder_name=folder_name,
        folder_title=title_case(folder_name).strip(),
        doc_title=doc_title,
    )


def unique_folder_titles(rel_paths: Iterable[str]) -> set[str]:
    """Folder titles needed to hold the given documents."""
    titles = set()
    for rel_path in rel_paths:
        folder_title = parse_rel_path(rel_path).folder_title
        if folder_title is not None:
            titles.add(folder_title)
    return titles


def normalize_title_for_match(title: Optional[str]) -> str:
    """Lowercase, dashes/underscores to spaces, whitespace collapsed."""
    if not isinstance(title, str):
        return ""
    normalized = title.strip().lower()
    normalized = re.sub(r"[-_]+", " ", normalized)
    normalized = re.sub(r"\s+", " ", normalized)
    return normalized.strip()


def titles_match(a: Optional[str], b: Optional[str]) -> bool:
    """Compare two titles after normalization. Empty titles never match."""
    x = normalize_title_for_match(a)
    return bool(x) and x == normalize_title_for_match(b)


def collect_md_files(docs_dir: Path) -> list[str]:
    """All Markdown files under docs_dir as sorted POSIX relative paths."""
    docs_dir = Path(docs_dir)
    return sorted(
        path.relative_to(docs_dir).as_posix()
        for path in docs_dir.rglob("*")
        if path.is_file() and path.name.lower().endswith(".md")
    )
