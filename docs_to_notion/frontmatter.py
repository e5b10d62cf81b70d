"""
Frontmatter handling for synced Markdown documents.

Reads and writes the ``notion_page_id`` key in the YAML header at the top
of a document. The id itself comes from the Notion API when a page is
created; this module only persists it in the file so the next run updates
the same page instead of creating a duplicate.

Every other header key belongs to the document's author and is written
back with the value it was read with.
"""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

NOTION_PAGE_ID_KEY = "notion_page_id"

BYTE_ORDER_MARK = "\ufeff"

FRONTMATTER_PATTERN = re.compile(
    r"\A\s*---[ \t]*\r?\n(.*?)\r?\n---[ \t]*(?:\r?\n|\Z)(.*)\Z",
    re.DOTALL,
)


class FrontmatterError(Exception):
    """Raised when a document's header is not a YAML mapping."""


@dataclass
class ParsedFrontmatter:
    """Body and header of a Markdown document."""

    body: str
    notion_page_id: Optional[str] = None
    data: dict[str, Any] = field(default_factory=dict)


def _load_header(block: str) -> dict[str, Any]:
    try:
        data = yaml.safe_load(block)
    except yaml.YAMLError as e:
        raise FrontmatterError(f"Invalid YAML in frontmatter: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise FrontmatterError(f"Frontmatter must be a YAML mapping, got {type(data).__name__}")
    return data


def parse_frontmatter(raw_content: str) -> ParsedFrontmatter:
    """
    Split a Markdown document into body, header data and page id.

    A leading byte order mark is ignored.

    Args:
        raw_content: Full text of the document.

    Returns:
        ParsedFrontmatter. Without a header the body is the whole input,
        data is empty and notion_page_id is None.

    Raises:
        FrontmatterError: If the header is not valid YAML or not a mapping.
    """
    text = raw_content if isinstance(raw_content, str) else ""
    if text.startswith(BYTE_ORDER_MARK):
        text = text[len(BYTE_ORDER_MARK):]

    match = FRONTMATTER_PATTERN.match(text)
    if not match:
        return ParsedFrontmatter(body=text)

    front_block, body = match.groups()
    data = _load_header(front_block)

    page_id = data.get(NOTION_PAGE_ID_KEY)
    page_id = str(page_id).strip() if page_id is not None else ""

    return ParsedFrontmatter(body=body or "", notion_page_id=page_id or None, data=data)


def stringify_frontmatter(body: str, existing_data: dict, notion_page_id: str) -> str:
    """
    Render a document with ``notion_page_id`` set in its header.

    Existing keys keep their order and values; keys with empty values are
    dropped. If nothing is left the header is omitted entirely.

    Args:
        body: Document body (text after the header).
        existing_data: Header data previously parsed from the document.
        notion_page_id: Id of the Notion page the document is synced to.

    Returns:
        Full document text.
    """
    data = dict(existing_data or {})
    data[NOTION_PAGE_ID_KEY] = notion_page_id

    data = {k: v for k, v in data.items() if v is not None and v != ""}
    if not data:
        return body or ""

    header = yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False)
    return f"---\n{header}---\n{body or ''}"


def read_frontmatter(path: Path) -> ParsedFrontmatter:
    """
    Read and parse a document from disk.

    Raises:
        FrontmatterError: If the header is malformed; the message names the file.
    """
    try:
        return parse_frontmatter(Path(path).read_text(encoding="utf-8-sig"))
    except FrontmatterError as e:
        raise FrontmatterError(f"{path}: {e}") from e
