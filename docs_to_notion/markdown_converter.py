"""
Markdown to Notion blocks converter.

Parses a document body with mistune and maps the resulting syntax tree
onto the block objects accepted by Notion's ``pages.create`` and
``blocks.children.append`` endpoints:
- Headings, paragraphs and block quotes
- Bulleted, numbered and to-do lists, nested up to Notion's limit
- Code blocks (with language mapping)
- Dividers, images and tables

Bold, italic, strikethrough, inline code and links become rich text
annotations.

The converted blocks are sanitized before they leave this module: Notion
rejects links without an http(s) scheme and pages created with an empty
children list, and a conversion error must never abort a sync.
"""

from typing import Callable, Optional

import mistune
from rich.console import Console

console = Console()

# Notion caps a single rich text segment at 2000 characters
MAX_TEXT_LENGTH = 2000

# Blocks may carry children at most two levels deep in one request
MAX_NESTING_DEPTH = 2

PLACEHOLDER_TEXT = "(No content)"
EMPTY_BODY_TEXT = "(empty)"

MARKDOWN_PLUGINS = ["strikethrough", "table", "task_lists"]

# Inline container nodes -> the annotation they switch on
INLINE_ANNOTATIONS = {
    "strong": "bold",
    "emphasis": "italic",
    "strikethrough": "strikethrough",
}

# Markdown fence languages -> Notion code block languages
LANGUAGE_ALIASES = {
    "": "plain text",
    "text": "plain text",
    "txt": "plain text",
    "plaintext": "plain text",
    "sh": "shell",
    "zsh": "shell",
    "console": "shell",
    "py": "python",
    "js": "javascript",
    "jsx": "javascript",
    "ts": "typescript",
    "tsx": "typescript",
    "yml": "yaml",
    "rb": "ruby",
    "rs": "rust",
    "cpp": "c++",
    "cs": "c#",
    "csharp": "c#",
    "fsharp": "f#",
    "kt": "kotlin",
    "md": "markdown",
    "docker": "docker",
    "dockerfile": "docker",
    "hcl": "plain text",
    "terraform": "plain text",
    "ps1": "powershell",
    "golang": "go",
    "objc": "objective-c",
    "proto": "protobuf",
    "tex": "latex",
}

NOTION_LANGUAGES = {
    "abap", "arduino", "bash", "basic", "c", "clojure", "coffeescript", "c++",
    "c#", "css", "dart", "diff", "docker", "elixir", "elm", "erlang", "flow",
    "fortran", "f#", "gherkin", "glsl", "go", "graphql", "groovy", "haskell",
    "html", "java", "javascript", "json", "julia", "kotlin", "latex", "less",
    "lisp", "livescript", "lua", "makefile", "markdown", "markup", "matlab",
    "mermaid", "nix", "objective-c", "ocaml", "pascal", "perl", "php",
    "plain text", "powershell", "prolog", "protobuf", "python", "r", "reason",
    "ruby", "rust", "sass", "scala", "scheme", "scss", "shell", "sql", "swift",
    "typescript", "vb.net", "verilog", "vhdl", "visual basic", "webassembly",
    "xml", "yaml", "java/c/c++/c#",
}


# =========================================================================
# Rich text handling
# =========================================================================


def _text_item(content: str, annotations: Optional[dict] = None, url: Optional[str] = None) -> dict:
    text: dict = {"content": content}
    if url:
        text["link"] = {"url": url}
    item: dict = {"type": "text", "text": text}
    if annotations:
        item["annotations"] = dict(annotations)
    return item


def _split_content(content: str) -> list[str]:
    return [content[i:i + MAX_TEXT_LENGTH] for i in range(0, len(content), MAX_TEXT_LENGTH)] or [""]


def text_to_rich_text(content: str, annotations: Optional[dict] = None, url: Optional[str] = None) -> list[dict]:
    """Plain content as rich text, split to respect the length limit."""
    return [_text_item(part, annotations, url) for part in _split_content(content)]


def plain_text(nodes: list[dict]) -> str:
    """Text of inline nodes with all formatting dropped."""
    parts = []
    for node in nodes:
        if "raw" in node:
            parts.append(node["raw"])
        elif node.get("type") in ("linebreak", "softbreak"):
            parts.append(" ")
        else:
            parts.append(plain_text(node.get("children", [])))
    return "".join(parts)


def _inline_items(nodes: list[dict], annotations: dict, url: Optional[str]) -> list[dict]:
    items: list[dict] = []

    for node in nodes:
        node_type = node.get("type")

        if node_type in INLINE_ANNOTATIONS:
            merged = {**annotations, INLINE_ANNOTATIONS[node_type]: True}
            items.extend(_inline_items(node.get("children", []), merged, url))
        elif node_type == "codespan":
            if node.get("raw"):
                items.append(_text_item(node["raw"], {**annotations, "code": True}, url))
        elif node_type == "link":
            link = node.get("attrs", {}).get("url")
            items.extend(_inline_items(node.get("children", []), annotations, link))
        elif node_type == "image":
            # Images inside running text keep their alt text, linked to the source
            link = node.get("attrs", {}).get("url", "")
            items.append(_text_item(plain_text(node.get("children", [])) or link, annotations, link))
        elif node_type == "linebreak":
            items.append(_text_item("\n", annotations, url))
        elif node_type == "softbreak":
            items.append(_text_item(" ", annotations, url))
        elif node.get("raw"):
            items.append(_text_item(node["raw"], annotations, url))
        elif node.get("children"):
            items.extend(_inline_items(node["children"], annotations, url))

    return items


def _same_style(a: dict, b: dict) -> bool:
    return a.get("annotations") == b.get("annotations") and a["text"].get("link") == b["text"].get("link")


def merge_rich_text(items: list[dict]) -> list[dict]:
    """Join neighbouring segments with identical styling, then enforce the length limit."""
    merged: list[dict] = []
    for item in items:
        if merged and _same_style(merged[-1], item):
            last = merged[-1]
            merged[-1] = {**last, "text": {**last["text"], "content": last["text"]["content"] + item["text"]["content"]}}
        else:
            merged.append(item)

    out = []
    for item in merged:
        for part in _split_content(item["text"]["content"]):
            out.append({**item, "text": {**item["text"], "content": part}})
    return out


def inline_to_rich_text(
    nodes: list[dict],
    annotations: Optional[dict] = None,
    url: Optional[str] = None,
) -> list[dict]:
    """
    Convert mistune inline nodes into Notion rich text objects.

    Args:
        nodes: Inline children of a mistune block node.
        annotations: Annotations inherited from an enclosing span.
        url: Link inherited from an enclosing link span.

    Returns:
        List of rich text objects (possibly empty).
    """
    return merge_rich_text(_inline_items(nodes, annotations or {}, url))


def _block(block_type: str, **content) -> dict:
    return {"object": "block", "type": block_type, block_type: content}


def _paragraph(text: str) -> dict:
    return _block("paragraph", rich_text=text_to_rich_text(text))


def _image_block(node: dict) -> dict:
    """Image block for an absolute URL; anything else degrades to its alt text."""
    url = node.get("attrs", {}).get("url", "")
    alt = plain_text(node.get("children", []))

    if not is_valid_notion_url(url):
        return _paragraph(alt or url)

    image = {"type": "external", "external": {"url": url.strip()}}
    if alt:
        image["caption"] = text_to_rich_text(alt)
    return _block("image", **image)


def notion_language(language: str) -> str:
    """Map a fence info string to a language Notion accepts."""
    words = (language or "").strip().lower().split()
    lang = words[0] if words else ""
    lang = LANGUAGE_ALIASES.get(lang, lang)
    return lang if lang in NOTION_LANGUAGES else "plain text"


# =========================================================================
# Converter
# =========================================================================


class MarkdownConverter:
    """
    Converts Markdown to Notion blocks.

    mistune parses the document into a syntax tree; every block node is
    handed to the handler registered for its type, together with the
    nesting depth of the blocks it produces.
    """

    def __init__(self):
        self._parse = mistune.create_markdown(renderer=None, plugins=MARKDOWN_PLUGINS)
        self._handlers: dict[str, Callable[[dict, int], list[dict]]] = {
            "heading": self._convert_heading,
            "paragraph": self._convert_paragraph,
            "block_text": self._convert_paragraph,
            "block_code": self._convert_code,
            "block_quote": self._convert_quote,
            "list": self._convert_list,
            "thematic_break": self._convert_divider,
            "table": self._convert_table,
            "blank_line": self._skip,
        }

    def convert(self, markdown: str) -> list[dict]:
        """
        Convert a Markdown string to a list of Notion block objects.

        Args:
            markdown: Document body without frontmatter.

        Returns:
            List of block dicts, in document order.
        """
        tokens = self._parse(markdown)
        return self._convert_nodes(tokens if isinstance(tokens, list) else [], 0)

    def _convert_nodes(self, nodes: list[dict], depth: int) -> list[dict]:
        blocks = []
        for node in nodes:
            handler = self._handlers.get(node.get("type"), self._convert_other)
            blocks.extend(handler(node, depth))
        return blocks

    def _attach_children(self, block: dict, nodes: list[dict], depth: int) -> list[dict]:
        """
        Nest converted nodes under block while depth allows; past the limit
        they follow block as siblings.
        """
        if not nodes:
            return [block]
        if depth < MAX_NESTING_DEPTH:
            children = self._convert_nodes(nodes, depth + 1)
            if children:
                block[block["type"]]["children"] = children
            return [block]
        return [block] + self._convert_nodes(nodes, depth)

    @staticmethod
    def _split_text_nodes(nodes: list[dict]) -> tuple[list[dict], list[dict]]:
        """Leading paragraph of a container node and the blocks after it."""
        if nodes and nodes[0].get("type") in ("paragraph", "block_text"):
            return nodes[0].get("children", []), nodes[1:]
        return [], nodes

    # =========================================================================
    # Block type handlers
    # =========================================================================

    def _skip(self, node: dict, depth: int) -> list[dict]:
        return []

    def _convert_heading(self, node: dict, depth: int) -> list[dict]:
        """ATX and setext headings; levels beyond 3 clamp to heading_3."""
        level = min(max(node.get("attrs", {}).get("level", 1), 1), 3)
        return [_block(f"heading_{level}", rich_text=inline_to_rich_text(node.get("children", [])))]

    def _convert_paragraph(self, node: dict, depth: int) -> list[dict]:
        children = node.get("children", [])

        # A paragraph holding nothing but an image becomes an image block
        content = [c for c in children if not (c.get("type") == "text" and not c.get("raw", "").strip())]
        if len(content) == 1 and content[0].get("type") == "image":
            return [_image_block(content[0])]

        rich_text = inline_to_rich_text(children)
        if not rich_text:
            return []
        return [_block("paragraph", rich_text=rich_text)]

    def _convert_code(self, node: dict, depth: int) -> list[dict]:
        language = notion_language(node.get("attrs", {}).get("info", ""))
        code = node.get("raw", "").rstrip("\n")
        return [_block("code", rich_text=text_to_rich_text(code), language=language)]

    def _convert_divider(self, node: dict, depth: int) -> list[dict]:
        return [_block("divider")]

    def _convert_quote(self, node: dict, depth: int) -> list[dict]:
        """Leading paragraphs form the quote text; other content nests below it."""
        children = node.get("children", [])
        items: list[dict] = []
        index = 0

        while index < len(children) and children[index].get("type") in ("paragraph", "block_text", "blank_line"):
            paragraph = children[index].get("children", [])
            if paragraph:
                if items:
                    items.append(_text_item("\n"))
                items.extend(_inline_items(paragraph, {}, None))
            index += 1

        block = _block("quote", rich_text=merge_rich_text(items))
        return self._attach_children(block, children[index:], depth)

    def _convert_list(self, node: dict, depth: int) -> list[dict]:
        ordered = node.get("attrs", {}).get("ordered", False)
        blocks: list[dict] = []

        for item in node.get("children", []):
            text_nodes, rest = self._split_text_nodes(item.get("children", []))
            rich_text = inline_to_rich_text(text_nodes)

            if item.get("type") == "task_list_item":
                block = _block("to_do", rich_text=rich_text, checked=bool(item.get("attrs", {}).get("checked")))
            elif ordered:
                block = _block("numbered_list_item", rich_text=rich_text)
            else:
                block = _block("bulleted_list_item", rich_text=rich_text)

            blocks.extend(self._attach_children(block, rest, depth))

        return blocks

    def _convert_table(self, node: dict, depth: int) -> list[dict]:
        """Pipe tables; rows are padded or cut to the widest row."""
        rows: list[list[dict]] = []
        has_header = False

        for section in node.get("children", []):
            if section.get("type") == "table_head":
                has_header = True
                rows.append(section.get("children", []))
            elif section.get("type") == "table_body":
                rows.extend(row.get("children", []) for row in section.get("children", []))

        if not rows:
            return []

        width = max(len(row) for row in rows)
        children = []
        for row in rows:
            cells = [inline_to_rich_text(cell.get("children", [])) for cell in row]
            cells += [[] for _ in range(width - len(cells))]
            children.append({"object": "block", "type": "table_row", "table_row": {"cells": cells}})

        return [
            _block(
                "table",
                table_width=width,
                has_column_header=has_header,
                has_row_header=False,
                children=children,
            )
        ]

    def _convert_other(self, node: dict, depth: int) -> list[dict]:
        """Raw HTML and unknown nodes are kept as plain text."""
        raw = (node.get("raw") or "").strip()
        if raw:
            return [_paragraph(raw)]
        return self._convert_nodes(node.get("children", []), depth)


# =========================================================================
# Sanitation
# =========================================================================


def is_valid_notion_url(url) -> bool:
    """Notion only accepts absolute http(s) links."""
    if not isinstance(url, str):
        return False
    u = url.strip()
    return u.startswith("http://") or u.startswith("https://")


def sanitize_rich_text(rich_text: list) -> list:
    """Drop links Notion would reject; the text itself is kept."""
    out = []
    for item in rich_text:
        if not isinstance(item, dict) or item.get("type") != "text" or not item.get("text"):
            out.append(item)
            continue

        text = item["text"]
        clean = {**item, "text": {"content": text.get("content") or ""}}
        link = text.get("link")
        if isinstance(link, dict) and is_valid_notion_url(link.get("url")):
            clean["text"]["link"] = {"url": link["url"]}
        out.append(clean)
    return out


def sanitize_blocks(blocks: list) -> list:
    """Sanitize rich text in blocks and, recursively, their children."""
    out = []
    for block in blocks:
        b = dict(block)
        for key, prop in block.items():
            if key == "type" or not isinstance(prop, dict):
                continue

            prop = dict(prop)
            for text_key in ("rich_text", "caption"):
                if isinstance(prop.get(text_key), list):
                    prop[text_key] = sanitize_rich_text(prop[text_key])
            if isinstance(prop.get("cells"), list):
                prop["cells"] = [
                    sanitize_rich_text(cell) if isinstance(cell, list) else cell
                    for cell in prop["cells"]
                ]
            if isinstance(prop.get("children"), list):
                prop["children"] = sanitize_blocks(prop["children"])
            b[key] = prop
        out.append(b)
    return out


def ensure_blocks_list(blocks) -> list:
    """Notion rejects empty children lists; substitute a placeholder."""
    if not isinstance(blocks, list) or not blocks:
        return [_paragraph(PLACEHOLDER_TEXT)]
    return blocks


def convert_markdown_to_notion_blocks(
    markdown_content: str,
    converter: Optional[MarkdownConverter] = None,
) -> list[dict]:
    """
    Convert Markdown to sanitized Notion blocks. Never raises.

    Args:
        markdown_content: Document body.
        converter: Converter to use; a fresh MarkdownConverter by default.

    Returns:
        Non-empty list of block dicts.
    """
    content = markdown_content if isinstance(markdown_content, str) else ""
    converter = converter or MarkdownConverter()

    try:
        blocks = converter.convert(content)
    except Exception as e:
        console.print(f"[yellow]Warning: Markdown conversion failed, uploading raw text: {e}[/yellow]")
        blocks = [_paragraph(content[:MAX_TEXT_LENGTH] or EMPTY_BODY_TEXT)]

    return sanitize_blocks(ensure_blocks_list(blocks))
