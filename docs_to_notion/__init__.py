"""
Markdown → Notion Sync Engine

Mirrors a directory of Markdown documents into a tree of Notion pages,
recording each page id in the document's frontmatter so later runs
update the same page.
"""

__version__ = "1.0.0"
