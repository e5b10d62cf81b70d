"""
Configuration management for Markdown → Notion sync.

Loads settings from environment variables (or a .env file) and provides
structured configuration for all sync components. When running as a
GitHub Action, the ``INPUT_*`` variables set for action inputs are used
as fallbacks.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

SYNC_MODES = ("changed", "all")
DEFAULT_CONCURRENCY = 3


def _getenv(name: str, input_name: str, default: Optional[str] = None) -> Optional[str]:
    """Read NAME, falling back to the Actions input variable INPUT_<INPUT-NAME>."""
    value = os.getenv(name)
    if value:
        return value
    value = os.getenv(f"INPUT_{input_name.upper()}")
    if value:
        return value
    return default


def repo_root_from_env() -> Path:
    """Checkout root: GITHUB_WORKSPACE, then REPO_ROOT, then the working directory."""
    value = os.getenv("GITHUB_WORKSPACE") or os.getenv("REPO_ROOT")
    return Path(value) if value else Path.cwd()


def docs_dir_from_env() -> str:
    return _getenv("DOCS_DIR", "docs-dir", "docs")


def resolve_docs_path(docs_dir: str, repo_root: Path) -> Path:
    """Absolute docs directory; relative paths are taken from repo_root."""
    path = Path(docs_dir)
    return path if path.is_absolute() else Path(repo_root) / path


@dataclass
class Config:
    """
    Settings for one sync run.

    The Notion token and root page come from the environment only.
    """

    # Notion settings
    notion_token: str
    notion_parent_page_id: str

    # Paths
    docs_dir: str = "docs"
    repo_root: Path = field(default_factory=lambda: Path.cwd())

    # Change selection
    sync_mode: str = "changed"
    git_before: str = ""
    git_after: str = ""

    # Sync behavior
    concurrency: int = DEFAULT_CONCURRENCY
    debug: bool = False

    @property
    def docs_path(self) -> Path:
        """Absolute path to the docs directory."""
        return resolve_docs_path(self.docs_dir, self.repo_root)

    @property
    def docs_prefix(self) -> str:
        """
        Docs directory as it appears in ``git diff`` output.

        Examples:
            "docs"    -> "docs/"
            "./docs/" -> "docs/"
        """
        cleaned = self.docs_dir.replace("\\", "/")
        if cleaned.startswith("./"):
            cleaned = cleaned[2:]
        return cleaned if cleaned.endswith("/") else f"{cleaned}/"

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "Config":
        """
        Build a Config from the process environment.

        Args:
            env_file: .env file to load first; the nearest .env when omitted.

        Returns:
            Config with every field resolved.

        Raises:
            ValueError: If required environment variables are missing
                        or a value is malformed.
        """
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        notion_token = _getenv("NOTION_TOKEN", "notion-token")
        if not notion_token:
            raise ValueError(
                "NOTION_TOKEN environment variable is required.\n"
                "Create a Notion integration at https://www.notion.so/my-integrations"
            )

        notion_parent_page_id = _getenv("NOTION_PARENT_PAGE_ID", "notion-parent-page-id")
        if not notion_parent_page_id:
            raise ValueError(
                "NOTION_PARENT_PAGE_ID environment variable is required.\n"
                "This should be the ID of the Notion page that will hold the docs."
            )

        # Stored undashed; NotionAPI re-dashes ids per request
        notion_parent_page_id = notion_parent_page_id.strip().replace("-", "")

        concurrency_str = _getenv("CONCURRENCY", "concurrency", str(DEFAULT_CONCURRENCY))
        try:
            concurrency = int(concurrency_str)
        except ValueError:
            raise ValueError(f"CONCURRENCY must be an integer, got {concurrency_str!r}") from None

        return cls(
            notion_token=notion_token,
            notion_parent_page_id=notion_parent_page_id,
            docs_dir=docs_dir_from_env(),
            repo_root=repo_root_from_env(),
            sync_mode=_getenv("SYNC_MODE", "sync-mode", "changed"),
            git_before=_getenv("GIT_BEFORE", "git-before", ""),
            git_after=_getenv("GIT_AFTER", "git-after", ""),
            concurrency=concurrency,
            debug=os.getenv("DEBUG", "false").lower() == "true",
        )

    def __post_init__(self):
        """Validate configuration after initialization."""
        if isinstance(self.repo_root, str):
            self.repo_root = Path(self.repo_root)

        self.sync_mode = (self.sync_mode or "changed").strip().lower()
        if self.sync_mode not in SYNC_MODES:
            raise ValueError(
                f"SYNC_MODE must be one of {', '.join(SYNC_MODES)}, got {self.sync_mode!r}"
            )

        self.concurrency = max(1, int(self.concurrency))
