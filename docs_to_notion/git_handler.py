"""
Git operations handler for the sync system.

Finds the Markdown files that changed between two commits so a push only
syncs the documents it touched.
"""

import subprocess
from pathlib import Path
from typing import Optional

from rich.console import Console

from .config import Config

console = Console()

# git exits with 128 for unknown revisions, e.g. a shallow clone missing
# the "before" commit or the all-zero sha of a newly pushed branch
GIT_FATAL_EXIT_CODE = 128


class GitHandler:
    """Runs git commands against the repository holding the docs."""

    def __init__(self, config: Config):
        """
        Initialize git handler.

        Args:
            config: Configuration instance.
        """
        self.config = config
        self.repo_root = Path(config.repo_root)

    def _run_git(
        self,
        *args: str,
        capture_output: bool = True,
        check: bool = True,
    ) -> subprocess.CompletedProcess:
        """Run a git command."""
        cmd = ["git", "-C", str(self.repo_root)] + list(args)

        if self.config.debug:
            console.print(f"[dim]Running: {' '.join(cmd)}[/dim]")

        return subprocess.run(
            cmd,
            capture_output=capture_output,
            text=True,
            encoding="utf-8",
            check=check,
        )

    def get_changed_md_paths(
        self,
        base_ref: str,
        head_ref: str,
        docs_prefix: str,
    ) -> Optional[list[str]]:
        """
        Markdown files under docs_prefix that changed between two refs.

        Parses ``git diff --name-only`` output; one path per line.

        Args:
            base_ref: Ref before the push.
            head_ref: Ref after the push.
            docs_prefix: Docs directory relative to the repo root, with a
                         trailing slash (e.g. "docs/").

        Returns:
            Paths relative to docs_prefix, deduplicated in diff order, or
            None when git cannot compute the diff (caller syncs everything).

        Raises:
            subprocess.CalledProcessError: For git failures other than an
                                           unknown revision.
        """
        prefix = docs_prefix if docs_prefix.endswith("/") else f"{docs_prefix}/"

        try:
            # Unquoted output, so non-ASCII names arrive as UTF-8 text
            result = self._run_git("-c", "core.quotePath=false", "diff", "--name-only", base_ref, head_ref)
        except subprocess.CalledProcessError as e:
            if e.returncode == GIT_FATAL_EXIT_CODE:
                console.print(
                    "[yellow]Warning: git diff failed (maybe shallow clone or invalid ref). "
                    "Falling back to syncing all docs.[/yellow]"
                )
                return None
            raise

        rel_paths: list[str] = []
        for line in result.stdout.splitlines():
            path = line.strip().replace("\\", "/")
            if not path or not path.lower().endswith(".md"):
                continue
            if path in (prefix, prefix[:-1]):
                continue
            if path.startswith(prefix):
                rel_path = path[len(prefix):]
                if rel_path not in rel_paths:
                    rel_paths.append(rel_path)

        return rel_paths
