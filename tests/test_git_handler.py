"""Unit tests for docs_to_notion.git_handler."""

import shutil
import subprocess
from unittest.mock import patch

import pytest

from docs_to_notion.git_handler import GitHandler


def completed(stdout: str) -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=["git"], returncode=0, stdout=stdout, stderr="")


class TestGetChangedMdPaths:

    @pytest.fixture
    def handler(self, config):
        return GitHandler(config)

    @patch("docs_to_notion.git_handler.subprocess.run")
    def test_filters_to_markdown_under_prefix(self, mock_run, handler):
        mock_run.return_value = completed(
            "docs/guides/setup.md\n"
            "docs/intro.MD\n"
            "docs/image.png\n"
            "src/readme.md\n"
            "docs/guides/setup.md\n"
            "\n"
            "docs\\windows.md\n"
        )

        paths = handler.get_changed_md_paths("abc", "def", "docs/")

        assert paths == ["guides/setup.md", "intro.MD", "windows.md"]
        cmd = mock_run.call_args[0][0]
        assert cmd[-4:] == ["diff", "--name-only", "abc", "def"]
        assert cmd[:3] == ["git", "-C", str(handler.repo_root)]

    @patch("docs_to_notion.git_handler.subprocess.run")
    def test_prefix_without_trailing_slash(self, mock_run, handler):
        mock_run.return_value = completed("docs/a.md\ndocsextra/b.md\n")

        assert handler.get_changed_md_paths("abc", "def", "docs") == ["a.md"]

    @patch("docs_to_notion.git_handler.subprocess.run")
    def test_empty_diff(self, mock_run, handler):
        mock_run.return_value = completed("")

        assert handler.get_changed_md_paths("abc", "def", "docs/") == []

    @patch("docs_to_notion.git_handler.subprocess.run")
    def test_unknown_revision_returns_none(self, mock_run, handler):
        mock_run.side_effect = subprocess.CalledProcessError(128, ["git", "diff"])

        assert handler.get_changed_md_paths("0000000", "def", "docs/") is None

    @patch("docs_to_notion.git_handler.subprocess.run")
    def test_other_failures_propagate(self, mock_run, handler):
        mock_run.side_effect = subprocess.CalledProcessError(1, ["git", "diff"])

        with pytest.raises(subprocess.CalledProcessError):
            handler.get_changed_md_paths("abc", "def", "docs/")

    @patch("docs_to_notion.git_handler.subprocess.run")
    def test_disables_path_quoting(self, mock_run, handler):
        mock_run.return_value = completed("docs/café.md\n")

        assert handler.get_changed_md_paths("abc", "def", "docs/") == ["café.md"]
        cmd = mock_run.call_args[0][0]
        assert cmd[3:5] == ["-c", "core.quotePath=false"]


def git(repo, *args) -> str:
    result = subprocess.run(
        ["git", "-C", str(repo), "-c", "user.name=Docs", "-c", "user.email=docs@example.com", *args],
        capture_output=True,
        text=True,
        encoding="utf-8",
        check=True,
    )
    return result.stdout.strip()


@pytest.mark.skipif(shutil.which("git") is None, reason="git is not installed")
class TestAgainstRepository:
    """Diffs computed by a real git binary."""

    def test_non_ascii_file_name(self, config, docs_dir, tmp_path):
        git(tmp_path, "init", "-q")
        (docs_dir / "intro.md").write_text("# Intro\n", encoding="utf-8")
        git(tmp_path, "add", "-A")
        git(tmp_path, "commit", "-q", "-m", "first")
        before = git(tmp_path, "rev-parse", "HEAD")

        (docs_dir / "café.md").write_text("# Café\n", encoding="utf-8")
        (docs_dir / "intro.md").write_text("# Intro v2\n", encoding="utf-8")
        git(tmp_path, "add", "-A")
        git(tmp_path, "commit", "-q", "-m", "second")
        after = git(tmp_path, "rev-parse", "HEAD")

        paths = GitHandler(config).get_changed_md_paths(before, after, "docs/")

        assert sorted(paths) == ["café.md", "intro.md"]

    def test_unknown_revision(self, config, tmp_path):
        git(tmp_path, "init", "-q")
        git(tmp_path, "commit", "-q", "--allow-empty", "-m", "first")

        assert GitHandler(config).get_changed_md_paths("0" * 40, "HEAD", "docs/") is None
