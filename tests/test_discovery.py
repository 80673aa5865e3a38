"""Tests for coderef.infrastructure.discovery — markdown discovery and ignore files."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from coderef.infrastructure.discovery import (
    compile_ignore_spec,
    find_markdown_files,
    is_ignored,
    load_ignore_patterns,
    resolve_targets,
)

if TYPE_CHECKING:
    from pathlib import Path


def _touch(path: Path, content: str = "# doc\n") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


class TestFindMarkdownFiles:
    def test_recursive_and_sorted(self, tmp_path: Path) -> None:
        b = _touch(tmp_path / "b.md")
        a = _touch(tmp_path / "sub" / "a.md")
        _touch(tmp_path / "notes.txt")
        assert find_markdown_files(tmp_path) == sorted([a, b])

    def test_excluded_directories(self, tmp_path: Path) -> None:
        keep = _touch(tmp_path / "guide.md")
        _touch(tmp_path / "node_modules" / "pkg" / "README.md")
        _touch(tmp_path / ".git" / "x.md")
        assert find_markdown_files(tmp_path) == [keep]

    def test_missing_directory(self, tmp_path: Path) -> None:
        assert find_markdown_files(tmp_path / "nope") == []


class TestIgnorePatterns:
    def test_load(self, tmp_path: Path) -> None:
        ignore = tmp_path / ".docsignore"
        ignore.write_text("# comment\n\ndrafts/\n*.tmp.md\n", encoding="utf-8")
        assert load_ignore_patterns(ignore) == ["drafts/", "*.tmp.md"]

    def test_load_missing(self, tmp_path: Path) -> None:
        assert load_ignore_patterns(tmp_path / ".docsignore") == []
        assert load_ignore_patterns(None) == []

    @pytest.mark.parametrize(
        ("path", "patterns", "expected"),
        [
            ("docs/drafts/a.md", ["docs/drafts/"], True),
            ("docs/guide.md", ["docs/drafts/"], False),
            ("docs/drafts/a.md", ["drafts/"], True),
            ("docs/drafts.md", ["drafts/"], False),
            ("docs/x.tmp.md", ["*.tmp.md"], True),
            ("docs/deep/x.tmp.md", ["*.tmp.md"], True),
            ("docs/api/index.md", ["docs/*/index.md"], True),
            ("docs/keep.md", ["docs/*.md", "!docs/keep.md"], False),
            ("docs/other.md", ["docs/*.md", "!docs/keep.md"], True),
            ("docs/a.md", ["/docs/a.md"], True),
            ("guides/docs/a.md", ["/docs/a.md"], False),
            ("docs/sub/x.md", ["docs/*.md"], False),
            ("docs/a/b/x.md", ["docs/**/x.md"], True),
            ("docs/x.md", ["docs/**/x.md"], True),
            ("docs/drafts/keep.md", ["drafts/", "!drafts/keep.md"], True),
            ("docs/a.md", [], False),
        ],
    )
    def test_is_ignored(self, path: str, patterns: list[str], expected: bool) -> None:
        assert is_ignored(path, compile_ignore_spec(patterns)) is expected


class TestResolveTargets:
    def test_default_docs_dir(self, tmp_path: Path) -> None:
        a = _touch(tmp_path / "docs" / "a.md")
        _touch(tmp_path / "README.md")
        assert resolve_targets((), tmp_path, tmp_path / "docs") == [a]

    def test_explicit_file_and_dir(self, tmp_path: Path) -> None:
        readme = _touch(tmp_path / "README.md")
        a = _touch(tmp_path / "guides" / "a.md")
        result = resolve_targets(("README.md", "guides"), tmp_path, tmp_path / "docs")
        assert result == [readme, a]

    def test_duplicates_removed(self, tmp_path: Path) -> None:
        a = _touch(tmp_path / "docs" / "a.md")
        result = resolve_targets(("docs", "docs/a.md"), tmp_path, tmp_path / "docs")
        assert result == [a]

    def test_missing_target_skipped(self, tmp_path: Path, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level("WARNING"):
            assert resolve_targets(("nope.md",), tmp_path, tmp_path / "docs") == []
        assert "nope.md" in caplog.text

    def test_non_markdown_file_skipped(self, tmp_path: Path) -> None:
        _touch(tmp_path / "notes.txt")
        assert resolve_targets(("notes.txt",), tmp_path, tmp_path / "docs") == []

    def test_ignore_patterns_applied(self, tmp_path: Path) -> None:
        keep = _touch(tmp_path / "docs" / "a.md")
        _touch(tmp_path / "docs" / "drafts" / "b.md")
        result = resolve_targets((), tmp_path, tmp_path / "docs", ["docs/drafts/"])
        assert result == [keep]

    def test_single_star_stays_in_directory(self, tmp_path: Path) -> None:
        _touch(tmp_path / "docs" / "a.md")
        nested = _touch(tmp_path / "docs" / "sub" / "b.md")
        result = resolve_targets((), tmp_path, tmp_path / "docs", ["docs/*.md"])
        assert result == [nested]
