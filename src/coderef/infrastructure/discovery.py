"""Markdown discovery: resolve CLI targets to documents, honouring ignore files."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from pathspec import GitIgnoreSpec

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

# Directories never descended into.
_EXCLUDE_DIRS = frozenset({"node_modules", ".git", "__pycache__", ".venv", "venv"})


def find_markdown_files(directory: Path) -> list[Path]:
    """Return every ``*.md`` file below *directory*, sorted."""
    if not directory.is_dir():
        return []
    return sorted(
        path
        for path in directory.rglob("*.md")
        if path.is_file()
        and not any(part in _EXCLUDE_DIRS for part in path.relative_to(directory).parts)
    )


def load_ignore_patterns(ignore_file: Path | None) -> list[str]:
    """Read gitignore-style patterns, skipping blank lines and ``#`` comments."""
    if ignore_file is None or not ignore_file.is_file():
        return []
    patterns: list[str] = []
    for raw in ignore_file.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if line and not line.startswith("#"):
            patterns.append(line)
    return patterns


def compile_ignore_spec(patterns: Iterable[str]) -> GitIgnoreSpec:
    """Compile gitignore-style patterns (``dir/``, ``**``, ``!negation``, ``/anchored``)."""
    return GitIgnoreSpec.from_lines(list(patterns))


def is_ignored(relative_path: str, spec: GitIgnoreSpec) -> bool:
    """Check a POSIX-style project-relative path against a compiled ignore spec."""
    return spec.match_file(relative_path)


def resolve_targets(
    targets: list[str] | tuple[str, ...],
    project_root: Path,
    docs_path: Path,
    ignore_patterns: Iterable[str] | None = None,
) -> list[Path]:
    """Resolve CLI targets (files or directories) to markdown documents.

    With no targets, the whole docs directory is used.  Missing targets are
    logged and skipped; ignored documents are dropped.
    """
    candidates: list[Path] = []
    if not targets:
        candidates = find_markdown_files(docs_path)
    for target in targets:
        path = Path(target)
        if not path.is_absolute():
            path = project_root / path
        if path.is_dir():
            candidates.extend(find_markdown_files(path))
        elif path.is_file():
            if path.suffix == ".md":
                candidates.append(path)
        else:
            logger.warning("File not found: %s", target)

    spec = compile_ignore_spec(ignore_patterns or ())
    seen: set[Path] = set()
    result: list[Path] = []
    for path in candidates:
        resolved = path.resolve()
        if resolved in seen:
            continue
        seen.add(resolved)
        try:
            relative = resolved.relative_to(project_root.resolve()).as_posix()
        except ValueError:
            relative = resolved.as_posix()
        if is_ignored(relative, spec):
            logger.debug("Ignored %s", relative)
            continue
        result.append(path)
    return result
