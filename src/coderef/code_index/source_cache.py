"""Per-run cache of source files and their syntax trees.

A file referenced by many markers (or many documents) is read and parsed
once.  Each key is populated at most once, guarded by a per-key lock, so a
single cache can be shared by concurrent validation workers.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Generic, TypeVar

from coderef.code_index.languages import get_lang_config, parse_source
from coderef.errors import CodeRefError

if TYPE_CHECKING:
    from collections.abc import Callable

    from tree_sitter import Tree

    from coderef.code_index.languages import LangConfig

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SourceUnavailableError(CodeRefError):
    """Raised when a source file cannot be read or parsed."""


@dataclass(frozen=True)
class SourceFile:
    """Text of one source file, kept exactly as stored on disk."""

    path: Path
    text: str
    lines: list[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "lines", self.text.split("\n"))

    @property
    def line_count(self) -> int:
        return len(self.lines)

    @property
    def last_line(self) -> int:
        """Number of the last real line; a final newline does not open another one."""
        if self.text.endswith("\n"):
            return self.line_count - 1
        return self.line_count

    def line_slice(self, start_line: int, end_line: int) -> str:
        """Return lines ``start_line..end_line`` (1-indexed, inclusive) verbatim.

        The text is exactly what the file holds for those lines, including
        the newline that ends ``end_line`` when the file has one there.
        """
        text = "\n".join(self.lines[start_line - 1:end_line])
        if end_line < self.line_count:
            text += "\n"
        return text


@dataclass(frozen=True)
class ParsedSource:
    """A source file together with its syntax tree."""

    source: SourceFile
    tree: Tree
    config: LangConfig


class _Slot(Generic[T]):
    """Populate-once holder for one cache key."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.done = False
        self.value: T | None = None
        self.error: str | None = None


class SourceCache:
    """Thread-safe, populate-once cache keyed by absolute file path."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._sources: dict[Path, _Slot[SourceFile]] = {}
        self._trees: dict[Path, _Slot[ParsedSource]] = {}
        self.parse_count = 0

    def _slot(self, table: dict[Path, _Slot[T]], key: Path) -> _Slot[T]:
        with self._lock:
            slot = table.get(key)
            if slot is None:
                slot = _Slot()
                table[key] = slot
            return slot

    def _get_once(
        self, table: dict[Path, _Slot[T]], key: Path, loader: Callable[[Path], T]
    ) -> T:
        slot = self._slot(table, key)
        with slot.lock:
            if not slot.done:
                try:
                    slot.value = loader(key)
                except SourceUnavailableError as exc:
                    slot.error = str(exc)
                slot.done = True
        if slot.error is not None:
            raise SourceUnavailableError(slot.error)
        assert slot.value is not None
        return slot.value

    def source(self, path: Path) -> SourceFile:
        """Return the text of *path*.

        Raises
        ------
        SourceUnavailableError
            When the file does not exist or is not UTF-8 text.
        """
        return self._get_once(self._sources, path, _read_source)

    def parsed(self, path: Path) -> ParsedSource:
        """Return the syntax tree of *path*, parsing it on first use.

        Raises
        ------
        SourceUnavailableError
            When the file cannot be read, has no grammar, or contains
            syntax errors.
        """
        return self._get_once(self._trees, path, self._parse)

    def _parse(self, path: Path) -> ParsedSource:
        source = self.source(path)
        config = get_lang_config(path.suffix)
        if config is None:
            msg = f"No tree-sitter grammar available for {path.suffix} files"
            raise SourceUnavailableError(msg)

        tree = parse_source(source.text, config)
        with self._lock:
            self.parse_count += 1
        if tree.root_node.has_error:
            msg = f"Syntax error while parsing {path}"
            raise SourceUnavailableError(msg)
        logger.debug("Parsed %s", path)
        return ParsedSource(source=source, tree=tree, config=config)

    def clear(self) -> None:
        with self._lock:
            self._sources.clear()
            self._trees.clear()


def _read_source(path: Path) -> SourceFile:
    if not path.is_file():
        msg = f"Referenced file not found: {path}"
        raise SourceUnavailableError(msg)
    try:
        with path.open(encoding="utf-8", newline="") as fh:
            text = fh.read()
    except (OSError, UnicodeDecodeError) as exc:
        msg = f"Cannot read {path}: {exc}"
        raise SourceUnavailableError(msg) from exc
    return SourceFile(path=path, text=text)
