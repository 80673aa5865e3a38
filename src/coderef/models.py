"""Data model shared by the scanner, resolver, validator and fix planner.

Every object here is built fresh for a single validation (or fix) pass and
is immutable once created.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path


@dataclass(frozen=True)
class CodeRange:
    """Half-open ``[start, end)`` character offsets inside a document."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start > self.end:
            msg = f"CodeRange start {self.start} is after end {self.end}"
            raise ValueError(msg)

    def contains(self, offset: int) -> bool:
        return self.start <= offset < self.end

    def overlaps(self, other: CodeRange) -> bool:
        return self.start < other.end and other.start < self.end


# ---------------------------------------------------------------------------
# Target specifications
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LineHint:
    """A ``start-end`` line pair written in a marker (1-indexed, inclusive)."""

    start: int
    end: int

    def __str__(self) -> str:
        return f"{self.start}-{self.end}"


@dataclass(frozen=True)
class LineRange:
    """``path:start-end``: literal lines of a file."""

    file: str
    start_line: int
    end_line: int

    @property
    def claimed_lines(self) -> LineHint:
        return LineHint(self.start_line, self.end_line)

    def __str__(self) -> str:
        return f"{self.file}:{self.start_line}-{self.end_line}"


@dataclass(frozen=True)
class Symbol:
    """``path#name``: a top-level function, variable or type."""

    file: str
    name: str
    line_hint: LineHint | None = None

    @property
    def claimed_lines(self) -> LineHint | None:
        return self.line_hint

    def __str__(self) -> str:
        suffix = f":{self.line_hint}" if self.line_hint else ""
        return f"{self.file}#{self.name}{suffix}"


@dataclass(frozen=True)
class ClassMethod:
    """``path#Class#method``: a method of a named class."""

    file: str
    class_name: str
    method_name: str
    line_hint: LineHint | None = None

    @property
    def claimed_lines(self) -> LineHint | None:
        return self.line_hint

    def __str__(self) -> str:
        suffix = f":{self.line_hint}" if self.line_hint else ""
        return f"{self.file}#{self.class_name}#{self.method_name}{suffix}"


TargetSpec = LineRange | Symbol | ClassMethod


# ---------------------------------------------------------------------------
# References found in documents
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CapturedBlock:
    """Verbatim content of the fenced block that follows a marker."""

    content: str
    language: str | None
    content_range: CodeRange
    closed: bool = True


@dataclass(frozen=True)
class Reference:
    """One live ``CODE_REF`` marker occurrence in a document.

    ``target`` is ``None`` when the payload could not be parsed; the reason
    is then stored in ``parse_error``.  ``lines_range`` locates the
    ``start-end`` text inside the marker so fixes can rewrite it in place.
    """

    document: Path
    offset: int
    line: int
    marker: str
    target: TargetSpec | None
    following_block: CapturedBlock | None = None
    lines_range: CodeRange | None = None
    parse_error: str | None = None

    @property
    def location(self) -> str:
        return f"{self.document}:{self.line}"


@dataclass(frozen=True)
class ResolvedSpan:
    """Exact source text designated by a target specification."""

    file: str
    start_line: int
    end_line: int
    content: str

    @property
    def lines(self) -> LineHint:
        return LineHint(self.start_line, self.end_line)


# ---------------------------------------------------------------------------
# Validation outcomes
# ---------------------------------------------------------------------------


class MismatchKind(enum.Enum):
    """Reference-level error taxonomy."""

    CODE_LOCATION_MISMATCH = "CODE_LOCATION_MISMATCH"
    CODE_BLOCK_MISSING = "CODE_BLOCK_MISSING"
    CODE_CONTENT_MISMATCH = "CODE_CONTENT_MISMATCH"
    SYMBOL_NOT_FOUND = "SYMBOL_NOT_FOUND"
    FILE_NOT_FOUND = "FILE_NOT_FOUND"
    MALFORMED_REFERENCE = "MALFORMED_REFERENCE"
    LINE_OUT_OF_RANGE = "LINE_OUT_OF_RANGE"

    @property
    def auto_fixable(self) -> bool:
        return self in _AUTO_FIXABLE


_AUTO_FIXABLE = frozenset(
    {MismatchKind.CODE_LOCATION_MISMATCH, MismatchKind.CODE_CONTENT_MISMATCH}
)


@dataclass(frozen=True)
class Valid:
    """The documented block agrees with the source."""

    reference: Reference
    resolved: ResolvedSpan

    ok = True


@dataclass(frozen=True)
class Mismatch:
    """The documented block disagrees with the source, or cannot be checked."""

    kind: MismatchKind
    reference: Reference
    message: str
    resolved: ResolvedSpan | None = None

    ok = False


ValidationResult = Valid | Mismatch


@dataclass(frozen=True)
class DocumentError:
    """A document that could not be processed at all."""

    document: Path
    reason: str


@dataclass(frozen=True)
class FixEdit:
    """A textual substitution that resolves (part of) one mismatch."""

    document: Path
    range: CodeRange
    replacement: str
    kind: MismatchKind
    description: str
    reference: Reference | None = None
