"""Reference scanner: extract live CODE_REF markers from markdown documents.

A marker looks like ``<!-- CODE_REF: src/a.ts#User#getName:10-14 -->``.
Markers that sit inside fenced or inline code are documentation *about*
the marker syntax and are skipped.  For every live marker the fenced block
that immediately follows it (blank lines only in between) is captured
verbatim.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from coderef.doc_sync.fences import FenceMap
from coderef.errors import DocumentReadError
from coderef.models import (
    CapturedBlock,
    ClassMethod,
    CodeRange,
    LineHint,
    LineRange,
    Reference,
    Symbol,
    TargetSpec,
)

logger = logging.getLogger(__name__)

MARKER_RE = re.compile(r"<!--\s*CODE_REF:\s*(?P<payload>[^\n]*?)\s*-->")

_PAYLOAD_RE = re.compile(
    r"^(?P<path>[^\s:#]+)"
    r"(?:#(?P<first>[^\s:#]*)(?:#(?P<second>[^\s:#]*))?)?"
    r"(?::(?P<lines>(?P<start>\d+)-(?P<end>\d+)))?$"
)

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_$][\w$]*$")


class PayloadError(ValueError):
    """Raised when a marker payload cannot be turned into a target spec."""


@dataclass(frozen=True)
class ParsedPayload:
    """A target spec plus where its ``start-end`` text sits in the payload."""

    target: TargetSpec
    lines_span: tuple[int, int] | None


def parse_payload(payload: str) -> ParsedPayload:
    """Parse a marker payload into a :class:`TargetSpec`.

    Accepted forms::

        path:start-end
        path#name[:start-end]
        path#Class#method[:start-end]

    Raises
    ------
    PayloadError
        When the payload matches none of the forms, names are not valid
        identifiers, or the line range is not ``1 <= start <= end``.
    """
    match = _PAYLOAD_RE.match(payload)
    if match is None:
        msg = f"cannot parse CODE_REF payload {payload!r}"
        raise PayloadError(msg)

    path = match.group("path")
    first = match.group("first")
    second = match.group("second")

    hint: LineHint | None = None
    lines_span: tuple[int, int] | None = None
    if match.group("lines") is not None:
        start, end = int(match.group("start")), int(match.group("end"))
        if start < 1:
            msg = f"line numbers are 1-indexed, got start line {start}"
            raise PayloadError(msg)
        if start > end:
            msg = f"start line {start} is greater than end line {end}"
            raise PayloadError(msg)
        hint = LineHint(start, end)
        lines_span = match.span("lines")

    for name in (first, second):
        if name is not None and not _IDENTIFIER_RE.match(name):
            msg = f"invalid symbol name {name!r} in {payload!r}"
            raise PayloadError(msg)

    target: TargetSpec
    if first is None:
        if hint is None:
            msg = f"{payload!r} needs a ':start-end' or '#symbol' selector"
            raise PayloadError(msg)
        target = LineRange(path, hint.start, hint.end)
    elif second is None:
        target = Symbol(path, first, hint)
    else:
        target = ClassMethod(path, first, second, hint)
    return ParsedPayload(target, lines_span)


def capture_following_block(
    text: str, fence_map: FenceMap, marker_end: int
) -> CapturedBlock | None:
    """Return the fenced block right after a marker, or ``None``.

    Only whitespace may separate the end of the marker from the opening
    fence; any prose in between means the marker has no block.
    """
    block = fence_map.next_block(marker_end)
    if block is None:
        return None
    if text[marker_end:block.start].strip():
        return None
    return CapturedBlock(
        content=text[block.content_start:block.content_end],
        language=block.language,
        content_range=block.content_range,
        closed=block.closed,
    )


class ReferenceScanner:
    """Finds live CODE_REF references in markdown text."""

    def scan(self, text: str, document: Path) -> list[Reference]:
        """Return live references in document order."""
        fence_map = FenceMap(text)
        references: list[Reference] = []
        skipped = 0

        for match in MARKER_RE.finditer(text):
            if fence_map.is_code(match.start()):
                skipped += 1
                continue

            line = text.count("\n", 0, match.start()) + 1
            payload = match.group("payload")
            try:
                parsed = parse_payload(payload)
            except PayloadError as exc:
                references.append(
                    Reference(
                        document=document,
                        offset=match.start(),
                        line=line,
                        marker=match.group(),
                        target=None,
                        parse_error=str(exc),
                    )
                )
                continue

            lines_range: CodeRange | None = None
            if parsed.lines_span is not None:
                base = match.start("payload")
                lines_range = CodeRange(
                    base + parsed.lines_span[0], base + parsed.lines_span[1]
                )

            references.append(
                Reference(
                    document=document,
                    offset=match.start(),
                    line=line,
                    marker=match.group(),
                    target=parsed.target,
                    following_block=capture_following_block(text, fence_map, match.end()),
                    lines_range=lines_range,
                )
            )

        if skipped:
            logger.debug("%s: skipped %d marker(s) inside code", document, skipped)
        return references

    def scan_file(self, path: Path) -> list[Reference]:
        """Read a markdown file and return its live references.

        Raises
        ------
        DocumentReadError
            When the file is missing or cannot be decoded as UTF-8.
        """
        return self.scan(read_document(path), path)


def read_document(path: Path) -> str:
    """Read a markdown document exactly as stored (no newline translation)."""
    try:
        with Path(path).open(encoding="utf-8", newline="") as fh:
            return fh.read()
    except (OSError, UnicodeDecodeError) as exc:
        raise DocumentReadError(path, str(exc)) from exc
