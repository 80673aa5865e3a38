"""Fence map: locate fenced code blocks and inline code spans in markdown.

Used by the reference scanner to tell live ``CODE_REF`` markers apart from
markers that are quoted as examples inside code.
"""

from __future__ import annotations

import bisect
import re
from dataclasses import dataclass

from coderef.models import CodeRange

# A maximal run of three or more backticks, or of three or more tildes.
_FENCE_RUN_RE = re.compile(r"`{3,}|~{3,}")

# Single-backtick inline code, never spanning lines.
_INLINE_CODE_RE = re.compile(r"`[^`\n]+`")


@dataclass(frozen=True)
class FencedBlock:
    """A fenced code block (possibly unclosed) found in a document."""

    fence_char: str
    fence_length: int
    start: int
    end: int
    info: str
    content_start: int
    content_end: int
    closed: bool

    @property
    def range(self) -> CodeRange:
        return CodeRange(self.start, self.end)

    @property
    def content_range(self) -> CodeRange:
        return CodeRange(self.content_start, self.content_end)

    @property
    def language(self) -> str | None:
        words = self.info.split()
        return words[0] if words else None


def _line_end(text: str, offset: int) -> int:
    """Offset of the newline ending the line that contains *offset*."""
    pos = text.find("\n", offset)
    return len(text) if pos == -1 else pos


def _build_block(
    text: str,
    opening: re.Match[str],
    closing: re.Match[str] | None,
) -> FencedBlock:
    run = opening.group()
    close_start = closing.start() if closing is not None else len(text)

    eol = _line_end(text, opening.end())
    if eol < close_start:
        info = text[opening.end():eol]
        content_start = eol + 1
    else:
        # Opening and closing fence on the same line.
        info = text[opening.end():close_start]
        content_start = close_start

    content_end = close_start
    if closing is not None:
        line_start = text.rfind("\n", 0, close_start) + 1
        if line_start >= content_start and not text[line_start:close_start].strip():
            content_end = line_start

    return FencedBlock(
        fence_char=run[0],
        fence_length=len(run),
        start=opening.start(),
        end=closing.end() if closing is not None else len(text),
        info=info.strip(),
        content_start=content_start,
        content_end=max(content_start, content_end),
        closed=closing is not None,
    )


def scan_fenced_blocks(text: str) -> list[FencedBlock]:
    """Pair fence runs into blocks with a single forward scan.

    A run opens a block; only a later run of the same character and exactly
    the same length closes it.  Any other run met while a block is open is
    plain text.  A block left open extends to the end of the document.
    """
    blocks: list[FencedBlock] = []
    opening: re.Match[str] | None = None

    for match in _FENCE_RUN_RE.finditer(text):
        if opening is None:
            opening = match
            continue
        if match.group() == opening.group():
            blocks.append(_build_block(text, opening, match))
            opening = None

    if opening is not None:
        blocks.append(_build_block(text, opening, None))
    return blocks


def scan_inline_spans(text: str, blocks: list[FencedBlock]) -> list[CodeRange]:
    """Find single-backtick inline code in the text between fenced blocks."""
    spans: list[CodeRange] = []
    pos = 0
    for block in [*blocks, None]:
        gap_end = block.start if block is not None else len(text)
        for match in _INLINE_CODE_RE.finditer(text, pos, gap_end):
            spans.append(CodeRange(match.start(), match.end()))
        if block is not None:
            pos = block.end
    return spans


class FenceMap:
    """Sorted, non-overlapping code ranges of one markdown document."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.blocks = scan_fenced_blocks(text)
        self.inline_spans = scan_inline_spans(text, self.blocks)
        self.ranges: list[CodeRange] = sorted(
            [b.range for b in self.blocks] + self.inline_spans,
            key=lambda r: r.start,
        )
        self._starts = [r.start for r in self.ranges]
        self._block_starts = [b.start for b in self.blocks]

    def __len__(self) -> int:
        return len(self.ranges)

    def is_code(self, offset: int) -> bool:
        """Return ``True`` when *offset* falls inside fenced or inline code."""
        idx = bisect.bisect_right(self._starts, offset) - 1
        return idx >= 0 and self.ranges[idx].contains(offset)

    def next_block(self, offset: int) -> FencedBlock | None:
        """Return the first fenced block starting at or after *offset*."""
        idx = bisect.bisect_left(self._block_starts, offset)
        if idx < len(self.blocks):
            return self.blocks[idx]
        return None
