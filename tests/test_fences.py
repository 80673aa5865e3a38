"""Tests for coderef.doc_sync.fences — fenced block and inline span detection."""

from __future__ import annotations

from coderef.doc_sync.fences import FenceMap, scan_fenced_blocks, scan_inline_spans


def _assert_sorted_disjoint(fm: FenceMap) -> None:
    for prev, cur in zip(fm.ranges, fm.ranges[1:]):
        assert prev.start <= cur.start
        assert prev.end <= cur.start


# ---------------------------------------------------------------------------
# scan_fenced_blocks
# ---------------------------------------------------------------------------


class TestScanFencedBlocks:
    def test_simple_block(self) -> None:
        text = "intro\n```ts\nconst a = 1;\n```\nafter\n"
        blocks = scan_fenced_blocks(text)
        assert len(blocks) == 1
        b = blocks[0]
        assert b.closed
        assert b.language == "ts"
        assert text[b.content_start:b.content_end] == "const a = 1;\n"
        assert text[b.start:b.end] == "```ts\nconst a = 1;\n```"

    def test_tilde_block(self) -> None:
        text = "~~~\nx\n~~~\n"
        blocks = scan_fenced_blocks(text)
        assert len(blocks) == 1
        assert blocks[0].fence_char == "~"
        assert blocks[0].language is None

    def test_longer_run_does_not_close(self) -> None:
        text = "```\na\n````\nb\n```\n"
        blocks = scan_fenced_blocks(text)
        assert len(blocks) == 1
        assert text[blocks[0].content_start:blocks[0].content_end] == "a\n````\nb\n"

    def test_shorter_run_does_not_close(self) -> None:
        text = "````md\n```ts\ninner\n```\n````\n"
        blocks = scan_fenced_blocks(text)
        assert len(blocks) == 1
        assert blocks[0].fence_length == 4
        assert blocks[0].end == len(text) - 1

    def test_other_character_does_not_close(self) -> None:
        text = "```\n~~~\n```\n"
        blocks = scan_fenced_blocks(text)
        assert len(blocks) == 1
        assert text[blocks[0].content_start:blocks[0].content_end] == "~~~\n"

    def test_unclosed_block_runs_to_end(self) -> None:
        text = "prose\n```ts\nconst a = 1;\n"
        blocks = scan_fenced_blocks(text)
        assert len(blocks) == 1
        assert not blocks[0].closed
        assert blocks[0].end == len(text)
        assert text[blocks[0].content_start:blocks[0].content_end] == "const a = 1;\n"

    def test_two_blocks(self) -> None:
        text = "```\na\n```\n\n~~~~\nb\n~~~~\n"
        blocks = scan_fenced_blocks(text)
        assert [b.fence_char for b in blocks] == ["`", "~"]

    def test_empty_block(self) -> None:
        text = "```\n```\n"
        blocks = scan_fenced_blocks(text)
        assert len(blocks) == 1
        assert blocks[0].content_start == blocks[0].content_end


# ---------------------------------------------------------------------------
# Inline spans
# ---------------------------------------------------------------------------


class TestInlineSpans:
    def test_inline_span_found(self) -> None:
        text = "use `foo()` here"
        spans = scan_inline_spans(text, [])
        assert len(spans) == 1
        assert text[spans[0].start:spans[0].end] == "`foo()`"

    def test_inline_span_does_not_cross_lines(self) -> None:
        assert scan_inline_spans("a `b\nc` d", []) == []

    def test_inline_inside_block_ignored(self) -> None:
        text = "```\n`x`\n```\n"
        fm = FenceMap(text)
        assert fm.inline_spans == []
        assert len(fm.ranges) == 1


# ---------------------------------------------------------------------------
# FenceMap
# ---------------------------------------------------------------------------


class TestFenceMap:
    def test_is_code(self) -> None:
        text = "a `b` c\n```\nd\n```\ne"
        fm = FenceMap(text)
        assert not fm.is_code(0)
        assert fm.is_code(text.index("b"))
        assert fm.is_code(text.index("d"))
        assert not fm.is_code(text.index("e"))

    def test_ranges_sorted_and_disjoint(self) -> None:
        text = (
            "`one` and `two`\n"
            "````md\n```ts\nnested\n```\n````\n"
            "`three`\n"
            "~~~\n```\n~~~\n"
            "tail `four` ``` unclosed\n`five`\n"
        )
        fm = FenceMap(text)
        assert len(fm) >= 4
        _assert_sorted_disjoint(fm)

    def test_next_block(self) -> None:
        text = "x\n```\na\n```\ny\n```\nb\n```\n"
        fm = FenceMap(text)
        first = fm.next_block(0)
        assert first is not None
        assert first.start == 2
        second = fm.next_block(first.start + 1)
        assert second is not None
        assert second.start > first.end
        assert fm.next_block(len(text)) is None

    def test_empty_document(self) -> None:
        fm = FenceMap("")
        assert fm.ranges == []
        assert not fm.is_code(0)
