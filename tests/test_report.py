"""Tests for coderef.doc_sync.report — rich, JSON and porcelain formatters."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest

from coderef.doc_sync.engine import Engine
from coderef.doc_sync.fixer import plan_fixes
from coderef.doc_sync.report import (
    code_diff,
    format_json,
    format_porcelain,
    format_request,
    format_rich,
)

if TYPE_CHECKING:
    from pathlib import Path

    from coderef.doc_sync.engine import RunReport


@pytest.fixture()
def report(tmp_project: Path) -> RunReport:
    doc = tmp_project / "docs" / "api.md"
    doc.write_text(
        "<!-- CODE_REF: src/a.ts#add -->\n```ts\nfunction add() {}\n```\n\n"
        "<!-- CODE_REF: src/a.ts#ghost -->\n```ts\nx\n```\n",
        encoding="utf-8",
    )
    return Engine(tmp_project).validate_paths([doc, tmp_project / "docs" / "missing.md"])


class TestFormatRich:
    def test_lists_mismatches_and_errors(self, report: RunReport) -> None:
        out = format_rich(report)
        assert "Documents: 2 checked, 2 references" in out
        assert "✗" in out
        assert "CODE_CONTENT_MISMATCH" in out
        assert "SYMBOL_NOT_FOUND" in out
        assert "cannot read document" in out
        assert out.splitlines()[-1].startswith("2 mismatches found")

    def test_verbose_shows_diff(self, report: RunReport) -> None:
        out = format_rich(report, verbose=True)
        assert "-function add() {}" in out
        assert "+  return a + b;" in out

    def test_all_valid(self, tmp_project: Path) -> None:
        doc = tmp_project / "docs" / "ok.md"
        doc.write_text("no markers here\n", encoding="utf-8")
        out = format_rich(Engine(tmp_project).validate_paths([doc]))
        assert "✓ All references valid" in out


class TestMachineFormats:
    def test_json(self, report: RunReport) -> None:
        data = json.loads(format_json(report))
        assert data["summary"]["mismatches"] == 2
        assert data["summary"]["document_errors"] == 1
        assert data["summary"]["by_kind"] == {
            "CODE_CONTENT_MISMATCH": 1,
            "SYMBOL_NOT_FOUND": 1,
        }
        first = data["mismatches"][0]
        assert first["kind"] == "CODE_CONTENT_MISMATCH"
        assert first["line"] == 1
        assert first["auto_fixable"] is True
        assert first["resolved_lines"] == "16-18"

    def test_porcelain(self, report: RunReport) -> None:
        lines = format_porcelain(report).splitlines()
        assert lines[0].startswith("DOCUMENT_ERROR\t")
        fields = lines[1].split("\t")
        assert fields[0] == "CODE_CONTENT_MISMATCH"
        assert fields[2] == "1"
        assert fields[3] == "src/a.ts#add"

    def test_porcelain_empty_when_valid(self, tmp_project: Path) -> None:
        doc = tmp_project / "docs" / "ok.md"
        doc.write_text("nothing\n", encoding="utf-8")
        assert format_porcelain(Engine(tmp_project).validate_paths([doc])) == ""


class TestDiffs:
    def test_code_diff(self) -> None:
        diff = code_diff("a\nb\n", "a\nc\n", label="x.ts")
        assert "--- documented x.ts" in diff
        assert "-b" in diff
        assert "+c" in diff

    def test_format_request(self, report: RunReport) -> None:
        doc_report = report.documents[0]
        plan = plan_fixes(doc_report.document, doc_report.text, doc_report.results)
        request = next(plan.proposals())
        out = format_request(request)
        assert out.startswith("[1/1]")
        assert "Context:" in out
        assert "+function add(a: number, b: number): number {" in out
