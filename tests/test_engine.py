"""Tests for coderef.doc_sync.engine — multi-document validate and fix runs."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING
from unittest.mock import patch

from coderef.config import load_config
from coderef.doc_sync.engine import Engine, fix_paths, validate_paths
from coderef.doc_sync.fixer import Decision, FixPolicy
from coderef.models import MismatchKind

if TYPE_CHECKING:
    from pathlib import Path


def _lines(text: str, start: int, end: int) -> str:
    return "".join(text.splitlines(keepends=True)[start - 1:end])


def _write_docs(project: Path, sample_ts: str) -> tuple[Path, Path]:
    good = project / "docs" / "good.md"
    good.write_text(
        f"# Good\n\n<!-- CODE_REF: src/a.ts#add -->\n```ts\n{_lines(sample_ts, 16, 18)}```\n",
        encoding="utf-8",
    )
    stale = project / "docs" / "stale.md"
    stale.write_text(
        "# Stale\n\n"
        f"<!-- CODE_REF: src/a.ts#add:1-3 -->\n```ts\n{_lines(sample_ts, 16, 18)}```\n\n"
        "<!-- CODE_REF: src/a.ts#greet -->\n```ts\nfunction greet() {}\n```\n",
        encoding="utf-8",
    )
    return good, stale


class TestValidate:
    def test_report(self, tmp_project: Path, sample_ts: str) -> None:
        good, stale = _write_docs(tmp_project, sample_ts)
        report = Engine(tmp_project).validate_paths([good, stale])
        assert [d.document for d in report.documents] == [good, stale]
        assert report.documents[0].ok
        assert not report.documents[1].ok
        assert [m.kind for m in report.mismatches] == [
            MismatchKind.CODE_LOCATION_MISMATCH,
            MismatchKind.CODE_CONTENT_MISMATCH,
        ]
        assert len(report.results) == 3
        assert not report.ok

    def test_unreadable_document_is_document_error(self, tmp_project: Path, sample_ts: str) -> None:
        good, _ = _write_docs(tmp_project, sample_ts)
        missing = tmp_project / "docs" / "missing.md"
        report = Engine(tmp_project).validate_paths([missing, good])
        assert len(report.errors) == 1
        assert report.errors[0].document == missing
        assert report.documents[0].results == []
        assert report.documents[1].ok
        assert not report.ok

    def test_parallel_matches_serial(self, tmp_project: Path, sample_ts: str) -> None:
        good, stale = _write_docs(tmp_project, sample_ts)
        paths = [good, stale, good, stale]
        serial = Engine(tmp_project).validate_paths(paths)
        engine = Engine(tmp_project)
        parallel = engine.validate_paths(paths, jobs=4)
        assert [m.kind for m in serial.mismatches] == [m.kind for m in parallel.mismatches]
        assert [d.document for d in parallel.documents] == paths
        assert engine.cache.parse_count == 1

    def test_config_entry_point(self, tmp_project: Path, sample_ts: str) -> None:
        good, _ = _write_docs(tmp_project, sample_ts)
        config = load_config(tmp_project, env={}, jobs=2)
        assert validate_paths(config, [good]).ok


class TestFix:
    def test_auto_fix_writes_and_revalidates(self, tmp_project: Path, sample_ts: str) -> None:
        good, stale = _write_docs(tmp_project, sample_ts)
        engine = Engine(tmp_project)
        report = engine.fix_paths([good, stale], FixPolicy.UNCONDITIONAL)
        assert report.written == [stale]
        assert report.applied_count == 2
        assert report.manual == []
        assert Engine(tmp_project).validate_paths([good, stale]).ok

    def test_dry_run_does_not_write(self, tmp_project: Path, sample_ts: str) -> None:
        _, stale = _write_docs(tmp_project, sample_ts)
        before = stale.read_text(encoding="utf-8")
        report = Engine(tmp_project).fix_paths([stale], FixPolicy.PREVIEW)
        assert report.written == []
        assert sum(len(o.proposed) for o in report.outcomes) == 2
        assert stale.read_text(encoding="utf-8") == before

    def test_backup(self, tmp_project: Path, sample_ts: str) -> None:
        _, stale = _write_docs(tmp_project, sample_ts)
        before = stale.read_text(encoding="utf-8")
        report = Engine(tmp_project).fix_paths([stale], FixPolicy.UNCONDITIONAL, backup=True)
        assert len(report.backups) == 1
        assert report.backups[0].name == "stale.md.backup"
        assert report.backups[0].read_text(encoding="utf-8") == before

    def test_abort_stops_run_but_keeps_accepted(self, tmp_project: Path, sample_ts: str) -> None:
        _, stale = _write_docs(tmp_project, sample_ts)
        other = tmp_project / "docs" / "other.md"
        other.write_text(stale.read_text(encoding="utf-8"), encoding="utf-8")
        answers = iter([Decision.ACCEPT, Decision.ABORT])

        report = Engine(tmp_project).fix_paths(
            [stale, other], FixPolicy.CONFIRM_EACH, lambda _req: next(answers)
        )
        assert report.aborted
        assert report.written == [stale]
        assert "add:16-18" in stale.read_text(encoding="utf-8")
        assert "function greet() {}" in stale.read_text(encoding="utf-8")
        assert "add:1-3" in other.read_text(encoding="utf-8")

    def test_manual_mismatches_reported(self, tmp_project: Path) -> None:
        doc = tmp_project / "docs" / "ghost.md"
        doc.write_text("<!-- CODE_REF: src/a.ts#ghost -->\n```ts\nx\n```\n", encoding="utf-8")
        config = load_config(tmp_project, env={})
        report = fix_paths(config, [doc], FixPolicy.UNCONDITIONAL)
        assert report.written == []
        assert [m.kind for m in report.manual] == [MismatchKind.SYMBOL_NOT_FOUND]

    def test_write_failure_is_per_document(self, tmp_project: Path, sample_ts: str) -> None:
        _, stale = _write_docs(tmp_project, sample_ts)
        other = tmp_project / "docs" / "other.md"
        other.write_text(stale.read_text(encoding="utf-8"), encoding="utf-8")
        before = stale.read_text(encoding="utf-8")
        real_replace = os.replace
        calls: list[str] = []

        def fail_first(src: str, dst: str) -> None:
            calls.append(dst)
            if len(calls) == 1:
                raise OSError("disk full")
            real_replace(src, dst)

        with patch("coderef.infrastructure.writer.os.replace", side_effect=fail_first):
            report = Engine(tmp_project).fix_paths([stale, other], FixPolicy.UNCONDITIONAL)

        assert [e.document for e in report.errors] == [stale]
        assert "disk full" in report.errors[0].reason
        assert report.written == [other]
        assert report.applied_count == 2
        assert stale.read_text(encoding="utf-8") == before
        assert "add:16-18" in other.read_text(encoding="utf-8")

    def test_backup_failure_is_per_document(self, tmp_project: Path, sample_ts: str) -> None:
        _, stale = _write_docs(tmp_project, sample_ts)
        before = stale.read_text(encoding="utf-8")
        with patch(
            "coderef.infrastructure.writer.shutil.copy2", side_effect=PermissionError("denied")
        ):
            report = Engine(tmp_project).fix_paths([stale], FixPolicy.UNCONDITIONAL, backup=True)

        assert [e.document for e in report.errors] == [stale]
        assert report.written == []
        assert stale.read_text(encoding="utf-8") == before
