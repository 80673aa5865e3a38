"""Output formatters for validation and fix runs."""

from __future__ import annotations

import difflib
import json
from collections import Counter
from typing import TYPE_CHECKING

from coderef.models import Mismatch, MismatchKind

if TYPE_CHECKING:
    from coderef.doc_sync.engine import FixRunReport, RunReport
    from coderef.doc_sync.fixer import FixRequest


def code_diff(documented: str, actual: str, *, label: str = "") -> str:
    """Unified diff from the documented block to the actual source."""
    diff = difflib.unified_diff(
        documented.splitlines(),
        actual.splitlines(),
        fromfile=f"documented {label}".strip(),
        tofile=f"actual {label}".strip(),
        lineterm="",
    )
    return "\n".join(diff)


def mismatch_diff(mismatch: Mismatch) -> str:
    """Diff for a content mismatch, or ``""`` when there is nothing to compare."""
    block = mismatch.reference.following_block
    if mismatch.kind is not MismatchKind.CODE_CONTENT_MISMATCH or block is None:
        return ""
    if mismatch.resolved is None:
        return ""
    return code_diff(block.content, mismatch.resolved.content, label=mismatch.resolved.file)


def format_rich(report: RunReport, *, verbose: bool = False) -> str:
    """Human-readable summary of a validation run.

    Example::

        Documents: 2 checked, 3 references

        ✗ docs/api.md:12 CODE_CONTENT_MISMATCH
          Code does not match src/api.ts#fetchUser (lines 4-9).

        1 mismatch found (3 references, 0 document errors)
    """
    lines: list[str] = []
    lines.append(
        f"Documents: {len(report.documents)} checked, {len(report.results)} references"
    )
    lines.append("")

    for error in report.errors:
        lines.append(f"✗ {error.document}: cannot read document")
        lines.append(f"  {error.reason}")
        lines.append("")

    for mismatch in report.mismatches:
        lines.append(f"✗ {mismatch.reference.location} {mismatch.kind.value}")
        lines.append(f"  {mismatch.message}")
        if verbose:
            diff = mismatch_diff(mismatch)
            if diff:
                lines.extend(f"    {line}" for line in diff.splitlines())
        lines.append("")

    count = len(report.mismatches)
    tail = f"({len(report.results)} references, {len(report.errors)} document errors)"
    if count:
        noun = "mismatch" if count == 1 else "mismatches"
        lines.append(f"{count} {noun} found {tail}")
    elif report.errors:
        lines.append(f"No mismatches found {tail}")
    else:
        lines.append(f"✓ All references valid {tail}")
    return "\n".join(lines)


def format_json(report: RunReport) -> str:
    """Structured JSON with ``mismatches``, ``errors`` and ``summary``."""
    mismatches: list[dict[str, object]] = []
    for m in report.mismatches:
        ref = m.reference
        mismatches.append(
            {
                "kind": m.kind.value,
                "document": str(ref.document),
                "line": ref.line,
                "marker": ref.marker,
                "target": str(ref.target) if ref.target is not None else None,
                "message": m.message,
                "resolved_lines": str(m.resolved.lines) if m.resolved is not None else None,
                "auto_fixable": m.kind.auto_fixable,
            }
        )

    by_kind = Counter(m.kind.value for m in report.mismatches)
    output: dict[str, object] = {
        "mismatches": mismatches,
        "errors": [
            {"document": str(e.document), "reason": e.reason} for e in report.errors
        ],
        "summary": {
            "documents": len(report.documents),
            "references": len(report.results),
            "valid": sum(1 for r in report.results if r.ok),
            "mismatches": len(report.mismatches),
            "by_kind": dict(sorted(by_kind.items())),
            "document_errors": len(report.errors),
        },
    }
    return json.dumps(output, ensure_ascii=False, indent=2)


def format_porcelain(report: RunReport) -> str:
    """One TAB-separated line per problem: ``kind  document  line  target  message``.

    Document errors use the kind ``DOCUMENT_ERROR`` and an empty line and
    target.  Returns an empty string when everything is valid.
    """
    lines: list[str] = []
    for e in report.errors:
        lines.append(f"DOCUMENT_ERROR\t{e.document}\t\t\t{e.reason}")
    for m in report.mismatches:
        ref = m.reference
        target = str(ref.target) if ref.target is not None else ""
        lines.append(f"{m.kind.value}\t{ref.document}\t{ref.line}\t{target}\t{m.message}")
    return "\n".join(lines)


def format_request(request: FixRequest) -> str:
    """Render one proposed edit for a confirmation prompt."""
    edit = request.edit
    lines = [
        f"[{request.index}/{request.total}] {edit.document}: {edit.description}",
        "",
        "Context:",
    ]
    lines.extend(f"  {line}" for line in request.context.splitlines())
    lines.append("")
    diff = code_diff(request.original, edit.replacement, label="")
    if diff:
        lines.append(diff)
    else:
        lines.append(f"- {request.original!r}")
        lines.append(f"+ {edit.replacement!r}")
    return "\n".join(lines)


def format_fix_summary(report: FixRunReport, *, dry_run: bool) -> str:
    """Plain-text summary of a fix run."""
    lines: list[str] = []
    verb = "Would apply" if dry_run else "Applied"
    proposed = sum(len(o.proposed) for o in report.outcomes)
    count = proposed if dry_run else report.applied_count
    lines.append(f"{verb} {count} fix(es) in {len(report.outcomes)} document(s)")

    if dry_run:
        for outcome in report.outcomes:
            for edit in outcome.proposed:
                lines.append(f"  {edit.document}: {edit.description}")
    for path in report.written:
        lines.append(f"  wrote {path}")
    for path in report.backups:
        lines.append(f"  backup {path}")

    for e in report.errors:
        lines.append(f"✗ {e.document}: {e.reason}")
    for m in report.manual:
        lines.append(f"✗ {m.reference.location} {m.kind.value}: {m.message}")
    if report.manual:
        lines.append(f"{len(report.manual)} mismatch(es) need manual review")
    if report.aborted:
        lines.append("Aborted.")
    return "\n".join(lines)
