"""Fix planner: turn mismatches into minimal edits and apply them by policy.

Edits for a document are always computed from its original text and
applied in one pass in descending offset order, so no edit shifts the
range of another.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from coderef.errors import FixApplicationError
from coderef.models import CodeRange, FixEdit, Mismatch, MismatchKind

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator
    from pathlib import Path

    from coderef.models import ResolvedSpan, ValidationResult

logger = logging.getLogger(__name__)

CONTEXT_LINES = 3


class FixPolicy(enum.Enum):
    """How planned edits are applied."""

    PREVIEW = "preview"
    UNCONDITIONAL = "unconditional"
    CONFIRM_EACH = "confirm-each"


class Decision(enum.Enum):
    """Answer of the decision callback for one proposed edit."""

    ACCEPT = "accept"
    REJECT = "reject"
    ABORT = "abort"


@dataclass(frozen=True)
class FixRequest:
    """One proposed edit plus the context needed to render it."""

    edit: FixEdit
    original: str
    context: str
    index: int
    total: int


Decider = Callable[[FixRequest], Decision]


@dataclass(frozen=True)
class FixPlan:
    """Edits computed for one document, plus mismatches left to a human."""

    document: Path
    text: str
    edits: tuple[FixEdit, ...] = ()
    manual: tuple[Mismatch, ...] = ()

    def proposals(self) -> Iterator[FixRequest]:
        """Yield a request per edit in document order.

        Every call starts a fresh sequence, so a caller may restart the
        confirmation loop from the beginning.
        """
        total = len(self.edits)
        for index, edit in enumerate(self.edits, 1):
            yield FixRequest(
                edit=edit,
                original=self.text[edit.range.start:edit.range.end],
                context=_surrounding_lines(self.text, edit.range),
                index=index,
                total=total,
            )


@dataclass
class FixOutcome:
    """Result of applying a plan under a policy."""

    document: Path
    text: str
    proposed: list[FixEdit] = field(default_factory=list)
    applied: list[FixEdit] = field(default_factory=list)
    rejected: list[FixEdit] = field(default_factory=list)
    manual: list[Mismatch] = field(default_factory=list)
    aborted: bool = False

    @property
    def changed(self) -> bool:
        return bool(self.applied)


# ---------------------------------------------------------------------------
# Planning
# ---------------------------------------------------------------------------


def _surrounding_lines(text: str, span: CodeRange, radius: int = CONTEXT_LINES) -> str:
    start = span.start
    for _ in range(radius + 1):
        prev = text.rfind("\n", 0, start)
        if prev == -1:
            start = 0
            break
        start = prev
    end = span.end
    for _ in range(radius + 1):
        nxt = text.find("\n", end + 1)
        if nxt == -1:
            end = len(text)
            break
        end = nxt
    return text[start:end].strip("\n")


def line_range_edit(mismatch: Mismatch, resolved: ResolvedSpan) -> FixEdit | None:
    """Rewrite the marker's ``start-end`` to the resolved lines."""
    ref = mismatch.reference
    if ref.lines_range is None:
        return None
    return FixEdit(
        document=ref.document,
        range=ref.lines_range,
        replacement=str(resolved.lines),
        kind=mismatch.kind,
        description=f"Update line numbers in {ref.marker} to {resolved.lines}",
        reference=ref,
    )


def block_content_edit(mismatch: Mismatch, resolved: ResolvedSpan) -> FixEdit | None:
    """Replace the following block's content with the resolved source."""
    ref = mismatch.reference
    block = ref.following_block
    if block is None:
        return None
    replacement = resolved.content
    if not replacement.endswith("\n") and (block.closed or block.content.endswith("\n")):
        replacement += "\r\n" if block.content.endswith("\r\n") else "\n"
    return FixEdit(
        document=ref.document,
        range=block.content_range,
        replacement=replacement,
        kind=mismatch.kind,
        description=(
            f"Replace code block after {ref.marker} with {resolved.file} "
            f"lines {resolved.lines}"
        ),
        reference=ref,
    )


def edits_for(mismatch: Mismatch) -> list[FixEdit]:
    """Edits resolving *mismatch*; empty when it is not auto-fixable."""
    resolved = mismatch.resolved
    if not mismatch.kind.auto_fixable or resolved is None:
        return []

    if mismatch.kind is MismatchKind.CODE_LOCATION_MISMATCH:
        edit = line_range_edit(mismatch, resolved)
        return [edit] if edit is not None else []

    edits: list[FixEdit] = []
    content_edit = block_content_edit(mismatch, resolved)
    if content_edit is None:
        return []
    edits.append(content_edit)

    # A stale line claim would turn the fixed block into a location mismatch.
    target = mismatch.reference.target
    claimed = target.claimed_lines if target is not None else None
    if claimed is not None and claimed != resolved.lines:
        line_edit = line_range_edit(mismatch, resolved)
        if line_edit is not None:
            edits.append(line_edit)
    return edits


def plan_fixes(document: Path, text: str, results: Iterable[ValidationResult]) -> FixPlan:
    """Compute edits for every mismatch of one document.

    Mismatches that cannot be fixed automatically, or whose edits would
    overlap an edit already planned, are returned in ``FixPlan.manual``.
    """
    edits: list[FixEdit] = []
    manual: list[Mismatch] = []

    for result in results:
        if not isinstance(result, Mismatch):
            continue
        planned = edits_for(result)
        if not planned:
            manual.append(result)
            continue
        if any(new.range.overlaps(old.range) for new in planned for old in edits):
            logger.warning(
                "%s: edit for %s overlaps another edit, leaving it for manual review",
                document,
                result.reference.location,
            )
            manual.append(result)
            continue
        edits.extend(planned)

    edits.sort(key=lambda e: e.range.start)
    return FixPlan(document=document, text=text, edits=tuple(edits), manual=tuple(manual))


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


def apply_edits(text: str, edits: Iterable[FixEdit]) -> str:
    """Apply non-overlapping edits computed against *text*.

    Raises
    ------
    FixApplicationError
        When two edits overlap or an edit falls outside the text.
    """
    ordered = sorted(edits, key=lambda e: e.range.start, reverse=True)
    limit = len(text)
    for edit in ordered:
        if edit.range.end > limit:
            msg = f"Edit at {edit.range.start}-{edit.range.end} overlaps another edit or the end of text"
            raise FixApplicationError(msg)
        limit = edit.range.start

    for edit in ordered:
        text = text[:edit.range.start] + edit.replacement + text[edit.range.end:]
    return text


def apply_plan(
    plan: FixPlan,
    policy: FixPolicy,
    decide: Decider | None = None,
) -> FixOutcome:
    """Apply *plan* under *policy* and return the resulting text.

    ``CONFIRM_EACH`` asks *decide* about every edit.  ``Decision.ABORT``
    stops asking; edits accepted before it are still applied.
    """
    outcome = FixOutcome(
        document=plan.document,
        text=plan.text,
        proposed=list(plan.edits),
        manual=list(plan.manual),
    )

    if policy is FixPolicy.PREVIEW:
        return outcome

    if policy is FixPolicy.UNCONDITIONAL:
        accepted = list(plan.edits)
    else:
        if decide is None:
            msg = "confirm-each policy requires a decision callback"
            raise ValueError(msg)
        accepted = []
        for request in plan.proposals():
            decision = decide(request)
            if decision is Decision.ABORT:
                outcome.aborted = True
                break
            if decision is Decision.ACCEPT:
                accepted.append(request.edit)
            else:
                outcome.rejected.append(request.edit)

    outcome.text = apply_edits(plan.text, accepted)
    outcome.applied = accepted
    return outcome
