"""Validator: compare documented code blocks with the source they quote."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from coderef.code_index.resolver import ResolutionError, find_text_occurrences
from coderef.models import (
    LineRange,
    Mismatch,
    MismatchKind,
    ResolvedSpan,
    Valid,
)

if TYPE_CHECKING:
    from coderef.code_index.resolver import SymbolResolver
    from coderef.models import Reference, ValidationResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ComparisonPolicy:
    """How documented and actual code are compared.

    The default is strict: only a single trailing newline is ignored.
    ``ignore_trailing_whitespace`` additionally strips trailing whitespace
    from every line.
    """

    ignore_trailing_whitespace: bool = False

    def normalize(self, text: str) -> str:
        if text.endswith("\r\n"):
            text = text[:-2]
        elif text.endswith("\n"):
            text = text[:-1]
        if self.ignore_trailing_whitespace:
            text = "\n".join(line.rstrip() for line in text.split("\n"))
        return text


class Validator:
    """Produces exactly one :data:`ValidationResult` per reference."""

    def __init__(self, resolver: SymbolResolver, policy: ComparisonPolicy | None = None) -> None:
        self.resolver = resolver
        self.policy = policy or ComparisonPolicy()

    def validate(self, reference: Reference) -> ValidationResult:
        target = reference.target
        if target is None:
            return Mismatch(
                kind=MismatchKind.MALFORMED_REFERENCE,
                reference=reference,
                message=reference.parse_error or "Malformed CODE_REF marker",
            )

        try:
            resolved = self.resolver.resolve(target)
        except ResolutionError as exc:
            block = reference.following_block
            if (
                exc.kind is MismatchKind.LINE_OUT_OF_RANGE
                and isinstance(target, LineRange)
                and block is not None
            ):
                relocated = self._relocate(target, block.content)
                if relocated is not None:
                    return self._moved(reference, target, relocated)
            return Mismatch(kind=exc.kind, reference=reference, message=exc.message)

        block = reference.following_block
        if block is None:
            return Mismatch(
                kind=MismatchKind.CODE_BLOCK_MISSING,
                reference=reference,
                message=f"Code block not found after CODE_REF ({target}).",
                resolved=resolved,
            )

        documented = self.policy.normalize(block.content)
        actual = self.policy.normalize(resolved.content)
        claimed = target.claimed_lines

        if documented == actual:
            if claimed is not None and claimed != resolved.lines:
                return Mismatch(
                    kind=MismatchKind.CODE_LOCATION_MISMATCH,
                    reference=reference,
                    message=(
                        f"Line numbers do not match in {target.file} "
                        f"(expect: {claimed}, result: {resolved.lines})"
                    ),
                    resolved=resolved,
                )
            return Valid(reference=reference, resolved=resolved)

        if isinstance(target, LineRange):
            relocated = self._relocate(target, block.content)
            if relocated is not None:
                return self._moved(reference, target, relocated)

        return Mismatch(
            kind=MismatchKind.CODE_CONTENT_MISMATCH,
            reference=reference,
            message=f"Code does not match {target} (lines {resolved.lines}).",
            resolved=resolved,
        )

    @staticmethod
    def _moved(reference: Reference, target: LineRange, relocated: ResolvedSpan) -> Mismatch:
        return Mismatch(
            kind=MismatchKind.CODE_LOCATION_MISMATCH,
            reference=reference,
            message=(
                f"Line numbers do not match in {target.file} "
                f"(expect: {target.claimed_lines}, result: {relocated.lines})"
            ),
            resolved=relocated,
        )

    def _relocate(self, target: LineRange, documented: str) -> ResolvedSpan | None:
        """Find the documented block elsewhere in the file, nearest the claimed start."""
        try:
            source = self.resolver.source(target.file)
        except ResolutionError:
            return None
        occurrences = find_text_occurrences(
            source,
            documented,
            ignore_trailing_whitespace=self.policy.ignore_trailing_whitespace,
        )
        if not occurrences:
            return None
        best = min(occurrences, key=lambda hint: abs(hint.start - target.start_line))
        if len(occurrences) > 1:
            logger.info(
                "%s: block found at %d locations, using %s",
                target,
                len(occurrences),
                best,
            )
        return ResolvedSpan(
            file=target.file,
            start_line=best.start,
            end_line=best.end,
            content=source.line_slice(best.start, best.end),
        )
