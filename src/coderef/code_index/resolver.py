"""Symbol resolver: map a target specification to an exact source span.

Resolution dispatches on the target variant.  Each branch is a plain
function of ``(parsed source, target)`` that returns a
:class:`~coderef.models.ResolvedSpan` or raises :class:`ResolutionError`.

For ``path#name`` targets the declaration kinds are searched through an
ordered list of matcher strategies (functions, then variables, then types);
the first strategy with any candidate wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from coderef.code_index.languages import is_source_file
from coderef.code_index.source_cache import SourceCache, SourceUnavailableError
from coderef.errors import CodeRefError
from coderef.models import (
    ClassMethod,
    LineHint,
    LineRange,
    MismatchKind,
    ResolvedSpan,
    Symbol,
    TargetSpec,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Sequence

    from tree_sitter import Node as TSNode

    from coderef.code_index.languages import LangConfig
    from coderef.code_index.source_cache import ParsedSource, SourceFile

logger = logging.getLogger(__name__)

DOC_COMMENT_OPENER = "/**"


class ResolutionError(CodeRefError):
    """Raised when a target cannot be resolved to a source span."""

    def __init__(self, kind: MismatchKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


@dataclass(frozen=True)
class Candidate:
    """A declaration matching a name, as 0-based tree-sitter rows."""

    kind: str
    start_row: int
    end_row: int

    @property
    def start_line(self) -> int:
        return self.start_row + 1

    @property
    def end_line(self) -> int:
        return self.end_row + 1


# ---------------------------------------------------------------------------
# Tree helpers
# ---------------------------------------------------------------------------


def _node_text(node: TSNode | None) -> str | None:
    if node is None or node.text is None:
        return None
    return node.text.decode("utf-8")


def _get_symbol_name(node: TSNode) -> str | None:
    """Extract the declared name from a definition node's ``name`` field."""
    return _node_text(node.child_by_field_name("name"))


def _is_prefix(node: TSNode, config: LangConfig) -> bool:
    """Decorators and ``/** ... */`` doc comments belong to the declaration below."""
    if node.type in config.decorator_types:
        return True
    if node.type in config.comment_types:
        return (_node_text(node) or "").startswith(DOC_COMMENT_OPENER)
    return False


def _leading_start_row(siblings: Sequence[TSNode], index: int, config: LangConfig) -> int:
    """Start row of a declaration including the doc comments/decorators glued above it.

    Walks backwards over doc-comment and decorator siblings as long as no
    blank line separates them.  Plain ``//`` and ``/* */`` comments are not part
    of the span and stop the walk, as does a doc comment trailing code on the
    same line.
    """
    start = siblings[index].start_point.row
    i = index - 1
    while i >= 0:
        prev = siblings[i]
        if not _is_prefix(prev, config):
            break
        if prev.end_point.row < start - 1:
            break
        if i > 0:
            before = siblings[i - 1]
            if not _is_prefix(before, config) and before.end_point.row == prev.start_point.row:
                break
        start = prev.start_point.row
        i -= 1
    return start


def _top_level(root: TSNode, config: LangConfig) -> Iterator[tuple[TSNode, TSNode, int]]:
    """Yield ``(declaration, outer statement, span start row)`` for top-level statements.

    Export statements are unwrapped so ``export function f`` and
    ``export default function f`` look like plain declarations, while the
    span still covers the ``export`` keyword.
    """
    siblings = root.children
    for index, child in enumerate(siblings):
        if child.type in config.comment_types:
            continue
        decl = child
        if child.type in config.wrapper_types:
            unwrapped = child.child_by_field_name("declaration")
            if unwrapped is None:
                continue
            decl = unwrapped
        yield decl, child, _leading_start_row(siblings, index, config)


def _binding_names(node: TSNode | None) -> list[str]:
    """Names bound by a declarator target, including destructuring patterns."""
    if node is None:
        return []
    if node.type in ("identifier", "shorthand_property_identifier_pattern"):
        text = _node_text(node)
        return [text] if text else []
    if node.type in ("assignment_pattern", "object_assignment_pattern"):
        return _binding_names(node.child_by_field_name("left"))
    if node.type == "pair_pattern":
        return _binding_names(node.child_by_field_name("value"))
    if node.type in ("object_pattern", "array_pattern", "rest_pattern"):
        names: list[str] = []
        for child in node.named_children:
            names.extend(_binding_names(child))
        return names
    return []


def _declarators(decl: TSNode) -> list[TSNode]:
    return [c for c in decl.named_children if c.type == "variable_declarator"]


# ---------------------------------------------------------------------------
# Matcher strategies (tried in order, first with candidates wins)
# ---------------------------------------------------------------------------


def match_functions(root: TSNode, config: LangConfig, name: str) -> list[Candidate]:
    """Function declarations and single-binding function-valued variables."""
    found: list[Candidate] = []
    for decl, outer, start_row in _top_level(root, config):
        if decl.type in config.function_types:
            if _get_symbol_name(decl) == name:
                found.append(Candidate("function", start_row, outer.end_point.row))
        elif decl.type in config.variable_types:
            declarators = _declarators(decl)
            if len(declarators) != 1:
                continue
            target = declarators[0].child_by_field_name("name")
            value = declarators[0].child_by_field_name("value")
            if (
                target is not None
                and target.type == "identifier"
                and _node_text(target) == name
                and value is not None
                and value.type in config.function_value_types
            ):
                found.append(Candidate("function", start_row, outer.end_point.row))
    return found


def match_variables(root: TSNode, config: LangConfig, name: str) -> list[Candidate]:
    """Variable statements binding *name*; the whole statement is the span."""
    found: list[Candidate] = []
    for decl, outer, start_row in _top_level(root, config):
        if decl.type not in config.variable_types:
            continue
        for declarator in _declarators(decl):
            if name in _binding_names(declarator.child_by_field_name("name")):
                found.append(Candidate("variable", start_row, outer.end_point.row))
                break
    return found


def match_types(root: TSNode, config: LangConfig, name: str) -> list[Candidate]:
    """Classes, interfaces, type aliases and enums."""
    kinds = config.class_types | config.type_types
    return [
        Candidate("type", start_row, outer.end_point.row)
        for decl, outer, start_row in _top_level(root, config)
        if decl.type in kinds and _get_symbol_name(decl) == name
    ]


@dataclass(frozen=True)
class SymbolMatcher:
    """A named step of the symbol precedence policy."""

    name: str
    find: Callable[[TSNode, LangConfig, str], list[Candidate]]


SYMBOL_PRECEDENCE: tuple[SymbolMatcher, ...] = (
    SymbolMatcher("function", match_functions),
    SymbolMatcher("variable", match_variables),
    SymbolMatcher("type", match_types),
)


def _iter_classes(root: TSNode, config: LangConfig) -> Iterator[TSNode]:
    """Class declarations below *root* in file order."""
    stack = list(reversed(root.named_children))
    while stack:
        node = stack.pop()
        if node.type in config.class_types:
            yield node
        stack.extend(reversed(node.named_children))


def match_methods(
    root: TSNode, config: LangConfig, class_name: str, method_name: str
) -> tuple[bool, list[Candidate]]:
    """Find methods of every class called *class_name*, at any depth.

    Classes inside ``namespace``/``module`` bodies and blocks count too.
    Returns whether any such class exists, plus the matching methods.
    """
    class_found = False
    found: list[Candidate] = []
    for decl in _iter_classes(root, config):
        if _get_symbol_name(decl) != class_name:
            continue
        class_found = True
        body = decl.child_by_field_name("body")
        if body is None:
            continue
        members = body.children
        for index, member in enumerate(members):
            if member.type in config.method_types and _get_symbol_name(member) == method_name:
                found.append(
                    Candidate(
                        "method",
                        _leading_start_row(members, index, config),
                        member.end_point.row,
                    )
                )
    return class_found, found


def select_candidate(candidates: Sequence[Candidate], hint: LineHint | None) -> Candidate:
    """Pick the candidate closest to the hint; ties and no-hint go to file order."""
    if hint is None or len(candidates) == 1:
        return candidates[0]
    return min(candidates, key=lambda c: abs(c.start_line - hint.start))


def _span(source: SourceFile, file: str, candidate: Candidate) -> ResolvedSpan:
    return ResolvedSpan(
        file=file,
        start_line=candidate.start_line,
        end_line=candidate.end_line,
        content=source.line_slice(candidate.start_line, candidate.end_line),
    )


# ---------------------------------------------------------------------------
# Resolution branches
# ---------------------------------------------------------------------------


def resolve_line_range(source: SourceFile, target: LineRange) -> ResolvedSpan:
    """Literal lines of the file; no symbol lookup.

    Raises ``LINE_OUT_OF_RANGE`` when the range ends past the last line.
    """
    if target.end_line > source.last_line:
        msg = (
            f"End line exceeds file line count: {target.end_line} > {source.last_line} "
            f"in {target.file}"
        )
        raise ResolutionError(MismatchKind.LINE_OUT_OF_RANGE, msg)
    return ResolvedSpan(
        file=target.file,
        start_line=target.start_line,
        end_line=target.end_line,
        content=source.line_slice(target.start_line, target.end_line),
    )


def resolve_symbol(parsed: ParsedSource, target: Symbol) -> ResolvedSpan:
    root = parsed.tree.root_node
    for matcher in SYMBOL_PRECEDENCE:
        candidates = matcher.find(root, parsed.config, target.name)
        if candidates:
            chosen = select_candidate(candidates, target.line_hint)
            logger.debug(
                "%s resolved as %s at %d-%d (%d candidate(s))",
                target,
                matcher.name,
                chosen.start_line,
                chosen.end_line,
                len(candidates),
            )
            return _span(parsed.source, target.file, chosen)
    msg = f'Symbol "{target.name}" not found in {target.file}'
    raise ResolutionError(MismatchKind.SYMBOL_NOT_FOUND, msg)


def resolve_class_method(parsed: ParsedSource, target: ClassMethod) -> ResolvedSpan:
    class_found, candidates = match_methods(
        parsed.tree.root_node, parsed.config, target.class_name, target.method_name
    )
    if not candidates:
        if class_found:
            msg = f'Method "{target.method_name}" not found in class "{target.class_name}"'
        else:
            msg = f'Class "{target.class_name}" not found in {target.file}'
        raise ResolutionError(MismatchKind.SYMBOL_NOT_FOUND, msg)
    return _span(parsed.source, target.file, select_candidate(candidates, target.line_hint))


def find_text_occurrences(
    source: SourceFile, content: str, *, ignore_trailing_whitespace: bool = False
) -> list[LineHint]:
    """Line ranges where *content* appears verbatim as whole lines."""
    if not content.strip():
        return []
    if content.endswith("\n"):
        content = content[:-1]
    wanted = content.split("\n")
    lines = source.lines
    if ignore_trailing_whitespace:
        wanted = [line.rstrip() for line in wanted]
        lines = [line.rstrip() for line in lines]
    width = len(wanted)
    return [
        LineHint(i + 1, i + width)
        for i in range(len(lines) - width + 1)
        if lines[i:i + width] == wanted
    ]


class SymbolResolver:
    """Resolves targets relative to a project root using a shared source cache."""

    def __init__(self, project_root: Path, cache: SourceCache | None = None) -> None:
        self.project_root = Path(project_root).resolve()
        self.cache = cache if cache is not None else SourceCache()

    def locate(self, file: str) -> Path:
        """Absolute path of a referenced file inside the project.

        Raises
        ------
        ResolutionError
            ``FILE_NOT_FOUND`` when the path escapes the project root or
            does not exist.
        """
        path = (self.project_root / file).resolve()
        if path != self.project_root and self.project_root not in path.parents:
            msg = f"Referenced path points outside project root: {file}"
            raise ResolutionError(MismatchKind.FILE_NOT_FOUND, msg)
        if not path.is_file():
            msg = f"Referenced file not found: {file}"
            raise ResolutionError(MismatchKind.FILE_NOT_FOUND, msg)
        return path

    def source(self, file: str) -> SourceFile:
        path = self.locate(file)
        try:
            return self.cache.source(path)
        except SourceUnavailableError as exc:
            raise ResolutionError(MismatchKind.FILE_NOT_FOUND, str(exc)) from exc

    def _parsed(self, file: str) -> ParsedSource:
        path = self.locate(file)
        if not is_source_file(path.suffix):
            msg = f"Symbol lookup is only supported in source files: {file}"
            raise ResolutionError(MismatchKind.SYMBOL_NOT_FOUND, msg)
        try:
            return self.cache.parsed(path)
        except SourceUnavailableError as exc:
            raise ResolutionError(MismatchKind.FILE_NOT_FOUND, str(exc)) from exc

    def resolve(self, target: TargetSpec) -> ResolvedSpan:
        """Resolve *target* to a span, raising :class:`ResolutionError` on failure."""
        if isinstance(target, LineRange):
            return resolve_line_range(self.source(target.file), target)
        if isinstance(target, Symbol):
            return resolve_symbol(self._parsed(target.file), target)
        if isinstance(target, ClassMethod):
            return resolve_class_method(self._parsed(target.file), target)
        msg = f"Unsupported target: {target!r}"
        raise TypeError(msg)
