"""Run engine: validate and fix sets of markdown documents."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from coderef.code_index.resolver import SymbolResolver
from coderef.code_index.source_cache import SourceCache
from coderef.doc_sync.fixer import FixPolicy, apply_plan, plan_fixes
from coderef.doc_sync.scanner import ReferenceScanner, read_document
from coderef.doc_sync.validator import ComparisonPolicy, Validator
from coderef.errors import DocumentReadError, FixApplicationError
from coderef.infrastructure.writer import create_backup, write_atomic
from coderef.models import DocumentError, Mismatch

if TYPE_CHECKING:
    from collections.abc import Iterable

    from coderef.config import CodeRefConfig
    from coderef.doc_sync.fixer import Decider, FixOutcome
    from coderef.models import Reference, ValidationResult

logger = logging.getLogger(__name__)


@dataclass
class DocumentReport:
    """Validation results of one document."""

    document: Path
    text: str = ""
    results: list[ValidationResult] = field(default_factory=list)
    error: DocumentError | None = None

    @property
    def mismatches(self) -> list[Mismatch]:
        return [r for r in self.results if isinstance(r, Mismatch)]

    @property
    def ok(self) -> bool:
        return self.error is None and not self.mismatches


@dataclass
class RunReport:
    """Aggregated results for a validation run, in input document order."""

    documents: list[DocumentReport] = field(default_factory=list)

    @property
    def results(self) -> list[ValidationResult]:
        return [r for doc in self.documents for r in doc.results]

    @property
    def mismatches(self) -> list[Mismatch]:
        return [m for doc in self.documents for m in doc.mismatches]

    @property
    def errors(self) -> list[DocumentError]:
        return [doc.error for doc in self.documents if doc.error is not None]

    @property
    def ok(self) -> bool:
        return not self.mismatches and not self.errors


@dataclass
class FixRunReport:
    """Outcome of a fix run over several documents."""

    outcomes: list[FixOutcome] = field(default_factory=list)
    errors: list[DocumentError] = field(default_factory=list)
    written: list[Path] = field(default_factory=list)
    backups: list[Path] = field(default_factory=list)
    aborted: bool = False

    @property
    def applied_count(self) -> int:
        return sum(len(o.applied) for o in self.outcomes)

    @property
    def manual(self) -> list[Mismatch]:
        return [m for o in self.outcomes for m in o.manual]


class Engine:
    """Wires scanner, resolver and validator around one shared source cache."""

    def __init__(
        self,
        project_root: Path,
        *,
        policy: ComparisonPolicy | None = None,
        cache: SourceCache | None = None,
    ) -> None:
        self.project_root = Path(project_root)
        self.cache = cache if cache is not None else SourceCache()
        self.scanner = ReferenceScanner()
        self.resolver = SymbolResolver(self.project_root, self.cache)
        self.validator = Validator(self.resolver, policy)

    @classmethod
    def from_config(cls, config: CodeRefConfig) -> Engine:
        policy = ComparisonPolicy(ignore_trailing_whitespace=config.ignore_trailing_whitespace)
        return cls(config.project_root, policy=policy)

    def validate_references(self, references: Iterable[Reference]) -> list[ValidationResult]:
        return [self.validator.validate(ref) for ref in references]

    def validate_document(self, path: Path) -> DocumentReport:
        """Scan and validate one document.

        An unreadable document yields a report carrying a
        :class:`DocumentError` and no results.
        """
        try:
            text = read_document(path)
        except DocumentReadError as exc:
            logger.warning("Cannot read %s: %s", path, exc.reason)
            return DocumentReport(document=path, error=DocumentError(path, exc.reason))

        references = self.scanner.scan(text, path)
        results = self.validate_references(references)
        logger.debug(
            "%s: %d reference(s), %d mismatch(es)",
            path,
            len(references),
            sum(1 for r in results if not r.ok),
        )
        return DocumentReport(document=path, text=text, results=results)

    def validate_paths(self, paths: Iterable[Path], jobs: int = 1) -> RunReport:
        """Validate documents, up to *jobs* at a time; report order follows *paths*."""
        paths = list(paths)
        if jobs <= 1 or len(paths) <= 1:
            return RunReport(documents=[self.validate_document(p) for p in paths])
        with ThreadPoolExecutor(max_workers=jobs) as pool:
            return RunReport(documents=list(pool.map(self.validate_document, paths)))

    def fix_paths(
        self,
        paths: Iterable[Path],
        policy: FixPolicy,
        decide: Decider | None = None,
        *,
        backup: bool = False,
    ) -> FixRunReport:
        """Validate, plan and apply fixes document by document.

        Documents are written only when edits were applied and the policy is
        not ``PREVIEW``.  A ``Decision.ABORT`` still writes the edits
        accepted so far for the current document and stops the run.  A
        document whose edits cannot be applied, backed up or written is
        recorded in ``report.errors`` and left untouched; the run goes on
        with the next document.
        """
        report = FixRunReport()
        for path in paths:
            doc_report = self.validate_document(path)
            if doc_report.error is not None:
                report.errors.append(doc_report.error)
                continue

            plan = plan_fixes(path, doc_report.text, doc_report.results)
            outcome: FixOutcome | None = None
            try:
                outcome = apply_plan(plan, policy, decide)
                if policy is not FixPolicy.PREVIEW and outcome.changed:
                    self._write(path, outcome, report, backup=backup)
            except FixApplicationError as exc:
                logger.warning("%s: fixes not applied: %s", path, exc)
                report.errors.append(DocumentError(path, str(exc)))
            else:
                report.outcomes.append(outcome)

            if outcome is not None and outcome.aborted:
                report.aborted = True
                logger.info("Fix run aborted at %s", path)
                break
        return report

    @staticmethod
    def _write(path: Path, outcome: FixOutcome, report: FixRunReport, *, backup: bool) -> None:
        if backup:
            report.backups.append(create_backup(path))
        write_atomic(path, outcome.text)
        report.written.append(path)
        logger.info("%s: applied %d fix(es)", path, len(outcome.applied))


def validate_paths(config: CodeRefConfig, paths: Iterable[Path]) -> RunReport:
    """Validate *paths* with settings taken from *config*."""
    return Engine.from_config(config).validate_paths(paths, jobs=config.jobs)


def fix_paths(
    config: CodeRefConfig,
    paths: Iterable[Path],
    policy: FixPolicy,
    decide: Decider | None = None,
    *,
    backup: bool | None = None,
) -> FixRunReport:
    """Fix *paths* with settings taken from *config*."""
    engine = Engine.from_config(config)
    return engine.fix_paths(
        paths, policy, decide, backup=config.backup if backup is None else backup
    )
