"""coderef CLI entry point."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from coderef import __version__

if TYPE_CHECKING:
    from coderef.config import CodeRefConfig
    from coderef.doc_sync.fixer import Decision, FixRequest
    from coderef.models import Mismatch


class _EchoHandler(logging.Handler):
    """Send log records to whatever stderr click currently writes to."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            click.echo(self.format(record), err=True)
        except Exception:  # noqa: BLE001
            self.handleError(record)


def _configure_logging(*, verbose: bool, quiet: bool) -> None:
    if quiet:
        level = logging.ERROR
    elif verbose:
        level = logging.DEBUG
    else:
        level = logging.WARNING
    logger = logging.getLogger("coderef")
    logger.setLevel(level)
    if not any(isinstance(h, _EchoHandler) for h in logger.handlers):
        handler = _EchoHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        logger.addHandler(handler)


@click.group()
@click.version_option(version=__version__, prog_name="coderef")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output (shows code diffs).")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """coderef - keep CODE_REF blocks in docs in sync with source code."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    _configure_logging(verbose=verbose, quiet=quiet)


def _load(project: Path | None, **overrides: object) -> CodeRefConfig:
    from coderef.config import load_config
    from coderef.errors import ConfigError

    try:
        return load_config(project, **overrides)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)


def _documents(config: CodeRefConfig, targets: tuple[str, ...]) -> list[Path]:
    from coderef.infrastructure.discovery import load_ignore_patterns, resolve_targets

    patterns = [*load_ignore_patterns(config.ignore_path), *config.ignore_patterns]
    return resolve_targets(targets, config.project_root, config.docs_path, patterns)


def _print_kind_table(mismatches: list[Mismatch]) -> None:
    from collections import Counter

    from rich.console import Console
    from rich.table import Table

    counts = Counter(m.kind.value for m in mismatches)
    table = Table(title="Mismatches", show_header=False, box=None, padding=(0, 1))
    table.add_column("kind", style="cyan")
    table.add_column("count", justify="right")
    for kind, count in sorted(counts.items()):
        table.add_row(kind, str(count))
    Console().print(table)


_PROJECT_OPTION = click.option(
    "--project",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: CODEREF_PROJECT_ROOT or current directory).",
)


@main.command()
@click.argument("targets", nargs=-1)
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["rich", "json", "porcelain"]),
    default=None,
    help="Output format (default: rich for TTY, porcelain for pipes).",
)
@click.option("--jobs", "-j", type=int, default=None, help="Documents validated in parallel.")
@_PROJECT_OPTION
@click.pass_context
def validate(
    ctx: click.Context,
    targets: tuple[str, ...],
    *,
    fmt: str | None,
    jobs: int | None,
    project: Path | None,
) -> None:
    """Validate CODE_REF references in markdown files.

    TARGETS are markdown files or directories (default: the docs directory).
    Exit codes: 0 = all valid, 1 = mismatches found, 2 = configuration or
    document errors.
    """
    from coderef.doc_sync.engine import validate_paths
    from coderef.doc_sync.report import format_json, format_porcelain, format_rich

    verbose_flag = bool(ctx.obj.get("verbose")) or None
    config = _load(project, jobs=jobs, verbose=verbose_flag)
    documents = _documents(config, targets)
    if not documents:
        click.echo("No markdown files found.")
        return

    if fmt is None:
        fmt = "rich" if sys.stdout.isatty() else "porcelain"

    report = validate_paths(config, documents)

    if fmt == "json":
        click.echo(format_json(report))
    elif fmt == "porcelain":
        output = format_porcelain(report)
        if output:
            click.echo(output)
    else:
        click.echo(format_rich(report, verbose=config.verbose))
        if report.mismatches and not ctx.obj.get("quiet"):
            click.echo()
            _print_kind_table(report.mismatches)

    if report.errors:
        sys.exit(2)
    if report.mismatches:
        sys.exit(1)


def _prompt_decider(request: FixRequest) -> Decision:
    from rich.console import Console
    from rich.panel import Panel

    from coderef.doc_sync.fixer import Decision
    from coderef.doc_sync.report import format_request

    Console().print(Panel(format_request(request), title="Proposed fix", border_style="blue"))
    answer = click.prompt(
        "Apply this fix? [y]es / [n]o / [q]uit",
        type=click.Choice(["y", "n", "q"]),
        default="y",
        show_choices=False,
    )
    return {"y": Decision.ACCEPT, "n": Decision.REJECT, "q": Decision.ABORT}[answer]


@main.command()
@click.argument("targets", nargs=-1)
@click.option("--dry-run", is_flag=True, help="Show proposed fixes without writing.")
@click.option("--auto", "auto_apply", is_flag=True, help="Apply every fix without asking.")
@click.option("--backup/--no-backup", default=None, help="Keep <doc>.backup copies.")
@_PROJECT_OPTION
def fix(
    targets: tuple[str, ...],
    *,
    dry_run: bool,
    auto_apply: bool,
    backup: bool | None,
    project: Path | None,
) -> None:
    """Fix line numbers and code blocks of CODE_REF references.

    Without --auto every fix is confirmed interactively.  Exit codes:
    0 = nothing left to fix, 1 = mismatches need manual review, 2 = errors.
    """
    from coderef.doc_sync.engine import fix_paths
    from coderef.doc_sync.fixer import FixPolicy
    from coderef.doc_sync.report import format_fix_summary

    config = _load(project, backup=backup)
    documents = _documents(config, targets)
    if not documents:
        click.echo("No markdown files found.")
        return

    if dry_run:
        policy = FixPolicy.PREVIEW
    elif auto_apply:
        policy = FixPolicy.UNCONDITIONAL
    else:
        policy = FixPolicy.CONFIRM_EACH

    report = fix_paths(
        config,
        documents,
        policy,
        _prompt_decider if policy is FixPolicy.CONFIRM_EACH else None,
    )

    click.echo(format_fix_summary(report, dry_run=dry_run))

    if report.errors:
        sys.exit(2)
    if report.manual:
        sys.exit(1)


@main.command()
@_PROJECT_OPTION
def doctor(*, project: Path | None) -> None:
    """Show effective configuration and parser availability."""
    from rich.console import Console
    from rich.table import Table

    from coderef.code_index.languages import check_parser_availability, source_extensions

    config = _load(project)
    console = Console()

    table = Table(title="Configuration", show_header=False, box=None, padding=(0, 1))
    table.add_column("key", style="cyan")
    table.add_column("value")
    table.add_row("project_root", str(config.project_root))
    table.add_row("docs_dir", config.docs_dir)
    table.add_row("ignore_file", config.ignore_file)
    table.add_row("jobs", str(config.jobs))
    table.add_row("backup", str(config.backup))
    table.add_row("ignore_trailing_whitespace", str(config.ignore_trailing_whitespace))
    console.print(table)
    console.print()

    availability = check_parser_availability(sorted(source_extensions()))
    parsers = Table(title="Parsers", show_header=False, box=None, padding=(0, 1))
    parsers.add_column("extension", style="cyan")
    parsers.add_column("status")
    for ext, ok in availability.items():
        parsers.add_row(ext, "[green]ok[/]" if ok else "[red]missing[/]")
    console.print(parsers)

    if not all(availability.values()):
        sys.exit(1)
