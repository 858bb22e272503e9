"""
Human-readable output formatting.

Centralizes all CLI output formatting so CLI commands stay thin. Results
go to stdout; errors go to stderr.
"""
from __future__ import annotations

import json
from typing import Any

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from ..migration import MigrationReport
from .facade import ServerValidationReport

_console = Console()
_err_console = Console(stderr=True)


def print_validation_report(report: ServerValidationReport, verbose: bool = False) -> None:
    """
    Print per-package validation outcomes for one server.

    Args:
        report: Validation report to display
        verbose: Show a row for every package, not just the summary
    """
    if not report.results:
        _console.print(f"[bold]{escape(report.name)}[/]: no packages to validate")
        return

    if verbose or report.skipped:
        table = Table(title=f"Packages of {escape(report.name)}")
        table.add_column("Registry", style="cyan")
        table.add_column("Identifier")
        table.add_column("Status")
        for result in report.results:
            status = f"[yellow]skipped[/] ({escape(result.reason or '')})" if result.skipped else "[green]ok[/]"
            table.add_row(escape(result.registry_type), escape(result.identifier), status)
        _console.print(table)

    verified = len(report.results) - len(report.skipped)
    _console.print(f"[bold green]✓[/] {escape(report.name)}: {verified} verified, {len(report.skipped)} skipped")


def print_document(doc: Any) -> None:
    """Print a JSON document (canonicalized output) to stdout."""
    typer.echo(json.dumps(doc, indent=2, ensure_ascii=False))


def print_url_ok(url: str) -> None:
    _console.print(f"[green]valid[/] {escape(url)}")


def print_migration_report(report: MigrationReport, verbose: bool = False) -> None:
    """
    Print migration counts, per-type legacy counts and (optionally) diffs.

    Args:
        report: Migration report to display
        verbose: Show every field change of every rewritten record
    """
    mode = "DRY RUN" if report.dry_run else "LIVE"
    _console.print(f"[bold]Migration ({mode})[/]")
    _console.print(f"Records scanned: {report.records_scanned}")
    _console.print(f"Records to rewrite: {report.records_changed}")
    if not report.dry_run:
        _console.print(f"Records written: {report.records_written}")
    _console.print(f"Legacy records: {report.legacy_before} -> {report.legacy_after}")

    if report.registry_type_counts:
        table = Table(title="Packages by registry type")
        table.add_column("Registry", style="cyan")
        table.add_column("Records", justify="right")
        table.add_column("Legacy before", justify="right", style="yellow")
        table.add_column("Legacy after", justify="right")
        for registry_type, count in report.registry_type_counts.items():
            before, after = report.legacy_by_type.get(registry_type, (0, 0))
            table.add_row(escape(registry_type), str(count), str(before), str(after))
        _console.print(table)

    if verbose and report.diffs:
        table = Table(title=f"Changes ({len(report.diffs)} records)")
        table.add_column("Record", style="cyan")
        table.add_column("Change")
        for diff in report.diffs:
            for change in diff.changes:
                table.add_row(escape(diff.record_id), escape(change.describe()))
        _console.print(table)

    if report.failures:
        table = Table(title=f"Failures ({len(report.failures)})")
        table.add_column("Record", style="red")
        table.add_column("Error", style="yellow")
        for failure in report.failures:
            table.add_row(escape(failure.record_id), escape(failure.error))
        _console.print(table)

    if report.last_committed_id is not None and not report.dry_run:
        _console.print(f"[dim]Resume cursor: {escape(report.last_committed_id)}[/]")


def print_error(exc: BaseException) -> None:
    """Print an error message to stderr."""
    _err_console.print(f"[bold red]Error:[/] {escape(str(exc))}", highlight=False)
