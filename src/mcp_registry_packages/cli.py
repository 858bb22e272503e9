"""
MCP Registry Packages CLI

Implements 4 CLI verbs with Operations facade integration:
- validate: Run publish-time checks over a server.json
- canonicalize: Rewrite a server document or packages array into canonical form
- check-url: Check a transport URL against the transport URL pattern
- migrate: Migrate a JSON export of stored servers to canonical packages
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from .cli_context import CLIContext
from .operations import Operations, OpsConfig, load_json_document, run_and_exit
from .operations.printers import (
    print_document, print_migration_report, print_url_ok, print_validation_report
)

app = typer.Typer(name="mcp-registry-packages", help="MCP Registry package reference tools")


@app.callback()
def main_callback(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", envvar="MCP_REGISTRY_CONFIG", help="YAML settings file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show detailed output and debug logs"),
) -> None:
    """Configure logging and the shared CLI context."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = CLIContext(config_path=config, verbose=verbose)


def _context(ctx: typer.Context) -> CLIContext:
    return ctx.obj if isinstance(ctx.obj, CLIContext) else CLIContext()


@app.command()
def validate(
    ctx: typer.Context,
    server_json: Path = typer.Argument(..., help="Path to server.json"),
    skip_remote: bool = typer.Option(False, "--skip-remote", help="Skip registry ownership checks"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="Overall deadline in seconds"),
) -> None:
    """Validate a server document and verify ownership of its packages."""

    def _validate() -> None:
        context = _context(ctx)
        ops = Operations(OpsConfig(skip_remote=skip_remote, timeout_s=timeout, verbose=context.verbose),
                         settings=context.settings)
        try:
            report = ops.validate_server(load_json_document(server_json))
        finally:
            ops.close()
        print_validation_report(report, verbose=context.verbose)

    run_and_exit(_validate)


@app.command()
def canonicalize(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="Server document, package or packages array (JSON)"),
) -> None:
    """Print the canonical form of a stored document."""

    def _canonicalize() -> None:
        context = _context(ctx)
        ops = Operations(OpsConfig(skip_remote=True, verbose=context.verbose), settings=context.settings)
        print_document(ops.canonicalize(load_json_document(file)))

    run_and_exit(_canonicalize)


@app.command("check-url")
def check_url(
    ctx: typer.Context,
    url: str = typer.Argument(..., help="Transport URL to check"),
) -> None:
    """Check a streamable-http / sse transport URL."""

    def _check_url() -> None:
        context = _context(ctx)
        ops = Operations(OpsConfig(skip_remote=True), settings=context.settings)
        ops.check_url(url)
        print_url_ok(url)

    run_and_exit(_check_url)


@app.command()
def migrate(
    ctx: typer.Context,
    store_json: Path = typer.Argument(..., help="JSON export: list of {id, value} records"),
    live: bool = typer.Option(False, "--live", help="Write changes (default is a dry run)"),
    chunk_size: Optional[int] = typer.Option(None, "--chunk-size", min=0, help="Records per transaction (0 = single transaction)"),
    start_after: Optional[str] = typer.Option(None, "--start-after", help="Resume after this record id"),
) -> None:
    """Migrate stored package references to the canonical shape."""

    def _migrate() -> None:
        context = _context(ctx)
        ops = Operations(OpsConfig(skip_remote=True, verbose=context.verbose), settings=context.settings)
        store = context.record_store(store_json)
        report = ops.migrate(store, live=live, chunk_size=chunk_size, start_after=start_after)
        print_migration_report(report, verbose=context.verbose)
        if report.failures:
            raise typer.Exit(code=7)

    run_and_exit(_migrate)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
