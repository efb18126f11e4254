"""scanledger CLI - record which known vulnerabilities affect a module."""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from scanledger.config import (
    ensure_project_storage_dir,
    find_project_dir,
    get_project_db_path,
    load_worker_config,
)
from scanledger.db.store import ResultStore
from scanledger.errors import RequestError, ScanLedgerError
from scanledger.modes import ScanMode
from scanledger.pipeline import diff_pair, should_skip
from scanledger.request import ScanRequest, parse_module_url_path
from scanledger.worker import ScanWorker

app = typer.Typer(
    name="scanledger",
    help="Run vulnerability scans and keep a ledger of their results",
    no_args_is_help=True,
)
console = Console()


def configure_logging(verbose: bool) -> None:
    """Route log records through rich; DEBUG when verbose."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _target(target: str) -> tuple[str, str]:
    try:
        return parse_module_url_path(target)
    except RequestError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def _open_worker(verbose: bool) -> ScanWorker:
    config = load_worker_config()
    configure_logging(verbose or config.verbose)
    if not config.vulndb:
        console.print("[red]Error: no vulnerability database configured.[/red]")
        console.print("[dim]Set SCANLEDGER_VULNDB to a local DB directory or URL.[/dim]")
        raise typer.Exit(1)
    return ScanWorker(config, store=ResultStore.open(config.db_url))


@app.command()
def version() -> None:
    """Show the installed scanledger version."""
    from importlib.metadata import PackageNotFoundError, version as pkg_version

    try:
        current_version = pkg_version("scanledger")
    except PackageNotFoundError:
        current_version = "0.0.0+unknown"
    console.print(f"scanledger {current_version}")


@app.command()
def init() -> None:
    """Initialize a scanledger project in the current directory."""
    project_dir = Path.cwd()
    if find_project_dir(project_dir) == project_dir.resolve():
        console.print(f"[yellow]Project already initialized at {project_dir}[/yellow]")
        return
    try:
        storage = ensure_project_storage_dir(project_dir)
    except PermissionError:
        console.print("[red]Error: Cannot write to this directory.[/red]")
        raise typer.Exit(1)
    ResultStore.open(get_project_db_path(project_dir))
    console.print(f"[green]Initialized scanledger project in {storage}[/green]")
    console.print(f"[dim]Edit {storage / '.env'} to configure the scanner and vuln DB.[/dim]")


@app.command()
def scan(
    target: str = typer.Argument(..., help="module@version, module/@v/version or module/@latest"),
    mode: str = typer.Option("source", "--mode", "-m", help="Scan mode: source or binary"),
    module_dir: Optional[Path] = typer.Option(None, "--dir", "-C", help="Module source directory"),
    pattern: Optional[str] = typer.Option(
        None, "--pattern", help="Package pattern (source) or binary path (binary)"
    ),
    imported_by: int = typer.Option(0, "--importedby", help="Imported-by count of the module"),
    serve: bool = typer.Option(False, "--serve", help="Print the result instead of storing it"),
    force: bool = typer.Option(False, "--force", help="Scan even if the work version matches"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """Scan a module version and record the result."""
    module, mod_version = _target(target)
    try:
        scan_mode = ScanMode.parse(mode)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    if scan_mode not in (ScanMode.SOURCE, ScanMode.BINARY):
        console.print("[red]Error: use 'scanledger compare' for compare runs.[/red]")
        raise typer.Exit(1)

    worker = _open_worker(verbose)
    request = ScanRequest(
        module=module,
        version=mod_version,
        mode=scan_mode,
        imported_by=imported_by,
        serve=serve,
    )
    try:
        outcome = asyncio.run(
            worker.scan(request, module_dir=module_dir, pattern=pattern, force=force)
        )
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    if outcome.skipped:
        console.print(f"[yellow]{request.name()} is up to date; skipped.[/yellow]")
        return
    row = outcome.result
    if row.error:
        console.print(f"[red]Scan failed ({row.error_category}): {row.error}[/red]")
    else:
        console.print(
            f"[green]{request.name()}: {len(row.vulns)} vulnerabilities "
            f"({row.scan_seconds:.1f}s, {row.scan_memory} kB)[/green]"
        )
        for v in row.vulns:
            console.print(f"  {v.vuln_id}  {v.package_path}  {v.version}")
    if serve:
        console.print_json(
            json.dumps(
                {
                    "module_path": row.module_path,
                    "version": row.version,
                    "scan_mode": row.scan_mode,
                    "error": row.error,
                    "error_category": row.error_category,
                    "vulns": [v.vuln_id for v in row.vulns],
                }
            )
        )
    if row.error:
        raise typer.Exit(1)


@app.command()
def compare(
    target: str = typer.Argument(..., help="module@version"),
    module_dir: Path = typer.Option(..., "--dir", "-C", help="Module source directory"),
    packages: list[str] = typer.Option(..., "--package", "-p", help="Main package to build"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
) -> None:
    """Scan packages in binary and source mode and compare their findings."""
    module, mod_version = _target(target)
    worker = _open_worker(verbose)
    request = ScanRequest(module=module, version=mod_version, mode=ScanMode.COMPARE)
    outcome = asyncio.run(worker.compare(request, module_dir, packages))

    table = Table(title=f"Compare {request.name()}")
    table.add_column("Package")
    table.add_column("Binary only")
    table.add_column("Source only")
    table.add_column("Both")
    table.add_column("Error", style="red")
    for package, pair in sorted((outcome.compare.findings_for_mod or {}).items()):
        diff = diff_pair(pair, called_only=True)
        table.add_row(
            package,
            ", ".join(diff.binary_only),
            ", ".join(diff.source_only),
            ", ".join(diff.both),
            pair.error,
        )
    console.print(table)


@app.command()
def status(target: str = typer.Argument(..., help="module@version")) -> None:
    """Show the stored work state of a module version."""
    module, mod_version = _target(target)
    config = load_worker_config()
    store = ResultStore.open(config.db_url)
    try:
        state = store.read_work_state(module, mod_version)
    except ScanLedgerError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)
    if state is None:
        console.print(f"[yellow]No results stored for {module}@{mod_version}[/yellow]")
        return
    wv = state.work_version
    console.print(f"[bold]{module}@{mod_version}[/bold]")
    console.print(f"  go_version:           {wv.go_version}")
    console.print(f"  worker_version:       {wv.worker_version}")
    console.print(f"  schema_version:       {wv.schema_version}")
    console.print(f"  vulndb_last_modified: {wv.vulndb_last_modified}")
    console.print(f"  error_category:       {state.error_category or '-'}")
    if config.vulndb:
        worker = ScanWorker(config, store=store)
        try:
            current = asyncio.run(worker.current_work_version())
        except ScanLedgerError as e:
            console.print(f"[dim]Current work version unavailable: {e}[/dim]")
            return
        verdict = "up to date" if should_skip(current, state) else "needs rescan"
        console.print(f"  status:               {verdict}")


@app.command()
def results(
    module: Optional[str] = typer.Option(None, "--module", help="Only rows for this module path"),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of rows"),
) -> None:
    """List recently stored results."""
    config = load_worker_config()
    rows = ResultStore.open(config.db_url).list_results(module, limit=limit)
    if not rows:
        console.print("[yellow]No results stored yet.[/yellow]")
        return
    table = Table(title="Scan results")
    for column in ("Created", "Module", "Version", "Mode", "Vulns", "Seconds", "Error"):
        table.add_column(column)
    for row in rows:
        table.add_row(
            row.created_at.strftime("%Y-%m-%d %H:%M:%S"),
            row.module_path,
            row.version,
            row.scan_mode,
            str(len(row.vulns)),
            f"{row.scan_seconds:.1f}",
            row.error_category or "",
        )
    console.print(table)


def main() -> None:
    """Entry point for the scanledger command."""
    app()


if __name__ == "__main__":
    main()
