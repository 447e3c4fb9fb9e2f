from __future__ import annotations

import logging
from importlib.metadata import PackageNotFoundError, version as dist_version
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from apigen.config import DEFAULT_API_DIR, GenerateOptions
from apigen.domain.errors import ApigenError
from apigen.domain.models import ContractFile, Diagnostic
from apigen.orchestrator.pipeline import (
    FileResult,
    GenerateResult,
    collect_contracts,
    generate_file,
    run_generate,
)

app = typer.Typer(no_args_is_help=True, add_completion=False)

console = Console()
err_console = Console(stderr=True)


def configure_logging(level: int = logging.WARNING) -> None:
    """Configure application logging with Rich handler."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


@app.callback()
def main_callback() -> None:
    """Generate typed HTTP clients and FastAPI route dispatchers from annotated contracts."""
    configure_logging()


@app.command()
def generate(
    directory: str = typer.Argument(
        DEFAULT_API_DIR, envvar="APIGEN_DIR", help="Directory containing API contract files"
    ),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Descend into sub-directories"),
    strict: bool = typer.Option(False, envvar="APIGEN_STRICT", help="Fail on any rejected route or contract"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging and skipped-candidate notes"),
    jobs: int = typer.Option(1, "--jobs", "-j", min=1, envvar="APIGEN_JOBS", help="Files processed concurrently"),
    check: bool = typer.Option(False, help="Only verify generated files are up to date"),
) -> None:
    """Generate <name>_client_gen.py and <name>_server_gen.py for every contract file."""
    if verbose:
        configure_logging(logging.DEBUG)
    dir_path = Path(directory).expanduser().resolve()
    if not dir_path.exists():
        raise typer.BadParameter(f"directory does not exist: {dir_path}")
    if not dir_path.is_dir():
        raise typer.BadParameter(f"not a directory: {dir_path}")

    options = GenerateOptions(recursive=recursive, strict=strict, jobs=jobs, check=check)
    result = run_generate(dir_path, options)

    if not result.files:
        console.print(f"No API contract files found in '{dir_path}'")
        console.print("API files should contain a '@client' directive in a contract class docstring.")
        return

    verb = "Checking" if check else "Generating"
    console.print(f"{verb} API code from {len(result.files)} file(s)...")
    console.print("")
    for f in result.files:
        _print_file_result(f, dir_path, verbose=verbose)

    _print_summary(result)
    if not result.ok:
        raise typer.Exit(code=1)


app.command("gen", hidden=True)(generate)


@app.command("generate-file")
def generate_file_cmd(
    source: str = typer.Argument(..., help="Python file containing the contract classes"),
    output: Optional[str] = typer.Option(None, help="Client output file name (default <name>_client_gen.py)"),
    strict: bool = typer.Option(False, help="Fail on any rejected route"),
) -> None:
    """Generate client and server code from a single file."""
    src = Path(source).expanduser().resolve()
    if not src.is_file():
        raise typer.BadParameter(f"source file does not exist: {src}")

    result = generate_file(src, GenerateOptions(strict=strict), client_output=Path(output) if output else None)
    _print_file_result(result, src.parent, verbose=False)

    if result.status == "skipped":
        err_console.print("[red]No contracts with @client directive found[/red]")
        raise typer.Exit(code=1)
    if not result.ok:
        raise typer.Exit(code=1)


@app.command()
def routes(
    path: str = typer.Argument(DEFAULT_API_DIR, help="Contract file or directory"),
    recursive: bool = typer.Option(False, "--recursive", "-r", help="Descend into sub-directories"),
    format: str = typer.Option("table", help="Output format: table|json"),
) -> None:
    """Print the route table the generators would emit."""
    target = Path(path).expanduser().resolve()
    if not target.exists():
        raise typer.BadParameter(f"path does not exist: {target}")

    fmt = format.lower().strip()
    if fmt not in ("table", "json"):
        raise typer.BadParameter("format must be one of: table, json")

    try:
        files = collect_contracts(target, recursive=recursive)
    except ApigenError as exc:
        err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
        raise typer.Exit(code=1)

    if fmt == "json":
        payload = [_contract_json(cf) for cf in files]
        console.print_json(data=payload)
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("METHOD", no_wrap=True)
    table.add_column("ROUTE")
    table.add_column("HANDLER")
    table.add_column("PARAMS")
    table.add_column("RETURNS")
    table.add_column("FILE:LINE", no_wrap=True)

    count = 0
    for cf in files:
        rel = _rel(cf.source_file, target if target.is_dir() else target.parent)
        for iface in cf.interfaces:
            for m in iface.methods:
                params = [f"{p.name}: {p.kind.value}" for p in m.path_params]
                if m.has_body:
                    params.append(f"{m.body_param}: {m.body_type} (body)")
                table.add_row(
                    m.http_method,
                    iface.route(m),
                    f"{iface.name}.{m.name}",
                    escape(", ".join(params)),
                    escape(m.response_type),
                    f"{rel}:{m.line}",
                )
                count += 1

    console.print(f"[bold]Routes:[/bold] {count}")
    console.print(table)


@app.command()
def version() -> None:
    try:
        v = dist_version("apigen")
    except PackageNotFoundError:
        v = "dev"
    console.print(f"apigen version {v}")


def _print_file_result(f: FileResult, root: Path, verbose: bool) -> None:
    rel = _rel(f.source, root)
    style = {
        "written": "green",
        "unchanged": "dim",
        "stale": "yellow",
        "skipped": "yellow",
        "failed": "red",
    }[f.status]
    counts = f"({f.interfaces} contract(s), {f.routes} route(s))"
    console.print(f"  [{style}]{f.status:<9}[/{style}] {escape(rel)}  {counts}")
    if f.status in ("written", "unchanged", "stale") and verbose:
        console.print(f"            client: {_rel(f.client_path or '', root)}")
        console.print(f"            server: {_rel(f.server_path or '', root)}")
    for d in f.diagnostics:
        _print_diagnostic(d, verbose)
    if f.error:
        err_console.print(f"[red]Error:[/red] {escape(f.error)}")


def _print_diagnostic(d: Diagnostic, verbose: bool) -> None:
    if d.severity == "info":
        if verbose:
            console.print(f"            [dim]note: {escape(d.format())}[/dim]")
        return
    console.print(f"            [yellow]warning:[/yellow] {escape(d.format())}")


def _print_summary(result: GenerateResult) -> None:
    counts: dict[str, int] = {}
    for f in result.files:
        counts[f.status] = counts.get(f.status, 0) + 1
    parts = [f"{n} {status}" for status, n in sorted(counts.items())]
    console.print("")
    if result.ok:
        console.print(f"[bold green]Done[/bold green]: {', '.join(parts)}")
    else:
        console.print(f"[bold red]Failed[/bold red]: {', '.join(parts)}")


def _contract_json(cf: ContractFile) -> dict:
    return {
        "file": cf.source_file,
        "module": cf.module,
        "contracts": [
            {
                "name": iface.name,
                "client": iface.client_name,
                "base_path": iface.base_path,
                "routes": [
                    {
                        "method": m.http_method,
                        "route": iface.route(m),
                        "handler": m.name,
                        "path_params": [{"name": p.name, "kind": p.kind.value} for p in m.path_params],
                        "body": {"name": m.body_param, "type": m.body_type} if m.has_body else None,
                        "returns": m.response_type,
                    }
                    for m in iface.methods
                ],
            }
            for iface in cf.interfaces
        ],
        "diagnostics": [d.model_dump() for d in cf.diagnostics],
    }


def _rel(path: str, root: Path) -> str:
    try:
        return str(Path(path).relative_to(root))
    except ValueError:
        return path


def main() -> None:
    app()


if __name__ == "__main__":
    main()
