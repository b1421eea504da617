from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from postroute.config import ConfigError, GeneratorConfig, load_config
from postroute.orchestrator.pipeline import extract_project_routes, run_generate

app = typer.Typer(no_args_is_help=True, add_completion=False)

routes_app = typer.Typer(no_args_is_help=True)
app.add_typer(routes_app, name="routes")

console = Console()
err_console = Console(stderr=True)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _load_config(config: Optional[str], **overrides) -> GeneratorConfig:
    try:
        if config:
            base = load_config(Path(config).expanduser(), required=True)
        else:
            base = load_config()
        return base.merged(**overrides)
    except ConfigError as e:
        raise typer.BadParameter(str(e), param_hint="--config")


def _check_project(project_path: str) -> Path:
    path = Path(project_path).expanduser().resolve()
    if not path.exists():
        raise typer.BadParameter(f"Project path does not exist: {path}")
    if not path.is_dir():
        raise typer.BadParameter(f"Project path is not a directory: {path}")
    return path


@app.command()
def generate(
    project: Optional[str] = typer.Argument(None, help="Path to the Express.js project (default: cwd)"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Output path for the collection file"),
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Collection name"),
    base_url: Optional[str] = typer.Option(None, "--base-url", "-b", help="Base URL for the API"),
    description: Optional[str] = typer.Option(None, "--description", "-d", help="Collection description"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config file (.postmanrc.json)"),
    include: Optional[List[str]] = typer.Option(None, "--include", "-i", help="Glob of files to include (repeatable)"),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude", "-e", help="Glob of files to exclude (repeatable)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Generate a Postman collection from Express.js routes."""
    _configure_logging(verbose)
    cfg = _load_config(
        config,
        project_path=project,
        output_path=output,
        collection_name=name,
        base_url=base_url,
        description=description,
        include_patterns=include or None,
        exclude_patterns=exclude or None,
    )
    project_path = _check_project(cfg.project_path)

    console.print(f"[bold green]postroute[/bold green] generate: {project_path}")
    result = run_generate(cfg)

    console.print(f"Files scanned: {result.files_scanned}")
    for skipped in result.skipped_files:
        err_console.print(f"[yellow]Skipped[/yellow] {skipped.path}: {skipped.reason}")
    console.print(f"Routes found: [bold]{len(result.routes)}[/bold]")

    if not result.routes:
        err_console.print(
            "[yellow]No routes found.[/yellow] Make sure your Express routes are in the scanned files."
        )
        raise typer.Exit(code=1)

    console.print(f"[bold green]Wrote[/bold green] collection to: {result.output_path}")


@routes_app.command("list")
def routes_list(
    project: Optional[str] = typer.Argument(None, help="Path to the Express.js project (default: cwd)"),
    method: Optional[str] = typer.Option(None, help="Filter by HTTP method (GET/POST/...)"),
    path_contains: Optional[str] = typer.Option(None, help="Substring match on route path"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config file (.postmanrc.json)"),
    limit: int = typer.Option(200, help="Max rows to print"),
    format: str = typer.Option("table", help="Output format: table|json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """List extracted routes without writing a collection."""
    _configure_logging(verbose)
    fmt = format.lower().strip()
    if fmt not in ("table", "json"):
        raise typer.BadParameter("format must be one of: table, json")

    cfg = _load_config(config, project_path=project)
    _check_project(cfg.project_path)

    _, extractor = extract_project_routes(cfg)
    rows = extractor.routes
    if method:
        rows = [r for r in rows if r.method == method.upper()]
    if path_contains:
        rows = [r for r in rows if path_contains in r.path]
    rows = rows[:limit]

    if fmt == "json":
        # plain echo: rich would wrap long lines and break the JSON
        typer.echo(json.dumps([r.model_dump(mode="json") for r in rows], indent=2))
        return

    console.print(f"[bold]Routes:[/bold] {len(rows)} (showing up to {limit})")

    table = Table(show_header=True, header_style="bold")
    table.add_column("METHOD", no_wrap=True)
    table.add_column("PATH")
    table.add_column("BODY", no_wrap=True)
    table.add_column("HANDLERS")
    table.add_column("FILE:LINE", no_wrap=True)

    project_path = Path(cfg.project_path).expanduser().resolve()
    for r in rows:
        try:
            rel = Path(r.source_file).relative_to(project_path).as_posix()
        except ValueError:
            rel = r.source_file
        table.add_row(
            r.method,
            r.path,
            r.body_kind or "-",
            ", ".join(r.handler_refs) or "<inline>",
            f"{rel}:{r.line}",
        )

    console.print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
