from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from routescribe.config import DEFAULT_FRAMEWORKS, DEFAULT_MAX_FILES, GenerativeSettings, ScanConfig, SpecInfo
from routescribe.errors import ConfigError
from routescribe.orchestrator.pipeline import discover_routes, run_scan
from routescribe.spec.render import check_format, write_spec

app = typer.Typer(no_args_is_help=True, add_completion=False)

console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
    )


def _build_config(
    extensions: Optional[List[str]],
    exclude_dirs: Optional[List[str]],
    exclude_patterns: Optional[List[str]],
    frameworks: Optional[List[str]],
    max_files: int,
    max_file_size: Optional[int],
    ai_enabled: bool,
) -> ScanConfig:
    values = {
        "exclude_dirs": exclude_dirs or [],
        "exclude_patterns": exclude_patterns or [],
        "frameworks": frameworks or list(DEFAULT_FRAMEWORKS),
        "max_files": max_files,
        "max_file_size_bytes": max_file_size,
        "ai_enabled": ai_enabled,
    }
    if extensions:
        values["extensions"] = extensions
    try:
        return ScanConfig(**values)
    except ValidationError as e:
        raise typer.BadParameter(str(e)) from e


@app.command()
def scan(
    directory: str = typer.Argument("./src", help="Directory to scan"),
    output: str = typer.Option("./docs", "--output", "-o", help="Output directory for the generated spec"),
    format: str = typer.Option("json", "--format", "-f", help="Output format: json|yaml"),
    ai: bool = typer.Option(True, "--ai/--no-ai", help="Use the generative analysis service"),
    max_files: int = typer.Option(DEFAULT_MAX_FILES, help="Maximum number of files to scan"),
    max_file_size: Optional[int] = typer.Option(None, help="Skip files larger than this (bytes)"),
    ext: Optional[List[str]] = typer.Option(None, "--ext", help="File extension to scan (repeatable)"),
    exclude_dir: Optional[List[str]] = typer.Option(None, "--exclude-dir", help="Extra directory name to skip"),
    exclude: Optional[List[str]] = typer.Option(None, "--exclude", help="Glob of files to skip"),
    framework: Optional[List[str]] = typer.Option(None, "--framework", help="Framework to detect (repeatable)"),
    title: str = typer.Option("API Documentation", help="Spec title"),
    api_version: str = typer.Option("1.0.0", help="Spec version"),
    description: str = typer.Option("Generated API documentation", help="Spec description"),
    base_url: str = typer.Option("http://localhost:3000", help="Server URL written into the OpenAPI document"),
    model: Optional[str] = typer.Option(None, help="Model name for the generative service"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    _setup_logging(verbose)

    try:
        fmt = check_format(format)
    except ConfigError as e:
        raise typer.BadParameter(str(e)) from e

    config = _build_config(ext, exclude_dir, exclude, framework, max_files, max_file_size, ai)
    info = SpecInfo(title=title, version=api_version, description=description, base_url=base_url)
    settings = GenerativeSettings.from_env(model=model) if ai else None

    repo_path = Path(directory).expanduser().resolve()
    try:
        with console.status("Scanning for API routes..."):
            result = run_scan(repo_path, config, info=info, settings=settings, handle_interrupts=True)
    except ConfigError as e:
        raise typer.BadParameter(str(e)) from e

    console.print(f"[bold green]routescribe[/bold green] scan: {repo_path}")
    console.print(f"Files scanned: {result.files_scanned}")
    console.print(f"Route files: {len(result.candidate_files)}")
    console.print(f"Frameworks: {', '.join(result.frameworks) or '-'}")

    if not result.routes:
        console.print("[yellow]No routes found[/yellow]")
        console.print("Example: app.get('/users', ...) or router.post('/api', ...)")

    out_path = write_spec(result.spec.document, Path(output), fmt)

    console.print("")
    console.print(f"Routes found: [bold]{len(result.routes)}[/bold]")
    for ra in result.analyses[:50]:
        r = ra.route
        console.print(f"  {r.method:<7} {r.path:<35} {ra.analysis.summary}  [dim]({r.source_file}:{r.line})[/dim]")
    if len(result.analyses) > 50:
        console.print(f"  … and {len(result.analyses) - 50} more")

    generated = sum(1 for ra in result.analyses if ra.strategy == "generative")
    if ai:
        console.print(f"AI analyses: {generated}/{len(result.analyses)} (rest from templates)")

    skipped = result.skipped_summary()
    if skipped:
        console.print("")
        console.print("[bold]Skipped files:[/bold]")
        for reason, count in skipped.items():
            console.print(f"  {count:>4}  {reason}")

    console.print("")
    console.print(f"[bold green]Wrote[/bold green] spec to: {out_path}")


@app.command("routes")
def routes_list(
    directory: str = typer.Argument("./src", help="Directory to scan"),
    method: Optional[str] = typer.Option(None, help="Filter by HTTP method (GET/POST/...)"),
    path_contains: Optional[str] = typer.Option(None, help="Substring match on HTTP path"),
    file_contains: Optional[str] = typer.Option(None, help="Substring match on file path"),
    max_files: int = typer.Option(DEFAULT_MAX_FILES, help="Maximum number of files to scan"),
    format: str = typer.Option("table", help="Output format: table|json"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """List discovered routes without generating documentation."""
    _setup_logging(verbose)
    config = _build_config(None, None, None, None, max_files, None, False)

    try:
        found = discover_routes(Path(directory).expanduser().resolve(), config)
    except ConfigError as e:
        raise typer.BadParameter(str(e)) from e

    rows = [
        r for r in found.routes
        if (not method or r.method == method.upper())
        and (not path_contains or path_contains in r.path)
        and (not file_contains or file_contains in r.source_file)
    ]

    if format.lower() == "json":
        payload = [
            {
                "method": r.method,
                "path": r.path,
                "params": [p.name for p in r.parameters],
                "middleware": list(r.middleware),
                "handler": r.handler_name or "<inline>",
                "async": r.is_async,
                "file": r.source_file,
                "line": r.line,
            }
            for r in rows
        ]
        console.print(json.dumps(payload, indent=2))
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("METHOD", no_wrap=True)
    table.add_column("PATH")
    table.add_column("HANDLER")
    table.add_column("MIDDLEWARE")
    table.add_column("FILE:LINE", no_wrap=True)

    for r in rows:
        table.add_row(
            r.method,
            r.path,
            r.handler_name or "<inline>",
            ", ".join(r.middleware),
            f"{r.source_file}:{r.line}",
        )

    console.print(f"[bold]Routes:[/bold] {len(rows)}")
    console.print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
