"""Command line interface for docpress."""

from __future__ import annotations

import html
import json
import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from docpress.build import SEARCH_DATA, SITE_DATA, SiteBuilder
from docpress.config import DEFAULT_CONFIG_NAME, AppConfig, load_config
from docpress.errors import DocpressError
from docpress.search.index import SearchIndex
from docpress.search.query import query as run_query
from docpress.web.app import create_app

console = Console()
app = typer.Typer(help="docpress - content-addressed static documentation builds")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _load(config_path: Path) -> AppConfig:
    if config_path.exists():
        return load_config(config_path)
    console.print(f"[yellow]Config {config_path} not found, using defaults.[/yellow]")
    return AppConfig()


def _fail(exc: DocpressError, action: str = "Build failed") -> None:
    console.print(f"[bold red]{action}:[/bold red] {escape(str(exc))}")
    raise typer.Exit(code=1)


@app.command()
def build(
    config: Path = typer.Option(Path(DEFAULT_CONFIG_NAME), "--config", "-c", help="Site config file"),
    src: Optional[Path] = typer.Option(None, "--src", help="Directory of rendered documents"),
    out: Optional[Path] = typer.Option(None, "--out", help="Output directory"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Build page bundles, navigation and search index."""
    _setup_logging(verbose)
    try:
        site_config = _load(config)
        if src is not None:
            site_config.src_dir = src
        if out is not None:
            site_config.out_dir = out
        console.print(f"Building [bold]{site_config.src_dir}[/bold] into [bold]{site_config.out_dir}[/bold]...")
        stats = SiteBuilder(site_config).run()
    except DocpressError as exc:
        _fail(exc)
        return

    console.print(
        f"Pages: {stats.pages}, chunks written: {stats.chunks_written}, "
        f"reused: {stats.chunks_reused}, removed: {stats.chunks_removed}"
    )
    if stats.orphan_routes:
        console.print(f"[yellow]{len(stats.orphan_routes)} pages are not linked from the navigation.[/yellow]")


@app.command()
def check(
    config: Path = typer.Option(Path(DEFAULT_CONFIG_NAME), "--config", "-c", help="Site config file"),
    src: Optional[Path] = typer.Option(None, "--src", help="Directory of rendered documents"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Compile pages and resolve navigation without writing anything."""
    _setup_logging(verbose)
    try:
        site_config = _load(config)
        if src is not None:
            site_config.src_dir = src
        result = SiteBuilder(site_config).build()
    except DocpressError as exc:
        _fail(exc)
        return
    console.print(f"[green]OK[/green]: {len(result.records)} pages, all navigation links resolve.")


def _index_path(index: Optional[Path], out: Path, name: str) -> Path:
    if index is not None:
        return index
    site_path = out / SITE_DATA
    if not site_path.exists():
        if name == "main" and (out / SEARCH_DATA).exists():
            return out / SEARCH_DATA
        raise typer.BadParameter(f"Site data not found: {site_path}")
    try:
        site = json.loads(site_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError:
        raise typer.BadParameter(f"Site data is damaged: {site_path}") from None
    try:
        return out / site["search"][name]
    except (KeyError, TypeError):
        raise typer.BadParameter(f"No search index named {name!r} in {site_path}") from None


def _render_preview(preview: str) -> str:
    """Turn the HTML preview into rich markup with the match highlighted."""
    marked = preview.replace("<mark>", "\x00").replace("</mark>", "\x01")
    text = escape(html.unescape(marked))
    return text.replace("\x00", "[bold yellow]").replace("\x01", "[/bold yellow]")


@app.command()
def search(
    query: str = typer.Argument(..., help="Query text"),
    index: Optional[Path] = typer.Option(None, "--index", help="Serialized search index"),
    out: Path = typer.Option(Path("dist"), "--out", help="Built site directory"),
    name: str = typer.Option("main", "--name", help="Index name, e.g. a search context"),
    limit: int = typer.Option(10, help="Number of results to display"),
) -> None:
    """Query a built search index the way the browser widget does."""
    path = _index_path(index, out, name)
    if not path.exists():
        raise typer.BadParameter(f"Search index not found: {path}")
    try:
        loaded = SearchIndex.load(path)
    except DocpressError as exc:
        _fail(exc, "Cannot load index")
        return

    results = run_query(loaded, query, limit=limit)
    if not results:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Score")
    table.add_column("Route")
    table.add_column("Title")
    table.add_column("Preview")

    for result in results:
        table.add_row(
            f"{result.score:.1f}", result.route, escape(result.title), _render_preview(result.preview)
        )

    console.print(table)


@app.command()
def preview(
    host: str = typer.Option("127.0.0.1", help="Host interface"),
    port: int = typer.Option(4173, help="Server port"),
    out: Path = typer.Option(Path("dist"), "--out", help="Built site directory"),
) -> None:
    """Serve a built site locally."""
    try:
        import uvicorn
    except ImportError as exc:  # pragma: no cover - optional dependency
        raise typer.BadParameter(
            "uvicorn is not installed. Install the web extras with \"python -m pip install '.[web]'\""
        ) from exc

    if not (out / SITE_DATA).exists():
        console.print("[yellow]Warning: site data not found, run a build first.[/yellow]")

    console.print(f"Serving {out} on http://{host}:{port}")
    uvicorn.run(create_app(out), host=host, port=port, reload=False, log_level="info")
