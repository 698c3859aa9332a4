"""docstash search / stats — query the local corpus."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from docstash.cli.common import fail, load_settings, open_store
from docstash.errors import DocstashError
from docstash.search.engine import SearchEngine

console = Console()


def search_cmd(
    query: Annotated[str, typer.Argument(help="Text to search for.")],
    domain: Annotated[
        str | None,
        typer.Option("--domain", "-d", help="Only search domains matching this name."),
    ] = None,
    tag: Annotated[
        list[str] | None,
        typer.Option("--tag", "-t", help="Only search domains with this tag (repeatable)."),
    ] = None,
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-l", help="Maximum number of results."),
    ] = None,
    case_sensitive: Annotated[
        bool,
        typer.Option("--case-sensitive", help="Match letter case exactly."),
    ] = False,
    root: Annotated[
        Path | None,
        typer.Option("--root", help="Storage root (default: ~/scraped-docs)."),
    ] = None,
) -> None:
    """Full-text search across all scraped documentation."""
    cfg = load_settings(root)
    engine = SearchEngine(open_store(cfg))
    try:
        results = engine.search(
            query,
            domain=domain,
            tags=list(tag or []),
            limit=limit if limit is not None else cfg.search.limit,
            case_sensitive=case_sensitive,
        )
    except DocstashError as exc:
        fail(exc)

    if not results:
        console.print(f"[yellow]No results for[/] '{escape(query)}'.")
        return

    console.print(f"[bold]{len(results)}[/] result(s) for '{escape(query)}':\n")
    for i, r in enumerate(results, start=1):
        console.print(
            f"[bold]{i}. {escape(r.title)}[/]  [dim]{escape(r.domain)}/{escape(r.path)}"
            f"  score {r.score}[/]"
        )
        if r.source_url:
            console.print(f"   [cyan]{escape(r.source_url)}[/]")
        console.print(f"   {escape(r.snippet)}\n")


def stats_cmd(
    root: Annotated[
        Path | None,
        typer.Option("--root", help="Storage root (default: ~/scraped-docs)."),
    ] = None,
) -> None:
    """Show corpus totals and per-domain page and word counts."""
    stats = SearchEngine(open_store(load_settings(root))).stats()

    console.print(
        Panel(
            f"Domains: [bold]{stats.total_domains}[/]  |  "
            f"Pages: [bold]{stats.total_pages:,}[/]  |  "
            f"Words: [bold]{stats.total_word_count:,}[/]",
            title="[bold]Corpus[/]",
            expand=False,
        )
    )
    if not stats.per_domain:
        return

    table = Table(show_header=True, box=None, padding=(0, 1))
    table.add_column("Domain", style="bold")
    table.add_column("Pages", justify="right")
    table.add_column("Words", justify="right")
    for d in sorted(stats.per_domain, key=lambda d: d.words, reverse=True):
        table.add_row(d.domain, str(d.pages), f"{d.words:,}")
    console.print(table)
