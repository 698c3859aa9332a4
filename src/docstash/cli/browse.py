"""docstash list / get — browse the local corpus."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from docstash.cli.common import fail, load_settings, open_store
from docstash.errors import DocstashError
from docstash.store.models import Document

console = Console()


def list_cmd(
    root: Annotated[
        Path | None,
        typer.Option("--root", help="Storage root (default: ~/scraped-docs)."),
    ] = None,
) -> None:
    """List every scraped domain with page counts and scrape dates."""
    store = open_store(load_settings(root))
    sites = store.list_domains()

    if not sites:
        console.print("[dim]No scraped documentation yet.[/]\n  Run:  docstash scrape <url>")
        return

    table = Table(title=f"Scraped documentation ({len(sites)} domains)")
    table.add_column("Domain", style="bold")
    table.add_column("Pages", justify="right")
    table.add_column("Words", justify="right")
    table.add_column("Version", justify="right")
    table.add_column("Scraped", style="dim")
    table.add_column("Tags", style="cyan")

    for site in sorted(sites, key=lambda s: s.domain):
        s = site.summary
        table.add_row(
            site.domain,
            str(s.page_count),
            f"{s.total_word_count:,}",
            f"v{s.version}",
            s.scraped_at[:10],
            ", ".join(s.tags),
        )
    console.print(table)


def get_cmd(
    domain: Annotated[str, typer.Argument(help="Domain id, e.g. developer-timecamp-com.")],
    path: Annotated[
        str | None,
        typer.Argument(help="Page filename (.md optional). Omit to list the domain's pages."),
    ] = None,
    root: Annotated[
        Path | None,
        typer.Option("--root", help="Storage root (default: ~/scraped-docs)."),
    ] = None,
) -> None:
    """Print one stored page, or list the pages of a domain."""
    store = open_store(load_settings(root))
    try:
        found = store.get_document(domain, path)
    except DocstashError as exc:
        fail(exc)

    if isinstance(found, Document):
        typer.echo(found.content)
        return

    if not found:
        console.print(f"[dim]No pages stored for {escape(domain)}.[/]")
        return

    table = Table(title=f"{domain} ({len(found)} pages)")
    table.add_column("Path", style="bold")
    table.add_column("Title")
    table.add_column("Source", style="dim")
    for ref in found:
        table.add_row(escape(ref.path), escape(ref.title), escape(ref.source_url))
    console.print(table)
