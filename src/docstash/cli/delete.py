"""docstash delete / delete-all — remove scraped content from the local store.

Only the local copy is removed; GitHub backups are left untouched.

Usage:
  docstash delete developer-timecamp-com
  docstash delete developer-timecamp-com --yes
  docstash delete-all --confirm DELETE_ALL
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from docstash.cli.common import fail, load_settings, open_store
from docstash.cli.errors import err_delete_all_confirm
from docstash.errors import DocstashError, DomainNotFound

console = Console()

_CONFIRM_TOKEN = "DELETE_ALL"


def delete_cmd(
    domain: Annotated[str, typer.Argument(help="Domain id to delete.")],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
    root: Annotated[
        Path | None,
        typer.Option("--root", help="Storage root (default: ~/scraped-docs)."),
    ] = None,
) -> None:
    """Delete all stored pages of one domain."""
    store = open_store(load_settings(root))

    try:
        if not store.domain_dir(domain).is_dir():
            raise DomainNotFound(f'Domain "{domain}" not found.', {"domain": domain})
        page_count = len(store.list_page_files(domain))
    except DocstashError as exc:
        fail(exc)

    console.print(f"\nDelete domain: [bold]{domain}[/]")
    console.print(f"  Pages: {page_count}  |  Local only (GitHub backup is kept)")

    if not yes:
        if not typer.confirm("Confirm deletion?", default=False):
            console.print("[dim]Cancelled.[/]")
            raise typer.Exit(0)

    try:
        result = store.delete_domain(domain)
    except DocstashError as exc:
        fail(exc)

    console.print(f"\n[green]✓[/] Deleted: {result.domain}")
    console.print(f"  {result.pages_deleted} pages removed")


def delete_all_cmd(
    confirm: Annotated[
        str,
        typer.Option("--confirm", help=f"Must be exactly {_CONFIRM_TOKEN}."),
    ] = "",
    root: Annotated[
        Path | None,
        typer.Option("--root", help="Storage root (default: ~/scraped-docs)."),
    ] = None,
) -> None:
    """Delete every scraped domain and reset the index."""
    if confirm != _CONFIRM_TOKEN:
        console.print(err_delete_all_confirm())
        raise typer.Exit(1)

    store = open_store(load_settings(root))
    try:
        result = store.delete_all()
    except DocstashError as exc:
        fail(exc)

    console.print(
        f"[green]✓[/] Deleted {result.domains_deleted} domains "
        f"({result.total_pages_deleted} pages)"
    )
