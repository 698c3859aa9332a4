"""docstash CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
import os
from typing import Annotated

import typer

from docstash.cli.browse import get_cmd, list_cmd
from docstash.cli.delete import delete_all_cmd, delete_cmd
from docstash.cli.scrape import scrape_cmd, scrape_spa_cmd
from docstash.cli.search import search_cmd, stats_cmd
from docstash.logging_setup import setup_logging

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _installed_version() -> str:
    try:
        return importlib.metadata.version("docstash")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"docstash {_installed_version()}")
        raise typer.Exit()


app = typer.Typer(
    name="docstash",
    help=(
        "docstash — scrape documentation sites into a local, searchable corpus.\n\n"
        "  docstash scrape URL    Crawl a site with Firecrawl and store it (+ GitHub backup).\n"
        "  docstash search QUERY  Full-text search across everything scraped."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging on stderr."),
    ] = False,
) -> None:
    """docstash — scrape documentation sites into a local, searchable corpus."""
    if verbose:
        level: str | int = logging.DEBUG
    else:
        level = os.environ.get("DOCSTASH_LOG_LEVEL", "WARNING").upper()
        if level not in _LOG_LEVELS:
            level = logging.WARNING
    setup_logging(level)


app.command("scrape")(scrape_cmd)
app.command("scrape-spa")(scrape_spa_cmd)
app.command("list")(list_cmd)
app.command("get")(get_cmd)
app.command("search")(search_cmd)
app.command("stats")(stats_cmd)
app.command("delete")(delete_cmd)
app.command("delete-all")(delete_all_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed docstash version."""
    typer.echo(f"docstash {_installed_version()}")


if __name__ == "__main__":
    app()
