"""docstash scrape / scrape-spa — crawl a docs site into the local store.

Flow per invocation:
  validate URL → Firecrawl crawl job (polled, with progress bar)
  → pages + _metadata.json + index.json under the storage root
  → one GitHub commit with every written file (unless skipped)

Usage:
  docstash scrape https://developer.timecamp.com --limit 50 --tag api
  docstash scrape https://docs.example.com/page --single
  docstash scrape-spa https://app.example.com/docs --actions actions.json
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn

from docstash.backup.github import BackupStore, GitHubBackup
from docstash.cli.common import fail, load_settings, open_store
from docstash.cli.errors import err_no_firecrawl_key, fmt_path, warn_backup_skipped
from docstash.config import DocstashConfig, firecrawl_api_key, github_token
from docstash.crawl.actions import DEFAULT_RENDER_ACTIONS, Action, parse_actions
from docstash.crawl.orchestrator import CrawlOptions, CrawlOrchestrator, CrawlStatus, validate_url
from docstash.crawl.provider import CrawlProvider, FirecrawlProvider
from docstash.crawl.retry import RetryPolicy
from docstash.errors import DocstashError, InvalidOptions
from docstash.pipeline import ScrapeResult, scrape

console = Console()

_SPA_WAIT_FOR_MS = 5_000


def scrape_cmd(
    url: Annotated[str, typer.Argument(help="Root URL of the documentation site.")],
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-l", help="Maximum pages to crawl (1-500)."),
    ] = None,
    wait_for: Annotated[
        int,
        typer.Option("--wait-for", help="Milliseconds to wait for JS rendering per page."),
    ] = 0,
    include: Annotated[
        list[str] | None,
        typer.Option("--include", help="URL path pattern to include (repeatable)."),
    ] = None,
    exclude: Annotated[
        list[str] | None,
        typer.Option("--exclude", help="URL path pattern to exclude (repeatable)."),
    ] = None,
    max_depth: Annotated[
        int | None,
        typer.Option("--max-depth", help="Maximum link depth from the root URL."),
    ] = None,
    tag: Annotated[
        list[str] | None,
        typer.Option("--tag", "-t", help="Tag recorded for this domain (repeatable)."),
    ] = None,
    header: Annotated[
        list[str] | None,
        typer.Option("--header", "-H", help="Extra request header 'Name: value' (repeatable)."),
    ] = None,
    skip_backup: Annotated[
        bool,
        typer.Option("--skip-backup", help="Do not commit the scrape to GitHub."),
    ] = False,
    single: Annotated[
        bool,
        typer.Option("--single", help="Scrape only this page, without crawling links."),
    ] = False,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", help="Give up after this many seconds of polling."),
    ] = None,
    root: Annotated[
        Path | None,
        typer.Option("--root", help="Storage root (default: ~/scraped-docs)."),
    ] = None,
) -> None:
    """Scrape a documentation site and store it locally (and on GitHub)."""
    cfg = load_settings(root)
    try:
        options = CrawlOptions(
            limit=limit if limit is not None else (1 if single else cfg.crawl.limit),
            wait_for=wait_for,
            include_paths=list(include or []),
            exclude_paths=list(exclude or []),
            max_depth=max_depth,
            headers=parse_headers(header or []),
        )
    except DocstashError as exc:
        fail(exc)
    _run(url, options, cfg, tags=tag, skip_backup=skip_backup, single=single, timeout=timeout)


def scrape_spa_cmd(
    url: Annotated[str, typer.Argument(help="Root URL of the JavaScript-rendered site.")],
    actions: Annotated[
        str | None,
        typer.Option(
            "--actions",
            "-a",
            help="Browser actions as a JSON array or a path to a JSON file.",
        ),
    ] = None,
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-l", help="Maximum pages to crawl (1-500)."),
    ] = None,
    wait_for: Annotated[
        int,
        typer.Option("--wait-for", help="Milliseconds to wait for JS rendering per page."),
    ] = _SPA_WAIT_FOR_MS,
    include: Annotated[
        list[str] | None,
        typer.Option("--include", help="URL path pattern to include (repeatable)."),
    ] = None,
    exclude: Annotated[
        list[str] | None,
        typer.Option("--exclude", help="URL path pattern to exclude (repeatable)."),
    ] = None,
    max_depth: Annotated[
        int | None,
        typer.Option("--max-depth", help="Maximum link depth from the root URL."),
    ] = None,
    tag: Annotated[
        list[str] | None,
        typer.Option("--tag", "-t", help="Tag recorded for this domain (repeatable)."),
    ] = None,
    skip_backup: Annotated[
        bool,
        typer.Option("--skip-backup", help="Do not commit the scrape to GitHub."),
    ] = False,
    timeout: Annotated[
        float | None,
        typer.Option("--timeout", help="Give up after this many seconds of polling."),
    ] = None,
    root: Annotated[
        Path | None,
        typer.Option("--root", help="Storage root (default: ~/scraped-docs)."),
    ] = None,
) -> None:
    """Scrape a JavaScript-heavy site, running browser actions before each page."""
    cfg = load_settings(root)
    try:
        parsed: list[Action] = parse_actions(actions) if actions else list(DEFAULT_RENDER_ACTIONS)
        options = CrawlOptions(
            limit=limit if limit is not None else cfg.crawl.limit,
            wait_for=wait_for,
            actions=parsed,
            include_paths=list(include or []),
            exclude_paths=list(exclude or []),
            max_depth=max_depth,
        )
    except DocstashError as exc:
        fail(exc)
    console.print(f"[dim]{len(parsed)} browser action(s), wait {wait_for} ms per page[/]")
    _run(url, options, cfg, tags=tag, skip_backup=skip_backup, single=False, timeout=timeout)


# ------------------------------------------------------------------
# Shared run
# ------------------------------------------------------------------


def _run(
    url: str,
    options: CrawlOptions,
    cfg: DocstashConfig,
    *,
    tags: list[str] | None,
    skip_backup: bool,
    single: bool,
    timeout: float | None,
) -> None:
    try:
        validate_url(url)
        options.validate()
    except DocstashError as exc:
        fail(exc)

    api_key = firecrawl_api_key()
    if not api_key:
        console.print(err_no_firecrawl_key())
        raise typer.Exit(1)

    orchestrator = CrawlOrchestrator(
        build_provider(api_key),
        retry=RetryPolicy(
            max_retries=cfg.retry.max_retries,
            base_delay_ms=cfg.retry.base_delay_ms,
            max_delay_ms=cfg.retry.max_delay_ms,
        ),
        poll_interval_ms=cfg.crawl.poll_interval_ms,
        max_poll_attempts=cfg.crawl.max_poll_attempts,
        timeout_s=timeout if timeout is not None else cfg.crawl.timeout_s,
    )
    backup = None if skip_backup else _build_backup(cfg)
    store = open_store(cfg)

    console.print(f"\n[bold]→ {url}[/]")
    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            transient=True,
            console=console,
        ) as prog:
            task = prog.add_task("Crawling…", total=None)

            def on_progress(status: CrawlStatus) -> None:
                prog.update(
                    task,
                    description=f"Crawling… {status.completed}/{status.total} pages",
                    completed=status.completed,
                    total=status.total or None,
                )

            result = scrape(
                url,
                orchestrator,
                store,
                options=options,
                tags=list(tags or []),
                backup=backup,
                on_progress=on_progress,
                single=single,
            )
    except DocstashError as exc:
        fail(exc)
    except KeyboardInterrupt:
        console.print("[dim]Cancelled.[/]")
        raise typer.Exit(130)

    _print_result(result)


def build_provider(api_key: str) -> CrawlProvider:
    return FirecrawlProvider(api_key)


def _build_backup(cfg: DocstashConfig) -> BackupStore | None:
    if not cfg.backup.enabled:
        return None
    token = github_token()
    if not token or not cfg.backup.repo:
        console.print(warn_backup_skipped())
        return None
    try:
        return GitHubBackup(token, cfg.backup.repo, branch=cfg.backup.branch)
    except DocstashError as exc:
        fail(exc)


def parse_headers(raw: list[str]) -> dict[str, str]:
    """Parse ``Name: value`` strings into a header dict."""
    headers: dict[str, str] = {}
    for item in raw:
        name, sep, value = item.partition(":")
        if not sep or not name.strip():
            raise InvalidOptions(f"Header must look like 'Name: value', got '{item}'")
        headers[name.strip()] = value.strip()
    return headers


def _print_result(result: ScrapeResult) -> None:
    console.print(
        f"[green]✓[/] Scraped [bold]{result.page_count}[/] pages from "
        f"[bold]{result.domain}[/] (v{result.version})"
    )
    console.print(f"  Words:    {result.total_word_count:,}")
    console.print(f"  Local:    {fmt_path(result.local_path)}")
    if result.backup_url:
        console.print(f"  GitHub:   {result.backup_url}")
    console.print(f"  Duration: {result.duration_s:.1f}s")
