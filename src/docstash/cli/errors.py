"""docstash rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from docstash.cli.errors import err_from_exception
    console.print(err_from_exception(exc))
    raise typer.Exit(1)
"""

from __future__ import annotations

from pathlib import Path

from rich.markup import escape

from docstash.errors import (
    BackupError,
    CrawlFailed,
    CrawlTimeout,
    DocstashError,
    DocumentNotFound,
    DomainNotFound,
    EmptyQuery,
    InvalidOptions,
    InvalidUrl,
    NoCorpus,
    RateLimited,
    StorageError,
)


def err_no_firecrawl_key() -> str:
    """FIRECRAWL_API_KEY is not set."""
    return (
        "[red]Error:[/] No Firecrawl API key.\n"
        "  Set:  export FIRECRAWL_API_KEY=fc-..."
    )


def err_invalid_url(url: str) -> str:
    return (
        f"[red]Error:[/] Invalid URL: '{escape(url)}'\n"
        "  Use an absolute http(s) URL, e.g.  https://docs.example.com"
    )


def err_invalid_options(message: str) -> str:
    return (
        f"[red]Error:[/] Invalid crawl options: {escape(message)}\n"
        "  Run:  docstash scrape --help"
    )


def err_rate_limited() -> str:
    return (
        "[red]Error:[/] Rate limited by Firecrawl API.\n"
        "  Wait a minute and try again, or lower --limit."
    )


def err_crawl_failed(message: str) -> str:
    return f"[red]Error:[/] Crawl failed: {escape(message)}"


def err_crawl_timeout(message: str) -> str:
    return (
        f"[red]Error:[/] {escape(message)}\n"
        "  Try a smaller --limit, narrower --include paths, or a longer --timeout."
    )


def err_domain_not_found(domain: str) -> str:
    return (
        f"[red]Error:[/] Domain '{escape(domain)}' not found.\n"
        "  Run:  docstash list  to see available domains."
    )


def err_document_not_found(domain: str, path: str) -> str:
    return (
        f"[red]Error:[/] Document '{escape(path)}' not found in domain '{escape(domain)}'.\n"
        f"  Run:  docstash get {escape(domain)}  to list its pages."
    )


def err_empty_query() -> str:
    return "[red]Error:[/] Search query cannot be empty."


def err_no_corpus() -> str:
    return (
        "[red]Error:[/] No scraped documentation found.\n"
        "  Run:  docstash scrape <url>  first."
    )


def err_backup_failed(message: str) -> str:
    """Backup commit failed after the local snapshot was written."""
    return (
        f"[red]Error:[/] GitHub backup failed: {escape(message)}\n"
        "  The local copy was saved. Re-run with --skip-backup, or check\n"
        "  GITHUB_TOKEN (contents:write) and GITHUB_REPO (owner/repo)."
    )


def err_storage(message: str) -> str:
    return (
        f"[red]Error:[/] Storage failure: {escape(message)}\n"
        "  Check permissions and free space under the storage root."
    )


def err_delete_all_confirm() -> str:
    return (
        "[red]Error:[/] delete-all requires explicit confirmation.\n"
        "  Run:  docstash delete-all --confirm DELETE_ALL"
    )


def warn_backup_skipped() -> str:
    """GitHub credentials missing — backup step skipped."""
    return (
        "[yellow]⚠[/] GitHub backup skipped: GITHUB_TOKEN or GITHUB_REPO not set.\n"
        "  Set both to back up scrapes, or pass --skip-backup to silence this."
    )


def err_from_exception(exc: DocstashError) -> str:
    """Return the actionable message for any docstash error."""
    if isinstance(exc, InvalidUrl) and "url" in exc.details:
        return err_invalid_url(str(exc.details["url"]))
    if isinstance(exc, InvalidOptions):
        return err_invalid_options(exc.message)
    if isinstance(exc, RateLimited):
        return err_rate_limited()
    if isinstance(exc, CrawlTimeout):
        return err_crawl_timeout(exc.message)
    if isinstance(exc, CrawlFailed):
        return err_crawl_failed(exc.message)
    if isinstance(exc, DomainNotFound):
        return err_domain_not_found(str(exc.details.get("domain", "")))
    if isinstance(exc, DocumentNotFound):
        return err_document_not_found(
            str(exc.details.get("domain", "")), str(exc.details.get("path", ""))
        )
    if isinstance(exc, EmptyQuery):
        return err_empty_query()
    if isinstance(exc, NoCorpus):
        return err_no_corpus()
    if isinstance(exc, BackupError):
        return err_backup_failed(exc.message)
    if isinstance(exc, StorageError):
        return err_storage(exc.message)
    return f"[red]Error:[/] {escape(exc.message)}"


def fmt_path(path: Path) -> str:
    """Show *path* with the home directory abbreviated to ``~``."""
    try:
        return f"~/{path.relative_to(Path.home())}"
    except ValueError:
        return str(path)
