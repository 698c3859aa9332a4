"""Tests for the actionable CLI error messages."""

from __future__ import annotations

from pathlib import Path

from docstash.cli.errors import (
    err_delete_all_confirm,
    err_from_exception,
    err_no_firecrawl_key,
    fmt_path,
)
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


def test_every_message_says_what_to_do():
    assert "FIRECRAWL_API_KEY" in err_no_firecrawl_key()
    assert "--confirm DELETE_ALL" in err_delete_all_confirm()


def test_invalid_url_quotes_the_url():
    msg = err_from_exception(InvalidUrl("Invalid URL: nope", {"url": "nope"}))
    assert "'nope'" in msg
    assert "https://" in msg


def test_invalid_url_without_details_falls_back_to_message():
    msg = err_from_exception(InvalidUrl("Invalid URL: nope"))
    assert "Invalid URL: nope" in msg


def test_domain_and_document_messages():
    domain_msg = err_from_exception(DomainNotFound("x", {"domain": "a-com"}))
    assert "'a-com'" in domain_msg
    assert "docstash list" in domain_msg

    doc_msg = err_from_exception(DocumentNotFound("x", {"domain": "a-com", "path": "p.md"}))
    assert "'p.md'" in doc_msg
    assert "docstash get a-com" in doc_msg


def test_crawl_messages():
    assert "Rate limited" in err_from_exception(RateLimited("slow down"))
    assert "robots" in err_from_exception(CrawlFailed("blocked by robots"))
    assert "--timeout" in err_from_exception(CrawlTimeout("Crawl timed out after 10s"))
    assert "limit must be" in err_from_exception(InvalidOptions("limit must be between 1 and 500"))


def test_query_and_corpus_messages():
    assert "cannot be empty" in err_from_exception(EmptyQuery("x"))
    assert "docstash scrape" in err_from_exception(NoCorpus("x"))


def test_backup_and_storage_messages():
    backup_msg = err_from_exception(BackupError("HTTP 403"))
    assert "local copy was saved" in backup_msg
    assert "--skip-backup" in backup_msg
    assert "permissions" in err_from_exception(StorageError("disk full"))


def test_markup_in_messages_is_escaped():
    msg = err_from_exception(CrawlFailed("bad [bold]tag"))
    assert "\\[bold]" in msg


def test_generic_error_fallback():
    assert err_from_exception(DocstashError("something odd")) == "[red]Error:[/] something odd"


def test_fmt_path_abbreviates_home():
    assert fmt_path(Path.home() / "scraped-docs") == "~/scraped-docs"
    assert fmt_path(Path("/srv/docs")) == "/srv/docs"
