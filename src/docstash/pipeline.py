"""Scrape pipeline: crawl → local store → backup commit → result.

The store write completes (pages, metadata, master index) before the backup
is attempted, so a failed backup never loses the local snapshot; the
BackupError still propagates to the caller.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path

from docstash.backup.github import BackupFile, BackupStore
from docstash.crawl.orchestrator import CrawlOptions, CrawlOrchestrator, ProgressCallback
from docstash.store.document_store import DocumentStore
from docstash.store.models import DomainMetadata
from docstash.store.naming import domain_from_url

logger = logging.getLogger(__name__)


@dataclass
class ScrapeResult:
    """Outcome of one scrape, as reported to the caller."""

    domain: str
    page_count: int
    total_word_count: int
    version: int
    local_path: Path
    duration_s: float
    backup_url: str | None = None
    commit_sha: str | None = None


def commit_message(metadata: DomainMetadata) -> str:
    return (
        f"docs: scraped {metadata.domain} v{metadata.version} "
        f"({metadata.page_count} pages, {metadata.total_word_count} words)"
    )


def scrape(
    url: str,
    orchestrator: CrawlOrchestrator,
    store: DocumentStore,
    *,
    options: CrawlOptions | None = None,
    tags: list[str] | None = None,
    backup: BackupStore | None = None,
    on_progress: ProgressCallback | None = None,
    single: bool = False,
) -> ScrapeResult:
    """Crawl *url*, store the pages under its domain, and back the batch up.

    Args:
        url: Crawl root URL.
        orchestrator: Configured crawl orchestrator.
        store: Local document store.
        options: Crawl options (defaults when omitted).
        tags: Tags recorded in the domain metadata and index.
        backup: Backup store; ``None`` skips the backup step.
        on_progress: Poll observer passed to the orchestrator.
        single: Scrape only *url* itself (no crawl job).

    Raises:
        DocstashError: Any crawl, storage or backup failure.
    """
    started = time.monotonic()
    options = options or CrawlOptions()
    domain = domain_from_url(url)
    # Fails before any provider call if the key is unusable as a directory.
    store.domain_dir(domain)

    if single:
        pages = [orchestrator.scrape_single(url, options)]
    else:
        pages = orchestrator.submit_and_await_crawl(url, options, on_progress)
    logger.info("Crawl of %s returned %d pages", url, len(pages))

    metadata = store.write_crawl_result(domain, url, pages, options.echo(), tags)

    result = ScrapeResult(
        domain=domain,
        page_count=metadata.page_count,
        total_word_count=metadata.total_word_count,
        version=metadata.version,
        local_path=store.domain_dir(domain),
        duration_s=0.0,
    )

    if backup is not None:
        files = [BackupFile(path, content) for path, content in store.backup_files(metadata)]
        logger.info("Committing %d files to backup", len(files))
        result.commit_sha = backup.commit_batch(files, commit_message(metadata))
        result.backup_url = backup.location(domain)

    result.duration_s = time.monotonic() - started
    return result
