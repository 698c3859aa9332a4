"""Crawl orchestrator: submit a crawl job, poll it to a terminal state, return pages.

Lifecycle of ``submit_and_await_crawl``:
  1. Validate URL and options locally (no network call on bad input).
  2. Submit the job through the retry wrapper; a response without a job id is fatal.
  3. Poll every ``poll_interval_ms`` (default 5 s), at most ``max_poll_attempts``
     times (default 120 ≈ 10 minutes), each poll through the retry wrapper.
  4. ``completed`` → pages; ``failed`` / ``cancelled`` → CrawlFailed;
     anything else → keep polling; attempts exhausted → CrawlTimeout.

The wait between polls is a cancellable timer: ``cancel()`` or an optional
wall-clock ``timeout_s`` interrupts it without waiting for the next tick.
Cancellation is cooperative; the provider may keep running the job.
"""

from __future__ import annotations

import logging
import threading
import time
import urllib.parse
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from docstash.crawl.actions import Action
from docstash.crawl.convert import to_page
from docstash.crawl.provider import CrawlProvider
from docstash.crawl.retry import RetryPolicy, with_retry
from docstash.errors import CrawlFailed, CrawlTimeout, InvalidOptions, InvalidUrl
from docstash.store.models import Page
from docstash.store.naming import domain_from_url

logger = logging.getLogger(__name__)

MIN_LIMIT = 1
MAX_LIMIT = 500
DEFAULT_POLL_INTERVAL_MS = 5_000
DEFAULT_MAX_POLL_ATTEMPTS = 120

_ALLOWED_SCHEMES = {"http", "https"}

PENDING = "pending"
CRAWLING = "crawling"
COMPLETED = "completed"
FAILED = "failed"
CANCELLED = "cancelled"

_STATUS_MAP = {
    "completed": COMPLETED,
    "failed": FAILED,
    "cancelled": CANCELLED,
    "scraping": CRAWLING,
    "crawling": CRAWLING,
}


def map_status(raw: Any) -> str:
    """Map a provider status string onto one of the five canonical states."""
    return _STATUS_MAP.get(str(raw), PENDING)


def validate_url(url: str) -> None:
    """Raise InvalidUrl unless *url* is an absolute http(s) URL with a host.

    The host must also map to a storage key, so a crawl is never started for a
    URL whose pages could not be stored.
    """
    try:
        parsed = urllib.parse.urlsplit(url)
        host = parsed.hostname
    except ValueError:
        raise InvalidUrl(f"Invalid URL: {url}", {"url": url}) from None
    if parsed.scheme not in _ALLOWED_SCHEMES or not host:
        raise InvalidUrl(f"Invalid URL: {url}", {"url": url})
    domain_from_url(url)


@dataclass
class CrawlStatus:
    """Progress snapshot passed to the observer once per poll."""

    status: str
    completed: int = 0
    total: int = 0
    job_id: str = ""


@dataclass
class CrawlOptions:
    """Parameters of one crawl request.

    Attributes:
        limit: Maximum number of pages (1–500).
        wait_for: Milliseconds to let client-side JS render before scraping.
        actions: Ordered pre-scrape browser actions.
        include_paths: URL path globs to include.
        exclude_paths: URL path globs to exclude.
        max_depth: Maximum link depth from the root URL.
        headers: Extra HTTP headers for every page request.
    """

    limit: int = 100
    wait_for: int = 0
    actions: list[Action] = field(default_factory=list)
    include_paths: list[str] = field(default_factory=list)
    exclude_paths: list[str] = field(default_factory=list)
    max_depth: int | None = None
    ignore_sitemap: bool | None = None
    allow_backward_links: bool | None = None
    allow_external_links: bool | None = None
    headers: dict[str, str] = field(default_factory=dict)

    def validate(self) -> None:
        if not MIN_LIMIT <= self.limit <= MAX_LIMIT:
            raise InvalidOptions(f"limit must be between {MIN_LIMIT} and {MAX_LIMIT}, got {self.limit}")
        if self.wait_for < 0:
            raise InvalidOptions(f"wait_for must be >= 0, got {self.wait_for}")
        if self.max_depth is not None and self.max_depth < 0:
            raise InvalidOptions(f"max_depth must be >= 0, got {self.max_depth}")

    def page_options(self) -> dict[str, Any]:
        """Per-page scrape settings (``scrapeOptions`` in a crawl request)."""
        opts: dict[str, Any] = {"formats": ["markdown"], "onlyMainContent": True}
        if self.wait_for > 0:
            opts["waitFor"] = self.wait_for
        if self.actions:
            opts["actions"] = [a.to_payload() for a in self.actions]
        if self.headers:
            opts["headers"] = dict(self.headers)
        return opts

    def to_request(self, url: str) -> dict[str, Any]:
        """Return the provider crawl request body; unset options are omitted."""
        body: dict[str, Any] = {
            "url": url,
            "limit": self.limit,
            "scrapeOptions": self.page_options(),
        }
        if self.include_paths:
            body["includePaths"] = list(self.include_paths)
        if self.exclude_paths:
            body["excludePaths"] = list(self.exclude_paths)
        if self.max_depth is not None:
            body["maxDepth"] = self.max_depth
        if self.ignore_sitemap is not None:
            body["ignoreSitemap"] = self.ignore_sitemap
        if self.allow_backward_links is not None:
            body["allowBackwardLinks"] = self.allow_backward_links
        if self.allow_external_links is not None:
            body["allowExternalLinks"] = self.allow_external_links
        return body

    def echo(self) -> dict[str, Any]:
        """Request parameters recorded in the domain metadata (``scrapeOptions``)."""
        echoed: dict[str, Any] = {"limit": self.limit}
        if self.wait_for:
            echoed["waitFor"] = self.wait_for
        if self.include_paths:
            echoed["includePaths"] = list(self.include_paths)
        if self.exclude_paths:
            echoed["excludePaths"] = list(self.exclude_paths)
        if self.max_depth is not None:
            echoed["maxDepth"] = self.max_depth
        if self.actions:
            echoed["actionCount"] = len(self.actions)
        return echoed


ProgressCallback = Callable[[CrawlStatus], None]


class CrawlOrchestrator:
    """Drive one crawl job at a time against a ``CrawlProvider``.

    Args:
        provider: Crawl provider client.
        retry: Backoff policy for submission and status polls.
        poll_interval_ms: Wait before each status check.
        max_poll_attempts: Status checks before giving up with CrawlTimeout.
        timeout_s: Optional wall-clock limit for the whole poll phase.
        sleep: Replacement for the cancellable wait (tests); takes seconds.
        clock: Monotonic clock in seconds (tests).
    """

    def __init__(
        self,
        provider: CrawlProvider,
        retry: RetryPolicy | None = None,
        poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS,
        max_poll_attempts: int = DEFAULT_MAX_POLL_ATTEMPTS,
        timeout_s: float | None = None,
        sleep: Callable[[float], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._provider = provider
        self._retry = retry or RetryPolicy()
        self.poll_interval_ms = poll_interval_ms
        self.max_poll_attempts = max_poll_attempts
        self.timeout_s = timeout_s
        self._sleep = sleep
        self._clock = clock
        self._cancelled = threading.Event()
        self._job_id: str | None = None

    @property
    def job_id(self) -> str | None:
        """Id of the job currently being polled, if any."""
        return self._job_id

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def submit_and_await_crawl(
        self,
        url: str,
        options: CrawlOptions | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> list[Page]:
        """Crawl *url* and return the scraped pages.

        *on_progress* is called synchronously once per poll and must not block.

        Raises:
            InvalidUrl: *url* is not an absolute http(s) URL.
            InvalidOptions: Options out of range, or rejected by the provider.
            RateLimited: The provider throttled the request.
            CrawlFailed: Submission failed, no job id, or the job failed / was cancelled.
            CrawlTimeout: No terminal state within max_poll_attempts or before the deadline.
        """
        options = options or CrawlOptions()
        validate_url(url)
        options.validate()
        self._cancelled.clear()

        logger.info("Starting crawl of %s with limit %d", url, options.limit)
        body = options.to_request(url)
        started = self._call(lambda: self._provider.submit(body), "starting crawl")

        job_id = started.get("id")
        if not job_id:
            raise CrawlFailed("No job ID returned from crawl request", {"url": url})

        self._job_id = str(job_id)
        try:
            return self._await_completion(self._job_id, url, on_progress)
        except KeyboardInterrupt:
            self.cancel_crawl(self._job_id)
            raise
        finally:
            self._job_id = None

    def scrape_single(self, url: str, options: CrawlOptions | None = None) -> Page:
        """Scrape one page synchronously (no crawl job, no polling)."""
        options = options or CrawlOptions(limit=1)
        validate_url(url)
        options.validate()

        body = {"url": url, **options.page_options()}
        response = self._call(lambda: self._provider.scrape(body), "scraping page")
        data = response.get("data")
        if not isinstance(data, dict):
            raise CrawlFailed(f"No page data returned for {url}", {"url": url})
        return to_page(data, url)

    def cancel(self) -> None:
        """Stop waiting for the active job and ask the provider to cancel it."""
        self._cancelled.set()
        if self._job_id:
            self.cancel_crawl(self._job_id)

    def cancel_crawl(self, job_id: str) -> None:
        """Best-effort provider cancel; failures are logged, never raised."""
        try:
            self._provider.cancel(job_id)
        except Exception as exc:
            # Fire-and-forget: the poll loop still decides the outcome.
            logger.warning("Could not cancel crawl %s: %s", job_id, exc)

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def _await_completion(
        self, job_id: str, url: str, on_progress: ProgressCallback | None
    ) -> list[Page]:
        deadline = self._clock() + self.timeout_s if self.timeout_s else None

        for _ in range(self.max_poll_attempts):
            self._pause(self.poll_interval_ms / 1000.0, deadline)

            if self._cancelled.is_set():
                raise CrawlFailed("Crawl job was cancelled", {"job_id": job_id})
            if deadline is not None and self._clock() >= deadline:
                raise CrawlTimeout(
                    f"Crawl timed out after {self.timeout_s:g}s", {"job_id": job_id}
                )

            raw = self._call(lambda: self._poll_once(job_id), "checking crawl status")
            status = CrawlStatus(
                status=map_status(raw.get("status")),
                completed=raw["completed"],
                total=raw["total"],
                job_id=job_id,
            )
            if on_progress is not None:
                on_progress(status)
            logger.info(
                "Crawling... %d/%d pages (%s)", status.completed, status.total, raw.get("status")
            )

            if status.status == COMPLETED:
                return [to_page(item, url) for item in raw.get("data") or []]
            if status.status == FAILED:
                raise CrawlFailed(str(raw.get("error") or "Crawl job failed"), {"job_id": job_id})
            if status.status == CANCELLED:
                raise CrawlFailed("Crawl job was cancelled", {"job_id": job_id})

        minutes = self.max_poll_attempts * self.poll_interval_ms / 60_000
        raise CrawlTimeout(f"Crawl timed out after {minutes:g} minutes", {"job_id": job_id})

    def _poll_once(self, job_id: str) -> dict[str, Any]:
        """Poll once, normalising the progress counters to ints.

        A record with non-numeric counters raises CrawlFailed, which the retry
        wrapper treats like any other transient provider failure.
        """
        raw = self._provider.poll(job_id)
        try:
            completed = int(raw.get("completed") or 0)
            total = int(raw.get("total") or 0)
        except (TypeError, ValueError) as exc:
            raise CrawlFailed(
                f"Malformed status for crawl job {job_id}: {exc}", {"job_id": job_id}
            ) from exc
        return {**raw, "completed": completed, "total": total}

    def _pause(self, seconds: float, deadline: float | None) -> None:
        if deadline is not None:
            seconds = max(0.0, min(seconds, deadline - self._clock()))
        if self._sleep is not None:
            self._sleep(seconds)
        else:
            self._cancelled.wait(seconds)

    def _call(self, fn: Callable[[], dict[str, Any]], operation: str) -> dict[str, Any]:
        return with_retry(fn, operation, self._retry, sleep=self._backoff_sleep)

    def _backoff_sleep(self, seconds: float) -> None:
        if self._sleep is not None:
            self._sleep(seconds)
        else:
            self._cancelled.wait(seconds)
