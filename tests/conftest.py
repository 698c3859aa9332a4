"""Shared pytest fixtures."""

from __future__ import annotations

from typing import Any

import pytest

from docstash.crawl.provider import CrawlProvider
from docstash.store.document_store import DocumentStore
from docstash.store.models import Page


class FakeProvider(CrawlProvider):
    """Scripted crawl provider: returns queued poll records in order.

    The last queued record repeats once the queue is exhausted. A queued
    exception instance is raised instead of returned.
    """

    def __init__(self) -> None:
        self.submit_response: Any = {"id": "job-1"}
        self.poll_responses: list[Any] = [{"status": "completed", "data": []}]
        self.scrape_response: Any = {"data": {}}
        self.submitted: list[dict[str, Any]] = []
        self.polled: list[str] = []
        self.cancelled: list[str] = []
        self.scraped: list[dict[str, Any]] = []

    def submit(self, body: dict[str, Any]) -> dict[str, Any]:
        self.submitted.append(body)
        return self._resolve(self.submit_response)

    def poll(self, job_id: str) -> dict[str, Any]:
        self.polled.append(job_id)
        if len(self.poll_responses) > 1:
            return self._resolve(self.poll_responses.pop(0))
        return self._resolve(self.poll_responses[0])

    def cancel(self, job_id: str) -> None:
        self.cancelled.append(job_id)

    def scrape(self, body: dict[str, Any]) -> dict[str, Any]:
        self.scraped.append(body)
        return self._resolve(self.scrape_response)

    @staticmethod
    def _resolve(value: Any) -> Any:
        if isinstance(value, BaseException):
            raise value
        return value


def page_record(url: str, title: str, markdown: str) -> dict[str, Any]:
    """One provider page record, as returned in a completed crawl."""
    return {"markdown": markdown, "metadata": {"sourceURL": url, "title": title}}


@pytest.fixture
def tmp_store(tmp_path):
    """Empty DocumentStore rooted in tmp_path."""
    return DocumentStore(tmp_path / "scraped-docs")


@pytest.fixture
def fake_provider():
    """Scripted provider; completes immediately with no pages by default."""
    return FakeProvider()


@pytest.fixture
def isolated_config(tmp_path, monkeypatch):
    """Run from an empty tmp cwd with no global config and no credentials.

    Polling is made instant through a project ``docstash.yaml``.
    """
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    monkeypatch.setattr("docstash.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml")
    for var in ("FIRECRAWL_API_KEY", "GITHUB_TOKEN", "GITHUB_REPO", "DOCSTASH_ROOT", "DOCSTASH_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    (work / "docstash.yaml").write_text(
        "crawl:\n  poll_interval_ms: 0\n", encoding="utf-8"
    )
    return work


@pytest.fixture
def seeded_store(tmp_store):
    """Store holding two domains: an API reference (tagged) and a guide."""
    tmp_store.write_crawl_result(
        "api-example-com",
        "https://api.example.com",
        [
            Page("https://api.example.com/auth", "Authentication", "Use a webhook token to authenticate. webhook"),
            Page("https://api.example.com/users", "Users", "List users with pagination."),
        ],
        {"limit": 10},
        ["api"],
    )
    tmp_store.write_crawl_result(
        "guide-example-com",
        "https://guide.example.com",
        [Page("https://guide.example.com/start", "Start", "Configure a webhook in the dashboard.")],
    )
    return tmp_store
