"""Tests for the scrape pipeline: crawl → store → backup."""

from __future__ import annotations

import json

import pytest

from docstash.backup.github import BackupFile, BackupStore
from docstash.crawl.orchestrator import CrawlOptions, CrawlOrchestrator
from docstash.errors import BackupError, CrawlFailed
from docstash.pipeline import commit_message, scrape

URL = "https://developer.timecamp.com"
DOMAIN = "developer-timecamp-com"


class _RecordingBackup(BackupStore):
    def __init__(self, fail: bool = False) -> None:
        self.commits: list[tuple[list[BackupFile], str]] = []
        self.fail = fail

    def commit_batch(self, files, message):
        if self.fail:
            raise BackupError("GitHub API error (500)")
        self.commits.append((list(files), message))
        return "sha123"

    def read_file(self, path):
        return None

    def location(self, domain):
        return f"https://github.com/acme/docs/tree/main/{domain}"


def _completed(fake_provider, *records) -> None:
    fake_provider.poll_responses = [{"status": "completed", "data": list(records)}]


def _record(path: str, title: str, body: str) -> dict:
    return {"markdown": body, "metadata": {"sourceURL": f"{URL}/{path}", "title": title}}


def _orchestrator(provider) -> CrawlOrchestrator:
    return CrawlOrchestrator(provider, sleep=lambda s: None)


def test_scrape_writes_store_and_commits_backup(fake_provider, tmp_store):
    _completed(
        fake_provider,
        _record("docs/api", "API", "# API\n\nEndpoints live here."),
        _record("docs/auth", "Auth", "Token based auth."),
    )
    backup = _RecordingBackup()

    result = scrape(
        URL,
        _orchestrator(fake_provider),
        tmp_store,
        options=CrawlOptions(limit=10),
        tags=["timecamp"],
        backup=backup,
    )

    assert result.domain == DOMAIN
    assert result.page_count == 2
    assert result.version == 1
    assert result.total_word_count == 6
    assert result.local_path == tmp_store.root / DOMAIN
    assert result.commit_sha == "sha123"
    assert result.backup_url == f"https://github.com/acme/docs/tree/main/{DOMAIN}"
    assert result.duration_s >= 0

    files, message = backup.commits[0]
    assert [f.path for f in files] == [
        f"{DOMAIN}/docs_api.md",
        f"{DOMAIN}/docs_auth.md",
        f"{DOMAIN}/_metadata.json",
        "index.json",
    ]
    assert message == f"docs: scraped {DOMAIN} v1 (2 pages, 6 words)"

    meta = json.loads((tmp_store.root / DOMAIN / "_metadata.json").read_text(encoding="utf-8"))
    assert meta["tags"] == ["timecamp"]
    assert meta["scrapeOptions"] == {"limit": 10}


def test_scrape_without_backup(fake_provider, tmp_store):
    _completed(fake_provider, _record("a", "A", "alpha"))
    result = scrape(URL, _orchestrator(fake_provider), tmp_store)
    assert result.backup_url is None
    assert result.commit_sha is None
    assert [s.domain for s in tmp_store.list_domains()] == [DOMAIN]


def test_rescrape_bumps_version(fake_provider, tmp_store):
    _completed(fake_provider, _record("a", "A", "alpha"))
    scrape(URL, _orchestrator(fake_provider), tmp_store)
    result = scrape(URL, _orchestrator(fake_provider), tmp_store)
    assert result.version == 2


def test_single_page_scrape(fake_provider, tmp_store):
    fake_provider.scrape_response = {"data": _record("guide", "Guide", "One page only.")}

    result = scrape(f"{URL}/guide", _orchestrator(fake_provider), tmp_store, single=True)

    assert result.page_count == 1
    assert fake_provider.submitted == []
    assert tmp_store.list_page_files(DOMAIN) == ["guide.md"]


def test_crawl_failure_writes_nothing(fake_provider, tmp_store):
    fake_provider.poll_responses = [{"status": "failed", "error": "blocked"}]
    with pytest.raises(CrawlFailed):
        scrape(URL, _orchestrator(fake_provider), tmp_store)
    assert tmp_store.list_domains() == []


def test_backup_failure_keeps_local_snapshot(fake_provider, tmp_store):
    _completed(fake_provider, _record("a", "A", "alpha"))
    with pytest.raises(BackupError):
        scrape(URL, _orchestrator(fake_provider), tmp_store, backup=_RecordingBackup(fail=True))
    assert [s.domain for s in tmp_store.list_domains()] == [DOMAIN]


def test_commit_message_format(tmp_store):
    meta = tmp_store.write_crawl_result(DOMAIN, URL, [])
    assert commit_message(meta) == f"docs: scraped {DOMAIN} v1 (0 pages, 0 words)"


@pytest.mark.parametrize(
    ("root", "domain"),
    [
        ("https://münchen.de/docs", "xn--mnchen-3ya-de"),
        ("http://[::1]:8080/docs", "1"),
    ],
)
def test_scrape_unusual_hosts_are_stored(fake_provider, tmp_store, root, domain):
    fake_provider.poll_responses = [
        {
            "status": "completed",
            "data": [{"markdown": "Local docs page.", "metadata": {"sourceURL": f"{root}/intro"}}],
        }
    ]

    result = scrape(root, _orchestrator(fake_provider), tmp_store)

    assert result.domain == domain
    assert tmp_store.list_page_files(domain) == ["docs_intro.md"]
    assert domain in tmp_store.load_index().sites
