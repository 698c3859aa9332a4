"""Domain models for the docstash corpus.

Persisted records (DomainMetadata, MasterIndex) serialise to the camelCase JSON
layout used on disk and in the backup repository; everything else is an
in-memory value object.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def utc_now_iso() -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a ``Z`` suffix."""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


@dataclass
class Page:
    """One crawled page as returned by the crawl provider."""

    source_url: str
    title: str
    content: str


@dataclass
class PageRef:
    path: str
    source_url: str
    title: str
    description: str = ""
    word_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "sourceUrl": self.source_url,
            "title": self.title,
            "description": self.description,
            "wordCount": self.word_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PageRef:
        return cls(
            path=str(data["path"]),
            source_url=str(data.get("sourceUrl", "")),
            title=str(data.get("title", "")),
            description=str(data.get("description") or ""),
            word_count=int(data.get("wordCount") or 0),
        )


@dataclass
class DomainMetadata:
    """Per-domain snapshot written next to the page files (``_metadata.json``).

    A re-scrape replaces the whole record; ``version`` is the only value
    carried forward (incremented by one).
    """

    domain: str
    source_url: str
    scraped_at: str
    page_count: int
    total_word_count: int
    pages: list[PageRef] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    version: int = 1
    scrape_options: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "domain": self.domain,
            "sourceUrl": self.source_url,
            "scrapedAt": self.scraped_at,
            "pageCount": self.page_count,
            "totalWordCount": self.total_word_count,
            "pages": [p.to_dict() for p in self.pages],
            "tags": list(self.tags),
            "version": self.version,
            "scrapeOptions": dict(self.scrape_options),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DomainMetadata:
        return cls(
            domain=str(data["domain"]),
            source_url=str(data.get("sourceUrl", "")),
            scraped_at=str(data.get("scrapedAt", "")),
            page_count=int(data.get("pageCount") or 0),
            total_word_count=int(data.get("totalWordCount") or 0),
            pages=[PageRef.from_dict(p) for p in data.get("pages") or []],
            tags=list(data.get("tags") or []),
            version=int(data.get("version") or 0),
            scrape_options=dict(data.get("scrapeOptions") or {}),
        )

    def summary(self) -> SiteSummary:
        """Return the master-index entry for this snapshot."""
        return SiteSummary(
            scraped_at=self.scraped_at,
            page_count=self.page_count,
            source_url=self.source_url,
            tags=list(self.tags),
            version=self.version,
            total_word_count=self.total_word_count,
        )


@dataclass
class SiteSummary:
    scraped_at: str
    page_count: int
    source_url: str
    tags: list[str] = field(default_factory=list)
    version: int = 1
    total_word_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "scrapedAt": self.scraped_at,
            "pageCount": self.page_count,
            "sourceUrl": self.source_url,
            "tags": list(self.tags),
            "version": self.version,
            "totalWordCount": self.total_word_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SiteSummary:
        return cls(
            scraped_at=str(data.get("scrapedAt", "")),
            page_count=int(data.get("pageCount") or 0),
            source_url=str(data.get("sourceUrl", "")),
            tags=list(data.get("tags") or []),
            version=int(data.get("version") or 0),
            total_word_count=int(data.get("totalWordCount") or 0),
        )


@dataclass
class MasterIndex:
    """Process-wide summary of every stored domain (``index.json``)."""

    version: int = 1
    last_updated: str = field(default_factory=utc_now_iso)
    sites: dict[str, SiteSummary] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "lastUpdated": self.last_updated,
            "sites": {domain: s.to_dict() for domain, s in self.sites.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MasterIndex:
        sites = data.get("sites")
        if not isinstance(sites, dict):
            raise ValueError("index record has no 'sites' mapping")
        return cls(
            version=int(data.get("version") or 1),
            last_updated=str(data.get("lastUpdated", "")),
            sites={str(k): SiteSummary.from_dict(v) for k, v in sites.items()},
        )


@dataclass
class SiteListing:
    """One row of ``list_domains()``."""

    domain: str
    summary: SiteSummary


@dataclass
class DocRef:
    """A page entry returned when a domain is browsed without a path."""

    path: str
    title: str = ""
    source_url: str = ""


@dataclass
class Document:
    path: str
    content: str


@dataclass
class DeleteResult:
    domain: str
    pages_deleted: int


@dataclass
class DeleteAllResult:
    domains_deleted: int
    total_pages_deleted: int


@dataclass
class SearchResult:
    domain: str
    path: str
    title: str
    snippet: str
    score: int
    source_url: str


@dataclass
class DomainStats:
    domain: str
    pages: int
    words: int


@dataclass
class CorpusStats:
    total_domains: int = 0
    total_pages: int = 0
    total_word_count: int = 0
    per_domain: list[DomainStats] = field(default_factory=list)
