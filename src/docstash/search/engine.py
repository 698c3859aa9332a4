"""Linear full-text search and corpus statistics over the document store.

Every query scans the stored markdown of each candidate domain; there is no
inverted index. Relevance scoring is a fixed policy:

  +100  query phrase occurs anywhere (case-insensitive)
  +10   per occurrence of the phrase
  +5    per occurrence of each query word of 2+ characters
  +50   phrase occurs within the first 200 characters (title / lead area)

Results are ordered by score, highest first; equal scores keep scan order
(domains in index order, pages sorted by filename).
"""

from __future__ import annotations

import logging
import re

from docstash.errors import EmptyQuery, NoCorpus, StorageError
from docstash.store.document_store import DocumentStore
from docstash.store.models import CorpusStats, DomainMetadata, DomainStats, SearchResult

logger = logging.getLogger(__name__)

PHRASE_SCORE = 100
PHRASE_OCCURRENCE_SCORE = 10
WORD_OCCURRENCE_SCORE = 5
LEAD_SCORE = 50
LEAD_CHARS = 200
MIN_WORD_CHARS = 2

SNIPPET_CONTEXT_CHARS = 150
_NEWLINES_RE = re.compile(r"\n+")


def calculate_score(content: str, query: str) -> int:
    """Return the relevance score of *content* for *query* (always >= 0)."""
    lower_content = content.lower()
    lower_query = query.lower()
    score = 0

    if lower_query in lower_content:
        score += PHRASE_SCORE
        score += lower_content.count(lower_query) * PHRASE_OCCURRENCE_SCORE

    for word in lower_query.split():
        if len(word) < MIN_WORD_CHARS:
            continue
        score += lower_content.count(word) * WORD_OCCURRENCE_SCORE

    if lower_query in lower_content[:LEAD_CHARS]:
        score += LEAD_SCORE

    return score


def extract_snippet(content: str, query: str, context_chars: int = SNIPPET_CONTEXT_CHARS) -> str:
    """Return up to *context_chars* of text on each side of the first match.

    Matching is case-insensitive. Without a match the first
    ``2 * context_chars`` characters are returned instead.
    """
    match_index = content.lower().find(query.lower())

    if match_index == -1:
        head = content[: context_chars * 2]
        return head + ("..." if len(content) > context_chars * 2 else "")

    start = max(0, match_index - context_chars)
    end = min(len(content), match_index + len(query) + context_chars)

    snippet = content[start:end]
    if start > 0:
        snippet = "..." + snippet
    if end < len(content):
        snippet = snippet + "..."

    return _NEWLINES_RE.sub(" ", snippet).strip()


class SearchEngine:
    """Query the stored corpus and aggregate statistics."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    def search(
        self,
        query: str,
        domain: str | None = None,
        tags: list[str] | None = None,
        limit: int = 20,
        case_sensitive: bool = False,
    ) -> list[SearchResult]:
        """Search every stored page for *query*.

        Args:
            query: Phrase to look for.
            domain: Restrict to domains equal to or containing this substring.
            tags: Restrict to domains tagged with at least one of these.
            limit: Maximum number of results.
            case_sensitive: Use an exact-case containment test.

        Raises:
            EmptyQuery: If *query* is blank.
            NoCorpus: If no master index exists (nothing scraped yet).
        """
        if not query or not query.strip():
            raise EmptyQuery("Search query cannot be empty")

        try:
            index = self._store.load_index()
        except StorageError as exc:
            raise NoCorpus(
                "No scraped documentation found. Use scrape to scrape some documentation first."
            ) from exc
        if index is None:
            raise NoCorpus(
                "No scraped documentation found. Use scrape to scrape some documentation first."
            )

        domains = list(index.sites)
        if domain:
            domains = [d for d in domains if d == domain or domain in d]
        if tags:
            wanted = set(tags)
            domains = [d for d in domains if wanted.intersection(index.sites[d].tags)]

        needle = query if case_sensitive else query.lower()
        results: list[SearchResult] = []

        for name in domains:
            metadata = self._metadata_or_none(name)
            pages = {p.path: p for p in metadata.pages} if metadata else {}

            for filename in self._store.list_page_files(name):
                try:
                    content = self._store.read_page(name, filename)
                except OSError as exc:
                    logger.debug("Skipping unreadable page %s/%s: %s", name, filename, exc)
                    continue

                haystack = content if case_sensitive else content.lower()
                if needle not in haystack:
                    continue

                ref = pages.get(filename)
                results.append(
                    SearchResult(
                        domain=name,
                        path=filename,
                        title=ref.title if ref else filename.replace(".md", "").replace("_", " "),
                        snippet=extract_snippet(content, query),
                        score=calculate_score(content, query),
                        source_url=ref.source_url if ref else "",
                    )
                )

        # sorted() is stable: ties keep scan order.
        results = sorted(results, key=lambda r: r.score, reverse=True)
        return results[:limit]

    def stats(self) -> CorpusStats:
        """Aggregate page and word counts from the master index.

        Returns an all-zero result when nothing has been scraped.
        """
        try:
            index = self._store.load_index()
        except StorageError as exc:
            logger.warning("Reporting empty stats for unreadable index: %s", exc)
            return CorpusStats()
        if index is None:
            return CorpusStats()

        per_domain = [
            DomainStats(domain=d, pages=s.page_count, words=s.total_word_count)
            for d, s in index.sites.items()
        ]
        return CorpusStats(
            total_domains=len(per_domain),
            total_pages=sum(d.pages for d in per_domain),
            total_word_count=sum(d.words for d in per_domain),
            per_domain=per_domain,
        )

    def _metadata_or_none(self, domain: str) -> DomainMetadata | None:
        try:
            return self._store.load_metadata(domain)
        except StorageError as exc:
            logger.debug("Searching %s without metadata: %s", domain, exc)
            return None
