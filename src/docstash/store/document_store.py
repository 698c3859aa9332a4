"""On-disk document store: per-domain page files, metadata, and the master index.

Layout under the store root (default ``~/scraped-docs``)::

    index.json                  master index (every stored domain + summary)
    .index.lock                 advisory lock file for index read-modify-write
    <domain>/_metadata.json     DomainMetadata snapshot of the latest scrape
    <domain>/<page>.md          one markdown file per page

Write ordering: page files → metadata → master index. The index never names a
domain whose content has not been written.

Every mutating operation holds the store lock (process-local mutex plus an
``fcntl.flock`` on ``.index.lock``) for its whole persistence phase, so
concurrent scrapes of different domains cannot drop each other's index entries
and a scrape racing a delete of the same domain cannot leave a dangling entry.
Files are replaced atomically (temp file → ``os.replace``).
"""

from __future__ import annotations

import fcntl
import json
import logging
import os
import re
import shutil
import tempfile
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from docstash.errors import DocumentNotFound, DomainNotFound, StorageError
from docstash.store.models import (
    DeleteAllResult,
    DeleteResult,
    DocRef,
    Document,
    DomainMetadata,
    MasterIndex,
    Page,
    PageRef,
    SiteListing,
    utc_now_iso,
)
from docstash.store.naming import FilenameAllocator, resolve_filename
from docstash.store.text import lead_description, word_count

logger = logging.getLogger(__name__)

INDEX_NAME = "index.json"
METADATA_NAME = "_metadata.json"
_LOCK_NAME = ".index.lock"
_PAGE_EXT = ".md"

_DOMAIN_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")

_process_lock = threading.RLock()


class DocumentStore:
    """Versioned, file-based corpus of scraped documentation.

    The master index is loaded, mutated and persisted on every operation;
    nothing is cached between calls.
    """

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root).expanduser()

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    @property
    def index_path(self) -> Path:
        return self.root / INDEX_NAME

    def domain_dir(self, domain: str) -> Path:
        """Return the storage directory for *domain*.

        Raises:
            DomainNotFound: If *domain* is not a valid partition key
                (path separators, ``..``).
        """
        if not _DOMAIN_RE.match(domain) or ".." in domain:
            raise DomainNotFound(
                f'Domain "{domain}" not found. Use list to see available domains.',
                {"domain": domain},
            )
        return self.root / domain

    def metadata_path(self, domain: str) -> Path:
        return self.domain_dir(domain) / METADATA_NAME

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def write_crawl_result(
        self,
        domain: str,
        source_url: str,
        pages: list[Page],
        scrape_options: dict[str, Any] | None = None,
        tags: list[str] | None = None,
    ) -> DomainMetadata:
        """Persist one crawl snapshot for *domain* and register it in the index.

        Filenames are allocated with a fresh per-batch allocator. The new
        metadata fully replaces the previous snapshot; only ``version`` is
        carried forward (previous + 1, starting at 1). Page files left over
        from the previous snapshot are removed once the new metadata exists.

        Returns:
            The DomainMetadata that was written.

        Raises:
            StorageError: If a file cannot be written.
        """
        domain_dir = self.domain_dir(domain)

        with self._locked():
            previous = self._read_metadata_quiet(domain)
            previous_version = previous.version if previous else 0

            allocator = FilenameAllocator()
            refs: list[PageRef] = []
            total_words = 0

            try:
                domain_dir.mkdir(parents=True, exist_ok=True)
                for page in pages:
                    filename = allocator.allocate(resolve_filename(page.source_url, source_url))
                    words = word_count(page.content)
                    total_words += words
                    _atomic_write(domain_dir / filename, page.content)
                    refs.append(
                        PageRef(
                            path=filename,
                            source_url=page.source_url,
                            title=page.title,
                            description=lead_description(page.content),
                            word_count=words,
                        )
                    )

                metadata = DomainMetadata(
                    domain=domain,
                    source_url=source_url,
                    scraped_at=utc_now_iso(),
                    page_count=len(pages),
                    total_word_count=total_words,
                    pages=refs,
                    tags=list(tags or []),
                    version=previous_version + 1,
                    scrape_options=dict(scrape_options or {}),
                )
                _atomic_write(domain_dir / METADATA_NAME, _dumps(metadata.to_dict()))
            except OSError as exc:
                raise StorageError(
                    f"Failed to write pages for '{domain}': {exc}", {"domain": domain}
                ) from exc

            self._prune_stale_pages(domain_dir, {r.path for r in refs})

            index = self._load_index_for_update()
            index.sites[domain] = metadata.summary()
            index.last_updated = utc_now_iso()
            self._write_index(index)

        logger.info(
            "Stored %s v%d: %d pages, %d words", domain, metadata.version, len(refs), total_words
        )
        return metadata

    def _prune_stale_pages(self, domain_dir: Path, keep: set[str]) -> None:
        for stale in domain_dir.glob(f"*{_PAGE_EXT}"):
            if stale.name in keep:
                continue
            try:
                stale.unlink()
            except OSError as exc:
                # Non-fatal: the new metadata no longer references the file.
                logger.warning("Could not remove stale page %s: %s", stale, exc)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def load_index(self) -> MasterIndex | None:
        """Return the master index, or None if none has been written yet.

        Raises:
            StorageError: If the index file exists but cannot be parsed.
        """
        try:
            raw = self.index_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Cannot read index '{self.index_path}': {exc}") from exc
        try:
            return MasterIndex.from_dict(json.loads(raw))
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            raise StorageError(f"Index '{self.index_path}' is corrupt: {exc}") from exc

    def load_metadata(self, domain: str) -> DomainMetadata | None:
        """Return the stored metadata for *domain*, or None if missing.

        Raises:
            StorageError: If the metadata file exists but cannot be parsed.
        """
        path = self.metadata_path(domain)
        try:
            raw = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Cannot read metadata '{path}': {exc}") from exc
        try:
            return DomainMetadata.from_dict(json.loads(raw))
        except (ValueError, TypeError, KeyError, AttributeError) as exc:
            raise StorageError(f"Metadata '{path}' is corrupt: {exc}") from exc

    def list_domains(self) -> list[SiteListing]:
        """Return every indexed domain with its summary; ``[]`` without an index."""
        try:
            index = self.load_index()
        except StorageError as exc:
            logger.warning("Treating unreadable index as empty: %s", exc)
            return []
        if index is None:
            return []
        return [SiteListing(domain=d, summary=s) for d, s in index.sites.items()]

    def list_page_files(self, domain: str) -> list[str]:
        """Return the ``.md`` filenames stored for *domain*, sorted by name."""
        domain_dir = self.domain_dir(domain)
        if not domain_dir.is_dir():
            return []
        return sorted(p.name for p in domain_dir.glob(f"*{_PAGE_EXT}") if p.is_file())

    def read_page(self, domain: str, filename: str) -> str:
        return (self.domain_dir(domain) / filename).read_text(encoding="utf-8")

    def get_document(self, domain: str, path: str | None = None) -> Document | list[DocRef]:
        """Return one page's content, or the list of pages when *path* is omitted.

        Args:
            domain: Domain identifier (e.g. ``developer-timecamp-com``).
            path: Page filename; the ``.md`` extension is optional.

        Raises:
            DomainNotFound: If the domain has no storage directory.
            DocumentNotFound: If *path* does not name a stored page.
        """
        domain_dir = self.domain_dir(domain)
        if not domain_dir.is_dir():
            raise DomainNotFound(
                f'Domain "{domain}" not found. Use list to see available domains.',
                {"domain": domain},
            )

        if path:
            filename = path if path.endswith(_PAGE_EXT) else f"{path}{_PAGE_EXT}"
            target = (domain_dir / filename).resolve()
            not_found = DocumentNotFound(
                f'Document "{path}" not found in domain "{domain}".',
                {"domain": domain, "path": path},
            )
            try:
                target.relative_to(domain_dir.resolve())
            except ValueError:
                raise not_found from None
            try:
                return Document(path=path, content=target.read_text(encoding="utf-8"))
            except OSError:
                raise not_found from None

        try:
            metadata = self.load_metadata(domain)
        except StorageError as exc:
            logger.warning("Falling back to directory listing for %s: %s", domain, exc)
            metadata = None
        if metadata is not None:
            return [
                DocRef(path=p.path, title=p.title, source_url=p.source_url)
                for p in metadata.pages
            ]
        return [DocRef(path=name) for name in self.list_page_files(domain)]

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_domain(self, domain: str) -> DeleteResult:
        """Remove all stored content for *domain* and its index entry.

        Raises:
            DomainNotFound: If the domain has no storage directory.
            StorageError: If the content cannot be removed.
        """
        domain_dir = self.domain_dir(domain)

        with self._locked():
            if not domain_dir.is_dir():
                raise DomainNotFound(
                    f'Domain "{domain}" not found. Use list to see available domains.',
                    {"domain": domain},
                )

            pages_deleted = len(self.list_page_files(domain))
            try:
                shutil.rmtree(domain_dir)
            except OSError as exc:
                raise StorageError(f"Failed to delete '{domain}': {exc}") from exc

            # Content removal is the primary effect; a missing or corrupt index
            # is logged and left for the next scrape to rebuild.
            try:
                index = self.load_index()
                if index is not None and domain in index.sites:
                    del index.sites[domain]
                    index.last_updated = utc_now_iso()
                    self._write_index(index)
            except StorageError as exc:
                logger.warning("Index not updated after deleting %s: %s", domain, exc)

        logger.info("Deleted %s (%d pages)", domain, pages_deleted)
        return DeleteResult(domain=domain, pages_deleted=pages_deleted)

    def delete_all(self) -> DeleteAllResult:
        """Remove every domain and reset the master index to empty."""
        domains_deleted = 0
        total_pages = 0

        with self._locked():
            for entry in sorted(self.root.iterdir()):
                if not entry.is_dir():
                    continue
                total_pages += sum(1 for p in entry.glob(f"*{_PAGE_EXT}") if p.is_file())
                try:
                    shutil.rmtree(entry)
                except OSError as exc:
                    raise StorageError(f"Failed to delete '{entry.name}': {exc}") from exc
                domains_deleted += 1

            self._write_index(MasterIndex())

        logger.info("Deleted all: %d domains, %d pages", domains_deleted, total_pages)
        return DeleteAllResult(domains_deleted=domains_deleted, total_pages_deleted=total_pages)

    # ------------------------------------------------------------------
    # Index maintenance
    # ------------------------------------------------------------------

    def rebuild_index(self) -> MasterIndex:
        """Build a fresh master index from the metadata files on disk."""
        index = MasterIndex()
        if not self.root.is_dir():
            return index
        for entry in sorted(self.root.iterdir()):
            if not entry.is_dir() or not _DOMAIN_RE.match(entry.name):
                continue
            try:
                metadata = self.load_metadata(entry.name)
            except StorageError as exc:
                logger.warning("Skipping %s during index rebuild: %s", entry.name, exc)
                continue
            if metadata is not None:
                index.sites[entry.name] = metadata.summary()
        return index

    def backup_files(self, metadata: DomainMetadata) -> list[tuple[str, str]]:
        """Return ``(repo_path, content)`` pairs for everything a scrape wrote.

        Paths are relative to the store root: each page, the domain metadata,
        and the master index, in that order.
        """
        domain = metadata.domain
        files = [
            (f"{domain}/{ref.path}", self.read_page(domain, ref.path)) for ref in metadata.pages
        ]
        files.append(
            (f"{domain}/{METADATA_NAME}", self.metadata_path(domain).read_text(encoding="utf-8"))
        )
        files.append((INDEX_NAME, self.index_path.read_text(encoding="utf-8")))
        return files

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with _process_lock:
            self.root.mkdir(parents=True, exist_ok=True)
            with open(self.root / _LOCK_NAME, "a", encoding="utf-8") as fh:
                fcntl.flock(fh.fileno(), fcntl.LOCK_EX)
                try:
                    yield
                finally:
                    fcntl.flock(fh.fileno(), fcntl.LOCK_UN)

    def _read_metadata_quiet(self, domain: str) -> DomainMetadata | None:
        try:
            return self.load_metadata(domain)
        except StorageError as exc:
            logger.warning("Ignoring unreadable previous metadata for %s: %s", domain, exc)
            return None

    def _load_index_for_update(self) -> MasterIndex:
        try:
            index = self.load_index()
        except StorageError as exc:
            logger.warning("Rebuilding corrupt index from domain metadata: %s", exc)
            return self.rebuild_index()
        return index if index is not None else MasterIndex()

    def _write_index(self, index: MasterIndex) -> None:
        try:
            _atomic_write(self.index_path, _dumps(index.to_dict()))
        except OSError as exc:
            raise StorageError(f"Failed to write index '{self.index_path}': {exc}") from exc


# ------------------------------------------------------------------
# File helpers
# ------------------------------------------------------------------


def _dumps(data: dict[str, Any]) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def _atomic_write(path: Path, content: str) -> None:
    """Write *content* to *path* atomically (temp file in the same dir → rename)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        os.replace(tmp_path, path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
