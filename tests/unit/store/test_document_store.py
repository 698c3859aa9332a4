"""Tests for DocumentStore — writes, versioning, reads, deletes, index recovery."""

from __future__ import annotations

import json
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import pytest

from docstash.errors import DocumentNotFound, DomainNotFound, StorageError
from docstash.store.document_store import DocumentStore
from docstash.store.models import Document, Page

DOMAIN = "docs-example-com"
ROOT_URL = "https://docs.example.com"


def _pages(n: int = 2) -> list[Page]:
    return [
        Page(f"{ROOT_URL}/guide/p{i}", f"Page {i}", f"# Page {i}\n\nBody text number {i} here.")
        for i in range(n)
    ]


def _read_json(path: Path) -> dict:
    return json.loads(path.read_text(encoding="utf-8"))


# ------------------------------------------------------------------
# write_crawl_result
# ------------------------------------------------------------------


def test_write_creates_pages_metadata_and_index(tmp_store):
    meta = tmp_store.write_crawl_result(DOMAIN, ROOT_URL, _pages(2), {"limit": 5}, ["api"])

    domain_dir = tmp_store.root / DOMAIN
    assert (domain_dir / "guide_p0.md").read_text(encoding="utf-8").startswith("# Page 0")
    assert (domain_dir / "guide_p1.md").exists()

    stored = _read_json(domain_dir / "_metadata.json")
    assert stored["pageCount"] == 2
    assert stored["version"] == 1
    assert stored["tags"] == ["api"]
    assert stored["scrapeOptions"] == {"limit": 5}
    assert [p["path"] for p in stored["pages"]] == ["guide_p0.md", "guide_p1.md"]

    index = _read_json(tmp_store.index_path)
    assert index["version"] == 1
    assert index["sites"][DOMAIN]["pageCount"] == 2
    assert index["sites"][DOMAIN]["totalWordCount"] == meta.total_word_count


def test_write_counts_words_per_page(tmp_store):
    meta = tmp_store.write_crawl_result(DOMAIN, ROOT_URL, _pages(1))
    # "# Page 0" heading dropped → "Body text number 0 here."
    assert meta.pages[0].word_count == 5
    assert meta.total_word_count == 5
    assert meta.pages[0].description == "Body text number 0 here."


def test_rescrape_increments_version_once(tmp_store):
    tmp_store.write_crawl_result(DOMAIN, ROOT_URL, _pages(2))
    meta = tmp_store.write_crawl_result(DOMAIN, ROOT_URL, _pages(1))

    assert meta.version == 2
    sites = tmp_store.list_domains()
    assert [s.domain for s in sites] == [DOMAIN]
    assert sites[0].summary.version == 2
    assert sites[0].summary.page_count == 1


def test_rescrape_prunes_stale_pages(tmp_store):
    tmp_store.write_crawl_result(DOMAIN, ROOT_URL, _pages(3))
    tmp_store.write_crawl_result(DOMAIN, ROOT_URL, _pages(1))
    assert tmp_store.list_page_files(DOMAIN) == ["guide_p0.md"]


def test_colliding_names_both_retrievable(tmp_store):
    pages = [
        Page(f"{ROOT_URL}/api", "API one", "first body"),
        Page(f"{ROOT_URL}/api/", "API two", "second body"),
    ]
    meta = tmp_store.write_crawl_result(DOMAIN, ROOT_URL, pages)

    paths = [p.path for p in meta.pages]
    assert paths == ["api.md", "api_1.md"]
    assert tmp_store.get_document(DOMAIN, "api.md").content == "first body"
    assert tmp_store.get_document(DOMAIN, "api_1.md").content == "second body"


def test_empty_crawl_still_registers_domain(tmp_store):
    meta = tmp_store.write_crawl_result(DOMAIN, ROOT_URL, [])
    assert meta.page_count == 0
    assert [s.domain for s in tmp_store.list_domains()] == [DOMAIN]


def test_write_keeps_other_domains_in_index(tmp_store):
    tmp_store.write_crawl_result(DOMAIN, ROOT_URL, _pages(1))
    tmp_store.write_crawl_result("other-example-com", "https://other.example.com", _pages(1))
    assert {s.domain for s in tmp_store.list_domains()} == {DOMAIN, "other-example-com"}


def test_write_rebuilds_corrupt_index(tmp_store):
    tmp_store.write_crawl_result(DOMAIN, ROOT_URL, _pages(1))
    tmp_store.index_path.write_text("{not json", encoding="utf-8")

    tmp_store.write_crawl_result("other-example-com", "https://other.example.com", _pages(1))

    assert {s.domain for s in tmp_store.list_domains()} == {DOMAIN, "other-example-com"}


def test_write_failure_raises_storage_error(tmp_store, monkeypatch):
    def boom(path, content):
        raise OSError("disk full")

    monkeypatch.setattr("docstash.store.document_store._atomic_write", boom)
    with pytest.raises(StorageError):
        tmp_store.write_crawl_result(DOMAIN, ROOT_URL, _pages(1))
    assert tmp_store.load_index() is None


# ------------------------------------------------------------------
# Reads
# ------------------------------------------------------------------


def test_list_domains_empty_without_index(tmp_store):
    assert tmp_store.list_domains() == []


def test_list_domains_empty_on_corrupt_index(tmp_store):
    tmp_store.root.mkdir(parents=True)
    tmp_store.index_path.write_text("[]", encoding="utf-8")
    assert tmp_store.list_domains() == []


def test_load_index_corrupt_raises(tmp_store):
    tmp_store.root.mkdir(parents=True)
    tmp_store.index_path.write_text("{oops", encoding="utf-8")
    with pytest.raises(StorageError):
        tmp_store.load_index()


def test_get_document_lists_written_pages(tmp_store):
    pages = _pages(3)
    tmp_store.write_crawl_result(DOMAIN, ROOT_URL, pages)

    refs = tmp_store.get_document(DOMAIN)

    assert [r.path for r in refs] == ["guide_p0.md", "guide_p1.md", "guide_p2.md"]
    assert [r.title for r in refs] == [p.title for p in pages]
    assert refs[0].source_url == f"{ROOT_URL}/guide/p0"


def test_get_document_extension_optional(tmp_store):
    tmp_store.write_crawl_result(DOMAIN, ROOT_URL, _pages(1))
    doc = tmp_store.get_document(DOMAIN, "guide_p0")
    assert isinstance(doc, Document)
    assert "Body text number 0" in doc.content


def test_get_document_without_metadata_lists_files(tmp_store):
    tmp_store.write_crawl_result(DOMAIN, ROOT_URL, _pages(2))
    (tmp_store.root / DOMAIN / "_metadata.json").unlink()
    refs = tmp_store.get_document(DOMAIN)
    assert [r.path for r in refs] == ["guide_p0.md", "guide_p1.md"]
    assert refs[0].title == ""


def test_get_document_unknown_domain(tmp_store):
    with pytest.raises(DomainNotFound):
        tmp_store.get_document("missing-com")


def test_get_document_unknown_path(tmp_store):
    tmp_store.write_crawl_result(DOMAIN, ROOT_URL, _pages(1))
    with pytest.raises(DocumentNotFound):
        tmp_store.get_document(DOMAIN, "nope.md")


def test_get_document_rejects_traversal(tmp_store):
    tmp_store.write_crawl_result(DOMAIN, ROOT_URL, _pages(1))
    with pytest.raises(DocumentNotFound):
        tmp_store.get_document(DOMAIN, "../index.json")


def test_domain_dir_rejects_path_separators(tmp_store):
    with pytest.raises(DomainNotFound):
        tmp_store.domain_dir("../etc")


# ------------------------------------------------------------------
# Deletes
# ------------------------------------------------------------------


def test_delete_domain_counts_pages_and_updates_index(tmp_store):
    tmp_store.write_crawl_result(DOMAIN, ROOT_URL, _pages(5))

    result = tmp_store.delete_domain(DOMAIN)

    assert result.pages_deleted == 5
    assert not (tmp_store.root / DOMAIN).exists()
    assert tmp_store.list_domains() == []


def test_delete_domain_missing_raises(tmp_store):
    with pytest.raises(DomainNotFound):
        tmp_store.delete_domain("missing-com")


def test_delete_domain_tolerates_corrupt_index(tmp_store):
    tmp_store.write_crawl_result(DOMAIN, ROOT_URL, _pages(2))
    tmp_store.index_path.write_text("garbage", encoding="utf-8")

    result = tmp_store.delete_domain(DOMAIN)

    assert result.pages_deleted == 2
    assert not (tmp_store.root / DOMAIN).exists()


def test_delete_all_resets_index(tmp_store):
    tmp_store.write_crawl_result(DOMAIN, ROOT_URL, _pages(2))
    tmp_store.write_crawl_result("other-example-com", "https://other.example.com", _pages(3))

    result = tmp_store.delete_all()

    assert result.domains_deleted == 2
    assert result.total_pages_deleted == 5
    index = _read_json(tmp_store.index_path)
    assert index["sites"] == {}


def test_delete_all_on_empty_store(tmp_store):
    result = tmp_store.delete_all()
    assert result.domains_deleted == 0
    assert tmp_store.list_domains() == []


# ------------------------------------------------------------------
# Index maintenance + backup payload
# ------------------------------------------------------------------


def test_rebuild_index_from_metadata(tmp_store):
    tmp_store.write_crawl_result(DOMAIN, ROOT_URL, _pages(2), tags=["x"])
    tmp_store.index_path.unlink()

    index = tmp_store.rebuild_index()

    assert list(index.sites) == [DOMAIN]
    assert index.sites[DOMAIN].tags == ["x"]


def test_backup_files_order(tmp_store):
    meta = tmp_store.write_crawl_result(DOMAIN, ROOT_URL, _pages(2))

    files = tmp_store.backup_files(meta)

    assert [p for p, _ in files] == [
        f"{DOMAIN}/guide_p0.md",
        f"{DOMAIN}/guide_p1.md",
        f"{DOMAIN}/_metadata.json",
        "index.json",
    ]
    assert json.loads(files[-1][1])["sites"][DOMAIN]["pageCount"] == 2


def test_root_expands_user(monkeypatch, tmp_path):
    monkeypatch.setenv("HOME", str(tmp_path))
    store = DocumentStore("~/scraped-docs")
    assert store.root == tmp_path / "scraped-docs"


# ------------------------------------------------------------------
# Concurrent writers
# ------------------------------------------------------------------


def test_concurrent_writes_to_distinct_domains_keep_every_index_entry(tmp_path):
    root = tmp_path / "scraped-docs"
    domains = [f"site{i}-example-com" for i in range(8)]

    def write(domain: str) -> None:
        DocumentStore(root).write_crawl_result(domain, f"https://{domain}", _pages(2))

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(write, domains))

    index = DocumentStore(root).load_index()
    assert sorted(index.sites) == sorted(domains)


def test_scrape_racing_delete_leaves_no_dangling_index_entry(tmp_path):
    root = tmp_path / "scraped-docs"

    def write() -> None:
        DocumentStore(root).write_crawl_result(DOMAIN, ROOT_URL, _pages(3))

    def delete() -> None:
        try:
            DocumentStore(root).delete_domain(DOMAIN)
        except DomainNotFound:
            pass

    for _ in range(10):
        with ThreadPoolExecutor(max_workers=2) as pool:
            futures = [pool.submit(write), pool.submit(delete)]
            for f in futures:
                f.result()

        store = DocumentStore(root)
        index = store.load_index()
        sites = set(index.sites) if index else set()
        on_disk = {p.name for p in root.iterdir() if p.is_dir()}
        assert sites == on_disk
