"""docstash store layer — naming, text metrics, models, on-disk document store."""

from docstash.store.document_store import DocumentStore
from docstash.store.models import DomainMetadata, MasterIndex, Page, PageRef, SiteSummary
from docstash.store.naming import FilenameAllocator, domain_from_url, resolve_filename
from docstash.store.text import lead_description, word_count

__all__ = [
    "DocumentStore",
    "DomainMetadata",
    "MasterIndex",
    "Page",
    "PageRef",
    "SiteSummary",
    "FilenameAllocator",
    "domain_from_url",
    "resolve_filename",
    "lead_description",
    "word_count",
]
