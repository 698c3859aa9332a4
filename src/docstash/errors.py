"""docstash error taxonomy.

Every failure raised by the engine is a ``DocstashError`` subclass carrying a
stable ``code`` string and an optional ``details`` dict (job id, HTTP status...).
The CLI layer turns these into one human-readable message and exit code 1.

Retry classification (crawl submission / polling):
  - non-retryable: InvalidUrl, InvalidOptions, RateLimited
  - retryable:     everything else (network errors, 5xx, malformed responses)
"""

from __future__ import annotations

from typing import Any


class DocstashError(Exception):
    """Base class for all docstash errors."""

    code: str = "DOCSTASH_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = dict(details or {})

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, code={self.code!r})"


class InvalidUrl(DocstashError):
    code = "INVALID_URL"


class InvalidOptions(DocstashError):
    code = "INVALID_OPTIONS"


class CrawlFailed(DocstashError):
    code = "CRAWL_FAILED"


class CrawlTimeout(DocstashError):
    code = "CRAWL_TIMEOUT"


class RateLimited(DocstashError):
    code = "RATE_LIMITED"


class DomainNotFound(DocstashError):
    code = "DOMAIN_NOT_FOUND"


class DocumentNotFound(DocstashError):
    code = "DOC_NOT_FOUND"


class EmptyQuery(DocstashError):
    code = "EMPTY_QUERY"


class NoCorpus(DocstashError):
    code = "NO_CORPUS"


class BackupError(DocstashError):
    code = "BACKUP_ERROR"


class StorageError(DocstashError):
    code = "FILESYSTEM_ERROR"


_NON_RETRYABLE: tuple[type[DocstashError], ...] = (InvalidUrl, InvalidOptions, RateLimited)


def is_retryable(exc: BaseException) -> bool:
    """Return False for errors that must surface on first occurrence."""
    return not isinstance(exc, _NON_RETRYABLE)
