"""Crawl provider boundary and the Firecrawl v1 HTTP implementation.

The orchestrator only talks to ``CrawlProvider``; ``FirecrawlProvider`` maps
that interface onto the Firecrawl REST API:

  POST   /crawl          → {"id": job_id}
  GET    /crawl/{id}     → {"status", "completed", "total", "data", "error"}
  DELETE /crawl/{id}     → best-effort cancel
  POST   /scrape         → {"data": {"markdown", "html", "metadata"}}

Non-2xx responses are classified by status code:
  429 → RateLimited   401/403 → CrawlFailed (bad key)   400 → InvalidOptions
  anything else → CrawlFailed (retryable)

The API key is sent as a Bearer token and never appears in errors or logs.
"""

from __future__ import annotations

import json
import socket
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from typing import Any

from docstash.errors import CrawlFailed, DocstashError, InvalidOptions, RateLimited

DEFAULT_BASE_URL = "https://api.firecrawl.dev/v1"
_USER_AGENT = "docstash/0.1"
_TIMEOUT = 30  # seconds per HTTP request


class CrawlProvider(ABC):
    """External service that crawls a site asynchronously."""

    @abstractmethod
    def submit(self, body: dict[str, Any]) -> dict[str, Any]:
        """Start a crawl job; the response must contain the job ``id``."""

    @abstractmethod
    def poll(self, job_id: str) -> dict[str, Any]:
        """Return the raw status record of *job_id*."""

    @abstractmethod
    def cancel(self, job_id: str) -> None:
        """Ask the provider to stop *job_id*."""

    @abstractmethod
    def scrape(self, body: dict[str, Any]) -> dict[str, Any]:
        """Scrape a single page synchronously."""


class FirecrawlProvider(CrawlProvider):
    """Firecrawl v1 client built on ``urllib.request``."""

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = _TIMEOUT,
    ) -> None:
        if not api_key:
            raise CrawlFailed("Firecrawl API key is empty. Set FIRECRAWL_API_KEY.")
        self._api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def submit(self, body: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", "/crawl", body)

    def poll(self, job_id: str) -> dict[str, Any]:
        return self._request("GET", f"/crawl/{job_id}")

    def cancel(self, job_id: str) -> None:
        self._request("DELETE", f"/crawl/{job_id}")

    def scrape(self, body: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", "/scrape", body)

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    def _request(
        self, method: str, path: str, body: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "User-Agent": _USER_AGENT,
            "Accept": "application/json",
        }
        data = None
        if body is not None:
            data = json.dumps(body).encode("utf-8")
            headers["Content-Type"] = "application/json"

        request = urllib.request.Request(
            f"{self.base_url}{path}", data=data, headers=headers, method=method
        )

        try:
            with urllib.request.urlopen(request, timeout=self.timeout) as response:
                raw = response.read()
        except urllib.error.HTTPError as exc:
            error_body = exc.read().decode("utf-8", errors="replace") if exc.fp else ""
            raise classify_http_error(exc.code, error_body) from None
        except urllib.error.URLError as exc:
            raise CrawlFailed(f"Network error calling Firecrawl {method} {path}: {exc.reason}") from exc
        except (socket.timeout, TimeoutError) as exc:
            raise CrawlFailed(f"Firecrawl {method} {path} timed out after {self.timeout}s") from exc

        if not raw:
            return {}
        try:
            parsed = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise CrawlFailed(f"Malformed response from Firecrawl {method} {path}") from exc
        if not isinstance(parsed, dict):
            raise CrawlFailed(f"Unexpected response shape from Firecrawl {method} {path}")
        return parsed


def classify_http_error(status: int, body: str) -> DocstashError:
    """Map a non-2xx provider response onto the error taxonomy."""
    message = body or f"HTTP {status}"
    try:
        parsed = json.loads(body)
        if isinstance(parsed, dict):
            message = str(parsed.get("error") or parsed.get("message") or body)
    except (json.JSONDecodeError, TypeError):
        pass

    details = {"status": status}
    if status == 429:
        return RateLimited("Rate limited by Firecrawl API. Please wait and try again.", details)
    # Retried like other CrawlFailed errors; only the three non-retryable
    # kinds surface on the first attempt.
    if status in (401, 403):
        return CrawlFailed("Invalid or expired Firecrawl API key", details)
    if status == 400:
        return InvalidOptions(message, details)
    return CrawlFailed(message, details)
