"""Provider page records → ``Page`` objects.

Firecrawl returns ``{"markdown", "html", "metadata": {"sourceURL", "title"}}``
per page. Markdown is stored as-is; a page that only carries HTML is converted
with BeautifulSoup (non-content tags removed) and html2text.
"""

from __future__ import annotations

from typing import Any

import html2text
from bs4 import BeautifulSoup

from docstash.store.models import Page

_UNTITLED = "Untitled"
_STRIP_TAGS = ["script", "style", "nav", "footer", "head"]

_h2t = html2text.HTML2Text()
_h2t.ignore_images = True
_h2t.body_width = 0


def html_to_markdown(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(_STRIP_TAGS):
        tag.decompose()
    return _h2t.handle(str(soup)).strip()


def to_page(data: dict[str, Any], fallback_url: str) -> Page:
    """Build a Page from one provider record.

    Pages without a ``sourceURL`` are attributed to *fallback_url* (the crawl
    root); pages without a title are ``"Untitled"``.
    """
    metadata = data.get("metadata") or {}
    content = data.get("markdown")
    if not content and data.get("html"):
        content = html_to_markdown(str(data["html"]))
    return Page(
        source_url=str(metadata.get("sourceURL") or metadata.get("url") or fallback_url),
        title=str(metadata.get("title") or _UNTITLED),
        content=str(content or ""),
    )
