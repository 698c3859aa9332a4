"""URL → domain / filename mapping for the on-disk corpus.

Domain:   host of the crawl root, lowercased and IDNA-encoded, with dots and
          any other character outside [a-z0-9_-] replaced by dashes
          (``developer.timecamp.com`` → ``developer-timecamp-com``,
          ``münchen.de`` → ``xn--mnchen-3ya-de``, ``[::1]`` → ``1``).
Filename: URL path flattened with underscores, query and fragment appended,
          truncated to 200 characters, ``.md`` extension.

Collisions are resolved per crawl batch by ``FilenameAllocator``. The used-name
set starts empty for every crawl and is never seeded from files already on
disk, so a page may get a different name after a re-scrape if the crawl order
changes. Known limitation; metadata always records the name actually written.
"""

from __future__ import annotations

import re
import urllib.parse

from docstash.errors import InvalidUrl

_EXT = ".md"
_MAX_STEM_CHARS = 200
_FALLBACK_NAME = "page.md"
_INDEX_NAME = "index.md"

_QUERY_CHARS_RE = re.compile(r"[?&=]")
_DOMAIN_UNSAFE_RE = re.compile(r"[^a-z0-9_-]")
_UNDERSCORE_RUN_RE = re.compile(r"_+")


def domain_from_url(url: str) -> str:
    """Return the storage partition key for *url*.

    The key only contains ``[a-z0-9_-]`` and starts and ends with a letter or
    digit, so it is always a valid directory name under the storage root.

    Raises:
        InvalidUrl: If *url* has no hostname, or the host cannot be encoded.
    """
    try:
        host = urllib.parse.urlsplit(url).hostname
    except ValueError as exc:
        raise InvalidUrl(f"Invalid URL: {url}", {"url": url}) from exc
    if not host:
        raise InvalidUrl(f"Invalid URL: {url}", {"url": url})
    try:
        ascii_host = host.lower().encode("idna").decode("ascii")
    except UnicodeError as exc:
        raise InvalidUrl(f"Invalid URL: {url} (bad host name)", {"url": url}) from exc
    key = _DOMAIN_UNSAFE_RE.sub("-", ascii_host.lower()).strip("-_")
    if not key:
        raise InvalidUrl(f"Invalid URL: {url}", {"url": url})
    return key


def resolve_filename(source_url: str, crawl_root_url: str = "") -> str:
    """Map *source_url* to a relative ``.md`` filename inside its domain directory.

    *crawl_root_url* is accepted for call-site symmetry; names are derived from
    the page URL alone so that the same page always maps to the same base name.
    """
    try:
        parsed = urllib.parse.urlsplit(source_url)
    except ValueError:
        return _FALLBACK_NAME
    if not parsed.scheme or not parsed.netloc:
        return _FALLBACK_NAME

    relative = parsed.path
    if relative.startswith("/"):
        relative = relative[1:]
    if relative.endswith("/"):
        relative = relative[:-1]

    if not relative:
        return _INDEX_NAME

    name = relative.replace("/", "_")

    if parsed.query:
        query = _QUERY_CHARS_RE.sub("_", "?" + parsed.query)
        name += "_" + _UNDERSCORE_RUN_RE.sub("_", query)

    if parsed.fragment:
        name += "_" + parsed.fragment

    return name[:_MAX_STEM_CHARS] + _EXT


class FilenameAllocator:
    """Hand out collision-free filenames for one crawl batch.

    A name that was already handed out gets the first free counter suffix:
    ``api.md`` → ``api_1.md`` → ``api_2.md``.
    """

    def __init__(self) -> None:
        self._used: set[str] = set()

    def allocate(self, filename: str) -> str:
        stem = filename[: -len(_EXT)] if filename.endswith(_EXT) else filename
        candidate = filename
        counter = 1
        while candidate in self._used:
            candidate = f"{stem}_{counter}{_EXT}"
            counter += 1
        self._used.add(candidate)
        return candidate

    def __contains__(self, filename: object) -> bool:
        return filename in self._used

    def __len__(self) -> int:
        return len(self._used)
