"""Word counts and lead-paragraph descriptions for scraped markdown pages.

Both functions are pure and deterministic; they run once per page at write
time and their results are stored in the domain metadata.
"""

from __future__ import annotations

import re

_FENCED_CODE_RE = re.compile(r"```[\s\S]*?```")
_HEADING_LINE_RE = re.compile(r"^[ \t]{0,3}#{1,6}(?:[ \t].*)?$", re.MULTILINE)
_INLINE_CODE_RE = re.compile(r"`[^`]+`")
_LINK_RE = re.compile(r"\[([^\]]+)\]\([^)]+\)")
_MARKUP_RE = re.compile(r"[#*_~`>]")
_EMPHASIS_RE = re.compile(r"[*_`]")
_WS_RE = re.compile(r"\s+")

# Lines starting with any of these are markup, not prose.
_SKIP_PREFIXES = ("#", "```", "|", "-", "*", ">", "!")
_MIN_DESCRIPTION_CHARS = 20


def word_count(text: str) -> int:
    """Count the words in *text* after stripping markdown syntax.

    Code blocks, inline code and heading lines are dropped entirely, links
    are reduced to their visible label.

    Example:
        >>> word_count("# Title\\n\\nHello **world**.")
        2
    """
    cleaned = _FENCED_CODE_RE.sub("", text)
    cleaned = _HEADING_LINE_RE.sub("", cleaned)
    cleaned = _INLINE_CODE_RE.sub("", cleaned)
    cleaned = _LINK_RE.sub(r"\1", cleaned)
    cleaned = _MARKUP_RE.sub("", cleaned)
    cleaned = _WS_RE.sub(" ", cleaned).strip()
    if not cleaned:
        return 0
    return len([w for w in cleaned.split(" ") if w])


def lead_description(text: str, max_len: int = 200) -> str:
    """Return the first prose line of *text*, or ``""`` if there is none.

    Headings, code fences, tables, list items, blockquotes and images are
    skipped. The first remaining line longer than 20 characters is cleaned of
    link and emphasis markup and truncated with ``...`` to *max_len*.
    """
    for line in text.split("\n"):
        stripped = line.strip()
        if not stripped or stripped.startswith(_SKIP_PREFIXES):
            continue
        if len(stripped) > _MIN_DESCRIPTION_CHARS:
            cleaned = _EMPHASIS_RE.sub("", _LINK_RE.sub(r"\1", stripped))
            if len(cleaned) > max_len:
                return cleaned[: max_len - 3] + "..."
            return cleaned
    return ""
