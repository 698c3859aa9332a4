"""Tests for word counts and lead descriptions."""

from __future__ import annotations

from docstash.store.text import lead_description, word_count


# ------------------------------------------------------------------
# word_count
# ------------------------------------------------------------------


def test_word_count_drops_heading_and_emphasis():
    assert word_count("# Title\n\nHello **world**.") == 2


def test_word_count_empty():
    assert word_count("") == 0
    assert word_count("   \n\n  ") == 0


def test_word_count_ignores_fenced_code():
    text = "Install it:\n\n```bash\npip install thing and more words\n```\n\nDone now."
    assert word_count(text) == 4


def test_word_count_ignores_inline_code():
    assert word_count("Call `client.get()` to fetch") == 3


def test_word_count_keeps_link_label_only():
    assert word_count("See [the guide](https://example.com/guide) please") == 4


def test_word_count_heading_without_space_is_prose_marker_only():
    # "#hashtag" is not an ATX heading; the marker is stripped, the word counts.
    assert word_count("#hashtag here") == 2


def test_word_count_all_heading_levels_dropped():
    text = "# One\n## Two\n###### Six\nbody text"
    assert word_count(text) == 2


# ------------------------------------------------------------------
# lead_description
# ------------------------------------------------------------------


def test_lead_description_skips_markup_lines():
    text = (
        "# Heading\n"
        "\n"
        "- list item that is fairly long\n"
        "> a quote that is long enough\n"
        "This is the first real paragraph of the page.\n"
    )
    assert lead_description(text) == "This is the first real paragraph of the page."


def test_lead_description_requires_more_than_20_chars():
    text = "Short line.\nThis line is definitely long enough to count."
    assert lead_description(text) == "This line is definitely long enough to count."


def test_lead_description_cleans_links_and_emphasis():
    text = "Read the **[API guide](https://x.io/api)** before _starting_ work."
    assert lead_description(text) == "Read the API guide before starting work."


def test_lead_description_truncates():
    text = "word " * 100
    result = lead_description(text, max_len=50)
    assert len(result) == 50
    assert result.endswith("...")


def test_lead_description_none_found():
    assert lead_description("# Only a heading\n\n```\ncode\n```") == ""
