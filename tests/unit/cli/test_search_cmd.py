"""Tests for docstash search / stats."""

from __future__ import annotations

from typer.testing import CliRunner

from docstash.cli.main import app

runner = CliRunner()


def test_search_finds_results(isolated_config, seeded_store):
    result = runner.invoke(app, ["search", "webhook", "--root", str(seeded_store.root)])
    assert result.exit_code == 0, result.output
    assert "2 result(s)" in result.output
    # Two occurrences outrank one.
    assert result.output.index("Authentication") < result.output.index("Start")


def test_search_domain_filter(isolated_config, seeded_store):
    result = runner.invoke(
        app, ["search", "webhook", "--domain", "guide", "--root", str(seeded_store.root)]
    )
    assert result.exit_code == 0, result.output
    assert "1 result(s)" in result.output
    assert "guide-example-com" in result.output


def test_search_tag_filter(isolated_config, seeded_store):
    result = runner.invoke(
        app, ["search", "webhook", "--tag", "api", "--root", str(seeded_store.root)]
    )
    assert result.exit_code == 0, result.output
    assert "1 result(s)" in result.output
    assert "api-example-com" in result.output


def test_search_limit(isolated_config, seeded_store):
    result = runner.invoke(
        app, ["search", "webhook", "--limit", "1", "--root", str(seeded_store.root)]
    )
    assert result.exit_code == 0, result.output
    assert "1 result(s)" in result.output


def test_search_no_results(isolated_config, seeded_store):
    result = runner.invoke(app, ["search", "graphql", "--root", str(seeded_store.root)])
    assert result.exit_code == 0
    assert "No results" in result.output


def test_search_without_corpus(isolated_config, tmp_store):
    result = runner.invoke(app, ["search", "webhook", "--root", str(tmp_store.root)])
    assert result.exit_code == 1
    assert "No scraped documentation found" in result.output


def test_search_blank_query(isolated_config, seeded_store):
    result = runner.invoke(app, ["search", "   ", "--root", str(seeded_store.root)])
    assert result.exit_code == 1
    assert "cannot be empty" in result.output


def test_stats_totals(isolated_config, seeded_store):
    result = runner.invoke(app, ["stats", "--root", str(seeded_store.root)])
    assert result.exit_code == 0, result.output
    assert "Domains: 2" in result.output
    assert "Pages: 3" in result.output
    assert "Words: 17" in result.output
    assert "api-example-com" in result.output


def test_stats_empty(isolated_config, tmp_store):
    result = runner.invoke(app, ["stats", "--root", str(tmp_store.root)])
    assert result.exit_code == 0
    assert "Domains: 0" in result.output
