"""docstash search — linear relevance scoring over stored pages."""

from docstash.search.engine import SearchEngine, calculate_score, extract_snippet

__all__ = ["SearchEngine", "calculate_score", "extract_snippet"]
