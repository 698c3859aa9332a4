"""docstash — scrape documentation sites into a local, versioned, searchable corpus."""
