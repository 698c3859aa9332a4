"""docstash command-line interface."""
