"""Helpers shared by the docstash commands: config, store, error exit."""

from __future__ import annotations

from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console

from docstash.cli.errors import err_from_exception
from docstash.config import DocstashConfig, load_config
from docstash.errors import DocstashError
from docstash.store.document_store import DocumentStore

console = Console()


def load_settings(root: Path | None = None) -> DocstashConfig:
    """Load the layered config, applying a ``--root`` override on top."""
    try:
        cfg = load_config()
    except DocstashError as exc:
        fail(exc)
    if root is not None:
        cfg.storage.root = str(root)
    return cfg


def open_store(cfg: DocstashConfig) -> DocumentStore:
    return DocumentStore(cfg.root_path)


def fail(exc: DocstashError) -> NoReturn:
    """Print the actionable message for *exc* and exit 1."""
    console.print(err_from_exception(exc))
    raise typer.Exit(1)
