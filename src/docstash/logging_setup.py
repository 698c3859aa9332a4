"""Logging configuration for the docstash CLI.

Library modules log through ``logging.getLogger(__name__)``; nothing is emitted
until the CLI calls ``setup_logging``, which attaches a single RichHandler
(stderr) to the ``docstash`` logger.
"""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_ROOT_LOGGER = "docstash"
_NOISY_LOGGERS = ("urllib3", "httpx", "charset_normalizer")


def setup_logging(level: str | int = logging.WARNING) -> logging.Logger:
    """Install a RichHandler on the ``docstash`` logger and return it.

    Calling this more than once replaces the handler instead of stacking them.
    """
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger = logging.getLogger(_ROOT_LOGGER)
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)

    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=False,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False
    return logger
