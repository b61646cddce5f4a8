"""Logging setup for booklens.

Modules log through ``logging.getLogger(__name__)``; the CLI calls
``setup_logging`` once at startup.
"""

import logging
import sys

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Client libraries that are chatty at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "anthropic", "openai")


def setup_logging(level: int = logging.INFO, fmt: str = DEFAULT_FORMAT, stream=sys.stderr) -> None:
    """Configure the root handler. Safe to call more than once."""
    root = logging.getLogger()
    if not root.handlers:
        handler = logging.StreamHandler(stream)
        handler.setFormatter(logging.Formatter(fmt))
        root.addHandler(handler)
    root.setLevel(level)

    library_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)


__all__ = ["setup_logging"]
