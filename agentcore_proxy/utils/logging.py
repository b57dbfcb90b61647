"""Logging setup built on loguru.

Modules obtain a logger with ``get_logger(__name__)``; the returned logger is
the shared loguru logger bound to the module name, so ``logger.bind(...)``
and ``logger.contextualize(...)`` add structured fields to records.
"""

from __future__ import annotations

import sys

from loguru import logger

_TEXT_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[name]}</cyan> | "
    "{extra[request_id]} | "
    "<level>{message}</level>"
)

logger.configure(extra={"name": "agentcore_proxy", "request_id": "-"})


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Replace loguru's default sink with one stderr sink.

    Args:
        level: Minimum level name (``DEBUG``, ``INFO``, ...)
        json_output: Emit one JSON object per record instead of text
    """
    logger.remove()
    if json_output:
        logger.add(sys.stderr, level=level.upper(), serialize=True)
    else:
        logger.add(sys.stderr, level=level.upper(), format=_TEXT_FORMAT)


def get_logger(name: str):
    """Return the loguru logger bound to ``name``."""
    return logger.bind(name=name)
