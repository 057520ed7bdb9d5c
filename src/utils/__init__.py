"""Utility modules for animeHarvest.

- **errors** -- Domain exception hierarchy rooted at ScraperError; the batch
  scraper classifies item outcomes by exception type.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production, plus
  run-scoped context binding.
"""

# -- Domain exception hierarchy --------------------------------------------
from src.utils.errors import (
    ConfigurationError,
    FetchError,
    NotFoundError,
    ParseError,
    PersistenceError,
    RunAbortedError,
    ScraperError,
    TransientFetchError,
)

# -- Structured logging setup ----------------------------------------------
from src.utils.logging import bind_run_context, configure_logging

__all__ = [
    "ConfigurationError",
    "FetchError",
    "NotFoundError",
    "ParseError",
    "PersistenceError",
    "RunAbortedError",
    "ScraperError",
    "TransientFetchError",
    "bind_run_context",
    "configure_logging",
]
