"""Public interface definitions for the scraper's collaborators.

The batch scraper talks to its fetcher, extractor and store only through
the abstract base classes in this package.  Concrete adapters live in
``src/providers/`` and are wired together in ``src/main.py``; tests inject
fakes or mocks instead.

CONCRETE PROVIDER MAP:
    Interface          →  Concrete implementation (in src/providers/)
    ─────────────────────────────────────────────────────────────────
    IPageFetcher       →  HttpPageFetcher
    IPageExtractor     →  HtmlPageExtractor
    IScrapeStore       →  SQLiteScrapeStore
"""

from src.interfaces.page_extractor import IPageExtractor
from src.interfaces.page_fetcher import IPageFetcher
from src.interfaces.scrape_store import IOutcomeLog, IProgressStore, IScrapeStore

__all__ = [
    "IOutcomeLog",
    "IPageExtractor",
    "IPageFetcher",
    "IProgressStore",
    "IScrapeStore",
]
