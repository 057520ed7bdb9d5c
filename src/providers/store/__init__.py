"""Scrape persistence providers.

SQLiteScrapeStore keeps everything a batch run reads or writes in
data/scrape.db:
    1. scraper_state  - the single-row cursor (last attempted id)
    2. items          - one row per successfully scraped id, first write wins
    3. item_outcomes  - append-only log of every item attempt
    4. scrape_runs    - one row per run, closed as success or failed
"""

from src.providers.store.sqlite_scrape_store import SQLiteScrapeStore

__all__ = ["SQLiteScrapeStore"]
