"""Page fetchers.

HttpPageFetcher retrieves episode pages with httpx, either directly from
the site or through the pass-through relay that the scraper normally uses
to get past the site's bot filtering.
"""

from src.providers.fetch.http_page_fetcher import HttpPageFetcher

__all__ = ["HttpPageFetcher"]
