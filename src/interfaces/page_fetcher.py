"""Abstract base class for page fetchers.

Defines the contract for retrieving the raw HTML of one numbered episode
page.  Implementations may hit the site directly, go through a relay, or
read canned pages in tests.  The batch scraper only ever talks to this
interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class IPageFetcher(ABC):
    """Contract for fetching episode pages by numeric id."""

    @abstractmethod
    async def fetch(self, item_id: int) -> str:
        """Return the raw HTML of the page for *item_id*.

        Parameters
        ----------
        item_id:
            The numeric suffix of the page URL (``.../<slug>-<id>``).

        Returns
        -------
        str
            The page body.

        Raises
        ------
        TransientFetchError
            Timeouts, transport failures, 429 and 5xx responses.  The
            caller may retry.
        NotFoundError
            The page does not exist (404 / 410).
        FetchError
            Any other non-retryable failure.
        """

    @abstractmethod
    def build_url(self, item_id: int) -> str:
        """Return the upstream page URL for *item_id* (before any relay)."""

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this fetcher."""
