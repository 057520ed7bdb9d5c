"""Abstract base class for page extractors.

An extractor turns raw page HTML into an
:class:`~src.models.scrape.ExtractedRecord`.  It performs no I/O.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from src.models.scrape import ExtractedRecord


class IPageExtractor(ABC):
    """Contract for pulling structured fields out of an episode page."""

    @abstractmethod
    def extract(self, item_id: int, html: str) -> ExtractedRecord:
        """Extract the name, poster URL and syncData blob from *html*.

        A record whose ``name`` is empty is a valid return value; the batch
        scraper classifies it as ``not_found``.

        Raises
        ------
        NotFoundError
            The page carries no title at all.
        ParseError
            The embedded syncData JSON cannot be decoded.
        """

    @abstractmethod
    def get_provider_name(self) -> str:
        """Return a human-readable identifier for this extractor."""
