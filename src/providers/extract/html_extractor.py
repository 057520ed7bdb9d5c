"""BeautifulSoup extractor for episode pages.

Episode pages carry everything we keep in three places:

- ``<title>Watch Sakamoto Days English Sub/Dub online Free on ...</title>``
  -> name ``"Sakamoto Days"`` (leading ``Watch`` and trailing ``English...``
  removed)
- ``<div class="film-poster"> ... <img src="...">`` -> poster URL
- ``<script id="syncData" type="application/json">{...}</script>`` -> the
  sync JSON, minus ``series_url`` and ``selector_position`` which point back
  at the page itself.

Missing poster or syncData is not an error; a missing ``<title>`` means the
id has no page.
"""

from __future__ import annotations

import json
import re
from typing import Any

import structlog
from bs4 import BeautifulSoup

from src.interfaces.page_extractor import IPageExtractor
from src.models.scrape import ExtractedRecord
from src.utils.errors import NotFoundError, ParseError

logger = structlog.get_logger(logger_name=__name__)

_TITLE_PREFIX_RE = re.compile(r"^Watch\s+")
_TITLE_SUFFIX_RE = re.compile(r"\s+English.*$", re.DOTALL)

_POSTER_SELECTOR = "div.film-poster img"
_SYNC_DATA_ID = "syncData"

# Keys that only describe where the blob came from.
_STRIPPED_SYNC_KEYS = ("series_url", "selector_position")


def clean_title(title: str) -> str:
    """Strip the site's ``Watch ... English ...`` wrapping from a page title."""
    title = _TITLE_PREFIX_RE.sub("", title.strip())
    title = _TITLE_SUFFIX_RE.sub("", title)
    return title.strip()


class HtmlPageExtractor(IPageExtractor):
    """Extract name, poster URL and syncData from an episode page."""

    def extract(self, item_id: int, html: str) -> ExtractedRecord:
        soup = BeautifulSoup(html, "html.parser")

        if soup.title is None:
            raise NotFoundError(
                message=f"No <title> on page {item_id}",
                provider_name=self.get_provider_name(),
            )
        name = clean_title(soup.title.get_text())

        poster_el = soup.select_one(_POSTER_SELECTOR)
        poster_url = poster_el.get("src") if poster_el else None

        sync_data = self._extract_sync_data(item_id, soup)

        logger.debug(
            "page_extracted",
            item_id=item_id,
            name=name,
            has_poster=poster_url is not None,
            has_sync_data=sync_data is not None,
        )
        return ExtractedRecord(
            id=item_id,
            name=name or None,
            poster_url=poster_url or None,
            sync_data=sync_data,
        )

    def _extract_sync_data(self, item_id: int, soup: BeautifulSoup) -> dict[str, Any] | None:
        script = soup.find("script", id=_SYNC_DATA_ID)
        if script is None:
            return None
        raw = script.get_text().strip()
        if not raw:
            return None
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ParseError(
                message=f"Invalid syncData JSON on page {item_id}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        if not isinstance(parsed, dict):
            raise ParseError(
                message=f"syncData on page {item_id} is not a JSON object",
                provider_name=self.get_provider_name(),
            )
        for key in _STRIPPED_SYNC_KEYS:
            parsed.pop(key, None)
        return parsed

    def get_provider_name(self) -> str:
        return "html_extractor"
