"""Shared pytest fixtures for the animeHarvest test suite."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from src.interfaces.page_fetcher import IPageFetcher
from src.providers.store.sqlite_scrape_store import SQLiteScrapeStore

# ---------------------------------------------------------------------------
# Page fixtures
# ---------------------------------------------------------------------------


def build_episode_page(
    item_id: int,
    title: str | None = "Sakamoto Days",
    poster_url: str | None = "https://img.example/poster.jpg",
    sync_data: dict[str, Any] | str | None = None,
) -> str:
    """Render a minimal episode page shaped like the real site's markup.

    ``sync_data`` may be a dict (serialised as JSON), a raw string (used
    verbatim, for malformed payloads) or ``None`` (no script block).
    """
    parts = ["<html><head>"]
    if title is not None:
        parts.append(f"<title>Watch {title} English Sub/Dub online Free on HiAnime</title>")
    parts.append("</head><body>")
    if poster_url is not None:
        parts.append(
            '<div class="film-poster">\n'
            f'  <img class="film-poster-img" src="{poster_url}" alt="{title}">\n'
            "</div>"
        )
    if sync_data is None and title is not None:
        sync_data = {
            "anime_id": str(item_id),
            "name": title,
            "series_url": f"https://hianime.pe/sakamoto-days-{item_id}",
            "selector_position": "1",
        }
    if sync_data is not None:
        body = sync_data if isinstance(sync_data, str) else json.dumps(sync_data)
        parts.append(f'<script id="syncData" type="application/json">{body}</script>')
    parts.append("</body></html>")
    return "\n".join(parts)


@pytest.fixture
def page_builder() -> Callable[..., str]:
    """Return the episode page builder."""
    return build_episode_page


# ---------------------------------------------------------------------------
# Store and collaborator fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """Return a fresh database path inside the test's temp dir."""
    return tmp_path / "data" / "scrape.db"


@pytest_asyncio.fixture
async def store(db_path: Path) -> SQLiteScrapeStore:
    """Create and open a store on a temp DB; closed after the test."""
    s = SQLiteScrapeStore(db_path=db_path)
    await s.open()
    yield s
    await s.close()


@pytest.fixture
def mock_fetcher() -> MagicMock:
    """Return a mock page fetcher whose ``fetch`` is an AsyncMock."""
    fetcher = MagicMock(spec=IPageFetcher)
    fetcher.fetch = AsyncMock(side_effect=lambda item_id: build_episode_page(item_id))
    fetcher.build_url.side_effect = lambda item_id: f"https://hianime.pe/sakamoto-days-{item_id}"
    fetcher.get_provider_name.return_value = "mock_fetcher"
    return fetcher

