"""animeHarvest composition root.

Wires the fetcher, extractor and SQLite store into a
:class:`~src.services.batch_scraper.BatchScraper` from the layered
configuration (``config/config.yaml`` < environment < keyword overrides)
and exposes :func:`run_batch`, the single entry point used by the CLI and
by any scheduler (cron, systemd timer) that triggers runs.
"""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from src.config.loader import load_config
from src.config.settings import Settings
from src.models.scrape import BatchConfig, BatchResult
from src.providers.extract.html_extractor import HtmlPageExtractor
from src.providers.fetch.http_page_fetcher import HttpPageFetcher
from src.providers.store.sqlite_scrape_store import SQLiteScrapeStore
from src.services.batch_scraper import BatchScraper, ProgressCallback
from src.utils.errors import ConfigurationError

_DEFAULT_CONFIG_PATH = "config/config.yaml"

_logger: structlog.BoundLogger = structlog.get_logger(logger_name=__name__)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def build_batch_config(batch_section: dict[str, Any], **overrides: Any) -> BatchConfig:
    """Build a validated :class:`BatchConfig`.

    *overrides* with value ``None`` are ignored, so CLI flags that were not
    given fall through to the config file / environment.

    Raises
    ------
    ConfigurationError
        When any field is out of range (e.g. ``batch_size <= 0``) or unknown.
    """
    values = dict(batch_section)
    values.update({k: v for k, v in overrides.items() if v is not None})
    unknown = sorted(set(values) - set(BatchConfig.model_fields))
    if unknown:
        raise ConfigurationError(f"Unknown batch option(s): {', '.join(unknown)}")
    try:
        return BatchConfig(**values)
    except ValidationError as exc:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in exc.errors()
        )
        raise ConfigurationError(f"Invalid batch configuration: {problems}") from exc


def _build_fetcher(fetch_section: dict[str, Any], http_client: httpx.AsyncClient) -> HttpPageFetcher:
    return HttpPageFetcher(
        base_url=fetch_section["target_base_url"],
        slug=fetch_section["target_slug"],
        relay_url=fetch_section.get("relay_url") or None,
        http_client=http_client,
        timeout=float(fetch_section["fetch_timeout"]),
        user_agent=fetch_section["user_agent"],
        referer=fetch_section.get("referer") or None,
    )


def _build_store(storage_section: dict[str, Any]) -> SQLiteScrapeStore:
    return SQLiteScrapeStore(db_path=storage_section["scrape_db_path"])


def build_scraper(config: dict[str, Any], http_client: httpx.AsyncClient) -> BatchScraper:
    """Assemble a :class:`BatchScraper` from a resolved config dict."""
    return BatchScraper(
        store=_build_store(config["storage"]),
        fetcher=_build_fetcher(config["fetch"], http_client),
        extractor=HtmlPageExtractor(),
    )


# ---------------------------------------------------------------------------
# Run trigger
# ---------------------------------------------------------------------------


async def run_batch(
    settings: Settings | None = None,
    config_path: str = _DEFAULT_CONFIG_PATH,
    on_progress: ProgressCallback | None = None,
    **overrides: Any,
) -> BatchResult:
    """Run one scrape batch with layered configuration.

    Parameters
    ----------
    settings:
        Environment settings; read fresh when omitted.
    config_path:
        YAML defaults file.
    on_progress:
        Called with each :class:`ItemOutcome` as soon as it is known.
    **overrides:
        Any :class:`BatchConfig` field (``batch_size``, ``delay_ms``, ...).

    Raises
    ------
    ConfigurationError
        Invalid batch parameters; raised before any I/O.
    """
    config = load_config(config_path, settings=settings)
    batch_config = build_batch_config(config["batch"], **overrides)

    async with httpx.AsyncClient(follow_redirects=True) as client:
        scraper = build_scraper(config, client)
        result = await scraper.run(batch_config, on_progress=on_progress)

    _logger.info(
        "run_batch_finished",
        status=result.status,
        run_id=result.run_id,
        start_id=result.start_id,
        end_id=result.end_id,
        cursor_after=result.cursor_after,
    )
    return result
