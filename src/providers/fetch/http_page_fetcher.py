"""Episode page fetcher using httpx, optionally through a pass-through relay.

Pages live at ``{base_url}/{slug}-{id}``.  When a relay is configured the
request goes to ``{relay_url}?url=<encoded page URL>`` instead and the relay
returns the upstream body unchanged.

Status handling:
    200                 -> body
    404, 410            -> NotFoundError
    408, 425, 429, 5xx  -> TransientFetchError (retried by the batch scraper)
    anything else       -> FetchError
Timeouts and transport errors are transient as well.
"""

from __future__ import annotations

import httpx
import structlog

from src.interfaces.page_fetcher import IPageFetcher
from src.utils.errors import FetchError, NotFoundError, TransientFetchError

logger = structlog.get_logger(logger_name=__name__)

_DEFAULT_TIMEOUT = 30.0
_DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36"
)
_NOT_FOUND_STATUSES = frozenset({404, 410})
_RETRYABLE_STATUSES = frozenset({408, 425, 429})


class HttpPageFetcher(IPageFetcher):
    """Fetch episode pages over HTTP.

    Parameters
    ----------
    base_url:
        Site root, e.g. ``https://hianime.pe``.
    slug:
        Series slug placed before the id, e.g. ``sakamoto-days``.
    relay_url:
        Optional relay endpoint.  Empty or ``None`` fetches directly.
    http_client:
        Injected ``httpx.AsyncClient``; one is created (and owned) when
        omitted.
    timeout:
        Per-request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str,
        slug: str,
        relay_url: str | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = _DEFAULT_TIMEOUT,
        user_agent: str = _DEFAULT_USER_AGENT,
        referer: str | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._slug = slug
        self._relay_url = relay_url or None
        self._timeout = timeout
        self._headers = {
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        }
        if referer:
            self._headers["Referer"] = referer
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(follow_redirects=True)

    # ------------------------------------------------------------------
    # IPageFetcher implementation
    # ------------------------------------------------------------------

    def build_url(self, item_id: int) -> str:
        return f"{self._base_url}/{self._slug}-{item_id}"

    async def fetch(self, item_id: int) -> str:
        """GET the page for *item_id* and return its body."""
        target = self.build_url(item_id)
        if self._relay_url:
            request_url = self._relay_url
            params: dict[str, str] | None = {"url": target}
        else:
            request_url = target
            params = None

        try:
            response = await self._client.get(
                request_url,
                params=params,
                headers=self._headers,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as exc:
            raise TransientFetchError(
                message=f"Timeout fetching {target}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc
        except httpx.HTTPError as exc:
            raise TransientFetchError(
                message=f"HTTP error fetching {target}: {exc}",
                provider_name=self.get_provider_name(),
            ) from exc

        status = response.status_code
        if status == 200:
            logger.debug(
                "page_fetched",
                item_id=item_id,
                url=target,
                via_relay=self._relay_url is not None,
                bytes=len(response.content),
            )
            return response.text

        if status in _NOT_FOUND_STATUSES:
            raise NotFoundError(
                message=f"HTTP {status} for {target}",
                provider_name=self.get_provider_name(),
            )
        if status in _RETRYABLE_STATUSES or status >= 500:
            raise TransientFetchError(
                message=f"HTTP {status} for {target}",
                provider_name=self.get_provider_name(),
            )
        raise FetchError(
            message=f"HTTP {status} for {target}",
            provider_name=self.get_provider_name(),
        )

    def get_provider_name(self) -> str:
        return "http_fetcher"

    async def close(self) -> None:
        """Close the underlying client if this fetcher created it."""
        if self._owns_client:
            await self._client.aclose()
