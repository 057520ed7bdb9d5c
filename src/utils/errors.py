"""Custom exception hierarchy for animeHarvest.

All application exceptions inherit from :class:`ScraperError`, which carries
an optional ``provider_name`` so error handlers can tell which collaborator
(e.g. "http_fetcher", "html_extractor", "sqlite_store") raised it.

The hierarchy mirrors how the batch scraper classifies failures:

    ScraperError  (base -- catch-all for any animeHarvest error)
    +-- FetchError              (page could not be fetched, not retried)
    |   +-- TransientFetchError (timeouts, 5xx, 429 -- retried)
    +-- NotFoundError           (page or title missing -- terminal, not an error)
    +-- ParseError              (page present but its payload is malformed)
    +-- PersistenceError        (SQLite store unreachable or failing)
    +-- ConfigurationError      (invalid batch parameters / settings)
    +-- RunAbortedError         (a failure outside the per-item boundary)

Per-item failures (fetch, not-found, parse) are recovered inside the batch
loop; persistence failures on the cursor or run log, and configuration
errors, end the run.
"""


class ScraperError(Exception):
    """Base exception for all animeHarvest errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which collaborator triggered the error.
    ``__str__`` prefixes the provider name in brackets, e.g.
    ``[http_fetcher] HTTP 503 for https://...``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Fetch errors
# ---------------------------------------------------------------------------

class FetchError(ScraperError):
    """Raised when a page cannot be fetched and retrying will not help."""

    def __init__(
        self,
        message: str = "Page fetch failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class TransientFetchError(FetchError):
    """Raised on timeouts, transport failures, 429 and 5xx responses.

    The batch scraper retries these up to the configured retry budget.
    """

    def __init__(
        self,
        message: str = "Transient fetch failure",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Extraction errors
# ---------------------------------------------------------------------------

class NotFoundError(ScraperError):
    """Raised when the page (or its title) does not exist for an id."""

    def __init__(
        self,
        message: str = "Page not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ParseError(ScraperError):
    """Raised when a fetched page carries a payload that cannot be decoded."""

    def __init__(
        self,
        message: str = "Page payload could not be parsed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Store / run-level errors
# ---------------------------------------------------------------------------

class PersistenceError(ScraperError):
    """Raised when the scrape store cannot read or write its tables."""

    def __init__(
        self,
        message: str = "Scrape store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(ScraperError):
    """Raised when batch parameters or settings are invalid."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RunAbortedError(ScraperError):
    """Raised when a batch run stops before all of its ids were processed."""

    def __init__(
        self,
        message: str = "Batch run aborted",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
