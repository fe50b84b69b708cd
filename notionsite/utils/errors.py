"""Exception hierarchy for notionsite.

Every error raised by the package derives from :class:`NotionSiteError`.
Errors optionally name the backend they came from (``"notion"``,
``"redis"``, ``"sqlite"``) through ``provider_name``; ``str()`` renders it
as a ``[provider]`` prefix so log lines stay greppable by backend.

    NotionSiteError
    +-- TransientUpstreamError  one upstream call failed, retryable
    +-- UpstreamFetchError      retries exhausted or content missing
    +-- ShapeViolationError     upstream content is not shaped like a site
    +-- BackingStoreError       durable cache tier failed, recovered as a miss
    +-- ConfigurationError      bad or missing settings at startup
    +-- PageOutOfRangeError     list page outside ``1..total_pages``

Subclasses only override :attr:`default_message`; the constructor is shared.
"""


class NotionSiteError(Exception):
    """Root of the notionsite error tree."""

    default_message = "An unexpected error occurred"

    def __init__(self, message: str | None = None, provider_name: str | None = None) -> None:
        self._message = message or self.default_message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        prefix = f"[{self._provider_name}] " if self._provider_name else ""
        return prefix + self._message


# -- upstream ---------------------------------------------------------------

class TransientUpstreamError(NotionSiteError):
    """A single upstream call failed (transport error, 5xx, 429, bad JSON).

    ``PageFetcher.fetch_with_retry`` retries these within its attempt budget.
    """

    default_message = "Upstream request failed"


class UpstreamFetchError(NotionSiteError):
    """An item could not be fetched once every attempt was spent."""

    default_message = "Upstream fetch failed"

    def __init__(
        self,
        message: str | None = None,
        provider_name: str | None = None,
        item_id: str | None = None,
    ) -> None:
        super().__init__(message, provider_name=provider_name)
        self.item_id = item_id


class ShapeViolationError(NotionSiteError):
    """The root page is not a database, or no configuration table was found.

    Never retried.
    """

    default_message = "Upstream content has an unexpected shape"


# -- local ------------------------------------------------------------------

class BackingStoreError(NotionSiteError):
    """Raised inside store adapters; they catch it and report a miss."""

    default_message = "Backing store operation failed"


class ConfigurationError(NotionSiteError):
    default_message = "Invalid or missing configuration"


class PageOutOfRangeError(NotionSiteError):
    default_message = "Requested page is out of range"
