"""Exception types raised by the ingestion pipeline.

Fatal errors (``FeedListError``, ``StoreUnavailableError``) abort the run.
Per-feed errors (``FetchError``, ``ReconcileError``) are logged and the run
continues with the remaining feeds.
"""


class PodgoError(Exception):
    """Base class for podgo errors."""


class FeedListError(PodgoError):
    """The input feed list could not be read or decoded."""


class StoreUnavailableError(PodgoError):
    """The persistent store could not be reached."""


class FeedError(PodgoError):
    """Failure scoped to a single feed URL."""

    def __init__(self, url: str, cause: BaseException | str):
        self.url = url
        self.cause = cause
        super().__init__(f"{url}: {cause}")


class FetchError(FeedError):
    """Fetching or parsing a feed failed (network, HTTP status, timeout, parse)."""


class ReconcileError(FeedError):
    """Reading or writing store state for one feed failed."""
