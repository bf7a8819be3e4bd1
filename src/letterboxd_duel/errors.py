"""Exceptions raised while fetching diaries and comparing users."""


class DuelError(Exception):
    """Base class for every error this package raises on purpose."""


class FetchFailure(DuelError):
    """A page could not be fetched (network error or non-success status)."""

    def __init__(
        self,
        message: str,
        url: str | None = None,
        status_code: int | None = None,
        username: str | None = None,
    ):
        super().__init__(message)
        self.url = url
        self.status_code = status_code
        self.username = username


class CollectionAbort(FetchFailure):
    """One or more pages of a multi-page collection failed."""

    def __init__(self, message: str, failed_pages: list[int], url: str | None = None, username: str | None = None):
        super().__init__(message, url=url, username=username)
        self.failed_pages = list(failed_pages)


class EnrichmentFailure(DuelError):
    """The quip generator returned nothing usable."""


class InputValidationFailure(DuelError, ValueError):
    """Caller supplied an unusable username."""
