"""Custom exception classes for the ingestion pipeline."""

from typing import Optional


class PartCatalogException(Exception):
    """Base exception for all PartCatalog errors."""

    def __init__(self, message: str = "An unexpected error occurred"):
        self.message = message
        super().__init__(self.message)


class FetchError(PartCatalogException):
    """Raised when a URL could not be fetched after all retries."""

    def __init__(self, url: str, attempts: int, cause: Optional[BaseException] = None):
        self.url = url
        self.attempts = attempts
        self.cause = cause
        reason = f"{type(cause).__name__}: {cause}" if cause else "unknown error"
        super().__init__(f"Failed to fetch {url} after {attempts} attempt(s): {reason}")


class ParseError(PartCatalogException):
    """Raised when a fetched page or record cannot be parsed."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"Parse error for {source}: {message}")


class UnusablePriceError(PartCatalogException):
    """Raised when a listing carries no usable (positive) price."""

    def __init__(self, name: str, url: str):
        super().__init__(f"Listing '{name}' ({url}) has no usable price")


class AdapterNotFoundError(PartCatalogException):
    """Raised when no adapter is registered for a retailer."""

    def __init__(self, retailer: str):
        super().__init__(f"No adapter registered for retailer: {retailer}")


class JobAlreadyRunningError(PartCatalogException):
    """Raised when a scrape job is started for a retailer that already has one in flight."""

    def __init__(self, retailer: str):
        self.retailer = retailer
        super().__init__(f"A scrape job for {retailer} is already running")
