"""Base retailer adapter interface.

All retailer-specific adapters inherit from BaseAdapter and implement
iter_listings(), an async generator walking the retailer's pagination.
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any, AsyncIterator, Awaitable, Callable, Dict, Optional

import structlog

from partcatalog.core.enums import PartCategory, Retailer, StockStatus

if TYPE_CHECKING:
    from partcatalog.scrapers.utils.fetcher import Fetcher


@dataclass
class RawListing:
    """Listing as extracted from a retailer page or API response.

    Ephemeral: produced per page during a crawl and discarded after
    normalization.
    """

    name: str
    price: Decimal
    url: str
    in_stock: bool = True
    image_url: Optional[str] = None
    brand_hint: Optional[str] = None
    category_hint: Optional[str] = None
    model: Optional[str] = None
    description: Optional[str] = None
    rating: Optional[Decimal] = None  # Star rating out of 5


@dataclass
class NormalizedListing:
    """Classified, cleaned listing ready to be merged into the catalog."""

    name: str
    category: PartCategory
    price: Decimal
    url: str
    stock_status: StockStatus
    brand: Optional[str] = None
    model: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    rating: Optional[Decimal] = None


class BaseAdapter(ABC):
    """Abstract base class for all retailer adapters (HTML and JSON).

    Adapters own no durable state: they drive the injected Fetcher and
    yield RawListing objects until their pagination policy says stop.
    """

    retailer: Retailer  # Must be overridden in subclass
    adapter_type: str = ""  # 'html' or 'api'

    def __init__(
        self,
        fetcher: "Fetcher",
        max_pages: int = 50,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize the adapter.

        Args:
            fetcher: Fetcher used for every page request
            max_pages: Page cap per paged sequence (0 or negative = unlimited)
            sleep: Coroutine used for politeness delays (injectable for tests)
        """
        self.fetcher = fetcher
        self.max_pages = max_pages
        self._sleep = sleep
        self.logger = structlog.get_logger(adapter=self.retailer.value)

    @abstractmethod
    def iter_listings(self) -> AsyncIterator[RawListing]:
        """Walk the retailer catalog and yield raw listings lazily.

        Yields:
            RawListing objects in crawl order

        Raises:
            FetchError: If a page cannot be fetched after retries
            ParseError: If a page is malformed in a way the strategy treats as fatal
        """

    def within_page_cap(self, page: int) -> bool:
        """Whether a 1-indexed page may be fetched (max_pages <= 0 means no cap)."""
        return self.max_pages <= 0 or page <= self.max_pages

    def get_info(self) -> Dict[str, Any]:
        """Describe this adapter for job metadata."""
        return {
            "adapter": self.__class__.__name__,
            "adapter_type": self.adapter_type,
            "max_pages": self.max_pages,
        }


class BaseScraperAdapter(BaseAdapter):
    """Base class for adapters that parse HTML listing pages."""

    adapter_type = "html"

    def __init__(
        self,
        fetcher: "Fetcher",
        max_pages: int = 5,
        page_delay: float = 1.0,
        category_delay: float = 2.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        super().__init__(fetcher, max_pages=max_pages, sleep=sleep)
        self.page_delay = page_delay
        self.category_delay = category_delay

    def get_info(self) -> Dict[str, Any]:
        info = super().get_info()
        info["page_delay"] = self.page_delay
        return info


class BaseAPIAdapter(BaseAdapter):
    """Base class for adapters that page through a JSON API."""

    adapter_type = "api"

    def __init__(
        self,
        fetcher: "Fetcher",
        max_pages: int = 50,
        page_size: int = 50,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        super().__init__(fetcher, max_pages=max_pages, sleep=sleep)
        self.page_size = page_size

    def get_info(self) -> Dict[str, Any]:
        info = super().get_info()
        info["page_size"] = self.page_size
        return info
