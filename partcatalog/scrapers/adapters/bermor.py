"""Bermor Zone scraper adapter.

Walks WooCommerce category listing pages.

Structure: li.product
  - a.woocommerce-LoopProduct-link (product URL)
  - h2.woocommerce-loop-product__title (product name)
  - span.price (single price or "₱A – ₱B" range)
  - img with lazy-load attributes (data-lazy-src, data-src, ...)
  - .star-rating with aria-label "Rated X out of 5" (strong.rating as fallback)
Pagination: {category_url}page/{n}/ with a.next.page-numbers on every page
that has a successor.
"""

import asyncio
import re
from decimal import Decimal
from typing import TYPE_CHECKING, Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup, Tag

from partcatalog.core.enums import Retailer
from partcatalog.core.exceptions import ParseError
from partcatalog.scrapers.base import BaseScraperAdapter, RawListing
from partcatalog.scrapers.utils.normalizer import PriceNormalizer, normalize_rating

if TYPE_CHECKING:
    from partcatalog.scrapers.utils.fetcher import Fetcher


_BASE = "https://bermorzone.com.ph/product-category"

# Category hint -> category listing URLs
CATEGORY_URLS: Dict[str, List[str]] = {
    "CPU": [
        f"{_BASE}/processors/intel-processor/",
        f"{_BASE}/processors/amd-processors/",
    ],
    "MOTHERBOARD": [
        f"{_BASE}/motherboard/intel-motherboards/",
        f"{_BASE}/motherboard/amd-motherboards/",
    ],
    "RAM": [f"{_BASE}/memory-modules/desktop-memory/"],
    "HDD": [f"{_BASE}/storage-devices/hard-drives/"],
    "SSD": [f"{_BASE}/storage-devices/solid-state-drives/"],
    "GPU": [
        f"{_BASE}/video-cards/amd-video-cards/",
        f"{_BASE}/video-cards/nvidia-video-cards/",
    ],
    "CASE": [f"{_BASE}/chassis/"],
    "MONITOR": [f"{_BASE}/monitors/"],
    "PSU": [f"{_BASE}/power-sources/power-supply-unit/"],
    "CPU_COOLER_AIR": [f"{_BASE}/cooling-systems/aircooling-system/"],
    "CPU_COOLER_AIO": [f"{_BASE}/cooling-systems/aio-liquid-cooling-system/"],
    "CASE_FAN": [f"{_BASE}/cooling-systems/fanshubs/"],
}

# Checked in order; lazy-load attributes first since src is often a placeholder
_IMAGE_ATTRS = ("data-lazy-src", "data-src", "data-original", "data-srcset", "src")

_OUT_OF_STOCK_MARKER = "out of stock"

_RATING_LABEL_RE = re.compile(r"rated\s+([\d.]+)\s+out\s+of", re.IGNORECASE)


class BermorAdapter(BaseScraperAdapter):
    """Bermor Zone category crawler (HTML-page-link strategy)."""

    retailer = Retailer.BERMOR

    def __init__(
        self,
        fetcher: "Fetcher",
        max_pages: int = 5,
        page_delay: float = 1.0,
        category_delay: float = 2.0,
        category_urls: Optional[Dict[str, List[str]]] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initialize the adapter.

        Args:
            fetcher: Fetcher used for page requests
            max_pages: Page cap per category URL (0 or negative = unlimited)
            page_delay: Seconds to wait between pages of one category
            category_delay: Seconds to wait between category URLs
            category_urls: Override for CATEGORY_URLS
            sleep: Coroutine used for the delays
        """
        super().__init__(
            fetcher,
            max_pages=max_pages,
            page_delay=page_delay,
            category_delay=category_delay,
            sleep=sleep,
        )
        self.category_urls = category_urls if category_urls is not None else CATEGORY_URLS

    async def iter_listings(self) -> AsyncIterator[RawListing]:
        first = True
        for category_hint, urls in self.category_urls.items():
            for category_url in urls:
                if not first:
                    await self._sleep(self.category_delay)
                first = False

                self.logger.info(
                    "scraping_category",
                    category=category_hint,
                    url=category_url,
                )
                async for listing in self._iter_category(category_url, category_hint):
                    yield listing

    async def _iter_category(
        self, category_url: str, category_hint: str
    ) -> AsyncIterator[RawListing]:
        """Walk one category until an empty page, no next link, or the page cap."""
        page = 1
        while self.within_page_cap(page):
            page_url = self.page_url(category_url, page)
            html = await self.fetcher.fetch(page_url)
            blocks, has_next = self._parse_page(html, page_url)

            if not blocks:
                self.logger.info("empty_page_reached", url=page_url, page=page)
                return

            extracted = 0
            for block in blocks:
                try:
                    listing = self._parse_product_block(block, page_url, category_hint)
                except Exception as e:
                    self.logger.warning(
                        "product_block_parse_failed",
                        url=page_url,
                        error=str(e),
                    )
                    continue
                if listing is not None:
                    extracted += 1
                    yield listing

            self.logger.info(
                "page_scraped",
                url=page_url,
                page=page,
                blocks=len(blocks),
                extracted=extracted,
                has_next=has_next,
            )

            if not has_next:
                return

            page += 1
            await self._sleep(self.page_delay)

        self.logger.info("page_cap_reached", url=category_url, max_pages=self.max_pages)

    @staticmethod
    def page_url(category_url: str, page: int) -> str:
        """Build the URL of a listing page (page 1 is the category URL itself)."""
        if page <= 1:
            return category_url
        return f"{category_url.rstrip('/')}/page/{page}/"

    def _parse_page(self, html: str, page_url: str) -> Tuple[List[Tag], bool]:
        """Split a listing page into product blocks and detect the next-page link.

        Raises:
            ParseError: If the document cannot be parsed at all
        """
        try:
            soup = BeautifulSoup(html, "html.parser")
            blocks = soup.select(".product")
            has_next = soup.select_one("a.next.page-numbers") is not None
        except Exception as e:
            raise ParseError(page_url, f"unparseable listing page: {e}") from e
        return blocks, has_next

    def _parse_product_block(
        self, block: Tag, page_url: str, category_hint: str
    ) -> Optional[RawListing]:
        """Extract one listing; None when name, URL or a usable price is missing."""
        title = block.select_one(".woocommerce-loop-product__title")
        name = title.get_text(strip=True) if title else ""

        price_el = block.select_one(".price")
        price = PriceNormalizer.parse_price(price_el.get_text(" ", strip=True) if price_el else "")

        link = block.select_one("a.woocommerce-LoopProduct-link") or block.find("a")
        href = link.get("href") if link else None

        if not name or not href or price <= 0:
            self.logger.debug(
                "product_block_skipped",
                url=page_url,
                name=name or None,
                has_url=bool(href),
                price=str(price),
            )
            return None

        in_stock = _OUT_OF_STOCK_MARKER not in block.get_text(" ", strip=True).lower()

        return RawListing(
            name=name,
            price=price,
            url=urljoin(page_url, href),
            image_url=self._extract_image_url(block),
            in_stock=in_stock,
            category_hint=category_hint,
            rating=self._extract_rating(block),
        )

    @staticmethod
    def _extract_image_url(block: Tag) -> Optional[str]:
        """First non-empty, non-placeholder image URL of the block."""
        img = block.find("img")
        if img is None:
            return None

        for attr in _IMAGE_ATTRS:
            value = img.get(attr)
            if not value:
                continue
            if attr == "data-srcset":
                # "url1 300w, url2 600w" -> url1
                value = value.split(",")[0].strip().split(" ")[0]
            value = value.strip()
            if value and "data:image/svg" not in value:
                return value
        return None

    @staticmethod
    def _extract_rating(block: Tag) -> Optional[Decimal]:
        """Star rating from the rating widget's aria-label, else its strong.rating text."""
        stars = block.select_one(".star-rating")
        if stars is not None:
            match = _RATING_LABEL_RE.search(stars.get("aria-label") or "")
            if match:
                return normalize_rating(match.group(1))

        strong = block.select_one("strong.rating")
        if strong is not None:
            return normalize_rating(strong.get_text(strip=True))
        return None
