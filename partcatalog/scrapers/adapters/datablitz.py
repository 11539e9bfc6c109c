"""Datablitz scraper adapter.

Pages through the Shopify storefront collection API:
    GET {base}/collections/{collection}/products.json?limit=N&page=P

The API never says "last page". Past the tail it keeps returning items
that were already seen under earlier page indices (or an empty list), so
the crawl ends a collection after STALE_PAGE_LIMIT consecutive pages
without a single new product.
"""

import asyncio
from decimal import Decimal
from typing import TYPE_CHECKING, Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence, Set

from bs4 import BeautifulSoup

from partcatalog.core.enums import Retailer
from partcatalog.core.exceptions import ParseError
from partcatalog.scrapers.base import BaseAPIAdapter, RawListing
from partcatalog.scrapers.utils.normalizer import PriceNormalizer

if TYPE_CHECKING:
    from partcatalog.scrapers.utils.fetcher import Fetcher


BASE_URL = "https://ecommerce.datablitz.com.ph"

DEFAULT_COLLECTIONS = ("pc-components", "pc-peripherals")

STALE_PAGE_LIMIT = 3


class DatablitzAdapter(BaseAPIAdapter):
    """Datablitz collection crawler (JSON-paged-collection strategy)."""

    retailer = Retailer.DATABLITZ

    def __init__(
        self,
        fetcher: "Fetcher",
        max_pages: int = 50,
        page_size: int = 50,
        collections: Optional[Sequence[str]] = None,
        base_url: str = BASE_URL,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        super().__init__(fetcher, max_pages=max_pages, page_size=page_size, sleep=sleep)
        self.collections = list(collections) if collections is not None else list(DEFAULT_COLLECTIONS)
        self.base_url = base_url.rstrip("/")

    def collection_url(self, collection: str) -> str:
        return f"{self.base_url}/collections/{collection}/products.json"

    def product_url(self, handle: str) -> str:
        return f"{self.base_url}/products/{handle}"

    async def iter_listings(self) -> AsyncIterator[RawListing]:
        # Shared across collections, since one product can be listed in several of them
        seen_urls: Set[str] = set()

        for collection in self.collections:
            async for listing in self._iter_collection(collection, seen_urls):
                yield listing

    async def _iter_collection(
        self, collection: str, seen_urls: Set[str]
    ) -> AsyncIterator[RawListing]:
        url = self.collection_url(collection)
        stale_pages = 0
        page = 1

        while self.within_page_cap(page):
            items = await self._fetch_page(url, page)

            new_count = 0
            duplicate_count = 0
            yielded = 0
            for item in items:
                handle = item.get("handle") if isinstance(item, dict) else None
                if not handle:
                    continue

                product_url = self.product_url(handle)
                if product_url in seen_urls:
                    duplicate_count += 1
                    continue
                seen_urls.add(product_url)
                new_count += 1

                try:
                    listing = self._parse_product(item, product_url)
                except (KeyError, TypeError, ValueError, AttributeError) as e:
                    self.logger.warning(
                        "product_parse_failed",
                        url=product_url,
                        error=str(e),
                    )
                    continue
                if listing is not None:
                    yielded += 1
                    yield listing

            self.logger.info(
                "collection_page_scraped",
                collection=collection,
                page=page,
                items=len(items),
                new=new_count,
                duplicates=duplicate_count,
                yielded=yielded,
            )

            if new_count == 0:
                stale_pages += 1
                if stale_pages >= STALE_PAGE_LIMIT:
                    self.logger.info(
                        "collection_exhausted",
                        collection=collection,
                        last_page=page,
                        stale_pages=stale_pages,
                    )
                    return
            else:
                stale_pages = 0

            page += 1

        self.logger.info("page_cap_reached", collection=collection, max_pages=self.max_pages)

    async def _fetch_page(self, url: str, page: int) -> List[Any]:
        """Fetch one page of products; a malformed page yields no items."""
        params = {"limit": self.page_size, "page": page}
        try:
            payload = await self.fetcher.fetch_json(url, params=params)
            products = payload["products"]
            if not isinstance(products, list):
                raise ParseError(url, "'products' is not a list")
        except (ParseError, KeyError, TypeError) as e:
            self.logger.warning("malformed_page", url=url, page=page, error=str(e))
            return []
        return products

    def _parse_product(self, item: Dict[str, Any], product_url: str) -> Optional[RawListing]:
        """Build a listing from a Shopify product; None when no variant is purchasable."""
        name = (item.get("title") or "").strip()
        variants = item.get("variants") or []

        price = Decimal("0")
        for variant in variants:
            variant_price = PriceNormalizer.to_decimal(variant.get("price"))
            if variant_price > 0:
                price = variant_price
                break

        if not name or price <= 0:
            self.logger.debug("product_not_purchasable", url=product_url, name=name or None)
            return None

        return RawListing(
            name=name,
            price=price,
            url=product_url,
            in_stock=any(bool(v.get("available")) for v in variants),
            image_url=self._extract_image_url(item),
            brand_hint=(item.get("vendor") or "").strip() or None,
            category_hint=(item.get("product_type") or "").strip() or None,
            description=self._extract_description(item.get("body_html")),
        )

    @staticmethod
    def _extract_image_url(item: Dict[str, Any]) -> Optional[str]:
        images = item.get("images") or []
        if images and isinstance(images[0], dict):
            return images[0].get("src") or None
        image = item.get("image")
        if isinstance(image, dict):
            return image.get("src") or None
        return None

    @staticmethod
    def _extract_description(body_html: Optional[str]) -> Optional[str]:
        if not body_html:
            return None
        text = BeautifulSoup(body_html, "html.parser").get_text(" ", strip=True)
        return text or None
