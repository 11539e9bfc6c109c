"""PCWorth scraper adapter.

Queries the catalog API once per category query:
    GET {api_url}?category=<slug>&page=P&limit=N

The site's own category metadata is unreliable, so every item is tagged
with the canonical category of the query that returned it. Some canonical
categories are split over several source slugs (storage, coolers,
peripherals) and are queried once per slug.
"""

import asyncio
from decimal import Decimal
from typing import TYPE_CHECKING, Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import urljoin

from partcatalog.core.enums import PartCategory, Retailer
from partcatalog.core.exceptions import ParseError
from partcatalog.scrapers.base import BaseAPIAdapter, RawListing
from partcatalog.scrapers.utils.normalizer import PriceNormalizer

if TYPE_CHECKING:
    from partcatalog.scrapers.utils.fetcher import Fetcher


SITE_URL = "https://www.pcworth.com"
API_URL = f"{SITE_URL}/api/products"

CategoryQuery = Tuple[PartCategory, Dict[str, str]]

CATEGORY_QUERIES: Tuple[CategoryQuery, ...] = (
    (PartCategory.CPU, {"category": "processor"}),
    (PartCategory.MOTHERBOARD, {"category": "motherboard"}),
    (PartCategory.RAM, {"category": "memory"}),
    (PartCategory.STORAGE, {"category": "ssd"}),
    (PartCategory.STORAGE, {"category": "hdd"}),
    (PartCategory.GPU, {"category": "graphics-card"}),
    (PartCategory.PSU, {"category": "power-supply"}),
    (PartCategory.CASE, {"category": "chassis"}),
    (PartCategory.CPU_COOLER, {"category": "air-cooler"}),
    (PartCategory.CPU_COOLER, {"category": "aio-cooler"}),
    (PartCategory.CASE_FAN, {"category": "case-fan"}),
    (PartCategory.MONITOR, {"category": "monitor"}),
    (PartCategory.PERIPHERAL, {"category": "keyboard"}),
    (PartCategory.PERIPHERAL, {"category": "mouse"}),
    (PartCategory.PERIPHERAL, {"category": "headset"}),
)

# Discounted prices first, list price last
PRICE_FIELDS = ("discounted_price", "sale_price", "promo_price", "special_price", "price", "srp")
STOCK_FIELDS = ("stocks", "stock", "quantity", "qty")
NAME_FIELDS = ("name", "product_name", "title")
IMAGE_FIELDS = ("image_url", "image", "img_thumbnail", "thumbnail")

# Envelope keys the API has used for the item array
_ITEM_KEYS = ("data", "products", "items", "results")


def _first_positive_price(item: Dict[str, Any]) -> Decimal:
    for field in PRICE_FIELDS:
        price = PriceNormalizer.to_decimal(item.get(field))
        if price > 0:
            return price
    return Decimal("0")


def _stock_on_hand(item: Dict[str, Any]) -> Optional[Decimal]:
    for field in STOCK_FIELDS:
        value = item.get(field)
        if isinstance(value, bool) or value is None:
            continue
        if isinstance(value, (int, float)):
            return Decimal(str(value))
        if isinstance(value, str) and value.strip().lstrip("-").replace(".", "", 1).isdigit():
            return Decimal(value.strip())
    return None


class PCWorthAdapter(BaseAPIAdapter):
    """PCWorth catalog crawler (JSON-multi-category-paged strategy)."""

    retailer = Retailer.PCWORTH

    def __init__(
        self,
        fetcher: "Fetcher",
        max_pages: int = 50,
        page_size: int = 50,
        category_queries: Optional[Sequence[CategoryQuery]] = None,
        api_url: str = API_URL,
        site_url: str = SITE_URL,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        super().__init__(fetcher, max_pages=max_pages, page_size=page_size, sleep=sleep)
        self.category_queries = list(category_queries) if category_queries is not None else list(CATEGORY_QUERIES)
        self.api_url = api_url
        self.site_url = site_url.rstrip("/")

    async def iter_listings(self) -> AsyncIterator[RawListing]:
        for category, query in self.category_queries:
            async for listing in self._iter_query(category, query):
                yield listing

    async def _iter_query(
        self, category: PartCategory, query: Dict[str, str]
    ) -> AsyncIterator[RawListing]:
        """Page one query until a short or empty page, a malformed page, or the cap."""
        page = 1
        while self.within_page_cap(page):
            params: Dict[str, Any] = {**query, "page": page, "limit": self.page_size}
            try:
                payload = await self.fetcher.fetch_json(self.api_url, params=params)
                items = self._extract_items(payload)
            except ParseError as e:
                self.logger.warning(
                    "malformed_page",
                    category=category.value,
                    query=query,
                    page=page,
                    error=str(e),
                )
                return

            yielded = 0
            for item in items:
                try:
                    listing = self._parse_item(item, category)
                except (KeyError, TypeError, ValueError, AttributeError) as e:
                    self.logger.warning("item_parse_failed", category=category.value, error=str(e))
                    continue
                if listing is not None:
                    yielded += 1
                    yield listing

            self.logger.info(
                "query_page_scraped",
                category=category.value,
                query=query,
                page=page,
                items=len(items),
                yielded=yielded,
            )

            if len(items) < self.page_size:
                return

            page += 1

        self.logger.info(
            "page_cap_reached",
            category=category.value,
            query=query,
            max_pages=self.max_pages,
        )

    def _extract_items(self, payload: Any) -> List[Any]:
        """Find the item array in a bare list or a (possibly nested) envelope."""
        if isinstance(payload, list):
            return payload
        if isinstance(payload, dict):
            for key in _ITEM_KEYS:
                value = payload.get(key)
                if isinstance(value, list):
                    return value
                if isinstance(value, dict):
                    # Paginator envelopes nest the array one level down
                    for inner_key in _ITEM_KEYS:
                        inner = value.get(inner_key)
                        if isinstance(inner, list):
                            return inner
        raise ParseError(self.api_url, "no item array in response")

    def _parse_item(self, item: Dict[str, Any], category: PartCategory) -> Optional[RawListing]:
        if not isinstance(item, dict):
            return None

        name = ""
        for field in NAME_FIELDS:
            value = item.get(field)
            if isinstance(value, str) and value.strip():
                name = value.strip()
                break

        url = self._item_url(item)
        price = _first_positive_price(item)

        if not name or not url or price <= 0:
            self.logger.debug("item_skipped", name=name or None, url=url, price=str(price))
            return None

        stock = _stock_on_hand(item)

        return RawListing(
            name=name,
            price=price,
            url=url,
            in_stock=stock is not None and stock > 0,
            image_url=self._item_image(item),
            brand_hint=self._item_brand(item),
            category_hint=category.value,
            model=item.get("model") if isinstance(item.get("model"), str) else None,
        )

    def _item_url(self, item: Dict[str, Any]) -> Optional[str]:
        url = item.get("url")
        if isinstance(url, str) and url.strip():
            return urljoin(self.site_url + "/", url.strip())
        slug = item.get("slug")
        if isinstance(slug, str) and slug.strip():
            return f"{self.site_url}/product/{slug.strip()}"
        item_id = item.get("id")
        if item_id is not None and not isinstance(item_id, bool):
            return f"{self.site_url}/product/{item_id}"
        return None

    def _item_image(self, item: Dict[str, Any]) -> Optional[str]:
        for field in IMAGE_FIELDS:
            value = item.get(field)
            if isinstance(value, str) and value.strip():
                return urljoin(self.site_url + "/", value.strip())
        images = item.get("images")
        if isinstance(images, list) and images:
            first = images[0]
            if isinstance(first, str) and first.strip():
                return urljoin(self.site_url + "/", first.strip())
            if isinstance(first, dict):
                src = first.get("url") or first.get("src")
                if isinstance(src, str) and src.strip():
                    return urljoin(self.site_url + "/", src.strip())
        return None

    @staticmethod
    def _item_brand(item: Dict[str, Any]) -> Optional[str]:
        brand = item.get("brand")
        if isinstance(brand, dict):
            brand = brand.get("name")
        if isinstance(brand, str) and brand.strip():
            return brand.strip()
        return None
