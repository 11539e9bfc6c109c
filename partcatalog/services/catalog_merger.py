"""Catalog merger: the only writer of products, listings and price ranges.

A merge folds one normalized listing into the shared catalog:
1. Match the canonical product by cleaned name, or create it
2. Upsert the (product, retailer) listing
3. Recompute the product's price range from its active listings

Merges for the same product name are serialized on an in-process keyed
lock and run inside one transaction, so two jobs reporting the same
product close together cannot leave a range computed from a stale
snapshot. The unique index on products.name catches the cross-process
case; the losing merge fails and is counted as an item failure.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator, Dict, Optional
from uuid import UUID

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from partcatalog.core.enums import Retailer
from partcatalog.core.exceptions import PartCatalogException, UnusablePriceError
from partcatalog.models.base import utcnow
from partcatalog.models.product import Product
from partcatalog.models.product_listing import ProductListing
from partcatalog.scrapers.base import NormalizedListing

logger = structlog.get_logger(__name__)


class KeyedLock:
    """A set of asyncio locks addressed by key, dropped once nobody holds or waits on them."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def acquire(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


# Shared by every merger in the process so overlapping jobs serialize too
_product_locks = KeyedLock()


@dataclass
class MergeResult:
    """Outcome of merging one listing."""

    product_id: UUID
    created: bool
    listing_created: bool = False


async def match_existing_product(
    session: AsyncSession,
    normalized: NormalizedListing,
) -> Optional[Product]:
    """Find the canonical product a normalized listing belongs to.

    Identity is the exact cleaned name. Any fuzzier matching (model
    numbers, brand + model) belongs here and nowhere else.
    """
    result = await session.execute(select(Product).where(Product.name == normalized.name))
    return result.scalar_one_or_none()


def _refresh_product_details(product: Product, normalized: NormalizedListing) -> None:
    # Name and category stay as first classified
    if normalized.brand:
        product.brand = normalized.brand
    if normalized.model:
        product.model = normalized.model
    if normalized.description:
        product.description = normalized.description
    if normalized.image_url:
        product.image_url = normalized.image_url
    if normalized.rating is not None:
        product.rating = normalized.rating


class CatalogMerger:
    """Upserts normalized listings into the product catalog."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        locks: Optional[KeyedLock] = None,
    ):
        """Initialize the merger.

        Args:
            session_factory: Factory for the short-lived session of each merge
            locks: Keyed lock to serialize same-product merges on
                (defaults to the process-wide one)
        """
        self._session_factory = session_factory
        self._locks = locks if locks is not None else _product_locks
        self.logger = logger.bind(service="catalog_merger")

    async def merge(self, normalized: NormalizedListing, retailer: Retailer) -> MergeResult:
        """Merge one normalized listing from a retailer into the catalog.

        Args:
            normalized: Classified, cleaned listing
            retailer: Retailer the listing was scraped from

        Returns:
            MergeResult with the product id and whether the product was created

        Raises:
            UnusablePriceError: If the listing has no positive price
            PartCatalogException: If the listing has no name
        """
        if normalized.price is None or normalized.price <= 0:
            raise UnusablePriceError(normalized.name, normalized.url)
        if not normalized.name:
            raise PartCatalogException(f"Listing without a usable name: {normalized.url}")

        async with self._locks.acquire(normalized.name):
            async with self._session_factory() as session, session.begin():
                product = await match_existing_product(session, normalized)
                created = product is None

                if product is None:
                    product = Product(
                        name=normalized.name,
                        category=normalized.category,
                        brand=normalized.brand,
                        model=normalized.model,
                        description=normalized.description,
                        image_url=normalized.image_url,
                        rating=normalized.rating,
                        lowest_price=normalized.price,
                        highest_price=normalized.price,
                    )
                    session.add(product)
                    await session.flush()
                else:
                    _refresh_product_details(product, normalized)

                listing_created = await self._upsert_listing(session, product, normalized, retailer)
                await session.flush()
                await self._apply_price_range(session, product)

                product_id = product.id

        self.logger.debug(
            "listing_merged",
            product_id=str(product_id),
            retailer=retailer.value,
            product_created=created,
            listing_created=listing_created,
        )
        return MergeResult(product_id=product_id, created=created, listing_created=listing_created)

    async def recompute_price_range(self, product_id: UUID) -> bool:
        """Recompute a product's price range outside of a merge.

        Used after listings were deactivated by the staleness sweep.

        Args:
            product_id: Product to recompute

        Returns:
            True if the range was written, False if the product is unknown
            or has no active listings (range left untouched)
        """
        async with self._session_factory() as session:
            name = await session.scalar(select(Product.name).where(Product.id == product_id))
        if name is None:
            return False

        async with self._locks.acquire(name):
            async with self._session_factory() as session, session.begin():
                product = await session.get(Product, product_id)
                if product is None:
                    return False
                return await self._apply_price_range(session, product)

    async def _upsert_listing(
        self,
        session: AsyncSession,
        product: Product,
        normalized: NormalizedListing,
        retailer: Retailer,
    ) -> bool:
        """Create or refresh the (product, retailer) listing. Returns True on create."""
        result = await session.execute(
            select(ProductListing).where(
                ProductListing.product_id == product.id,
                ProductListing.retailer == retailer,
            )
        )
        listing = result.scalar_one_or_none()
        now = utcnow()

        if listing is None:
            session.add(
                ProductListing(
                    product_id=product.id,
                    retailer=retailer,
                    retailer_url=normalized.url,
                    price=normalized.price,
                    stock_status=normalized.stock_status,
                    is_active=True,
                    last_scraped=now,
                )
            )
            return True

        listing.price = normalized.price
        listing.stock_status = normalized.stock_status
        listing.retailer_url = normalized.url
        listing.last_scraped = now
        # Seen again, so no longer stale
        listing.is_active = True
        return False

    async def _apply_price_range(self, session: AsyncSession, product: Product) -> bool:
        """Set lowest/highest price from the product's active listings."""
        result = await session.execute(
            select(
                func.min(ProductListing.price),
                func.max(ProductListing.price),
                func.count(ProductListing.id),
            ).where(
                ProductListing.product_id == product.id,
                ProductListing.is_active.is_(True),
            )
        )
        lowest, highest, active_count = result.one()

        if not active_count:
            self.logger.info("price_range_kept_no_active_listings", product_id=str(product.id))
            return False

        product.lowest_price = lowest
        product.highest_price = highest
        return True
