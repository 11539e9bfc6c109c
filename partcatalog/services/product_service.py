"""Product service for querying the catalog and sweeping stale listings.

Reads go through the caller's session. Price ranges are never written
here: after the sweep deactivates listings, the catalog merger
recomputes the affected products.
"""

from datetime import timedelta
from typing import Optional
from uuid import UUID

import structlog
from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from partcatalog.core.enums import PartCategory, Retailer
from partcatalog.models.base import utcnow
from partcatalog.models.product import Product
from partcatalog.models.product_listing import ProductListing
from partcatalog.schemas.common import PaginationMeta
from partcatalog.schemas.product import ProductPage, ProductResponse
from partcatalog.services.catalog_merger import CatalogMerger

logger = structlog.get_logger(__name__)

MAX_PAGE_LIMIT = 100


def _active_listings():
    return selectinload(Product.listings.and_(ProductListing.is_active.is_(True)))


class ProductService:
    """Service for catalog queries and listing staleness."""

    def __init__(self, db: AsyncSession, merger: Optional[CatalogMerger] = None):
        """Initialize product service.

        Args:
            db: Async database session
            merger: Merger used to recompute price ranges after a sweep
                (defaults to one bound to the session's engine)
        """
        self.db = db
        self.merger = merger or CatalogMerger(async_sessionmaker(db.bind, expire_on_commit=False))
        self.logger = logger.bind(service="product_service")

    async def get_product_by_id(self, product_id: UUID) -> Optional[Product]:
        """Get a product with its active listings loaded.

        Args:
            product_id: Product UUID

        Returns:
            Product object or None if not found
        """
        result = await self.db.execute(
            select(Product)
            .options(_active_listings())
            .where(Product.id == product_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def search_products(
        self,
        category: Optional[PartCategory] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: int = 20,
    ) -> ProductPage:
        """Get a page of catalog products, cheapest first.

        Args:
            category: Optional category filter
            search: Optional case-insensitive text matched against name and brand
            page: Page number (1-indexed)
            limit: Results per page (capped at MAX_PAGE_LIMIT)

        Returns:
            ProductPage with each product's active listings ordered by price
        """
        page = max(1, page)
        limit = max(1, min(limit, MAX_PAGE_LIMIT))

        conditions = []
        if category:
            conditions.append(Product.category == category)
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            conditions.append(or_(Product.name.ilike(pattern), Product.brand.ilike(pattern)))

        count_q = select(func.count(Product.id)).where(*conditions)
        total = (await self.db.execute(count_q)).scalar() or 0

        query = (
            select(Product)
            .options(_active_listings())
            .where(*conditions)
            .order_by(Product.lowest_price.asc(), Product.name.asc())
            .offset((page - 1) * limit)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        products = list(result.scalars().all())

        self.logger.info(
            "products_searched",
            category=category.value if category else None,
            search=search,
            page=page,
            returned=len(products),
            total=total,
        )

        return ProductPage(
            data=[ProductResponse.model_validate(p) for p in products],
            pagination=PaginationMeta(
                page=page,
                limit=limit,
                total=total,
                total_pages=(total + limit - 1) // limit,
            ),
        )

    async def deactivate_stale_listings(
        self,
        retailer: Optional[Retailer] = None,
        days: int = 30,
    ) -> int:
        """Deactivate listings that haven't been scraped recently.

        Stale listings drop out of their product's price range; a product
        left with no active listing keeps its last known range. A listing
        seen again by a later scrape is reactivated by the merger.

        Args:
            retailer: Optional retailer to restrict the sweep to
            days: Number of days since last scrape to consider stale

        Returns:
            Number of listings deactivated
        """
        self.logger.info(
            "deactivating_stale_listings",
            retailer=retailer.value if retailer else None,
            days=days,
        )

        cutoff = utcnow() - timedelta(days=days)
        conditions = [
            ProductListing.is_active.is_(True),
            ProductListing.last_scraped < cutoff,
        ]
        if retailer:
            conditions.append(ProductListing.retailer == retailer)

        result = await self.db.execute(
            select(ProductListing.id, ProductListing.product_id).where(*conditions)
        )
        stale = result.all()
        if not stale:
            self.logger.info("stale_listings_deactivated", count=0)
            return 0

        await self.db.execute(
            update(ProductListing)
            .where(ProductListing.id.in_([row.id for row in stale]))
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()

        product_ids = {row.product_id for row in stale}
        for product_id in product_ids:
            await self.merger.recompute_price_range(product_id)

        self.logger.info(
            "stale_listings_deactivated",
            count=len(stale),
            products_affected=len(product_ids),
        )

        return len(stale)
