"""SQLAlchemy models for the parts catalog.

All models are imported here so metadata.create_all can discover them.
"""

from partcatalog.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from partcatalog.models.product import Product
from partcatalog.models.product_listing import ProductListing
from partcatalog.models.scrape_job import ScrapeJob

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "Product",
    "ProductListing",
    "ScrapeJob",
]
