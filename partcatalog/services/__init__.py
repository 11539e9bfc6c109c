"""Catalog services: listing merges, catalog queries and staleness sweeps."""

from .catalog_merger import CatalogMerger, KeyedLock, MergeResult, match_existing_product
from .product_service import ProductService

__all__ = [
    "CatalogMerger",
    "KeyedLock",
    "MergeResult",
    "match_existing_product",
    "ProductService",
]
