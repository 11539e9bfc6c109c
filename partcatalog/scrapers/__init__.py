"""Scraper system for crawling retailer catalogs.

This package provides:
- Base adapter classes and the raw/normalized listing records
- Retailer adapters (Bermor HTML, Datablitz and PCWorth JSON APIs)
- Utility modules for fetching with retries and listing normalization
- Factory for creating adapter instances
- Job runner and scheduler for automated scraping jobs
"""

from .base import (
    BaseAdapter,
    BaseScraperAdapter,
    BaseAPIAdapter,
    RawListing,
    NormalizedListing,
)
from .factory import AdapterFactory, adapter_factory, get_adapter_factory

__all__ = [
    # Base classes
    "BaseAdapter",
    "BaseScraperAdapter",
    "BaseAPIAdapter",
    # Data structures
    "RawListing",
    "NormalizedListing",
    # Factory
    "AdapterFactory",
    "adapter_factory",
    "get_adapter_factory",
]
