"""Retailer-specific adapter implementations.

Each adapter module implements a class that inherits from
BaseScraperAdapter (HTML listing pages) or BaseAPIAdapter (JSON APIs).
"""

# HTML adapters
from .bermor import BermorAdapter

# API adapters
from .datablitz import DatablitzAdapter
from .pcworth import PCWorthAdapter

__all__ = [
    # HTML adapters
    "BermorAdapter",
    # API adapters
    "DatablitzAdapter",
    "PCWorthAdapter",
]
