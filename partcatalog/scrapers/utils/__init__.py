"""Scraper utilities for fetching, retrying and listing normalization."""

from .fetcher import Fetcher
from .retry import http_retrying, RETRYABLE_HTTP_ERRORS
from .normalizer import (
    PriceNormalizer,
    CategoryClassifier,
    BrandExtractor,
    CategoryRule,
    SPECIFIC_CATEGORY_RULES,
    GENERAL_CATEGORY_RULES,
    CATEGORY_HINT_ALIASES,
    KNOWN_BRANDS,
    clean_product_name,
    normalize_rating,
    normalize_listing,
)


__all__ = [
    # Fetching
    "Fetcher",
    "http_retrying",
    "RETRYABLE_HTTP_ERRORS",
    # Normalization
    "PriceNormalizer",
    "CategoryClassifier",
    "BrandExtractor",
    "CategoryRule",
    "SPECIFIC_CATEGORY_RULES",
    "GENERAL_CATEGORY_RULES",
    "CATEGORY_HINT_ALIASES",
    "KNOWN_BRANDS",
    "clean_product_name",
    "normalize_rating",
    "normalize_listing",
]
