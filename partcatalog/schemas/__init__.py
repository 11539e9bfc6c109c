"""Pydantic schemas for catalog results and job summaries."""

from .common import PaginationMeta
from .job import JobResult
from .product import ListingResponse, ProductPage, ProductResponse

__all__ = [
    "PaginationMeta",
    "JobResult",
    "ListingResponse",
    "ProductResponse",
    "ProductPage",
]
