"""Product Pydantic schemas for catalog query results."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from partcatalog.core.enums import PartCategory, Retailer, StockStatus
from partcatalog.schemas.common import PaginationMeta


class ListingResponse(BaseModel):
    """One retailer's offer for a product."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    retailer: Retailer
    retailer_url: str
    price: Decimal
    stock_status: StockStatus
    is_active: bool
    last_scraped: datetime


class ProductResponse(BaseModel):
    """Catalog product with its active listings (cheapest first)."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    category: PartCategory
    brand: Optional[str] = None
    model: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    rating: Optional[Decimal] = None
    lowest_price: Decimal
    highest_price: Decimal
    created_at: datetime
    updated_at: datetime
    listings: List[ListingResponse] = []


class ProductPage(BaseModel):
    """One page of a catalog query."""

    data: List[ProductResponse]
    pagination: PaginationMeta
