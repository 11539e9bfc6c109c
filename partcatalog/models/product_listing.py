"""Per-retailer price and stock listing for a catalog product."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, ForeignKey, Index, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from partcatalog.core.enums import Retailer, StockStatus
from partcatalog.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin, utcnow

if TYPE_CHECKING:
    from partcatalog.models.product import Product


class ProductListing(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A product as offered by one retailer.

    Each listing is uniquely identified by the (product_id, retailer) pair.
    is_active is a soft-delete flag cleared by the staleness sweep.
    """

    __tablename__ = "product_listings"

    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    retailer: Mapped[Retailer] = mapped_column(
        SAEnum(Retailer, name="retailer", native_enum=False, length=20),
        nullable=False,
        index=True,
    )
    retailer_url: Mapped[str] = mapped_column(String(2000), nullable=False, comment="Link to product on retailer site")
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    stock_status: Mapped[StockStatus] = mapped_column(
        SAEnum(StockStatus, name="stock_status", native_enum=False, length=20),
        nullable=False,
        default=StockStatus.IN_STOCK,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_scraped: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        comment="Last time this listing was seen by a scrape",
    )

    __table_args__ = (
        UniqueConstraint("product_id", "retailer", name="uq_listing_product_retailer"),
        Index("idx_listings_active_scraped", "is_active", "last_scraped"),
    )

    product: Mapped["Product"] = relationship(back_populates="listings")

    def __repr__(self) -> str:
        return (
            f"<ProductListing(id={self.id}, product_id={self.product_id}, "
            f"retailer={self.retailer.value}, price={self.price})>"
        )
