"""Canonical catalog product shared across retailers."""

from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Enum as SAEnum, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from partcatalog.core.enums import PartCategory
from partcatalog.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from partcatalog.models.product_listing import ProductListing


class Product(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Canonical product, matched across retailers and runs by its cleaned name.

    lowest_price/highest_price are the min/max of the prices of the product's
    active listings and are only written by the catalog merger.
    """

    __tablename__ = "products"

    name: Mapped[str] = mapped_column(
        String(500),
        nullable=False,
        unique=True,
        index=True,
        comment="Cleaned product name; cross-retailer matching key",
    )
    category: Mapped[PartCategory] = mapped_column(
        SAEnum(PartCategory, name="part_category", native_enum=False, length=20),
        nullable=False,
        index=True,
    )
    brand: Mapped[Optional[str]] = mapped_column(String(200), nullable=True, index=True)
    model: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    rating: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(3, 2),
        nullable=True,
        comment="Latest retailer star rating out of 5",
    )

    # Price range across active listings
    lowest_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    highest_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    listings: Mapped[list["ProductListing"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductListing.price",
    )

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, name='{self.name[:50]}', category={self.category.value})>"
