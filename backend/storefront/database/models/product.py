"""
Product model for the storefront catalog.

The stock_quantity column is the inventory counter decremented by checkout;
it is guarded by a CHECK constraint so that it can never go negative.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.database.base import BaseModel
from storefront.database.models.category import Category, product_categories


class Product(BaseModel):
    """
    Catalog product.

    Attributes:
        id: Unique product identifier
        name: Product name
        description: Optional long description
        sku: Optional stock keeping unit (unique when present)
        price: Current catalog unit price
        stock_quantity: Units available for sale
        is_active: Whether the product can be ordered
        is_featured: Whether the product is promoted in the storefront
        image_url: Optional product image location
        categories: Categories the product belongs to
    """

    __tablename__ = "products"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Product name",
    )

    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    sku: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
        unique=True,
        comment="Stock keeping unit",
    )

    price: Mapped[Decimal] = mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        comment="Current catalog unit price",
    )

    stock_quantity: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Units available for sale",
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_featured: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    image_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    categories: Mapped[list[Category]] = relationship(
        Category,
        secondary=product_categories,
        lazy="selectin",
        order_by=Category.name,
    )

    __table_args__ = (
        CheckConstraint(
            "stock_quantity >= 0",
            name="ck_products_stock_quantity_non_negative",
        ),
        CheckConstraint(
            "price >= 0",
            name="ck_products_price_non_negative",
        ),
        Index("ix_products_active_featured", "is_active", "is_featured"),
    )

    @property
    def in_stock(self) -> bool:
        """Check if at least one unit is available."""
        return self.stock_quantity > 0

    def __repr__(self) -> str:
        return (
            f"<Product(id={self.id}, name={self.name}, "
            f"stock_quantity={self.stock_quantity})>"
        )
