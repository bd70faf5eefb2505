"""
Wishlist model: a unique (user, product) membership record.
"""

from sqlalchemy import ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.database.base import BaseModel
from storefront.database.models.product import Product


class WishlistItem(BaseModel):
    """
    Product saved to a user's wishlist.

    Attributes:
        user_id: Owner of the wishlist entry
        product_id: Saved product
        product: Saved product (eager loaded with its categories)
    """

    __tablename__ = "wishlist_items"

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    product_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )

    product: Mapped[Product] = relationship(Product, lazy="selectin")

    __table_args__ = (
        UniqueConstraint("user_id", "product_id", name="uq_wishlist_items_user_product"),
    )
