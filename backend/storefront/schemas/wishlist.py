"""
Wishlist Pydantic schemas.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from storefront.schemas.catalog import ProductResponse


class WishlistAddRequest(BaseModel):
    """Request schema for saving a product to the wishlist."""

    product_id: int = Field(..., ge=1, description="Product identifier")


class WishlistItemResponse(BaseModel):
    """Wishlist entry with the saved product."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    product: ProductResponse
    created_at: datetime


class WishlistMembershipResponse(BaseModel):
    """Whether a product is on the caller's wishlist."""

    product_id: int
    in_wishlist: bool


class WishlistCountResponse(BaseModel):
    count: int = Field(..., ge=0)


class WishlistStatsResponse(BaseModel):
    """Aggregate wishlist statistics."""

    total_items: int = Field(..., ge=0)
    total_value: Decimal = Field(..., description="Sum of current product prices")
    categories: dict[str, int] = Field(
        default_factory=dict,
        description="Saved products per category name",
    )
