"""
Catalog Pydantic schemas for products and categories.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class CategoryCreate(BaseModel):
    """Request schema for creating a category."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100, description="Category name")
    description: Optional[str] = Field(None, max_length=1000)
    is_active: bool = Field(default=True)


class CategoryUpdate(BaseModel):
    """Request schema for updating a category."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=1000)
    is_active: Optional[bool] = None


class CategoryResponse(BaseModel):
    """Category response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class CategorySummary(BaseModel):
    """Category reference embedded in product responses."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str


class ProductCreate(BaseModel):
    """Request schema for creating a product."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=255, description="Product name")
    description: Optional[str] = Field(None, max_length=10000)
    sku: Optional[str] = Field(None, min_length=1, max_length=64)
    price: Decimal = Field(..., ge=0, decimal_places=2, description="Unit price")
    stock_quantity: int = Field(default=0, ge=0, description="Units in stock")
    is_active: bool = Field(default=True)
    is_featured: bool = Field(default=False)
    image_url: Optional[str] = Field(None, max_length=500)
    category_ids: list[int] = Field(default_factory=list)

    @field_validator("sku")
    @classmethod
    def normalize_sku(cls, v: Optional[str]) -> Optional[str]:
        """Store SKUs upper-case."""
        return v.upper() if v else v

    @field_validator("category_ids")
    @classmethod
    def deduplicate_category_ids(cls, v: list[int]) -> list[int]:
        """Drop repeated category ids while keeping order."""
        return list(dict.fromkeys(v))


class ProductUpdate(BaseModel):
    """
    Request schema for updating a product.

    Providing category_ids replaces the product's categories; stock_quantity
    sets the stock counter directly.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=10000)
    sku: Optional[str] = Field(None, min_length=1, max_length=64)
    price: Optional[Decimal] = Field(None, ge=0, decimal_places=2)
    stock_quantity: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
    is_featured: Optional[bool] = None
    image_url: Optional[str] = Field(None, max_length=500)
    category_ids: Optional[list[int]] = None

    @field_validator("sku")
    @classmethod
    def normalize_sku(cls, v: Optional[str]) -> Optional[str]:
        """Store SKUs upper-case."""
        return v.upper() if v else v

    @model_validator(mode="after")
    def validate_at_least_one_field(self) -> "ProductUpdate":
        """Ensure at least one field is provided for update."""
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


class ProductResponse(BaseModel):
    """Product response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    sku: Optional[str] = None
    price: Decimal
    stock_quantity: int
    is_active: bool
    is_featured: bool
    image_url: Optional[str] = None
    categories: list[CategorySummary] = []
    created_at: datetime
    updated_at: datetime


class ProductListResponse(BaseModel):
    """Paginated product listing."""

    products: list[ProductResponse]
    total: int = Field(..., ge=0)
    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)


class BestSellerResponse(ProductResponse):
    """Product with the number of units sold on orders that were not cancelled."""

    units_sold: int = Field(..., ge=0)
