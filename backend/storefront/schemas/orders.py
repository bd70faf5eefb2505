"""
Order management Pydantic schemas for API request/response validation.

This module defines schemas for checkout (order creation), administrative
order updates, order listings and the aggregate order statistics.
Money values are Decimals and serialize as strings.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from storefront.services.orders.enums import OrderStatus, PaymentMethod, PaymentStatus


class OrderItemCreate(BaseModel):
    """Single checkout line."""

    model_config = ConfigDict(validate_assignment=True)

    product_id: int = Field(
        ...,
        ge=1,
        description="Product identifier",
    )
    quantity: int = Field(
        ...,
        ge=1,
        description="Units to order; bounded only by available stock",
    )
    unit_price: Optional[Decimal] = Field(
        None,
        ge=0,
        description="Unit price shown to the customer; rounded to cents on receipt",
    )


class OrderCreate(BaseModel):
    """Request schema for placing an order."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    payment_method: PaymentMethod = Field(
        ...,
        description="Payment method",
    )
    shipping_address: str = Field(..., min_length=1, max_length=500)
    shipping_city: str = Field(..., min_length=1, max_length=100)
    shipping_postal_code: str = Field(..., min_length=1, max_length=20)
    shipping_country: str = Field(..., min_length=1, max_length=100)
    billing_address: Optional[str] = Field(None, max_length=500)
    billing_city: Optional[str] = Field(None, max_length=100)
    billing_postal_code: Optional[str] = Field(None, max_length=20)
    billing_country: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(
        None,
        max_length=1000,
        description="Order notes",
    )
    items: list[OrderItemCreate] = Field(
        ...,
        min_length=1,
        description="Order lines",
    )


class OrderUpdate(BaseModel):
    """Request schema for administrative order updates."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
    )

    status: Optional[OrderStatus] = Field(
        None,
        description="New order status",
    )
    payment_status: Optional[PaymentStatus] = Field(
        None,
        description="New payment status",
    )
    tracking_number: Optional[str] = Field(
        None,
        max_length=100,
        description="Carrier tracking number",
    )
    notes: Optional[str] = Field(
        None,
        max_length=1000,
        description="Order notes",
    )
    reason: Optional[str] = Field(
        None,
        max_length=500,
        description="Reason recorded with a status change",
    )

    @model_validator(mode="after")
    def validate_at_least_one_field(self) -> "OrderUpdate":
        """
        Require at least one updatable field in the request body.

        An explicit null counts as provided for ``tracking_number`` and
        ``notes`` and clears them. Status and payment status cannot be null.
        """
        provided = self.model_fields_set - {"reason"}
        if not provided:
            raise ValueError("At least one field must be provided for update")

        for name in ("status", "payment_status"):
            if name in provided and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        return self


class OrderProductResponse(BaseModel):
    """Product reference embedded in an order line."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    price: Decimal
    image_url: Optional[str] = None


class OrderItemResponse(BaseModel):
    """Order line response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    product: Optional[OrderProductResponse] = None


class OrderUserResponse(BaseModel):
    """Order owner summary."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    first_name: str
    last_name: str


class OrderStatusHistoryResponse(BaseModel):
    """Applied status transition."""

    model_config = ConfigDict(from_attributes=True)

    from_status: Optional[OrderStatus] = None
    to_status: OrderStatus
    changed_by: Optional[int] = None
    reason: Optional[str] = None
    created_at: datetime


class OrderResponse(BaseModel):
    """Complete order response schema."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    order_number: str
    user_id: int
    user: Optional[OrderUserResponse] = None
    status: OrderStatus
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    subtotal: Decimal
    tax_amount: Decimal
    shipping_cost: Decimal
    total_amount: Decimal
    shipping_address: str
    shipping_city: str
    shipping_postal_code: str
    shipping_country: str
    billing_address: Optional[str] = None
    billing_city: Optional[str] = None
    billing_postal_code: Optional[str] = None
    billing_country: Optional[str] = None
    notes: Optional[str] = None
    tracking_number: Optional[str] = None
    confirmed_at: Optional[datetime] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    items: list[OrderItemResponse]
    status_history: list[OrderStatusHistoryResponse] = []
    created_at: datetime
    updated_at: datetime


class OrderListResponse(BaseModel):
    """Paginated order listing."""

    orders: list[OrderResponse]
    total: int = Field(..., ge=0, description="Total matching orders")
    page: int = Field(..., ge=1)
    limit: int = Field(..., ge=1)


class OrderStatisticsResponse(BaseModel):
    """Aggregate order statistics."""

    total_orders: int = Field(..., ge=0)
    total_revenue: Decimal = Field(
        ...,
        description="Sum of order totals excluding cancelled orders",
    )
    pending_orders: int = Field(..., ge=0)
    completed_orders: int = Field(..., ge=0, description="Delivered orders")
