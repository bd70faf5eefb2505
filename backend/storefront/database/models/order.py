"""
Order models for checkout and fulfillment tracking.

This module defines the Order aggregate, its line items and the status
history audit trail. Line items snapshot the unit price (and product name)
at purchase time so later catalog edits never rewrite order history.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront.database.base import BaseModel
from storefront.database.models.product import Product
from storefront.database.models.user import User
from storefront.services.orders.enums import OrderStatus, PaymentMethod, PaymentStatus


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


def _money_column(comment: str, default: Optional[Decimal] = None):
    return mapped_column(
        Numeric(precision=10, scale=2),
        nullable=False,
        default=default,
        comment=comment,
    )


class Order(BaseModel):
    """
    Order model for managing customer purchases.

    Attributes:
        id: Unique order identifier
        order_number: Human-readable order number (unique)
        user_id: Owner of the order
        status: Current workflow status
        payment_method: Payment method chosen at checkout
        payment_status: Current payment status
        subtotal: Sum of line totals
        tax_amount: Tax charged on the subtotal
        shipping_cost: Shipping charge
        total_amount: subtotal + tax_amount + shipping_cost
        shipping_*: Shipping address fields
        billing_*: Optional billing address fields
        notes: Optional customer notes
        tracking_number: Optional carrier tracking number
        confirmed_at/shipped_at/delivered_at/cancelled_at: Transition stamps
        items: Line items (destroyed with the order)
        status_history: Applied status transitions
    """

    __tablename__ = "orders"

    order_number: Mapped[str] = mapped_column(
        String(50),
        nullable=False,
        unique=True,
        comment="Human-readable order number",
    )

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
        comment="User who placed the order",
    )

    status: Mapped[OrderStatus] = mapped_column(
        SQLEnum(
            OrderStatus,
            name="order_status",
            native_enum=False,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=OrderStatus.PENDING,
        index=True,
        comment="Current order status",
    )

    payment_method: Mapped[PaymentMethod] = mapped_column(
        SQLEnum(
            PaymentMethod,
            name="payment_method",
            native_enum=False,
            values_callable=_enum_values,
        ),
        nullable=False,
        comment="Payment method chosen at checkout",
    )

    payment_status: Mapped[PaymentStatus] = mapped_column(
        SQLEnum(
            PaymentStatus,
            name="payment_status",
            native_enum=False,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=PaymentStatus.PENDING,
        comment="Current payment status",
    )

    # Pricing fields
    subtotal: Mapped[Decimal] = _money_column("Sum of line totals")
    tax_amount: Mapped[Decimal] = _money_column("Tax amount", Decimal("0.00"))
    shipping_cost: Mapped[Decimal] = _money_column("Shipping charge", Decimal("0.00"))
    total_amount: Mapped[Decimal] = _money_column("Total order amount")

    # Addresses
    shipping_address: Mapped[str] = mapped_column(String(500), nullable=False)
    shipping_city: Mapped[str] = mapped_column(String(100), nullable=False)
    shipping_postal_code: Mapped[str] = mapped_column(String(20), nullable=False)
    shipping_country: Mapped[str] = mapped_column(String(100), nullable=False)

    billing_address: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    billing_city: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    billing_postal_code: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    billing_country: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    notes: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)
    tracking_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    # Status timestamps
    confirmed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    shipped_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    delivered_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Relationships
    user: Mapped[User] = relationship(User, lazy="selectin")

    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderItem.id",
    )

    status_history: Mapped[list["OrderStatusHistory"]] = relationship(
        "OrderStatusHistory",
        back_populates="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderStatusHistory.id",
    )

    __table_args__ = (
        Index("ix_orders_user_created", "user_id", "created_at"),
        Index("ix_orders_status_created", "status", "created_at"),
        CheckConstraint("subtotal >= 0", name="ck_orders_subtotal_non_negative"),
        CheckConstraint("tax_amount >= 0", name="ck_orders_tax_amount_non_negative"),
        CheckConstraint(
            "shipping_cost >= 0", name="ck_orders_shipping_cost_non_negative"
        ),
        CheckConstraint(
            "total_amount >= 0", name="ck_orders_total_amount_non_negative"
        ),
    )

    @property
    def item_count(self) -> int:
        """Total units across all line items."""
        return sum(item.quantity for item in self.items)

    def __repr__(self) -> str:
        return (
            f"<Order(id={self.id}, order_number={self.order_number}, "
            f"status={self.status.value})>"
        )


class OrderItem(BaseModel):
    """
    Order line item with a price snapshot.

    Attributes:
        id: Unique line item identifier
        order_id: Owning order
        product_id: Ordered product
        product_name: Product name at purchase time
        quantity: Units ordered (positive)
        unit_price: Unit price at purchase time
        total_price: quantity * unit_price
    """

    __tablename__ = "order_items"

    order_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    product_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("products.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = _money_column("Unit price at purchase time")
    total_price: Mapped[Decimal] = _money_column("Line total")

    order: Mapped[Order] = relationship(Order, back_populates="items")
    product: Mapped[Product] = relationship(Product, lazy="selectin")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        CheckConstraint(
            "unit_price >= 0", name="ck_order_items_unit_price_non_negative"
        ),
        CheckConstraint(
            "total_price >= 0", name="ck_order_items_total_price_non_negative"
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<OrderItem(id={self.id}, product_id={self.product_id}, "
            f"quantity={self.quantity})>"
        )


class OrderStatusHistory(BaseModel):
    """
    Audit trail of applied order status transitions.

    Attributes:
        order_id: Order the transition belongs to
        from_status: Status before the transition (None for creation)
        to_status: Status after the transition
        changed_by: User who applied the transition
        reason: Optional free-text reason
    """

    __tablename__ = "order_status_history"

    order_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    from_status: Mapped[Optional[OrderStatus]] = mapped_column(
        SQLEnum(
            OrderStatus,
            name="order_status",
            native_enum=False,
            values_callable=_enum_values,
        ),
        nullable=True,
    )

    to_status: Mapped[OrderStatus] = mapped_column(
        SQLEnum(
            OrderStatus,
            name="order_status",
            native_enum=False,
            values_callable=_enum_values,
        ),
        nullable=False,
    )

    changed_by: Mapped[Optional[int]] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
    )

    reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    order: Mapped[Order] = relationship(Order, back_populates="status_history")

    def __repr__(self) -> str:
        from_value = self.from_status.value if self.from_status else None
        return (
            f"<OrderStatusHistory(order_id={self.order_id}, "
            f"{from_value} -> {self.to_status.value})>"
        )
