"""
Database models package initialization.

This module exports all database models for SQLAlchemy and Alembic
auto-generation. Models are imported here to ensure they are registered with
the Base metadata for migration generation and relationship resolution.
"""

from storefront.database.base import Base, BaseModel, IntegerIdMixin, TimestampMixin
from storefront.database.models.category import Category, product_categories
from storefront.database.models.order import Order, OrderItem, OrderStatusHistory
from storefront.database.models.product import Product
from storefront.database.models.user import User, UserRole
from storefront.database.models.wishlist import WishlistItem

__all__ = [
    "Base",
    "BaseModel",
    "IntegerIdMixin",
    "TimestampMixin",
    "Category",
    "product_categories",
    "Product",
    "User",
    "UserRole",
    "Order",
    "OrderItem",
    "OrderStatusHistory",
    "WishlistItem",
]
