"""
API v1 package initialization.

Collects the versioned routers mounted by the application.
"""

from storefront.api.v1.auth import router as auth_router
from storefront.api.v1.categories import router as categories_router
from storefront.api.v1.orders import router as orders_router
from storefront.api.v1.products import router as products_router
from storefront.api.v1.users import router as users_router
from storefront.api.v1.wishlist import router as wishlist_router

__all__ = [
    "auth_router",
    "categories_router",
    "orders_router",
    "products_router",
    "users_router",
    "wishlist_router",
]
