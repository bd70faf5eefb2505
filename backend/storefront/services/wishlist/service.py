"""
Wishlist service managing user/product membership.

This module implements the WishlistService class. A product appears at most
once per user; the pair is also protected by a unique constraint.
"""

from collections import Counter
from decimal import Decimal
from typing import Any

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.logging import get_logger
from storefront.database.models.product import Product
from storefront.database.models.wishlist import WishlistItem
from storefront.services.catalog.service import ProductNotFoundError

logger = get_logger(__name__)


class WishlistServiceError(Exception):
    """Base exception for wishlist service errors."""

    def __init__(self, message: str, code: str = "WISHLIST_ERROR", **context: Any):
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context


class WishlistItemExistsError(WishlistServiceError):
    """Raised when the product is already on the wishlist."""

    def __init__(self, user_id: int, product_id: int):
        super().__init__(
            "Product is already in wishlist",
            code="WISHLIST_ITEM_EXISTS",
            user_id=user_id,
            product_id=product_id,
        )


class WishlistItemNotFoundError(WishlistServiceError):
    """Raised when the product is not on the wishlist."""

    def __init__(self, user_id: int, product_id: int):
        super().__init__(
            "Product not found in wishlist",
            code="WISHLIST_ITEM_NOT_FOUND",
            user_id=user_id,
            product_id=product_id,
        )


class WishlistService:
    """
    Wishlist service.

    Provides add/remove/list operations, membership checks and aggregate
    statistics for a user's wishlist.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _find(self, user_id: int, product_id: int) -> WishlistItem | None:
        result = await self.session.execute(
            select(WishlistItem).where(
                WishlistItem.user_id == user_id,
                WishlistItem.product_id == product_id,
            )
        )
        return result.scalar_one_or_none()

    async def add_to_wishlist(self, user_id: int, product_id: int) -> WishlistItem:
        """
        Save a product to the user's wishlist.

        Raises:
            ProductNotFoundError: If the product does not exist
            WishlistItemExistsError: If the product is already saved
        """
        product = await self.session.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(product_id)

        if await self._find(user_id, product_id) is not None:
            raise WishlistItemExistsError(user_id, product_id)

        item = WishlistItem(user_id=user_id, product_id=product_id)
        self.session.add(item)
        try:
            await self.session.commit()
        except IntegrityError as e:
            # Concurrent add of the same pair
            await self.session.rollback()
            raise WishlistItemExistsError(user_id, product_id) from e
        except SQLAlchemyError:
            await self.session.rollback()
            raise

        logger.info("Product added to wishlist", user_id=user_id, product_id=product_id)

        result = await self.session.execute(
            select(WishlistItem)
            .where(WishlistItem.id == item.id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def remove_from_wishlist(self, user_id: int, product_id: int) -> None:
        """
        Remove a product from the user's wishlist.

        Raises:
            WishlistItemNotFoundError: If the product is not saved
        """
        item = await self._find(user_id, product_id)
        if item is None:
            raise WishlistItemNotFoundError(user_id, product_id)

        await self.session.delete(item)
        await self.session.commit()
        logger.info("Product removed from wishlist", user_id=user_id, product_id=product_id)

    async def get_wishlist(self, user_id: int) -> list[WishlistItem]:
        """Wishlist entries with products and categories, newest first."""
        result = await self.session.execute(
            select(WishlistItem)
            .where(WishlistItem.user_id == user_id)
            .order_by(WishlistItem.created_at.desc(), WishlistItem.id.desc())
        )
        return list(result.scalars().all())

    async def is_in_wishlist(self, user_id: int, product_id: int) -> bool:
        return await self._find(user_id, product_id) is not None

    async def get_wishlist_count(self, user_id: int) -> int:
        result = await self.session.execute(
            select(func.count())
            .select_from(WishlistItem)
            .where(WishlistItem.user_id == user_id)
        )
        return result.scalar_one()

    async def clear_wishlist(self, user_id: int) -> int:
        """
        Remove every entry from the user's wishlist.

        Returns:
            Number of removed entries
        """
        result = await self.session.execute(
            delete(WishlistItem).where(WishlistItem.user_id == user_id)
        )
        await self.session.commit()
        logger.info("Wishlist cleared", user_id=user_id, removed=result.rowcount)
        return result.rowcount

    async def get_wishlist_stats(self, user_id: int) -> dict[str, Any]:
        """
        Aggregate wishlist statistics.

        Returns:
            Dictionary with total_items, total_value (sum of current product
            prices) and categories (saved products per category name)
        """
        items = await self.get_wishlist(user_id)

        total_value = sum((item.product.price for item in items), Decimal("0"))
        categories: Counter[str] = Counter(
            category.name
            for item in items
            for category in item.product.categories
        )

        return {
            "total_items": len(items),
            "total_value": Decimal(total_value).quantize(Decimal("0.01")),
            "categories": dict(categories),
        }
