"""
Integration tests for the wishlist service.
"""

from decimal import Decimal

import pytest

from storefront.services.catalog.service import ProductNotFoundError
from storefront.services.wishlist.service import (
    WishlistItemExistsError,
    WishlistItemNotFoundError,
    WishlistService,
)


@pytest.fixture
def wishlist_service(db_session):
    return WishlistService(db_session)


class TestWishlistMembership:
    """Adding, removing and checking entries."""

    async def test_add_to_wishlist(self, wishlist_service, customer, product_factory):
        product = await product_factory(name="Lamp")

        item = await wishlist_service.add_to_wishlist(customer.id, product.id)

        assert item.id is not None
        assert item.user_id == customer.id
        assert item.product.name == "Lamp"
        assert await wishlist_service.is_in_wishlist(customer.id, product.id)

    async def test_add_twice_raises(self, wishlist_service, customer, product_factory):
        product = await product_factory()
        await wishlist_service.add_to_wishlist(customer.id, product.id)

        with pytest.raises(WishlistItemExistsError) as exc_info:
            await wishlist_service.add_to_wishlist(customer.id, product.id)

        assert exc_info.value.code == "WISHLIST_ITEM_EXISTS"
        assert await wishlist_service.get_wishlist_count(customer.id) == 1

    async def test_add_unknown_product(self, wishlist_service, customer):
        with pytest.raises(ProductNotFoundError):
            await wishlist_service.add_to_wishlist(customer.id, 999)

    async def test_same_product_for_different_users(
        self, wishlist_service, customer, user_factory, product_factory
    ):
        other = await user_factory()
        product = await product_factory()

        await wishlist_service.add_to_wishlist(customer.id, product.id)
        await wishlist_service.add_to_wishlist(other.id, product.id)

        assert await wishlist_service.get_wishlist_count(customer.id) == 1
        assert await wishlist_service.get_wishlist_count(other.id) == 1

    async def test_remove(self, wishlist_service, customer, product_factory):
        product = await product_factory()
        await wishlist_service.add_to_wishlist(customer.id, product.id)

        await wishlist_service.remove_from_wishlist(customer.id, product.id)

        assert not await wishlist_service.is_in_wishlist(customer.id, product.id)
        with pytest.raises(WishlistItemNotFoundError):
            await wishlist_service.remove_from_wishlist(customer.id, product.id)


class TestWishlistQueries:
    """Listing, clearing and statistics."""

    async def test_newest_first(self, wishlist_service, customer, product_factory):
        first = await product_factory(name="First")
        second = await product_factory(name="Second")
        await wishlist_service.add_to_wishlist(customer.id, first.id)
        await wishlist_service.add_to_wishlist(customer.id, second.id)

        items = await wishlist_service.get_wishlist(customer.id)

        assert [item.product.name for item in items] == ["Second", "First"]

    async def test_clear(self, wishlist_service, customer, product_factory):
        for _ in range(3):
            product = await product_factory()
            await wishlist_service.add_to_wishlist(customer.id, product.id)

        removed = await wishlist_service.clear_wishlist(customer.id)

        assert removed == 3
        assert await wishlist_service.get_wishlist_count(customer.id) == 0

    async def test_stats(self, wishlist_service, customer, category_factory, product_factory):
        tools = await category_factory(name="Tools")
        garden = await category_factory(name="Garden")
        spade = await product_factory(price="20.00", categories=[tools, garden])
        hammer = await product_factory(price="5.50", categories=[tools])
        await wishlist_service.add_to_wishlist(customer.id, spade.id)
        await wishlist_service.add_to_wishlist(customer.id, hammer.id)

        stats = await wishlist_service.get_wishlist_stats(customer.id)

        assert stats["total_items"] == 2
        assert stats["total_value"] == Decimal("25.50")
        assert stats["categories"] == {"Tools": 2, "Garden": 1}

    async def test_empty_stats(self, wishlist_service, customer):
        stats = await wishlist_service.get_wishlist_stats(customer.id)

        assert stats == {"total_items": 0, "total_value": Decimal("0.00"), "categories": {}}
