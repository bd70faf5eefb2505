"""
Integration tests for administrative user management.
"""

import pytest

from storefront.database.models import UserRole
from storefront.services.orders.service import OrderService
from storefront.services.users.service import (
    SelfModificationError,
    UserHasOrdersError,
    UserNotFoundError,
    UserService,
)
from tests.utils import make_order_request


@pytest.fixture
def user_service(db_session):
    return UserService(db_session)


class TestListUsers:
    async def test_filters_and_search(self, user_service, customer, admin, user_factory):
        dormant = await user_factory(email="dormant@shop.test", is_active=False)

        everyone, total = await user_service.list_users()
        inactive, inactive_total = await user_service.list_users(is_active=False)
        admins, _ = await user_service.list_users(role=UserRole.ADMIN)
        found, found_total = await user_service.list_users(search="SHOP.TEST")

        assert total == 3
        assert [u.id for u in everyone] == sorted((customer.id, admin.id, dormant.id), reverse=True)
        assert inactive_total == 1
        assert inactive[0].id == dormant.id
        assert [u.email for u in admins] == ["admin@example.com"]
        assert found_total == 1
        assert found[0].email == "dormant@shop.test"

    async def test_pagination(self, user_service, user_factory):
        for _ in range(5):
            await user_factory()

        page_one, total = await user_service.list_users(page=1, limit=2)
        page_three, _ = await user_service.list_users(page=3, limit=2)

        assert total == 5
        assert len(page_one) == 2
        assert len(page_three) == 1


class TestToggleActive:
    async def test_toggle_twice_restores_flag(self, user_service, customer, admin):
        customer_id, admin_id = customer.id, admin.id

        deactivated = await user_service.toggle_active(customer_id, acting_admin_id=admin_id)
        assert deactivated.is_active is False

        reactivated = await user_service.toggle_active(customer_id, acting_admin_id=admin_id)
        assert reactivated.is_active is True

    async def test_cannot_toggle_own_account(self, user_service, admin):
        with pytest.raises(SelfModificationError) as exc_info:
            await user_service.toggle_active(admin.id, acting_admin_id=admin.id)

        assert exc_info.value.code == "CANNOT_MODIFY_SELF"
        assert admin.is_active is True

    async def test_missing_user(self, user_service, admin):
        with pytest.raises(UserNotFoundError):
            await user_service.toggle_active(404, acting_admin_id=admin.id)


class TestUserStatistics:
    async def test_counts(self, user_service, customer, admin, user_factory):
        await user_factory(is_active=False)

        stats = await user_service.get_user_statistics()

        assert stats == {
            "total_users": 3,
            "active_users": 2,
            "inactive_users": 1,
            "admin_users": 1,
            "customer_users": 2,
        }

    async def test_empty(self, user_service):
        stats = await user_service.get_user_statistics()

        assert stats["total_users"] == 0
        assert stats["admin_users"] == 0


class TestDeleteUser:
    async def test_delete_user_without_orders(self, user_service, customer, admin):
        customer_id, admin_id = customer.id, admin.id

        await user_service.delete_user(customer_id, acting_admin_id=admin_id)

        with pytest.raises(UserNotFoundError):
            await user_service.get_user(customer_id)

    async def test_user_with_orders_is_kept(
        self, db_session, user_service, customer, admin, product_factory
    ):
        product = await product_factory()
        customer_id, admin_id = customer.id, admin.id
        await OrderService(db_session).create_order(
            customer_id, make_order_request([(product.id, 1)])
        )

        with pytest.raises(UserHasOrdersError) as exc_info:
            await user_service.delete_user(customer_id, acting_admin_id=admin_id)

        assert exc_info.value.code == "USER_HAS_ORDERS"
        assert (await user_service.get_user(customer_id)).id == customer_id

    async def test_cannot_delete_own_account(self, user_service, admin):
        with pytest.raises(SelfModificationError):
            await user_service.delete_user(admin.id, acting_admin_id=admin.id)
