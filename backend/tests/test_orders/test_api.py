"""
API tests for the order endpoints.
"""

from sqlalchemy import func, select

from storefront.database.models import Order, Product
from tests.utils import auth_headers, order_payload

ORDERS_URL = "/api/v1/orders"


async def place_order(client, user, items):
    return await client.post(ORDERS_URL, json=order_payload(items), headers=auth_headers(user))


class TestCreateOrderEndpoint:
    """POST /orders"""

    async def test_create_order(self, async_client, db_session, customer, product_factory):
        product = await product_factory(price="10.00", stock_quantity=5)
        product_id = product.id

        response = await place_order(
            async_client,
            customer,
            [{"product_id": product_id, "quantity": 2, "unit_price": "10.00"}],
        )

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == "pending"
        assert body["order_number"].startswith("ORD-")
        assert body["user_id"] == customer.id
        assert float(body["subtotal"]) == 20.0
        assert float(body["total_amount"]) == 20.0
        assert body["items"][0]["product_id"] == product_id
        assert body["items"][0]["quantity"] == 2

        stock = await db_session.execute(
            select(Product.stock_quantity).where(Product.id == product_id)
        )
        assert stock.scalar_one() == 3

    async def test_insufficient_stock_returns_400(
        self, async_client, db_session, customer, product_factory
    ):
        product = await product_factory(stock_quantity=1)

        response = await place_order(
            async_client, customer, [{"product_id": product.id, "quantity": 2}]
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "INSUFFICIENT_STOCK"
        assert "Available: 1" in response.json()["detail"]["message"]
        count = await db_session.execute(select(func.count()).select_from(Order))
        assert count.scalar_one() == 0

    async def test_unknown_product_returns_404(self, async_client, customer):
        response = await place_order(
            async_client, customer, [{"product_id": 9999, "quantity": 1}]
        )

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "PRODUCT_NOT_FOUND"

    async def test_inactive_product_returns_400(self, async_client, customer, product_factory):
        product = await product_factory(is_active=False)

        response = await place_order(
            async_client, customer, [{"product_id": product.id, "quantity": 1}]
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "PRODUCT_UNAVAILABLE"

    async def test_client_price_with_extra_decimals_is_accepted(
        self, async_client, customer, product_factory
    ):
        product = await product_factory(price="10.00", stock_quantity=5)
        product_id = product.id

        response = await place_order(
            async_client,
            customer,
            [{"product_id": product_id, "quantity": 1, "unit_price": 9.999}],
        )

        assert response.status_code == 201
        assert float(response.json()["items"][0]["unit_price"]) == 10.0
        assert float(response.json()["total_amount"]) == 10.0

    async def test_large_quantity_limited_only_by_stock(
        self, async_client, db_session, customer, product_factory
    ):
        product = await product_factory(price="1.00", stock_quantity=5000)
        product_id = product.id

        response = await place_order(
            async_client, customer, [{"product_id": product_id, "quantity": 1500}]
        )

        assert response.status_code == 201
        assert response.json()["items"][0]["quantity"] == 1500
        stock = await db_session.execute(
            select(Product.stock_quantity).where(Product.id == product_id)
        )
        assert stock.scalar_one() == 3500

    async def test_empty_items_is_validation_error(self, async_client, customer):
        response = await place_order(async_client, customer, [])

        assert response.status_code == 422

    async def test_requires_authentication(self, async_client):
        response = await async_client.post(
            ORDERS_URL, json=order_payload([{"product_id": 1, "quantity": 1}])
        )

        assert response.status_code == 401


class TestOrderQueryEndpoints:
    """Listing, lookup and statistics."""

    async def test_my_orders(self, async_client, customer, user_factory, product_factory):
        other = await user_factory()
        product = await product_factory(stock_quantity=10)
        product_id = product.id
        await place_order(async_client, customer, [{"product_id": product_id, "quantity": 1}])
        await place_order(async_client, other, [{"product_id": product_id, "quantity": 1}])

        response = await async_client.get(
            f"{ORDERS_URL}/my-orders", headers=auth_headers(customer)
        )

        assert response.status_code == 200
        assert len(response.json()) == 1
        assert response.json()[0]["user_id"] == customer.id

    async def test_list_orders_admin_only(self, async_client, customer, admin, product_factory):
        product = await product_factory(stock_quantity=10)
        await place_order(async_client, customer, [{"product_id": product.id, "quantity": 1}])

        forbidden = await async_client.get(ORDERS_URL, headers=auth_headers(customer))
        assert forbidden.status_code == 403

        response = await async_client.get(
            ORDERS_URL,
            params={"user_id": customer.id, "status": "pending", "page": 1, "limit": 5},
            headers=auth_headers(admin),
        )
        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["page"] == 1
        assert body["limit"] == 5
        assert len(body["orders"]) == 1

    async def test_get_order_visibility(
        self, async_client, customer, admin, user_factory, product_factory
    ):
        other = await user_factory()
        product = await product_factory()
        created = await place_order(
            async_client, customer, [{"product_id": product.id, "quantity": 1}]
        )
        order_id = created.json()["id"]

        own = await async_client.get(f"{ORDERS_URL}/{order_id}", headers=auth_headers(customer))
        foreign = await async_client.get(f"{ORDERS_URL}/{order_id}", headers=auth_headers(other))
        as_admin = await async_client.get(f"{ORDERS_URL}/{order_id}", headers=auth_headers(admin))

        assert own.status_code == 200
        assert foreign.status_code == 404
        assert as_admin.status_code == 200

    async def test_stats(self, async_client, customer, admin, product_factory):
        product = await product_factory(price="12.50", stock_quantity=10)
        await place_order(async_client, customer, [{"product_id": product.id, "quantity": 2}])

        response = await async_client.get(f"{ORDERS_URL}/stats", headers=auth_headers(admin))

        assert response.status_code == 200
        body = response.json()
        assert body["total_orders"] == 1
        assert float(body["total_revenue"]) == 25.0
        assert body["pending_orders"] == 1
        assert body["completed_orders"] == 0


class TestOrderAdminEndpoints:
    """PATCH and DELETE /orders/{id}"""

    async def test_update_status(self, async_client, customer, admin, product_factory):
        product = await product_factory()
        created = await place_order(
            async_client, customer, [{"product_id": product.id, "quantity": 1}]
        )
        order_id = created.json()["id"]

        response = await async_client.patch(
            f"{ORDERS_URL}/{order_id}",
            json={"status": "confirmed", "payment_status": "paid", "tracking_number": "TRK1"},
            headers=auth_headers(admin),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "confirmed"
        assert body["payment_status"] == "paid"
        assert body["tracking_number"] == "TRK1"
        assert body["confirmed_at"] is not None
        assert [h["to_status"] for h in body["status_history"]] == ["pending", "confirmed"]

    async def test_invalid_transition_returns_409(
        self, async_client, customer, admin, product_factory
    ):
        product = await product_factory()
        created = await place_order(
            async_client, customer, [{"product_id": product.id, "quantity": 1}]
        )
        order_id = created.json()["id"]
        admin_headers = auth_headers(admin)

        response = await async_client.patch(
            f"{ORDERS_URL}/{order_id}",
            json={"status": "delivered"},
            headers=admin_headers,
        )

        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "INVALID_STATUS_TRANSITION"

    async def test_empty_update_is_validation_error(self, async_client, admin):
        response = await async_client.patch(
            f"{ORDERS_URL}/1", json={}, headers=auth_headers(admin)
        )

        assert response.status_code == 422

    async def test_clear_notes_and_tracking_number(
        self, async_client, customer, admin, product_factory
    ):
        product = await product_factory()
        created = await async_client.post(
            ORDERS_URL,
            json={
                **order_payload([{"product_id": product.id, "quantity": 1}]),
                "notes": "Leave at the door",
            },
            headers=auth_headers(customer),
        )
        order_id = created.json()["id"]
        admin_headers = auth_headers(admin)
        await async_client.patch(
            f"{ORDERS_URL}/{order_id}", json={"tracking_number": "TRK9"}, headers=admin_headers
        )

        cleared_notes = await async_client.patch(
            f"{ORDERS_URL}/{order_id}", json={"notes": None}, headers=admin_headers
        )
        cleared_tracking = await async_client.patch(
            f"{ORDERS_URL}/{order_id}", json={"tracking_number": None}, headers=admin_headers
        )

        assert created.json()["notes"] == "Leave at the door"
        assert cleared_notes.status_code == 200
        assert cleared_notes.json()["notes"] is None
        assert cleared_notes.json()["tracking_number"] == "TRK9"
        assert cleared_tracking.status_code == 200
        assert cleared_tracking.json()["tracking_number"] is None
        assert cleared_tracking.json()["status"] == "pending"

    async def test_null_status_is_validation_error(self, async_client, admin):
        response = await async_client.patch(
            f"{ORDERS_URL}/1", json={"status": None}, headers=auth_headers(admin)
        )

        assert response.status_code == 422

    async def test_reason_alone_is_validation_error(self, async_client, admin):
        response = await async_client.patch(
            f"{ORDERS_URL}/1", json={"reason": "no-op"}, headers=auth_headers(admin)
        )

        assert response.status_code == 422

    async def test_customer_cannot_update(self, async_client, customer, product_factory):
        product = await product_factory()
        created = await place_order(
            async_client, customer, [{"product_id": product.id, "quantity": 1}]
        )

        response = await async_client.patch(
            f"{ORDERS_URL}/{created.json()['id']}",
            json={"status": "cancelled"},
            headers=auth_headers(customer),
        )

        assert response.status_code == 403

    async def test_delete_order(self, async_client, customer, admin, product_factory):
        product = await product_factory()
        created = await place_order(
            async_client, customer, [{"product_id": product.id, "quantity": 1}]
        )
        order_id = created.json()["id"]
        admin_headers = auth_headers(admin)

        response = await async_client.delete(f"{ORDERS_URL}/{order_id}", headers=admin_headers)
        missing = await async_client.get(f"{ORDERS_URL}/{order_id}", headers=admin_headers)

        assert response.status_code == 204
        assert missing.status_code == 404
