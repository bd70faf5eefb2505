"""Shared helpers for building requests in tests."""

from storefront.core.security import create_access_token
from storefront.database.models import User
from storefront.schemas.orders import OrderCreate, OrderItemCreate
from storefront.services.orders.enums import PaymentMethod

TEST_PASSWORD = "SecurePass123!"

SHIPPING = {
    "shipping_address": "1 Main Street",
    "shipping_city": "Springfield",
    "shipping_postal_code": "12345",
    "shipping_country": "US",
}


def make_order_request(items: list[tuple], **overrides) -> OrderCreate:
    """Build a checkout payload from (product_id, quantity[, unit_price]) tuples."""
    data = {
        "payment_method": PaymentMethod.CASH_ON_DELIVERY,
        **SHIPPING,
        "items": [
            OrderItemCreate(
                product_id=line[0],
                quantity=line[1],
                unit_price=line[2] if len(line) > 2 else None,
            )
            for line in items
        ],
    }
    data.update(overrides)
    return OrderCreate(**data)


def order_payload(items: list[dict]) -> dict:
    """JSON checkout body for the orders endpoint."""
    return {"payment_method": "cash_on_delivery", **SHIPPING, "items": items}


def auth_headers(user: User) -> dict[str, str]:
    """Bearer headers carrying an access token for the user."""
    token = create_access_token(
        {"sub": str(user.id), "email": user.email, "role": user.role.value}
    )
    return {"Authorization": f"Bearer {token}"}
