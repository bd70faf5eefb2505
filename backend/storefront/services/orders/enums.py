"""Order lifecycle enums and the status transition table."""

from enum import Enum
from typing import Dict, FrozenSet, Set


class OrderStatus(str, Enum):
    """
    Where an order is in fulfilment.

    Orders move forward one step at a time and may be cancelled from any
    non-terminal status. ``delivered`` and ``cancelled`` are final.
    """

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @classmethod
    def from_string(cls, value: str) -> "OrderStatus":
        """Parse a status case-insensitively, listing valid values on failure."""
        try:
            return cls(value.lower())
        except ValueError:
            valid = ", ".join(member.value for member in cls)
            raise ValueError(f"Invalid order status: {value}. Valid values are: {valid}") from None

    def is_terminal(self) -> bool:
        return not ORDER_STATUS_TRANSITIONS[self]

    def can_cancel(self) -> bool:
        return OrderStatus.CANCELLED in ORDER_STATUS_TRANSITIONS[self]


class PaymentStatus(str, Enum):
    """Informational payment state; administrators may set any value."""

    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    CASH_ON_DELIVERY = "cash_on_delivery"
    CREDIT_CARD = "credit_card"
    BANK_TRANSFER = "bank_transfer"


_FORWARD_STEPS = (
    (OrderStatus.PENDING, OrderStatus.CONFIRMED),
    (OrderStatus.CONFIRMED, OrderStatus.PROCESSING),
    (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
    (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
)

ORDER_STATUS_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    **{
        current: frozenset({following, OrderStatus.CANCELLED})
        for current, following in _FORWARD_STEPS
    },
}


def validate_order_status_transition(current: OrderStatus, new: OrderStatus) -> bool:
    return new in ORDER_STATUS_TRANSITIONS.get(current, frozenset())


def get_allowed_order_transitions(current: OrderStatus) -> Set[OrderStatus]:
    """Statuses reachable from ``current`` in a single step."""
    return set(ORDER_STATUS_TRANSITIONS.get(current, frozenset()))
