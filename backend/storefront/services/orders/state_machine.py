"""Order state machine implementation with transition validation.

This module implements the OrderStateMachine class for moving orders along
the pending -> confirmed -> processing -> shipped -> delivered workflow, with
cancellation allowed from every non-terminal state. Each applied transition
is recorded in the status history and runs its side effect (timestamps,
restocking on cancellation).
"""

from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, Set

from storefront.core.logging import get_logger
from storefront.database.models.order import Order
from storefront.services.orders.enums import (
    OrderStatus,
    get_allowed_order_transitions,
    validate_order_status_transition,
)
from storefront.services.orders.repository import OrderRepository

logger = get_logger(__name__)


class StateTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(
        self,
        message: str,
        current_state: OrderStatus,
        target_state: OrderStatus,
        **context: Any,
    ):
        super().__init__(message)
        self.message = message
        self.code = "INVALID_STATUS_TRANSITION"
        self.current_state = current_state
        self.target_state = target_state
        self.context = context


class OrderStateMachine:
    """State machine for managing order lifecycle transitions.

    The state machine mutates the order and queues history rows in the
    session; committing is left to the caller.
    """

    def __init__(self, repository: OrderRepository, restock_on_cancel: bool = True):
        """Initialize state machine.

        Args:
            repository: Order repository used for history and stock writes
            restock_on_cancel: Return line quantities to stock on cancellation
        """
        self.repository = repository
        self.restock_on_cancel = restock_on_cancel
        self._side_effects: Dict[
            OrderStatus,
            Callable[[Order], Awaitable[None]],
        ] = {
            OrderStatus.CONFIRMED: self._effect_confirmed,
            OrderStatus.SHIPPED: self._effect_shipped,
            OrderStatus.DELIVERED: self._effect_delivered,
            OrderStatus.CANCELLED: self._effect_cancelled,
        }

    def validate_transition(self, order: Order, target_status: OrderStatus) -> bool:
        """Validate if transition to target status is allowed.

        Args:
            order: Order instance to validate
            target_status: Desired target status

        Returns:
            True if transition is valid

        Raises:
            StateTransitionError: If transition is invalid
        """
        current_status = order.status

        if not validate_order_status_transition(current_status, target_status):
            allowed = sorted(s.value for s in get_allowed_order_transitions(current_status))
            logger.warning(
                "Invalid state transition rejected",
                order_id=order.id,
                current_status=current_status.value,
                target_status=target_status.value,
                allowed_transitions=allowed,
            )
            raise StateTransitionError(
                f"Invalid transition from {current_status.value} to "
                f"{target_status.value}",
                current_state=current_status,
                target_state=target_status,
                allowed_transitions=allowed,
            )

        return True

    async def apply_transition(
        self,
        order: Order,
        target_status: OrderStatus,
        user_id: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> bool:
        """Apply state transition to order with side effects.

        A transition to the order's current status is a no-op.

        Args:
            order: Order instance to transition (items and history loaded)
            target_status: Target status to transition to
            user_id: User initiating the transition
            reason: Optional reason for transition

        Returns:
            True if the status changed, False for a no-op

        Raises:
            StateTransitionError: If the transition is not allowed
        """
        old_status = order.status
        if old_status == target_status:
            logger.debug(
                "Status unchanged, transition skipped",
                order_id=order.id,
                status=old_status.value,
            )
            return False

        self.validate_transition(order, target_status)

        order.status = target_status
        self.repository.add_status_history(
            order,
            from_status=old_status,
            to_status=target_status,
            changed_by=user_id,
            reason=reason,
        )

        side_effect = self._side_effects.get(target_status)
        if side_effect is not None:
            await side_effect(order)

        logger.info(
            "State transition applied",
            order_id=order.id,
            transition=f"{old_status.value}->{target_status.value}",
            changed_by=user_id,
        )
        return True

    def get_allowed_transitions(self, order: Order) -> Set[OrderStatus]:
        """Get allowed transitions from current order status."""
        return get_allowed_order_transitions(order.status)

    def can_cancel(self, order: Order) -> bool:
        """Check if order can be cancelled from current status."""
        return order.status.can_cancel()

    # Side effects

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    async def _effect_confirmed(self, order: Order) -> None:
        order.confirmed_at = self._now()

    async def _effect_shipped(self, order: Order) -> None:
        order.shipped_at = self._now()

    async def _effect_delivered(self, order: Order) -> None:
        order.delivered_at = self._now()

    async def _effect_cancelled(self, order: Order) -> None:
        order.cancelled_at = self._now()
        if not self.restock_on_cancel:
            return

        for item in order.items:
            await self.repository.increment_stock(item.product_id, item.quantity)

        logger.info(
            "Order items restocked after cancellation",
            order_id=order.id,
            item_count=len(order.items),
            units=sum(item.quantity for item in order.items),
        )
