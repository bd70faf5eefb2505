"""
Unit tests for the order state machine and status transition table.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from storefront.services.orders.enums import (
    ORDER_STATUS_TRANSITIONS,
    OrderStatus,
    get_allowed_order_transitions,
    validate_order_status_transition,
)
from storefront.services.orders.state_machine import OrderStateMachine, StateTransitionError


def make_order(status: OrderStatus, items=None):
    return SimpleNamespace(
        id=1,
        status=status,
        items=items or [],
        confirmed_at=None,
        shipped_at=None,
        delivered_at=None,
        cancelled_at=None,
    )


@pytest.fixture
def repository():
    repo = MagicMock()
    repo.increment_stock = AsyncMock()
    return repo


@pytest.fixture
def state_machine(repository):
    return OrderStateMachine(repository, restock_on_cancel=True)


class TestTransitionTable:
    """Static transition rules."""

    @pytest.mark.parametrize(
        "current,target",
        [
            (OrderStatus.PENDING, OrderStatus.CONFIRMED),
            (OrderStatus.CONFIRMED, OrderStatus.PROCESSING),
            (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
            (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
            (OrderStatus.PENDING, OrderStatus.CANCELLED),
            (OrderStatus.SHIPPED, OrderStatus.CANCELLED),
        ],
    )
    def test_allowed(self, current, target):
        assert validate_order_status_transition(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (OrderStatus.PENDING, OrderStatus.SHIPPED),
            (OrderStatus.SHIPPED, OrderStatus.PENDING),
            (OrderStatus.DELIVERED, OrderStatus.CANCELLED),
            (OrderStatus.CANCELLED, OrderStatus.PENDING),
        ],
    )
    def test_rejected(self, current, target):
        assert not validate_order_status_transition(current, target)

    def test_terminal_states_have_no_exits(self):
        assert get_allowed_order_transitions(OrderStatus.DELIVERED) == set()
        assert get_allowed_order_transitions(OrderStatus.CANCELLED) == set()
        assert OrderStatus.DELIVERED.is_terminal()
        assert not OrderStatus.PROCESSING.is_terminal()

    def test_every_status_has_an_entry(self):
        assert set(ORDER_STATUS_TRANSITIONS) == set(OrderStatus)

    def test_from_string(self):
        assert OrderStatus.from_string("Shipped") == OrderStatus.SHIPPED
        with pytest.raises(ValueError):
            OrderStatus.from_string("lost")


class TestOrderStateMachine:
    """Applying transitions."""

    async def test_confirm_stamps_and_records_history(self, state_machine, repository):
        order = make_order(OrderStatus.PENDING)

        changed = await state_machine.apply_transition(
            order, OrderStatus.CONFIRMED, user_id=9, reason="ok"
        )

        assert changed is True
        assert order.status == OrderStatus.CONFIRMED
        assert order.confirmed_at is not None
        repository.add_status_history.assert_called_once_with(
            order,
            from_status=OrderStatus.PENDING,
            to_status=OrderStatus.CONFIRMED,
            changed_by=9,
            reason="ok",
        )

    async def test_shipped_and_delivered_stamps(self, state_machine):
        order = make_order(OrderStatus.PROCESSING)

        await state_machine.apply_transition(order, OrderStatus.SHIPPED)
        await state_machine.apply_transition(order, OrderStatus.DELIVERED)

        assert order.shipped_at is not None
        assert order.delivered_at is not None

    async def test_invalid_transition_raises_without_changes(self, state_machine, repository):
        order = make_order(OrderStatus.PENDING)

        with pytest.raises(StateTransitionError) as exc_info:
            await state_machine.apply_transition(order, OrderStatus.DELIVERED)

        assert exc_info.value.code == "INVALID_STATUS_TRANSITION"
        assert exc_info.value.current_state == OrderStatus.PENDING
        assert exc_info.value.target_state == OrderStatus.DELIVERED
        assert order.status == OrderStatus.PENDING
        repository.add_status_history.assert_not_called()

    async def test_same_status_is_noop(self, state_machine, repository):
        order = make_order(OrderStatus.SHIPPED)

        changed = await state_machine.apply_transition(order, OrderStatus.SHIPPED)

        assert changed is False
        repository.add_status_history.assert_not_called()

    async def test_cancel_restocks_each_line(self, state_machine, repository):
        items = [
            SimpleNamespace(product_id=3, quantity=2),
            SimpleNamespace(product_id=4, quantity=1),
        ]
        order = make_order(OrderStatus.CONFIRMED, items=items)

        await state_machine.apply_transition(order, OrderStatus.CANCELLED)

        assert order.cancelled_at is not None
        repository.increment_stock.assert_any_await(3, 2)
        repository.increment_stock.assert_any_await(4, 1)
        assert repository.increment_stock.await_count == 2

    async def test_cancel_without_restock(self, repository):
        machine = OrderStateMachine(repository, restock_on_cancel=False)
        order = make_order(
            OrderStatus.PENDING,
            items=[SimpleNamespace(product_id=3, quantity=2)],
        )

        await machine.apply_transition(order, OrderStatus.CANCELLED)

        repository.increment_stock.assert_not_awaited()

    def test_can_cancel(self, state_machine):
        assert state_machine.can_cancel(make_order(OrderStatus.SHIPPED))
        assert not state_machine.can_cancel(make_order(OrderStatus.DELIVERED))

    def test_allowed_transitions(self, state_machine):
        allowed = state_machine.get_allowed_transitions(make_order(OrderStatus.PENDING))

        assert allowed == {OrderStatus.CONFIRMED, OrderStatus.CANCELLED}
