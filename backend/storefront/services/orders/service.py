"""
Order service orchestrating checkout and order management.

This module implements the OrderService class for placing orders, querying
them, applying administrative updates through the state machine and
computing order statistics.

Checkout runs as a single unit of work: products are locked, every line is
validated fail-fast, prices are snapshotted from the catalog, the order and
its line items are inserted and each product's stock is decremented with a
conditional update. Any failure rolls the whole unit back, so a rejected
checkout leaves neither an order row nor a stock change behind.
"""

import secrets
import time
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import Settings, get_settings
from storefront.core.logging import get_logger, log_performance
from storefront.database.models.order import Order, OrderItem, OrderStatusHistory
from storefront.database.models.product import Product
from storefront.database.models.user import User
from storefront.schemas.orders import OrderCreate, OrderItemCreate, OrderUpdate
from storefront.services.catalog.service import ProductNotFoundError
from storefront.services.orders.enums import OrderStatus, PaymentStatus
from storefront.services.orders.repository import (
    OrderCreationError,
    OrderNumberConflictError,
    OrderRepository,
)
from storefront.services.orders.state_machine import (
    OrderStateMachine,
    StateTransitionError,
)

logger = get_logger(__name__)

CENT = Decimal("0.01")


class OrderServiceError(Exception):
    """Base exception for order service errors."""

    def __init__(self, message: str, code: str = "ORDER_ERROR", **context: Any):
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context


class OrderValidationError(OrderServiceError):
    """Raised when order input validation fails."""

    def __init__(self, message: str, **context: Any):
        super().__init__(message, code="ORDER_VALIDATION_ERROR", **context)


class OrderNotFoundError(OrderServiceError):
    """Raised when order is not found."""

    def __init__(self, order_id: int, **context: Any):
        super().__init__(
            f"Order with ID {order_id} not found",
            code="ORDER_NOT_FOUND",
            order_id=order_id,
            **context,
        )
        self.order_id = order_id


class ProductUnavailableError(OrderServiceError):
    """Raised when an ordered product is not active."""

    def __init__(self, product_id: int, product_name: str):
        super().__init__(
            f"Product '{product_name}' is not available",
            code="PRODUCT_UNAVAILABLE",
            product_id=product_id,
            product_name=product_name,
        )
        self.product_name = product_name


class InsufficientStockError(OrderServiceError):
    """Raised when an ordered product does not have enough stock."""

    def __init__(self, product_id: int, product_name: str, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for '{product_name}'. Available: {available}",
            code="INSUFFICIENT_STOCK",
            product_id=product_id,
            product_name=product_name,
            requested=requested,
            available=available,
        )
        self.product_name = product_name
        self.requested = requested
        self.available = available


class InvalidStatusTransitionError(OrderServiceError):
    """Raised when an order status change is not allowed."""

    def __init__(self, order_id: int, error: StateTransitionError):
        super().__init__(
            error.message,
            code="INVALID_STATUS_TRANSITION",
            order_id=order_id,
            current_status=error.current_state.value,
            target_status=error.target_state.value,
            **error.context,
        )


def to_money(value: Decimal) -> Decimal:
    """Round a currency amount to cents."""
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def generate_order_number(prefix: str) -> str:
    """
    Generate a human-readable order number.

    Format: ``<prefix>-<epoch milliseconds>-<3 random digits>``, e.g.
    ``ORD-1718031234567-042``. Uniqueness is enforced by the database.
    """
    millis = time.time_ns() // 1_000_000
    return f"{prefix}-{millis}-{secrets.randbelow(1000):03d}"


class OrderService:
    """
    Order service orchestrating checkout and order lifecycle operations.

    Attributes:
        repository: Order repository for data access
        state_machine: State machine for order status changes
        settings: Application settings (pricing and numbering knobs)
    """

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        """
        Initialize order service.

        Args:
            session: Async database session
            settings: Optional settings override
        """
        self.session = session
        self.settings = settings or get_settings()
        self.repository = OrderRepository(session)
        self.state_machine = OrderStateMachine(
            self.repository,
            restock_on_cancel=self.settings.restock_on_cancel,
        )

    async def create_order(self, user_id: int, order_data: OrderCreate) -> Order:
        """
        Place an order for a user.

        Args:
            user_id: User placing the order (becomes the owner)
            order_data: Checkout payload

        Returns:
            The created order with user, line items and products loaded

        Raises:
            OrderValidationError: If the item list is empty or a quantity
                is not positive
            ProductNotFoundError: If a referenced product does not exist
            ProductUnavailableError: If a referenced product is inactive
            InsufficientStockError: If a product lacks stock for the order
            OrderCreationError: If no unique order number could be obtained
        """
        self._validate_order_items(order_data.items)

        max_attempts = self.settings.order_number_max_attempts
        with log_performance(
            logger,
            "create_order",
            user_id=user_id,
            item_count=len(order_data.items),
        ):
            for attempt in range(1, max_attempts + 1):
                try:
                    order = await self._place_order(user_id, order_data)
                    await self.session.commit()
                except OrderNumberConflictError:
                    # Insert-time collision only
                    await self.session.rollback()
                    logger.warning(
                        "Order number taken at insert, retrying checkout",
                        user_id=user_id,
                        attempt=attempt,
                        max_attempts=max_attempts,
                    )
                    continue
                except Exception:
                    await self.session.rollback()
                    raise
                break
            else:
                logger.error(
                    "Order number kept colliding at insert",
                    user_id=user_id,
                    attempts=max_attempts,
                )
                raise OrderCreationError(
                    "Could not generate a unique order number",
                    code="ORDER_CREATION_FAILED",
                    attempts=max_attempts,
                )

        order_id = order.id
        created = await self.repository.get_order_by_id(order_id, refresh=True)

        logger.info(
            "Order created successfully",
            order_id=order_id,
            order_number=created.order_number,
            user_id=user_id,
            subtotal=str(created.subtotal),
            total_amount=str(created.total_amount),
        )
        return created

    async def _place_order(self, user_id: int, order_data: OrderCreate) -> Order:
        items = order_data.items
        products = await self.repository.lock_products([item.product_id for item in items])

        requested: dict[int, int] = {}
        lines: list[OrderItem] = []
        for item in items:
            product = products.get(item.product_id)
            if product is None:
                logger.warning("Checkout rejected: product not found", product_id=item.product_id)
                raise ProductNotFoundError(item.product_id)

            if not product.is_active:
                logger.warning("Checkout rejected: product inactive", product_id=product.id)
                raise ProductUnavailableError(product.id, product.name)

            requested[product.id] = requested.get(product.id, 0) + item.quantity
            if requested[product.id] > product.stock_quantity:
                logger.warning(
                    "Checkout rejected: insufficient stock",
                    product_id=product.id,
                    requested=requested[product.id],
                    available=product.stock_quantity,
                )
                raise InsufficientStockError(
                    product.id,
                    product.name,
                    requested=requested[product.id],
                    available=product.stock_quantity,
                )

            unit_price = self._resolve_unit_price(item, product)
            lines.append(
                OrderItem(
                    product_id=product.id,
                    product_name=product.name,
                    quantity=item.quantity,
                    unit_price=unit_price,
                    total_price=to_money(unit_price * item.quantity),
                )
            )

        pricing = self._calculate_order_pricing(lines)
        order_number = await self._generate_unique_order_number()

        order = Order(
            order_number=order_number,
            user_id=user_id,
            status=OrderStatus.PENDING,
            payment_method=order_data.payment_method,
            payment_status=PaymentStatus.PENDING,
            shipping_address=order_data.shipping_address,
            shipping_city=order_data.shipping_city,
            shipping_postal_code=order_data.shipping_postal_code,
            shipping_country=order_data.shipping_country,
            billing_address=order_data.billing_address,
            billing_city=order_data.billing_city,
            billing_postal_code=order_data.billing_postal_code,
            billing_country=order_data.billing_country,
            notes=order_data.notes,
            items=lines,
            status_history=[
                OrderStatusHistory(
                    from_status=None,
                    to_status=OrderStatus.PENDING,
                    changed_by=user_id,
                    reason="Order placed",
                )
            ],
            **pricing,
        )
        await self.repository.add_order(order)

        for product_id, quantity in requested.items():
            if not await self.repository.decrement_stock(product_id, quantity):
                available = await self.repository.get_stock_quantity(product_id)
                logger.warning(
                    "Stock changed during checkout",
                    product_id=product_id,
                    requested=quantity,
                    available=available,
                )
                raise InsufficientStockError(
                    product_id,
                    products[product_id].name,
                    requested=quantity,
                    available=available or 0,
                )

        return order

    def _validate_order_items(self, items: Sequence[OrderItemCreate]) -> None:
        """
        Validate checkout lines before touching the database.

        Raises:
            OrderValidationError: If validation fails
        """
        if not items:
            raise OrderValidationError("Order must contain at least one item")

        for index, item in enumerate(items):
            if item.quantity <= 0:
                raise OrderValidationError(
                    f"Item {index} quantity must be positive",
                    item_index=index,
                    quantity=item.quantity,
                )

    def _resolve_unit_price(self, item: OrderItemCreate, product: Product) -> Decimal:
        catalog_price = to_money(product.price)
        if item.unit_price is None:
            return catalog_price

        client_price = to_money(item.unit_price)
        if client_price != catalog_price:
            logger.warning(
                "Client unit price differs from catalog price",
                product_id=product.id,
                client_price=str(client_price),
                catalog_price=str(catalog_price),
            )
        return client_price if self.settings.accept_client_unit_price else catalog_price

    def _calculate_order_pricing(self, lines: Sequence[OrderItem]) -> dict[str, Decimal]:
        """
        Compute order amounts from priced lines.

        Returns:
            Dictionary with subtotal, tax_amount, shipping_cost, total_amount
        """
        subtotal = to_money(sum((line.total_price for line in lines), Decimal("0")))
        tax_amount = to_money(subtotal * self.settings.order_tax_rate)
        shipping_cost = to_money(self.settings.order_shipping_cost)
        return {
            "subtotal": subtotal,
            "tax_amount": tax_amount,
            "shipping_cost": shipping_cost,
            "total_amount": subtotal + tax_amount + shipping_cost,
        }

    async def _generate_unique_order_number(self) -> str:
        """
        Draw order numbers until one is not yet stored.

        Raises:
            OrderCreationError: If every draw was already taken
        """
        prefix = self.settings.order_number_prefix
        attempts = self.settings.order_number_max_attempts
        for _ in range(attempts):
            order_number = generate_order_number(prefix)
            if not await self.repository.order_number_exists(order_number):
                return order_number
            logger.debug("Generated order number already taken", order_number=order_number)

        logger.error("Order number space exhausted", attempts=attempts)
        raise OrderCreationError(
            "Could not generate a unique order number",
            code="ORDER_CREATION_FAILED",
            attempts=attempts,
        )

    async def get_order(self, order_id: int, requester: Optional[User] = None) -> Order:
        """
        Get order details.

        Customers only see their own orders; another customer's order is
        reported as not found.

        Args:
            order_id: Order identifier
            requester: User asking for the order (None for internal calls)

        Raises:
            OrderNotFoundError: If order not found or not visible
        """
        order = await self.repository.get_order_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)

        if requester is not None and not requester.is_admin and order.user_id != requester.id:
            logger.warning(
                "Order access denied",
                order_id=order_id,
                requester_id=requester.id,
            )
            raise OrderNotFoundError(order_id)

        return order

    async def list_orders(
        self,
        user_id: Optional[int] = None,
        status: Optional[OrderStatus] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> tuple[list[Order], int]:
        """
        List orders with optional filters, newest first.

        Args:
            user_id: Optional owner filter
            status: Optional status filter
            page: 1-based page number
            limit: Page size (defaults to the configured page size)

        Returns:
            Tuple of (orders, total_count)
        """
        limit = min(limit or self.settings.default_page_size, self.settings.max_page_size)
        page = max(page, 1)
        return await self.repository.list_orders(
            user_id=user_id,
            status=status,
            skip=(page - 1) * limit,
            limit=limit,
        )

    async def get_user_orders(self, user_id: int) -> list[Order]:
        """All orders owned by the user, newest first."""
        return await self.repository.get_user_orders(user_id)

    async def get_order_statistics(self) -> dict[str, Any]:
        """Aggregate order statistics, recomputed on each call."""
        return await self.repository.get_order_statistics()

    async def update_order(
        self,
        order_id: int,
        update_data: OrderUpdate,
        changed_by: Optional[int] = None,
    ) -> Order:
        """
        Apply an administrative update to an order.

        Status changes go through the state machine; payment status,
        tracking number and notes are set directly.

        Args:
            order_id: Order identifier
            update_data: Partial update
            changed_by: Administrator applying the update

        Returns:
            Updated order

        Raises:
            OrderNotFoundError: If order not found
            InvalidStatusTransitionError: If the status change is not allowed
        """
        order = await self.repository.get_order_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)

        fields_set = update_data.model_fields_set
        try:
            if update_data.status is not None:
                await self.state_machine.apply_transition(
                    order,
                    update_data.status,
                    user_id=changed_by,
                    reason=update_data.reason,
                )

            if update_data.payment_status is not None:
                order.payment_status = update_data.payment_status
            if "tracking_number" in fields_set:
                order.tracking_number = update_data.tracking_number
            if "notes" in fields_set:
                order.notes = update_data.notes

            await self.repository.save(order)
            await self.session.commit()
        except StateTransitionError as e:
            await self.session.rollback()
            raise InvalidStatusTransitionError(order_id, e) from e
        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "Order updated",
            order_id=order_id,
            fields=sorted(fields_set - {"reason"}),
            changed_by=changed_by,
        )
        return await self.repository.get_order_by_id(order_id, refresh=True)

    async def delete_order(self, order_id: int) -> None:
        """
        Delete an order and its line items. Stock is not returned.

        Raises:
            OrderNotFoundError: If order not found
        """
        order = await self.repository.get_order_by_id(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)

        try:
            await self.repository.delete_order(order)
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        logger.info("Order deleted", order_id=order_id)
