"""
Order data access repository with transaction support.

This module implements the OrderRepository class providing async methods for
locking the products of a checkout, inserting orders with their line items,
conditional stock decrements, order queries and statistics. The repository
flushes but never commits; the order service owns the unit of work.
"""

from decimal import Decimal
from typing import Any, Optional, Sequence

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.core.logging import get_logger
from storefront.database.models.order import Order, OrderItem, OrderStatusHistory
from storefront.database.models.product import Product
from storefront.services.orders.enums import OrderStatus

logger = get_logger(__name__)


class OrderRepositoryError(Exception):
    """Base exception for order repository errors."""

    def __init__(self, message: str, code: str = "ORDER_REPOSITORY_ERROR", **context: Any):
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context


class OrderCreationError(OrderRepositoryError):
    """Raised when order creation fails."""

    pass


class OrderNumberConflictError(OrderCreationError):
    """Raised when a generated order number collides with an existing one."""

    pass


class OrderUpdateError(OrderRepositoryError):
    """Raised when order update fails."""

    pass


def _order_load_options():
    return (
        selectinload(Order.user),
        selectinload(Order.items).selectinload(OrderItem.product),
        selectinload(Order.status_history),
    )


class OrderRepository:
    """
    Repository for order data access operations.

    Provides async methods for order persistence, stock counters and
    filtered order queries with structured logging.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize order repository.

        Args:
            session: Async database session
        """
        self.session = session

    async def lock_products(self, product_ids: Sequence[int]) -> dict[int, Product]:
        """
        Load products for a checkout, locking their rows.

        Rows are selected FOR UPDATE on backends that support it and always
        overwrite any copy already held in the session identity map.

        Args:
            product_ids: Product identifiers referenced by the order lines

        Returns:
            Mapping of product id to product for the ids that exist

        Raises:
            OrderRepositoryError: If query fails
        """
        unique_ids = sorted(set(product_ids))
        stmt = (
            select(Product)
            .where(Product.id.in_(unique_ids))
            .order_by(Product.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )

        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(
                "Failed to load products for checkout",
                product_ids=unique_ids,
                error=str(e),
            )
            raise OrderRepositoryError(
                "Failed to load products",
                product_ids=unique_ids,
                error=str(e),
            ) from e

        products = {product.id: product for product in result.scalars().all()}
        logger.debug(
            "Products locked for checkout",
            requested=len(unique_ids),
            found=len(products),
        )
        return products

    async def order_number_exists(self, order_number: str) -> bool:
        try:
            result = await self.session.execute(
                select(Order.id).where(Order.order_number == order_number)
            )
        except SQLAlchemyError as e:
            logger.error("Order number lookup failed", order_number=order_number, error=str(e))
            raise OrderRepositoryError(
                "Failed to check order number",
                order_number=order_number,
                error=str(e),
            ) from e
        return result.first() is not None

    async def add_order(self, order: Order) -> Order:
        """
        Insert an order together with its line items and history.

        Args:
            order: Transient order with items and initial history attached

        Returns:
            The flushed order (primary keys assigned)

        Raises:
            OrderNumberConflictError: If the order number is already taken
            OrderCreationError: If the insert fails for any other reason
        """
        self.session.add(order)
        try:
            await self.session.flush()
        except IntegrityError as e:
            detail = str(e.orig)
            if "order_number" in detail:
                logger.warning(
                    "Order number collision",
                    order_number=order.order_number,
                )
                raise OrderNumberConflictError(
                    "Order number already exists",
                    code="ORDER_NUMBER_CONFLICT",
                    order_number=order.order_number,
                ) from e
            logger.error(
                "Order creation failed - integrity error",
                order_number=order.order_number,
                error=detail,
            )
            raise OrderCreationError(
                "Order creation failed due to data integrity violation",
                code="ORDER_CREATION_FAILED",
                order_number=order.order_number,
                error=detail,
            ) from e
        except SQLAlchemyError as e:
            logger.error(
                "Order creation failed - database error",
                order_number=order.order_number,
                error=str(e),
            )
            raise OrderCreationError(
                "Order creation failed due to database error",
                code="ORDER_CREATION_FAILED",
                order_number=order.order_number,
                error=str(e),
            ) from e

        logger.debug(
            "Order inserted",
            order_id=order.id,
            order_number=order.order_number,
            item_count=len(order.items),
        )
        return order

    async def decrement_stock(self, product_id: int, quantity: int) -> bool:
        """
        Atomically take units out of stock.

        The decrement only applies while enough stock remains, so concurrent
        checkouts can never drive the counter below zero.

        Args:
            product_id: Product identifier
            quantity: Units to remove

        Returns:
            True if the row was updated, False if stock was insufficient
        """
        stmt = (
            update(Product)
            .where(Product.id == product_id, Product.stock_quantity >= quantity)
            .values(stock_quantity=Product.stock_quantity - quantity)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(
                "Stock decrement failed",
                product_id=product_id,
                quantity=quantity,
                error=str(e),
            )
            raise OrderUpdateError(
                "Failed to update stock",
                product_id=product_id,
                error=str(e),
            ) from e
        return result.rowcount == 1

    async def get_stock_quantity(self, product_id: int) -> Optional[int]:
        """Read the committed stock counter, bypassing the session cache."""
        try:
            result = await self.session.execute(
                select(Product.stock_quantity).where(Product.id == product_id)
            )
        except SQLAlchemyError as e:
            logger.error("Stock lookup failed", product_id=product_id, error=str(e))
            raise OrderRepositoryError(
                "Failed to read stock",
                product_id=product_id,
                error=str(e),
            ) from e
        return result.scalar_one_or_none()

    async def increment_stock(self, product_id: int, quantity: int) -> None:
        """Return units to stock."""
        stmt = (
            update(Product)
            .where(Product.id == product_id)
            .values(stock_quantity=Product.stock_quantity + quantity)
            .execution_options(synchronize_session=False)
        )
        try:
            await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(
                "Stock restock failed",
                product_id=product_id,
                quantity=quantity,
                error=str(e),
            )
            raise OrderUpdateError(
                "Failed to restock product",
                product_id=product_id,
                error=str(e),
            ) from e

    async def get_order_by_id(
        self,
        order_id: int,
        refresh: bool = False,
    ) -> Optional[Order]:
        """
        Get order by ID with user, line items, products and history.

        Args:
            order_id: Order identifier
            refresh: Overwrite any stale copy held by the session

        Returns:
            Order if found, None otherwise

        Raises:
            OrderRepositoryError: If query fails
        """
        stmt = select(Order).where(Order.id == order_id).options(*_order_load_options())
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)

        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("Failed to fetch order", order_id=order_id, error=str(e))
            raise OrderRepositoryError(
                "Failed to fetch order",
                order_id=order_id,
                error=str(e),
            ) from e

        return result.scalar_one_or_none()

    async def list_orders(
        self,
        user_id: Optional[int] = None,
        status: Optional[OrderStatus] = None,
        skip: int = 0,
        limit: int = 10,
    ) -> tuple[list[Order], int]:
        """
        List orders with optional owner/status filters, newest first.

        Args:
            user_id: Optional owner filter
            status: Optional status filter
            skip: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            Tuple of (orders, total_count)

        Raises:
            OrderRepositoryError: If query fails
        """
        conditions = []
        if user_id is not None:
            conditions.append(Order.user_id == user_id)
        if status is not None:
            conditions.append(Order.status == status)

        stmt = (
            select(Order)
            .where(*conditions)
            .options(*_order_load_options())
            .order_by(Order.created_at.desc(), Order.id.desc())
            .offset(skip)
            .limit(limit)
        )
        count_stmt = select(func.count()).select_from(Order).where(*conditions)

        try:
            result = await self.session.execute(stmt)
            count_result = await self.session.execute(count_stmt)
        except SQLAlchemyError as e:
            logger.error("Failed to list orders", user_id=user_id, error=str(e))
            raise OrderRepositoryError(
                "Failed to list orders",
                user_id=user_id,
                error=str(e),
            ) from e

        orders = list(result.scalars().all())
        total = count_result.scalar_one()

        logger.debug(
            "Orders fetched",
            user_id=user_id,
            status=status.value if status else None,
            count=len(orders),
            total=total,
        )
        return orders, total

    async def get_user_orders(self, user_id: int) -> list[Order]:
        """All orders owned by a user, newest first."""
        stmt = (
            select(Order)
            .where(Order.user_id == user_id)
            .options(*_order_load_options())
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error("Failed to fetch user orders", user_id=user_id, error=str(e))
            raise OrderRepositoryError(
                "Failed to fetch user orders",
                user_id=user_id,
                error=str(e),
            ) from e
        return list(result.scalars().all())

    def add_status_history(
        self,
        order: Order,
        from_status: Optional[OrderStatus],
        to_status: OrderStatus,
        changed_by: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> OrderStatusHistory:
        """Append a status history entry to a loaded order."""
        entry = OrderStatusHistory(
            from_status=from_status,
            to_status=to_status,
            changed_by=changed_by,
            reason=reason,
        )
        order.status_history.append(entry)
        return entry

    async def save(self, order: Order) -> Order:
        """
        Flush pending changes on an order.

        Raises:
            OrderUpdateError: If the flush fails
        """
        try:
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error("Failed to update order", order_id=order.id, error=str(e))
            raise OrderUpdateError(
                "Failed to update order",
                code="ORDER_UPDATE_FAILED",
                order_id=order.id,
                error=str(e),
            ) from e
        return order

    async def delete_order(self, order: Order) -> None:
        """
        Delete an order with its line items and history.

        Raises:
            OrderUpdateError: If the delete fails
        """
        order_id = order.id
        try:
            await self.session.delete(order)
            await self.session.flush()
        except SQLAlchemyError as e:
            logger.error("Failed to delete order", order_id=order_id, error=str(e))
            raise OrderUpdateError(
                "Failed to delete order",
                code="ORDER_DELETE_FAILED",
                order_id=order_id,
                error=str(e),
            ) from e

    async def get_order_statistics(self) -> dict[str, Any]:
        """
        Get aggregate order statistics.

        Returns:
            Dictionary with total_orders, total_revenue (excluding cancelled
            orders), pending_orders and completed_orders (delivered)

        Raises:
            OrderRepositoryError: If query fails
        """
        total_stmt = select(func.count()).select_from(Order)
        revenue_stmt = select(
            func.coalesce(func.sum(Order.total_amount), 0)
        ).where(Order.status != OrderStatus.CANCELLED)
        status_stmt = select(Order.status, func.count()).group_by(Order.status)

        try:
            total_orders = (await self.session.execute(total_stmt)).scalar_one()
            total_revenue = (await self.session.execute(revenue_stmt)).scalar_one()
            status_counts = {
                status: count
                for status, count in (await self.session.execute(status_stmt)).all()
            }
        except SQLAlchemyError as e:
            logger.error("Failed to fetch order statistics", error=str(e))
            raise OrderRepositoryError(
                "Failed to fetch order statistics",
                error=str(e),
            ) from e

        statistics = {
            "total_orders": total_orders,
            "total_revenue": Decimal(str(total_revenue)).quantize(Decimal("0.01")),
            "pending_orders": status_counts.get(OrderStatus.PENDING, 0),
            "completed_orders": status_counts.get(OrderStatus.DELIVERED, 0),
        }
        logger.debug("Order statistics fetched", **{k: str(v) for k, v in statistics.items()})
        return statistics
