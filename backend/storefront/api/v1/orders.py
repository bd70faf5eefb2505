"""
Order management API endpoints.

This module implements the FastAPI router for the order lifecycle: checkout,
order queries, administrative status updates through the state machine,
statistics and deletion. Service errors are translated to HTTP errors whose
detail carries a machine-checkable code and a human-readable message.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from storefront.api.deps import CurrentActiveUser, CurrentAdmin, DatabaseSession
from storefront.core.logging import get_logger
from storefront.schemas.orders import (
    OrderCreate,
    OrderListResponse,
    OrderResponse,
    OrderStatisticsResponse,
    OrderUpdate,
)
from storefront.services.catalog.service import ProductNotFoundError
from storefront.services.orders.enums import OrderStatus
from storefront.services.orders.repository import OrderRepositoryError
from storefront.services.orders.service import (
    InsufficientStockError,
    InvalidStatusTransitionError,
    OrderNotFoundError,
    OrderService,
    OrderServiceError,
    OrderValidationError,
    ProductUnavailableError,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])


def _order_http_error(error: Exception) -> HTTPException:
    """Map an order workflow exception to an HTTP error."""
    if isinstance(error, (ProductNotFoundError, OrderNotFoundError)):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(
        error,
        (ProductUnavailableError, InsufficientStockError, OrderValidationError),
    ):
        status_code = status.HTTP_400_BAD_REQUEST
    elif isinstance(error, InvalidStatusTransitionError):
        status_code = status.HTTP_409_CONFLICT
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    return HTTPException(
        status_code=status_code,
        detail={
            "code": getattr(error, "code", "ORDER_ERROR"),
            "message": getattr(error, "message", str(error)),
        },
    )


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create new order",
    description="Place an order; stock is reserved atomically with the order insert",
)
async def create_order(
    request: OrderCreate,
    current_user: CurrentActiveUser,
    db: DatabaseSession,
) -> OrderResponse:
    """
    Create a new order owned by the caller.

    Args:
        request: Checkout payload with line items and addresses
        current_user: Authenticated user placing the order
        db: Database session

    Returns:
        OrderResponse: Created order with line items

    Raises:
        HTTPException: 404 for unknown products, 400 for unavailable
            products or insufficient stock, 500 if the order could not be
            persisted
    """
    user_id = current_user.id
    logger.info(
        "Creating order",
        user_id=user_id,
        item_count=len(request.items),
    )

    try:
        order = await OrderService(db).create_order(user_id, request)
    except (ProductNotFoundError, OrderServiceError, OrderRepositoryError) as e:
        logger.warning(
            "Order creation failed",
            user_id=user_id,
            code=getattr(e, "code", None),
            error=str(e),
        )
        raise _order_http_error(e) from e

    return OrderResponse.model_validate(order)


@router.get(
    "",
    response_model=OrderListResponse,
    summary="List orders",
    description="Administrative order listing with owner and status filters",
)
async def list_orders(
    current_user: CurrentAdmin,
    db: DatabaseSession,
    user_id: Optional[int] = Query(None, ge=1, description="Filter by owner"),
    order_status: Optional[OrderStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> OrderListResponse:
    orders, total = await OrderService(db).list_orders(
        user_id=user_id,
        status=order_status,
        page=page,
        limit=limit,
    )
    return OrderListResponse(
        orders=[OrderResponse.model_validate(order) for order in orders],
        total=total,
        page=page,
        limit=limit,
    )


@router.get(
    "/my-orders",
    response_model=list[OrderResponse],
    summary="List my orders",
)
async def get_my_orders(
    current_user: CurrentActiveUser,
    db: DatabaseSession,
) -> list[OrderResponse]:
    orders = await OrderService(db).get_user_orders(current_user.id)
    return [OrderResponse.model_validate(order) for order in orders]


@router.get(
    "/stats",
    response_model=OrderStatisticsResponse,
    summary="Order statistics",
)
async def get_order_statistics(
    current_user: CurrentAdmin,
    db: DatabaseSession,
) -> OrderStatisticsResponse:
    stats = await OrderService(db).get_order_statistics()
    return OrderStatisticsResponse(**stats)


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order",
)
async def get_order(
    order_id: int,
    current_user: CurrentActiveUser,
    db: DatabaseSession,
) -> OrderResponse:
    """
    Get a single order.

    Customers can only read their own orders.

    Raises:
        HTTPException: 404 if the order does not exist or is not visible
    """
    try:
        order = await OrderService(db).get_order(order_id, requester=current_user)
    except OrderServiceError as e:
        raise _order_http_error(e) from e
    return OrderResponse.model_validate(order)


@router.patch(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Update order",
    description="Change status, payment status, tracking number or notes",
)
async def update_order(
    order_id: int,
    request: OrderUpdate,
    current_user: CurrentAdmin,
    db: DatabaseSession,
) -> OrderResponse:
    """
    Apply an administrative update.

    Raises:
        HTTPException: 404 if the order does not exist, 409 for an invalid
            status transition
    """
    admin_id = current_user.id
    try:
        order = await OrderService(db).update_order(
            order_id,
            request,
            changed_by=admin_id,
        )
    except OrderServiceError as e:
        logger.warning(
            "Order update rejected",
            order_id=order_id,
            code=e.code,
            user_id=admin_id,
        )
        raise _order_http_error(e) from e
    return OrderResponse.model_validate(order)


@router.delete(
    "/{order_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete order",
)
async def delete_order(
    order_id: int,
    current_user: CurrentAdmin,
    db: DatabaseSession,
) -> None:
    try:
        await OrderService(db).delete_order(order_id)
    except OrderServiceError as e:
        raise _order_http_error(e) from e
    logger.info("Order deleted via API", order_id=order_id, user_id=current_user.id)
