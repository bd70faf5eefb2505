"""
Wishlist API endpoints.

All routes operate on the authenticated caller's own wishlist.
"""

from fastapi import APIRouter, HTTPException, status

from storefront.api.deps import CurrentActiveUser, DatabaseSession
from storefront.core.logging import get_logger
from storefront.schemas.wishlist import (
    WishlistAddRequest,
    WishlistCountResponse,
    WishlistItemResponse,
    WishlistMembershipResponse,
    WishlistStatsResponse,
)
from storefront.services.catalog.service import ProductNotFoundError
from storefront.services.wishlist.service import (
    WishlistItemExistsError,
    WishlistItemNotFoundError,
    WishlistService,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/wishlist", tags=["wishlist"])


@router.get(
    "",
    response_model=list[WishlistItemResponse],
    summary="Get my wishlist",
)
async def get_wishlist(
    current_user: CurrentActiveUser,
    db: DatabaseSession,
) -> list[WishlistItemResponse]:
    items = await WishlistService(db).get_wishlist(current_user.id)
    return [WishlistItemResponse.model_validate(item) for item in items]


@router.post(
    "",
    response_model=WishlistItemResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add product to wishlist",
)
async def add_to_wishlist(
    request: WishlistAddRequest,
    current_user: CurrentActiveUser,
    db: DatabaseSession,
) -> WishlistItemResponse:
    """
    Save a product to the caller's wishlist.

    Raises:
        HTTPException: 404 if the product does not exist, 409 if already saved
    """
    try:
        item = await WishlistService(db).add_to_wishlist(current_user.id, request.product_id)
    except ProductNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": e.code, "message": e.message},
        ) from e
    except WishlistItemExistsError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"code": e.code, "message": e.message},
        ) from e

    return WishlistItemResponse.model_validate(item)


@router.get(
    "/count",
    response_model=WishlistCountResponse,
    summary="Count wishlist entries",
)
async def get_wishlist_count(
    current_user: CurrentActiveUser,
    db: DatabaseSession,
) -> WishlistCountResponse:
    count = await WishlistService(db).get_wishlist_count(current_user.id)
    return WishlistCountResponse(count=count)


@router.get(
    "/stats",
    response_model=WishlistStatsResponse,
    summary="Wishlist statistics",
)
async def get_wishlist_stats(
    current_user: CurrentActiveUser,
    db: DatabaseSession,
) -> WishlistStatsResponse:
    stats = await WishlistService(db).get_wishlist_stats(current_user.id)
    return WishlistStatsResponse(**stats)


@router.get(
    "/check/{product_id}",
    response_model=WishlistMembershipResponse,
    summary="Check wishlist membership",
)
async def check_wishlist(
    product_id: int,
    current_user: CurrentActiveUser,
    db: DatabaseSession,
) -> WishlistMembershipResponse:
    in_wishlist = await WishlistService(db).is_in_wishlist(current_user.id, product_id)
    return WishlistMembershipResponse(product_id=product_id, in_wishlist=in_wishlist)


@router.delete(
    "",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Clear wishlist",
)
async def clear_wishlist(
    current_user: CurrentActiveUser,
    db: DatabaseSession,
) -> None:
    await WishlistService(db).clear_wishlist(current_user.id)


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remove product from wishlist",
)
async def remove_from_wishlist(
    product_id: int,
    current_user: CurrentActiveUser,
    db: DatabaseSession,
) -> None:
    try:
        await WishlistService(db).remove_from_wishlist(current_user.id, product_id)
    except WishlistItemNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"code": e.code, "message": e.message},
        ) from e
