"""
Administrative user management endpoints.

Every route requires an administrator. Accounts that own orders cannot be
deleted; deactivate them instead.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from storefront.api.deps import CurrentAdmin, DatabaseSession
from storefront.core.logging import get_logger
from storefront.database.models.user import UserRole
from storefront.schemas.auth import UserResponse
from storefront.schemas.users import UserListResponse, UserStatisticsResponse
from storefront.services.users.service import (
    SelfModificationError,
    UserHasOrdersError,
    UserNotFoundError,
    UserService,
    UserServiceError,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/users", tags=["users"])


def _user_http_error(error: UserServiceError) -> HTTPException:
    if isinstance(error, UserNotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, UserHasOrdersError):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(error, SelfModificationError):
        status_code = status.HTTP_400_BAD_REQUEST
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(
        status_code=status_code,
        detail={"code": error.code, "message": error.message},
    )


@router.get("", response_model=UserListResponse, summary="List users")
async def list_users(
    current_user: CurrentAdmin,
    db: DatabaseSession,
    is_active: Optional[bool] = Query(None),
    role: Optional[UserRole] = Query(None),
    search: Optional[str] = Query(None, max_length=100),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> UserListResponse:
    users, total = await UserService(db).list_users(
        is_active=is_active,
        role=role,
        search=search,
        page=page,
        limit=limit,
    )
    return UserListResponse(
        users=[UserResponse.model_validate(user) for user in users],
        total=total,
        page=page,
        limit=limit,
    )


@router.get("/stats", response_model=UserStatisticsResponse, summary="User statistics")
async def get_user_statistics(
    current_user: CurrentAdmin,
    db: DatabaseSession,
) -> UserStatisticsResponse:
    return UserStatisticsResponse(**await UserService(db).get_user_statistics())


@router.get("/{user_id}", response_model=UserResponse, summary="Get user")
async def get_user(
    user_id: int,
    current_user: CurrentAdmin,
    db: DatabaseSession,
) -> UserResponse:
    try:
        user = await UserService(db).get_user(user_id)
    except UserServiceError as e:
        raise _user_http_error(e) from e
    return UserResponse.model_validate(user)


@router.patch(
    "/{user_id}/toggle-active",
    response_model=UserResponse,
    summary="Activate or deactivate a user",
)
async def toggle_user_active(
    user_id: int,
    current_user: CurrentAdmin,
    db: DatabaseSession,
) -> UserResponse:
    """
    Flip the account's active flag.

    Raises:
        HTTPException: 404 if missing, 400 when targeting the caller's own account
    """
    admin_id = current_user.id
    try:
        user = await UserService(db).toggle_active(user_id, acting_admin_id=admin_id)
    except UserServiceError as e:
        logger.warning("User toggle rejected", user_id=user_id, code=e.code, admin_id=admin_id)
        raise _user_http_error(e) from e
    return UserResponse.model_validate(user)


@router.delete(
    "/{user_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete user",
)
async def delete_user(
    user_id: int,
    current_user: CurrentAdmin,
    db: DatabaseSession,
) -> None:
    """
    Delete an account without orders.

    Raises:
        HTTPException: 404 if missing, 409 if the account owns orders, 400
            when targeting the caller's own account
    """
    admin_id = current_user.id
    try:
        await UserService(db).delete_user(user_id, acting_admin_id=admin_id)
    except UserServiceError as e:
        logger.warning("User deletion rejected", user_id=user_id, code=e.code, admin_id=admin_id)
        raise _user_http_error(e) from e
