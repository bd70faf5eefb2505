"""
Category API endpoints.

Reading categories is public; creating, updating and deleting them requires
an administrator.
"""

from fastapi import APIRouter, HTTPException, Query, status

from storefront.api.deps import CurrentAdmin, DatabaseSession
from storefront.core.logging import get_logger
from storefront.schemas.catalog import CategoryCreate, CategoryResponse, CategoryUpdate
from storefront.services.catalog.service import (
    CatalogService,
    CatalogServiceError,
    CategoryNotFoundError,
    DuplicateCategoryError,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/categories", tags=["categories"])


def _catalog_http_error(error: CatalogServiceError) -> HTTPException:
    if isinstance(error, CategoryNotFoundError):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, DuplicateCategoryError):
        status_code = status.HTTP_409_CONFLICT
    else:
        status_code = status.HTTP_400_BAD_REQUEST
    return HTTPException(
        status_code=status_code,
        detail={"code": error.code, "message": error.message},
    )


@router.get(
    "",
    response_model=list[CategoryResponse],
    summary="List categories",
)
async def list_categories(
    db: DatabaseSession,
    active_only: bool = Query(False, description="Only return active categories"),
) -> list[CategoryResponse]:
    categories = await CatalogService(db).list_categories(active_only=active_only)
    return [CategoryResponse.model_validate(category) for category in categories]


@router.post(
    "",
    response_model=CategoryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create category",
)
async def create_category(
    request: CategoryCreate,
    current_user: CurrentAdmin,
    db: DatabaseSession,
) -> CategoryResponse:
    """
    Create a category.

    Raises:
        HTTPException: 409 if the name is taken
    """
    logger.info("Creating category", name=request.name, user_id=current_user.id)
    try:
        category = await CatalogService(db).create_category(request)
    except CatalogServiceError as e:
        raise _catalog_http_error(e) from e
    return CategoryResponse.model_validate(category)


@router.get(
    "/{category_id}",
    response_model=CategoryResponse,
    summary="Get category",
)
async def get_category(category_id: int, db: DatabaseSession) -> CategoryResponse:
    try:
        category = await CatalogService(db).get_category(category_id)
    except CatalogServiceError as e:
        raise _catalog_http_error(e) from e
    return CategoryResponse.model_validate(category)


@router.patch(
    "/{category_id}",
    response_model=CategoryResponse,
    summary="Update category",
)
async def update_category(
    category_id: int,
    request: CategoryUpdate,
    current_user: CurrentAdmin,
    db: DatabaseSession,
) -> CategoryResponse:
    try:
        category = await CatalogService(db).update_category(category_id, request)
    except CatalogServiceError as e:
        raise _catalog_http_error(e) from e
    return CategoryResponse.model_validate(category)


@router.delete(
    "/{category_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete category",
)
async def delete_category(
    category_id: int,
    current_user: CurrentAdmin,
    db: DatabaseSession,
) -> None:
    try:
        await CatalogService(db).delete_category(category_id)
    except CatalogServiceError as e:
        raise _catalog_http_error(e) from e
    logger.info("Category deleted", category_id=category_id, user_id=current_user.id)
