"""
Product catalog API endpoints.

This module implements FastAPI routes for browsing the catalog and for
administrative product management, including direct stock updates and
low-stock reporting. Anonymous callers and customers only see active
products.
"""

from typing import Optional

from fastapi import APIRouter, HTTPException, Query, status

from storefront.api.deps import CurrentAdmin, DatabaseSession, OptionalUser
from storefront.core.logging import get_logger
from storefront.schemas.catalog import (
    BestSellerResponse,
    ProductCreate,
    ProductListResponse,
    ProductResponse,
    ProductUpdate,
)
from storefront.services.catalog.service import (
    CatalogService,
    CatalogServiceError,
    CategoryNotFoundError,
    DuplicateProductError,
    ProductInUseError,
    ProductNotFoundError,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/products", tags=["products"])


def _catalog_http_error(error: CatalogServiceError) -> HTTPException:
    if isinstance(error, (ProductNotFoundError, CategoryNotFoundError)):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, (DuplicateProductError, ProductInUseError)):
        status_code = status.HTTP_409_CONFLICT
    else:
        status_code = status.HTTP_400_BAD_REQUEST
    return HTTPException(
        status_code=status_code,
        detail={"code": error.code, "message": error.message},
    )


@router.get(
    "",
    response_model=ProductListResponse,
    summary="List products",
    description="Paginated product listing with category, text and flag filters",
)
async def list_products(
    db: DatabaseSession,
    current_user: OptionalUser,
    category_id: Optional[int] = Query(None, ge=1),
    search: Optional[str] = Query(None, max_length=100),
    is_active: Optional[bool] = Query(None, description="Admin only"),
    is_featured: Optional[bool] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> ProductListResponse:
    if current_user is None or not current_user.is_admin:
        is_active = True

    products, total = await CatalogService(db).list_products(
        category_id=category_id,
        search=search,
        is_active=is_active,
        is_featured=is_featured,
        page=page,
        limit=limit,
    )
    return ProductListResponse(
        products=[ProductResponse.model_validate(product) for product in products],
        total=total,
        page=page,
        limit=limit,
    )


@router.get(
    "/best-sellers",
    response_model=list[BestSellerResponse],
    summary="List best-selling products",
)
async def list_best_sellers(
    db: DatabaseSession,
    limit: int = Query(10, ge=1, le=100),
) -> list[BestSellerResponse]:
    ranked = await CatalogService(db).get_best_selling_products(limit)
    return [
        BestSellerResponse(
            **ProductResponse.model_validate(product).model_dump(),
            units_sold=units_sold,
        )
        for product, units_sold in ranked
    ]


@router.get(
    "/low-stock",
    response_model=list[ProductResponse],
    summary="List low-stock products",
)
async def list_low_stock_products(
    current_user: CurrentAdmin,
    db: DatabaseSession,
    threshold: Optional[int] = Query(None, ge=0),
) -> list[ProductResponse]:
    products = await CatalogService(db).get_low_stock_products(threshold)
    return [ProductResponse.model_validate(product) for product in products]


@router.post(
    "",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create product",
)
async def create_product(
    request: ProductCreate,
    current_user: CurrentAdmin,
    db: DatabaseSession,
) -> ProductResponse:
    """
    Create a product.

    Raises:
        HTTPException: 404 for unknown category ids, 409 for a taken SKU
    """
    logger.info("Creating product", name=request.name, user_id=current_user.id)
    try:
        product = await CatalogService(db).create_product(request)
    except CatalogServiceError as e:
        raise _catalog_http_error(e) from e

    logger.info("Product created", product_id=product.id, sku=product.sku)
    return ProductResponse.model_validate(product)


@router.get(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Get product",
)
async def get_product(
    product_id: int,
    db: DatabaseSession,
    current_user: OptionalUser,
) -> ProductResponse:
    """
    Get a product.

    Inactive products are only visible to administrators.
    """
    try:
        product = await CatalogService(db).get_product(product_id)
    except CatalogServiceError as e:
        raise _catalog_http_error(e) from e

    if not product.is_active and (current_user is None or not current_user.is_admin):
        raise _catalog_http_error(ProductNotFoundError(product_id))

    return ProductResponse.model_validate(product)


@router.patch(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Update product",
)
async def update_product(
    product_id: int,
    request: ProductUpdate,
    current_user: CurrentAdmin,
    db: DatabaseSession,
) -> ProductResponse:
    try:
        product = await CatalogService(db).update_product(product_id, request)
    except CatalogServiceError as e:
        raise _catalog_http_error(e) from e
    return ProductResponse.model_validate(product)


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete product",
)
async def delete_product(
    product_id: int,
    current_user: CurrentAdmin,
    db: DatabaseSession,
) -> None:
    """
    Delete a product.

    Raises:
        HTTPException: 404 if missing, 409 if orders reference it
    """
    try:
        await CatalogService(db).delete_product(product_id)
    except CatalogServiceError as e:
        raise _catalog_http_error(e) from e
    logger.info("Product deleted", product_id=product_id, user_id=current_user.id)
