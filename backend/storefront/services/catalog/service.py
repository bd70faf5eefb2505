"""
Catalog service for product and category management.

This module implements the CatalogService class: category CRUD, product CRUD
with category assignment, filtered product listings, low-stock reporting and
the best-seller ranking.
Errors carry a machine-checkable code that the API layer maps to HTTP
responses.
"""

from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import Settings, get_settings
from storefront.core.logging import get_logger
from storefront.database.models.category import Category
from storefront.database.models.product import Product
from storefront.schemas.catalog import (
    CategoryCreate,
    CategoryUpdate,
    ProductCreate,
    ProductUpdate,
)
from storefront.services.catalog.repository import (
    CatalogIntegrityError,
    CatalogRepository,
)

logger = get_logger(__name__)

# Columns that may not be cleared with an explicit null
_REQUIRED_PRODUCT_FIELDS = {"name", "price", "stock_quantity", "is_active", "is_featured"}


class CatalogServiceError(Exception):
    """Base exception for catalog service errors."""

    def __init__(self, message: str, code: str = "CATALOG_ERROR", **context: Any):
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context


class ProductNotFoundError(CatalogServiceError):
    """Raised when a referenced product does not exist."""

    def __init__(self, product_id: int, **context: Any):
        super().__init__(
            f"Product with ID {product_id} not found",
            code="PRODUCT_NOT_FOUND",
            product_id=product_id,
            **context,
        )
        self.product_id = product_id


class CategoryNotFoundError(CatalogServiceError):
    """Raised when a referenced category does not exist."""

    def __init__(self, category_id: int, **context: Any):
        super().__init__(
            f"Category with ID {category_id} not found",
            code="CATEGORY_NOT_FOUND",
            category_id=category_id,
            **context,
        )
        self.category_id = category_id


class DuplicateCategoryError(CatalogServiceError):
    """Raised when a category name is already taken."""

    pass


class DuplicateProductError(CatalogServiceError):
    """Raised when a product SKU is already taken."""

    pass


class ProductInUseError(CatalogServiceError):
    """Raised when deleting a product that order lines still reference."""

    pass


class CatalogService:
    """
    Catalog service orchestrating product and category operations.

    Attributes:
        repository: Catalog repository for data access
        settings: Application settings (pagination, low stock threshold)
    """

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        self.session = session
        self.repository = CatalogRepository(session)
        self.settings = settings or get_settings()

    # Categories

    async def create_category(self, data: CategoryCreate) -> Category:
        """
        Create a category.

        Raises:
            DuplicateCategoryError: If a category with the same name exists
        """
        if await self.repository.get_category_by_name(data.name):
            raise DuplicateCategoryError(
                f"Category '{data.name}' already exists",
                code="CATEGORY_EXISTS",
                name=data.name,
            )

        try:
            category = await self.repository.add_category(Category(**data.model_dump()))
        except CatalogIntegrityError as e:
            raise DuplicateCategoryError(
                f"Category '{data.name}' already exists",
                code="CATEGORY_EXISTS",
                name=data.name,
            ) from e

        await self.session.commit()
        return category

    async def list_categories(self, active_only: bool = False) -> list[Category]:
        return await self.repository.list_categories(active_only=active_only)

    async def get_category(self, category_id: int) -> Category:
        """
        Get a category.

        Raises:
            CategoryNotFoundError: If the category does not exist
        """
        category = await self.repository.get_category(category_id)
        if category is None:
            raise CategoryNotFoundError(category_id)
        return category

    async def update_category(self, category_id: int, data: CategoryUpdate) -> Category:
        """
        Update a category.

        Raises:
            CategoryNotFoundError: If the category does not exist
            DuplicateCategoryError: If the new name is already taken
        """
        category = await self.get_category(category_id)
        changes = data.model_dump(exclude_unset=True)

        new_name = changes.get("name")
        if new_name and new_name.lower() != category.name.lower():
            existing = await self.repository.get_category_by_name(new_name)
            if existing is not None:
                raise DuplicateCategoryError(
                    f"Category '{new_name}' already exists",
                    code="CATEGORY_EXISTS",
                    name=new_name,
                )

        for field, value in changes.items():
            if value is None and field in ("name", "is_active"):
                continue
            setattr(category, field, value)

        try:
            await self.repository.save_category(category)
        except CatalogIntegrityError as e:
            raise DuplicateCategoryError(
                f"Category '{new_name}' already exists",
                code="CATEGORY_EXISTS",
                name=new_name,
            ) from e

        await self.session.commit()
        logger.info("Category updated", category_id=category_id, fields=list(changes))
        return category

    async def delete_category(self, category_id: int) -> None:
        category = await self.get_category(category_id)
        await self.repository.delete_category(category)
        await self.session.commit()

    # Products

    async def _resolve_categories(self, category_ids: list[int]) -> list[Category]:
        categories = await self.repository.get_categories_by_ids(category_ids)
        found = {category.id for category in categories}
        for category_id in category_ids:
            if category_id not in found:
                raise CategoryNotFoundError(category_id)
        return sorted(categories, key=lambda category: category.name)

    async def create_product(self, data: ProductCreate) -> Product:
        """
        Create a product and assign its categories.

        Raises:
            CategoryNotFoundError: If a category id does not exist
            DuplicateProductError: If the SKU is already taken
        """
        if data.sku and await self.repository.get_product_by_sku(data.sku):
            raise DuplicateProductError(
                f"Product with SKU '{data.sku}' already exists",
                code="PRODUCT_SKU_EXISTS",
                sku=data.sku,
            )

        categories = await self._resolve_categories(data.category_ids)
        product = Product(**data.model_dump(exclude={"category_ids"}))
        product.categories = categories

        try:
            await self.repository.add_product(product)
        except CatalogIntegrityError as e:
            raise DuplicateProductError(
                f"Product with SKU '{data.sku}' already exists",
                code="PRODUCT_SKU_EXISTS",
                sku=data.sku,
            ) from e

        await self.session.commit()
        return await self.get_product(product.id, refresh=True)

    async def get_product(self, product_id: int, refresh: bool = False) -> Product:
        """
        Get a product.

        Raises:
            ProductNotFoundError: If the product does not exist
        """
        product = await self.repository.get_product(product_id, refresh=refresh)
        if product is None:
            raise ProductNotFoundError(product_id)
        return product

    async def list_products(
        self,
        category_id: Optional[int] = None,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        is_featured: Optional[bool] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> tuple[list[Product], int]:
        """
        List products with filters.

        Args:
            category_id: Only products in this category
            search: Text matched against name and description
            is_active: Filter on the active flag
            is_featured: Filter on the featured flag
            page: 1-based page number
            limit: Page size (defaults to the configured page size)

        Returns:
            Tuple of (products, total_count)
        """
        limit = min(limit or self.settings.default_page_size, self.settings.max_page_size)
        page = max(page, 1)
        return await self.repository.list_products(
            category_id=category_id,
            search=search.strip() if search else None,
            is_active=is_active,
            is_featured=is_featured,
            skip=(page - 1) * limit,
            limit=limit,
        )

    async def update_product(self, product_id: int, data: ProductUpdate) -> Product:
        """
        Update a product.

        Setting stock_quantity overwrites the stock counter; category_ids
        replaces the product's categories.

        Raises:
            ProductNotFoundError: If the product does not exist
            CategoryNotFoundError: If a category id does not exist
            DuplicateProductError: If the new SKU is already taken
        """
        product = await self.get_product(product_id)
        changes = data.model_dump(exclude_unset=True)

        new_sku = changes.get("sku")
        if new_sku and new_sku != product.sku:
            if await self.repository.get_product_by_sku(new_sku):
                raise DuplicateProductError(
                    f"Product with SKU '{new_sku}' already exists",
                    code="PRODUCT_SKU_EXISTS",
                    sku=new_sku,
                )

        category_ids = changes.pop("category_ids", None)
        if category_ids is not None:
            product.categories = await self._resolve_categories(category_ids)

        for field, value in changes.items():
            if value is None and field in _REQUIRED_PRODUCT_FIELDS:
                continue
            setattr(product, field, value)

        try:
            await self.repository.save_product(product)
        except CatalogIntegrityError as e:
            raise DuplicateProductError(
                f"Product with SKU '{new_sku}' already exists",
                code="PRODUCT_SKU_EXISTS",
                sku=new_sku,
            ) from e

        await self.session.commit()
        logger.info(
            "Product updated",
            product_id=product_id,
            fields=sorted(set(changes) | ({"category_ids"} if category_ids is not None else set())),
        )
        return await self.get_product(product_id, refresh=True)

    async def delete_product(self, product_id: int) -> None:
        """
        Delete a product.

        Raises:
            ProductNotFoundError: If the product does not exist
            ProductInUseError: If existing orders reference the product
        """
        product = await self.get_product(product_id)
        try:
            await self.repository.delete_product(product)
        except CatalogIntegrityError as e:
            raise ProductInUseError(
                f"Product with ID {product_id} is referenced by existing orders",
                code="PRODUCT_IN_USE",
                product_id=product_id,
            ) from e
        await self.session.commit()

    async def get_low_stock_products(self, threshold: Optional[int] = None) -> list[Product]:
        """Active products whose stock is at or below the threshold."""
        if threshold is None:
            threshold = self.settings.low_stock_threshold
        products = await self.repository.get_low_stock_products(threshold)
        if products:
            logger.info("Low stock products found", count=len(products), threshold=threshold)
        return products

    async def get_best_selling_products(self, limit: int = 10) -> list[tuple[Product, int]]:
        """
        Top active products by units sold, excluding cancelled orders.

        Returns:
            List of (product, units_sold) pairs, best seller first
        """
        limit = min(max(limit, 1), self.settings.max_page_size)
        ranked = await self.repository.get_best_selling_products(limit)
        logger.debug("Best sellers computed", count=len(ranked), limit=limit)
        return ranked
