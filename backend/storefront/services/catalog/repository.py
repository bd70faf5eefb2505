"""
Catalog data access repository for products and categories.

This module implements the CatalogRepository class providing async methods
for category and product persistence, filtered product listings and
low-stock and best-seller queries, with database errors logged and wrapped.
"""

from typing import Any, Optional, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.logging import get_logger
from storefront.database.models.category import Category
from storefront.database.models.order import Order, OrderItem
from storefront.database.models.product import Product
from storefront.services.orders.enums import OrderStatus

logger = get_logger(__name__)


class CatalogRepositoryError(Exception):
    """Base exception for catalog repository errors."""

    def __init__(self, message: str, code: str = "CATALOG_REPOSITORY_ERROR", **context: Any):
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context


class CatalogIntegrityError(CatalogRepositoryError):
    """Raised when a write violates a database constraint."""

    pass


class CatalogRepository:
    """
    Repository for catalog data access operations.

    Writes are flushed but not committed; the calling service owns the
    transaction.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _flush(self, operation: str, **context: Any) -> None:
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            logger.warning(
                "Catalog write violated a constraint",
                operation=operation,
                error=str(e.orig),
                **context,
            )
            raise CatalogIntegrityError(
                f"Constraint violation during {operation}",
                code="CATALOG_INTEGRITY_ERROR",
                error=str(e.orig),
                **context,
            ) from e
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(
                "Catalog write failed",
                operation=operation,
                error=str(e),
                **context,
            )
            raise CatalogRepositoryError(
                f"Database error during {operation}",
                error=str(e),
                **context,
            ) from e

    async def _execute(self, operation: str, stmt, **context: Any):
        try:
            return await self.session.execute(stmt)
        except SQLAlchemyError as e:
            logger.error(
                "Catalog query failed",
                operation=operation,
                error=str(e),
                **context,
            )
            raise CatalogRepositoryError(
                f"Database error during {operation}",
                error=str(e),
                **context,
            ) from e

    # Categories

    async def add_category(self, category: Category) -> Category:
        """
        Persist a new category.

        Raises:
            CatalogIntegrityError: If the name is already taken
        """
        self.session.add(category)
        await self._flush("add_category", name=category.name)
        logger.info("Category created", category_id=category.id, name=category.name)
        return category

    async def get_category(self, category_id: int) -> Optional[Category]:
        result = await self._execute(
            "get_category",
            select(Category).where(Category.id == category_id),
            category_id=category_id,
        )
        return result.scalar_one_or_none()

    async def get_category_by_name(self, name: str) -> Optional[Category]:
        result = await self._execute(
            "get_category_by_name",
            select(Category).where(func.lower(Category.name) == name.lower()),
            name=name,
        )
        return result.scalar_one_or_none()

    async def get_categories_by_ids(self, category_ids: Sequence[int]) -> list[Category]:
        if not category_ids:
            return []
        result = await self._execute(
            "get_categories_by_ids",
            select(Category).where(Category.id.in_(category_ids)),
            category_ids=list(category_ids),
        )
        return list(result.scalars().all())

    async def list_categories(self, active_only: bool = False) -> list[Category]:
        stmt = select(Category).order_by(Category.name)
        if active_only:
            stmt = stmt.where(Category.is_active.is_(True))
        result = await self._execute("list_categories", stmt, active_only=active_only)
        return list(result.scalars().all())

    async def save_category(self, category: Category) -> Category:
        await self._flush("save_category", category_id=category.id)
        return category

    async def delete_category(self, category: Category) -> None:
        await self.session.delete(category)
        await self._flush("delete_category", category_id=category.id)
        logger.info("Category deleted", category_id=category.id)

    # Products

    async def add_product(self, product: Product) -> Product:
        """
        Persist a new product.

        Raises:
            CatalogIntegrityError: If the SKU is already taken
        """
        self.session.add(product)
        await self._flush("add_product", name=product.name, sku=product.sku)
        logger.info(
            "Product created",
            product_id=product.id,
            name=product.name,
            stock_quantity=product.stock_quantity,
        )
        return product

    async def get_product(
        self,
        product_id: int,
        refresh: bool = False,
    ) -> Optional[Product]:
        """
        Get product by ID.

        Args:
            product_id: Product identifier
            refresh: Overwrite any stale copy held by the session

        Returns:
            Product if found, None otherwise
        """
        stmt = select(Product).where(Product.id == product_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self._execute("get_product", stmt, product_id=product_id)
        return result.scalar_one_or_none()

    async def get_product_by_sku(self, sku: str) -> Optional[Product]:
        result = await self._execute(
            "get_product_by_sku",
            select(Product).where(Product.sku == sku),
            sku=sku,
        )
        return result.scalar_one_or_none()

    async def list_products(
        self,
        category_id: Optional[int] = None,
        search: Optional[str] = None,
        is_active: Optional[bool] = None,
        is_featured: Optional[bool] = None,
        skip: int = 0,
        limit: int = 10,
    ) -> tuple[list[Product], int]:
        """
        List products with filters and pagination.

        Args:
            category_id: Only products in this category
            search: Case-insensitive match on name or description
            is_active: Filter on the active flag
            is_featured: Filter on the featured flag
            skip: Number of records to skip
            limit: Maximum number of records to return

        Returns:
            Tuple of (products, total_count), newest first
        """
        conditions = []
        if category_id is not None:
            conditions.append(Product.categories.any(Category.id == category_id))
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(Product.name.ilike(pattern), Product.description.ilike(pattern))
            )
        if is_active is not None:
            conditions.append(Product.is_active.is_(is_active))
        if is_featured is not None:
            conditions.append(Product.is_featured.is_(is_featured))

        stmt = (
            select(Product)
            .where(*conditions)
            .order_by(Product.created_at.desc(), Product.id.desc())
            .offset(skip)
            .limit(limit)
        )
        count_stmt = select(func.count()).select_from(Product).where(*conditions)

        result = await self._execute("list_products", stmt)
        count_result = await self._execute("count_products", count_stmt)

        products = list(result.scalars().all())
        total = count_result.scalar_one()

        logger.debug(
            "Products fetched",
            count=len(products),
            total=total,
            category_id=category_id,
            search=search,
        )
        return products, total

    async def get_low_stock_products(self, threshold: int) -> list[Product]:
        """Active products with stock at or below threshold, lowest stock first."""
        stmt = (
            select(Product)
            .where(
                Product.is_active.is_(True),
                Product.stock_quantity <= threshold,
            )
            .order_by(Product.stock_quantity.asc(), Product.id.asc())
        )
        result = await self._execute("get_low_stock_products", stmt, threshold=threshold)
        return list(result.scalars().all())

    async def get_best_selling_products(self, limit: int) -> list[tuple[Product, int]]:
        """
        Active products ranked by units sold on orders that were not cancelled.

        Products without sales fill the remaining places, newest first.

        Returns:
            List of (product, units_sold) pairs
        """
        sales = (
            select(
                OrderItem.product_id,
                func.sum(OrderItem.quantity).label("units_sold"),
            )
            .join(Order, Order.id == OrderItem.order_id)
            .where(Order.status != OrderStatus.CANCELLED)
            .group_by(OrderItem.product_id)
            .subquery()
        )
        units_sold = func.coalesce(sales.c.units_sold, 0)
        stmt = (
            select(Product, units_sold)
            .outerjoin(sales, sales.c.product_id == Product.id)
            .where(Product.is_active.is_(True))
            .order_by(units_sold.desc(), Product.created_at.desc(), Product.id.desc())
            .limit(limit)
        )
        result = await self._execute("get_best_selling_products", stmt, limit=limit)
        return [(product, int(sold)) for product, sold in result.all()]

    async def save_product(self, product: Product) -> Product:
        await self._flush("save_product", product_id=product.id)
        return product

    async def delete_product(self, product: Product) -> None:
        """
        Delete a product.

        Raises:
            CatalogIntegrityError: If order lines still reference the product
        """
        await self.session.delete(product)
        await self._flush("delete_product", product_id=product.id)
        logger.info("Product deleted", product_id=product.id)
