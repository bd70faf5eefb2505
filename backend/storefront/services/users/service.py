"""
Administrative user management.

Administrators browse accounts, switch them on and off, read account
statistics and remove accounts that have never placed an order. Order
history is kept: a user who owns orders cannot be deleted.
"""

from typing import Any, Optional

from sqlalchemy import exists, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import Settings, get_settings
from storefront.core.logging import get_logger
from storefront.database.models.order import Order
from storefront.database.models.user import User, UserRole

logger = get_logger(__name__)


class UserServiceError(Exception):
    """Base exception for user management errors."""

    def __init__(self, message: str, code: str = "USER_ERROR", **context: Any):
        super().__init__(message)
        self.message = message
        self.code = code
        self.context = context


class UserNotFoundError(UserServiceError):
    def __init__(self, user_id: int):
        super().__init__(
            f"User with ID {user_id} not found",
            code="USER_NOT_FOUND",
            user_id=user_id,
        )
        self.user_id = user_id


class SelfModificationError(UserServiceError):
    """Raised when an administrator targets their own account."""

    def __init__(self, action: str, user_id: int):
        super().__init__(
            f"Administrators cannot {action} their own account",
            code="CANNOT_MODIFY_SELF",
            user_id=user_id,
        )


class UserHasOrdersError(UserServiceError):
    def __init__(self, user_id: int):
        super().__init__(
            f"User with ID {user_id} has orders and cannot be deleted",
            code="USER_HAS_ORDERS",
            user_id=user_id,
        )


class UserService:
    """Account administration on top of an async session."""

    def __init__(self, session: AsyncSession, settings: Optional[Settings] = None):
        self.session = session
        self.settings = settings or get_settings()

    async def list_users(
        self,
        is_active: Optional[bool] = None,
        role: Optional[UserRole] = None,
        search: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> tuple[list[User], int]:
        """
        List accounts newest first.

        Args:
            is_active: Filter on the active flag
            role: Filter on role
            search: Case-insensitive match on first name, last name or email
            page: 1-based page number
            limit: Page size (defaults to the configured page size)

        Returns:
            Tuple of (users, total_count)
        """
        limit = min(limit or self.settings.default_page_size, self.settings.max_page_size)
        page = max(page, 1)

        conditions = []
        if is_active is not None:
            conditions.append(User.is_active.is_(is_active))
        if role is not None:
            conditions.append(User.role == role)
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(
                    User.first_name.ilike(pattern),
                    User.last_name.ilike(pattern),
                    User.email.ilike(pattern),
                )
            )

        stmt = (
            select(User)
            .where(*conditions)
            .order_by(User.created_at.desc(), User.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        count_stmt = select(func.count()).select_from(User).where(*conditions)

        users = list((await self.session.execute(stmt)).scalars().all())
        total = (await self.session.execute(count_stmt)).scalar_one()

        logger.debug("Users fetched", count=len(users), total=total, search=search)
        return users, total

    async def get_user(self, user_id: int) -> User:
        """
        Raises:
            UserNotFoundError: If no account has this id
        """
        user = await self.session.get(User, user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def toggle_active(self, user_id: int, acting_admin_id: int) -> User:
        """
        Flip the active flag of an account.

        Deactivated users keep their data but can no longer log in or use
        their tokens.

        Raises:
            UserNotFoundError: If no account has this id
            SelfModificationError: If the administrator targets themselves
        """
        if user_id == acting_admin_id:
            raise SelfModificationError("deactivate", user_id)

        user = await self.get_user(user_id)
        user.is_active = not user.is_active
        await self.session.commit()
        await self.session.refresh(user)

        logger.info(
            "User active flag toggled",
            user_id=user_id,
            is_active=user.is_active,
            changed_by=acting_admin_id,
        )
        return user

    async def get_user_statistics(self) -> dict[str, int]:
        """Account counts by active flag and by role, recomputed on each call."""
        flag_rows = await self.session.execute(
            select(User.is_active, func.count()).group_by(User.is_active)
        )
        role_rows = await self.session.execute(
            select(User.role, func.count()).group_by(User.role)
        )
        by_flag = {bool(flag): count for flag, count in flag_rows.all()}
        by_role = dict(role_rows.all())

        return {
            "total_users": sum(by_flag.values()),
            "active_users": by_flag.get(True, 0),
            "inactive_users": by_flag.get(False, 0),
            "admin_users": by_role.get(UserRole.ADMIN, 0),
            "customer_users": by_role.get(UserRole.CUSTOMER, 0),
        }

    async def delete_user(self, user_id: int, acting_admin_id: int) -> None:
        """
        Delete an account and its wishlist.

        Raises:
            UserNotFoundError: If no account has this id
            SelfModificationError: If the administrator targets themselves
            UserHasOrdersError: If the account owns orders
        """
        if user_id == acting_admin_id:
            raise SelfModificationError("delete", user_id)

        user = await self.get_user(user_id)
        has_orders = (
            await self.session.execute(select(exists().where(Order.user_id == user_id)))
        ).scalar()
        if has_orders:
            logger.warning("User deletion refused: orders exist", user_id=user_id)
            raise UserHasOrdersError(user_id)

        await self.session.delete(user)
        try:
            await self.session.commit()
        except IntegrityError as e:
            # An order was placed after the check above
            await self.session.rollback()
            raise UserHasOrdersError(user_id) from e

        logger.info("User deleted", user_id=user_id, deleted_by=acting_admin_id)
