"""
Request dependencies: database sessions, bearer authentication and roles.

Authentication failures answer 401 with a ``WWW-Authenticate`` challenge.
Authenticated callers lacking the required role or an active account get 403.
"""

from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.logging import get_logger, set_user_id
from storefront.core.security import (
    ACCESS_TOKEN_TYPE,
    TokenError,
    decode_token,
    verify_token_type,
)
from storefront.database.connection import get_db
from storefront.database.models.user import User, UserRole

logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

BearerCredentials = Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)]
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]


def _unauthorized(code: str = "NOT_AUTHENTICATED") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"code": code, "message": "Could not validate credentials"},
        headers={"WWW-Authenticate": "Bearer"},
    )


def _forbidden(code: str, message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail={"code": code, "message": message},
    )


def _subject_user_id(token: str) -> int:
    try:
        payload = decode_token(token)
    except TokenError as e:
        raise _unauthorized(e.code) from e

    if not verify_token_type(payload, ACCESS_TOKEN_TYPE):
        raise _unauthorized("INVALID_TOKEN_TYPE")

    try:
        return int(payload.get("sub", ""))
    except (TypeError, ValueError) as e:
        raise _unauthorized("TOKEN_INVALID") from e


async def get_current_user(credentials: BearerCredentials, db: DatabaseSession) -> User:
    """
    Resolve the bearer access token to a stored user.

    Raises:
        HTTPException: 401 when the token is absent, invalid, expired, not an
            access token, or names a user that no longer exists
    """
    if credentials is None:
        raise _unauthorized()

    try:
        user_id = _subject_user_id(credentials.credentials)
    except HTTPException as e:
        logger.warning("Bearer token rejected", code=e.detail["code"])
        raise

    user = await db.get(User, user_id)
    if user is None:
        logger.warning("Token subject does not exist", user_id=user_id)
        raise _unauthorized("USER_NOT_FOUND")

    set_user_id(str(user.id))
    return user


async def get_current_active_user(
    current_user: Annotated[User, Depends(get_current_user)],
) -> User:
    if not current_user.is_active:
        logger.warning("Inactive account refused", user_id=current_user.id)
        raise _forbidden("ACCOUNT_INACTIVE", "Inactive user account")
    return current_user


def require_role(*allowed_roles: UserRole):
    """
    Build a dependency admitting only active users holding one of the roles.

    Example:
        @router.delete("/{id}", dependencies=[Depends(require_role(UserRole.ADMIN))])
    """

    async def role_checker(
        current_user: Annotated[User, Depends(get_current_active_user)],
    ) -> User:
        if current_user.role in allowed_roles:
            return current_user

        logger.warning(
            "Role check failed",
            user_id=current_user.id,
            user_role=current_user.role.value,
            required_roles=[role.value for role in allowed_roles],
        )
        raise _forbidden("FORBIDDEN", "Insufficient permissions")

    return role_checker


async def get_current_admin(
    current_user: Annotated[User, Depends(require_role(UserRole.ADMIN))],
) -> User:
    return current_user


async def get_optional_user(
    credentials: BearerCredentials, db: DatabaseSession
) -> Optional[User]:
    """Like ``get_current_user`` but treats any failure as an anonymous caller."""
    if credentials is None:
        return None

    try:
        return await get_current_user(credentials, db)
    except HTTPException:
        return None


CurrentUser = Annotated[User, Depends(get_current_user)]
CurrentActiveUser = Annotated[User, Depends(get_current_active_user)]
CurrentAdmin = Annotated[User, Depends(get_current_admin)]
OptionalUser = Annotated[Optional[User], Depends(get_optional_user)]
