"""
Authentication service implementation.

This module provides user registration, login, token refresh and profile
management. Passwords are hashed with bcrypt and sessions are carried by
JWT access/refresh token pairs.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import get_settings
from storefront.core.logging import get_logger
from storefront.core.security import (
    REFRESH_TOKEN_TYPE,
    TokenError,
    create_access_token,
    create_token_pair,
    decode_token,
    hash_password,
    verify_password,
    verify_token_type,
)
from storefront.database.models.user import User, UserRole
from storefront.schemas.auth import (
    PasswordChange,
    TokenResponse,
    UserCreate,
    UserLogin,
    UserUpdate,
)

logger = get_logger(__name__)
settings = get_settings()


class AuthenticationError(Exception):
    """Base exception for authentication errors."""

    def __init__(self, message: str, code: str = "AUTH_ERROR"):
        super().__init__(message)
        self.message = message
        self.code = code


class RegistrationError(AuthenticationError):
    """Exception raised when the email is already registered."""

    def __init__(self, message: str):
        super().__init__(message, code="EMAIL_ALREADY_REGISTERED")


class LoginError(AuthenticationError):
    """Exception raised for invalid credentials."""

    def __init__(self, message: str = "Invalid email or password"):
        super().__init__(message, code="INVALID_CREDENTIALS")


class InactiveAccountError(AuthenticationError):
    """Exception raised when a deactivated account authenticates."""

    def __init__(self, message: str = "Account is inactive"):
        super().__init__(message, code="ACCOUNT_INACTIVE")


class AuthService:
    """
    Authentication service for user management and authentication.

    Provides registration, login, token refresh and self-service profile
    operations.
    """

    def __init__(self, session: AsyncSession):
        """
        Initialize authentication service.

        Args:
            session: Async database session for operations
        """
        self.session = session
        self.logger = logger.bind(service="auth")

    def _token_response(self, user: User) -> TokenResponse:
        tokens = create_token_pair(user.id, user.email, user.role.value)
        return TokenResponse(
            access_token=tokens["access_token"],
            refresh_token=tokens["refresh_token"],
            token_type="bearer",
            expires_in=settings.jwt_access_token_expire_minutes * 60,
        )

    async def register_user(
        self,
        user_data: UserCreate,
        role: UserRole = UserRole.CUSTOMER,
    ) -> User:
        """
        Register a new user with email uniqueness validation.

        Args:
            user_data: User registration data
            role: Role assigned to the account

        Returns:
            Created user instance

        Raises:
            RegistrationError: If email already exists
        """
        email = user_data.email.lower().strip()
        self.logger.info("User registration started", email=email, role=role.value)

        if await self.get_user_by_email(email):
            self.logger.warning("Registration failed - email already exists", email=email)
            raise RegistrationError(f"User with email {email} already exists")

        user = User(
            email=email,
            password_hash=hash_password(user_data.password),
            first_name=user_data.first_name,
            last_name=user_data.last_name,
            phone=user_data.phone,
            role=role,
            is_active=True,
        )
        self.session.add(user)

        try:
            await self.session.commit()
        except IntegrityError as e:
            await self.session.rollback()
            self.logger.warning("Registration failed - concurrent duplicate", email=email)
            raise RegistrationError(f"User with email {email} already exists") from e

        await self.session.refresh(user)
        self.logger.info(
            "User registered successfully",
            user_id=user.id,
            email=user.email,
            role=user.role.value,
        )
        return user

    async def login_user(self, login_data: UserLogin) -> TokenResponse:
        """
        Authenticate user and generate JWT tokens.

        Args:
            login_data: User login credentials

        Returns:
            Token response with access and refresh tokens

        Raises:
            LoginError: If credentials are invalid
            InactiveAccountError: If the account is deactivated
        """
        self.logger.info("Login attempt", email=login_data.email)

        user = await self.get_user_by_email(login_data.email)
        if user is None or not verify_password(login_data.password, user.password_hash):
            self.logger.warning("Login failed - invalid credentials", email=login_data.email)
            raise LoginError()

        if not user.is_active:
            self.logger.warning("Login failed - account inactive", user_id=user.id)
            raise InactiveAccountError()

        user.last_login_at = datetime.now(timezone.utc)
        await self.session.commit()

        self.logger.info("Login successful", user_id=user.id, role=user.role.value)
        return self._token_response(user)

    async def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        """
        Issue a new access token from a refresh token.

        Args:
            refresh_token: Encoded JWT refresh token

        Returns:
            Token response with a new access token

        Raises:
            AuthenticationError: If the token is invalid or the user is gone
            InactiveAccountError: If the account is deactivated
        """
        try:
            payload = decode_token(refresh_token)
        except TokenError as e:
            raise AuthenticationError(str(e), code=e.code) from e

        if not verify_token_type(payload, REFRESH_TOKEN_TYPE):
            raise AuthenticationError("Invalid token type", code="INVALID_TOKEN_TYPE")

        try:
            user_id = int(payload.get("sub", ""))
        except ValueError as e:
            raise AuthenticationError("Invalid token subject", code="TOKEN_INVALID") from e

        user = await self.get_user(user_id)
        if user is None:
            self.logger.warning("Token refresh failed - user not found", user_id=user_id)
            raise AuthenticationError("User not found", code="USER_NOT_FOUND")
        if not user.is_active:
            raise InactiveAccountError()

        self.logger.info("Token refreshed", user_id=user_id)
        return TokenResponse(
            access_token=create_access_token(
                {"sub": str(user.id), "email": user.email, "role": user.role.value}
            ),
            refresh_token=None,
            token_type="bearer",
            expires_in=settings.jwt_access_token_expire_minutes * 60,
        )

    async def update_profile(self, user: User, update_data: UserUpdate) -> User:
        """Update the caller's own profile fields."""
        changes = update_data.model_dump(exclude_unset=True)
        for field, value in changes.items():
            if value is None and field in ("first_name", "last_name"):
                continue
            setattr(user, field, value)

        await self.session.commit()
        await self.session.refresh(user)
        self.logger.info("Profile updated", user_id=user.id, fields=sorted(changes))
        return user

    async def change_password(self, user: User, password_data: PasswordChange) -> None:
        """
        Change the caller's password.

        Raises:
            LoginError: If the current password does not match
        """
        if not verify_password(password_data.current_password, user.password_hash):
            self.logger.warning("Password change rejected", user_id=user.id)
            raise LoginError("Current password is incorrect")

        user.password_hash = hash_password(password_data.new_password)
        await self.session.commit()
        self.logger.info("Password changed", user_id=user.id)

    async def get_user_by_email(self, email: str) -> Optional[User]:
        """
        Retrieve user by email address.

        Args:
            email: Email address to search for

        Returns:
            User instance or None if not found
        """
        stmt = select(User).where(User.email == email.lower().strip())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_user(self, user_id: int) -> Optional[User]:
        """Retrieve user by ID."""
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()
