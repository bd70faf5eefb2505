"""
Authentication API endpoints.

This module implements FastAPI routes for:
- User registration
- Login with JWT token pair generation
- Access token refresh
- Profile retrieval and update
- Password change
"""

from fastapi import APIRouter, HTTPException, status

from storefront.api.deps import CurrentActiveUser, DatabaseSession
from storefront.core.logging import get_logger
from storefront.schemas.auth import (
    PasswordChange,
    RefreshTokenRequest,
    TokenResponse,
    UserCreate,
    UserLogin,
    UserResponse,
    UserUpdate,
)
from storefront.services.auth.service import (
    AuthenticationError,
    AuthService,
    InactiveAccountError,
    RegistrationError,
)

logger = get_logger(__name__)
router = APIRouter(prefix="/auth", tags=["authentication"])


def _auth_http_error(error: AuthenticationError) -> HTTPException:
    if isinstance(error, RegistrationError):
        status_code = status.HTTP_409_CONFLICT
    elif isinstance(error, InactiveAccountError):
        status_code = status.HTTP_403_FORBIDDEN
    else:
        status_code = status.HTTP_401_UNAUTHORIZED

    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    return HTTPException(
        status_code=status_code,
        detail={"code": error.code, "message": error.message},
        headers=headers,
    )


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register new user account",
    description="Create a customer account with email and password.",
)
async def register(request: UserCreate, db: DatabaseSession) -> UserResponse:
    """
    Register a new user account.

    Raises:
        HTTPException: 409 if the email is already registered
    """
    logger.info("User registration attempt", email=request.email)

    try:
        user = await AuthService(db).register_user(request)
    except AuthenticationError as e:
        raise _auth_http_error(e) from e

    return UserResponse.model_validate(user)


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="User login",
    description="Authenticate with email and password and receive a token pair.",
)
async def login(request: UserLogin, db: DatabaseSession) -> TokenResponse:
    """
    Authenticate a user.

    Raises:
        HTTPException: 401 for invalid credentials, 403 for inactive accounts
    """
    try:
        return await AuthService(db).login_user(request)
    except AuthenticationError as e:
        raise _auth_http_error(e) from e


@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Refresh access token",
)
async def refresh_token(request: RefreshTokenRequest, db: DatabaseSession) -> TokenResponse:
    try:
        return await AuthService(db).refresh_access_token(request.refresh_token)
    except AuthenticationError as e:
        raise _auth_http_error(e) from e


@router.get(
    "/me",
    response_model=UserResponse,
    summary="Get current user profile",
)
async def get_profile(current_user: CurrentActiveUser) -> UserResponse:
    return UserResponse.model_validate(current_user)


@router.patch(
    "/me",
    response_model=UserResponse,
    summary="Update current user profile",
)
async def update_profile(
    request: UserUpdate,
    current_user: CurrentActiveUser,
    db: DatabaseSession,
) -> UserResponse:
    user = await AuthService(db).update_profile(current_user, request)
    return UserResponse.model_validate(user)


@router.post(
    "/me/password",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Change password",
)
async def change_password(
    request: PasswordChange,
    current_user: CurrentActiveUser,
    db: DatabaseSession,
) -> None:
    """
    Change the caller's password.

    Raises:
        HTTPException: 401 if the current password is wrong
    """
    try:
        await AuthService(db).change_password(current_user, request)
    except AuthenticationError as e:
        raise _auth_http_error(e) from e
