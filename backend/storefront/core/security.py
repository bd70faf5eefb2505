"""
Password hashing, JWT issuance and response security headers.

Access tokens identify the caller on checkout, wishlist and admin routes.
Refresh tokens only carry the subject and are exchanged for a new pair.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from storefront.core.config import get_settings
from storefront.core.logging import get_logger

settings = get_settings()
logger = get_logger(__name__)

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=12,
    bcrypt__ident="2b",
)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


class SecurityError(Exception):
    """Credential failure carrying a machine-readable code."""

    def __init__(self, message: str, code: str, **context: Any):
        super().__init__(message)
        self.code = code
        self.context = context


class TokenError(SecurityError):
    pass


class PasswordError(SecurityError):
    pass


def hash_password(password: str) -> str:
    """
    Return the bcrypt hash of ``password``.

    Raises:
        PasswordError: ``EMPTY_PASSWORD`` for an empty string
    """
    if not password:
        raise PasswordError("Password cannot be empty", code="EMPTY_PASSWORD")
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Check a password against a stored hash.

    Empty input never matches. A stored value that is not a recognisable
    hash raises ``PasswordError`` with code ``VERIFY_FAILED``.
    """
    if not (plain_password and hashed_password):
        return False

    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError as e:
        logger.error("Stored password hash is unusable", error=str(e))
        raise PasswordError(
            "Failed to verify password",
            code="VERIFY_FAILED",
            original_error=str(e),
        ) from e


def _encode(claims: Dict[str, Any], token_type: str, lifetime: timedelta) -> str:
    issued_at = datetime.now(timezone.utc)
    payload = {
        **claims,
        "type": token_type,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }

    try:
        token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    except JWTError as e:
        logger.error("Token encoding failed", token_type=token_type, error=str(e))
        raise TokenError(
            f"Failed to create {token_type} token",
            code="TOKEN_CREATE_FAILED",
            original_error=str(e),
        ) from e

    logger.debug("Token issued", subject=claims.get("sub"), token_type=token_type)
    return token


def create_access_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None,
) -> str:
    lifetime = expires_delta or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    return _encode(data, ACCESS_TOKEN_TYPE, lifetime)


def create_refresh_token(
    data: Dict[str, Any],
    expires_delta: Optional[timedelta] = None,
) -> str:
    lifetime = expires_delta or timedelta(days=settings.jwt_refresh_token_expire_days)
    return _encode(data, REFRESH_TOKEN_TYPE, lifetime)


def create_token_pair(user_id: int, email: str, role: str) -> Dict[str, str]:
    """Issue an access and a refresh token whose subject is ``str(user_id)``."""
    subject = str(user_id)
    return {
        "access_token": create_access_token({"sub": subject, "email": email, "role": role}),
        "refresh_token": create_refresh_token({"sub": subject}),
    }


def decode_token(token: str) -> Dict[str, Any]:
    """
    Verify the signature and expiry of ``token`` and return its claims.

    Raises:
        TokenError: ``EMPTY_TOKEN``, ``TOKEN_EXPIRED`` or ``TOKEN_INVALID``
    """
    if not token:
        raise TokenError("Token cannot be empty", code="EMPTY_TOKEN")

    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except ExpiredSignatureError as e:
        raise TokenError("Token has expired", code="TOKEN_EXPIRED") from e
    except JWTError as e:
        logger.warning("Rejected token", error=str(e), error_type=type(e).__name__)
        raise TokenError("Invalid token", code="TOKEN_INVALID", original_error=str(e)) from e


def verify_token_type(payload: Dict[str, Any], expected_type: str) -> bool:
    actual = payload.get("type")
    if actual == expected_type:
        return True

    logger.warning("Unexpected token type", expected=expected_type, actual=actual)
    return False


def get_security_headers() -> Dict[str, str]:
    """Headers attached to every response; HSTS only in production."""
    headers = {
        "X-Content-Type-Options": "nosniff",
        "X-Frame-Options": "DENY",
        "Referrer-Policy": "strict-origin-when-cross-origin",
        "Content-Security-Policy": "default-src 'self'; frame-ancestors 'none'",
    }
    if settings.is_production:
        headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"
    return headers
