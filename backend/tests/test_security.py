"""
Tests for password hashing, JWT helpers and security headers.
"""

from datetime import timedelta

import pytest
from jose import jwt

from storefront.core.config import get_settings
from storefront.core.security import (
    ACCESS_TOKEN_TYPE,
    REFRESH_TOKEN_TYPE,
    PasswordError,
    TokenError,
    create_access_token,
    create_refresh_token,
    create_token_pair,
    decode_token,
    get_security_headers,
    hash_password,
    verify_password,
    verify_token_type,
)


class TestPasswordHashing:
    """bcrypt hashing and verification."""

    def test_hash_and_verify(self):
        hashed = hash_password("SecurePass123!")

        assert hashed != "SecurePass123!"
        assert hashed.startswith("$2b$")
        assert verify_password("SecurePass123!", hashed)
        assert not verify_password("WrongPass123!", hashed)

    def test_hashes_are_salted(self):
        assert hash_password("SecurePass123!") != hash_password("SecurePass123!")

    def test_empty_password_cannot_be_hashed(self):
        with pytest.raises(PasswordError) as exc_info:
            hash_password("")

        assert exc_info.value.code == "EMPTY_PASSWORD"

    def test_empty_values_do_not_verify(self):
        assert not verify_password("", "$2b$12$abc")
        assert not verify_password("SecurePass123!", "")

    def test_malformed_hash(self):
        with pytest.raises(PasswordError) as exc_info:
            verify_password("SecurePass123!", "not-a-bcrypt-hash")

        assert exc_info.value.code == "VERIFY_FAILED"


class TestTokens:
    """JWT creation and validation."""

    def test_access_token_claims(self):
        token = create_access_token({"sub": "7", "role": "customer"})

        payload = decode_token(token)

        assert payload["sub"] == "7"
        assert payload["role"] == "customer"
        assert payload["type"] == ACCESS_TOKEN_TYPE
        assert payload["exp"] > payload["iat"]

    def test_refresh_token_type(self):
        payload = decode_token(create_refresh_token({"sub": "7"}))

        assert verify_token_type(payload, REFRESH_TOKEN_TYPE)
        assert not verify_token_type(payload, ACCESS_TOKEN_TYPE)

    def test_token_pair(self):
        tokens = create_token_pair(3, "a@example.com", "admin")

        access = decode_token(tokens["access_token"])
        refresh = decode_token(tokens["refresh_token"])

        assert access["sub"] == refresh["sub"] == "3"
        assert access["email"] == "a@example.com"
        assert refresh["type"] == REFRESH_TOKEN_TYPE

    def test_expired_token(self):
        token = create_access_token({"sub": "1"}, expires_delta=timedelta(seconds=-5))

        with pytest.raises(TokenError) as exc_info:
            decode_token(token)

        assert exc_info.value.code == "TOKEN_EXPIRED"

    def test_wrong_signature(self):
        token = jwt.encode(
            {"sub": "1", "type": ACCESS_TOKEN_TYPE},
            "another-secret-key-of-sufficient-length",
            algorithm=get_settings().jwt_algorithm,
        )

        with pytest.raises(TokenError) as exc_info:
            decode_token(token)

        assert exc_info.value.code == "TOKEN_INVALID"

    @pytest.mark.parametrize("token", ["", "garbage", "a.b.c"])
    def test_malformed_tokens(self, token):
        with pytest.raises(TokenError):
            decode_token(token)


class TestSecurityHeaders:
    def test_baseline_headers(self):
        headers = get_security_headers()

        assert headers["X-Content-Type-Options"] == "nosniff"
        assert headers["X-Frame-Options"] == "DENY"
        assert "Strict-Transport-Security" not in headers
