"""
Tests for the authentication service and endpoints.
"""

import pytest

from storefront.core.security import create_refresh_token, decode_token
from storefront.database.models import UserRole
from storefront.schemas.auth import PasswordChange, UserCreate, UserLogin, UserUpdate
from storefront.services.auth.service import (
    AuthenticationError,
    AuthService,
    InactiveAccountError,
    LoginError,
    RegistrationError,
)
from tests.utils import TEST_PASSWORD, auth_headers

AUTH_URL = "/api/v1/auth"

REGISTRATION = {
    "email": "Jane.Doe@Example.com",
    "password": TEST_PASSWORD,
    "first_name": "Jane",
    "last_name": "Doe",
}


@pytest.fixture
def auth_service(db_session):
    return AuthService(db_session)


class TestAuthService:
    """Registration, login and token refresh."""

    async def test_register_normalizes_email(self, auth_service):
        user = await auth_service.register_user(UserCreate(**REGISTRATION))

        assert user.id is not None
        assert user.email == "jane.doe@example.com"
        assert user.role == UserRole.CUSTOMER
        assert user.password_hash != TEST_PASSWORD

    async def test_register_duplicate_email(self, auth_service, customer):
        with pytest.raises(RegistrationError) as exc_info:
            await auth_service.register_user(
                UserCreate(**{**REGISTRATION, "email": "CUSTOMER@example.com"})
            )

        assert exc_info.value.code == "EMAIL_ALREADY_REGISTERED"

    async def test_login_returns_token_pair(self, auth_service, customer):
        customer_id = customer.id

        tokens = await auth_service.login_user(
            UserLogin(email="customer@example.com", password=TEST_PASSWORD)
        )

        assert tokens.token_type == "bearer"
        assert tokens.refresh_token is not None
        assert decode_token(tokens.access_token)["sub"] == str(customer_id)
        assert customer.last_login_at is not None

    async def test_login_wrong_password(self, auth_service, customer):
        with pytest.raises(LoginError) as exc_info:
            await auth_service.login_user(
                UserLogin(email="customer@example.com", password="WrongPass123!")
            )

        assert exc_info.value.code == "INVALID_CREDENTIALS"

    async def test_login_unknown_email(self, auth_service):
        with pytest.raises(LoginError):
            await auth_service.login_user(
                UserLogin(email="nobody@example.com", password=TEST_PASSWORD)
            )

    async def test_login_inactive(self, auth_service, user_factory):
        await user_factory(email="sleepy@example.com", is_active=False)

        with pytest.raises(InactiveAccountError):
            await auth_service.login_user(
                UserLogin(email="sleepy@example.com", password=TEST_PASSWORD)
            )

    async def test_refresh(self, auth_service, customer):
        token = create_refresh_token({"sub": str(customer.id)})

        tokens = await auth_service.refresh_access_token(token)

        assert decode_token(tokens.access_token)["sub"] == str(customer.id)
        assert tokens.refresh_token is None

    async def test_refresh_rejects_access_token(self, auth_service, customer):
        access = auth_headers(customer)["Authorization"].split()[1]

        with pytest.raises(AuthenticationError) as exc_info:
            await auth_service.refresh_access_token(access)

        assert exc_info.value.code == "INVALID_TOKEN_TYPE"

    async def test_refresh_for_deleted_user(self, auth_service):
        with pytest.raises(AuthenticationError) as exc_info:
            await auth_service.refresh_access_token(create_refresh_token({"sub": "9999"}))

        assert exc_info.value.code == "USER_NOT_FOUND"

    async def test_update_profile_and_change_password(self, auth_service, customer):
        user = await auth_service.update_profile(
            customer, UserUpdate(city="Lisbon", first_name=None)
        )
        await auth_service.change_password(
            user,
            PasswordChange(current_password=TEST_PASSWORD, new_password="NewSecure456!"),
        )

        assert user.city == "Lisbon"
        assert user.first_name == "Test"
        tokens = await auth_service.login_user(
            UserLogin(email="customer@example.com", password="NewSecure456!")
        )
        assert tokens.access_token

    async def test_change_password_requires_current(self, auth_service, customer):
        with pytest.raises(LoginError):
            await auth_service.change_password(
                customer,
                PasswordChange(current_password="WrongPass123!", new_password="NewSecure456!"),
            )


class TestAuthEndpoints:
    """/auth"""

    async def test_register(self, async_client):
        response = await async_client.post(f"{AUTH_URL}/register", json=REGISTRATION)

        assert response.status_code == 201
        body = response.json()
        assert body["email"] == "jane.doe@example.com"
        assert body["role"] == "customer"
        assert "password_hash" not in body

    async def test_register_weak_password(self, async_client):
        response = await async_client.post(
            f"{AUTH_URL}/register", json={**REGISTRATION, "password": "weakpassword"}
        )

        assert response.status_code == 422
        assert response.json()["error"] == "Validation Error"

    async def test_register_duplicate(self, async_client, customer):
        response = await async_client.post(
            f"{AUTH_URL}/register", json={**REGISTRATION, "email": "customer@example.com"}
        )

        assert response.status_code == 409

    async def test_login_and_me(self, async_client, customer):
        login = await async_client.post(
            f"{AUTH_URL}/login",
            json={"email": "customer@example.com", "password": TEST_PASSWORD},
        )
        token = login.json()["access_token"]

        me = await async_client.get(
            f"{AUTH_URL}/me", headers={"Authorization": f"Bearer {token}"}
        )

        assert login.status_code == 200
        assert me.status_code == 200
        assert me.json()["email"] == "customer@example.com"

    async def test_login_failure(self, async_client, customer):
        response = await async_client.post(
            f"{AUTH_URL}/login",
            json={"email": "customer@example.com", "password": "WrongPass123!"},
        )

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert response.json()["detail"]["code"] == "INVALID_CREDENTIALS"

    async def test_refresh_endpoint(self, async_client, customer):
        token = create_refresh_token({"sub": str(customer.id)})

        response = await async_client.post(f"{AUTH_URL}/refresh", json={"refresh_token": token})

        assert response.status_code == 200
        assert response.json()["access_token"]

    async def test_me_without_token(self, async_client):
        response = await async_client.get(f"{AUTH_URL}/me")

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "NOT_AUTHENTICATED"

    async def test_me_with_invalid_token(self, async_client):
        response = await async_client.get(
            f"{AUTH_URL}/me", headers={"Authorization": "Bearer not-a-token"}
        )

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "TOKEN_INVALID"

    async def test_me_with_refresh_token(self, async_client, customer):
        token = create_refresh_token({"sub": str(customer.id)})

        response = await async_client.get(
            f"{AUTH_URL}/me", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "INVALID_TOKEN_TYPE"

    async def test_inactive_user_is_forbidden(self, async_client, user_factory):
        user = await user_factory(is_active=False)

        response = await async_client.get(f"{AUTH_URL}/me", headers=auth_headers(user))

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "ACCOUNT_INACTIVE"

    async def test_update_profile(self, async_client, customer):
        response = await async_client.patch(
            f"{AUTH_URL}/me",
            json={"phone": "+1 555 123 4567", "country": "US"},
            headers=auth_headers(customer),
        )

        assert response.status_code == 200
        assert response.json()["country"] == "US"

    async def test_change_password(self, async_client, customer):
        headers = auth_headers(customer)

        wrong = await async_client.post(
            f"{AUTH_URL}/me/password",
            json={"current_password": "WrongPass123!", "new_password": "NewSecure456!"},
            headers=headers,
        )
        changed = await async_client.post(
            f"{AUTH_URL}/me/password",
            json={"current_password": TEST_PASSWORD, "new_password": "NewSecure456!"},
            headers=headers,
        )

        assert wrong.status_code == 401
        assert changed.status_code == 204
