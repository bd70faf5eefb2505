"""
Tests for environment-driven application settings.
"""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from storefront.core.config import Settings, get_settings


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


class TestSettings:
    def test_test_environment_is_loaded(self):
        settings = make_settings()

        assert settings.environment == "test"
        assert settings.is_test
        assert not settings.is_production
        assert settings.uses_sqlite
        assert settings.rate_limit_enabled is False

    def test_order_workflow_defaults(self):
        settings = make_settings()

        assert settings.order_number_prefix == "ORD"
        assert settings.order_tax_rate == Decimal("0")
        assert settings.order_shipping_cost == Decimal("0.00")
        assert settings.accept_client_unit_price is False
        assert settings.restock_on_cancel is True

    def test_cors_origins_from_environment(self, monkeypatch):
        monkeypatch.setenv(
            "APP_CORS_ORIGINS", "https://shop.example.com, https://admin.example.com"
        )

        settings = make_settings()

        assert settings.cors_origins == [
            "https://shop.example.com",
            "https://admin.example.com",
        ]

    def test_order_settings_from_environment(self, monkeypatch):
        monkeypatch.setenv("APP_ORDER_TAX_RATE", "0.2")
        monkeypatch.setenv("APP_RESTOCK_ON_CANCEL", "false")

        settings = make_settings()

        assert settings.order_tax_rate == Decimal("0.2")
        assert settings.restock_on_cancel is False

    def test_default_secret_rejected_in_production(self):
        with pytest.raises(ValidationError, match="Default secret key"):
            make_settings(
                environment="production",
                secret_key="dev-secret-key-change-in-production",
            )

    def test_short_secret_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(secret_key="short")

    @pytest.mark.parametrize(
        "url",
        ["mysql://user@localhost/db", "sqlite:///local.db", "not-a-url"],
    )
    def test_invalid_database_url(self, url):
        with pytest.raises(ValidationError):
            make_settings(database_url=url)

    def test_tax_rate_bounds(self):
        with pytest.raises(ValidationError):
            make_settings(order_tax_rate=Decimal("1.5"))

    def test_get_settings_is_cached(self):
        assert get_settings() is get_settings()
