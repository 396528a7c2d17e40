"""Unit tests for settings validation."""

import pytest
from pydantic import ValidationError

from totaldash.core.config import Settings


def test_database_uri_is_assembled_from_postgres_settings():
    config = Settings(
        SQLALCHEMY_ASYNC_DATABASE_URI=None,
        POSTGRES_USER="billing",
        POSTGRES_PASSWORD="secret",
        POSTGRES_HOST="db",
        POSTGRES_PORT=6543,
        POSTGRES_DB="totaldash_billing",
        _env_file=None,
    )

    assert config.SQLALCHEMY_ASYNC_DATABASE_URI == (
        "postgresql+asyncpg://billing:secret@db:6543/totaldash_billing"
    )


def test_explicit_database_uri_wins():
    config = Settings(SQLALCHEMY_ASYNC_DATABASE_URI="sqlite+aiosqlite://", _env_file=None)

    assert config.SQLALCHEMY_ASYNC_DATABASE_URI == "sqlite+aiosqlite://"


def test_stripe_enabled_follows_secret_key():
    assert Settings(STRIPE_SECRET_KEY="sk_test_123", _env_file=None).STRIPE_ENABLED is True
    assert Settings(STRIPE_SECRET_KEY=None, _env_file=None).STRIPE_ENABLED is False


def test_auth_requires_secret():
    with pytest.raises(ValidationError, match="AUTH_JWT_SECRET"):
        Settings(AUTH_ENABLED=True, AUTH_JWT_SECRET=None, _env_file=None)


def test_auth_with_secret():
    config = Settings(AUTH_ENABLED=True, AUTH_JWT_SECRET="jwt-secret", _env_file=None)

    assert config.AUTH_JWT_ALGORITHM == "HS256"
