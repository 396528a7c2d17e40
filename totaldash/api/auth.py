"""Authentication module for the API.

Callers present a bearer JWT signed with AUTH_JWT_SECRET. The claims used are
``sub``, ``email``, ``tenant_id`` and ``is_super_admin``.
"""

from typing import Optional
from uuid import UUID

from jose import JWTError, jwt

from totaldash import schemas
from totaldash.core.config import Settings, settings
from totaldash.core.exceptions import AuthenticationError
from totaldash.core.logging import logger


def system_caller(config: Settings = settings) -> schemas.AuthContext:
    """The built-in super-admin used when authentication is disabled."""
    return schemas.AuthContext(
        subject="system",
        email=config.FIRST_SUPERUSER,
        is_super_admin=True,
        auth_method="system",
        auth_metadata={"disabled_auth": True},
    )


def _bearer_token(authorization: Optional[str]) -> str:
    if not authorization:
        raise AuthenticationError("No valid authentication provided")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Authorization header must be a bearer token")
    return token.strip()


def authenticate(
    authorization: Optional[str], config: Settings = settings
) -> schemas.AuthContext:
    """Verify the bearer token and return the caller's identity.

    Args:
        authorization: Raw Authorization header value.
        config: Settings with the JWT secret, algorithm and audience.

    Returns:
        The authenticated caller.

    Raises:
        AuthenticationError: If the token is missing, malformed, expired or
            signed with another key.
    """
    if not config.AUTH_ENABLED:
        return system_caller(config)

    token = _bearer_token(authorization)
    options = {"verify_aud": config.AUTH_JWT_AUDIENCE is not None}

    try:
        claims = jwt.decode(
            token,
            config.AUTH_JWT_SECRET,
            algorithms=[config.AUTH_JWT_ALGORITHM],
            audience=config.AUTH_JWT_AUDIENCE,
            options=options,
        )
    except JWTError as e:
        logger.warning(f"Error verifying token: {e}")
        raise AuthenticationError("Invalid or expired token") from e

    subject = claims.get("sub")
    if not subject:
        raise AuthenticationError("Token has no subject")

    tenant_claim = claims.get("tenant_id")
    try:
        tenant_id = UUID(str(tenant_claim)) if tenant_claim else None
    except ValueError as e:
        raise AuthenticationError("Token carries an invalid tenant_id") from e

    return schemas.AuthContext(
        subject=subject,
        email=claims.get("email"),
        tenant_id=tenant_id,
        is_super_admin=bool(claims.get("is_super_admin", False)),
        auth_method="jwt",
    )
