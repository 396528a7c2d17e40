"""Dependencies that are used in the API endpoints."""

import uuid
from typing import Optional

from fastapi import Depends, Header, Request

from totaldash import schemas
from totaldash.api.auth import authenticate
from totaldash.api.context import ApiContext
from totaldash.core.config import settings
from totaldash.core.exceptions import AuthorizationError, DataValidationError
from totaldash.core.logging import logger
from totaldash.db.session import get_db  # noqa: F401
from totaldash.integrations.notification_client import NotificationClient
from totaldash.integrations.stripe_client import StripeClient


def get_stripe_client() -> StripeClient:
    """Stripe client built from the process settings."""
    return StripeClient(settings)


def get_notification_client() -> NotificationClient:
    """Notification client built from the process settings."""
    return NotificationClient(settings)


def _resolve_tenant_id(
    x_tenant_id: Optional[str], caller: schemas.AuthContext
) -> Optional[uuid.UUID]:
    """Resolve the tenant from the X-Tenant-ID header, falling back to the token."""
    if not x_tenant_id:
        return caller.tenant_id

    try:
        tenant_id = uuid.UUID(x_tenant_id)
    except ValueError as e:
        raise DataValidationError(f"Invalid X-Tenant-ID: {x_tenant_id}", "X-Tenant-ID") from e

    if not caller.is_super_admin and tenant_id != caller.tenant_id:
        raise AuthorizationError(f"Caller does not have access to tenant {tenant_id}")
    return tenant_id


async def get_context(
    request: Request,
    authorization: Optional[str] = Header(None),
    x_tenant_id: Optional[str] = Header(None, alias="X-Tenant-ID"),
) -> ApiContext:
    """Create unified API context for the request.

    Args:
    ----
        request (Request): The FastAPI request object.
        authorization (Optional[str]): Bearer token.
        x_tenant_id (Optional[str]): Tenant ID provided in the X-Tenant-ID header.

    Returns:
    -------
        ApiContext: Unified API context with auth and logging.

    Raises:
    ------
        AuthenticationError: If no valid token is provided.
        AuthorizationError: If the caller may not act on the requested tenant.
    """
    request_id = getattr(request.state, "request_id", str(uuid.uuid4()))

    caller = authenticate(authorization, settings)
    tenant_id = _resolve_tenant_id(x_tenant_id, caller)

    base_logger = logger.with_context(
        request_id=request_id,
        auth_method=caller.auth_method,
        caller=caller.subject,
        context_base="api",
    )
    if tenant_id:
        base_logger = base_logger.with_context(tenant_id=str(tenant_id))

    return ApiContext(
        request_id=request_id,
        caller=caller,
        tenant_id=tenant_id,
        logger=base_logger,
    )


async def require_super_admin(ctx: ApiContext = Depends(get_context)) -> ApiContext:
    """Context for admin endpoints; rejects everyone but super-admins."""
    if not ctx.is_super_admin:
        raise AuthorizationError("Super admin access required")
    return ctx
