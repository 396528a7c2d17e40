"""Unified application context for API requests.

This module provides a context object that combines the caller's identity,
the resolved tenant and a pre-configured logger into a single injectable
dependency.
"""

from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict

from totaldash import schemas
from totaldash.core.exceptions import AuthorizationError, DataValidationError
from totaldash.core.logging import ContextualLogger


class ApiContext(BaseModel):
    """Unified context for API requests."""

    model_config = ConfigDict(arbitrary_types_allowed=True)  # For ContextualLogger

    # Request metadata
    request_id: str

    # Authentication context
    caller: schemas.AuthContext
    tenant_id: Optional[UUID] = None

    # Contextual logger with all dimensions pre-configured
    logger: ContextualLogger

    @property
    def is_super_admin(self) -> bool:
        """Whether the caller may run admin operations."""
        return self.caller.is_super_admin

    def resolve_tenant(self, requested: Optional[UUID] = None) -> UUID:
        """Return the tenant an operation targets, checking the caller may act on it.

        Args:
            requested: Tenant named in the request body, if any. Falls back to
                the request's tenant context.

        Raises:
            DataValidationError: If no tenant can be determined.
            AuthorizationError: If a non-admin caller names another tenant.
        """
        tenant_id = requested or self.tenant_id
        if tenant_id is None:
            raise DataValidationError(
                "Tenant context required (X-Tenant-ID header missing)", "tenant_id"
            )
        if not self.is_super_admin and tenant_id != self.caller.tenant_id:
            raise AuthorizationError(f"Caller does not have access to tenant {tenant_id}")
        return tenant_id

    def __str__(self) -> str:
        """String representation for logging."""
        return (
            f"ApiContext(request_id={self.request_id[:8]}..., "
            f"method={self.caller.auth_method}, sub={self.caller.subject}, "
            f"tenant={self.tenant_id})"
        )
