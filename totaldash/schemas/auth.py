"""Authentication context schemas."""

from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel


class AuthContext(BaseModel):
    """Identity of the caller, taken from verified token claims."""

    subject: str
    email: Optional[str] = None
    tenant_id: Optional[UUID] = None
    is_super_admin: bool = False
    auth_method: str  # "jwt", "system"

    # Auth method specific metadata
    auth_metadata: Optional[Dict[str, Any]] = None

    @property
    def is_system(self) -> bool:
        """Whether the caller is the built-in system user (auth disabled)."""
        return self.auth_method == "system"

    def __str__(self) -> str:
        """String representation for logging."""
        return (
            f"AuthContext(method={self.auth_method}, sub={self.subject}, "
            f"tenant={self.tenant_id}, super_admin={self.is_super_admin})"
        )
