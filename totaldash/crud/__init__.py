"""CRUD operations for the application."""

from .crud_plan import plan
from .crud_subscription import subscription

__all__ = ["plan", "subscription"]
