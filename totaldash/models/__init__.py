"""Models for the application."""

from ._base import Base
from .plan import Plan
from .subscription import Subscription

__all__ = ["Base", "Plan", "Subscription"]
