"""Plan model."""

from typing import Optional

from sqlalchemy import JSON, Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from totaldash.models._base import Base


class Plan(Base):
    """A purchasable tier.

    Capacity limits use -1 for unlimited. Subscriptions never read these columns
    after creation; they carry their own snapshot.
    """

    __tablename__ = "plans"

    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price_monthly_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Nullable for plans defined by hand
    provider_price_id: Mapped[Optional[str]] = mapped_column(String, nullable=True, unique=True)

    max_clients: Mapped[int] = mapped_column(Integer, nullable=False, default=-1)
    max_agents: Mapped[int] = mapped_column(Integer, nullable=False, default=-1)
    max_team_members: Mapped[int] = mapped_column(Integer, nullable=False, default=-1)
    extras: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    trial_duration_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
