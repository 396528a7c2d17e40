"""Pure business logic for billing operations.

This module contains the business rules for billing, separated from
infrastructure concerns like the database and the Stripe API.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from totaldash.integrations.notification_client import NotificationTemplate
from totaldash.models import Plan
from totaldash.schemas.billing_provider import ProviderPrice
from totaldash.schemas.subscription import SUBSCRIBED_STATUSES, PlanSnapshot, SubscriptionStatus

UNLIMITED = -1

# Grace period after a failed payment, counted from the event timestamp
PAYMENT_GRACE_PERIOD = timedelta(days=3)

# Days after trial end until trial data is removed, quoted in the trial_ended email
TRIAL_DATA_RETENTION = timedelta(days=30)

DEFAULT_MIN_PLAN_PRICE = "$99.00"


# Status mapping

_PROVIDER_STATUS_MAP: dict[str, SubscriptionStatus] = {
    "trialing": SubscriptionStatus.TRIALING,
    "active": SubscriptionStatus.ACTIVE,
    "past_due": SubscriptionStatus.PAST_DUE,
    "unpaid": SubscriptionStatus.PAST_DUE,
    "incomplete": SubscriptionStatus.PAST_DUE,
    "paused": SubscriptionStatus.PAST_DUE,
    "canceled": SubscriptionStatus.CANCELED,
    "incomplete_expired": SubscriptionStatus.CANCELED,
}


@dataclass
class MappedStatus:
    """A provider status folded into the local closed set."""

    status: SubscriptionStatus
    provider_status: str
    known: bool


def map_provider_status(provider_status: str) -> MappedStatus:
    """Fold a Stripe subscription status into SubscriptionStatus.

    Unknown statuses map to past_due, which keeps the tenant out of the
    subscribed set until the provider reports something recognised.
    """
    status = _PROVIDER_STATUS_MAP.get(provider_status)
    if status is None:
        return MappedStatus(SubscriptionStatus.PAST_DUE, provider_status, known=False)
    return MappedStatus(status, provider_status, known=True)


def is_subscribed(status: SubscriptionStatus) -> bool:
    """Whether the status grants access to the product."""
    return status in SUBSCRIBED_STATUSES


# Snapshots


def snapshot_from_plan(plan: Plan, taken_at: datetime) -> PlanSnapshot:
    """Freeze the terms of a catalog plan."""
    return PlanSnapshot(
        plan_name=plan.name,
        price_monthly_cents=plan.price_monthly_cents,
        max_clients=plan.max_clients,
        max_agents=plan.max_agents,
        max_team_members=plan.max_team_members,
        extras=tuple(plan.extras or ()),
        created_at=taken_at,
    )


def snapshot_from_provider_price(
    price: Optional[ProviderPrice], taken_at: datetime
) -> PlanSnapshot:
    """Freeze the terms of an out-of-catalog subscription with unlimited capacity."""
    return PlanSnapshot(
        plan_name=(price.product_name if price else None) or "Custom Plan",
        price_monthly_cents=price.unit_amount if price else 0,
        max_clients=UNLIMITED,
        max_agents=UNLIMITED,
        max_team_members=UNLIMITED,
        extras=(),
        created_at=taken_at,
    )


# Checkout


def is_upgrade(target_price_cents: int, previous_price_cents: Optional[int]) -> bool:
    """A checkout is allowed only to a strictly more expensive plan."""
    if previous_price_cents is None:
        return True
    return target_price_cents > previous_price_cents


def format_price(price_cents: int) -> str:
    """Format a monthly price in cents as dollars, e.g. 2900 -> "$29.00"."""
    return f"${price_cents / 100:.2f}"


# Trial reminders


@dataclass(frozen=True)
class ReminderWindow:
    """A trial reminder window, keyed by hours remaining until trial end."""

    hours: int
    template: NotificationTemplate
    counter: str


REMINDER_WINDOWS: tuple[ReminderWindow, ...] = (
    ReminderWindow(0, NotificationTemplate.TRIAL_ENDED, "ended"),
    ReminderWindow(24, NotificationTemplate.TRIAL_ENDING_1_DAY, "one_day"),
    ReminderWindow(72, NotificationTemplate.TRIAL_ENDING_3_DAYS, "three_day"),
)

_, _ONE_DAY_WINDOW, _THREE_DAY_WINDOW = REMINDER_WINDOWS

LONGEST_REMINDER_WINDOW = timedelta(hours=max(window.hours for window in REMINDER_WINDOWS))


def select_reminder_window(
    trial_ends_at: datetime,
    now: datetime,
    last_window_hours: Optional[int],
) -> Optional[ReminderWindow]:
    """Pick the reminder to send for one trial, if any.

    Only the narrowest window the trial currently falls in is considered, and
    it is skipped when a reminder for that window or a narrower one was
    already sent.

    Args:
        trial_ends_at: End of the trial (naive UTC).
        now: Current time (naive UTC).
        last_window_hours: Marker stored on the subscription, or None.

    Returns:
        The window to send, or None.
    """
    remaining = trial_ends_at - now
    for window in REMINDER_WINDOWS:
        if window.hours == 0:
            matches = remaining < timedelta(0)
        else:
            matches = timedelta(0) <= remaining <= timedelta(hours=window.hours)
        if not matches:
            continue
        if last_window_hours is not None and last_window_hours <= window.hours:
            return None
        return window
    return None


def trial_will_end_window(
    trial_ends_at: datetime,
    now: datetime,
    last_window_hours: Optional[int],
) -> Optional[ReminderWindow]:
    """Pick the reminder for Stripe's trial_will_end notice.

    Stripe sends the notice about three days out, so the rounded-up day count
    decides between the one-day and three-day reminder. Shares the marker with
    the scheduled reminders, so neither path repeats what the other sent.
    """
    remaining = trial_ends_at - now
    if remaining <= timedelta(0):
        return None
    window = _ONE_DAY_WINDOW if days_remaining(trial_ends_at, now) <= 1 else _THREE_DAY_WINDOW
    if last_window_hours is not None and last_window_hours <= window.hours:
        return None
    return window


def days_remaining(trial_ends_at: datetime, now: datetime) -> int:
    """Whole days left in a trial, rounded up."""
    return math.ceil((trial_ends_at - now) / timedelta(days=1))
