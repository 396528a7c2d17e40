"""Typed views of Stripe objects.

Stripe returns loosely-typed objects whose shape moves between API versions
(period bounds moved onto subscription items, invoice subscription ids moved
under ``parent``). They are read once, here, into frozen models so the rest of
the engine never touches raw provider payloads.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

from totaldash.core.datetime_utils import from_unix_naive


def _get(obj: Any, key: str, default: Any = None) -> Any:
    """Read a field from a StripeObject or a plain decoded JSON dict."""
    if obj is None:
        return default
    if isinstance(obj, dict):
        return obj.get(key, default)
    try:
        return obj[key]
    except (KeyError, TypeError):
        return getattr(obj, key, default)


def _id_of(obj: Any) -> Optional[str]:
    """Return the id of an expandable field, whether expanded or not."""
    if obj is None or isinstance(obj, str):
        return obj
    return _get(obj, "id")


def _first_item(subscription: Any) -> Any:
    items = _get(_get(subscription, "items"), "data") or []
    return items[0] if items else None


class ProviderPrice(BaseModel):
    """A recurring Stripe price with its product."""

    model_config = ConfigDict(frozen=True)

    id: str
    unit_amount: int = 0
    interval: Optional[str] = None
    product_id: Optional[str] = None
    product_name: Optional[str] = None
    product_description: Optional[str] = None

    @classmethod
    def from_stripe(cls, price: Any) -> "ProviderPrice":
        """Build from a Stripe price, with or without the product expanded."""
        product = _get(price, "product")
        recurring = _get(price, "recurring")
        return cls(
            id=_get(price, "id"),
            unit_amount=_get(price, "unit_amount") or 0,
            interval=_get(recurring, "interval"),
            product_id=_id_of(product),
            product_name=None if isinstance(product, str) else _get(product, "name"),
            product_description=None if isinstance(product, str) else _get(product, "description"),
        )


class ProviderSubscription(BaseModel):
    """A Stripe subscription reduced to the fields the engine reads."""

    model_config = ConfigDict(frozen=True)

    id: str
    customer_id: Optional[str] = None
    status: str
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    canceled_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    price: Optional[ProviderPrice] = None
    metadata: dict[str, str] = {}

    @classmethod
    def from_stripe(cls, subscription: Any) -> "ProviderSubscription":
        """Build from a Stripe subscription object or its JSON payload."""
        item = _first_item(subscription)

        # Newer API versions only carry the period on the subscription item
        period_start = _get(subscription, "current_period_start") or _get(
            item, "current_period_start"
        )
        period_end = _get(subscription, "current_period_end") or _get(item, "current_period_end")

        price = _get(item, "price")
        metadata = _get(subscription, "metadata") or {}

        return cls(
            id=_get(subscription, "id"),
            customer_id=_id_of(_get(subscription, "customer")),
            status=_get(subscription, "status"),
            current_period_start=from_unix_naive(period_start),
            current_period_end=from_unix_naive(period_end),
            trial_end=from_unix_naive(_get(subscription, "trial_end")),
            canceled_at=from_unix_naive(_get(subscription, "canceled_at")),
            ended_at=from_unix_naive(_get(subscription, "ended_at")),
            price=ProviderPrice.from_stripe(price) if price is not None else None,
            metadata={str(k): str(v) for k, v in dict(metadata).items()},
        )


class ProviderTrialSubscription(BaseModel):
    """A freshly created trial subscription and the secret for card collection."""

    model_config = ConfigDict(frozen=True)

    subscription: ProviderSubscription
    client_secret: Optional[str] = None


class ProviderCheckoutSession(BaseModel):
    """A hosted checkout session."""

    model_config = ConfigDict(frozen=True)

    id: str
    url: str
