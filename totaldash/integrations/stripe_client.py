"""Stripe API client for billing operations.

This module provides a clean interface to the Stripe API, handling all direct
Stripe interactions without business logic. Every remote call is bounded by
``STRIPE_TIMEOUT_SECONDS``; timeouts and Stripe errors surface as ProviderError.
"""

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, Optional

import stripe

from totaldash.core.config import Settings, settings
from totaldash.core.exceptions import ProviderError, WebhookSignatureError
from totaldash.core.logging import logger
from totaldash.schemas.billing_provider import (
    ProviderCheckoutSession,
    ProviderPrice,
    ProviderSubscription,
    ProviderTrialSubscription,
    _get,
)

PRICE_PAGE_SIZE = 100


class StripeClient:
    """Client for Stripe API operations."""

    def __init__(self, config: Settings = settings):
        """Initialize Stripe client.

        The API key is passed on each request instead of being set on the
        stripe module, so clients built from different settings do not collide.
        """
        self.api_key = config.STRIPE_SECRET_KEY
        self.webhook_secret = config.STRIPE_WEBHOOK_SECRET
        self.webhook_tolerance = config.STRIPE_WEBHOOK_TOLERANCE_SECONDS
        self.timeout = config.STRIPE_TIMEOUT_SECONDS

    def _sanitize_text(self, text: str) -> str:
        """Sanitize text for Stripe API (ASCII-only)."""
        if not text:
            return text
        return text.encode("ascii", "replace").decode("ascii")

    def _clean_metadata(self, metadata: Optional[Dict[str, str]]) -> Dict[str, str]:
        """Clean metadata values for Stripe."""
        if not metadata:
            return {}

        return {
            self._sanitize_text(str(key)): self._sanitize_text(str(value))
            for key, value in metadata.items()
        }

    async def _call(
        self, operation: str, method: Callable[..., Awaitable[Any]], *args: Any, **params: Any
    ) -> Any:
        """Run one Stripe request with the configured key and timeout."""
        if not self.api_key:
            raise ProviderError("Stripe is not configured", retryable=False)

        try:
            return await asyncio.wait_for(
                method(*args, api_key=self.api_key, **params), timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            logger.warning(f"Stripe call timed out after {self.timeout}s: {operation}")
            raise ProviderError(f"Timed out while trying to {operation}") from e
        except stripe.StripeError as e:
            raise ProviderError(f"Failed to {operation}: {e.user_message or str(e)}") from e

    # Customer operations

    async def find_or_create_customer(
        self, email: str, metadata: Optional[Dict[str, str]] = None
    ) -> str:
        """Return the ID of the first customer with this email, creating one if none exists."""
        existing = await self._call(
            "list customers", stripe.Customer.list_async, email=email, limit=1
        )
        data = _get(existing, "data") or []
        if data:
            return _get(data[0], "id")

        customer = await self._call(
            "create customer",
            stripe.Customer.create_async,
            email=self._sanitize_text(email),
            metadata=self._clean_metadata(metadata),
        )
        return _get(customer, "id")

    # Subscription operations

    async def create_trial_subscription(
        self,
        customer_id: str,
        price_id: str,
        trial_days: int,
        metadata: Optional[Dict[str, str]] = None,
    ) -> ProviderTrialSubscription:
        """Create a trialing subscription with payment collection deferred.

        The first invoice's payment intent, or the pending setup intent when the
        trial invoice carries none, provides the client secret for card capture.
        """
        subscription = await self._call(
            "create subscription",
            stripe.Subscription.create_async,
            customer=customer_id,
            items=[{"price": price_id}],
            trial_period_days=trial_days,
            payment_behavior="default_incomplete",
            payment_settings={"save_default_payment_method": "on_subscription"},
            expand=["latest_invoice.payment_intent", "pending_setup_intent"],
            metadata=self._clean_metadata(metadata),
        )

        payment_intent = _get(_get(subscription, "latest_invoice"), "payment_intent")
        client_secret = _get(payment_intent, "client_secret")
        if not client_secret:
            client_secret = _get(_get(subscription, "pending_setup_intent"), "client_secret")

        return ProviderTrialSubscription(
            subscription=ProviderSubscription.from_stripe(subscription),
            client_secret=client_secret,
        )

    async def get_subscription(
        self, subscription_id: str, expand_product: bool = False
    ) -> ProviderSubscription:
        """Retrieve a subscription."""
        params: Dict[str, Any] = {}
        if expand_product:
            params["expand"] = ["items.data.price.product"]

        subscription = await self._call(
            "retrieve subscription", stripe.Subscription.retrieve_async, subscription_id, **params
        )
        return ProviderSubscription.from_stripe(subscription)

    async def cancel_subscription(self, subscription_id: str) -> ProviderSubscription:
        """Cancel a subscription immediately."""
        subscription = await self._call(
            "cancel subscription", stripe.Subscription.cancel_async, subscription_id
        )
        return ProviderSubscription.from_stripe(subscription)

    # Catalog operations

    async def list_active_recurring_prices(self) -> list[ProviderPrice]:
        """List every active recurring price with its product, across all pages."""
        prices: list[ProviderPrice] = []
        starting_after: Optional[str] = None

        while True:
            params: Dict[str, Any] = {
                "active": True,
                "type": "recurring",
                "expand": ["data.product"],
                "limit": PRICE_PAGE_SIZE,
            }
            if starting_after:
                params["starting_after"] = starting_after

            page = await self._call("list prices", stripe.Price.list_async, **params)
            data = _get(page, "data") or []
            prices.extend(ProviderPrice.from_stripe(price) for price in data)

            if not _get(page, "has_more") or not data:
                return prices
            starting_after = _get(data[-1], "id")

    # Checkout operations

    async def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        metadata: Optional[Dict[str, str]] = None,
    ) -> ProviderCheckoutSession:
        """Create a subscription checkout session."""
        clean_metadata = self._clean_metadata(metadata)
        session = await self._call(
            "create checkout session",
            stripe.checkout.Session.create_async,
            customer=customer_id,
            line_items=[{"price": price_id, "quantity": 1}],
            mode="subscription",
            success_url=self._sanitize_text(success_url),
            cancel_url=self._sanitize_text(cancel_url),
            metadata=clean_metadata,
            subscription_data={"metadata": clean_metadata},
        )
        return ProviderCheckoutSession(id=_get(session, "id"), url=_get(session, "url"))

    # Webhook operations

    def verify_webhook_signature(self, payload: bytes, signature: Optional[str]) -> dict:
        """Verify a webhook signature and return the parsed event.

        Uses Stripe's signing scheme: HMAC-SHA256 over ``"{timestamp}.{payload}"``
        with the endpoint secret, rejecting timestamps outside the tolerance.

        Raises:
            WebhookSignatureError: If the header is missing, the signature does
                not match, the timestamp is stale or the body is not JSON.
        """
        if not self.webhook_secret:
            raise WebhookSignatureError("Webhook secret is not configured")
        if not signature:
            raise WebhookSignatureError("Missing Stripe-Signature header")

        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                body, signature, self.webhook_secret, tolerance=self.webhook_tolerance
            )
        except UnicodeDecodeError as e:
            raise WebhookSignatureError("Webhook payload is not valid UTF-8") from e
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError(f"Invalid webhook signature: {e}") from e

        try:
            return json.loads(body)
        except ValueError as e:
            raise WebhookSignatureError(f"Invalid webhook payload: {e}") from e
