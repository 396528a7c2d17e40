"""Shared fixtures and builders for the billing tests."""

import hashlib
import hmac
import time
import uuid
from datetime import datetime, timedelta
from typing import Optional
from unittest.mock import AsyncMock

import httpx
import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker

from totaldash import crud, schemas
from totaldash.api import deps
from totaldash.billing.billing_data_access import BillingRepository
from totaldash.billing.plan_logic import snapshot_from_plan
from totaldash.core.datetime_utils import utc_now_naive
from totaldash.integrations.notification_client import NotificationClient
from totaldash.integrations.stripe_client import StripeClient
from totaldash.main import app


WEBHOOK_SECRET = "whsec_test_secret"


def sign_payload(
    payload: str, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None
) -> str:
    """Build a Stripe-Signature header for a payload."""
    timestamp = timestamp or int(time.time())
    signature = hmac.new(
        secret.encode("utf-8"), f"{timestamp}.{payload}".encode("utf-8"), hashlib.sha256
    ).hexdigest()
    return f"t={timestamp},v1={signature}"


def naive_now() -> datetime:
    """Current naive UTC time without microseconds, for stable comparisons."""
    return utc_now_naive().replace(microsecond=0)


def provider_subscription(
    id: str = "sub_123",
    status: str = "trialing",
    customer_id: Optional[str] = "cus_123",
    **fields,
) -> schemas.ProviderSubscription:
    """Build a ProviderSubscription with a current monthly period."""
    start = naive_now()
    fields.setdefault("current_period_start", start)
    fields.setdefault("current_period_end", start + timedelta(days=30))
    return schemas.ProviderSubscription(id=id, status=status, customer_id=customer_id, **fields)


async def create_plan(db, **overrides):
    """Insert a plan, defaulting to the entry-level Starter plan."""
    values = {
        "name": "Starter",
        "description": "For small agencies",
        "price_monthly_cents": 2900,
        "provider_price_id": "price_starter",
        "max_clients": 5,
        "max_agents": 2,
        "max_team_members": 3,
        "extras": ["Email support"],
        "trial_duration_days": 14,
        "is_active": True,
    }
    values.update(overrides)
    return await crud.plan.create(db, obj_in=schemas.PlanCreate(**values))


async def create_trialing_subscription(db, tenant_id, plan, **overrides):
    """Store a trialing subscription for a tenant, snapshotting the plan."""
    now = naive_now()
    values = {
        "plan_id": plan.id,
        "provider_customer_id": "cus_123",
        "provider_subscription_id": "sub_123",
        "status": "trialing",
        "provider_status": "trialing",
        "trial_ends_at": now + timedelta(days=plan.trial_duration_days or 14),
        "billing_email": "owner@agency.com",
        "custom_pricing": False,
    }
    values.update(overrides)
    return await BillingRepository().save_subscription(
        db, tenant_id, values, snapshot=snapshot_from_plan(plan, now)
    )


@pytest.fixture
def tenant_id() -> uuid.UUID:
    """A fresh tenant ID."""
    return uuid.uuid4()


@pytest.fixture
def super_admin() -> schemas.AuthContext:
    """A super-admin caller."""
    return schemas.AuthContext(
        subject="admin-1",
        email="admin@totaldash.com",
        is_super_admin=True,
        auth_method="jwt",
    )


@pytest.fixture
def tenant_caller(tenant_id) -> schemas.AuthContext:
    """An ordinary caller belonging to the test tenant."""
    return schemas.AuthContext(
        subject="user-1",
        email="owner@agency.com",
        tenant_id=tenant_id,
        is_super_admin=False,
        auth_method="jwt",
    )


@pytest.fixture
def mock_stripe() -> AsyncMock:
    """Stripe client double; every call succeeds unless a test says otherwise."""
    stripe = AsyncMock(spec=StripeClient)
    stripe.find_or_create_customer.return_value = "cus_123"
    stripe.create_trial_subscription.return_value = schemas.ProviderTrialSubscription(
        subscription=provider_subscription(id="sub_trial", status="trialing"),
        client_secret="seti_secret_123",
    )
    stripe.get_subscription.return_value = provider_subscription(status="active")
    stripe.cancel_subscription.return_value = provider_subscription(status="canceled")
    stripe.create_checkout_session.return_value = schemas.ProviderCheckoutSession(
        id="cs_123", url="https://checkout.stripe.com/c/pay/cs_123"
    )
    stripe.list_active_recurring_prices.return_value = []
    return stripe


@pytest.fixture
def mock_notifier() -> AsyncMock:
    """Notification client double that accepts every request."""
    notifier = AsyncMock(spec=NotificationClient)
    notifier.send_best_effort.return_value = True
    notifier.send.return_value = True
    return notifier


@pytest.fixture
async def starter_plan(db_session):
    """The entry-level plan with a 14 day trial at $29."""
    return await create_plan(db_session)


@pytest.fixture
async def api_client(db_engine, mock_stripe, mock_notifier):
    """HTTP client bound to the app, with the database and collaborators overridden."""
    session_factory = async_sessionmaker(db_engine, expire_on_commit=False, autoflush=False)

    async def override_get_db():
        async with session_factory() as db:
            yield db

    app.dependency_overrides[deps.get_db] = override_get_db
    app.dependency_overrides[deps.get_stripe_client] = lambda: mock_stripe
    app.dependency_overrides[deps.get_notification_client] = lambda: mock_notifier

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
