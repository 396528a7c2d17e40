"""Unit tests for starting and canceling trials."""

from datetime import timedelta
from unittest.mock import AsyncMock

import httpx
import pytest
from sqlalchemy.exc import SQLAlchemyError

from totaldash import crud, schemas
from totaldash.billing.trial_service import TrialService
from totaldash.core.config import Settings
from totaldash.core.exceptions import ConflictError, NotFoundException, ProviderError
from totaldash.integrations.notification_client import NotificationClient, NotificationTemplate
from tests.fixtures.common import create_plan, create_trialing_subscription, naive_now


@pytest.fixture
def trial_service(db_session, mock_stripe, mock_notifier):
    return TrialService(db_session, mock_stripe, mock_notifier)


class TestStartTrial:
    async def test_starter_trial(
        self, trial_service, db_session, tenant_id, starter_plan, mock_stripe
    ):
        before = naive_now()

        result = await trial_service.start_trial(tenant_id, "owner@agency.com")

        assert result.success is True
        assert result.subscription_id == "sub_trial"
        assert result.client_secret == "seti_secret_123"
        assert result.skipped_provider is False
        expected_end = before + timedelta(days=14)
        assert expected_end <= result.trial_ends_at <= expected_end + timedelta(minutes=1)

        mock_stripe.find_or_create_customer.assert_awaited_once_with(
            "owner@agency.com", metadata={"tenant_id": str(tenant_id)}
        )
        mock_stripe.create_trial_subscription.assert_awaited_once_with(
            "cus_123",
            "price_starter",
            14,
            metadata={"tenant_id": str(tenant_id), "plan_id": str(starter_plan.id)},
        )

        stored = await crud.subscription.get_by_tenant(db_session, tenant_id=tenant_id)
        assert stored.status == "trialing"
        assert stored.plan_id == starter_plan.id
        assert stored.provider_subscription_id == "sub_trial"
        assert stored.billing_email == "owner@agency.com"
        assert stored.snapshot_plan_name == "Starter"
        assert stored.snapshot_price_monthly_cents == 2900
        assert stored.snapshot_max_clients == 5
        assert stored.custom_pricing is False

    async def test_provider_trial_end_wins(
        self, trial_service, tenant_id, starter_plan, mock_stripe
    ):
        trial_end = naive_now() + timedelta(days=14, hours=3)
        mock_stripe.create_trial_subscription.return_value = schemas.ProviderTrialSubscription(
            subscription=schemas.ProviderSubscription(
                id="sub_trial", status="trialing", trial_end=trial_end
            ),
        )

        result = await trial_service.start_trial(tenant_id, "owner@agency.com")

        assert result.trial_ends_at == trial_end
        assert result.client_secret is None

    async def test_sends_welcome_notification(
        self, trial_service, tenant_id, starter_plan, mock_notifier
    ):
        await trial_service.start_trial(tenant_id, "owner@agency.com")

        mock_notifier.send_best_effort.assert_awaited_once()
        template, recipient, variables = mock_notifier.send_best_effort.await_args.args
        assert template == NotificationTemplate.TRIAL_WELCOME
        assert recipient == "owner@agency.com"
        assert variables["planName"] == "Starter"
        assert variables["userName"] == "owner"

    async def test_zero_day_trial_skips_provider(
        self, trial_service, db_session, tenant_id, mock_stripe, mock_notifier
    ):
        await create_plan(db_session, trial_duration_days=0)

        result = await trial_service.start_trial(tenant_id, "owner@agency.com")

        assert result.success is True
        assert result.skipped_provider is True
        assert result.subscription_id is None
        mock_stripe.find_or_create_customer.assert_not_called()
        mock_stripe.create_trial_subscription.assert_not_called()
        mock_notifier.send_best_effort.assert_not_called()
        assert await crud.subscription.get_by_tenant(db_session, tenant_id=tenant_id) is None

    async def test_missing_trial_plan(self, trial_service, tenant_id):
        with pytest.raises(NotFoundException, match="Starter"):
            await trial_service.start_trial(tenant_id, "owner@agency.com")

    async def test_plan_without_price(self, trial_service, db_session, tenant_id, mock_stripe):
        await create_plan(db_session, provider_price_id=None)

        with pytest.raises(ConflictError):
            await trial_service.start_trial(tenant_id, "owner@agency.com")

        mock_stripe.create_trial_subscription.assert_not_called()

    async def test_live_subscription_conflicts(
        self, trial_service, db_session, tenant_id, starter_plan, mock_stripe
    ):
        await create_trialing_subscription(db_session, tenant_id, starter_plan, status="active")

        with pytest.raises(ConflictError):
            await trial_service.start_trial(tenant_id, "owner@agency.com")

        mock_stripe.find_or_create_customer.assert_not_called()

    async def test_canceled_subscription_can_trial_again(
        self, trial_service, db_session, tenant_id, starter_plan
    ):
        await create_trialing_subscription(db_session, tenant_id, starter_plan, status="canceled")

        result = await trial_service.start_trial(tenant_id, "owner@agency.com")

        assert result.subscription_id == "sub_trial"
        stored = await crud.subscription.get_by_tenant(db_session, tenant_id=tenant_id)
        assert stored.status == "trialing"
        assert stored.canceled_at is None

    async def test_provider_failure_writes_nothing(
        self, trial_service, db_session, tenant_id, starter_plan, mock_stripe
    ):
        mock_stripe.create_trial_subscription.side_effect = ProviderError("card_declined")

        with pytest.raises(ProviderError):
            await trial_service.start_trial(tenant_id, "owner@agency.com")

        assert await crud.subscription.get_by_tenant(db_session, tenant_id=tenant_id) is None

    async def test_save_failure_cancels_provider_subscription(
        self, trial_service, tenant_id, starter_plan, mock_stripe, mock_notifier
    ):
        trial_service.repository.save_subscription = AsyncMock(
            side_effect=SQLAlchemyError("database unavailable")
        )

        with pytest.raises(SQLAlchemyError):
            await trial_service.start_trial(tenant_id, "owner@agency.com")

        mock_stripe.cancel_subscription.assert_awaited_once_with("sub_trial")
        mock_notifier.send_best_effort.assert_not_called()

    async def test_failed_compensation_still_raises_save_error(
        self, trial_service, tenant_id, starter_plan, mock_stripe
    ):
        trial_service.repository.save_subscription = AsyncMock(
            side_effect=SQLAlchemyError("database unavailable")
        )
        mock_stripe.cancel_subscription.side_effect = ProviderError("timeout")

        with pytest.raises(SQLAlchemyError):
            await trial_service.start_trial(tenant_id, "owner@agency.com")

    async def test_notification_failure_is_not_fatal(
        self, db_session, tenant_id, starter_plan, mock_stripe
    ):
        def reject(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="unavailable")

        config = Settings(NOTIFICATION_SERVICE_URL="http://notify.test/send", _env_file=None)
        notifier = NotificationClient(config, transport=httpx.MockTransport(reject))
        service = TrialService(db_session, mock_stripe, notifier)

        result = await service.start_trial(tenant_id, "owner@agency.com")

        assert result.success is True
        stored = await crud.subscription.get_by_tenant(db_session, tenant_id=tenant_id)
        assert stored.status == "trialing"


class TestCancelTrial:
    async def test_cancels_trial(
        self, trial_service, db_session, tenant_id, starter_plan, mock_stripe, mock_notifier
    ):
        await create_trialing_subscription(db_session, tenant_id, starter_plan)

        result = await trial_service.cancel_trial(tenant_id)

        assert result.success is True
        mock_stripe.cancel_subscription.assert_awaited_once_with("sub_123")
        stored = await crud.subscription.get_by_tenant(db_session, tenant_id=tenant_id)
        assert stored.status == "canceled"
        assert stored.provider_status == "canceled"
        assert stored.canceled_at is not None

        template, recipient, _ = mock_notifier.send_best_effort.await_args.args
        assert template == NotificationTemplate.SUBSCRIPTION_CANCELED
        assert recipient == "owner@agency.com"

    async def test_recipient_override(
        self, trial_service, db_session, tenant_id, starter_plan, mock_notifier
    ):
        await create_trialing_subscription(db_session, tenant_id, starter_plan)

        await trial_service.cancel_trial(tenant_id, recipient_email="admin@agency.com")

        _, recipient, _ = mock_notifier.send_best_effort.await_args.args
        assert recipient == "admin@agency.com"

    async def test_active_subscription_conflicts_and_is_untouched(
        self, trial_service, db_session, tenant_id, starter_plan, mock_stripe
    ):
        await create_trialing_subscription(
            db_session, tenant_id, starter_plan, status="active", provider_status="active"
        )

        with pytest.raises(ConflictError):
            await trial_service.cancel_trial(tenant_id)

        mock_stripe.cancel_subscription.assert_not_called()
        stored = await crud.subscription.get_by_tenant(db_session, tenant_id=tenant_id)
        assert stored.status == "active"
        assert stored.canceled_at is None

    async def test_trial_without_provider_subscription_conflicts(
        self, trial_service, db_session, tenant_id, starter_plan, mock_stripe
    ):
        await create_trialing_subscription(
            db_session, tenant_id, starter_plan, provider_subscription_id=None
        )

        with pytest.raises(ConflictError):
            await trial_service.cancel_trial(tenant_id)

        mock_stripe.cancel_subscription.assert_not_called()

    async def test_missing_subscription_is_conflict(self, trial_service, tenant_id, mock_stripe):
        with pytest.raises(ConflictError, match="no subscription"):
            await trial_service.cancel_trial(tenant_id)

        mock_stripe.cancel_subscription.assert_not_called()

    async def test_provider_failure_leaves_trial(
        self, trial_service, db_session, tenant_id, starter_plan, mock_stripe
    ):
        await create_trialing_subscription(db_session, tenant_id, starter_plan)
        mock_stripe.cancel_subscription.side_effect = ProviderError("timeout")

        with pytest.raises(ProviderError):
            await trial_service.cancel_trial(tenant_id)

        stored = await crud.subscription.get_by_tenant(db_session, tenant_id=tenant_id)
        assert stored.status == "trialing"
