"""Unit tests for the super-admin services: plan sync and manual linking."""

import pytest
from sqlalchemy import func, select

from totaldash import crud, schemas
from totaldash.billing.link_service import SubscriptionLinkService
from totaldash.billing.plan_sync_service import PlanSyncService
from totaldash.core.exceptions import AuthorizationError
from totaldash.models import Plan
from tests.fixtures.common import create_plan, provider_subscription

PRICES = [
    schemas.ProviderPrice(
        id="price_starter",
        unit_amount=2900,
        interval="month",
        product_id="prod_starter",
        product_name="Starter",
        product_description="For small agencies",
    ),
    schemas.ProviderPrice(
        id="price_pro",
        unit_amount=9900,
        interval="month",
        product_id="prod_pro",
        product_name="Pro",
    ),
    schemas.ProviderPrice(
        id="price_pro_yearly",
        unit_amount=99000,
        interval="year",
        product_id="prod_pro",
        product_name="Pro",
    ),
]


class TestPlanSync:
    async def test_non_admin_is_rejected_before_provider_call(
        self, db_session, mock_stripe, tenant_caller
    ):
        service = PlanSyncService(db_session, mock_stripe)

        with pytest.raises(AuthorizationError):
            await service.sync_plans(tenant_caller)

        mock_stripe.list_active_recurring_prices.assert_not_called()

    async def test_creates_monthly_plans(self, db_session, mock_stripe, super_admin):
        mock_stripe.list_active_recurring_prices.return_value = PRICES

        result = await PlanSyncService(db_session, mock_stripe).sync_plans(super_admin)

        assert result == schemas.PlanSyncResult(synced=2, updated=0, new=2)
        pro = await crud.plan.get_by_provider_price(db_session, provider_price_id="price_pro")
        assert pro.name == "Pro"
        assert pro.price_monthly_cents == 9900
        assert pro.max_clients == -1
        assert pro.trial_duration_days == 0
        assert pro.is_active is True
        assert await crud.plan.get_by_provider_price(
            db_session, provider_price_id="price_pro_yearly"
        ) is None

    async def test_second_run_only_updates(self, db_session, mock_stripe, super_admin):
        mock_stripe.list_active_recurring_prices.return_value = PRICES
        service = PlanSyncService(db_session, mock_stripe)

        await service.sync_plans(super_admin)
        result = await service.sync_plans(super_admin)

        assert result == schemas.PlanSyncResult(synced=2, updated=2, new=0)
        assert await db_session.scalar(select(func.count()).select_from(Plan)) == 2

    async def test_update_keeps_operator_limits(self, db_session, mock_stripe, super_admin):
        await create_plan(db_session, name="Starter (old)", price_monthly_cents=1900)
        mock_stripe.list_active_recurring_prices.return_value = PRICES[:1]

        result = await PlanSyncService(db_session, mock_stripe).sync_plans(super_admin)

        assert result.updated == 1
        plan = await crud.plan.get_by_provider_price(db_session, provider_price_id="price_starter")
        assert plan.name == "Starter"
        assert plan.price_monthly_cents == 2900
        assert plan.max_clients == 5
        assert plan.trial_duration_days == 14


class TestLinkSubscription:
    async def test_links_custom_subscription(self, db_session, mock_stripe, super_admin, tenant_id):
        mock_stripe.get_subscription.return_value = provider_subscription(
            id="sub_custom",
            status="active",
            customer_id="cus_enterprise",
            price=schemas.ProviderPrice(
                id="price_custom", unit_amount=45000, interval="month", product_name="Enterprise"
            ),
        )
        service = SubscriptionLinkService(db_session, mock_stripe)

        linked = await service.link_subscription(super_admin, tenant_id, "sub_custom")

        mock_stripe.get_subscription.assert_awaited_once_with("sub_custom", expand_product=True)
        assert linked.tenant_id == tenant_id
        assert linked.custom_pricing is True
        assert linked.plan_id is None
        assert linked.status == schemas.SubscriptionStatus.ACTIVE
        assert linked.provider_customer_id == "cus_enterprise"
        assert linked.snapshot_plan_name == "Enterprise"
        assert linked.snapshot_price_monthly_cents == 45000
        assert linked.snapshot_max_clients == -1
        assert linked.snapshot_max_agents == -1
        assert linked.snapshot_max_team_members == -1

    async def test_relinking_overwrites_the_same_row(
        self, db_session, mock_stripe, super_admin, tenant_id
    ):
        service = SubscriptionLinkService(db_session, mock_stripe)
        mock_stripe.get_subscription.return_value = provider_subscription(
            id="sub_first", status="active"
        )
        first = await service.link_subscription(super_admin, tenant_id, "sub_first")
        mock_stripe.get_subscription.return_value = provider_subscription(
            id="sub_second", status="past_due"
        )

        second = await service.link_subscription(super_admin, tenant_id, "sub_second")

        assert second.id == first.id
        assert second.provider_subscription_id == "sub_second"
        assert second.status == schemas.SubscriptionStatus.PAST_DUE
        assert second.snapshot_plan_name == "Custom Plan"

    async def test_non_admin_is_rejected(self, db_session, mock_stripe, tenant_caller, tenant_id):
        service = SubscriptionLinkService(db_session, mock_stripe)

        with pytest.raises(AuthorizationError):
            await service.link_subscription(tenant_caller, tenant_id, "sub_custom")

        mock_stripe.get_subscription.assert_not_called()
