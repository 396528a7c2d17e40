"""Public plan catalog endpoints."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from totaldash import crud, schemas
from totaldash.api import deps
from totaldash.api.router import TrailingSlashRouter
from totaldash.billing.plan_logic import format_price
from totaldash.core.exceptions import NotFoundException

router = TrailingSlashRouter()


@router.get("/min-price", response_model=schemas.MinPlanPrice)
async def get_min_plan_price(db: AsyncSession = Depends(deps.get_db)) -> schemas.MinPlanPrice:
    """Get the price of the cheapest active plan."""
    plan = await crud.plan.get_cheapest_active(db)
    if plan is None:
        raise NotFoundException("No active plans")

    return schemas.MinPlanPrice(
        price_cents=plan.price_monthly_cents,
        price_formatted=format_price(plan.price_monthly_cents),
        plan_name=plan.name,
    )
