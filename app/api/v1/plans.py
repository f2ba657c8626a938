from fastapi import APIRouter, Depends, Query
from typing import List

from app.api.deps import get_current_user
from app.billing import plans
from app.core.exceptions import PlanNotFoundError
from app.schemas.plan import BillingInterval, SubscriptionPlanConfig, UsageLimits, UsageSummary
from app.schemas.user import User

router = APIRouter(prefix="/plans", tags=["Plans"])


@router.get("/", response_model=List[SubscriptionPlanConfig])
async def list_plans(interval: BillingInterval = Query("month")):
    return plans.list_plans(interval)


@router.get("/features")
async def feature_descriptions():
    return dict(plans.FEATURE_DESCRIPTIONS)


@router.get("/discounts")
async def discounts():
    """Annual discount per plan."""
    return plans.plan_summaries()


@router.get("/usage", response_model=UsageSummary)
async def usage_summary(user: User = Depends(get_current_user)):
    """Usage meters for the signed-in user."""
    return plans.get_usage_summary(user)


@router.get("/{plan_id}", response_model=SubscriptionPlanConfig)
async def get_plan(plan_id: str, interval: BillingInterval = Query("month")):
    plan = plans.get_plan_by_id(plan_id, interval)
    if plan is None:
        raise PlanNotFoundError(plan_id)
    return plan


@router.get("/{plan_id}/limits", response_model=UsageLimits)
async def get_limits(plan_id: str):
    limits = plans.get_usage_limits(plan_id)
    if limits is None:
        raise PlanNotFoundError(plan_id)
    return limits


@router.get("/{plan_id}/features/{feature}")
async def get_feature_access(plan_id: str, feature: str):
    return {"plan": plan_id, "feature": feature, "enabled": plans.check_feature_access(plan_id, feature)}


@router.get("/{plan_id}/price")
async def get_price(plan_id: str, interval: BillingInterval = Query("month")):
    plan = plans.get_plan_by_id(plan_id, interval)
    if plan is None:
        raise PlanNotFoundError(plan_id)
    return {"plan": plan_id, "price": plan.price, "formatted": plans.format_price(plan.price, plan.interval)}
