"""
Subscription plan catalog.

Plans are static configuration: prices in cents, Stripe price ids from the
environment. Lookups never touch the network.
"""
import math
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from app.core.config import settings
from app.schemas.plan import (
    BillingInterval,
    PlanFeatures,
    SubscriptionPlanConfig,
    UsageLimits,
    UsageMeter,
    UsageSummary,
)
from app.schemas.user import User

FREE_FEATURES = PlanFeatures(
    images_per_month=10,
    videos_per_month=3,
    storage_gb=1,
    priority=False,
    team_members=1,
    api_access=False,
    commercial_rights=False,
    custom_branding=False,
    advanced_models=False,
)

PRO_FEATURES = PlanFeatures(
    images_per_month=500,
    videos_per_month=50,
    storage_gb=25,
    priority=True,
    team_members=3,
    api_access=True,
    commercial_rights=True,
    custom_branding=False,
    advanced_models=True,
)

ENTERPRISE_FEATURES = PlanFeatures(
    images_per_month=2000,
    videos_per_month=200,
    storage_gb=100,
    priority=True,
    team_members=10,
    api_access=True,
    commercial_rights=True,
    custom_branding=True,
    advanced_models=True,
)

SUBSCRIPTION_PLANS: Mapping[str, SubscriptionPlanConfig] = MappingProxyType({
    "free": SubscriptionPlanConfig(
        id="free",
        name="Free",
        price=0,
        interval="month",
        features=FREE_FEATURES,
        stripe_price_id="",  # No Stripe price ID for free plan
    ),
    "pro": SubscriptionPlanConfig(
        id="pro",
        name="Pro",
        price=2900,  # $29/month
        interval="month",
        features=PRO_FEATURES,
        popular=True,
        stripe_price_id=settings.STRIPE_PRO_MONTHLY_PRICE_ID,
    ),
    "enterprise": SubscriptionPlanConfig(
        id="enterprise",
        name="Enterprise",
        price=9900,  # $99/month
        interval="month",
        features=ENTERPRISE_FEATURES,
        stripe_price_id=settings.STRIPE_ENTERPRISE_MONTHLY_PRICE_ID,
    ),
})

# Annual plans with 20% discount
ANNUAL_SUBSCRIPTION_PLANS: Mapping[str, SubscriptionPlanConfig] = MappingProxyType({
    "pro": SubscriptionPlanConfig(
        id="pro",
        name="Pro",
        price=27840,  # $278.40/year
        interval="year",
        features=PRO_FEATURES,
        popular=True,
        stripe_price_id=settings.STRIPE_PRO_YEARLY_PRICE_ID,
    ),
    "enterprise": SubscriptionPlanConfig(
        id="enterprise",
        name="Enterprise",
        price=95040,  # $950.40/year
        interval="year",
        features=ENTERPRISE_FEATURES,
        stripe_price_id=settings.STRIPE_ENTERPRISE_YEARLY_PRICE_ID,
    ),
})

FEATURE_DESCRIPTIONS: Mapping[str, str] = MappingProxyType({
    "images_per_month": "AI-generated images per month",
    "videos_per_month": "AI-generated videos per month",
    "storage_gb": "Cloud storage for your assets",
    "priority": "Priority processing queue",
    "team_members": "Team collaboration seats",
    "api_access": "Programmatic API access",
    "commercial_rights": "Commercial usage rights",
    "custom_branding": "Remove watermarks & branding",
    "advanced_models": "Access to latest AI models",
})

# Generation queue priority per plan; higher runs first
JOB_PRIORITIES: Mapping[str, int] = MappingProxyType({
    "free": 1,
    "pro": 2,
    "enterprise": 3,
})


def list_plans(interval: BillingInterval = "month") -> List[SubscriptionPlanConfig]:
    plans = ANNUAL_SUBSCRIPTION_PLANS if interval == "year" else SUBSCRIPTION_PLANS
    return list(plans.values())


def get_plan_by_id(plan_id: str, interval: BillingInterval = "month") -> Optional[SubscriptionPlanConfig]:
    plans = ANNUAL_SUBSCRIPTION_PLANS if interval == "year" else SUBSCRIPTION_PLANS
    return plans.get(plan_id)


def get_plan_by_price_id(price_id: str) -> Optional[SubscriptionPlanConfig]:
    """Find the plan billed under a Stripe price id. The empty id matches nothing."""
    if not price_id:
        return None
    for plan in list(SUBSCRIPTION_PLANS.values()) + list(ANNUAL_SUBSCRIPTION_PLANS.values()):
        if plan.stripe_price_id == price_id:
            return plan
    return None


def get_usage_limits(plan_id: str) -> Optional[UsageLimits]:
    """Monthly limits of a plan, storage converted to MB."""
    plan = get_plan_by_id(plan_id)
    if plan is None:
        return None
    return UsageLimits(
        images=plan.features.images_per_month,
        videos=plan.features.videos_per_month,
        storage=plan.features.storage_gb * 1024,
    )


def check_feature_access(plan_id: str, feature: str) -> bool:
    """Whether a plan grants a feature. Numeric features count as granted when non-zero."""
    plan = get_plan_by_id(plan_id)
    if plan is None or feature not in PlanFeatures.model_fields:
        return False
    return bool(getattr(plan.features, feature))


def format_price(price: int, interval: BillingInterval) -> str:
    return f"${price / 100:.2f}/{interval}"


def get_discount_amount(monthly_price: int, yearly_price: int) -> int:
    """Annual discount in whole percent against twelve monthly payments, rounded half up."""
    annual_equivalent = monthly_price * 12
    if annual_equivalent <= 0:
        return 0
    discount = (annual_equivalent - yearly_price) / annual_equivalent * 100
    return math.floor(discount + 0.5)


def get_job_priority(plan_id: str) -> int:
    return JOB_PRIORITIES.get(plan_id, JOB_PRIORITIES["free"])


def _meter(used: float, limit: float) -> UsageMeter:
    percent = min(used / limit * 100, 100) if limit > 0 else 100
    return UsageMeter(used=used, limit=limit, percent=round(percent, 2))


def get_usage_summary(user: User) -> UsageSummary:
    """Dashboard usage meters for a user. Unknown plans are metered as free."""
    plan = get_plan_by_id(user.subscription.plan) or SUBSCRIPTION_PLANS["free"]
    features = plan.features
    return UsageSummary(
        plan=plan.id,
        images=_meter(user.usage.images_generated, features.images_per_month),
        videos=_meter(user.usage.videos_generated, features.videos_per_month),
        storage=_meter(round(user.usage.storage_used / 1024, 2), features.storage_gb),
    )


def plan_summaries() -> Dict[str, Dict[str, int]]:
    """Monthly vs annual price and discount for plans billed both ways."""
    summaries = {}
    for plan_id, annual in ANNUAL_SUBSCRIPTION_PLANS.items():
        monthly = SUBSCRIPTION_PLANS[plan_id]
        summaries[plan_id] = {
            "monthly": monthly.price,
            "yearly": annual.price,
            "discount": get_discount_amount(monthly.price, annual.price),
        }
    return summaries
