from pydantic import Field
from typing import Literal

from app.schemas.base import CamelModel
from app.schemas.user import SubscriptionPlan

BillingInterval = Literal["month", "year"]


class PlanFeatures(CamelModel):
    images_per_month: int
    videos_per_month: int
    storage_gb: int = Field(alias="storageGB")
    priority: bool
    team_members: int
    api_access: bool
    commercial_rights: bool
    custom_branding: bool
    advanced_models: bool

    class Config:
        frozen = True


class SubscriptionPlanConfig(CamelModel):
    """Static plan definition. Not user data."""
    id: SubscriptionPlan
    name: str
    price: int  # in cents
    interval: BillingInterval
    features: PlanFeatures
    popular: bool = False
    stripe_price_id: str = ""

    class Config:
        frozen = True


class UsageLimits(CamelModel):
    images: int
    videos: int
    storage: int  # in MB


class UsageMeter(CamelModel):
    used: float
    limit: float
    percent: float


class UsageSummary(CamelModel):
    plan: SubscriptionPlan
    images: UsageMeter
    videos: UsageMeter
    storage: UsageMeter  # in GB
