from pydantic import Field
from typing import Any, Dict, List, Literal, Optional
from datetime import datetime

from app.schemas.base import CamelModel, utcnow

SubscriptionPlan = Literal["free", "pro", "enterprise"]
SubscriptionStatus = Literal["active", "canceled", "past_due", "incomplete"]


class SubscriptionInfo(CamelModel):
    """Billing state of a user."""
    plan: SubscriptionPlan = "free"
    status: SubscriptionStatus = "active"
    current_period_end: datetime = Field(default_factory=utcnow)
    customer_id: str = ""  # Stripe customer ID
    subscription_id: Optional[str] = None  # Stripe subscription ID


class UsageInfo(CamelModel):
    """Generation counters since the last reset."""
    images_generated: int = 0
    videos_generated: int = 0
    storage_used: float = 0  # in MB
    last_reset: datetime = Field(default_factory=utcnow)


class BrandKit(CamelModel):
    logo: Optional[str] = None
    colors: List[str] = Field(default_factory=list)
    fonts: List[str] = Field(default_factory=list)
    templates: List[str] = Field(default_factory=list)


class User(CamelModel):
    """Application user record, one per authenticated identity."""
    uid: str
    email: str
    display_name: str
    photo_url: Optional[str] = Field(default=None, alias="photoURL")
    subscription: SubscriptionInfo = Field(default_factory=SubscriptionInfo)
    usage: UsageInfo = Field(default_factory=UsageInfo)
    brand_kit: BrandKit = Field(default_factory=BrandKit)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ProfileUpdate(CamelModel):
    """Partial user; only the fields that are set get written."""
    display_name: Optional[str] = None
    photo_url: Optional[str] = Field(default=None, alias="photoURL")
    subscription: Optional[SubscriptionInfo] = None
    usage: Optional[UsageInfo] = None
    brand_kit: Optional[BrandKit] = None

    def to_updates(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class SignUpForm(CamelModel):
    email: str
    password: str
    display_name: str
    agree_to_terms: bool = False


class SignInForm(CamelModel):
    email: str
    password: str
    remember_me: bool = False


class PasswordResetRequest(CamelModel):
    email: str


class GoogleSignInRequest(CamelModel):
    """OAuth credential obtained by the browser after the consent window closed."""
    id_token: Optional[str] = None
    access_token: Optional[str] = None
