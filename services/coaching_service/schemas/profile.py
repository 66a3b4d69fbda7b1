"""Profile schemas: identity, role and subscription snapshot."""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class RoleEnum(str, Enum):
    COACH = "coach"
    CLIENT = "client"


class SubscriptionStatusEnum(str, Enum):
    """Mirror of the payment provider's subscription statuses."""

    TRIALING = "trialing"
    ACTIVE = "active"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    INCOMPLETE = "incomplete"
    UNPAID = "unpaid"


class Profile(BaseModel):
    id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    role: RoleEnum
    avatar_url: Optional[str] = None

    # Subscription (coaches only)
    subscription_plan: Optional[str] = None
    subscription_status: Optional[str] = None
    subscription_start_date: Optional[datetime] = None
    subscription_end_date: Optional[datetime] = None
    stripe_customer_id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    plan_limits: Optional[dict[str, Any]] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(extra="ignore")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def is_coach(self) -> bool:
        return self.role == RoleEnum.COACH


class ProfileUpdate(BaseModel):
    """Self-service profile fields. Role and subscription are not editable here."""

    first_name: Optional[str] = Field(None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    avatar_url: Optional[str] = None
