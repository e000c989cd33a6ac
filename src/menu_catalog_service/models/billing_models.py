"""Billing, subscription and owner profile models."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from menu_catalog_service.models.catalog_models import EMAIL_PATTERN


class PlanType(str, Enum):
    """Premium plan billing period."""

    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle status."""

    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"


# Amounts are in minor units (paise)
PLAN_AMOUNTS: dict[PlanType, int] = {
    PlanType.MONTHLY: 29900,
    PlanType.YEARLY: 399900,
}
PLAN_MONTHS: dict[PlanType, int] = {
    PlanType.MONTHLY: 1,
    PlanType.YEARLY: 12,
}
PAYMENT_CURRENCY = "INR"
PAYMENT_STATUS_COMPLETED = "COMPLETED"


class PaymentVerification(BaseModel):
    """Gateway callback payload to verify a completed payment."""

    order_id: str = Field(..., min_length=1, description="Gateway order id")
    payment_id: str = Field(..., min_length=1, description="Gateway payment id")
    signature: str = Field(..., min_length=1, description="HMAC-SHA256 hex signature")
    plan_type: PlanType

    @field_validator("plan_type", mode="before")
    @classmethod
    def normalize_plan_type(cls, v: Any) -> Any:
        """Accept "monthly"/"yearly" in any case."""
        return v.strip().upper() if isinstance(v, str) else v


class Payment(BaseModel):
    """Recorded payment."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    owner_id: str
    amount: int
    currency: str = PAYMENT_CURRENCY
    status: str = PAYMENT_STATUS_COMPLETED
    order_id: str
    payment_id: str
    plan_type: PlanType
    created_at: datetime | None = None


class Subscription(BaseModel):
    """Subscription state stored on the owner."""

    model_config = ConfigDict(from_attributes=True)

    subscription_type: PlanType | None = None
    subscription_status: SubscriptionStatus | None = None
    subscription_start_date: datetime | None = None
    subscription_end_date: datetime | None = None


class PaymentResult(BaseModel):
    """Outcome of a verified payment."""

    success: bool = True
    message: str = "Payment verified successfully"
    subscription: Subscription
    payment: Payment


class BillingOverview(BaseModel):
    """Current subscription plus recent payment history."""

    subscription: Subscription
    payments: list[Payment]


class OwnerProfile(BaseModel):
    """Owner account as shown to the owner."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str | None = None
    name: str | None = None
    image: str | None = None
    email_verified: bool = False
    has_restaurant: bool = False
    created_at: datetime | None = None


class ProfilePatch(BaseModel):
    """Owner profile update."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    email: str | None = None
    image: str | None = None

    @field_validator("name", "email", "image", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        """Trim surrounding whitespace."""
        return v.strip() if isinstance(v, str) else v

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        """A provided name must not be blank."""
        if v is not None and not v:
            raise ValueError("Name must be a non-empty string")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str | None) -> str | None:
        """Validate account email format."""
        if v is not None and not EMAIL_PATTERN.match(v):
            raise ValueError("Please enter a valid email address")
        return v.lower() if v else v


class ProfileUpdate(BaseModel):
    """Result of a profile update."""

    message: str = "Profile updated successfully"
    profile: OwnerProfile
    email_changed: bool = False
    verification_email_sent: bool = False
