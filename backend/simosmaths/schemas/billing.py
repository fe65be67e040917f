from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, Field, field_validator

from .base import ApiModel


class SubscriptionCreateRequest(ApiModel):
    plan: str
    period: str
    success_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("successUrl", "success_url")
    )
    cancel_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("cancelUrl", "cancel_url")
    )

    @field_validator("plan", "period", mode="before")
    @classmethod
    def _normalize(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value


class SubscriptionCreateResponse(ApiModel):
    session_id: str
    url: Optional[str] = None


class SubscriptionCancelResponse(ApiModel):
    success: bool = True
    message: str
    subscription_id: Optional[str] = None
    cancel_at_period_end: bool = False


class TrialStartRequest(ApiModel):
    plan: str

    @field_validator("plan", mode="before")
    @classmethod
    def _normalize(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value


class TrialStartResponse(ApiModel):
    success: bool = True
    trial_ends_at: datetime
    message: str


class SubscriptionRecord(ApiModel):
    id: Optional[str] = None
    stripe_subscription_id: Optional[str] = None
    plan: Optional[str] = None
    period: Optional[str] = None
    status: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    trial_start: Optional[datetime] = None
    trial_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    amount: Optional[int] = None
    currency: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify(cls, value):
        return str(value) if value is not None else None


class SubscriptionStatusResponse(ApiModel):
    subscription: Optional[SubscriptionRecord] = None
    has_premium_access: bool = False


class PaymentRecord(ApiModel):
    stripe_invoice_id: str
    stripe_payment_intent_id: Optional[str] = None
    amount: int = 0
    currency: Optional[str] = None
    status: str
    receipt_url: Optional[str] = None
    created_at: Optional[datetime] = None


class PaymentDetailsResponse(ApiModel):
    session_id: str
    status: Optional[str] = None
    amount: Optional[int] = None
    currency: Optional[str] = None
    customer_email: Optional[str] = None
    plan: Optional[str] = None
    period: Optional[str] = None


class ProductPrice(ApiModel):
    id: Optional[str] = None
    amount: Optional[int] = None
    currency: Optional[str] = None
    interval: Optional[str] = None


class Product(ApiModel):
    id: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[ProductPrice] = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class WebhookAck(ApiModel):
    received: bool = True
