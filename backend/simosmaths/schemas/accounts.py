from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from .base import ApiModel


class SignUpRequest(ApiModel):
    email: str
    password: str = Field(min_length=6)
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class LoginRequest(ApiModel):
    email: str
    password: str


class AuthSession(ApiModel):
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    token_type: str = "bearer"
    expires_in: Optional[int] = None
    user_id: Optional[str] = None
    email: Optional[str] = None
    # Set when sign-up requires email confirmation before a session exists.
    confirmation_required: bool = False


class Profile(ApiModel):
    id: str
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[str] = None
    subscription_tier: Optional[str] = None
    subscription_status: Optional[str] = None
    trial_ends_at: Optional[datetime] = None
    stripe_customer_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("id", mode="before")
    @classmethod
    def _stringify(cls, value):
        return str(value) if value is not None else value


class ProfileUpdateRequest(ApiModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class Child(ApiModel):
    id: str
    parent_id: str
    name: str
    school_level: Optional[str] = None
    created_at: Optional[datetime] = None

    @field_validator("id", "parent_id", mode="before")
    @classmethod
    def _stringify(cls, value):
        return str(value) if value is not None else value


class ChildCreateRequest(ApiModel):
    name: str = Field(min_length=1, max_length=120)
    school_level: Optional[str] = None


class ChildUpdateRequest(ApiModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=120)
    school_level: Optional[str] = None
