"""Pydantic models for the Isolator Modal Analysis API."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional, Union

from pydantic import BaseModel, Field

# Form fields arrive as text ("1", "") or as numbers
FormNumber = Optional[Union[float, str]]

MAX_MOUNTING_LOCATIONS = 10


# --- Enums ---

class SubscriptionTier(str, Enum):
    FREE = "free"
    ESSENTIAL = "essential"
    PRO = "pro"


class ReportFormat(str, Enum):
    CSV = "csv"
    JSON = "json"


# --- Modal analysis ---

class MountingLocationIn(BaseModel):
    x: FormNumber = "0"
    y: FormNumber = "0"
    z: FormNumber = "0"
    stiffness_x: FormNumber = None
    stiffness_y: FormNumber = None
    stiffness_z: FormNumber = None


class CenterOfMassIn(BaseModel):
    x: FormNumber = "0"
    y: FormNumber = "0"
    z: FormNumber = "0"


def _identity_matrix() -> list[list[FormNumber]]:
    return [["1", "", ""], ["", "1", ""], ["", "", "1"]]


class ModalAnalysisRequest(BaseModel):
    """System parameters as entered on the configuration form.

    Values are passed to the engine unparsed; the engine owns coercion so
    the same messages reach the user whatever the transport.
    """
    mass: FormNumber = None
    inertia_matrix: list[list[FormNumber]] = Field(default_factory=_identity_matrix)
    center_of_mass: CenterOfMassIn = Field(default_factory=CenterOfMassIn)
    mounting_locations: list[MountingLocationIn] = Field(default_factory=list, max_length=MAX_MOUNTING_LOCATIONS)

    def to_form_data(self) -> dict:
        return self.model_dump()


class UsageResponse(BaseModel):
    used: int
    limit: Optional[int] = Field(None, description="None when unlimited")
    remaining: Optional[int] = Field(None, description="None when unlimited")
    subscribed: bool


class ModeOut(BaseModel):
    index: int
    description: str
    frequency_hz: float


class ModalAnalysisResponse(BaseModel):
    natural_frequencies: list[float]
    mode_descriptions: list[str]
    modes: list[ModeOut]
    usage: UsageResponse


# --- Auth ---

class SignUpRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=8, max_length=128)
    name: str = Field(default="", max_length=255)


class SignInRequest(BaseModel):
    email: str
    password: str


class UserResponse(BaseModel):
    id: str
    email: str
    name: str
    subscription_tier: str
    calculations_used: int


class AuthResponse(BaseModel):
    user: UserResponse
    token: str


# --- Billing ---

class CheckoutRequest(BaseModel):
    price_id: Optional[str] = Field(None, description="Explicit Stripe price; overrides tier")
    tier: SubscriptionTier = SubscriptionTier.ESSENTIAL


class CheckoutResponse(BaseModel):
    session_id: str
    checkout_url: Optional[str] = None


class CancelSubscriptionResponse(BaseModel):
    status: str
    user: UserResponse


class SubscriptionStatusResponse(BaseModel):
    subscription_tier: str
    subscribed: bool
    latest_payment_status: Optional[str] = None
    latest_payment_at: Optional[datetime] = None
