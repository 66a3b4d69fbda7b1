"""Request and response bodies of the serverless functions."""

from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from libs.common.emails.templates import CLIENT_INVITATION

T = TypeVar("T")


class SuccessResponse(BaseModel, Generic[T]):
    success: bool = True
    data: T


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------


class CheckoutSessionRequest(BaseModel):
    price_id: str = Field(..., min_length=1, alias="priceId")
    plan_name: str = Field(..., min_length=1, alias="planName")

    model_config = ConfigDict(populate_by_name=True)


class CheckoutSessionCreated(BaseModel):
    session_id: str
    url: Optional[str] = None


class CheckoutSessionLookup(BaseModel):
    session_id: str = Field(..., min_length=1, alias="sessionId")

    model_config = ConfigDict(populate_by_name=True)


class CheckoutSessionDetails(BaseModel):
    id: str
    customer_details: dict[str, Any] = Field(default_factory=dict)
    payment_status: Optional[str] = None
    customer: Optional[str] = None
    subscription: Optional[str] = None
    price_id: Optional[str] = None
    plan_name: Optional[str] = None


# ---------------------------------------------------------------------------
# Email
# ---------------------------------------------------------------------------


class SendEmailRequest(BaseModel):
    type: str = CLIENT_INVITATION
    to_email: EmailStr = Field(..., alias="client_email")
    recipient_name: str = Field(..., min_length=1, alias="client_name")
    coach_name: str = ""
    invitation_url: Optional[str] = None
    login_url: Optional[str] = None
    temp_password: Optional[str] = None
    plan_name: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class EmailSent(BaseModel):
    email_id: str
    recipient: str


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------


class InviteClientRequest(BaseModel):
    client_email: EmailStr = Field(..., alias="clientEmail")
    client_name: str = Field(..., min_length=1, alias="clientName")
    coach_id: str = Field(..., min_length=1, alias="coachId")

    model_config = ConfigDict(populate_by_name=True)


class InvitedClient(BaseModel):
    id: str
    email: str
    name: str
    invitation_token: str
    invitation_url: str
    email_sent: bool


# ---------------------------------------------------------------------------
# Coach accounts
# ---------------------------------------------------------------------------


class CheckoutReference(BaseModel):
    customer: Optional[str] = None
    subscription: Optional[str] = None


class CreateCoachAccountRequest(BaseModel):
    email: EmailStr
    name: str = Field(..., min_length=1)
    price_id: str = Field(..., min_length=1, alias="planId")
    checkout_session: CheckoutReference = Field(
        default_factory=CheckoutReference, alias="session"
    )

    model_config = ConfigDict(populate_by_name=True)


class CoachAccount(BaseModel):
    user_id: str
    email: str
    plan: str
    created: bool
    email_sent: bool
