"""Stripe checkout session creation and lookup."""

from fastapi import APIRouter, Depends, Request

from libs.common.config import get_settings
from libs.common.logging import get_logger
from libs.common.rate_limit import payment_limit
from services.functions_service.dependencies import get_stripe_client
from services.functions_service.schemas import (
    CheckoutSessionCreated,
    CheckoutSessionDetails,
    CheckoutSessionLookup,
    CheckoutSessionRequest,
    SuccessResponse,
)
from services.functions_service.services.coach_accounts import resolve_plan
from services.functions_service.stripe_client import StripeClient

router = APIRouter(tags=["checkout"])
logger = get_logger(__name__)


@router.post(
    "/create-checkout-session",
    response_model=SuccessResponse[CheckoutSessionCreated],
)
@payment_limit
async def create_checkout_session(
    request: Request,
    payload: CheckoutSessionRequest,
    stripe: StripeClient = Depends(get_stripe_client),
):
    """Start a subscription checkout for one plan price."""
    settings = get_settings()
    settings.require("BASE_URL")
    session = await stripe.create_checkout_session(
        price_id=payload.price_id,
        plan_name=payload.plan_name,
        success_url=f"{settings.BASE_URL}/setup-account?session_id={{CHECKOUT_SESSION_ID}}",
        cancel_url=f"{settings.BASE_URL}/pricing",
    )
    return SuccessResponse(
        data=CheckoutSessionCreated(session_id=session.id, url=session.url)
    )


@router.post(
    "/get-checkout-session",
    response_model=SuccessResponse[CheckoutSessionDetails],
)
@payment_limit
async def get_checkout_session(
    request: Request,
    payload: CheckoutSessionLookup,
    stripe: StripeClient = Depends(get_stripe_client),
):
    """Customer details and ids of a completed checkout, for account setup."""
    session = await stripe.retrieve_checkout_session(payload.session_id)
    return SuccessResponse(
        data=CheckoutSessionDetails(
            id=session.id,
            customer_details=session.customer_details,
            payment_status=session.payment_status,
            customer=session.customer_id,
            subscription=session.subscription_id,
            price_id=session.price_id,
            plan_name=session.metadata.get("plan_name") or resolve_plan(session.price_id),
        )
    )
