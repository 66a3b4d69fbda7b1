"""Stripe webhook endpoint (no auth; verified by Stripe-Signature)."""

from fastapi import APIRouter, Depends, Request

from libs.common.emails.client import EmailClient
from libs.common.logging import get_logger
from libs.remote.client import RemoteDataClient
from services.functions_service.dependencies import (
    get_admin_remote,
    get_email_client,
    get_stripe_client,
)
from services.functions_service.services.subscriptions import handle_event
from services.functions_service.stripe_client import StripeClient

router = APIRouter(tags=["webhooks"])
logger = get_logger(__name__)


@router.post("/stripe-webhook")
async def stripe_webhook(
    request: Request,
    stripe: StripeClient = Depends(get_stripe_client),
    remote: RemoteDataClient = Depends(get_admin_remote),
    email_client: EmailClient = Depends(get_email_client),
):
    raw = await request.body()
    event = stripe.construct_event(raw, request.headers.get("stripe-signature"))
    handled = await handle_event(remote, stripe, email_client, event)
    return {"received": True, "handled": handled}
