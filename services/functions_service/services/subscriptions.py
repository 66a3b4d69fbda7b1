"""
Subscription lifecycle driven by Stripe webhook events.

Each handler takes the event's data object and updates the coach profile(s)
it refers to. Unhandled event types are acknowledged and ignored.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Optional

from libs.common.datetime_utils import utc_now
from libs.common.emails.client import EmailClient
from libs.common.errors import FieldValidationError
from libs.common.logging import get_logger
from libs.remote.client import RemoteDataClient, eq
from services.coaching_service.schemas import SubscriptionStatusEnum
from services.coaching_service.services import profile_service
from services.functions_service.services.coach_accounts import (
    provision_coach_account,
    resolve_plan,
)
from services.functions_service.stripe_client import StripeClient, WebhookEvent

logger = get_logger(__name__)

PAID_PERIOD = timedelta(days=30)
GRACE_PERIOD = timedelta(days=7)


def _timestamp(value: Optional[int]) -> Optional[datetime]:
    return datetime.fromtimestamp(value, tz=timezone.utc) if value else None


def _subscription_price(subscription: dict) -> Optional[str]:
    items = (subscription.get("items") or {}).get("data") or []
    if not items:
        return None
    return (items[0].get("price") or {}).get("id")


async def checkout_completed(
    remote: RemoteDataClient,
    stripe: StripeClient,
    email_client: Optional[EmailClient],
    session: dict,
) -> None:
    full = await stripe.retrieve_checkout_session(session["id"])
    if not full.customer_email:
        raise FieldValidationError(
            f"Checkout session {full.id} has no customer email", field="customer_email"
        )
    await provision_coach_account(
        remote,
        email_client,
        email=full.customer_email,
        name=full.customer_name or "Coach",
        plan=resolve_plan(full.price_id),
        stripe_customer_id=full.customer_id,
        stripe_subscription_id=full.subscription_id,
    )


async def subscription_created(remote: RemoteDataClient, subscription: dict) -> None:
    price_id = _subscription_price(subscription)
    if not price_id:
        logger.error("No price on subscription %s", subscription.get("id"))
        return
    await profile_service.apply_subscription(
        remote,
        match=eq("stripe_customer_id", subscription.get("customer")),
        status=subscription.get("status", SubscriptionStatusEnum.ACTIVE.value),
        plan=resolve_plan(price_id),
        start_date=_timestamp(subscription.get("created")),
        end_date=_timestamp(subscription.get("current_period_end")),
        stripe_subscription_id=subscription.get("id"),
    )


async def subscription_updated(remote: RemoteDataClient, subscription: dict) -> None:
    price_id = _subscription_price(subscription)
    if not price_id:
        logger.error("No price on subscription %s", subscription.get("id"))
        return
    await profile_service.apply_subscription(
        remote,
        match=eq("stripe_subscription_id", subscription["id"]),
        status=subscription.get("status", SubscriptionStatusEnum.ACTIVE.value),
        plan=resolve_plan(price_id),
        end_date=_timestamp(subscription.get("current_period_end")),
    )


async def subscription_deleted(remote: RemoteDataClient, subscription: dict) -> None:
    await profile_service.apply_subscription(
        remote,
        match=eq("stripe_subscription_id", subscription["id"]),
        status=SubscriptionStatusEnum.CANCELED.value,
        end_date=utc_now(),
    )


async def invoice_paid(remote: RemoteDataClient, invoice: dict) -> None:
    await profile_service.apply_subscription(
        remote,
        match=eq("stripe_customer_id", invoice.get("customer")),
        status=SubscriptionStatusEnum.ACTIVE.value,
        end_date=utc_now() + PAID_PERIOD,
    )


async def invoice_failed(remote: RemoteDataClient, invoice: dict) -> None:
    await profile_service.apply_subscription(
        remote,
        match=eq("stripe_customer_id", invoice.get("customer")),
        status=SubscriptionStatusEnum.PAST_DUE.value,
        end_date=utc_now() + GRACE_PERIOD,
    )


async def handle_event(
    remote: RemoteDataClient,
    stripe: StripeClient,
    email_client: Optional[EmailClient],
    event: WebhookEvent,
) -> bool:
    """Apply one webhook event. Returns ``False`` for ignored event types."""
    handlers: dict[str, Callable[[dict], Awaitable[Any]]] = {
        "checkout.session.completed": lambda obj: checkout_completed(
            remote, stripe, email_client, obj
        ),
        "customer.subscription.created": lambda obj: subscription_created(remote, obj),
        "customer.subscription.updated": lambda obj: subscription_updated(remote, obj),
        "customer.subscription.deleted": lambda obj: subscription_deleted(remote, obj),
        "invoice.payment_succeeded": lambda obj: invoice_paid(remote, obj),
        "invoice.payment_failed": lambda obj: invoice_failed(remote, obj),
    }
    handler = handlers.get(event.type)
    if handler is None:
        logger.info(f"Ignoring Stripe event {event.type}")
        return False

    logger.info(
        f"Processing Stripe event {event.type}",
        extra={"extra_fields": {"event_id": event.id}},
    )
    await handler(event.object)
    return True
