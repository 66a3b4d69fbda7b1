"""
Coach account provisioning after a successful checkout.

Used by the ``/create-coach-account`` endpoint, the ``checkout.session.completed``
webhook and ``scripts/users/create_coach.py``.
"""

import secrets
import string
from datetime import timedelta
from typing import Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.emails.client import EmailClient
from libs.common.emails.templates import COACH_WELCOME_WITH_PASSWORD, EmailContext
from libs.common.errors import CoachingError, NotFoundError
from libs.common.logging import get_logger
from libs.common.plan_limits import plan_for_price_id, snapshot
from libs.remote.client import RemoteDataClient, eq
from services.coaching_service import tables
from services.coaching_service.schemas import RoleEnum, SubscriptionStatusEnum
from services.coaching_service.services import profile_service
from services.functions_service.schemas import CoachAccount

logger = get_logger(__name__)

TRIAL_DAYS = 14
TEMP_PASSWORD_LENGTH = 12
PASSWORD_SYMBOLS = "!@#$%^&*"
FALLBACK_PLAN = "warm_up"


def generate_temp_password(length: int = TEMP_PASSWORD_LENGTH) -> str:
    """Random password with at least one upper, lower, digit and symbol."""
    pools = [
        string.ascii_uppercase,
        string.ascii_lowercase,
        string.digits,
        PASSWORD_SYMBOLS,
    ]
    alphabet = "".join(pools)
    chars = [secrets.choice(pool) for pool in pools]
    chars += [secrets.choice(alphabet) for _ in range(length - len(chars))]
    secrets.SystemRandom().shuffle(chars)
    return "".join(chars)


def resolve_plan(price_id: Optional[str]) -> str:
    """Plan for a Stripe price id; unknown prices fall back to the entry plan."""
    if not price_id:
        return FALLBACK_PLAN
    try:
        return plan_for_price_id(price_id, get_settings().price_ids)
    except NotFoundError:
        logger.warning(
            "Unknown Stripe price id, using %s", FALLBACK_PLAN,
            extra={"extra_fields": {"price_id": price_id}},
        )
        return FALLBACK_PLAN


def _split_name(name: str) -> tuple[str, str]:
    first, _, last = name.strip().partition(" ")
    return first, last.strip()


def login_url() -> str:
    settings = get_settings()
    settings.require("BASE_URL")
    return f"{settings.BASE_URL}/login"


async def provision_coach_account(
    remote: RemoteDataClient,
    email_client: Optional[EmailClient],
    *,
    email: str,
    name: str,
    plan: str,
    stripe_customer_id: Optional[str] = None,
    stripe_subscription_id: Optional[str] = None,
) -> CoachAccount:
    """
    Create or reuse the coach's auth user and put the profile on a trial of
    ``plan``.

    A new user gets a generated temporary password, sent by email. Email
    failures are logged and reported in ``email_sent``; they never undo the
    account.
    """
    email = email.strip().lower()
    now = utc_now()
    subscription = {
        "subscription_plan": plan,
        "subscription_status": SubscriptionStatusEnum.TRIALING.value,
        "subscription_start_date": now.isoformat(),
        "subscription_end_date": (now + timedelta(days=TRIAL_DAYS)).isoformat(),
        "plan_limits": snapshot(plan),
    }
    if stripe_customer_id:
        subscription["stripe_customer_id"] = stripe_customer_id
    if stripe_subscription_id:
        subscription["stripe_subscription_id"] = stripe_subscription_id

    temp_password: Optional[str] = None
    existing = await profile_service.get_profile_by_email(remote, email=email)
    if existing is not None:
        user_id = existing.id
    else:
        temp_password = generate_temp_password()
        user = await remote.admin_create_user(
            email, temp_password, {"name": name, "role": RoleEnum.COACH.value}
        )
        user_id = user["id"]
        logger.info(
            "Created coach auth user",
            extra={"extra_fields": {"user_id": user_id, "plan": plan}},
        )

    # A profile may already exist for a fresh user when the backend creates it
    # on sign-up.
    if await remote.fetch_maybe(tables.PROFILES, eq("id", user_id), columns="id"):
        await remote.update(
            tables.PROFILES,
            {**subscription, "role": RoleEnum.COACH.value, "updated_at": now.isoformat()},
            eq("id", user_id),
        )
    else:
        first_name, last_name = _split_name(name)
        await remote.insert_one(
            tables.PROFILES,
            {
                "id": user_id,
                "email": email,
                "first_name": first_name,
                "last_name": last_name,
                "role": RoleEnum.COACH.value,
                **subscription,
            },
        )

    email_sent = False
    if temp_password is not None and email_client is not None:
        try:
            await email_client.send_template(
                COACH_WELCOME_WITH_PASSWORD,
                EmailContext(
                    recipient_email=email,
                    recipient_name=name,
                    coach_name="BYW Team",
                    login_url=login_url(),
                    temp_password=temp_password,
                    plan_name=plan,
                ),
            )
            email_sent = True
        except CoachingError as exc:
            logger.error(
                f"Welcome email failed for {email}: {exc}",
                extra={"extra_fields": {"user_id": user_id}},
            )

    logger.info(
        "Coach account provisioned",
        extra={
            "extra_fields": {
                "user_id": user_id,
                "plan": plan,
                "created": temp_password is not None,
                "email_sent": email_sent,
            }
        },
    )
    return CoachAccount(
        user_id=user_id,
        email=email,
        plan=plan,
        created=temp_password is not None,
        email_sent=email_sent,
    )
