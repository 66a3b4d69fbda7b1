"""Profile lookups and subscription bookkeeping."""

from datetime import datetime
from typing import Mapping, Optional, Union

from libs.common.datetime_utils import utc_now
from libs.common.errors import FieldValidationError, NotFoundError
from libs.common.logging import get_logger
from libs.common.plan_limits import PlanLimits, get_plan_limits, snapshot
from libs.remote.client import Filter, RemoteDataClient, eq
from services.coaching_service import tables
from services.coaching_service.schemas import Profile, ProfileUpdate

logger = get_logger(__name__)

DEFAULT_PLAN = "warm_up"


async def get_profile(remote: RemoteDataClient, *, user_id: str) -> Optional[Profile]:
    row = await remote.fetch_maybe(tables.PROFILES, eq("id", user_id))
    return Profile.model_validate(row) if row else None


async def get_profile_by_email(
    remote: RemoteDataClient, *, email: str
) -> Optional[Profile]:
    row = await remote.fetch_maybe(tables.PROFILES, eq("email", email.strip().lower()))
    return Profile.model_validate(row) if row else None


async def update_profile(
    remote: RemoteDataClient, *, user_id: str, data: ProfileUpdate
) -> Profile:
    values = data.model_dump(exclude_unset=True)
    if not values:
        raise FieldValidationError("Aucune modification à enregistrer")
    values["updated_at"] = utc_now().isoformat()

    rows = await remote.update(tables.PROFILES, values, eq("id", user_id))
    if not rows:
        raise NotFoundError(f"Profile {user_id} not found")
    return Profile.model_validate(rows[0])


async def get_coach_limits(
    remote: RemoteDataClient, *, coach_id: str
) -> Union[PlanLimits, Mapping]:
    """
    Limits that apply to a coach: the snapshot stored on the profile, else the
    limits of the profile's plan, else the entry plan.
    """
    profile = await get_profile(remote, user_id=coach_id)
    if profile is None:
        raise NotFoundError(f"Coach profile {coach_id} not found")
    if profile.plan_limits:
        return profile.plan_limits
    return get_plan_limits(profile.subscription_plan or DEFAULT_PLAN)


async def apply_subscription(
    remote: RemoteDataClient,
    *,
    match: Filter,
    status: str,
    plan: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    stripe_customer_id: Optional[str] = None,
    stripe_subscription_id: Optional[str] = None,
) -> list[Profile]:
    """
    Record a subscription change on every profile matching ``match``.

    When ``plan`` is given the plan limits snapshot is refreshed with it.
    """
    values: dict = {"subscription_status": status, "updated_at": utc_now().isoformat()}
    if plan is not None:
        values["subscription_plan"] = plan
        values["plan_limits"] = snapshot(plan)
    if start_date is not None:
        values["subscription_start_date"] = start_date.isoformat()
    if end_date is not None:
        values["subscription_end_date"] = end_date.isoformat()
    if stripe_customer_id:
        values["stripe_customer_id"] = stripe_customer_id
    if stripe_subscription_id:
        values["stripe_subscription_id"] = stripe_subscription_id

    rows = await remote.update(tables.PROFILES, values, match)
    if not rows:
        logger.warning(
            "Subscription update matched no profile",
            extra={"extra_fields": {"column": match.column, "status": status}},
        )
    else:
        logger.info(
            "Subscription set to %s (plan=%s) on %d profile(s)", status, plan, len(rows)
        )
    return [Profile.model_validate(row) for row in rows]
