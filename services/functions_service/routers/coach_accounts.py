"""Coach account provisioning (service-role callers only)."""

from fastapi import APIRouter, Depends, Request

from libs.auth.dependencies import require_admin
from libs.auth.models import AuthUser
from libs.common.emails.client import EmailClient
from libs.common.logging import get_logger
from libs.common.rate_limit import admin_limit
from libs.remote.client import RemoteDataClient
from services.functions_service.dependencies import get_admin_remote, get_email_client
from services.functions_service.schemas import (
    CoachAccount,
    CreateCoachAccountRequest,
    SuccessResponse,
)
from services.functions_service.services.coach_accounts import (
    provision_coach_account,
    resolve_plan,
)

router = APIRouter(tags=["coach-accounts"])
logger = get_logger(__name__)


@router.post("/create-coach-account", response_model=SuccessResponse[CoachAccount])
@admin_limit
async def create_coach_account(
    request: Request,
    payload: CreateCoachAccountRequest,
    admin: AuthUser = Depends(require_admin),
    remote: RemoteDataClient = Depends(get_admin_remote),
    email_client: EmailClient = Depends(get_email_client),
):
    logger.info(
        "Coach account requested",
        extra={"extra_fields": {"email": str(payload.email), "price_id": payload.price_id}},
    )
    account = await provision_coach_account(
        remote,
        email_client,
        email=str(payload.email),
        name=payload.name,
        plan=resolve_plan(payload.price_id),
        stripe_customer_id=payload.checkout_session.customer,
        stripe_subscription_id=payload.checkout_session.subscription,
    )
    return SuccessResponse(data=account)
