"""Transactional email sending."""

from fastapi import APIRouter, Depends, Request

from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from libs.common.emails.client import EmailClient
from libs.common.emails.templates import EmailContext
from libs.common.rate_limit import invite_limit
from services.functions_service.dependencies import get_email_client
from services.functions_service.schemas import EmailSent, SendEmailRequest, SuccessResponse

router = APIRouter(tags=["emails"])


@router.post("/send-email", response_model=SuccessResponse[EmailSent])
@invite_limit
async def send_email(
    request: Request,
    payload: SendEmailRequest,
    current_user: AuthUser = Depends(get_current_user),
    email_client: EmailClient = Depends(get_email_client),
):
    """Render one of the transactional templates and send it."""
    sent = await email_client.send_template(
        payload.type,
        EmailContext(
            recipient_email=str(payload.to_email),
            recipient_name=payload.recipient_name,
            coach_name=payload.coach_name,
            invitation_url=payload.invitation_url,
            login_url=payload.login_url,
            temp_password=payload.temp_password,
            plan_name=payload.plan_name,
        ),
    )
    return SuccessResponse(data=EmailSent(email_id=sent.id, recipient=sent.to_email))
