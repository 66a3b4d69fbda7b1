"""Client invitations issued by coaches."""

import secrets
from typing import Optional

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.emails.client import EmailClient
from libs.common.emails.templates import CLIENT_INVITATION, EmailContext
from libs.common.errors import AuthorizationError, CoachingError, NotFoundError
from libs.common.logging import get_logger
from libs.common.plan_limits import is_active_subscription_status
from libs.remote.client import RemoteDataClient
from services.coaching_service.schemas import (
    ClientCreate,
    InvitationStatusEnum,
    RoleEnum,
)
from services.coaching_service.services import client_service, profile_service
from services.functions_service.schemas import InvitedClient

logger = get_logger(__name__)

INVITE_LINK_TYPE = "invite"


def accept_invitation_url(token: str) -> str:
    settings = get_settings()
    settings.require("BASE_URL")
    return f"{settings.BASE_URL}/accept-invitation?token={token}"


async def invite_client(
    remote: RemoteDataClient,
    email_client: Optional[EmailClient],
    *,
    coach_id: str,
    client_email: str,
    client_name: str,
) -> InvitedClient:
    """
    Create a pending client for the coach and send the invitation.

    The coach needs an active (or trialing) subscription and room under the
    plan's client limit; a second client with the same email for the same
    coach is a conflict. If no invite link can be generated the client row is
    removed again.
    """
    coach = await profile_service.get_profile(remote, user_id=coach_id)
    if coach is None or coach.role != RoleEnum.COACH:
        raise NotFoundError(f"Coach {coach_id} not found")
    if not is_active_subscription_status(coach.subscription_status):
        raise AuthorizationError(
            f"Coach {coach_id} subscription is {coach.subscription_status}",
            code="subscription_inactive",
        )

    first_name, _, last_name = client_name.strip().partition(" ")
    token = secrets.token_hex(32)
    client = await client_service.create_client(
        remote,
        coach_id=coach_id,
        data=ClientCreate(
            first_name=first_name, last_name=last_name.strip(), contact=client_email
        ),
        extra={
            "email": client_email.strip().lower(),
            "invitation_token": token,
            "invitation_sent_at": utc_now().isoformat(),
            "invitation_status": InvitationStatusEnum.PENDING.value,
        },
    )

    accept_url = accept_invitation_url(token)
    try:
        invitation_url = await remote.admin_generate_link(
            INVITE_LINK_TYPE,
            client.contact,
            redirect_to=accept_url,
            data={
                "role": RoleEnum.CLIENT.value,
                "coach_id": coach_id,
                "client_id": client.id,
                "name": client_name,
            },
        )
    except CoachingError:
        logger.error(
            "Invite link generation failed, removing client %s", client.id,
            extra={"extra_fields": {"coach_id": coach_id}},
        )
        await client_service.delete_client(remote, client_id=client.id)
        raise

    email_sent = False
    if email_client is not None:
        try:
            await email_client.send_template(
                CLIENT_INVITATION,
                EmailContext(
                    recipient_email=client.contact,
                    recipient_name=client_name,
                    coach_name=coach.full_name or coach.email,
                    invitation_url=invitation_url,
                ),
            )
            email_sent = True
        except CoachingError as exc:
            logger.error(
                f"Invitation email failed for client {client.id}: {exc}",
                extra={"extra_fields": {"coach_id": coach_id}},
            )

    logger.info(
        "Client invited",
        extra={
            "extra_fields": {
                "coach_id": coach_id,
                "client_id": client.id,
                "email_sent": email_sent,
            }
        },
    )
    return InvitedClient(
        id=client.id,
        email=client.contact,
        name=client.full_name,
        invitation_token=token,
        invitation_url=invitation_url,
        email_sent=email_sent,
    )
