"""Client invitations."""

from fastapi import APIRouter, Depends, Request

from libs.auth.dependencies import require_coach
from libs.auth.models import AuthUser
from libs.common.emails.client import EmailClient
from libs.common.errors import AuthorizationError
from libs.common.rate_limit import invite_limit
from libs.remote.client import RemoteDataClient
from services.functions_service.dependencies import get_admin_remote, get_email_client
from services.functions_service.schemas import (
    InviteClientRequest,
    InvitedClient,
    SuccessResponse,
)
from services.functions_service.services import invitations

router = APIRouter(tags=["invitations"])


@router.post("/invite-client", response_model=SuccessResponse[InvitedClient])
@invite_limit
async def invite_client(
    request: Request,
    payload: InviteClientRequest,
    current_user: AuthUser = Depends(require_coach),
    remote: RemoteDataClient = Depends(get_admin_remote),
    email_client: EmailClient = Depends(get_email_client),
):
    """Invite a client on behalf of the calling coach."""
    if current_user.user_id != payload.coach_id:
        raise AuthorizationError(
            f"User {current_user.user_id} cannot invite for coach {payload.coach_id}",
            code="wrong_coach",
        )
    invited = await invitations.invite_client(
        remote,
        email_client,
        coach_id=payload.coach_id,
        client_email=str(payload.client_email),
        client_name=payload.client_name,
    )
    return SuccessResponse(data=invited)
