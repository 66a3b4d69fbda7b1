from typing import Annotated, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import ValidationError

from libs.auth.models import AuthUser
from libs.common.config import get_settings
from libs.common.errors import AuthenticationError, AuthorizationError

security = HTTPBearer(auto_error=False)

SERVICE_ROLE = "service_role"


def decode_token(token: str) -> AuthUser:
    """
    Validate a Supabase access token (HS256, signed with the project JWT
    secret) and return its user.
    """
    settings = get_settings()
    settings.require("SUPABASE_JWT_SECRET")
    try:
        payload = jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=["HS256"],
            options={"verify_aud": False},
        )
        return AuthUser(**payload)
    except (JWTError, ValidationError) as exc:
        raise AuthenticationError(f"Could not validate credentials: {exc}") from exc


async def get_current_user(
    request: Request,
    token: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> AuthUser:
    if token is None:
        raise AuthenticationError("Missing bearer token")
    user = decode_token(token.credentials)
    # Rate limiting keys on the authenticated user.
    request.state.user = user
    return user


async def require_coach(
    current_user: Annotated[AuthUser, Depends(get_current_user)]
) -> AuthUser:
    if current_user.app_role != "coach":
        raise AuthorizationError("Coach role required", code="wrong_role")
    return current_user


async def require_admin(
    current_user: Annotated[AuthUser, Depends(get_current_user)]
) -> AuthUser:
    """Service-role tokens only: server-side callers and operator scripts."""
    if current_user.role != SERVICE_ROLE:
        raise AuthorizationError("Admin privileges required", code="admin_required")
    return current_user
