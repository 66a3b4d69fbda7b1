from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class AuthUser(BaseModel):
    """
    Represents an authenticated user from a Supabase access token.
    """

    # Service-role tokens carry no subject.
    user_id: Optional[str] = Field(None, alias="sub")
    email: Optional[EmailStr] = None
    role: str = "authenticated"
    user_metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True)

    @property
    def app_role(self) -> Optional[str]:
        """Coach/client role carried in the user metadata, if any."""
        return self.user_metadata.get("role")


class AuthSession(BaseModel):
    """A live session as returned by the backend auth service."""

    access_token: str
    user_id: str
    email: Optional[str] = None
    created_at: Optional[datetime] = None
    user_metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_sdk(cls, session: Any) -> "AuthSession":
        user = session.user
        return cls(
            access_token=session.access_token,
            user_id=str(user.id),
            email=user.email,
            created_at=user.created_at,
            user_metadata=dict(user.user_metadata or {}),
        )
