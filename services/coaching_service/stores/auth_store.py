"""Authenticated user state, partially persisted across restarts."""

import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ValidationError

from libs.common.config import get_settings
from libs.common.logging import get_logger
from services.coaching_service.schemas import Profile, RoleEnum
from services.coaching_service.stores.base import Observable

logger = get_logger(__name__)


class StoredUser(BaseModel):
    """Minimal identity kept in the store (no subscription or limits)."""

    id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    role: RoleEnum
    avatar_url: Optional[str] = None

    @classmethod
    def from_profile(cls, profile: Profile) -> "StoredUser":
        return cls(
            id=profile.id,
            email=profile.email,
            first_name=profile.first_name,
            last_name=profile.last_name,
            role=profile.role,
            avatar_url=profile.avatar_url,
        )


class PersistedAuthState(BaseModel):
    user: Optional[StoredUser] = None
    is_authenticated: bool = False


class StatePersistence:
    """JSON file holding the persisted subset of the auth store."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path or get_settings().AUTH_STATE_PATH)

    def load(self) -> PersistedAuthState:
        if not self.path.exists():
            return PersistedAuthState()
        try:
            return PersistedAuthState.model_validate_json(self.path.read_text("utf-8"))
        except (ValidationError, json.JSONDecodeError, OSError) as exc:
            logger.warning("Ignoring unreadable auth state at %s: %s", self.path, exc)
            return PersistedAuthState()

    def save(self, state: PersistedAuthState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(state.model_dump_json(), "utf-8")

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class AuthStore(Observable):
    """
    Holds ``user``, ``is_authenticated`` and ``is_loading``.

    Only ``user`` and ``is_authenticated`` are written to ``persistence``;
    the loading flag always starts ``False``.
    """

    def __init__(self, persistence: Optional[StatePersistence] = None):
        super().__init__()
        self._persistence = persistence
        self.user: Optional[StoredUser] = None
        self.is_authenticated = False
        self.is_loading = False
        if persistence is not None:
            restored = persistence.load()
            self.user = restored.user
            self.is_authenticated = restored.is_authenticated and restored.user is not None

    def _persist(self) -> None:
        if self._persistence is not None:
            self._persistence.save(
                PersistedAuthState(user=self.user, is_authenticated=self.is_authenticated)
            )

    def login(self, user: StoredUser) -> None:
        self.user = user
        self.is_authenticated = True
        self.is_loading = False
        self._persist()
        self._notify()

    def logout(self) -> None:
        self.user = None
        self.is_authenticated = False
        self.is_loading = False
        self._persist()
        self._notify()

    def set_user(self, user: Optional[StoredUser]) -> None:
        self.user = user
        self.is_authenticated = user is not None
        self._persist()
        self._notify()

    def set_loading(self, loading: bool) -> None:
        self.is_loading = loading
        self._notify()

    @property
    def role(self) -> Optional[RoleEnum]:
        return self.user.role if self.user else None
