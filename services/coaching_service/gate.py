"""
Session gate: decides where a user lands and guards role/plan-restricted pages.

    gate = SessionGate(remote, store)
    decision = await gate.resolve()
    if decision.outcome is GateOutcome.FORCE_PASSWORD_CHANGE:
        await gate.change_password(new, confirm)
"""

import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from libs.auth.models import AuthSession
from libs.common.datetime_utils import utc_now
from libs.common.errors import (
    AuthenticationError,
    AuthorizationError,
    CoachingError,
    FieldValidationError,
)
from libs.common.logging import get_logger
from libs.common.plan_limits import has_page_access, is_active_subscription_status
from libs.remote.client import RemoteDataClient
from services.coaching_service.schemas import Profile, RoleEnum
from services.coaching_service.services import profile_service
from services.coaching_service.stores.auth_store import AuthStore, StoredUser

logger = get_logger(__name__)

FIRST_LOGIN_WINDOW = timedelta(minutes=5)
MIN_PASSWORD_LENGTH = 8
SPECIAL_CHARACTERS = re.compile(r"[^A-Za-z0-9]")


class GateOutcome(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    PROFILE_ERROR = "profile_error"
    FORCE_PASSWORD_CHANGE = "force_password_change"
    COACH_DASHBOARD = "coach_dashboard"
    CLIENT_DASHBOARD = "client_dashboard"


@dataclass(frozen=True)
class GateDecision:
    outcome: GateOutcome
    session: Optional[AuthSession] = None
    profile: Optional[Profile] = None
    error: Optional[str] = None


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def is_first_login(
    profile: Profile,
    session: Optional[AuthSession] = None,
    *,
    now: Optional[datetime] = None,
) -> bool:
    """A coach whose account is younger than the first-login window."""
    if profile.role != RoleEnum.COACH:
        return False
    created_at = profile.created_at or (session.created_at if session else None)
    if created_at is None:
        return False
    return (now or utc_now()) - _aware(created_at) < FIRST_LOGIN_WINDOW


def validate_new_password(new_password: str, confirmation: str) -> None:
    if new_password != confirmation:
        raise FieldValidationError(
            "Les mots de passe ne correspondent pas", field="confirm_password"
        )
    problems = []
    if len(new_password) < MIN_PASSWORD_LENGTH:
        problems.append(f"au moins {MIN_PASSWORD_LENGTH} caractères")
    if not re.search(r"[A-Z]", new_password):
        problems.append("une majuscule")
    if not re.search(r"[a-z]", new_password):
        problems.append("une minuscule")
    if not re.search(r"[0-9]", new_password):
        problems.append("un chiffre")
    if not SPECIAL_CHARACTERS.search(new_password):
        problems.append("un caractère spécial")
    if problems:
        raise FieldValidationError(
            "Le mot de passe doit contenir " + ", ".join(problems), field="password"
        )


def authorize(
    profile: Optional[Profile],
    *,
    required_role: Optional[RoleEnum] = None,
    page_id: Optional[str] = None,
) -> Profile:
    """
    Check a profile against a page's role and plan requirements.

    Coaches also need an active or trialing subscription. Clients are not
    subject to plan checks.
    """
    if profile is None:
        raise AuthenticationError("Authentification requise")
    if required_role is not None and profile.role != required_role:
        raise AuthorizationError(
            f"Accès réservé au rôle {required_role.value}", code="wrong_role"
        )
    if profile.role == RoleEnum.COACH:
        if not is_active_subscription_status(profile.subscription_status):
            raise AuthorizationError(
                "Votre abonnement n'est pas actif", code="subscription_inactive"
            )
        if page_id is not None and not has_page_access(
            page_id, profile.subscription_plan
        ):
            raise AuthorizationError(
                "Cette fonctionnalité n'est pas incluse dans votre plan",
                code="page_not_in_plan",
            )
    return profile


class SessionGate:
    def __init__(self, remote: RemoteDataClient, store: AuthStore):
        self._remote = remote
        self._store = store

    async def resolve(self) -> GateDecision:
        """
        Fetch the session, then its profile, and pick the landing view.

        A session without a readable profile is an error state, never an
        authenticated user.
        """
        self._store.set_loading(True)
        try:
            session = await self._remote.get_session()
            if session is None:
                self._store.logout()
                return GateDecision(GateOutcome.UNAUTHENTICATED)

            try:
                profile = await profile_service.get_profile(
                    self._remote, user_id=session.user_id
                )
            except CoachingError as exc:
                logger.warning(
                    "Profile fetch failed for %s: %s",
                    session.user_id,
                    exc,
                    extra={"extra_fields": {"user_id": session.user_id}},
                )
                self._store.logout()
                return GateDecision(
                    GateOutcome.PROFILE_ERROR, session=session, error=exc.public_message
                )
            if profile is None:
                logger.warning("No profile for session user %s", session.user_id)
                self._store.logout()
                return GateDecision(
                    GateOutcome.PROFILE_ERROR,
                    session=session,
                    error="Profil introuvable",
                )

            self._store.login(StoredUser.from_profile(profile))
            if is_first_login(profile, session):
                outcome = GateOutcome.FORCE_PASSWORD_CHANGE
            elif profile.role == RoleEnum.COACH:
                outcome = GateOutcome.COACH_DASHBOARD
            else:
                outcome = GateOutcome.CLIENT_DASHBOARD
            return GateDecision(outcome, session=session, profile=profile)
        finally:
            self._store.set_loading(False)

    async def change_password(self, new_password: str, confirmation: str) -> None:
        """Forced first-login password change. Requires a live session."""
        session = await self._remote.get_session()
        if session is None:
            raise AuthenticationError("Session expirée, veuillez vous reconnecter")
        validate_new_password(new_password, confirmation)
        await self._remote.update_password(new_password)
        logger.info("Password changed for %s", session.user_id)

    async def sign_in(self, email: str, password: str) -> GateDecision:
        await self._remote.sign_in(email.strip().lower(), password)
        return await self.resolve()

    async def sign_out(self) -> None:
        try:
            await self._remote.sign_out()
        finally:
            self._store.logout()

    def watch(self) -> Callable[[], None]:
        """Mirror auth events into the store. Returns the unsubscribe callable."""

        def _on_change(event: str, session: Optional[AuthSession]) -> None:
            if event == "SIGNED_OUT" or session is None:
                self._store.logout()

        return self._remote.on_auth_state_change(_on_change)
