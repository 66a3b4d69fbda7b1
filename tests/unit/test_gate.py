"""Unit tests for the session gate and route authorization."""

from datetime import timedelta

import pytest

from libs.common.datetime_utils import utc_now
from libs.common.errors import (
    AuthenticationError,
    AuthorizationError,
    FieldValidationError,
    TransportError,
)
from services.coaching_service import tables
from services.coaching_service.gate import (
    GateOutcome,
    SessionGate,
    authorize,
    is_first_login,
    validate_new_password,
)
from services.coaching_service.schemas import Profile, RoleEnum
from services.coaching_service.stores import AuthStore, StatePersistence, StoredUser
from tests.factories import ProfileFactory

STRONG_PASSWORD = "Nouveau#2024"


@pytest.fixture
def store() -> AuthStore:
    return AuthStore()


@pytest.fixture
def gate(remote, store) -> SessionGate:
    return SessionGate(remote, store)


def _signed_in(remote, row: dict) -> dict:
    remote.seed(tables.PROFILES, row)
    remote.sign_in_as(row["id"], row["email"])
    return row


# ---------------------------------------------------------------------------
# resolve
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_no_session_is_unauthenticated(gate, store):
    decision = await gate.resolve()

    assert decision.outcome is GateOutcome.UNAUTHENTICATED
    assert not store.is_authenticated
    assert not store.is_loading


@pytest.mark.asyncio
@pytest.mark.unit
async def test_new_coach_must_change_password(gate, remote, store):
    row = _signed_in(
        remote,
        ProfileFactory.coach(created_at=(utc_now() - timedelta(minutes=1)).isoformat()),
    )

    decision = await gate.resolve()

    assert decision.outcome is GateOutcome.FORCE_PASSWORD_CHANGE
    assert store.user.id == row["id"]
    assert store.is_authenticated


@pytest.mark.asyncio
@pytest.mark.unit
async def test_established_coach_lands_on_dashboard(gate, remote):
    _signed_in(remote, ProfileFactory.coach())

    decision = await gate.resolve()

    assert decision.outcome is GateOutcome.COACH_DASHBOARD
    assert decision.profile.role == RoleEnum.COACH


@pytest.mark.asyncio
@pytest.mark.unit
async def test_new_client_skips_password_change(gate, remote):
    _signed_in(remote, ProfileFactory.client(created_at=utc_now().isoformat()))

    decision = await gate.resolve()

    assert decision.outcome is GateOutcome.CLIENT_DASHBOARD


@pytest.mark.asyncio
@pytest.mark.unit
async def test_missing_profile_is_an_error_state(gate, remote, store):
    remote.sign_in_as("user-without-profile", "ghost@test.com")

    decision = await gate.resolve()

    assert decision.outcome is GateOutcome.PROFILE_ERROR
    assert decision.error == "Profil introuvable"
    assert not store.is_authenticated


@pytest.mark.asyncio
@pytest.mark.unit
async def test_profile_fetch_failure_is_an_error_state(gate, remote, store):
    row = ProfileFactory.coach()
    remote.seed(tables.PROFILES, row)
    remote.sign_in_as(row["id"], row["email"])
    remote.fail("select", tables.PROFILES, TransportError("connection reset"))

    decision = await gate.resolve()

    assert decision.outcome is GateOutcome.PROFILE_ERROR
    assert decision.error == TransportError.public_message
    assert not store.is_authenticated


@pytest.fixture
def restored_store(tmp_path) -> AuthStore:
    """A store reloaded from disk after an earlier login."""
    path = tmp_path / "auth.json"
    AuthStore(StatePersistence(path)).login(
        StoredUser(id="u1", email="paul@test.com", role=RoleEnum.COACH)
    )
    return AuthStore(StatePersistence(path))


@pytest.mark.asyncio
@pytest.mark.unit
async def test_missing_profile_clears_restored_login(remote, restored_store):
    assert restored_store.is_authenticated
    remote.sign_in_as("u1", "paul@test.com")

    decision = await SessionGate(remote, restored_store).resolve()

    assert decision.outcome is GateOutcome.PROFILE_ERROR
    assert not restored_store.is_authenticated
    assert restored_store.user is None


@pytest.mark.asyncio
@pytest.mark.unit
async def test_profile_fetch_failure_clears_restored_login(remote, restored_store, tmp_path):
    remote.sign_in_as("u1", "paul@test.com")
    remote.fail("select", tables.PROFILES, TransportError("connection reset"))

    decision = await SessionGate(remote, restored_store).resolve()

    assert decision.outcome is GateOutcome.PROFILE_ERROR
    assert not restored_store.is_authenticated
    assert not AuthStore(StatePersistence(tmp_path / "auth.json")).is_authenticated


@pytest.mark.asyncio
@pytest.mark.unit
async def test_sign_in_normalizes_email(gate, remote):
    user = await remote.admin_create_user("coach@test.com", STRONG_PASSWORD)
    remote.seed(tables.PROFILES, ProfileFactory.coach(id=user["id"], email="coach@test.com"))

    decision = await gate.sign_in("  Coach@Test.com ", STRONG_PASSWORD)

    assert decision.outcome is GateOutcome.COACH_DASHBOARD


@pytest.mark.asyncio
@pytest.mark.unit
async def test_sign_out_event_logs_store_out(gate, remote, store):
    _signed_in(remote, ProfileFactory.coach())
    await gate.resolve()
    unsubscribe = gate.watch()

    remote.emit_auth_event("SIGNED_OUT", None)

    assert not store.is_authenticated
    unsubscribe()


# ---------------------------------------------------------------------------
# Password change
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_change_password_requires_session(gate, remote):
    with pytest.raises(AuthenticationError):
        await gate.change_password(STRONG_PASSWORD, STRONG_PASSWORD)
    assert remote.password_updates == []


@pytest.mark.asyncio
@pytest.mark.unit
async def test_change_password_updates_credentials(gate, remote):
    _signed_in(remote, ProfileFactory.coach())

    await gate.change_password(STRONG_PASSWORD, STRONG_PASSWORD)

    assert remote.password_updates == [STRONG_PASSWORD]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_mismatched_confirmation_is_rejected(gate, remote):
    _signed_in(remote, ProfileFactory.coach())

    with pytest.raises(FieldValidationError) as exc_info:
        await gate.change_password(STRONG_PASSWORD, "Autre#2024")

    assert exc_info.value.field == "confirm_password"
    assert remote.password_updates == []


@pytest.mark.unit
def test_weak_password_lists_missing_rules():
    with pytest.raises(FieldValidationError) as exc_info:
        validate_new_password("abc", "abc")

    message = exc_info.value.message
    assert "au moins 8 caractères" in message
    assert "une majuscule" in message
    assert "un chiffre" in message
    assert "une minuscule" not in message


@pytest.mark.unit
def test_first_login_window():
    created = utc_now() - timedelta(minutes=10)
    coach = Profile.model_validate(ProfileFactory.coach(created_at=created.isoformat()))

    assert not is_first_login(coach)
    assert is_first_login(coach, now=created + timedelta(minutes=4))


# ---------------------------------------------------------------------------
# authorize
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_authorize_requires_profile():
    with pytest.raises(AuthenticationError):
        authorize(None, required_role=RoleEnum.COACH)


@pytest.mark.unit
def test_authorize_rejects_wrong_role():
    client = Profile.model_validate(ProfileFactory.client())
    with pytest.raises(AuthorizationError) as exc_info:
        authorize(client, required_role=RoleEnum.COACH)
    assert exc_info.value.code == "wrong_role"


@pytest.mark.unit
def test_authorize_rejects_inactive_subscription():
    coach = Profile.model_validate(ProfileFactory.coach(subscription_status="past_due"))
    with pytest.raises(AuthorizationError) as exc_info:
        authorize(coach, required_role=RoleEnum.COACH)
    assert exc_info.value.code == "subscription_inactive"


@pytest.mark.unit
def test_authorize_checks_page_against_plan():
    coach = Profile.model_validate(ProfileFactory.coach())
    with pytest.raises(AuthorizationError) as exc_info:
        authorize(coach, page_id="nutrition")
    assert exc_info.value.code == "page_not_in_plan"

    assert authorize(coach, page_id="workouts") is coach


@pytest.mark.unit
def test_clients_skip_plan_checks():
    client = Profile.model_validate(ProfileFactory.client())
    assert authorize(client, required_role=RoleEnum.CLIENT, page_id="nutrition") is client
